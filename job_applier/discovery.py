"""
Job Discovery
=============
Sources of JobListings for a hunt:
- StaticJobDiscovery: a fixed list, usually read from a YAML file
- PlatformJobDiscovery: a platform adapter's job search
- CareersPageDiscovery: job links on company careers pages
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Union
from urllib.parse import urljoin

import yaml
from playwright.async_api import Error as PlaywrightError

from job_applier.browser import BrowserSession, Pacer, navigate_to, wait_for_settle
from job_applier.config import NavigationConfig
from job_applier.errors import BrowserError, ConfigError
from job_applier.models import HuntConfig, JobListing
from job_applier.navigator import titles_match
from job_applier.page_analyzer import PageAnalyzer
from job_applier.platforms.base import PlatformAdapter, SearchQuery

logger = logging.getLogger(__name__)


class JobDiscovery(ABC):
    name = "discovery"

    @abstractmethod
    async def discover(self, hunt_config: HuntConfig) -> List[JobListing]:
        """Jobs worth considering for this hunt."""


def _wanted(title: str, keywords: Sequence[str]) -> bool:
    if not keywords:
        return True
    return any(titles_match(title, keyword) for keyword in keywords)


class StaticJobDiscovery(JobDiscovery):
    name = "static"

    def __init__(self, jobs: Sequence[JobListing], filter_by_keywords: bool = False):
        self.jobs = list(jobs)
        self.filter_by_keywords = filter_by_keywords

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "StaticJobDiscovery":
        """
        Jobs from YAML: a list of job mappings, or {"jobs": [...]}.
        Each mapping needs at least title, company and url.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read jobs file {path}: {exc}", {"path": str(path)}) from exc
        if isinstance(data, dict):
            data = data.get("jobs") or []
        jobs = []
        for index, item in enumerate(data):
            if not isinstance(item, dict) or not all(item.get(key) for key in ("title", "company", "url")):
                raise ConfigError(f"Job #{index + 1} in {path} needs title, company and url",
                                  {"path": str(path), "index": index})
            jobs.append(JobListing.from_dict(item))
        return cls(jobs, **kwargs)

    async def discover(self, hunt_config: HuntConfig) -> List[JobListing]:
        if not self.filter_by_keywords:
            return list(self.jobs)
        return [job for job in self.jobs if _wanted(job.title, hunt_config.keywords)]


class PlatformJobDiscovery(JobDiscovery):
    def __init__(self, adapter: PlatformAdapter, results_per_job: int = 3):
        self.adapter = adapter
        self.results_per_job = results_per_job
        self.name = adapter.platform

    async def discover(self, hunt_config: HuntConfig) -> List[JobListing]:
        query = SearchQuery(
            keywords=list(hunt_config.keywords),
            location=hunt_config.location,
            remote=hunt_config.remote,
            limit=max(hunt_config.max_jobs * self.results_per_job, 10),
        )
        return await self.adapter.search_jobs(query)


class CareersPageDiscovery(JobDiscovery):
    """
    Finds each company's careers page and reads the job links on it.

    Companies come from the hunt's include_companies unless given here.
    """

    name = "careers_pages"

    def __init__(self, session: BrowserSession, analyzer: PageAnalyzer,
                 companies: Optional[Sequence[str]] = None, pacer: Optional[Pacer] = None,
                 navigation: Optional[NavigationConfig] = None):
        self.session = session
        self.analyzer = analyzer
        self.companies = list(companies or [])
        self.pacer = pacer or Pacer()
        self.navigation = navigation or NavigationConfig()

    async def discover(self, hunt_config: HuntConfig) -> List[JobListing]:
        jobs: List[JobListing] = []
        for company in self.companies or hunt_config.include_companies:
            careers_url = await self.analyzer.find_careers_page(company)
            if not careers_url:
                logger.info("Could not find careers page for %s", company)
                continue
            try:
                jobs.extend(await self.scrape(company, careers_url, hunt_config.keywords))
            except (BrowserError, PlaywrightError) as exc:
                logger.warning("Failed to search %s: %s", company, exc)
        return jobs

    async def scrape(self, company: str, careers_url: str, keywords: Sequence[str]) -> List[JobListing]:
        async with self.session.page() as page:
            await navigate_to(page, careers_url, self.navigation.navigation_timeout_ms)
            await wait_for_settle(page, self.navigation.settle_timeout_ms)
            await self.pacer.page_settle()
            analysis = await self.analyzer.analyze(page)

        jobs = []
        for link in analysis.jobs:
            if not _wanted(link.title, keywords):
                continue
            jobs.append(JobListing(
                title=link.title,
                company=company,
                url=urljoin(careers_url, link.url) if link.url else careers_url,
            ))
        logger.info("Found %d matching jobs on %s careers page", len(jobs), company)
        return jobs
