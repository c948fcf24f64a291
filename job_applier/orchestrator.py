"""
Job Hunter Orchestrator
=======================
Runs a hunt end to end:

    discover -> match (threshold, sorted, capped) -> apply one job at a time

Jobs on a platform with its own apply flow go through that platform's
adapter; everything else goes through the generic ApplicationNavigator.
Every application record, with its events, is written to the application
repository once the attempt ends.

Usage:
    async with BrowserSession(config.browser) as session:
        hunter = JobHunterOrchestrator.from_config(config, session, discovery=[...])
        result = await hunter.hunt(profile, HuntConfig(keywords=["designer"]))
"""

import inspect
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from playwright.async_api import Error as PlaywrightError

from job_applier.browser import BrowserSession, Pacer, ScreenshotRecorder, body_text, navigate_to
from job_applier.config import AppConfig
from job_applier.discovery import CareersPageDiscovery, JobDiscovery
from job_applier.errors import AuthenticationError, BrowserError, JobApplierError, NavigationError
from job_applier.field_resolver import FieldValueResolver
from job_applier.form_filler import FormFiller
from job_applier.llm import ChatCompletionModel, LanguageModel
from job_applier.matching import JobMatcher, LanguageModelMatcher, MatchAnalysis
from job_applier.models import (
    ApplicationStatus,
    HuntConfig,
    HuntResult,
    JobApplication,
    JobListing,
    PlatformCredentials,
    Profile,
)
from job_applier.navigator import ApplicationNavigator
from job_applier.page_analyzer import PageAnalyzer
from job_applier.platforms import get_adapter
from job_applier.platforms.base import PlatformAdapter
from job_applier.repositories import (
    ApplicationRepository,
    InMemoryApplicationRepository,
    InMemoryJobRepository,
    InMemoryProfileStore,
    JobRepository,
    ProfileStore,
    load_profile,
)

logger = logging.getLogger(__name__)

# Descriptions shorter than this are fetched from the job page before matching.
MIN_DESCRIPTION_CHARS = 200
DESCRIPTION_LIMIT = 5000


@dataclass
class HuntCallbacks:
    """Optional hooks into a running hunt. on_confirmation_required may be sync or async."""
    on_job_discovered: Optional[Callable[[JobListing], None]] = None
    on_job_matched: Optional[Callable[[JobListing, float], None]] = None
    on_application_start: Optional[Callable[[JobListing], None]] = None
    on_application_complete: Optional[Callable[[JobApplication], None]] = None
    on_confirmation_required: Optional[Callable[[JobListing], Union[bool, Awaitable[bool]]]] = None
    on_error: Optional[Callable[[Exception, Optional[JobListing]], None]] = None
    on_progress: Optional[Callable[[str], None]] = None


class JobHunterOrchestrator:
    def __init__(self, session: BrowserSession, navigator: ApplicationNavigator,
                 analyzer: Optional[PageAnalyzer] = None, matcher: Optional[JobMatcher] = None,
                 discovery: Sequence[JobDiscovery] = (),
                 adapters: Optional[Dict[str, PlatformAdapter]] = None,
                 jobs: Optional[JobRepository] = None,
                 applications: Optional[ApplicationRepository] = None,
                 profiles: Optional[ProfileStore] = None,
                 pacer: Optional[Pacer] = None,
                 max_applications_per_hour: int = 10,
                 max_applications_per_day: int = 50,
                 clock: Callable[[], float] = time.monotonic):
        self.session = session
        self.navigator = navigator
        self.analyzer = analyzer or navigator.analyzer
        self.matcher = matcher
        self.discovery = list(discovery)
        self.adapters = adapters or {}
        self.jobs = jobs or InMemoryJobRepository()
        self.applications = applications or InMemoryApplicationRepository()
        self.profiles = profiles or InMemoryProfileStore()
        self.pacer = pacer or Pacer()
        self._credentials: Dict[str, PlatformCredentials] = {}
        self._authenticated: Dict[str, bool] = {}
        self._auth_failures: Dict[str, str] = {}
        self.max_applications_per_hour = max_applications_per_hour
        self.max_applications_per_day = max_applications_per_day
        self.clock = clock
        self._submitted_at: List[float] = []

    @classmethod
    def from_config(cls, config: AppConfig, session: BrowserSession,
                    llm: Optional[LanguageModel] = None,
                    discovery: Sequence[JobDiscovery] = (), **kwargs) -> "JobHunterOrchestrator":
        """Wire every component from config. The model is optional; without a key it is left out."""
        if llm is None and config.llm.is_configured:
            llm = ChatCompletionModel(config.llm)
        pacer = Pacer(config.rate_limit)
        analyzer = PageAnalyzer(llm, llm_timeout=config.llm.timeout)
        filler = FormFiller(FieldValueResolver(llm, timeout=config.llm.timeout), analyzer, pacer)
        navigator = ApplicationNavigator(
            analyzer, filler, pacer,
            screenshots=ScreenshotRecorder(config.data_path("screenshots")),
            config=config.navigation,
        )
        adapters = {
            name: get_adapter(name, session, config, pacer=pacer)
            for name, settings in config.platforms.items()
            if settings.enabled and settings.use_easy_apply
        }
        orchestrator = cls(
            session, navigator, analyzer,
            matcher=LanguageModelMatcher(llm, timeout=config.llm.timeout) if llm else None,
            discovery=discovery, adapters=adapters, pacer=pacer,
            max_applications_per_hour=config.rate_limit.max_applications_per_hour,
            max_applications_per_day=config.rate_limit.max_applications_per_day,
            **kwargs,
        )
        for name, settings in config.platforms.items():
            if settings.email and settings.password:
                orchestrator.set_platform_credentials(
                    name, PlatformCredentials(name, settings.email, settings.password))
        return orchestrator

    def set_platform_credentials(self, platform: str, credentials: PlatformCredentials) -> None:
        self._credentials[platform] = credentials
        self._authenticated.pop(platform, None)
        self._auth_failures.pop(platform, None)

    def load_profile(self, path: Union[str, Path]) -> Profile:
        """Read a profile from YAML and register it with the profile store."""
        return self.profiles.create(load_profile(path))

    # ------------------------------------------------------------------
    # Hunt
    # ------------------------------------------------------------------

    async def hunt(self, profile: Profile, hunt_config: HuntConfig,
                   callbacks: Optional[HuntCallbacks] = None) -> HuntResult:
        callbacks = callbacks or HuntCallbacks()
        result = HuntResult()
        started = time.monotonic()
        # Credentials are read-only for the length of a hunt.
        credentials = MappingProxyType(dict(self._credentials))
        self._progress(callbacks, f"Starting job hunt: {', '.join(hunt_config.keywords) or 'any role'}")

        try:
            self._progress(callbacks, "Phase 1: Discovering jobs...")
            discovered = await self.discover_jobs(hunt_config, callbacks, result)
            result.jobs_discovered = len(discovered)
            self._progress(callbacks, f"Found {len(discovered)} jobs")
            if not discovered:
                return self._finish(result, started, callbacks)

            self._progress(callbacks, "Phase 2: Analyzing job matches...")
            matched = await self.match_jobs(discovered, profile, hunt_config, callbacks)
            result.jobs_matched = len(matched)
            self._progress(callbacks, f"{len(matched)} jobs matched your profile")
            if not matched or not hunt_config.auto_apply:
                return self._finish(result, started, callbacks)

            self._progress(callbacks, "Phase 3: Applying to jobs...")
            await self.apply_to_jobs(matched, profile, hunt_config, callbacks, result, credentials)
        except JobApplierError as exc:
            result.errors.append(exc.message)
            self._error(callbacks, exc)
            self._progress(callbacks, f"Hunt failed: {exc.message}")
        return self._finish(result, started, callbacks)

    def _finish(self, result: HuntResult, started: float, callbacks: HuntCallbacks) -> HuntResult:
        result.duration_seconds = round(time.monotonic() - started, 2)
        self._progress(callbacks, f"Hunt complete: {result.applications_submitted}/"
                                  f"{result.applications_attempted} submitted")
        return result

    async def discover_jobs(self, hunt_config: HuntConfig, callbacks: HuntCallbacks,
                            result: Optional[HuntResult] = None) -> List[JobListing]:
        sources = list(self.discovery)
        if hunt_config.include_companies and not any(isinstance(s, CareersPageDiscovery) for s in sources):
            sources.append(CareersPageDiscovery(self.session, self.analyzer, pacer=self.pacer,
                                                navigation=self.navigator.config))
        seen = set()
        jobs: List[JobListing] = []
        for source in sources:
            self._progress(callbacks, f"Searching {source.name}...")
            try:
                found = await source.discover(hunt_config)
            except (JobApplierError, PlaywrightError) as exc:
                message = f"Discovery via {source.name} failed: {exc}"
                logger.warning(message)
                if result is not None:
                    result.errors.append(message)
                self._error(callbacks, exc)
                continue
            for job in found:
                if job.url in seen:
                    continue
                seen.add(job.url)
                job = self.jobs.upsert(await self._with_description(job))
                jobs.append(job)
                if callbacks.on_job_discovered:
                    callbacks.on_job_discovered(job)
        return jobs

    async def _with_description(self, job: JobListing) -> JobListing:
        """Fill in a missing description before the listing is stored. Best-effort."""
        if len(job.description) >= MIN_DESCRIPTION_CHARS:
            return job
        adapter = self.adapters.get(job.platform)
        try:
            if adapter is not None and job.external_id:
                details = await adapter.get_job_details(job.external_id)
                return replace(job, description=details.description, requirements=details.requirements,
                               required_skills=details.required_skills)
            if not self.session.is_started:
                return job
            async with self.session.page() as page:
                await navigate_to(page, job.url, self.navigator.config.navigation_timeout_ms)
                text = await body_text(page)
        except (JobApplierError, PlaywrightError) as exc:
            logger.debug("No details for %s: %s", job.url, exc)
            return job
        return replace(job, description=" ".join(text.split())[:DESCRIPTION_LIMIT]) if text else job

    async def match_jobs(self, jobs: Sequence[JobListing], profile: Profile, hunt_config: HuntConfig,
                         callbacks: HuntCallbacks) -> List[JobListing]:
        threshold = hunt_config.match_threshold
        matched: List[JobListing] = []
        for job in jobs:
            if job.match_score is None:
                analysis = await self._score(job, profile)
                job = self.jobs.upsert(job.with_match(analysis.score, analysis.analysis))
            if job.match_score >= threshold:
                matched.append(job)
                if callbacks.on_job_matched:
                    callbacks.on_job_matched(job, job.match_score)
                self._progress(callbacks, f"Match: {job.title} at {job.company} ({job.match_score:.0f}%)")
            else:
                self._progress(callbacks, f"Skip: {job.title} at {job.company} "
                                          f"({job.match_score:.0f}% < {threshold:.0f}%)")
        matched.sort(key=lambda j: j.match_score or 0, reverse=True)
        return matched[:hunt_config.max_jobs]

    async def _score(self, job: JobListing, profile: Profile) -> MatchAnalysis:
        if self.matcher is None:
            return MatchAnalysis.neutral("No matcher configured")
        return await self.matcher.match(job, profile)

    async def apply_to_jobs(self, jobs: Sequence[JobListing], profile: Profile, hunt_config: HuntConfig,
                            callbacks: HuntCallbacks, result: HuntResult,
                            credentials: Optional[Mapping[str, PlatformCredentials]] = None) -> None:
        credentials = credentials if credentials is not None else MappingProxyType(dict(self._credentials))
        first = True
        for job in jobs:
            if self.applications.check_already_applied(job.id, profile.id):
                self._progress(callbacks, f"Already applied: {job.title} at {job.company}")
                continue
            limit = self.application_limit_reached()
            if limit:
                result.errors.append(limit)
                self._progress(callbacks, limit)
                break
            if not first:
                await self.pacer.between_applications()
            first = False

            if hunt_config.require_confirmation and not await self._confirm(callbacks, job):
                application = JobApplication.start(job, profile)
                application.transition(ApplicationStatus.SKIPPED, "Skipped by user")
                self._record(application)
                result.count(application)
                if callbacks.on_application_complete:
                    callbacks.on_application_complete(application)
                continue

            if callbacks.on_application_start:
                callbacks.on_application_start(job)
            self._progress(callbacks, f"Applying to: {job.title} at {job.company}")
            application = await self.apply(job, profile, dry_run=hunt_config.dry_run, credentials=credentials)
            result.applications_attempted += 1
            result.count(application)
            if application.status == ApplicationStatus.SUBMITTED:
                self._submitted_at.append(self.clock())
            if application.status in (ApplicationStatus.FAILED, ApplicationStatus.ERROR):
                result.errors.append(f"{job.title} at {job.company}: {application.message}")
            self._record(application)
            if callbacks.on_application_complete:
                callbacks.on_application_complete(application)

    def application_limit_reached(self) -> Optional[str]:
        """A message when the hourly or daily submission ceiling is reached, else None."""
        now = self.clock()
        self._submitted_at = [at for at in self._submitted_at if now - at < 86400]
        last_hour = sum(1 for at in self._submitted_at if now - at < 3600)
        if last_hour >= self.max_applications_per_hour:
            return f"Application limit reached ({self.max_applications_per_hour} per hour)"
        if len(self._submitted_at) >= self.max_applications_per_day:
            return f"Application limit reached ({self.max_applications_per_day} per day)"
        return None

    async def _confirm(self, callbacks: HuntCallbacks, job: JobListing) -> bool:
        if callbacks.on_confirmation_required is None:
            return True
        answer = callbacks.on_confirmation_required(job)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def apply(self, job: JobListing, profile: Profile, dry_run: bool = False,
                    credentials: Optional[Mapping[str, PlatformCredentials]] = None) -> JobApplication:
        """
        One application attempt, routed to the platform adapter or the navigator.

        Structural errors become a failed/error record; they never escape.
        """
        adapter = self.adapters.get(job.platform)
        if adapter is None or not job.easy_apply:
            return await self.navigator.apply_to_job(self.session, job, profile, dry_run=dry_run)

        if dry_run:
            application = JobApplication.start(job, profile)
            application.transition(ApplicationStatus.SKIPPED,
                                   f"Dry run: {adapter.display_name} apply not attempted")
            return application

        credentials = credentials if credentials is not None else self._credentials
        try:
            if not await self._ensure_authenticated(adapter, credentials.get(job.platform)):
                application = JobApplication.start(job, profile)
                application.transition(ApplicationStatus.REQUIRES_MANUAL,
                                       f"Not logged in to {adapter.display_name}. Please log in first.")
                return application
            return await adapter.apply_to_job(job, profile)
        except AuthenticationError as exc:
            application = JobApplication.start(job, profile)
            application.transition(ApplicationStatus.REQUIRES_MANUAL, exc.message)
            return application
        except JobApplierError as exc:
            application = JobApplication.start(job, profile)
            application.transition(ApplicationStatus.FAILED, exc.message)
            return application

    async def _ensure_authenticated(self, adapter: PlatformAdapter,
                                    credentials: Optional[PlatformCredentials]) -> bool:
        platform = adapter.platform
        if platform in self._auth_failures:
            raise AuthenticationError(self._auth_failures[platform], platform)
        if platform not in self._authenticated:
            try:
                self._authenticated[platform] = await adapter.authenticate(credentials)
            except AuthenticationError as exc:
                # no second login with the same credentials
                self._auth_failures[platform] = exc.message
                raise
        return self._authenticated[platform]

    def _record(self, application: JobApplication) -> None:
        self.applications.create(application)
        for event in application.events:
            self.applications.add_event(application.id, event)

    # ------------------------------------------------------------------
    # Quick apply
    # ------------------------------------------------------------------

    async def quick_apply(self, company: str, title: str, profile: Profile,
                          callbacks: Optional[HuntCallbacks] = None,
                          dry_run: bool = False) -> JobApplication:
        """Find a company's careers page, look for the role, and apply to it."""
        callbacks = callbacks or HuntCallbacks()
        self._progress(callbacks, f"Finding {company} careers page...")
        careers_url = await self.analyzer.find_careers_page(company)
        if not careers_url:
            raise NavigationError(f"Could not find careers page for {company}", {"company": company})

        job = JobListing(title=title, company=company, url=careers_url)
        scraper = CareersPageDiscovery(self.session, self.analyzer, pacer=self.pacer,
                                       navigation=self.navigator.config)
        try:
            found = await scraper.scrape(company, careers_url, [title])
        except (BrowserError, PlaywrightError) as exc:
            logger.warning("Could not search %s careers page: %s", company, exc)
            found = []
        if found:
            job = found[0]
        job = self.jobs.upsert(job)

        if callbacks.on_application_start:
            callbacks.on_application_start(job)
        application = await self.apply(job, profile, dry_run=dry_run)
        self._record(application)
        if callbacks.on_application_complete:
            callbacks.on_application_complete(application)
        return application

    # ------------------------------------------------------------------

    @staticmethod
    def _progress(callbacks: HuntCallbacks, message: str) -> None:
        logger.info(message)
        if callbacks.on_progress:
            callbacks.on_progress(message)

    @staticmethod
    def _error(callbacks: HuntCallbacks, exc: Exception, job: Optional[JobListing] = None) -> None:
        if callbacks.on_error:
            callbacks.on_error(exc, job)

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()

