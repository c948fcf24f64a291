"""
LinkedIn Adapter
================
Easy Apply through LinkedIn's modal. Jobs without an Easy Apply button are
left to the generic navigator.
"""

import logging
import re
from urllib.parse import urlencode

from playwright.async_api import Page

from job_applier.browser import click_element, element_exists, wait_for_element
from job_applier.errors import BrowserError
from job_applier.platforms.base import PlatformAdapter, SearchQuery
from job_applier.platforms.selectors import LINKEDIN_SELECTORS, LINKEDIN_URLS

logger = logging.getLogger(__name__)

JOB_ID_RE = re.compile(r"/jobs/view/(\d+)|currentJobId=(\d+)")


class LinkedInAdapter(PlatformAdapter):
    platform = "linkedin"
    display_name = "LinkedIn"
    urls = LINKEDIN_URLS
    selectors = LINKEDIN_SELECTORS

    def search_url(self, query: SearchQuery) -> str:
        params = {"keywords": query.text}
        if query.location:
            params["location"] = query.location
        if query.remote:
            params["f_WT"] = "2"
        if query.easy_apply_only:
            params["f_AL"] = "true"
        return f"{self.urls['job_search']}?{urlencode(params)}"

    def job_url(self, external_id: str) -> str:
        return f"{self.urls['jobs']}view/{external_id}/"

    def parse_external_id(self, url: str) -> str:
        match = JOB_ID_RE.search(url)
        if not match:
            return ""
        return match.group(1) or match.group(2)

    async def open_apply_flow(self, page: Page) -> Page:
        apply_button = self.selectors["job_details"]["apply_button"]
        if not await element_exists(page, apply_button, 5000):
            raise BrowserError("Easy Apply not available for this job.")
        await click_element(page, apply_button, self.pacer)
        await wait_for_element(page, self.selectors["apply"]["modal"], 10000)
        return page

    async def before_submit(self, page: Page) -> None:
        # Applying should not subscribe the candidate to the company's page.
        follow = self.selectors["apply"]["follow_company"]
        if await element_exists(page, follow, 1000):
            checkbox = page.locator(follow).first
            if await checkbox.is_checked():
                await checkbox.click()
                await self.pacer.around_click()
                logger.debug("Unchecked follow company")
