"""
Indeed Adapter
==============
Indeed Apply flow. Differences from LinkedIn:
- login is two-step (email, then password on a second screen)
- the apply form may open in a modal or in a new tab
- jobs without Indeed Apply point at the employer's own site
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from playwright.async_api import Page

from job_applier.browser import click_element, element_exists, wait_for_element
from job_applier.errors import BrowserError
from job_applier.models import PlatformCredentials
from job_applier.platforms.base import PlatformAdapter, SearchQuery
from job_applier.platforms.selectors import INDEED_SELECTORS, INDEED_URLS

logger = logging.getLogger(__name__)

JOB_KEY_RE = re.compile(r"[?&]jk=([a-f0-9]+)", re.I)
REMOTE_FILTER = "0kf:attr(DSQF7);"

SALARY_PERIODS = (
    ("hour", "hourly"),
    ("day", "daily"),
    ("week", "weekly"),
    ("month", "monthly"),
    ("year", "yearly"),
)


def parse_salary(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse Indeed's salary snippet, e.g. "$50,000 - $70,000 a year".

    Returns {min, max, currency, period, is_estimate} or None when the text
    holds no number. "k" suffixes are expanded.
    """
    cleaned = text.lower().replace(",", "").replace("$", "")
    period = "yearly"
    for marker, name in SALARY_PERIODS:
        if marker in cleaned:
            period = name
            break

    amounts = []
    for number, suffix in re.findall(r"(\d+(?:\.\d+)?)\s*(k?)", cleaned):
        amount = float(number)
        amounts.append(amount * 1000 if suffix else amount)
    if not amounts:
        return None
    return {
        "min": amounts[0],
        "max": amounts[1] if len(amounts) > 1 else None,
        "currency": "USD",
        "period": period,
        "is_estimate": True,
    }


class IndeedAdapter(PlatformAdapter):
    platform = "indeed"
    display_name = "Indeed"
    urls = INDEED_URLS
    selectors = INDEED_SELECTORS

    def search_url(self, query: SearchQuery) -> str:
        params = {"q": query.text}
        if query.location:
            params["l"] = query.location
        if query.remote:
            params["sc"] = REMOTE_FILTER
        return f"{self.urls['job_search']}?{urlencode(params)}"

    def job_url(self, external_id: str) -> str:
        return f"{self.urls['view_job']}?{urlencode({'jk': external_id})}"

    def parse_external_id(self, url: str) -> str:
        match = JOB_KEY_RE.search(url)
        return match.group(1) if match else ""

    def parse_salary(self, text: str) -> Optional[Dict[str, Any]]:
        return parse_salary(text) if text else None

    async def fill_credentials(self, page: Page, credentials: PlatformCredentials) -> None:
        login = self.selectors["login"]
        await self._type(page, login["email_input"], credentials.email)
        await click_element(page, login["submit_button"], self.pacer)
        await self.pacer.between_actions()
        await self.check_captcha(page)
        await wait_for_element(page, login["password_input"], 10000)
        await self._type(page, login["password_input"], credentials.password)

    async def open_apply_flow(self, page: Page) -> Page:
        details = self.selectors["job_details"]
        if not await element_exists(page, details["apply_button"], 5000):
            if await element_exists(page, details["external_apply_button"], 1000):
                raise BrowserError("This job requires external application. Indeed Apply not available.")
            raise BrowserError("Apply button not found.")

        pages_before = len(page.context.pages)
        await click_element(page, details["apply_button"], self.pacer)
        await self.pacer.page_settle()

        if await element_exists(page, self.selectors["apply"]["modal"], 5000):
            return page

        pages = page.context.pages
        if len(pages) > pages_before:
            form_page = pages[-1]
            await form_page.wait_for_load_state("domcontentloaded")
            logger.debug("Indeed Apply opened in a new tab: %s", form_page.url)
            return form_page
        raise BrowserError("Application form did not appear.")
