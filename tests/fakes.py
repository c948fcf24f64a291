"""
In-memory stand-ins for the Playwright objects the package drives.

FakePage keeps a map of selector -> FakeElements. Locators resolve lazily,
so a test can change the page between steps the way a live DOM changes.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from job_applier.browser import BODY_TEXT_JS
from job_applier.config import NavigationConfig
from job_applier.errors import LanguageModelError
from job_applier.form_filler import RADIO_LABEL_JS, SELECT_OPTIONS_JS, SELECTED_INDEX_JS
from job_applier.llm import LanguageModel
from job_applier.models import (
    ApplicationStatus,
    ContactInfo,
    JobApplication,
    JobListing,
    PageAnalysis,
    PageType,
    Profile,
)
from job_applier.page_analyzer import COLLECT_FIELDS_JS, PAGE_SIGNALS_JS


class FakeElement:
    def __init__(self, kind: str = "text", value: str = "", visible: bool = True, checked: bool = False,
                 attributes: Optional[Dict[str, str]] = None, options: Optional[List[Dict[str, str]]] = None,
                 text: str = "", label: str = "", children: Optional[Dict[str, List["FakeElement"]]] = None,
                 on_click: Optional[Callable[["FakeElement"], None]] = None, broken: bool = False):
        self.kind = kind
        self.value = value
        self.visible = visible
        self.checked = checked
        self.attributes = dict(attributes or {})
        self.options = list(options or [])
        self.selected_index = 0
        self.text = text
        self.label = label
        self.children = children or {}
        self.on_click = on_click
        self.broken = broken
        self.clicks = 0
        self.files: Optional[str] = None

    def click(self) -> None:
        self.clicks += 1
        if self.kind == "checkbox":
            self.checked = not self.checked
        elif self.kind == "radio":
            self.checked = True
        if self.on_click is not None:
            self.on_click(self)


class FakeLocator:
    def __init__(self, resolve: Callable[[], List[FakeElement]], selector: str, index: Optional[int] = None):
        self._resolve = resolve
        self.selector = selector
        self.index = index

    def _elements(self) -> List[FakeElement]:
        return list(self._resolve())

    def _element(self) -> FakeElement:
        elements = self._elements()
        index = self.index or 0
        if index >= len(elements):
            raise PlaywrightError(f"Timeout waiting for {self.selector}")
        element = elements[index]
        if element.broken:
            raise PlaywrightError(f"Element is detached: {self.selector}")
        return element

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._resolve, self.selector, 0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self._resolve, self.selector, index)

    def locator(self, selector: str) -> "FakeLocator":
        def resolve() -> List[FakeElement]:
            try:
                return self._element().children.get(selector, [])
            except PlaywrightError:
                return []
        return FakeLocator(resolve, selector)

    async def count(self) -> int:
        elements = self._elements()
        if self.index is None:
            return len(elements)
        return 1 if self.index < len(elements) else 0

    async def is_visible(self) -> bool:
        if (self.index or 0) >= len(self._elements()):
            return False
        return self._element().visible

    async def is_checked(self) -> bool:
        return self._element().checked

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        element = self._element()
        if state == "visible" and not element.visible:
            raise PlaywrightError(f"Timeout waiting for {self.selector} to be visible")

    async def input_value(self) -> str:
        return self._element().value

    async def evaluate(self, script: str) -> Any:
        element = self._element()
        if script == SELECT_OPTIONS_JS:
            return list(element.options)
        if script == SELECTED_INDEX_JS:
            return element.selected_index
        if script == RADIO_LABEL_JS:
            return element.label
        raise ValueError(f"Unexpected element script: {script[:40]}")

    async def click(self) -> None:
        self._element().click()

    async def fill(self, value: str) -> None:
        self._element().value = value

    async def press_sequentially(self, text: str) -> None:
        self._element().value += text

    async def set_input_files(self, path: str) -> None:
        self._element().files = path

    async def select_option(self, value: Optional[str] = None) -> List[str]:
        element = self._element()
        for index, option in enumerate(element.options):
            if option.get("value") == value:
                element.selected_index = index
                element.value = value
                return [value]
        raise PlaywrightError(f"No option with value {value}")

    async def scroll_into_view_if_needed(self) -> None:
        self._element()

    async def get_attribute(self, name: str) -> Optional[str]:
        return self._element().attributes.get(name)

    async def text_content(self) -> str:
        return self._element().text


class FakeContext:
    def __init__(self, pages: List["FakePage"]):
        self.pages = pages


class FakePage:
    def __init__(self, url: str = "https://example.com/", title: str = "",
                 elements: Optional[Dict[str, List[FakeElement]]] = None,
                 signals: Optional[Dict[str, Any]] = None,
                 fields: Optional[List[Dict[str, Any]]] = None,
                 body: str = "", html: str = "<html><body></body></html>",
                 goto_error: Optional[str] = None):
        self.url = url
        self.title = title
        self.elements = elements if elements is not None else {}
        self.signals = signals or {}
        self.fields = fields or []
        self.body = body
        self.html = html
        self.goto_error = goto_error
        self.visited: List[str] = []
        self.screenshots: List[str] = []
        self.closed = False
        self.context = FakeContext([self])

    def add(self, selector: str, *elements: FakeElement) -> FakeElement:
        """Register elements under a selector and return the first one."""
        self.elements.setdefault(selector, []).extend(elements)
        return elements[0]

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(lambda: self.elements.get(selector, []), selector)

    async def evaluate(self, script: str) -> Any:
        if script == PAGE_SIGNALS_JS:
            signals = {"url": self.url, "title": self.title, "text": self.body,
                       "password": False, "captcha": False, "jobLinks": []}
            signals.update(self.signals)
            return signals
        if script == COLLECT_FIELDS_JS:
            return list(self.fields)
        if script == BODY_TEXT_JS:
            return self.body
        raise ValueError(f"Unexpected page script: {script[:40]}")

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> None:
        if self.goto_error:
            raise PlaywrightError(self.goto_error)
        self.visited.append(url)
        self.url = url

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[float] = None) -> None:
        return None

    async def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> bytes:
        self.screenshots.append(path or "")
        return b""

    async def content(self) -> str:
        return self.html

    def set_default_timeout(self, timeout: float) -> None:
        return None

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """Hands out prepared pages in order, then blank ones."""

    def __init__(self, pages: Sequence[FakePage] = (), started: bool = True):
        self.pages = list(pages)
        self.opened: List[FakePage] = []
        self.cookie_jar: List[Dict[str, Any]] = []
        self.is_started = started

    async def new_page(self) -> FakePage:
        page = self.pages.pop(0) if self.pages else FakePage()
        self.opened.append(page)
        return page

    @asynccontextmanager
    async def page(self):
        page = await self.new_page()
        try:
            yield page
        finally:
            await page.close()

    async def cookies(self, urls: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        return list(self.cookie_jar)

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.cookie_jar.extend(cookies)


class FakeModel(LanguageModel):
    """Replies from a list in order; an exception in the list is raised instead."""

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.prompts: List[str] = []

    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise LanguageModelError("No reply prepared")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAnalyzer:
    """Returns prepared analyses in order, repeating the last one."""

    def __init__(self, *analyses: PageAnalysis, careers: Optional[Dict[str, str]] = None):
        self.analyses = list(analyses)
        self.careers = careers or {}
        self.calls = 0

    async def analyze(self, page: FakePage) -> PageAnalysis:
        self.calls += 1
        if len(self.analyses) > 1:
            return self.analyses.pop(0)
        return self.analyses[0]

    async def find_careers_page(self, company_name: str, company_website: Optional[str] = None) -> Optional[str]:
        return self.careers.get(company_name)


class FakeNavigator:
    """Records apply_to_job calls and answers with a fixed status per job title."""

    def __init__(self, analyzer: Optional[FakeAnalyzer] = None,
                 outcomes: Optional[Dict[str, ApplicationStatus]] = None):
        self.analyzer = analyzer or FakeAnalyzer(PageAnalysis(page_type=PageType.OTHER))
        self.config = NavigationConfig()
        self.outcomes = outcomes or {}
        self.calls: List[JobListing] = []

    async def apply_to_job(self, session, job: JobListing, profile: Profile, submission=None,
                           dry_run: bool = False) -> JobApplication:
        self.calls.append(job)
        application = JobApplication.start(job, profile)
        status = self.outcomes.get(job.title, ApplicationStatus.SUBMITTED)
        application.transition(status, "Completed 1 form page(s)" if status == ApplicationStatus.SUBMITTED
                               else f"{status.value} for {job.title}")
        return application


def make_profile(**overrides: Any) -> Profile:
    values = dict(
        first_name="Jane",
        last_name="Doe",
        contact=ContactInfo(email="a@b.com", phone="+1 555 010 0199", location="Austin, TX",
                            linkedin="https://www.linkedin.com/in/janedoe"),
    )
    values.update(overrides)
    return Profile(**values)


def make_job(title: str = "Product Designer", company: str = "Acme",
             url: str = "https://acme.com/jobs/1", **overrides: Any) -> JobListing:
    return JobListing(title=title, company=company, url=url, **overrides)
