"""
Application Navigator
=====================
Bounded state machine that walks a job from its listing URL to a submitted
application:

    start -> analyzing -> filling -> advancing -> analyzing ... -> success
                 |                       |
                 +-> login_required -----+-> requires_manual
                 +-> failed (no fields, no controls, no confirmation, bound hit)

Every loop has an iteration ceiling. A screenshot is taken before submit and
on every failure path, so each outcome leaves evidence behind.
"""

import inspect
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from job_applier.browser import (BrowserSession, Pacer, ScreenshotRecorder, body_text,
                                 click_first_visible, navigate_to, wait_for_settle)
from job_applier.config import NavigationConfig
from job_applier.errors import BrowserError
from job_applier.form_filler import FormFiller
from job_applier.models import (ApplicationMethod, ApplicationStatus, ApplicationSubmission, EventType,
                                JobApplication, JobContext, JobListing, PageAnalysis, PageType, Profile)
from job_applier.page_analyzer import APPLY_BUTTON_SELECTORS, PageAnalyzer, is_success_text

logger = logging.getLogger(__name__)

LOGIN_REQUIRED_MESSAGE = "Login required - manual authentication needed"
CAPTCHA_MESSAGE = "CAPTCHA detected - manual completion needed"

APPLICATION_PATH_SELECTORS = [
    'a:has-text("Apply")',
    'a:has-text("Careers")',
    'a:has-text("Jobs")',
    'a:has-text("View Jobs")',
    'a:has-text("Open Positions")',
    'a[href*="careers"]',
    'a[href*="jobs"]',
    'a[href*="apply"]',
]

CONFIRMATION_URL_RE = re.compile(r"(thank|confirm|success|submitted)", re.I)

PageReadyCallback = Callable[[PageAnalysis], Union[Awaitable[Any], Any]]


class NavigatorState(str, Enum):
    START = "start"
    LOGIN_REQUIRED = "login_required"
    ANALYZING = "analyzing"
    FILLING = "filling"
    ADVANCING = "advancing"
    CONFIRMATION = "confirmation"
    SUCCESS = "success"
    FAILED = "failed"
    REQUIRES_MANUAL = "requires_manual"


TERMINAL_STATES = frozenset({NavigatorState.SUCCESS, NavigatorState.FAILED, NavigatorState.REQUIRES_MANUAL})


@dataclass
class NavigationResult:
    success: bool
    current_page: str
    error: Optional[str] = None
    analysis: Optional[PageAnalysis] = None
    steps: int = 0


@dataclass
class MultiPageResult:
    success: bool
    total_pages: int
    error: Optional[str] = None
    state: NavigatorState = NavigatorState.FAILED
    stopped_before_submit: bool = False
    screenshots: List[str] = field(default_factory=list)
    history: List[NavigatorState] = field(default_factory=list)


class StateTracker:
    """Records state changes for one run and refuses to leave a terminal state."""

    def __init__(self, label: str):
        self.label = label
        self.state = NavigatorState.START
        self.history: List[NavigatorState] = [NavigatorState.START]

    def move(self, state: NavigatorState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"{self.label}: already finished in {self.state.value}")
        logger.debug("%s: %s -> %s", self.label, self.state.value, state.value)
        self.state = state
        self.history.append(state)


def normalize_title(title: str) -> str:
    return " ".join(re.sub(r"[^a-z0-9\s]", " ", title.lower()).split())


def titles_match(a: str, b: str) -> bool:
    first, second = normalize_title(a), normalize_title(b)
    if not first or not second:
        return False
    if first == second or first in second or second in first:
        return True
    words_a = {word for word in first.split() if len(word) > 2}
    words_b = {word for word in second.split() if len(word) > 2}
    smaller = min(len(words_a), len(words_b))
    return smaller > 0 and len(words_a & words_b) >= smaller / 2


class ApplicationNavigator:
    """
    Drives one application attempt through an unknown, possibly multi-page form.

    Args:
        analyzer: Produces a fresh PageAnalysis after every page change.
        filler: Fills each form page.
        pacer: Delays between navigation steps.
        screenshots: Where forensic screenshots go.
        config: Iteration ceilings and timeouts.
    """

    def __init__(self, analyzer: PageAnalyzer, filler: FormFiller, pacer: Optional[Pacer] = None,
                 screenshots: Optional[ScreenshotRecorder] = None,
                 config: Optional[NavigationConfig] = None):
        self.analyzer = analyzer
        self.filler = filler
        self.pacer = pacer or Pacer()
        self.screenshots = screenshots or ScreenshotRecorder()
        self.config = config or NavigationConfig()

    async def navigate_to_application(self, page: Page, job: JobListing) -> NavigationResult:
        """Follow listing, details and apply links until an application form is showing."""
        analysis: Optional[PageAnalysis] = None
        try:
            await navigate_to(page, job.url, timeout_ms=self.config.navigation_timeout_ms)
            await wait_for_settle(page, self.config.settle_timeout_ms)
            await self.pacer.page_settle()

            for step in range(1, self.config.max_navigation_steps + 1):
                analysis = await self.analyzer.analyze(page)
                if analysis.captcha_detected:
                    return NavigationResult(False, "captcha", CAPTCHA_MESSAGE, analysis, step)
                if analysis.login_required or analysis.page_type == PageType.LOGIN:
                    return NavigationResult(False, "login", LOGIN_REQUIRED_MESSAGE, analysis, step)
                if analysis.is_form:
                    return NavigationResult(True, PageType.APPLICATION_FORM.value, None, analysis, step)
                if analysis.page_type == PageType.CONFIRMATION:
                    return NavigationResult(False, analysis.page_type.value,
                                            "Application already submitted", analysis, step)

                if analysis.page_type == PageType.JOB_DETAILS:
                    clicked = await self._click_apply(page, analysis)
                    error = "Could not find apply button"
                elif analysis.page_type == PageType.JOB_LISTING:
                    clicked = await self._click_job(page, analysis, job)
                    error = f"Could not find '{job.title}' in job listing"
                else:
                    clicked = await click_first_visible(page, APPLICATION_PATH_SELECTORS, self.pacer)
                    error = "Could not find a path to the application"
                if not clicked:
                    return NavigationResult(False, analysis.page_type.value, error, analysis, step)

                await wait_for_settle(page, self.config.settle_timeout_ms)
                await self.pacer.page_settle()

            current = analysis.page_type.value if analysis else PageType.OTHER.value
            return NavigationResult(False, current, "Max navigation steps exceeded", analysis,
                                    self.config.max_navigation_steps)
        except (BrowserError, PlaywrightError) as exc:
            logger.warning("Navigation to %s failed: %s", job.url, exc)
            return NavigationResult(False, "error", str(exc).splitlines()[0], analysis)

    async def _click_apply(self, page: Page, analysis: PageAnalysis) -> Optional[str]:
        selectors = [analysis.apply_button] if analysis.apply_button else []
        selectors += APPLY_BUTTON_SELECTORS + ['button[type="submit"]']
        return await click_first_visible(page, selectors, self.pacer)

    async def _click_job(self, page: Page, analysis: PageAnalysis, job: JobListing) -> Optional[str]:
        for link in analysis.jobs:
            if titles_match(link.title, job.title):
                clicked = await click_first_visible(page, [link.selector], self.pacer)
                if clicked:
                    logger.info("Opened listing '%s'", link.title)
                    return clicked
        return None

    async def navigate_multi_page_form(self, page: Page, on_page_ready: PageReadyCallback,
                                       submit: bool = True, label: str = "application") -> MultiPageResult:
        """
        Analyze, fill and advance until the application is confirmed.

        Args:
            page: Page already showing the first form page.
            on_page_ready: Called once per form page with its analysis.
            submit: False stops right before the final submit click.
            label: Prefix for screenshot names.
        """
        tracker = StateTracker(label)
        screenshots: List[str] = []
        pages = 0

        async def finish(state: NavigatorState, error: Optional[str] = None,
                         evidence: bool = True, **extra) -> MultiPageResult:
            if evidence and state != NavigatorState.SUCCESS:
                shot = await self.screenshots.capture(page, f"{label}-{state.value}")
                if shot:
                    screenshots.append(shot)
            tracker.move(state)
            if error:
                logger.warning("%s ended in %s after %d page(s): %s", label, state.value, pages, error)
            return MultiPageResult(
                success=state == NavigatorState.SUCCESS,
                total_pages=pages,
                error=error,
                state=state,
                screenshots=screenshots,
                history=tracker.history,
                **extra,
            )

        try:
            while True:
                tracker.move(NavigatorState.ANALYZING)
                analysis = await self.analyzer.analyze(page)

                if analysis.captcha_detected:
                    return await finish(NavigatorState.REQUIRES_MANUAL, CAPTCHA_MESSAGE)
                if analysis.login_required:
                    tracker.move(NavigatorState.LOGIN_REQUIRED)
                    return await finish(NavigatorState.REQUIRES_MANUAL, LOGIN_REQUIRED_MESSAGE)
                if analysis.page_type == PageType.CONFIRMATION:
                    tracker.move(NavigatorState.CONFIRMATION)
                    if pages == 0:
                        return await finish(NavigatorState.FAILED, "Confirmation shown before any form page")
                    return await finish(NavigatorState.SUCCESS)
                if not analysis.fields:
                    error = "No form fields detected" if pages == 0 else f"Unexpected page type: {analysis.page_type.value}"
                    return await finish(NavigatorState.FAILED, error)
                if pages >= self.config.max_form_pages:
                    return await finish(NavigatorState.FAILED, "Too many form pages")

                pages += 1
                tracker.move(NavigatorState.FILLING)
                outcome = on_page_ready(analysis)
                if inspect.isawaitable(outcome):
                    await outcome

                tracker.move(NavigatorState.ADVANCING)
                if analysis.next_button and await click_first_visible(page, [analysis.next_button], self.pacer):
                    await wait_for_settle(page, self.config.settle_timeout_ms)
                    await self.pacer.page_settle()
                    continue

                if not analysis.submit_button:
                    return await finish(NavigatorState.FAILED, "Could not find next/submit button")

                shot = await self.screenshots.capture(page, f"{label}-pre-submit")
                if shot:
                    screenshots.append(shot)
                if not submit:
                    logger.info("%s: dry run, stopping before submit on page %d", label, pages)
                    return MultiPageResult(False, pages, "Dry run: stopped before submit", tracker.state,
                                           stopped_before_submit=True, screenshots=screenshots,
                                           history=tracker.history)

                if not await click_first_visible(page, [analysis.submit_button], self.pacer):
                    return await finish(NavigatorState.FAILED, "Submit button disappeared before it could be clicked")
                await wait_for_settle(page, self.config.settle_timeout_ms)
                await self.pacer.page_settle()

                if await self.looks_submitted(page):
                    tracker.move(NavigatorState.CONFIRMATION)
                    return await finish(NavigatorState.SUCCESS)
                return await finish(NavigatorState.FAILED, "Submitted but no confirmation was detected")
        except (BrowserError, PlaywrightError) as exc:
            return await finish(NavigatorState.FAILED, str(exc).splitlines()[0])

    async def looks_submitted(self, page: Page) -> bool:
        if is_success_text(await body_text(page)):
            return True
        return CONFIRMATION_URL_RE.search(page.url or "") is not None

    async def apply_to_job(self, session: BrowserSession, job: JobListing, profile: Profile,
                           submission: Optional[ApplicationSubmission] = None,
                           dry_run: bool = False) -> JobApplication:
        """
        Run one full attempt on a fresh page and return its record.

        The page is always closed. Login walls and CAPTCHAs end in
        requires_manual; every other failure ends in failed.
        """
        application = JobApplication.start(job, profile, ApplicationMethod.EXTERNAL, submission)
        logger.info("Applying to %s at %s (%s)", job.title, job.company, job.url)
        async with session.page() as page:
            try:
                await self._run(page, application, job, profile, dry_run)
            except (BrowserError, PlaywrightError) as exc:
                await self._capture(page, application, f"{job.id}-error")
                application.transition(ApplicationStatus.FAILED,
                                       f"Application error: {str(exc).splitlines()[0]}")
        logger.info("%s at %s: %s %s", job.title, job.company, application.status.value, application.message)
        return application

    async def _run(self, page: Page, application: JobApplication, job: JobListing,
                   profile: Profile, dry_run: bool) -> None:
        navigation = await self.navigate_to_application(page, job)
        if not navigation.success:
            await self._capture(page, application, f"{job.id}-{navigation.current_page}")
            if navigation.current_page in ("login", "captcha"):
                application.transition(ApplicationStatus.REQUIRES_MANUAL, navigation.error or LOGIN_REQUIRED_MESSAGE)
            else:
                application.transition(ApplicationStatus.FAILED, navigation.error or "Navigation failed")
            return

        context = JobContext.from_job(job)

        async def on_page_ready(analysis: PageAnalysis) -> None:
            result = await self.filler.fill_form(page, profile, context, analysis)
            application.record_fill(result)

        run = await self.navigate_multi_page_form(page, on_page_ready, submit=not dry_run, label=job.id)
        application.screenshots.extend(run.screenshots)
        if run.success:
            application.transition(ApplicationStatus.SUBMITTED, f"Completed {run.total_pages} form page(s)")
        elif run.stopped_before_submit:
            application.note(f"Dry run: filled {run.total_pages} form page(s), stopped before submit")
        elif run.state == NavigatorState.REQUIRES_MANUAL:
            application.transition(ApplicationStatus.REQUIRES_MANUAL, run.error or "")
        else:
            application.transition(ApplicationStatus.FAILED, run.error or "Application failed")

    async def _capture(self, page: Page, application: JobApplication, name: str) -> None:
        shot = await self.screenshots.capture(page, name)
        if shot:
            application.screenshots.append(shot)
            application.add_event(EventType.NOTE, "Screenshot captured", {"path": shot})
