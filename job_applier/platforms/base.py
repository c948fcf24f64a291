"""
Platform Adapter Base
=====================
Shared machinery for sites driven through fixed selector tables:
- RateLimiter: per-minute/hour/day request budget with cooldowns
- PlatformAdapter: login state machine, session persistence, job search,
  job details and the bounded Easy Apply loop

Subclasses supply the selector/URL tables and the few steps that differ
per site (search URL, job id parsing, how the apply flow opens).
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from job_applier.browser import (
    BrowserSession,
    Pacer,
    ScreenshotRecorder,
    click_element,
    close_page,
    element_exists,
    get_text_content,
    navigate_to,
    wait_for_element,
    wait_for_settle,
)
from job_applier.config import AppConfig, NavigationConfig, RateLimitConfig
from job_applier.errors import (
    AuthenticationError,
    BrowserError,
    CaptchaDetectedError,
    JobApplierError,
    RateLimitError,
)
from job_applier.form_filler import SELECT_OPTIONS_JS, best_option_match, pick_radio_index
from job_applier.models import (
    ApplicationMethod,
    ApplicationStatus,
    ApplicationSubmission,
    FieldOption,
    JobApplication,
    JobListing,
    PlatformCredentials,
    Profile,
)
from job_applier.session import SessionStore

logger = logging.getLogger(__name__)

# Rate limit cost of one submitted application, in requests.
APPLICATION_COST = 5

REQUIREMENTS_START = re.compile(r"requirements|qualifications|what you.?ll need|must have", re.I)
REQUIREMENTS_END = re.compile(r"responsibilities|about the role|what you.?ll do|nice to have", re.I)
BULLETS = ("•", "-", "*")

SKILL_PATTERNS = {
    "JavaScript": r"\bjavascript\b",
    "TypeScript": r"\btypescript\b",
    "Python": r"\bpython\b",
    "Java": r"\bjava\b(?!script)",
    "C++": r"c\+\+",
    "C#": r"\bc#",
    "Ruby": r"\bruby\b",
    "Go": r"\bgolang\b",
    "Rust": r"\brust\b",
    "PHP": r"\bphp\b",
    "Swift": r"\bswift\b",
    "Kotlin": r"\bkotlin\b",
    "React": r"\breact\b",
    "Angular": r"\bangular\b",
    "Vue": r"\bvue(?:\.js)?\b",
    "Node.js": r"\bnode\.?js\b",
    "Django": r"\bdjango\b",
    "Flask": r"\bflask\b",
    "Spring": r"\bspring\b",
    ".NET": r"\.net\b",
    "Rails": r"\brails\b",
    "SQL": r"\bsql\b",
    "PostgreSQL": r"\bpostgres(?:ql)?\b",
    "MySQL": r"\bmysql\b",
    "MongoDB": r"\bmongodb\b",
    "Redis": r"\bredis\b",
    "Elasticsearch": r"\belasticsearch\b",
    "AWS": r"\baws\b",
    "Azure": r"\bazure\b",
    "GCP": r"\bgcp\b|google cloud",
    "Docker": r"\bdocker\b",
    "Kubernetes": r"\bkubernetes\b|\bk8s\b",
    "Terraform": r"\bterraform\b",
    "Git": r"\bgit\b",
    "CI/CD": r"\bci/cd\b",
    "Jenkins": r"\bjenkins\b",
    "Agile": r"\bagile\b",
    "Scrum": r"\bscrum\b",
    "Machine Learning": r"machine learning",
    "TensorFlow": r"\btensorflow\b",
    "PyTorch": r"\bpytorch\b",
}


def extract_requirements(description: str) -> List[str]:
    """Bullet lines under a requirements-like heading, up to the next section."""
    requirements = []
    in_section = False
    for line in description.splitlines():
        text = line.strip()
        if not text:
            continue
        if REQUIREMENTS_START.search(text) and not text.startswith(BULLETS):
            in_section = True
            continue
        if REQUIREMENTS_END.search(text) and not text.startswith(BULLETS):
            in_section = False
            continue
        if in_section and text.startswith(BULLETS):
            requirements.append(text[1:].strip())
    return requirements


def extract_skills(description: str) -> List[str]:
    return [name for name, pattern in SKILL_PATTERNS.items() if re.search(pattern, description, re.I)]


def calculate_years_experience(profile: Profile, today: Optional[datetime] = None) -> int:
    """Whole years since the earliest start date in the profile's experience."""
    years = []
    for item in profile.experience:
        match = re.match(r"(\d{4})", str(item.start_date or ""))
        if match:
            years.append(int(match.group(1)))
    if not years:
        return 0
    current = (today or datetime.now()).year
    return max(0, current - min(years))


class AuthStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    NOT_CONFIGURED = "not_configured"
    INVALID = "invalid"


class LoginState(str, Enum):
    NAVIGATE = "navigate"
    FILL_CREDENTIALS = "fill_credentials"
    SUBMIT = "submit"
    VERIFY = "verify"
    SUCCESS = "success"
    FAILED = "failed"
    CAPTCHA = "captcha"


@dataclass
class SearchQuery:
    keywords: List[str]
    location: str = ""
    remote: bool = False
    easy_apply_only: bool = False
    limit: int = 25

    @property
    def text(self) -> str:
        return " ".join(self.keywords)


@dataclass
class RateLimitInfo:
    """Snapshot of a limiter's counters."""
    requests_per_minute: int
    requests_per_hour: int
    requests_per_day: int
    current_minute: int
    current_hour: int
    current_day: int
    cooldown_until: Optional[float] = None


class RateLimiter:
    """
    Request budget for one platform.

    Each window's counter resets once its length has elapsed since the window
    opened. Exhausting a window starts a cooldown of that window's length;
    is_rate_limited() is true until the cooldown ends.
    """

    WINDOWS = (("minute", 60.0), ("hour", 3600.0), ("day", 86400.0))

    def __init__(self, platform: str, requests_per_minute: int = 60, requests_per_hour: int = 1000,
                 requests_per_day: int = 5000, clock: Callable[[], float] = time.time):
        self.platform = platform
        self.limits = {"minute": requests_per_minute, "hour": requests_per_hour, "day": requests_per_day}
        self.clock = clock
        now = clock()
        self.counts = {name: 0 for name, _ in self.WINDOWS}
        self.started = {name: now for name, _ in self.WINDOWS}
        self.cooldown_until: Optional[float] = None

    @classmethod
    def from_config(cls, platform: str, config: RateLimitConfig) -> "RateLimiter":
        return cls(platform, config.requests_per_minute, config.requests_per_hour, config.requests_per_day)

    def _roll(self, now: float) -> None:
        for name, length in self.WINDOWS:
            if now - self.started[name] >= length:
                self.counts[name] = 0
                self.started[name] = now

    def record(self, used: int = 1) -> None:
        now = self.clock()
        self._roll(now)
        for name, length in self.WINDOWS:
            self.counts[name] += used
            if self.counts[name] >= self.limits[name]:
                until = now + length
                if self.cooldown_until is None or until > self.cooldown_until:
                    self.cooldown_until = until
                    logger.warning("%s %s limit reached, cooling down for %ds",
                                   self.platform, name, int(length))

    def is_rate_limited(self) -> bool:
        now = self.clock()
        self._roll(now)
        if self.cooldown_until is not None and now < self.cooldown_until:
            return True
        self.cooldown_until = None
        return False

    def retry_after(self) -> Optional[float]:
        if not self.is_rate_limited():
            return None
        return self.cooldown_until - self.clock()

    def ensure_available(self) -> None:
        if self.is_rate_limited():
            raise RateLimitError(self.platform, self.retry_after())

    def info(self) -> RateLimitInfo:
        self._roll(self.clock())
        return RateLimitInfo(
            requests_per_minute=self.limits["minute"],
            requests_per_hour=self.limits["hour"],
            requests_per_day=self.limits["day"],
            current_minute=self.counts["minute"],
            current_hour=self.counts["hour"],
            current_day=self.counts["day"],
            cooldown_until=self.cooldown_until,
        )


class PlatformAdapter(ABC):
    """
    Drives one job site through its selector table.

    Args:
        session: Shared browser session for the run.
        session_store: Where cookies are saved after login and restored from.
        pacer: Human-like delays between actions.
        screenshots: Pre-submit and failure evidence.
        rate_limiter: Request budget; one is built from defaults when omitted.
        navigation: Step bounds for the Easy Apply loop.
    """

    platform: str = ""
    display_name: str = ""
    urls: Dict[str, str] = {}
    selectors: Dict[str, Any] = {}

    def __init__(self, session: BrowserSession, session_store: Optional[SessionStore] = None,
                 pacer: Optional[Pacer] = None, screenshots: Optional[ScreenshotRecorder] = None,
                 rate_limiter: Optional[RateLimiter] = None,
                 navigation: Optional[NavigationConfig] = None):
        self.session = session
        self.session_store = session_store
        self.pacer = pacer or Pacer()
        self.screenshots = screenshots or ScreenshotRecorder()
        self.rate_limiter = rate_limiter or RateLimiter(self.platform)
        self.navigation = navigation or NavigationConfig()
        self.logged_in = False
        self._page: Optional[Page] = None

    @classmethod
    def from_config(cls, session: BrowserSession, config: AppConfig, **kwargs) -> "PlatformAdapter":
        return cls(
            session,
            session_store=kwargs.pop("session_store", SessionStore(config.data_path("sessions"))),
            pacer=kwargs.pop("pacer", Pacer(config.rate_limit)),
            screenshots=kwargs.pop("screenshots", ScreenshotRecorder(config.data_path("screenshots"))),
            rate_limiter=kwargs.pop("rate_limiter", RateLimiter.from_config(cls.platform, config.rate_limit)),
            navigation=config.navigation,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Site specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def search_url(self, query: SearchQuery) -> str:
        """Search results URL for a query."""

    @abstractmethod
    def job_url(self, external_id: str) -> str:
        """Job details URL for a site-specific job id."""

    @abstractmethod
    def parse_external_id(self, url: str) -> str:
        """The site's job id from a job URL, or ""."""

    @abstractmethod
    async def open_apply_flow(self, page: Page) -> Page:
        """Open the site's apply flow on a job page; returns the page holding the form."""

    async def fill_credentials(self, page: Page, credentials: PlatformCredentials) -> None:
        login = self.selectors["login"]
        await self._type(page, login["email_input"], credentials.email)
        await self._type(page, login["password_input"], credentials.password)

    async def before_submit(self, page: Page) -> None:
        """Last adjustments on the review step."""

    def parse_salary(self, text: str) -> Optional[Dict[str, Any]]:
        return None

    # ------------------------------------------------------------------
    # Pages and sessions
    # ------------------------------------------------------------------

    async def get_page(self) -> Page:
        """The adapter's long-lived page, restoring saved cookies on first open."""
        if self._page is not None and not self._page.is_closed():
            return self._page
        if self.session_store is not None:
            await self.session_store.restore(self.platform, self.session)
        self._page = await self.session.new_page()
        return self._page

    def is_rate_limited(self) -> bool:
        return self.rate_limiter.is_rate_limited()

    async def screenshot(self, page: Page, name: str) -> Optional[str]:
        return await self.screenshots.capture(page, f"{self.platform}-{name}")

    async def save_session(self) -> None:
        if self.session_store is None:
            return
        try:
            await self.session_store.save(self.platform, self.session, self.logged_in)
        except BrowserError as exc:
            logger.warning("Could not save %s session: %s", self.platform, exc.message)

    async def close(self) -> None:
        if self._page is not None:
            await close_page(self._page)
            self._page = None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def check_login_status(self) -> bool:
        page = await self.get_page()
        if not page.url.startswith(self.urls["base"]):
            await navigate_to(page, self.urls["feed"], self.navigation.navigation_timeout_ms)
        self.logged_in = await element_exists(page, self.selectors["navigation"]["profile_icon"], 5000)
        return self.logged_in

    async def check_captcha(self, page: Page) -> None:
        """Hard stop on any CAPTCHA or checkpoint challenge."""
        challenged = "checkpoint/challenge" in page.url
        if not challenged:
            challenged = await element_exists(page, self.selectors["login"]["captcha_frame"], 2000)
        if challenged:
            await self.screenshot(page, "captcha")
            logger.warning("%s showed a CAPTCHA; stopping for manual login", self.display_name)
            raise CaptchaDetectedError(self.platform)

    async def login(self, credentials: PlatformCredentials) -> bool:
        """
        Log in with stored credentials.

        navigate -> fill credentials -> submit -> verify. Each credential pair
        is tried exactly once; a CAPTCHA raises CaptchaDetectedError and a
        rejected login raises AuthenticationError.
        """
        self.rate_limiter.ensure_available()
        if not (credentials.email and credentials.password):
            raise AuthenticationError(f"Email and password are required for {self.display_name} login",
                                      self.platform)

        page = await self.get_page()
        state = LoginState.NAVIGATE
        try:
            await navigate_to(page, self.urls["login"], self.navigation.navigation_timeout_ms)
            await self.pacer.between_actions()
            await self.check_captcha(page)

            state = LoginState.FILL_CREDENTIALS
            await self.fill_credentials(page, credentials)

            state = LoginState.SUBMIT
            await click_element(page, self.selectors["login"]["submit_button"], self.pacer)
            await wait_for_settle(page, self.navigation.settle_timeout_ms)

            state = LoginState.VERIFY
            await self.check_captcha(page)
            error_selector = self.selectors["login"]["error_message"]
            if await element_exists(page, error_selector, 2000):
                message = await get_text_content(page, error_selector)
                raise AuthenticationError(f"Login failed: {message or 'credentials rejected'}", self.platform)
        except CaptchaDetectedError:
            logger.info("%s login stopped at %s: %s", self.display_name, state.value, LoginState.CAPTCHA.value)
            raise
        except (BrowserError, PlaywrightError) as exc:
            raise AuthenticationError(f"{self.display_name} login failed during {state.value}: {exc}",
                                      self.platform) from exc
        finally:
            self.rate_limiter.record(1)

        if not await self.check_login_status():
            logger.info("%s login ended in %s", self.display_name, LoginState.FAILED.value)
            return False
        logger.info("%s login ended in %s", self.display_name, LoginState.SUCCESS.value)
        await self.save_session()
        return True

    async def authenticate(self, credentials: Optional[PlatformCredentials] = None) -> bool:
        """Reuse a saved session when it is still valid, else log in once."""
        if await self.check_login_status():
            return True
        if credentials is None or not (credentials.email and credentials.password):
            return False
        return await self.login(credentials)

    async def check_auth_status(self, credentials: Optional[PlatformCredentials] = None) -> AuthStatus:
        try:
            if await self.check_login_status():
                return AuthStatus.AUTHENTICATED
        except JobApplierError as exc:
            logger.warning("Could not check %s login: %s", self.platform, exc.message)
            return AuthStatus.INVALID
        if credentials is None or not credentials.is_configured:
            return AuthStatus.NOT_CONFIGURED
        return AuthStatus.INVALID

    async def logout(self) -> None:
        """Forget the login locally and persist the session as logged out."""
        self.logged_in = False
        if self._page is not None:
            await self.save_session()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def search_jobs(self, query: SearchQuery) -> List[JobListing]:
        self.rate_limiter.ensure_available()
        page = await self.get_page()
        search = self.selectors["search"]
        await navigate_to(page, self.search_url(query), self.navigation.navigation_timeout_ms)
        await self.pacer.page_settle()
        self.rate_limiter.record(1)

        if not await element_exists(page, search["job_cards"], 10000):
            logger.info("No %s results for '%s'", self.display_name, query.text)
            return []

        cards = page.locator(search["job_cards"])
        jobs: List[JobListing] = []
        for index in range(min(await cards.count(), query.limit)):
            if self.is_rate_limited():
                logger.warning("%s rate limit reached after %d jobs", self.display_name, len(jobs))
                break
            try:
                job = await self._read_card(cards.nth(index))
            except PlaywrightError as exc:
                logger.debug("Skipping %s card %d: %s", self.platform, index, exc)
                continue
            if job is None or (query.easy_apply_only and not job.easy_apply):
                continue
            jobs.append(job)
            self.rate_limiter.record(1)
            await self.pacer.between_fields()

        logger.info("Found %d %s jobs for '%s'", len(jobs), self.display_name, query.text)
        return jobs

    async def _read_card(self, card: Locator) -> Optional[JobListing]:
        search = self.selectors["search"]
        title_link = card.locator(search["job_title"]).first
        if await title_link.count() == 0:
            return None
        title = ((await title_link.text_content()) or "").strip()
        href = await title_link.get_attribute("href") or await card.locator("a").first.get_attribute("href")
        if not title or not href:
            return None
        url = urljoin(self.urls["base"], href)
        external_id = self.parse_external_id(url)
        salary = None
        if "salary" in search:
            salary = self.parse_salary(await self._card_text(card, search["salary"]))
        return JobListing(
            title=title,
            company=await self._card_text(card, search["company_name"]),
            url=self.job_url(external_id) if external_id else url,
            platform=self.platform,
            external_id=external_id,
            location=await self._card_text(card, search["location"]),
            easy_apply=await card.locator(search["easy_apply_badge"]).count() > 0,
            salary=salary,
        )

    @staticmethod
    async def _card_text(card: Locator, selector: str) -> str:
        locator = card.locator(selector).first
        if await locator.count() == 0:
            return ""
        return " ".join(((await locator.text_content()) or "").split())

    async def get_job_details(self, external_id: str) -> JobListing:
        self.rate_limiter.ensure_available()
        page = await self.get_page()
        details = self.selectors["job_details"]
        url = self.job_url(external_id)
        try:
            await navigate_to(page, url, self.navigation.navigation_timeout_ms)
            await wait_for_element(page, details["container"], 10000)
        except BrowserError as exc:
            raise BrowserError(f"Failed to get job details: {exc.message}", {"url": url}) from exc
        self.rate_limiter.record(1)

        description = await get_text_content(page, details["description"])
        salary = None
        if "salary" in details:
            salary = self.parse_salary(await get_text_content(page, details["salary"]))
        return JobListing(
            title=await get_text_content(page, details["title"]),
            company=await get_text_content(page, details["company"]),
            url=url,
            platform=self.platform,
            external_id=external_id,
            location=await get_text_content(page, details["location"]),
            description=description,
            easy_apply=await element_exists(page, details["apply_button"], 2000),
            salary=salary,
            requirements=tuple(extract_requirements(description)),
            required_skills=tuple(extract_skills(description)),
        )

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    async def apply_to_job(self, job: JobListing, profile: Profile,
                           submission: Optional[ApplicationSubmission] = None) -> JobApplication:
        """
        Apply through the site's own apply flow.

        Raises RateLimitError when the budget is spent; every other outcome
        is recorded on the returned application.
        """
        self.rate_limiter.ensure_available()
        application = JobApplication.start(job, profile, ApplicationMethod.EASY_APPLY, submission)
        if not self.logged_in:
            application.transition(ApplicationStatus.REQUIRES_MANUAL, "Not logged in. Please log in first.")
            return application

        async with self.session.page() as page:
            form_page = page
            try:
                await navigate_to(page, job.url, self.navigation.navigation_timeout_ms)
                await self.pacer.between_actions()
                await self.check_captcha(page)
                form_page = await self.open_apply_flow(page)
                await self.fill_application_form(form_page, profile, application.submission)
                await self._capture(application, form_page, "pre-submit")
                await self.submit_application(form_page)
            except CaptchaDetectedError as exc:
                application.transition(ApplicationStatus.REQUIRES_MANUAL, exc.message)
                return application
            except (BrowserError, PlaywrightError) as exc:
                message = exc.message if isinstance(exc, BrowserError) else str(exc).splitlines()[0]
                await self._capture(application, form_page, "error")
                application.transition(ApplicationStatus.ERROR, f"Application error: {message}")
                logger.warning("%s application to %s failed: %s", self.display_name, job.title, message)
                return application
            finally:
                if form_page is not page:
                    await close_page(form_page)

        self.rate_limiter.record(APPLICATION_COST)
        application.platform_application_id = (
            f"{self.platform}-{job.external_id or job.id}-{int(time.time() * 1000)}"
        )
        application.transition(ApplicationStatus.SUBMITTED, f"Application submitted via {self.display_name}")
        logger.info("Applied to %s at %s via %s", job.title, job.company, self.display_name)
        return application

    async def _capture(self, application: JobApplication, page: Page, name: str) -> None:
        path = await self.screenshot(page, name)
        if path:
            application.screenshots.append(path)

    async def fill_application_form(self, page: Page, profile: Profile,
                                    submission: ApplicationSubmission) -> None:
        """Contact fields, resume, then the bounded next-step loop with screening questions."""
        apply = self.selectors["apply"]
        values = {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "email": profile.contact.email,
            "phone": profile.contact.phone,
            "city": profile.contact.location,
            "cover_letter": submission.cover_letter,
        }
        resume = submission.resume_used or profile.resume_path

        for step in range(self.navigation.max_easy_apply_steps):
            for key, selector in apply["fields"].items():
                if key == "resume":
                    if resume and Path(resume).is_file() and await element_exists(page, selector, 500):
                        await page.locator(selector).first.set_input_files(resume)
                        submission.answers["resume"] = resume
                elif values.get(key):
                    await self._fill_if_empty(page, selector, values[key], key, submission)
            await self.answer_common_questions(page, profile, submission)

            if not await element_exists(page, apply["next_button"], 1000):
                break
            await click_element(page, apply["next_button"], self.pacer)
            await self.pacer.page_settle()
            await self._raise_on_form_errors(page)
        else:
            logger.warning("%s apply flow still had a next step after %d steps",
                           self.display_name, self.navigation.max_easy_apply_steps)

        review = apply.get("review_button")
        if review and await element_exists(page, review, 1000):
            await click_element(page, review, self.pacer)
            await self.pacer.page_settle()
        await self.before_submit(page)

    async def _fill_if_empty(self, page: Page, selector: str, value: str, key: str,
                             submission: ApplicationSubmission) -> None:
        if not await element_exists(page, selector, 500):
            return
        locator = page.locator(selector).first
        if (await locator.input_value()).strip():
            return
        await self._type(page, selector, value)
        submission.form_fields[key] = value

    async def _type(self, page: Page, selector: str, value: str) -> None:
        locator = page.locator(selector).first
        await locator.click()
        await self.pacer.after_focus()
        await locator.fill("")
        for char in value:
            await locator.press_sequentially(char)
            await self.pacer.between_keystrokes()
        await self.pacer.between_fields()

    async def answer_common_questions(self, page: Page, profile: Profile,
                                      submission: ApplicationSubmission) -> None:
        """Years of experience, work authorization, sponsorship and salary, when asked."""
        questions = self.selectors["apply"]["questions"]
        preferences = profile.preferences

        years = questions.get("years_experience")
        if years:
            await self._fill_if_empty(page, years, str(calculate_years_experience(profile)),
                                      "years_experience", submission)

        salary = questions.get("salary_expectation")
        if salary and preferences.min_salary:
            await self._fill_if_empty(page, salary, str(preferences.min_salary), "salary_expectation", submission)

        authorization = questions.get("work_authorization")
        if authorization and await element_exists(page, authorization, 500):
            select = page.locator(authorization).first
            raw = await select.evaluate(SELECT_OPTIONS_JS) or []
            options = [FieldOption(value=str(o.get("value", "")), text=str(o.get("text", ""))) for o in raw]
            choice = best_option_match(options, preferences.work_authorization or "yes")
            if choice is not None:
                await select.select_option(value=choice.value)
                submission.answers["work_authorization"] = choice.text or choice.value

        sponsorship = questions.get("sponsorship")
        if sponsorship and await element_exists(page, sponsorship, 500):
            radios = page.locator(sponsorship)
            candidates = []
            for index in range(await radios.count()):
                radio = radios.nth(index)
                value = (await radio.get_attribute("value")) or ""
                candidates.append((value, value))
            if candidates:
                answer = "yes" if preferences.requires_sponsorship else "no"
                chosen = pick_radio_index(candidates, answer)
                await radios.nth(chosen).click()
                await self.pacer.around_click()
                submission.answers["sponsorship"] = answer

    async def _raise_on_form_errors(self, page: Page) -> None:
        selector = self.selectors["apply"]["error_messages"]
        if await page.locator(selector).count() > 0 and await page.locator(selector).first.is_visible():
            message = await get_text_content(page, selector)
            raise BrowserError(f"Form needs manual input: {message}", {"selector": selector})

    async def submit_application(self, page: Page) -> None:
        """Click submit and wait for the site's confirmation. Raises BrowserError otherwise."""
        apply = self.selectors["apply"]
        if not await element_exists(page, apply["submit_button"], 3000):
            if await element_exists(page, apply["close_button"], 1000):
                await click_element(page, apply["close_button"], self.pacer)
            raise BrowserError("Could not find submit button. Application form may require additional steps.")

        await click_element(page, apply["submit_button"], self.pacer)
        await self.pacer.page_settle()

        if await element_exists(page, self.selectors["confirmation"]["success_message"], 10000):
            return
        if await element_exists(page, apply["error_messages"], 1000):
            message = await get_text_content(page, apply["error_messages"])
            raise BrowserError(f"Application failed: {message}")
        raise BrowserError("Application may not have been submitted. Please verify manually.")
