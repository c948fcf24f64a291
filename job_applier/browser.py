"""
Browser Session and Page Actions
================================
Thin layer over the Playwright async API:
- BrowserSession: one browser + context per run, passed explicitly to
  every component that needs a page
- Pacer: randomized human-like delays between actions
- ScreenshotRecorder: best-effort forensic screenshots
- Small page helpers shared by the navigator and platform adapters
"""

import asyncio
import logging
import random
import re
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from job_applier.config import BrowserConfig, RateLimitConfig
from job_applier.errors import BrowserError, NavigationError

logger = logging.getLogger(__name__)

BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"


def random_delay(min_ms: int, max_ms: int, rng: Optional[random.Random] = None) -> int:
    """A random whole number of milliseconds in [min_ms, max_ms]."""
    return (rng or random).randint(min_ms, max_ms)


class Pacer:
    """
    Injects randomized pauses between browser actions.

    The pauses are part of the job: typing and clicking at machine speed is
    what anti-automation defenses look for.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None,
                 rng: Optional[random.Random] = None, enabled: bool = True):
        self.config = config or RateLimitConfig()
        self.rng = rng or random.Random()
        self.enabled = enabled

    @classmethod
    def instant(cls) -> "Pacer":
        """A pacer that never waits. For tests and dry runs against local pages."""
        return cls(enabled=False)

    def pick(self, bounds: Tuple[int, int]) -> int:
        if not self.enabled:
            return 0
        return random_delay(bounds[0], bounds[1], self.rng)

    async def pause(self, bounds: Tuple[int, int]) -> None:
        ms = self.pick(bounds)
        if ms:
            await asyncio.sleep(ms / 1000)

    async def between_fields(self) -> None:
        await self.pause(self.config.field_delay_ms)

    async def around_click(self) -> None:
        await self.pause(self.config.click_delay_ms)

    async def after_focus(self) -> None:
        await self.pause(self.config.focus_delay_ms)

    async def page_settle(self) -> None:
        await self.pause(self.config.page_settle_ms)

    async def between_actions(self) -> None:
        await self.pause(self.config.action_delay_ms)

    async def between_applications(self) -> None:
        await self.pause(self.config.application_delay_ms)

    async def between_keystrokes(self) -> None:
        await self.pause(self.config.keystroke_delay_ms)


class BrowserSession:
    """
    Owns the Playwright browser and context for one run.

    Usage:
        async with BrowserSession(config.browser) as session:
            async with session.page() as page:
                await page.goto(url)
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @property
    def is_started(self) -> bool:
        return self._context is not None

    async def start(self) -> "BrowserSession":
        if self.is_started:
            return self
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                slow_mo=self.config.slow_mo,
            )
            width, height = self.config.viewport
            context_args: Dict[str, Any] = {"viewport": {"width": width, "height": height}}
            if self.config.user_agent:
                context_args["user_agent"] = self.config.user_agent
            self._context = await self._browser.new_context(**context_args)
        except PlaywrightError as exc:
            await self.close()
            raise BrowserError(f"Failed to launch browser: {exc}") from exc
        logger.info("Browser started (headless=%s)", self.config.headless)
        return self

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise BrowserError("Browser session not started")
        return self._context

    async def new_page(self) -> Page:
        page = await self.context.new_page()
        page.set_default_timeout(self.config.timeout_ms)
        return page

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open a page and always close it, even when the body raises."""
        page = await self.new_page()
        try:
            yield page
        finally:
            await close_page(page)

    async def cookies(self, urls: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        if urls:
            return await self.context.cookies(urls)
        return await self.context.cookies()

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        await self.context.add_cookies(cookies)

    async def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except PlaywrightError as exc:
                logger.warning("Error while closing browser: %s", exc)
        if self._playwright is not None:
            await self._playwright.stop()
        self._context = self._browser = self._playwright = None

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


async def close_page(page: Page) -> None:
    if page.is_closed():
        return
    try:
        await page.close()
    except PlaywrightError as exc:
        logger.warning("Could not close page: %s", exc)


class ScreenshotRecorder:
    """Writes PNG evidence of what the browser saw. Never raises."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else Path("data") / "screenshots"

    async def capture(self, page: Page, name: str) -> Optional[str]:
        slug = re.sub(r"[^a-zA-Z0-9_-]+", "-", name).strip("-") or "page"
        path = self.directory / f"{slug}-{int(time.time() * 1000)}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as exc:
            logger.warning("Screenshot %s failed: %s", slug, exc)
            return None
        logger.debug("Screenshot saved: %s", path)
        return str(path)


async def navigate_to(page: Page, url: str, timeout_ms: int = 30000,
                      wait_until: str = "domcontentloaded") -> None:
    try:
        await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightError as exc:
        raise NavigationError(f"Failed to load {url}: {exc}", {"url": url}) from exc


async def wait_for_settle(page: Page, timeout_ms: int = 10000) -> None:
    """Wait for network idle, but carry on if the page keeps polling."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightError:
        logger.debug("Page did not reach network idle within %sms", timeout_ms)


async def element_exists(page: Page, selector: str, timeout_ms: int = 5000) -> bool:
    try:
        await page.locator(selector).first.wait_for(state="attached", timeout=timeout_ms)
        return True
    except PlaywrightError:
        return False


async def wait_for_element(page: Page, selector: str, timeout_ms: int = 10000,
                           state: str = "visible") -> None:
    try:
        await page.locator(selector).first.wait_for(state=state, timeout=timeout_ms)
    except PlaywrightError as exc:
        raise BrowserError(f"Element not found: {selector}", {"selector": selector}) from exc


async def first_visible(page: Page, selectors: Iterable[str]) -> Optional[str]:
    """Return the first selector whose first match is visible right now."""
    for selector in selectors:
        try:
            if await page.locator(selector).first.is_visible():
                return selector
        except PlaywrightError:
            continue
    return None


async def click_first_visible(page: Page, selectors: Iterable[str],
                              pacer: Optional[Pacer] = None) -> Optional[str]:
    """Click the first visible match among selectors. Returns the one clicked."""
    pacer = pacer or Pacer.instant()
    selector = await first_visible(page, selectors)
    if selector is None:
        return None
    locator = page.locator(selector).first
    await locator.scroll_into_view_if_needed()
    await pacer.around_click()
    await locator.click()
    await pacer.around_click()
    return selector


async def click_element(page: Page, selector: str, pacer: Optional[Pacer] = None) -> None:
    """Scroll to and click the first match of selector, pausing like a person would."""
    pacer = pacer or Pacer.instant()
    locator = page.locator(selector).first
    try:
        await locator.scroll_into_view_if_needed()
        await pacer.around_click()
        await locator.click()
    except PlaywrightError as exc:
        raise BrowserError(f"Failed to click {selector}: {exc}", {"selector": selector}) from exc
    await pacer.around_click()


async def get_text_content(page: Page, selector: str) -> str:
    locator = page.locator(selector).first
    try:
        if await locator.count() == 0:
            return ""
        return ((await locator.text_content()) or "").strip()
    except PlaywrightError:
        return ""


async def body_text(page: Page) -> str:
    try:
        return (await page.evaluate(BODY_TEXT_JS)) or ""
    except PlaywrightError:
        return ""
