"""
Form Filler
===========
Commits resolved values into the live page with human-like pacing.

Every field goes through the same pre-checks before anything is written:
exists -> visible -> already filled. Failures are collected per field as
strings so one bad field never costs the rest of the form.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from job_applier.browser import Pacer
from job_applier.errors import FieldFillError
from job_applier.field_resolver import FieldValueResolver
from job_applier.models import FieldOption, FieldType, FillResult, FormField, JobContext, PageAnalysis, Profile
from job_applier.page_analyzer import PageAnalyzer

logger = logging.getLogger(__name__)

TRUTHY = ("true", "yes", "1")

SELECT_OPTIONS_JS = "el => Array.from(el.options).map(o => ({value: o.value, text: (o.text || '').trim()}))"
SELECTED_INDEX_JS = "el => el.selectedIndex"
RADIO_LABEL_JS = """el => {
  const label = (el.labels && el.labels[0]) || (el.id && document.querySelector('label[for="' + el.id + '"]'));
  return label ? (label.innerText || label.textContent || '').trim() : '';
}"""


class FieldOutcome(Enum):
    FILLED = "filled"
    ALREADY_FILLED = "already_filled"
    SKIPPED = "skipped"


def best_option_match(options: Sequence[FieldOption], target: str) -> Optional[FieldOption]:
    """
    Pick the option for a target value.

    Ranked: exact text/value match (case-insensitive), then option text
    contained in the target or the reverse, then the first option with a
    non-empty value.
    """
    wanted = target.strip().lower()
    if not options:
        return None
    for option in options:
        if option.text.strip().lower() == wanted or option.value.strip().lower() == wanted:
            return option
    for option in options:
        text = option.text.strip().lower()
        if text and (wanted in text or text in wanted):
            return option
    for option in options:
        if option.value.strip():
            return option
    return None


def pick_radio_index(candidates: Sequence[Tuple[str, str]], target: str) -> int:
    """Index of the radio whose value or label matches target; 0 when none does."""
    wanted = target.strip().lower()
    for index, (value, label) in enumerate(candidates):
        if value.strip().lower() == wanted or label.strip().lower() == wanted:
            return index
    for index, (value, label) in enumerate(candidates):
        for text in (value.strip().lower(), label.strip().lower()):
            if text and (wanted in text or text in wanted):
                return index
    return 0


def _resembles(target: str, *texts: str) -> bool:
    wanted = target.strip().lower()
    for text in (t.strip().lower() for t in texts):
        if text and (text == wanted or wanted in text or text in wanted):
            return True
    return False


def radio_group_selector(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'input[type="radio"][name="{escaped}"]'


class FormFiller:
    """
    Fills the fields of one PageAnalysis.

    Args:
        resolver: Decides the value for each field.
        analyzer: Used when fill_form is called without an analysis.
        pacer: Delays between fields, clicks and keystrokes.
    """

    def __init__(self, resolver: FieldValueResolver, analyzer: Optional[PageAnalyzer] = None,
                 pacer: Optional[Pacer] = None):
        self.resolver = resolver
        self.analyzer = analyzer or PageAnalyzer()
        self.pacer = pacer or Pacer()

    async def fill_form(self, page: Page, profile: Profile, job_context: Optional[JobContext] = None,
                        analysis: Optional[PageAnalysis] = None) -> FillResult:
        if analysis is None:
            analysis = await self.analyzer.analyze(page)
        result = FillResult()
        if not analysis.fields:
            result.errors.append("No form fields detected")
            return result

        for form_field in analysis.fields:
            try:
                outcome = await self.fill_field(page, form_field, profile, job_context, result)
            except (FieldFillError, PlaywrightError) as exc:
                message = exc.message if isinstance(exc, FieldFillError) else str(exc).splitlines()[0]
                result.errors.append(f"Failed to fill {form_field.display_name}: {message}")
                logger.debug("Field %s failed: %s", form_field.selector, message)
            else:
                if outcome == FieldOutcome.SKIPPED:
                    result.fields_skipped += 1
                else:
                    result.fields_filled += 1
            await self.pacer.between_fields()

        logger.info("Filled %d fields, skipped %d, %d errors",
                    result.fields_filled, result.fields_skipped, len(result.errors))
        return result

    async def fill_field(self, page: Page, form_field: FormField, profile: Profile,
                         job_context: Optional[JobContext] = None,
                         result: Optional[FillResult] = None) -> FieldOutcome:
        locator = page.locator(form_field.selector).first
        if await locator.count() == 0:
            logger.debug("Skipping %s: not found", form_field.display_name)
            return FieldOutcome.SKIPPED
        # File inputs are routinely hidden behind a styled button; uploads still work.
        if form_field.type != FieldType.FILE and not await self._is_visible(page, form_field, locator):
            logger.debug("Skipping %s: not visible", form_field.display_name)
            return FieldOutcome.SKIPPED
        if await self.is_already_filled(page, form_field, locator):
            return FieldOutcome.ALREADY_FILLED

        value = await self.resolver.resolve(form_field, profile, job_context)
        if not value:
            if form_field.required:
                raise FieldFillError("no value for required field", form_field.selector)
            return FieldOutcome.SKIPPED

        if form_field.type != FieldType.FILE:
            await locator.scroll_into_view_if_needed()
            await self.pacer.around_click()

        if form_field.type in (FieldType.TEXT, FieldType.EMAIL, FieldType.PHONE, FieldType.TEXTAREA):
            await self._type_text(locator, value)
        elif form_field.type == FieldType.FILE:
            await self._upload(locator, value)
        elif form_field.type == FieldType.SELECT:
            value = await self._select(locator, form_field, value)
        elif form_field.type == FieldType.CHECKBOX:
            await self._set_checkbox(locator, value)
        elif form_field.type == FieldType.RADIO:
            value = await self._choose_radio(page, form_field, locator, value)

        if result is not None:
            result.values[form_field.display_name] = value
        return FieldOutcome.FILLED

    async def _is_visible(self, page: Page, form_field: FormField, locator: Locator) -> bool:
        if form_field.type != FieldType.RADIO:
            return await locator.is_visible()
        radios = await self._radio_group(page, form_field, locator)
        for index in range(await radios.count()):
            if await radios.nth(index).is_visible():
                return True
        return False

    async def is_already_filled(self, page: Page, form_field: FormField, locator: Locator) -> bool:
        if form_field.type == FieldType.CHECKBOX:
            return await locator.is_checked()
        if form_field.type == FieldType.RADIO:
            radios = await self._radio_group(page, form_field, locator)
            for index in range(await radios.count()):
                if await radios.nth(index).is_checked():
                    return True
            return False
        if form_field.type == FieldType.SELECT:
            return (await locator.evaluate(SELECTED_INDEX_JS) or 0) > 0
        return len((await locator.input_value()).strip()) > 0

    async def _type_text(self, locator: Locator, value: str) -> None:
        await locator.click()
        await self.pacer.after_focus()
        await locator.fill("")
        for char in value:
            await locator.press_sequentially(char)
            await self.pacer.between_keystrokes()

    async def _upload(self, locator: Locator, path: str) -> None:
        if not Path(path).is_file():
            raise FieldFillError(f"file not found: {path}")
        await locator.set_input_files(path)

    async def _select(self, locator: Locator, form_field: FormField, value: str) -> str:
        options: List[FieldOption] = list(form_field.options)
        if not options:
            raw = await locator.evaluate(SELECT_OPTIONS_JS) or []
            options = [FieldOption(value=str(o.get("value", "")), text=str(o.get("text", ""))) for o in raw]
        choice = best_option_match(options, value)
        if choice is None:
            raise FieldFillError(f"no option matches '{value}'")
        if not _resembles(value, choice.text, choice.value):
            logger.warning("Select %s: no option resembles '%s', falling back to '%s'",
                           form_field.display_name, value, choice.text)
        await locator.select_option(value=choice.value)
        return choice.text or choice.value

    async def _set_checkbox(self, locator: Locator, value: str) -> None:
        should_check = value.strip().lower() in TRUTHY
        if await locator.is_checked() != should_check:
            await locator.click()
            await self.pacer.around_click()

    async def _radio_group(self, page: Page, form_field: FormField, locator: Locator) -> Locator:
        name = form_field.name or (await locator.get_attribute("name")) or ""
        return page.locator(radio_group_selector(name)) if name else page.locator(form_field.selector)

    async def _choose_radio(self, page: Page, form_field: FormField, locator: Locator, value: str) -> str:
        radios = await self._radio_group(page, form_field, locator)
        count = await radios.count()
        if count == 0:
            raise FieldFillError("radio group is empty")
        candidates = []
        for index in range(count):
            radio = radios.nth(index)
            candidates.append((
                (await radio.get_attribute("value")) or "",
                (await radio.evaluate(RADIO_LABEL_JS)) or "",
            ))
        chosen = pick_radio_index(candidates, value)
        if not _resembles(value, *candidates[chosen]):
            logger.warning("Radio %s: no option resembles '%s', falling back to the first",
                           form_field.display_name, value)
        await radios.nth(chosen).click()
        await self.pacer.around_click()
        return candidates[chosen][1] or candidates[chosen][0]
