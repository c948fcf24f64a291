"""
Page Analyzer
=============
Turns a live page into a PageAnalysis:
- One DOM pass collects every candidate input with its label, options and
  surrounding markup
- Regex heuristics classify fields and map them to profile attributes
- Candidates the heuristics cannot label go to the language model in a
  single batched prompt; anything the model cannot explain is skipped
- Page classification: login wall, confirmation, CAPTCHA, form, job
  details, job listing
"""

import asyncio
import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup, Comment
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from job_applier.browser import first_visible
from job_applier.errors import LanguageModelError
from job_applier.llm import LanguageModel, extract_json
from job_applier.models import FieldOption, FieldType, FormField, JobLink, PageAnalysis, PageType

logger = logging.getLogger(__name__)

MARKUP_LIMIT = 15000
CONTEXT_LIMIT = 2000

PROFILE_KEYS = (
    "firstName", "lastName", "email", "phone", "linkedin",
    "website", "github", "location", "city", "resumePath",
)

# Checked in order; the first pattern that matches wins.
PROFILE_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("firstName", r"first.?name|\bfname\b|given.?name|forename"),
    ("lastName", r"last.?name|\blname\b|surname|family.?name"),
    ("email", r"e-?mail"),
    ("phone", r"phone|mobile|\btel\b|\bcell\b"),
    ("linkedin", r"linked.?in"),
    ("github", r"github"),
    ("website", r"portfolio|website|personal.?site|work.?samples"),
    ("city", r"\bcity\b"),
    ("location", r"location|where.{0,20}based|current.?address"),
)

AUTOCOMPLETE_MAPPINGS = {
    "given-name": "firstName",
    "family-name": "lastName",
    "email": "email",
    "tel": "phone",
    "url": "website",
    "address-level2": "city",
}

TEXT_LIKE = (FieldType.TEXT, FieldType.EMAIL, FieldType.PHONE, FieldType.TEXTAREA)

NEXT_BUTTON_SELECTORS = [
    'button:has-text("Next")',
    'button:has-text("Continue")',
    'button:has-text("Save and continue")',
    'button:has-text("Save & Continue")',
    'input[type="button"][value*="Next" i]',
    'input[type="submit"][value*="Continue" i]',
    '[aria-label*="next step" i]',
    '[data-automation-id="bottom-navigation-next-button"]',
]

SUBMIT_BUTTON_SELECTORS = [
    'button:has-text("Submit application")',
    'button:has-text("Submit Application")',
    'button:has-text("Submit")',
    'input[type="submit"]',
    'button[type="submit"]',
    '[data-qa="btn-submit"]',
    '[data-qa="submit-button"]',
    'button.postings-btn',
]

APPLY_BUTTON_SELECTORS = [
    'button:has-text("Apply")',
    'a:has-text("Apply")',
    'button:has-text("Easy Apply")',
    'a:has-text("Apply Now")',
    '[class*="apply"]',
    '[id*="apply"]',
]

SUCCESS_INDICATORS = (
    "application submitted",
    "application has been submitted",
    "thank you for applying",
    "thanks for applying",
    "application received",
    "application has been received",
    "successfully submitted",
    "we have received your application",
    "we've received your application",
    "application complete",
    "you have applied",
)

AUTH_URL_RE = re.compile(r"/(login|log-in|signin|sign-in|sign_in|auth|sso|account/create)\b", re.I)
NAME_WORDS_RE = re.compile(r"^[A-Za-z][A-Za-z _\-]{2,}$")

COLLECT_FIELDS_JS = r"""
() => {
  const out = [];
  const seenRadio = new Set();
  const esc = (s) => (window.CSS && CSS.escape) ? CSS.escape(s) : s.replace(/([^a-zA-Z0-9_-])/g, '\\$1');
  const quote = (s) => s.replace(/\\/g, '\\\\').replace(/"/g, '\\"');
  const textOf = (el) => el ? (el.innerText || el.textContent || '').replace(/\s+/g, ' ').trim() : '';
  const isVisible = (el) => {
    if (!el) return false;
    const style = window.getComputedStyle(el);
    if (style.visibility === 'hidden' || style.display === 'none') return false;
    return !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length);
  };
  const labelFor = (el) => {
    if (el.id) {
      const l = document.querySelector('label[for="' + quote(el.id) + '"]');
      if (l) return textOf(l);
    }
    const wrap = el.closest('label');
    if (wrap) return textOf(wrap);
    return '';
  };
  const nodes = document.querySelectorAll(
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"]):not([type="reset"])' +
    ':not([type="image"]):not([type="password"]):not([type="search"]), textarea, select');
  nodes.forEach((el, index) => {
    try {
      const tag = el.tagName.toLowerCase();
      const type = tag === 'input' ? (el.getAttribute('type') || 'text').toLowerCase() : tag;
      const name = el.getAttribute('name') || '';
      const id = el.id || '';
      if (type === 'radio' && name) {
        if (seenRadio.has(name)) return;
        seenRadio.add(name);
      }
      let selector;
      if (type === 'radio' && name) {
        selector = 'input[type="radio"][name="' + quote(name) + '"]';
      } else if (id && document.querySelectorAll('#' + esc(id)).length === 1) {
        selector = '#' + esc(id);
      } else if (name && document.querySelectorAll(tag + '[name="' + quote(name) + '"]').length === 1) {
        selector = tag + '[name="' + quote(name) + '"]';
      } else {
        el.setAttribute('data-job-applier-id', String(index));
        selector = '[data-job-applier-id="' + index + '"]';
      }

      let label = '';
      let options = [];
      let visible = isVisible(el);
      if (type === 'radio') {
        const group = el.closest('fieldset, [role="radiogroup"]');
        if (group) {
          label = textOf(group.querySelector('legend')) || group.getAttribute('aria-label') || '';
          if (!label && group.getAttribute('aria-labelledby')) {
            label = textOf(document.getElementById(group.getAttribute('aria-labelledby')));
          }
        }
        const radios = name ? document.querySelectorAll(selector) : [el];
        radios.forEach((r) => {
          const text = labelFor(r) || r.value;
          options.push({value: r.value, text: text});
          visible = visible || isVisible(r) || isVisible(r.closest('label'));
        });
      } else {
        label = labelFor(el) || (el.getAttribute('aria-label') || '').trim();
        if (!label && el.getAttribute('aria-labelledby')) {
          label = el.getAttribute('aria-labelledby').split(/\s+/)
            .map((i) => textOf(document.getElementById(i))).join(' ').trim();
        }
        if (!label) {
          let p = el.parentElement;
          for (let i = 0; i < 3 && p && !label; i++) {
            const l = p.querySelector('label');
            if (l) label = textOf(l);
            p = p.parentElement;
          }
        }
        if (tag === 'select') {
          options = Array.from(el.options).map((o) => ({value: o.value, text: (o.text || '').trim()}));
        }
      }
      const container = el.closest('fieldset, .field, .form-group, .application-question, li') || el.parentElement;
      out.push({
        tag, type, name, id, selector, visible,
        label: label.slice(0, 300),
        placeholder: el.getAttribute('placeholder') || '',
        autocomplete: el.getAttribute('autocomplete') || '',
        required: !!(el.required || el.getAttribute('aria-required') === 'true' || /\*\s*$/.test(label)),
        options: options,
        context: container ? container.outerHTML.slice(0, 4000) : '',
      });
    } catch (e) {
      out.push({error: String(e), index: index});
    }
  });
  return out;
}
"""

PAGE_SIGNALS_JS = r"""
() => {
  const isVisible = (el) => !!(el && (el.offsetWidth || el.offsetHeight || el.getClientRects().length));
  const password = Array.from(document.querySelectorAll('input[type="password"]')).some(isVisible);
  const captcha = Array.from(document.querySelectorAll(
    'iframe[src*="captcha"], iframe[title*="challenge" i], iframe[src*="arkoselabs"], iframe[src*="hcaptcha"]'
  )).some(isVisible);
  const jobLinks = [];
  const seen = new Set();
  document.querySelectorAll('a[href]').forEach((a) => {
    const href = a.getAttribute('href');
    const text = (a.innerText || '').replace(/\s+/g, ' ').trim();
    if (!/\/(jobs?|careers?|positions?|openings?|postings?)\/[^\/?#]+/i.test(href)) return;
    if (text.length < 3 || text.length > 120 || seen.has(href) || !isVisible(a)) return;
    seen.add(href);
    jobLinks.push({title: text, href: href, url: a.href});
  });
  return {
    url: location.href,
    title: document.title || '',
    text: document.body ? document.body.innerText.slice(0, 5000) : '',
    password: password,
    captcha: captcha,
    jobLinks: jobLinks.slice(0, 50),
  };
}
"""

FIELD_PROMPT = """You are reading part of a job application form. Each candidate below is one input control and the HTML around it.

Return ONLY a JSON object in this exact shape:
{{"fields": [{{"selector": "<selector exactly as given>", "type": "text|email|phone|textarea|select|checkbox|radio|file", "label": "<the question being asked>", "required": true, "profileMapping": "<one of {keys}, or null>"}}]}}

Leave out candidates that are not questions for the applicant.

Candidates:
{candidates}"""

PAGE_PROMPT = """Classify this web page for a job application bot.

URL: {url}
Title: {title}

Markup (truncated):
{markup}

Return ONLY a JSON object:
{{"pageType": "job_listing|job_details|application_form|login|other", "loginRequired": false, "applyButtonText": "<visible text of the apply control, or null>", "jobs": [{{"title": "<job title>", "url": "<absolute or relative link>"}}]}}"""

CAREERS_PROMPT = """What is the URL of the careers or jobs page for the company "{company}"?{website}
Common patterns are company.com/careers, careers.company.com, jobs.lever.co/company and boards.greenhouse.io/company.
Respond with ONLY the URL, or UNKNOWN if you are not sure."""


def _matches(pattern: str, text: str) -> bool:
    return re.search(pattern, text, re.IGNORECASE) is not None


def condense_markup(html: str, limit: int = MARKUP_LIMIT) -> str:
    """Strip scripts, styles and noisy attributes so markup fits in a prompt."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "svg", "noscript", "path", "img", "link", "meta"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    keep = {"id", "name", "type", "for", "value", "role", "placeholder", "required",
            "aria-label", "aria-labelledby", "aria-required", "href", "data-job-applier-id"}
    for tag in soup.find_all(True):
        tag.attrs = {key: value for key, value in tag.attrs.items() if key in keep}
    text = re.sub(r"\s+", " ", str(soup)).strip()
    return text[:limit]


def humanize_name(name: str) -> str:
    """'cover_letter' -> 'cover letter'; meaningless names give ''."""
    if not name or not NAME_WORDS_RE.match(name):
        return ""
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", name)
    return re.sub(r"[_\-\s]+", " ", spaced).strip().lower()


def classify_type(descriptor: Dict[str, Any]) -> FieldType:
    tag = descriptor.get("tag", "input")
    input_type = descriptor.get("type", "text")
    if tag == "select":
        return FieldType.SELECT
    if tag == "textarea":
        return FieldType.TEXTAREA
    direct = {
        "email": FieldType.EMAIL,
        "tel": FieldType.PHONE,
        "file": FieldType.FILE,
        "checkbox": FieldType.CHECKBOX,
        "radio": FieldType.RADIO,
    }
    if input_type in direct:
        return direct[input_type]
    hints = " ".join(descriptor.get(key, "") for key in ("name", "id", "label", "placeholder"))
    if _matches(r"e-?mail", hints):
        return FieldType.EMAIL
    if _matches(r"phone|mobile|\btel\b", hints):
        return FieldType.PHONE
    return FieldType.TEXT


def detect_profile_mapping(descriptor: Dict[str, Any], field_type: FieldType) -> Optional[str]:
    """Map a field to a profile attribute when its intent is unambiguous."""
    hints = " ".join(descriptor.get(key, "") for key in ("name", "id", "label", "placeholder"))
    if field_type == FieldType.FILE:
        return "resumePath" if _matches(r"resume|\bcv\b|curriculum", hints) else None
    if field_type not in TEXT_LIKE or field_type == FieldType.TEXTAREA:
        return None

    autocomplete = (descriptor.get("autocomplete") or "").lower()
    if autocomplete in AUTOCOMPLETE_MAPPINGS:
        return AUTOCOMPLETE_MAPPINGS[autocomplete]
    if field_type == FieldType.EMAIL:
        return "email"
    if field_type == FieldType.PHONE:
        return "phone"
    for key, pattern in PROFILE_PATTERNS:
        if _matches(pattern, hints):
            return key
    return None


def build_field(descriptor: Dict[str, Any]) -> Optional[FormField]:
    """
    Build a FormField from one DOM descriptor.

    Returns None when the candidate has no usable label, which marks it for
    model classification.
    """
    field_type = classify_type(descriptor)
    mapping = detect_profile_mapping(descriptor, field_type)
    label = (descriptor.get("label") or descriptor.get("placeholder") or "").strip()
    if not label and field_type != FieldType.RADIO:
        label = humanize_name(descriptor.get("name", ""))
    if not label and not mapping:
        return None
    options = tuple(
        FieldOption(value=str(option.get("value", "")), text=str(option.get("text", "")))
        for option in descriptor.get("options") or []
    )
    return FormField(
        selector=descriptor["selector"],
        type=field_type,
        label=label,
        required=bool(descriptor.get("required")),
        options=options,
        profile_mapping=mapping,
        name=descriptor.get("name", ""),
    )


def parse_model_fields(payload: Any, candidates: Dict[str, Dict[str, Any]]) -> Dict[str, FormField]:
    """Validate the model's field list against the candidates that were sent."""
    fields: Dict[str, FormField] = {}
    if not isinstance(payload, dict) or not isinstance(payload.get("fields"), list):
        return fields
    valid_types = {item.value for item in FieldType}
    for item in payload["fields"]:
        if not isinstance(item, dict):
            continue
        selector = item.get("selector")
        if selector not in candidates or selector in fields:
            continue
        field_type = item.get("type")
        label = item.get("label")
        if field_type not in valid_types or not isinstance(label, str) or not label.strip():
            continue
        mapping = item.get("profileMapping")
        descriptor = candidates[selector]
        fields[selector] = FormField(
            selector=selector,
            type=FieldType(field_type),
            label=label.strip(),
            required=bool(descriptor.get("required")) or item.get("required") is True,
            options=tuple(
                FieldOption(value=str(o.get("value", "")), text=str(o.get("text", "")))
                for o in descriptor.get("options") or []
            ),
            profile_mapping=mapping if mapping in PROFILE_KEYS else None,
            name=descriptor.get("name", ""),
        )
    return fields


def is_success_text(text: str) -> bool:
    lowered = (text or "").lower()
    return any(indicator in lowered for indicator in SUCCESS_INDICATORS)


class PageAnalyzer:
    """
    Classifies pages and their fields.

    The language model is optional. Without one, unlabelled candidates are
    skipped and unclassifiable pages come back as OTHER.
    """

    def __init__(self, llm: Optional[LanguageModel] = None, llm_timeout: float = 60.0,
                 http: Optional[requests.Session] = None):
        self.llm = llm
        self.llm_timeout = llm_timeout
        self.http = http or requests.Session()

    async def analyze(self, page: Page) -> PageAnalysis:
        signals = await page.evaluate(PAGE_SIGNALS_JS)
        url = signals.get("url") or page.url
        errors: List[str] = []

        fields, ambiguous = self._classify_descriptors(await page.evaluate(COLLECT_FIELDS_JS), errors)
        skipped: List[str] = []
        if ambiguous:
            resolved = await self._classify_with_model(ambiguous)
            for selector in ambiguous:
                if selector in resolved:
                    fields.append(resolved[selector])
                else:
                    skipped.append(selector)
            if skipped:
                logger.debug("Skipped %d unclassifiable fields", len(skipped))

        login = bool(signals.get("password")) or AUTH_URL_RE.search(urlparse(url).path or "") is not None
        jobs = tuple(
            JobLink(title=link["title"], selector=f'a[href="{link["href"]}"]', url=link.get("url", ""))
            for link in signals.get("jobLinks") or []
        )

        next_button = submit_button = apply_button = None
        if fields:
            next_button = await first_visible(page, NEXT_BUTTON_SELECTORS)
            submit_button = await first_visible(page, SUBMIT_BUTTON_SELECTORS)
        elif not login:
            apply_button = await first_visible(page, APPLY_BUTTON_SELECTORS)

        if login:
            page_type = PageType.LOGIN
        elif is_success_text(signals.get("text", "")) and not fields:
            page_type = PageType.CONFIRMATION
        elif fields:
            page_type = PageType.APPLICATION_FORM
        elif apply_button:
            page_type = PageType.JOB_DETAILS
        elif len(jobs) >= 2:
            page_type = PageType.JOB_LISTING
        else:
            page_type = PageType.OTHER

        analysis = PageAnalysis(
            page_type=page_type,
            fields=tuple(fields),
            title=signals.get("title", ""),
            url=url,
            next_button=next_button,
            submit_button=submit_button,
            apply_button=apply_button,
            login_required=login,
            captcha_detected=bool(signals.get("captcha")),
            jobs=jobs,
            errors=tuple(errors),
            skipped=tuple(skipped),
        )
        if page_type == PageType.OTHER and self.llm is not None:
            analysis = await self._classify_page_with_model(page, analysis)
        logger.info("Analyzed %s: %s with %d fields", url, analysis.page_type.value, len(analysis.fields))
        return analysis

    def _classify_descriptors(self, descriptors: Sequence[Dict[str, Any]],
                              errors: List[str]) -> Tuple[List[FormField], Dict[str, Dict[str, Any]]]:
        fields: List[FormField] = []
        ambiguous: Dict[str, Dict[str, Any]] = {}
        for descriptor in descriptors or []:
            if "error" in descriptor:
                errors.append(f"Could not inspect field {descriptor.get('index')}: {descriptor['error']}")
                continue
            try:
                field_type = classify_type(descriptor)
                # Invisible text inputs are usually honeypots; file inputs are often styled away.
                if not descriptor.get("visible") and field_type != FieldType.FILE:
                    continue
                built = build_field(descriptor)
            except (KeyError, TypeError, ValueError) as exc:
                errors.append(f"Could not classify field {descriptor.get('selector', '?')}: {exc}")
                continue
            if built is None:
                ambiguous[descriptor["selector"]] = descriptor
            else:
                fields.append(built)
        return fields, ambiguous

    async def _ask(self, prompt: str) -> Optional[Any]:
        try:
            reply = await asyncio.wait_for(self.llm.complete(prompt), timeout=self.llm_timeout)
        except (LanguageModelError, asyncio.TimeoutError) as exc:
            logger.warning("Model call failed: %s", exc)
            return None
        return extract_json(reply)

    async def _classify_with_model(self, candidates: Dict[str, Dict[str, Any]]) -> Dict[str, FormField]:
        if self.llm is None:
            return {}
        blocks = []
        for number, (selector, descriptor) in enumerate(candidates.items(), start=1):
            blocks.append(
                f"[{number}] selector: {selector}\n"
                f"tag: {descriptor.get('tag')} type: {descriptor.get('type')}\n"
                f"markup: {condense_markup(descriptor.get('context', ''), CONTEXT_LIMIT)}"
            )
        prompt = FIELD_PROMPT.format(keys=", ".join(PROFILE_KEYS), candidates="\n\n".join(blocks))
        payload = await self._ask(prompt)
        if payload is None:
            logger.warning("Model returned no usable field list for %d candidates", len(candidates))
            return {}
        return parse_model_fields(payload, candidates)

    async def _classify_page_with_model(self, page: Page, analysis: PageAnalysis) -> PageAnalysis:
        try:
            html = await page.content()
        except PlaywrightError as exc:
            return replace(analysis, errors=analysis.errors + (f"Could not read page: {exc}",))

        payload = await self._ask(PAGE_PROMPT.format(
            url=analysis.url, title=analysis.title, markup=condense_markup(html)))
        valid_types = {item.value for item in PageType}
        if not isinstance(payload, dict) or payload.get("pageType") not in valid_types:
            return replace(analysis, errors=analysis.errors + ("Failed to analyze page structure",))

        page_type = PageType(payload["pageType"])
        # The model cannot see live fields; a form verdict without fields stays OTHER.
        if page_type == PageType.APPLICATION_FORM:
            page_type = PageType.OTHER
        jobs = analysis.jobs
        model_jobs = payload.get("jobs")
        if not jobs and isinstance(model_jobs, list):
            jobs = tuple(
                JobLink(title=str(job["title"]), selector=f'a[href="{job["url"]}"]', url=str(job["url"]))
                for job in model_jobs
                if isinstance(job, dict) and job.get("title") and job.get("url")
            )
        apply_button = analysis.apply_button
        apply_text = payload.get("applyButtonText")
        if isinstance(apply_text, str) and apply_text.strip() and '"' not in apply_text:
            apply_button = f'a:has-text("{apply_text.strip()}"), button:has-text("{apply_text.strip()}")'
        return replace(
            analysis,
            page_type=page_type,
            jobs=jobs,
            apply_button=apply_button if page_type == PageType.JOB_DETAILS else analysis.apply_button,
            login_required=analysis.login_required or payload.get("loginRequired") is True,
        )

    async def find_careers_page(self, company_name: str,
                                company_website: Optional[str] = None) -> Optional[str]:
        """
        Best guess at the root URL of a company's job listings, or None.

        Asks the model first, then probes the usual careers URL shapes.
        """
        if self.llm is not None:
            website = f" Their website is {company_website}." if company_website else ""
            try:
                reply = await asyncio.wait_for(
                    self.llm.complete(CAREERS_PROMPT.format(company=company_name, website=website),
                                      max_tokens=100),
                    timeout=self.llm_timeout,
                )
            except (LanguageModelError, asyncio.TimeoutError) as exc:
                logger.warning("Careers lookup for %s failed: %s", company_name, exc)
                reply = ""
            url = _first_url(reply)
            if url:
                return url
        return await asyncio.to_thread(self._probe_careers_urls, company_name, company_website)

    def _probe_careers_urls(self, company_name: str, company_website: Optional[str]) -> Optional[str]:
        for url in careers_candidates(company_name, company_website):
            try:
                response = self.http.head(url, allow_redirects=True, timeout=5)
            except requests.RequestException:
                continue
            if response.status_code < 400:
                logger.info("Found careers page for %s: %s", company_name, response.url or url)
                return response.url or url
        return None


def _first_url(reply: str) -> Optional[str]:
    text = (reply or "").strip()
    if not text or text.upper().startswith("UNKNOWN"):
        return None
    match = re.search(r"https?://[^\s\"'<>)]+", text)
    if not match:
        return None
    url = match.group(0).rstrip(".,;")
    parsed = urlparse(url)
    return url if parsed.scheme in ("http", "https") and parsed.netloc else None


def careers_candidates(company_name: str, company_website: Optional[str] = None) -> List[str]:
    slug = re.sub(r"[^a-z0-9]", "", company_name.lower())
    hosts = []
    if company_website:
        parsed = urlparse(company_website if "://" in company_website else f"https://{company_website}")
        if parsed.netloc:
            hosts.append(parsed.netloc)
    if slug:
        hosts.append(f"{slug}.com")
    urls = []
    for host in hosts:
        urls.extend([f"https://{host}/careers", f"https://{host}/jobs"])
    if slug:
        urls.extend([
            f"https://careers.{slug}.com",
            f"https://jobs.lever.co/{slug}",
            f"https://boards.greenhouse.io/{slug}",
        ])
    return urls


