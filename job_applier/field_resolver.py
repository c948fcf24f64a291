"""
Field Value Resolver
====================
Decides what to type into one FormField. First match wins:
1. A value already carried by the field
2. The field's profile mapping (no model call)
3. Label word rules for names, contact details and resume uploads
4. The language model, for open-ended or company-specific questions

resolve() never raises. An empty string means "nothing to enter".
"""

import asyncio
import logging
import re
from typing import Callable, Dict, Optional, Tuple

from job_applier.errors import LanguageModelError
from job_applier.llm import LanguageModel
from job_applier.models import FieldType, FormField, JobContext, Profile

logger = logging.getLogger(__name__)

ProfileGetter = Callable[[Profile], str]

PROFILE_VALUES: Dict[str, ProfileGetter] = {
    "firstName": lambda p: p.first_name,
    "lastName": lambda p: p.last_name,
    "email": lambda p: p.contact.email,
    "phone": lambda p: p.contact.phone,
    "linkedin": lambda p: p.contact.linkedin,
    "website": lambda p: p.contact.portfolio,
    "github": lambda p: p.contact.github,
    "location": lambda p: p.contact.location,
    "city": lambda p: p.contact.location,
    "resumePath": lambda p: p.resume_path,
}


def _label_has(*words: str) -> Callable[[str], bool]:
    # whole words, optional plural
    pattern = re.compile(r"\b(?:%s)s?\b" % "|".join(re.escape(word) for word in words))
    return lambda label: pattern.search(label) is not None


# Checked in order against the lower-cased label.
LABEL_RULES: Tuple[Tuple[Callable[[str], bool], ProfileGetter], ...] = (
    (lambda label: "first name" in label or label == "first", PROFILE_VALUES["firstName"]),
    (lambda label: "last name" in label or label == "last", PROFILE_VALUES["lastName"]),
    (lambda label: "full name" in label or label == "name", lambda p: p.full_name),
    (_label_has("email"), PROFILE_VALUES["email"]),
    (_label_has("phone", "telephone", "mobile", "cell", "cellphone"), PROFILE_VALUES["phone"]),
    (_label_has("linkedin"), PROFILE_VALUES["linkedin"]),
    (_label_has("github"), PROFILE_VALUES["github"]),
    (_label_has("website", "portfolio"), PROFILE_VALUES["website"]),
    (_label_has("address", "location", "city"), PROFILE_VALUES["location"]),
    (_label_has("resume", "cv"), PROFILE_VALUES["resumePath"]),
)

ANSWER_PROMPT = """You are filling out a job application on behalf of a candidate.

Field: {label} ({type})
{options}Job: {title} at {company}
{description}
Candidate profile:
{profile}

Respond with ONLY the value to enter in this field, nothing else.
{instruction}"""

QUESTION_PROMPT = """Answer this job application question for the candidate.

Question: {question}
Job: {title} at {company}
{description}
Candidate profile:
{profile}

Answer in a concise, professional way in the candidate's voice (2-4 sentences unless the question asks for a number or yes/no)."""


def normalize_label(label: str) -> str:
    return " ".join(label.lower().replace("*", " ").split()).strip(" :?")


def match_label_rule(label: str, profile: Profile) -> Optional[str]:
    """Value from the first label rule that applies, or None when none does."""
    normalized = normalize_label(label)
    if not normalized:
        return None
    for applies, getter in LABEL_RULES:
        if applies(normalized):
            return getter(profile) or ""
    return None


def _instruction_for(field: FormField) -> str:
    if field.type in (FieldType.SELECT, FieldType.RADIO):
        return "Answer with the exact text of one of the options."
    if field.type == FieldType.CHECKBOX:
        return "Answer yes or no."
    if field.type == FieldType.TEXTAREA:
        return "Keep it to 2-4 sentences in the candidate's voice."
    return "Keep it short: a single line."


def clean_answer(reply: str) -> str:
    value = (reply or "").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


class FieldValueResolver:
    """
    Resolves values for normalized fields.

    Args:
        llm: Model for the last-resort step. None disables it.
        timeout: Seconds to wait for one model answer.
    """

    def __init__(self, llm: Optional[LanguageModel] = None, timeout: float = 60.0):
        self.llm = llm
        self.timeout = timeout

    async def resolve(self, field: FormField, profile: Profile,
                      job_context: Optional[JobContext] = None) -> str:
        if field.value is not None:
            return field.value

        if field.profile_mapping in PROFILE_VALUES:
            mapped = PROFILE_VALUES[field.profile_mapping](profile)
            if mapped:
                return mapped

        from_label = match_label_rule(field.label, profile)
        if from_label is not None:
            return from_label

        # A model cannot produce a file to upload.
        if field.type == FieldType.FILE:
            return ""
        return await self._ask_model(field, profile, job_context or JobContext())

    async def _ask_model(self, field: FormField, profile: Profile, job: JobContext) -> str:
        if self.llm is None or not field.label:
            return ""
        options = ""
        if field.options:
            texts = [option.text or option.value for option in field.options if option.text or option.value]
            options = f"Options: {', '.join(texts)}\n"
        prompt = ANSWER_PROMPT.format(
            label=field.label,
            type=field.type.value,
            options=options,
            title=job.title or "Unknown role",
            company=job.company or "Unknown company",
            description=f"Job description: {job.description[:1000]}\n" if job.description else "",
            profile=profile.to_prompt_json(),
            instruction=_instruction_for(field),
        )
        try:
            reply = await asyncio.wait_for(self.llm.complete(prompt, max_tokens=300), timeout=self.timeout)
        except (LanguageModelError, asyncio.TimeoutError) as exc:
            logger.warning("No model answer for '%s': %s", field.label, exc)
            return ""
        value = clean_answer(reply)
        logger.debug("Model answered '%s' with '%s'", field.label, value[:80])
        return value

    async def answer_question(self, question: str, profile: Profile,
                              job_context: Optional[JobContext] = None) -> str:
        """Free-text answer to a screening question. Empty string on failure."""
        if self.llm is None:
            return ""
        job = job_context or JobContext()
        prompt = QUESTION_PROMPT.format(
            question=question,
            title=job.title or "Unknown role",
            company=job.company or "Unknown company",
            description=f"Job description: {job.description[:1000]}\n" if job.description else "",
            profile=profile.to_prompt_json(),
        )
        try:
            reply = await asyncio.wait_for(self.llm.complete(prompt, max_tokens=500), timeout=self.timeout)
        except (LanguageModelError, asyncio.TimeoutError) as exc:
            logger.warning("No model answer for question '%s': %s", question[:60], exc)
            return ""
        return clean_answer(reply)
