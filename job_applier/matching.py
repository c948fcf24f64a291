"""
Job Matching
============
Scores a job against a profile with the language model.

Malformed model output is not an error: it yields the neutral score so the
job still gets a threshold decision.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from job_applier.errors import LanguageModelError
from job_applier.llm import LanguageModel, extract_json
from job_applier.models import JobListing, Profile

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0
DESCRIPTION_LIMIT = 3000

MATCH_PROMPT = """Analyze how well this candidate matches the job.

JOB: {title} at {company}
JOB DESCRIPTION:
{description}

CANDIDATE PROFILE:
Skills: {skills}
Experience: {experience}
Education: {education}

Respond in JSON only:
{{
  "score": 0-100,
  "analysis": "2-3 sentence explanation",
  "missingSkills": ["skills the job wants but the candidate lacks"]
}}"""


@dataclass
class MatchAnalysis:
    score: float
    analysis: str = ""
    missing_skills: List[str] = field(default_factory=list)

    @classmethod
    def neutral(cls, reason: str = "Unable to analyze match") -> "MatchAnalysis":
        return cls(score=NEUTRAL_SCORE, analysis=reason)


class JobMatcher(ABC):
    @abstractmethod
    async def match(self, job: JobListing, profile: Profile) -> MatchAnalysis:
        """Score one job for one profile."""


def parse_match(payload) -> Optional[MatchAnalysis]:
    if not isinstance(payload, dict) or "score" not in payload:
        return None
    try:
        score = float(payload["score"])
    except (TypeError, ValueError):
        return None
    missing = payload.get("missingSkills") or payload.get("missing_skills") or []
    return MatchAnalysis(
        score=max(0.0, min(100.0, score)),
        analysis=str(payload.get("analysis", "")),
        missing_skills=[str(skill) for skill in missing] if isinstance(missing, list) else [],
    )


class LanguageModelMatcher(JobMatcher):
    def __init__(self, llm: LanguageModel, timeout: float = 60.0):
        self.llm = llm
        self.timeout = timeout

    def build_prompt(self, job: JobListing, profile: Profile) -> str:
        return MATCH_PROMPT.format(
            title=job.title,
            company=job.company,
            description=(job.description or "No description available.")[:DESCRIPTION_LIMIT],
            skills=", ".join(skill.name for skill in profile.skills) or "None listed",
            experience="; ".join(f"{e.title} at {e.company}" for e in profile.experience) or "None listed",
            education="; ".join(f"{e.degree} in {e.field_of_study}" for e in profile.education) or "None listed",
        )

    async def match(self, job: JobListing, profile: Profile) -> MatchAnalysis:
        try:
            reply = await asyncio.wait_for(self.llm.complete(self.build_prompt(job, profile), max_tokens=1024),
                                           timeout=self.timeout)
        except (LanguageModelError, asyncio.TimeoutError) as exc:
            logger.warning("Match analysis failed for %s: %s", job.title, exc)
            return MatchAnalysis.neutral()

        analysis = parse_match(extract_json(reply))
        if analysis is None:
            logger.warning("Unparseable match analysis for %s", job.title)
            return MatchAnalysis.neutral()
        return analysis
