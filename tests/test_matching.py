"""Tests for model-based job scoring."""

import asyncio

from fakes import FakeModel, make_job, make_profile
from job_applier.errors import LanguageModelError
from job_applier.matching import NEUTRAL_SCORE, LanguageModelMatcher, parse_match
from job_applier.models import Skill, WorkExperience


def test_parse_match():
    analysis = parse_match({"score": 82, "analysis": "Strong fit", "missingSkills": ["Figma"]})
    assert analysis.score == 82
    assert analysis.missing_skills == ["Figma"]
    assert parse_match({"score": "140", "missing_skills": ["Go"]}).score == 100
    assert parse_match({"score": -3}).score == 0
    assert parse_match({"score": "high"}) is None
    assert parse_match({"analysis": "no score"}) is None
    assert parse_match(["score", 80]) is None


def test_match_reads_fenced_reply():
    model = FakeModel('Here you go:\n```json\n{"score": 75, "analysis": "Good", "missingSkills": []}\n```')
    profile = make_profile(skills=[Skill("Figma"), Skill("Sketch")],
                           experience=[WorkExperience("Designer", "Beta")])
    analysis = asyncio.run(LanguageModelMatcher(model).match(make_job(description="Design things"), profile))
    assert analysis.score == 75
    assert "Figma, Sketch" in model.prompts[0]
    assert "Designer at Beta" in model.prompts[0]
    assert "Design things" in model.prompts[0]


def test_missing_description_is_stated():
    model = FakeModel('{"score": 60}')
    asyncio.run(LanguageModelMatcher(model).match(make_job(), make_profile()))
    assert "No description available." in model.prompts[0]
    assert "Skills: None listed" in model.prompts[0]


def test_model_failure_gives_neutral_score():
    matcher = LanguageModelMatcher(FakeModel(LanguageModelError("All models failed")))
    analysis = asyncio.run(matcher.match(make_job(), make_profile()))
    assert analysis.score == NEUTRAL_SCORE
    assert analysis.analysis == "Unable to analyze match"


def test_garbage_reply_gives_neutral_score():
    analysis = asyncio.run(LanguageModelMatcher(FakeModel("I think it is a fine match")).match(
        make_job(), make_profile()))
    assert analysis.score == NEUTRAL_SCORE
