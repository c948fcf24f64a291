"""Tests for the data model: fill results, application lifecycle, listings."""

import json

import pytest

from fakes import make_job, make_profile
from job_applier.errors import InvalidTransitionError
from job_applier.models import (
    ApplicationStatus,
    EventType,
    FieldType,
    FillResult,
    FormField,
    HuntResult,
    JobApplication,
    JobListing,
    PageAnalysis,
    PageType,
    PlatformCredentials,
    Profile,
)


def test_fill_result_partial_success():
    """Two filled fields and one error is still a usable fill."""
    result = FillResult(fields_filled=2, errors=["Failed to fill Why us?: no value"])
    assert result.success


def test_fill_result_all_errors_fails():
    result = FillResult(fields_filled=0, errors=["a", "b"])
    assert not result.success


def test_fill_result_empty_is_success():
    assert FillResult().success


def test_fill_result_merge():
    first = FillResult(fields_filled=1, fields_skipped=1, errors=["x"], values={"Email": "a@b.com"})
    second = FillResult(fields_filled=2, values={"Phone": "555"})
    merged = first.merge(second)
    assert merged.fields_filled == 3
    assert merged.fields_skipped == 1
    assert merged.errors == ["x"]
    assert merged.values == {"Email": "a@b.com", "Phone": "555"}


def test_form_field_display_name_falls_back():
    assert FormField("#a", FieldType.TEXT, label="Email").display_name == "Email"
    assert FormField("#a", FieldType.TEXT, name="email").display_name == "email"
    assert FormField("#a", FieldType.TEXT).display_name == "#a"


def test_page_analysis_is_form_needs_fields():
    field = FormField("#a", FieldType.TEXT, label="Email")
    assert PageAnalysis(PageType.APPLICATION_FORM, fields=(field,)).is_form
    assert not PageAnalysis(PageType.APPLICATION_FORM).is_form
    assert not PageAnalysis(PageType.JOB_DETAILS, fields=(field,)).is_form


def test_application_starts_as_draft_with_created_event():
    application = JobApplication.start(make_job(), make_profile())
    assert application.status == ApplicationStatus.DRAFT
    assert [event.type for event in application.events] == [EventType.CREATED]
    assert application.platform == "company_site"


def test_submitted_transition_sets_applied_at():
    application = JobApplication.start(make_job(), make_profile())
    application.transition(ApplicationStatus.SUBMITTED, "Completed 2 form page(s)")
    assert application.applied_at is not None
    assert application.message == "Completed 2 form page(s)"
    assert application.events[-1].type == EventType.SUBMITTED


def test_failure_transition_records_error_event():
    application = JobApplication.start(make_job(), make_profile())
    application.transition(ApplicationStatus.FAILED, "No form fields detected")
    event = application.events[-1]
    assert event.type == EventType.ERROR
    assert event.metadata == {"from": "draft", "to": "failed"}


def test_invalid_transition_raises():
    application = JobApplication.start(make_job(), make_profile())
    application.transition(ApplicationStatus.SUBMITTED)
    with pytest.raises(InvalidTransitionError):
        application.transition(ApplicationStatus.FAILED)


def test_submitted_can_progress_to_interview():
    application = JobApplication.start(make_job(), make_profile())
    application.transition(ApplicationStatus.SUBMITTED)
    application.transition(ApplicationStatus.INTERVIEW)
    assert application.status == ApplicationStatus.INTERVIEW


def test_terminal_statuses():
    application = JobApplication.start(make_job(), make_profile())
    application.transition(ApplicationStatus.SKIPPED, "Skipped by user")
    assert application.is_terminal
    with pytest.raises(InvalidTransitionError):
        application.note("too late")


def test_note_keeps_status():
    application = JobApplication.start(make_job(), make_profile())
    application.note("Dry run: filled 1 form page(s), stopped before submit")
    assert application.status == ApplicationStatus.DRAFT
    assert application.events[-1].type == EventType.NOTE


def test_record_fill_accumulates():
    application = JobApplication.start(make_job(), make_profile())
    application.record_fill(FillResult(fields_filled=2, values={"Email": "a@b.com"}))
    application.record_fill(FillResult(fields_filled=1, errors=["bad"], values={"Phone": "555"}))
    assert application.fields_filled == 3
    assert application.errors == ["bad"]
    assert application.submission.form_fields == {"Email": "a@b.com", "Phone": "555"}


def test_profile_from_dict():
    profile = Profile.from_dict({
        "first_name": "Jane",
        "last_name": "Doe",
        "contact": {"email": "a@b.com"},
        "experience": [{"title": "Designer", "company": "Acme", "start_date": "2019-01"}],
        "education": [{"institution": "UT", "degree": "BFA", "field_of_study": "Design"}],
        "skills": ["Figma", {"name": "Sketch", "level": "expert"}],
        "preferences": {"titles": ["Designer"], "min_salary": 100000},
        "resume_path": "resume.pdf",
    })
    assert profile.full_name == "Jane Doe"
    assert profile.contact.email == "a@b.com"
    assert profile.experience[0].company == "Acme"
    assert [skill.name for skill in profile.skills] == ["Figma", "Sketch"]
    assert profile.preferences.min_salary == 100000


def test_profile_prompt_json_omits_local_details():
    profile = make_profile(resume_path="/home/jane/resume.pdf")
    data = json.loads(profile.to_prompt_json(limit=10000))
    assert "resume_path" not in data
    assert "id" not in data
    assert data["contact"]["email"] == "a@b.com"


def test_job_listing_from_dict_ignores_unknown_keys():
    job = JobListing.from_dict({
        "title": "Designer",
        "company": "Acme",
        "url": "https://acme.com/jobs/1",
        "requirements": ["Figma"],
        "unexpected": True,
    })
    assert job.requirements == ("Figma",)
    assert job.match_score is None


def test_with_match_leaves_original_untouched():
    job = make_job()
    scored = job.with_match(82, "Strong fit")
    assert scored.match_score == 82
    assert scored.id == job.id
    assert job.match_score is None


def test_hunt_result_counts_by_status():
    result = HuntResult()
    for status in (ApplicationStatus.SUBMITTED, ApplicationStatus.SKIPPED,
                   ApplicationStatus.REQUIRES_MANUAL, ApplicationStatus.FAILED, ApplicationStatus.ERROR):
        application = JobApplication.start(make_job(), make_profile())
        application.transition(status)
        result.count(application)
    assert result.applications_submitted == 1
    assert result.applications_skipped == 1
    assert result.applications_manual == 1
    assert result.applications_failed == 2
    assert len(result.applications) == 5


def test_credentials_configured():
    assert PlatformCredentials("linkedin", "a@b.com", "secret").is_configured
    assert PlatformCredentials("linkedin", cookies=[{"name": "li_at"}]).is_configured
    assert not PlatformCredentials("linkedin", "a@b.com").is_configured
