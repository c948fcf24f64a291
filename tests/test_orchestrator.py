"""Tests for the discover -> match -> apply pipeline."""

import asyncio

import pytest

from fakes import FakeAnalyzer, FakeNavigator, FakePage, FakeSession, make_job, make_profile
from job_applier.browser import Pacer
from job_applier.config import AppConfig, PlatformSettings
from job_applier.discovery import JobDiscovery, StaticJobDiscovery
from job_applier.errors import (
    AuthenticationError,
    BrowserError,
    CaptchaDetectedError,
    NavigationError,
    RateLimitError,
)
from job_applier.matching import JobMatcher, MatchAnalysis
from job_applier.models import (
    ApplicationMethod,
    ApplicationStatus,
    HuntConfig,
    JobApplication,
    JobLink,
    JobListing,
    PageAnalysis,
    PageType,
    PlatformCredentials,
)
from job_applier.orchestrator import HuntCallbacks, JobHunterOrchestrator

LONG_DESCRIPTION = "Design delightful product experiences. " * 10


class FakeMatcher(JobMatcher):
    def __init__(self, scores):
        self.scores = scores
        self.calls = []

    async def match(self, job, profile):
        self.calls.append(job.title)
        return MatchAnalysis(self.scores.get(job.title, 0), f"{job.title} scored")


class FailingDiscovery(JobDiscovery):
    name = "broken"

    async def discover(self, hunt_config):
        raise BrowserError("search page would not load")


class FakePlatformAdapter:
    platform = "linkedin"
    display_name = "LinkedIn"

    def __init__(self, logged_in=True, auth_error=None, apply_error=None):
        self.logged_in = logged_in
        self.auth_error = auth_error
        self.apply_error = apply_error
        self.auth_calls = []
        self.applied = []
        self.closed = False

    async def authenticate(self, credentials=None):
        self.auth_calls.append(credentials)
        if self.auth_error is not None:
            raise self.auth_error
        return self.logged_in

    async def apply_to_job(self, job, profile, submission=None):
        if self.apply_error is not None:
            raise self.apply_error
        self.applied.append(job)
        application = JobApplication.start(job, profile, ApplicationMethod.EASY_APPLY)
        application.transition(ApplicationStatus.SUBMITTED, "Application submitted via LinkedIn")
        return application

    async def get_job_details(self, external_id):
        return JobListing(title="Product Designer", company="Acme",
                          url=f"https://www.linkedin.com/jobs/view/{external_id}/",
                          description=LONG_DESCRIPTION, required_skills=("Figma",))

    async def close(self):
        self.closed = True


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def static_jobs(*titles):
    return StaticJobDiscovery([
        make_job(title=title, url=f"https://acme.com/jobs/{index}", description=LONG_DESCRIPTION)
        for index, title in enumerate(titles)
    ])


def make_orchestrator(navigator=None, session=None, **kwargs):
    kwargs.setdefault("pacer", Pacer.instant())
    return JobHunterOrchestrator(session or FakeSession(started=False), navigator or FakeNavigator(), **kwargs)


def hunt(orchestrator, profile=None, callbacks=None, **config):
    return asyncio.run(orchestrator.hunt(profile or make_profile(), HuntConfig(**config), callbacks))


# ----------------------------------------------------------------------
# Hunts
# ----------------------------------------------------------------------

def test_hunt_applies_to_best_matches_first():
    navigator = FakeNavigator()
    matcher = FakeMatcher({"Designer A": 90, "Designer B": 60, "Designer C": 40, "Designer D": 75})
    progress = []
    orchestrator = make_orchestrator(navigator, matcher=matcher,
                                     discovery=[static_jobs("Designer A", "Designer B", "Designer C", "Designer D")])

    result = hunt(orchestrator, callbacks=HuntCallbacks(on_progress=progress.append),
                  max_jobs=2, match_threshold=50)

    assert result.jobs_discovered == 4
    assert result.jobs_matched == 2
    assert [job.title for job in navigator.calls] == ["Designer A", "Designer D"]
    assert result.applications_attempted == 2
    assert result.applications_submitted == 2
    assert result.errors == []
    assert progress[0] == "Starting job hunt: any role"
    assert progress[-1] == "Hunt complete: 2/2 submitted"
    assert "Skip: Designer C at Acme (40% < 50%)" in progress


def test_hunt_without_auto_apply_only_matches():
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, matcher=FakeMatcher({"Designer": 80}),
                                     discovery=[static_jobs("Designer")])
    result = hunt(orchestrator, auto_apply=False)
    assert result.jobs_matched == 1
    assert navigator.calls == []
    assert orchestrator.jobs.find_by_url("https://acme.com/jobs/0").match_score == 80


def test_hunt_without_matcher_uses_neutral_score():
    orchestrator = make_orchestrator(discovery=[static_jobs("Designer")])
    assert hunt(orchestrator, match_threshold=50).jobs_matched == 1
    assert hunt(make_orchestrator(discovery=[static_jobs("Designer")]), match_threshold=51).jobs_matched == 0


def test_hunt_skips_jobs_already_applied_to():
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, discovery=[static_jobs("Designer")])
    profile = make_profile()
    first = hunt(orchestrator, profile)
    second = hunt(orchestrator, profile)
    assert first.applications_submitted == 1
    assert second.applications_attempted == 0
    assert len(navigator.calls) == 1


def test_confirmation_refused():
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, discovery=[static_jobs("Designer")])
    result = hunt(orchestrator, callbacks=HuntCallbacks(on_confirmation_required=lambda job: False),
                  require_confirmation=True)
    assert result.applications_skipped == 1
    assert result.applications_attempted == 0
    assert result.applications[0].message == "Skipped by user"
    assert navigator.calls == []


def test_async_confirmation_accepted():
    async def confirm(job):
        return True

    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, discovery=[static_jobs("Designer")])
    result = hunt(orchestrator, callbacks=HuntCallbacks(on_confirmation_required=confirm),
                  require_confirmation=True)
    assert result.applications_submitted == 1


def test_failed_applications_are_reported():
    navigator = FakeNavigator(outcomes={"Designer B": ApplicationStatus.FAILED,
                                        "Designer C": ApplicationStatus.REQUIRES_MANUAL})
    orchestrator = make_orchestrator(navigator, discovery=[static_jobs("Designer A", "Designer B", "Designer C")])
    result = hunt(orchestrator)
    assert result.applications_submitted == 1
    assert result.applications_failed == 1
    assert result.applications_manual == 1
    assert result.errors == ["Designer B at Acme: failed for Designer B"]
    stored = orchestrator.applications.find_all()
    assert len(stored) == 3
    assert all(application.events for application in stored)


def test_hourly_application_limit():
    clock = Clock()
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, discovery=[static_jobs("Designer A", "Designer B")],
                                     max_applications_per_hour=1, clock=clock)
    result = hunt(orchestrator)
    assert result.applications_submitted == 1
    assert result.errors == ["Application limit reached (1 per hour)"]

    clock.now += 3601
    assert orchestrator.application_limit_reached() is None


def test_daily_application_limit():
    clock = Clock()
    orchestrator = make_orchestrator(max_applications_per_hour=10, max_applications_per_day=2, clock=clock)
    orchestrator._submitted_at = [clock.now - 7200, clock.now - 5000]
    assert orchestrator.application_limit_reached() == "Application limit reached (2 per day)"
    clock.now += 86400
    assert orchestrator.application_limit_reached() is None


def test_discovery_failure_is_recorded_and_hunt_continues():
    errors = []
    orchestrator = make_orchestrator(discovery=[FailingDiscovery(), static_jobs("Designer")])
    result = hunt(orchestrator, callbacks=HuntCallbacks(on_error=lambda exc, job: errors.append(exc)))
    assert result.errors == ["Discovery via broken failed: search page would not load"]
    assert result.applications_submitted == 1
    assert isinstance(errors[0], BrowserError)


def test_discovered_jobs_are_deduplicated_by_url():
    discovered = []
    orchestrator = make_orchestrator(discovery=[static_jobs("Designer"), static_jobs("Designer")])
    result = hunt(orchestrator, callbacks=HuntCallbacks(on_job_discovered=discovered.append), auto_apply=False)
    assert result.jobs_discovered == 1
    assert len(discovered) == 1


def test_short_description_is_fetched_from_job_page():
    page = FakePage(body="  We are hiring   a designer.  ")
    session = FakeSession([page])
    orchestrator = make_orchestrator(session=session,
                                     discovery=[StaticJobDiscovery([make_job()])])
    hunt(orchestrator, auto_apply=False)
    assert page.visited == ["https://acme.com/jobs/1"]
    assert orchestrator.jobs.find_by_url("https://acme.com/jobs/1").description == "We are hiring a designer."


def test_short_description_is_fetched_from_platform():
    job = make_job(url="https://www.linkedin.com/jobs/view/42/", platform="linkedin", external_id="42")
    orchestrator = make_orchestrator(adapters={"linkedin": FakePlatformAdapter()},
                                     discovery=[StaticJobDiscovery([job])])
    hunt(orchestrator, auto_apply=False)
    stored = orchestrator.jobs.find_by_url(job.url)
    assert stored.description == LONG_DESCRIPTION
    assert stored.required_skills == ("Figma",)


# ----------------------------------------------------------------------
# Routing
# ----------------------------------------------------------------------

def easy_apply_job():
    return make_job(url="https://www.linkedin.com/jobs/view/42/", platform="linkedin",
                    external_id="42", easy_apply=True)


def apply(orchestrator, job=None, dry_run=False):
    return asyncio.run(orchestrator.apply(job or easy_apply_job(), make_profile(), dry_run=dry_run))


def test_easy_apply_jobs_go_through_adapter():
    adapter = FakePlatformAdapter()
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, adapters={"linkedin": adapter})
    credentials = PlatformCredentials("linkedin", "jane@example.com", "secret")
    orchestrator.set_platform_credentials("linkedin", credentials)

    first = apply(orchestrator)
    second = apply(orchestrator)
    assert first.status == ApplicationStatus.SUBMITTED
    assert second.status == ApplicationStatus.SUBMITTED
    assert adapter.auth_calls == [credentials]
    assert navigator.calls == []


def test_jobs_without_easy_apply_use_navigator():
    adapter = FakePlatformAdapter()
    navigator = FakeNavigator()
    orchestrator = make_orchestrator(navigator, adapters={"linkedin": adapter})
    job = make_job(platform="linkedin", external_id="42")
    assert apply(orchestrator, job).status == ApplicationStatus.SUBMITTED
    assert navigator.calls == [job]
    assert adapter.auth_calls == []


def test_adapter_dry_run_is_skipped():
    adapter = FakePlatformAdapter()
    application = apply(make_orchestrator(adapters={"linkedin": adapter}), dry_run=True)
    assert application.status == ApplicationStatus.SKIPPED
    assert application.message == "Dry run: LinkedIn apply not attempted"
    assert adapter.auth_calls == []


def test_not_logged_in_requires_manual():
    application = apply(make_orchestrator(adapters={"linkedin": FakePlatformAdapter(logged_in=False)}))
    assert application.status == ApplicationStatus.REQUIRES_MANUAL
    assert application.message == "Not logged in to LinkedIn. Please log in first."


def test_captcha_requires_manual():
    adapter = FakePlatformAdapter(auth_error=CaptchaDetectedError("linkedin"))
    application = apply(make_orchestrator(adapters={"linkedin": adapter}))
    assert application.status == ApplicationStatus.REQUIRES_MANUAL
    assert application.message == "CAPTCHA detected. Please complete manual login."


def test_captcha_stops_further_logins():
    adapter = FakePlatformAdapter(auth_error=CaptchaDetectedError("linkedin"))
    orchestrator = make_orchestrator(adapters={"linkedin": adapter})
    results = [apply(orchestrator) for _ in range(3)]
    assert len(adapter.auth_calls) == 1
    assert [a.status for a in results] == [ApplicationStatus.REQUIRES_MANUAL] * 3
    assert results[-1].message == "CAPTCHA detected. Please complete manual login."


def test_rejected_login_is_not_retried_until_credentials_change():
    adapter = FakePlatformAdapter(auth_error=AuthenticationError("LinkedIn login failed", "linkedin"))
    orchestrator = make_orchestrator(adapters={"linkedin": adapter})
    apply(orchestrator)
    second = apply(orchestrator)
    assert len(adapter.auth_calls) == 1
    assert second.status == ApplicationStatus.REQUIRES_MANUAL
    assert second.message == "LinkedIn login failed"

    adapter.auth_error = None
    orchestrator.set_platform_credentials("linkedin", PlatformCredentials("linkedin", "a@b.com", "new"))
    assert apply(orchestrator).status == ApplicationStatus.SUBMITTED
    assert len(adapter.auth_calls) == 2


def test_rate_limit_fails_the_attempt():
    adapter = FakePlatformAdapter(apply_error=RateLimitError("linkedin", 30))
    application = apply(make_orchestrator(adapters={"linkedin": adapter}))
    assert application.status == ApplicationStatus.FAILED
    assert application.message == "Rate limited on linkedin, retry in 30s"


def test_new_credentials_reset_login_cache():
    adapter = FakePlatformAdapter(logged_in=False)
    orchestrator = make_orchestrator(adapters={"linkedin": adapter})
    apply(orchestrator)
    orchestrator.set_platform_credentials("linkedin", PlatformCredentials("linkedin", "a@b.com", "pw"))
    apply(orchestrator)
    assert len(adapter.auth_calls) == 2


# ----------------------------------------------------------------------
# Quick apply and wiring
# ----------------------------------------------------------------------

def test_quick_apply_finds_role_on_careers_page():
    listing = PageAnalysis(PageType.JOB_LISTING, jobs=(
        JobLink("Senior Product Designer", "a.role", "/jobs/7"),
    ))
    navigator = FakeNavigator(FakeAnalyzer(listing, careers={"Acme": "https://acme.com/careers"}))
    orchestrator = make_orchestrator(navigator, session=FakeSession([FakePage()]))
    application = asyncio.run(orchestrator.quick_apply("Acme", "Product Designer", make_profile()))
    assert application.status == ApplicationStatus.SUBMITTED
    assert navigator.calls[0].url == "https://acme.com/jobs/7"
    assert orchestrator.applications.get(application.id) is not None


def test_quick_apply_without_careers_page():
    orchestrator = make_orchestrator(FakeNavigator(FakeAnalyzer(PageAnalysis(PageType.OTHER))))
    with pytest.raises(NavigationError):
        asyncio.run(orchestrator.quick_apply("Nowhere Inc", "Designer", make_profile()))


def test_from_config(tmp_path):
    config = AppConfig(data_dir=str(tmp_path), platforms={
        "linkedin": PlatformSettings(email="jane@example.com", password="secret"),
        "indeed": PlatformSettings(use_easy_apply=False),
    })
    orchestrator = JobHunterOrchestrator.from_config(config, FakeSession())
    assert set(orchestrator.adapters) == {"linkedin"}
    assert orchestrator.matcher is None
    assert orchestrator._credentials["linkedin"].password == "secret"
    assert orchestrator.max_applications_per_hour == config.rate_limit.max_applications_per_hour
    assert (tmp_path / "screenshots").is_dir()


def test_close_closes_adapters():
    adapter = FakePlatformAdapter()
    asyncio.run(make_orchestrator(adapters={"linkedin": adapter}).close())
    assert adapter.closed
