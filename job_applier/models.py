"""
Job Applier Data Model
======================
Site-agnostic records the rest of the package reasons about:
- FormField / PageAnalysis: what a loaded page looks like
- FillResult: what one fill pass achieved
- Profile / JobListing: the inputs of an application
- JobApplication: the durable record of one attempt, with its event trail
"""

import json
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from job_applier.errors import InvalidTransitionError


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"


class PageType(str, Enum):
    JOB_LISTING = "job_listing"
    JOB_DETAILS = "job_details"
    APPLICATION_FORM = "application_form"
    LOGIN = "login"
    CONFIRMATION = "confirmation"
    OTHER = "other"


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    PENDING_CONFIRMATION = "pending_confirmation"
    SUBMITTED = "submitted"
    VIEWED = "viewed"
    IN_REVIEW = "in_review"
    INTERVIEW = "interview"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"
    SKIPPED = "skipped"
    REQUIRES_MANUAL = "requires_manual"
    FAILED = "failed"
    ERROR = "error"


class ApplicationMethod(str, Enum):
    EASY_APPLY = "easy-apply"
    EXTERNAL = "external"
    DIRECT = "direct"
    EMAIL = "email"
    REFERRAL = "referral"


class EventType(str, Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    STATUS_CHANGE = "status_change"
    ERROR = "error"
    NOTE = "note"


_ATTEMPT_OUTCOMES = {
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.SKIPPED,
    ApplicationStatus.REQUIRES_MANUAL,
    ApplicationStatus.FAILED,
    ApplicationStatus.ERROR,
}

# Statuses an application may move to from each status. Anything missing is terminal.
STATUS_TRANSITIONS: Dict[ApplicationStatus, frozenset] = {
    ApplicationStatus.DRAFT: frozenset(_ATTEMPT_OUTCOMES | {ApplicationStatus.PENDING_CONFIRMATION}),
    ApplicationStatus.PENDING_CONFIRMATION: frozenset(_ATTEMPT_OUTCOMES | {ApplicationStatus.DRAFT}),
    ApplicationStatus.SUBMITTED: frozenset({
        ApplicationStatus.VIEWED, ApplicationStatus.IN_REVIEW, ApplicationStatus.INTERVIEW,
        ApplicationStatus.OFFER, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN,
        ApplicationStatus.EXPIRED,
    }),
    ApplicationStatus.VIEWED: frozenset({
        ApplicationStatus.IN_REVIEW, ApplicationStatus.INTERVIEW, ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN, ApplicationStatus.EXPIRED,
    }),
    ApplicationStatus.IN_REVIEW: frozenset({
        ApplicationStatus.INTERVIEW, ApplicationStatus.OFFER, ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    }),
    ApplicationStatus.INTERVIEW: frozenset({
        ApplicationStatus.OFFER, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN,
    }),
}


@dataclass(frozen=True)
class FieldOption:
    value: str
    text: str


@dataclass(frozen=True)
class FormField:
    """One input control on an application form, independent of site markup."""
    selector: str
    type: FieldType
    label: str = ""
    required: bool = False
    options: Tuple[FieldOption, ...] = ()
    profile_mapping: Optional[str] = None
    value: Optional[str] = None
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.name or self.selector


@dataclass(frozen=True)
class JobLink:
    title: str
    selector: str
    url: str = ""


@dataclass(frozen=True)
class PageAnalysis:
    """Everything known about one loaded page. Replaced, never updated."""
    page_type: PageType
    fields: Tuple[FormField, ...] = ()
    title: str = ""
    url: str = ""
    next_button: Optional[str] = None
    submit_button: Optional[str] = None
    apply_button: Optional[str] = None
    login_required: bool = False
    captcha_detected: bool = False
    jobs: Tuple[JobLink, ...] = ()
    errors: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()

    @property
    def is_form(self) -> bool:
        return self.page_type == PageType.APPLICATION_FORM and bool(self.fields)


@dataclass
class FillResult:
    fields_filled: int = 0
    fields_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    values: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        # A partial fill is still usable; only "nothing worked and something broke" fails.
        return not (self.errors and self.fields_filled == 0)

    def merge(self, other: "FillResult") -> "FillResult":
        return FillResult(
            fields_filled=self.fields_filled + other.fields_filled,
            fields_skipped=self.fields_skipped + other.fields_skipped,
            errors=self.errors + other.errors,
            values={**self.values, **other.values},
        )


@dataclass
class ContactInfo:
    email: str = ""
    phone: str = ""
    linkedin: str = ""
    github: str = ""
    portfolio: str = ""
    location: str = ""


@dataclass
class WorkExperience:
    title: str
    company: str
    start_date: str = ""
    end_date: Optional[str] = None
    description: str = ""
    skills: List[str] = field(default_factory=list)


@dataclass
class Education:
    institution: str
    degree: str = ""
    field_of_study: str = ""
    graduation_year: Optional[str] = None


@dataclass
class Skill:
    name: str
    level: str = ""
    years: Optional[float] = None


@dataclass
class JobPreferences:
    titles: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    remote: bool = True
    min_salary: Optional[int] = None
    work_authorization: str = ""
    requires_sponsorship: bool = False


@dataclass
class Profile:
    """A candidate profile, loaded from YAML or a profile store."""
    first_name: str
    last_name: str
    contact: ContactInfo = field(default_factory=ContactInfo)
    headline: str = ""
    summary: str = ""
    experience: List[WorkExperience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    preferences: JobPreferences = field(default_factory=JobPreferences)
    resume_path: str = ""
    id: str = field(default_factory=new_id)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            contact=ContactInfo(**(data.get("contact") or {})),
            headline=data.get("headline", ""),
            summary=data.get("summary", ""),
            experience=[WorkExperience(**item) for item in data.get("experience") or []],
            education=[Education(**item) for item in data.get("education") or []],
            skills=[Skill(**item) if isinstance(item, dict) else Skill(name=str(item))
                    for item in data.get("skills") or []],
            preferences=JobPreferences(**(data.get("preferences") or {})),
            resume_path=data.get("resume_path", ""),
            id=data.get("id") or new_id(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_prompt_json(self, limit: int = 1500) -> str:
        """Compact JSON of the profile for model prompts, cut at `limit` chars."""
        data = self.to_dict()
        data.pop("resume_path", None)
        data.pop("id", None)
        return json.dumps(data, indent=1)[:limit]


@dataclass(frozen=True)
class JobListing:
    """A discovered job. Only the match fields are ever filled in later."""
    title: str
    company: str
    url: str
    id: str = field(default_factory=new_id)
    platform: str = "company_site"
    external_id: str = ""
    location: str = ""
    description: str = ""
    easy_apply: bool = False
    salary: Optional[Dict[str, Any]] = None
    requirements: Tuple[str, ...] = ()
    required_skills: Tuple[str, ...] = ()
    match_score: Optional[float] = None
    match_analysis: str = ""
    discovered_at: str = field(default_factory=utc_now)

    def with_match(self, score: float, analysis: str = "") -> "JobListing":
        return replace(self, match_score=score, match_analysis=analysis)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobListing":
        known = {name for name in cls.__dataclass_fields__}
        values = {key: value for key, value in data.items() if key in known}
        for key in ("requirements", "required_skills"):
            if key in values:
                values[key] = tuple(values[key])
        return cls(**values)


@dataclass(frozen=True)
class JobContext:
    """The slice of a job that value resolution needs."""
    title: str = ""
    company: str = ""
    description: str = ""

    @classmethod
    def from_job(cls, job: JobListing) -> "JobContext":
        return cls(title=job.title, company=job.company, description=job.description)


@dataclass
class ApplicationSubmission:
    """Snapshot of what was sent with an application."""
    resume_used: str = ""
    cover_letter: str = ""
    form_fields: Dict[str, str] = field(default_factory=dict)
    answers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ApplicationEvent:
    application_id: str
    type: EventType
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)


@dataclass
class JobApplication:
    """
    The record of one attempt to apply to one job for one profile.

    Status only changes through transition(), which enforces
    STATUS_TRANSITIONS and appends an event to the audit trail.
    """
    job_id: str
    profile_id: str
    method: ApplicationMethod = ApplicationMethod.EXTERNAL
    platform: str = "company_site"
    status: ApplicationStatus = ApplicationStatus.DRAFT
    message: str = ""
    cover_letter_id: Optional[str] = None
    submission: ApplicationSubmission = field(default_factory=ApplicationSubmission)
    platform_application_id: Optional[str] = None
    fields_filled: int = 0
    errors: List[str] = field(default_factory=list)
    screenshots: List[str] = field(default_factory=list)
    events: List[ApplicationEvent] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    applied_at: Optional[str] = None

    @classmethod
    def start(cls, job: JobListing, profile: Profile,
              method: ApplicationMethod = ApplicationMethod.EXTERNAL,
              submission: Optional[ApplicationSubmission] = None) -> "JobApplication":
        application = cls(
            job_id=job.id,
            profile_id=profile.id,
            method=method,
            platform=job.platform,
            submission=submission or ApplicationSubmission(resume_used=profile.resume_path),
        )
        application.add_event(EventType.CREATED, f"Application started for {job.title} at {job.company}")
        return application

    @property
    def is_terminal(self) -> bool:
        return not STATUS_TRANSITIONS.get(self.status)

    def can_transition(self, status: ApplicationStatus) -> bool:
        return status in STATUS_TRANSITIONS.get(self.status, frozenset())

    def transition(self, status: ApplicationStatus, message: str = "") -> None:
        if not self.can_transition(status):
            raise InvalidTransitionError(self.status.value, status.value)
        previous = self.status
        self.status = status
        if message:
            self.message = message
        self.updated_at = utc_now()
        if status == ApplicationStatus.SUBMITTED:
            self.applied_at = self.updated_at
            self.add_event(EventType.SUBMITTED, message or "Application submitted")
        elif status in (ApplicationStatus.FAILED, ApplicationStatus.ERROR):
            self.add_event(EventType.ERROR, message or status.value,
                           {"from": previous.value, "to": status.value})
        else:
            self.add_event(EventType.STATUS_CHANGE, message or status.value,
                           {"from": previous.value, "to": status.value})

    def add_event(self, event_type: EventType, description: str,
                  metadata: Optional[Dict[str, Any]] = None) -> ApplicationEvent:
        event = ApplicationEvent(self.id, event_type, description, metadata or {})
        self.events.append(event)
        return event

    def note(self, message: str) -> None:
        """Update the outcome message without changing status."""
        if self.is_terminal:
            raise InvalidTransitionError(self.status.value, self.status.value)
        self.message = message
        self.updated_at = utc_now()
        self.add_event(EventType.NOTE, message)

    def record_fill(self, result: FillResult) -> None:
        self.fields_filled += result.fields_filled
        self.errors.extend(result.errors)
        self.submission.form_fields.update(result.values)


@dataclass
class HuntConfig:
    keywords: List[str] = field(default_factory=list)
    location: str = ""
    remote: bool = True
    include_companies: List[str] = field(default_factory=list)
    max_jobs: int = 10
    match_threshold: float = 50
    auto_apply: bool = True
    require_confirmation: bool = False
    dry_run: bool = False


@dataclass
class HuntResult:
    jobs_discovered: int = 0
    jobs_matched: int = 0
    applications_attempted: int = 0
    applications_submitted: int = 0
    applications_failed: int = 0
    applications_skipped: int = 0
    applications_manual: int = 0
    applications: List[JobApplication] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def count(self, application: JobApplication) -> None:
        self.applications.append(application)
        status = application.status
        if status == ApplicationStatus.SUBMITTED:
            self.applications_submitted += 1
        elif status == ApplicationStatus.SKIPPED:
            self.applications_skipped += 1
        elif status == ApplicationStatus.REQUIRES_MANUAL:
            self.applications_manual += 1
        elif status in (ApplicationStatus.FAILED, ApplicationStatus.ERROR):
            self.applications_failed += 1


@dataclass
class PlatformCredentials:
    platform: str
    email: str = ""
    password: str = ""
    cookies: Optional[List[Dict[str, Any]]] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.email and self.password) or bool(self.cookies)
