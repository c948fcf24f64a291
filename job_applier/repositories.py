"""
Repositories
============
Storage interfaces the orchestrator writes through, with in-memory
implementations and a YAML-backed profile store.

Usage:
    profiles = YamlProfileStore("profile.yaml")
    profile = profiles.find_all()[0]

    jobs = InMemoryJobRepository()
    job = jobs.upsert(listing)          # same URL -> same stored id
"""

import copy
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from job_applier.errors import ConfigError
from job_applier.models import (
    ApplicationEvent,
    ApplicationStatus,
    JobApplication,
    JobListing,
    Profile,
    utc_now,
)

logger = logging.getLogger(__name__)


class ProfileStore(ABC):
    @abstractmethod
    def find_all(self) -> List[Profile]:
        ...

    @abstractmethod
    def create(self, profile: Profile) -> Profile:
        ...

    def get(self, profile_id: str) -> Optional[Profile]:
        for profile in self.find_all():
            if profile.id == profile_id:
                return profile
        return None


class JobRepository(ABC):
    @abstractmethod
    def upsert(self, job: JobListing) -> JobListing:
        """Store a job keyed by URL; returns the stored listing."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobListing]:
        ...

    @abstractmethod
    def find_by_url(self, url: str) -> Optional[JobListing]:
        ...


class ApplicationRepository(ABC):
    @abstractmethod
    def create(self, application: JobApplication) -> JobApplication:
        ...

    @abstractmethod
    def update_status(self, application_id: str, status: ApplicationStatus, message: str = "") -> None:
        ...

    @abstractmethod
    def add_event(self, application_id: str, event: ApplicationEvent) -> None:
        ...

    @abstractmethod
    def get(self, application_id: str) -> Optional[JobApplication]:
        ...

    @abstractmethod
    def find_by_job(self, job_id: str, profile_id: Optional[str] = None) -> List[JobApplication]:
        ...

    def check_already_applied(self, job_id: str, profile_id: Optional[str] = None) -> bool:
        return any(app.status == ApplicationStatus.SUBMITTED or app.applied_at
                   for app in self.find_by_job(job_id, profile_id))


class InMemoryProfileStore(ProfileStore):
    def __init__(self, profiles: Optional[List[Profile]] = None):
        self._profiles: Dict[str, Profile] = {p.id: p for p in profiles or []}

    def find_all(self) -> List[Profile]:
        return list(self._profiles.values())

    def create(self, profile: Profile) -> Profile:
        self._profiles[profile.id] = profile
        return profile


def read_profiles(path: Union[str, Path]) -> List[Profile]:
    """
    Profiles from a YAML file: a single profile mapping, a list of them, or
    {"profiles": [...]}.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read profile file {path}: {exc}", {"path": str(path)}) from exc
    if isinstance(data, dict) and "profiles" in data:
        data = data["profiles"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ConfigError(f"Profile file {path} must hold a mapping or a list", {"path": str(path)})
    try:
        return [Profile.from_dict(item) for item in data]
    except TypeError as exc:
        raise ConfigError(f"Invalid profile in {path}: {exc}", {"path": str(path)}) from exc


def load_profile(path: Union[str, Path]) -> Profile:
    profiles = read_profiles(path)
    if not profiles:
        raise ConfigError(f"No profile found in {path}", {"path": str(path)})
    return profiles[0]


class YamlProfileStore(ProfileStore):
    """Profiles kept in one YAML file. Created profiles are appended and written back."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def find_all(self) -> List[Profile]:
        if not self.path.exists():
            return []
        return read_profiles(self.path)

    def create(self, profile: Profile) -> Profile:
        profiles = [p for p in self.find_all() if p.id != profile.id] + [profile]
        payload = {"profiles": [p.to_dict() for p in profiles]}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return profile


class InMemoryJobRepository(JobRepository):
    def __init__(self):
        self._jobs: Dict[str, JobListing] = {}
        self._by_url: Dict[str, str] = {}

    def upsert(self, job: JobListing) -> JobListing:
        existing_id = self._by_url.get(job.url)
        if existing_id is not None and existing_id != job.id:
            stored = self._jobs[existing_id]
            if job.match_score is not None:
                stored = stored.with_match(job.match_score, job.match_analysis)
            self._jobs[existing_id] = stored
            return stored
        self._jobs[job.id] = job
        self._by_url[job.url] = job.id
        return job

    def get(self, job_id: str) -> Optional[JobListing]:
        return self._jobs.get(job_id)

    def find_by_url(self, url: str) -> Optional[JobListing]:
        job_id = self._by_url.get(url)
        return self._jobs.get(job_id) if job_id else None

    def find_all(self) -> List[JobListing]:
        return list(self._jobs.values())


class InMemoryApplicationRepository(ApplicationRepository):
    """
    Keeps its own copy of each application. Status and events only change
    through update_status() and add_event(), the way a database row would.
    """

    def __init__(self):
        self._applications: Dict[str, JobApplication] = {}

    def create(self, application: JobApplication) -> JobApplication:
        stored = copy.deepcopy(application)
        stored.events = []
        self._applications[stored.id] = stored
        return stored

    def _require(self, application_id: str) -> JobApplication:
        try:
            return self._applications[application_id]
        except KeyError:
            raise KeyError(f"Unknown application: {application_id}") from None

    def update_status(self, application_id: str, status: ApplicationStatus, message: str = "") -> None:
        stored = self._require(application_id)
        stored.status = status
        if message:
            stored.message = message
        stored.updated_at = utc_now()

    def add_event(self, application_id: str, event: ApplicationEvent) -> None:
        self._require(application_id).events.append(event)

    def get(self, application_id: str) -> Optional[JobApplication]:
        return self._applications.get(application_id)

    def find_by_job(self, job_id: str, profile_id: Optional[str] = None) -> List[JobApplication]:
        return [app for app in self._applications.values()
                if app.job_id == job_id and (profile_id is None or app.profile_id == profile_id)]

    def find_all(self) -> List[JobApplication]:
        return list(self._applications.values())
