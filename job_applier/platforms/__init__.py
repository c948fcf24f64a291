"""
Platform adapters for sites with their own apply flow.
"""

from typing import Dict, Type

from job_applier.browser import BrowserSession
from job_applier.config import AppConfig
from job_applier.platforms.base import (
    AuthStatus,
    PlatformAdapter,
    RateLimiter,
    SearchQuery,
    extract_requirements,
    extract_skills,
)
from job_applier.platforms.indeed import IndeedAdapter, parse_salary
from job_applier.platforms.linkedin import LinkedInAdapter

ADAPTERS: Dict[str, Type[PlatformAdapter]] = {
    LinkedInAdapter.platform: LinkedInAdapter,
    IndeedAdapter.platform: IndeedAdapter,
}


def get_adapter(platform: str, session: BrowserSession, config: AppConfig, **kwargs) -> PlatformAdapter:
    """Build the adapter registered for a platform name."""
    try:
        adapter_class = ADAPTERS[platform.lower()]
    except KeyError:
        raise ValueError(f"Unknown platform: {platform}") from None
    return adapter_class.from_config(session, config, **kwargs)


__all__ = [
    "ADAPTERS",
    "AuthStatus",
    "IndeedAdapter",
    "LinkedInAdapter",
    "PlatformAdapter",
    "RateLimiter",
    "SearchQuery",
    "extract_requirements",
    "extract_skills",
    "get_adapter",
    "parse_salary",
]
