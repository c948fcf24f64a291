"""
Job Applier Errors
==================
Exception hierarchy shared by every layer of the package.

Per-field and per-page problems are never raised; they are collected as
strings on FillResult / JobApplication. These exceptions cover the
structural cases: bad configuration, a browser that cannot reach a page,
an authentication wall, a platform rate limit, a CAPTCHA.
"""

from typing import Any, Dict, Optional


class JobApplierError(Exception):
    """Base error carrying a machine-readable code and optional context."""

    def __init__(self, message: str, code: str = "JOB_APPLIER_ERROR",
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "context": self.context}


class ConfigError(JobApplierError):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIG_ERROR", context)


class BrowserError(JobApplierError):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", context)


class NavigationError(BrowserError):
    """Raised when a page cannot be reached or never settles."""


class AuthenticationError(JobApplierError):
    def __init__(self, message: str, platform: str = "",
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTH_ERROR", {"platform": platform, **(context or {})})
        self.platform = platform


class CaptchaDetectedError(AuthenticationError):
    """A CAPTCHA challenge was shown. Always a hard stop, never solved."""

    def __init__(self, platform: str = ""):
        super().__init__("CAPTCHA detected. Please complete manual login.", platform)
        self.code = "CAPTCHA_DETECTED"


class RateLimitError(JobApplierError):
    def __init__(self, platform: str, retry_after: Optional[float] = None):
        message = f"Rate limited on {platform}"
        if retry_after is not None:
            message += f", retry in {int(retry_after)}s"
        super().__init__(message, "RATE_LIMIT_ERROR",
                         {"platform": platform, "retry_after": retry_after})
        self.platform = platform
        self.retry_after = retry_after


class LanguageModelError(JobApplierError):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "LLM_ERROR", context)


class InvalidTransitionError(JobApplierError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move application from {current} to {target}",
                         "INVALID_TRANSITION", {"from": current, "to": target})


class FieldFillError(JobApplierError):
    """One field could not be filled. Collected as a string, never propagated past the filler."""

    def __init__(self, message: str, selector: str = ""):
        super().__init__(message, "FIELD_FILL_ERROR", {"selector": selector})
