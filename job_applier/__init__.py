"""
Job Applier Package
"""
from .browser import BrowserSession, Pacer, ScreenshotRecorder
from .config import AppConfig, load_config
from .errors import (
    AuthenticationError, BrowserError, CaptchaDetectedError, ConfigError,
    JobApplierError, LanguageModelError, RateLimitError
)
from .field_resolver import FieldValueResolver
from .form_filler import FormFiller
from .llm import ChatCompletionModel, LanguageModel, extract_json
from .models import (
    ApplicationStatus, FieldType, FillResult, FormField, HuntConfig, HuntResult,
    JobApplication, JobListing, PageAnalysis, PageType, Profile
)
from .navigator import ApplicationNavigator, MultiPageResult, NavigationResult
from .orchestrator import HuntCallbacks, JobHunterOrchestrator
from .page_analyzer import PageAnalyzer

__version__ = "0.1.0"

__all__ = [
    'AppConfig',
    'ApplicationNavigator',
    'ApplicationStatus',
    'AuthenticationError',
    'BrowserError',
    'BrowserSession',
    'CaptchaDetectedError',
    'ChatCompletionModel',
    'ConfigError',
    'FieldType',
    'FieldValueResolver',
    'FillResult',
    'FormField',
    'FormFiller',
    'HuntCallbacks',
    'HuntConfig',
    'HuntResult',
    'JobApplication',
    'JobApplierError',
    'JobHunterOrchestrator',
    'JobListing',
    'LanguageModel',
    'LanguageModelError',
    'MultiPageResult',
    'NavigationResult',
    'Pacer',
    'PageAnalysis',
    'PageAnalyzer',
    'PageType',
    'Profile',
    'RateLimitError',
    'ScreenshotRecorder',
    'extract_json',
    'load_config',
]
