"""
Job Applier Configuration
=========================
Settings come from three layers, later layers winning:
1. Defaults in the dataclasses below
2. config.yaml (or the path given to load_config)
3. Environment variables, with .env loaded first

Environment Variables:
- GROQ_API_KEY / OPENROUTER_API_KEY / LLM_API_KEY: model provider key
- LLM_BASE_URL, LLM_MODEL: chat-completions endpoint and primary model
- BROWSER_HEADLESS, BROWSER_SLOW_MO, BROWSER_TIMEOUT
- MAX_APPLICATIONS_PER_DAY, MAX_APPLICATIONS_PER_HOUR
- MIN_DELAY_BETWEEN_ACTIONS, MAX_DELAY_BETWEEN_ACTIONS (milliseconds)
- LINKEDIN_EMAIL, LINKEDIN_PASSWORD, INDEED_EMAIL, INDEED_PASSWORD
- DATA_DIR, LOG_LEVEL, LOG_FILE

Usage:
    from job_applier.config import load_config

    config = load_config("config.yaml")
    print(config.rate_limit.field_delay_ms)
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from job_applier.errors import ConfigError

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_MODELS = (
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
)

DelayRange = Tuple[int, int]


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = ""
    base_url: str = GROQ_URL
    models: Tuple[str, ...] = DEFAULT_MODELS
    max_tokens: int = 1000
    temperature: float = 0.3
    timeout: float = 90.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class BrowserConfig:
    headless: bool = True
    slow_mo: int = 0
    timeout_ms: int = 30000
    viewport: Tuple[int, int] = (1920, 1080)
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class RateLimitConfig:
    """Pacing between actions and ceilings on how much is sent. All delays in ms."""
    max_applications_per_day: int = 50
    max_applications_per_hour: int = 10
    requests_per_minute: int = 60
    requests_per_hour: int = 1000
    requests_per_day: int = 5000
    action_delay_ms: DelayRange = (2000, 5000)
    field_delay_ms: DelayRange = (200, 500)
    click_delay_ms: DelayRange = (100, 300)
    focus_delay_ms: DelayRange = (100, 200)
    keystroke_delay_ms: DelayRange = (30, 100)
    page_settle_ms: DelayRange = (1000, 2000)
    application_delay_ms: DelayRange = (3000, 5000)


@dataclass(frozen=True)
class NavigationConfig:
    max_navigation_steps: int = 10
    max_form_pages: int = 20
    max_easy_apply_steps: int = 10
    navigation_timeout_ms: int = 30000
    settle_timeout_ms: int = 10000


@dataclass(frozen=True)
class PlatformSettings:
    enabled: bool = True
    email: str = ""
    password: str = ""
    use_easy_apply: bool = True


@dataclass(frozen=True)
class Preferences:
    min_match_score: float = 70.0
    auto_apply: bool = False
    require_review: bool = True


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    platforms: Dict[str, PlatformSettings] = field(default_factory=lambda: {
        "linkedin": PlatformSettings(),
        "indeed": PlatformSettings(),
    })
    preferences: Preferences = field(default_factory=Preferences)
    data_dir: str = "./data"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def platform(self, name: str) -> PlatformSettings:
        return self.platforms.get(name, PlatformSettings(enabled=False))

    def data_path(self, *parts: str) -> Path:
        """Path under data_dir, creating the directory if needed."""
        path = Path(self.data_dir).joinpath(*parts)
        path.mkdir(parents=True, exist_ok=True)
        return path


def _coerce(value: Any, default: Any) -> Any:
    """Convert a YAML or environment value to the type of the default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, tuple):
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        items = tuple(value)
        if default and isinstance(default[0], int):
            items = tuple(int(item) for item in items)
        return items
    return value


def _build_section(cls, data: Optional[Dict[str, Any]]):
    """Instantiate a config dataclass from a dict, ignoring unknown keys."""
    instance = cls()
    if not data:
        return instance
    if not isinstance(data, dict):
        raise ConfigError(f"Section for {cls.__name__} must be a mapping", {"value": data})
    updates = {}
    for item in fields(cls):
        if item.name in data and data[item.name] is not None:
            try:
                updates[item.name] = _coerce(data[item.name], getattr(instance, item.name))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid value for {cls.__name__}.{item.name}: {exc}") from exc
    return replace(instance, **updates)


def _env_overrides(env: Dict[str, str]) -> Dict[str, Dict[str, Any]]:
    """Map environment variables onto config sections."""
    sections: Dict[str, Dict[str, Any]] = {
        "llm": {}, "browser": {}, "rate_limit": {}, "top": {},
    }

    api_key = env.get("LLM_API_KEY") or env.get("GROQ_API_KEY") or env.get("OPENROUTER_API_KEY")
    if api_key:
        sections["llm"]["api_key"] = api_key
    if env.get("LLM_BASE_URL"):
        sections["llm"]["base_url"] = env["LLM_BASE_URL"]
    elif not env.get("GROQ_API_KEY") and env.get("OPENROUTER_API_KEY"):
        sections["llm"]["base_url"] = OPENROUTER_URL
    if env.get("LLM_MODEL"):
        sections["llm"]["models"] = env["LLM_MODEL"]

    for var, key in (("BROWSER_HEADLESS", "headless"), ("BROWSER_SLOW_MO", "slow_mo"),
                     ("BROWSER_TIMEOUT", "timeout_ms")):
        if env.get(var):
            sections["browser"][key] = env[var]

    for var, key in (("MAX_APPLICATIONS_PER_DAY", "max_applications_per_day"),
                     ("MAX_APPLICATIONS_PER_HOUR", "max_applications_per_hour")):
        if env.get(var):
            sections["rate_limit"][key] = env[var]

    min_delay = env.get("MIN_DELAY_BETWEEN_ACTIONS")
    max_delay = env.get("MAX_DELAY_BETWEEN_ACTIONS")
    if min_delay or max_delay:
        if not (min_delay and max_delay):
            raise ConfigError("MIN_DELAY_BETWEEN_ACTIONS and MAX_DELAY_BETWEEN_ACTIONS must be set together")
        sections["rate_limit"]["action_delay_ms"] = [min_delay, max_delay]

    for var, key in (("DATA_DIR", "data_dir"), ("LOG_LEVEL", "log_level"), ("LOG_FILE", "log_file")):
        if env.get(var):
            sections["top"][key] = env[var]
    return sections


def _build_platforms(data: Optional[Dict[str, Any]], env: Dict[str, str]) -> Dict[str, PlatformSettings]:
    data = data or {}
    platforms = {}
    for name in set(data) | {"linkedin", "indeed"}:
        section = dict(data.get(name) or {})
        prefix = name.upper()
        if env.get(f"{prefix}_EMAIL"):
            section["email"] = env[f"{prefix}_EMAIL"]
        if env.get(f"{prefix}_PASSWORD"):
            section["password"] = env[f"{prefix}_PASSWORD"]
        platforms[name] = _build_section(PlatformSettings, section)
    return platforms


def _validate(config: AppConfig) -> None:
    for item in fields(RateLimitConfig):
        value = getattr(config.rate_limit, item.name)
        if isinstance(value, tuple):
            if len(value) != 2 or value[0] > value[1] or value[0] < 0:
                raise ConfigError(f"rate_limit.{item.name} must be a [min, max] range",
                                  {"value": value})
    if config.navigation.max_form_pages < 1 or config.navigation.max_navigation_steps < 1:
        raise ConfigError("Navigation bounds must be at least 1")


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> AppConfig:
    """
    Load configuration from YAML and the environment.

    Args:
        path: YAML file to read. Defaults to ./config.yaml when it exists.
        env: Environment mapping; defaults to os.environ after loading .env.

    Returns:
        A frozen AppConfig.

    Raises:
        ConfigError: When the file is unreadable or a value is invalid.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    config_path = Path(path) if path else Path("config.yaml")
    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Could not parse {config_path}: {exc}") from exc
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    overrides = _env_overrides(env)

    def section(name: str) -> Dict[str, Any]:
        merged = dict(data.get(name) or {})
        merged.update(overrides.get(name, {}))
        return merged

    logging_section = data.get("logging") or {}
    top = overrides["top"]
    config = AppConfig(
        llm=_build_section(LLMConfig, section("llm")),
        browser=_build_section(BrowserConfig, section("browser")),
        rate_limit=_build_section(RateLimitConfig, section("rate_limit")),
        navigation=_build_section(NavigationConfig, section("navigation")),
        platforms=_build_platforms(data.get("platforms"), env),
        preferences=_build_section(Preferences, section("preferences")),
        data_dir=top.get("data_dir") or data.get("data_dir") or "./data",
        log_level=(top.get("log_level") or logging_section.get("level") or "INFO").upper(),
        log_file=top.get("log_file") or logging_section.get("file"),
    )
    _validate(config)
    return config
