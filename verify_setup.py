"""
Setup verification for Job Applier
Run this to make sure config, profile, credentials and the browser are ready.

Usage:
    python verify_setup.py
    python verify_setup.py --config config.yaml --profile profile.yaml --skip-browser
"""
import argparse
import asyncio
import importlib
import os
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from job_applier.browser import BrowserSession
from job_applier.config import load_config
from job_applier.errors import JobApplierError
from job_applier.repositories import load_profile
from job_applier.session import SessionStore

MODULES = [
    ('job_applier.page_analyzer', 'PageAnalyzer'),
    ('job_applier.field_resolver', 'FieldValueResolver'),
    ('job_applier.form_filler', 'FormFiller'),
    ('job_applier.navigator', 'ApplicationNavigator'),
    ('job_applier.platforms', 'get_adapter'),
    ('job_applier.matching', 'LanguageModelMatcher'),
    ('job_applier.orchestrator', 'JobHunterOrchestrator'),
]

ENV_VARS = [
    ('GROQ_API_KEY', 'Groq API Key'),
    ('OPENROUTER_API_KEY', 'OpenRouter API Key'),
    ('LINKEDIN_EMAIL', 'LinkedIn login'),
    ('INDEED_EMAIL', 'Indeed login'),
]


def check_mark(passed):
    return "✅" if passed else "❌"


def mask(value: Optional[str]) -> str:
    if not value:
        return "NOT SET"
    return f"{value[:6]}...{value[-4:]}" if len(value) > 14 else "SET"


async def check_browser(config) -> Optional[str]:
    """None when Chromium launches, else the launch error."""
    try:
        async with BrowserSession(config.browser):
            return None
    except (JobApplierError, PlaywrightError) as e:
        return str(e).splitlines()[0]


def verify_all(config_path: Optional[str] = None, profile_path: str = 'profile.yaml',
               browser: bool = True) -> bool:
    print("=" * 60)
    print("JOB APPLIER - SETUP VERIFICATION")
    print("=" * 60)

    all_passed = True

    # 1. Modules
    print("\n📦 MODULE IMPORTS")
    print("-" * 40)
    for module_name, attr in MODULES:
        try:
            getattr(importlib.import_module(module_name), attr)
            print(f"  {check_mark(True)} {module_name}.{attr}")
        except (ImportError, AttributeError) as e:
            print(f"  {check_mark(False)} {module_name}: {e}")
            all_passed = False

    # 2. Configuration
    print("\n⚙️ CONFIGURATION")
    print("-" * 40)
    config = None
    try:
        config = load_config(config_path)
        print(f"  {check_mark(True)} Config loaded (data dir: {config.data_dir})")
        print(f"  {check_mark(config.llm.is_configured)} Language model: "
              f"{config.llm.models[0] if config.llm.models else 'none'}")
        for name, settings in config.platforms.items():
            print(f"  {check_mark(bool(settings.email and settings.password))} {name}: "
                  f"{'enabled' if settings.enabled else 'disabled'}")
    except JobApplierError as e:
        print(f"  {check_mark(False)} Config error: {e.message}")
        all_passed = False

    # 3. Environment
    print("\n🔑 ENVIRONMENT VARIABLES")
    print("-" * 40)
    for var, name in ENV_VARS:
        value = os.environ.get(var)
        print(f"  {check_mark(bool(value))} {name}: {mask(value)}")

    # 4. Profile
    print("\n👤 PROFILE")
    print("-" * 40)
    try:
        profile = load_profile(profile_path)
        print(f"  {check_mark(True)} {profile.full_name} <{profile.contact.email}>")
        resume_ok = bool(profile.resume_path) and Path(profile.resume_path).is_file()
        print(f"  {check_mark(resume_ok)} Resume: {profile.resume_path or 'not set'}")
        if not profile.contact.email:
            all_passed = False
    except JobApplierError as e:
        print(f"  {check_mark(False)} Profile error: {e.message}")
        all_passed = False

    # 5. Saved sessions
    if config is not None:
        print("\n🍪 SAVED SESSIONS")
        print("-" * 40)
        sessions = SessionStore(Path(config.data_dir) / 'sessions').list_sessions()
        if not sessions:
            print("  (none)")
        for state in sessions:
            fresh = state.age_hours() <= 24
            print(f"  {check_mark(fresh)} {state.platform}: {state.age_hours():.1f}h old")

    # 6. Browser
    if browser and config is not None:
        print("\n🌐 BROWSER")
        print("-" * 40)
        error = asyncio.run(check_browser(config))
        print(f"  {check_mark(error is None)} Chromium: {error or 'launches'}")
        if error:
            print("      Run: playwright install chromium")
            all_passed = False

    # Summary
    print("\n" + "=" * 60)
    if all_passed:
        print("🎉 ALL CHECKS PASSED - System ready!")
    else:
        print("⚠️ SOME CHECKS FAILED - Review issues above")
    print("=" * 60)

    return all_passed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Verify Job Applier setup')
    parser.add_argument('--config', default=None)
    parser.add_argument('--profile', default='profile.yaml')
    parser.add_argument('--skip-browser', action='store_true')
    args = parser.parse_args()
    raise SystemExit(0 if verify_all(args.config, args.profile, not args.skip_browser) else 1)
