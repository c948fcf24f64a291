"""
Job Applier - Command Line Entry Point

Two workflows:
1. apply: fill (and submit) one application, from a job URL or a company + role
2. hunt: discover jobs from a YAML list, score them, apply to the best matches

Usage:
    python main.py apply https://jobs.example.com/123 --title "Designer" --company Example
    python main.py apply --company Example --title "Product Designer"
    python main.py hunt --jobs jobs.yaml --max-jobs 5 --confirm
    python main.py --dry-run hunt --jobs jobs.yaml
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from job_applier.browser import BrowserSession
from job_applier.config import AppConfig, load_config
from job_applier.discovery import StaticJobDiscovery
from job_applier.errors import JobApplierError
from job_applier.models import HuntConfig, HuntResult, JobApplication, JobListing
from job_applier.orchestrator import HuntCallbacks, JobHunterOrchestrator

logger = logging.getLogger("job_applier")


def setup_logging(config: AppConfig, verbose: bool = False) -> None:
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        handlers=handlers,
    )


def print_application(application: JobApplication) -> None:
    print(f"\nStatus:  {application.status.value}")
    print(f"Message: {application.message}")
    print(f"Fields filled: {application.fields_filled}")
    for error in application.errors:
        print(f"  - {error}")
    for path in application.screenshots:
        print(f"Screenshot: {path}")


def print_hunt_result(result: HuntResult) -> None:
    print("\n" + "=" * 60)
    print("HUNT COMPLETE")
    print("=" * 60)
    print(f"Discovered: {result.jobs_discovered}")
    print(f"Matched:    {result.jobs_matched}")
    print(f"Attempted:  {result.applications_attempted}")
    print(f"Submitted:  {result.applications_submitted}")
    print(f"Manual:     {result.applications_manual}")
    print(f"Skipped:    {result.applications_skipped}")
    print(f"Failed:     {result.applications_failed}")
    print(f"Duration:   {result.duration_seconds:.0f}s")
    for application in result.applications:
        print(f"  [{application.status.value}] {application.job_id}: {application.message}")
    for error in result.errors:
        print(f"  ! {error}")


async def confirm(job: JobListing) -> bool:
    score = f" ({job.match_score:.0f}%)" if job.match_score is not None else ""
    answer = await asyncio.to_thread(input, f"Apply to {job.title} at {job.company}{score}? [y/N] ")
    return answer.strip().lower().startswith("y")


async def run_apply(config: AppConfig, args) -> int:
    async with BrowserSession(config.browser) as session:
        hunter = JobHunterOrchestrator.from_config(config, session)
        try:
            profile = hunter.load_profile(args.profile)
            if args.url:
                job = JobListing(title=args.title or "", company=args.company or "", url=args.url)
                application = await hunter.apply(job, profile, dry_run=args.dry_run)
            else:
                application = await hunter.quick_apply(args.company, args.title, profile, dry_run=args.dry_run)
        finally:
            await hunter.close()
    print_application(application)
    return 0 if application.status.value in ("submitted", "draft") else 1


async def run_hunt(config: AppConfig, args) -> int:
    hunt_config = HuntConfig(
        keywords=args.keywords or [],
        location=args.location or "",
        include_companies=args.company or [],
        max_jobs=args.max_jobs,
        match_threshold=args.threshold if args.threshold is not None else config.preferences.min_match_score,
        auto_apply=not args.search_only,
        require_confirmation=args.confirm or config.preferences.require_review,
        dry_run=args.dry_run,
    )
    discovery = [StaticJobDiscovery.from_file(args.jobs, filter_by_keywords=bool(args.keywords))] if args.jobs else []
    callbacks = HuntCallbacks(
        on_confirmation_required=confirm,
        on_progress=lambda message: print(f"  {message}"),
    )
    async with BrowserSession(config.browser) as session:
        hunter = JobHunterOrchestrator.from_config(config, session, discovery=discovery)
        try:
            profile = hunter.load_profile(args.profile)
            result = await hunter.hunt(profile, hunt_config, callbacks)
        finally:
            await hunter.close()
    print_hunt_result(result)
    return 0 if not result.errors else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job Applier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py apply https://jobs.example.com/123    Apply to one job
  python main.py apply --company Acme --title Designer Find the role on Acme's careers page
  python main.py hunt --jobs jobs.yaml --confirm       Score a job list, confirm each application
  python main.py --dry-run hunt --jobs jobs.yaml       Fill forms but never submit
        """
    )
    parser.add_argument("--profile", default="profile.yaml", help="Candidate profile YAML (default: profile.yaml)")
    parser.add_argument("--config", default=None, help="Config YAML (default: ./config.yaml if present)")
    parser.add_argument("--dry-run", action="store_true", help="Fill forms but stop before submitting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    apply = commands.add_parser("apply", help="Apply to a single job")
    apply.add_argument("url", nargs="?", help="Job or application URL")
    apply.add_argument("--title", help="Job title")
    apply.add_argument("--company", help="Company name")

    hunt = commands.add_parser("hunt", help="Discover, match and apply")
    hunt.add_argument("--jobs", help="YAML file listing jobs (title, company, url)")
    hunt.add_argument("--keywords", nargs="*", help="Role keywords")
    hunt.add_argument("--location", help="Preferred location")
    hunt.add_argument("--company", action="append", help="Company whose careers page to search (repeatable)")
    hunt.add_argument("--max-jobs", type=int, default=10, help="Maximum applications (default: 10)")
    hunt.add_argument("--threshold", type=float, default=None, help="Minimum match score (0-100)")
    hunt.add_argument("--confirm", action="store_true", help="Ask before each application")
    hunt.add_argument("--search-only", action="store_true", help="Discover and score, do not apply")
    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "apply" and not args.url and not (args.company and args.title):
        parser.error("apply needs a URL, or both --company and --title")
    if args.command == "hunt" and not (args.jobs or args.company):
        parser.error("hunt needs --jobs or at least one --company")

    try:
        config = load_config(args.config)
    except JobApplierError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 2
    setup_logging(config, args.verbose)

    runner = run_apply if args.command == "apply" else run_hunt
    try:
        return asyncio.run(runner(config, args))
    except JobApplierError as exc:
        logger.error("%s", exc.message)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
