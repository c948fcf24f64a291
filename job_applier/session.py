"""
Platform Session Store
======================
Persists login cookies per platform so later runs can skip authentication.

Layout under <data_dir>/sessions:
- {platform}.json          session state (logged_in, last_activity, cookies path)
- {platform}-cookies.json  cookies exactly as the browser context returned them
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from job_applier.browser import BrowserSession
from job_applier.errors import BrowserError

logger = logging.getLogger(__name__)

MAX_AGE_HOURS = 24


@dataclass
class SessionState:
    platform: str
    logged_in: bool
    cookies: str
    last_activity: str

    def age_hours(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        last = datetime.fromisoformat(self.last_activity)
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return (now - last).total_seconds() / 3600


class SessionStore:
    def __init__(self, sessions_dir: Path, max_age_hours: float = MAX_AGE_HOURS):
        self.sessions_dir = Path(sessions_dir)
        self.max_age_hours = max_age_hours

    def _session_path(self, platform: str) -> Path:
        return self.sessions_dir / f"{platform}.json"

    def _cookies_path(self, platform: str) -> Path:
        return self.sessions_dir / f"{platform}-cookies.json"

    def has_session(self, platform: str) -> bool:
        return self._session_path(platform).exists()

    async def save(self, platform: str, session: BrowserSession, logged_in: bool) -> SessionState:
        """Write the context's cookies and the session state for a platform."""
        cookies = await session.cookies()
        state = SessionState(
            platform=platform,
            logged_in=logged_in,
            cookies=str(self._cookies_path(platform)),
            last_activity=datetime.now(timezone.utc).isoformat(),
        )
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            self._cookies_path(platform).write_text(json.dumps(cookies, indent=2), encoding="utf-8")
            self._session_path(platform).write_text(json.dumps(asdict(state), indent=2), encoding="utf-8")
        except OSError as exc:
            raise BrowserError(f"Failed to save session for {platform}: {exc}") from exc
        logger.info("Saved %s session (%d cookies)", platform, len(cookies))
        return state

    def load(self, platform: str) -> Optional[SessionState]:
        path = self._session_path(platform)
        if not path.exists():
            return None
        try:
            return SessionState(**json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Failed to load session for %s: %s", platform, exc)
            return None

    async def restore(self, platform: str, session: BrowserSession) -> bool:
        """Add saved cookies to the context. False when missing, stale or unreadable."""
        state = self.load(platform)
        if state is None:
            return False

        age = state.age_hours()
        if age > self.max_age_hours:
            logger.info("Session for %s is too old (%.1f hours)", platform, age)
            return False

        cookies_path = Path(state.cookies)
        if not cookies_path.exists():
            return False
        try:
            cookies = json.loads(cookies_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to restore cookies for %s: %s", platform, exc)
            return False
        await session.add_cookies(cookies)
        logger.info("Restored %s session from %s", platform, cookies_path)
        return True

    def delete(self, platform: str) -> None:
        for path in (self._session_path(platform), self._cookies_path(platform)):
            if path.exists():
                path.unlink()

    def list_sessions(self) -> List[SessionState]:
        if not self.sessions_dir.exists():
            return []
        sessions = []
        for path in sorted(self.sessions_dir.glob("*.json")):
            if path.name.endswith("-cookies.json"):
                continue
            state = self.load(path.stem)
            if state is not None:
                sessions.append(state)
        return sessions

    def cleanup_expired(self, max_age_hours: Optional[float] = None) -> int:
        limit = self.max_age_hours if max_age_hours is None else max_age_hours
        cleaned = 0
        for state in self.list_sessions():
            if state.age_hours() > limit:
                self.delete(state.platform)
                cleaned += 1
        return cleaned
