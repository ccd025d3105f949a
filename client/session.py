"""
Durable client-side session state.

Token, role and cached user projection are kept together in one JSON file.
They are written together by ``set`` and removed together by ``clear``, which
is the only invalidation path (used by logout and by expiry detection).
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_SESSION_PATH = Path.home() / ".bluecarbon" / "session.json"


@dataclass(frozen=True)
class Session:
    token: str
    role: Optional[str]
    user: Dict[str, Any]


class SessionStore:
    """
    File-backed holder for the current session.

    Args:
        path: Where the session is persisted. Defaults to ~/.bluecarbon/session.json
              or BLUECARBON_SESSION_FILE.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        env_path = os.getenv("BLUECARBON_SESSION_FILE")
        self.path = Path(path or env_path or DEFAULT_SESSION_PATH)
        self._lock = threading.Lock()

    def set(self, token: str, user: Dict[str, Any]) -> Session:
        """Persist a new session, replacing all three values at once."""
        session = Session(token=token, role=user.get("role"), user=dict(user))
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so readers never see a partial file
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".session-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(asdict(session), fh)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        return session

    def get(self) -> Optional[Session]:
        """
        Load the stored session.

        A missing file yields None; an unreadable or partial one is cleared so
        the three values can never be observed out of step.
        """
        with self._lock:
            if not self.path.exists():
                return None
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                session = Session(token=raw["token"], role=raw.get("role"), user=raw.get("user") or {})
            except (OSError, ValueError, KeyError, TypeError) as e:
                logging.warning(f"[Session] Discarding unreadable session file {self.path}: {e}")
                self._remove()
                return None
        if not session.token:
            self.clear()
            return None
        return session

    @property
    def token(self) -> Optional[str]:
        session = self.get()
        return session.token if session else None

    def update_user(self, user: Dict[str, Any]) -> Optional[Session]:
        """Refresh the cached user (and role) while keeping the current token."""
        session = self.get()
        if session is None:
            return None
        return self.set(session.token, user)

    def update_token(self, token: str) -> Optional[Session]:
        session = self.get()
        if session is None:
            return None
        return self.set(token, session.user)

    def clear(self) -> None:
        with self._lock:
            self._remove()

    def _remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
