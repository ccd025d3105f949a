"""
In-process, fixed-window rate limiting for sensitive actions (login, password reset).

Attempts are keyed by client address and action name. State lives in the
worker process only, so limits are per process.
"""

import logging
import threading
import time
from functools import wraps
from typing import Callable, Dict, Optional, Tuple

from flask import request

from backend.errors import RateLimitError


class RateLimiter:
    """
    Allow at most ``max_attempts`` hits per key within ``window_seconds``.
    """

    def __init__(self, max_attempts: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[str, Tuple[int, float]] = {}
        self._next_sweep = clock() + window_seconds
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """
        Record one attempt for ``key``.

        Returns:
            bool: False once the limit for the current window is exhausted.
        """
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            count, reset_at = self._attempts.get(key, (0, now + self.window_seconds))
            if now > reset_at:
                count, reset_at = 0, now + self.window_seconds
            if count >= self.max_attempts:
                return False
            self._attempts[key] = (count + 1, reset_at)
            return True

    def _sweep(self, now: float) -> None:
        # Keys whose window has closed carry no state worth keeping
        self._attempts = {k: v for k, v in self._attempts.items() if v[1] >= now}
        self._next_sweep = now + self.window_seconds

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._attempts.clear()
            else:
                self._attempts.pop(key, None)


def rate_limit(action: str, limiter: RateLimiter):
    """
    Route decorator returning 429 once the caller exceeds ``limiter`` for ``action``.
    """

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            key = f"{request.remote_addr}-{action}"
            if not limiter.hit(key):
                logging.warning(f"[RateLimit] {action} limit reached for {request.remote_addr}")
                return RateLimitError(f"Too many {action} attempts. Please try again later.").to_response()
            return view(*args, **kwargs)

        return wrapped

    return decorator
