# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Tuple

WINDOW_SECONDS = 15 * 60

PAGES_MESSAGE = "Too many requests sent from this IP, please try again after 15 minutes"
ACCOUNTS_MESSAGE = "Too many accounts created from this IP, please try again after 15 minutes"


class RateLimiter:
    """
    In-memory sliding-window limiter.

    Counts requests per identifier (client address) and refuses once
    max_attempts have been seen within window_seconds.
    """

    def __init__(self, max_attempts: int, window_seconds: int = WINDOW_SECONDS, message: str = PAGES_MESSAGE):
        self._attempts: Dict[str, List[datetime]] = {}
        self._max_attempts = max_attempts
        self._window = timedelta(seconds=window_seconds)
        self._lock = threading.Lock()
        self._last_sweep = datetime.now()
        self.message = message

    def _sweep(self, now: datetime) -> None:
        # Forget clients with no attempt left inside the window.
        stale = [key for key, times in self._attempts.items() if not times or now - times[-1] >= self._window]
        for key in stale:
            del self._attempts[key]
        self._last_sweep = now

    def check_and_increment(self, identifier: str) -> Tuple[bool, int]:
        """
        Returns (is_allowed, attempts_remaining).
        """
        now = datetime.now()
        with self._lock:
            if now - self._last_sweep >= self._window:
                self._sweep(now)

            # Drop attempts outside the window
            recent = [t for t in self._attempts.get(identifier, []) if now - t < self._window]

            if len(recent) >= self._max_attempts:
                self._attempts[identifier] = recent
                return False, 0

            recent.append(now)
            self._attempts[identifier] = recent
            return True, self._max_attempts - len(recent)

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)


def default_limiters() -> Dict[str, RateLimiter]:
    return {
        "pages": RateLimiter(max_attempts=20, message=PAGES_MESSAGE),
        "accounts": RateLimiter(max_attempts=10, message=ACCOUNTS_MESSAGE),
    }
