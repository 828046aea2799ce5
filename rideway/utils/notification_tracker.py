"""
In-memory cooldown tracking.

Keeps the last time something was allowed per key (task id, user id) so
repeated triggers inside a cooldown window are dropped. State lives in the
process only: a restart clears every cooldown.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_NOTIFICATION_COOLDOWN = 5 * 60  # seconds
DEFAULT_RETENTION = 24 * 60 * 60  # seconds
DEFAULT_DUE_CHECK_INTERVAL = 60 * 60  # seconds


class CooldownTracker:
    """
    Per-key cooldown map with an injectable clock.

    Check-and-record happens under a lock so two concurrent callers for the
    same key cannot both pass.
    """

    def __init__(self, cooldown_seconds: float, clock: Optional[Clock] = None):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock or time.time
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> Tuple[bool, float]:
        """
        Record `now` for key if its cooldown has elapsed.

        Returns:
            (allowed, seconds remaining in the cooldown; 0 when allowed)
        """
        with self._lock:
            now = self._clock()
            last = self._last_seen.get(key)
            if last is not None:
                elapsed = now - last
                if elapsed < self.cooldown_seconds:
                    return False, self.cooldown_seconds - elapsed
            self._last_seen[key] = now
            return True, 0.0

    def prune(self, max_age_seconds: float = DEFAULT_RETENTION) -> int:
        """Drop entries older than max_age_seconds; returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [key for key, seen in self._last_seen.items() if now - seen > max_age_seconds]
            for key in stale:
                del self._last_seen[key]
        if stale:
            logger.debug(f"Pruned {len(stale)} cooldown entries")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._last_seen.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_seen)


class NotificationDebouncer(CooldownTracker):
    """Stops the same task from notifying twice within the cooldown."""

    def __init__(
        self, cooldown_seconds: float = DEFAULT_NOTIFICATION_COOLDOWN, clock: Optional[Clock] = None
    ):
        super().__init__(cooldown_seconds, clock)

    def can_notify(self, task_id: str) -> bool:
        allowed, _ = self.try_acquire(task_id)
        if not allowed:
            logger.info(f"Notification for task {task_id} skipped (in cooldown period)")
        return allowed


class DueCheckRateLimiter(CooldownTracker):
    """Limits how often one user may trigger the date-based due check."""

    def __init__(
        self, min_interval_seconds: float = DEFAULT_DUE_CHECK_INTERVAL, clock: Optional[Clock] = None
    ):
        super().__init__(min_interval_seconds, clock)

    def check(self, user_id: str) -> Tuple[bool, float]:
        return self.try_acquire(user_id)
