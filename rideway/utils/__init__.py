"""Utility modules for Rideway."""

from .notification_tracker import CooldownTracker, DueCheckRateLimiter, NotificationDebouncer
from .sanitize import sanitize_data

__all__ = [
    "CooldownTracker",
    "NotificationDebouncer",
    "DueCheckRateLimiter",
    "sanitize_data",
]
