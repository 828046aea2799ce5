"""
Background tasks for periodic maintenance of in-memory state.

The notification debouncer and the due-check rate limiter keep one entry
per task or user; this prunes old entries so the maps stay bounded.
"""

import asyncio
import logging
from typing import List

from rideway.utils.notification_tracker import CooldownTracker

logger = logging.getLogger(__name__)


def prune_trackers(trackers: List[CooldownTracker], max_age_seconds: float) -> int:
    """Prune every tracker once; returns the number of entries removed."""
    removed = 0
    for tracker in trackers:
        removed += tracker.prune(max_age_seconds)
    return removed


async def prune_trackers_periodically(
    trackers: List[CooldownTracker],
    interval_seconds: int = 3600,
    max_age_seconds: int = 86400,
):
    """
    Prune cooldown trackers at a fixed interval.

    Args:
        trackers: Trackers to prune
        interval_seconds: How often to prune (default: 3600 = 1 hour)
        max_age_seconds: Entries older than this are dropped (default: 24 hours)

    Runs until cancelled. An error in one pass is logged and the next pass
    still runs.
    """
    logger.info(f"Starting periodic cooldown pruning (every {interval_seconds}s)")

    while True:
        try:
            await asyncio.sleep(interval_seconds)

            removed = prune_trackers(trackers, max_age_seconds)
            remaining = sum(len(tracker) for tracker in trackers)
            logger.info(f"Cooldown pruning removed {removed} entries ({remaining} remaining)")

        except asyncio.CancelledError:
            logger.info("Cooldown pruning task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in periodic cooldown pruning: {e}", exc_info=True)


def startup_background_tasks(
    trackers: List[CooldownTracker], interval_seconds: int, max_age_seconds: int
) -> List[asyncio.Task]:
    """
    Start all background tasks.

    Returns the created tasks so the caller can cancel them on shutdown.
    """
    logger.info("Starting background tasks...")

    tasks = [
        asyncio.create_task(
            prune_trackers_periodically(
                trackers, interval_seconds=interval_seconds, max_age_seconds=max_age_seconds
            )
        )
    ]

    logger.info("Background tasks started")
    return tasks
