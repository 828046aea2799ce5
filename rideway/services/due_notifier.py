"""
maintenance_due notifications.

Connects the due detector to the dispatcher: every newly due task passes
through the NotificationDebouncer before a maintenance_due event is sent.
Used by mileage updates, the user-triggered due check and the worker.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rideway.models.integration import EventType
from rideway.models.user import User
from rideway.services.due_detector import find_due_time_based_tasks
from rideway.services.integration_dispatcher import IntegrationDispatcher, dispatch_quietly
from rideway.utils.notification_tracker import NotificationDebouncer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class DueCheckResult:
    success: bool
    message: str
    notifications_sent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "notificationsSent": self.notifications_sent,
        }


def maintenance_due_data(task, motorcycle) -> Dict[str, Any]:
    """Event data for maintenance_due."""
    return {
        "motorcycle": motorcycle.summary(),
        "task": {"id": task.id, "name": task.name},
    }


async def notify_due_tasks(
    user_id: str,
    due: Iterable[Tuple[str, Dict[str, Any]]],
    *,
    debouncer: NotificationDebouncer,
    dispatcher: IntegrationDispatcher,
) -> Tuple[int, List[Dict[str, Any]]]:
    """
    Dispatch maintenance_due for (task_id, event data) pairs.

    Tasks still in their cooldown are skipped.

    Returns:
        (notifications triggered, dispatch results)
    """
    triggered = 0
    results = []
    for task_id, data in due:
        if not debouncer.can_notify(task_id):
            continue
        logger.info(f"Triggering maintenance_due for task {task_id}")
        result = await dispatch_quietly(dispatcher, user_id, EventType.MAINTENANCE_DUE.value, data)
        triggered += 1
        if result is not None:
            results.append(result.to_dict())
    return triggered, results


async def check_due_time_based_tasks(
    db: AsyncSession,
    user_id: str,
    *,
    debouncer: NotificationDebouncer,
    dispatcher: Optional[IntegrationDispatcher] = None,
    as_of: Optional[date] = None,
) -> int:
    """
    Notify a user's tasks that became due by date on as_of.

    Each task is marked with the due date it is being notified for and the
    mark is committed before dispatch, so later checks on the same day skip
    it. Completing the task or editing its schedule moves next_due_date and
    re-arms the notification.

    Returns:
        Number of maintenance_due notifications triggered
    """
    rows = await find_due_time_based_tasks(db, user_id, as_of)
    if not rows:
        return 0

    due = []
    for task, motorcycle in rows:
        task.notified_due_date = task.next_due_date
        due.append((task.id, maintenance_due_data(task, motorcycle)))
    await db.commit()

    triggered, _ = await notify_due_tasks(
        user_id,
        due,
        debouncer=debouncer,
        dispatcher=dispatcher or IntegrationDispatcher(db),
    )
    if triggered:
        logger.info(f"Triggered {triggered} time-based maintenance_due events for user {user_id}")
    return triggered


async def check_all_users(
    db: AsyncSession,
    *,
    debouncer: NotificationDebouncer,
    dispatcher: Optional[IntegrationDispatcher] = None,
    as_of: Optional[date] = None,
) -> DueCheckResult:
    """
    Run the date-based due check for every user.

    A failure for one user is logged and the remaining users are still
    checked; the result is then marked unsuccessful.
    """
    dispatcher = dispatcher or IntegrationDispatcher(db)
    user_ids = (await db.execute(select(User.id))).scalars().all()

    total = 0
    failures = 0
    for user_id in user_ids:
        try:
            total += await check_due_time_based_tasks(
                db, user_id, debouncer=debouncer, dispatcher=dispatcher, as_of=as_of
            )
        except Exception as e:
            failures += 1
            logger.error(f"Error checking due tasks for user {user_id}: {e}", exc_info=True)

    logger.info(f"Due check completed for {len(user_ids)} users: {total} notifications sent")

    if failures:
        return DueCheckResult(
            success=False,
            message=f"Maintenance check failed for {failures} user(s)",
            notifications_sent=total,
        )
    return DueCheckResult(success=True, message="Maintenance check completed", notifications_sent=total)
