"""
Due-task detection.

Classifies tasks as due / not due and finds the tasks that *became* due
across a mileage change or on a given day, so each crossing produces one
notification. The classification functions are pure; the query helpers
load candidate tasks and hand them to the pure functions.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rideway.models.base import utcnow
from rideway.models.maintenance import MaintenanceTask, TaskPriority
from rideway.models.motorcycle import Motorcycle
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {
    TaskPriority.HIGH.value: 0,
    TaskPriority.MEDIUM.value: 1,
    TaskPriority.LOW.value: 2,
}


def is_tracked(task) -> bool:
    """Only live tasks with an interval can be picked up automatically."""
    return not task.archived and bool(task.interval_miles or task.interval_days)


def is_due_by_date(task, today: date) -> bool:
    return task.next_due_date is not None and task.next_due_date <= today


def is_due_by_mileage(task, motorcycle) -> bool:
    return (
        task.next_due_odometer is not None
        and motorcycle.current_mileage is not None
        and task.next_due_odometer <= motorcycle.current_mileage
    )


def is_due(task, motorcycle: Optional[Any], today: date) -> bool:
    """True if the task is due by date or by mileage."""
    if motorcycle is None or not is_tracked(task):
        return False
    return is_due_by_date(task, today) or is_due_by_mileage(task, motorcycle)


def find_newly_due_by_mileage(
    tasks: Iterable[Any], old_mileage: Optional[int], new_mileage: int
) -> List[Any]:
    """
    Tasks whose due odometer lies in (old_mileage, new_mileage].

    A task is reported at most once per crossing no matter how large the
    jump. With no previous reading every task at or below the new mileage
    counts as newly due.
    """
    return [
        task
        for task in tasks
        if is_tracked(task)
        and task.next_due_odometer is not None
        and task.next_due_odometer <= new_mileage
        and (old_mileage is None or task.next_due_odometer > old_mileage)
    ]


def find_newly_due_by_date(tasks: Iterable[Any], as_of: date) -> List[Any]:
    """Tasks due on as_of that were not yet due the day before."""
    day_before = as_of - timedelta(days=1)
    return [
        task
        for task in tasks
        if is_tracked(task)
        and task.next_due_date is not None
        and day_before < task.next_due_date <= as_of
    ]


@dataclass
class UpcomingTask:
    """Dashboard row for one scheduled task."""

    id: str
    task: str
    description: Optional[str]
    motorcycle: str
    motorcycle_id: str
    due_date: Optional[date]
    due_mileage: Optional[int]
    current_mileage: Optional[int]
    priority: str
    is_due: bool

    @property
    def mileage_remaining(self) -> Optional[int]:
        if self.due_mileage is None or self.current_mileage is None:
            return None
        return self.due_mileage - self.current_mileage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "task": self.task,
            "description": self.description,
            "motorcycle": self.motorcycle,
            "motorcycleId": self.motorcycle_id,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "dueMileage": self.due_mileage,
            "currentMileage": self.current_mileage,
            "priority": self.priority,
            "isDue": self.is_due,
        }


def _ranking_key(item: UpcomingTask) -> Tuple:
    remaining = item.mileage_remaining
    return (
        not item.is_due,
        item.due_date is None,
        item.due_date or date.max,
        remaining is None,
        remaining if remaining is not None else 0,
        PRIORITY_ORDER.get(item.priority, PRIORITY_ORDER[TaskPriority.MEDIUM.value]),
    )


def rank_upcoming(items: Iterable[UpcomingTask]) -> List[UpcomingTask]:
    """
    Order tasks for display.

    Due before not due; then nearest due date (dated tasks first); then
    smallest distance to the due mileage; then priority high, medium, low.
    """
    return sorted(items, key=_ranking_key)


def build_upcoming(
    tasks: Iterable[Any], motorcycles: Dict[str, Any], today: date
) -> Tuple[List[UpcomingTask], int]:
    """
    Classify tasks against their motorcycles and rank them.

    Tasks whose motorcycle is missing are skipped. Due tasks are shown with
    high priority.

    Returns:
        (ranked rows, number of due tasks)
    """
    rows = []
    due_count = 0

    for task in tasks:
        if task.archived:
            continue
        motorcycle = motorcycles.get(task.motorcycle_id)
        if motorcycle is None:
            continue

        due = is_due(task, motorcycle, today)
        if due:
            due_count += 1

        if task.next_due_date is None and task.next_due_odometer is None:
            continue

        rows.append(
            UpcomingTask(
                id=task.id,
                task=task.name,
                description=task.description,
                motorcycle=motorcycle.name,
                motorcycle_id=motorcycle.id,
                due_date=task.next_due_date,
                due_mileage=task.next_due_odometer,
                current_mileage=motorcycle.current_mileage,
                priority=TaskPriority.HIGH.value if due else (task.priority or "medium"),
                is_due=due,
            )
        )

    return rank_upcoming(rows), due_count


async def load_active_tasks(db: AsyncSession, motorcycle_id: str) -> List[MaintenanceTask]:
    """Non-archived tasks for one motorcycle."""
    result = await db.execute(
        select(MaintenanceTask).where(
            MaintenanceTask.motorcycle_id == motorcycle_id,
            MaintenanceTask.archived.is_(False),
        )
    )
    return list(result.scalars().all())


async def find_newly_due_tasks(
    db: AsyncSession, motorcycle_id: str, old_mileage: Optional[int], new_mileage: int
) -> List[Tuple[MaintenanceTask, Motorcycle]]:
    """
    Load a motorcycle's tasks and return those that became due by mileage.

    A missing motorcycle yields an empty list.
    """
    motorcycle = await db.get(Motorcycle, motorcycle_id)
    if motorcycle is None:
        logger.warning(f"Motorcycle not found: {motorcycle_id}")
        return []

    tasks = await load_active_tasks(db, motorcycle_id)
    newly_due = find_newly_due_by_mileage(tasks, old_mileage, new_mileage)

    logger.info(
        f"Motorcycle {motorcycle_id}: {len(newly_due)} of {len(tasks)} tasks newly due "
        f"({old_mileage} -> {new_mileage})"
    )
    return [(task, motorcycle) for task in newly_due]


async def find_due_time_based_tasks(
    db: AsyncSession, user_id: str, as_of: Optional[date] = None
) -> List[Tuple[MaintenanceTask, Motorcycle]]:
    """
    Tasks across all of a user's motorcycles that became due by date on as_of.

    Tasks already notified for their current due date are left out, so
    repeated checks on the same day report each transition once.
    """
    as_of = as_of or utcnow().date()
    day_before = as_of - timedelta(days=1)

    result = await db.execute(
        select(MaintenanceTask, Motorcycle)
        .join(Motorcycle, MaintenanceTask.motorcycle_id == Motorcycle.id)
        .where(
            Motorcycle.user_id == user_id,
            MaintenanceTask.archived.is_(False),
            MaintenanceTask.next_due_date.is_not(None),
            MaintenanceTask.next_due_date <= as_of,
            MaintenanceTask.next_due_date > day_before,
            or_(
                MaintenanceTask.notified_due_date.is_(None),
                MaintenanceTask.notified_due_date != MaintenanceTask.next_due_date,
            ),
        )
    )
    rows = result.all()

    # The pure rule also drops tasks that have no interval
    due_ids = {task.id for task in find_newly_due_by_date([row[0] for row in rows], as_of)}
    return [(task, motorcycle) for task, motorcycle in rows if task.id in due_ids]
