"""Maintenance task operations: scheduling, completion, service history and dashboard."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from rideway.models.base import as_naive_utc, utcnow
from rideway.models.integration import EventType
from rideway.models.maintenance import IntervalBase, MaintenanceRecord, MaintenanceTask
from rideway.models.motorcycle import Motorcycle
from rideway.services.due_detector import build_upcoming
from rideway.services.errors import NotFoundError, ValidationError
from rideway.services.integration_dispatcher import (
    DispatchResult,
    IntegrationDispatcher,
    dispatch_quietly,
)
from rideway.services.interval_model import (
    compute_for_completion,
    initial_schedule,
    reschedule_after_edit,
)
from rideway.services.motorcycle_service import get_owned_motorcycle, list_motorcycles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DASHBOARD_UPCOMING_LIMIT = 5


@dataclass
class CompletionResult:
    """Outcome of complete_task."""

    record: MaintenanceRecord
    next_due_odometer: Optional[int]
    next_due_date: Optional[date]
    dispatch: Optional[DispatchResult] = None


@dataclass
class BatchImportResult:
    """Outcome of batch_create_tasks."""

    tasks: List[MaintenanceTask]
    errors: List[str]


# ============================================================================
# Tasks
# ============================================================================


async def get_owned_task(db: AsyncSession, user_id: str, task_id: str) -> MaintenanceTask:
    """
    Load a task whose motorcycle belongs to the user.

    Raises:
        NotFoundError: unknown task, or owned by someone else
    """
    result = await db.execute(
        select(MaintenanceTask)
        .join(Motorcycle, MaintenanceTask.motorcycle_id == Motorcycle.id)
        .where(MaintenanceTask.id == task_id, Motorcycle.user_id == user_id)
    )
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFoundError("Maintenance task not found")
    return task


async def list_tasks(
    db: AsyncSession, user_id: str, motorcycle_id: str, include_archived: bool = False
) -> List[MaintenanceTask]:
    await get_owned_motorcycle(db, user_id, motorcycle_id)
    stmt = select(MaintenanceTask).where(MaintenanceTask.motorcycle_id == motorcycle_id)
    if not include_archived:
        stmt = stmt.where(MaintenanceTask.archived.is_(False))
    result = await db.execute(stmt.order_by(MaintenanceTask.created_at))
    return list(result.scalars().all())


def _new_task(
    motorcycle: Motorcycle,
    created_at: datetime,
    *,
    name: Optional[str],
    description: Optional[str] = None,
    interval_miles: Optional[int] = None,
    interval_days: Optional[int] = None,
    interval_base: str = "current",
    base_odometer: Optional[int] = None,
    base_date: Optional[datetime] = None,
    priority: str = "medium",
    is_recurring: bool = True,
) -> MaintenanceTask:
    """Build an unsaved task with its first due point."""
    if not name:
        raise ValidationError("Task name is required")

    try:
        task = MaintenanceTask(
            motorcycle_id=motorcycle.id,
            name=name,
            description=description,
            interval_miles=interval_miles,
            interval_days=interval_days,
            interval_base=interval_base,
            base_odometer=base_odometer,
            base_date=as_naive_utc(base_date),
            priority=priority,
            is_recurring=is_recurring,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e

    schedule = initial_schedule(task, motorcycle.current_mileage, created_at)
    if task.base_odometer is None:
        task.base_odometer = motorcycle.current_mileage
    if task.base_date is None:
        task.base_date = created_at
    task.next_due_odometer = schedule.next_due_odometer
    task.next_due_date = schedule.next_due_date
    return task


async def create_task(
    db: AsyncSession,
    user_id: str,
    motorcycle_id: str,
    *,
    name: str,
    description: Optional[str] = None,
    interval_miles: Optional[int] = None,
    interval_days: Optional[int] = None,
    interval_base: str = "current",
    base_odometer: Optional[int] = None,
    base_date: Optional[datetime] = None,
    priority: str = "medium",
    is_recurring: bool = True,
) -> MaintenanceTask:
    """
    Create a task and give it its first due point.

    The schedule is counted from base_odometer/base_date, defaulting to the
    motorcycle's current mileage and the creation time.

    Raises:
        NotFoundError: motorcycle not owned by the user
        ValidationError: missing name, negative interval, unknown
            priority or interval base
    """
    motorcycle = await get_owned_motorcycle(db, user_id, motorcycle_id)

    task = _new_task(
        motorcycle,
        utcnow(),
        name=name,
        description=description,
        interval_miles=interval_miles,
        interval_days=interval_days,
        interval_base=interval_base,
        base_odometer=base_odometer,
        base_date=base_date,
        priority=priority,
        is_recurring=is_recurring,
    )

    db.add(task)
    await db.commit()
    await db.refresh(task)

    logger.info(
        f"Task {task.id} '{task.name}' created for motorcycle {motorcycle.id} "
        f"(due at {task.next_due_odometer} / {task.next_due_date})"
    )
    return task


async def batch_create_tasks(
    db: AsyncSession, user_id: str, tasks: List[Dict[str, Any]]
) -> BatchImportResult:
    """
    Import several tasks at once.

    Each item takes create_task's keyword arguments plus `motorcycle_id`.
    Invalid items are skipped and reported; the valid ones are committed
    together.

    Raises:
        ValidationError: empty input, or no item could be imported
    """
    if not tasks:
        raise ValidationError("No tasks provided for import")

    created_at = utcnow()
    motorcycles: Dict[str, Motorcycle] = {}
    imported: List[MaintenanceTask] = []
    errors: List[str] = []

    for item in tasks:
        fields = dict(item)
        motorcycle_id = fields.pop("motorcycle_id", None)
        label = fields.get("name") or "unnamed"
        if not motorcycle_id or not fields.get("name"):
            errors.append(f'Task "{label}" is missing required fields')
            continue

        try:
            if motorcycle_id not in motorcycles:
                motorcycles[motorcycle_id] = await get_owned_motorcycle(db, user_id, motorcycle_id)
            imported.append(_new_task(motorcycles[motorcycle_id], created_at, **fields))
        except NotFoundError:
            errors.append(f'Motorcycle not found for task "{label}"')
        except ValidationError as e:
            errors.append(f'Task "{label}": {e}')

    if not imported:
        raise ValidationError(f"No valid tasks to import: {'; '.join(errors)}")

    db.add_all(imported)
    await db.commit()
    for task in imported:
        await db.refresh(task)

    logger.info(f"Imported {len(imported)} tasks for user {user_id} ({len(errors)} skipped)")
    return BatchImportResult(tasks=imported, errors=errors)


EDITABLE_TASK_FIELDS = {
    "name",
    "description",
    "interval_miles",
    "interval_days",
    "interval_base",
    "priority",
    "is_recurring",
}


async def update_task(
    db: AsyncSession,
    user_id: str,
    task_id: str,
    *,
    next_due_odometer: Optional[int] = None,
    **changes: Any,
) -> MaintenanceTask:
    """
    Edit a task's settings and recompute the parts of its schedule they affect.

    Only the fields passed in `changes` are touched; passing None for an
    interval clears it. A changed mileage interval or interval base restarts
    the mileage schedule from the current reading, a changed day interval
    restarts the date schedule from now. An explicit next_due_odometer
    sets the due point directly; for a current-based task without a new
    interval it also becomes the implied interval.

    Raises:
        NotFoundError: task not owned by the user
        ValidationError: unknown field, empty name, invalid value, or an
            explicit due odometer not above the current mileage
    """
    unknown = set(changes) - EDITABLE_TASK_FIELDS
    if unknown:
        raise ValidationError(f"Cannot edit task fields: {', '.join(sorted(unknown))}")
    if "name" in changes and not changes["name"]:
        raise ValidationError("Task name is required")

    task = await get_owned_task(db, user_id, task_id)
    motorcycle = await get_owned_motorcycle(db, user_id, task.motorcycle_id)
    current_mileage = motorcycle.current_mileage or 0

    if next_due_odometer is not None and next_due_odometer <= current_mileage:
        raise ValidationError("Next due mileage must be greater than current motorcycle mileage")

    try:
        for key, value in changes.items():
            setattr(task, key, value)
    except ValueError as e:
        await db.rollback()
        raise ValidationError(str(e)) from e

    if (
        next_due_odometer is not None
        and "interval_miles" not in changes
        and task.interval_base == IntervalBase.CURRENT.value
        and current_mileage > 0
    ):
        task.interval_miles = next_due_odometer - current_mileage

    miles_changed = "interval_miles" in changes or "interval_base" in changes
    days_changed = "interval_days" in changes
    edited_at = utcnow()
    schedule = reschedule_after_edit(
        task,
        motorcycle.current_mileage,
        edited_at,
        miles_changed=miles_changed,
        days_changed=days_changed,
        explicit_due_odometer=next_due_odometer,
    )

    if miles_changed or next_due_odometer is not None:
        task.base_odometer = motorcycle.current_mileage
    if days_changed:
        task.base_date = edited_at
    task.next_due_odometer = schedule.next_due_odometer
    task.next_due_date = schedule.next_due_date

    await db.commit()
    await db.refresh(task)

    logger.info(
        f"Task {task.id} updated ({', '.join(sorted(changes)) or 'schedule'}), "
        f"next due {task.next_due_odometer} / {task.next_due_date}"
    )
    return task


async def set_task_archived(
    db: AsyncSession, user_id: str, task_id: str, archived: bool = True
) -> MaintenanceTask:
    """Archive (or restore) a task; service records keep pointing at it."""
    task = await get_owned_task(db, user_id, task_id)
    task.archived = archived
    await db.commit()
    logger.info(f"Task {task_id} {'archived' if archived else 'restored'}")
    return task


# ============================================================================
# Completion
# ============================================================================


def maintenance_completed_data(
    task: MaintenanceTask, motorcycle: Motorcycle, record: MaintenanceRecord
) -> Dict[str, Any]:
    return {
        "task": {"id": task.id, "name": task.name},
        "motorcycle": motorcycle.summary(),
        "record": {
            "id": record.id,
            "date": record.date,
            "mileage": record.mileage,
            "cost": float(record.cost) if record.cost is not None else None,
            "notes": record.notes,
        },
    }


async def complete_task(
    db: AsyncSession,
    user_id: str,
    task_id: str,
    *,
    service_mileage: Optional[int] = None,
    service_date: Optional[datetime] = None,
    reset_schedule: bool = True,
    cost: Optional[Decimal] = None,
    notes: Optional[str] = None,
    receipt_url: Optional[str] = None,
    dispatcher: Optional[IntegrationDispatcher] = None,
) -> CompletionResult:
    """
    Complete a task: record the service and advance its schedule.

    Args:
        db: Database session
        user_id: Owner of the task's motorcycle
        task_id: Task being completed
        service_mileage: Odometer at service (defaults to current mileage)
        service_date: When the service happened (defaults to now)
        reset_schedule: True restarts the schedule from this service; False
            keeps the existing due point if the service was early
        cost: Service cost
        notes: Service notes
        receipt_url: Link to a receipt
        dispatcher: Integration dispatcher (defaults to one bound to db)

    Returns:
        CompletionResult with the new record and next due values. The
        maintenance_completed dispatch result is attached but never affects
        the completion itself.

    Raises:
        NotFoundError: task not owned by the user
        ValidationError: service mileage below the motorcycle's current mileage
    """
    task = await get_owned_task(db, user_id, task_id)
    motorcycle = await get_owned_motorcycle(db, user_id, task.motorcycle_id)

    if service_mileage is not None and service_mileage < 0:
        raise ValidationError("Mileage cannot be negative")
    if (
        service_mileage is not None
        and motorcycle.current_mileage is not None
        and service_mileage < motorcycle.current_mileage
    ):
        raise ValidationError(
            "Maintenance mileage cannot be less than current motorcycle mileage"
        )

    mileage = service_mileage if service_mileage is not None else motorcycle.current_mileage
    serviced_at = as_naive_utc(service_date) or utcnow()

    next_due = compute_for_completion(task, mileage, serviced_at, reset_schedule)

    record = MaintenanceRecord(
        motorcycle_id=motorcycle.id,
        task_id=task.id,
        date=serviced_at,
        mileage=mileage,
        cost=cost,
        notes=notes or f"Completed {task.name}",
        receipt_url=receipt_url,
        is_scheduled=True,
        resets_interval=reset_schedule,
        next_due_odometer=next_due.next_due_odometer,
        next_due_date=next_due.next_due_date,
    )
    db.add(record)

    task.base_odometer = mileage
    task.base_date = serviced_at
    task.next_due_odometer = next_due.next_due_odometer
    task.next_due_date = next_due.next_due_date

    if mileage is not None and (
        motorcycle.current_mileage is None or mileage > motorcycle.current_mileage
    ):
        motorcycle.current_mileage = mileage

    await db.commit()
    await db.refresh(record)

    logger.info(
        f"Task {task.id} completed at {mileage} "
        f"({'reset' if reset_schedule else 'maintain'}), next due "
        f"{next_due.next_due_odometer} / {next_due.next_due_date}"
    )

    dispatch = await dispatch_quietly(
        dispatcher or IntegrationDispatcher(db),
        user_id,
        EventType.MAINTENANCE_COMPLETED.value,
        maintenance_completed_data(task, motorcycle, record),
    )

    return CompletionResult(
        record=record,
        next_due_odometer=next_due.next_due_odometer,
        next_due_date=next_due.next_due_date,
        dispatch=dispatch,
    )


# ============================================================================
# Service history
# ============================================================================


async def add_service_record(
    db: AsyncSession,
    user_id: str,
    motorcycle_id: str,
    *,
    service_date: datetime,
    mileage: Optional[int] = None,
    task_id: Optional[str] = None,
    cost: Optional[Decimal] = None,
    notes: Optional[str] = None,
    receipt_url: Optional[str] = None,
) -> MaintenanceRecord:
    """
    Enter past service by hand.

    Task schedules are left alone and no event is dispatched.

    Raises:
        NotFoundError: motorcycle or linked task not owned by the user
        ValidationError: mileage above the motorcycle's current mileage
    """
    motorcycle = await get_owned_motorcycle(db, user_id, motorcycle_id)

    if task_id is not None:
        task = await get_owned_task(db, user_id, task_id)
        if task.motorcycle_id != motorcycle.id:
            raise ValidationError("Task does not belong to this motorcycle")

    if mileage is not None:
        if mileage < 0:
            raise ValidationError("Mileage cannot be negative")
        if motorcycle.current_mileage is not None and mileage > motorcycle.current_mileage:
            raise ValidationError(
                "Service mileage cannot be greater than current motorcycle mileage"
            )

    record = MaintenanceRecord(
        motorcycle_id=motorcycle.id,
        task_id=task_id,
        date=as_naive_utc(service_date),
        mileage=mileage,
        cost=cost,
        notes=notes,
        receipt_url=receipt_url,
        is_scheduled=False,
        resets_interval=False,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def list_service_records(
    db: AsyncSession, user_id: str, motorcycle_id: Optional[str] = None
) -> List[MaintenanceRecord]:
    """Service history, newest first, for one motorcycle or the whole garage."""
    stmt = (
        select(MaintenanceRecord)
        .join(Motorcycle, MaintenanceRecord.motorcycle_id == Motorcycle.id)
        .where(Motorcycle.user_id == user_id)
    )
    if motorcycle_id is not None:
        await get_owned_motorcycle(db, user_id, motorcycle_id)
        stmt = stmt.where(MaintenanceRecord.motorcycle_id == motorcycle_id)
    result = await db.execute(stmt.order_by(MaintenanceRecord.date.desc()))
    return list(result.scalars().all())


async def get_owned_record(db: AsyncSession, user_id: str, record_id: str) -> MaintenanceRecord:
    """
    Load a service record whose motorcycle belongs to the user.

    Raises:
        NotFoundError: unknown record, or owned by someone else
    """
    result = await db.execute(
        select(MaintenanceRecord)
        .join(Motorcycle, MaintenanceRecord.motorcycle_id == Motorcycle.id)
        .where(MaintenanceRecord.id == record_id, Motorcycle.user_id == user_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError("Service record not found")
    return record


async def update_service_record(
    db: AsyncSession,
    user_id: str,
    record_id: str,
    *,
    service_date: Optional[datetime] = None,
    mileage: Optional[int] = None,
    cost: Optional[Decimal] = None,
    notes: Optional[str] = None,
    receipt_url: Optional[str] = None,
) -> MaintenanceRecord:
    """
    Correct a service record. Fields left as None are unchanged.

    The schedule snapshot and the task link are kept; task schedules are
    not recomputed.

    Raises:
        NotFoundError: record not owned by the user
        ValidationError: mileage above the motorcycle's current mileage
    """
    record = await get_owned_record(db, user_id, record_id)

    if mileage is not None:
        if mileage < 0:
            raise ValidationError("Mileage cannot be negative")
        motorcycle = await get_owned_motorcycle(db, user_id, record.motorcycle_id)
        if motorcycle.current_mileage is not None and mileage > motorcycle.current_mileage:
            raise ValidationError(
                "Service mileage cannot be greater than current motorcycle mileage"
            )
        record.mileage = mileage

    if service_date is not None:
        record.date = as_naive_utc(service_date)
    if cost is not None:
        record.cost = cost
    if notes is not None:
        record.notes = notes
    if receipt_url is not None:
        record.receipt_url = receipt_url

    await db.commit()
    await db.refresh(record)
    logger.info(f"Service record {record_id} corrected")
    return record


async def delete_service_record(db: AsyncSession, user_id: str, record_id: str) -> None:
    record = await get_owned_record(db, user_id, record_id)
    await db.delete(record)
    await db.commit()
    logger.info(f"Service record {record_id} deleted")


# ============================================================================
# Dashboard
# ============================================================================


async def build_dashboard(
    db: AsyncSession, user_id: str, today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Garage overview.

    Returns:
        {
            "motorcycles": [Motorcycle],
            "upcomingMaintenance": [dict],  # top ranked rows
            "overdueCount": int,
        }
    """
    today = today or utcnow().date()
    motorcycles = await list_motorcycles(db, user_id)
    by_id = {m.id: m for m in motorcycles}

    tasks: List[MaintenanceTask] = []
    if by_id:
        result = await db.execute(
            select(MaintenanceTask).where(
                MaintenanceTask.motorcycle_id.in_(list(by_id)),
                MaintenanceTask.archived.is_(False),
            )
        )
        tasks = list(result.scalars().all())

    rows, due_count = build_upcoming(tasks, by_id, today)
    return {
        "motorcycles": motorcycles,
        "upcomingMaintenance": [row.to_dict() for row in rows[:DASHBOARD_UPCOMING_LIMIT]],
        "overdueCount": due_count,
    }
