"""Motorcycle operations: garage management and mileage updates."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from rideway.config import settings
from rideway.models.base import utcnow
from rideway.models.integration import EventType
from rideway.models.motorcycle import MileageLog, Motorcycle
from rideway.services.due_detector import find_newly_due_tasks, load_active_tasks
from rideway.services.due_notifier import maintenance_due_data, notify_due_tasks
from rideway.services.errors import NotFoundError, ValidationError
from rideway.services.integration_dispatcher import IntegrationDispatcher, dispatch_quietly
from rideway.services.interval_model import rebase_after_mileage_change
from rideway.utils.notification_tracker import NotificationDebouncer
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DUPLICATE_LOG_WINDOW = timedelta(seconds=60)


@dataclass
class MileageUpdateResult:
    """Outcome of update_mileage."""

    motorcycle_id: str
    previous_mileage: Optional[int]
    new_mileage: int
    changed: bool
    log: Optional[MileageLog] = None
    tasks_rebased: int = 0
    notifications_triggered: int = 0
    dispatch_results: List[Dict[str, Any]] = field(default_factory=list)


# ============================================================================
# Lookups
# ============================================================================


async def get_owned_motorcycle(db: AsyncSession, user_id: str, motorcycle_id: str) -> Motorcycle:
    """
    Load a motorcycle that belongs to the user.

    Raises:
        NotFoundError: unknown id, or owned by someone else
    """
    result = await db.execute(
        select(Motorcycle).where(Motorcycle.id == motorcycle_id, Motorcycle.user_id == user_id)
    )
    motorcycle = result.scalar_one_or_none()
    if motorcycle is None:
        raise NotFoundError("Motorcycle not found")
    return motorcycle


async def list_motorcycles(db: AsyncSession, user_id: str) -> List[Motorcycle]:
    result = await db.execute(
        select(Motorcycle)
        .where(Motorcycle.user_id == user_id)
        .order_by(Motorcycle.is_default.desc(), Motorcycle.created_at)
    )
    return list(result.scalars().all())


async def list_mileage_logs(db: AsyncSession, user_id: str, motorcycle_id: str) -> List[MileageLog]:
    """Mileage history, newest first."""
    await get_owned_motorcycle(db, user_id, motorcycle_id)
    result = await db.execute(
        select(MileageLog)
        .where(MileageLog.motorcycle_id == motorcycle_id)
        .order_by(MileageLog.date.desc())
    )
    return list(result.scalars().all())


# ============================================================================
# Create
# ============================================================================


def motorcycle_added_data(motorcycle: Motorcycle) -> Dict[str, Any]:
    return {
        "id": motorcycle.id,
        "name": motorcycle.name,
        "make": motorcycle.make,
        "model": motorcycle.model,
        "year": motorcycle.year,
        "vin": motorcycle.vin,
        "color": motorcycle.color,
    }


async def create_motorcycle(
    db: AsyncSession,
    user_id: str,
    *,
    name: str,
    make: str,
    model: str,
    year: int,
    vin: Optional[str] = None,
    color: Optional[str] = None,
    purchase_date: Optional[date] = None,
    current_mileage: Optional[int] = None,
    is_owned: bool = True,
    is_default: bool = False,
    notes: Optional[str] = None,
    dispatcher: Optional[IntegrationDispatcher] = None,
) -> Motorcycle:
    """
    Add a motorcycle to the user's garage and dispatch motorcycle_added.

    Making the new motorcycle the default clears the flag on the user's
    other motorcycles. The user's first motorcycle always becomes default.

    Raises:
        ValidationError: negative mileage or missing identification
    """
    if not name or not make or not model:
        raise ValidationError("Name, make and model are required")
    if current_mileage is not None and current_mileage < 0:
        raise ValidationError("Mileage cannot be negative")

    existing = await list_motorcycles(db, user_id)
    if not existing:
        is_default = True

    if is_default and existing:
        await db.execute(
            update(Motorcycle).where(Motorcycle.user_id == user_id).values(is_default=False)
        )

    motorcycle = Motorcycle(
        user_id=user_id,
        name=name,
        make=make,
        model=model,
        year=year,
        vin=vin,
        color=color,
        purchase_date=purchase_date,
        current_mileage=current_mileage,
        is_owned=is_owned,
        is_default=is_default,
        notes=notes,
    )
    db.add(motorcycle)
    await db.commit()
    await db.refresh(motorcycle)

    logger.info(f"Motorcycle {motorcycle.id} added for user {user_id}")

    await dispatch_quietly(
        dispatcher or IntegrationDispatcher(db),
        user_id,
        EventType.MOTORCYCLE_ADDED.value,
        motorcycle_added_data(motorcycle),
    )
    return motorcycle


# ============================================================================
# Mileage update
# ============================================================================


async def _find_recent_duplicate(
    db: AsyncSession, motorcycle_id: str, new_mileage: int
) -> Optional[MileageLog]:
    result = await db.execute(
        select(MileageLog)
        .where(
            MileageLog.motorcycle_id == motorcycle_id,
            MileageLog.new_mileage == new_mileage,
            MileageLog.date >= utcnow() - DUPLICATE_LOG_WINDOW,
        )
        .order_by(MileageLog.date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def update_mileage(
    db: AsyncSession,
    user_id: str,
    motorcycle_id: str,
    new_mileage: int,
    *,
    debouncer: NotificationDebouncer,
    notes: Optional[str] = None,
    dispatcher: Optional[IntegrationDispatcher] = None,
) -> MileageUpdateResult:
    """
    Record a new odometer reading.

    Steps:
    1. Validate (no regression); an unchanged reading is a no-op
    2. Detect tasks whose due odometer lies in (old, new]
    3. Log the reading, move the odometer, re-pin zero-based tasks, commit
    4. Dispatch mileage_updated, then maintenance_due for each newly due
       task that passes the debouncer

    Detection runs against the schedule as it stood before the reading, so
    a zero-based task crossing its multiple is reported before it is
    re-pinned to the next one.

    Args:
        db: Database session
        user_id: Owner of the motorcycle
        motorcycle_id: Motorcycle to update
        new_mileage: New odometer reading
        debouncer: Cooldown guard shared across requests
        notes: Optional log note
        dispatcher: Integration dispatcher (defaults to one bound to db)

    Returns:
        MileageUpdateResult with the number of notifications triggered

    Raises:
        NotFoundError: motorcycle not owned by the user
        ValidationError: negative reading or mileage regression
    """
    if new_mileage is None or new_mileage < 0:
        raise ValidationError("Mileage must be a non-negative number")

    motorcycle = await get_owned_motorcycle(db, user_id, motorcycle_id)
    old_mileage = motorcycle.current_mileage

    if old_mileage is not None and new_mileage < old_mileage:
        raise ValidationError(
            f"New mileage ({new_mileage}) cannot be less than current mileage ({old_mileage})"
        )

    if old_mileage == new_mileage:
        logger.info(f"Mileage unchanged for motorcycle {motorcycle_id}, nothing to do")
        return MileageUpdateResult(
            motorcycle_id=motorcycle_id,
            previous_mileage=old_mileage,
            new_mileage=new_mileage,
            changed=False,
        )

    newly_due = await find_newly_due_tasks(db, motorcycle_id, old_mileage, new_mileage)
    notify = [(task.id, maintenance_due_data(task, motorcycle)) for task, _ in newly_due]

    log = await _find_recent_duplicate(db, motorcycle_id, new_mileage)
    if log is None:
        log = MileageLog(
            motorcycle_id=motorcycle_id,
            previous_mileage=old_mileage,
            new_mileage=new_mileage,
            date=utcnow(),
            notes=notes or f"Updated mileage to {new_mileage}",
        )
        db.add(log)
    else:
        logger.info(f"Duplicate mileage log detected for {motorcycle_id}, reusing {log.id}")

    motorcycle.current_mileage = new_mileage

    rebased = 0
    for task in await load_active_tasks(db, motorcycle_id):
        rebase = rebase_after_mileage_change(task, new_mileage)
        if rebase is None:
            continue
        task.next_due_odometer = rebase.next_due_odometer
        task.base_odometer = rebase.base_odometer
        rebased += 1

    await db.commit()
    logger.info(
        f"Motorcycle {motorcycle_id} mileage {old_mileage} -> {new_mileage}, "
        f"{rebased} zero-based tasks re-pinned"
    )

    dispatcher = dispatcher or IntegrationDispatcher(db)
    dispatch_results = []

    mileage_event = await dispatch_quietly(
        dispatcher,
        user_id,
        EventType.MILEAGE_UPDATED.value,
        {
            "motorcycle": motorcycle.summary(),
            "previousMileage": old_mileage,
            "newMileage": new_mileage,
            "units": settings.distance_unit,
        },
    )
    if mileage_event is not None:
        dispatch_results.append(mileage_event.to_dict())

    triggered, due_results = await notify_due_tasks(
        user_id, notify, debouncer=debouncer, dispatcher=dispatcher
    )
    dispatch_results.extend(due_results)

    return MileageUpdateResult(
        motorcycle_id=motorcycle_id,
        previous_mileage=old_mileage,
        new_mileage=new_mileage,
        changed=True,
        log=log,
        tasks_rebased=rebased,
        notifications_triggered=triggered,
        dispatch_results=dispatch_results,
    )
