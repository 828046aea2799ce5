"""
Next-due computation for maintenance tasks.

Pure functions: they read task settings and return new due values, and
never touch the database. Callers persist the result.

Two completion strategies:
- reset: the schedule restarts from the service point
- maintain: early service keeps the existing due point, late service
  restarts from the service point
Zero-based tasks are additionally re-pinned to the next multiple of their
interval whenever the odometer moves.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from rideway.models.maintenance import IntervalBase


@dataclass(frozen=True)
class NextDue:
    """Result of a schedule computation."""

    next_due_odometer: Optional[int]
    next_due_date: Optional[date]


@dataclass(frozen=True)
class MileageRebase:
    """New schedule for a zero-based task after an odometer change."""

    next_due_odometer: int
    base_odometer: int


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def next_zero_based_odometer(mileage: int, interval_miles: int) -> int:
    """Smallest multiple of the interval strictly above the given mileage."""
    return (mileage // interval_miles + 1) * interval_miles


def reset_due_odometer(service_mileage: Optional[int], interval_miles: Optional[int]) -> Optional[int]:
    if not interval_miles:
        return None
    return (service_mileage or 0) + interval_miles


def reset_due_date(
    reset_at: Union[date, datetime], interval_days: Optional[int]
) -> Optional[date]:
    if not interval_days:
        return None
    return _as_date(reset_at) + timedelta(days=interval_days)


def maintain_due_odometer(
    service_mileage: Optional[int],
    interval_miles: Optional[int],
    previous_due_odometer: Optional[int],
) -> Optional[int]:
    """Keep the previous due odometer when serviced early, else advance."""
    if not interval_miles:
        return None
    serviced = service_mileage or 0
    if previous_due_odometer is not None and serviced < previous_due_odometer:
        return previous_due_odometer
    return serviced + interval_miles


def maintain_due_date(
    reset_at: Union[date, datetime],
    interval_days: Optional[int],
    previous_due_date: Optional[date],
) -> Optional[date]:
    """Calendar-date counterpart of maintain_due_odometer."""
    if not interval_days:
        return None
    service_day = _as_date(reset_at)
    if previous_due_date is not None and service_day < _as_date(previous_due_date):
        return _as_date(previous_due_date)
    return service_day + timedelta(days=interval_days)


def compute_next_due(
    *,
    interval_miles: Optional[int],
    interval_days: Optional[int],
    service_mileage: Optional[int],
    reset_at: Union[date, datetime],
    reset_schedule: bool = True,
    previous_due_odometer: Optional[int] = None,
    previous_due_date: Optional[date] = None,
) -> NextDue:
    """
    Compute the schedule that follows a completed service.

    Args:
        interval_miles: Mileage interval (None or 0 disables mileage tracking)
        interval_days: Day interval (None or 0 disables date tracking)
        service_mileage: Odometer at service; None counts as 0
        reset_at: When the service happened
        reset_schedule: True for the reset strategy, False to maintain the
            existing schedule when the service was early
        previous_due_odometer: Due odometer before this service
        previous_due_date: Due date before this service

    Returns:
        NextDue with the new odometer/date, either of which may be None
    """
    if reset_schedule:
        return NextDue(
            next_due_odometer=reset_due_odometer(service_mileage, interval_miles),
            next_due_date=reset_due_date(reset_at, interval_days),
        )

    return NextDue(
        next_due_odometer=maintain_due_odometer(
            service_mileage, interval_miles, previous_due_odometer
        ),
        next_due_date=maintain_due_date(reset_at, interval_days, previous_due_date),
    )


def compute_for_completion(task, service_mileage: Optional[int], reset_at, reset_schedule: bool) -> NextDue:
    """compute_next_due fed from a MaintenanceTask-like object."""
    return compute_next_due(
        interval_miles=task.interval_miles,
        interval_days=task.interval_days,
        service_mileage=service_mileage,
        reset_at=reset_at,
        reset_schedule=reset_schedule,
        previous_due_odometer=task.next_due_odometer,
        previous_due_date=task.next_due_date,
    )


def rebase_after_mileage_change(task, new_mileage: Optional[int]) -> Optional[MileageRebase]:
    """
    Re-pin a zero-based task to the next interval multiple.

    Returns None when the task is not affected: current-based tasks only move
    on explicit completion, so their due point never drifts as mileage accrues.
    """
    if task.interval_base != IntervalBase.ZERO.value or not task.interval_miles:
        return None
    mileage = new_mileage or 0
    return MileageRebase(
        next_due_odometer=next_zero_based_odometer(mileage, task.interval_miles),
        base_odometer=mileage,
    )


def initial_schedule(task, current_mileage: Optional[int], created_at) -> NextDue:
    """Schedule for a newly created task, counted from its base values."""
    base_odometer = task.base_odometer if task.base_odometer is not None else current_mileage
    base_date = task.base_date or created_at

    next_due_odometer = None
    if task.interval_miles:
        if task.interval_base == IntervalBase.ZERO.value:
            next_due_odometer = next_zero_based_odometer(base_odometer or 0, task.interval_miles)
        else:
            next_due_odometer = (base_odometer or 0) + task.interval_miles

    return NextDue(
        next_due_odometer=next_due_odometer,
        next_due_date=reset_due_date(base_date, task.interval_days),
    )


def reschedule_after_edit(
    task,
    current_mileage: Optional[int],
    edited_at,
    *,
    miles_changed: bool = False,
    days_changed: bool = False,
    explicit_due_odometer: Optional[int] = None,
) -> NextDue:
    """
    Schedule for a task whose settings were just edited.

    `task` already carries the edited intervals. An explicit due odometer
    wins over the mileage interval. A changed interval restarts that side of
    the schedule from the current reading or the edit time; a cleared
    interval clears it. Untouched sides keep their due values.
    """
    next_due_odometer = task.next_due_odometer
    if explicit_due_odometer is not None:
        next_due_odometer = explicit_due_odometer
    elif miles_changed:
        next_due_odometer = None
        if task.interval_miles:
            if task.interval_base == IntervalBase.ZERO.value:
                next_due_odometer = next_zero_based_odometer(current_mileage or 0, task.interval_miles)
            else:
                next_due_odometer = (current_mileage or 0) + task.interval_miles

    next_due_date = task.next_due_date
    if days_changed:
        next_due_date = reset_due_date(edited_at, task.interval_days)

    return NextDue(next_due_odometer=next_due_odometer, next_due_date=next_due_date)
