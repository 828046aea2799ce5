"""Maintenance endpoints: tasks, completion, service history and due checks."""

import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from rideway.routes.deps import (
    get_current_user_id,
    get_debouncer,
    get_dispatcher,
    get_rate_limiter,
)
from rideway.schemas import (
    BatchImportResponse,
    CompletionResponse,
    DueCheckResponse,
    RecordResponse,
    ServiceRecordCreate,
    ServiceRecordUpdate,
    TaskCompletion,
    TaskCreate,
    TaskImport,
    TaskResponse,
    TaskUpdate,
)
from rideway.services import due_notifier, maintenance_service
from rideway.services.database import get_db
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.utils.notification_tracker import DueCheckRateLimiter, NotificationDebouncer
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("/tasks", response_model=List[TaskResponse])
async def list_tasks(
    motorcycle_id: str,
    include_archived: bool = False,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    tasks = await maintenance_service.list_tasks(db, user_id, motorcycle_id, include_archived)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    task = await maintenance_service.create_task(
        db,
        user_id,
        body.motorcycleId,
        name=body.name,
        description=body.description,
        interval_miles=body.intervalMiles,
        interval_days=body.intervalDays,
        interval_base=body.intervalBase.value,
        base_odometer=body.baseOdometer,
        base_date=body.baseDate,
        priority=body.priority.value,
        is_recurring=body.isRecurring,
    )
    return TaskResponse.model_validate(task)


@router.post(
    "/tasks/batch",
    response_model=BatchImportResponse,
    status_code=status.HTTP_201_CREATED,
    response_model_exclude_none=True,
)
async def import_tasks(
    body: List[TaskImport],
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Import several tasks; items that fail validation are reported in `errors`."""
    result = await maintenance_service.batch_create_tasks(
        db, user_id, [item.to_service() for item in body]
    )
    return BatchImportResponse(
        message=f"Successfully imported {len(result.tasks)} maintenance tasks",
        tasks=[TaskResponse.model_validate(t) for t in result.tasks],
        errors=result.errors or None,
    )


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Edit task settings; changed intervals recompute the next due point."""
    task = await maintenance_service.update_task(
        db, user_id, task_id, next_due_odometer=body.nextDueMileage, **body.changes()
    )
    return TaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/complete", response_model=CompletionResponse)
async def complete_task(
    task_id: str,
    body: Optional[TaskCompletion] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """Complete a task and advance its schedule; dispatches maintenance_completed."""
    body = body or TaskCompletion()
    result = await maintenance_service.complete_task(
        db,
        user_id,
        task_id,
        service_mileage=body.mileage,
        service_date=body.serviceDate,
        reset_schedule=body.resetSchedule,
        cost=body.cost,
        notes=body.notes,
        receipt_url=body.receiptUrl,
        dispatcher=dispatcher,
    )
    return CompletionResponse(
        message="Maintenance task completed successfully",
        record=RecordResponse.model_validate(result.record),
        nextDueOdometer=result.next_due_odometer,
        nextDueDate=result.next_due_date,
        notifications=result.dispatch.to_dict() if result.dispatch else None,
    )


@router.post("/tasks/{task_id}/archive", response_model=TaskResponse)
async def archive_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    task = await maintenance_service.set_task_archived(db, user_id, task_id, archived=True)
    return TaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/unarchive", response_model=TaskResponse)
async def unarchive_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    task = await maintenance_service.set_task_archived(db, user_id, task_id, archived=False)
    return TaskResponse.model_validate(task)


@router.get("/records", response_model=List[RecordResponse])
async def list_service_records(
    motorcycle_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    records = await maintenance_service.list_service_records(db, user_id, motorcycle_id)
    return [RecordResponse.model_validate(r) for r in records]


@router.post("/records", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def add_service_record(
    body: ServiceRecordCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Manual service-history entry; schedules are not changed."""
    record = await maintenance_service.add_service_record(
        db,
        user_id,
        body.motorcycleId,
        service_date=body.date,
        mileage=body.mileage,
        task_id=body.taskId,
        cost=body.cost,
        notes=body.notes,
        receipt_url=body.receiptUrl,
    )
    return RecordResponse.model_validate(record)


@router.patch("/records/{record_id}", response_model=RecordResponse)
async def update_service_record(
    record_id: str,
    body: ServiceRecordUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    record = await maintenance_service.update_service_record(
        db,
        user_id,
        record_id,
        service_date=body.date,
        mileage=body.mileage,
        cost=body.cost,
        notes=body.notes,
        receipt_url=body.receiptUrl,
    )
    return RecordResponse.model_validate(record)


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service_record(
    record_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await maintenance_service.delete_service_record(db, user_id, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/check-due", response_model=DueCheckResponse, response_model_exclude_none=True)
async def check_due_for_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    debouncer: NotificationDebouncer = Depends(get_debouncer),
    rate_limiter: DueCheckRateLimiter = Depends(get_rate_limiter),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """
    Date-based due check for the current user.

    Allowed once per DUE_CHECK_MIN_INTERVAL_SECONDS; a limited call reports
    the minutes remaining instead of running.
    """
    allowed, remaining = rate_limiter.check(user_id)
    if not allowed:
        return DueCheckResponse(
            success=False,
            message="Rate limited: You can only run this check once per hour",
            timeRemaining=math.ceil(remaining / 60),
        )

    sent = await due_notifier.check_due_time_based_tasks(
        db, user_id, debouncer=debouncer, dispatcher=dispatcher
    )
    return DueCheckResponse(message="Maintenance check completed", notificationsSent=sent)


@router.get("/check-due", response_model=DueCheckResponse, response_model_exclude_none=True)
async def check_due_for_all_users(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    debouncer: NotificationDebouncer = Depends(get_debouncer),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """Date-based due check across every user (the worker runs the same check)."""
    result = await due_notifier.check_all_users(db, debouncer=debouncer, dispatcher=dispatcher)
    return DueCheckResponse(**result.to_dict())
