"""Motorcycle endpoints: garage and mileage."""

from typing import List

from fastapi import APIRouter, Depends, status
from rideway.routes.deps import get_current_user_id, get_debouncer, get_dispatcher
from rideway.schemas import (
    MileageLogResponse,
    MileageUpdate,
    MileageUpdateResponse,
    MotorcycleCreate,
    MotorcycleResponse,
)
from rideway.services import motorcycle_service
from rideway.services.database import get_db
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.utils.notification_tracker import NotificationDebouncer
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("", response_model=List[MotorcycleResponse])
async def list_motorcycles(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    motorcycles = await motorcycle_service.list_motorcycles(db, user_id)
    return [MotorcycleResponse.model_validate(m) for m in motorcycles]


@router.post("", response_model=MotorcycleResponse, status_code=status.HTTP_201_CREATED)
async def create_motorcycle(
    body: MotorcycleCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """Add a motorcycle; dispatches motorcycle_added."""
    motorcycle = await motorcycle_service.create_motorcycle(
        db,
        user_id,
        name=body.name,
        make=body.make,
        model=body.model,
        year=body.year,
        vin=body.vin,
        color=body.color,
        purchase_date=body.purchaseDate,
        current_mileage=body.currentMileage,
        is_owned=body.isOwned,
        is_default=body.isDefault,
        notes=body.notes,
        dispatcher=dispatcher,
    )
    return MotorcycleResponse.model_validate(motorcycle)


@router.get("/{motorcycle_id}", response_model=MotorcycleResponse)
async def get_motorcycle(
    motorcycle_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    motorcycle = await motorcycle_service.get_owned_motorcycle(db, user_id, motorcycle_id)
    return MotorcycleResponse.model_validate(motorcycle)


@router.post("/{motorcycle_id}/mileage", response_model=MileageUpdateResponse)
async def update_mileage(
    motorcycle_id: str,
    body: MileageUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    debouncer: NotificationDebouncer = Depends(get_debouncer),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """
    Record a new odometer reading.

    Dispatches mileage_updated and maintenance_due for tasks that became
    due; notification failures never fail the update.
    """
    result = await motorcycle_service.update_mileage(
        db,
        user_id,
        motorcycle_id,
        body.newMileage,
        debouncer=debouncer,
        notes=body.notes,
        dispatcher=dispatcher,
    )
    return MileageUpdateResponse(
        motorcycleId=result.motorcycle_id,
        previousMileage=result.previous_mileage,
        newMileage=result.new_mileage,
        changed=result.changed,
        log=MileageLogResponse.model_validate(result.log) if result.log else None,
        tasksRebased=result.tasks_rebased,
        notificationsTriggered=result.notifications_triggered,
        message=None if result.changed else "Mileage unchanged, no log entry created",
    )


@router.get("/{motorcycle_id}/mileage", response_model=List[MileageLogResponse])
async def list_mileage_logs(
    motorcycle_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    logs = await motorcycle_service.list_mileage_logs(db, user_id, motorcycle_id)
    return [MileageLogResponse.model_validate(log) for log in logs]
