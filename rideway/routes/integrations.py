"""Integration endpoints: CRUD, connection tests, event schemas and template preview."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from rideway.routes.deps import get_current_user_id, get_dispatcher
from rideway.schemas import (
    EventLogResponse,
    IntegrationCreate,
    IntegrationUpdate,
    TemplatePreviewRequest,
)
from rideway.services import integration_service
from rideway.services.database import get_db
from rideway.services.event_schemas import (
    SCHEMA_VERSION,
    generate_default_template,
    generate_example_payload,
    get_safe_event_schema,
    list_schemas,
)
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.services.templating import preview_template
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


# Static paths are registered before /{integration_id}


@router.get("/event-schemas")
async def event_schemas(type: Optional[str] = None):
    """
    All event schemas, or one schema with an example payload.

    Unknown types get the minimal event/timestamp schema.
    """
    if type:
        schema = get_safe_event_schema(type)
        return {
            "version": SCHEMA_VERSION,
            "type": type,
            "schema": schema.to_dict(),
            "examplePayload": generate_example_payload(type),
            "defaultTemplate": generate_default_template(type),
        }
    return {"version": SCHEMA_VERSION, "schemas": list_schemas()}


@router.post("/template/preview")
async def template_preview(body: TemplatePreviewRequest):
    """Render a payload template against an event's example payload."""
    return preview_template(body.template, body.eventType)


@router.get("")
async def list_integrations(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    integrations = await integration_service.list_integrations(db, user_id)
    return [integration_service.integration_to_dict(i) for i in integrations]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_integration(
    body: IntegrationCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    integration = await integration_service.create_integration(
        db,
        user_id,
        name=body.name,
        integration_type=body.type.value,
        config=body.config,
        active=body.active,
        events=[event.to_service() for event in body.events],
    )
    return integration_service.integration_to_dict(integration)


@router.get("/{integration_id}")
async def get_integration(
    integration_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    integration = await integration_service.get_integration(db, user_id, integration_id)
    return integration_service.integration_to_dict(integration)


@router.patch("/{integration_id}")
async def update_integration(
    integration_id: str,
    body: IntegrationUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    integration = await integration_service.update_integration(
        db,
        user_id,
        integration_id,
        name=body.name,
        active=body.active,
        config=body.config,
        events=[event.to_service() for event in body.events] if body.events is not None else None,
    )
    return integration_service.integration_to_dict(integration)


@router.delete("/{integration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_integration(
    integration_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await integration_service.delete_integration(db, user_id, integration_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{integration_id}/logs", response_model=List[EventLogResponse])
async def list_event_logs(
    integration_id: str,
    limit: int = 50,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    logs = await integration_service.list_event_logs(db, user_id, integration_id, limit)
    return [EventLogResponse.model_validate(log) for log in logs]


@router.post("/{integration_id}/test")
async def send_test_event(
    integration_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: IntegrationDispatcher = Depends(get_dispatcher),
):
    """Send an example maintenance_due event to this integration only."""
    result = await integration_service.send_test_event(db, user_id, integration_id, dispatcher)
    return result.to_dict()
