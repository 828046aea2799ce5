"""Integration management: CRUD, subscriptions and connection tests."""

import json
import logging
from typing import Any, Dict, List, Optional

from rideway.models.integration import EventType, Integration, IntegrationEvent, IntegrationEventLog
from rideway.services.errors import IntegrationConfigError, NotFoundError, ValidationError
from rideway.services.event_schemas import generate_example_payload
from rideway.services.integration_configs import (
    decode_integration_config,
    encode_integration_config,
)
from rideway.services.integration_dispatcher import DispatchResult, IntegrationDispatcher
from rideway.utils.encryption import ConfigEncryption, get_config_encryption
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = logging.getLogger(__name__)


def _encrypted_config(
    integration_type: str, config: Dict[str, Any], encryption: ConfigEncryption
) -> str:
    try:
        typed = decode_integration_config(integration_type, config)
    except IntegrationConfigError as e:
        raise ValidationError(str(e)) from e
    return encryption.encrypt(encode_integration_config(typed))


def _build_events(events: List[Dict[str, Any]]) -> List[IntegrationEvent]:
    built = []
    for event in events:
        event_type = event.get("event_type")
        try:
            EventType(event_type)
        except ValueError:
            raise ValidationError(f"Unknown event type: {event_type}")

        template_data = event.get("template_data")
        built.append(
            IntegrationEvent(
                event_type=event_type,
                enabled=event.get("enabled", True),
                template_data=json.dumps(template_data) if template_data else None,
                payload_template=event.get("payload_template"),
            )
        )
    return built


def integration_to_dict(
    integration: Integration, encryption: Optional[ConfigEncryption] = None
) -> Dict[str, Any]:
    """Client view of an integration with its config decrypted."""
    encryption = encryption or get_config_encryption()
    try:
        config = json.loads(encryption.decrypt(integration.config))
    except ValueError:
        logger.warning(f"Stored config for integration {integration.id} is not valid JSON")
        config = {}

    return {
        "id": integration.id,
        "name": integration.name,
        "type": integration.type,
        "active": integration.active,
        "config": config,
        "events": [
            {
                "id": event.id,
                "eventType": event.event_type,
                "enabled": event.enabled,
                "templateData": json.loads(event.template_data) if event.template_data else None,
                "payloadTemplate": event.payload_template,
            }
            for event in integration.events
        ],
        "createdAt": integration.created_at,
        "updatedAt": integration.updated_at,
    }


async def list_integrations(db: AsyncSession, user_id: str) -> List[Integration]:
    result = await db.execute(
        select(Integration)
        .options(selectinload(Integration.events))
        .where(Integration.user_id == user_id)
        .order_by(Integration.created_at)
    )
    return list(result.scalars().all())


async def get_integration(db: AsyncSession, user_id: str, integration_id: str) -> Integration:
    """
    Raises:
        NotFoundError: unknown integration, or owned by someone else
    """
    result = await db.execute(
        select(Integration)
        .options(selectinload(Integration.events))
        .where(Integration.id == integration_id, Integration.user_id == user_id)
    )
    integration = result.scalar_one_or_none()
    if integration is None:
        raise NotFoundError("Integration not found")
    return integration


async def create_integration(
    db: AsyncSession,
    user_id: str,
    *,
    name: str,
    integration_type: str,
    config: Dict[str, Any],
    active: bool = True,
    events: Optional[List[Dict[str, Any]]] = None,
    encryption: Optional[ConfigEncryption] = None,
) -> Integration:
    """
    Create an integration; the config is validated for its type and stored encrypted.

    Raises:
        ValidationError: unsupported type, config that does not fit the
            type, or an unknown event type in events
    """
    encryption = encryption or get_config_encryption()
    stored = _encrypted_config(integration_type, config, encryption)

    integration = Integration(
        user_id=user_id,
        name=name,
        type=integration_type,
        active=active,
        config=stored,
    )
    integration.events = _build_events(events or [])
    db.add(integration)
    await db.commit()

    logger.info(f"Integration {integration.id} ({integration_type}) created for user {user_id}")
    return await get_integration(db, user_id, integration.id)


async def update_integration(
    db: AsyncSession,
    user_id: str,
    integration_id: str,
    *,
    name: Optional[str] = None,
    active: Optional[bool] = None,
    config: Optional[Dict[str, Any]] = None,
    events: Optional[List[Dict[str, Any]]] = None,
    encryption: Optional[ConfigEncryption] = None,
) -> Integration:
    """
    Partial update. A provided events list replaces every subscription.

    Raises:
        NotFoundError: integration not owned by the user
        ValidationError: invalid config or event type
    """
    integration = await get_integration(db, user_id, integration_id)

    if name is not None:
        integration.name = name
    if active is not None:
        integration.active = active
    if config is not None:
        integration.config = _encrypted_config(
            integration.type, config, encryption or get_config_encryption()
        )
    if events is not None:
        integration.events = _build_events(events)

    await db.commit()
    logger.info(f"Integration {integration_id} updated")
    return await get_integration(db, user_id, integration_id)


async def delete_integration(db: AsyncSession, user_id: str, integration_id: str) -> None:
    integration = await get_integration(db, user_id, integration_id)
    await db.delete(integration)
    await db.commit()
    logger.info(f"Integration {integration_id} deleted")


async def list_event_logs(
    db: AsyncSession, user_id: str, integration_id: str, limit: int = 50
) -> List[IntegrationEventLog]:
    """Most recent dispatch attempts for one integration."""
    await get_integration(db, user_id, integration_id)
    result = await db.execute(
        select(IntegrationEventLog)
        .where(IntegrationEventLog.integration_id == integration_id)
        .order_by(IntegrationEventLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def send_test_event(
    db: AsyncSession,
    user_id: str,
    integration_id: str,
    dispatcher: Optional[IntegrationDispatcher] = None,
) -> DispatchResult:
    """
    Send an example maintenance_due event to one integration.

    The event goes out whether or not the integration is active or
    subscribed to maintenance_due.
    """
    await get_integration(db, user_id, integration_id)

    example = generate_example_payload(EventType.MAINTENANCE_DUE.value)
    data = {key: value for key, value in example.items() if key not in ("event", "timestamp")}

    dispatcher = dispatcher or IntegrationDispatcher(db)
    return await dispatcher.trigger_event(
        user_id,
        EventType.MAINTENANCE_DUE.value,
        data,
        integration_id=integration_id,
        subscribed_only=False,
    )
