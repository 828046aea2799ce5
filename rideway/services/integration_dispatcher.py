"""
Event fan-out to a user's integrations.

trigger_event runs Resolve -> Filter -> Build Payload -> Send -> Log:
integrations subscribed to the event are sent to concurrently, each with a
bounded single attempt; a failure in one never affects the others. Every
attempt is written to the integration event log with sensitive values
masked.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from fastapi.encoders import jsonable_encoder
from rideway.config import settings
from rideway.models.base import utcnow
from rideway.models.integration import (
    DispatchStatus,
    EventType,
    Integration,
    IntegrationEvent,
    IntegrationEventLog,
)
from rideway.services.errors import IntegrationConfigError, ValidationError
from rideway.services.integration_configs import decode_integration_config
from rideway.services.transports import IntegrationTransport, TransportOutcome, build_transports
from rideway.utils.encryption import ConfigEncryption, get_config_encryption
from rideway.utils.sanitize import sanitize_data
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = logging.getLogger(__name__)

NO_ACTIVE_INTEGRATIONS = "No active integrations for this event type"


@dataclass
class IntegrationResult:
    """Outcome for one integration."""

    integration_id: str
    integration_type: str
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "integrationId": self.integration_id,
            "type": self.integration_type,
            "success": self.success,
            "message": self.message,
        }


@dataclass
class DispatchResult:
    """Aggregate outcome of one trigger_event call."""

    success: bool
    results: List[IntegrationResult] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
        }
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class _Attempt:
    integration: Integration
    result: IntegrationResult
    outcome: Optional[TransportOutcome]
    payload: Any
    started_at: datetime


def enabled_subscription(integration: Integration, event_type: str) -> Optional[IntegrationEvent]:
    for event in integration.events:
        if event.event_type == event_type and event.enabled:
            return event
    return None


def _template_data(subscription: Optional[IntegrationEvent]) -> Dict[str, Any]:
    if subscription is None or not subscription.template_data:
        return {}
    try:
        data = json.loads(subscription.template_data)
    except ValueError:
        logger.warning(f"Ignoring invalid template data on subscription {subscription.id}")
        return {}
    return data if isinstance(data, dict) else {}


class IntegrationDispatcher:
    """
    Sends events to the integrations a user has configured.

    The HTTP client and transports can be injected; by default a client with
    the configured request timeout is opened per trigger_event call.
    """

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[httpx.AsyncClient] = None,
        encryption: Optional[ConfigEncryption] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.client = client
        self.encryption = encryption or get_config_encryption()
        self.timeout = timeout if timeout is not None else settings.INTEGRATION_REQUEST_TIMEOUT

    async def trigger_event(
        self,
        user_id: str,
        event_type: str,
        data: Dict[str, Any],
        integration_id: Optional[str] = None,
        subscribed_only: bool = True,
    ) -> DispatchResult:
        """
        Dispatch an event to every active integration subscribed to it.

        Args:
            user_id: Owner of the integrations
            event_type: One of EventType
            data: Event data, shaped per the event schema
            integration_id: Restrict dispatch to a single integration
            subscribed_only: False sends to the resolved integrations even
                when inactive or not subscribed (connection tests)

        Returns:
            DispatchResult; success only if every attempt succeeded

        Raises:
            ValidationError: unknown event type
        """
        try:
            event_type = EventType(event_type).value
        except ValueError:
            raise ValidationError(f"Unknown event type: {event_type}")

        logger.info(f"Triggering event: {event_type} for user {user_id}")

        integrations = await self._resolve(user_id, integration_id)
        active = [
            integration
            for integration in integrations
            if not subscribed_only
            or (integration.active and enabled_subscription(integration, event_type) is not None)
        ]

        if not active:
            logger.info(f"No active integrations for {event_type}")
            return DispatchResult(success=True, message=NO_ACTIVE_INTEGRATIONS)

        logger.info(f"Found {len(active)} active integrations for {event_type}")

        base_payload = jsonable_encoder(
            {
                "event": event_type,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **data,
            }
        )
        event_data = jsonable_encoder(data)

        if self.client is not None:
            attempts = await self._send_all(self.client, active, event_type, base_payload, event_data)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                attempts = await self._send_all(client, active, event_type, base_payload, event_data)

        await self._log_attempts(event_type, attempts)

        results = [attempt.result for attempt in attempts]
        return DispatchResult(success=all(r.success for r in results), results=results)

    async def _resolve(self, user_id: str, integration_id: Optional[str]) -> List[Integration]:
        stmt = (
            select(Integration)
            .options(selectinload(Integration.events))
            .where(Integration.user_id == user_id)
        )
        if integration_id is not None:
            stmt = stmt.where(Integration.id == integration_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _send_all(
        self,
        client: httpx.AsyncClient,
        integrations: List[Integration],
        event_type: str,
        base_payload: Dict[str, Any],
        event_data: Dict[str, Any],
    ) -> List[_Attempt]:
        transports = build_transports(client)
        return await asyncio.gather(
            *(
                self._send_one(transports, integration, event_type, base_payload, event_data)
                for integration in integrations
            )
        )

    async def _send_one(
        self,
        transports: Dict[str, IntegrationTransport],
        integration: Integration,
        event_type: str,
        base_payload: Dict[str, Any],
        event_data: Dict[str, Any],
    ) -> _Attempt:
        """Never raises: every failure becomes a failed result."""
        started_at = utcnow()
        payload: Any = None
        outcome: Optional[TransportOutcome] = None

        try:
            config = decode_integration_config(
                integration.type, self.encryption.decrypt(integration.config)
            )
            subscription = enabled_subscription(integration, event_type)
            payload = {**base_payload, **_template_data(subscription)}
            payload_template = subscription.payload_template if subscription else None

            transport = transports[integration.type]
            payload = transport.build_payload(event_type, payload, event_data, config, payload_template)
            outcome = await asyncio.wait_for(transport.send(config, payload), timeout=self.timeout)
            success, message = outcome.success, outcome.message

        except IntegrationConfigError as e:
            success, message = False, str(e)
        except asyncio.TimeoutError:
            success, message = False, f"Timed out after {self.timeout:.0f}s"
        except Exception as e:
            logger.error(
                f"Error triggering {event_type} for integration {integration.id}: {e}",
                exc_info=True,
            )
            success, message = False, str(e) or type(e).__name__

        if success:
            logger.info(f"Integration {integration.id} ({integration.type}): {message}")
        else:
            logger.warning(f"Integration {integration.id} ({integration.type}) failed: {message}")

        return _Attempt(
            integration=integration,
            result=IntegrationResult(
                integration_id=integration.id,
                integration_type=integration.type,
                success=success,
                message=message,
            ),
            outcome=outcome,
            payload=payload,
            started_at=started_at,
        )

    async def _log_attempts(self, event_type: str, attempts: List[_Attempt]) -> None:
        """Persist one sanitized log row per attempt; a logging failure is only reported."""
        for attempt in attempts:
            outcome = attempt.outcome
            request_data = outcome.request if outcome and outcome.request else {"payload": attempt.payload}
            response_data = outcome.response if outcome else None

            self.db.add(
                IntegrationEventLog(
                    integration_id=attempt.integration.id,
                    event_type=event_type,
                    status=(
                        DispatchStatus.SUCCESS.value
                        if attempt.result.success
                        else DispatchStatus.FAILURE.value
                    ),
                    status_message=attempt.result.message,
                    request_data=json.dumps(sanitize_data(request_data), default=str),
                    response_data=(
                        json.dumps(response_data, default=str) if response_data is not None else None
                    ),
                    started_at=attempt.started_at,
                )
            )

        try:
            await self.db.commit()
        except Exception as e:
            logger.error(f"Error logging integration events: {e}", exc_info=True)
            await self.db.rollback()


async def dispatch_quietly(
    dispatcher: IntegrationDispatcher, user_id: str, event_type: str, data: Dict[str, Any]
) -> Optional[DispatchResult]:
    """
    trigger_event for callers whose own operation has already committed.

    Any error is logged and None returned, so a notification problem never
    fails a maintenance or mileage mutation.
    """
    try:
        return await dispatcher.trigger_event(user_id, event_type, data)
    except Exception as e:
        logger.error(f"Error dispatching {event_type} for user {user_id}: {e}", exc_info=True)
        return None
