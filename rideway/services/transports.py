"""
Outbound integration transports.

One transport per integration type behind a common interface:
`build_payload` shapes the event payload for the receiving service and
`send` delivers it with a single HTTP attempt. Transports never raise for
delivery problems; they return a TransportOutcome instead.
"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from rideway.config import settings
from rideway.models.integration import IntegrationType
from rideway.services.integration_configs import (
    HomeAssistantConfig,
    IntegrationConfig,
    NtfyConfig,
    WebhookConfig,
)
from rideway.services.templating import apply_template

logger = logging.getLogger(__name__)

NTFY_PRIORITIES = {"min": 1, "low": 2, "default": 3, "high": 4, "urgent": 5, "max": 5}
BODYLESS_METHODS = {"GET", "HEAD"}


@dataclass
class TransportOutcome:
    """Result of one delivery attempt."""

    success: bool
    message: str
    status_code: Optional[int] = None
    request: Dict[str, Any] = field(default_factory=dict)
    response: Any = None


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


def event_title(event_type: str) -> str:
    return f"{settings.APP_NAME} {event_type.replace('_', ' ')}"


def format_event_message(event_type: str, data: Dict[str, Any]) -> str:
    """Human-readable one-liner for notification bodies."""
    motorcycle = data.get("motorcycle") or {}
    task = data.get("task") or {}

    if event_type == "maintenance_due":
        return f"Maintenance due for {motorcycle.get('name')}: {task.get('name')}"
    if event_type == "maintenance_completed":
        return f"Maintenance completed for {motorcycle.get('name')}: {task.get('name')}"
    if event_type == "mileage_updated":
        return (
            f"Mileage updated for {motorcycle.get('name')} to "
            f"{data.get('newMileage')} {data.get('units', settings.distance_unit)}"
        )
    if event_type == "motorcycle_added":
        return (
            f"New motorcycle added: {data.get('name')} "
            f"({data.get('year')} {data.get('make')} {data.get('model')})"
        )
    return f"{settings.APP_NAME} event: {event_type}"


def _read_response(response: httpx.Response) -> Any:
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


def _to_json(payload: Any) -> str:
    return json.dumps(payload, default=str)


class IntegrationTransport(ABC):
    """
    Abstract interface for outbound integrations.

    Implementations own both the payload shape and the HTTP call for one
    integration type.
    """

    integration_type: str

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    def build_payload(
        self,
        event_type: str,
        payload: Dict[str, Any],
        data: Dict[str, Any],
        config: IntegrationConfig,
        payload_template: Optional[str] = None,
    ) -> Any:
        """
        Shape the base payload for this integration type.

        Args:
            event_type: Event being dispatched
            payload: Base payload ({event, timestamp, **data} plus template data)
            data: Raw event data, used for generated messages
            config: Decoded integration config
            payload_template: Subscription-level `{{path}}` template, if any

        Returns:
            Payload handed to send()
        """
        return payload

    @abstractmethod
    async def send(self, config: IntegrationConfig, payload: Any) -> TransportOutcome:
        """
        Deliver the payload with one HTTP attempt.

        Returns:
            TransportOutcome; success only for a 2xx response
        """

    async def _request(
        self, method: str, url: str, headers: Dict[str, str], body: Any, success_message: str
    ) -> TransportOutcome:
        """Single HTTP attempt; body is JSON-encoded unless None."""
        request_info = {"method": method, "url": url, "headers": dict(headers)}
        content = None
        if body is not None:
            request_info["body"] = body
            content = _to_json(body)

        try:
            response = await self.client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            return TransportOutcome(
                success=False,
                message=f"{type(e).__name__}: {e}",
                request=request_info,
            )

        response_data = _read_response(response)
        if not response.is_success:
            return TransportOutcome(
                success=False,
                message=f"HTTP error! Status: {response.status_code}",
                status_code=response.status_code,
                request=request_info,
                response=response_data,
            )

        return TransportOutcome(
            success=True,
            message=success_message,
            status_code=response.status_code,
            request=request_info,
            response=response_data,
        )


class WebhookTransport(IntegrationTransport):
    """Generic HTTP webhook with optional custom payload template."""

    integration_type = IntegrationType.WEBHOOK.value

    def build_payload(self, event_type, payload, data, config: WebhookConfig, payload_template=None):
        template = payload_template
        if not template and config.use_custom_payload and config.payload_template:
            template = config.payload_template
        if template:
            return apply_template(template, payload)
        return payload

    async def send(self, config: WebhookConfig, payload: Any) -> TransportOutcome:
        headers = {"Content-Type": "application/json", **config.headers}

        auth = config.authentication
        if auth is not None:
            if auth.type == "basic" and auth.username and auth.password:
                headers["Authorization"] = basic_auth_header(auth.username, auth.password)
            elif auth.type == "bearer" and auth.token:
                headers["Authorization"] = f"Bearer {auth.token}"

        body = None if config.method in BODYLESS_METHODS else payload
        return await self._request(
            config.method, config.url, headers, body, "Webhook delivered successfully"
        )


class HomeAssistantTransport(IntegrationTransport):
    """Home Assistant notify service call."""

    integration_type = IntegrationType.HOMEASSISTANT.value

    def build_payload(self, event_type, payload, data, config: HomeAssistantConfig, payload_template=None):
        app = settings.APP_NAME.lower()
        service = f"notify.{config.entity_id}" if config.entity_id else "notify.mobile_app"
        return {
            **payload,
            "service": service,
            "data": {
                "title": event_title(event_type),
                "message": format_event_message(event_type, data),
                "data": {
                    "tag": f"{app}-{event_type}",
                    "group": app,
                    **data,
                },
            },
        }

    async def send(self, config: HomeAssistantConfig, payload: Any) -> TransportOutcome:
        domain, _, service = payload["service"].partition(".")
        url = f"{config.base_url.rstrip('/')}/api/services/{domain}/{service}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.long_lived_token}",
        }
        return await self._request(
            "POST", url, headers, payload["data"], "Home Assistant service call successful"
        )


class NtfyTransport(IntegrationTransport):
    """ntfy push notification, published as JSON."""

    integration_type = IntegrationType.NTFY.value

    def build_payload(self, event_type, payload, data, config: NtfyConfig, payload_template=None):
        return {
            **payload,
            "title": event_title(event_type),
            "message": format_event_message(event_type, data),
            "tags": ["motorcycle", event_type.split("_")[0]],
        }

    async def send(self, config: NtfyConfig, payload: Any) -> TransportOutcome:
        server = (config.server or settings.NTFY_DEFAULT_SERVER).rstrip("/")
        headers = {"Content-Type": "application/json"}

        if config.priority:
            headers["Priority"] = config.priority

        auth = config.authorization
        if auth is not None:
            if auth.type == "basic" and auth.username and auth.password:
                headers["Authorization"] = basic_auth_header(auth.username, auth.password)
            elif auth.type == "token" and auth.token:
                headers["Authorization"] = f"Bearer {auth.token}"

        tags: List[str] = payload.get("tags") or []
        body = {
            "topic": config.topic,
            "title": payload.get("title"),
            "message": payload.get("message"),
            "priority": NTFY_PRIORITIES.get(config.priority or "default", 3),
            "tags": tags,
        }
        return await self._request(
            "POST", server, headers, body, "Ntfy notification sent successfully"
        )


TRANSPORT_CLASSES = {
    IntegrationType.WEBHOOK.value: WebhookTransport,
    IntegrationType.HOMEASSISTANT.value: HomeAssistantTransport,
    IntegrationType.NTFY.value: NtfyTransport,
}


def build_transports(client: httpx.AsyncClient) -> Dict[str, IntegrationTransport]:
    """One transport instance per integration type, sharing an HTTP client."""
    return {name: cls(client) for name, cls in TRANSPORT_CLASSES.items()}
