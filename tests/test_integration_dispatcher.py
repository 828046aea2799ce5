"""
Tests for event fan-out to integrations.

Covers filtering, per-integration failure isolation, timeouts, payload
templates and the sanitized event log.
"""

import asyncio
import json

import httpx
import pytest
from conftest import subscribe
from rideway.models.integration import IntegrationEventLog
from rideway.services.errors import ValidationError
from rideway.services.integration_dispatcher import (
    NO_ACTIVE_INTEGRATIONS,
    IntegrationDispatcher,
    dispatch_quietly,
)
from rideway.utils.sanitize import MASK
from sqlalchemy import select


def due_data(motorcycle):
    return {"motorcycle": motorcycle.summary(), "task": {"id": "t1", "name": "Oil Change"}}


async def load_logs(db_session):
    result = await db_session.execute(select(IntegrationEventLog))
    return list(result.scalars().all())


class TestFiltering:
    """Which integrations receive an event."""

    @pytest.mark.asyncio
    async def test_no_integrations(self, dispatcher, test_user, test_motorcycle, http_handler):
        result = await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert result.success
        assert result.results == []
        assert result.message == NO_ACTIVE_INTEGRATIONS
        assert http_handler.requests == []

    @pytest.mark.asyncio
    async def test_inactive_unsubscribed_and_disabled_are_skipped(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler, db_session
    ):
        await make_integration(
            "webhook", {"url": "https://inactive.example.com"}, subscribe("maintenance_due"), active=False
        )
        await make_integration(
            "webhook", {"url": "https://other-event.example.com"}, subscribe("mileage_updated")
        )
        await make_integration(
            "webhook",
            {"url": "https://disabled.example.com"},
            [{"event_type": "maintenance_due", "enabled": False}],
        )

        result = await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert result.success
        assert result.message == NO_ACTIVE_INTEGRATIONS
        assert http_handler.requests == []
        assert await load_logs(db_session) == []

    @pytest.mark.asyncio
    async def test_unknown_event_type_rejected(self, dispatcher, test_user):
        with pytest.raises(ValidationError):
            await dispatcher.trigger_event(test_user.id, "tyre_pressure_low", {})

    @pytest.mark.asyncio
    async def test_other_users_integrations_are_ignored(
        self, dispatcher, make_integration, test_motorcycle, http_handler
    ):
        await make_integration("webhook", {"url": "https://a.example.com"}, subscribe("maintenance_due"))

        result = await dispatcher.trigger_event("someone-else", "maintenance_due", due_data(test_motorcycle))

        assert result.message == NO_ACTIVE_INTEGRATIONS
        assert http_handler.requests == []


class TestFanOut:
    """Concurrent sends with isolated failures."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler, db_session
    ):
        ok = await make_integration("webhook", {"url": "https://a.example.com/hook"}, subscribe("maintenance_due"))
        broken = await make_integration(
            "webhook", {"url": "https://b.example.com/hook"}, subscribe("maintenance_due")
        )
        ntfy = await make_integration(
            "ntfy", {"topic": "garage", "server": "https://ntfy.example.com"}, subscribe("maintenance_due")
        )
        http_handler.responses["b.example.com"] = 500

        result = await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert not result.success
        by_id = {r.integration_id: r for r in result.results}
        assert by_id[ok.id].success
        assert by_id[ntfy.id].success
        assert not by_id[broken.id].success
        assert by_id[broken.id].message == "HTTP error! Status: 500"
        assert len(http_handler.requests) == 3

        logs = await load_logs(db_session)
        statuses = {log.integration_id: log.status for log in logs}
        assert statuses == {ok.id: "success", broken.id: "failure", ntfy.id: "success"}

    @pytest.mark.asyncio
    async def test_base_payload(self, dispatcher, make_integration, test_user, test_motorcycle, http_handler):
        await make_integration("webhook", {"url": "https://a.example.com/hook"}, subscribe("maintenance_due"))

        await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        body = http_handler.bodies()[0]
        assert body["event"] == "maintenance_due"
        assert "timestamp" in body
        assert body["motorcycle"]["name"] == "My Ducati"
        assert body["task"] == {"id": "t1", "name": "Oil Change"}

    @pytest.mark.asyncio
    async def test_timeout_is_a_failure(
        self, db_session, http_client, encryption, make_integration, test_user, test_motorcycle, http_handler
    ):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        http_handler.responses["slow.example.com"] = slow
        slow_one = await make_integration(
            "webhook", {"url": "https://slow.example.com"}, subscribe("maintenance_due")
        )
        fast_one = await make_integration(
            "webhook", {"url": "https://fast.example.com"}, subscribe("maintenance_due")
        )
        dispatcher = IntegrationDispatcher(db_session, client=http_client, encryption=encryption, timeout=0.05)

        result = await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        by_id = {r.integration_id: r for r in result.results}
        assert not by_id[slow_one.id].success
        assert by_id[slow_one.id].message.startswith("Timed out")
        assert by_id[fast_one.id].success

    @pytest.mark.asyncio
    async def test_corrupt_config_is_a_failure(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler, db_session
    ):
        corrupt = await make_integration("webhook", {"url": "https://a.example.com"}, subscribe("maintenance_due"))
        corrupt.config = "not a token and not json"
        await db_session.commit()

        result = await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert not result.success
        assert "not valid JSON" in result.results[0].message
        assert http_handler.requests == []
        assert len(await load_logs(db_session)) == 1


class TestPayloadShaping:
    """Subscription template data and payload templates."""

    @pytest.mark.asyncio
    async def test_template_data_is_merged(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler
    ):
        await make_integration(
            "webhook",
            {"url": "https://a.example.com"},
            subscribe("maintenance_due", template_data={"source": "garage"}),
        )

        await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert http_handler.bodies()[0]["source"] == "garage"

    @pytest.mark.asyncio
    async def test_payload_template_is_rendered(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler
    ):
        await make_integration(
            "webhook",
            {"url": "https://a.example.com"},
            subscribe(
                "maintenance_due",
                payload_template='{"text": "{{task.name}} due on {{motorcycle.name}}", "vin": "{{motorcycle.vin}}"}',
            ),
        )

        await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert http_handler.bodies()[0] == {"text": "Oil Change due on My Ducati", "vin": ""}


class TestEventLog:
    """Logged request data is sanitized; the wire request is not."""

    @pytest.mark.asyncio
    async def test_secrets_are_masked_in_log_only(
        self, dispatcher, make_integration, test_user, test_motorcycle, http_handler, db_session
    ):
        integration = await make_integration(
            "webhook",
            {
                "url": "https://a.example.com/hook",
                "authentication": {"type": "bearer", "token": "super-secret"},
            },
            subscribe("maintenance_due"),
        )

        await dispatcher.trigger_event(test_user.id, "maintenance_due", due_data(test_motorcycle))

        assert http_handler.requests[0].headers["Authorization"] == "Bearer super-secret"

        logs = await load_logs(db_session)
        assert len(logs) == 1
        log = logs[0]
        assert log.integration_id == integration.id
        assert log.event_type == "maintenance_due"
        assert log.status == "success"
        assert log.started_at is not None
        assert "super-secret" not in log.request_data
        request_data = json.loads(log.request_data)
        assert request_data["headers"]["Authorization"] == MASK
        assert request_data["url"] == "https://a.example.com/hook"
        assert json.loads(log.response_data) == {"ok": True}


class TestDispatchQuietly:
    @pytest.mark.asyncio
    async def test_errors_are_swallowed(self, dispatcher, test_user):
        assert await dispatch_quietly(dispatcher, test_user.id, "not_an_event", {}) is None

    @pytest.mark.asyncio
    async def test_returns_result(self, dispatcher, test_user, test_motorcycle):
        result = await dispatch_quietly(dispatcher, test_user.id, "maintenance_due", due_data(test_motorcycle))
        assert result.success
