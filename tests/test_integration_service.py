"""Tests for integration management and connection tests."""

import json

import pytest
from conftest import subscribe
from rideway.services.errors import NotFoundError, ValidationError
from rideway.services.integration_service import (
    delete_integration,
    get_integration,
    integration_to_dict,
    list_event_logs,
    list_integrations,
    send_test_event,
    update_integration,
)


class TestCrud:
    """Create, read, update and delete."""

    @pytest.mark.asyncio
    async def test_config_is_stored_encrypted(self, make_integration, encryption):
        integration = await make_integration(
            "homeassistant",
            {"baseUrl": "http://ha.local:8123", "longLivedToken": "llt-secret"},
            subscribe("maintenance_due"),
        )

        assert "llt-secret" not in integration.config
        assert json.loads(encryption.decrypt(integration.config)) == {
            "baseUrl": "http://ha.local:8123",
            "longLivedToken": "llt-secret",
        }

    @pytest.mark.asyncio
    async def test_to_dict_decrypts_and_uses_camel_case(self, make_integration, encryption):
        integration = await make_integration(
            "webhook",
            {"url": "https://hooks.example.com"},
            subscribe("maintenance_due", template_data={"source": "garage"}),
        )

        data = integration_to_dict(integration, encryption)

        assert data["config"]["url"] == "https://hooks.example.com"
        assert data["config"]["method"] == "POST"
        assert data["events"][0]["eventType"] == "maintenance_due"
        assert data["events"][0]["templateData"] == {"source": "garage"}

    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self, make_integration):
        with pytest.raises(ValidationError):
            await make_integration("ntfy", {"server": "https://ntfy.sh"})

    @pytest.mark.asyncio
    async def test_unknown_event_type_rejected(self, make_integration):
        with pytest.raises(ValidationError):
            await make_integration("ntfy", {"topic": "garage"}, [{"event_type": "tyre_pressure_low"}])

    @pytest.mark.asyncio
    async def test_update_replaces_subscriptions(self, db_session, test_user, make_integration, encryption):
        integration = await make_integration(
            "ntfy", {"topic": "garage"}, subscribe("maintenance_due", "mileage_updated")
        )

        updated = await update_integration(
            db_session,
            test_user.id,
            integration.id,
            name="Phone",
            active=False,
            config={"topic": "bikes", "priority": "high"},
            events=subscribe("maintenance_completed"),
            encryption=encryption,
        )

        assert updated.name == "Phone"
        assert not updated.active
        assert [e.event_type for e in updated.events] == ["maintenance_completed"]
        assert json.loads(encryption.decrypt(updated.config))["topic"] == "bikes"

    @pytest.mark.asyncio
    async def test_delete(self, db_session, test_user, make_integration):
        integration = await make_integration("ntfy", {"topic": "garage"})

        await delete_integration(db_session, test_user.id, integration.id)

        assert await list_integrations(db_session, test_user.id) == []
        with pytest.raises(NotFoundError):
            await get_integration(db_session, test_user.id, integration.id)

    @pytest.mark.asyncio
    async def test_other_users_integration_not_found(self, db_session, make_integration):
        integration = await make_integration("ntfy", {"topic": "garage"})

        with pytest.raises(NotFoundError):
            await get_integration(db_session, "someone-else", integration.id)


class TestConnectionTest:
    """Example maintenance_due sent to one integration."""

    @pytest.mark.asyncio
    async def test_sends_even_when_inactive_and_unsubscribed(
        self, db_session, test_user, make_integration, dispatcher, http_handler
    ):
        target = await make_integration("webhook", {"url": "https://target.example.com"}, active=False)
        await make_integration("webhook", {"url": "https://other.example.com"}, subscribe("maintenance_due"))

        result = await send_test_event(db_session, test_user.id, target.id, dispatcher)

        assert result.success
        assert [r.url.host for r in http_handler.requests] == ["target.example.com"]
        body = http_handler.bodies()[0]
        assert body["event"] == "maintenance_due"
        assert body["motorcycle"]["name"] == "My Ducati"
        assert body["task"]["name"] == "Oil Change"

    @pytest.mark.asyncio
    async def test_attempt_is_logged(self, db_session, test_user, make_integration, dispatcher, http_handler):
        http_handler.responses["target.example.com"] = 404
        target = await make_integration("webhook", {"url": "https://target.example.com"})

        result = await send_test_event(db_session, test_user.id, target.id, dispatcher)

        assert not result.success
        [log] = await list_event_logs(db_session, test_user.id, target.id)
        assert log.status == "failure"
        assert log.status_message == "HTTP error! Status: 404"

    @pytest.mark.asyncio
    async def test_unknown_integration(self, db_session, test_user, dispatcher):
        with pytest.raises(NotFoundError):
            await send_test_event(db_session, test_user.id, "missing", dispatcher)
