"""
Integration tests for the /api/v1 push endpoints.

The registry and push transport are swapped through FastAPI dependency
overrides; everything else (routing, validation, exception handlers, the
response envelope) is the real application.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from community_push.core.config import settings
from community_push.core.dependencies import get_push_transport, get_subscription_registry, reset_dependencies
from community_push.domains.broadcasts.transport import PushDeliveryError
from community_push.main import app

AUTH = {"Authorization": f"Bearer {settings.content_webhook_secret}"}
CHANGE = {"entityType": "news", "action": "update", "entitySnapshot": {"id": 3, "slug": "hello", "title": "Hello"}}


def subscription_body(endpoint, **extra):
    body = {"endpoint": endpoint, "keys": {"p256dh": "BPk", "auth": "As"}}
    body.update(extra)
    return body


@pytest.fixture
def transport(transport_factory):
    return transport_factory()


@pytest.fixture
def client(registry, transport):
    app.dependency_overrides[get_subscription_registry] = lambda: registry
    app.dependency_overrides[get_push_transport] = lambda: transport
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestPublicKey:

    def test_returns_configured_key(self, client):
        r = client.get("/api/v1/push/public-key")
        assert r.status_code == 200
        assert r.json() == {"data": {"publicKey": settings.vapid_public_key}}

    def test_unconfigured_push_is_unavailable(self, client, monkeypatch):
        monkeypatch.setattr(settings, "vapid_public_key", None)
        r = client.get("/api/v1/push/public-key")
        assert r.status_code == 503
        assert r.json()["error_type"] == "SERVICE_UNAVAILABLE"


class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_register_then_refresh(self, client, registry):
        first = client.post("/api/v1/push/subscriptions", json=subscription_body("https://push.example.com/a"))
        second = client.post(
            "/api/v1/push/subscriptions",
            json=subscription_body("https://push.example.com/a", device="mobile"),
        )

        assert first.status_code == 201
        assert first.json()["data"]["created"] is True
        assert second.status_code == 200
        assert second.json()["data"]["created"] is False
        assert await registry.count() == 1
        assert (await registry.get("https://push.example.com/a")).device == "mobile"

    @pytest.mark.asyncio
    async def test_content_backend_wrapper_and_user_agent(self, client, registry):
        r = client.post(
            "/api/v1/push/subscriptions",
            json={"data": subscription_body("https://push.example.com/b", userAgent="Mozilla/5.0 (Android 14) Mobile")},
        )

        assert r.status_code == 201
        stored = await registry.get("https://push.example.com/b")
        assert stored.device == "mobile"
        assert stored.user_agent == "Mozilla/5.0 (Android 14) Mobile"

    @pytest.mark.parametrize("body", [
        {"endpoint": "https://push.example.com/a"},
        {"endpoint": "not-a-url", "keys": {"p256dh": "a", "auth": "b"}},
        {"endpoint": "https://push.example.com/a", "keys": {"p256dh": "", "auth": "b"}},
        {"endpoint": "https://push.example.com/a", "keys": {"p256dh": "a", "auth": "b"}, "device": "tablet"},
    ])
    def test_invalid_subscription_is_rejected(self, client, body):
        r = client.post("/api/v1/push/subscriptions", json=body)
        assert r.status_code == 422
        assert r.json()["error_type"] == "VALIDATION_ERROR"

    def test_key_material_is_not_echoed_in_errors(self, client):
        r = client.post(
            "/api/v1/push/subscriptions",
            json={"endpoint": "https://push.example.com/a", "keys": {"p256dh": "secret-key", "auth": 12}},
        )
        assert r.status_code == 422
        assert "secret-key" not in r.text

    @pytest.mark.asyncio
    async def test_remove_by_body_and_query(self, client, registry, subscription_factory):
        await registry.register(subscription_factory("https://push.example.com/a"))
        await registry.register(subscription_factory("https://push.example.com/b"))

        by_body = client.request("DELETE", "/api/v1/push/subscriptions", json={"endpoint": "https://push.example.com/a"})
        by_query = client.delete("/api/v1/push/subscriptions", params={"endpoint": "https://push.example.com/b"})

        assert by_body.status_code == 200
        assert by_body.json()["data"]["removed"] is True
        assert by_query.json()["data"]["removed"] is True
        assert await registry.count() == 0

    def test_remove_unknown_endpoint_is_not_an_error(self, client):
        r = client.delete("/api/v1/push/subscriptions", params={"endpoint": "https://push.example.com/missing"})
        assert r.status_code == 200
        assert r.json()["data"]["removed"] is False

    def test_remove_without_endpoint_is_bad_request(self, client):
        r = client.delete("/api/v1/push/subscriptions")
        assert r.status_code == 400

    def test_registry_outage_fails_registration_loudly(self, client, registry, monkeypatch):
        from community_push.domains.subscriptions.service import RegistryUnavailableError

        async def unavailable(subscription):
            raise RegistryUnavailableError("down")

        monkeypatch.setattr(registry, "register", unavailable)
        r = client.post("/api/v1/push/subscriptions", json=subscription_body("https://push.example.com/a"))

        assert r.status_code == 503
        assert r.headers["Retry-After"] == "30"

    def test_welcome_push_after_registration(self, client, transport, monkeypatch):
        monkeypatch.setattr(settings, "send_welcome_notification", True)
        r = client.post("/api/v1/push/subscriptions", json=subscription_body("https://push.example.com/w"))

        assert r.status_code == 201
        assert transport.endpoints == ["https://push.example.com/w"]
        assert json.loads(transport.sent[0][1])["tag"] == "welcome"

    def test_failed_welcome_push_does_not_fail_registration(self, client, transport, monkeypatch):
        monkeypatch.setattr(settings, "send_welcome_notification", True)
        transport.failures["https://push.example.com/w"] = PushDeliveryError("boom", status_code=500)

        r = client.post("/api/v1/push/subscriptions", json=subscription_body("https://push.example.com/w"))
        assert r.status_code == 201


class TestContentChangeWebhook:

    @pytest.mark.asyncio
    async def test_fan_out_summary(self, client, registry, transport, subscription_factory):
        for name in ("a", "b", "c"):
            await registry.register(subscription_factory(f"https://push.example.com/{name}"))
        transport.failures["https://push.example.com/c"] = PushDeliveryError("Gone", status_code=410)

        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)

        assert r.status_code == 200
        data = r.json()["data"]
        assert (data["total"], data["succeeded"], data["failed"]) == (3, 2, 1)
        assert data["sent"] == 2
        assert "outcomes" not in data
        assert len((await registry.list_all(page_size=10)).items) == 2

    def test_total_delivery_failure_is_still_200(self, client, registry, transport, subscription_factory):
        import asyncio

        asyncio.run(registry.register(subscription_factory("https://push.example.com/a")))
        transport.failures["https://push.example.com/a"] = PushDeliveryError("rate limited", status_code=429)

        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)

        assert r.status_code == 200
        assert r.json()["data"]["failed"] == 1

    def test_no_subscribers(self, client):
        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)
        assert r.status_code == 200
        assert r.json()["message"] == "No subscriptions"

    def test_wrong_secret_never_lists_registry(self, client, registry, monkeypatch):
        calls = []

        async def counting_list_all(*args, **kwargs):
            calls.append(args)
            raise AssertionError("registry must not be read")

        monkeypatch.setattr(registry, "list_all", counting_list_all)
        r = client.post(
            "/api/v1/webhooks/content-change",
            json=CHANGE,
            headers={"Authorization": "Bearer wrong"},
        )

        assert r.status_code == 401
        assert r.json()["message"] == "Unauthorized"
        assert calls == []

    def test_auth_is_checked_before_body_parsing(self, client):
        r = client.post(
            "/api/v1/webhooks/content-change",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 401

    def test_invalid_json_with_valid_secret(self, client):
        r = client.post(
            "/api/v1/webhooks/content-change",
            content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert r.status_code == 400

    def test_unknown_action_is_validation_error(self, client):
        r = client.post(
            "/api/v1/webhooks/content-change",
            json={"entityType": "news", "action": "archive"},
            headers=AUTH,
        )
        assert r.status_code == 422
        assert any(error["field"] == "action" for error in r.json()["errors"])

    def test_missing_server_secret_is_500(self, client, monkeypatch):
        monkeypatch.setattr(settings, "content_webhook_secret", None)
        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)

        assert r.status_code == 500
        assert r.json()["error_type"] == "CONFIGURATION_ERROR"

    def test_missing_key_pair_is_500(self, client):
        app.dependency_overrides[get_push_transport] = lambda: None
        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)

        assert r.status_code == 500
        assert r.json()["error_type"] == "CONFIGURATION_ERROR"

    @pytest.mark.asyncio
    async def test_native_webhook_alias(self, client, registry, transport, subscription_factory):
        await registry.register(subscription_factory("https://push.example.com/a"))

        r = client.post(
            "/api/v1/webhooks/strapi",
            json={"model": "api::event.event", "event": "entry.create", "entry": {"id": 8, "slug": "fair", "title": "Fair"}},
            headers=AUTH,
        )

        assert r.status_code == 200
        wire = json.loads(transport.sent[0][1])
        assert wire["tag"] == "event-create-8"
        assert wire["data"]["url"] == "/events/fair"


class TestWebhookWithUnreachableRegistry:
    """The real registry dependency, backed by a Mongo that never answers."""

    @pytest.fixture
    def mongo_down(self, monkeypatch, transport):
        monkeypatch.setattr(settings, "registry_backend", "mongo")
        monkeypatch.setattr(settings, "mongodb_url", "mongodb://127.0.0.1:1")
        reset_dependencies()
        app.dependency_overrides[get_push_transport] = lambda: transport
        connect = AsyncMock(side_effect=ServerSelectionTimeoutError("127.0.0.1:1: connection refused"))
        with patch("community_push.core.dependencies.get_database_async", connect):
            yield TestClient(app), connect
        app.dependency_overrides.clear()
        reset_dependencies()

    def test_wrong_secret_is_401_without_touching_registry(self, mongo_down):
        client, connect = mongo_down
        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers={"Authorization": "Bearer WRONG"})

        assert r.status_code == 401
        assert r.json()["error_type"] == "UNAUTHORIZED"
        connect.assert_not_awaited()

    def test_missing_server_secret_is_500_without_touching_registry(self, mongo_down, monkeypatch):
        client, connect = mongo_down
        monkeypatch.setattr(settings, "content_webhook_secret", None)
        r = client.post("/api/v1/webhooks/strapi", json=CHANGE, headers=AUTH)

        assert r.status_code == 500
        assert r.json()["error_type"] == "CONFIGURATION_ERROR"
        connect.assert_not_awaited()

    def test_valid_secret_reaches_registry_and_gets_503(self, mongo_down):
        client, connect = mongo_down
        r = client.post("/api/v1/webhooks/content-change", json=CHANGE, headers=AUTH)

        assert r.status_code == 503
        assert r.headers["Retry-After"] == "30"
        connect.assert_awaited_once()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["registry"] == "memory"


def test_request_id_is_echoed(client):
    r = client.get("/", headers={"X-Request-ID": "req-test-1"})
    assert r.headers["X-Request-ID"] == "req-test-1"
