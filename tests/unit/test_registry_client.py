import json

import httpx
import pytest

from community_push.client.exceptions import PushConfigurationError, RegistryClientError
from community_push.client.registry_client import RegistryClient

BASE = "https://api.greenwood.example/api/v1"


def make_client(handler):
    return RegistryClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), BASE + "/")


@pytest.mark.asyncio
async def test_fetch_public_key():
    def handler(request):
        assert str(request.url) == f"{BASE}/push/public-key"
        return httpx.Response(200, json={"data": {"publicKey": "BPub"}})

    assert await make_client(handler).fetch_public_key() == "BPub"


@pytest.mark.asyncio
async def test_unconfigured_server_key():
    client = make_client(lambda request: httpx.Response(503, json={"success": False, "message": "Push notifications not configured"}))

    with pytest.raises(PushConfigurationError):
        await client.fetch_public_key()


@pytest.mark.asyncio
async def test_malformed_public_key_response():
    client = make_client(lambda request: httpx.Response(200, json={"data": {}}))

    with pytest.raises(PushConfigurationError):
        await client.fetch_public_key()


@pytest.mark.asyncio
async def test_register_posts_subscription():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "data": {"created": True}})

    result = await make_client(handler).register(
        "https://push.example.com/a",
        {"p256dh": "pk", "auth": "as"},
        device="desktop",
        user_agent="Mozilla/5.0",
    )

    assert result == {"created": True}
    assert seen["method"] == "POST"
    assert seen["body"] == {
        "endpoint": "https://push.example.com/a",
        "keys": {"p256dh": "pk", "auth": "as"},
        "device": "desktop",
        "userAgent": "Mozilla/5.0",
    }


@pytest.mark.asyncio
async def test_register_error_carries_server_message():
    client = make_client(lambda request: httpx.Response(503, json={"success": False, "message": "Subscription registry unavailable"}))

    with pytest.raises(RegistryClientError) as exc_info:
        await client.register("https://push.example.com/a", {"p256dh": "pk", "auth": "as"})

    assert exc_info.value.message == "Subscription registry unavailable"
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_unreachable_server():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RegistryClientError):
        await make_client(handler).unregister("https://push.example.com/a")


@pytest.mark.asyncio
async def test_unregister_uses_query_parameter():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["endpoint"] = request.url.params["endpoint"]
        return httpx.Response(200, json={"success": True, "data": {"removed": True}})

    await make_client(handler).unregister("https://push.example.com/a?x=1")

    assert seen == {"method": "DELETE", "endpoint": "https://push.example.com/a?x=1"}


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>ok</html>"),
    httpx.Response(201, json=["created"]),
])
@pytest.mark.asyncio
async def test_unreadable_registration_response(response):
    client = make_client(lambda request: response)

    with pytest.raises(RegistryClientError) as exc_info:
        await client.register("https://push.example.com/a", {"p256dh": "pk", "auth": "as"})

    assert exc_info.value.message == "Malformed registration response"


@pytest.mark.asyncio
async def test_registration_without_data_returns_empty_dict():
    client = make_client(lambda request: httpx.Response(200, json={"success": True}))

    assert await client.register("https://push.example.com/a", {"p256dh": "pk", "auth": "as"}) == {}
