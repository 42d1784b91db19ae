import pytest
from unittest.mock import Mock, patch
from pywebpush import WebPushException

from community_push.domains.broadcasts.transport import PushDeliveryError, WebPushTransport


@pytest.fixture
def web_push():
    return WebPushTransport(vapid_private_key="private", vapid_subject="mailto:ops@example.com", ttl=60, timeout=5.0)


@pytest.mark.asyncio
async def test_send_passes_subscription_and_vapid_claims(web_push, subscription_factory):
    subscription = subscription_factory("https://push.example.com/a", p256dh="pk", auth="as")

    with patch("community_push.domains.broadcasts.transport.webpush") as webpush:
        await web_push.send(subscription, '{"title": "t"}')

    kwargs = webpush.call_args.kwargs
    assert kwargs["subscription_info"] == {
        "endpoint": "https://push.example.com/a",
        "keys": {"p256dh": "pk", "auth": "as"},
    }
    assert kwargs["data"] == '{"title": "t"}'
    assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
    assert kwargs["ttl"] == 60


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code,is_gone", [(410, True), (404, True), (429, False), (500, False)])
async def test_push_service_status_is_translated(web_push, subscription_factory, status_code, is_gone):
    error = WebPushException("Push failed", response=Mock(status_code=status_code))

    with patch("community_push.domains.broadcasts.transport.webpush", side_effect=error):
        with pytest.raises(PushDeliveryError) as exc_info:
            await web_push.send(subscription_factory("https://push.example.com/a"), "{}")

    assert exc_info.value.status_code == status_code
    assert exc_info.value.is_gone is is_gone


@pytest.mark.asyncio
async def test_failure_without_response_has_no_status(web_push, subscription_factory):
    with patch("community_push.domains.broadcasts.transport.webpush", side_effect=WebPushException("no response")):
        with pytest.raises(PushDeliveryError) as exc_info:
            await web_push.send(subscription_factory("https://push.example.com/a"), "{}")

    assert exc_info.value.status_code is None
    assert exc_info.value.is_gone is False
