"""
Pytest configuration and shared fixtures.

Test environment variables are set before any application module is
imported, because ``community_push.core.config.settings`` is read at import.
"""

import os
from typing import Dict, List, Optional, Tuple

import pytest

os.environ.setdefault("REGISTRY_BACKEND", "memory")
os.environ.setdefault("CONTENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("VAPID_PUBLIC_KEY", "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM")
os.environ.setdefault("VAPID_PRIVATE_KEY", "test-private-key")
os.environ.setdefault("SEND_WELCOME_NOTIFICATION", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("DEBUG", "true")

from community_push.domains.broadcasts.transport import PushDeliveryError, PushTransport
from community_push.domains.subscriptions.models import PushSubscription, SubscriptionKeys
from community_push.domains.subscriptions.repository import InMemorySubscriptionRepository
from community_push.domains.subscriptions.service import SubscriptionRegistry


def make_subscription(endpoint: str, device: str = "desktop", p256dh: str = "pk", auth: str = "as") -> PushSubscription:
    return PushSubscription(
        endpoint=endpoint,
        keys=SubscriptionKeys(p256dh=p256dh, auth=auth),
        device=device,
    )


class RecordingTransport(PushTransport):
    """Push transport double: records deliveries and fails chosen endpoints"""

    def __init__(self, failures: Optional[Dict[str, Exception]] = None):
        self.failures = failures or {}
        self.sent: List[Tuple[str, str]] = []

    async def send(self, subscription: PushSubscription, payload: str) -> None:
        self.sent.append((subscription.endpoint, payload))
        error = self.failures.get(subscription.endpoint)
        if error is not None:
            raise error

    @property
    def endpoints(self) -> List[str]:
        return [endpoint for endpoint, _ in self.sent]


def gone(status_code: int = 410) -> PushDeliveryError:
    return PushDeliveryError(f"Push failed: {status_code}", status_code=status_code)


@pytest.fixture
def registry() -> SubscriptionRegistry:
    return SubscriptionRegistry(InMemorySubscriptionRepository())


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def subscription_factory():
    return make_subscription


@pytest.fixture
def transport_factory():
    return RecordingTransport
