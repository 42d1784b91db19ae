"""
FastAPI dependencies.

The webhook secret is verified before any registry dependency resolves.
Registry and transport are process-wide singletons built lazily from
settings; the broadcaster is created per request because it tracks the
stage of a single change signal.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from pymongo.errors import PyMongoError

from .config import settings
from .database import get_database_async
from ..domains.broadcasts.composer import ComposerOptions
from ..domains.broadcasts.service import ContentChangeBroadcaster, verify_shared_secret
from ..domains.broadcasts.transport import PushTransport, WebPushTransport
from ..domains.subscriptions.repository import (
    InMemorySubscriptionRepository,
    MongoSubscriptionRepository,
)
from ..domains.subscriptions.service import RegistryUnavailableError, SubscriptionRegistry
from ..shared.exceptions import RegistryUnavailableException

logger = logging.getLogger(__name__)

_registry: Optional[SubscriptionRegistry] = None
_transport: Optional[PushTransport] = None


async def get_subscription_registry() -> SubscriptionRegistry:
    """Get SubscriptionRegistry instance"""
    global _registry
    if _registry is None:
        if settings.registry_backend == "memory":
            logger.warning("In-memory subscription registry in use; subscriptions are lost on restart")
            repository = InMemorySubscriptionRepository()
        else:
            try:
                db = await get_database_async()
            except PyMongoError as e:
                raise RegistryUnavailableException() from e
            repository = MongoSubscriptionRepository(db)
        registry = SubscriptionRegistry(repository)
        try:
            await registry.init()
        except RegistryUnavailableError as e:
            raise RegistryUnavailableException() from e
        _registry = registry
    return _registry


def get_push_transport() -> Optional[PushTransport]:
    """Get the Web Push transport, or None when the VAPID key pair is missing"""
    global _transport
    if _transport is None and settings.push_configured:
        _transport = WebPushTransport(
            vapid_private_key=settings.vapid_private_key.strip(),
            vapid_subject=settings.vapid_subject,
            ttl=settings.push_ttl_seconds,
            timeout=settings.push_timeout_seconds,
        )
    return _transport


def get_composer_options() -> ComposerOptions:
    return ComposerOptions.from_settings()


def verify_webhook_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Reject change signals before the registry is touched"""
    verify_shared_secret(authorization, settings.content_webhook_secret)


async def get_broadcaster(
    _authorized: None = Depends(verify_webhook_secret),
    registry: SubscriptionRegistry = Depends(get_subscription_registry),
    transport: Optional[PushTransport] = Depends(get_push_transport),
    options: ComposerOptions = Depends(get_composer_options),
) -> ContentChangeBroadcaster:
    return ContentChangeBroadcaster(
        registry,
        transport,
        webhook_secret=settings.content_webhook_secret,
        page_size=settings.registry_page_size,
        concurrency=settings.push_concurrency,
        composer_options=options,
    )


def reset_dependencies() -> None:
    """Drop cached singletons (used on shutdown and between tests)"""
    global _registry, _transport
    _registry = None
    _transport = None
