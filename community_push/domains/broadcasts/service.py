from __future__ import annotations

import asyncio
import hmac
import logging
import time
from enum import Enum
from typing import List, Optional

from ...shared.exceptions import ConfigurationException, UnauthorizedException
from ..subscriptions.models import PushSubscription
from ..subscriptions.service import RegistryUnavailableError, SubscriptionRegistry
from .composer import ComposerOptions, compose_notification, compose_welcome
from .models import BroadcastSummary, ContentChangeEvent, DeliveryOutcome
from .transport import PushDeliveryError, PushTransport

logger = logging.getLogger(__name__)


class BroadcastStage(str, Enum):
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    COMPOSED = "composed"
    DELIVERING = "delivering"
    SUMMARIZED = "summarized"


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_shared_secret(authorization: Optional[str], secret: Optional[str]) -> None:
    """Bearer 토큰을 공유 시크릿과 상수 시간 비교. 레지스트리 접근 전에 호출되어야 함"""
    if not secret or not secret.strip():
        logger.error("Webhook rejected: content_webhook_secret is not configured")
        raise ConfigurationException("Server token not configured", setting="content_webhook_secret")

    token = _bearer_token(authorization)
    if token is None or not hmac.compare_digest(token.encode(), secret.strip().encode()):
        logger.warning("Webhook rejected: invalid shared secret", extra={"component": "broadcaster"})
        raise UnauthorizedException()


class ContentChangeBroadcaster:
    """콘텐츠 변경 신호를 받아 모든 구독 기기로 푸시를 fan-out.

    Each change signal runs received -> authenticated -> composed ->
    delivering -> summarized. Deliveries are isolated from each other:
    a failure is counted and logged, and endpoints the push service reports
    as gone (404/410) are evicted from the registry. Nothing is retried.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        transport: Optional[PushTransport],
        *,
        webhook_secret: Optional[str],
        page_size: int = 1000,
        concurrency: int = 50,
        composer_options: Optional[ComposerOptions] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.webhook_secret = webhook_secret
        self.page_size = page_size
        self.concurrency = concurrency
        self.composer_options = composer_options or ComposerOptions()
        self.stage = BroadcastStage.RECEIVED

    def authenticate(self, authorization: Optional[str]) -> None:
        """Check the shared secret before any other work is done."""
        self.stage = BroadcastStage.RECEIVED
        verify_shared_secret(authorization, self.webhook_secret)
        self.stage = BroadcastStage.AUTHENTICATED

    async def handle_change_signal(self, authorization: Optional[str], event: ContentChangeEvent) -> BroadcastSummary:
        self.authenticate(authorization)
        return await self.broadcast(event)

    async def broadcast(self, event: ContentChangeEvent) -> BroadcastSummary:
        """Compose once and deliver to every registered subscription.

        Partial or total delivery failure still yields a summary; only
        configuration problems and registry outages raise.
        """
        if self.transport is None:
            logger.error("Push notifications not configured: VAPID key pair missing")
            raise ConfigurationException("Push notifications not configured", setting="vapid_private_key")

        started = time.perf_counter()
        logger.info(
            "Webhook received: %s %s",
            event.entity_type,
            event.action.value,
            extra={"component": "broadcaster", "entity_id": event.entity_snapshot.get("id")},
        )

        payload = compose_notification(event, self.composer_options)
        wire = payload.to_json()
        self.stage = BroadcastStage.COMPOSED

        targets, skipped = await self._load_targets()
        if not targets:
            self.stage = BroadcastStage.SUMMARIZED
            logger.info("No valid push subscriptions found")
            return BroadcastSummary(message="No subscriptions", skipped=skipped, tag=payload.dedupe_tag)

        self.stage = BroadcastStage.DELIVERING
        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes: List[DeliveryOutcome] = await asyncio.gather(
            *(self._deliver(subscription, wire, semaphore) for subscription in targets)
        )

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        summary = BroadcastSummary(
            message="Push notifications sent",
            total=len(targets),
            attempted=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            evicted=sum(1 for outcome in outcomes if outcome.evicted),
            skipped=skipped,
            tag=payload.dedupe_tag,
            outcomes=outcomes,
        )
        self.stage = BroadcastStage.SUMMARIZED

        logger.info(
            f"Push notifications sent: {summary.succeeded} successful, {summary.failed} failed",
            extra={
                "component": "broadcaster",
                "operation": "fan_out",
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "total": summary.total,
                "evicted": summary.evicted,
            },
        )
        return summary

    async def _load_targets(self) -> tuple[List[PushSubscription], int]:
        targets: List[PushSubscription] = []
        skipped = 0
        cursor: Optional[str] = None
        while True:
            page = await self.registry.list_all(self.page_size, cursor)
            targets.extend(page.items)
            skipped += page.skipped
            if page.next_cursor is None:
                return targets, skipped
            cursor = page.next_cursor

    async def _deliver(
        self,
        subscription: PushSubscription,
        payload: str,
        semaphore: asyncio.Semaphore,
    ) -> DeliveryOutcome:
        try:
            async with semaphore:
                await self.transport.send(subscription, payload)
            return DeliveryOutcome(endpoint=subscription.endpoint, success=True)
        except PushDeliveryError as e:
            logger.warning(
                "Push error for subscription %s: status=%s",
                subscription.id,
                e.status_code,
                extra={"component": "broadcaster", "error": str(e)[:200]},
            )
            outcome = DeliveryOutcome(
                endpoint=subscription.endpoint,
                success=False,
                status_code=e.status_code,
                error=str(e)[:200],
            )
            if e.is_gone:
                outcome.evicted = await self._evict(subscription)
            return outcome
        except Exception as e:
            # 전송 계층 예외 (연결 실패, 타임아웃 등)는 일시적 실패로 취급
            logger.warning(
                "Push transport failure for subscription %s: %s",
                subscription.id,
                type(e).__name__,
                extra={"component": "broadcaster", "error": str(e)[:200]},
            )
            return DeliveryOutcome(endpoint=subscription.endpoint, success=False, error=str(e)[:200])

    async def _evict(self, subscription: PushSubscription) -> bool:
        try:
            await self.registry.unregister(subscription.endpoint)
        except RegistryUnavailableError as e:
            logger.error(f"Failed to delete subscription {subscription.id}: {e}")
            return False
        logger.info(f"Removed invalid subscription {subscription.id}")
        return True


async def send_welcome_notification(
    transport: Optional[PushTransport],
    subscription: PushSubscription,
    options: Optional[ComposerOptions] = None,
) -> bool:
    """Best-effort greeting after registration; never fails the caller."""
    if transport is None:
        return False
    try:
        await transport.send(subscription, compose_welcome(options).to_json())
    except Exception as e:
        logger.warning(f"Welcome notification error: {e}")
        return False
    return True
