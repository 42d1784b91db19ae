from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from .models import PushSubscription
from .repository import SubscriptionRepository

logger = logging.getLogger(__name__)


class RegistryUnavailableError(Exception):
    """The registry store could not be reached or rejected the operation"""


@dataclass
class SubscriptionPage:
    items: List[PushSubscription] = field(default_factory=list)
    # endpoint cursor for the next page; None when the registry is exhausted
    next_cursor: Optional[str] = None
    skipped: int = 0


class SubscriptionRegistry:
    """푸시 구독 레지스트리.

    - register: endpoint 기준 upsert (멱등)
    - unregister: 존재하면 삭제, 없으면 no-op
    - list_all: fan-out 대상 페이지 조회 (페이징은 호출자 책임)
    """

    def __init__(self, repository: SubscriptionRepository):
        self.repo = repository

    async def init(self) -> None:
        try:
            await self.repo.ensure_indexes()
        except PyMongoError as e:
            raise RegistryUnavailableError(str(e)) from e

    async def register(self, subscription: PushSubscription) -> bool:
        """Upsert by endpoint. Returns True when the endpoint was not known before."""
        try:
            created = await self.repo.upsert(subscription)
        except PyMongoError as e:
            logger.error("구독 등록 실패 (registry unavailable): %s", e)
            raise RegistryUnavailableError(str(e)) from e
        logger.info(
            "Push subscription %s",
            "registered" if created else "refreshed",
            extra={"component": "registry", "operation": "register", "device": subscription.device},
        )
        return created

    async def unregister(self, endpoint: str) -> bool:
        """Delete-if-exists; a missing endpoint is not an error."""
        try:
            removed = await self.repo.delete_by_endpoint(endpoint)
        except PyMongoError as e:
            logger.error("구독 삭제 실패 (registry unavailable): %s", e)
            raise RegistryUnavailableError(str(e)) from e
        if removed:
            logger.info("Push subscription removed", extra={"component": "registry", "operation": "unregister"})
        else:
            logger.debug("Unregister for unknown endpoint ignored")
        return removed

    async def get(self, endpoint: str) -> Optional[PushSubscription]:
        try:
            doc = await self.repo.find_by_endpoint(endpoint)
        except PyMongoError as e:
            raise RegistryUnavailableError(str(e)) from e
        if doc is None:
            return None
        return PushSubscription.model_validate(doc)

    async def list_all(self, page_size: int, after_endpoint: Optional[str] = None) -> SubscriptionPage:
        """Return one bounded page of subscriptions ordered by endpoint.

        Rows that no longer validate (missing endpoint or keys) are skipped
        with a warning instead of failing the whole page; they still advance
        the cursor.
        """
        try:
            docs = await self.repo.list_page(page_size, after_endpoint)
        except PyMongoError as e:
            logger.error("구독 목록 조회 실패: %s", e)
            raise RegistryUnavailableError(str(e)) from e

        page = SubscriptionPage()
        for doc in docs:
            subscription = self._to_subscription(doc)
            if subscription is None:
                page.skipped += 1
            else:
                page.items.append(subscription)

        if len(docs) >= page_size:
            page.next_cursor = docs[-1].get("endpoint")
        return page

    async def count(self) -> int:
        try:
            return await self.repo.count()
        except PyMongoError as e:
            raise RegistryUnavailableError(str(e)) from e

    @staticmethod
    def _to_subscription(doc: Dict[str, Any]) -> Optional[PushSubscription]:
        try:
            return PushSubscription.model_validate(doc)
        except ValidationError:
            logger.warning(
                "Push subscription missing endpoint/keys, skipping",
                extra={"subscription_id": str(doc.get("_id"))},
            )
            return None
