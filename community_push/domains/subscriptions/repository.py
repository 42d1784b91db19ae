from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from ...shared.models.base import utcnow
from .models import PushSubscription


class SubscriptionRepository(ABC):
    """Storage contract for push subscriptions keyed by endpoint"""

    @abstractmethod
    async def ensure_indexes(self) -> None:
        ...

    @abstractmethod
    async def upsert(self, subscription: PushSubscription) -> bool:
        """Insert or update by endpoint. Returns True when a new row was created."""

    @abstractmethod
    async def delete_by_endpoint(self, endpoint: str) -> bool:
        """Delete if present. Returns True when a row was removed."""

    @abstractmethod
    async def find_by_endpoint(self, endpoint: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_page(self, limit: int, after_endpoint: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return up to ``limit`` raw documents ordered by endpoint, strictly after the cursor."""

    @abstractmethod
    async def count(self) -> int:
        ...


class MongoSubscriptionRepository(SubscriptionRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.subscriptions = db["push_subscriptions"]

    async def ensure_indexes(self) -> None:
        await self.subscriptions.create_index([("endpoint", ASCENDING)], unique=True)

    async def upsert(self, subscription: PushSubscription) -> bool:
        doc = subscription.model_dump(by_alias=True)
        update = {
            "$set": {
                "keys": doc["keys"],
                "device": doc["device"],
                "user_agent": doc["user_agent"],
                "updated_at": utcnow(),
            },
            "$setOnInsert": {
                "_id": doc["_id"],
                "created_at": doc["created_at"],
            },
        }
        try:
            res = await self.subscriptions.update_one({"endpoint": subscription.endpoint}, update, upsert=True)
        except DuplicateKeyError:
            # 동일 endpoint 동시 upsert: 한쪽이 먼저 삽입했으므로 재시도는 update 로 처리됨
            res = await self.subscriptions.update_one({"endpoint": subscription.endpoint}, update, upsert=True)
        return res.upserted_id is not None

    async def delete_by_endpoint(self, endpoint: str) -> bool:
        res = await self.subscriptions.delete_one({"endpoint": endpoint})
        return res.deleted_count > 0

    async def find_by_endpoint(self, endpoint: str) -> Optional[Dict[str, Any]]:
        return await self.subscriptions.find_one({"endpoint": endpoint})

    async def list_page(self, limit: int, after_endpoint: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if after_endpoint is not None:
            query["endpoint"] = {"$gt": after_endpoint}
        cursor = self.subscriptions.find(query).sort("endpoint", ASCENDING).limit(limit)
        return [doc async for doc in cursor]

    async def count(self) -> int:
        return await self.subscriptions.count_documents({})


class InMemorySubscriptionRepository(SubscriptionRepository):
    """Process-local repository for development and tests.

    Mirrors the Mongo repository's upsert/delete semantics so that the
    registry behaves the same regardless of backend.
    """

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def ensure_indexes(self) -> None:
        return None

    async def upsert(self, subscription: PushSubscription) -> bool:
        doc = subscription.model_dump(by_alias=True)
        async with self._lock:
            existing = self._rows.get(subscription.endpoint)
            if existing is None:
                self._rows[subscription.endpoint] = doc
                return True
            existing.update({
                "keys": doc["keys"],
                "device": doc["device"],
                "user_agent": doc["user_agent"],
                "updated_at": utcnow(),
            })
            return False

    async def delete_by_endpoint(self, endpoint: str) -> bool:
        async with self._lock:
            return self._rows.pop(endpoint, None) is not None

    async def find_by_endpoint(self, endpoint: str) -> Optional[Dict[str, Any]]:
        row = self._rows.get(endpoint)
        return dict(row) if row is not None else None

    async def list_page(self, limit: int, after_endpoint: Optional[str] = None) -> List[Dict[str, Any]]:
        endpoints = sorted(self._rows)
        if after_endpoint is not None:
            endpoints = [e for e in endpoints if e > after_endpoint]
        return [dict(self._rows[e]) for e in endpoints[:limit]]

    async def count(self) -> int:
        return len(self._rows)
