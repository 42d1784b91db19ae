"""
MongoDB connection for the subscription registry.

프로세스당 motor 클라이언트 하나. 첫 호출 시 연결하고 lifespan 종료 시 닫는다.
"""

import logging
import time
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .config import settings

logger = logging.getLogger(__name__)

# 구독 등록 흐름이 레지스트리 장애를 빨리 드러내도록 짧게 잡는다
CLIENT_OPTIONS = {
    "maxPoolSize": 50,
    "minPoolSize": 0,
    "connectTimeoutMS": 5000,
    "socketTimeoutMS": 15000,
    "serverSelectionTimeoutMS": 5000,
    "retryWrites": True,
    "retryReads": True,
}

HEALTH_CACHE_SECONDS = 30


class DatabaseManager:
    """Lazily connected motor client with a cached health check"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._healthy = False
        self._checked_at = 0.0

    async def connect(self) -> AsyncIOMotorDatabase:
        client = AsyncIOMotorClient(settings.mongodb_url, **CLIENT_OPTIONS)
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            self._healthy = False
            logger.error("MongoDB 연결 실패 (%s): %s", settings.database_name, e)
            raise

        self.client = client
        self.database = client[settings.database_name]
        self._healthy = True
        self._checked_at = time.monotonic()
        logger.info("MongoDB 연결 성공 (database=%s)", settings.database_name)
        return self.database

    async def get_database(self) -> AsyncIOMotorDatabase:
        if self.database is None:
            return await self.connect()
        return self.database

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB 연결 종료")
        self.client = None
        self.database = None

    async def async_is_healthy(self) -> bool:
        """Ping at most once per HEALTH_CACHE_SECONDS"""
        now = time.monotonic()
        if self._checked_at and now - self._checked_at < HEALTH_CACHE_SECONDS:
            return self._healthy

        try:
            if self.client is None:
                await self.connect()
            else:
                await self.client.admin.command("ping", maxTimeMS=2000)
            self._healthy = True
        except PyMongoError as e:
            logger.warning(f"MongoDB health check failed: {e}")
            self._healthy = False
        self._checked_at = now
        return self._healthy


db_manager = DatabaseManager()


async def get_database_async() -> AsyncIOMotorDatabase:
    return await db_manager.get_database()


async def close_mongo_connection_async() -> None:
    await db_manager.close()
