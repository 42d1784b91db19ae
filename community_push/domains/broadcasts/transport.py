from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from pywebpush import WebPushException, webpush

from ..subscriptions.models import PushSubscription

logger = logging.getLogger(__name__)

# 푸시 서비스가 endpoint 를 영구 폐기했음을 뜻하는 응답 코드
GONE_STATUS_CODES = frozenset({404, 410})


class PushDeliveryError(Exception):
    """A push service rejected or failed a single delivery"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


class PushTransport(ABC):
    @abstractmethod
    async def send(self, subscription: PushSubscription, payload: str) -> None:
        """Deliver ``payload`` to one subscription or raise ``PushDeliveryError``."""


class WebPushTransport(PushTransport):
    """Web Push (RFC 8030/8291) delivery with VAPID authentication.

    pywebpush is blocking, so each delivery runs in a worker thread; the
    caller bounds how many run at once.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl: int = 86400,
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    async def send(self, subscription: PushSubscription, payload: str) -> None:
        await asyncio.to_thread(self._send_sync, subscription, payload)

    def _send_sync(self, subscription: PushSubscription, payload: str) -> None:
        try:
            webpush(
                subscription_info=subscription.to_subscription_info(),
                data=payload,
                vapid_private_key=self.vapid_private_key,
                # pywebpush 가 claims 에 aud/exp 를 채워 넣으므로 매번 새 dict
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise PushDeliveryError(str(e), status_code=status_code) from e
