from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from ...shared.models.base import BaseDocument

DeviceType = Literal["mobile", "desktop"]


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1, description="수신자 공개키 (URL-safe base64)")
    auth: str = Field(..., min_length=1, description="인증 시크릿 (URL-safe base64)")


class PushSubscription(BaseDocument):
    """푸시 구독 문서. endpoint 가 유일한 식별자"""
    endpoint: str = Field(..., min_length=1, description="푸시 서비스 endpoint URL")
    keys: SubscriptionKeys
    # 정보성 메타데이터: 발송 로직에서 분기하지 않음
    device: DeviceType = Field(default="desktop", description="기기 종류")
    user_agent: Optional[str] = Field(default=None, description="구독 시점의 User-Agent")

    def to_subscription_info(self) -> Dict[str, Any]:
        """Format expected by the web push transport"""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.keys.p256dh,
                "auth": self.keys.auth,
            },
        }


def detect_device(user_agent: Optional[str]) -> DeviceType:
    if user_agent and "Mobile" in user_agent:
        return "mobile"
    return "desktop"
