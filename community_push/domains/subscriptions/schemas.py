from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import DeviceType


def _unwrap_data(value: Any) -> Any:
    # 콘텐츠 백엔드 형식 {"data": {...}} 도 허용
    if isinstance(value, dict) and "endpoint" not in value and isinstance(value.get("data"), dict):
        return value["data"]
    return value


def _validate_endpoint(value: str) -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("https", "http") or not parsed.netloc:
        raise ValueError("endpoint must be an absolute http(s) URL")
    return value


class SubscriptionKeysPayload(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class SubscriptionRegisterRequest(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "endpoint": "https://fcm.googleapis.com/fcm/send/dGVzdA",
                "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM", "auth": "tBHItJI5svbpez7KI4CCXg"},
                "device": "mobile",
                "userAgent": "Mozilla/5.0 (Linux; Android 14) Mobile"
            }
        }
    )

    endpoint: str = Field(..., min_length=1, description="푸시 서비스 endpoint URL")
    keys: SubscriptionKeysPayload
    device: Optional[DeviceType] = Field(default=None, description="기기 종류 (생략 시 User-Agent 로 판별)")
    user_agent: Optional[str] = Field(
        default=None,
        max_length=512,
        validation_alias=AliasChoices("userAgent", "user_agent"),
    )

    @model_validator(mode="before")
    @classmethod
    def unwrap(cls, value: Any) -> Any:
        return _unwrap_data(value)

    @field_validator("endpoint")
    @classmethod
    def check_endpoint(cls, v: str) -> str:
        return _validate_endpoint(v)


class SubscriptionRemoveRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def unwrap(cls, value: Any) -> Any:
        return _unwrap_data(value)

    @field_validator("endpoint")
    @classmethod
    def check_endpoint(cls, v: str) -> str:
        return v.strip()


class SubscriptionResult(BaseModel):
    endpoint: str
    device: DeviceType
    created: bool


class PublicKeyData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(..., serialization_alias="publicKey", validation_alias=AliasChoices("publicKey", "public_key"))


class PublicKeyResponse(BaseModel):
    data: PublicKeyData
