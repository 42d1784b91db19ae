"""Push platform and user-feedback interfaces provided by the host."""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


def urlsafe_b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def urlsafe_b64decode(value: str) -> bytes:
    value = value.strip()
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


@dataclass(frozen=True)
class PlatformSubscription:
    endpoint: str
    p256dh: bytes
    auth: bytes

    def encoded_keys(self) -> dict:
        return {"p256dh": urlsafe_b64encode(self.p256dh), "auth": urlsafe_b64encode(self.auth)}


class PushPlatform(ABC):
    @property
    @abstractmethod
    def supports_background_agent(self) -> bool:
        ...

    @property
    @abstractmethod
    def supports_push(self) -> bool:
        ...

    @property
    def user_agent(self) -> Optional[str]:
        return None

    @abstractmethod
    async def register_agent(self, script_url: str) -> None:
        ...

    @abstractmethod
    async def request_permission(self) -> PermissionState:
        """Interactive permission prompt."""

    @abstractmethod
    async def get_subscription(self) -> Optional[PlatformSubscription]:
        ...

    @abstractmethod
    async def subscribe(self, application_server_key: bytes) -> PlatformSubscription:
        ...

    @abstractmethod
    async def unsubscribe(self, subscription: PlatformSubscription) -> bool:
        ...


class UserNotifier(ABC):
    @abstractmethod
    def notify_success(self, title: str, message: str) -> None:
        ...

    @abstractmethod
    def notify_error(self, title: str, message: str) -> None:
        ...
