"""Host interfaces the interception agent talks to: the notification shade and open windows."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_ICON = "/icon-192.png"
DEFAULT_BODY = "You have a new notification"
DEFAULT_TAG = "default"
# close 가 dismiss 액션
DISMISS_ACTION = "close"


@dataclass
class NotificationAction:
    action: str
    title: str


def default_actions() -> List[NotificationAction]:
    return [
        NotificationAction(action="open", title="View"),
        NotificationAction(action=DISMISS_ACTION, title="Close"),
    ]


@dataclass
class Notification:
    title: str
    body: str
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_ICON
    image: Optional[str] = None
    tag: str = DEFAULT_TAG
    data: Dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False
    actions: List[NotificationAction] = field(default_factory=default_actions)
    closed: bool = False

    @property
    def target_url(self) -> str:
        url = self.data.get("url") if isinstance(self.data, dict) else None
        return url if isinstance(url, str) and url else "/"

    def close(self) -> None:
        self.closed = True


class NotificationSurface(ABC):
    @abstractmethod
    async def show(self, notification: Notification) -> None:
        """Display (or replace, by tag) a system notification."""


class WindowClient(ABC):
    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    async def focus(self) -> "WindowClient":
        ...


class WindowClients(ABC):
    @abstractmethod
    async def match_all(self) -> List[WindowClient]:
        """All open page instances, controlled or not."""

    @abstractmethod
    async def open_window(self, url: str) -> Optional[WindowClient]:
        ...

    @abstractmethod
    async def claim(self) -> None:
        """Take control of every open page."""
