from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# 콘텐츠 백엔드 webhook 이벤트명 → 변경 action
_ACTION_ALIASES = {
    "create": "create",
    "update": "update",
    "delete": "delete",
    "publish": "update",
    "unpublish": "delete",
}


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def past_tense(self) -> str:
        return f"{self.value}d"


def normalize_entity_type(value: str) -> str:
    """``api::news.news`` -> ``news``; plain names are lower-cased"""
    value = value.strip()
    if value.startswith("api::"):
        value = value[len("api::"):]
    if "." in value:
        value = value.rsplit(".", 1)[-1]
    return value.lower()


def normalize_action(value: str) -> str:
    """``entry.update`` -> ``update``, ``entry.publish`` -> ``update``"""
    name = value.strip().lower()
    if "." in name:
        name = name.rsplit(".", 1)[-1]
    if name not in _ACTION_ALIASES:
        raise ValueError(f"unsupported action: {value}")
    return _ACTION_ALIASES[name]


class ContentChangeEvent(BaseModel):
    """콘텐츠 변경 신호 (저장하지 않음)"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "entityType": "news",
                "action": "update",
                "entitySnapshot": {"id": 42, "slug": "water-supply-maintenance", "title": "Water supply maintenance"}
            }
        }
    )

    entity_type: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("entityType", "entity_type", "model"),
    )
    action: ChangeAction = Field(..., validation_alias=AliasChoices("action", "event"))
    entity_snapshot: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("entitySnapshot", "entity_snapshot", "entry"),
    )

    @field_validator("entity_type")
    @classmethod
    def check_entity_type(cls, v: str) -> str:
        normalized = normalize_entity_type(v)
        if not normalized:
            raise ValueError("entity type is empty")
        return normalized

    @field_validator("action", mode="before")
    @classmethod
    def check_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return normalize_action(v)
        return v

    @field_validator("entity_snapshot", mode="before")
    @classmethod
    def check_snapshot(cls, v: Any) -> Any:
        # 삭제 이벤트 등에서 entry 가 null 로 오는 경우
        return v if v is not None else {}


class NotificationPayload(BaseModel):
    """푸시 표시 payload. ContentChangeEvent 로부터 결정적으로 생성됨"""
    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    image: Optional[str] = None
    target_url: str = "/"
    dedupe_tag: str = "default"
    entity_type: Optional[str] = None
    action: Optional[str] = None
    entity_id: Optional[str] = None
    require_interaction: bool = False

    def to_wire(self) -> Dict[str, Any]:
        """JSON shape understood by the interception agent"""
        wire: Dict[str, Any] = {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "data": {
                "url": self.target_url,
                "entityType": self.entity_type,
                "action": self.action,
                "id": self.entity_id,
            },
            "tag": self.dedupe_tag,
            "requireInteraction": self.require_interaction,
        }
        if self.image:
            wire["image"] = self.image
        return wire

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


class DeliveryOutcome(BaseModel):
    endpoint: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    evicted: bool = False


class BroadcastSummary(BaseModel):
    success: bool = True
    message: str
    total: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    evicted: int = 0
    skipped: int = 0
    tag: Optional[str] = None
    outcomes: List[DeliveryOutcome] = Field(default_factory=list, exclude=True)
