"""
Notification composer.

Maps a content-change event to the payload shown on every device. Pure and
total: no I/O, and every missing or malformed field of the entity snapshot
degrades to a fixed default instead of raising.

Defaults:
    body       -> "New {entity type}"
    icon/badge -> ComposerOptions.default_icon / default_badge
    image      -> omitted
    target URL -> section index when the entity has no slug/id, "/" for unknown types
    entity id  -> "unknown" inside the dedupe tag
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

from ...core.config import settings
from .models import ChangeAction, ContentChangeEvent, NotificationPayload

# entity type -> (section path, identifier field used in the detail route)
ROUTES: Dict[str, Tuple[str, Optional[str]]] = {
    "news": ("/news", "slug"),
    "event": ("/events", "slug"),
    "notification": ("/notifications", None),
    "advertisement": ("/advertisements", "id"),
    "rwa": ("/rwa", None),
    "policy": ("/policies", "slug"),
}

TITLE_FIELDS = ("title", "name", "heroTitleText")
MEDIA_FIELDS = ("image", "coverImage")
UNKNOWN_ENTITY_ID = "unknown"


@dataclass(frozen=True)
class ComposerOptions:
    media_base_url: str = "http://localhost:1337"
    default_icon: str = "/icon-192.png"
    default_badge: str = "/icon-192.png"
    site_name: str = "Greenwood City Block C"

    @classmethod
    def from_settings(cls) -> "ComposerOptions":
        return cls(
            media_base_url=settings.content_media_base_url,
            default_icon=settings.push_default_icon,
            default_badge=settings.push_default_badge,
            site_name=settings.site_name,
        )


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def entity_noun(entity_type: str) -> str:
    words = entity_type.replace("_", " ").replace("-", " ").split()
    noun = " ".join(words) or "content"
    return noun[0].upper() + noun[1:]


def entity_id(snapshot: Dict[str, Any]) -> Optional[str]:
    return _text(snapshot.get("id")) or _text(snapshot.get("documentId"))


def compose_title(entity_type: str, action: ChangeAction) -> str:
    return f"{entity_noun(entity_type)} {action.past_tense}"


def compose_body(entity_type: str, snapshot: Dict[str, Any]) -> str:
    for name in TITLE_FIELDS:
        text = _text(snapshot.get(name))
        if text:
            return text
    return f"New {entity_noun(entity_type).lower()}"


def resolve_target_url(entity_type: str, snapshot: Dict[str, Any]) -> str:
    route = ROUTES.get(entity_type)
    if route is None:
        return "/"
    section, id_field = route
    if id_field is None:
        return section

    identifier = None
    if id_field == "slug":
        identifier = _text(snapshot.get("slug"))
    identifier = identifier or entity_id(snapshot)
    if not identifier:
        return section
    return f"{section}/{quote(identifier, safe='')}"


def _media_url(value: Any) -> Optional[str]:
    # {data: {attributes: {url}}}, {url} 또는 다중 미디어 리스트
    if isinstance(value, list):
        value = value[0] if value else None
    if not isinstance(value, dict):
        return None
    data = value.get("data")
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        attributes = data.get("attributes")
        if isinstance(attributes, dict) and _text(attributes.get("url")):
            return _text(attributes.get("url"))
        if _text(data.get("url")):
            return _text(data.get("url"))
    return _text(value.get("url"))


def resolve_media_url(snapshot: Dict[str, Any], base_url: str) -> Optional[str]:
    for name in MEDIA_FIELDS:
        url = _media_url(snapshot.get(name))
        if not url:
            continue
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith("//"):
            return f"https:{url}"
        return f"{base_url.rstrip('/')}/{url.lstrip('/')}"
    return None


def dedupe_tag(entity_type: str, action: ChangeAction, snapshot: Dict[str, Any]) -> str:
    return f"{entity_type}-{action.value}-{entity_id(snapshot) or UNKNOWN_ENTITY_ID}"


def compose_notification(
    event: ContentChangeEvent,
    options: Optional[ComposerOptions] = None,
) -> NotificationPayload:
    options = options or ComposerOptions()
    snapshot = event.entity_snapshot if isinstance(event.entity_snapshot, dict) else {}

    return NotificationPayload(
        title=compose_title(event.entity_type, event.action),
        body=compose_body(event.entity_type, snapshot),
        icon=options.default_icon,
        badge=options.default_badge,
        image=resolve_media_url(snapshot, options.media_base_url),
        target_url=resolve_target_url(event.entity_type, snapshot),
        dedupe_tag=dedupe_tag(event.entity_type, event.action, snapshot),
        entity_type=event.entity_type,
        action=event.action.value,
        entity_id=entity_id(snapshot),
    )


def compose_welcome(options: Optional[ComposerOptions] = None) -> NotificationPayload:
    """Payload sent once to a freshly registered device"""
    options = options or ComposerOptions()
    return NotificationPayload(
        title="Welcome!",
        body=f"Push notifications are now enabled for {options.site_name}.",
        icon=options.default_icon,
        badge=options.default_badge,
        target_url="/",
        dedupe_tag="welcome",
    )
