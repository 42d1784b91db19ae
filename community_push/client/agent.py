"""
Interception agent.

Background process that sits between the page and the network. It owns
three jobs: pre-populating and versioning the cache store (install and
activate), answering intercepted requests according to the resource class,
and turning push messages and notification clicks into shade/window actions.

Policies per resource class:
    document      network only with cache-bypass headers, 503 when offline
    static asset  stale-while-revalidate, 503 only when offline and uncached
    pass-through  cross-origin or non-GET; not intercepted (``None``)
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union
from urllib.parse import urljoin, urlsplit

import httpx

from .cache_store import CacheEntry, CacheStorage, NamedCache
from .config import ClientSettings
from .notifications import (
    DEFAULT_BODY,
    DEFAULT_ICON,
    DEFAULT_TAG,
    DISMISS_ACTION,
    Notification,
    NotificationAction,
    NotificationSurface,
    WindowClient,
    WindowClients,
    default_actions,
)

logger = logging.getLogger(__name__)

OFFLINE_BODY = b"Service unavailable: you appear to be offline."
BYPASS_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class AgentState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    WAITING = "waiting"
    ACTIVE = "active"


class ResourceClass(str, Enum):
    DOCUMENT = "document"
    STATIC_ASSET = "static_asset"
    PASS_THROUGH = "pass_through"


@dataclass
class InterceptedRequest:
    url: str
    method: str = "GET"
    # fetch destination ("document", "script", "style", "image", ...)
    destination: str = ""
    mode: str = "no-cors"
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class AgentResponse:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    # network | cache | offline
    source: str = "network"
    response_type: str = "basic"

    @property
    def content_type(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class InstallReport:
    cached: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def _origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def _offline_response() -> AgentResponse:
    return AgentResponse(
        status=503,
        body=OFFLINE_BODY,
        headers={"Content-Type": "text/plain; charset=utf-8"},
        source="offline",
    )


class InterceptionAgent:
    def __init__(
        self,
        settings: ClientSettings,
        caches: CacheStorage,
        http: httpx.AsyncClient,
        surface: NotificationSurface,
        clients: WindowClients,
    ):
        self.settings = settings
        self.caches = caches
        self.http = http
        self.surface = surface
        self.clients = clients
        self.origin = _origin_of(settings.origin)
        self.state = AgentState.PARSED
        self.skip_waiting_requested = False
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> InstallReport:
        """install -> skip waiting -> activate"""
        report = await self.install()
        if self.skip_waiting_requested:
            await self.activate()
        return report

    async def install(self) -> InstallReport:
        """Pre-populate the current generation's cache, best effort per asset."""
        self.state = AgentState.INSTALLING
        cache = await self.caches.open(self.settings.static_cache_name)

        paths = list(self.settings.precache_manifest)
        results = await asyncio.gather(
            *(self._precache(cache, path) for path in paths),
            return_exceptions=True,
        )

        report = InstallReport()
        for path, result in zip(paths, results):
            if result is True:
                report.cached.append(path)
            else:
                report.failed.append(path)
                logger.warning(f"Precache failed for {path}: {result}")

        logger.info(
            "Agent installed",
            extra={"component": "agent", "cached": len(report.cached), "failed": len(report.failed)},
        )
        self.state = AgentState.WAITING
        self.skip_waiting_requested = True
        return report

    async def _precache(self, cache: NamedCache, path: str) -> Union[bool, str]:
        url = self._absolute(path)
        try:
            response = await self.http.get(url, timeout=self.settings.fetch_timeout_seconds)
        except httpx.HTTPError as e:
            return type(e).__name__
        if response.status_code != 200:
            return f"status {response.status_code}"
        await cache.put(self._to_entry(url, response))
        return True

    async def activate(self) -> List[str]:
        """Delete caches from other generations, then claim open pages."""
        current = {self.settings.static_cache_name, self.settings.runtime_cache_name}
        removed = []
        for name in await self.caches.keys():
            if name not in current:
                await self.caches.delete(name)
                removed.append(name)

        await self.clients.claim()
        self.state = AgentState.ACTIVE
        logger.info("Agent activated", extra={"component": "agent", "removed_caches": removed})
        return removed

    async def drain(self) -> None:
        """Wait for in-flight background revalidations."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # fetch interception
    # ------------------------------------------------------------------

    def classify(self, request: InterceptedRequest) -> ResourceClass:
        if request.method.upper() != "GET":
            return ResourceClass.PASS_THROUGH
        if _origin_of(request.url) != self.origin:
            return ResourceClass.PASS_THROUGH
        if request.mode == "navigate" or request.destination == "document":
            return ResourceClass.DOCUMENT
        last_segment = urlsplit(request.url).path.rsplit("/", 1)[-1]
        if "." not in last_segment:
            return ResourceClass.DOCUMENT
        return ResourceClass.STATIC_ASSET

    async def handle_fetch(self, request: InterceptedRequest) -> Optional[AgentResponse]:
        """Answer an intercepted request, or ``None`` to let it through untouched."""
        if self.state != AgentState.ACTIVE:
            return None

        resource_class = self.classify(request)
        if resource_class == ResourceClass.PASS_THROUGH:
            return None
        if resource_class == ResourceClass.DOCUMENT:
            return await self._network_only(request)
        return await self._stale_while_revalidate(request)

    async def _network_only(self, request: InterceptedRequest) -> AgentResponse:
        headers = {**request.headers, **BYPASS_HEADERS}
        try:
            response = await self.http.get(
                request.url,
                headers=headers,
                timeout=self.settings.fetch_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Document fetch failed for {request.url}: {type(e).__name__}")
            return _offline_response()
        return self._to_response(response)

    async def _stale_while_revalidate(self, request: InterceptedRequest) -> AgentResponse:
        runtime = await self.caches.open(self.settings.runtime_cache_name)
        static = await self.caches.open(self.settings.static_cache_name)

        entry = await runtime.match(request.url) or await static.match(request.url)
        if entry is not None:
            self._schedule(self._revalidate(request, runtime))
            return AgentResponse(
                status=entry.status,
                body=entry.payload,
                headers=dict(entry.headers),
                source="cache",
            )

        try:
            response = await self.http.get(
                request.url,
                headers=request.headers,
                timeout=self.settings.fetch_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Asset fetch failed for {request.url}: {type(e).__name__}")
            return _offline_response()

        result = self._to_response(response)
        if self._is_cacheable(result):
            await runtime.put(self._to_entry(request.url, response))
        return result

    async def _revalidate(self, request: InterceptedRequest, cache: NamedCache) -> None:
        try:
            response = await self.http.get(
                request.url,
                headers=request.headers,
                timeout=self.settings.fetch_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Revalidation failed for {request.url}: {type(e).__name__}")
            return

        if self._is_cacheable(self._to_response(response)):
            await cache.put(self._to_entry(request.url, response))
        else:
            logger.debug(f"Revalidation of {request.url} returned {response.status_code}; cache kept")

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    def _is_cacheable(response: AgentResponse) -> bool:
        return response.status == 200 and response.response_type == "basic"

    def _to_response(self, response: httpx.Response) -> AgentResponse:
        same_origin = _origin_of(str(response.url)) == self.origin
        return AgentResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
            source="network",
            response_type="basic" if same_origin else "cors",
        )

    def _to_entry(self, url: str, response: httpx.Response) -> CacheEntry:
        return CacheEntry(
            key=url,
            payload=response.content,
            content_type=response.headers.get("content-type"),
            cache_generation=self.settings.cache_generation,
            status=response.status_code,
            headers=dict(response.headers),
        )

    def _absolute(self, url: str) -> str:
        return urljoin(self.origin + "/", url)

    # ------------------------------------------------------------------
    # push & notification click
    # ------------------------------------------------------------------

    def parse_push(self, data: Optional[Union[bytes, str]]) -> Notification:
        payload: Dict[str, Any] = {}
        if data:
            text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                payload = parsed
            else:
                # 평문 push: 본문만 사용
                payload = {"title": self.settings.site_name, "body": text.strip() or DEFAULT_BODY}

        data_field = payload.get("data")
        return Notification(
            title=payload.get("title") or self.settings.site_name,
            body=payload.get("body") or DEFAULT_BODY,
            icon=payload.get("icon") or DEFAULT_ICON,
            badge=payload.get("badge") or DEFAULT_ICON,
            image=payload.get("image") or None,
            tag=payload.get("tag") or DEFAULT_TAG,
            data=data_field if isinstance(data_field, dict) else {},
            require_interaction=bool(payload.get("requireInteraction", False)),
            actions=self._parse_actions(payload.get("actions")),
        )

    @staticmethod
    def _parse_actions(value: Any) -> List[NotificationAction]:
        if not isinstance(value, list):
            return default_actions()
        actions = [
            NotificationAction(action=str(item["action"]), title=str(item.get("title") or item["action"]))
            for item in value
            if isinstance(item, dict) and item.get("action")
        ]
        return actions or default_actions()

    async def handle_push(self, data: Optional[Union[bytes, str]]) -> Notification:
        notification = self.parse_push(data)
        await self.surface.show(notification)
        logger.info("Push notification received", extra={"component": "agent", "tag": notification.tag})
        return notification

    async def handle_notification_click(
        self,
        notification: Notification,
        action: str = "",
    ) -> Optional[WindowClient]:
        notification.close()
        if action == DISMISS_ACTION:
            return None

        target = self._absolute(notification.target_url)
        windows = await self.clients.match_all()
        for window in windows:
            if window.url == target:
                return await window.focus()
        if windows:
            return await windows[0].focus()
        return await self.clients.open_window(target)
