"""
Subscription lifecycle controller.

The platform subscription is the source of truth for whether this device
can receive pushes; the registry row is a best-effort delivery list. The
two can drift (registration failed after the platform subscribed, or the
registry call was lost on unsubscribe). ``reconcile()`` re-registers on the
next page load when a platform subscription exists without a recorded
successful registration. Until then the device counts as not subscribed.

No public operation raises: failures become user-visible messages through
``UserNotifier`` and a False return.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .config import ClientSettings
from .exceptions import PushClientError
from .platform import (
    PermissionState,
    PlatformSubscription,
    PushPlatform,
    UserNotifier,
    urlsafe_b64decode,
)
from .registry_client import RegistryClient
from .state import ClientStateStore

logger = logging.getLogger(__name__)

PERMISSION_DENIED_TITLE = "Notification permission denied"
PERMISSION_DENIED_MESSAGE = "Please enable notifications in your browser settings."
SUBSCRIBE_FAILED_TITLE = "Failed to enable push notifications"
UNSUBSCRIBE_FAILED_TITLE = "Failed to disable push notifications"


class SubscriptionLifecycleController:
    def __init__(
        self,
        platform: PushPlatform,
        registry: RegistryClient,
        notifier: UserNotifier,
        state: ClientStateStore,
        settings: Optional[ClientSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.registry = registry
        self.notifier = notifier
        self.state = state
        self.settings = settings or ClientSettings()
        self._sleep = sleep

    def check_support(self) -> bool:
        try:
            return bool(self.platform.supports_background_agent and self.platform.supports_push)
        except Exception:
            return False

    async def current_subscription(self) -> Optional[PlatformSubscription]:
        if not self.check_support():
            return None
        try:
            return await self.platform.get_subscription()
        except Exception as e:
            logger.error(f"Error checking subscription: {e}")
            return None

    async def is_subscribed(self) -> bool:
        subscription = await self.current_subscription()
        return subscription is not None and self.state.registered_endpoint == subscription.endpoint

    async def _register(self, subscription: PlatformSubscription) -> None:
        # device 는 서버가 userAgent 로 판별
        await self.registry.register(
            subscription.endpoint,
            subscription.encoded_keys(),
            user_agent=self.platform.user_agent,
        )

    async def subscribe(self) -> bool:
        """Permission -> public key -> platform subscription -> registry."""
        if not self.check_support():
            return False

        try:
            permission = await self.platform.request_permission()
        except Exception as e:
            logger.warning(f"Permission request failed: {e}")
            permission = PermissionState.DENIED
        if permission != PermissionState.GRANTED:
            self.notifier.notify_error(PERMISSION_DENIED_TITLE, PERMISSION_DENIED_MESSAGE)
            return False

        try:
            public_key = await self.registry.fetch_public_key()
            subscription = await self.platform.subscribe(urlsafe_b64decode(public_key))
        except PushClientError as e:
            return self._fail_subscribe(e.message)
        except Exception as e:
            logger.error(f"Subscription error: {e}")
            return self._fail_subscribe(str(e) or type(e).__name__)

        try:
            await self._register(subscription)
        except PushClientError as e:
            await self._discard_platform_subscription(subscription)
            return self._fail_subscribe(e.message)
        except Exception as e:
            logger.error(f"Unexpected registration error: {type(e).__name__}: {e}")
            await self._discard_platform_subscription(subscription)
            return self._fail_subscribe(str(e) or type(e).__name__)

        self.state.mark_registered(subscription.endpoint)
        logger.info("Successfully subscribed to push notifications")
        self.notifier.notify_success("Push notifications enabled!", "You'll now receive important updates.")
        return True

    def _fail_subscribe(self, message: str) -> bool:
        self.state.clear_registration()
        self.notifier.notify_error(SUBSCRIBE_FAILED_TITLE, message)
        return False

    async def _discard_platform_subscription(self, subscription: PlatformSubscription) -> None:
        try:
            await self.platform.unsubscribe(subscription)
        except Exception as e:
            # 다음 방문 시 reconcile 에서 처리
            logger.warning(f"Could not roll back platform subscription: {e}")

    async def unsubscribe(self) -> bool:
        """Platform first, then best-effort registry removal."""
        subscription = await self.current_subscription()
        if subscription is None:
            self.state.clear_registration()
            return True

        try:
            await self.platform.unsubscribe(subscription)
        except Exception as e:
            logger.error(f"Error unsubscribing: {e}")
            self.notifier.notify_error(UNSUBSCRIBE_FAILED_TITLE, str(e) or type(e).__name__)
            return False

        self.state.clear_registration()
        try:
            await self.registry.unregister(subscription.endpoint)
        except PushClientError as e:
            logger.warning(f"Failed to delete subscription from server, but local unsubscribe succeeded: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected error deleting subscription from server: {type(e).__name__}: {e}")

        self.notifier.notify_success("Push notifications disabled", "You won't receive push notifications anymore.")
        return True

    async def maybe_auto_prompt(self) -> bool:
        """First-visit prompt, at most once per device."""
        if not self.check_support():
            return False
        if await self.current_subscription() is not None:
            return False
        if not self.state.claim_auto_prompt():
            return False

        await self._sleep(self.settings.auto_prompt_delay_seconds)
        return await self.subscribe()

    async def reconcile(self) -> bool:
        subscription = await self.current_subscription()
        if subscription is None:
            self.state.clear_registration()
            return False
        if self.state.registered_endpoint == subscription.endpoint:
            return True

        try:
            await self._register(subscription)
        except PushClientError as e:
            logger.warning(f"Re-registration failed, treating device as not subscribed: {e.message}")
            return False
        except Exception as e:
            logger.error(f"Unexpected re-registration error: {type(e).__name__}: {e}")
            return False

        self.state.mark_registered(subscription.endpoint)
        logger.info("Platform subscription re-registered")
        return True

    async def initialize(self) -> bool:
        """Page-load entry point: install the agent, reconcile, maybe auto-prompt."""
        if not self.check_support():
            logger.info("Push notifications not supported; feature disabled")
            return False

        try:
            await self.platform.register_agent(self.settings.agent_script_url)
        except Exception as e:
            logger.error(f"Service worker registration failed: {e}")
            return False

        if await self.reconcile():
            return True
        return await self.maybe_auto_prompt()
