"""
Client half of the push pipeline: cache store, interception agent and the
subscription lifecycle controller, driven by host-provided platform objects.
"""

from .agent import AgentResponse, AgentState, InstallReport, InterceptedRequest, InterceptionAgent, ResourceClass
from .cache_store import CacheEntry, CacheStorage, NamedCache
from .config import ClientSettings
from .exceptions import PushClientError, PushConfigurationError, RegistryClientError
from .lifecycle import SubscriptionLifecycleController
from .notifications import Notification, NotificationAction, NotificationSurface, WindowClient, WindowClients
from .platform import PermissionState, PlatformSubscription, PushPlatform, UserNotifier
from .registry_client import RegistryClient
from .state import ClientStateStore

__all__ = [
    'AgentResponse',
    'AgentState',
    'InstallReport',
    'InterceptedRequest',
    'InterceptionAgent',
    'ResourceClass',
    'CacheEntry',
    'CacheStorage',
    'NamedCache',
    'ClientSettings',
    'PushClientError',
    'PushConfigurationError',
    'RegistryClientError',
    'SubscriptionLifecycleController',
    'Notification',
    'NotificationAction',
    'NotificationSurface',
    'WindowClient',
    'WindowClients',
    'PermissionState',
    'PlatformSubscription',
    'PushPlatform',
    'UserNotifier',
    'RegistryClient',
    'ClientStateStore',
]
