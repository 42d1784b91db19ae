import logging
from typing import Any, Dict, Optional

import httpx

from .exceptions import PushConfigurationError, RegistryClientError

logger = logging.getLogger(__name__)


class RegistryClient:
    """HTTP client for the push service's subscription endpoints"""

    def __init__(self, http: httpx.AsyncClient, api_base_url: str, timeout: float = 10.0):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}{path}"

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return default

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.http.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Push service request failed: {method} {path}: {type(e).__name__}")
            raise RegistryClientError(f"Push service unreachable: {type(e).__name__}") from e

    async def fetch_public_key(self) -> str:
        response = await self._request("GET", "/push/public-key")
        if response.status_code == 503:
            raise PushConfigurationError("Push notifications not configured", status_code=503)
        if response.status_code != 200:
            raise RegistryClientError(
                self._error_message(response, "Failed to fetch public key"),
                status_code=response.status_code,
            )
        try:
            key = response.json()["data"]["publicKey"]
        except (ValueError, KeyError, TypeError) as e:
            raise PushConfigurationError("Malformed public key response") from e
        if not isinstance(key, str) or not key.strip():
            raise PushConfigurationError("Malformed public key response")
        return key.strip()

    async def register(
        self,
        endpoint: str,
        keys: Dict[str, str],
        device: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"endpoint": endpoint, "keys": keys}
        if device:
            body["device"] = device
        if user_agent:
            body["userAgent"] = user_agent

        response = await self._request("POST", "/push/subscriptions", json=body)
        if response.status_code not in (200, 201):
            raise RegistryClientError(
                self._error_message(response, "Failed to save subscription"),
                status_code=response.status_code,
            )
        try:
            data = response.json().get("data")
        except (ValueError, AttributeError) as e:
            logger.warning(f"Unreadable registration response ({response.status_code})")
            raise RegistryClientError("Malformed registration response", status_code=response.status_code) from e
        return data if isinstance(data, dict) else {}

    async def unregister(self, endpoint: str) -> None:
        response = await self._request("DELETE", "/push/subscriptions", params={"endpoint": endpoint})
        if response.status_code != 200:
            raise RegistryClientError(
                self._error_message(response, "Failed to remove subscription"),
                status_code=response.status_code,
            )
