"""
REST HTTP client for the growth backend.
"""

import logging
from typing import Any, Optional

import httpx

from growth_checkout.errors import HttpError, MalformedResponseError, TransportError

DEFAULT_BASE_URL = "http://localhost:8080/api"
USER_AGENT = "growth-checkout/0.1.0"

logger = logging.getLogger(__name__)


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap the { "status": "success", "data": <actual_data> } envelope some endpoints use."""
        if isinstance(json_data, dict) and set(json_data) == {"status", "data"}:
            return json_data["data"]
        return json_data

    @staticmethod
    def _error_body(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return resp.text[:200] or None

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        try:
            resp = await self._client.request(
                method, path, json=body, params=params, headers=self._auth_headers(authenticated),
            )
        except httpx.TransportError as e:
            logger.warning("%s %s failed before a response: %s", method, path, e)
            raise TransportError(f"Cannot connect to server: {e}") from e

        if resp.status_code >= 400:
            raise HttpError(resp.status_code, f"HTTP {resp.status_code}: {resp.text[:200]}", self._error_body(resp))
        if not resp.content:
            return None
        try:
            data = resp.json()
        except ValueError as e:
            # Some endpoints answer with plain text acks; callers decide if that is acceptable.
            if resp.headers.get("content-type", "").startswith("application/json"):
                raise MalformedResponseError(f"Invalid JSON from {path}", resp.text[:200]) from e
            return resp.text
        return self._unwrap(data)

    async def get(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("GET", path, params=params, authenticated=authenticated)

    async def post(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.request("POST", path, body=body, authenticated=authenticated)

    async def put(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.request("PUT", path, body=body, authenticated=authenticated)

    async def delete(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("DELETE", path, params=params, authenticated=authenticated)

    async def close(self) -> None:
        await self._client.aclose()
