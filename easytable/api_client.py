"""
Async HTTP gateway to the EasyTable REST backend.

Normalizes every response into a dict and every failure into a typed error:
- NetworkError: no response (connection refused, DNS, protocol failure)
- ApiError: non-2xx status, message taken from the JSON body when present

There are no retries and no timeout; callers add resilience above this layer.

Usage:
    from easytable.api_client import ApiClient

    async with ApiClient("http://localhost:8080", store=store) as api:
        me = await api.get("/api/auth/me")
"""

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import aiohttp

from core.errors import ApiError, NetworkError
from easytable.auth.tokens import bearer_token

logger = logging.getLogger(__name__)


def _is_json(content_type: str) -> bool:
    return content_type == "application/json" or content_type.endswith("+json")


def _parse_body(raw: bytes, content_type: str) -> dict:
    """Normalize a response body to a dict.

    JSON object -> dict, JSON array -> {"content": [...]},
    text/* -> {"text": ...}, anything else or malformed -> {}.
    """
    if _is_json(content_type):
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Response declared JSON but body did not parse")
            return {}
        if isinstance(data, dict):
            return data
        if isinstance(data, list):
            return {"content": data}
        return {}
    if content_type.startswith("text/"):
        return {"text": raw.decode("utf-8", errors="replace")}
    return {}


def _error_message(body: dict, status: int, reason: Optional[str]) -> str:
    return body.get("message") or body.get("error") or f"Error {status}: {reason or ''}".rstrip()


class ApiClient:
    """
    EasyTable REST API client.

    Attributes:
        base_url: Backend origin, prefixed to relative paths
        store: Optional SessionStore supplying the default bearer token
    """

    def __init__(self, base_url: str, store=None):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))
        return self._session

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    def _headers(self, token: Optional[str]) -> dict:
        headers = {"Content-Type": "application/json"}
        if not token and self.store is not None:
            token = self.store.load()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        token: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> dict:
        """
        Make an API request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path (e.g., "/api/auth/me") or absolute URL
            body: JSON-serializable request body
            token: Bearer token overriding the stored one
            params: Query parameters; None and empty values are dropped

        Returns:
            Normalized response dict. A token from an Authorization response
            header is merged in under "token".

        Raises:
            NetworkError: No response received
            ApiError: Non-2xx status
        """
        query = {k: str(v) for k, v in (params or {}).items() if v not in (None, "")}
        logger.debug(f"{method} {path}")

        try:
            async with self._get_session().request(
                method,
                self._url(path),
                json=body,
                headers=self._headers(token),
                params=query or None,
            ) as resp:
                raw = await resp.read()
                status = resp.status
                reason = resp.reason
                content_type = resp.content_type
                auth_header = resp.headers.get("Authorization")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"{method} {path} failed: {e}", extra={"method": method, "path": path})
            raise NetworkError() from e

        result = _parse_body(raw, content_type)

        if not 200 <= status < 300:
            message = _error_message(result, status, reason)
            logger.warning(
                f"{method} {path} returned {status}: {message}",
                extra={"method": method, "path": path, "status_code": status},
            )
            raise ApiError(message, status_code=status, payload=result)

        token_from_header = bearer_token(auth_header)
        if token_from_header:
            result = {**result, "token": token_from_header}
        return result

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None, token: Optional[str] = None) -> dict:
        return await self.send("GET", path, params=params, token=token)

    async def post(self, path: str, body: Any = None, token: Optional[str] = None) -> dict:
        return await self.send("POST", path, body=body, token=token)

    async def put(self, path: str, body: Any = None, token: Optional[str] = None) -> dict:
        return await self.send("PUT", path, body=body, token=token)

    async def delete(self, path: str, token: Optional[str] = None) -> dict:
        return await self.send("DELETE", path, token=token)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
