"""Shared aiohttp session and the JSON client for the booking API.

One ClientSession for the whole process lifetime, created lazily and closed
via close_session() on shutdown. Requests are never retried: a failed call
is reported to the caller, who decides whether the user tries again.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import aiohttp

logger = logging.getLogger(__name__)

_session: aiohttp.ClientSession | None = None

_HEADERS = {"User-Agent": "busbooker/1.0", "Accept": "application/json"}


class ServiceError(Exception):
    """Base class for failures talking to the booking API."""


class TransportError(ServiceError):
    """The request never produced an HTTP response (DNS, refused, timeout...)."""


class ApiError(ServiceError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, server_message: str | None = None) -> None:
        super().__init__(server_message or f"HTTP {status}")
        self.status = status
        self.server_message = server_message


class AuthorizationError(ApiError):
    """401: the session token is missing, invalid or expired."""


def describe_error(exc: BaseException, fallback: str) -> str:
    """Most specific message: server message > transport message > fallback."""
    if isinstance(exc, ApiError) and exc.server_message:
        return exc.server_message
    text = str(exc).strip()
    return text or fallback


async def get_session(timeout_seconds: int = 30) -> aiohttp.ClientSession:
    global _session
    if _session is None or _session.closed:
        timeout = aiohttp.ClientTimeout(total=timeout_seconds, connect=10)
        _session = aiohttp.ClientSession(timeout=timeout, headers=_HEADERS)
    return _session


async def close_session() -> None:
    global _session
    if _session and not _session.closed:
        await _session.close()
    _session = None


class ApiClient:
    """Thin JSON client: base URL, bearer token injection, error mapping."""

    def __init__(self, base_url: str, *, timeout_seconds: int = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._token_provider: Callable[[], str | None] = lambda: None

    def set_token_provider(self, provider: Callable[[], str | None]) -> None:
        self._token_provider = provider

    def _headers(self) -> dict[str, str]:
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def get_json(self, path: str, *, params: dict[str, str] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post_json(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", path, payload=payload or {})

    async def put_json(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request("PUT", path, payload=payload or {})

    async def get_bytes(self, path: str) -> bytes:
        return await self._request("GET", path, binary=True)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        binary: bool = False,
    ) -> Any:
        url = f"{self.base_url}{path}"
        session = await get_session(self.timeout_seconds)
        try:
            async with session.request(
                method, url, params=params, json=payload, headers=self._headers()
            ) as resp:
                if resp.status >= 400:
                    message = await _server_message(resp)
                    logger.warning("%s %s -> %d (%s)", method, path, resp.status, message)
                    if resp.status == 401:
                        raise AuthorizationError(resp.status, message)
                    raise ApiError(resp.status, message)
                if binary:
                    return await resp.read()
                body = await resp.text()
                if not body.strip():
                    return None
                try:
                    return json.loads(body)
                except ValueError as exc:
                    logger.error("%s %s returned invalid JSON: %s", method, path, exc)
                    raise ApiError(resp.status, "Invalid response from server.") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc) or type(exc).__name__) from exc


async def _server_message(resp: aiohttp.ClientResponse) -> str | None:
    try:
        body = await resp.json(content_type=None)
    except (aiohttp.ClientError, ValueError):
        return None
    return extract_message(body)


def extract_message(body: Any) -> str | None:
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None
