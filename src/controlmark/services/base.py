"""Shared HTTP plumbing for the backend services.

Every call carries the session's bearer token and maps failures onto the
workflow error taxonomy: 401 becomes AuthExpired, anything else becomes the
caller's error type with the server's ``message`` when it sent one.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import httpx

from ..core.errors import AuthExpired, ControlmarkError
from ..core.session import Session
from ..utils.sanitize import sanitize_error

logger = logging.getLogger(__name__)


def server_message(response: httpx.Response) -> Optional[str]:
    """Extract the ``message`` field from a JSON error body, if any."""
    return server_message_from_bytes(response.content)


def server_message_from_bytes(content: bytes) -> Optional[str]:
    try:
        data = json.loads(content or b"")
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"] or None
    return None


class BaseService:
    """Base class with shared request and error-mapping logic."""

    name: str = "base"

    def __init__(
        self,
        config: dict,
        session: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_config = config.get("api", {})
        self.base_url = str(api_config.get("base_url", "")).rstrip("/")
        self.endpoints = api_config.get("endpoints", {})
        self.timeout = api_config.get("timeout_seconds")
        self.session = session
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict = {"base_url": self.base_url, "headers": self.session.auth_headers()}
        if self.timeout:
            kwargs["timeout"] = self.timeout
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    def endpoint(self, key: str, **params: str) -> str:
        path = self.endpoints.get(key, "")
        return path.format(**params) if params else path

    async def request(
        self,
        method: str,
        path: str,
        error_cls: type[ControlmarkError],
        fallback_message: Optional[str] = None,
        **kwargs,
    ) -> httpx.Response:
        """Send a request and return the 2xx response, or raise a mapped error."""
        logger.debug("%s %s%s", method, self.base_url, path)
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthExpired(status_code=status) from e
            message = server_message(e.response)
            logger.warning("%s %s failed with %d", method, path, status)
            raise error_cls(
                sanitize_error(message) if message else fallback_message,
                status_code=status,
                retryable=status >= 500 or status == 429,
            ) from e
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, sanitize_error(str(e)))
            raise error_cls(fallback_message, retryable=True) from e

    async def request_json(
        self,
        method: str,
        path: str,
        error_cls: type[ControlmarkError],
        fallback_message: Optional[str] = None,
        **kwargs,
    ) -> object:
        response = await self.request(method, path, error_cls, fallback_message, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(f"Unexpected response from {self.name} service.") from e
