# Userup Python SDK
# File: rpc.py
# Version: v4

"""Unary RPC transport.

The client layer only needs one capability: send a JSON payload to
``(service, method)`` and get a JSON object back. :class:`Transport`
describes it; :class:`HttpTransport` implements it as JSON over HTTP::

    POST {scheme}://{address}{path_prefix}/{service}/{method}

Failures come back as non-2xx responses with a ``{"code", "msg"}`` body.

A transport owns its pooled HTTP connection and must be closed by
whoever created it. Clients never close the transport they are given.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol, runtime_checkable

import httpx
from httpx import HTTPStatusError, RequestError, TimeoutException

from .auth import OAuthClient
from .config import UserupConfig
from .errors import (
    Cancelled,
    ConnectError,
    DeadlineExceeded,
    DecodeError,
    RemoteError,
    UserupError,
)
from .values import dumps

logger = logging.getLogger(__name__)

USERS_SERVICE = "userapi.Users"
INTEGRATIONS_SERVICE = "userapi.Integrations"


@runtime_checkable
class Transport(Protocol):
    async def call(
        self,
        service: str,
        method: str,
        payload: Dict[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...


_CANCELED_CODES = ("canceled", "cancelled")


def _error_from_response(response: httpx.Response, method: str) -> UserupError:
    """Translate an error response into the matching library error."""
    code = "unknown"
    message = response.text[:500]

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        code = str(body.get("code") or code)
        message = str(body.get("msg") or body.get("message") or message)

    if code in _CANCELED_CODES:
        return Cancelled(
            f"Server reported {code}: {message}",
            code=code,
            status=response.status_code,
            method=method,
        )
    if code == "deadline_exceeded":
        return DeadlineExceeded(f"Server reported {code}: {message}", method=method)

    return RemoteError(
        f"{method} failed (HTTP {response.status_code}): {message}",
        code=code,
        status=response.status_code,
        method=method,
    )


class HttpTransport:
    """JSON-over-HTTP transport backed by a pooled ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: UserupConfig,
        *,
        base_url: Optional[str] = None,
        oauth: Optional[OAuthClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.base_url = (base_url or config.base_url).rstrip("/")

        if oauth is None and config.oauth_configured:
            oauth = OAuthClient(config=config)
        self.oauth = oauth

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=config.default_timeout,
            verify=config.verify_tls,
        )
        self._closed = False

        if self.base_url.startswith("http://"):
            logger.warning(
                "Using a plaintext transport to %s; set USERUP_USE_TLS=1 for TLS.",
                self.base_url,
            )

    @property
    def closed(self) -> bool:
        return self._closed

    async def call(
        self,
        service: str,
        method: str,
        payload: Dict[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        if self._closed:
            raise ConnectError("Transport is closed.", method=method)

        url = f"{self.base_url}{self.config.path_prefix}/{service}/{method}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.oauth is not None:
            token = await self.oauth.get_access_token()
            headers["Authorization"] = f"Bearer {token}"

        logger.debug("RPC %s/%s -> %s", service, method, url)

        try:
            response = await self._http.post(
                url,
                content=dumps(payload),
                headers=headers,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except TimeoutException as exc:
            raise DeadlineExceeded(
                f"Timed out calling {service}/{method} at '{url}'", method=method
            ) from exc
        except RequestError as exc:
            raise ConnectError(
                f"Error calling {service}/{method} at '{url}': {exc}", method=method
            ) from exc

        try:
            response.raise_for_status()
        except HTTPStatusError as exc:
            raise _error_from_response(response, method) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(
                f"{method} returned a non-JSON body: {response.text[:200]!r}",
                method=method,
            ) from exc

        if not isinstance(data, dict):
            raise DecodeError(
                f"{method} returned {type(data).__name__}, expected a JSON object.",
                method=method,
            )
        return data

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


@asynccontextmanager
async def open_transport(
    config: Optional[UserupConfig] = None,
    *,
    base_url: Optional[str] = None,
) -> AsyncIterator[HttpTransport]:
    """Open an :class:`HttpTransport` and close it on every exit path."""
    cfg = config or UserupConfig.from_env()
    transport = HttpTransport(cfg, base_url=base_url)
    try:
        yield transport
    finally:
        await transport.aclose()
