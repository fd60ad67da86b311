# Userup Python SDK
# File: errors.py
# Version: v3

"""Typed errors raised by the Userup client library.

Every error carries an optional ``method`` (RPC method name) and ``key``
(the identity or key the call was about) so callers can tell which
operation failed without parsing messages.
"""

from __future__ import annotations

from typing import Any, Optional


class UserupError(Exception):
    """Base class for all library errors."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        key: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.method = method
        self.key = key

    def with_context(self, method: str, key: Any = None) -> "UserupError":
        """Attach operation context unless a lower layer already did."""
        if self.method is None:
            self.method = method
        if self.key is None and key is not None:
            self.key = key
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.method:
            parts.append(f"method={self.method}")
        if self.key is not None:
            parts.append(f"key={self.key}")
        if len(parts) == 1:
            return self.message
        return f"{parts[0]} ({', '.join(parts[1:])})"


class ConnectError(UserupError):
    """The transport could not reach the service or is misconfigured."""


class EncodingError(UserupError):
    """A value cannot be expressed in the structured-value encoding."""


class DecodeError(UserupError):
    """A response is missing expected fields or has the wrong shape."""


class ValidationError(UserupError):
    """The caller omitted a required field or passed an invalid one."""


class RemoteError(UserupError):
    """The service answered with an application-level failure."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "unknown",
        status: Optional[int] = None,
        method: Optional[str] = None,
        key: Any = None,
    ) -> None:
        super().__init__(message, method=method, key=key)
        self.code = code
        self.status = status

    def __str__(self) -> str:
        return f"[{self.code}] {super().__str__()}"


class DeadlineExceeded(UserupError):
    """The call did not complete before its deadline."""


class Cancelled(RemoteError):
    """The service reported the call as cancelled (code ``canceled``).

    This is an application error and not an ``asyncio.CancelledError``.
    Cancelling the calling task propagates the original
    ``asyncio.CancelledError`` unchanged.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "canceled",
        status: Optional[int] = None,
        method: Optional[str] = None,
        key: Any = None,
    ) -> None:
        super().__init__(message, code=code, status=status, method=method, key=key)
