# Userup Python SDK
# File: __init__.py
# Version: v1

"""Python client for the Userup user, session and event service."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .client import UserServiceClient
from .config import UserupConfig
from .errors import (
    Cancelled,
    ConnectError,
    DeadlineExceeded,
    DecodeError,
    EncodingError,
    RemoteError,
    UserupError,
    ValidationError,
)
from .events import EventLogger, EventLoggerConfig, SessionEventLogger
from .identity import UserID
from .integrations import IntegrationsClient
from .models import Event, Integration, Job, JobStatus, Session, User
from .query import Direction, Join, Operator, Order, Query, UserSearchParams, new_query
from .rpc import HttpTransport, Transport, open_transport
from .sessions import SessionEventQuery, SessionQuery, new_session_id

__all__ = [
    "__version__",
    "Cancelled",
    "ConnectError",
    "DeadlineExceeded",
    "DecodeError",
    "Direction",
    "EncodingError",
    "Event",
    "EventLogger",
    "EventLoggerConfig",
    "HttpTransport",
    "Integration",
    "IntegrationsClient",
    "Job",
    "JobStatus",
    "Join",
    "Operator",
    "Order",
    "Query",
    "RemoteError",
    "Session",
    "SessionEventLogger",
    "SessionEventQuery",
    "SessionQuery",
    "Transport",
    "User",
    "UserID",
    "UserSearchParams",
    "UserServiceClient",
    "UserupConfig",
    "UserupError",
    "ValidationError",
    "new_query",
    "new_session_id",
    "open_transport",
]


def _resolve_version() -> str:
    """Resolve installed distribution version, falling back when run from source."""
    try:
        return version("userup-sdk")
    except PackageNotFoundError:
        return "0.1.0"


__version__ = _resolve_version()
