# Userup Python SDK
# File: models.py
# Version: v4

"""Domain models returned by the Userup client."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .identity import UserID


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC, matching the wire encoding."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class User:
    """A user as stored by the service."""

    id: Optional[UserID] = None
    username: str = ""

    # Free-form, structured-value bags.
    attributes: Dict[str, Any] = field(default_factory=dict)
    traits: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Event:
    """A CloudEvents-style envelope attached to a user and/or a session."""

    type: str = ""
    id: str = ""
    source: str = ""
    spec_version: str = ""
    data_content_type: str = ""
    data_schema: str = ""
    subject: str = ""

    # Raw payload bytes, usually JSON.
    data: bytes = b""

    timestamp: Optional[datetime] = None
    user_id: Optional[UserID] = None
    session_key: str = ""

    def __post_init__(self) -> None:
        self.timestamp = as_utc(self.timestamp)

    def json(self) -> Any:
        """Decode ``data`` as JSON."""
        if not self.data:
            return None
        return json.loads(self.data)


@dataclass
class Session:
    """An (initially anonymous) session and its opaque document."""

    key: str
    object: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[UserID] = None


@dataclass
class Integration:
    name: str
    id: int = 0
    schedule: str = ""
    exec_path: str = ""
    config_path: str = ""
    enabled: bool = False
    settings: Dict[str, Any] = field(default_factory=dict)


class JobStatus(str, Enum):
    UNKNOWN = "UNKNOWN"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class Job:
    """One run of an integration."""

    integration_name: str
    id: int = 0
    started: Optional[datetime] = None
    ended: Optional[datetime] = None
    status: JobStatus = JobStatus.UNKNOWN
    error: str = ""

    def __post_init__(self) -> None:
        self.started = as_utc(self.started)
        self.ended = as_utc(self.ended)
