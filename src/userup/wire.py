# Userup Python SDK
# File: wire.py
# Version: v4

"""Mapping between domain models and wire messages.

Forward mappers (``*_to_wire``) always emit every field. Reverse mappers
(``*_from_wire``) ignore unknown keys and raise :class:`DecodeError`
naming the first required field that is missing or malformed, so a bad
response never turns into a half-populated model.
"""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Type, Union

from .errors import DecodeError, EncodingError
from .identity import identity_from_wire, identity_to_wire
from .models import Event, Integration, Job, JobStatus, Session, User
from .values import decode_struct, encode_struct

_FRACTION_RE = re.compile(r"\.(\d+)")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require(
    raw: Dict[str, Any],
    name: str,
    entity: str,
    types: Union[Type, Tuple[Type, ...]],
) -> Any:
    if name not in raw or raw[name] is None:
        raise DecodeError(f"{entity} is missing required field '{name}'.")
    value = raw[name]
    if isinstance(value, bool) and bool not in (types if isinstance(types, tuple) else (types,)):
        raise DecodeError(f"{entity} field '{name}' has unexpected type bool.")
    if not isinstance(value, types):
        raise DecodeError(
            f"{entity} field '{name}' has unexpected type {type(value).__name__}."
        )
    return value


def _optional(
    raw: Dict[str, Any],
    name: str,
    entity: str,
    types: Union[Type, Tuple[Type, ...]],
    default: Any,
) -> Any:
    if raw.get(name) is None:
        return default
    return _require(raw, name, entity, types)


def _as_object(raw: Any, entity: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise DecodeError(f"Expected {entity} object, got {type(raw).__name__}.")
    return raw


# ---------------------------------------------------------------------------
# Timestamps & bytes
# ---------------------------------------------------------------------------


def timestamp_to_wire(value: Optional[datetime]) -> Optional[str]:
    """RFC 3339 in UTC. Naive datetimes are taken to be UTC."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise EncodingError(f"Expected datetime, got {type(value).__name__}.")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def timestamp_from_wire(raw: Any, field: str) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise DecodeError(f"Expected RFC 3339 string for '{field}', got {type(raw).__name__}.")

    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Servers may send nanoseconds; datetime holds microseconds.
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise DecodeError(f"Invalid timestamp {raw!r} in '{field}'.") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def bytes_to_wire(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def bytes_from_wire(raw: Any, field: str) -> bytes:
    if raw is None or raw == "":
        return b""
    if not isinstance(raw, str):
        raise DecodeError(f"Expected base64 string for '{field}', got {type(raw).__name__}.")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload in '{field}'.") from exc


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def user_to_wire(user: User) -> Dict[str, Any]:
    return {
        "id": identity_to_wire(user.id),
        "username": user.username,
        "attributes": encode_struct(user.attributes, "$.attributes"),
        "traits": encode_struct(user.traits, "$.traits"),
    }


def user_from_wire(raw: Any) -> User:
    data = _as_object(raw, "user")
    return User(
        id=identity_from_wire(_require(data, "id", "User", dict), "id"),
        username=_require(data, "username", "User", str),
        attributes=decode_struct(_require(data, "attributes", "User", dict), "attributes"),
        traits=decode_struct(_require(data, "traits", "User", dict), "traits"),
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def event_to_wire(event: Event) -> Dict[str, Any]:
    return {
        "id": event.id,
        "source": event.source,
        "type": event.type,
        "specversion": event.spec_version,
        "timestamp": timestamp_to_wire(event.timestamp),
        "datacontenttype": event.data_content_type,
        "dataschema": event.data_schema,
        "subject": event.subject,
        "data": bytes_to_wire(event.data),
        "user_id": identity_to_wire(event.user_id),
        "session_key": event.session_key,
    }


def event_from_wire(raw: Any) -> Event:
    data = _as_object(raw, "event")
    return Event(
        type=_require(data, "type", "Event", str),
        id=_optional(data, "id", "Event", str, ""),
        source=_optional(data, "source", "Event", str, ""),
        spec_version=_optional(data, "specversion", "Event", str, ""),
        data_content_type=_optional(data, "datacontenttype", "Event", str, ""),
        data_schema=_optional(data, "dataschema", "Event", str, ""),
        subject=_optional(data, "subject", "Event", str, ""),
        data=bytes_from_wire(data.get("data"), "data"),
        timestamp=timestamp_from_wire(data.get("timestamp"), "timestamp"),
        user_id=identity_from_wire(data.get("user_id"), "user_id"),
        session_key=_optional(data, "session_key", "Event", str, ""),
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def session_to_wire(session: Session) -> Dict[str, Any]:
    return {
        "key": session.key,
        "object": encode_struct(session.object, "$.object"),
        "user_id": identity_to_wire(session.user_id),
    }


def session_from_wire(raw: Any) -> Session:
    data = _as_object(raw, "session")
    return Session(
        key=_require(data, "key", "Session", str),
        object=decode_struct(_require(data, "object", "Session", dict), "object"),
        user_id=identity_from_wire(data.get("user_id"), "user_id"),
    )


# ---------------------------------------------------------------------------
# Integrations & jobs
# ---------------------------------------------------------------------------


def integration_to_wire(integration: Integration) -> Dict[str, Any]:
    return {
        "id": integration.id,
        "name": integration.name,
        "schedule": integration.schedule,
        "exec_path": integration.exec_path,
        "config_path": integration.config_path,
        "enabled": integration.enabled,
        "settings": encode_struct(integration.settings, "$.settings"),
    }


def integration_from_wire(raw: Any) -> Integration:
    data = _as_object(raw, "integration")
    return Integration(
        name=_require(data, "name", "Integration", str),
        id=_optional(data, "id", "Integration", int, 0),
        schedule=_optional(data, "schedule", "Integration", str, ""),
        exec_path=_optional(data, "exec_path", "Integration", str, ""),
        config_path=_optional(data, "config_path", "Integration", str, ""),
        enabled=_optional(data, "enabled", "Integration", bool, False),
        settings=decode_struct(data.get("settings") or {}, "settings"),
    )


def job_to_wire(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "integration_name": job.integration_name,
        "started": timestamp_to_wire(job.started),
        "ended": timestamp_to_wire(job.ended),
        "status": JobStatus(job.status).value,
        "error": job.error,
    }


def job_from_wire(raw: Any) -> Job:
    data = _as_object(raw, "job")
    status_raw = _require(data, "status", "Job", str)
    try:
        status = JobStatus(status_raw)
    except ValueError as exc:
        raise DecodeError(f"Job field 'status' has unknown value {status_raw!r}.") from exc

    return Job(
        integration_name=_require(data, "integration_name", "Job", str),
        id=_optional(data, "id", "Job", int, 0),
        started=timestamp_from_wire(data.get("started"), "started"),
        ended=timestamp_from_wire(data.get("ended"), "ended"),
        status=status,
        error=_optional(data, "error", "Job", str, ""),
    )
