# Userup Python SDK
# File: client.py
# Version: v7
"""High-level client for the Userup users service.

Implements:

- user CRUD (add_user / get_user / update_user / delete_user / find_users)
- single attribute and trait writes and deletes
- opaque ``Query`` endpoints (query_users / query_attributes / query_traits /
  query_events)
- time-bounded searches over traits and events
- session lifecycle (add_session / identify_session / get_sessions /
  get_session_events) and event logging

Every call builds its own request, goes through the transport once and
decodes the response. Nothing is cached and nothing is retried.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Sequence

from .config import UserupConfig
from .errors import DeadlineExceeded, DecodeError, UserupError, ValidationError
from .identity import UserID, require_identity
from .models import Event, Session, User
from .query import Query, UserSearchParams
from .rpc import USERS_SERVICE, Transport
from .sessions import SessionEventQuery, SessionQuery
from .values import decode_list, decode_struct, encode_value
from .wire import (
    event_from_wire,
    event_to_wire,
    session_from_wire,
    timestamp_to_wire,
    user_from_wire,
    user_to_wire,
)

logger = logging.getLogger(__name__)


def _require_key(key: str, what: str = "key") -> str:
    if not isinstance(key, str) or not key:
        raise ValidationError(f"`{what}` must be a non-empty string.")
    return key


def _time_range(begin: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
    """Validate explicit ``begin``/``end`` bounds for searches."""
    if not isinstance(begin, datetime) or not isinstance(end, datetime):
        raise ValidationError("Both `begin` and `end` datetimes are required for searches.")

    def _utc(value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if _utc(end) < _utc(begin):
        raise ValidationError("`end` must not be earlier than `begin`.")
    return {"begin": timestamp_to_wire(begin), "end": timestamp_to_wire(end)}


def _names(values: Optional[Sequence[str]], what: str) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise ValidationError(f"`{what}` must be a list of strings, not a single string.")
    return [str(v) for v in values]


def _response_object(resp: Dict[str, Any], name: str, method: str) -> Dict[str, Any]:
    value = resp.get(name)
    if not isinstance(value, dict):
        raise DecodeError(
            f"{method} response is missing required field '{name}'.", method=method
        )
    return value


def _response_list(resp: Dict[str, Any], name: str) -> List[Any]:
    # Empty repeated fields may be omitted by the server.
    return decode_list(resp.get(name) or [], name)


@dataclass
class ServiceClient:
    """Shared request plumbing for the Userup service clients."""

    config: UserupConfig
    transport: Transport = field(repr=False)

    service: ClassVar[str] = USERS_SERVICE

    async def _invoke(
        self,
        method: str,
        payload: Dict[str, Any],
        *,
        key: Any = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Run one unary call with deadline, cancellation and error context."""
        effective = timeout if timeout is not None else self.config.default_timeout
        call = self.transport.call(self.service, method, payload, timeout=effective)

        logger.debug("Invoking %s.%s (key=%s, timeout=%s)", self.service, method, key, effective)

        try:
            if effective is None:
                return await call
            return await asyncio.wait_for(call, effective)
        except UserupError as exc:
            exc.with_context(method, key)
            raise
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(
                f"{method} did not complete within {effective}s", method=method, key=key
            ) from exc
        except asyncio.CancelledError as exc:
            # Must stay a plain CancelledError for asyncio.timeout and TaskGroup.
            exc.add_note(f"while calling {self.service}.{method} (key={key})")
            logger.debug("Call %s.%s cancelled (key=%s)", self.service, method, key)
            raise

    def _decode(self, method: str, key: Any, decoder: Any, raw: Any) -> Any:
        try:
            return decoder(raw)
        except DecodeError as exc:
            exc.with_context(method, key)
            raise


@dataclass
class UserServiceClient(ServiceClient):
    """Client for the ``userapi.Users`` service."""

    service: ClassVar[str] = USERS_SERVICE

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def add_user(self, user: User, *, timeout: Optional[float] = None) -> User:
        """Create a user; the returned user carries server-assigned fields."""
        payload = user_to_wire(user)
        resp = await self._invoke("Create", payload, key=user.username, timeout=timeout)
        return self._decode("Create", user.username, user_from_wire, resp)

    async def get_user(self, user_id: UserID, *, timeout: Optional[float] = None) -> User:
        uid = require_identity(user_id)
        resp = await self._invoke("Get", {"id": uid.to_wire()}, key=str(uid), timeout=timeout)
        return self._decode("Get", str(uid), user_from_wire, resp)

    async def update_user(self, user: User, *, timeout: Optional[float] = None) -> User:
        uid = require_identity(user.id, "user.id")
        payload = user_to_wire(user)
        resp = await self._invoke("Update", payload, key=str(uid), timeout=timeout)
        return self._decode("Update", str(uid), user_from_wire, resp)

    async def delete_user(self, user_id: UserID, *, timeout: Optional[float] = None) -> None:
        uid = require_identity(user_id)
        await self._invoke("Delete", {"id": uid.to_wire()}, key=str(uid), timeout=timeout)

    async def find_users(
        self, params: UserSearchParams, *, timeout: Optional[float] = None
    ) -> List[User]:
        if not isinstance(params, UserSearchParams):
            raise ValidationError("find_users() expects UserSearchParams.")
        resp = await self._invoke("Find", params.to_wire(), timeout=timeout)
        return [self._decode("Find", None, user_from_wire, u) for u in _response_list(resp, "users")]

    # ------------------------------------------------------------------
    # Attributes & traits
    # ------------------------------------------------------------------

    async def add_attribute(
        self, user_id: UserID, key: str, value: Any, *, timeout: Optional[float] = None
    ) -> None:
        await self._write_entry("AddAttribute", user_id, key, value, timeout)

    async def delete_attribute(
        self, user_id: UserID, key: str, *, timeout: Optional[float] = None
    ) -> None:
        await self._delete_entry("DeleteAttribute", user_id, key, timeout)

    async def add_trait(
        self, user_id: UserID, key: str, value: Any, *, timeout: Optional[float] = None
    ) -> None:
        await self._write_entry("AddTrait", user_id, key, value, timeout)

    async def delete_trait(
        self, user_id: UserID, key: str, *, timeout: Optional[float] = None
    ) -> None:
        await self._delete_entry("DeleteTrait", user_id, key, timeout)

    async def _write_entry(
        self, method: str, user_id: UserID, key: str, value: Any, timeout: Optional[float]
    ) -> None:
        uid = require_identity(user_id)
        _require_key(key)
        payload = {
            "user_id": uid.to_wire(),
            "key": key,
            "value": encode_value(value, f"$.{key}"),
        }
        await self._invoke(method, payload, key=str(uid), timeout=timeout)

    async def _delete_entry(
        self, method: str, user_id: UserID, key: str, timeout: Optional[float]
    ) -> None:
        uid = require_identity(user_id)
        _require_key(key)
        payload = {"user_id": uid.to_wire(), "key": key}
        await self._invoke(method, payload, key=str(uid), timeout=timeout)

    # ------------------------------------------------------------------
    # Time-bounded searches
    # ------------------------------------------------------------------

    async def search_user_traits(
        self,
        user_id: UserID,
        names: Sequence[str],
        begin: datetime,
        end: datetime,
        *,
        timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Return trait records of one user whose names match within [begin, end]."""
        uid = require_identity(user_id)
        payload = {"user_id": uid.to_wire(), "names": _names(names, "names")}
        payload.update(_time_range(begin, end))
        resp = await self._invoke("SearchUserTraits", payload, key=str(uid), timeout=timeout)
        return [
            self._decode("SearchUserTraits", str(uid), lambda t: decode_struct(t, "traits"), t)
            for t in _response_list(resp, "traits")
        ]

    async def get_users_by_traits(
        self,
        names: Sequence[str],
        begin: datetime,
        end: datetime,
        *,
        timeout: Optional[float] = None,
    ) -> List[User]:
        payload: Dict[str, Any] = {"names": _names(names, "names")}
        payload.update(_time_range(begin, end))
        resp = await self._invoke("GetUsersByTraits", payload, timeout=timeout)
        return [
            self._decode("GetUsersByTraits", None, user_from_wire, u)
            for u in _response_list(resp, "users")
        ]

    async def get_users_by_events(
        self,
        types: Optional[Sequence[str]],
        sources: Optional[Sequence[str]],
        schemas: Optional[Sequence[str]],
        begin: datetime,
        end: datetime,
        *,
        timeout: Optional[float] = None,
    ) -> List[User]:
        """Users with events matching all given type/source/schema lists."""
        payload: Dict[str, Any] = {
            "types": _names(types, "types"),
            "sources": _names(sources, "sources"),
            "schemas": _names(schemas, "schemas"),
        }
        payload.update(_time_range(begin, end))
        resp = await self._invoke("GetUsersByEvents", payload, timeout=timeout)
        return [
            self._decode("GetUsersByEvents", None, user_from_wire, u)
            for u in _response_list(resp, "users")
        ]

    async def search_events(
        self,
        user_id: UserID,
        types: Sequence[str],
        begin: datetime,
        end: datetime,
        *,
        timeout: Optional[float] = None,
    ) -> List[Event]:
        uid = require_identity(user_id)
        payload = {"user_id": uid.to_wire(), "names": _names(types, "types")}
        payload.update(_time_range(begin, end))
        resp = await self._invoke("SearchEvents", payload, key=str(uid), timeout=timeout)
        return [
            self._decode("SearchEvents", str(uid), event_from_wire, e)
            for e in _response_list(resp, "events")
        ]

    # ------------------------------------------------------------------
    # Opaque queries
    # ------------------------------------------------------------------

    def _query_request(self, query: Query) -> Dict[str, Any]:
        if not isinstance(query, Query):
            raise ValidationError(f"Expected Query, got {type(query).__name__}.")
        raw = query.to_bytes(self.config.query_encoding)
        return {"query": base64.b64encode(raw).decode("ascii")}

    async def query_users(self, query: Query, *, timeout: Optional[float] = None) -> List[User]:
        resp = await self._invoke("QueryUsers", self._query_request(query), timeout=timeout)
        return [
            self._decode("QueryUsers", None, user_from_wire, u)
            for u in _response_list(resp, "users")
        ]

    async def query_attributes(
        self, query: Query, *, timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        resp = await self._invoke("QueryAttributes", self._query_request(query), timeout=timeout)
        return decode_struct(_response_object(resp, "attributes", "QueryAttributes"), "attributes")

    async def query_traits(self, query: Query, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        resp = await self._invoke("QueryTraits", self._query_request(query), timeout=timeout)
        return decode_struct(_response_object(resp, "traits", "QueryTraits"), "traits")

    async def query_events(self, query: Query, *, timeout: Optional[float] = None) -> List[Event]:
        resp = await self._invoke("QueryEvents", self._query_request(query), timeout=timeout)
        return [
            self._decode("QueryEvents", None, event_from_wire, e)
            for e in _response_list(resp, "events")
        ]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def add_session(
        self,
        session_key: str,
        document: Optional[Dict[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Store an anonymous session with an opaque document."""
        _require_key(session_key, "session_key")
        payload = {
            "session": {
                "key": session_key,
                "object": encode_value(document or {}, "$.object"),
            }
        }
        await self._invoke("AddSession", payload, key=session_key, timeout=timeout)

    async def identify_session(
        self, session_key: str, user_id: UserID, *, timeout: Optional[float] = None
    ) -> None:
        """Mark a session as belonging to a user."""
        _require_key(session_key, "session_key")
        uid = require_identity(user_id)
        payload = {"session_keys": [session_key], "user_id": uid.to_wire()}
        await self._invoke("IdentifySession", payload, key=session_key, timeout=timeout)

    async def get_sessions(
        self, query: Optional[SessionQuery] = None, *, timeout: Optional[float] = None
    ) -> List[Session]:
        q = query or SessionQuery()
        resp = await self._invoke("GetSessions", q.to_wire(), timeout=timeout)
        return [
            self._decode("GetSessions", None, session_from_wire, s)
            for s in _response_list(resp, "sessions")
        ]

    async def get_session_events(
        self, query: SessionEventQuery, *, timeout: Optional[float] = None
    ) -> List[Event]:
        resp = await self._invoke("GetSessionEvents", query.to_wire(), timeout=timeout)
        return [
            self._decode("GetSessionEvents", None, event_from_wire, e)
            for e in _response_list(resp, "events")
        ]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def log_event(self, event: Event, *, timeout: Optional[float] = None) -> Event:
        """Send a fully-populated event; see events.EventLogger for defaults."""
        _require_key(event.type, "type")
        resp = await self._invoke(
            "LogEvent", {"event": event_to_wire(event)}, key=event.id or None, timeout=timeout
        )
        return self._decode("LogEvent", event.id, event_from_wire, _response_object(resp, "event", "LogEvent"))

    async def log_session_event(self, event: Event, *, timeout: Optional[float] = None) -> None:
        _require_key(event.session_key, "session_key")
        _require_key(event.type, "type")
        await self._invoke(
            "LogSessionEvent",
            {"event": event_to_wire(event)},
            key=event.session_key,
            timeout=timeout,
        )
