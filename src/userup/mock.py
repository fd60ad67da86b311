# Userup Python SDK
# File: mock.py
# Version: v6
#
# In-memory stand-in for the Userup services. It speaks the same wire
# format as HttpTransport (JSON objects in, JSON objects out), so every
# client method runs its real encode/decode path against it.

from __future__ import annotations

import base64
import binascii
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import DecodeError, RemoteError
from .query import Operator, Query, UserSearchParams
from .rpc import INTEGRATIONS_SERVICE, USERS_SERVICE
from .values import dumps, loads
from .wire import timestamp_from_wire, timestamp_to_wire

logger = logging.getLogger(__name__)

_USER_GROUPS = {"user", "users"}
_ATTRIBUTE_GROUPS = {"attribute", "attributes"}
_TRAIT_GROUPS = {"trait", "traits"}
_EVENT_GROUPS = {"event", "events"}


def _not_found(method: str, what: str) -> RemoteError:
    return RemoteError(f"{what} not found", code="not_found", status=404, method=method)


def _already_exists(method: str, what: str) -> RemoteError:
    return RemoteError(f"{what} already exists", code="already_exists", status=409, method=method)


def _invalid(method: str, message: str) -> RemoteError:
    return RemoteError(message, code="invalid_argument", status=400, method=method)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _compare(operator: Operator, actual: Any, expected: Any) -> bool:
    if operator is Operator.EQUALS:
        return actual == expected
    if operator is Operator.NOT_EQUALS:
        return actual != expected
    if operator is Operator.CONTAINS:
        if isinstance(actual, (str, list)):
            return expected in actual
        return False
    try:
        if operator is Operator.GREATER_THAN:
            return actual > expected
        if operator is Operator.GREATER_THAN_OR_EQUAL:
            return actual >= expected
        if operator is Operator.LESS_THAN:
            return actual < expected
        if operator is Operator.LESS_THAN_OR_EQUAL:
            return actual <= expected
    except TypeError:
        return False
    return False


def _in_range(ts: Optional[datetime], begin: Optional[datetime], end: Optional[datetime]) -> bool:
    if ts is None:
        return False
    if begin is not None and ts < begin:
        return False
    if end is not None and ts > end:
        return False
    return True


def _page(items: List[Any], payload: Dict[str, Any]) -> List[Any]:
    offset = int(payload.get("offset") or 0)
    limit = int(payload.get("limit") or 0)
    items = items[offset:]
    return items[:limit] if limit else items


def _sort_key(value: Any) -> Tuple[int, Any, str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    if value is None:
        return (2, 0, "")
    return (1, 0, str(value))


def _sort(items: List[Dict[str, Any]], order_by: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Stable sorts applied last-key-first give first-key precedence.
    for order in reversed(list(order_by)):
        name = order.get("field")
        items = sorted(
            items,
            key=lambda item: _sort_key(item.get(name)),
            reverse=order.get("direction") == "DESC",
        )
    return items


class MockUserService:
    """In-memory implementation of ``userapi.Users`` and ``userapi.Integrations``.

    Satisfies the :class:`~userup.rpc.Transport` protocol. Numeric user ids
    are assigned from 1. ``seed=True`` preloads a small demo data set.
    """

    def __init__(self, seed: bool = False) -> None:
        self._ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._job_ids = itertools.count(1)
        self._integration_ids = itertools.count(1)

        self._users: Dict[int, Dict[str, Any]] = {}
        self._aliases: Dict[Tuple[str, Any], int] = {}
        self._trait_log: List[Dict[str, Any]] = []
        self._events: List[Dict[str, Any]] = []
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._integrations: Dict[str, Dict[str, Any]] = {}
        self._jobs: List[Dict[str, Any]] = []

        self.calls: List[Tuple[str, str]] = []

        self._handlers: Dict[Tuple[str, str], Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            (USERS_SERVICE, "Create"): self._create,
            (USERS_SERVICE, "Get"): self._get,
            (USERS_SERVICE, "Update"): self._update,
            (USERS_SERVICE, "Delete"): self._delete,
            (USERS_SERVICE, "Find"): self._find,
            (USERS_SERVICE, "AddAttribute"): self._add_attribute,
            (USERS_SERVICE, "DeleteAttribute"): self._delete_attribute,
            (USERS_SERVICE, "AddTrait"): self._add_trait,
            (USERS_SERVICE, "DeleteTrait"): self._delete_trait,
            (USERS_SERVICE, "SearchUserTraits"): self._search_user_traits,
            (USERS_SERVICE, "GetUsersByTraits"): self._users_by_traits,
            (USERS_SERVICE, "GetUsersByEvents"): self._users_by_events,
            (USERS_SERVICE, "SearchEvents"): self._search_events,
            (USERS_SERVICE, "QueryUsers"): self._query_users,
            (USERS_SERVICE, "QueryAttributes"): self._query_attributes,
            (USERS_SERVICE, "QueryTraits"): self._query_traits,
            (USERS_SERVICE, "QueryEvents"): self._query_events,
            (USERS_SERVICE, "AddSession"): self._add_session,
            (USERS_SERVICE, "IdentifySession"): self._identify_session,
            (USERS_SERVICE, "GetSessions"): self._get_sessions,
            (USERS_SERVICE, "GetSessionEvents"): self._get_session_events,
            (USERS_SERVICE, "LogEvent"): self._log_event,
            (USERS_SERVICE, "LogSessionEvent"): self._log_session_event,
            (INTEGRATIONS_SERVICE, "AddIntegration"): self._add_integration,
            (INTEGRATIONS_SERVICE, "GetIntegration"): self._get_integration,
            (INTEGRATIONS_SERVICE, "UpdateIntegration"): self._update_integration,
            (INTEGRATIONS_SERVICE, "RemoveIntegration"): self._remove_integration,
            (INTEGRATIONS_SERVICE, "ListIntegrations"): self._list_integrations,
            (INTEGRATIONS_SERVICE, "JobUpdate"): self._job_update,
            (INTEGRATIONS_SERVICE, "GetJobHistory"): self._job_history,
        }

        if seed:
            self._seed()

    # ------------------------------------------------------------------
    # Transport protocol
    # ------------------------------------------------------------------

    async def call(
        self,
        service: str,
        method: str,
        payload: Dict[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        handler = self._handlers.get((service, method))
        if handler is None:
            raise RemoteError(
                f"{service}/{method} is not implemented",
                code="unimplemented",
                status=501,
                method=method,
            )

        self.calls.append((service, method))
        logger.debug("Mock RPC %s/%s", service, method)

        # Round-trip through JSON so callers get the same copies a real
        # server would produce.
        request = loads(dumps(payload), "request")
        response = handler(request)
        return loads(dumps(response), "response")

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> "MockUserService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Identity helpers
    # ------------------------------------------------------------------

    def _resolve(self, method: str, raw: Any) -> int:
        if not isinstance(raw, dict) or not raw:
            raise _invalid(method, "user id is required")
        if raw.get("id") is not None:
            uid = raw["id"]
        elif raw.get("uuid"):
            uid = self._aliases.get(("uuid", raw["uuid"]))
        else:
            uid = self._aliases.get(("external_id", raw.get("external_id")))
        if uid not in self._users:
            raise _not_found(method, "user")
        return uid

    def _user_wire(self, uid: int) -> Dict[str, Any]:
        stored = self._users[uid]
        return {
            "id": {"id": uid},
            "username": stored["username"],
            "attributes": stored["attributes"],
            "traits": stored["traits"],
        }

    def _matching_user_ids(self, raw: Any) -> List[int]:
        if not isinstance(raw, dict) or not raw:
            return list(self._users)
        try:
            return [self._resolve("", raw)]
        except RemoteError:
            return []

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        username = payload.get("username") or ""
        if not username:
            raise _invalid("Create", "username is required")
        if any(u["username"] == username for u in self._users.values()):
            raise _already_exists("Create", f"user {username!r}")

        uid = next(self._ids)
        self._users[uid] = {
            "username": username,
            "attributes": dict(payload.get("attributes") or {}),
            "traits": dict(payload.get("traits") or {}),
        }
        for alias in ("uuid", "external_id"):
            value = (payload.get("id") or {}).get(alias)
            if value:
                self._aliases[(alias, value)] = uid
        for key, value in self._users[uid]["traits"].items():
            self._record_trait(uid, key, value)
        return self._user_wire(uid)

    def _get(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._user_wire(self._resolve("Get", payload.get("id")))

    def _update(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("Update", payload.get("id"))
        stored = self._users[uid]
        if payload.get("username"):
            stored["username"] = payload["username"]
        stored["attributes"] = dict(payload.get("attributes") or {})
        stored["traits"] = dict(payload.get("traits") or {})
        return self._user_wire(uid)

    def _delete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("Delete", payload.get("id"))
        del self._users[uid]
        self._aliases = {k: v for k, v in self._aliases.items() if v != uid}
        return {}

    def _find(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            params = UserSearchParams.from_wire(payload)
        except DecodeError as exc:
            raise _invalid("Find", exc.message) from exc

        wanted = None
        if params.user_id is not None:
            wanted = self._matching_user_ids(params.user_id.to_wire())

        users = []
        for uid, stored in self._users.items():
            if wanted is not None and uid not in wanted:
                continue
            if params.username and stored["username"] != params.username:
                continue
            if not all(
                f.name in stored["attributes"]
                and _compare(f.operator, stored["attributes"][f.name], f.value)
                for f in params.attribute_filters
            ):
                continue
            if not all(
                f.name in stored["traits"]
                and _compare(f.operator, stored["traits"][f.name], f.value)
                for f in params.trait_filters
            ):
                continue
            users.append(self._user_wire(uid))
        return {"users": users}

    # ------------------------------------------------------------------
    # Attributes & traits
    # ------------------------------------------------------------------

    def _record_trait(self, uid: int, key: str, value: Any) -> None:
        self._trait_log.append(
            {"user_id": uid, "name": key, "value": value, "timestamp": _now()}
        )

    def _add_attribute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("AddAttribute", payload.get("user_id"))
        self._users[uid]["attributes"][payload["key"]] = payload.get("value")
        return {}

    def _delete_attribute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("DeleteAttribute", payload.get("user_id"))
        if self._users[uid]["attributes"].pop(payload["key"], None) is None:
            raise _not_found("DeleteAttribute", f"attribute {payload['key']!r}")
        return {}

    def _add_trait(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("AddTrait", payload.get("user_id"))
        self._users[uid]["traits"][payload["key"]] = payload.get("value")
        self._record_trait(uid, payload["key"], payload.get("value"))
        return {}

    def _delete_trait(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("DeleteTrait", payload.get("user_id"))
        if self._users[uid]["traits"].pop(payload["key"], None) is None:
            raise _not_found("DeleteTrait", f"trait {payload['key']!r}")
        return {}

    def _bounds(self, payload: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[datetime]]:
        return (
            timestamp_from_wire(payload.get("begin"), "begin"),
            timestamp_from_wire(payload.get("end"), "end"),
        )

    def _traits_in_range(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        begin, end = self._bounds(payload)
        names = set(payload.get("names") or [])
        return [
            rec
            for rec in self._trait_log
            if (not names or rec["name"] in names) and _in_range(rec["timestamp"], begin, end)
        ]

    def _search_user_traits(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("SearchUserTraits", payload.get("user_id"))
        traits = [
            {
                "name": rec["name"],
                "value": rec["value"],
                "timestamp": timestamp_to_wire(rec["timestamp"]),
            }
            for rec in self._traits_in_range(payload)
            if rec["user_id"] == uid
        ]
        return {"traits": traits}

    def _users_by_traits(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uids = sorted({rec["user_id"] for rec in self._traits_in_range(payload)})
        return {"users": [self._user_wire(uid) for uid in uids if uid in self._users]}

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _events_in_range(
        self, payload: Dict[str, Any], **lists: Iterable[str]
    ) -> List[Dict[str, Any]]:
        begin, end = self._bounds(payload)
        selected = []
        for event in self._events:
            ts = timestamp_from_wire(event.get("timestamp"), "timestamp")
            if not _in_range(ts, begin, end):
                continue
            if all(not values or event.get(name) in values for name, values in lists.items()):
                selected.append(event)
        return selected

    def _users_by_events(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        events = self._events_in_range(
            payload,
            type=payload.get("types") or [],
            source=payload.get("sources") or [],
            dataschema=payload.get("schemas") or [],
        )
        uids = sorted({e["user_id"]["id"] for e in events if (e.get("user_id") or {}).get("id")})
        return {"users": [self._user_wire(uid) for uid in uids if uid in self._users]}

    def _search_events(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("SearchEvents", payload.get("user_id"))
        events = self._events_in_range(payload, type=payload.get("names") or [])
        return {"events": [e for e in events if (e.get("user_id") or {}).get("id") == uid]}

    def _store_event(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = dict(payload.get("event") or {})
        if not event.get("type"):
            raise _invalid(method, "event type is required")
        if not event.get("id"):
            event["id"] = f"evt-{next(self._event_ids)}"
        if not event.get("timestamp"):
            event["timestamp"] = timestamp_to_wire(_now())
        self._events.append(event)
        return event

    def _log_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = payload.get("event") or {}
        if event.get("user_id"):
            resolved = self._resolve("LogEvent", event["user_id"])
            payload = {"event": dict(event, user_id={"id": resolved})}
        return {"event": self._store_event("LogEvent", payload)}

    def _log_session_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        key = (payload.get("event") or {}).get("session_key")
        if key not in self._sessions:
            raise _not_found("LogSessionEvent", f"session {key!r}")
        self._store_event("LogSessionEvent", payload)
        return {}

    # ------------------------------------------------------------------
    # Opaque queries
    # ------------------------------------------------------------------

    def _decode_query(self, method: str, payload: Dict[str, Any]) -> Query:
        try:
            raw = base64.b64decode(payload.get("query") or "", validate=True)
            return Query.from_bytes(raw)
        except (binascii.Error, ValueError, DecodeError) as exc:
            raise _invalid(method, f"malformed query: {exc}") from exc

    def _matches(
        self, method: str, uid: int, groups: Mapping[str, Mapping[str, Any]]
    ) -> bool:
        stored = self._users[uid]
        top = {"id": uid, "username": stored["username"]}
        for group, condition in groups.items():
            if group in _USER_GROUPS:
                source = top
            elif group in _ATTRIBUTE_GROUPS:
                source = stored["attributes"]
            elif group in _TRAIT_GROUPS:
                source = stored["traits"]
            else:
                raise _invalid(method, f"unknown filter group {group!r}")
            for name, value in condition.items():
                if name not in source or source[name] != value:
                    return False
        return True

    def _query_user_ids(self, method: str, query: Query) -> List[int]:
        selected = []
        for uid in self._users:
            if not self._matches(method, uid, query.filter):
                continue
            if not all(self._matches(method, uid, join.filter) for join in query.joins):
                continue
            selected.append(uid)

        rows = [dict(self._user_wire(uid), _uid=uid, id=uid) for uid in selected]
        rows = _sort(rows, [o.to_wire() for o in query.order_by])
        return [row["_uid"] for row in _page(rows, {"limit": query.limit, "offset": query.offset})]

    def _query_users(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        query = self._decode_query("QueryUsers", payload)
        users = []
        for uid in self._query_user_ids("QueryUsers", query):
            wire = self._user_wire(uid)
            if query.select:
                wire["attributes"] = {
                    k: v for k, v in wire["attributes"].items() if k in query.select
                }
                wire["traits"] = {k: v for k, v in wire["traits"].items() if k in query.select}
            users.append(wire)
        return {"users": users}

    def _query_bag(self, method: str, bag: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        query = self._decode_query(method, payload)
        result: Dict[str, Any] = {}
        for uid in self._query_user_ids(method, query):
            values = self._users[uid][bag]
            if query.select:
                values = {k: v for k, v in values.items() if k in query.select}
            result[str(uid)] = values
        return {bag: result}

    def _query_attributes(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._query_bag("QueryAttributes", "attributes", payload)

    def _query_traits(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._query_bag("QueryTraits", "traits", payload)

    def _query_events(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        query = self._decode_query("QueryEvents", payload)
        events = []
        for event in self._events:
            ok = True
            for group, condition in query.filter.items():
                if group not in _EVENT_GROUPS:
                    raise _invalid("QueryEvents", f"unknown filter group {group!r}")
                ok = ok and all(event.get(k) == v for k, v in condition.items())
            if ok:
                events.append(event)
        events = _sort(events, [o.to_wire() for o in query.order_by])
        return {"events": _page(events, {"limit": query.limit, "offset": query.offset})}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _add_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = payload.get("session") or {}
        key = session.get("key")
        if not key:
            raise _invalid("AddSession", "session key is required")
        if key in self._sessions:
            raise _already_exists("AddSession", f"session {key!r}")
        self._sessions[key] = {
            "key": key,
            "object": session.get("object") or {},
            "user_id": {},
            "created": _now(),
        }
        return {}

    def _identify_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        uid = self._resolve("IdentifySession", payload.get("user_id"))
        for key in payload.get("session_keys") or []:
            if key not in self._sessions:
                raise _not_found("IdentifySession", f"session {key!r}")
            self._sessions[key]["user_id"] = {"id": uid}
        return {}

    def _get_sessions(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        begin, end = self._bounds(payload)
        keys = set(payload.get("session_keys") or [])
        owner = payload.get("user_id") or {}
        wanted = self._matching_user_ids(owner) if owner else None

        rows = []
        for session in self._sessions.values():
            if keys and session["key"] not in keys:
                continue
            if wanted is not None and session["user_id"].get("id") not in wanted:
                continue
            if (begin or end) and not _in_range(session["created"], begin, end):
                continue
            rows.append({k: session[k] for k in ("key", "object", "user_id")})

        rows = _sort(rows, payload.get("order_by") or [])
        return {"sessions": _page(rows, payload)}

    def _get_session_events(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        begin, end = self._bounds(payload)
        keys = set(payload.get("session_keys") or [])
        rows = []
        for event in self._events:
            if not event.get("session_key"):
                continue
            if keys and event["session_key"] not in keys:
                continue
            ts = timestamp_from_wire(event.get("timestamp"), "timestamp")
            if (begin or end) and not _in_range(ts, begin, end):
                continue
            rows.append(event)
        rows = _sort(rows, payload.get("order_by") or [])
        return {"events": _page(rows, payload)}

    # ------------------------------------------------------------------
    # Integrations & jobs
    # ------------------------------------------------------------------

    def _integration(self, method: str, name: Any) -> Dict[str, Any]:
        if name not in self._integrations:
            raise _not_found(method, f"integration {name!r}")
        return self._integrations[name]

    def _add_integration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        integration = dict(payload.get("integration") or {})
        name = integration.get("name")
        if not name:
            raise _invalid("AddIntegration", "integration name is required")
        if name in self._integrations:
            raise _already_exists("AddIntegration", f"integration {name!r}")
        integration["id"] = next(self._integration_ids)
        self._integrations[name] = integration
        return {"integration": integration}

    def _get_integration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"integration": self._integration("GetIntegration", payload.get("name"))}

    def _update_integration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        integration = dict(payload.get("integration") or {})
        current = self._integration("UpdateIntegration", integration.get("name"))
        integration["id"] = current["id"]
        self._integrations[integration["name"]] = integration
        return {"integration": integration}

    def _remove_integration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._integration("RemoveIntegration", payload.get("name"))
        del self._integrations[payload["name"]]
        return {}

    def _list_integrations(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"integrations": [self._integrations[name] for name in sorted(self._integrations)]}

    def _job_update(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        job = dict(payload.get("job") or {})
        self._integration("JobUpdate", job.get("integration_name"))
        if job.get("id"):
            self._jobs = [j for j in self._jobs if j["id"] != job["id"]]
        else:
            job["id"] = next(self._job_ids)
        self._jobs.append(job)
        return {}

    def _job_history(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        name = payload.get("integration_name")
        self._integration("GetJobHistory", name)
        return {"job_history": [j for j in self._jobs if j["integration_name"] == name]}

    # ------------------------------------------------------------------
    # Demo data
    # ------------------------------------------------------------------

    def _seed(self) -> None:
        self._create(
            {
                "username": "alice",
                "attributes": {"user_type": "admin", "ranking": 5},
                "traits": {"plan": "pro"},
            }
        )
        self._create(
            {
                "username": "bob",
                "attributes": {"user_type": "member", "ranking": 2},
                "traits": {"plan": "free"},
            }
        )
        self._add_integration(
            {
                "integration": {
                    "name": "crm-sync",
                    "schedule": "@hourly",
                    "exec_path": "/opt/integrations/crm-sync",
                    "enabled": True,
                    "settings": {"batch_size": 100},
                }
            }
        )


_SHARED: Optional[MockUserService] = None


def shared_mock_service() -> MockUserService:
    """Process-wide seeded mock used by mock mode."""
    global _SHARED
    if _SHARED is None:
        _SHARED = MockUserService(seed=True)
    return _SHARED


def reset_shared_mock_service() -> None:
    global _SHARED
    _SHARED = None
