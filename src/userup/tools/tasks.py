# Userup Python SDK
# File: tools/tasks.py
# Version: v5
#
# NOTE: This module is the single place where we define the operations
# that are exposed as MCP tools. The MCP transport simply calls
# `register_tools(server)` to wire these up.

from __future__ import annotations

import base64
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from ..client import UserServiceClient
from ..config import UserupConfig
from ..errors import UserupError
from ..events import EventLoggerConfig, SessionEventLogger
from ..identity import UserID
from ..integrations import IntegrationsClient
from ..mock import shared_mock_service
from ..models import Event, Integration, Session, User
from ..query import Direction, Query, UserSearchParams
from ..rpc import HttpTransport
from ..sessions import SessionEventQuery, SessionQuery, new_session_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers (client construction, output shapes)
# ---------------------------------------------------------------------------


def _make_error(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Small, LLM-friendly error shape used by diagnostics."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return err


def _make_client(cfg: Optional[UserupConfig] = None) -> UserServiceClient:
    """Create a UserServiceClient from environment variables.

    If USERUP_MOCK_MODE is truthy, the client talks to the process-wide
    in-memory mock service instead of the network.

    Note: Callers should prefer invoking this with *no arguments* to keep
    unit tests monkeypatch-friendly (tests replace _make_client with a
    no-arg lambda).
    """
    cfg = cfg or UserupConfig.from_env()
    if cfg.mock_mode:
        return UserServiceClient(config=cfg, transport=shared_mock_service())
    return UserServiceClient(config=cfg, transport=HttpTransport(cfg))


def _make_integrations_client(cfg: Optional[UserupConfig] = None) -> IntegrationsClient:
    cfg = cfg or UserupConfig.from_env()
    if cfg.mock_mode:
        return IntegrationsClient(config=cfg, transport=shared_mock_service())
    return IntegrationsClient(
        config=cfg, transport=HttpTransport(cfg, base_url=cfg.integrations_base_url)
    )


@asynccontextmanager
async def _users() -> AsyncIterator[UserServiceClient]:
    # Tasks own the transport they create; close it on every exit path.
    client = _make_client()
    try:
        yield client
    finally:
        await client.transport.aclose()


@asynccontextmanager
async def _integrations() -> AsyncIterator[IntegrationsClient]:
    client = _make_integrations_client()
    try:
        yield client
    finally:
        await client.transport.aclose()


def _user_id_out(user_id: Optional[UserID]) -> Optional[str]:
    return str(user_id) if user_id is not None else None


def _user_out(user: User) -> Dict[str, Any]:
    return {
        "id": _user_id_out(user.id),
        "username": user.username,
        "attributes": user.attributes,
        "traits": user.traits,
    }


def _session_out(session: Session) -> Dict[str, Any]:
    return {
        "key": session.key,
        "object": session.object,
        "user_id": _user_id_out(session.user_id),
    }


def _event_out(event: Event) -> Dict[str, Any]:
    try:
        data: Any = event.json()
    except ValueError:
        data = base64.b64encode(event.data).decode("ascii")

    return {
        "id": event.id,
        "type": event.type,
        "source": event.source,
        "subject": event.subject,
        "schema": event.data_schema,
        "timestamp": event.timestamp.isoformat() if event.timestamp else None,
        "user_id": _user_id_out(event.user_id),
        "session_key": event.session_key or None,
        "data": data,
    }


def _integration_out(integration: Integration) -> Dict[str, Any]:
    return {
        "id": integration.id,
        "name": integration.name,
        "schedule": integration.schedule,
        "enabled": integration.enabled,
        "exec_path": integration.exec_path,
        "settings": integration.settings,
    }


def _parse_order(spec: str) -> tuple[str, Direction]:
    """``"username"`` or ``"username desc"``."""
    parts = spec.split()
    if len(parts) == 1:
        return parts[0], Direction.ASC
    return parts[0], Direction.parse(parts[-1])


# ---------------------------------------------------------------------------
# Library-style tasks (used by MCP tools and tests)
# ---------------------------------------------------------------------------


async def ping() -> Dict[str, Any]:
    async with _users() as client:
        await client.get_sessions(SessionQuery(limit=1))
    return {"ok": True}


async def get_user(user_id: str) -> Dict[str, Any]:
    async with _users() as client:
        user = await client.get_user(UserID.parse(user_id))
    return {"user": _user_out(user)}


async def add_user(
    username: str,
    attributes: Optional[Dict[str, Any]] = None,
    traits: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    async with _users() as client:
        user = await client.add_user(
            User(username=username, attributes=attributes or {}, traits=traits or {})
        )
    logger.info("Created user %s (%s)", user.username, user.id)
    return {"user": _user_out(user)}


async def add_attribute(user_id: str, key: str, value: Any) -> Dict[str, Any]:
    uid = UserID.parse(user_id)
    async with _users() as client:
        await client.add_attribute(uid, key, value)
    return {"ok": True, "user_id": str(uid), "key": key}


async def query_users(
    filters: Optional[Dict[str, Dict[str, Any]]] = None,
    select: Optional[List[str]] = None,
    order_by: Optional[List[str]] = None,
    limit: int = 0,
    offset: int = 0,
    joins: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    query = Query(filter=filters or {}, limit=limit, offset=offset)
    if select:
        query = query.with_select(*select)
    for spec in order_by or []:
        query = query.with_order(*_parse_order(spec))
    for join in joins or []:
        query = query.with_join(join["table"], join.get("on", ""), join.get("filter"))

    async with _users() as client:
        users = await client.query_users(query)

    return {
        "users": [_user_out(u) for u in users],
        "meta": {"count": len(users), "query": query.serialize(client.config.query_encoding)},
    }


async def find_users(
    username: Optional[str] = None,
    attributes: Optional[Dict[str, Any]] = None,
    traits: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    params = UserSearchParams(username=username or "")
    for name, value in (attributes or {}).items():
        params = params.with_attribute(name, value)
    for name, value in (traits or {}).items():
        params = params.with_trait(name, value)

    async with _users() as client:
        users = await client.find_users(params)
    return {"users": [_user_out(u) for u in users]}


async def list_sessions(
    user_id: Optional[str] = None,
    keys: Optional[List[str]] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    query = SessionQuery(
        user_id=UserID.parse(user_id) if user_id else None,
        keys=tuple(keys or ()),
        limit=limit,
        offset=offset,
    )
    async with _users() as client:
        sessions = await client.get_sessions(query)
    return {"sessions": [_session_out(s) for s in sessions]}


async def add_session(
    session_key: Optional[str] = None,
    document: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    key = session_key or new_session_id()
    async with _users() as client:
        await client.add_session(key, document or {})
    return {"session_key": key}


async def identify_session(session_key: str, user_id: str) -> Dict[str, Any]:
    uid = UserID.parse(user_id)
    async with _users() as client:
        await client.identify_session(session_key, uid)
    return {"ok": True, "session_key": session_key, "user_id": str(uid)}


async def get_session_events(session_key: str, limit: int = 50) -> Dict[str, Any]:
    query = SessionEventQuery(session_keys=(session_key,), limit=limit)
    async with _users() as client:
        events = await client.get_session_events(query)
    return {"session_key": session_key, "events": [_event_out(e) for e in events]}


async def log_session_event(
    session_key: str,
    type: str,
    subject: str,
    data: Any,
    schema: str = "",
) -> Dict[str, Any]:
    async with _users() as client:
        events = SessionEventLogger(
            EventLoggerConfig(source=client.config.event_source, client=client)
        )
        await events.log_event(session_key, type, schema, subject, data)
    return {"ok": True, "session_key": session_key, "type": type}


async def list_integrations() -> Dict[str, Any]:
    async with _integrations() as client:
        integrations = await client.list_integrations()
    return {"integrations": [_integration_out(i) for i in integrations]}


# ---------------------------------------------------------------------------
# Diagnostics & configuration helpers
# ---------------------------------------------------------------------------


def _collect_client_info() -> Dict[str, Any]:
    """Redacted snapshot of the client configuration from env."""
    cfg = UserupConfig.from_env()
    return {
        "base_url": cfg.base_url,
        "integrations_base_url": cfg.integrations_base_url,
        "path_prefix": cfg.path_prefix,
        "mock_mode": bool(cfg.mock_mode),
        "use_tls": bool(cfg.use_tls),
        "verify_tls": bool(cfg.verify_tls),
        "timeout_seconds": cfg.timeout_seconds,
        "event_source": cfg.event_source,
        "oauth": {
            "token_url_configured": bool(cfg.oauth_token_url),
            "client_id_configured": bool(cfg.client_id),
            "client_secret_configured": bool(cfg.client_secret),
        },
        "query_encoding": {
            "send_zero_limit": cfg.send_zero_limit,
            "send_empty_select": cfg.send_empty_select,
        },
    }


async def get_client_info() -> Dict[str, Any]:
    return _collect_client_info()


async def _check(name: str, checks: List[Dict[str, Any]], coro: Any) -> bool:
    t0 = time.time()
    try:
        result = await coro
    except UserupError as exc:
        checks.append(
            {
                "name": name,
                "ok": False,
                "error": _make_error(type(exc).__name__, str(exc)),
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )
        return False

    entry: Dict[str, Any] = {
        "name": name,
        "ok": True,
        "error": None,
        "elapsed_ms": int((time.time() - t0) * 1000),
    }
    if isinstance(result, list):
        entry["count"] = len(result)
    checks.append(entry)
    return True


async def diagnostics() -> Dict[str, Any]:
    started = time.time()
    config_info = _collect_client_info()
    checks: List[Dict[str, Any]] = []

    async with _users() as users:
        sessions_ok = await _check("get_sessions", checks, users.get_sessions(SessionQuery(limit=1)))
    async with _integrations() as integrations:
        integrations_ok = await _check(
            "list_integrations", checks, integrations.list_integrations()
        )

    return {
        "ok": sessions_ok and integrations_ok,
        "mock_mode": config_info["mock_mode"],
        "config": config_info,
        "checks": checks,
        "meta": {"elapsed_ms": int((time.time() - started) * 1000)},
    }


# ---------------------------------------------------------------------------
# MCP tool registration
# ---------------------------------------------------------------------------


def register_tools(server: Any) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(name="userup_ping", description="Basic health check against the Userup service.")
    async def mcp_ping() -> Dict[str, Any]:
        return await ping()

    @server.tool(
        name="userup_get_user",
        description="Fetch a user by id ('42', 'uuid:...', 'external:...').",
    )
    async def mcp_get_user(user_id: str) -> Dict[str, Any]:
        return await get_user(user_id=user_id)

    @server.tool(name="userup_add_user", description="Create a user with optional attributes and traits.")
    async def mcp_add_user(
        username: str,
        attributes: Optional[Dict[str, Any]] = None,
        traits: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await add_user(username=username, attributes=attributes, traits=traits)

    @server.tool(name="userup_add_attribute", description="Set a single attribute on a user.")
    async def mcp_add_attribute(user_id: str, key: str, value: Any) -> Dict[str, Any]:
        return await add_attribute(user_id=user_id, key=key, value=value)

    @server.tool(
        name="userup_query_users",
        description=(
            "Run a structured user query: filters are {group: {attribute: value}} "
            "(groups: user, attributes, traits), order_by entries are 'field [asc|desc]'."
        ),
    )
    async def mcp_query_users(
        filters: Optional[Dict[str, Dict[str, Any]]] = None,
        select: Optional[List[str]] = None,
        order_by: Optional[List[str]] = None,
        limit: int = 0,
        offset: int = 0,
        joins: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        return await query_users(
            filters=filters,
            select=select,
            order_by=order_by,
            limit=limit,
            offset=offset,
            joins=joins,
        )

    @server.tool(
        name="userup_find_users",
        description="Find users by username and equality filters on attributes and traits.",
    )
    async def mcp_find_users(
        username: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        traits: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await find_users(username=username, attributes=attributes, traits=traits)

    @server.tool(name="userup_list_sessions", description="List sessions, optionally for one user.")
    async def mcp_list_sessions(
        user_id: Optional[str] = None,
        keys: Optional[List[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        return await list_sessions(user_id=user_id, keys=keys, limit=limit, offset=offset)

    @server.tool(
        name="userup_add_session",
        description="Create an anonymous session; a random key is generated when none is given.",
    )
    async def mcp_add_session(
        session_key: Optional[str] = None,
        document: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await add_session(session_key=session_key, document=document)

    @server.tool(name="userup_identify_session", description="Attach an anonymous session to a user.")
    async def mcp_identify_session(session_key: str, user_id: str) -> Dict[str, Any]:
        return await identify_session(session_key=session_key, user_id=user_id)

    @server.tool(name="userup_get_session_events", description="List events logged against a session.")
    async def mcp_get_session_events(session_key: str, limit: int = 50) -> Dict[str, Any]:
        return await get_session_events(session_key=session_key, limit=limit)

    @server.tool(name="userup_log_session_event", description="Log a JSON event against a session.")
    async def mcp_log_session_event(
        session_key: str,
        type: str,
        subject: str,
        data: Any,
        schema: str = "",
    ) -> Dict[str, Any]:
        return await log_session_event(
            session_key=session_key, type=type, subject=subject, data=data, schema=schema
        )

    @server.tool(name="userup_list_integrations", description="List configured integrations.")
    async def mcp_list_integrations() -> Dict[str, Any]:
        return await list_integrations()

    @server.tool(
        name="userup_get_client_info",
        description="Return redacted client configuration (no secrets).",
    )
    async def mcp_get_client_info() -> Dict[str, Any]:
        return await get_client_info()

    @server.tool(
        name="userup_diagnostics",
        description="Run health checks against the Userup users and integrations services.",
    )
    async def mcp_diagnostics() -> Dict[str, Any]:
        return await diagnostics()
