# Userup Python SDK
# File: tests/test_tasks.py
# Version: v1
#
# Tests for the library-style tasks in tools.tasks and their MCP
# registration. `_make_client` is patched so no network is involved.

from __future__ import annotations

import asyncio

import pytest

from userup.client import UserServiceClient
from userup.config import UserupConfig
from userup.errors import ConnectError, RemoteError
from userup.integrations import IntegrationsClient
from userup.mock import MockUserService
from userup.tools import tasks


def _run(coro):
    """Helper to run async coroutines in plain pytest tests."""
    return asyncio.run(coro)


class DummyServer:
    def __init__(self) -> None:
        self.tools = {}

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs["name"]] = fn
            return fn

        return decorator


class _FailingTransport:
    async def call(self, service, method, payload, *, timeout=None):
        raise ConnectError("unreachable", method=method)

    async def aclose(self) -> None:
        return None


class _HangingTransport:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.calls = []

    async def call(self, service, method, payload, *, timeout=None):
        self.calls.append(method)
        self.started.set()
        await asyncio.sleep(3600)
        return {}

    async def aclose(self) -> None:
        return None


@pytest.fixture
def mock_service(monkeypatch) -> MockUserService:
    service = MockUserService()
    cfg = UserupConfig()
    monkeypatch.setattr(tasks, "_make_client", lambda: UserServiceClient(cfg, service))
    monkeypatch.setattr(
        tasks, "_make_integrations_client", lambda: IntegrationsClient(cfg, service)
    )
    return service


def test_register_tools_names() -> None:
    server = DummyServer()
    tasks.register_tools(server)
    assert set(server.tools) == {
        "userup_ping",
        "userup_get_user",
        "userup_add_user",
        "userup_add_attribute",
        "userup_query_users",
        "userup_find_users",
        "userup_list_sessions",
        "userup_add_session",
        "userup_identify_session",
        "userup_get_session_events",
        "userup_log_session_event",
        "userup_list_integrations",
        "userup_get_client_info",
        "userup_diagnostics",
    }


def test_register_tools_rejects_non_server() -> None:
    with pytest.raises(ValueError):
        tasks.register_tools(object())


def test_user_tasks(mock_service) -> None:
    created = _run(tasks.add_user("jdoe2", attributes={"user_type": "admin", "ranking": 5}))
    user_id = created["user"]["id"]
    assert user_id == "numeric:1"

    _run(tasks.add_attribute("1", "plan", "pro"))
    fetched = _run(tasks.get_user(user_id))["user"]
    assert fetched["attributes"] == {"user_type": "admin", "ranking": 5, "plan": "pro"}

    found = _run(tasks.find_users(attributes={"plan": "pro"}))
    assert [u["username"] for u in found["users"]] == ["jdoe2"]


def test_query_users_task_builds_query(mock_service) -> None:
    _run(tasks.add_user("harry", attributes={"house": "gryffindor"}))
    _run(tasks.add_user("albus", attributes={"house": "gryffindor", "alias": "dumbledore"}))

    out = _run(
        tasks.query_users(
            filters={"attributes": {"house": "gryffindor"}},
            order_by=["username desc"],
            limit=10,
        )
    )
    assert [u["username"] for u in out["users"]] == ["harry", "albus"]
    assert out["meta"]["count"] == 2
    assert out["meta"]["query"]["order_by"] == [{"field": "username", "direction": "DESC"}]

    joined = _run(
        tasks.query_users(
            joins=[
                {
                    "table": "attributes",
                    "on": "users.id = attributes.user_id",
                    "filter": {"attribute": {"alias": "dumbledore"}},
                }
            ]
        )
    )
    assert [u["username"] for u in joined["users"]] == ["albus"]


def test_session_tasks(mock_service) -> None:
    _run(tasks.add_user("owner"))
    created = _run(tasks.add_session(document={"cart": 2}))
    key = created["session_key"]
    assert key

    _run(tasks.identify_session(key, "1"))
    _run(tasks.log_session_event(key, "io.userup.view", "home", {"page": "/"}))

    sessions = _run(tasks.list_sessions(user_id="1"))["sessions"]
    assert sessions == [{"key": key, "object": {"cart": 2}, "user_id": "numeric:1"}]

    events = _run(tasks.get_session_events(key))["events"]
    assert events[0]["type"] == "io.userup.view"
    assert events[0]["data"] == {"page": "/"}
    assert events[0]["session_key"] == key


def test_remote_errors_propagate(mock_service) -> None:
    with pytest.raises(RemoteError):
        _run(tasks.get_user("99"))


def test_list_integrations_task(mock_service) -> None:
    assert _run(tasks.list_integrations()) == {"integrations": []}


def test_mock_mode_uses_seeded_service(monkeypatch) -> None:
    monkeypatch.setenv("USERUP_MOCK_MODE", "1")

    users = _run(tasks.find_users(username="alice"))["users"]
    assert users[0]["attributes"]["user_type"] == "admin"

    integrations = _run(tasks.list_integrations())["integrations"]
    assert [i["name"] for i in integrations] == ["crm-sync"]

    # State is shared across tasks within the process.
    key = _run(tasks.add_session("shared"))["session_key"]
    assert [s["key"] for s in _run(tasks.list_sessions())["sessions"]] == [key]


@pytest.mark.asyncio
async def test_diagnostics_mock_mode(monkeypatch):
    monkeypatch.setenv("USERUP_MOCK_MODE", "1")

    result = await tasks.diagnostics()
    assert result["ok"] is True
    assert result["mock_mode"] is True
    names = {c["name"] for c in result["checks"]}
    assert names == {"get_sessions", "list_integrations"}


@pytest.mark.asyncio
async def test_diagnostics_reports_failures(monkeypatch):
    cfg = UserupConfig()
    monkeypatch.setattr(tasks, "_make_client", lambda: UserServiceClient(cfg, _FailingTransport()))
    monkeypatch.setattr(
        tasks, "_make_integrations_client", lambda: IntegrationsClient(cfg, _FailingTransport())
    )

    result = await tasks.diagnostics()
    assert result["ok"] is False
    assert all(c["ok"] is False for c in result["checks"])
    assert result["checks"][0]["error"]["code"] == "ConnectError"


@pytest.mark.asyncio
async def test_diagnostics_cancellation_stops_remaining_checks(monkeypatch):
    cfg = UserupConfig(timeout_seconds=0)
    users = _HangingTransport()
    integrations = _HangingTransport()
    monkeypatch.setattr(tasks, "_make_client", lambda: UserServiceClient(cfg, users))
    monkeypatch.setattr(
        tasks, "_make_integrations_client", lambda: IntegrationsClient(cfg, integrations)
    )

    task = asyncio.create_task(tasks.diagnostics())
    await users.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert users.calls == ["GetSessions"]
    assert integrations.calls == []


@pytest.mark.asyncio
async def test_client_info_is_redacted(monkeypatch):
    monkeypatch.setenv("USERUP_ADDRESS", "users.example:443")
    monkeypatch.setenv("USERUP_OAUTH_TOKEN_URL", "https://auth.example/token")
    monkeypatch.setenv("USERUP_CLIENT_ID", "client-id")
    monkeypatch.setenv("USERUP_CLIENT_SECRET", "super-secret")

    info = await tasks.get_client_info()
    assert info["base_url"] == "https://users.example:443"
    assert info["oauth"]["client_secret_configured"] is True
    assert "super-secret" not in repr(info)
