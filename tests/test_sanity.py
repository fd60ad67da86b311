# Userup Python SDK
# File: tests/test_sanity.py
# Version: v2

"""Basic sanity tests for configuration, packaging and session helpers."""

import asyncio
from datetime import datetime, timezone

import pytest

import userup
from userup.auth import OAuthClient
from userup.config import UserupConfig
from userup.errors import ConnectError, ValidationError
from userup.identity import UserID
from userup.query import Direction, Order
from userup.sessions import SessionEventQuery, SessionQuery, new_session_id


def test_package_exports_version() -> None:
    assert isinstance(userup.__version__, str)
    assert userup.UserServiceClient is not None


def test_config_defaults() -> None:
    config = UserupConfig.from_env()
    assert config.base_url == "https://localhost:9000"
    assert config.integrations_base_url == "https://localhost:9000"
    assert config.path_prefix == "/twirp"
    assert config.default_timeout == 30.0
    assert config.mock_mode is False
    assert config.oauth_configured is False


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("USERUP_ADDRESS", "users:9000")
    monkeypatch.setenv("USERUP_INTEGRATIONS_ADDRESS", "jobs:9001")
    monkeypatch.setenv("USERUP_USE_TLS", "0")
    monkeypatch.setenv("USERUP_PATH_PREFIX", "/rpc/")
    monkeypatch.setenv("USERUP_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("USERUP_QUERY_SEND_ZERO_LIMIT", "yes")

    config = UserupConfig.from_env()
    assert config.base_url == "http://users:9000"
    assert config.integrations_base_url == "http://jobs:9001"
    assert config.path_prefix == "/rpc"
    assert config.default_timeout is None
    assert config.query_encoding.send_zero_limit is True
    assert config.query_encoding.send_empty_select is False


def test_config_timeout_falls_back_on_garbage(monkeypatch) -> None:
    monkeypatch.setenv("USERUP_TIMEOUT_SECONDS", "soon")
    assert UserupConfig.from_env().timeout_seconds == 30.0
    monkeypatch.setenv("USERUP_TIMEOUT_SECONDS", "-5")
    assert UserupConfig.from_env().timeout_seconds == 0.0


def test_oauth_requires_configuration() -> None:
    oauth = OAuthClient(config=UserupConfig())
    with pytest.raises(ConnectError):
        asyncio.run(oauth.get_access_token())


def test_new_session_id_shape() -> None:
    ids = {new_session_id() for _ in range(50)}
    assert len(ids) == 50
    for sid in ids:
        assert len(sid) == 16
        assert sid == sid.lower()
        int(sid, 16)


def test_session_query_wire() -> None:
    begin = datetime(2024, 1, 1, tzinfo=timezone.utc)
    query = SessionQuery(
        user_id=UserID.numeric(123),
        begin=begin,
        limit=10,
        order_by=[("created", "desc")],
        keys=("a", "b"),
    )
    wire = query.to_wire()
    assert wire["user_id"] == {"id": 123}
    assert wire["begin"] == "2024-01-01T00:00:00Z"
    assert wire["end"] is None
    assert wire["limit"] == 10
    assert wire["order_by"] == [{"field": "created", "direction": "DESC"}]
    assert wire["session_keys"] == ["a", "b"]
    assert query.order_by == (Order("created", Direction.DESC),)


def test_session_event_query_wire_and_validation() -> None:
    assert SessionEventQuery(session_keys=("s",)).to_wire()["session_keys"] == ["s"]
    assert SessionEventQuery().to_wire()["user_id"] == {}
    with pytest.raises(ValidationError):
        SessionQuery(limit=-1)
