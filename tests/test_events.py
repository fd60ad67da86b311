# Userup Python SDK
# File: tests/test_events.py
# Version: v1

from __future__ import annotations

import uuid

import pytest

from userup.client import UserServiceClient
from userup.config import UserupConfig
from userup.errors import EncodingError, ValidationError
from userup.events import EventLogger, EventLoggerConfig, SessionEventLogger, new_logger_config
from userup.mock import MockUserService
from userup.models import Event, User
from userup.sessions import SessionEventQuery


def _client() -> UserServiceClient:
    return UserServiceClient(config=UserupConfig(), transport=MockUserService())


@pytest.mark.asyncio
async def test_log_event_fills_envelope_defaults() -> None:
    client = _client()
    user = await client.add_user(User(username="evt"))
    logger = EventLogger(new_logger_config("https://userup.io/tests", client))

    stored = await logger.log_event(Event(type="io.userup.signup", user_id=user.id))

    assert stored.source == "https://userup.io/tests"
    assert stored.spec_version == "1.0"
    assert stored.data_content_type == "application/json"
    assert stored.timestamp is not None
    assert uuid.UUID(stored.id)
    assert stored.user_id == user.id


@pytest.mark.asyncio
async def test_log_event_keeps_explicit_fields() -> None:
    client = _client()
    logger = EventLogger(EventLoggerConfig(source="default", client=client, spec_version="1.1"))
    stored = await logger.log_event(Event(type="t", id="fixed-id", source="explicit"))
    assert stored.id == "fixed-id"
    assert stored.source == "explicit"
    assert stored.spec_version == "1.1"


@pytest.mark.asyncio
async def test_log_event_requires_type() -> None:
    logger = EventLogger(new_logger_config("src", _client()))
    with pytest.raises(ValidationError):
        await logger.log_event(Event())


@pytest.mark.asyncio
async def test_log_data_encodes_payload_as_json() -> None:
    client = _client()
    user = await client.add_user(User(username="data"))
    logger = EventLogger(new_logger_config("src", client))

    stored = await logger.log_data(user.id, "io.userup.cart", "cart.v1", "cart", {"items": 3})
    assert stored.json() == {"items": 3}
    assert stored.data_schema == "cart.v1"

    with pytest.raises(EncodingError):
        await logger.log_data(user.id, "io.userup.cart", "cart.v1", "cart", {"bad": {1}})


@pytest.mark.asyncio
async def test_session_event_logger() -> None:
    client = _client()
    await client.add_session("sess-1")
    logger = SessionEventLogger(new_logger_config("src", client))

    await logger.log_event("sess-1", "io.userup.click", "ui.v1", "button", {"id": "buy"})

    events = await client.get_session_events(SessionEventQuery(session_keys=("sess-1",)))
    assert len(events) == 1
    assert events[0].json() == {"id": "buy"}
    assert events[0].source == "src"
    assert events[0].data_content_type == "application/json"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "args",
    [
        ("", "t", "s", "subj", {}),
        ("k", "", "s", "subj", {}),
        ("k", "t", "s", "", {}),
        ("k", "t", "s", "subj", None),
    ],
)
async def test_session_event_logger_validates(args) -> None:
    logger = SessionEventLogger(new_logger_config("src", _client()))
    with pytest.raises(ValidationError):
        await logger.log_event(*args)
