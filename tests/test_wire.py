# Userup Python SDK
# File: tests/test_wire.py
# Version: v1

"""Entity <-> wire mapping."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from userup.errors import DecodeError, EncodingError
from userup.identity import UserID
from userup.models import Event, Integration, Job, JobStatus, Session, User
from userup.wire import (
    event_from_wire,
    event_to_wire,
    integration_from_wire,
    integration_to_wire,
    job_from_wire,
    job_to_wire,
    session_from_wire,
    session_to_wire,
    timestamp_from_wire,
    timestamp_to_wire,
    user_from_wire,
    user_to_wire,
)

TS = datetime(2024, 3, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)


def test_user_round_trip() -> None:
    user = User(
        id=UserID.numeric(42),
        username="jdoe2",
        attributes={"user_type": "admin", "ranking": 5},
        traits={"tags": ["a", "b"]},
    )
    assert user_from_wire(user_to_wire(user)) == user


def test_user_forward_mapping_emits_every_field() -> None:
    wire = user_to_wire(User(username="new"))
    assert wire == {"id": {}, "username": "new", "attributes": {}, "traits": {}}


@pytest.mark.parametrize("missing", ["id", "username", "attributes", "traits"])
def test_user_decode_names_missing_field(missing) -> None:
    wire = user_to_wire(User(id=UserID.numeric(1), username="u"))
    del wire[missing]
    with pytest.raises(DecodeError) as exc_info:
        user_from_wire(wire)
    assert f"'{missing}'" in str(exc_info.value)


def test_user_decode_ignores_unknown_keys() -> None:
    wire = user_to_wire(User(id=UserID.numeric(1), username="u"))
    wire["created_at"] = "2024-01-01T00:00:00Z"
    assert user_from_wire(wire).username == "u"


def test_user_decode_rejects_wrong_types() -> None:
    wire = user_to_wire(User(id=UserID.numeric(1), username="u"))
    wire["username"] = 7
    with pytest.raises(DecodeError):
        user_from_wire(wire)


def test_user_encode_rejects_unrepresentable_attributes() -> None:
    with pytest.raises(EncodingError):
        user_to_wire(User(username="u", attributes={"bad": {1, 2}}))


def test_event_round_trip() -> None:
    event = Event(
        type="io.userup.cart.checkout",
        id="evt-1",
        source="https://shop.example",
        spec_version="1.0",
        data_content_type="application/json",
        data_schema="cart.v1",
        subject="checkout",
        data=b'{"total":12.5}',
        timestamp=TS,
        user_id=UserID.numeric(3),
        session_key="sess-abc",
    )
    wire = event_to_wire(event)
    assert wire["specversion"] == "1.0"
    assert wire["datacontenttype"] == "application/json"
    assert event_from_wire(wire) == event
    assert event_from_wire(wire).json() == {"total": 12.5}


def test_event_requires_type() -> None:
    wire = event_to_wire(Event(type="t"))
    del wire["type"]
    with pytest.raises(DecodeError):
        event_from_wire(wire)


def test_event_rejects_bad_base64() -> None:
    wire = event_to_wire(Event(type="t"))
    wire["data"] = "***"
    with pytest.raises(DecodeError):
        event_from_wire(wire)


def test_session_round_trip() -> None:
    session = Session(key="sess-abc", object={"hello": "world"}, user_id=UserID.numeric(123))
    assert session_from_wire(session_to_wire(session)) == session
    anonymous = Session(key="anon")
    assert session_from_wire(session_to_wire(anonymous)).user_id is None


def test_session_requires_key_and_object() -> None:
    with pytest.raises(DecodeError):
        session_from_wire({"object": {}})
    with pytest.raises(DecodeError):
        session_from_wire({"key": "k"})


def test_integration_round_trip() -> None:
    integration = Integration(
        name="crm-sync",
        id=4,
        schedule="@hourly",
        exec_path="/opt/crm",
        config_path="/etc/crm.yaml",
        enabled=True,
        settings={"batch": 10},
    )
    assert integration_from_wire(integration_to_wire(integration)) == integration


def test_job_round_trip_and_unknown_status() -> None:
    job = Job(
        integration_name="crm-sync",
        id=2,
        started=TS,
        ended=TS + timedelta(minutes=1),
        status=JobStatus.SUCCEEDED,
    )
    wire = job_to_wire(job)
    assert wire["status"] == "SUCCEEDED"
    assert job_from_wire(wire) == job

    wire["status"] = "EXPLODED"
    with pytest.raises(DecodeError):
        job_from_wire(wire)


def test_timestamps_are_utc_rfc3339() -> None:
    assert timestamp_to_wire(TS) == "2024-03-01T12:30:15.123456Z"
    naive = datetime(2024, 3, 1, 12, 0, 0)
    assert timestamp_to_wire(naive) == "2024-03-01T12:00:00Z"
    plus_two = datetime(2024, 3, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert timestamp_to_wire(plus_two) == "2024-03-01T12:00:00Z"


def test_naive_timestamps_are_utc_on_the_model_and_round_trip() -> None:
    naive = datetime(2024, 3, 1, 12, 0, 0)
    utc = naive.replace(tzinfo=timezone.utc)

    event = Event(type="t", timestamp=naive)
    assert event.timestamp == utc
    assert event_from_wire(event_to_wire(event)) == event

    job = Job(integration_name="crm-sync", started=naive, ended=naive + timedelta(minutes=1))
    assert job.started == utc
    assert job_from_wire(job_to_wire(job)) == job


def test_timestamp_decode_truncates_nanoseconds() -> None:
    parsed = timestamp_from_wire("2024-03-01T12:30:15.123456789Z", "timestamp")
    assert parsed == TS
    assert timestamp_from_wire("", "timestamp") is None
    with pytest.raises(DecodeError):
        timestamp_from_wire("yesterday", "timestamp")
