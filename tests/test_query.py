# Userup Python SDK
# File: tests/test_query.py
# Version: v1
#
# Structure and encoding of the Query model and search parameters.

from __future__ import annotations

import pytest

from userup.errors import DecodeError, EncodingError, ValidationError
from userup.identity import UserID
from userup.query import (
    AttributeFilter,
    Direction,
    Join,
    Operator,
    Order,
    Query,
    QueryEncoding,
    UserSearchParams,
    new_query,
)


def test_empty_query_serializes_to_empty_filter_only() -> None:
    assert new_query().serialize() == {"filter": {}}


def test_builders_are_pure() -> None:
    base = new_query()
    filtered = base.with_filter("user", "username", "jdoe")
    assert base.filter == {}
    assert filtered.filter == {"user": {"username": "jdoe"}}
    assert filtered is not base


def test_built_query_filters_are_read_only_and_unhashable() -> None:
    source = {"user": {"username": "jdoe"}}
    q = Query(filter=source).with_join(
        "attributes", "users.id = attributes.user_id", {"attribute": {"alias": "x"}}
    )
    source["user"]["username"] = "changed"

    assert q.filter == {"user": {"username": "jdoe"}}
    with pytest.raises(TypeError):
        q.filter["user"]["username"] = "mallory"
    with pytest.raises(TypeError):
        q.filter["traits"] = {}
    with pytest.raises(TypeError):
        q.joins[0].filter["attribute"]["alias"] = "y"
    with pytest.raises(TypeError):
        hash(q)
    assert q == Query.from_bytes(q.to_bytes())


def test_filter_last_write_wins_and_groups_merge() -> None:
    q = (
        new_query()
        .with_filter("attributes", "plan", "free")
        .with_filter("attributes", "plan", "pro")
        .with_filter("attributes", "ranking", 5)
        .with_filter("traits", "beta", True)
    )
    assert q.serialize()["filter"] == {
        "attributes": {"plan": "pro", "ranking": 5},
        "traits": {"beta": True},
    }


def test_order_keeps_precedence() -> None:
    q = new_query().with_order("last_name").with_order("created", "desc")
    assert q.serialize()["order_by"] == [
        {"field": "last_name", "direction": "ASC"},
        {"field": "created", "direction": "DESC"},
    ]


def test_invalid_direction_rejected() -> None:
    with pytest.raises(ValidationError):
        new_query().with_order("x", "sideways")
    assert Direction.parse("Asc") is Direction.ASC


def test_limit_zero_and_empty_select_omitted_by_default() -> None:
    wire = new_query().serialize()
    assert "limit" not in wire
    assert "select" not in wire


def test_encoding_knobs_emit_zero_limit_and_empty_select() -> None:
    wire = new_query().serialize(QueryEncoding(send_zero_limit=True, send_empty_select=True))
    assert wire["limit"] == 0
    assert wire["select"] == []


def test_limit_offset_select_are_emitted_when_set() -> None:
    wire = new_query().with_select("username", "email").with_limit(10).with_offset(20).serialize()
    assert wire["select"] == ["username", "email"]
    assert wire["limit"] == 10
    assert wire["offset"] == 20


@pytest.mark.parametrize("bad", [-1, True, 1.5])
def test_limit_must_be_non_negative_int(bad) -> None:
    with pytest.raises(ValidationError):
        new_query().with_limit(bad)


def test_join_filter_serialization() -> None:
    q = new_query().with_join(
        "attributes",
        "users.id = attributes.user_id",
        {"attribute": {"alias": "dumbledore"}},
    )
    wire = q.serialize()
    assert wire["joins"][0]["table"] == "attributes"
    assert wire["joins"][0]["on"] == "users.id = attributes.user_id"
    assert wire["joins"][0]["filter"]["attribute"]["alias"] == "dumbledore"


def test_join_without_filter_omits_it() -> None:
    assert Join("traits", "users.id = traits.user_id").to_wire() == {
        "table": "traits",
        "on": "users.id = traits.user_id",
    }


def test_filter_condition_must_be_object() -> None:
    with pytest.raises(EncodingError):
        Query(filter={"user": "jdoe"})  # type: ignore[dict-item]


def test_filter_values_must_be_representable() -> None:
    with pytest.raises(EncodingError):
        new_query().with_filter("user", "tags", {"a", "b"})


def test_round_trip_and_canonical_bytes() -> None:
    q = (
        new_query()
        .with_filter("user", "username", "jdoe")
        .with_select("username")
        .with_order("username", Direction.DESC)
        .with_limit(5)
        .with_offset(1)
        .with_join("attributes", "users.id = attributes.user_id", {"attribute": {"a": 1}})
    )
    assert Query.deserialize(q.serialize()) == q
    assert Query.from_bytes(q.to_bytes()) == q

    same = (
        new_query()
        .with_filter("user", "username", "jdoe")
        .with_select("username")
        .with_order("username", "DESC")
        .with_limit(5)
        .with_offset(1)
        .with_join("attributes", "users.id = attributes.user_id", {"attribute": {"a": 1}})
    )
    assert q.to_bytes() == same.to_bytes()


def test_deserialize_rejects_malformed_input() -> None:
    with pytest.raises(DecodeError):
        Query.deserialize([])
    with pytest.raises(DecodeError):
        Query.deserialize({"order_by": [{"direction": "ASC"}]})
    with pytest.raises(DecodeError):
        Query.deserialize({"joins": [{"table": "t"}]})
    with pytest.raises(DecodeError):
        Query.from_bytes(b"not json")


def test_order_from_wire_defaults_direction() -> None:
    assert Order.from_wire({"field": "x"}) == Order("x", Direction.ASC)


def test_attribute_filter_defaults_to_equals() -> None:
    f = AttributeFilter("plan", "pro")
    assert f.operator is Operator.EQUALS
    assert f.to_wire() == {"name": "plan", "value": "pro", "operator": "EQUALS"}


def test_operator_parse() -> None:
    assert Operator.parse(None) is Operator.EQUALS
    assert Operator.parse("greater_than") is Operator.GREATER_THAN
    with pytest.raises(ValidationError):
        Operator.parse("LIKE")


def test_search_params_builders_and_wire() -> None:
    params = (
        UserSearchParams(user_id=UserID.numeric(0), username="jdoe")
        .with_attribute("ranking", 3, "GREATER_THAN")
        .with_trait("beta", True)
    )
    wire = params.to_wire()
    assert wire["user_id"] == {"id": 0}
    assert wire["username"] == "jdoe"
    assert wire["attribute_filters"] == [
        {"name": "ranking", "value": 3, "operator": "GREATER_THAN"}
    ]
    assert wire["trait_filters"] == [{"name": "beta", "value": True, "operator": "EQUALS"}]
    assert UserSearchParams.from_wire(wire) == params


def test_search_params_absent_identity() -> None:
    assert UserSearchParams().to_wire()["user_id"] == {}
