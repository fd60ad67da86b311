# Userup Python SDK
# File: query.py
# Version: v6

"""Query model sent opaquely to the service for interpretation.

A :class:`Query` describes filter / select / order / paginate / join
requests. The server owns execution; this module only owns the structure
and its encoding.

Conventions:

- Filter groups and the attributes inside each group are combined with an
  implicit AND.
- An empty ``select`` means "all fields".
- ``limit == 0`` means "no client-specified limit" (server default).
- Builders are pure: every ``with_*`` call returns a new ``Query`` and
  leaves the receiver untouched.

Wire shape (keys follow the service's JSON contract)::

    {
      "filter":   {"<group>": {"<attribute>": <value>}},
      "select":   ["field", ...],
      "order_by": [{"field": "name", "direction": "ASC"}],
      "limit":    10,
      "offset":   0,
      "joins":    [{"table": "...", "on": "...", "filter": {...}}]
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import DecodeError, EncodingError, ValidationError
from .identity import UserID, identity_from_wire, identity_to_wire
from .values import decode_list, decode_struct, decode_value, dumps, encode_struct, encode_value, loads


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, value: Union["Direction", str]) -> "Direction":
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            token = value.strip().upper()
            if token in cls.__members__:
                return cls[token]
        raise ValidationError(
            f"Invalid order direction {value!r}; expected 'ASC' or 'DESC'."
        )


class Operator(str, Enum):
    """Comparison operators accepted by attribute and trait filters."""

    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    CONTAINS = "CONTAINS"

    @classmethod
    def parse(cls, value: Union["Operator", str, None]) -> "Operator":
        if value is None:
            return cls.EQUALS
        if isinstance(value, Operator):
            return value
        if isinstance(value, str):
            token = value.strip().upper()
            if token in cls.__members__:
                return cls[token]
        allowed = ", ".join(cls.__members__)
        raise ValidationError(f"Invalid operator {value!r}; expected one of: {allowed}.")


@dataclass(frozen=True)
class QueryEncoding:
    """Knobs for servers whose contract differs from the defaults.

    By default a zero ``limit`` and an empty ``select`` are left out of the
    payload so the server applies its own defaults.
    """

    send_zero_limit: bool = False
    send_empty_select: bool = False


DEFAULT_ENCODING = QueryEncoding()


FilterMap = Mapping[str, Mapping[str, Any]]


def _encode_filter(raw: Optional[Mapping[str, Any]], path: str) -> FilterMap:
    """Validate a filter and freeze it into read-only mappings."""
    encoded = encode_struct(raw, path)
    for group, condition in encoded.items():
        if not isinstance(condition, dict):
            raise EncodingError(
                f"Condition for filter group '{group}' at {path} must be an object."
            )
    return MappingProxyType({g: MappingProxyType(c) for g, c in encoded.items()})


@dataclass(frozen=True)
class Order:
    field: str
    direction: Direction = Direction.ASC

    def __post_init__(self) -> None:
        if not isinstance(self.field, str) or not self.field:
            raise ValidationError("Order field must be a non-empty string.")
        object.__setattr__(self, "direction", Direction.parse(self.direction))

    def to_wire(self) -> Dict[str, Any]:
        return {"field": self.field, "direction": self.direction.value}

    @classmethod
    def from_wire(cls, raw: Any, path: str = "order_by") -> "Order":
        if not isinstance(raw, dict):
            raise DecodeError(f"Expected object for '{path}', got {type(raw).__name__}.")
        if not isinstance(raw.get("field"), str):
            raise DecodeError(f"Order in '{path}' is missing required field 'field'.")
        try:
            return cls(raw["field"], raw.get("direction") or Direction.ASC)
        except ValidationError as exc:
            raise DecodeError(f"Malformed order in '{path}': {exc.message}") from exc


@dataclass(frozen=True)
class Join:
    """Correlate another table through a server-interpreted predicate.

    The filter is stored as read-only mappings; joins compare by value and
    are not hashable.
    """

    __hash__ = None  # type: ignore[assignment]

    table: str
    on: str
    filter: FilterMap = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.table, str) or not self.table:
            raise ValidationError("Join table must be a non-empty string.")
        if not isinstance(self.on, str):
            raise ValidationError("Join predicate must be a string.")
        object.__setattr__(self, "filter", _encode_filter(self.filter, "$.joins.filter"))

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"table": self.table, "on": self.on}
        if self.filter:
            out["filter"] = encode_value(self.filter)
        return out

    @classmethod
    def from_wire(cls, raw: Any, path: str = "joins") -> "Join":
        if not isinstance(raw, dict):
            raise DecodeError(f"Expected object for '{path}', got {type(raw).__name__}.")
        for name in ("table", "on"):
            if not isinstance(raw.get(name), str):
                raise DecodeError(f"Join in '{path}' is missing required field '{name}'.")
        condition = raw.get("filter") or {}
        try:
            return cls(raw["table"], raw["on"], decode_struct(condition, f"{path}.filter"))
        except (ValidationError, EncodingError) as exc:
            raise DecodeError(f"Malformed join in '{path}': {exc.message}") from exc


@dataclass(frozen=True)
class Query:
    """An immutable query.

    ``filter`` is exposed as read-only mappings, so a built query cannot be
    changed in place. Queries compare by value but are not hashable.
    """

    __hash__ = None  # type: ignore[assignment]

    filter: FilterMap = field(default_factory=dict)
    select: Tuple[str, ...] = ()
    order_by: Tuple[Order, ...] = ()
    limit: int = 0
    offset: int = 0
    joins: Tuple[Join, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "filter", _encode_filter(self.filter, "$.filter"))
        object.__setattr__(self, "select", tuple(self.select))
        object.__setattr__(self, "order_by", tuple(self.order_by))
        object.__setattr__(self, "joins", tuple(self.joins))

        for name in self.select:
            if not isinstance(name, str) or not name:
                raise ValidationError("Selected field names must be non-empty strings.")
        for item in self.order_by:
            if not isinstance(item, Order):
                raise ValidationError("order_by entries must be Order instances.")
        for item in self.joins:
            if not isinstance(item, Join):
                raise ValidationError("joins entries must be Join instances.")
        for name in ("limit", "offset"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"`{name}` must be a non-negative integer, got {value!r}.")

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def with_filter(self, group: str, attribute: str, value: Any) -> "Query":
        """Set ``filter[group][attribute] = value``; last write wins."""
        encoded = encode_value(value, f"$.filter.{group}.{attribute}")
        new_filter = {k: dict(v) for k, v in self.filter.items()}
        new_filter.setdefault(group, {})[attribute] = encoded
        return replace(self, filter=new_filter)

    def with_select(self, *fields: str) -> "Query":
        return replace(self, select=self.select + tuple(fields))

    def with_order(self, field_name: str, direction: Union[Direction, str] = Direction.ASC) -> "Query":
        return replace(self, order_by=self.order_by + (Order(field_name, direction),))

    def with_join(
        self,
        table: str,
        on: str,
        filter: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> "Query":
        return replace(self, joins=self.joins + (Join(table, on, filter or {}),))

    def with_limit(self, limit: int) -> "Query":
        return replace(self, limit=limit)

    def with_offset(self, offset: int) -> "Query":
        return replace(self, offset=offset)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def serialize(self, encoding: Optional[QueryEncoding] = None) -> Dict[str, Any]:
        """Return the structured-value form of this query."""
        enc = encoding or DEFAULT_ENCODING
        out: Dict[str, Any] = {"filter": encode_value(self.filter)}
        if self.select or enc.send_empty_select:
            out["select"] = list(self.select)
        if self.order_by:
            out["order_by"] = [o.to_wire() for o in self.order_by]
        if self.limit or enc.send_zero_limit:
            out["limit"] = self.limit
        if self.offset:
            out["offset"] = self.offset
        if self.joins:
            out["joins"] = [j.to_wire() for j in self.joins]
        return out

    def to_bytes(self, encoding: Optional[QueryEncoding] = None) -> bytes:
        """Canonical JSON bytes; equal queries give identical bytes."""
        return dumps(self.serialize(encoding))

    @classmethod
    def deserialize(cls, value: Any) -> "Query":
        if not isinstance(value, dict):
            raise DecodeError(f"Expected query object, got {type(value).__name__}.")

        raw_filter = value.get("filter") or {}
        select = decode_list(value.get("select") or [], "select")
        order_by = decode_list(value.get("order_by") or [], "order_by")
        joins = decode_list(value.get("joins") or [], "joins")

        try:
            return cls(
                filter=decode_struct(raw_filter, "filter"),
                select=tuple(select),
                order_by=tuple(
                    Order.from_wire(o, f"order_by[{i}]") for i, o in enumerate(order_by)
                ),
                limit=value.get("limit") or 0,
                offset=value.get("offset") or 0,
                joins=tuple(Join.from_wire(j, f"joins[{i}]") for i, j in enumerate(joins)),
            )
        except (ValidationError, EncodingError) as exc:
            raise DecodeError(f"Malformed query: {exc.message}") from exc

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "Query":
        return cls.deserialize(loads(data, "query"))


def new_query() -> Query:
    """Empty query: no filter, all fields, no ordering, no joins, no limit."""
    return Query()


# ---------------------------------------------------------------------------
# Search parameters (operator-qualified filters)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttributeFilter:
    name: str
    value: Any
    operator: Operator = Operator.EQUALS

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValidationError("Filter name must be a non-empty string.")
        object.__setattr__(self, "value", encode_value(self.value, f"$.{self.name}"))
        object.__setattr__(self, "operator", Operator.parse(self.operator))

    def to_wire(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "operator": self.operator.value}

    @classmethod
    def from_wire(cls, raw: Any, path: str) -> "AttributeFilter":
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise DecodeError(f"Filter in '{path}' is missing required field 'name'.")
        try:
            return cls(
                raw["name"],
                decode_value(raw.get("value"), f"{path}.value"),
                raw.get("operator") or Operator.EQUALS,
            )
        except ValidationError as exc:
            raise DecodeError(f"Malformed filter in '{path}': {exc.message}") from exc


class TraitFilter(AttributeFilter):
    """Same shape as :class:`AttributeFilter`, applied to traits."""


@dataclass(frozen=True)
class UserSearchParams:
    user_id: Optional[UserID] = None
    username: str = ""
    attribute_filters: Tuple[AttributeFilter, ...] = ()
    trait_filters: Tuple[TraitFilter, ...] = ()

    def with_attribute(
        self,
        name: str,
        value: Any,
        operator: Union[Operator, str, None] = None,
    ) -> "UserSearchParams":
        item = AttributeFilter(name, value, Operator.parse(operator))
        return replace(self, attribute_filters=tuple(self.attribute_filters) + (item,))

    def with_trait(
        self,
        name: str,
        value: Any,
        operator: Union[Operator, str, None] = None,
    ) -> "UserSearchParams":
        item = TraitFilter(name, value, Operator.parse(operator))
        return replace(self, trait_filters=tuple(self.trait_filters) + (item,))

    def to_wire(self) -> Dict[str, Any]:
        return {
            "user_id": identity_to_wire(self.user_id),
            "username": self.username,
            "attribute_filters": [f.to_wire() for f in self.attribute_filters],
            "trait_filters": [f.to_wire() for f in self.trait_filters],
        }

    @classmethod
    def from_wire(cls, raw: Any) -> "UserSearchParams":
        if not isinstance(raw, dict):
            raise DecodeError(f"Expected user query object, got {type(raw).__name__}.")
        attrs: List[Any] = decode_list(raw.get("attribute_filters") or [], "attribute_filters")
        traits: List[Any] = decode_list(raw.get("trait_filters") or [], "trait_filters")
        return cls(
            user_id=identity_from_wire(raw.get("user_id"), "user_id"),
            username=raw.get("username") or "",
            attribute_filters=tuple(
                AttributeFilter.from_wire(f, f"attribute_filters[{i}]") for i, f in enumerate(attrs)
            ),
            trait_filters=tuple(
                TraitFilter.from_wire(f, f"trait_filters[{i}]") for i, f in enumerate(traits)
            ),
        )


def orders_to_wire(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [o.to_wire() for o in orders]
