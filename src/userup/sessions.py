# Userup Python SDK
# File: sessions.py
# Version: v2

"""Session identifiers and paginated session queries."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import ValidationError
from .identity import UserID, identity_to_wire
from .query import Direction, Order, orders_to_wire
from .wire import timestamp_to_wire


def new_session_id() -> str:
    """Return a random 64-bit token rendered as lower-case hex.

    Collisions are not checked locally. The service enforces key
    uniqueness, so a clash surfaces as a ``RemoteError`` from
    ``add_session``.
    """
    return format(secrets.randbits(64) | (1 << 63), "x")


def _as_orders(order_by: Sequence[Union[Order, Tuple[str, Union[Direction, str]]]]) -> Tuple[Order, ...]:
    orders = []
    for item in order_by:
        if isinstance(item, Order):
            orders.append(item)
        else:
            field_name, direction = item
            orders.append(Order(field_name, direction))
    return tuple(orders)


@dataclass(frozen=True)
class _PageQuery:
    user_id: Optional[UserID] = None
    begin: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: int = 0
    offset: int = 0
    order_by: Tuple[Order, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "order_by", _as_orders(self.order_by))
        for name in ("limit", "offset"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"`{name}` must be a non-negative integer, got {value!r}.")

    def _page_wire(self) -> Dict[str, Any]:
        return {
            "user_id": identity_to_wire(self.user_id),
            "begin": timestamp_to_wire(self.begin),
            "end": timestamp_to_wire(self.end),
            "limit": self.limit,
            "offset": self.offset,
            "order_by": orders_to_wire(self.order_by),
        }


@dataclass(frozen=True)
class SessionQuery(_PageQuery):
    keys: Tuple[str, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        out = self._page_wire()
        out["session_keys"] = list(self.keys)
        return out


@dataclass(frozen=True)
class SessionEventQuery(_PageQuery):
    session_keys: Tuple[str, ...] = ()

    def to_wire(self) -> Dict[str, Any]:
        out = self._page_wire()
        out["session_keys"] = list(self.session_keys)
        return out
