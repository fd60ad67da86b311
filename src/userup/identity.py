# Userup Python SDK
# File: identity.py
# Version: v3

"""User identity as a tagged variant.

A user is identified by exactly one of: a numeric id, a UUID or an
external-system id. ``None`` stands for "not yet assigned".

Wire form is an object with at most one key::

    {"id": 42}            numeric
    {"uuid": "..."}       UUID
    {"external_id": "..."} external
    {}                    absent

so ``UserID.numeric(0)`` (``{"id": 0}``) never collides with an absent id.
"""

from __future__ import annotations

import uuid as _uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import DecodeError, ValidationError

MAX_NUMERIC_ID = 2**64 - 1


class IdentityKind(str, Enum):
    NUMERIC = "numeric"
    UUID = "uuid"
    EXTERNAL = "external"


_WIRE_KEYS = {
    IdentityKind.NUMERIC: "id",
    IdentityKind.UUID: "uuid",
    IdentityKind.EXTERNAL: "external_id",
}


@dataclass(frozen=True)
class UserID:
    """One authoritative identity form for a user."""

    kind: IdentityKind
    value: Union[int, str]

    def __post_init__(self) -> None:
        kind = IdentityKind(self.kind)
        object.__setattr__(self, "kind", kind)

        if kind is IdentityKind.NUMERIC:
            if isinstance(self.value, bool) or not isinstance(self.value, int):
                raise ValidationError(
                    f"Numeric user id must be an int, got {type(self.value).__name__}."
                )
            if not 0 <= self.value <= MAX_NUMERIC_ID:
                raise ValidationError(
                    f"Numeric user id {self.value} is outside the unsigned 64-bit range."
                )
        elif kind is IdentityKind.UUID:
            try:
                normalized = str(_uuid.UUID(str(self.value)))
            except ValueError as exc:
                raise ValidationError(f"Invalid user UUID {self.value!r}.") from exc
            object.__setattr__(self, "value", normalized)
        else:
            if not isinstance(self.value, str) or not self.value:
                raise ValidationError("External user id must be a non-empty string.")

    @classmethod
    def numeric(cls, value: int) -> "UserID":
        return cls(IdentityKind.NUMERIC, value)

    @classmethod
    def uuid(cls, value: Union[str, _uuid.UUID]) -> "UserID":
        return cls(IdentityKind.UUID, str(value))

    @classmethod
    def external(cls, value: str) -> "UserID":
        return cls(IdentityKind.EXTERNAL, value)

    @classmethod
    def parse(cls, text: str) -> "UserID":
        """Parse ``"42"``, ``"numeric:42"``, ``"uuid:..."`` or ``"external:..."``.

        Bare values are numeric when all digits, a UUID when they parse as
        one and an external id otherwise.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("User id must be a non-empty string.")
        text = text.strip()

        prefix, sep, rest = text.partition(":")
        if sep and prefix in {k.value for k in IdentityKind}:
            kind = IdentityKind(prefix)
            if kind is IdentityKind.NUMERIC:
                if not (rest.isascii() and rest.isdigit()):
                    raise ValidationError(f"Invalid numeric user id {rest!r}.")
                return cls.numeric(int(rest))
            return cls(kind, rest)

        if text.isascii() and text.isdigit():
            return cls.numeric(int(text))
        try:
            return cls.uuid(_uuid.UUID(text))
        except ValueError:
            return cls.external(text)

    def to_wire(self) -> Dict[str, Any]:
        return {_WIRE_KEYS[self.kind]: self.value}

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


def identity_to_wire(user_id: Optional[UserID]) -> Dict[str, Any]:
    """Flatten an optional identity into its wire object."""
    if user_id is None:
        return {}
    if not isinstance(user_id, UserID):
        raise ValidationError(
            f"Expected UserID or None, got {type(user_id).__name__}."
        )
    return user_id.to_wire()


def identity_from_wire(raw: Any, field: str = "id") -> Optional[UserID]:
    """Decode a wire identity object.

    A server may fill in several forms on response; the numeric id wins,
    then the UUID, then the external id. Empty values count as absent.
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise DecodeError(
            f"Expected identity object for '{field}', got {type(raw).__name__}."
        )

    try:
        if raw.get("id") is not None:
            return UserID.numeric(raw["id"])
        if raw.get("uuid"):
            return UserID.uuid(raw["uuid"])
        if raw.get("external_id"):
            return UserID.external(raw["external_id"])
    except ValidationError as exc:
        raise DecodeError(f"Malformed identity in '{field}': {exc.message}") from exc

    return None


def require_identity(user_id: Optional[UserID], what: str = "user_id") -> UserID:
    """Fail fast when an operation needs an identity and none was given."""
    if user_id is None:
        raise ValidationError(f"`{what}` is required for this operation.")
    if not isinstance(user_id, UserID):
        raise ValidationError(
            f"`{what}` must be a UserID, got {type(user_id).__name__}."
        )
    return user_id
