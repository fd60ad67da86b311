# Userup Python SDK
# File: values.py
# Version: v3

"""Structured-value encoding shared by attribute bags and serialized queries.

A structured value is a JSON-like tree: ``None``, ``bool``, ``int``,
finite ``float``, ``str``, lists and string-keyed dicts. Anything else is
rejected with :class:`EncodingError` on the way out and with
:class:`DecodeError` on the way in.

The encoder always returns a fresh copy, so the result never aliases the
caller's containers.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from .errors import DecodeError, EncodingError


def encode_value(value: Any, path: str = "$") -> Any:
    """Validate ``value`` and return a JSON-compatible deep copy."""
    return _encode(value, path, set())


def encode_struct(mapping: Optional[Mapping[str, Any]], path: str = "$") -> Dict[str, Any]:
    """Encode a string-keyed mapping. ``None`` encodes to an empty object."""
    if mapping is None:
        return {}
    if not isinstance(mapping, Mapping):
        raise EncodingError(
            f"Expected a mapping at {path}, got {type(mapping).__name__}."
        )
    return _encode(mapping, path, set())


def _encode(value: Any, path: str, seen: set[int]) -> Any:
    # bool must be checked before int: bool is an int subclass.
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        return int(value)

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise EncodingError(f"Non-finite number at {path} is not representable.")
        return float(value)

    if isinstance(value, Mapping):
        marker = id(value)
        if marker in seen:
            raise EncodingError(f"Cyclic reference at {path}.")
        seen.add(marker)
        out: Dict[str, Any] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise EncodingError(
                    f"Object keys must be strings; got {type(k).__name__} at {path}."
                )
            out[k] = _encode(v, f"{path}.{k}", seen)
        seen.discard(marker)
        return out

    if isinstance(value, (list, tuple)):
        marker = id(value)
        if marker in seen:
            raise EncodingError(f"Cyclic reference at {path}.")
        seen.add(marker)
        items = [_encode(v, f"{path}[{i}]", seen) for i, v in enumerate(value)]
        seen.discard(marker)
        return items

    raise EncodingError(
        f"Value of type {type(value).__name__} at {path} is not representable "
        "as a structured value."
    )


def decode_value(raw: Any, field: str) -> Any:
    """Validate a structured value received from the wire."""
    try:
        return _encode(raw, field, set())
    except EncodingError as exc:
        raise DecodeError(f"Malformed structured value in '{field}': {exc.message}") from exc


def decode_struct(raw: Any, field: str) -> Dict[str, Any]:
    """Validate a structured object received from the wire."""
    if not isinstance(raw, dict):
        raise DecodeError(
            f"Expected object for '{field}', got {type(raw).__name__}."
        )
    return decode_value(raw, field)


def decode_list(raw: Any, field: str) -> List[Any]:
    """Validate a wire array (elements are checked by the caller)."""
    if not isinstance(raw, list):
        raise DecodeError(
            f"Expected array for '{field}', got {type(raw).__name__}."
        )
    return raw


def dumps(value: Any) -> bytes:
    """Canonical JSON bytes: sorted keys, compact separators."""
    encoded = encode_value(value)
    return json.dumps(
        encoded, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def loads(data: bytes | str, field: str = "$") -> Any:
    """Parse JSON bytes into a validated structured value."""
    try:
        raw = json.loads(data)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"Invalid JSON in '{field}': {exc}") from exc
    return decode_value(raw, field)
