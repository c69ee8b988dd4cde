"""
Deterministic JSON rendering for quote results and snapshots.

Quotes are compared byte-for-byte across runs and across clients, so output
goes through one encoder with fixed rules. Integers wider than a JSON double
can carry exactly are written as decimal strings.
"""

from __future__ import annotations

import json
from decimal import Decimal
from enum import Enum
from typing import Any


# Largest integer a JSON consumer using IEEE doubles reads back exactly.
MAX_SAFE_INTEGER = (1 << 53) - 1


def _reject_surrogates(s: str) -> None:
    for ch in s:
        o = ord(ch)
        if 0xD800 <= o <= 0xDFFF:
            raise TypeError("surrogate code points are not allowed in canonical encoding")


def to_canonical_value(value: Any) -> Any:
    """
    Map `value` onto the JSON subset the encoder accepts.

    - ints beyond MAX_SAFE_INTEGER become decimal strings
    - Decimals become their plain string form
    - Enums become their name
    - floats are rejected (ambiguous representation)
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            return str(value)
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"non-finite decimal: {value}")
        return format(value, "f")
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, str):
        _reject_surrogates(value)
        return value
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
            _reject_surrogates(k)
            out[k] = to_canonical_value(v)
        return out
    if isinstance(value, (list, tuple)):
        return [to_canonical_value(item) for item in value]
    raise TypeError(f"unsupported type for canonical encoding: {type(value).__name__}")


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    """
    text = json.dumps(
        to_canonical_value(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def canonical_json_text(value: Any) -> str:
    return canonical_json_bytes(value).decode("utf-8")
