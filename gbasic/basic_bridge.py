"""
Bridge between runtime values and JSON.

`to_json` and `from_json` are total: they never raise. Values that JSON
cannot carry degrade to a tagged string so that keyword implementations can
always call the bridge safely. `dumps`/`loads` add the text layer for
keywords that talk to external services.
"""

from __future__ import annotations

import collections.abc
import json
import math
from typing import Any, Optional

from gbasic.basic_errors import KeywordError

OPAQUE_PREFIX = "<opaque:"


def _opaque(value: Any) -> str:
    return f"{OPAQUE_PREFIX}{type(value).__name__}>"


def to_json(value: Any) -> Any:
    """Convert a runtime value into a JSON value tree (json.dumps-ready)."""
    return _to_json(value, set())


def _to_json(value: Any, active: set) -> Any:
    match value:
        case None:
            return None
        case bool():
            return value
        case int():
            return int(value)
        case float():
            # JSON has no NaN/Infinity
            return value if math.isfinite(value) else None
        case str():
            return str(value)

    # Containers: guard against cycles built from Python, never from scripts
    if isinstance(value, (list, tuple, collections.abc.Mapping)):
        if id(value) in active:
            return f"{OPAQUE_PREFIX}cycle>"
        active.add(id(value))
        try:
            if isinstance(value, collections.abc.Mapping):
                return {str(k): _to_json(v, active) for k, v in value.items()}
            return [_to_json(v, active) for v in value]
        finally:
            active.discard(id(value))
    return _opaque(value)


def from_json(value: Any) -> Any:
    """Convert a JSON value tree into a runtime value."""
    match value:
        case None:
            return None
        case bool():
            return value
        case int():
            return int(value)
        case float():
            return value if math.isfinite(value) else None
        case str():
            return str(value)
        case list() | tuple():
            return [from_json(v) for v in value]
        case collections.abc.Mapping():
            return {str(k): from_json(v) for k, v in value.items()}
        case _:
            return _opaque(value)


def dumps(value: Any, *, pretty: bool = False) -> str:
    """Serialize a runtime value to JSON text."""
    return json.dumps(to_json(value), ensure_ascii=False, indent=2 if pretty else None)


def loads(text: str | bytes | bytearray, *, encoding: Optional[str] = None) -> Any:
    """Parse JSON text into a runtime value. Raises KeywordError on bad input."""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode(encoding or "utf-8", errors="replace")
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        raise KeywordError(f"Invalid JSON: {e}") from e
    return from_json(parsed)


__all__ = [
    "to_json",
    "from_json",
    "dumps",
    "loads",
]
