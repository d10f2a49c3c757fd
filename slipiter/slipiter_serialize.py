from __future__ import annotations

import json
import collections.abc
from typing import Any

import yaml

from slipiter.slipiter_datatypes import Val, Err, Iterator, Iterable, SlipMap
from slipiter.slipiter_seq import as_seq


# --------------------------
# Helpers
# --------------------------

def _to_builtin(obj: Any) -> Any:
    """Converts host values to plain Python structures.

    Iterable values are drained through `as_seq`, so serializing a lazy
    value consumes it; an infinite producer never finishes.
    """
    if isinstance(obj, Err):
        return {"error": obj.message}
    if isinstance(obj, SlipMap):
        return {_to_builtin(k): _to_builtin(v) for k, v in obj.value().items()}
    if isinstance(obj, (Iterator, Iterable)):
        return [_to_builtin(x) for x in as_seq(obj, lambda v: v)]
    if isinstance(obj, Val):
        return _to_builtin(obj.value())
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, collections.abc.Mapping):
        return {k: _to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (bytes, bytearray)):
        return obj.decode('utf-8', errors='replace')
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


# --------------------------
# Public API
# --------------------------

def serialize(value: Any,
              *,
              fmt: str = "json",
              pretty: bool = True) -> str:
    """
    Convert a host value into a textual representation for inspection.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "serialize",
]
