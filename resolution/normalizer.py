"""
Attribute canonicalisation and hashing.

Two observations of the same address / contact / bank account must produce
the same hash regardless of key order, letter case, surrounding whitespace
or which optional fields were left blank.
"""
import hashlib
import json
from typing import Any


def normalize(value: Any) -> Any:
    """
    Canonical form of an attribute payload.

      strings  -> trimmed, lower-cased
      mappings -> keys sorted, None / "" leaves pruned, values normalised
      lists    -> elements normalised, then sorted
    """
    if isinstance(value, str):
        return value.strip().lower()
    if isinstance(value, dict):
        out = {}
        for key in sorted(value):
            item = value[key]
            if item is None or (isinstance(item, str) and not item.strip()):
                continue
            out[key] = normalize(item)
        return out
    if isinstance(value, (list, tuple)):
        items = [normalize(v) for v in value]
        return sorted(items, key=_sort_key)
    return value


def _sort_key(item: Any) -> str:
    # Mixed element types cannot be compared directly
    return json.dumps(item, sort_keys=True, default=str)


def canonical_json(value: Any) -> str:
    return json.dumps(normalize(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hash_value(value: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
