"""Conversion between wire-encoded object ids and canonical id strings.

The remote document store speaks MongoDB Extended JSON, where an object id is
sent as ``{"$oid": "<24 hex chars>"}``. Everywhere inside this package ids are
plain strings, and only 24-hex-character strings are trusted as remote ids.
Client-side placeholders (timestamps, UUIDs, ``temp-...`` keys) are never
wrapped on the way out and are dropped whenever a tree is sanitized.

Every function here is pure: it returns a new tree and never mutates input,
so running any of them twice gives the same result as running it once.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

OID_KEY = "$oid"
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_DROP = object()


def is_canonical(value: Any) -> bool:
    """Return True when ``value`` is a 24-hex-character id string."""
    return isinstance(value, str) and OBJECT_ID_PATTERN.fullmatch(value) is not None


def is_wire_id(value: Any) -> bool:
    """Return True for ``{"$oid": "<canonical>"}``."""
    return (
        isinstance(value, dict)
        and isinstance(value.get(OID_KEY), str)
        and is_canonical(value[OID_KEY])
    )


def is_id_key(key: Any) -> bool:
    """Id-bearing keys: ``id``, ``_id`` and anything ending in ``Id``/``Ids``."""
    if not isinstance(key, str):
        return False
    return key in ("id", "_id") or key.endswith("Id") or key.endswith("Ids")


def extract_canonical_id(value: Any) -> Optional[str]:
    """Unwrap an id to a plain string.

    Canonical strings and wire ids yield the inner string. Falsy values yield
    ``None``. Anything else gets a best-effort ``str()`` conversion; the
    caller decides whether the result is trustworthy via :func:`is_canonical`.
    Never raises.
    """
    if value is None or (isinstance(value, (str, int, float)) and not value):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get(OID_KEY), str):
        return value[OID_KEY]
    try:
        return str(value)
    except Exception:  # noqa: BLE001
        return None


def to_wire_id(value: Any) -> Optional[Dict[str, str]]:
    if is_wire_id(value):
        return {OID_KEY: value[OID_KEY]}
    if is_canonical(value):
        return {OID_KEY: value}
    return None


def normalize_tree(data: Any) -> Any:
    """Replace wire-encoded ids with their string form throughout ``data``.

    Values under id keys are unwrapped with :func:`extract_canonical_id`
    (lists element by element); other values are walked recursively. A bare
    wire id found under a non-id key is unwrapped as well.
    """
    if is_wire_id(data):
        return data[OID_KEY]
    if isinstance(data, list):
        return [normalize_tree(item) for item in data]
    if isinstance(data, dict):
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            if is_id_key(key):
                if isinstance(value, list):
                    normalized[key] = [extract_canonical_id(item) for item in value]
                else:
                    normalized[key] = extract_canonical_id(value)
            else:
                normalized[key] = normalize_tree(value)
        return normalized
    return data


def to_wire_tree(data: Any) -> Any:
    """Structural inverse of :func:`normalize_tree`.

    Canonical strings under id keys become ``{"$oid": ...}``; non-canonical
    values are passed through untouched so they are never tagged as remote ids.
    """
    if is_wire_id(data):
        return {OID_KEY: data[OID_KEY]}
    if isinstance(data, list):
        return [to_wire_tree(item) for item in data]
    if isinstance(data, dict):
        extended: Dict[str, Any] = {}
        for key, value in data.items():
            if is_id_key(key):
                if isinstance(value, list):
                    extended[key] = [to_wire_id(item) or item for item in value]
                else:
                    extended[key] = to_wire_id(value) or value
            else:
                extended[key] = to_wire_tree(value)
        return extended
    return data


def sanitize_tree(data: Any) -> Any:
    """Normalize ``data`` and drop every id that is not canonical.

    Single-valued id fields holding a stale placeholder are removed from their
    object; ``None`` is kept. ``...Ids`` lists keep only their canonical
    entries.
    """
    return _strip_stale(normalize_tree(data), path="$")


def _strip_stale(data: Any, path: str) -> Any:
    if isinstance(data, list):
        return [_strip_stale(item, f"{path}[{index}]") for index, item in enumerate(data)]
    if not isinstance(data, dict):
        return data
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        location = f"{path}.{key}"
        if is_id_key(key):
            kept = _clean_id_value(value, location)
            if kept is _DROP:
                continue
            cleaned[key] = kept
        else:
            cleaned[key] = _strip_stale(value, location)
    return cleaned


def _clean_id_value(value: Any, location: str) -> Any:
    if value is None:
        return None
    if isinstance(value, list):
        kept: List[str] = []
        for item in value:
            if is_canonical(item):
                kept.append(item)
            else:
                logger.debug("Dropping stale id %r at %s", item, location)
        return kept
    if is_canonical(value):
        return value
    logger.debug("Dropping stale id %r at %s", value, location)
    return _DROP


__all__ = [
    "OBJECT_ID_PATTERN",
    "OID_KEY",
    "extract_canonical_id",
    "is_canonical",
    "is_id_key",
    "is_wire_id",
    "normalize_tree",
    "sanitize_tree",
    "to_wire_id",
    "to_wire_tree",
]
