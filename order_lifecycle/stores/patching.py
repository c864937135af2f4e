"""Patch application shared by the bundled document stores.

Implements the write semantics promised by the DocumentStore protocol on
plain dicts: dotted keys address nested fields, SERVER_TIMESTAMP resolves
to the write time, ArrayUnion appends values not already present, and
merge-set deep-merges nested mappings.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Mapping

from order_lifecycle.core.ports.document_store import ArrayUnion, ServerTimestamp


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _resolve(value: Any, current: Any, now: str) -> Any:
    if isinstance(value, ServerTimestamp):
        return now

    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        for item in value.values:
            resolved = _resolve(item, None, now)
            if resolved not in existing:
                existing.append(resolved)
        return existing

    if isinstance(value, Mapping):
        cur = current if isinstance(current, Mapping) else {}
        return {k: _resolve(v, cur.get(k), now) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_resolve(v, None, now) for v in value]

    return copy.deepcopy(value)


def _set_path(doc: dict[str, Any], dotted: str, value: Any, now: str) -> None:
    parts = dotted.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child

    leaf = parts[-1]
    node[leaf] = _resolve(value, node.get(leaf), now)


def apply_update(
    doc: Mapping[str, Any],
    patch: Mapping[str, Any],
    *,
    now: str | None = None,
) -> dict[str, Any]:
    """Return a new document with patch applied (update semantics).

    Top-level keys replace whole fields; dotted keys replace nested fields.
    The input document is not modified.
    """
    ts = now or utc_now_iso()
    result = copy.deepcopy(dict(doc))
    for key, value in patch.items():
        _set_path(result, key, value, ts)
    return result


def _deep_merge(target: dict[str, Any], data: Mapping[str, Any], now: str) -> None:
    for key, value in data.items():
        current = target.get(key)
        if (
            isinstance(value, Mapping)
            and isinstance(current, dict)
        ):
            _deep_merge(current, value, now)
        else:
            target[key] = _resolve(value, current, now)


def apply_set(
    doc: Mapping[str, Any] | None,
    data: Mapping[str, Any],
    *,
    merge: bool,
    now: str | None = None,
) -> dict[str, Any]:
    """Return the document resulting from a set (optionally merged) write."""
    ts = now or utc_now_iso()
    if not merge or doc is None:
        return _resolve(dict(data), None, ts)

    result = copy.deepcopy(dict(doc))
    _deep_merge(result, data, ts)
    return result
