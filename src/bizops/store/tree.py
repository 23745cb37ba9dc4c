"""JSON tree helpers shared by the in-memory store and the REST stream mirror.

The realtime store is one JSON tree addressed by slash-separated paths.
Like the hosted database, empty objects and nulls are not kept: writing
``None`` or ``{}`` at a path deletes it, and parents left empty are pruned.
"""

from __future__ import annotations

import copy
from typing import Any


def split_path(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


def _normalize(value: Any) -> Any:
    """Drop nulls and empty containers recursively. Lists become sparse-free."""
    if isinstance(value, dict):
        cleaned = {k: _normalize(v) for k, v in value.items()}
        cleaned = {k: v for k, v in cleaned.items() if v is not None}
        return cleaned or None
    if isinstance(value, list):
        cleaned_list = [_normalize(v) for v in value]
        cleaned_list = [v for v in cleaned_list if v is not None]
        return cleaned_list or None
    return value


def get_at(root: dict[str, Any], path: str) -> Any:
    """Deep copy of the value at ``path`` or None."""
    node: Any = root
    for part in split_path(path):
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            return None
    return copy.deepcopy(node)


def set_at(root: dict[str, Any], path: str, value: Any) -> None:
    """Replace the value at ``path`` in place (None deletes)."""
    parts = split_path(path)
    value = _normalize(copy.deepcopy(value))
    if not parts:
        root.clear()
        if isinstance(value, dict):
            root.update(value)
        return

    trail: list[tuple[dict[str, Any], str]] = []
    node = root
    for part in parts[:-1]:
        child = node.get(part)
        if isinstance(child, list):
            # A stored list addressed by child key is promoted to a mapping.
            child = {str(i): v for i, v in enumerate(child)}
            node[part] = child
        elif not isinstance(child, dict):
            if value is None:
                return
            child = {}
            node[part] = child
        trail.append((node, part))
        node = child

    leaf = parts[-1]
    if value is None:
        node.pop(leaf, None)
    else:
        node[leaf] = value

    for parent, key in reversed(trail):
        if not parent[key]:
            del parent[key]
        else:
            break


def merge_at(root: dict[str, Any], path: str, fields: dict[str, Any]) -> None:
    """Write each field as a child of ``path``; untouched children are kept."""
    base = "/".join(split_path(path))
    for key, value in fields.items():
        child = f"{base}/{key}" if base else key
        set_at(root, child, value)


def overlaps(subscribed: str, written: str) -> bool:
    """True when a write at ``written`` can change the value at ``subscribed``."""
    a, b = split_path(subscribed), split_path(written)
    shortest = min(len(a), len(b))
    return a[:shortest] == b[:shortest]
