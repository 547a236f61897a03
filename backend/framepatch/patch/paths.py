"""Slash-path resolution into a node's layout/style/props mappings.

Paths look like ``/layout/position/x``. Segments use JSON-pointer escaping
(``~1`` for ``/``, ``~0`` for ``~``). Updates are copy-on-write along the path
only, so untouched branches are shared between the old and new node.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from framepatch.errors import ValidationError

NODE_ROOTS = ("layout", "style", "props")

_MISSING = object()


def split_path(path: str) -> list[str]:
    segments = [s for s in path.strip().split("/") if s != ""]
    if not segments:
        raise ValidationError(f"Empty property path {path!r}")
    return [s.replace("~1", "/").replace("~0", "~") for s in segments]


def split_node_path(path: str) -> tuple[str, list[str]]:
    """Split a node property path into its root mapping name and the rest."""
    segments = split_path(path)
    root, rest = segments[0], segments[1:]
    if root not in NODE_ROOTS:
        raise ValidationError(
            f"Path {path!r} must start with one of {', '.join(NODE_ROOTS)}"
        )
    if not rest:
        raise ValidationError(f"Path {path!r} addresses a whole {root} mapping")
    return root, rest


def get_in(data: Mapping[str, Any], segments: list[str], path: str) -> Any:
    """Return the value at ``segments``, or ``_MISSING`` when only the last key is absent."""
    current: Any = data
    for depth, segment in enumerate(segments):
        if not isinstance(current, Mapping):
            raise ValidationError(f"Path {path!r}: {'/'.join(segments[:depth])!r} is not a mapping")
        if segment not in current:
            if depth == len(segments) - 1:
                return _MISSING
            raise ValidationError(f"Path {path!r}: segment {segment!r} does not exist")
        current = current[segment]
    return current


def set_in(data: Mapping[str, Any], segments: list[str], value: Any, path: str) -> dict[str, Any]:
    head, rest = segments[0], segments[1:]
    updated = dict(data)
    if not rest:
        updated[head] = value
        return updated
    child = data.get(head, _MISSING)
    if child is _MISSING:
        raise ValidationError(f"Path {path!r}: segment {head!r} does not exist")
    if not isinstance(child, Mapping):
        raise ValidationError(f"Path {path!r}: {head!r} is not a mapping")
    updated[head] = set_in(child, rest, value, path)
    return updated


def delete_in(data: Mapping[str, Any], segments: list[str], path: str) -> dict[str, Any]:
    head, rest = segments[0], segments[1:]
    if head not in data:
        raise ValidationError(f"Path {path!r}: segment {head!r} does not exist")
    updated = dict(data)
    if not rest:
        del updated[head]
        return updated
    child = data[head]
    if not isinstance(child, Mapping):
        raise ValidationError(f"Path {path!r}: {head!r} is not a mapping")
    updated[head] = delete_in(child, rest, path)
    return updated


def is_missing(value: Any) -> bool:
    return value is _MISSING


def join_path(segments: list[str]) -> str:
    return "/" + "/".join(s.replace("~", "~0").replace("/", "~1") for s in segments)


def normalize_path(path: str) -> str:
    return join_path(split_path(path))
