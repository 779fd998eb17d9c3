"""Dot-path lookups into loosely structured match payloads.

Binding paths are typed in by overlay authors and are not validated against
any provider schema, so every helper here is total: a path that does not
match the payload simply yields ``None``.
"""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional, Sequence

from .entities import ComponentBinding

_INDEX_PATTERN = re.compile(r"-?[0-9]+", re.ASCII)


def split_path(path: Any) -> List[str]:
    if not isinstance(path, str):
        return []
    text = path.strip()
    if not text:
        return []
    return text.split(".")


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        segment = segment.strip()
        if _INDEX_PATTERN.fullmatch(segment):
            index = int(segment)
            if -len(current) <= index < len(current):
                return current[index]
    return None


def resolve_path(payload: Any, path: Any) -> Any:
    """Walk ``path`` into ``payload`` returning ``None`` on the first miss."""
    segments = split_path(path)
    if not segments:
        return None

    current = payload
    for segment in segments:
        if current is None:
            return None
        current = _step(current, segment)
    return current


def resolve_binding(
    binding: Optional[ComponentBinding],
    live_data: Mapping[str, Any],
) -> Any:
    if binding is None:
        return None
    payload = live_data.get(binding.connection_id)
    if payload is None:
        return None
    return resolve_path(payload, binding.data_path)


__all__ = ["resolve_binding", "resolve_path", "split_path"]
