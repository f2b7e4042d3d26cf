from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence, Tuple, Union

from contentstudio.errors import ExtractionError

PathSegment = Union[str, int]
Path = Tuple[PathSegment, ...]


def resolve_path(payload: Any, path: Sequence[PathSegment]) -> Any:
    """Walk ``path`` through nested mappings/lists, returning None on any miss."""
    current = payload
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list) or not -len(current) <= segment < len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(segment)
        if current is None:
            return None
    return current


def first_present(payload: Any, paths: Iterable[Sequence[PathSegment]]) -> Any:
    """Return the first non-empty value found along ``paths``, in order."""
    for path in paths:
        value = resolve_path(payload, path)
        if value not in (None, "", [], {}):
            return value
    return None


def extract_asset(payload: Any, paths: Iterable[Sequence[PathSegment]], provider: str, what: str = "asset URL") -> str:
    value = first_present(payload, paths)
    if not isinstance(value, str):
        raise ExtractionError(f"No {what} in {provider} response", provider=provider)
    return value
