"""
extraction-engine — JSON path model

File: src/extraction_engine/domain/paths.py

Purpose
- Immutable addressing of a location inside a JSON-like tree.
- Two renderings: exact source paths (``trials[3].rt``) and wildcarded variable
  keys (``trials[*].rt``). The variable key is the stable grouping identity of a
  variable; it is a pure function of the key path.

Functional requirements
- Keys that are not simple identifiers render quoted (``["weird.key"]``).
- The root renders to a configurable token (default ``$``).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Final

from extraction_engine.constants import DEFAULT_ROOT_TOKEN, WILDCARD_SEGMENT

_SIMPLE_IDENTIFIER: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


@dataclass(frozen=True, slots=True)
class Key:
    """Object property segment."""

    name: str


@dataclass(frozen=True, slots=True)
class Index:
    """Array element segment."""

    position: int

    def __post_init__(self) -> None:
        if isinstance(self.position, bool) or not isinstance(self.position, int):
            raise ValueError(
                f"index position must be an integer, got {type(self.position).__name__}"
            )
        if self.position < 0:
            raise ValueError("index position must be >= 0")


PathSegment = Key | Index
JsonPath = tuple[PathSegment, ...]
KeyPath = tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Path rendering switches."""

    quote_unsafe_keys: bool = True
    root_token: str = DEFAULT_ROOT_TOKEN


DEFAULT_RENDER_OPTIONS: Final[RenderOptions] = RenderOptions()


def root() -> JsonPath:
    return ()


def key(path: JsonPath, name: str) -> JsonPath:
    return (*path, Key(name))


def index(path: JsonPath, position: int) -> JsonPath:
    return (*path, Index(position))


def parent(path: JsonPath) -> JsonPath | None:
    if not path:
        return None
    return path[:-1]


def depth(path: JsonPath) -> int:
    """Root depth is 0; every segment adds one step."""

    return len(path)


def top_level_key(path: JsonPath) -> str | None:
    """First key segment, when the path starts with one (``trials`` for ``trials[3].rt``)."""

    if path and isinstance(path[0], Key):
        return path[0].name
    return None


def last_key(path: JsonPath) -> str | None:
    """Last key segment anywhere in the path (``rt`` for ``trials[3].rt``)."""

    for segment in reversed(path):
        if isinstance(segment, Key):
            return segment.name
    return None


def starts_with(path: JsonPath, prefix: JsonPath) -> bool:
    """True when ``prefix`` is a segment-wise prefix of ``path``."""

    if len(prefix) > len(path):
        return False
    return path[: len(prefix)] == prefix


def has_array_indices(path: JsonPath) -> bool:
    return any(isinstance(segment, Index) for segment in path)


def to_source_path(path: JsonPath, options: RenderOptions = DEFAULT_RENDER_OPTIONS) -> str:
    """Render the exact provenance path, e.g. ``trials[17].rt`` or ``["weird.key"][0]``."""

    if not path:
        return options.root_token
    return _render(path, options, wildcard=False)


def to_variable_key(path: JsonPath, options: RenderOptions = DEFAULT_RENDER_OPTIONS) -> str:
    """Render the wildcarded grouping key, e.g. ``responses[*].items[*].choice``."""

    if not path:
        return options.root_token
    return _render(path, options, wildcard=True)


def to_key_path(path: JsonPath) -> KeyPath:
    """Breadcrumb of key names with ``*`` markers standing in for array indices."""

    return tuple(
        segment.name if isinstance(segment, Key) else WILDCARD_SEGMENT for segment in path
    )


def key_path_string(key_path: KeyPath) -> str:
    """Unambiguous single-string form of a key path (each segment JSON-encoded)."""

    return ".".join(json.dumps(segment, ensure_ascii=False) for segment in key_path)


def variable_key_from_key_path(
    key_path: KeyPath, options: RenderOptions = DEFAULT_RENDER_OPTIONS
) -> str:
    """Render the variable key for a key path without needing concrete indices."""

    if not key_path:
        return options.root_token
    segments: list[PathSegment] = [
        Index(0) if item == WILDCARD_SEGMENT else Key(item) for item in key_path
    ]
    return _render(tuple(segments), options, wildcard=True)


def is_simple_identifier(name: str) -> bool:
    return bool(_SIMPLE_IDENTIFIER.fullmatch(name))


def _render(path: JsonPath, options: RenderOptions, *, wildcard: bool) -> str:
    parts: list[str] = []
    for segment in path:
        if isinstance(segment, Index):
            parts.append("[*]" if wildcard else f"[{segment.position}]")
            continue
        parts.append(_render_key(segment.name, options, leading=not parts))
    return "".join(parts)


def _render_key(name: str, options: RenderOptions, *, leading: bool) -> str:
    if options.quote_unsafe_keys and not is_simple_identifier(name):
        return f'["{_escape_quoted_key(name)}"]'
    if leading:
        return name
    return f".{name}"


def _escape_quoted_key(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')


__all__ = [
    "DEFAULT_RENDER_OPTIONS",
    "Index",
    "JsonPath",
    "Key",
    "KeyPath",
    "PathSegment",
    "RenderOptions",
    "depth",
    "has_array_indices",
    "index",
    "is_simple_identifier",
    "key",
    "key_path_string",
    "last_key",
    "parent",
    "root",
    "starts_with",
    "to_key_path",
    "to_source_path",
    "to_variable_key",
    "variable_key_from_key_path",
]
