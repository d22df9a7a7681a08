"""Stable constants shared across the extraction, facts, and diagnostics layers."""

from __future__ import annotations

from typing import Final

# Schema version for persisted extraction config payloads.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Path rendering.
DEFAULT_ROOT_TOKEN: Final[str] = "$"
WILDCARD_SEGMENT: Final[str] = "*"

# Join key for observations that are not scoped by any array element.
ROOT_ROW_KEY_ID: Final[str] = "root"

# Variable display names.
VARIABLE_NAME_SEPARATOR: Final[str] = " › "

# Component formats understood by the run pipeline.
FORMAT_JSON: Final[str] = "json"
FORMAT_CSV: Final[str] = "csv"
FORMAT_TSV: Final[str] = "tsv"
FORMAT_TEXT: Final[str] = "text"
TABULAR_FORMATS: Final[frozenset[str]] = frozenset({FORMAT_CSV, FORMAT_TSV})
TABULAR_ROWS_KEY: Final[str] = "rows"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_ROOT_TOKEN",
    "FORMAT_CSV",
    "FORMAT_JSON",
    "FORMAT_TEXT",
    "FORMAT_TSV",
    "ROOT_ROW_KEY_ID",
    "TABULAR_FORMATS",
    "TABULAR_ROWS_KEY",
    "VARIABLE_NAME_SEPARATOR",
    "WILDCARD_SEGMENT",
]
