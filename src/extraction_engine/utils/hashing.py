"""
extraction-engine — hashing utilities

File: src/extraction_engine/utils/hashing.py

Purpose
- Provide deterministic SHA-256 helpers for bytes, text, and JSON-compatible payloads.
- Fingerprint effective extraction configs so downstream caches can key on them.

Functional requirements
- Canonical JSON uses sorted keys and compact separators so equal payloads hash equally.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import json

__all__ = [
    "canonical_json",
    "fingerprint",
    "sha256_bytes",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def canonical_json(value: object) -> str:
    """Serialize ``value`` with sorted keys and compact separators.

    Raises ``ValueError`` for non-finite floats and ``TypeError`` for values that
    have no JSON representation.
    """

    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def fingerprint(value: object) -> str:
    """Return the SHA-256 digest of the canonical JSON form of ``value``."""

    return sha256_text(canonical_json(value))
