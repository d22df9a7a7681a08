"""Small shared helpers (hashing, canonical JSON)."""

from extraction_engine.utils.hashing import canonical_json, fingerprint, sha256_bytes, sha256_text

__all__ = ["canonical_json", "fingerprint", "sha256_bytes", "sha256_text"]
