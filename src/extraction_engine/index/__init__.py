"""Read-side indices over an immutable observation sequence."""

from extraction_engine.index.store import ExtractionIndexStore

__all__ = ["ExtractionIndexStore"]
