"""
extraction-engine — package root

File: src/extraction_engine/__init__.py

Purpose
- Variable extraction and diagnostics over already-parsed experiment-result payloads.
- Turns arbitrary JSON-like trees into addressable observations, accumulates bounded
  facts while walking, and materializes variables and diagnostics from frozen facts.

Import boundary rules
- No side effects at import time (no config loading, no logging configuration).
- Heavy submodules are imported lazily by callers; only the public entry points
  are re-exported here.
"""

from __future__ import annotations

from extraction_engine.extraction.pipeline import (
    ComponentResult,
    ExtractionBundle,
    ExtractionResult,
    RunExtraction,
    RunInput,
    extract_bundle,
    extract_run,
    extract_value,
)

__version__ = "0.4.0"

__all__ = [
    "ComponentResult",
    "ExtractionBundle",
    "ExtractionResult",
    "RunExtraction",
    "RunInput",
    "__version__",
    "extract_bundle",
    "extract_run",
    "extract_value",
]
