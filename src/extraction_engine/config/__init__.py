"""
extraction-engine config package public API.

File: src/extraction_engine/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from a TOML or YAML file + ``EXTRACTION_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from extraction_engine.config.loader import (
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    load_config_mapping,
)
from extraction_engine.config.schema import (
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ExtractionConfig,
    HeuristicThresholds,
    assert_valid_config,
    build_extraction_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "ExtractionConfig",
    "HeuristicThresholds",
    "assert_valid_config",
    "build_extraction_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_config_mapping",
    "merge_config",
    "validate_config",
]
