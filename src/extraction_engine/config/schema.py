"""
extraction-engine — configuration schema and validation.

File: src/extraction_engine/config/schema.py

Purpose
- Define authoritative extraction defaults and strict validation rules.
- Convert a validated mapping into the frozen ``ExtractionConfig`` tree the walker,
  collectors, and materializers read.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Deterministic deep-merge of partial overlays onto defaults.

Non-functional requirements
- Keep rules deterministic and easy to audit.
- Preserve backwards compatibility through explicit migration messages.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Final, Literal, TypedDict

from extraction_engine.constants import CONFIG_SCHEMA_VERSION, DEFAULT_ROOT_TOKEN
from extraction_engine.domain.paths import RenderOptions

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")
# Upper bound for walker.max_depth; keeps provenance paths and row keys bounded.
MAX_WALK_DEPTH: Final[int] = 512


class MetaConfig(TypedDict):
    schema_version: int


class WalkerSection(TypedDict):
    max_depth: int
    max_nodes: int
    max_observations: int


class RunSection(TypedDict):
    deep_nesting_threshold: int
    max_example_paths: int


class VariableSection(TypedDict):
    max_example_paths: int
    max_distinct_tracking: int
    max_examples: int


class ThresholdsSection(TypedDict):
    many_nulls: float
    high_null_rate: float
    high_occurrence: int
    high_cardinality: int
    large_value_length: int


class PolicySection(TypedDict):
    emit_primitive_arrays: bool


class RenderSection(TypedDict):
    root_token: str
    quote_unsafe_keys: bool


class DiagnosticsSection(TypedDict):
    include_many_nulls: bool


class ObservabilitySection(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]


class ExtractionConfigMapping(TypedDict):
    meta: MetaConfig
    walker: WalkerSection
    run: RunSection
    variable: VariableSection
    thresholds: ThresholdsSection
    policy: PolicySection
    render: RenderSection
    diagnostics: DiagnosticsSection
    observability: ObservabilitySection


DEFAULT_CONFIG: Final[ExtractionConfigMapping] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "walker": {
        "max_depth": 64,
        "max_nodes": 250_000,
        "max_observations": 100_000,
    },
    "run": {
        "deep_nesting_threshold": 8,
        "max_example_paths": 5,
    },
    "variable": {
        "max_example_paths": 3,
        "max_distinct_tracking": 100,
        "max_examples": 5,
    },
    "thresholds": {
        "many_nulls": 0.2,
        "high_null_rate": 0.8,
        "high_occurrence": 10_000,
        "high_cardinality": 100,
        "large_value_length": 5_000,
    },
    "policy": {
        "emit_primitive_arrays": False,
    },
    "render": {
        "root_token": DEFAULT_ROOT_TOKEN,
        "quote_unsafe_keys": True,
    },
    "diagnostics": {
        "include_many_nulls": True,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
    },
}


# ---------------------------------------------------------------------------
# Frozen runtime config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WalkerLimits:
    max_depth: int = 64
    max_nodes: int = 250_000
    max_observations: int = 100_000


@dataclass(frozen=True, slots=True)
class RunSettings:
    deep_nesting_threshold: int = 8
    max_example_paths: int = 5


@dataclass(frozen=True, slots=True)
class VariableSettings:
    max_example_paths: int = 3
    max_distinct_tracking: int = 100
    max_examples: int = 5


@dataclass(frozen=True, slots=True)
class HeuristicThresholds:
    """Variable heuristics; null rates are fractions in ``[0, 1]``."""

    many_nulls: float = 0.2
    high_null_rate: float = 0.8
    high_occurrence: int = 10_000
    high_cardinality: int = 100
    large_value_length: int = 5_000


@dataclass(frozen=True, slots=True)
class PolicySettings:
    emit_primitive_arrays: bool = False


@dataclass(frozen=True, slots=True)
class DiagnosticsSettings:
    include_many_nulls: bool = True


@dataclass(frozen=True, slots=True)
class ObservabilitySettings:
    log_level: str = "INFO"
    log_format: str = "json"


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    walker: WalkerLimits = field(default_factory=WalkerLimits)
    run: RunSettings = field(default_factory=RunSettings)
    variable: VariableSettings = field(default_factory=VariableSettings)
    thresholds: HeuristicThresholds = field(default_factory=HeuristicThresholds)
    policy: PolicySettings = field(default_factory=PolicySettings)
    render: RenderOptions = field(default_factory=RenderOptions)
    diagnostics: DiagnosticsSettings = field(default_factory=DiagnosticsSettings)
    observability: ObservabilitySettings = field(default_factory=ObservabilitySettings)

    def to_mapping(self) -> dict[str, Any]:
        """Mapping form accepted by ``validate_config`` (round-trips through it)."""

        return {
            "meta": {"schema_version": ConfigSchemaVersion},
            "walker": asdict(self.walker),
            "run": asdict(self.run),
            "variable": asdict(self.variable),
            "thresholds": asdict(self.thresholds),
            "policy": asdict(self.policy),
            "render": {
                "root_token": self.render.root_token,
                "quote_unsafe_keys": self.render.quote_unsafe_keys,
            },
            "diagnostics": asdict(self.diagnostics),
            "observability": asdict(self.observability),
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ExtractionConfigMapping:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade the extraction config to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the extraction-engine runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Overlay ``overlay`` onto a copy of ``base`` one section at a time.

    Sections present in both are merged field by field; any other value replaces
    the section wholesale. Neither input is mutated.
    """

    merged: dict[str, Any] = {name: _copy_section(value) for name, value in base.items()}
    for name, update in overlay.items():
        current = merged.get(name)
        if isinstance(update, Mapping) and isinstance(current, dict):
            current.update(_copy_section(update))
        else:
            merged[name] = _copy_section(update)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def build_extraction_config(config: Mapping[str, object]) -> ExtractionConfig:
    """Validate a full mapping and convert it into the frozen runtime tree."""

    valid = assert_valid_config(config)
    render = valid["render"]
    return ExtractionConfig(
        walker=WalkerLimits(**valid["walker"]),
        run=RunSettings(**valid["run"]),
        variable=VariableSettings(**valid["variable"]),
        thresholds=HeuristicThresholds(**valid["thresholds"]),
        policy=PolicySettings(**valid["policy"]),
        render=RenderOptions(
            quote_unsafe_keys=render["quote_unsafe_keys"], root_token=render["root_token"]
        ),
        diagnostics=DiagnosticsSettings(**valid["diagnostics"]),
        observability=ObservabilitySettings(**valid["observability"]),
    )


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators: dict[str, Callable[[dict[str, object], str], dict[str, Any]]] = {
        "meta": lambda section, path: _validate_meta(section, path, issues),
        "walker": lambda section, path: _validate_walker(section, path, issues),
        "run": lambda section, path: _validate_run(section, path, issues),
        "variable": lambda section, path: _validate_variable(section, path, issues),
        "thresholds": lambda section, path: _validate_thresholds(section, path, issues),
        "policy": lambda section, path: _validate_flags(
            section, path, issues, allowed={"emit_primitive_arrays"}
        ),
        "render": lambda section, path: _validate_render(section, path, issues),
        "diagnostics": lambda section, path: _validate_flags(
            section, path, issues, allowed={"include_many_nulls"}
        ),
        "observability": lambda section, path: _validate_observability(section, path, issues),
    }
    _check_fields(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for key in sorted(validators):
        raw = payload.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is None:
            continue
        out[key] = validators[key](section, key)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _check_fields(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_number(
            payload["schema_version"],
            _join(path, "schema_version"),
            issues,
            integer=True,
            minimum=1,
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_walker(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    minimums = {"max_depth": 1, "max_nodes": 1, "max_observations": 1}
    out = _validate_ints(payload, path, issues, minimums=minimums)
    depth = out.get("max_depth")
    if depth is not None and depth > MAX_WALK_DEPTH:
        issues.add(_join(path, "max_depth"), f"must be <= {MAX_WALK_DEPTH}")
        del out["max_depth"]
    return out


def _validate_run(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    minimums = {"deep_nesting_threshold": 0, "max_example_paths": 0}
    return _validate_ints(payload, path, issues, minimums=minimums)


def _validate_variable(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    minimums = {"max_example_paths": 0, "max_distinct_tracking": 0, "max_examples": 0}
    return _validate_ints(payload, path, issues, minimums=minimums)


def _validate_thresholds(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    rates = {"many_nulls", "high_null_rate"}
    minimums = {"high_occurrence": 0, "high_cardinality": 1, "large_value_length": 0}
    allowed = rates | set(minimums)
    _check_fields(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(rates):
        if key in payload:
            parsed = _as_number(
                payload[key], _join(path, key), issues, integer=False, minimum=0.0, maximum=1.0
            )
            if parsed is not None:
                out[key] = parsed
    for key in sorted(minimums):
        if key in payload:
            parsed_int = _as_number(
                payload[key], _join(path, key), issues, integer=True, minimum=minimums[key]
            )
            if parsed_int is not None:
                out[key] = parsed_int
    return out


def _validate_render(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"root_token", "quote_unsafe_keys"}
    _check_fields(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "root_token" in payload:
        parsed = _as_text(payload["root_token"], _join(path, "root_token"), issues)
        if parsed is not None:
            out["root_token"] = parsed
    if "quote_unsafe_keys" in payload:
        flag = _as_bool(payload["quote_unsafe_keys"], _join(path, "quote_unsafe_keys"), issues)
        if flag is not None:
            out["quote_unsafe_keys"] = flag
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format"}
    _check_fields(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = _as_text(
            payload["log_level"], _join(path, "log_level"), issues, choices=LOG_LEVELS
        )
        if level is not None:
            out["log_level"] = level
    if "log_format" in payload:
        fmt = _as_text(
            payload["log_format"], _join(path, "log_format"), issues, choices=LOG_FORMATS
        )
        if fmt is not None:
            out["log_format"] = fmt
    return out


def _validate_ints(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    minimums: Mapping[str, int],
) -> dict[str, Any]:
    allowed = set(minimums)
    _check_fields(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(minimums):
        if key in payload:
            parsed = _as_number(
                payload[key], _join(path, key), issues, integer=True, minimum=minimums[key]
            )
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_flags(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    allowed: set[str],
) -> dict[str, Any]:
    _check_fields(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = _as_bool(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    bad_keys = sorted(type(key).__name__ for key in value if not isinstance(key, str))
    for type_name in bad_keys:
        issues.add(path, f"object key must be string, got {type_name}")
    return {key: item for key, item in value.items() if isinstance(key, str)}


def _as_text(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    choices: tuple[str, ...] | None = None,
) -> str | None:
    """Non-empty stripped string, optionally restricted to ``choices``."""

    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    if choices is not None and parsed not in choices:
        expected = ", ".join(sorted(choices))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_number(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    integer: bool,
    minimum: float | None = None,
    maximum: float | None = None,
) -> int | float | None:
    """Integers stay ``int``; rates are widened to ``float``. ``bool`` is never a number."""

    accepted = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, accepted):
        expected = "integer" if integer else "number"
        issues.add(path, f"expected {expected}, got {type(value).__name__}")
        return None
    parsed: int | float = value if integer else float(value)
    if not integer and not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _check_fields(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    """Report unknown fields first, then missing ones, each in sorted order."""

    for name in sorted(set(payload) - allowed):
        issues.add(_join(path, name), "unknown field")
    for name in sorted(allowed - set(payload)):
        issues.add(_join(path, name), "missing required field")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _copy_section(value: object) -> Any:
    if isinstance(value, Mapping):
        return {name: copy.deepcopy(item) for name, item in value.items()}
    return copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "MAX_WALK_DEPTH",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DiagnosticsSettings",
    "ExtractionConfig",
    "ExtractionConfigMapping",
    "HeuristicThresholds",
    "ObservabilitySettings",
    "PolicySettings",
    "RunSettings",
    "VariableSettings",
    "WalkerLimits",
    "assert_valid_config",
    "build_extraction_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
