"""
extraction-engine — runtime config loader.

File: src/extraction_engine/config/loader.py

Purpose
- Load effective extraction config from defaults, a TOML/YAML file, env vars, and
  caller overrides.

Functional requirements
- Precedence: overrides > env (``EXTRACTION_<SECTION>_<FIELD>``) > file > defaults.
- ``.toml`` files load via ``tomllib``; ``.yaml``/``.yml`` via PyYAML ``safe_load``.
- Env values are coerced to the type of the field they replace.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from extraction_engine.config.schema import (
    ExtractionConfig,
    assert_valid_config,
    build_extraction_config,
    default_config,
    merge_config,
)

ENV_PREFIX: Final[str] = "EXTRACTION_"
YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config_mapping(
    config_path: str | Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load the effective, validated config mapping: overrides > env > file > defaults."""

    env_map = dict(os.environ if environ is None else environ)
    file_payload: dict[str, Any] = {}
    if config_path is not None:
        file_payload = _load_file(Path(config_path).expanduser().resolve())

    merged = merge_config(default_config(), file_payload)
    merged = assert_valid_config(merged)

    env_overrides = _collect_env_overrides(merged, env_map)
    override_payload = _materialize_overrides(dict(overrides or {}))

    merged = merge_config(merged, env_overrides)
    merged = merge_config(merged, override_payload)
    return assert_valid_config(merged)


def load_config(
    config_path: str | Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ExtractionConfig:
    """Load and convert the effective config into the frozen runtime tree."""

    return build_extraction_config(
        load_config_mapping(config_path, overrides=overrides, environ=environ)
    )


def dump_effective_config(config: Mapping[str, object] | ExtractionConfig) -> str:
    """Return deterministic JSON dump of the effective config."""

    payload = config.to_mapping() if isinstance(config, ExtractionConfig) else dict(config)
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _load_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigLoadError(f"config file not found: {path}")
    if path.suffix.lower() in YAML_SUFFIXES:
        parsed = _load_yaml_file(path)
    else:
        parsed = _load_toml_file(path)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be an object: {path}")
    return parsed


def _load_toml_file(path: Path) -> object:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Read ``EXTRACTION_<SECTION>_<FIELD>`` for every scalar field except ``meta``.

    The target type is taken from the field's current value, so env strings are
    coerced the same way regardless of where the base value came from.
    """

    overrides: dict[str, Any] = {}
    for section in sorted(config):
        if section == "meta":
            continue
        fields = config[section]
        if not isinstance(fields, Mapping):
            continue
        for field_name in sorted(fields):
            env_name = f"{ENV_PREFIX}{section.upper()}_{field_name.upper()}"
            raw = environ.get(env_name)
            if raw is None:
                continue
            target = f"{section}.{field_name}"
            overrides.setdefault(section, {})[field_name] = _coerce_env(
                raw, fields[field_name], env_name, target
            )
    return overrides


def _coerce_env(raw: str, current: object, env_name: str, target: str) -> object:
    value = raw.strip()
    if isinstance(current, bool):
        lowered = value.lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
        raise ConfigLoadError(
            f"{env_name} -> {target} must be a boolean (true/false/1/0/yes/no/on/off)"
        )
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {target} must be an integer") from exc
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {target} must be a number") from exc
    return value


def _materialize_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    """Accept ``section.field`` keys or whole section mappings."""

    payload: dict[str, Any] = {}
    for key in sorted(overrides):
        value = overrides[key]
        section, dot, field_name = key.partition(".")
        if not dot:
            payload = merge_config(payload, {key: value})
            continue
        if not section or not field_name or "." in field_name:
            raise ConfigLoadError(f"invalid override key {key!r}; expected 'section.field'")
        payload = merge_config(payload, {section: {field_name: value}})
    return payload


__all__ = [
    "ConfigLoadError",
    "ENV_PREFIX",
    "YAML_SUFFIXES",
    "dump_effective_config",
    "load_config",
    "load_config_mapping",
]
