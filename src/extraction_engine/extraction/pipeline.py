"""
extraction-engine — run and bundle pipeline

File: src/extraction_engine/extraction/pipeline.py

Purpose
- Drive extraction end to end: a single payload (``extract_value``), one run
  made of components (``extract_run``), or several independent runs merged
  into one bundle (``extract_bundle``).

Functional requirements
- Component failures (no data, parse error, unsupported format) produce exactly
  one component diagnostic and the component is never walked; the rest of the
  run proceeds.
- Every component of a run shares one ``WalkContext``, so caps are run-wide.
- Facts are frozen once per run before any diagnostics or variables are built.
- Runs are extracted independently and only merged afterwards.

Non-functional requirements
- Log events are emitted at run boundaries and component rejections only.
- Output is deterministic for identical inputs and config.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from extraction_engine.aggregation.cross_run import (
    merge_component_facts,
    merge_run_facts,
    merge_variable_facts,
)
from extraction_engine.aggregation.variables import aggregate_variables
from extraction_engine.config.schema import ExtractionConfig
from extraction_engine.constants import (
    FORMAT_JSON,
    FORMAT_TEXT,
    TABULAR_FORMATS,
    TABULAR_ROWS_KEY,
)
from extraction_engine.diagnostics.component import materialize_component_diagnostics
from extraction_engine.diagnostics.cross_run import (
    CrossRunDiagnostics,
    materialize_cross_run_diagnostics,
)
from extraction_engine.diagnostics.run import materialize_run_diagnostics
from extraction_engine.domain.models import (
    ComponentId,
    Diagnostic,
    DiagnosticCode,
    ExtractedVariable,
    ExtractionStats,
    JSONValue,
    Observation,
    ScopeKeys,
)
from extraction_engine.extraction.walker import WalkContext, walk
from extraction_engine.facts.component import ComponentFacts, ComponentFactsCollector, FormatError
from extraction_engine.facts.freeze import (
    freeze_component_facts,
    freeze_run_facts,
    freeze_variable_facts,
)
from extraction_engine.facts.run import RunFacts
from extraction_engine.facts.variable import VariableFacts
from extraction_engine.index.store import ExtractionIndexStore
from extraction_engine.observability.logging import correlation_scope
from extraction_engine.utils.hashing import fingerprint

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ComponentResult:
    """One already-parsed component payload of a run."""

    component_id: ComponentId
    parsed_data: object = None
    data_content: str | bytes | None = None
    detected_format: str | None = FORMAT_JSON
    parse_error: str | None = None

    @property
    def has_parsed_data(self) -> bool:
        return self.parsed_data is not None

    @property
    def has_data_content(self) -> bool:
        return bool(self.data_content)


@dataclass(frozen=True, slots=True)
class RunInput:
    run_id: str
    components: tuple[ComponentResult, ...] = ()
    worker_id: str | None = None
    batch_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.run_id, str) or not self.run_id:
            raise ValueError("run_id must be a non-empty string")
        object.__setattr__(self, "components", tuple(self.components))


@dataclass(frozen=True, slots=True)
class PreparedComponent:
    """Either walkable ``data`` or the ``error`` that rejects the component."""

    data: object = None
    error: FormatError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def prepare_component_data(detected_format: str | None, parsed_data: object) -> PreparedComponent:
    """Shape parsed component data for walking according to its detected format.

    Tabular rows are wrapped as ``{"rows": [...]}`` so that every column becomes
    ``rows[*].<column>``; input already shaped that way is accepted as-is.
    """

    if detected_format in TABULAR_FORMATS:
        return _prepare_tabular(parsed_data)
    if detected_format == FORMAT_JSON:
        if parsed_data is None:
            return PreparedComponent(
                error=FormatError(DiagnosticCode.EMPTY_OR_NO_DATA, "JSON data is null or undefined")
            )
        return PreparedComponent(data=parsed_data)
    if detected_format == FORMAT_TEXT:
        return PreparedComponent(
            error=FormatError(
                DiagnosticCode.TEXT_FORMAT_NOT_SUPPORTED,
                "Text format data cannot be processed for variable extraction"
                " - data is unstructured",
            )
        )
    return PreparedComponent(
        error=FormatError(
            DiagnosticCode.UNKNOWN_FORMAT, f"Unknown format: {detected_format or 'undefined'}"
        )
    )


def _prepare_tabular(parsed_data: object) -> PreparedComponent:
    rows: object = parsed_data
    if isinstance(parsed_data, Mapping) and set(parsed_data) == {TABULAR_ROWS_KEY}:
        rows = parsed_data[TABULAR_ROWS_KEY]
    if not isinstance(rows, list | tuple):
        return PreparedComponent(
            error=FormatError(
                DiagnosticCode.UNKNOWN_FORMAT, "CSV/TSV data is not an array after parsing"
            )
        )
    if not all(isinstance(row, Mapping) for row in rows):
        return PreparedComponent(
            error=FormatError(DiagnosticCode.UNKNOWN_FORMAT, "CSV/TSV rows must be objects")
        )
    if not rows or not any(rows):
        return PreparedComponent(
            error=FormatError(
                DiagnosticCode.EMPTY_OR_NO_DATA, "CSV/TSV data is empty, invalid, or has no columns"
            )
        )
    return PreparedComponent(data={TABULAR_ROWS_KEY: list(rows)})


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Result of extracting a single payload."""

    observations: tuple[Observation, ...]
    variable_facts: VariableFacts
    run_facts: RunFacts
    diagnostics: tuple[Diagnostic, ...]
    stats: ExtractionStats
    variables: tuple[ExtractedVariable, ...]

    def index(self) -> ExtractionIndexStore:
        return ExtractionIndexStore(self.observations)


@dataclass(frozen=True, slots=True)
class RunExtraction:
    run_id: str
    observations: tuple[Observation, ...]
    variable_facts: VariableFacts
    run_facts: RunFacts
    component_facts: ComponentFacts
    run_diagnostics: tuple[Diagnostic, ...]
    component_diagnostics: Mapping[ComponentId, tuple[Diagnostic, ...]]
    stats: ExtractionStats
    variables: tuple[ExtractedVariable, ...]

    @property
    def was_truncated(self) -> bool:
        return self.run_facts.was_truncated

    def index(self) -> ExtractionIndexStore:
        return ExtractionIndexStore(self.observations)


@dataclass(frozen=True, slots=True)
class ExtractionBundle:
    """Independently extracted runs plus their merged, bundle-wide view."""

    runs: tuple[RunExtraction, ...]
    observations: tuple[Observation, ...]
    variable_facts: VariableFacts
    run_facts: RunFacts
    component_facts: ComponentFacts
    variables: tuple[ExtractedVariable, ...]
    run_diagnostics: tuple[Diagnostic, ...]
    component_diagnostics: Mapping[ComponentId, tuple[Diagnostic, ...]]
    cross_run: CrossRunDiagnostics | None
    stats: ExtractionStats
    config_fingerprint: str
    run_ids: tuple[str, ...] = field(default=())

    def index(self) -> ExtractionIndexStore:
        return ExtractionIndexStore(self.observations)

    def diagnostics_payload(self) -> dict[str, JSONValue]:
        return {
            "run": [diagnostic.to_dict() for diagnostic in self.run_diagnostics],
            "component": {
                str(component_id): [diagnostic.to_dict() for diagnostic in items]
                for component_id, items in self.component_diagnostics.items()
            },
            "cross_run": self.cross_run.to_dict() if self.cross_run is not None else None,
        }


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def extract_value(
    value: object,
    scope_keys: ScopeKeys,
    config: ExtractionConfig | None = None,
    *,
    diagnostics: bool = True,
) -> ExtractionResult:
    """Extract one already-parsed payload with its own collectors."""

    config = config if config is not None else ExtractionConfig()
    context = WalkContext.for_run(config, diagnostics=diagnostics)
    result = walk(value, scope_keys, context)

    variable_facts = freeze_variable_facts(context.variable_facts.entries)
    run_facts = freeze_run_facts(context.run_facts.facts)
    run_diagnostics = materialize_run_diagnostics(run_facts) if diagnostics else []
    variables = aggregate_variables(
        result.observations, variable_facts, config, include_diagnostics=diagnostics
    )
    return ExtractionResult(
        observations=result.observations,
        variable_facts=variable_facts,
        run_facts=run_facts,
        diagnostics=tuple(run_diagnostics),
        stats=context.stats.snapshot(),
        variables=tuple(variables),
    )


def extract_run(
    run: RunInput,
    config: ExtractionConfig | None = None,
    *,
    diagnostics: bool = True,
    allow_variable_keys: Collection[str] | None = None,
) -> RunExtraction:
    """Extract every component of one run into a single set of frozen facts."""

    config = config if config is not None else ExtractionConfig()
    context = WalkContext.for_run(
        config, diagnostics=diagnostics, allow_variable_keys=allow_variable_keys
    )
    components = ComponentFactsCollector()
    observations: list[Observation] = []

    with correlation_scope(run_id=run.run_id, worker_id=run.worker_id, batch_id=run.batch_id):
        logger.info("extraction_run_started", component_count=len(run.components))
        for component in run.components:
            with correlation_scope(component_id=component.component_id):
                data = _admit_component(component, components)
                if data is None:
                    continue
                scope_keys = ScopeKeys(
                    component_id=component.component_id,
                    run_id=run.run_id,
                    worker_id=run.worker_id,
                    batch_id=run.batch_id,
                )
                observations.extend(walk(data.data, scope_keys, context).observations)

        variable_facts = freeze_variable_facts(context.variable_facts.entries)
        run_facts = freeze_run_facts(context.run_facts.facts)
        component_facts = freeze_component_facts(components.entries)
        stats = context.stats.snapshot()
        logger.info(
            "extraction_run_completed",
            observation_count=stats.observation_count,
            node_count=stats.node_count,
            max_depth=stats.max_depth,
            variable_count=len(variable_facts),
            truncated=run_facts.was_truncated,
        )

    run_diagnostics = materialize_run_diagnostics(run_facts) if diagnostics else []
    component_diagnostics = (
        materialize_component_diagnostics(component_facts) if diagnostics else {}
    )
    variables = aggregate_variables(
        observations, variable_facts, config, include_diagnostics=diagnostics
    )
    return RunExtraction(
        run_id=run.run_id,
        observations=tuple(observations),
        variable_facts=variable_facts,
        run_facts=run_facts,
        component_facts=component_facts,
        run_diagnostics=tuple(run_diagnostics),
        component_diagnostics={
            component_id: tuple(items) for component_id, items in component_diagnostics.items()
        },
        stats=stats,
        variables=tuple(variables),
    )


def extract_bundle(
    runs: Iterable[RunInput],
    config: ExtractionConfig | None = None,
    *,
    diagnostics: bool = True,
    allow_variable_keys: Collection[str] | None = None,
) -> ExtractionBundle:
    """Extract each run independently, then merge facts and compare runs."""

    config = config if config is not None else ExtractionConfig()
    run_inputs = list(runs)
    run_ids = [run.run_id for run in run_inputs]
    duplicates = sorted({run_id for run_id in run_ids if run_ids.count(run_id) > 1})
    if duplicates:
        raise ValueError(f"duplicate run ids: {', '.join(duplicates)}")

    extracted = [
        extract_run(
            run, config, diagnostics=diagnostics, allow_variable_keys=allow_variable_keys
        )
        for run in run_inputs
    ]

    run_facts = merge_run_facts(
        (run.run_facts for run in extracted), max_example_paths=config.run.max_example_paths
    )
    component_facts = merge_component_facts(run.component_facts for run in extracted)
    variable_facts = merge_variable_facts(
        (run.variable_facts for run in extracted),
        max_example_paths=config.variable.max_example_paths,
        max_distinct_tracking=config.variable.max_distinct_tracking,
    )

    cross_run: CrossRunDiagnostics | None = None
    if diagnostics:
        cross_run = materialize_cross_run_diagnostics(
            {run.run_id: run.run_facts for run in extracted},
            {run.run_id: run.component_facts for run in extracted},
            {run.run_id: run.variable_facts for run in extracted},
        )

    observations = tuple(
        observation for run in extracted for observation in run.observations
    )
    variables = aggregate_variables(
        observations,
        variable_facts,
        config,
        include_diagnostics=diagnostics,
        extra_diagnostics=cross_run.variable if cross_run is not None else None,
    )
    component_diagnostics = (
        materialize_component_diagnostics(component_facts) if diagnostics else {}
    )
    bundle = ExtractionBundle(
        runs=tuple(extracted),
        observations=observations,
        variable_facts=variable_facts,
        run_facts=run_facts,
        component_facts=component_facts,
        variables=tuple(variables),
        run_diagnostics=tuple(materialize_run_diagnostics(run_facts) if diagnostics else ()),
        component_diagnostics={
            component_id: tuple(items) for component_id, items in component_diagnostics.items()
        },
        cross_run=cross_run,
        stats=_sum_stats(run.stats for run in extracted),
        config_fingerprint=fingerprint(config.to_mapping()),
        run_ids=tuple(run_ids),
    )
    logger.info(
        "extraction_bundle_completed",
        run_count=len(extracted),
        observation_count=bundle.stats.observation_count,
        variable_count=len(bundle.variables),
        config_fingerprint=bundle.config_fingerprint,
    )
    return bundle


def _admit_component(
    component: ComponentResult, components: ComponentFactsCollector
) -> PreparedComponent | None:
    """Record the component's facts and return walkable data, or ``None`` if rejected."""

    components.record_component(
        component.component_id,
        detected_format=component.detected_format,
        has_parsed_data=component.has_parsed_data,
        has_data_content=component.has_data_content,
    )
    if not component.has_parsed_data and not component.has_data_content:
        logger.warning("extraction_component_rejected", code=DiagnosticCode.EMPTY_OR_NO_DATA.value)
        return None
    if component.parse_error:
        components.record_parse_error(component.component_id, component.parse_error)
        logger.warning("extraction_component_rejected", code=DiagnosticCode.PARSE_ERROR.value)
        return None

    prepared = prepare_component_data(component.detected_format, component.parsed_data)
    if prepared.error is not None:
        components.record_format_error(
            component.component_id, prepared.error.code, prepared.error.message
        )
        logger.warning(
            "extraction_component_rejected",
            code=prepared.error.code.value,
            detected_format=component.detected_format,
        )
        return None
    return prepared


def _sum_stats(stats: Iterable[ExtractionStats]) -> ExtractionStats:
    node_count = 0
    observation_count = 0
    max_depth = 0
    for item in stats:
        node_count += item.node_count
        observation_count += item.observation_count
        max_depth = max(max_depth, item.max_depth)
    return ExtractionStats(
        node_count=node_count, observation_count=observation_count, max_depth=max_depth
    )


__all__ = [
    "ComponentResult",
    "ExtractionBundle",
    "ExtractionResult",
    "PreparedComponent",
    "RunExtraction",
    "RunInput",
    "extract_bundle",
    "extract_run",
    "extract_value",
    "prepare_component_data",
]
