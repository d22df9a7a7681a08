"""
extraction-engine — variable aggregation

File: src/extraction_engine/aggregation/variables.py

Purpose
- Fold observations into one ``ExtractedVariable`` per variable key: display
  name, resolved type, examples, provenance, flags, and diagnostics.

Functional requirements
- Single pass over observations; variables keep first-seen order.
- Names are the shortest unique suffix of non-wildcard key segments.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from extraction_engine.config.schema import ExtractionConfig
from extraction_engine.constants import VARIABLE_NAME_SEPARATOR, WILDCARD_SEGMENT
from extraction_engine.diagnostics.flags import derive_variable_flags
from extraction_engine.diagnostics.variable import materialize_variable_diagnostics
from extraction_engine.domain.models import (
    ComponentId,
    DataStructure,
    Diagnostic,
    ExtractedVariable,
    Observation,
    ValueType,
    VariableExample,
    dedupe_diagnostics,
)
from extraction_engine.domain.paths import KeyPath
from extraction_engine.facts.variable import VariableFactsEntry


def build_variable_names(
    key_paths_by_variable: Mapping[str, KeyPath],
    *,
    root_token: str = "$",
) -> dict[str, str]:
    """Shortest suffix of non-wildcard segments that is unique among all variables.

    ``("Quality", "*", "easy to use")`` alone becomes ``easy to use``; next to
    ``("Usability", "*", "easy to use")`` both widen to ``Quality › easy to use``
    and ``Usability › easy to use``.
    """

    segments_by_variable = {
        variable_key: [segment for segment in key_path if segment != WILDCARD_SEGMENT]
        for variable_key, key_path in key_paths_by_variable.items()
    }
    if not segments_by_variable:
        return {}

    longest = max([1, *(len(segments) for segments in segments_by_variable.values())])
    label_counts: dict[int, dict[str, int]] = {}
    for width in range(1, longest + 1):
        counts: dict[str, int] = {}
        for segments in segments_by_variable.values():
            if len(segments) >= width:
                label = _suffix_label(segments, width)
                counts[label] = counts.get(label, 0) + 1
        label_counts[width] = counts

    names: dict[str, str] = {}
    for variable_key, segments in segments_by_variable.items():
        if not segments:
            names[variable_key] = variable_key.removeprefix(root_token)
            continue
        width = 1
        label = _suffix_label(segments, width)
        while width < len(segments) and label_counts[width].get(label, 0) != 1:
            width += 1
            label = _suffix_label(segments, width)
        names[variable_key] = label
    return names


def determine_variable_type(entry: VariableFactsEntry | None) -> ValueType:
    """Exactly one non-null observed type wins; anything else resolves to string."""

    if entry is None:
        return ValueType.STRING
    non_null = entry.non_null_types()
    if len(non_null) == 1:
        return non_null[0][0]
    return ValueType.STRING


@dataclass(slots=True)
class _VariableAccumulator:
    key_path: KeyPath
    min_depth: int
    component_ids: list[ComponentId] = field(default_factory=list)
    run_ids: list[str] = field(default_factory=list)
    examples: list[VariableExample] = field(default_factory=list)


def aggregate_variables(
    observations: Iterable[Observation],
    variable_facts: Mapping[str, VariableFactsEntry],
    config: ExtractionConfig,
    *,
    include_diagnostics: bool = True,
    extra_diagnostics: Mapping[str, Sequence[Diagnostic]] | None = None,
) -> list[ExtractedVariable]:
    """Build variables from observations plus the facts collected for them.

    ``extra_diagnostics`` (for example cross-run findings) are appended to each
    variable's own diagnostics before flags are derived.
    """

    max_examples = config.variable.max_examples
    accumulators: dict[str, _VariableAccumulator] = {}
    for observation in observations:
        acc = accumulators.get(observation.variable_key)
        if acc is None:
            acc = _VariableAccumulator(key_path=observation.key_path, min_depth=observation.depth)
            accumulators[observation.variable_key] = acc
        elif observation.depth < acc.min_depth:
            acc.min_depth = observation.depth

        component_id = observation.scope_keys.component_id
        if component_id not in acc.component_ids:
            acc.component_ids.append(component_id)
        run_id = observation.scope_keys.run_id
        if run_id is not None and run_id not in acc.run_ids:
            acc.run_ids.append(run_id)
        if len(acc.examples) < max_examples:
            acc.examples.append(
                VariableExample(value_json=observation.value_json, source_path=observation.path)
            )

    names = build_variable_names(
        {variable_key: acc.key_path for variable_key, acc in accumulators.items()},
        root_token=config.render.root_token,
    )

    variables: list[ExtractedVariable] = []
    for variable_key, acc in accumulators.items():
        entry = variable_facts.get(variable_key)
        variable_type = determine_variable_type(entry)
        occurrences = entry.total_count if entry is not None else 0

        diagnostics = materialize_variable_diagnostics(
            variable_key,
            entry,
            variable_type,
            config.thresholds,
            max_example_paths=config.variable.max_example_paths,
            include_many_nulls=config.diagnostics.include_many_nulls,
        )
        if extra_diagnostics is not None:
            diagnostics = dedupe_diagnostics(
                [*diagnostics, *extra_diagnostics.get(variable_key, ())]
            )

        variables.append(
            ExtractedVariable(
                variable_key=variable_key,
                variable_name=names.get(variable_key) or variable_key,
                examples=tuple(acc.examples),
                type=variable_type,
                occurrences=occurrences,
                data_structure=DataStructure.ARRAY if occurrences > 1 else DataStructure.OBJECT,
                component_ids=tuple(acc.component_ids),
                run_ids=tuple(acc.run_ids),
                flags=derive_variable_flags(diagnostics),
                depth=acc.min_depth,
                is_top_level=acc.min_depth == 0,
                diagnostics=tuple(diagnostics) if include_diagnostics and diagnostics else None,
            )
        )
    return variables


def _suffix_label(segments: list[str], width: int) -> str:
    return VARIABLE_NAME_SEPARATOR.join(segments[len(segments) - width :])


__all__ = ["aggregate_variables", "build_variable_names", "determine_variable_type"]
