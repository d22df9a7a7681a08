"""
extraction-engine — unit tests for the run and bundle pipeline

File: tests/unit/extraction/test_pipeline.py

Purpose
- Validate end-to-end extraction over components, runs, and bundles.

What this test file should cover
- Format preparation for json, tabular, text, and unknown formats.
- Per-component error channel: rejected components are never walked.
- Run-wide caps shared by every component of a run.
- Diagnostics switch.
- Bundle merge, cross-run diagnostics on variables, summed stats, config fingerprint.
- Log events at run boundaries and component rejections.

Non-functional requirements
- Deterministic output for identical inputs.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from structlog.testing import capture_logs

from extraction_engine import (
    ComponentResult,
    ExtractionBundle,
    RunInput,
    extract_bundle,
    extract_run,
    extract_value,
)
from extraction_engine.config.loader import load_config
from extraction_engine.config.schema import MAX_WALK_DEPTH, ExtractionConfig, WalkerLimits
from extraction_engine.domain.models import DiagnosticCode, ScopeKeys, Severity, ValueType
from extraction_engine.extraction.pipeline import prepare_component_data
from extraction_engine.utils.hashing import fingerprint


def _json(component_id: int | str, data: object) -> ComponentResult:
    return ComponentResult(component_id=component_id, parsed_data=data, data_content="{}")


def _mixed_run() -> RunInput:
    return RunInput(
        run_id="r1",
        worker_id="w1",
        components=(
            _json(1, {"subject": "s1"}),
            ComponentResult(component_id=2),
            ComponentResult(component_id=3, data_content="{bad", parse_error="unexpected token"),
            ComponentResult(
                component_id=4,
                parsed_data="free text",
                data_content="free text",
                detected_format="text",
            ),
            ComponentResult(
                component_id=5,
                parsed_data=[{"rt": "350"}, {"rt": "410"}],
                data_content="rt\n350\n410",
                detected_format="csv",
            ),
            ComponentResult(component_id=6, parsed_data={"a": 1}, detected_format="xml"),
        ),
    )


@pytest.mark.parametrize(
    ("detected_format", "parsed", "code"),
    [
        ("json", None, DiagnosticCode.EMPTY_OR_NO_DATA),
        ("csv", {"a": 1}, DiagnosticCode.UNKNOWN_FORMAT),
        ("tsv", [1, 2], DiagnosticCode.UNKNOWN_FORMAT),
        ("csv", [], DiagnosticCode.EMPTY_OR_NO_DATA),
        ("csv", [{}, {}], DiagnosticCode.EMPTY_OR_NO_DATA),
        ("text", "abc", DiagnosticCode.TEXT_FORMAT_NOT_SUPPORTED),
        ("xml", {"a": 1}, DiagnosticCode.UNKNOWN_FORMAT),
        (None, {"a": 1}, DiagnosticCode.UNKNOWN_FORMAT),
    ],
)
def test_prepare_component_data_rejections(
    detected_format: str | None, parsed: object, code: DiagnosticCode
) -> None:
    prepared = prepare_component_data(detected_format, parsed)

    assert not prepared.ok
    assert prepared.error is not None
    assert prepared.error.code is code


def test_prepare_component_data_shapes_tabular_rows() -> None:
    rows = [{"rt": "1"}]

    assert prepare_component_data("csv", rows).data == {"rows": rows}
    assert prepare_component_data("tsv", {"rows": rows}).data == {"rows": rows}
    assert prepare_component_data("json", {"a": 1}).data == {"a": 1}
    assert prepare_component_data(None, {"a": 1}).error is not None
    assert (
        prepare_component_data(None, {"a": 1}).error.message  # type: ignore[union-attr]
        == "Unknown format: undefined"
    )


@pytest.mark.unit
def test_extract_run_rejects_bad_components_without_walking_them() -> None:
    result = extract_run(_mixed_run())

    assert [obs.path for obs in result.observations] == ["subject", "rows[0].rt", "rows[1].rt"]
    assert {obs.scope_keys.component_id for obs in result.observations} == {1, 5}
    assert result.observations[0].scope_key_id == "component_id:1|run_id:r1|worker_id:w1"

    diagnostics = result.component_diagnostics
    assert set(diagnostics) == {2, 3, 4, 6}
    assert all(len(items) == 1 for items in diagnostics.values())
    assert diagnostics[2][0].code is DiagnosticCode.EMPTY_OR_NO_DATA
    assert diagnostics[3][0].code is DiagnosticCode.PARSE_ERROR
    assert diagnostics[4][0].code is DiagnosticCode.TEXT_FORMAT_NOT_SUPPORTED
    assert diagnostics[4][0].severity is Severity.ERROR
    assert diagnostics[6][0].message == "Unknown format: xml"
    assert result.run_diagnostics == ()
    assert [variable.variable_key for variable in result.variables] == ["subject", "rows[*].rt"]
    assert result.variables[1].type is ValueType.STRING


def test_caps_are_shared_across_components_of_a_run() -> None:
    run = RunInput(
        run_id="r1",
        components=(_json(1, {"a": 1, "b": 2}), _json(2, {"c": 3})),
    )
    config = ExtractionConfig(walker=WalkerLimits(max_observations=2))

    result = extract_run(run, config)

    assert len(result.observations) == 2
    assert result.was_truncated
    assert [item.code for item in result.run_diagnostics] == [
        DiagnosticCode.MAX_OBSERVATIONS_EXCEEDED,
        DiagnosticCode.TRUNCATED_EXTRACTION,
    ]


def test_diagnostics_switch_keeps_flags_but_drops_diagnostics() -> None:
    run = RunInput(
        run_id="r1",
        components=(_json(1, {"v": [None, None, 1]}), ComponentResult(component_id=2)),
    )

    result = extract_run(run, diagnostics=False)

    assert result.component_diagnostics == {}
    assert result.run_diagnostics == ()
    assert result.variables[0].diagnostics is None
    assert "MANY_NULLS" in [flag.value for flag in result.variables[0].flags]
    assert 2 in result.component_facts


def test_allow_list_limits_emitted_variables() -> None:
    run = RunInput(run_id="r1", components=(_json(1, {"a": 1, "b": 2}),))

    result = extract_run(run, allow_variable_keys={"b"})

    assert [obs.variable_key for obs in result.observations] == ["b"]


def test_extract_value_single_payload() -> None:
    result = extract_value({"a": [1, 2], "when": object()}, ScopeKeys(component_id="c"))

    assert [obs.path for obs in result.observations] == ["a[0]", "a[1]"]
    assert result.stats.observation_count == 2
    assert [item.code for item in result.diagnostics] == [DiagnosticCode.SKIPPED_NON_JSON_TYPE]
    assert result.variables[0].occurrences == 2
    assert result.index().observation_count("a[*]") == 2


def _bundle(config: ExtractionConfig | None = None) -> ExtractionBundle:
    runs = [
        RunInput(run_id="r1", components=(_json(1, {"a": 1, "b": "x"}),)),
        RunInput(run_id="r2", components=(_json(1, {"a": 2}), _json(2, {"c": True}))),
    ]
    return extract_bundle(runs, config)


def test_extract_bundle_merges_runs_and_attaches_cross_run_diagnostics() -> None:
    bundle = _bundle()

    assert bundle.run_ids == ("r1", "r2")
    assert [run.run_id for run in bundle.runs] == ["r1", "r2"]
    assert [variable.variable_key for variable in bundle.variables] == ["a", "b", "c"]
    a, b, c = bundle.variables
    assert a.occurrences == 2
    assert a.run_ids == ("r1", "r2")
    assert b.diagnostics is not None
    assert [item.code for item in b.diagnostics] == [DiagnosticCode.CROSS_RUN_VARIABLE_MISSING]
    assert c.diagnostics is not None
    assert bundle.cross_run is not None
    assert set(bundle.cross_run.component) == {2}
    assert bundle.stats.observation_count == 4
    assert bundle.stats.node_count == sum(run.stats.node_count for run in bundle.runs)
    assert bundle.config_fingerprint == fingerprint(ExtractionConfig().to_mapping())
    assert bundle.index().component_ids_by_variable_key("a") == (1,)


def test_extract_bundle_rejects_duplicate_run_ids() -> None:
    runs = [RunInput(run_id="r1"), RunInput(run_id="r1")]

    with pytest.raises(ValueError, match="duplicate run ids: r1"):
        extract_bundle(runs)


def test_variable_missing_from_one_of_three_runs_names_that_run() -> None:
    bundle = extract_bundle(
        [
            RunInput(run_id="r1", components=(_json(1, {"a": 1, "b": 1}),)),
            RunInput(run_id="r2", components=(_json(1, {"a": 2}),)),
            RunInput(run_id="r3", components=(_json(1, {"a": 3, "b": 2}),)),
        ]
    )

    a, b = bundle.variables
    assert a.diagnostics is None
    assert b.run_ids == ("r1", "r3")
    assert b.diagnostics is not None
    (missing,) = b.diagnostics
    assert missing.code is DiagnosticCode.CROSS_RUN_VARIABLE_MISSING
    assert missing.message == "Variable 'b' is missing in 1/3 runs"
    assert missing.metadata["missing_run_ids"] == ["r2"]
    assert missing.metadata["present_run_count"] == 2
    assert missing.metadata["run_count"] == 3
    assert bundle.cross_run is not None
    assert bundle.cross_run.component == {}


def test_deep_payload_with_maximum_depth_config_is_truncated_not_raised() -> None:
    value: object = "leaf"
    for _ in range(600):
        value = {"child": value}
    config = load_config(overrides={"walker.max_depth": MAX_WALK_DEPTH}, environ={})

    result = extract_value(value, ScopeKeys(component_id=1), config)

    assert result.observations == ()
    assert result.stats.max_depth == MAX_WALK_DEPTH
    assert DiagnosticCode.MAX_DEPTH_EXCEEDED in [item.code for item in result.diagnostics]


def test_single_run_bundle_has_no_cross_run_result() -> None:
    bundle = extract_bundle([RunInput(run_id="only", components=(_json(1, {"a": 1}),))])

    assert bundle.cross_run is None
    assert bundle.variables[0].diagnostics is None


def test_run_input_validates_run_id() -> None:
    with pytest.raises(ValueError):
        RunInput(run_id="")


def test_log_events_at_run_boundaries_and_rejections() -> None:
    with capture_logs() as logs:
        extract_run(_mixed_run())

    events = [item["event"] for item in logs]
    assert events[0] == "extraction_run_started"
    assert events[-1] == "extraction_run_completed"
    assert events.count("extraction_component_rejected") == 4
    rejected = [item["code"] for item in logs if item["event"] == "extraction_component_rejected"]
    assert rejected == [
        "EMPTY_OR_NO_DATA",
        "PARSE_ERROR",
        "TEXT_FORMAT_NOT_SUPPORTED",
        "UNKNOWN_FORMAT",
    ]


_PAYLOAD = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=4),
    lambda children: st.lists(children, max_size=3)
    | st.dictionaries(st.sampled_from(["a", "b", "c"]), children, max_size=3),
    max_leaves=10,
)


@given(first=_PAYLOAD, second=_PAYLOAD)
@settings(max_examples=30, derandomize=True, deadline=None)
def test_property_bundle_is_deterministic(first: object, second: object) -> None:
    def build() -> ExtractionBundle:
        runs = [
            RunInput(run_id="r1", components=(_json(1, first),)),
            RunInput(run_id="r2", components=(_json(1, second),)),
        ]
        return extract_bundle(runs)

    one, two = build(), build()

    assert [variable.to_dict() for variable in one.variables] == [
        variable.to_dict() for variable in two.variables
    ]
    assert one.diagnostics_payload() == two.diagnostics_payload()
    assert one.stats == two.stats
