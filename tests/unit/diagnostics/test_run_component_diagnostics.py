"""
extraction-engine — unit tests for run and component diagnostics

File: tests/unit/diagnostics/test_run_component_diagnostics.py
"""

from __future__ import annotations

from extraction_engine.diagnostics.component import materialize_component_diagnostics
from extraction_engine.diagnostics.run import materialize_run_diagnostics
from extraction_engine.domain.models import DiagnosticCode, Severity
from extraction_engine.facts.component import ComponentFactsCollector
from extraction_engine.facts.run import RunFactsCollector


def test_limits_yield_errors_plus_one_truncation_warning() -> None:
    collector = RunFactsCollector(deep_nesting_threshold=8, max_example_paths=3)
    collector.record_max_nodes_exceeded(node_count=11, threshold=10)
    collector.record_max_observations_exceeded(observation_count=5, threshold=5)

    diagnostics = materialize_run_diagnostics(collector.facts)

    assert [(item.severity, item.code) for item in diagnostics] == [
        (Severity.ERROR, DiagnosticCode.MAX_NODES_EXCEEDED),
        (Severity.ERROR, DiagnosticCode.MAX_OBSERVATIONS_EXCEEDED),
        (Severity.WARNING, DiagnosticCode.TRUNCATED_EXTRACTION),
    ]
    assert diagnostics[0].message == "Maximum node count exceeded (11 nodes visited)"
    assert diagnostics[1].message == (
        "Maximum observation count exceeded (stopped at 5 observations, limit: 5)"
    )
    assert diagnostics[2].message == "Extraction was truncated due to limits"


def test_depth_limit_message() -> None:
    collector = RunFactsCollector(deep_nesting_threshold=8, max_example_paths=3)
    collector.record_max_depth_exceeded(depth=4, threshold=3)

    first = materialize_run_diagnostics(collector.facts)[0]
    assert first.message == "Maximum depth exceeded (depth: 4, threshold: 3)"
    assert first.metadata == {"depth": 4, "threshold": 3}


def test_deep_nesting_and_skipped_types() -> None:
    collector = RunFactsCollector(deep_nesting_threshold=2, max_example_paths=3)
    collector.record_depth(3)
    collector.record_skipped_non_json_type("a", "date", "datetime")
    collector.record_skipped_non_json_type("b", "date", "datetime")
    collector.record_skipped_non_json_type("c", "set")

    diagnostics = materialize_run_diagnostics(collector.facts)

    assert [item.message for item in diagnostics] == [
        "Nesting depth 3 exceeds threshold (2)",
        "Skipped non-JSON type 'date' 2 times (example paths: a, b)",
        "Skipped non-JSON type 'set' at path: c",
    ]
    assert diagnostics[1].metadata["tag"] == "datetime"
    assert "tag" not in diagnostics[2].metadata


def test_clean_run_has_no_diagnostics() -> None:
    collector = RunFactsCollector(deep_nesting_threshold=8, max_example_paths=3)
    collector.record_depth(8)

    assert materialize_run_diagnostics(collector.facts) == []


def test_component_diagnostics_by_failure_kind() -> None:
    collector = ComponentFactsCollector()
    collector.record_component(
        1, detected_format="json", has_parsed_data=False, has_data_content=False
    )
    collector.record_component(
        2, detected_format="json", has_parsed_data=False, has_data_content=True
    )
    collector.record_parse_error(2, "unexpected token")
    collector.record_component(
        3, detected_format="text", has_parsed_data=True, has_data_content=True
    )
    collector.record_format_error(3, DiagnosticCode.TEXT_FORMAT_NOT_SUPPORTED, "text")
    collector.record_component(
        4, detected_format="xml", has_parsed_data=True, has_data_content=True
    )
    collector.record_format_error(4, DiagnosticCode.UNKNOWN_FORMAT, "Unknown format: xml")
    collector.record_component(
        5, detected_format="json", has_parsed_data=True, has_data_content=True
    )

    by_component = materialize_component_diagnostics(collector.entries)

    assert set(by_component) == {1, 2, 3, 4}
    assert by_component[1][0].message == "Component 1 has no data or empty data"
    assert by_component[1][0].severity is Severity.WARNING
    assert by_component[2][0].message == "Parse error: unexpected token"
    assert by_component[2][0].severity is Severity.ERROR
    assert by_component[3][0].severity is Severity.ERROR
    assert by_component[4][0].severity is Severity.WARNING
    assert by_component[4][0].metadata == {"component_id": 4, "format": "xml"}
