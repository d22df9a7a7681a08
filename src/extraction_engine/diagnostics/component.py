"""Component diagnostics: missing data, parse errors, and unsupported formats."""

from __future__ import annotations

from collections.abc import Mapping

from extraction_engine.diagnostics._builder import DiagnosticList
from extraction_engine.domain.models import ComponentId, Diagnostic, DiagnosticCode, Severity
from extraction_engine.facts.component import ComponentFactsEntry


def materialize_component_diagnostics(
    facts: Mapping[ComponentId, ComponentFactsEntry],
) -> dict[ComponentId, list[Diagnostic]]:
    """Map each component id to its diagnostics; components without any are omitted."""

    by_component: dict[ComponentId, list[Diagnostic]] = {}
    for component_id, entry in facts.items():
        out = DiagnosticList()
        if not entry.has_parsed_data and not entry.has_data_content:
            out.warn(
                DiagnosticCode.EMPTY_OR_NO_DATA,
                f"Component {component_id} has no data or empty data",
                {"component_id": component_id},
            )
        if entry.parse_error is not None:
            out.error(
                DiagnosticCode.PARSE_ERROR,
                f"Parse error: {entry.parse_error}",
                {"component_id": component_id, "error": entry.parse_error},
            )
        if entry.format_error is not None:
            severity = (
                Severity.ERROR
                if entry.format_error.code is DiagnosticCode.TEXT_FORMAT_NOT_SUPPORTED
                else Severity.WARNING
            )
            out.push(
                severity,
                entry.format_error.code,
                entry.format_error.message,
                {"component_id": component_id, "format": entry.detected_format},
            )
        if len(out):
            by_component[component_id] = out.to_list()
    return by_component


__all__ = ["materialize_component_diagnostics"]
