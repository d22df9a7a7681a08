"""Run diagnostics: limit breaches, derived truncation, deep nesting, and skipped values."""

from __future__ import annotations

from extraction_engine.diagnostics._builder import DiagnosticList
from extraction_engine.domain.models import Diagnostic, DiagnosticCode, JSONValue, LimitKind
from extraction_engine.facts.run import RunFacts


def materialize_run_diagnostics(facts: RunFacts) -> list[Diagnostic]:
    out = DiagnosticList()

    for event in facts.limits.values():
        if event.kind is LimitKind.MAX_NODES:
            out.error(
                DiagnosticCode.MAX_NODES_EXCEEDED,
                f"Maximum node count exceeded ({event.observed} nodes visited)",
                {"node_count": event.observed, "threshold": event.threshold},
            )
        elif event.kind is LimitKind.MAX_OBSERVATIONS:
            out.error(
                DiagnosticCode.MAX_OBSERVATIONS_EXCEEDED,
                "Maximum observation count exceeded "
                f"(stopped at {event.observed} observations, limit: {event.threshold})",
                {"observation_count": event.observed, "threshold": event.threshold},
            )
        else:
            out.error(
                DiagnosticCode.MAX_DEPTH_EXCEEDED,
                f"Maximum depth exceeded (depth: {event.observed}, threshold: {event.threshold})",
                {"depth": event.observed, "threshold": event.threshold},
            )

    if facts.limits:
        out.warn(DiagnosticCode.TRUNCATED_EXTRACTION, "Extraction was truncated due to limits")

    nesting = facts.deep_nesting
    if nesting.max_depth > nesting.threshold:
        out.warn(
            DiagnosticCode.DEEP_NESTING,
            f"Nesting depth {nesting.max_depth} exceeds threshold ({nesting.threshold})",
            {"depth": nesting.max_depth, "threshold": nesting.threshold},
        )

    for type_name, skipped in facts.skipped_non_json.items():
        example_paths = list(skipped.example_paths)
        if skipped.count == 1:
            message = f"Skipped non-JSON type '{type_name}' at path: {example_paths[0]}"
        else:
            message = (
                f"Skipped non-JSON type '{type_name}' {skipped.count} times "
                f"(example paths: {', '.join(example_paths)})"
            )
        metadata: dict[str, JSONValue] = {
            "type_name": type_name,
            "count": skipped.count,
            "example_paths": example_paths,
        }
        if skipped.tag is not None:
            metadata["tag"] = skipped.tag
        out.warn(DiagnosticCode.SKIPPED_NON_JSON_TYPE, message, metadata)

    return out.to_list()


__all__ = ["materialize_run_diagnostics"]
