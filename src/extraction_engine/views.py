"""
extraction-engine — view payloads

File: src/extraction_engine/views.py

Purpose
- Project an ``ExtractionBundle`` into the JSON-compatible payload each
  consumer needs.

Functional requirements
- ``debug`` carries everything, including per-variable diagnostics.
- Every other view uses public variables (no diagnostics) with examples capped
  at 3 for ``codebook`` and 5 otherwise unless ``example_limit`` is given.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

from extraction_engine.domain.models import ExtractedVariable, JSONValue
from extraction_engine.extraction.pipeline import ExtractionBundle


class ExtractionView(StrEnum):
    DEBUG = "debug"
    CODEBOOK = "codebook"
    FEEDBACK_AUTHORING = "feedback-authoring"
    FEEDBACK_RENDER = "feedback-render"


CODEBOOK_EXAMPLE_LIMIT: Final[int] = 3
DEFAULT_EXAMPLE_LIMIT: Final[int] = 5


def public_variables(
    variables: tuple[ExtractedVariable, ...] | list[ExtractedVariable], example_limit: int
) -> list[dict[str, JSONValue]]:
    payload: list[dict[str, JSONValue]] = []
    for variable in variables:
        item = variable.public().to_dict()
        examples = item["examples"]
        assert isinstance(examples, list)
        item["examples"] = examples[:example_limit]
        payload.append(item)
    return payload


def materialize_view_payload(
    bundle: ExtractionBundle,
    view: ExtractionView | str,
    *,
    example_limit: int | None = None,
) -> dict[str, JSONValue]:
    resolved = ExtractionView(view)
    if example_limit is not None and example_limit < 0:
        raise ValueError("example_limit must be >= 0")
    if example_limit is None:
        example_limit = (
            CODEBOOK_EXAMPLE_LIMIT if resolved is ExtractionView.CODEBOOK else DEFAULT_EXAMPLE_LIMIT
        )

    if resolved is ExtractionView.DEBUG:
        return {
            "view": resolved.value,
            "variables": [variable.to_dict() for variable in bundle.variables],
            "diagnostics": bundle.diagnostics_payload(),
            "observations": [observation.to_dict() for observation in bundle.observations],
            "stats": bundle.stats.to_dict(),
        }

    variables = public_variables(bundle.variables, example_limit)
    if resolved is ExtractionView.CODEBOOK:
        return {"view": resolved.value, "variables": variables}
    if resolved is ExtractionView.FEEDBACK_AUTHORING:
        return {
            "view": resolved.value,
            "variables": variables,
            "observations": [observation.to_dict() for observation in bundle.observations],
            "stats": bundle.stats.to_dict(),
        }
    return {"view": resolved.value, "variables": variables, "stats": bundle.stats.to_dict()}


__all__ = [
    "CODEBOOK_EXAMPLE_LIMIT",
    "DEFAULT_EXAMPLE_LIMIT",
    "ExtractionView",
    "materialize_view_payload",
    "public_variables",
]
