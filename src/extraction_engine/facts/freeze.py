"""Snapshot mutable collector state into independent copies.

Each freezer deep-copies every nested container, so later mutation of the
collector (or of the snapshot) never leaks across.
"""

from __future__ import annotations

from collections.abc import Mapping

from extraction_engine.domain.models import ComponentId
from extraction_engine.facts.component import ComponentFacts, ComponentFactsEntry
from extraction_engine.facts.run import RunFacts
from extraction_engine.facts.variable import VariableFacts, VariableFactsEntry


def freeze_variable_facts(facts: Mapping[str, VariableFactsEntry]) -> VariableFacts:
    return {variable_key: entry.copy() for variable_key, entry in facts.items()}


def freeze_component_facts(facts: Mapping[ComponentId, ComponentFactsEntry]) -> ComponentFacts:
    return {component_id: entry.copy() for component_id, entry in facts.items()}


def freeze_run_facts(facts: RunFacts) -> RunFacts:
    return facts.copy()


__all__ = ["freeze_component_facts", "freeze_run_facts", "freeze_variable_facts"]
