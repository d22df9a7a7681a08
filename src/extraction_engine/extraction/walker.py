"""
extraction-engine — bounded tree walker

File: src/extraction_engine/extraction/walker.py

Purpose
- Depth-first traversal of one payload, emitting observations for leaves and
  feeding the run's fact collectors.

Functional requirements
- Arrays are visited in index order, mappings in insertion order.
- Per node: depth cap (truncates the branch), node cap (halts), max-depth
  bookkeeping, emission (observation cap halts), then recursion or skip.
- Cap breaches never raise; each kind is recorded once per run.

Non-functional requirements
- Traversal uses an explicit stack, so payload depth never reaches the
  interpreter recursion limit.
- A ``WalkContext`` is owned by exactly one run; halting is sticky across every
  later walk that shares it.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Final

from extraction_engine.config.schema import ExtractionConfig
from extraction_engine.domain import paths
from extraction_engine.domain.models import ExtractionStats, Observation, RowKeyFrame, ScopeKeys
from extraction_engine.extraction.emitter import emit_observation
from extraction_engine.extraction.policy import NodeAction, classify_value, value_type_of
from extraction_engine.extraction.row_keys import RowKeyTracker
from extraction_engine.facts.run import RunFactsCollector
from extraction_engine.facts.variable import VariableFactsCollector


@dataclass(slots=True)
class WalkStats:
    node_count: int = 0
    observation_count: int = 0
    max_depth: int = 0
    halted: bool = False

    def snapshot(self) -> ExtractionStats:
        return ExtractionStats(
            node_count=self.node_count,
            observation_count=self.observation_count,
            max_depth=self.max_depth,
        )


@dataclass(slots=True)
class WalkContext:
    config: ExtractionConfig
    run_facts: RunFactsCollector
    variable_facts: VariableFactsCollector
    stats: WalkStats = field(default_factory=WalkStats)
    allow_variable_keys: Collection[str] | None = None

    @classmethod
    def for_run(
        cls,
        config: ExtractionConfig,
        *,
        diagnostics: bool = True,
        allow_variable_keys: Collection[str] | None = None,
    ) -> WalkContext:
        return cls(
            config=config,
            run_facts=RunFactsCollector(
                deep_nesting_threshold=config.run.deep_nesting_threshold,
                max_example_paths=config.run.max_example_paths,
                enabled=diagnostics,
            ),
            variable_facts=VariableFactsCollector(
                max_example_paths=config.variable.max_example_paths,
                max_distinct_tracking=config.variable.max_distinct_tracking,
            ),
            allow_variable_keys=(
                frozenset(allow_variable_keys) if allow_variable_keys is not None else None
            ),
        )


@dataclass(frozen=True, slots=True)
class WalkResult:
    observations: tuple[Observation, ...]


def walk(data: object, scope_keys: ScopeKeys, context: WalkContext) -> WalkResult:
    """Walk ``data`` from the root and return the observations it yields."""

    walker = _Walker(scope_keys, context)
    walker.run(data)
    return WalkResult(observations=tuple(walker.observations))


# Stack entry that closes the row-key frame opened by an array element.
_POP_FRAME: Final = object()


class _Walker:
    """Iterative DFS; pending nodes live on an explicit stack, not the call stack."""

    __slots__ = ("context", "observations", "scope_key_id", "scope_keys", "stack", "tracker")

    def __init__(self, scope_keys: ScopeKeys, context: WalkContext) -> None:
        self.scope_keys = scope_keys
        self.scope_key_id = scope_keys.scope_key_id
        self.context = context
        self.tracker = RowKeyTracker()
        self.observations: list[Observation] = []
        self.stack: list[tuple[object, paths.JsonPath, RowKeyFrame | None] | object] = []

    def run(self, data: object) -> None:
        stats = self.context.stats
        stack = self.stack
        stack.append((data, paths.root(), None))
        while stack and not stats.halted:
            entry = stack.pop()
            if entry is _POP_FRAME:
                self.tracker.pop()
                continue
            assert isinstance(entry, tuple)
            value, path, frame = entry
            if frame is not None:
                self.tracker.push(frame)
            self.visit(value, path)

    def visit(self, value: object, path: paths.JsonPath) -> None:
        context = self.context
        stats = context.stats
        limits = context.config.walker

        depth = paths.depth(path)
        if depth > limits.max_depth:
            context.run_facts.record_max_depth_exceeded(depth=depth, threshold=limits.max_depth)
            return

        stats.node_count += 1
        if stats.node_count > limits.max_nodes:
            context.run_facts.record_max_nodes_exceeded(
                node_count=stats.node_count, threshold=limits.max_nodes
            )
            stats.halted = True
            return

        if depth > stats.max_depth:
            stats.max_depth = depth
        context.run_facts.record_depth(depth)

        action = classify_value(
            value, emit_primitive_arrays=context.config.policy.emit_primitive_arrays
        )
        if action is NodeAction.EMIT:
            self._emit(value, path)
        elif action is NodeAction.RECURSE_ARRAY:
            assert isinstance(value, list | tuple)
            self._schedule_array(value, path)
        elif action is NodeAction.RECURSE_OBJECT:
            assert isinstance(value, Mapping)
            self._schedule_object(value, path)
        else:
            value_class = type(value)
            tag = None if value_class.__module__ == "builtins" else value_class.__module__
            context.run_facts.record_skipped_non_json_type(
                paths.to_source_path(path, context.config.render), value_class.__name__, tag
            )

    def _emit(self, value: object, path: paths.JsonPath) -> None:
        context = self.context
        stats = context.stats
        render = context.config.render

        allowed = context.allow_variable_keys
        if allowed is not None and paths.to_variable_key(path, render) not in allowed:
            return

        limit = context.config.walker.max_observations
        if stats.observation_count >= limit:
            context.run_facts.record_max_observations_exceeded(
                observation_count=stats.observation_count, threshold=limit
            )
            stats.halted = True
            return

        value_type = value_type_of(value)
        assert value_type is not None
        observation = emit_observation(
            path,
            value,
            value_type,
            self.tracker.get_row_key(),
            self.scope_keys,
            self.scope_key_id,
            max_distinct_tracking=context.config.variable.max_distinct_tracking,
            render_options=render,
        )
        self.observations.append(observation)
        stats.observation_count += 1
        context.variable_facts.record(observation)

    def _schedule_array(
        self, value: list[object] | tuple[object, ...], path: paths.JsonPath
    ) -> None:
        # Pushed in reverse so elements pop in index order; each element's frame
        # is closed only after its whole subtree has been visited.
        array_key = paths.to_variable_key(path, self.context.config.render)
        for position in range(len(value) - 1, -1, -1):
            self.stack.append(_POP_FRAME)
            self.stack.append(
                (
                    value[position],
                    paths.index(path, position),
                    RowKeyFrame(array_key=array_key, index=position),
                )
            )

    def _schedule_object(self, value: Mapping[object, object], path: paths.JsonPath) -> None:
        for raw_key, item in reversed(list(value.items())):
            self.stack.append((item, paths.key(path, str(raw_key)), None))


__all__ = ["WalkContext", "WalkResult", "WalkStats", "walk"]
