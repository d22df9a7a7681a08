"""Run-level facts: first limit breach per kind, deepest nesting, and skipped non-JSON values."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from extraction_engine.domain.models import JSONValue, LimitKind
from extraction_engine.facts.capped import CappedList

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class LimitEvent:
    """A cap breach: ``observed`` is the depth, node count, or observation count reached."""

    kind: LimitKind
    threshold: int
    observed: int

    def to_dict(self) -> dict[str, JSONValue]:
        return {"kind": self.kind.value, "threshold": self.threshold, "observed": self.observed}


@dataclass(slots=True)
class DeepNesting:
    threshold: int
    max_depth: int = 0


@dataclass(slots=True)
class SkippedType:
    count: int
    example_paths: CappedList[str]
    tag: str | None = None

    def copy(self) -> SkippedType:
        return SkippedType(count=self.count, example_paths=self.example_paths.copy(), tag=self.tag)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "count": self.count,
            "example_paths": list(self.example_paths),
        }
        if self.tag is not None:
            payload["tag"] = self.tag
        return payload


@dataclass(slots=True)
class RunFacts:
    deep_nesting: DeepNesting
    limits: dict[LimitKind, LimitEvent] = field(default_factory=dict)
    skipped_non_json: dict[str, SkippedType] = field(default_factory=dict)

    @property
    def was_truncated(self) -> bool:
        return bool(self.limits)

    def copy(self) -> RunFacts:
        return RunFacts(
            deep_nesting=DeepNesting(
                threshold=self.deep_nesting.threshold, max_depth=self.deep_nesting.max_depth
            ),
            limits=dict(self.limits),
            skipped_non_json={name: item.copy() for name, item in self.skipped_non_json.items()},
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "limits": [event.to_dict() for event in self.limits.values()],
            "deep_nesting": {
                "threshold": self.deep_nesting.threshold,
                "max_depth": self.deep_nesting.max_depth,
            },
            "skipped_non_json": {
                name: item.to_dict() for name, item in self.skipped_non_json.items()
            },
        }


class RunFactsCollector:
    """Run-scoped recorder.

    With ``enabled=False`` only limit events are kept: the walker needs them to
    know it has been truncated even when diagnostics are switched off.
    """

    __slots__ = ("_facts", "deep_nesting_threshold", "enabled", "max_example_paths")

    def __init__(
        self, *, deep_nesting_threshold: int, max_example_paths: int, enabled: bool = True
    ) -> None:
        self.deep_nesting_threshold = deep_nesting_threshold
        self.max_example_paths = max_example_paths
        self.enabled = enabled
        self._facts = RunFacts(deep_nesting=DeepNesting(threshold=deep_nesting_threshold))

    @property
    def facts(self) -> RunFacts:
        return self._facts

    def was_truncated(self) -> bool:
        return self._facts.was_truncated

    def record_depth(self, depth: int) -> None:
        if not self.enabled:
            return
        if depth > self._facts.deep_nesting.max_depth:
            self._facts.deep_nesting.max_depth = depth

    def record_max_depth_exceeded(self, *, depth: int, threshold: int) -> None:
        self._record_limit(LimitEvent(LimitKind.MAX_DEPTH, threshold=threshold, observed=depth))

    def record_max_nodes_exceeded(self, *, node_count: int, threshold: int) -> None:
        self._record_limit(
            LimitEvent(LimitKind.MAX_NODES, threshold=threshold, observed=node_count)
        )

    def record_max_observations_exceeded(self, *, observation_count: int, threshold: int) -> None:
        self._record_limit(
            LimitEvent(LimitKind.MAX_OBSERVATIONS, threshold=threshold, observed=observation_count)
        )

    def record_skipped_non_json_type(
        self, path: str, type_name: str, tag: str | None = None
    ) -> None:
        if not self.enabled:
            return
        existing = self._facts.skipped_non_json.get(type_name)
        if existing is None:
            self._facts.skipped_non_json[type_name] = SkippedType(
                count=1,
                example_paths=CappedList(max(self.max_example_paths, 1), [path]),
                tag=tag,
            )
            return
        existing.count += 1
        existing.example_paths.append(path)
        if tag is not None and existing.tag is None:
            existing.tag = tag

    def _record_limit(self, event: LimitEvent) -> None:
        if event.kind in self._facts.limits:
            return
        self._facts.limits[event.kind] = event
        logger.warning(
            "extraction_limit_exceeded",
            kind=event.kind.value,
            threshold=event.threshold,
            observed=event.observed,
        )


__all__ = [
    "DeepNesting",
    "LimitEvent",
    "RunFacts",
    "RunFactsCollector",
    "SkippedType",
]
