"""Per-component facts: detected format, presence of data, and the first parse/format error."""

from __future__ import annotations

from dataclasses import dataclass

from extraction_engine.domain.models import ComponentId, DiagnosticCode, JSONValue


@dataclass(frozen=True, slots=True)
class FormatError:
    code: DiagnosticCode
    message: str


@dataclass(slots=True)
class ComponentFactsEntry:
    component_id: ComponentId
    detected_format: str | None = None
    has_parsed_data: bool = False
    has_data_content: bool = False
    parse_error: str | None = None
    format_error: FormatError | None = None

    def copy(self) -> ComponentFactsEntry:
        return ComponentFactsEntry(
            component_id=self.component_id,
            detected_format=self.detected_format,
            has_parsed_data=self.has_parsed_data,
            has_data_content=self.has_data_content,
            parse_error=self.parse_error,
            format_error=self.format_error,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "component_id": self.component_id,
            "detected_format": self.detected_format,
            "has_parsed_data": self.has_parsed_data,
            "has_data_content": self.has_data_content,
        }
        if self.parse_error is not None:
            payload["parse_error"] = self.parse_error
        if self.format_error is not None:
            payload["format_error"] = {
                "code": self.format_error.code.value,
                "message": self.format_error.message,
            }
        return payload


ComponentFacts = dict[ComponentId, ComponentFactsEntry]


class ComponentFactsCollector:
    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: ComponentFacts = {}

    @property
    def entries(self) -> ComponentFacts:
        return self._entries

    def record_component(
        self,
        component_id: ComponentId,
        *,
        detected_format: str | None,
        has_parsed_data: bool,
        has_data_content: bool,
    ) -> None:
        entry = self._ensure(component_id)
        entry.detected_format = detected_format
        entry.has_parsed_data = has_parsed_data
        entry.has_data_content = has_data_content

    def record_parse_error(self, component_id: ComponentId, parse_error: str) -> None:
        entry = self._ensure(component_id)
        if entry.parse_error is None:
            entry.parse_error = parse_error

    def record_format_error(
        self, component_id: ComponentId, code: DiagnosticCode, message: str
    ) -> None:
        entry = self._ensure(component_id)
        if entry.format_error is None:
            entry.format_error = FormatError(code=code, message=message)

    def _ensure(self, component_id: ComponentId) -> ComponentFactsEntry:
        existing = self._entries.get(component_id)
        if existing is None:
            existing = ComponentFactsEntry(component_id=component_id)
            self._entries[component_id] = existing
        return existing


__all__ = ["ComponentFacts", "ComponentFactsCollector", "ComponentFactsEntry", "FormatError"]
