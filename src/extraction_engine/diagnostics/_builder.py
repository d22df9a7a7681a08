"""Shared accumulator that drops repeated ``(code, message)`` pairs."""

from __future__ import annotations

from collections.abc import Mapping

from extraction_engine.domain.models import Diagnostic, DiagnosticCode, JSONValue, Severity


class DiagnosticList:
    __slots__ = ("_items", "_seen")

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []
        self._seen: set[tuple[str, str]] = set()

    def push(
        self,
        severity: Severity,
        code: DiagnosticCode,
        message: str,
        metadata: Mapping[str, JSONValue] | None = None,
    ) -> None:
        diagnostic = Diagnostic(
            severity=severity, code=code, message=message, metadata=dict(metadata or {})
        )
        if diagnostic.dedupe_key in self._seen:
            return
        self._seen.add(diagnostic.dedupe_key)
        self._items.append(diagnostic)

    def warn(
        self, code: DiagnosticCode, message: str, metadata: Mapping[str, JSONValue] | None = None
    ) -> None:
        self.push(Severity.WARNING, code, message, metadata)

    def error(
        self, code: DiagnosticCode, message: str, metadata: Mapping[str, JSONValue] | None = None
    ) -> None:
        self.push(Severity.ERROR, code, message, metadata)

    def to_list(self) -> list[Diagnostic]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    if count == 1:
        return singular
    return plural_form if plural_form is not None else f"{singular}s"
