"""Variable flags: the subset of diagnostic codes used for quick filtering."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from extraction_engine.domain.models import Diagnostic, VariableFlag

_FLAG_VALUES: Final[frozenset[str]] = frozenset(flag.value for flag in VariableFlag)


def derive_variable_flags(diagnostics: Iterable[Diagnostic]) -> tuple[VariableFlag, ...]:
    """Project diagnostics onto flags, de-duplicated in first-seen order."""

    flags: list[VariableFlag] = []
    for diagnostic in diagnostics:
        if diagnostic.code.value not in _FLAG_VALUES:
            continue
        flag = VariableFlag(diagnostic.code.value)
        if flag not in flags:
            flags.append(flag)
    return tuple(flags)


__all__ = ["derive_variable_flags"]
