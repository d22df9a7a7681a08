"""Pure materializers turning frozen facts into diagnostics and flags."""

from extraction_engine.diagnostics.component import materialize_component_diagnostics
from extraction_engine.diagnostics.cross_run import (
    CrossRunDiagnostics,
    materialize_cross_run_diagnostics,
)
from extraction_engine.diagnostics.flags import derive_variable_flags
from extraction_engine.diagnostics.run import materialize_run_diagnostics
from extraction_engine.diagnostics.variable import materialize_variable_diagnostics

__all__ = [
    "CrossRunDiagnostics",
    "derive_variable_flags",
    "materialize_component_diagnostics",
    "materialize_cross_run_diagnostics",
    "materialize_run_diagnostics",
    "materialize_variable_diagnostics",
]
