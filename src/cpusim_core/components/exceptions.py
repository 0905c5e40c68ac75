# src/cpusim_core/components/exceptions.py
"""
Defines the custom, diagnosable exceptions for the components subsystem.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class ComponentRuntimeError(DiagnosableError):
    """
    Raised by a component phase that cannot produce a meaningful result for its
    current inputs (e.g. a mux select beyond its input count, an unknown ALU
    operation). The engine records it as a diagnostic; the tick continues.
    """
    component_fqn: str
    details: str
    phase_name: Optional[str] = None

    def __str__(self):
        return self.details

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Component Runtime Error",
            details=self.details if self.phase_name is None else f"In phase '{self.phase_name}': {self.details}",
            suggestion="Check the values driven onto this component's control and data inputs during the failing tick.",
            context={'fqn': self.component_fqn}
        )


@dataclass()
class UnknownComponentError(DiagnosableError):
    """Raised when a definition id is not present in the component library."""
    def_id: str
    available: List[str] = field(default_factory=list)

    def __str__(self):
        return f"Unknown component definition '{self.def_id}'."

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unknown Component Definition",
            details=f"No component definition is registered under the id '{self.def_id}'.",
            suggestion=f"Use one of the registered definitions: {', '.join(sorted(self.available)) or '(none)'}.",
            context={'user_input': self.def_id}
        )


@dataclass()
class ComponentDefinitionError(DiagnosableError):
    """
    Raised when a definition cannot build a component from the given args (bad
    width, malformed field list, invalid nested layout, ...).
    """
    def_id: str
    details: str
    component_fqn: Optional[str] = None

    def __str__(self):
        return f"Definition '{self.def_id}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Component Definition Error",
            details=self.details,
            suggestion=f"Check the args of this '{self.def_id}' component.",
            context={'fqn': self.component_fqn, 'user_input': self.def_id}
        )
