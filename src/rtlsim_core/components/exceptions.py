# src/rtlsim_core/components/exceptions.py
"""
Defines the diagnosable exceptions raised by the component registry.
These are the load-time `DeclarationError`s that concern a component as a whole
rather than one behavior statement.
"""
from dataclasses import dataclass
from typing import List, Tuple

from ..errors import DeclarationError, format_diagnostic_report


@dataclass(frozen=True)
class DuplicateNameError(DeclarationError):
    """Two ports, parameters, signals, instances or component types share a name."""
    name: str = ""
    kind: str = "name"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type=f"Duplicate {self.kind.title()}",
            details=self.details,
            suggestion=f"Rename one of the {self.kind}s named '{self.name}'. Names must be unique within a component.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class UnregisteredComponentError(DeclarationError):
    """An instance refers to a component type the registry does not know."""
    component_type: str = ""
    available: Tuple[str, ...] = ()

    def get_diagnostic_report(self) -> str:
        available = ", ".join(self.available) if self.available else "(none)"
        return format_diagnostic_report(
            error_type="Unregistered Component Type",
            details=f"{self.details}\nRegistered component types: {available}",
            suggestion="Register the referenced component type first, or fix the spelling of the type name.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class InvalidMemoryError(DeclarationError):
    """A memory declaration that cannot be turned into words."""
    memory: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Memory Declaration",
            details=self.details,
            suggestion="Give the memory a positive integer depth and at most one initial value per word.",
            context={'component': self.component, 'memory': self.memory}
        )


@dataclass(frozen=True)
class RecursiveInstantiationError(DeclarationError):
    """A component instantiates itself, directly or through other components."""
    cycle: Tuple[str, ...] = ()

    def __str__(self):
        cycle: List[str] = list(self.cycle) + [self.cycle[0]] if self.cycle else []
        return f"Recursive instantiation detected: {' -> '.join(cycle)}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Recursive Instantiation",
            details=f"Components instantiate each other in a loop:\n{' -> '.join(self.cycle)}",
            suggestion="Hardware hierarchies must be finite trees. Break the instantiation loop.",
            context={'component': self.component}
        )
