# src/rtlsim_core/parameters/exceptions.py
"""
Defines the diagnosable exceptions for parameter and width resolution.

All of them are `ElaborationError`s: parameters are resolved while a component
instance is elaborated, so every error carries the full instance path of the
instance whose parameters could not be resolved.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import ElaborationError, format_diagnostic_report


@dataclass(frozen=True)
class UnresolvedParameterError(ElaborationError):
    """A parameter is referenced but neither bound nor defaulted."""
    parameter: str = ""
    user_input: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unresolved Parameter",
            details=self.details,
            suggestion=(
                f"Bind '{self.parameter}' when instantiating the component, give it a default "
                "value, or fix the spelling of the referenced name."
            ),
            context={'path': self.path, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class UnknownParameterError(ElaborationError):
    """A binding names a parameter the component does not declare."""
    parameter: str = ""
    available: Tuple[str, ...] = ()

    def get_diagnostic_report(self) -> str:
        available = ", ".join(self.available) if self.available else "(none)"
        return format_diagnostic_report(
            error_type="Unknown Parameter",
            details=f"{self.details}\nDeclared parameters: {available}",
            suggestion="Only parameters declared by the component can be bound.",
            context={'path': self.path}
        )


@dataclass(frozen=True)
class ParameterSyntaxError(ElaborationError):
    """A parameter or width expression is not valid Python syntax."""
    user_input: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Parameter Expression Syntax",
            details=self.details,
            suggestion="Parameter and width expressions are Python integer expressions, e.g. 'WIDTH * 2 - 1'.",
            context={'path': self.path, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class ParameterEvaluationError(ElaborationError):
    """A valid expression failed to evaluate to an integer."""
    user_input: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Parameter Evaluation Error",
            details=self.details,
            suggestion="Parameter and width expressions must evaluate to integers (use // for division).",
            context={'path': self.path, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class CircularParameterDependencyError(ElaborationError):
    """Parameter defaults depend on each other in a loop."""
    cycle: Tuple[str, ...] = ()

    def __str__(self):
        cycle_display = list(self.cycle) + [self.cycle[0]] if self.cycle else []
        return f"Circular parameter dependency at '{self.path}': {' -> '.join(cycle_display)}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Circular Parameter Dependency",
            details=f"A circular reference was detected involving the following parameters:\n{' -> '.join(self.cycle)}",
            suggestion="Break the dependency cycle by redefining one of the parameters to not depend on the others in the loop.",
            context={'path': self.path}
        )
