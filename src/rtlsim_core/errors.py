# src/rtlsim_core/errors.py
import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class RTLSimError(Exception):
    """Base class for all custom, user-facing errors in RTLSim Core."""
    pass

class DesignBuildError(RTLSimError):
    """
    Raised when turning a component library into an elaborated graph or a
    netlist fails for any reason, from parsing to lowering. The message is a
    pre-formatted, user-friendly diagnostic report.
    """
    pass

class SimulationRunError(RTLSimError):
    """
    Raised when a simulation run driven through the public facade fails after a
    successful build, such as a validation error or a read of an undriven signal.
    The message is a pre-formatted, user-friendly diagnostic report.
    """
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """
    A protocol for exceptions that can generate their own rich diagnostic report.
    """
    def get_diagnostic_report(self) -> str:
        """Generates a complete, user-friendly, multi-line report string."""
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    A common, concrete base class for all internal exceptions that are diagnosable.

    It inherits from `Exception` so it can be caught in `except` clauses, and it
    declares `get_diagnostic_report` as abstract so every subclass has to say
    how it is reported to the user.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        """
        Abstract method to generate the diagnostic report.
        Subclasses MUST implement this.
        """
        raise NotImplementedError


class FrameworkLogicError(RTLSimError):
    """Raised when an internal invariant of the framework itself is violated."""
    pass


# --- Stateless Formatting Utility ---

def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    A stateless helper to format the final multi-line report string, ensuring a
    consistent look and feel for all user-facing diagnostics.

    Args:
        error_type: The high-level category of the error (e.g., "Width Mismatch").
        details: A detailed, potentially multi-line description of the problem.
        suggestion: Actionable advice for the user to resolve the issue.
        context: A dictionary of contextual information (instance path, component,
                 signal, source file, simulation step).

    Returns:
        A formatted, user-friendly diagnostic report string ready for display.
    """
    lines = [
        "\n",
        "=============== RTLSim Core: Actionable Diagnostic Report ===============",
        f"Error Type:     {error_type}",
    ]
    if component := context.get('component'):
        lines.append(f"Component:      {component}")
    if path := context.get('path'):
        lines.append(f"Instance Path:  {path}")
    if signal := context.get('signal'):
        lines.append(f"Signal:         {signal}")
    if source_file := context.get('source_file'):
        lines.append(f"Source File:    {source_file}")
    if user_input := context.get('user_input'):
        lines.append(f"User Input:     '{user_input}'")
    if context.get('step') is not None:
        lines.append(f"Step:           {context['step']}")

    lines.append("\nDetails:")
    for line in details.splitlines():
        lines.append(f"  {line}")

    if suggestion:
        lines.append("\nSuggestion:")
        for line in suggestion.splitlines():
            lines.append(f"  {line}")

    lines.append("========================================================================")
    return "\n".join(lines)


# --- The four diagnosable error categories ---
#
# Each subsystem defines its concrete errors in its own `exceptions.py` as
# subclasses of one of these categories, so callers can catch a whole stage
# with a single `except` clause.

@dataclass(frozen=True)
class DeclarationError(DiagnosableError):
    """A component description is malformed. Fatal at load time."""
    component: str
    details: str

    def __str__(self):
        return f"Declaration error in component '{self.component}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Component Declaration Error",
            details=self.details,
            suggestion="Fix the component description before registering it.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class ElaborationError(DiagnosableError):
    """Elaboration of one component instance failed. Carries the full instance path."""
    path: str
    details: str

    def __str__(self):
        return f"Elaboration error at '{self.path}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Elaboration Error",
            details=self.details,
            suggestion="Review the parameters, widths and connections of the reported instance.",
            context={'path': self.path}
        )


@dataclass(frozen=True)
class LoweringError(DiagnosableError):
    """Synthesis of an elaborated graph failed. The behavioral model is still usable."""
    component: str
    details: str

    def __str__(self):
        return f"Lowering error in '{self.component}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Lowering Error",
            details=self.details,
            suggestion="This indicates a defect in the gate expansion rules. The behavioral simulator remains usable.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class SimulationError(DiagnosableError):
    """A simulation run hit a design defect. Never transient, never retried."""
    component: str
    details: str

    def __str__(self):
        return f"Simulation error in '{self.component}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Simulation Error",
            details=self.details,
            suggestion="Fix the design or the stimulus; simulation errors always indicate a defect.",
            context={'component': self.component}
        )
