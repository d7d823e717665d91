# src/rtlsim_core/elaboration/exceptions.py
"""
Defines the diagnosable exceptions raised while elaborating a component into a
flat graph. Every error is an `ElaborationError` reported with the full
instance path (e.g. `cpu.alu.adder0`) of the instance that failed.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import ElaborationError, format_diagnostic_report


@dataclass(frozen=True)
class WidthMismatchError(ElaborationError):
    """Two signals of differing width are bound without an explicit truncate/extend."""
    expected: Optional[int] = None
    actual: Optional[int] = None
    signal: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.expected is not None and self.actual is not None:
            details += f"\nExpected width: {self.expected}, actual width: {self.actual}."
        return format_diagnostic_report(
            error_type="Width Mismatch",
            details=details,
            suggestion=(
                "Widths are never converted implicitly. Use zext(x, W), sext(x, W), trunc(x, W) "
                "or a slice x[hi:lo] to make both sides the same width."
            ),
            context={'path': self.path, 'signal': self.signal}
        )


@dataclass(frozen=True)
class UnknownPortError(ElaborationError):
    """An instance connects a port that its component definition does not declare."""
    port: str = ""
    component_type: str = ""
    available: Tuple[str, ...] = ()

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unknown Port",
            details=f"{self.details}\nPorts of '{self.component_type}': {', '.join(self.available) or '(none)'}",
            suggestion="Check the spelling of the port name in the instance's connection map.",
            context={'path': self.path}
        )


@dataclass(frozen=True)
class UnconnectedPortError(ElaborationError):
    """An instance input port without a default value is left unconnected."""
    port: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unconnected Input Port",
            details=self.details,
            suggestion=f"Connect '{self.port}' or declare a default value for it.",
            context={'path': self.path, 'signal': self.port}
        )


@dataclass(frozen=True)
class InvalidConnectionError(ElaborationError):
    """An output port is connected to something other than a parent signal."""
    port: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Output Connection",
            details=self.details,
            suggestion="Output ports must be connected to the plain name of a signal of the parent component.",
            context={'path': self.path, 'signal': self.port}
        )


@dataclass(frozen=True)
class MultipleDriversError(ElaborationError):
    """A flattened signal ends up with more than one driver."""
    signal: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Multiple Drivers",
            details=self.details,
            suggestion="Every signal must have exactly one driver. Input ports can only be driven from outside.",
            context={'path': self.path, 'signal': self.signal}
        )


@dataclass(frozen=True)
class InvalidWidthError(ElaborationError):
    """A width or bit index resolves to a value outside its valid range."""
    user_input: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Width",
            details=self.details,
            suggestion="Signal widths must be positive and bit indices must lie within the operand.",
            context={'path': self.path, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class ClockDomainError(ElaborationError):
    """A register clock does not resolve to a 1-bit top-level input port."""
    signal: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Clock Domain",
            details=self.details,
            suggestion=(
                "Register clocks must be 1-bit top-level input ports, possibly passed down through "
                "instance ports. Gated or derived clocks are not supported; use an enable condition."
            ),
            context={'path': self.path, 'signal': self.signal}
        )


@dataclass(frozen=True)
class CombinationalCycleError(ElaborationError):
    """The combinational subgraph contains a cycle not broken by a register."""
    cycle: Tuple[str, ...] = ()

    def get_diagnostic_report(self) -> str:
        loop = " -> ".join(self.cycle + self.cycle[:1]) if self.cycle else "(anonymous nodes)"
        return format_diagnostic_report(
            error_type="Combinational Cycle",
            details=f"{self.details}\nSignals on the loop: {loop}",
            suggestion="Break the loop with a register, or restructure the logic so no signal depends on itself.",
            context={'path': self.path}
        )
