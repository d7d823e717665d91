# src/rtlsim_core/behavior/exceptions.py
"""
Diagnosable errors raised while turning a component's behavior statements into
a static expression graph. All of them are `DeclarationError`s: they are
detected when the component type is registered and are fatal at load time.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import DeclarationError, format_diagnostic_report


@dataclass(frozen=True)
class ExpressionSyntaxError(DeclarationError):
    """An expression string is not valid in the expression language."""
    user_input: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Expression",
            details=self.details,
            suggestion=(
                "Expressions use Python syntax restricted to integer operators (+ - * & | ^ << >> ~), "
                "comparisons, 'x if c else y', bit slices 'a[hi:lo]' and the functions "
                "cat, rep, zext, sext, trunc, const, mux, reduce_and, reduce_or, reduce_xor."
            ),
            context={'component': self.component, 'user_input': self.user_input}
        )


@dataclass(frozen=True)
class InferredLatchError(DeclarationError):
    """A combinational signal is left unassigned on some conditional path."""
    signal: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Inferred Latch",
            details=self.details,
            suggestion=(
                "Assign the signal on every path (for example with an unconditional default "
                "assignment before the conditional), or declare a 'default' value for it."
            ),
            context={'component': self.component, 'signal': self.signal}
        )


@dataclass(frozen=True)
class MultipleDriverError(DeclarationError):
    """A signal is driven both combinationally and by a register, or by two clock domains."""
    signal: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Multiple Drivers",
            details=self.details,
            suggestion="Every signal must have exactly one driver. Move all assignments to one block.",
            context={'component': self.component, 'signal': self.signal}
        )


@dataclass(frozen=True)
class InvalidAssignmentTargetError(DeclarationError):
    """An assignment targets an input port, a parameter or an undeclared name."""
    signal: str = ""
    available: Tuple[str, ...] = ()

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.available:
            details += f"\nAssignable signals: {', '.join(self.available)}"
        return format_diagnostic_report(
            error_type="Invalid Assignment Target",
            details=details,
            suggestion="Only output ports and declared internal signals can be assigned.",
            context={'component': self.component, 'signal': self.signal}
        )


@dataclass(frozen=True)
class UnknownNameError(DeclarationError):
    """An expression reads a name that is neither a signal nor a parameter."""
    name: str = ""
    statement: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unknown Name",
            details=self.details,
            suggestion="Declare the name as a port, an internal signal or a parameter of the component.",
            context={'component': self.component, 'signal': self.name, 'user_input': self.statement}
        )
