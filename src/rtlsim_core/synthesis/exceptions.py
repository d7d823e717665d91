# src/rtlsim_core/synthesis/exceptions.py
"""
Defines the diagnosable exceptions of the lowering pass and of netlist
integrity checks. All of them are `LoweringError`s: a failure here never
affects the elaborated graph, which stays usable by the behavioral simulator.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import LoweringError, format_diagnostic_report


@dataclass(frozen=True)
class UnsupportedOperationError(LoweringError):
    """A graph node has no gate expansion rule."""
    operation: str = ""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unsupported Operation",
            details=f"{self.details}\nOperation: {self.operation}",
            suggestion="Every node kind and operator needs an expansion rule in the lowering dispatch tables.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class NondeterministicLoweringError(LoweringError):
    """Two lowerings of the same graph produced structurally different netlists."""
    first_difference: Optional[str] = None

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.first_difference:
            details += f"\nFirst difference: {self.first_difference}"
        return format_diagnostic_report(
            error_type="Nondeterministic Lowering",
            details=details,
            suggestion="Lowering must not depend on iteration order of unordered collections. This is a framework defect.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class CyclicDesignError(LoweringError):
    """The elaborated graph has a combinational cycle and cannot be ordered."""

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Cyclic Design",
            details=self.details,
            suggestion="Elaborate with check_acyclic=True to locate the loop, then break it with a register.",
            context={'component': self.component}
        )


@dataclass(frozen=True)
class NetlistIntegrityError(LoweringError):
    """A netlist violates a structural invariant (multiple drivers, bad arity, combinational loop)."""
    nets: Tuple[int, ...] = ()

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.nets:
            details += f"\nNets involved: {', '.join(str(n) for n in self.nets)}"
        return format_diagnostic_report(
            error_type="Netlist Integrity Error",
            details=details,
            suggestion="Netlists must have one driver per net, correct gate arities and an acyclic combinational part.",
            context={'component': self.component}
        )
