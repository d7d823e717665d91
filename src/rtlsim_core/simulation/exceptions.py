# src/rtlsim_core/simulation/exceptions.py
"""
Defines the diagnosable exceptions raised while a design is being simulated.

Every simulation failure is a `SimulationError`: a defect of the design or of
the stimulus, never a transient condition. Nothing here is retried. The only
exception outside that category is `EquivalenceDivergenceError`, which is a
`LoweringError` because a divergence between the two engines means the gate
expansion did not preserve the behavior of the graph.
"""
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..errors import LoweringError, SimulationError, format_diagnostic_report


@dataclass(frozen=True)
class UnresolvedCombinationalCycleError(SimulationError):
    """A combinational loop was entered while evaluating a step."""
    cycle: Tuple[str, ...] = ()
    step: Optional[int] = None

    def get_diagnostic_report(self) -> str:
        loop = " -> ".join(self.cycle) if self.cycle else "(no named signal on the loop)"
        return format_diagnostic_report(
            error_type="Unresolved Combinational Cycle",
            details=f"{self.details}\nSignals on the loop: {loop}",
            suggestion="Break the loop with a register. Elaborate with check_acyclic=True to reject such designs early.",
            context={'component': self.component, 'step': self.step}
        )


@dataclass(frozen=True)
class UndrivenSignalReadError(SimulationError):
    """A signal with no driver, or an input never set and without default, was read."""
    signal: str = ""
    step: Optional[int] = None

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Read of an Undriven Signal",
            details=self.details,
            suggestion="Set the input with set_input(), declare a default for it, or drive the signal in the design.",
            context={'component': self.component, 'signal': self.signal, 'step': self.step}
        )


@dataclass(frozen=True)
class SimulationInputError(SimulationError):
    """An unknown port or clock domain was named, or a value does not fit its port."""
    signal: str = ""
    value: Any = None

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Invalid Simulation Input",
            details=self.details,
            suggestion="Inputs are unsigned integers below 2**width; names must be top-level ports or clock domains.",
            context={'component': self.component, 'signal': self.signal, 'user_input': None if self.value is None else str(self.value)}
        )


@dataclass(frozen=True)
class EquivalenceDivergenceError(LoweringError):
    """The behavioral and gate-level simulators disagreed on an output."""
    step: int = 0
    signal: str = ""
    behavioral_value: Optional[int] = None
    gate_level_value: Optional[int] = None
    inputs: Tuple[Tuple[str, int], ...] = ()

    def get_diagnostic_report(self) -> str:
        details = (
            f"{self.details}\n"
            f"Behavioral value: {self.behavioral_value}, gate-level value: {self.gate_level_value}\n"
            f"Inputs at that step: {dict(self.inputs)}"
        )
        return format_diagnostic_report(
            error_type="Behavioral / Gate-Level Divergence",
            details=details,
            suggestion="The gate expansion of some operation does not match its behavioral semantics.",
            context={'component': self.component, 'signal': self.signal, 'step': self.step}
        )
