# src/rtlsim_core/simulation/results.py
"""
Defines the explicit, immutable result contracts of the run facades.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .exceptions import EquivalenceDivergenceError


@dataclass(frozen=True)
class SimulationTrace:
    """
    The outputs of a stimulus run, one array per output port.

    Attributes:
        design: Name of the simulated design.
        steps: Number of steps executed.
        outputs: Output port name to an array of length `steps` holding the
                 value observed in each step (before that step's clock edge).
                 Ports wider than 63 bits use an object array of Python ints.
    """
    design: str
    steps: int
    outputs: Dict[str, np.ndarray]

    def output(self, name: str) -> np.ndarray:
        return self.outputs[name]

    def as_rows(self):
        """The trace as one {port: value} dict per step."""
        return [{name: int(values[i]) for name, values in self.outputs.items()} for i in range(self.steps)]


@dataclass(frozen=True)
class Divergence:
    """The first step at which the two simulators disagreed."""
    step: int
    signal: str
    behavioral_value: Optional[int]
    gate_level_value: Optional[int]
    inputs: Tuple[Tuple[str, int], ...]


@dataclass(frozen=True)
class EquivalenceResult:
    """
    The outcome of running the behavioral and gate-level simulators side by side.

    Attributes:
        design: Name of the checked design.
        steps_checked: Number of steps compared (up to and including a divergence).
        divergence: The first divergence, or None if the runs agreed.
    """
    design: str
    steps_checked: int
    divergence: Optional[Divergence] = None

    @property
    def equivalent(self) -> bool:
        return self.divergence is None

    def raise_for_divergence(self) -> "EquivalenceResult":
        """Raises EquivalenceDivergenceError if the runs diverged; returns self otherwise."""
        if self.divergence is not None:
            d = self.divergence
            raise EquivalenceDivergenceError(
                component=self.design,
                details=f"Output '{d.signal}' differs at step {d.step}.",
                step=d.step,
                signal=d.signal,
                behavioral_value=d.behavioral_value,
                gate_level_value=d.gate_level_value,
                inputs=d.inputs,
            )
        return self
