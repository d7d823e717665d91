# src/rtlsim_core/simulation/__init__.py
from .base import SimulationListener, Simulator
from .behavioral import BehavioralSimulator
from .gate_level import GateLevelSimulator, evaluate_gate
from .config import StimulusConfig, StimulusConfigError, parse_stimulus_config
from .results import Divergence, EquivalenceResult, SimulationTrace
from .execution import check_equivalence, create_simulator, run_stimulus
from .exceptions import (
    EquivalenceDivergenceError,
    SimulationInputError,
    UndrivenSignalReadError,
    UnresolvedCombinationalCycleError,
)

__all__ = [
    "SimulationListener",
    "Simulator",
    "BehavioralSimulator",
    "GateLevelSimulator",
    "evaluate_gate",
    "StimulusConfig",
    "StimulusConfigError",
    "parse_stimulus_config",
    "Divergence",
    "EquivalenceResult",
    "SimulationTrace",
    "check_equivalence",
    "create_simulator",
    "run_stimulus",
    "EquivalenceDivergenceError",
    "SimulationInputError",
    "UndrivenSignalReadError",
    "UnresolvedCombinationalCycleError",
]
