# src/rtlsim_core/synthesis/__init__.py
from .netlist import GATE_ARITY, Gate, GateKind, Netlist, NetlistPort, Register
from .lowering import Lowerer, lower
from .exceptions import (
    CyclicDesignError,
    NetlistIntegrityError,
    NondeterministicLoweringError,
    UnsupportedOperationError,
)

__all__ = [
    "GATE_ARITY",
    "Gate",
    "GateKind",
    "Netlist",
    "NetlistPort",
    "Register",
    "Lowerer",
    "lower",
    "CyclicDesignError",
    "NetlistIntegrityError",
    "NondeterministicLoweringError",
    "UnsupportedOperationError",
]
