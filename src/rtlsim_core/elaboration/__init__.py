# src/rtlsim_core/elaboration/__init__.py
from .graph import ElaboratedGraph, Node, NodeKind, Port, Signal
from .elaborator import Elaborator, literal_width
from .exceptions import (
    ClockDomainError,
    CombinationalCycleError,
    InvalidConnectionError,
    InvalidWidthError,
    MultipleDriversError,
    UnconnectedPortError,
    UnknownPortError,
    WidthMismatchError,
)

__all__ = [
    "ElaboratedGraph",
    "Node",
    "NodeKind",
    "Port",
    "Signal",
    "Elaborator",
    "literal_width",
    "ClockDomainError",
    "CombinationalCycleError",
    "InvalidConnectionError",
    "InvalidWidthError",
    "MultipleDriversError",
    "UnconnectedPortError",
    "UnknownPortError",
    "WidthMismatchError",
]
