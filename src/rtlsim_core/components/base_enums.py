# src/rtlsim_core/components/base_enums.py
from enum import Enum, auto


class PortDirection(Enum):
    """Direction of a component port, as seen from inside the component."""
    IN = "in"
    OUT = "out"


class SignalKind(Enum):
    """
    Role of an elaborated signal in the flat graph. Ports of sub-instances are
    flattened into INTERNAL signals; only the top-level ports keep their
    direction.
    """
    INPUT = auto()
    OUTPUT = auto()
    INTERNAL = auto()
