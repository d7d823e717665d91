# src/rtlsim_core/components/__init__.py
import logging
logger = logging.getLogger(__name__)

from .base_enums import PortDirection, SignalKind
from .description import (
    ComponentDescription, InstanceDescription, MemoryDescription, PortDescription, SignalDescription,
)
from .definition import ComponentDefinition, InstanceDecl, ParameterDecl
from .registry import ComponentRegistry
from .exceptions import (
    DuplicateNameError, InvalidMemoryError, RecursiveInstantiationError, UnregisteredComponentError,
)

__all__ = [
    "PortDirection",
    "SignalKind",
    "ComponentDescription",
    "InstanceDescription",
    "MemoryDescription",
    "PortDescription",
    "SignalDescription",
    "ComponentDefinition",
    "InstanceDecl",
    "ParameterDecl",
    "ComponentRegistry",
    "DuplicateNameError",
    "InvalidMemoryError",
    "RecursiveInstantiationError",
    "UnregisteredComponentError",
]
