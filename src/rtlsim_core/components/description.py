# src/rtlsim_core/components/description.py
"""
The Abstract Component Description: the only contract the authoring front end
has to satisfy. A description is a tree of ports, parameters, internal
signals, memories, sub-instances and ordered behavior statements. The YAML parser
produces these objects; Python code may also build them directly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from ..behavior.nodes import WidthExpr
from ..behavior.statements import ExprSource, Statement
from .base_enums import PortDirection


@dataclass(frozen=True)
class PortDescription:
    name: str
    direction: PortDirection
    width: WidthExpr = 1
    default: Optional[int] = None
    initial: Optional[int] = None


@dataclass(frozen=True)
class SignalDescription:
    """An internal wire or register, invisible from outside the component."""
    name: str
    width: WidthExpr = 1
    default: Optional[int] = None
    initial: Optional[int] = None


@dataclass(frozen=True)
class MemoryDescription:
    """
    An array of `depth` words of `width` bits. `depth` is an integer literal;
    `initial` gives the power-on value of the first words, the rest start at 0.
    """
    name: str
    depth: int
    width: WidthExpr = 1
    initial: Tuple[int, ...] = ()


@dataclass(frozen=True)
class InstanceDescription:
    """
    A sub-component instance. `parameters` values are integers or parameter
    expressions evaluated in the parent's scope; `connections` map the child's
    port names to expressions (inputs) or signal names (outputs) of the parent.
    """
    instance_id: str
    component_type: str
    parameters: Tuple[Tuple[str, Union[int, str]], ...] = ()
    connections: Tuple[Tuple[str, ExprSource], ...] = ()


@dataclass(frozen=True)
class ComponentDescription:
    name: str
    ports: Tuple[PortDescription, ...] = ()
    parameters: Tuple[Tuple[str, Optional[Union[int, str]]], ...] = ()
    signals: Tuple[SignalDescription, ...] = ()
    instances: Tuple[InstanceDescription, ...] = ()
    behavior: Tuple[Statement, ...] = ()
    memories: Tuple[MemoryDescription, ...] = ()
    source_path: Optional[Path] = field(default=None, compare=False)
