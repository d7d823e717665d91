# src/rtlsim_core/components/definition.py
"""
Immutable component definitions, the registered form of a component type.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..behavior.builder import BehaviorGraph
from ..behavior.nodes import Expr
from .base_enums import PortDirection
from .description import MemoryDescription, PortDescription, SignalDescription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterDecl:
    """A compile-time parameter. A `default` of None means it must be bound."""
    name: str
    default: Optional[Union[int, str]] = None


@dataclass(frozen=True)
class InstanceDecl:
    """A sub-instance with its connection expressions already parsed."""
    instance_id: str
    component_type: str
    parameters: Tuple[Tuple[str, Union[int, str]], ...]
    connections: Tuple[Tuple[str, Expr], ...]


@dataclass(frozen=True)
class ComponentDefinition:
    """
    The immutable template of a component type. Created once by the
    `ComponentRegistry` and never mutated afterwards.
    """
    name: str
    ports: Tuple[PortDescription, ...]
    parameters: Tuple[ParameterDecl, ...]
    signals: Tuple[SignalDescription, ...]
    instances: Tuple[InstanceDecl, ...]
    behavior: BehaviorGraph
    memories: Tuple[MemoryDescription, ...] = ()
    source_path: Optional[Path] = field(default=None, compare=False)

    def port(self, name: str) -> Optional[PortDescription]:
        return self._ports_by_name.get(name)

    @property
    def port_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.ports)

    @property
    def inputs(self) -> Tuple[PortDescription, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.IN)

    @property
    def outputs(self) -> Tuple[PortDescription, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.OUT)

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    @property
    def dependencies(self) -> Tuple[str, ...]:
        """Component types instantiated by this definition, without duplicates."""
        return tuple(dict.fromkeys(inst.component_type for inst in self.instances))

    @cached_property
    def _ports_by_name(self) -> Dict[str, PortDescription]:
        return {p.name: p for p in self.ports}

    @cached_property
    def fingerprint(self) -> str:
        """A stable digest of the definition's content, used in cache keys."""
        content = repr((
            self.name, self.ports, self.parameters, self.signals, self.instances, self.behavior, self.memories,
        ))
        return hashlib.sha256(content.encode("utf-8")).hexdigest()


