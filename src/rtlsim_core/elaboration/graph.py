# src/rtlsim_core/elaboration/graph.py
"""
The elaborated graph: the flat, fully-resolved form of one top-level component.

Nodes and signals live in two arenas and refer to each other by integer index,
never by object reference. Every signal has at most one driver node; top-level
inputs have none. Hierarchy survives only in the signal names, which are
prefixed with the instance path (`u0.u1.sum`).
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import cached_property
from typing import Dict, Optional, Tuple, Union

import networkx as nx

from ..behavior.nodes import BinaryOperator, UnaryOperator
from ..components.base_enums import PortDirection, SignalKind

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    CONST = auto()
    SIGNAL = auto()
    UNARY = auto()
    BINARY = auto()
    SELECT = auto()
    SLICE = auto()
    CONCAT = auto()
    EXTEND = auto()
    REG_READ = auto()
    REG_WRITE = auto()


@dataclass(frozen=True)
class Signal:
    index: int
    name: str
    width: int
    kind: SignalKind
    initial: int = 0
    default: Optional[int] = None
    path: str = ""

    @property
    def mask(self) -> int:
        return (1 << self.width) - 1


@dataclass(frozen=True)
class Node:
    """
    One node of the arena. Which fields are meaningful depends on `kind`:

    - CONST: `value`.
    - SIGNAL: `signal`, the value of that signal (a read of its driver).
    - UNARY/BINARY: `op` over `operands`.
    - SELECT: `operands[0]` is the condition, the rest are the branches.
    - SLICE: `operands[0]` shifted right by `low`, `width` bits kept.
    - CONCAT: `operands` most significant first.
    - EXTEND: `operands[0]` zero or sign (`signed`) extended to `width`.
    - REG_READ: the stored value of register `signal`.
    - REG_WRITE: next state of register `signal`; `operands[0]` is the data,
      `operands[1]` the optional 1-bit synchronous reset; `value` is the
      reset value and `clock` the top-level input signal of its clock domain.
    """
    index: int
    kind: NodeKind
    width: int
    operands: Tuple[int, ...] = ()
    op: Optional[Union[UnaryOperator, BinaryOperator]] = None
    value: Optional[int] = None
    signal: Optional[int] = None
    clock: Optional[int] = None
    low: int = 0
    signed: bool = False

    @property
    def has_reset(self) -> bool:
        return self.kind is NodeKind.REG_WRITE and len(self.operands) > 1


@dataclass(frozen=True)
class Port:
    """A resolved top-level port of the elaborated design."""
    name: str
    direction: PortDirection
    width: int
    signal: int
    default: Optional[int] = None


@dataclass(frozen=True)
class ElaboratedGraph:
    name: str
    parameters: Tuple[Tuple[str, int], ...]
    ports: Tuple[Port, ...]
    signals: Tuple[Signal, ...]
    nodes: Tuple[Node, ...]
    drivers: Tuple[Optional[int], ...]
    register_writes: Tuple[int, ...]
    _signal_index: Dict[str, int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_signal_index", {s.name: s.index for s in self.signals})

    # --- Lookups ---

    def signal(self, name: str) -> Signal:
        try:
            return self.signals[self._signal_index[name]]
        except KeyError:
            raise KeyError(f"Design '{self.name}' has no signal named '{name}'.") from None

    def has_signal(self, name: str) -> bool:
        return name in self._signal_index

    def port(self, name: str) -> Optional[Port]:
        for port in self.ports:
            if port.name == name:
                return port
        return None

    def driver(self, signal_index: int) -> Optional[Node]:
        index = self.drivers[signal_index]
        return None if index is None else self.nodes[index]

    @property
    def inputs(self) -> Tuple[Port, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.IN)

    @property
    def outputs(self) -> Tuple[Port, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.OUT)

    @property
    def signal_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.signals)

    @property
    def register_signals(self) -> Tuple[int, ...]:
        return tuple(self.nodes[i].signal for i in self.register_writes)

    @property
    def clock_domains(self) -> Tuple[str, ...]:
        """Names of the top-level inputs used as register clocks, in port order."""
        used = {self.nodes[i].clock for i in self.register_writes}
        return tuple(p.name for p in self.inputs if p.signal in used)

    # --- Structure ---

    def operand_edges(self, node: Node) -> Tuple[int, ...]:
        """The node indices a node's value depends on within one step."""
        if node.kind is NodeKind.SIGNAL:
            driver = self.drivers[node.signal]
            return () if driver is None else (driver,)
        if node.kind is NodeKind.REG_READ:
            return ()
        return node.operands

    @cached_property
    def dependency_graph(self) -> nx.DiGraph:
        """The combinational dependency graph; edges point from operand to user."""
        graph = nx.DiGraph()
        graph.add_nodes_from(range(len(self.nodes)))
        for node in self.nodes:
            for operand in self.operand_edges(node):
                graph.add_edge(operand, node.index)
        return graph

    @cached_property
    def fingerprint(self) -> str:
        content = repr((self.name, self.parameters, self.ports, self.signals, self.nodes,
                        self.drivers, self.register_writes))
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def summary(self) -> str:
        return (
            f"'{self.name}': {len(self.signals)} signal(s), {len(self.nodes)} node(s), "
            f"{len(self.register_writes)} register(s), clock domain(s) {list(self.clock_domains)}"
        )
