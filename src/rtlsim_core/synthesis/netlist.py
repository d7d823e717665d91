# src/rtlsim_core/synthesis/netlist.py
"""
The gate-level netlist: the output of the lowering pass and the input of the
gate-level simulator and of the exporters.

Only seven primitives exist: the combinational gates AND, OR, XOR, NOT, MUX
and CONST, and the single-bit `Register` (a D flip-flop with optional
synchronous reset). Nets are plain integers. Every multi-bit port lists its
nets LSB first.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Dict, List, Optional, Tuple

import networkx as nx

from ..components.base_enums import PortDirection
from .exceptions import NetlistIntegrityError

logger = logging.getLogger(__name__)


class GateKind(Enum):
    AND = "and"
    OR = "or"
    XOR = "xor"
    NOT = "not"
    MUX = "mux"
    CONST = "const"


# MUX inputs are ordered (d0, d1, sel): the output is d1 when sel is 1.
GATE_ARITY: Dict[GateKind, int] = {
    GateKind.AND: 2,
    GateKind.OR: 2,
    GateKind.XOR: 2,
    GateKind.NOT: 1,
    GateKind.MUX: 3,
    GateKind.CONST: 0,
}


@dataclass(frozen=True)
class Gate:
    id: int
    kind: GateKind
    inputs: Tuple[int, ...]
    output: int
    value: Optional[int] = None  # CONST only


@dataclass(frozen=True)
class Register:
    """
    One D flip-flop bit. On a rising edge of `clock`, `output` takes `data`,
    or `reset_value` when the `reset` net is 1. `init` is the power-on value.
    """
    id: int
    data: int
    clock: int
    reset: Optional[int]
    output: int
    reset_value: int = 0
    init: int = 0


@dataclass(frozen=True)
class NetlistPort:
    name: str
    direction: PortDirection
    nets: Tuple[int, ...]
    default: Optional[int] = None

    @property
    def width(self) -> int:
        return len(self.nets)


@dataclass(frozen=True)
class Netlist:
    name: str
    ports: Tuple[NetlistPort, ...]
    gates: Tuple[Gate, ...]
    registers: Tuple[Register, ...]
    net_count: int
    # Names of internal signals and their nets, kept for debugging and tracing.
    symbols: Tuple[Tuple[str, Tuple[int, ...]], ...] = field(default=(), compare=False)

    # --- Lookups ---

    def port(self, name: str) -> Optional[NetlistPort]:
        for port in self.ports:
            if port.name == name:
                return port
        return None

    @property
    def inputs(self) -> Tuple[NetlistPort, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.IN)

    @property
    def outputs(self) -> Tuple[NetlistPort, ...]:
        return tuple(p for p in self.ports if p.direction is PortDirection.OUT)

    def symbol(self, name: str) -> Optional[Tuple[int, ...]]:
        port = self.port(name)
        if port is not None:
            return port.nets
        return dict(self.symbols).get(name)

    @property
    def gate_counts(self) -> Counter:
        return Counter(g.kind for g in self.gates)

    @property
    def clock_nets(self) -> Tuple[int, ...]:
        """Clock nets in order of first use by a register."""
        return tuple(dict.fromkeys(r.clock for r in self.registers))

    def clock_name(self, net: int) -> str:
        for port in self.inputs:
            if net in port.nets:
                return port.name if port.width == 1 else f"{port.name}[{port.nets.index(net)}]"
        return f"n{net}"

    # --- Structure ---

    @cached_property
    def net_drivers(self) -> Dict[int, Tuple[str, int]]:
        """Maps each driven net to ("input", port index), ("gate", gate index) or ("register", register index)."""
        drivers: Dict[int, Tuple[str, int]] = {}
        duplicates: List[int] = []

        def claim(net: int, driver: Tuple[str, int]):
            if net in drivers:
                duplicates.append(net)
            drivers[net] = driver

        for index, port in enumerate(self.ports):
            if port.direction is PortDirection.IN:
                for net in port.nets:
                    claim(net, ("input", index))
        for index, gate in enumerate(self.gates):
            claim(gate.output, ("gate", index))
        for index, register in enumerate(self.registers):
            claim(register.output, ("register", index))
        if duplicates:
            raise NetlistIntegrityError(
                component=self.name,
                details="Some nets have more than one driver.",
                nets=tuple(sorted(set(duplicates))),
            )
        return drivers

    def combinational_graph(self) -> nx.DiGraph:
        """Gate indices as nodes; an edge runs from the gate driving a net to each gate reading it."""
        graph = nx.DiGraph()
        graph.add_nodes_from(range(len(self.gates)))
        drivers = self.net_drivers
        for index, gate in enumerate(self.gates):
            for net in gate.inputs:
                driver = drivers.get(net)
                if driver is not None and driver[0] == "gate":
                    graph.add_edge(driver[1], index)
        return graph

    def check_integrity(self) -> "Netlist":
        """Raises NetlistIntegrityError if a structural invariant is violated; returns self."""
        for gate in self.gates:
            if len(gate.inputs) != GATE_ARITY[gate.kind]:
                raise NetlistIntegrityError(
                    component=self.name,
                    details=f"Gate {gate.id} ({gate.kind.value}) has {len(gate.inputs)} input(s).",
                    nets=(gate.output,),
                )
            if gate.kind is GateKind.CONST and gate.value not in (0, 1):
                raise NetlistIntegrityError(
                    component=self.name,
                    details=f"Constant gate {gate.id} has value {gate.value!r}; expected 0 or 1.",
                    nets=(gate.output,),
                )
        all_nets = [n for p in self.ports for n in p.nets]
        all_nets += [n for g in self.gates for n in g.inputs + (g.output,)]
        all_nets += [n for r in self.registers for n in (r.data, r.clock, r.output) + ((r.reset,) if r.reset is not None else ())]
        out_of_range = sorted({n for n in all_nets if not 0 <= n < self.net_count})
        if out_of_range:
            raise NetlistIntegrityError(
                component=self.name,
                details=f"Nets outside the range 0..{self.net_count - 1} are referenced.",
                nets=tuple(out_of_range),
            )

        drivers = self.net_drivers
        for register in self.registers:
            driver = drivers.get(register.clock)
            if driver is None or driver[0] != "input":
                raise NetlistIntegrityError(
                    component=self.name,
                    details=f"Register {register.id} is clocked by a net that is not a top-level input.",
                    nets=(register.clock,),
                )
        try:
            cycle = nx.find_cycle(self.combinational_graph())
        except nx.NetworkXNoCycle:
            cycle = None
        if cycle:
            raise NetlistIntegrityError(
                component=self.name,
                details="The combinational gates form a loop.",
                nets=tuple(self.gates[source].output for source, _ in cycle),
            )
        return self

    # --- Canonical form ---

    def canonical(self) -> "Netlist":
        """
        Renumbers nets by first appearance (ports, then gates, then registers)
        and groups registers by clock domain, keeping their relative order.
        Two netlists with the same structure have equal canonical forms.
        """
        mapping: Dict[int, int] = {}

        def number(net: Optional[int]) -> Optional[int]:
            if net is None:
                return None
            if net not in mapping:
                mapping[net] = len(mapping)
            return mapping[net]

        ports = tuple(
            NetlistPort(p.name, p.direction, tuple(number(n) for n in p.nets), p.default)
            for p in self.ports
        )
        gates = tuple(
            Gate(i, g.kind, tuple(number(n) for n in g.inputs), number(g.output), g.value)
            for i, g in enumerate(self.gates)
        )
        ordered = sorted(
            self.registers,
            key=lambda r: (0, mapping[r.clock]) if r.clock in mapping else (1, 0),
        )
        registers = []
        for i, r in enumerate(ordered):
            registers.append(Register(
                id=i,
                data=number(r.data),
                clock=number(r.clock),
                reset=number(r.reset),
                output=number(r.output),
                reset_value=r.reset_value if r.reset is not None else 0,
                init=r.init,
            ))
        symbols = tuple(
            (name, tuple(mapping[n] for n in nets))
            for name, nets in self.symbols
            if all(n in mapping for n in nets)
        )
        return Netlist(self.name, ports, gates, tuple(registers), len(mapping), symbols)

    def structure(self) -> Tuple:
        return (self.ports, self.gates, self.registers, self.net_count)

    def structurally_equal(self, other: "Netlist") -> bool:
        return self.canonical().structure() == other.canonical().structure()

    def first_difference(self, other: "Netlist") -> Optional[str]:
        """A short description of the first structural difference, or None."""
        mine, theirs = self.canonical(), other.canonical()
        for label, left, right in (
            ("port", mine.ports, theirs.ports),
            ("gate", mine.gates, theirs.gates),
            ("register", mine.registers, theirs.registers),
        ):
            for a, b in zip(left, right):
                if a != b:
                    return f"{label} {a} != {b}"
            if len(left) != len(right):
                return f"{label} count {len(left)} != {len(right)}"
        if mine.net_count != theirs.net_count:
            return f"net count {mine.net_count} != {theirs.net_count}"
        return None

    def summary(self) -> str:
        counts = self.gate_counts
        kinds = ", ".join(f"{k.value}={counts[k]}" for k in GateKind if counts[k])
        return (
            f"netlist '{self.name}': {self.net_count} net(s), {len(self.gates)} gate(s) "
            f"[{kinds or 'none'}], {len(self.registers)} register(s)"
        )
