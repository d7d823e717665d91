# src/rtlsim_core/simulation/gate_level.py
"""
The gate-level simulator: executes a `Netlist` of the seven primitives.

Gates are evaluated once per step in a topological schedule computed at
construction time. Net values are 0, 1 or None for X, the value of a net that
nothing drives. X propagates through gates unless the other inputs decide the
result (AND with a 0, OR with a 1, MUX with a known select). An X that reaches
an output port or the next state of a register is a read of an undriven
signal.
"""
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

import networkx as nx

from ..synthesis.netlist import Gate, GateKind, Netlist, Register
from .base import Simulator
from .exceptions import UndrivenSignalReadError, UnresolvedCombinationalCycleError

logger = logging.getLogger(__name__)

Bit = Optional[int]


def evaluate_gate(kind: GateKind, inputs: List[Bit], value: Optional[int] = None) -> Bit:
    """The output of one primitive, with X (None) propagation."""
    if kind is GateKind.CONST:
        return value
    if kind is GateKind.NOT:
        a = inputs[0]
        return None if a is None else 1 - a
    if kind is GateKind.AND:
        a, b = inputs
        if a == 0 or b == 0:
            return 0
        return None if a is None or b is None else 1
    if kind is GateKind.OR:
        a, b = inputs
        if a == 1 or b == 1:
            return 1
        return None if a is None or b is None else 0
    if kind is GateKind.XOR:
        a, b = inputs
        return None if a is None or b is None else a ^ b
    if kind is GateKind.MUX:
        d0, d1, sel = inputs
        if sel is None:
            return d0 if d0 == d1 else None
        return d1 if sel else d0
    raise ValueError(f"Unknown gate kind {kind}")


class GateLevelSimulator(Simulator):
    """
    Executes a `Netlist` with the stepping contract of `Simulator`.
    """

    def __init__(self, netlist: Netlist):
        clock_domains = tuple(
            p.name for p in netlist.inputs if any(n in netlist.clock_nets for n in p.nets)
        )
        super().__init__(
            name=netlist.name,
            inputs=[(p.name, p.width, p.default) for p in netlist.inputs],
            outputs=[(p.name, p.width) for p in netlist.outputs],
            clock_domains=clock_domains,
        )
        self.netlist = netlist
        try:
            order = list(nx.lexicographical_topological_sort(netlist.combinational_graph()))
        except nx.NetworkXUnfeasible as e:
            cycle = nx.find_cycle(netlist.combinational_graph())
            raise UnresolvedCombinationalCycleError(
                component=netlist.name,
                details="The netlist's combinational gates form a loop; no evaluation schedule exists.",
                cycle=tuple(f"n{netlist.gates[source].output}" for source, _ in cycle),
            ) from e
        self._schedule: Tuple[Gate, ...] = tuple(netlist.gates[i] for i in order)
        self._symbols: Dict[str, Tuple[int, ...]] = {name: nets for name, nets in netlist.symbols}
        for port in netlist.ports:
            self._symbols[port.name] = port.nets
        self._domain_registers = {
            domain: tuple(
                i for i, r in enumerate(netlist.registers) if r.clock in netlist.port(domain).nets
            )
            for domain in clock_domains
        }
        self._state: List[int] = []
        self._nets: List[Bit] = []
        self._reset_state()
        logger.info("Gate-level simulator created for %s.", netlist.summary())

    @property
    def signal_names(self) -> Tuple[str, ...]:
        return tuple(self._symbols)

    def signal_width(self, name: str) -> int:
        return len(self._symbols[name])

    def net_value(self, net: int) -> Bit:
        """The raw value (0, 1, or None for X) of a net for the current state."""
        if self._stale:
            self.evaluate()
        return self._nets[net]

    def _settle(self):
        nets: List[Bit] = [None] * self.netlist.net_count
        for port in self.netlist.inputs:
            value = self.input_value(port.name)
            if value is not None:
                for bit, net in enumerate(port.nets):
                    nets[net] = (value >> bit) & 1
        for register, stored in zip(self.netlist.registers, self._state):
            nets[register.output] = stored
        for gate in self._schedule:
            nets[gate.output] = evaluate_gate(gate.kind, [nets[n] for n in gate.inputs], gate.value)
        self._nets = nets

    def _read(self, name: str) -> int:
        value = 0
        for bit, net in enumerate(self._symbols[name]):
            level = self._nets[net]
            if level is None:
                raise UndrivenSignalReadError(
                    component=self.name,
                    details=f"Bit {bit} of '{name}' (net n{net}) is unknown: it depends on an undriven net.",
                    signal=name,
                    step=self.step_count,
                )
            value |= level << bit
        return value

    def _commit(self, domains: FrozenSet[str]):
        updates = {}
        for domain in self.clock_domains:
            if domain not in domains:
                continue
            for index in self._domain_registers[domain]:
                updates[index] = self._next_state(self.netlist.registers[index])
        for index, value in updates.items():
            self._state[index] = value

    def _next_state(self, register: Register) -> int:
        reset = self._nets[register.reset] if register.reset is not None else 0
        data = self._nets[register.data]
        if reset == 1:
            return register.reset_value
        if reset is None and data == register.reset_value:
            return data
        if reset is None or data is None:
            raise UndrivenSignalReadError(
                component=self.name,
                details=f"Register {register.id} (output n{register.output}) would store an unknown value.",
                signal=f"n{register.output}",
                step=self.step_count,
            )
        return data

    def _reset_state(self):
        self._state = [r.init for r in self.netlist.registers]
        self._nets = []
