# src/rtlsim_core/simulation/behavioral.py
"""
The behavioral simulator: executes an elaborated graph directly.

Evaluation is demand-driven. Reading a signal evaluates exactly the nodes it
depends on, each at most once per step, using an explicit work stack rather
than recursion so deep designs cannot exhaust the interpreter stack. A Select
evaluates its condition first and then only the chosen branch, so a loop
through an unselected branch is never entered. A node that is re-entered
while its own evaluation is still pending is a combinational cycle.
"""
import logging
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from ..behavior.nodes import BinaryOperator, UnaryOperator
from ..components.base_enums import SignalKind
from ..elaboration.graph import ElaboratedGraph, Node, NodeKind
from .base import Simulator
from .exceptions import UndrivenSignalReadError, UnresolvedCombinationalCycleError

logger = logging.getLogger(__name__)


def _mask(width: int) -> int:
    return (1 << width) - 1


def _unary(op: UnaryOperator, value: int, operand_width: int, width: int) -> int:
    if op is UnaryOperator.NOT:
        return ~value & _mask(width)
    if op is UnaryOperator.NEG:
        return -value & _mask(width)
    if op is UnaryOperator.LOGICAL_NOT:
        return int(value == 0)
    if op is UnaryOperator.REDUCE_AND:
        return int(value == _mask(operand_width))
    if op is UnaryOperator.REDUCE_OR:
        return int(value != 0)
    if op is UnaryOperator.REDUCE_XOR:
        return bin(value).count("1") & 1
    raise ValueError(f"Unknown unary operator {op}")


def _binary(op: BinaryOperator, a: int, b: int, width: int) -> int:
    mask = _mask(width)
    if op is BinaryOperator.AND:
        return a & b
    if op is BinaryOperator.OR:
        return a | b
    if op is BinaryOperator.XOR:
        return a ^ b
    if op is BinaryOperator.ADD:
        return (a + b) & mask
    if op is BinaryOperator.SUB:
        return (a - b) & mask
    if op is BinaryOperator.MUL:
        return (a * b) & mask
    if op is BinaryOperator.SHL:
        return (a << b) & mask if b < width else 0
    if op is BinaryOperator.SHR:
        return a >> b if b < width else 0
    if op is BinaryOperator.EQ:
        return int(a == b)
    if op is BinaryOperator.NE:
        return int(a != b)
    if op is BinaryOperator.LT:
        return int(a < b)
    if op is BinaryOperator.LE:
        return int(a <= b)
    if op is BinaryOperator.GT:
        return int(a > b)
    if op is BinaryOperator.GE:
        return int(a >= b)
    raise ValueError(f"Unknown binary operator {op}")


class _Evaluation:
    """
    One settled step: a frozen copy of the inputs and register values plus
    the memo of every node evaluated so far.
    """

    def __init__(self, simulator: "BehavioralSimulator", inputs: Dict[int, Optional[int]], registers: Dict[int, int]):
        self._sim = simulator
        self._graph = simulator.graph
        self._inputs = inputs
        self._registers = registers
        self._memo: Dict[int, int] = {}

    def signal(self, index: int) -> int:
        driver = self._graph.drivers[index]
        if driver is not None:
            return self.node(driver)
        return self._undriven(index)

    def node(self, root: int) -> int:
        memo = self._memo
        if root in memo:
            return memo[root]
        nodes = self._graph.nodes
        stack: List[int] = [root]
        pending: Set[int] = set()
        while stack:
            index = stack[-1]
            if index in memo:
                stack.pop()
                continue
            node = nodes[index]
            missing = [d for d in self._needed(node) if d not in memo]
            if not missing:
                memo[index] = self._compute(node)
                pending.discard(index)
                stack.pop()
                continue
            pending.add(index)
            for dependency in missing:
                if dependency in pending:
                    raise self._cycle_error(stack, dependency)
                stack.append(dependency)
        return memo[root]

    def _needed(self, node: Node) -> Tuple[int, ...]:
        """The operands whose values are needed now, given what is already known."""
        kind = node.kind
        if kind is NodeKind.SIGNAL:
            driver = self._graph.drivers[node.signal]
            return () if driver is None else (driver,)
        if kind is NodeKind.SELECT:
            condition = node.operands[0]
            if condition not in self._memo:
                return (condition,)
            return (self._chosen_branch(node),)
        if kind is NodeKind.REG_WRITE and node.has_reset:
            reset = node.operands[1]
            if reset not in self._memo:
                return (reset,)
            return () if self._memo[reset] else (node.operands[0],)
        if kind in (NodeKind.CONST, NodeKind.REG_READ):
            return ()
        return node.operands

    def _chosen_branch(self, node: Node) -> int:
        branches = node.operands[1:]
        return branches[min(self._memo[node.operands[0]], len(branches) - 1)]

    def _compute(self, node: Node) -> int:
        memo = self._memo
        kind = node.kind
        if kind is NodeKind.CONST:
            return node.value
        if kind is NodeKind.SIGNAL:
            driver = self._graph.drivers[node.signal]
            return memo[driver] if driver is not None else self._undriven(node.signal)
        if kind is NodeKind.REG_READ:
            return self._registers[node.signal]
        if kind is NodeKind.UNARY:
            operand = node.operands[0]
            return _unary(node.op, memo[operand], self._graph.nodes[operand].width, node.width)
        if kind is NodeKind.BINARY:
            left, right = node.operands
            width = self._graph.nodes[left].width
            return _binary(node.op, memo[left], memo[right], width)
        if kind is NodeKind.SELECT:
            return memo[self._chosen_branch(node)]
        if kind is NodeKind.SLICE:
            return (memo[node.operands[0]] >> node.low) & _mask(node.width)
        if kind is NodeKind.CONCAT:
            value = 0
            for part in node.operands:
                value = (value << self._graph.nodes[part].width) | memo[part]
            return value
        if kind is NodeKind.EXTEND:
            operand = node.operands[0]
            value = memo[operand]
            operand_width = self._graph.nodes[operand].width
            if node.signed and value >> (operand_width - 1) & 1:
                value |= _mask(node.width) ^ _mask(operand_width)
            return value
        if kind is NodeKind.REG_WRITE:
            if node.has_reset and memo[node.operands[1]]:
                return node.value
            return memo[node.operands[0]]
        raise ValueError(f"Unknown node kind {kind}")

    def _undriven(self, index: int) -> int:
        signal = self._graph.signals[index]
        if signal.kind is SignalKind.INPUT:
            value = self._inputs.get(index)
            if value is not None:
                return value
            details = f"Input '{signal.name}' was read but never set and has no default value."
        else:
            details = f"Signal '{signal.name}' was read but has no driver."
        raise UndrivenSignalReadError(
            component=self._graph.name,
            details=details,
            signal=signal.name,
            step=self._sim.step_count,
        )

    def _cycle_error(self, stack: List[int], reentered: int) -> UnresolvedCombinationalCycleError:
        start = stack.index(reentered)
        names = []
        for index in stack[start:]:
            node = self._graph.nodes[index]
            if node.kind is NodeKind.SIGNAL:
                name = self._graph.signals[node.signal].name
                if name not in names:
                    names.append(name)
        return UnresolvedCombinationalCycleError(
            component=self._graph.name,
            details="A combinational cycle was entered while evaluating the design.",
            cycle=tuple(names),
            step=self._sim.step_count,
        )


class BehavioralSimulator(Simulator):
    """
    Executes an `ElaboratedGraph` with the stepping contract of `Simulator`.
    The graph is never modified and may be shared by several simulators.
    """

    def __init__(self, graph: ElaboratedGraph):
        super().__init__(
            name=graph.name,
            inputs=[(p.name, p.width, p.default) for p in graph.inputs],
            outputs=[(p.name, p.width) for p in graph.outputs],
            clock_domains=graph.clock_domains,
        )
        self.graph = graph
        self._names = {s.name: s.index for s in graph.signals}
        self._domain_writes: Dict[str, Tuple[int, ...]] = {
            domain: tuple(
                i for i in graph.register_writes
                if graph.nodes[i].clock == graph.port(domain).signal
            )
            for domain in graph.clock_domains
        }
        self._registers: Dict[int, int] = {}
        self._evaluation: Optional[_Evaluation] = None
        self._reset_state()
        logger.info("Behavioral simulator created for %s.", graph.summary())

    @property
    def signal_names(self) -> Tuple[str, ...]:
        return self.graph.signal_names

    def signal_width(self, name: str) -> int:
        return self.graph.signal(name).width

    def register_value(self, name: str) -> int:
        """The value currently stored in a register (after the last commit)."""
        return self._registers[self._names[name]]

    def _settle(self):
        inputs = {p.signal: self.input_value(p.name) for p in self.graph.inputs}
        self._evaluation = _Evaluation(self, inputs, dict(self._registers))

    def _read(self, name: str) -> int:
        return self._evaluation.signal(self._names[name])

    def _commit(self, domains: FrozenSet[str]):
        updates = {}
        for domain in self.clock_domains:
            if domain not in domains:
                continue
            for index in self._domain_writes[domain]:
                updates[self.graph.nodes[index].signal] = self._evaluation.node(index)
        self._registers.update(updates)

    def _reset_state(self):
        self._registers = {i: self.graph.signals[i].initial for i in self.graph.register_signals}
        self._evaluation = None
