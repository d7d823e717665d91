# src/rtlsim_core/synthesis/lowering.py

"""
Lowers an elaborated graph to a gate-level `Netlist`.

Lowering is driven by three closed dispatch tables, one per node kind, unary
operator and binary operator. The tables are checked for completeness when
this module is imported, so a node kind without an expansion rule is a load
time failure rather than a silent gap discovered in the middle of a design.

Every rule maps the nets of its operands (LSB first) to the nets of its
result, emitting gates through a `_NetlistAssembler`:

- bitwise operators emit one gate per bit;
- `+` is a ripple chain of full-adder clusters (2 XOR, 2 AND, 1 OR per bit)
  with a CONST 0 carry-in, `-` is `a + ~b + 1`, `*` is shift-and-add;
- comparisons inspect the carry of `a + ~b + 1`; `==`/`!=` XOR the operands
  and OR-reduce the differences;
- shifts by a constant are rewiring, otherwise a MUX barrel shifter;
- a Select is a balanced MUX tree over the condition bits;
- slices, concatenations and extensions are pure rewiring;
- each register bit becomes one `Register`.

Nodes are visited in a lexicographic topological order of the node arena, so
the same graph always lowers to the same netlist.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import networkx as nx

from ..behavior.nodes import BinaryOperator, UnaryOperator
from ..cache import DesignCache, create_lowering_key
from ..components.base_enums import SignalKind
from ..elaboration.graph import ElaboratedGraph, Node, NodeKind
from ..errors import FrameworkLogicError
from .exceptions import CyclicDesignError, NondeterministicLoweringError, UnsupportedOperationError
from .netlist import Gate, GateKind, Netlist, NetlistPort, Register

logger = logging.getLogger(__name__)

Nets = Tuple[int, ...]


class _NetlistAssembler:
    """Allocates nets and collects gates and registers for one lowering run."""

    def __init__(self, name: str):
        self.name = name
        self.net_count = 0
        self.gates: List[Gate] = []
        self.registers: List[Register] = []
        self._consts: Dict[int, int] = {}

    def new_net(self) -> int:
        net = self.net_count
        self.net_count += 1
        return net

    def new_nets(self, width: int) -> Nets:
        return tuple(self.new_net() for _ in range(width))

    def gate(self, kind: GateKind, *inputs: int) -> int:
        output = self.new_net()
        self.gates.append(Gate(len(self.gates), kind, tuple(inputs), output))
        return output

    def const(self, bit: int) -> int:
        """One shared CONST gate per value."""
        if bit not in self._consts:
            output = self.new_net()
            self.gates.append(Gate(len(self.gates), GateKind.CONST, (), output, bit))
            self._consts[bit] = output
        return self._consts[bit]

    def mux(self, d0: int, d1: int, sel: int) -> int:
        if d0 == d1:
            return d0
        return self.gate(GateKind.MUX, d0, d1, sel)

    # --- Reusable networks ---

    def reduce(self, kind: GateKind, nets: Sequence[int]) -> int:
        result = nets[0]
        for net in nets[1:]:
            result = self.gate(kind, result, net)
        return result

    def adder(self, a: Sequence[int], b: Sequence[int], carry: int) -> Tuple[Nets, int]:
        """Ripple-carry adder of full-adder clusters; returns (sum, carry out)."""
        total = []
        for x, y in zip(a, b):
            partial = self.gate(GateKind.XOR, x, y)
            total.append(self.gate(GateKind.XOR, partial, carry))
            generate = self.gate(GateKind.AND, x, y)
            propagate = self.gate(GateKind.AND, partial, carry)
            carry = self.gate(GateKind.OR, generate, propagate)
        return tuple(total), carry

    def invert(self, nets: Sequence[int]) -> Nets:
        return tuple(self.gate(GateKind.NOT, n) for n in nets)

    def increment(self, nets: Sequence[int]) -> Nets:
        """Half-adder chain adding 1."""
        carry = self.const(1)
        total = []
        for net in nets:
            total.append(self.gate(GateKind.XOR, net, carry))
            carry = self.gate(GateKind.AND, net, carry)
        return tuple(total)

    def borrow_free(self, a: Sequence[int], b: Sequence[int]) -> int:
        """1 when a >= b (unsigned): the carry out of a + ~b + 1."""
        _, carry = self.adder(a, self.invert(b), self.const(1))
        return carry


# --- Expansion rules ---
#
# A rule takes (assembler, node, operand nets) and returns the node's nets.

def _lower_not(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return asm.invert(ops[0])


def _lower_neg(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return asm.increment(asm.invert(ops[0]))


def _lower_logical_not(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return (asm.gate(GateKind.NOT, asm.reduce(GateKind.OR, ops[0])),)


def _reduction(kind: GateKind):
    def rule(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
        return (asm.reduce(kind, ops[0]),)
    return rule


def _bitwise(kind: GateKind):
    def rule(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
        return tuple(asm.gate(kind, a, b) for a, b in zip(ops[0], ops[1]))
    return rule


def _lower_add(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    total, _ = asm.adder(ops[0], ops[1], asm.const(0))
    return total


def _lower_sub(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    total, _ = asm.adder(ops[0], asm.invert(ops[1]), asm.const(1))
    return total


def _lower_mul(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    a, b = ops
    width = len(a)
    product = [asm.gate(GateKind.AND, a[j], b[0]) for j in range(width)]
    for i in range(1, width):
        partial = [asm.gate(GateKind.AND, a[j], b[i]) for j in range(width - i)]
        upper, _ = asm.adder(product[i:], partial, asm.const(0))
        product[i:] = upper
    return tuple(product)


def _lower_eq(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return (asm.gate(GateKind.NOT, _lower_ne(asm, node, ops)[0]),)


def _lower_ne(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    differences = [asm.gate(GateKind.XOR, a, b) for a, b in zip(ops[0], ops[1])]
    return (asm.reduce(GateKind.OR, differences),)


def _lower_lt(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return (asm.gate(GateKind.NOT, asm.borrow_free(ops[0], ops[1])),)


def _lower_gt(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return _lower_lt(asm, node, [ops[1], ops[0]])


def _lower_le(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return (asm.gate(GateKind.NOT, _lower_gt(asm, node, ops)[0]),)


def _lower_ge(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return (asm.gate(GateKind.NOT, _lower_lt(asm, node, ops)[0]),)


def _shift(left: bool):
    def rule(asm: _NetlistAssembler, node: Node, ops: List[Nets], amount: Optional[int] = None) -> Nets:
        value, distance = ops
        width = len(value)
        if amount is not None:
            return _shift_by(asm, value, amount, left)
        current = value
        stage = 0
        while stage < len(distance) and (1 << stage) < width:
            shifted = _shift_by(asm, current, 1 << stage, left)
            current = tuple(asm.mux(c, s, distance[stage]) for c, s in zip(current, shifted))
            stage += 1
        if stage < len(distance):
            # Any higher amount bit shifts every bit out.
            overflow = asm.reduce(GateKind.OR, distance[stage:])
            zero = asm.const(0)
            current = tuple(asm.mux(c, zero, overflow) for c in current)
        return current
    return rule


def _shift_by(asm: _NetlistAssembler, value: Nets, amount: int, left: bool) -> Nets:
    width = len(value)
    if amount >= width:
        return tuple(asm.const(0) for _ in range(width))
    if left:
        return tuple(asm.const(0) for _ in range(amount)) + value[:width - amount]
    return value[amount:] + tuple(asm.const(0) for _ in range(amount))


def _lower_select(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    condition, branches = ops[0], list(ops[1:])
    if len(branches) == 1:
        return branches[0]
    levels = (len(branches) - 1).bit_length()
    branches += [branches[-1]] * ((1 << levels) - len(branches))
    for level in range(levels):
        sel = condition[level]
        branches = [
            tuple(asm.mux(d0, d1, sel) for d0, d1 in zip(branches[i], branches[i + 1]))
            for i in range(0, len(branches), 2)
        ]
    result = branches[0]
    if len(condition) > levels:
        # A condition value past the last branch selects the last branch.
        last = ops[-1]
        overflow = asm.reduce(GateKind.OR, condition[levels:])
        result = tuple(asm.mux(d0, d1, overflow) for d0, d1 in zip(result, last))
    return result


def _lower_slice(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return ops[0][node.low:node.low + node.width]


def _lower_concat(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    nets: Tuple[int, ...] = ()
    for part in reversed(ops):
        nets += part
    return nets


def _lower_extend(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    operand = ops[0]
    fill = operand[-1] if node.signed else asm.const(0)
    return operand + (fill,) * (node.width - len(operand))


def _lower_const(asm: _NetlistAssembler, node: Node, ops: List[Nets]) -> Nets:
    return tuple(asm.const((node.value >> i) & 1) for i in range(node.width))


_UNARY_RULES: Dict[UnaryOperator, Callable] = {
    UnaryOperator.NOT: _lower_not,
    UnaryOperator.NEG: _lower_neg,
    UnaryOperator.LOGICAL_NOT: _lower_logical_not,
    UnaryOperator.REDUCE_AND: _reduction(GateKind.AND),
    UnaryOperator.REDUCE_OR: _reduction(GateKind.OR),
    UnaryOperator.REDUCE_XOR: _reduction(GateKind.XOR),
}

_BINARY_RULES: Dict[BinaryOperator, Callable] = {
    BinaryOperator.AND: _bitwise(GateKind.AND),
    BinaryOperator.OR: _bitwise(GateKind.OR),
    BinaryOperator.XOR: _bitwise(GateKind.XOR),
    BinaryOperator.ADD: _lower_add,
    BinaryOperator.SUB: _lower_sub,
    BinaryOperator.MUL: _lower_mul,
    BinaryOperator.SHL: _shift(left=True),
    BinaryOperator.SHR: _shift(left=False),
    BinaryOperator.EQ: _lower_eq,
    BinaryOperator.NE: _lower_ne,
    BinaryOperator.LT: _lower_lt,
    BinaryOperator.LE: _lower_le,
    BinaryOperator.GT: _lower_gt,
    BinaryOperator.GE: _lower_ge,
}

# SIGNAL, REG_READ and REG_WRITE need the lowering context and are handled by
# the Lowerer itself; their entries mark them as covered.
_NODE_RULES: Dict[NodeKind, Optional[Callable]] = {
    NodeKind.CONST: _lower_const,
    NodeKind.SELECT: _lower_select,
    NodeKind.SLICE: _lower_slice,
    NodeKind.CONCAT: _lower_concat,
    NodeKind.EXTEND: _lower_extend,
    NodeKind.UNARY: None,
    NodeKind.BINARY: None,
    NodeKind.SIGNAL: None,
    NodeKind.REG_READ: None,
    NodeKind.REG_WRITE: None,
}


def _check_rule_tables():
    missing = [k.name for k in NodeKind if k not in _NODE_RULES]
    missing += [op.name for op in UnaryOperator if op not in _UNARY_RULES]
    missing += [op.name for op in BinaryOperator if op not in _BINARY_RULES]
    if missing:
        raise FrameworkLogicError(f"Lowering rules are missing for: {', '.join(missing)}")


_check_rule_tables()


class Lowerer:
    """Lowers one elaborated graph. Use the module-level `lower()` function."""

    def __init__(self, graph: ElaboratedGraph):
        self.graph = graph
        self._asm = _NetlistAssembler(graph.name)
        self._node_nets: Dict[int, Nets] = {}
        self._signal_nets: Dict[int, Nets] = {}

    def run(self) -> Netlist:
        graph = self.graph
        for port in graph.inputs:
            self._signal_nets[port.signal] = self._asm.new_nets(port.width)
        for signal in graph.register_signals:
            self._signal_nets[signal] = self._asm.new_nets(graph.signals[signal].width)

        try:
            order = list(nx.lexicographical_topological_sort(graph.dependency_graph))
        except nx.NetworkXUnfeasible as e:
            raise CyclicDesignError(
                component=graph.name,
                details="The elaborated graph contains a combinational cycle; it cannot be lowered.",
            ) from e

        for index in order:
            node = graph.nodes[index]
            if node.kind is NodeKind.REG_WRITE:
                continue
            self._node_nets[index] = self._lower_node(node)
        for index in graph.register_writes:
            self._lower_register(graph.nodes[index])

        ports = tuple(
            NetlistPort(p.name, p.direction, self._nets_of_signal(p.signal), p.default)
            for p in graph.ports
        )
        port_names = {p.name for p in graph.ports}
        symbols = tuple(
            (s.name, self._nets_of_signal(s.index))
            for s in graph.signals
            if s.name not in port_names
        )
        return Netlist(
            name=graph.name,
            ports=ports,
            gates=tuple(self._asm.gates),
            registers=tuple(self._asm.registers),
            net_count=self._asm.net_count,
            symbols=symbols,
        )

    def _lower_node(self, node: Node) -> Nets:
        if node.kind is NodeKind.SIGNAL:
            return self._nets_of_signal(node.signal)
        if node.kind is NodeKind.REG_READ:
            return self._signal_nets[node.signal]

        ops = [self._node_nets[i] for i in node.operands]
        if node.kind is NodeKind.UNARY:
            rule = _UNARY_RULES.get(node.op)
        elif node.kind is NodeKind.BINARY:
            rule = _BINARY_RULES.get(node.op)
            if node.op.is_shift and self.graph.nodes[node.operands[1]].kind is NodeKind.CONST:
                return rule(self._asm, node, ops, amount=self.graph.nodes[node.operands[1]].value)
        else:
            rule = _NODE_RULES.get(node.kind)
        if rule is None:
            raise UnsupportedOperationError(
                component=self.graph.name,
                details=f"No gate expansion rule for node {node.index}.",
                operation=f"{node.kind.name}{'/' + node.op.name if node.op is not None else ''}",
            )
        nets = rule(self._asm, node, ops)
        if len(nets) != node.width:
            raise FrameworkLogicError(
                f"Lowering of node {node.index} ({node.kind.name}) produced {len(nets)} net(s), "
                f"expected {node.width}."
            )
        return nets

    def _nets_of_signal(self, signal: int) -> Nets:
        """Signals alias their driver's nets; undriven signals get fresh, undriven nets."""
        if signal not in self._signal_nets:
            driver = self.graph.drivers[signal]
            if driver is not None:
                self._signal_nets[signal] = self._node_nets[driver]
            else:
                if self.graph.signals[signal].kind is not SignalKind.INPUT:
                    logger.debug("Signal '%s' is undriven; its nets stay unknown.", self.graph.signals[signal].name)
                self._signal_nets[signal] = self._asm.new_nets(self.graph.signals[signal].width)
        return self._signal_nets[signal]

    def _lower_register(self, node: Node):
        signal = self.graph.signals[node.signal]
        data = self._node_nets[node.operands[0]]
        reset = self._node_nets[node.operands[1]][0] if node.has_reset else None
        clock = self._signal_nets[node.clock][0]
        outputs = self._signal_nets[node.signal]
        for bit in range(node.width):
            self._asm.registers.append(Register(
                id=len(self._asm.registers),
                data=data[bit],
                clock=clock,
                reset=reset,
                output=outputs[bit],
                reset_value=(node.value >> bit) & 1 if reset is not None else 0,
                init=(signal.initial >> bit) & 1,
            ))


def lower(graph: ElaboratedGraph, verify_determinism: bool = False, cache: Optional[DesignCache] = None) -> Netlist:
    """
    Lowers an elaborated graph to a netlist of the seven primitives.

    Args:
        graph: The elaborated graph.
        verify_determinism: Lower the graph twice and require structurally
                            identical netlists.
        cache: Optional cache keyed by the graph fingerprint.

    Raises:
        UnsupportedOperationError, NondeterministicLoweringError, CyclicDesignError
    """
    key = create_lowering_key(graph.fingerprint, verify_determinism)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("Using cached netlist of '%s'.", graph.name)
            return cached

    logger.info("Lowering '%s' to gates.", graph.name)
    netlist = Lowerer(graph).run()
    if verify_determinism:
        second = Lowerer(graph).run()
        difference = netlist.first_difference(second)
        if difference is not None:
            raise NondeterministicLoweringError(
                component=graph.name,
                details="Lowering the same graph twice produced different netlists.",
                first_difference=difference,
            )
    netlist.check_integrity()
    logger.info("Lowered %s.", netlist.summary())

    if cache is not None:
        cache.put(key, netlist)
    return netlist
