# src/rtlsim_core/elaboration/elaborator.py

"""
Defines the Elaborator, which turns a registered component definition plus
parameter bindings into one flat `ElaboratedGraph`.

Elaboration of an instance runs in a fixed order:

1.  **Parameters.** Bindings are evaluated in the parent's scope, defaults in
    dependency order (see `ParameterResolver`).
2.  **Signals.** Every port and internal signal gets a slot in the signal
    arena with its resolved width. Ports of sub-instances become INTERNAL
    signals named with the instance prefix (`u0.sum`).
3.  **Behavior.** The template expressions of the behavior graph are resolved
    into arena nodes. Unsized literals and parameter references adopt the
    width of their context; every other width must match exactly.
4.  **Instances.** Input connections drive the child's port signals, output
    connections drive the named parent signals, and the child is elaborated
    recursively under its own instance path.

After the whole hierarchy is inlined, every register clock is traced back to
a top-level input (its clock domain), and the combinational part of the graph
is checked for cycles.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple, Union

import networkx as nx

from ..behavior.nodes import (
    BinaryOp, Concat, Const, Expr, Extend, RegisterRead, RegisterWrite, Select, SignalRef,
    Slice, UnaryOp, WidthExpr,
)
from ..cache import DesignCache, create_elaboration_key
from ..components.base_enums import PortDirection, SignalKind
from ..components.definition import ComponentDefinition
from ..components.registry import ComponentRegistry
from ..errors import ElaborationError
from ..parameters import ParameterResolver
from .exceptions import (
    ClockDomainError, CombinationalCycleError, InvalidConnectionError, InvalidWidthError,
    MultipleDriversError, UnconnectedPortError, UnknownPortError, WidthMismatchError,
)
from .graph import ElaboratedGraph, Node, NodeKind, Port, Signal

logger = logging.getLogger(__name__)

Bindings = Mapping[str, Union[int, str]]


def literal_width(value: int) -> int:
    """The smallest width holding `value` (two's complement for negatives)."""
    if value < 0:
        return (-value - 1).bit_length() + 1
    return max(1, value.bit_length())


class _Scope:
    """The resolution context of one component instance."""

    def __init__(self, definition: ComponentDefinition, params: Dict[str, int], prefix: str, path: str):
        self.definition = definition
        self.params = params
        self.prefix = prefix
        self.path = path


class _GraphAssembler:
    """Mutable arenas filled during elaboration, frozen into an ElaboratedGraph at the end."""

    def __init__(self, name: str):
        self.name = name
        self.signals: List[Signal] = []
        self.nodes: List[dict] = []
        self.by_name: Dict[str, int] = {}
        self.drivers: Dict[int, int] = {}
        self.register_writes: List[int] = []
        self.register_paths: Dict[int, str] = {}
        self._signal_nodes: Dict[int, int] = {}
        self._consts: Dict[Tuple[int, int], int] = {}

    def add_signal(self, name: str, width: int, kind: SignalKind, path: str,
                   initial: int = 0, default: Optional[int] = None) -> int:
        index = len(self.signals)
        self.signals.append(Signal(index, name, width, kind, initial, default, path))
        self.by_name[name] = index
        return index

    def add_node(self, kind: NodeKind, width: int, **fields) -> int:
        index = len(self.nodes)
        self.nodes.append(dict(index=index, kind=kind, width=width, **fields))
        return index

    def width(self, node: int) -> int:
        return self.nodes[node]["width"]

    def const(self, value: int, width: int) -> int:
        key = (value, width)
        if key not in self._consts:
            self._consts[key] = self.add_node(NodeKind.CONST, width, value=value)
        return self._consts[key]

    def signal_node(self, signal: int) -> int:
        if signal not in self._signal_nodes:
            self._signal_nodes[signal] = self.add_node(NodeKind.SIGNAL, self.signals[signal].width, signal=signal)
        return self._signal_nodes[signal]

    def drive(self, signal: int, node: int, path: str):
        target = self.signals[signal]
        if target.kind is SignalKind.INPUT:
            raise MultipleDriversError(
                path=path,
                details=f"Top-level input port '{target.name}' cannot be driven from inside the design.",
                signal=target.name,
            )
        if signal in self.drivers:
            raise MultipleDriversError(
                path=path,
                details=f"Signal '{target.name}' has more than one driver.",
                signal=target.name,
            )
        self.drivers[signal] = node

    def freeze(self, parameters: Dict[str, int], ports: Tuple[Port, ...]) -> ElaboratedGraph:
        return ElaboratedGraph(
            name=self.name,
            parameters=tuple(parameters.items()),
            ports=ports,
            signals=tuple(self.signals),
            nodes=tuple(Node(**fields) for fields in self.nodes),
            drivers=tuple(self.drivers.get(i) for i in range(len(self.signals))),
            register_writes=tuple(self.register_writes),
        )


class Elaborator:
    """
    Produces `ElaboratedGraph`s from the definitions of one registry.

    Args:
        registry: The registry the top-level definition and its sub-component
                  types are looked up in.
        cache: Optional cache; results are memoized per definition closure
               fingerprint and bindings.
        check_acyclic: Reject combinational cycles. Disabling it lets a cyclic
                       graph reach the simulators, which detect it at run time.
    """

    def __init__(self, registry: ComponentRegistry, cache: Optional[DesignCache] = None, check_acyclic: bool = True):
        self.registry = registry
        self.cache = cache
        self.check_acyclic = check_acyclic
        self._resolver = ParameterResolver()

    def elaborate(
        self,
        definition: Union[ComponentDefinition, str],
        parameter_bindings: Optional[Bindings] = None,
    ) -> ElaboratedGraph:
        if isinstance(definition, str):
            definition = self.registry.get(definition)

        key = None
        if self.cache is not None:
            key = create_elaboration_key(self.registry, definition, parameter_bindings, self.check_acyclic)
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Using cached elaboration of '%s'.", definition.name)
                return cached

        logger.info("Elaborating '%s' with bindings %s.", definition.name, dict(parameter_bindings or {}))
        path = definition.name
        params = self._resolver.resolve(definition.parameters, parameter_bindings, path)
        scope = _Scope(definition, params, prefix="", path=path)
        asm = _GraphAssembler(definition.name)

        self._declare_signals(asm, scope, top_level=True)
        self._elaborate_scope(asm, scope)
        self._resolve_clock_domains(asm)

        ports = tuple(
            Port(
                name=p.name,
                direction=p.direction,
                width=asm.signals[asm.by_name[p.name]].width,
                signal=asm.by_name[p.name],
                default=asm.signals[asm.by_name[p.name]].default,
            )
            for p in definition.ports
        )
        graph = asm.freeze(params, ports)
        if self.check_acyclic:
            self._check_acyclic(graph)

        logger.info("Elaborated %s.", graph.summary())
        if self.cache is not None:
            self.cache.put(key, graph)
        return graph

    # --- Signals ---

    def _declare_signals(self, asm: _GraphAssembler, scope: _Scope, top_level: bool):
        for port in scope.definition.ports:
            if top_level:
                kind = SignalKind.INPUT if port.direction is PortDirection.IN else SignalKind.OUTPUT
            else:
                kind = SignalKind.INTERNAL
            self._declare(asm, scope, port.name, port.width, kind, port.initial, port.default)
        for signal in scope.definition.signals:
            self._declare(asm, scope, signal.name, signal.width, SignalKind.INTERNAL, signal.initial, signal.default)

    def _declare(self, asm: _GraphAssembler, scope: _Scope, name: str, width_expr: WidthExpr,
                 kind: SignalKind, initial: Optional[int], default: Optional[int]):
        width = self._width(width_expr, scope, f"width of '{name}'")
        full_name = scope.prefix + name
        asm.add_signal(
            full_name,
            width,
            kind,
            scope.path,
            initial=self._fit(initial or 0, width, scope, f"initial value of '{name}'"),
            default=None if default is None else self._fit(default, width, scope, f"default of '{name}'"),
        )

    # --- Behavior and instances ---

    def _elaborate_scope(self, asm: _GraphAssembler, scope: _Scope):
        resolver = _ExpressionResolver(self, asm, scope)
        behavior = scope.definition.behavior

        for name, expr in behavior.drivers:
            signal = asm.by_name[scope.prefix + name]
            node = resolver.resolve(expr, asm.signals[signal].width)
            self._check_width(asm, scope, node, asm.signals[signal].width, f"assignment to '{name}'", name)
            asm.drive(signal, node, scope.path)

        for write in behavior.registers:
            self._elaborate_register(asm, scope, resolver, write)

        for instance in scope.definition.instances:
            self._elaborate_instance(asm, scope, resolver, instance)

    def _elaborate_register(self, asm: _GraphAssembler, scope: _Scope, resolver: "_ExpressionResolver",
                            write: RegisterWrite):
        signal = asm.by_name[scope.prefix + write.target]
        width = asm.signals[signal].width
        asm.drive(signal, asm.add_node(NodeKind.REG_READ, width, signal=signal), scope.path)

        data = resolver.resolve(write.data, width)
        self._check_width(asm, scope, data, width, f"register '{write.target}'", write.target)
        operands = (data,)
        if write.reset is not None:
            reset = resolver.resolve(write.reset, 1)
            self._check_width(asm, scope, reset, 1, f"reset of register '{write.target}'", write.target)
            operands = (data, reset)

        clock = asm.by_name[scope.prefix + write.clock]
        # A register reads its clock.
        asm.signal_node(clock)
        reset_value = self._fit(write.reset_value, width, scope, f"reset value of '{write.target}'")
        node = asm.add_node(NodeKind.REG_WRITE, width, operands=operands, value=reset_value,
                            signal=signal, clock=clock)
        asm.register_writes.append(node)
        asm.register_paths[node] = scope.path

    def _elaborate_instance(self, asm: _GraphAssembler, scope: _Scope, resolver: "_ExpressionResolver", instance):
        child_def = self.registry.get(instance.component_type, requested_by=scope.definition.name)
        child_path = f"{scope.path}.{instance.instance_id}"
        child_params = self._resolver.resolve(
            child_def.parameters, dict(instance.parameters), child_path, outer_scope=scope.params,
        )
        child = _Scope(child_def, child_params, prefix=f"{scope.prefix}{instance.instance_id}.", path=child_path)
        logger.debug("Inlining '%s' (%s) with parameters %s.", child_path, child_def.name, child_params)
        self._declare_signals(asm, child, top_level=False)

        connections = dict(instance.connections)
        unknown = [name for name in connections if child_def.port(name) is None]
        if unknown:
            raise UnknownPortError(
                path=child_path,
                details=f"Instance '{instance.instance_id}' connects unknown port '{unknown[0]}'.",
                port=unknown[0],
                component_type=child_def.name,
                available=child_def.port_names,
            )

        for port in child_def.ports:
            port_signal = asm.by_name[child.prefix + port.name]
            width = asm.signals[port_signal].width
            if port.direction is PortDirection.IN:
                if port.name in connections:
                    node = resolver.resolve(connections[port.name], width)
                    self._check_width(asm, child, node, width, f"connection of input port '{port.name}'", port.name)
                elif port.default is not None:
                    node = asm.const(asm.signals[port_signal].default, width)
                else:
                    raise UnconnectedPortError(
                        path=child_path,
                        details=f"Input port '{port.name}' is not connected and has no default value.",
                        port=port.name,
                    )
                asm.drive(port_signal, node, child_path)
            elif port.name in connections:
                target = connections[port.name]
                if not isinstance(target, SignalRef) or (scope.prefix + target.name) not in asm.by_name:
                    raise InvalidConnectionError(
                        path=child_path,
                        details=f"Output port '{port.name}' must be connected to a signal of '{scope.path}'.",
                        port=port.name,
                    )
                parent_signal = asm.by_name[scope.prefix + target.name]
                node = asm.signal_node(port_signal)
                self._check_width(asm, child, node, asm.signals[parent_signal].width,
                                  f"connection of output port '{port.name}'", port.name)
                asm.drive(parent_signal, node, child_path)

        self._elaborate_scope(asm, child)

    # --- Whole-graph checks ---

    def _resolve_clock_domains(self, asm: _GraphAssembler):
        """Rewrites every register clock to the top-level input it aliases."""
        for node_index in asm.register_writes:
            fields = asm.nodes[node_index]
            path = asm.register_paths[node_index]
            register = asm.signals[fields["signal"]].name
            signal = fields["clock"]
            visited = set()
            while asm.signals[signal].kind is not SignalKind.INPUT:
                driver = asm.drivers.get(signal)
                if driver is None or signal in visited:
                    raise ClockDomainError(
                        path=path,
                        details=(
                            f"The clock of register '{register}' ('{asm.signals[signal].name}') "
                            "is not driven by a top-level input port."
                        ),
                        signal=register,
                    )
                visited.add(signal)
                driver_fields = asm.nodes[driver]
                if driver_fields["kind"] is not NodeKind.SIGNAL:
                    raise ClockDomainError(
                        path=path,
                        details=(
                            f"The clock of register '{register}' ('{asm.signals[signal].name}') "
                            "is driven by logic, which would be a gated or derived clock."
                        ),
                        signal=register,
                    )
                signal = driver_fields["signal"]
            if asm.signals[signal].width != 1:
                raise ClockDomainError(
                    path=path,
                    details=f"Clock '{asm.signals[signal].name}' of register '{register}' is not 1 bit wide.",
                    signal=register,
                )
            fields["clock"] = signal

    def _check_acyclic(self, graph: ElaboratedGraph):
        try:
            cycle = nx.find_cycle(graph.dependency_graph)
        except nx.NetworkXNoCycle:
            return
        names = []
        for source, _ in cycle:
            node = graph.nodes[source]
            if node.kind is NodeKind.SIGNAL and graph.signals[node.signal].name not in names:
                names.append(graph.signals[node.signal].name)
        raise CombinationalCycleError(
            path=graph.signal(names[0]).path if names else graph.name,
            details="The combinational logic contains a cycle that is not broken by a register.",
            cycle=tuple(names),
        )

    # --- Width helpers ---

    def _width(self, expr: WidthExpr, scope: _Scope, what: str) -> int:
        width = self._resolver.evaluate(expr, scope.params, scope.path, what)
        if width < 1:
            raise InvalidWidthError(
                path=scope.path,
                details=f"The {what} resolves to {width}; widths must be at least 1.",
                user_input=str(expr),
            )
        return width

    def _fit(self, value: int, width: int, scope: _Scope, what: str) -> int:
        """Checks that a literal fits `width` bits and returns its unsigned encoding."""
        if value >= (1 << width) or value < -(1 << (width - 1)):
            raise WidthMismatchError(
                path=scope.path,
                details=f"The {what} ({value}) does not fit in {width} bit(s).",
                expected=width,
                actual=literal_width(value),
            )
        return value & ((1 << width) - 1)

    def _check_width(self, asm: _GraphAssembler, scope: _Scope, node: int, expected: int, what: str,
                     signal: Optional[str] = None):
        actual = asm.width(node)
        if actual != expected:
            raise WidthMismatchError(
                path=scope.path,
                details=f"Width mismatch in {what}.",
                expected=expected,
                actual=actual,
                signal=signal,
            )


class _ExpressionResolver:
    """Resolves the template expressions of one instance into arena nodes."""

    def __init__(self, elaborator: Elaborator, asm: _GraphAssembler, scope: _Scope):
        self._elaborator = elaborator
        self._asm = asm
        self._scope = scope

    def resolve(self, expr: Expr, context: Optional[int] = None) -> int:
        """
        Returns the node computing `expr`. `context` is the width unsized
        literals adopt; it never changes the width of a sized expression.
        """
        asm = self._asm
        if isinstance(expr, Const):
            if expr.width is not None:
                width = self._elaborator._width(expr.width, self._scope, "literal width")
            else:
                width = context or literal_width(expr.value)
            return asm.const(self._elaborator._fit(expr.value, width, self._scope, "literal"), width)

        if isinstance(expr, SignalRef):
            signal = asm.by_name.get(self._scope.prefix + expr.name)
            if signal is not None:
                return asm.signal_node(signal)
            if expr.name in self._scope.params:
                value = self._scope.params[expr.name]
                width = context or literal_width(value)
                return asm.const(self._elaborator._fit(value, width, self._scope, f"parameter '{expr.name}'"), width)
            raise ElaborationError(path=self._scope.path, details=f"Name '{expr.name}' is not a signal or parameter.")

        if isinstance(expr, RegisterRead):
            return asm.signal_node(asm.by_name[self._scope.prefix + expr.name])

        if isinstance(expr, UnaryOp):
            if expr.op.is_reduction:
                operand = self.resolve(expr.operand, None)
                return asm.add_node(NodeKind.UNARY, 1, op=expr.op, operands=(operand,))
            operand = self.resolve(expr.operand, context)
            return asm.add_node(NodeKind.UNARY, asm.width(operand), op=expr.op, operands=(operand,))

        if isinstance(expr, BinaryOp):
            if expr.op.is_shift:
                left = self.resolve(expr.left, context)
                right = self.resolve(expr.right, None)
                return asm.add_node(NodeKind.BINARY, asm.width(left), op=expr.op, operands=(left, right))
            left, right = self._unify((expr.left, expr.right), None if expr.op.is_comparison else context,
                                      f"operands of '{expr.op.value}'")
            width = 1 if expr.op.is_comparison else asm.width(left)
            return asm.add_node(NodeKind.BINARY, width, op=expr.op, operands=(left, right))

        if isinstance(expr, Select):
            return self._resolve_select(expr, context)

        if isinstance(expr, Slice):
            operand = self.resolve(expr.operand, None)
            operand_width = asm.width(operand)
            high = self._elaborator._resolver.evaluate(expr.high, self._scope.params, self._scope.path, "slice bound")
            low = self._elaborator._resolver.evaluate(expr.low, self._scope.params, self._scope.path, "slice bound")
            if not 0 <= low <= high < operand_width:
                raise InvalidWidthError(
                    path=self._scope.path,
                    details=f"Slice [{high}:{low}] is out of range for a {operand_width}-bit operand.",
                    user_input=f"[{expr.high}:{expr.low}]",
                )
            return asm.add_node(NodeKind.SLICE, high - low + 1, operands=(operand,), low=low)

        if isinstance(expr, Concat):
            parts = []
            for part in expr.parts:
                if self._is_unsized(part):
                    raise WidthMismatchError(
                        path=self._scope.path,
                        details="Unsized literals are not allowed in a concatenation; use const(value, width).",
                    )
                parts.append(self.resolve(part, None))
            return asm.add_node(NodeKind.CONCAT, sum(asm.width(p) for p in parts), operands=tuple(parts))

        if isinstance(expr, Extend):
            operand = self.resolve(expr.operand, None)
            width = self._elaborator._width(expr.width, self._scope, "extension width")
            if width < asm.width(operand):
                raise WidthMismatchError(
                    path=self._scope.path,
                    details="Extension target is narrower than its operand; use trunc() instead.",
                    expected=width,
                    actual=asm.width(operand),
                )
            return asm.add_node(NodeKind.EXTEND, width, operands=(operand,), signed=expr.signed)

        raise ElaborationError(path=self._scope.path, details=f"Unsupported expression node {type(expr).__name__}.")

    def _resolve_select(self, expr: Select, context: Optional[int]) -> int:
        asm = self._asm
        condition = self.resolve(expr.condition, None)
        if len(expr.branches) > (1 << asm.width(condition)):
            raise WidthMismatchError(
                path=self._scope.path,
                details=(
                    f"A {asm.width(condition)}-bit selector cannot reach all "
                    f"{len(expr.branches)} branches."
                ),
            )
        branches = self._unify(expr.branches, context, "branches of a select")
        return asm.add_node(NodeKind.SELECT, asm.width(branches[0]), operands=(condition,) + tuple(branches))

    def _unify(self, exprs: Tuple[Expr, ...], context: Optional[int], what: str) -> List[int]:
        """Resolves operands that must share one width; unsized ones adopt it."""
        asm = self._asm
        resolved: Dict[int, int] = {}
        width = None
        for i, expr in enumerate(exprs):
            if self._is_unsized(expr):
                continue
            resolved[i] = self.resolve(expr, context)
            if width is None:
                width = asm.width(resolved[i])
            elif asm.width(resolved[i]) != width:
                raise WidthMismatchError(
                    path=self._scope.path,
                    details=f"Width mismatch between the {what}.",
                    expected=width,
                    actual=asm.width(resolved[i]),
                )
        if width is None:
            width = context or max(self._natural_width(e) for e in exprs)
        return [resolved[i] if i in resolved else self.resolve(e, width) for i, e in enumerate(exprs)]

    def _is_unsized(self, expr: Expr) -> bool:
        if isinstance(expr, Const):
            return expr.width is None
        if isinstance(expr, SignalRef):
            return (self._scope.prefix + expr.name) not in self._asm.by_name and expr.name in self._scope.params
        if isinstance(expr, UnaryOp):
            return not expr.op.is_reduction and self._is_unsized(expr.operand)
        if isinstance(expr, BinaryOp):
            if expr.op.is_comparison:
                return False
            if expr.op.is_shift:
                return self._is_unsized(expr.left)
            return self._is_unsized(expr.left) and self._is_unsized(expr.right)
        if isinstance(expr, Select):
            return all(self._is_unsized(b) for b in expr.branches)
        return False

    def _natural_width(self, expr: Expr) -> int:
        """Width of an unsized expression without context: wide enough for its literals."""
        if isinstance(expr, Const):
            return literal_width(expr.value)
        if isinstance(expr, SignalRef):
            return literal_width(self._scope.params[expr.name])
        if isinstance(expr, UnaryOp):
            return self._natural_width(expr.operand)
        if isinstance(expr, BinaryOp):
            if expr.op.is_shift:
                return self._natural_width(expr.left)
            return max(self._natural_width(expr.left), self._natural_width(expr.right))
        if isinstance(expr, Select):
            return max(self._natural_width(b) for b in expr.branches)
        return 1
