# src/rtlsim_core/behavior/builder.py
"""
Defines the BehaviorBuilder, which turns the ordered behavior statements of one
component into its static behavior graph template.

This is where imperative branching authored by the user is reified as data.
Statements are executed symbolically against an environment that maps every
assigned signal to the expression describing its value so far:

- An assignment replaces the target's expression (last assignment wins, as in
  a procedural block).
- A conditional executes both branches against copies of the environment and
  merges every target that either branch touched into a `Select` node whose
  condition and branches are themselves graph nodes.
- A target left unassigned on one path keeps its previous expression; if it
  has none, registers hold their value (`RegisterRead`) and combinational
  signals fall back to their declared default, or the component is rejected
  because it would infer a latch.

Assignments inside a clock-edge guard produce one `RegisterWrite` per target;
all other assignments produce combinational drivers. A memory write assigns
every word of the memory under an address match (see `behavior.memory`).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Set, Tuple

from . import memory
from .exceptions import (
    InferredLatchError, InvalidAssignmentTargetError, MultipleDriverError, UnknownNameError,
)
from .expressions import ExpressionParser
from .nodes import (
    BinaryOp, BinaryOperator, Const, Expr, RegisterRead, RegisterWrite, Select, logical,
    referenced_names,
)
from .statements import Assign, Case, Clocked, ExprSource, If, MemoryWrite, Statement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BehaviorGraph:
    """
    The behavior graph template of one component: a combinational driver per
    assigned wire and a `RegisterWrite` per register, in first-assignment order.
    """
    drivers: Tuple[Tuple[str, Expr], ...] = ()
    registers: Tuple[RegisterWrite, ...] = ()

    @property
    def targets(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.drivers) + tuple(r.target for r in self.registers)


@dataclass(frozen=True)
class _ClockContext:
    clock: str
    reset: Optional[Expr]
    reset_values: Mapping[str, int]


@dataclass(frozen=True)
class _TargetMode:
    clock: Optional[str] = None
    reset: Optional[Expr] = None
    reset_value: int = 0

    @property
    def is_register(self) -> bool:
        return self.clock is not None


class BehaviorBuilder:
    """
    Builds the `BehaviorGraph` of one component.

    Args:
        component: The component name, for diagnostics.
        inputs: Names of the component's input ports.
        assignable: Names that may be assigned (output ports and internal
                    signals), mapped to their declared default (used for
                    incomplete combinational assignment) or None.
        parameters: Names of the component's parameters, readable as constants.
        initial_values: Declared initial values, used as register reset values
                        when a clocked assignment does not give one.
        memories: Depth of each declared memory, by name. Their words must
                  already be listed in `assignable`.
    """

    def __init__(
        self,
        component: str,
        inputs: Iterable[str],
        assignable: Mapping[str, Optional[int]],
        parameters: Iterable[str] = (),
        initial_values: Optional[Mapping[str, int]] = None,
        memories: Optional[Mapping[str, int]] = None,
    ):
        self.component = component
        self._assignable = dict(assignable)
        self._clock_names: Set[str] = set(inputs) | set(self._assignable)
        self._readable: Set[str] = self._clock_names | set(parameters)
        self._initial_values = dict(initial_values or {})
        self._memories = dict(memories or {})
        self._parser = ExpressionParser(component, self._memories)
        self._modes: Dict[str, _TargetMode] = {}
        self._order: list = []

    def build(self, statements: Sequence[Statement]) -> BehaviorGraph:
        self._modes = {}
        self._order = []
        env: Dict[str, Expr] = {}
        self._execute(statements, env, clock_ctx=None)
        # A memory that is never written is a ROM: its words are constants.
        for name, depth in self._memories.items():
            for word in memory.word_names(name, depth):
                if word not in self._modes:
                    self._mode_for(word, None, None)
                    env[word] = Const(self._initial_values.get(word, 0))

        drivers = []
        registers = []
        for target in self._order:
            mode = self._modes[target]
            if mode.is_register:
                registers.append(RegisterWrite(
                    target=target,
                    data=env[target],
                    clock=mode.clock,
                    reset=mode.reset,
                    reset_value=mode.reset_value,
                ))
            else:
                drivers.append((target, env[target]))
        logger.debug(
            "Built behavior graph for '%s': %d combinational driver(s), %d register(s).",
            self.component, len(drivers), len(registers),
        )
        return BehaviorGraph(drivers=tuple(drivers), registers=tuple(registers))

    # --- Statement execution ---

    def _execute(self, statements: Sequence[Statement], env: Dict[str, Expr], clock_ctx: Optional[_ClockContext]):
        for statement in statements:
            if isinstance(statement, Assign):
                self._execute_assign(statement, env, clock_ctx)
            elif isinstance(statement, If):
                chain = ((self._expr(statement.condition), statement.then),)
                self._execute_if_chain(chain, statement.otherwise, env, clock_ctx)
            elif isinstance(statement, Case):
                self._execute_if_chain(self._case_to_chain(statement), statement.default, env, clock_ctx)
            elif isinstance(statement, Clocked):
                self._check_clock(statement.clock)
                reset = logical(self._expr(statement.reset)) if statement.reset is not None else None
                ctx = _ClockContext(statement.clock, reset, dict(statement.reset_values))
                self._execute(statement.body, env, ctx)
            elif isinstance(statement, MemoryWrite):
                self._execute_write(statement, env, clock_ctx)
            else:
                raise TypeError(f"Unsupported behavior statement {type(statement).__name__}")

    def _execute_assign(self, statement: Assign, env: Dict[str, Expr], clock_ctx: Optional[_ClockContext]):
        target = statement.target
        if target not in self._assignable:
            kind = "an input port or parameter" if target in self._readable else "not declared"
            raise InvalidAssignmentTargetError(
                component=self.component,
                details=f"Cannot assign '{target}': it is {kind}.",
                signal=target,
                available=tuple(sorted(self._assignable)),
            )

        if statement.clock is not None:
            self._check_clock(statement.clock)
            reset = logical(self._expr(statement.reset)) if statement.reset is not None else None
            clock_ctx = _ClockContext(statement.clock, reset, {})
        mode = self._mode_for(target, clock_ctx, statement.reset_value)

        value = self._expr(statement.expr)
        if statement.when is not None:
            condition = logical(self._expr(statement.when))
            value = Select(condition, (self._hold(target, env, mode), value))
        env[target] = value

    def _execute_write(self, statement: MemoryWrite, env: Dict[str, Expr], clock_ctx: Optional[_ClockContext]):
        name = statement.memory
        depth = self._memories.get(name)
        if depth is None:
            raise UnknownNameError(
                component=self.component,
                details=f"'{name}' is not a declared memory.",
                name=name,
            )
        if statement.clock is not None:
            self._check_clock(statement.clock)
            clock = statement.clock
        elif clock_ctx is not None:
            clock = clock_ctx.clock
        else:
            raise InvalidAssignmentTargetError(
                component=self.component,
                details=f"Memory '{name}' is written outside a clocked block and without a clock.",
                signal=name,
                available=tuple(sorted(self._memories)),
            )
        # Memory words are never reset, whatever reset the enclosing block has.
        word_ctx = _ClockContext(clock, None, {})

        address = self._expr(statement.address)
        data = self._expr(statement.data)
        enable = logical(self._expr(statement.enable)) if statement.enable is not None else None
        for index, word in enumerate(memory.word_names(name, depth)):
            mode = self._mode_for(word, word_ctx, 0)
            hit = memory.write_hit(index, address, enable)
            env[word] = Select(hit, (self._hold(word, env, mode), data))

    def _execute_if_chain(
        self,
        chain: Sequence[Tuple[Expr, Sequence[Statement]]],
        default: Sequence[Statement],
        env: Dict[str, Expr],
        clock_ctx: Optional[_ClockContext],
    ):
        if not chain:
            self._execute(default, env, clock_ctx)
            return
        (condition, body), rest = chain[0], chain[1:]
        # The remaining branches become the else-part of the first one.
        then_env = dict(env)
        self._execute(body, then_env, clock_ctx)
        else_env = dict(env)
        self._execute_if_chain(rest, default, else_env, clock_ctx)

        condition = logical(condition)
        touched = [t for t in self._order if then_env.get(t) is not env.get(t) or else_env.get(t) is not env.get(t)]
        for target in touched:
            mode = self._modes[target]
            then_value = then_env.get(target)
            else_value = else_env.get(target)
            if then_value is None:
                then_value = self._hold(target, env, mode)
            if else_value is None:
                else_value = self._hold(target, env, mode)
            env[target] = then_value if then_value is else_value else Select(condition, (else_value, then_value))

    def _case_to_chain(self, statement: Case) -> Tuple[Tuple[Expr, Sequence[Statement]], ...]:
        selector = self._expr(statement.selector)
        chain = []
        for branch in statement.branches:
            if not branch.matches:
                continue
            terms = [BinaryOp(BinaryOperator.EQ, selector, self._expr(m)) for m in branch.matches]
            condition = terms[0]
            for term in terms[1:]:
                condition = BinaryOp(BinaryOperator.OR, condition, term)
            chain.append((condition, branch.body))
        return tuple(chain)

    # --- Helpers ---

    def _mode_for(self, target: str, clock_ctx: Optional[_ClockContext], reset_value: Optional[int]) -> _TargetMode:
        if clock_ctx is None:
            mode = _TargetMode()
        else:
            if reset_value is None:
                reset_value = clock_ctx.reset_values.get(target, self._initial_values.get(target, 0))
            mode = _TargetMode(clock=clock_ctx.clock, reset=clock_ctx.reset, reset_value=reset_value)

        existing = self._modes.get(target)
        if existing is None:
            self._modes[target] = mode
            self._order.append(target)
            return mode
        if existing.is_register != mode.is_register:
            raise MultipleDriverError(
                component=self.component,
                details=f"Signal '{target}' is assigned both combinationally and inside a clocked block.",
                signal=target,
            )
        if existing.clock != mode.clock or existing.reset != mode.reset:
            raise MultipleDriverError(
                component=self.component,
                details=(
                    f"Register '{target}' is assigned under different clocks or resets "
                    f"('{existing.clock}' and '{mode.clock}')."
                ),
                signal=target,
            )
        return existing

    def _hold(self, target: str, env: Mapping[str, Expr], mode: _TargetMode) -> Expr:
        """The value of `target` on a path that does not assign it."""
        prior = env.get(target)
        if prior is not None:
            return prior
        if mode.is_register:
            return RegisterRead(target)
        default = self._assignable.get(target)
        if default is None:
            raise InferredLatchError(
                component=self.component,
                details=(
                    f"Combinational signal '{target}' is not assigned on every path and has no "
                    "default value; this would require a latch."
                ),
                signal=target,
            )
        return Const(default)

    def _expr(self, source: ExprSource) -> Expr:
        expr = self._parser.parse(source)
        for name in referenced_names(expr):
            if name not in self._readable:
                raise UnknownNameError(
                    component=self.component,
                    details=f"Expression reads unknown name '{name}'.",
                    name=name,
                    statement=source if isinstance(source, str) else None,
                )
        return expr

    def _check_clock(self, clock: str):
        if clock not in self._clock_names:
            raise UnknownNameError(
                component=self.component,
                details=f"Clock '{clock}' is not a declared port or signal.",
                name=clock,
            )
