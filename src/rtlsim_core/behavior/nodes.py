# src/rtlsim_core/behavior/nodes.py
"""
Template-level expression nodes produced by the behavior graph builder.

These nodes are the static, immutable form of a component's behavior. No node
carries imperative branching: every conditional authored by the user has
already been reified into a `Select`. Widths are not known at this stage; any
width or bit index is kept as a parameter expression string (`WidthExpr`) and
resolved by the Elaborator once the parameter bindings are known.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

# A compile-time integer expression over the component's parameters ("WIDTH-1").
WidthExpr = Union[int, str]


class UnaryOperator(Enum):
    NOT = "~"
    NEG = "-"
    LOGICAL_NOT = "not"
    REDUCE_AND = "reduce_and"
    REDUCE_OR = "reduce_or"
    REDUCE_XOR = "reduce_xor"

    @property
    def is_reduction(self) -> bool:
        return self in (UnaryOperator.LOGICAL_NOT, UnaryOperator.REDUCE_AND,
                        UnaryOperator.REDUCE_OR, UnaryOperator.REDUCE_XOR)


class BinaryOperator(Enum):
    AND = "&"
    OR = "|"
    XOR = "^"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    SHL = "<<"
    SHR = ">>"
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def is_comparison(self) -> bool:
        return self in _COMPARISONS

    @property
    def is_shift(self) -> bool:
        return self in (BinaryOperator.SHL, BinaryOperator.SHR)


_COMPARISONS = frozenset({
    BinaryOperator.EQ, BinaryOperator.NE, BinaryOperator.LT,
    BinaryOperator.LE, BinaryOperator.GT, BinaryOperator.GE,
})


@dataclass(frozen=True)
class Const:
    """An integer literal. Unsized literals adopt the width of their context."""
    value: int
    width: Optional[WidthExpr] = None


@dataclass(frozen=True)
class SignalRef:
    """A reference to a port, an internal signal or a parameter, by local name."""
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: UnaryOperator
    operand: "Expr"


@dataclass(frozen=True)
class BinaryOp:
    op: BinaryOperator
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Select:
    """
    Chooses `branches[condition]`; a condition value past the last branch
    selects the last branch. A two-way `if` is `Select(cond, (else, then))`.
    """
    condition: "Expr"
    branches: Tuple["Expr", ...]


@dataclass(frozen=True)
class Slice:
    """Bits `high` down to `low` (inclusive) of the operand."""
    operand: "Expr"
    high: WidthExpr
    low: WidthExpr


@dataclass(frozen=True)
class Concat:
    """Concatenation, most significant part first."""
    parts: Tuple["Expr", ...]


@dataclass(frozen=True)
class Extend:
    """Zero or sign extension of the operand to `width` bits."""
    operand: "Expr"
    width: WidthExpr
    signed: bool = False


@dataclass(frozen=True)
class RegisterRead:
    """The value a register held at the end of the previous step."""
    name: str


@dataclass(frozen=True)
class RegisterWrite:
    """The next-state function of one register, in one clock domain."""
    target: str
    data: "Expr"
    clock: str
    reset: Optional["Expr"] = None
    reset_value: int = 0


Expr = Union[Const, SignalRef, UnaryOp, BinaryOp, Select, Slice, Concat, Extend, RegisterRead]


def logical(expr: Expr) -> Expr:
    """Reduces an expression to a 1-bit truth value (identity for 1-bit operands)."""
    if isinstance(expr, UnaryOp) and expr.op.is_reduction:
        return expr
    if isinstance(expr, BinaryOp) and expr.op.is_comparison:
        return expr
    return UnaryOp(UnaryOperator.REDUCE_OR, expr)


def referenced_names(expr: Expr) -> Tuple[str, ...]:
    """All signal names read by an expression, in first-appearance order."""
    seen = []
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, (SignalRef, RegisterRead)):
            if node.name not in seen:
                seen.append(node.name)
        elif isinstance(node, UnaryOp):
            stack.append(node.operand)
        elif isinstance(node, BinaryOp):
            stack.extend((node.right, node.left))
        elif isinstance(node, Select):
            stack.extend(reversed((node.condition,) + node.branches))
        elif isinstance(node, Concat):
            stack.extend(reversed(node.parts))
        elif isinstance(node, (Slice, Extend)):
            stack.append(node.operand)
    return tuple(seen)
