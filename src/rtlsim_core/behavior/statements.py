# src/rtlsim_core/behavior/statements.py
"""
Statement forms of the Abstract Component Description.

A component's behavior is an ordered list of these statements. They are plain
data: the authoring front end (the YAML parser, or Python code building them
directly) only has to produce these objects. Expressions may be given either
as source strings in the expression language or as already-built nodes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .nodes import Expr

ExprSource = Union[str, int, Expr]


@dataclass(frozen=True)
class Assign:
    """
    `target = expr`, optionally guarded by a condition (`when`) and/or a clock
    edge. A clock-guarded assignment describes a register.
    """
    target: str
    expr: ExprSource
    when: Optional[ExprSource] = None
    clock: Optional[str] = None
    reset: Optional[ExprSource] = None
    reset_value: Optional[int] = None


@dataclass(frozen=True)
class If:
    condition: ExprSource
    then: Tuple["Statement", ...]
    otherwise: Tuple["Statement", ...] = ()


@dataclass(frozen=True)
class CaseBranch:
    matches: Tuple[ExprSource, ...]
    body: Tuple["Statement", ...]


@dataclass(frozen=True)
class Case:
    """Priority dispatch on `selector`; the first matching branch wins."""
    selector: ExprSource
    branches: Tuple[CaseBranch, ...]
    default: Tuple["Statement", ...] = ()


@dataclass(frozen=True)
class Clocked:
    """
    A block of statements executed on the rising edge of `clock`. Every target
    assigned inside becomes a register; `reset` is a synchronous reset.
    """
    clock: str
    body: Tuple["Statement", ...]
    reset: Optional[ExprSource] = None
    reset_values: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class MemoryWrite:
    """
    Writes `data` to word `address` of a memory on a clock edge, when `enable`
    holds. The clock comes from `clock` or from the enclosing `Clocked` block.
    """
    memory: str
    address: ExprSource
    data: ExprSource
    enable: Optional[ExprSource] = None
    clock: Optional[str] = None


Statement = Union[Assign, If, Case, Clocked, MemoryWrite]
