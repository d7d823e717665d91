# src/rtlsim_core/behavior/__init__.py
from .nodes import (
    BinaryOp, BinaryOperator, Concat, Const, Expr, Extend, RegisterRead, RegisterWrite,
    Select, SignalRef, Slice, UnaryOp, UnaryOperator, WidthExpr,
)
from .statements import Assign, Case, CaseBranch, Clocked, If, MemoryWrite, Statement
from .expressions import ExpressionParser
from .builder import BehaviorBuilder, BehaviorGraph
from .exceptions import (
    ExpressionSyntaxError, InferredLatchError, InvalidAssignmentTargetError,
    MultipleDriverError, UnknownNameError,
)

__all__ = [
    # Expression nodes
    "BinaryOp", "BinaryOperator", "Concat", "Const", "Expr", "Extend", "RegisterRead",
    "RegisterWrite", "Select", "SignalRef", "Slice", "UnaryOp", "UnaryOperator", "WidthExpr",
    # Statements
    "Assign", "Case", "CaseBranch", "Clocked", "If", "MemoryWrite", "Statement",
    # Builders
    "ExpressionParser", "BehaviorBuilder", "BehaviorGraph",
    # Exceptions
    "ExpressionSyntaxError", "InferredLatchError", "InvalidAssignmentTargetError",
    "MultipleDriverError", "UnknownNameError",
]
