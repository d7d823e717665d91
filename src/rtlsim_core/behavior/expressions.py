# src/rtlsim_core/behavior/expressions.py
"""
Parses expression strings into template expression nodes.

Expressions are written in a small subset of Python syntax and parsed with the
`ast` module, the same way parameter expressions are analysed. Anything that
is not part of the subset is rejected with an `ExpressionSyntaxError` at
registration time, so no host-language construct can leak into the graph.

Supported forms:
  - integer literals, names (signals or parameters)
  - binary operators  + - * & | ^ << >>
  - unary operators   ~x  -x  +x  not x
  - comparisons       == != < <= > >=  (a single comparator)
  - boolean and/or    (operands reduced to 1-bit truth values)
  - conditional       a if cond else b
  - bit slices        x[i], x[hi:lo]   (inclusive, hi >= lo, parameter expressions)
  - functions         cat(...), rep(x, n), zext(x, w), sext(x, w), trunc(x, w),
                      const(value, w), mux(sel, b0, b1, ...), reduce_and(x),
                      reduce_or(x), reduce_xor(x)
  - memory reads      mem[addr]  (for memories declared by the component)
"""
import ast
import logging
from typing import Callable, Dict, Mapping, Optional, Union

from . import memory
from .exceptions import ExpressionSyntaxError
from .nodes import (
    BinaryOp, BinaryOperator, Concat, Const, Expr, Extend, Select, SignalRef, Slice,
    UnaryOp, UnaryOperator, WidthExpr, logical,
)

logger = logging.getLogger(__name__)

_BINARY_OPERATORS = {
    ast.Add: BinaryOperator.ADD,
    ast.Sub: BinaryOperator.SUB,
    ast.Mult: BinaryOperator.MUL,
    ast.BitAnd: BinaryOperator.AND,
    ast.BitOr: BinaryOperator.OR,
    ast.BitXor: BinaryOperator.XOR,
    ast.LShift: BinaryOperator.SHL,
    ast.RShift: BinaryOperator.SHR,
}

_COMPARE_OPERATORS = {
    ast.Eq: BinaryOperator.EQ,
    ast.NotEq: BinaryOperator.NE,
    ast.Lt: BinaryOperator.LT,
    ast.LtE: BinaryOperator.LE,
    ast.Gt: BinaryOperator.GT,
    ast.GtE: BinaryOperator.GE,
}

_REDUCTIONS = {
    "reduce_and": UnaryOperator.REDUCE_AND,
    "reduce_or": UnaryOperator.REDUCE_OR,
    "reduce_xor": UnaryOperator.REDUCE_XOR,
}


class ExpressionParser:
    """
    A stateless service converting expression source into template nodes.

    Args:
        component: Name of the component being declared, used for error context.
        memories: Depth of each memory the component declares, by name.
    """

    def __init__(self, component: str = "<anonymous>", memories: Optional[Mapping[str, int]] = None):
        self.component = component
        self._memories = dict(memories or {})
        self._functions: Dict[str, Callable[[ast.Call, str], Expr]] = {
            "cat": self._parse_cat,
            "rep": self._parse_rep,
            "zext": self._parse_zext,
            "sext": self._parse_sext,
            "trunc": self._parse_trunc,
            "const": self._parse_const,
            "mux": self._parse_mux,
        }

    def parse(self, source: Union[str, int, Expr]) -> Expr:
        """Returns the expression node for `source`; nodes pass through unchanged."""
        if isinstance(source, bool):
            return Const(int(source))
        if isinstance(source, int):
            return Const(source)
        if not isinstance(source, str):
            return source
        text = source.strip()
        if not text:
            self._fail("Empty expression.", source)
        try:
            tree = ast.parse(text, mode="eval")
        except SyntaxError as e:
            raise ExpressionSyntaxError(
                component=self.component,
                details=f"Invalid expression syntax: {e.msg}",
                user_input=source,
            ) from e
        return self._convert(tree.body, source)

    # --- Node conversion ---

    def _convert(self, node: ast.AST, source: str) -> Expr:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool):
                return Const(int(node.value))
            if isinstance(node.value, int):
                return Const(node.value)
            self._fail(f"Only integer literals are allowed, got {node.value!r}.", source)

        if isinstance(node, ast.Name):
            return SignalRef(node.id)

        if isinstance(node, ast.BinOp):
            op = _BINARY_OPERATORS.get(type(node.op))
            if op is None:
                self._fail(f"Operator '{type(node.op).__name__}' is not supported.", source)
            return BinaryOp(op, self._convert(node.left, source), self._convert(node.right, source))

        if isinstance(node, ast.UnaryOp):
            operand = self._convert(node.operand, source)
            if isinstance(node.op, ast.Invert):
                return UnaryOp(UnaryOperator.NOT, operand)
            if isinstance(node.op, ast.USub):
                if isinstance(operand, Const):
                    return Const(-operand.value, operand.width)
                return UnaryOp(UnaryOperator.NEG, operand)
            if isinstance(node.op, ast.UAdd):
                return operand
            if isinstance(node.op, ast.Not):
                return UnaryOp(UnaryOperator.LOGICAL_NOT, operand)

        if isinstance(node, ast.Compare):
            if len(node.ops) != 1:
                self._fail("Chained comparisons are not supported; combine them with 'and'.", source)
            op = _COMPARE_OPERATORS.get(type(node.ops[0]))
            if op is None:
                self._fail(f"Comparison '{type(node.ops[0]).__name__}' is not supported.", source)
            return BinaryOp(op, self._convert(node.left, source), self._convert(node.comparators[0], source))

        if isinstance(node, ast.BoolOp):
            op = BinaryOperator.AND if isinstance(node.op, ast.And) else BinaryOperator.OR
            values = [logical(self._convert(v, source)) for v in node.values]
            result = values[0]
            for value in values[1:]:
                result = BinaryOp(op, result, value)
            return result

        if isinstance(node, ast.IfExp):
            condition = logical(self._convert(node.test, source))
            return Select(condition, (self._convert(node.orelse, source), self._convert(node.body, source)))

        if isinstance(node, ast.Subscript):
            return self._parse_subscript(node, source)

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name):
                self._fail("Only plain function names can be called.", source)
            if node.keywords:
                self._fail(f"Function '{node.func.id}' does not take keyword arguments.", source)
            name = node.func.id
            if name in _REDUCTIONS:
                self._expect_args(node, 1, source)
                return UnaryOp(_REDUCTIONS[name], self._convert(node.args[0], source))
            handler = self._functions.get(name)
            if handler is None:
                self._fail(f"Unknown function '{name}'.", source)
            return handler(node, source)

        self._fail(f"Unsupported construct '{type(node).__name__}'.", source)

    def _parse_subscript(self, node: ast.Subscript, source: str) -> Expr:
        index = node.slice
        if isinstance(node.value, ast.Name) and node.value.id in self._memories:
            if isinstance(index, ast.Slice):
                self._fail(f"Memory '{node.value.id}' is read one word at a time.", source)
            name = node.value.id
            return memory.read(name, self._memories[name], self._convert(index, source))
        operand = self._convert(node.value, source)
        if isinstance(index, ast.Slice):
            if index.lower is None or index.upper is None or index.step is not None:
                self._fail("Bit slices must be written as x[high:low].", source)
            return Slice(operand, self._width_expr(index.lower), self._width_expr(index.upper))
        bit = self._width_expr(index)
        return Slice(operand, bit, bit)

    # --- Functions ---

    def _parse_cat(self, node: ast.Call, source: str) -> Expr:
        if not node.args:
            self._fail("cat() needs at least one argument.", source)
        return Concat(tuple(self._convert(arg, source) for arg in node.args))

    def _parse_rep(self, node: ast.Call, source: str) -> Expr:
        self._expect_args(node, 2, source)
        count = self._literal_int(node.args[1], "rep() count", source)
        if count < 1:
            self._fail("rep() count must be at least 1.", source)
        part = self._convert(node.args[0], source)
        return Concat((part,) * count)

    def _parse_zext(self, node: ast.Call, source: str) -> Expr:
        self._expect_args(node, 2, source)
        return Extend(self._convert(node.args[0], source), self._width_expr(node.args[1]), signed=False)

    def _parse_sext(self, node: ast.Call, source: str) -> Expr:
        self._expect_args(node, 2, source)
        return Extend(self._convert(node.args[0], source), self._width_expr(node.args[1]), signed=True)

    def _parse_trunc(self, node: ast.Call, source: str) -> Expr:
        self._expect_args(node, 2, source)
        width = self._width_expr(node.args[1])
        high = f"({width}) - 1" if isinstance(width, str) else width - 1
        return Slice(self._convert(node.args[0], source), high, 0)

    def _parse_const(self, node: ast.Call, source: str) -> Expr:
        self._expect_args(node, 2, source)
        value = self._literal_int(node.args[0], "const() value", source)
        return Const(value, self._width_expr(node.args[1]))

    def _parse_mux(self, node: ast.Call, source: str) -> Expr:
        if len(node.args) < 3:
            self._fail("mux() needs a selector and at least two branches.", source)
        selector = self._convert(node.args[0], source)
        return Select(selector, tuple(self._convert(arg, source) for arg in node.args[1:]))

    # --- Helpers ---

    def _width_expr(self, node: ast.AST) -> WidthExpr:
        """Keeps a compile-time integer expression as source for the Elaborator."""
        if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
            return node.value
        return ast.unparse(node)

    def _literal_int(self, node: ast.AST, what: str, source: str) -> int:
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
            return -self._literal_int(node.operand, what, source)
        if isinstance(node, ast.Constant) and isinstance(node.value, int):
            return int(node.value)
        self._fail(f"{what} must be an integer literal.", source)

    def _expect_args(self, node: ast.Call, count: int, source: str):
        if len(node.args) != count:
            self._fail(f"{node.func.id}() takes exactly {count} argument(s), got {len(node.args)}.", source)

    def _fail(self, details: str, source: str):
        raise ExpressionSyntaxError(component=self.component, details=details, user_input=str(source))
