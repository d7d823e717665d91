# src/rtlsim_core/parameters/dependency_parser.py

"""
Provides the ASTDependencyExtractor service for dependency analysis of
parameter and width expressions.

Parameter expressions are plain integer expressions ("WIDTH * 2",
"clog2(DEPTH)"). Parsing them with the `ast` module gives exact name
extraction without fragile regexes:
 - Given a syntactically valid expression, it returns the set of all names it
   reads, excluding the names of called functions.
 - Given a syntactically invalid expression, it raises `SyntaxError`, and the
   caller turns it into an actionable diagnostic.
 - Given an expression using anything beyond integer arithmetic (attribute
   access, subscripts, comprehensions, lambdas, non-integer literals), it
   names the first offending construct.
"""

import ast
import logging
from typing import Optional, Set

logger = logging.getLogger(__name__)

_ALLOWED_NODES = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.Compare, ast.Call, ast.Name, ast.Load, ast.Constant,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.LShift, ast.RShift, ast.BitAnd, ast.BitOr, ast.BitXor,
    ast.UAdd, ast.USub, ast.Invert,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
)


class _DependencyVisitor(ast.NodeVisitor):
    """Collects every identifier (ast.Name) read by an expression."""
    def __init__(self):
        self.dependencies: Set[str] = set()
        self.functions: Set[str] = set()

    def visit_Name(self, node: ast.Name):
        self.dependencies.add(node.id)

    def visit_Call(self, node: ast.Call):
        # The callee of `clog2(DEPTH)` is a helper function, not a dependency.
        if isinstance(node.func, ast.Name):
            self.functions.add(node.func.id)
        else:
            self.visit(node.func)
        for arg in node.args:
            self.visit(arg)
        for keyword in node.keywords:
            self.visit(keyword.value)


class ASTDependencyExtractor:
    """
    A stateless service to extract all dependencies from an expression string.
    """
    def get_dependencies(self, expression_str: str) -> Set[str]:
        """
        Parses an expression and returns the set of names it reads.

        Raises:
            SyntaxError: If the expression_str is not valid Python syntax.
        """
        if not expression_str.strip():
            return set()

        tree = ast.parse(expression_str, mode='eval')
        visitor = _DependencyVisitor()
        visitor.visit(tree)
        return visitor.dependencies

    def get_called_functions(self, expression_str: str) -> Set[str]:
        """Returns the names of the functions called by the expression."""
        if not expression_str.strip():
            return set()
        tree = ast.parse(expression_str, mode='eval')
        visitor = _DependencyVisitor()
        visitor.visit(tree)
        return visitor.functions

    def find_disallowed(self, expression_str: str) -> Optional[str]:
        """
        Returns a description of the first construct that is not plain integer
        arithmetic over names and helper calls, or None if there is none.

        Raises:
            SyntaxError: If the expression_str is not valid Python syntax.
        """
        if not expression_str.strip():
            return None
        tree = ast.parse(expression_str, mode='eval')
        for node in ast.walk(tree):
            if not isinstance(node, _ALLOWED_NODES):
                return type(node).__name__
            if isinstance(node, ast.Constant) and type(node.value) not in (int, bool):
                return f"literal {node.value!r}"
            if isinstance(node, ast.Call) and (not isinstance(node.func, ast.Name) or node.keywords):
                return "call of anything but a helper function"
        return None
