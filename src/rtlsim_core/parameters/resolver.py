# src/rtlsim_core/parameters/resolver.py

"""
Resolves the compile-time parameters of one component instance and evaluates
width and bit-index expressions over them.

Parameter handling follows one pipeline:

1.  **Bindings first.** Values bound by the instantiating parent (or by the
    caller, for the top-level component) are integers or expressions evaluated
    in the *parent's* scope.

2.  **Defaults by dependency order.** Unbound parameters use their default
    expression, which may reference other parameters of the same component.
    A dependency graph of these expressions is built from their ASTs, checked
    for cycles, and evaluated in topological order.

3.  **Whitelisted sympy evaluation.** An expression is first checked to be
    plain integer arithmetic over names and helper calls (no attribute
    access, subscripts or comprehensions). It is then parsed with sympy's
    `parse_expr` against a namespace holding only the resolved parameters
    (as `sympy.Integer`) and a few integer helpers (`clog2`, `max`, `min`,
    `abs`). Every result must be an integer.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import networkx as nx
import sympy
from sympy.logic.boolalg import BooleanAtom
from sympy.parsing.sympy_parser import parse_expr

from ..components.definition import ParameterDecl
from .dependency_parser import ASTDependencyExtractor
from .exceptions import (
    CircularParameterDependencyError,
    ParameterEvaluationError,
    ParameterSyntaxError,
    UnknownParameterError,
    UnresolvedParameterError,
)

logger = logging.getLogger(__name__)

Binding = Union[int, str]


def clog2(value: int) -> int:
    """Ceiling of log2, the number of bits needed to index `value` items."""
    value = int(value)
    if value <= 1:
        return 0
    return (value - 1).bit_length()


class ParameterResolver:
    """
    A stateless service resolving parameter values and integer expressions.
    """
    _PARSE_GLOBALS: Dict[str, Any] = {
        "__builtins__": {},
        "Integer": sympy.Integer,
        "Symbol": sympy.Symbol,
    }
    _HELPERS: Dict[str, Any] = {
        "clog2": lambda value: sympy.Integer(clog2(int(value))),
        "max": sympy.Max,
        "min": sympy.Min,
        "abs": sympy.Abs,
    }

    def __init__(self):
        self._extractor = ASTDependencyExtractor()

    def resolve(
        self,
        declarations: Sequence[ParameterDecl],
        bindings: Optional[Mapping[str, Binding]],
        path: str,
        outer_scope: Optional[Mapping[str, int]] = None,
    ) -> Dict[str, int]:
        """
        Returns the concrete value of every declared parameter.

        Args:
            declarations: The component's parameter declarations.
            bindings: Values bound by the instantiating context.
            path: Instance path used in diagnostics ("top.u0").
            outer_scope: Parameter values of the instantiating parent; binding
                         expressions are evaluated in this scope.
        """
        bindings = dict(bindings or {})
        outer_scope = dict(outer_scope or {})
        declared = {d.name: d for d in declarations}

        unknown = sorted(set(bindings) - set(declared))
        if unknown:
            raise UnknownParameterError(
                path=path,
                details=f"Parameter '{unknown[0]}' is bound but not declared by the component.",
                parameter=unknown[0],
                available=tuple(declared),
            )

        values: Dict[str, int] = {}
        for name, value in bindings.items():
            values[name] = self.evaluate(value, outer_scope, path, f"binding of parameter '{name}'")

        pending: Dict[str, str] = {}
        for decl in declarations:
            if decl.name in values:
                continue
            if decl.default is None:
                raise UnresolvedParameterError(
                    path=path,
                    details=f"Parameter '{decl.name}' has no default value and is not bound.",
                    parameter=decl.name,
                )
            if isinstance(decl.default, int):
                values[decl.name] = int(decl.default)
            else:
                pending[decl.name] = str(decl.default)

        for name in self._evaluation_order(pending, path):
            values[name] = self.evaluate(pending[name], values, path, f"default of parameter '{name}'")

        logger.debug("Resolved parameters for '%s': %s", path, values)
        return {d.name: values[d.name] for d in declarations}

    def evaluate(self, expression: Binding, scope: Mapping[str, int], path: str, what: str = "expression") -> int:
        """Evaluates an integer expression over `scope`."""
        if isinstance(expression, bool):
            return int(expression)
        if isinstance(expression, int):
            return expression
        text = str(expression).strip()
        try:
            disallowed = self._extractor.find_disallowed(text)
            dependencies = self._extractor.get_dependencies(text)
            functions = self._extractor.get_called_functions(text)
        except SyntaxError as e:
            raise ParameterSyntaxError(
                path=path,
                details=f"Invalid syntax in {what}: {e.msg}",
                user_input=text,
            ) from e

        if disallowed is not None:
            raise ParameterSyntaxError(
                path=path,
                details=f"Only integer arithmetic is allowed in {what}; found {disallowed}.",
                user_input=text,
            )

        unknown_functions = sorted(functions - set(self._HELPERS))
        if unknown_functions:
            raise ParameterEvaluationError(
                path=path,
                details=f"Unknown function '{unknown_functions[0]}' in {what}.",
                user_input=text,
            )
        unresolved = sorted(dependencies - set(scope) - functions)
        if unresolved:
            raise UnresolvedParameterError(
                path=path,
                details=f"Name '{unresolved[0]}' in {what} is not a parameter in scope.",
                parameter=unresolved[0],
                user_input=text,
            )

        local_dict = dict(self._HELPERS)
        local_dict.update({name: sympy.Integer(int(value)) for name, value in scope.items()})
        try:
            result = parse_expr(text, local_dict=local_dict, global_dict=dict(self._PARSE_GLOBALS))
        except Exception as e:
            raise ParameterEvaluationError(
                path=path,
                details=f"Evaluating {what} failed: {type(e).__name__}: {e}",
                user_input=text,
            ) from e

        if isinstance(result, (bool, BooleanAtom)):
            return int(bool(result))
        if not isinstance(result, (int, sympy.Integer)):
            raise ParameterEvaluationError(
                path=path,
                details=f"The {what} evaluated to {result!r}, which is not an integer.",
                user_input=text,
            )
        return int(result)

    def _evaluation_order(self, pending: Mapping[str, str], path: str):
        """Topologically orders the default expressions that reference each other."""
        graph = nx.DiGraph()
        graph.add_nodes_from(pending)
        for name, expression in pending.items():
            try:
                dependencies = self._extractor.get_dependencies(expression)
            except SyntaxError as e:
                raise ParameterSyntaxError(
                    path=path,
                    details=f"Invalid syntax in default of parameter '{name}': {e.msg}",
                    user_input=expression,
                ) from e
            for dependency in dependencies:
                if dependency in pending:
                    graph.add_edge(dependency, name)

        cycles = list(nx.simple_cycles(graph))
        if cycles:
            cycle = sorted(cycles, key=lambda c: (len(c), c))[0]
            raise CircularParameterDependencyError(
                path=path,
                details="Circular parameter dependency.",
                cycle=tuple(cycle),
            )
        return list(nx.lexicographical_topological_sort(graph))
