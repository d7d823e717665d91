# src/rtlsim_core/parameters/__init__.py
from .dependency_parser import ASTDependencyExtractor
from .resolver import ParameterResolver, clog2
from .exceptions import (
    CircularParameterDependencyError,
    ParameterEvaluationError,
    ParameterSyntaxError,
    UnknownParameterError,
    UnresolvedParameterError,
)

__all__ = [
    "ASTDependencyExtractor",
    "ParameterResolver",
    "clog2",
    "CircularParameterDependencyError",
    "ParameterEvaluationError",
    "ParameterSyntaxError",
    "UnknownParameterError",
    "UnresolvedParameterError",
]
