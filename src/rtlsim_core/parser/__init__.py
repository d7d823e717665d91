# src/rtlsim_core/parser/__init__.py
from .parser import ComponentLibraryParser, EnhancedValidator, load_registry
from .exceptions import ParsingError, SchemaValidationError

__all__ = [
    "ComponentLibraryParser",
    "EnhancedValidator",
    "load_registry",
    "ParsingError",
    "SchemaValidationError",
]
