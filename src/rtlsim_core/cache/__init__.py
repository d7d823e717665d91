# src/rtlsim_core/cache/__init__.py
"""
Exposes the public interface of the cache package.
"""
from .service import DesignCache
from .keys import canonical_bindings, create_elaboration_key, create_lowering_key

__all__ = [
    "DesignCache",
    "canonical_bindings",
    "create_elaboration_key",
    "create_lowering_key",
]
