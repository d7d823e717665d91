# src/rtlsim_core/cache/service.py
"""
Memoizes elaborated graphs and netlists by their content keys.

Keys come from `cache.keys` and start with their namespace ("elaboration" or
"lowering"). A cached product is immutable, so the same object is handed to
every caller that asks for it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

SCOPES = ('run', 'process')


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {'hits': self.hits, 'misses': self.misses}


class DesignCache:
    """
    A memo of build products with two stores:

    - 'run' belongs to one DesignCache object and dies with it. Use it while a
      component library is being edited.
    - 'process' is shared by every DesignCache of the interpreter. Sharing is
      safe because a key fingerprints every definition its product was built
      from.

    The cache is passed explicitly to the Elaborator and to `lower()`. Hit and
    miss counts are kept per object and per store.
    """
    _shared: Dict[Tuple, Any] = {}

    def __init__(self, scope: str = 'run'):
        self.default_scope = self._checked(scope)
        self._own: Dict[Tuple, Any] = {}
        self.clear_stats()

    @staticmethod
    def _checked(scope: str) -> str:
        if scope not in SCOPES:
            raise ValueError(f"Invalid cache scope '{scope}'. Must be one of {SCOPES}.")
        return scope

    def _store(self, scope: Optional[str]) -> Tuple[str, Dict[Tuple, Any]]:
        scope = self._checked(scope or self.default_scope)
        return scope, (self._own if scope == 'run' else DesignCache._shared)

    def get(self, key: Tuple[Hashable, ...], scope: Optional[str] = None) -> Any:
        """The cached product for `key`, or None."""
        scope, store = self._store(scope)
        value = store.get(key)
        stats = self._stats[scope]
        if value is None:
            stats.misses += 1
        else:
            stats.hits += 1
        logger.debug("%s cache %s (%s).", scope, "miss" if value is None else "hit", key[0])
        return value

    def put(self, key: Tuple[Hashable, ...], value: Any, scope: Optional[str] = None):
        scope, store = self._store(scope)
        if key in store:
            logger.debug("Replacing a cached %s product in the %s store.", key[0], scope)
        store[key] = value

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        return {scope: stats.as_dict() for scope, stats in self._stats.items()}

    def clear_stats(self):
        self._stats = {scope: CacheStats() for scope in SCOPES}

    @classmethod
    def clear_process_cache(cls):
        """Empties the shared store, forcing the next request to rebuild."""
        cls._shared.clear()
        logger.info("Cleared the process-level design cache.")
