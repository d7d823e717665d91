# src/rtlsim_core/cache/keys.py
"""
Centralizes the generation of cache keys for build products.

A key must capture every input that can change the result. For an elaborated
graph that is the content of every component definition reachable from the
top-level one, plus the parameter bindings; the registry object itself is not
part of the key, so two registries holding identical definitions share
results. A netlist additionally depends only on the graph it was lowered from.
"""
from typing import Mapping, Optional, Tuple, Union

from ..components.definition import ComponentDefinition
from ..components.registry import ComponentRegistry


def canonical_bindings(bindings: Optional[Mapping[str, Union[int, str]]]) -> Tuple:
    """Sorted (name, value) pairs, so binding order never changes the key."""
    return tuple(sorted((str(k), repr(v)) for k, v in (bindings or {}).items()))


def create_elaboration_key(
    registry: ComponentRegistry,
    definition: ComponentDefinition,
    bindings: Optional[Mapping[str, Union[int, str]]],
    check_acyclic: bool = True,
) -> Tuple:
    """
    The key of one elaboration. Unregistered sub-component types are not an
    error here; the Elaborator reports them with the instance path.
    """
    closure = [definition]
    seen = {definition.name}
    stack = list(definition.dependencies)
    while stack:
        name = stack.pop()
        if name in seen or name not in registry:
            continue
        seen.add(name)
        child = registry.get(name)
        closure.append(child)
        stack.extend(child.dependencies)
    fingerprints = tuple(sorted((d.name, d.fingerprint) for d in closure))
    return ("elaboration", definition.name, fingerprints, canonical_bindings(bindings), bool(check_acyclic))


def create_lowering_key(graph_fingerprint: str, verify_determinism: bool = False) -> Tuple:
    """The key of one lowering, namespaced apart from elaboration results."""
    return ("lowering", graph_fingerprint, bool(verify_determinism))
