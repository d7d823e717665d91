# src/rtlsim_core/components/registry.py
"""
Defines the ComponentRegistry, the explicit set of known component types.

The registry is populated at startup and read-only afterwards. It is an
ordinary object passed to the Elaborator, never ambient global state, so two
elaboration runs with different registries are fully independent.

Registration is where every load-time check happens: duplicate names,
references to unregistered component types, recursive instantiation, and the
conversion of the behavior statements into a static `BehaviorGraph`.
"""
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import networkx as nx

from ..behavior import memory
from ..behavior.builder import BehaviorBuilder
from ..behavior.expressions import ExpressionParser
from ..behavior.exceptions import UnknownNameError
from ..behavior.nodes import referenced_names
from .base_enums import PortDirection
from .definition import ComponentDefinition, InstanceDecl, ParameterDecl
from .description import ComponentDescription, SignalDescription
from .exceptions import (
    DuplicateNameError, InvalidMemoryError, RecursiveInstantiationError, UnregisteredComponentError,
)

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """
    Maps component type names to their immutable `ComponentDefinition`s.
    """

    def __init__(self, descriptions: Optional[Iterable[ComponentDescription]] = None):
        self._definitions: Dict[str, ComponentDefinition] = {}
        if descriptions is not None:
            self.register_all(descriptions)

    # --- Lookup ---

    def get(self, name: str, requested_by: str = "<registry>") -> ComponentDefinition:
        definition = self._definitions.get(name)
        if definition is None:
            raise UnregisteredComponentError(
                component=requested_by,
                details=f"Component type '{name}' is not registered.",
                component_type=name,
                available=self.names(),
            )
        return definition

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._definitions))

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[ComponentDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def closure(self, name: str) -> Tuple[ComponentDefinition, ...]:
        """The definition and every definition it instantiates, transitively, sorted by name."""
        seen: Dict[str, ComponentDefinition] = {}
        stack = [name]
        while stack:
            current = self.get(stack.pop())
            if current.name in seen:
                continue
            seen[current.name] = current
            stack.extend(current.dependencies)
        return tuple(seen[n] for n in sorted(seen))

    # --- Registration ---

    def register_all(self, descriptions: Iterable[ComponentDescription]) -> List[ComponentDefinition]:
        """
        Registers a batch of descriptions in dependency order, so a library file
        may list components in any order.
        """
        batch = list(descriptions)
        by_name: Dict[str, ComponentDescription] = {}
        for description in batch:
            if description.name in by_name:
                raise DuplicateNameError(
                    component=description.name,
                    details=f"Component type '{description.name}' is declared more than once.",
                    name=description.name,
                    kind="component",
                )
            by_name[description.name] = description

        graph = nx.DiGraph()
        graph.add_nodes_from(by_name)
        for description in batch:
            for instance in description.instances:
                if instance.component_type in by_name:
                    graph.add_edge(description.name, instance.component_type)
        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            cycle = None
        if cycle:
            names = tuple(edge[0] for edge in cycle)
            raise RecursiveInstantiationError(
                component=names[0],
                details="Recursive instantiation detected.",
                cycle=names,
            )

        order = list(reversed(list(nx.lexicographical_topological_sort(graph))))
        return [self.register(by_name[name]) for name in order]

    def register(self, description: ComponentDescription) -> ComponentDefinition:
        """Validates one description and stores its immutable definition."""
        name = description.name
        if name in self._definitions:
            raise DuplicateNameError(
                component=name,
                details=f"Component type '{name}' is already registered.",
                name=name,
                kind="component",
            )
        words = self._memory_words(description)
        self._check_unique_names(description)
        memories = {m.name: m.depth for m in description.memories}

        inputs = [p.name for p in description.ports if p.direction is PortDirection.IN]
        assignable = {p.name: p.default for p in description.ports if p.direction is PortDirection.OUT}
        signals = tuple(description.signals) + words
        assignable.update({s.name: s.default for s in signals})
        initial_values = {p.name: p.initial for p in description.ports if p.initial is not None}
        initial_values.update({s.name: s.initial for s in signals if s.initial is not None})
        parameter_names = [p for p, _ in description.parameters]

        builder = BehaviorBuilder(
            component=name,
            inputs=inputs,
            assignable=assignable,
            parameters=parameter_names,
            initial_values=initial_values,
            memories=memories,
        )
        behavior = builder.build(description.behavior)
        readable = set(inputs) | set(assignable) | set(parameter_names)
        instances = self._build_instances(description, readable, memories)

        definition = ComponentDefinition(
            name=name,
            ports=tuple(description.ports),
            parameters=tuple(ParameterDecl(p, d) for p, d in description.parameters),
            signals=signals,
            instances=instances,
            behavior=behavior,
            memories=tuple(description.memories),
            source_path=description.source_path,
        )
        self._definitions[name] = definition
        logger.info(
            "Registered component '%s' (%d port(s), %d instance(s), %d register(s)).",
            name, len(definition.ports), len(definition.instances), len(definition.behavior.registers),
        )
        return definition

    def _build_instances(
        self, description: ComponentDescription, readable: set, memories: Dict[str, int],
    ) -> Tuple[InstanceDecl, ...]:
        parser = ExpressionParser(description.name, memories)
        instances = []
        for instance in description.instances:
            if instance.component_type == description.name:
                raise RecursiveInstantiationError(
                    component=description.name,
                    details=f"Instance '{instance.instance_id}' instantiates its own component type.",
                    cycle=(description.name,),
                )
            if instance.component_type not in self._definitions:
                raise UnregisteredComponentError(
                    component=description.name,
                    details=(
                        f"Instance '{instance.instance_id}' refers to unregistered component type "
                        f"'{instance.component_type}'."
                    ),
                    component_type=instance.component_type,
                    available=self.names(),
                )
            connections = []
            seen_ports = set()
            for port_name, source in instance.connections:
                if port_name in seen_ports:
                    raise DuplicateNameError(
                        component=description.name,
                        details=f"Instance '{instance.instance_id}' connects port '{port_name}' more than once.",
                        name=port_name,
                        kind="connection",
                    )
                seen_ports.add(port_name)
                expr = parser.parse(source)
                for ref in referenced_names(expr):
                    if ref not in readable:
                        raise UnknownNameError(
                            component=description.name,
                            details=(
                                f"Connection of '{instance.instance_id}.{port_name}' reads unknown name '{ref}'."
                            ),
                            name=ref,
                            statement=source if isinstance(source, str) else None,
                        )
                connections.append((port_name, expr))
            instances.append(InstanceDecl(
                instance_id=instance.instance_id,
                component_type=instance.component_type,
                parameters=tuple(instance.parameters),
                connections=tuple(connections),
            ))
        return tuple(instances)

    @staticmethod
    def _memory_words(description: ComponentDescription) -> Tuple[SignalDescription, ...]:
        """The internal word signals backing the component's memories."""
        words = []
        for declared in description.memories:
            if isinstance(declared.depth, bool) or not isinstance(declared.depth, int) or declared.depth < 1:
                raise InvalidMemoryError(
                    component=description.name,
                    details=f"Memory '{declared.name}' has depth {declared.depth!r}; it must be a positive integer.",
                    memory=declared.name,
                )
            if len(declared.initial) > declared.depth:
                raise InvalidMemoryError(
                    component=description.name,
                    details=(
                        f"Memory '{declared.name}' lists {len(declared.initial)} initial word(s) "
                        f"but holds only {declared.depth}."
                    ),
                    memory=declared.name,
                )
            initial = tuple(declared.initial) + (0,) * (declared.depth - len(declared.initial))
            for word, value in zip(memory.word_names(declared.name, declared.depth), initial):
                words.append(SignalDescription(name=word, width=declared.width, initial=value))
        return tuple(words)

    def _check_unique_names(self, description: ComponentDescription):
        signal_names = [p.name for p in description.ports] + [s.name for s in description.signals]
        for declared in description.memories:
            signal_names.append(declared.name)
            signal_names.extend(memory.word_names(declared.name, declared.depth))
        self._check_unique(description.name, signal_names, "signal")
        parameter_names = [p for p, _ in description.parameters]
        self._check_unique(description.name, parameter_names, "parameter")
        self._check_unique(description.name, [i.instance_id for i in description.instances], "instance")
        clashes = sorted(set(signal_names) & set(parameter_names))
        if clashes:
            raise DuplicateNameError(
                component=description.name,
                details=f"Name '{clashes[0]}' is used for both a signal and a parameter.",
                name=clashes[0],
                kind="name",
            )

    @staticmethod
    def _check_unique(component: str, names: Sequence[str], kind: str):
        seen = set()
        for name in names:
            if name in seen:
                raise DuplicateNameError(
                    component=component,
                    details=f"The {kind} name '{name}' is declared more than once.",
                    name=name,
                    kind=kind,
                )
            seen.add(name)
