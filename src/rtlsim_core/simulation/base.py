# src/rtlsim_core/simulation/base.py
"""
The stepping contract shared by the behavioral and gate-level simulators.

One step is:

1.  apply any inputs passed to `step()`;
2.  settle the combinational logic and sample the outputs (the values
    returned by `step()` are the values observed before the clock edge);
3.  notify attached listeners such as waveform tracers;
4.  commit every register of the ticking clock domains at once.

Reads between steps always reflect the current state: after `step()` the
registers hold their post-edge values, so `get_output()` and `peek()`
re-settle the logic on the next read and report what the following step
would sample for the same inputs. Only the dictionary returned by `step()`
carries the pre-edge sample.

A simulator owns its state exclusively. `reset()` restores the power-on
state without rebuilding the design.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .exceptions import SimulationInputError

logger = logging.getLogger(__name__)


class SimulationListener(Protocol):
    """Receives a callback after each step is sampled and after each reset."""

    def on_step(self, simulator: "Simulator", step: int) -> None:
        ...

    def on_reset(self, simulator: "Simulator") -> None:
        ...


class Simulator(ABC):
    """
    Base class of both execution engines.

    Args:
        name: Name of the simulated design, used in diagnostics.
        inputs: (name, width, default) of each top-level input port.
        outputs: (name, width) of each top-level output port.
        clock_domains: Names of the inputs used as register clocks.
    """

    def __init__(
        self,
        name: str,
        inputs: Sequence[Tuple[str, int, Optional[int]]],
        outputs: Sequence[Tuple[str, int]],
        clock_domains: Sequence[str],
    ):
        self.name = name
        self._input_ports: Dict[str, Tuple[int, Optional[int]]] = {n: (w, d) for n, w, d in inputs}
        self._output_ports: Dict[str, int] = dict(outputs)
        self.clock_domains: Tuple[str, ...] = tuple(clock_domains)
        self._input_values: Dict[str, int] = {}
        self._listeners: List[SimulationListener] = []
        self._stale = True
        self.step_count = 0

    # --- Ports ---

    @property
    def input_names(self) -> Tuple[str, ...]:
        return tuple(self._input_ports)

    @property
    def output_names(self) -> Tuple[str, ...]:
        return tuple(self._output_ports)

    def input_width(self, name: str) -> int:
        return self._input_ports[name][0]

    def output_width(self, name: str) -> int:
        return self._output_ports[name]

    @property
    @abstractmethod
    def signal_names(self) -> Tuple[str, ...]:
        """Every name `peek()` accepts."""
        raise NotImplementedError

    @abstractmethod
    def signal_width(self, name: str) -> int:
        raise NotImplementedError

    # --- Stepping contract ---

    def set_input(self, name: str, value: int):
        if name not in self._input_ports:
            raise SimulationInputError(
                component=self.name,
                details=f"'{name}' is not an input port of '{self.name}'.",
                signal=name,
                value=value,
            )
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise SimulationInputError(
                component=self.name,
                details=f"The value for input '{name}' is not an integer.",
                signal=name,
                value=value,
            ) from e
        width = self._input_ports[name][0]
        if not 0 <= number < (1 << width):
            raise SimulationInputError(
                component=self.name,
                details=f"The value {number} does not fit the {width}-bit input '{name}'.",
                signal=name,
                value=value,
            )
        self._input_values[name] = number
        self._stale = True

    def set_inputs(self, values: Mapping[str, int]):
        for name, value in values.items():
            self.set_input(name, value)

    def input_value(self, name: str) -> Optional[int]:
        """The value driving an input: the last one set, else its default, else None."""
        if name in self._input_values:
            return self._input_values[name]
        return self._input_ports[name][1]

    def evaluate(self) -> Dict[str, int]:
        """Settles the combinational logic without a clock edge and returns the outputs."""
        self._settle()
        self._stale = False
        return {name: self._read(name) for name in self._output_ports}

    def step(self, inputs: Optional[Mapping[str, int]] = None, domains: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """
        Advances one clock cycle of the given clock domains (all by default)
        and returns the outputs observed before the edge.
        """
        if inputs:
            self.set_inputs(inputs)
        ticking = self._resolve_domains(domains)
        outputs = self.evaluate()
        for listener in list(self._listeners):
            listener.on_step(self, self.step_count)
        self._commit(ticking)
        self._stale = True
        self.step_count += 1
        return outputs

    def get_output(self, name: str) -> int:
        """
        The value of an output for the current inputs and register state.
        After a step this is the post-edge value.
        """
        if name not in self._output_ports:
            raise SimulationInputError(
                component=self.name,
                details=f"'{name}' is not an output port of '{self.name}'.",
                signal=name,
            )
        if self._stale:
            self.evaluate()
        return self._read(name)

    def peek(self, name: str) -> int:
        """The value of any named signal for the current inputs and register state."""
        if name not in self.signal_names:
            raise SimulationInputError(
                component=self.name,
                details=f"'{name}' is not a signal of '{self.name}'.",
                signal=name,
            )
        if self._stale:
            self.evaluate()
        return self._read(name)

    def reset(self):
        """Restores the power-on state: registers to their initial values, inputs unset."""
        self._input_values.clear()
        self._reset_state()
        self._stale = True
        self.step_count = 0
        logger.debug("Simulator for '%s' reset.", self.name)
        for listener in list(self._listeners):
            listener.on_reset(self)

    # --- Listeners ---

    def add_listener(self, listener: SimulationListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SimulationListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # --- Engine hooks ---

    @abstractmethod
    def _settle(self):
        """Evaluates the current inputs and register state into a fresh sample."""
        raise NotImplementedError

    @abstractmethod
    def _read(self, name: str) -> int:
        """Reads a named signal from the current sample."""
        raise NotImplementedError

    @abstractmethod
    def _commit(self, domains: FrozenSet[str]):
        """Updates every register of the given clock domains from the current sample."""
        raise NotImplementedError

    @abstractmethod
    def _reset_state(self):
        raise NotImplementedError

    def _resolve_domains(self, domains: Optional[Iterable[str]]) -> FrozenSet[str]:
        if domains is None:
            return frozenset(self.clock_domains)
        requested = frozenset(domains)
        unknown = sorted(requested - set(self.clock_domains))
        if unknown:
            raise SimulationInputError(
                component=self.name,
                details=f"'{unknown[0]}' is not a clock domain of '{self.name}' (domains: {list(self.clock_domains)}).",
                signal=unknown[0],
            )
        return requested
