# src/rtlsim_core/tracing/tracer.py
"""
Records named signal values of a running simulator and writes them as VCD.

A `WaveformTracer` is a simulator listener: after each step is sampled it
peeks every traced signal and appends a `TracePoint` for each value that
changed. Tracing never stops a simulation. A name the simulator does not know
is dropped when the tracer is created, and a value that cannot be read at
some step is skipped, both with a logged warning.

Timestamps are step numbers. After `reset()` the simulator counts steps from
zero again, so the tracer keeps an offset and the timeline stays monotonic.
"""
import logging
from dataclasses import dataclass
from typing import IO, Dict, Iterable, List, Optional

from vcd import VCDWriter

from ..constants import DEFAULT_VCD_TIMESCALE, HIERARCHY_SEPARATOR
from ..errors import SimulationError
from ..simulation.base import Simulator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TracePoint:
    timestamp: int
    signal_id: int
    value: int


class WaveformTracer:
    """
    Args:
        simulator: A behavioral or gate-level simulator.
        signal_names: Names to trace; every name the simulator knows when omitted.
    """

    def __init__(self, simulator: Simulator, signal_names: Optional[Iterable[str]] = None):
        self.simulator = simulator
        known = set(simulator.signal_names)
        requested = simulator.signal_names if signal_names is None else tuple(signal_names)
        self.signals: List[str] = []
        for name in dict.fromkeys(requested):
            if name not in known:
                logger.warning("Signal '%s' does not exist in '%s'; it will not be traced.", name, simulator.name)
                continue
            self.signals.append(name)
        self._ids: Dict[str, int] = {name: i for i, name in enumerate(self.signals)}
        self.points: List[TracePoint] = []
        self._last: Dict[int, int] = {}
        self._offset = 0
        self._end = 0
        self.attached = False

    def attach(self) -> "WaveformTracer":
        self.simulator.add_listener(self)
        self.attached = True
        return self

    def detach(self):
        self.simulator.remove_listener(self)
        self.attached = False

    def __enter__(self) -> "WaveformTracer":
        return self.attach()

    def __exit__(self, exc_type, exc_value, traceback):
        self.detach()

    # --- Listener callbacks ---

    def on_step(self, simulator: Simulator, step: int) -> None:
        timestamp = self._offset + step
        for signal_id, name in enumerate(self.signals):
            try:
                value = simulator.peek(name)
            except SimulationError as e:
                logger.warning("Dropping trace point of '%s' at step %d: %s", name, step, e)
                continue
            if self._last.get(signal_id) != value:
                self.points.append(TracePoint(timestamp, signal_id, value))
                self._last[signal_id] = value
        self._end = timestamp + 1

    def on_reset(self, simulator: Simulator) -> None:
        self._offset = self._end
        self._last.clear()

    # --- Replay and output ---

    def signal_id(self, name: str) -> int:
        if name not in self._ids:
            raise KeyError(f"Signal '{name}' is not traced.")
        return self._ids[name]

    def values(self, name: str) -> List[Optional[int]]:
        """
        The value of `name` at every recorded timestamp, rebuilt from the
        change points. None before the first readable sample.
        """
        signal_id = self.signal_id(name)
        changes = {p.timestamp: p.value for p in self.points if p.signal_id == signal_id}
        result: List[Optional[int]] = []
        current: Optional[int] = None
        for timestamp in range(self._end):
            current = changes.get(timestamp, current)
            result.append(current)
        return result

    def write_vcd(self, stream: IO[str], timescale: str = DEFAULT_VCD_TIMESCALE):
        """Writes every recorded change to `stream` in Value Change Dump format."""
        with VCDWriter(stream, timescale=timescale, scope_sep=HIERARCHY_SEPARATOR) as writer:
            variables = []
            for name in self.signals:
                *path, leaf = name.split(HIERARCHY_SEPARATOR)
                variables.append(writer.register_var(
                    scope=HIERARCHY_SEPARATOR.join([self.simulator.name] + path),
                    name=leaf,
                    var_type="wire",
                    size=self.simulator.signal_width(name),
                ))
            for point in self.points:
                writer.change(variables[point.signal_id], point.timestamp, point.value)
        logger.info(
            "Wrote %d change(s) of %d signal(s) of '%s' as VCD.",
            len(self.points), len(self.signals), self.simulator.name,
        )
