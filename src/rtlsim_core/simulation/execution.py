# src/rtlsim_core/simulation/execution.py
"""
Provides the public run facades.

- `run_stimulus` drives one simulator (behavioral for an elaborated graph,
  gate-level for a netlist) through a stimulus and returns every output.
- `check_equivalence` drives both simulators with identical stimulus and
  reports the first step at which their outputs disagree.

Both facades refuse designs with ERROR-level validation issues and wrap every
diagnosable failure into a `SimulationRunError` whose message is the full
diagnostic report, chaining the original error.
"""
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from ..constants import DEFAULT_EQUIVALENCE_STEPS, DEFAULT_STIMULUS_SEED
from ..elaboration.graph import ElaboratedGraph
from ..errors import DiagnosableError, SimulationRunError, format_diagnostic_report
from ..synthesis.lowering import lower
from ..synthesis.netlist import Netlist
from ..validation import DesignValidationError, DesignValidator, ValidationIssueLevel
from .base import Simulator
from .behavioral import BehavioralSimulator
from .config import StimulusConfig, StimulusConfigError, parse_stimulus_config
from .gate_level import GateLevelSimulator
from .results import Divergence, EquivalenceResult, SimulationTrace

logger = logging.getLogger(__name__)

Stimulus = Union[StimulusConfig, Mapping[str, Any]]


def create_simulator(design: Union[ElaboratedGraph, Netlist]) -> Simulator:
    """The behavioral simulator for a graph, the gate-level simulator for a netlist."""
    if isinstance(design, ElaboratedGraph):
        return BehavioralSimulator(design)
    if isinstance(design, Netlist):
        return GateLevelSimulator(design)
    raise TypeError(f"Cannot simulate an object of type {type(design).__name__}.")


def run_stimulus(
    design: Union[ElaboratedGraph, Netlist],
    stimulus: Stimulus,
    steps: Optional[int] = None,
    domains: Optional[Iterable[str]] = None,
) -> SimulationTrace:
    """
    Runs a stimulus on a fresh simulator of `design`.

    Args:
        design: An `ElaboratedGraph` (behavioral run) or a `Netlist` (gate-level run).
        stimulus: A `StimulusConfig`, or a raw stimulus document
                  (see `parse_stimulus_config`).
        steps: Overrides the step count of a raw stimulus document.
        domains: Clock domains that tick on each step; all by default.

    Raises:
        SimulationRunError: If validation, stimulus parsing or the run fails.
    """
    try:
        logger.info("--- Starting stimulus run for '%s' ---", design.name)
        if isinstance(design, ElaboratedGraph):
            _validate(design)
        simulator = create_simulator(design)
        config = stimulus if isinstance(stimulus, StimulusConfig) else parse_stimulus_config(stimulus, steps)
        values = config.materialize({n: simulator.input_width(n) for n in simulator.input_names})

        outputs: Dict[str, list] = {name: [] for name in simulator.output_names}
        domain_list = None if domains is None else tuple(domains)
        for step in range(config.steps):
            sampled = simulator.step({name: int(array[step]) for name, array in values.items()}, domain_list)
            for name, value in sampled.items():
                outputs[name].append(value)

        trace = SimulationTrace(
            design=design.name,
            steps=config.steps,
            outputs={
                name: _as_array(samples, simulator.output_width(name))
                for name, samples in outputs.items()
            },
        )
        logger.info("Stimulus run of '%s' finished after %d step(s).", design.name, config.steps)
        return trace

    except DiagnosableError as e:
        logger.error("A diagnosable error occurred during the stimulus run: %s", e)
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except StimulusConfigError as e:
        report = format_diagnostic_report(
            error_type="Invalid Stimulus",
            details=str(e),
            suggestion="Fix the stimulus document: scripted inputs must name input ports and hold unsigned integers.",
            context={'component': design.name}
        )
        raise SimulationRunError(report) from e


def check_equivalence(
    graph: ElaboratedGraph,
    netlist: Optional[Netlist] = None,
    stimulus: Optional[Stimulus] = None,
    steps: int = DEFAULT_EQUIVALENCE_STEPS,
    seed: int = DEFAULT_STIMULUS_SEED,
) -> EquivalenceResult:
    """
    Drives the behavioral simulator of `graph` and the gate-level simulator of
    its netlist with identical inputs and compares every output at every step.

    Args:
        graph: The elaborated design.
        netlist: Its netlist; lowered from `graph` when omitted.
        stimulus: Scripted stimulus; by default every input is randomized.
        steps: Number of steps when the stimulus does not say otherwise.
        seed: Seed of the randomized stimulus.

    Returns:
        An `EquivalenceResult`; call `raise_for_divergence()` to turn a
        divergence into an `EquivalenceDivergenceError`.

    Raises:
        SimulationRunError: If validation, lowering or either simulator fails.
    """
    try:
        logger.info("--- Starting equivalence check for '%s' ---", graph.name)
        _validate(graph)
        if netlist is None:
            netlist = lower(graph)
        behavioral = BehavioralSimulator(graph)
        gate_level = GateLevelSimulator(netlist)

        if stimulus is None:
            config = StimulusConfig(steps=steps, random_ports="all", seed=seed)
        elif isinstance(stimulus, StimulusConfig):
            config = stimulus
        else:
            config = parse_stimulus_config(stimulus)
        values = config.materialize({n: behavioral.input_width(n) for n in behavioral.input_names})

        for step in range(config.steps):
            inputs = {name: int(array[step]) for name, array in values.items()}
            expected = behavioral.step(inputs)
            actual = gate_level.step(inputs)
            for name in behavioral.output_names:
                if expected[name] != actual.get(name):
                    logger.warning("Divergence on '%s' at step %d: %s != %s.", name, step, expected[name], actual.get(name))
                    return EquivalenceResult(
                        design=graph.name,
                        steps_checked=step + 1,
                        divergence=Divergence(
                            step=step,
                            signal=name,
                            behavioral_value=expected[name],
                            gate_level_value=actual.get(name),
                            inputs=tuple(sorted(inputs.items())),
                        ),
                    )
        logger.info("Equivalence check of '%s' passed over %d step(s).", graph.name, config.steps)
        return EquivalenceResult(design=graph.name, steps_checked=config.steps)

    except DiagnosableError as e:
        logger.error("A diagnosable error occurred during the equivalence check: %s", e)
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except StimulusConfigError as e:
        report = format_diagnostic_report(
            error_type="Invalid Stimulus",
            details=str(e),
            suggestion="Fix the stimulus document: scripted inputs must name input ports and hold unsigned integers.",
            context={'component': graph.name}
        )
        raise SimulationRunError(report) from e


def _validate(graph: ElaboratedGraph):
    issues = DesignValidator(graph).validate()
    if any(issue.level == ValidationIssueLevel.ERROR for issue in issues):
        raise DesignValidationError(issues)


def _as_array(samples: Sequence[int], width: int) -> np.ndarray:
    return np.array(samples, dtype=np.int64 if width <= 63 else object)
