# tests/test_simulation/test_run_stimulus.py

import numpy as np
import pytest

from rtlsim_core.errors import SimulationRunError
from rtlsim_core.simulation import (
    BehavioralSimulator,
    GateLevelSimulator,
    StimulusConfig,
    create_simulator,
    run_stimulus,
)
from rtlsim_core.synthesis import lower


@pytest.fixture(params=["behavioral", "gate_level"])
def design_of(request, elaborator):
    """Returns the elaborated graph or its netlist, so each test runs on both engines."""
    def _design(name, bindings=None):
        graph = elaborator.elaborate(name, bindings)
        return graph if request.param == "behavioral" else lower(graph)
    return _design


def test_create_simulator_dispatches_on_design_type(elaborator):
    graph = elaborator.elaborate("and2")
    assert isinstance(create_simulator(graph), BehavioralSimulator)
    assert isinstance(create_simulator(lower(graph)), GateLevelSimulator)
    with pytest.raises(TypeError):
        create_simulator("and2")


def test_counter_trace(design_of):
    trace = run_stimulus(design_of("counter"), {"steps": 20})
    assert trace.design == "counter"
    assert trace.steps == 20
    assert trace.output("count").tolist() == list(range(16)) + [0, 1, 2, 3]
    assert trace.output("count").dtype == np.int64


def test_scripted_flip_flop(design_of):
    trace = run_stimulus(design_of("dff_sync_reset"), {"inputs": {"rst": [1, 0], "d": [0, 1, 1, 0, 1]}})
    assert trace.steps == 5
    assert trace.output("q").tolist() == [0, 0, 1, 1, 0]
    assert trace.as_rows()[2] == {"q": 1}


def test_step_override_and_domains(design_of):
    trace = run_stimulus(design_of("counter"), {"steps": 100}, steps=4, domains=[])
    assert trace.output("count").tolist() == [0, 0, 0, 0]


def test_stimulus_config_object(design_of):
    config = StimulusConfig(steps=6, random_ports="all", seed=4)
    trace = run_stimulus(design_of("adder", {"WIDTH": 70}), config)
    values = trace.output("sum")
    assert values.dtype == object
    assert all(0 <= int(v) < (1 << 70) for v in values)


def test_invalid_stimulus_is_wrapped(design_of):
    with pytest.raises(SimulationRunError) as excinfo:
        run_stimulus(design_of("adder"), {"steps": 2, "inputs": {"carry": 1}})
    assert "Invalid Stimulus" in str(excinfo.value)
    assert "carry" in str(excinfo.value)


def test_simulation_failure_is_wrapped(design_of):
    with pytest.raises(SimulationRunError) as excinfo:
        run_stimulus(design_of("adder"), {"steps": 2, "inputs": {"a": 1}})
    assert "Read of an Undriven Signal" in str(excinfo.value)
    assert excinfo.value.__cause__ is not None


def test_empty_stimulus(elaborator):
    with pytest.raises(SimulationRunError):
        run_stimulus(elaborator.elaborate("and2"), {})
