# tests/test_simulation/test_equivalence.py

import pytest

from rtlsim_core.components import PortDirection
from rtlsim_core.elaboration import Elaborator
from rtlsim_core.errors import SimulationRunError
from rtlsim_core.simulation import EquivalenceDivergenceError, StimulusConfig, check_equivalence
from rtlsim_core.synthesis import Gate, GateKind, Netlist, NetlistPort, lower


def _or_netlist() -> Netlist:
    return Netlist(
        name="and2",
        ports=(
            NetlistPort("a", PortDirection.IN, (0,)),
            NetlistPort("b", PortDirection.IN, (1,)),
            NetlistPort("y", PortDirection.OUT, (2,)),
        ),
        gates=(Gate(0, GateKind.OR, (0, 1), 2),),
        registers=(),
        net_count=3,
    )


class TestAgreement:
    @pytest.mark.parametrize("name, bindings", [
        ("and2", None),
        ("adder", None),
        ("adder", {"WIDTH": 1}),
        ("adder", {"WIDTH": 70}),
        ("dff_sync_reset", None),
        ("counter", {"WIDTH": 3}),
        ("alu", None),
        ("alu", {"WIDTH": 8}),
        ("datapath", None),
        ("adder3", {"W": 6}),
        ("ram", None),
        ("ram", {"WIDTH": 2}),
    ])
    def test_engines_agree_on_random_stimulus(self, elaborator, name, bindings):
        result = check_equivalence(elaborator.elaborate(name, bindings), steps=48)
        assert result.equivalent, result.divergence
        assert result.steps_checked == 48
        assert result.raise_for_divergence() is result

    def test_explicit_netlist_and_scripted_stimulus(self, elaborator):
        graph = elaborator.elaborate("counter")
        result = check_equivalence(graph, lower(graph), stimulus={"steps": 40, "inputs": {"rst": [0] * 17 + [1]}})
        assert result.equivalent
        assert result.steps_checked == 40

    def test_seed_makes_runs_repeatable(self, elaborator):
        graph = elaborator.elaborate("alu")
        first = check_equivalence(graph, stimulus=StimulusConfig(steps=10, random_ports="all", seed=3))
        second = check_equivalence(graph, stimulus=StimulusConfig(steps=10, random_ports="all", seed=3))
        assert first == second


class TestDivergence:
    def test_first_divergence_is_reported(self, elaborator):
        graph = elaborator.elaborate("and2")
        result = check_equivalence(graph, _or_netlist(), stimulus={"inputs": {"a": [1, 1, 0], "b": [1, 0, 0]}})
        assert not result.equivalent
        assert result.steps_checked == 2
        divergence = result.divergence
        assert divergence.step == 1
        assert divergence.signal == "y"
        assert (divergence.behavioral_value, divergence.gate_level_value) == (0, 1)
        assert divergence.inputs == (("a", 1), ("b", 0))

    def test_raise_for_divergence(self, elaborator):
        graph = elaborator.elaborate("and2")
        result = check_equivalence(graph, _or_netlist(), stimulus={"inputs": {"a": [1], "b": [0]}})
        with pytest.raises(EquivalenceDivergenceError) as excinfo:
            result.raise_for_divergence()
        error = excinfo.value
        assert error.component == "and2"
        assert error.step == 0
        assert "Divergence" in error.get_diagnostic_report()


class TestRefusedDesigns:
    def test_undriven_output_fails_validation(self, make_registry):
        registry = make_registry("""
components:
  - name: open_output
    ports:
      - {name: a, direction: in}
      - {name: y, direction: out}
      - {name: z, direction: out}
    behavior: ["y = a"]
""")
        graph = Elaborator(registry).elaborate("open_output")
        with pytest.raises(SimulationRunError) as excinfo:
            check_equivalence(graph)
        assert "SIG_DRV_OUTPUT" in str(excinfo.value)
        assert "Design Validation Error" in str(excinfo.value)

    def test_stimulus_for_unknown_port(self, elaborator):
        with pytest.raises(SimulationRunError) as excinfo:
            check_equivalence(elaborator.elaborate("and2"), stimulus={"inputs": {"c": [1]}})
        assert "Invalid Stimulus" in str(excinfo.value)
