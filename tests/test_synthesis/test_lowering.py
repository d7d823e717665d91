# tests/test_synthesis/test_lowering.py
"""
Tests for the lowering pass: gate counts of the standard expansions, register
mapping, determinism, caching and the failure modes.
"""
import pytest

from rtlsim_core import DesignCache
from rtlsim_core.components import PortDirection, SignalKind
from rtlsim_core.elaboration import ElaboratedGraph, Elaborator, Node, NodeKind, Port, Signal
from rtlsim_core.synthesis import (
    CyclicDesignError, GateKind, Lowerer, Netlist, NondeterministicLoweringError,
    UnsupportedOperationError, lower,
)


def _lowered(elaborator, name, bindings=None) -> Netlist:
    return lower(elaborator.elaborate(name, bindings))


class TestExpansions:
    def test_adder_is_a_ripple_chain(self, elaborator):
        netlist = _lowered(elaborator, "adder")
        counts = netlist.gate_counts
        assert counts[GateKind.XOR] == 16
        assert counts[GateKind.AND] == 16
        assert counts[GateKind.OR] == 8
        assert counts[GateKind.CONST] == 1
        assert len(netlist.gates) == 41
        assert netlist.registers == ()

    @pytest.mark.parametrize("width", [1, 4, 13])
    def test_adder_gate_count_scales_with_width(self, elaborator, width):
        netlist = _lowered(elaborator, "adder", {"WIDTH": width})
        assert len(netlist.gates) == 5 * width + 1

    def test_and_gate(self, elaborator):
        netlist = _lowered(elaborator, "and2")
        (gate,) = netlist.gates
        assert gate.kind is GateKind.AND
        assert gate.inputs == (netlist.port("a").nets[0], netlist.port("b").nets[0])
        assert netlist.port("y").nets == (gate.output,)

    def test_register_per_bit(self, elaborator):
        netlist = _lowered(elaborator, "counter")
        assert len(netlist.registers) == 4
        clock = netlist.port("clk").nets[0]
        reset = netlist.port("rst").nets[0]
        assert {r.clock for r in netlist.registers} == {clock}
        assert {r.reset for r in netlist.registers} == {reset}
        assert [r.output for r in netlist.registers] == list(netlist.port("count").nets)
        assert netlist.clock_nets == (clock,)

    def test_flip_flop_needs_no_gates(self, elaborator):
        netlist = _lowered(elaborator, "dff_sync_reset")
        assert netlist.gates == ()
        (register,) = netlist.registers
        assert register.data == netlist.port("d").nets[0]
        assert register.reset == netlist.port("rst").nets[0]
        assert register.output == netlist.port("q").nets[0]
        assert register.reset_value == 0

    def test_constant_shift_is_rewiring(self, make_registry):
        registry = make_registry("""
components:
  - name: shl2
    ports: [{name: a, direction: in, width: 4}, {name: y, direction: out, width: 4}]
    behavior: ["y = a << 2"]
""")
        netlist = lower(Elaborator(registry).elaborate("shl2"))
        a = netlist.port("a").nets
        y = netlist.port("y").nets
        assert y[2:] == a[:2]
        # Only the constants of the shift amount and the zero fill remain.
        assert {g.kind for g in netlist.gates} == {GateKind.CONST}
        zero = next(g.output for g in netlist.gates if g.value == 0)
        assert y[:2] == (zero, zero)

    def test_only_primitives_are_emitted(self, elaborator):
        netlist = _lowered(elaborator, "datapath")
        assert {g.kind for g in netlist.gates} <= set(GateKind)
        assert netlist.check_integrity() is netlist
        assert netlist.symbol("shl") == netlist.port("shl").nets

    def test_hierarchy_keeps_internal_symbols(self, elaborator):
        netlist = _lowered(elaborator, "adder3")
        assert netlist.symbol("partial") is not None
        assert netlist.symbol("u0.sum") == netlist.symbol("partial")


class TestDeterminism:
    def test_repeated_lowering_is_identical(self, elaborator):
        graph = elaborator.elaborate("alu")
        assert lower(graph) == lower(graph)
        assert lower(graph, verify_determinism=True).structurally_equal(lower(graph))

    def test_differing_lowerings_are_reported(self, elaborator, monkeypatch):
        graph = elaborator.elaborate("alu")
        results = iter([lower(graph), lower(elaborator.elaborate("alu", {"WIDTH": 2}))])
        monkeypatch.setattr(Lowerer, "run", lambda self: next(results))

        with pytest.raises(NondeterministicLoweringError) as excinfo:
            lower(graph, verify_determinism=True)
        assert excinfo.value.first_difference
        assert "Nondeterministic Lowering" in excinfo.value.get_diagnostic_report()

    def test_single_lowering_skips_the_comparison(self, elaborator, monkeypatch):
        graph = elaborator.elaborate("alu")
        expected = lower(graph)
        calls = []

        def run(self):
            calls.append(self)
            return expected

        monkeypatch.setattr(Lowerer, "run", run)
        assert lower(graph) is expected
        assert len(calls) == 1

    def test_cache_returns_the_same_netlist(self, elaborator):
        cache = DesignCache()
        graph = elaborator.elaborate("adder")
        first = lower(graph, cache=cache)
        second = lower(graph, cache=cache)
        assert second is first
        assert cache.get_stats()["run"] == {"hits": 1, "misses": 1}


class TestFailures:
    def test_cyclic_graph_cannot_be_lowered(self, make_registry):
        registry = make_registry("""
components:
  - name: loop
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    signals: [{name: p}]
    behavior:
      - "p = p ^ a"
      - "y = p"
""")
        graph = Elaborator(registry, check_acyclic=False).elaborate("loop")
        with pytest.raises(CyclicDesignError):
            lower(graph)

    def test_node_without_rule(self):
        graph = ElaboratedGraph(
            name="broken",
            parameters=(),
            ports=(Port("a", PortDirection.IN, 1, 0), Port("y", PortDirection.OUT, 1, 1)),
            signals=(Signal(0, "a", 1, SignalKind.INPUT), Signal(1, "y", 1, SignalKind.OUTPUT)),
            nodes=(
                Node(0, NodeKind.SIGNAL, 1, signal=0),
                Node(1, NodeKind.UNARY, 1, operands=(0,), op=None),
            ),
            drivers=(None, 1),
            register_writes=(),
        )
        with pytest.raises(UnsupportedOperationError) as excinfo:
            lower(graph)
        assert excinfo.value.operation == "UNARY"
        assert "Unsupported Operation" in excinfo.value.get_diagnostic_report()
