# tests/test_elaboration/test_elaborator.py
"""
Tests for the Elaborator: parameter-driven widths, hierarchy flattening,
width checking, connection checking, clock domains and cycle rejection.
"""
import pytest

from rtlsim_core.components import PortDirection, SignalKind
from rtlsim_core.elaboration import (
    ClockDomainError,
    CombinationalCycleError,
    Elaborator,
    InvalidConnectionError,
    InvalidWidthError,
    MultipleDriversError,
    NodeKind,
    UnconnectedPortError,
    UnknownPortError,
    WidthMismatchError,
    literal_width,
)
from rtlsim_core.errors import ElaborationError
from rtlsim_core.parameters import UnknownParameterError


@pytest.mark.parametrize("value, width", [(0, 1), (1, 1), (2, 2), (255, 8), (256, 9), (-1, 1), (-2, 2), (-129, 9)])
def test_literal_width(value, width):
    assert literal_width(value) == width


class TestFlatGraph:
    def test_adder_widths_follow_parameters(self, elaborator):
        graph = elaborator.elaborate("adder")
        assert graph.parameters == (("WIDTH", 8),)
        assert [(p.name, p.direction, p.width) for p in graph.ports] == [
            ("a", PortDirection.IN, 8), ("b", PortDirection.IN, 8), ("sum", PortDirection.OUT, 8),
        ]
        driver = graph.driver(graph.signal("sum").index)
        assert driver.kind is NodeKind.BINARY
        assert driver.width == 8
        assert graph.driver(graph.signal("a").index) is None

    def test_bindings_override_widths(self, elaborator):
        graph = elaborator.elaborate("adder", {"WIDTH": 16})
        assert graph.port("sum").width == 16

    def test_elaboration_is_deterministic(self, registry):
        first = Elaborator(registry).elaborate("alu", {"WIDTH": 6})
        second = Elaborator(registry).elaborate("alu", {"WIDTH": 6})
        assert first == second
        assert first.fingerprint == second.fingerprint

    def test_comparison_is_one_bit(self, elaborator):
        graph = elaborator.elaborate("alu")
        assert graph.port("zero").width == 1
        assert graph.driver(graph.signal("zero").index).op.value == "=="

    def test_hierarchy_is_flattened(self, elaborator):
        graph = elaborator.elaborate("adder3", {"W": 6})
        names = graph.signal_names
        assert {"a", "b", "c", "total", "partial", "u0.a", "u0.b", "u0.sum", "u1.sum"} <= set(names)
        assert graph.signal("u0.sum").kind is SignalKind.INTERNAL
        assert graph.signal("u0.sum").width == 6
        assert graph.signal("u1.sum").path == "adder3.u1"
        # Output connections drive the parent signal from the child's port.
        partial = graph.driver(graph.signal("partial").index)
        assert partial.kind is NodeKind.SIGNAL
        assert graph.signals[partial.signal].name == "u0.sum"

    def test_registers_and_clock_domains(self, elaborator):
        graph = elaborator.elaborate("counter")
        assert graph.clock_domains == ("clk",)
        (write_index,) = graph.register_writes
        write = graph.nodes[write_index]
        assert write.kind is NodeKind.REG_WRITE
        assert write.has_reset
        assert write.clock == graph.signal("clk").index
        assert graph.driver(graph.signal("count").index).kind is NodeKind.REG_READ
        assert graph.port("rst").default == 0

    def test_width_expressions_evaluate_against_parameters(self, make_registry):
        registry = make_registry("""
components:
  - name: halves
    parameters: {W: 8, H: "W // 2"}
    ports:
      - {name: a, direction: in, width: W}
      - {name: lo, direction: out, width: H}
      - {name: hi, direction: out, width: H}
      - {name: wide, direction: out, width: "W * 2"}
    behavior:
      - "lo = a[H - 1:0]"
      - "hi = a[W - 1:H]"
      - "wide = zext(a, W * 2)"
""")
        graph = Elaborator(registry).elaborate("halves", {"W": 6})
        assert graph.port("lo").width == 3
        assert graph.port("wide").width == 12
        assert graph.driver(graph.signal("hi").index).low == 3


class TestElaborationErrors:
    def _registry(self, make_registry, behavior, ports=None, extra=""):
        ports = ports or """
      - {name: a, direction: in, width: 4}
      - {name: b, direction: in, width: 8}
      - {name: y, direction: out, width: 4}"""
        return make_registry(f"""
components:
  - name: top
    ports:{ports}
    behavior:
{behavior}
{extra}""")

    def test_width_mismatch(self, make_registry):
        registry = self._registry(make_registry, '      - "y = a + b"')
        with pytest.raises(WidthMismatchError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert (excinfo.value.expected, excinfo.value.actual) == (4, 8)
        assert excinfo.value.path == "top"

    def test_assignment_width_mismatch(self, make_registry):
        registry = self._registry(make_registry, '      - "y = b"')
        with pytest.raises(WidthMismatchError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.signal == "y"

    def test_literal_too_wide_for_context(self, make_registry):
        registry = self._registry(make_registry, '      - "y = a + 20"')
        with pytest.raises(WidthMismatchError):
            Elaborator(registry).elaborate("top")

    def test_slice_out_of_range(self, make_registry):
        registry = self._registry(make_registry, '      - "y = b[9:6]"')
        with pytest.raises(InvalidWidthError):
            Elaborator(registry).elaborate("top")

    def test_zero_width(self, make_registry):
        registry = make_registry("""
components:
  - name: top
    parameters: {W: 0}
    ports: [{name: a, direction: in, width: W}]
""")
        with pytest.raises(InvalidWidthError):
            Elaborator(registry).elaborate("top")

    def test_unsized_literal_in_concat(self, make_registry):
        registry = self._registry(make_registry, '      - "y = cat(a[1:0], 1, a[0])"')
        with pytest.raises(WidthMismatchError):
            Elaborator(registry).elaborate("top")

    def test_unknown_parameter_binding(self, elaborator):
        with pytest.raises(UnknownParameterError) as excinfo:
            elaborator.elaborate("adder", {"DEPTH": 2})
        assert excinfo.value.path == "adder"

    def test_errors_carry_instance_path(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    parameters: {W: 4}
    ports:
      - {name: a, direction: in, width: W}
      - {name: y, direction: out, width: 4}
    behavior: ["y = a"]
  - name: top
    ports:
      - {name: a, direction: in, width: 8}
      - {name: y, direction: out, width: 4}
    instances:
      - {id: u_leaf, type: leaf, parameters: {W: 8}, connections: {a: a, y: y}}
""")
        with pytest.raises(ElaborationError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.path == "top.u_leaf"

    def test_unknown_port(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    behavior: ["y = a"]
  - name: top
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    instances:
      - {id: u0, type: leaf, connections: {a: a, y: y, z: a}}
""")
        with pytest.raises(UnknownPortError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.port == "z"
        assert excinfo.value.available == ("a", "y")

    def test_unconnected_input_without_default(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    ports: [{name: a, direction: in}, {name: b, direction: in}, {name: y, direction: out}]
    behavior: ["y = a & b"]
  - name: top
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    instances:
      - {id: u0, type: leaf, connections: {a: a, y: y}}
""")
        with pytest.raises(UnconnectedPortError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.port == "b"

    def test_unconnected_input_uses_default(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    ports: [{name: a, direction: in}, {name: b, direction: in, default: 1}, {name: y, direction: out}]
    behavior: ["y = a & b"]
  - name: top
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    instances:
      - {id: u0, type: leaf, connections: {a: a, y: y}}
""")
        graph = Elaborator(registry).elaborate("top")
        driver = graph.driver(graph.signal("u0.b").index)
        assert driver.kind is NodeKind.CONST and driver.value == 1

    def test_output_connected_to_expression(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    behavior: ["y = a"]
  - name: top
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    instances:
      - {id: u0, type: leaf, connections: {a: a, y: "~y"}}
""")
        with pytest.raises(InvalidConnectionError):
            Elaborator(registry).elaborate("top")

    def test_two_drivers(self, make_registry):
        registry = make_registry("""
components:
  - name: leaf
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    behavior: ["y = a"]
  - name: top
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    behavior: ["y = a"]
    instances:
      - {id: u0, type: leaf, connections: {a: a, y: y}}
""")
        with pytest.raises(MultipleDriversError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.signal == "y"

    def test_derived_clock(self, make_registry):
        registry = make_registry("""
components:
  - name: top
    ports:
      - {name: clk, direction: in}
      - {name: en, direction: in}
      - {name: d, direction: in}
      - {name: q, direction: out}
    signals: [{name: gated}]
    behavior:
      - "gated = clk & en"
      - clocked: {clock: gated, body: ["q = d"]}
""")
        with pytest.raises(ClockDomainError) as excinfo:
            Elaborator(registry).elaborate("top")
        assert excinfo.value.signal == "q"

    def test_clock_alias_resolves_to_top_level_input(self, make_registry):
        registry = make_registry("""
components:
  - name: dff
    ports: [{name: clk, direction: in}, {name: d, direction: in}, {name: q, direction: out}]
    behavior:
      - clocked: {body: ["q = d"]}
  - name: top
    ports: [{name: sysclk, direction: in}, {name: d, direction: in}, {name: q, direction: out}]
    instances:
      - {id: r0, type: dff, connections: {clk: sysclk, d: d, q: q}}
""")
        graph = Elaborator(registry).elaborate("top")
        assert graph.clock_domains == ("sysclk",)
        write = graph.nodes[graph.register_writes[0]]
        assert write.clock == graph.signal("sysclk").index


class TestCombinationalCycles:
    CYCLIC = """
components:
  - name: loop
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    signals: [{name: p}, {name: q}]
    behavior:
      - "p = q ^ a"
      - "q = p"
      - "y = q"
"""

    def test_cycle_is_rejected(self, make_registry):
        registry = make_registry(self.CYCLIC)
        with pytest.raises(CombinationalCycleError) as excinfo:
            Elaborator(registry).elaborate("loop")
        assert set(excinfo.value.cycle) >= {"p", "q"}

    def test_cycle_check_can_be_disabled(self, make_registry):
        registry = make_registry(self.CYCLIC)
        graph = Elaborator(registry, check_acyclic=False).elaborate("loop")
        assert graph.has_signal("p")

    def test_register_breaks_the_cycle(self, make_registry):
        registry = make_registry("""
components:
  - name: toggle
    ports: [{name: clk, direction: in}, {name: q, direction: out}]
    behavior:
      - clocked: {body: ["q = ~q"]}
""")
        graph = Elaborator(registry).elaborate("toggle")
        assert len(graph.register_writes) == 1
