# tests/test_synthesis/test_netlist.py

import pytest

from rtlsim_core.components import PortDirection
from rtlsim_core.synthesis import Gate, GateKind, Netlist, NetlistIntegrityError, NetlistPort, Register

IN, OUT = PortDirection.IN, PortDirection.OUT


def _and_netlist(a=5, b=9, y=2, net_count=10) -> Netlist:
    return Netlist(
        name="and2",
        ports=(NetlistPort("a", IN, (a,)), NetlistPort("b", IN, (b,)), NetlistPort("y", OUT, (y,))),
        gates=(Gate(0, GateKind.AND, (a, b), y),),
        registers=(),
        net_count=net_count,
    )


class TestCanonicalForm:
    def test_nets_are_renumbered_by_first_appearance(self):
        canonical = _and_netlist().canonical()
        assert [p.nets for p in canonical.ports] == [(0,), (1,), (2,)]
        assert canonical.gates == (Gate(0, GateKind.AND, (0, 1), 2),)
        assert canonical.net_count == 3

    def test_canonical_is_idempotent(self):
        canonical = _and_netlist().canonical()
        assert canonical.canonical() == canonical

    def test_structural_equality_ignores_numbering(self):
        assert _and_netlist().structurally_equal(_and_netlist(a=1, b=7, y=3, net_count=8))
        assert _and_netlist().first_difference(_and_netlist(a=0, b=1, y=4)) is None

    def test_first_difference(self):
        other = Netlist(
            name="and2",
            ports=_and_netlist().ports,
            gates=(Gate(0, GateKind.OR, (5, 9), 2),),
            registers=(),
            net_count=10,
        )
        assert not _and_netlist().structurally_equal(other)
        assert _and_netlist().first_difference(other).startswith("gate")

    def test_registers_are_grouped_by_clock(self):
        netlist = Netlist(
            name="two_domains",
            ports=(
                NetlistPort("clk_a", IN, (0,)),
                NetlistPort("clk_b", IN, (1,)),
                NetlistPort("d", IN, (2,)),
                NetlistPort("q", OUT, (3, 4, 5)),
            ),
            gates=(),
            registers=(
                Register(0, data=2, clock=1, reset=None, output=3),
                Register(1, data=2, clock=0, reset=None, output=4),
                Register(2, data=2, clock=1, reset=None, output=5),
            ),
            net_count=6,
        )
        canonical = netlist.canonical()
        assert [r.clock for r in canonical.registers] == [0, 1, 1]
        assert [r.id for r in canonical.registers] == [0, 1, 2]
        assert canonical.clock_nets == (0, 1)
        assert canonical.clock_name(1) == "clk_b"

    def test_summary_and_lookups(self):
        netlist = _and_netlist()
        assert "and=1" in netlist.summary()
        assert netlist.symbol("y") == (2,)
        assert netlist.symbol("nope") is None
        assert [p.name for p in netlist.inputs] == ["a", "b"]
        assert netlist.port("y").width == 1


class TestIntegrity:
    def test_valid_netlist_passes(self):
        netlist = _and_netlist()
        assert netlist.check_integrity() is netlist

    def test_wrong_arity(self):
        netlist = Netlist("bad", (NetlistPort("a", IN, (0,)),), (Gate(0, GateKind.AND, (0,), 1),), (), 2)
        with pytest.raises(NetlistIntegrityError):
            netlist.check_integrity()

    def test_constant_value_must_be_a_bit(self):
        netlist = Netlist("bad", (), (Gate(0, GateKind.CONST, (), 0, 2),), (), 1)
        with pytest.raises(NetlistIntegrityError):
            netlist.check_integrity()

    def test_net_out_of_range(self):
        with pytest.raises(NetlistIntegrityError) as excinfo:
            _and_netlist(net_count=6).check_integrity()
        assert excinfo.value.nets == (9,)

    def test_two_drivers(self):
        netlist = Netlist(
            "bad",
            (NetlistPort("a", IN, (0,)),),
            (Gate(0, GateKind.NOT, (0,), 1), Gate(1, GateKind.NOT, (0,), 1)),
            (),
            2,
        )
        with pytest.raises(NetlistIntegrityError) as excinfo:
            netlist.check_integrity()
        assert excinfo.value.nets == (1,)

    def test_register_clock_must_be_an_input(self):
        netlist = Netlist(
            "bad",
            (NetlistPort("d", IN, (0,)),),
            (Gate(0, GateKind.NOT, (0,), 1),),
            (Register(0, data=0, clock=1, reset=None, output=2),),
            3,
        )
        with pytest.raises(NetlistIntegrityError):
            netlist.check_integrity()

    def test_gate_loop(self):
        netlist = Netlist(
            "bad",
            (),
            (Gate(0, GateKind.NOT, (1,), 0), Gate(1, GateKind.NOT, (0,), 1)),
            (),
            2,
        )
        with pytest.raises(NetlistIntegrityError) as excinfo:
            netlist.check_integrity()
        assert "loop" in excinfo.value.details
