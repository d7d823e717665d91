# tests/test_behavior/test_behavior_builder.py
"""
Tests for the BehaviorBuilder: imperative statements are reified into Select
nodes, registers into RegisterWrite nodes, and incomplete or conflicting
assignments are rejected when the component is declared.
"""
import pytest

from rtlsim_core.behavior import (
    Assign, BehaviorBuilder, BinaryOp, BinaryOperator, Case, CaseBranch, Clocked, Const,
    ExpressionSyntaxError, If, InferredLatchError, InvalidAssignmentTargetError, MemoryWrite,
    MultipleDriverError, RegisterRead, RegisterWrite, Select, SignalRef, UnaryOp, UnaryOperator,
    UnknownNameError,
)

A, B, SEL = SignalRef("a"), SignalRef("b"), SignalRef("sel")


def _truth(expr):
    return UnaryOp(UnaryOperator.REDUCE_OR, expr)


@pytest.fixture
def builder():
    return BehaviorBuilder(
        component="unit",
        inputs=["a", "b", "sel", "clk", "rst"],
        assignable={"y": None, "q": None, "z": 0},
        parameters=["W"],
        initial_values={"q": 1},
    )


class TestCombinational:
    def test_plain_assignment(self, builder):
        graph = builder.build([Assign("y", "a & b")])
        assert graph.drivers == (("y", BinaryOp(BinaryOperator.AND, A, B)),)
        assert graph.registers == ()
        assert graph.targets == ("y",)

    def test_last_assignment_wins(self, builder):
        graph = builder.build([Assign("y", "a"), Assign("y", "b")])
        assert graph.drivers == (("y", B),)

    def test_if_else_becomes_select(self, builder):
        graph = builder.build([If("sel", then=(Assign("y", "a"),), otherwise=(Assign("y", "b"),))])
        assert graph.drivers == (("y", Select(_truth(SEL), (B, A))),)

    def test_default_assignment_before_if(self, builder):
        graph = builder.build([Assign("y", "b"), If("sel", then=(Assign("y", "a"),))])
        assert graph.drivers == (("y", Select(_truth(SEL), (B, A))),)

    def test_declared_default_fills_missing_branch(self, builder):
        graph = builder.build([If("sel", then=(Assign("z", "a"),))])
        assert graph.drivers == (("z", Select(_truth(SEL), (Const(0), A))),)

    def test_guarded_assignment(self, builder):
        graph = builder.build([Assign("y", "b"), Assign("y", "a", when="sel")])
        assert graph.drivers == (("y", Select(_truth(SEL), (B, A))),)

    def test_case_is_a_priority_chain(self, builder):
        statement = Case(
            selector="sel",
            branches=(
                CaseBranch(matches=(0,), body=(Assign("y", "a"),)),
                CaseBranch(matches=(1, 2), body=(Assign("y", "b"),)),
            ),
            default=(Assign("y", 0),),
        )
        graph = builder.build([statement])
        second = BinaryOp(
            BinaryOperator.OR,
            BinaryOp(BinaryOperator.EQ, SEL, Const(1)),
            BinaryOp(BinaryOperator.EQ, SEL, Const(2)),
        )
        inner = Select(_truth(second), (Const(0), B))
        expected = Select(BinaryOp(BinaryOperator.EQ, SEL, Const(0)), (inner, A))
        assert graph.drivers == (("y", expected),)

    def test_parameters_are_readable(self, builder):
        graph = builder.build([Assign("y", "a + W")])
        assert graph.drivers == (("y", BinaryOp(BinaryOperator.ADD, A, SignalRef("W"))),)

    def test_missing_branch_without_default_infers_latch(self, builder):
        with pytest.raises(InferredLatchError) as excinfo:
            builder.build([If("sel", then=(Assign("y", "a"),))])
        assert excinfo.value.signal == "y"
        assert "Inferred Latch" in excinfo.value.get_diagnostic_report()


class TestRegisters:
    def test_clocked_block_with_reset(self, builder):
        graph = builder.build([
            Clocked("clk", body=(Assign("q", "a"),), reset="rst", reset_values=(("q", 0),)),
        ])
        assert graph.drivers == ()
        assert graph.registers == (RegisterWrite("q", A, "clk", _truth(SignalRef("rst")), 0),)

    def test_reset_value_defaults_to_initial_value(self, builder):
        graph = builder.build([Clocked("clk", body=(Assign("q", "a"),), reset="rst")])
        assert graph.registers[0].reset_value == 1

    def test_register_holds_value_on_unassigned_path(self, builder):
        graph = builder.build([Clocked("clk", body=(If("sel", then=(Assign("q", "a"),)),))])
        (write,) = graph.registers
        assert write.data == Select(_truth(SEL), (RegisterRead("q"), A))
        assert write.reset is None

    def test_clock_guarded_assignment(self, builder):
        graph = builder.build([Assign("q", "b", clock="clk")])
        assert graph.registers == (RegisterWrite("q", B, "clk", None, 1),)

    def test_combinational_and_registered_driver_conflict(self, builder):
        with pytest.raises(MultipleDriverError):
            builder.build([Assign("q", "a"), Clocked("clk", body=(Assign("q", "b"),))])

    def test_two_clock_domains_conflict(self, builder):
        with pytest.raises(MultipleDriverError) as excinfo:
            builder.build([Assign("q", "a", clock="clk"), Assign("q", "b", clock="sel")])
        assert excinfo.value.signal == "q"


class TestNames:
    def test_assigning_an_input(self, builder):
        with pytest.raises(InvalidAssignmentTargetError) as excinfo:
            builder.build([Assign("a", "b")])
        assert "input port or parameter" in excinfo.value.details
        assert excinfo.value.available == ("q", "y", "z")

    def test_assigning_an_undeclared_name(self, builder):
        with pytest.raises(InvalidAssignmentTargetError) as excinfo:
            builder.build([Assign("nope", "b")])
        assert "not declared" in excinfo.value.details

    def test_reading_an_unknown_name(self, builder):
        with pytest.raises(UnknownNameError) as excinfo:
            builder.build([Assign("y", "a + ghost")])
        assert excinfo.value.name == "ghost"
        assert excinfo.value.statement == "a + ghost"

    def test_unknown_clock(self, builder):
        with pytest.raises(UnknownNameError) as excinfo:
            builder.build([Clocked("clk2", body=(Assign("q", "a"),))])
        assert excinfo.value.name == "clk2"


@pytest.fixture
def memory_builder():
    return BehaviorBuilder(
        component="unit",
        inputs=["a", "addr", "we", "clk", "rst"],
        assignable={"y": None, "q": None, "mem_0": None, "mem_1": None, "mem_2": None},
        initial_values={"mem_1": 5},
        memories={"mem": 3},
    )


ADDR = SignalRef("addr")


def _hit(index, enable=None):
    hit = BinaryOp(BinaryOperator.EQ, ADDR, Const(index))
    return hit if enable is None else BinaryOp(BinaryOperator.AND, enable, hit)


class TestMemories:
    def test_write_updates_every_word_under_an_address_match(self, memory_builder):
        graph = memory_builder.build([MemoryWrite("mem", "addr", "a", enable="we", clock="clk")])
        we = _truth(SignalRef("we"))
        assert graph.drivers == ()
        assert graph.registers == tuple(
            RegisterWrite(f"mem_{i}", Select(_hit(i, we), (RegisterRead(f"mem_{i}"), A)), "clk", None, 0)
            for i in range(3)
        )

    def test_words_ignore_the_reset_of_the_enclosing_block(self, memory_builder):
        graph = memory_builder.build([
            Clocked("clk", reset="rst", body=(Assign("q", "a"), MemoryWrite("mem", "addr", "a"))),
        ])
        resets = {write.target: write.reset for write in graph.registers}
        assert resets["q"] == _truth(SignalRef("rst"))
        assert [resets[f"mem_{i}"] for i in range(3)] == [None, None, None]
        assert graph.registers[1].data == Select(_hit(0), (RegisterRead("mem_0"), A))

    def test_read_selects_a_word_and_reads_zero_past_the_end(self, memory_builder):
        graph = memory_builder.build([Assign("y", "mem[addr]")])
        words = (SignalRef("mem_0"), SignalRef("mem_1"), SignalRef("mem_2"), Const(0))
        expected = Select(BinaryOp(BinaryOperator.SHR, ADDR, Const(2)), (Select(ADDR, words), Const(0)))
        assert graph.drivers[0] == ("y", expected)

    def test_unwritten_memory_is_a_rom(self, memory_builder):
        graph = memory_builder.build([Assign("y", "mem[addr]")])
        assert graph.drivers[1:] == (("mem_0", Const(0)), ("mem_1", Const(5)), ("mem_2", Const(0)))
        assert graph.registers == ()

    @pytest.mark.parametrize("source, expected", [
        ("mem[1]", SignalRef("mem_1")),
        ("mem[3]", Const(0)),
    ])
    def test_constant_address(self, memory_builder, source, expected):
        graph = memory_builder.build([Assign("y", source)])
        assert graph.drivers[0] == ("y", expected)

    def test_sync_read_is_a_register(self, memory_builder):
        graph = memory_builder.build([Clocked("clk", body=(Assign("q", "mem[0]"),))])
        assert graph.registers == (RegisterWrite("q", SignalRef("mem_0"), "clk", None, 0),)

    def test_write_needs_a_clock(self, memory_builder):
        with pytest.raises(InvalidAssignmentTargetError) as excinfo:
            memory_builder.build([MemoryWrite("mem", "addr", "a")])
        assert excinfo.value.signal == "mem"
        assert "without a clock" in excinfo.value.details

    def test_write_to_unknown_memory(self, memory_builder):
        with pytest.raises(UnknownNameError) as excinfo:
            memory_builder.build([MemoryWrite("rom", "addr", "a", clock="clk")])
        assert excinfo.value.name == "rom"

    def test_memory_is_not_a_signal(self, memory_builder):
        with pytest.raises(UnknownNameError) as excinfo:
            memory_builder.build([Assign("y", "mem")])
        assert excinfo.value.name == "mem"

    def test_memory_cannot_be_sliced(self, memory_builder):
        with pytest.raises(ExpressionSyntaxError):
            memory_builder.build([Assign("y", "mem[1:0]")])
