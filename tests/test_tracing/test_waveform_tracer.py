# tests/test_tracing/test_waveform_tracer.py

import io

import pytest

from rtlsim_core.elaboration import Elaborator
from rtlsim_core.simulation import BehavioralSimulator, GateLevelSimulator
from rtlsim_core.synthesis import lower
from rtlsim_core.tracing import TracePoint, WaveformTracer


@pytest.fixture
def counter_sim(elaborator):
    return BehavioralSimulator(elaborator.elaborate("counter"))


def test_records_only_changes(counter_sim):
    tracer = WaveformTracer(counter_sim, ["count"]).attach()
    for _ in range(3):
        counter_sim.step(domains=[] if counter_sim.step_count == 1 else None)
    assert tracer.points == [TracePoint(0, 0, 0), TracePoint(1, 0, 1)]
    assert tracer.values("count") == [0, 1, 1]


def test_unknown_names_are_dropped(counter_sim):
    tracer = WaveformTracer(counter_sim, ["count", "bogus", "count"])
    assert tracer.signals == ["count"]
    assert tracer.signal_id("count") == 0
    with pytest.raises(KeyError):
        tracer.signal_id("bogus")


def test_traces_every_signal_by_default(counter_sim):
    tracer = WaveformTracer(counter_sim)
    assert set(tracer.signals) == {"clk", "rst", "count"}


def test_timeline_continues_after_reset(counter_sim):
    tracer = WaveformTracer(counter_sim, ["count"]).attach()
    for _ in range(3):
        counter_sim.step()
    counter_sim.reset()
    for _ in range(2):
        counter_sim.step()
    assert [p.timestamp for p in tracer.points] == [0, 1, 2, 3, 4]
    assert tracer.values("count") == [0, 1, 2, 0, 1]


def test_context_manager_detaches(counter_sim):
    with WaveformTracer(counter_sim, ["count"]) as tracer:
        assert tracer.attached
        counter_sim.step()
    counter_sim.step()
    assert not tracer.attached
    assert tracer.values("count") == [0]


def test_unreadable_values_are_skipped(elaborator):
    sim = BehavioralSimulator(elaborator.elaborate("dff_sync_reset"))
    tracer = WaveformTracer(sim, ["d", "q"]).attach()
    sim.step({"rst": 1})
    sim.step({"rst": 0, "d": 1})
    assert tracer.values("d") == [None, 1]
    assert tracer.values("q") == [0, 0]


def test_gate_level_unknown_nets_are_skipped(make_registry):
    registry = make_registry("""
components:
  - name: floating
    ports: [{name: a, direction: in}, {name: y, direction: out}]
    signals: [{name: w}]
    behavior: ["y = w & a"]
""")
    sim = GateLevelSimulator(lower(Elaborator(registry).elaborate("floating")))
    tracer = WaveformTracer(sim, ["w", "y"]).attach()
    sim.step({"a": 0})
    sim.step()
    assert tracer.values("w") == [None, None]
    assert tracer.values("y") == [0, 0]
    assert tracer.points == [TracePoint(0, 1, 0)]


def test_write_vcd(elaborator):
    sim = BehavioralSimulator(elaborator.elaborate("adder3"))
    tracer = WaveformTracer(sim, ["a", "u0.sum", "total"]).attach()
    sim.step({"a": 1, "b": 2, "c": 3})
    sim.step({"a": 5})
    stream = io.StringIO()
    tracer.write_vcd(stream)
    text = stream.getvalue()
    assert "$timescale 1 ns $end" in text
    assert "$scope module adder3 $end" in text
    assert "$scope module u0 $end" in text
    assert "$var wire 4" in text
    assert "$enddefinitions $end" in text
    assert "#1" in text
