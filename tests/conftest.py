# tests/conftest.py
from pathlib import Path

import pytest

from rtlsim_core import DesignBuilder, DesignCache, load_registry
from rtlsim_core.elaboration import Elaborator

# A small component library shared by most tests. Each component is the
# smallest design exercising one part of the pipeline.
LIBRARY_YAML = """
components:
  - name: and2
    ports:
      - {name: a, direction: in}
      - {name: b, direction: in}
      - {name: y, direction: out}
    behavior:
      - "y = a & b"

  - name: adder
    parameters: {WIDTH: 8}
    ports:
      - {name: a, direction: in, width: WIDTH}
      - {name: b, direction: in, width: WIDTH}
      - {name: sum, direction: out, width: WIDTH}
    behavior:
      - "sum = a + b"

  - name: dff_sync_reset
    ports:
      - {name: clk, direction: in}
      - {name: rst, direction: in}
      - {name: d, direction: in}
      - {name: q, direction: out}
    behavior:
      - clocked:
          clock: clk
          reset: rst
          body:
            - "q = d"

  - name: counter
    parameters: {WIDTH: 4}
    ports:
      - {name: clk, direction: in}
      - {name: rst, direction: in, default: 0}
      - {name: count, direction: out, width: WIDTH}
    behavior:
      - clocked:
          reset: rst
          body:
            - "count = count + 1"

  - name: alu
    parameters: {WIDTH: 4}
    ports:
      - {name: op, direction: in, width: 2}
      - {name: a, direction: in, width: WIDTH}
      - {name: b, direction: in, width: WIDTH}
      - {name: y, direction: out, width: WIDTH}
      - {name: zero, direction: out}
    behavior:
      - case:
          selector: op
          branches:
            - {match: 0, body: ["y = a + b"]}
            - {match: 1, body: ["y = a - b"]}
            - {match: 2, body: ["y = a & b"]}
          default:
            - "y = a ^ b"
      - "zero = y == 0"

  - name: datapath
    ports:
      - {name: a, direction: in, width: 8}
      - {name: b, direction: in, width: 8}
      - {name: s, direction: in, width: 3}
      - {name: shl, direction: out, width: 8}
      - {name: shr, direction: out, width: 8}
      - {name: fixed, direction: out, width: 8}
      - {name: picked, direction: out, width: 8}
      - {name: flags, direction: out, width: 4}
      - {name: packed, direction: out, width: 8}
      - {name: prod, direction: out, width: 8}
      - {name: neg, direction: out, width: 8}
    behavior:
      - "shl = a << s"
      - "shr = a >> s"
      - "fixed = a << 2"
      - "picked = mux(s[1:0], a, ~a, a + 1)"
      - "flags = cat(a < b, a <= b, a > b, a >= b)"
      - "packed = cat(a[3:0], sext(s, 4))"
      - "prod = a * b"
      - "neg = -a"

  - name: adder3
    parameters: {W: 4}
    ports:
      - {name: a, direction: in, width: W}
      - {name: b, direction: in, width: W}
      - {name: c, direction: in, width: W}
      - {name: total, direction: out, width: W}
    signals:
      - {name: partial, width: W}
    instances:
      - id: u0
        type: adder
        parameters: {WIDTH: W}
        connections: {a: a, b: b, sum: partial}
      - id: u1
        type: adder
        parameters: {WIDTH: W}
        connections: {a: partial, b: c, sum: total}

  - name: ram
    parameters: {WIDTH: 4}
    ports:
      - {name: clk, direction: in}
      - {name: we, direction: in}
      - {name: waddr, direction: in, width: 3}
      - {name: raddr, direction: in, width: 3}
      - {name: d, direction: in, width: WIDTH}
      - {name: q, direction: out, width: WIDTH}
      - {name: sq, direction: out, width: WIDTH}
    memories:
      - {name: mem, depth: 6, width: WIDTH, initial: [1, 2, 3]}
    behavior:
      - "q = mem[raddr]"
      - clocked:
          body:
            - "sq = mem[raddr]"
            - write: {memory: mem, address: waddr, data: d, enable: we}
"""


@pytest.fixture
def library_path(tmp_path) -> Path:
    path = tmp_path / "library.yaml"
    path.write_text(LIBRARY_YAML)
    return path


@pytest.fixture
def registry(library_path):
    return load_registry(library_path)


@pytest.fixture
def elaborator(registry):
    return Elaborator(registry)


@pytest.fixture
def builder(registry):
    return DesignBuilder(registry, cache=DesignCache())


@pytest.fixture(autouse=True)
def clean_process_cache():
    DesignCache.clear_process_cache()
    yield
    DesignCache.clear_process_cache()


@pytest.fixture
def make_registry(tmp_path):
    """Writes YAML library text to a fresh file and loads it into a registry."""
    counter = {"n": 0}

    def _make(text: str):
        counter["n"] += 1
        path = tmp_path / f"extra_{counter['n']}.yaml"
        path.write_text(text)
        return load_registry(path)

    return _make
