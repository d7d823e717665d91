# src/rtlsim_core/behavior/memory.py
"""
Memory arrays, expressed with the ordinary expression nodes.

A memory of `depth` words is stored as one internal signal per word, named
`<memory>_<index>`. There is no dedicated node kind:

- A read `mem[addr]` is a `Select` over the words, padded with zeros up to a
  power of two and guarded by a second `Select` that reads zero when the
  address lies past the padded range. Reading outside the memory yields 0.
- A write updates every word with `Select(enable and addr == index, ...)`
  in the clock domain of the write, so an out-of-range address changes
  nothing.

A read assigned inside a clocked block is a synchronous read; anywhere else it
is an asynchronous one.
"""
from typing import Optional, Tuple

from .nodes import BinaryOp, BinaryOperator, Const, Expr, Select, SignalRef


def word_name(memory: str, index: int) -> str:
    return f"{memory}_{index}"


def word_names(memory: str, depth: int) -> Tuple[str, ...]:
    return tuple(word_name(memory, i) for i in range(depth))


def address_bits(depth: int) -> int:
    """Number of address bits needed to reach every word."""
    return (depth - 1).bit_length()


def read(memory: str, depth: int, address: Expr) -> Expr:
    if isinstance(address, Const):
        if 0 <= address.value < depth:
            return SignalRef(word_name(memory, address.value))
        return Const(0)

    bits = address_bits(depth)
    words: Tuple[Expr, ...] = tuple(SignalRef(name) for name in word_names(memory, depth))
    if depth == 1:
        in_range = words[0]
    else:
        in_range = Select(address, words + (Const(0),) * ((1 << bits) - depth))
    overflow = BinaryOp(BinaryOperator.SHR, address, Const(bits))
    return Select(overflow, (in_range, Const(0)))


def write_hit(index: int, address: Expr, enable: Optional[Expr] = None) -> Expr:
    """The 1-bit condition under which word `index` takes the written data."""
    hit = BinaryOp(BinaryOperator.EQ, address, Const(index))
    if enable is not None:
        hit = BinaryOp(BinaryOperator.AND, enable, hit)
    return hit
