"""
prng/pcg64.py
-------------
Bit-exact PCG64 (XSL-RR 128/64) generator matching NumPy's default
``Generator``.

The generator is a pure state machine: every function takes a
:class:`PCG64State` and returns the produced value together with a new
state.  Nothing is mutated, so states can be shared freely.

For a seed ``s`` and length ``n``::

    permutation(n, s) == list(numpy.random.default_rng(s).permutation(n))

References: https://www.pcg-random.org/ and NumPy's
``numpy/random/src/pcg64/pcg64.h``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, List, Sequence, Tuple

from reprodata.prng.seed_sequence import generate_pcg64_state

MULTIPLIER = 0x2360ED051FC65DA44385DF649FCCF645

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF
MASK128 = (1 << 128) - 1


@dataclass(frozen=True)
class PCG64State:
    """
    Immutable PCG64 state.

    Attributes:
        state:      128-bit LCG state.
        inc:        128-bit odd increment.
        has_uint32: Whether ``uinteger`` holds a buffered 32-bit half.
        uinteger:   The buffered high half of the last 64-bit draw.
    """

    state: int
    inc: int
    has_uint32: bool = False
    uinteger: int = 0


def _step(state: int, inc: int) -> int:
    return (state * MULTIPLIER + inc) & MASK128


def _rotr64(value: int, rot: int) -> int:
    return ((value >> rot) | (value << ((64 - rot) & 63))) & MASK64


def _output(state: int) -> int:
    # XSL-RR: xor the halves, rotate by the top six bits
    return _rotr64(((state >> 64) ^ state) & MASK64, state >> 122)


def seed_128(initstate: int, initseq: int) -> PCG64State:
    """Seed from explicit 128-bit ``initstate`` and ``initseq`` values."""
    inc = ((initseq << 1) | 1) & MASK128
    state = _step(0, inc)
    state = (state + initstate) & MASK128
    return PCG64State(state=_step(state, inc), inc=inc)


def seed(value: int) -> PCG64State:
    """
    Seed the generator the way ``numpy.random.PCG64(value)`` does.

    Raises:
        TypeError:  If *value* is not an int.
        ValueError: If *value* is negative.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"seed must be an int, got {type(value).__name__!r}.")
    initstate, initseq = generate_pcg64_state(value)
    return seed_128(initstate, initseq)


def next64(rng: PCG64State) -> Tuple[int, PCG64State]:
    """Draw a 64-bit value.  The 32-bit buffer is left untouched."""
    state = _step(rng.state, rng.inc)
    return _output(state), replace(rng, state=state)


def next32(rng: PCG64State) -> Tuple[int, PCG64State]:
    """
    Draw a 32-bit value.

    A fresh 64-bit draw yields its low half and buffers the high half for
    the following call.
    """
    if rng.has_uint32:
        return rng.uinteger, replace(rng, has_uint32=False, uinteger=0)
    value, rng = next64(rng)
    return value & MASK32, replace(rng, has_uint32=True, uinteger=value >> 32)


def _mask_for(value: int) -> int:
    mask = value
    for shift in (1, 2, 4, 8, 16, 32):
        mask |= mask >> shift
    return mask


def random_interval(rng: PCG64State, max_value: int) -> Tuple[int, PCG64State]:
    """
    Draw a uniform integer in ``[0, max_value]`` by masked rejection.

    32-bit draws are used while ``max_value`` fits in 32 bits.
    """
    if max_value < 0:
        raise ValueError("max_value must be non-negative.")
    if max_value == 0:
        return 0, rng

    mask = _mask_for(max_value)
    draw = next32 if max_value <= MASK32 else next64
    while True:
        value, rng = draw(rng)
        value &= mask
        if value <= max_value:
            return value, rng


def shuffle(items: Sequence[Any], rng: PCG64State) -> Tuple[List[Any], PCG64State]:
    """
    Fisher-Yates shuffle iterating from the last index down to 1.

    Returns a new list; *items* is not modified.
    """
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j, rng = random_interval(rng, i)
        result[i], result[j] = result[j], result[i]
    return result, rng


def permutation(n: int, seed_value: int) -> List[int]:
    """Return the shuffled order of ``range(n)`` for *seed_value*."""
    if n < 0:
        raise ValueError("n must be non-negative.")
    order, _ = shuffle(range(n), seed(seed_value))
    return order
