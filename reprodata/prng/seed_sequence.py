"""
prng/seed_sequence.py
---------------------
Seed expansion compatible with NumPy's ``SeedSequence``.

An integer seed is split into 32-bit words, hashed into a four-word entropy
pool, and the pool is expanded into the 64-bit words that seed a PCG64
generator.  All arithmetic is unsigned 32-bit.
"""

from __future__ import annotations

from itertools import cycle
from typing import List, Tuple

POOL_SIZE = 4

INIT_A = 0x43B0D7E5
MULT_A = 0x931E8875
INIT_B = 0x8B51F9DD
MULT_B = 0x58F38DED
MIX_MULT_L = 0xCA01F9DD
MIX_MULT_R = 0x4973F715
XSHIFT = 16

MASK32 = 0xFFFFFFFF


class _HashMixer:
    """Stateful ``hashmix`` whose multiplier advances on every call."""

    def __init__(self) -> None:
        self.hash_const = INIT_A

    def __call__(self, value: int) -> int:
        value = (value ^ self.hash_const) & MASK32
        self.hash_const = (self.hash_const * MULT_A) & MASK32
        value = (value * self.hash_const) & MASK32
        return value ^ (value >> XSHIFT)


def _mix(x: int, y: int) -> int:
    result = (MIX_MULT_L * x - MIX_MULT_R * y) & MASK32
    return result ^ (result >> XSHIFT)


def int_to_uint32_words(seed: int) -> List[int]:
    """Split a non-negative integer into little-endian 32-bit words."""
    if seed < 0:
        raise ValueError("seed must be a non-negative integer.")
    if seed == 0:
        return [0]
    words = []
    while seed:
        words.append(seed & MASK32)
        seed >>= 32
    return words


def mix_entropy(entropy: List[int], pool_size: int = POOL_SIZE) -> List[int]:
    """Hash *entropy* into a pool of *pool_size* 32-bit words."""
    hashmix = _HashMixer()
    pool = [hashmix(entropy[i] if i < len(entropy) else 0) for i in range(pool_size)]

    for i_src in range(pool_size):
        for i_dst in range(pool_size):
            if i_src != i_dst:
                pool[i_dst] = _mix(pool[i_dst], hashmix(pool[i_src]))

    for i_src in range(pool_size, len(entropy)):
        for i_dst in range(pool_size):
            pool[i_dst] = _mix(pool[i_dst], hashmix(entropy[i_src]))

    return pool


def generate_state(pool: List[int], n_words: int) -> List[int]:
    """
    Expand *pool* into *n_words* 64-bit words.

    Pairs of 32-bit outputs are joined little-endian (low word first).
    """
    hash_const = INIT_B
    words32 = []
    source = cycle(pool)
    for _ in range(n_words * 2):
        value = next(source) ^ hash_const
        hash_const = (hash_const * MULT_B) & MASK32
        value = (value * hash_const) & MASK32
        value ^= value >> XSHIFT
        words32.append(value)
    return [words32[i] | (words32[i + 1] << 32) for i in range(0, len(words32), 2)]


def generate_pcg64_state(seed: int) -> Tuple[int, int]:
    """
    Derive the 128-bit ``(initstate, initseq)`` pair for a PCG64 seed.

    Equivalent to ``numpy.random.SeedSequence(seed).generate_state(4, uint64)``
    with words 0/1 forming the state (high, low) and words 2/3 the increment.
    """
    pool = mix_entropy(int_to_uint32_words(seed))
    w0, w1, w2, w3 = generate_state(pool, 4)
    return (w0 << 64) | w1, (w2 << 64) | w3
