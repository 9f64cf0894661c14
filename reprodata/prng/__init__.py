"""prng sub-package — bit-exact PCG64 and NumPy-compatible seeding."""

from reprodata.prng.pcg64 import (
    PCG64State,
    next32,
    next64,
    permutation,
    random_interval,
    seed,
    seed_128,
    shuffle,
)
from reprodata.prng.seed_sequence import generate_pcg64_state

__all__ = [
    "PCG64State",
    "seed",
    "seed_128",
    "next32",
    "next64",
    "random_interval",
    "shuffle",
    "permutation",
    "generate_pcg64_state",
]
