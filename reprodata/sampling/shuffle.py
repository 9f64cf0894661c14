"""
sampling/shuffle.py
-------------------
Seeded, reproducible reordering of dataset records.

Two generator kinds are available:

* ``"numpy"`` — the bit-exact PCG64 generator; the order matches
  ``numpy.random.default_rng(seed).permutation(n)`` value for value.
* ``"python"`` — :class:`random.Random`; reproducible within a Python
  version but not comparable with any other implementation.

Without a seed the order is drawn from OS entropy and is not reproducible.
"""

from __future__ import annotations

import random
from typing import Any, List, Optional, Sequence

from reprodata.core.dataset import Dataset
from reprodata.prng import pcg64

GENERATORS = ("numpy", "python")


def entropy_seed() -> int:
    """Draw a 128-bit seed from OS entropy."""
    return random.SystemRandom().getrandbits(128)


def check_generator(generator: str) -> None:
    if generator not in GENERATORS:
        raise ValueError(
            f"Unknown generator {generator!r}; expected one of {', '.join(GENERATORS)}."
        )


def shuffled_indices(n: int, seed: Optional[int] = None, generator: str = "numpy") -> List[int]:
    """
    Return a permutation of ``range(n)``.

    Args:
        n:         Number of positions.
        seed:      Non-negative integer seed, or ``None`` for OS entropy.
        generator: ``"numpy"`` or ``"python"``.

    Raises:
        ValueError: For an unknown generator or a negative seed.
    """
    check_generator(generator)
    if seed is not None and seed < 0:
        raise ValueError("seed must be a non-negative integer.")
    if seed is None:
        seed = entropy_seed()

    if generator == "numpy":
        return pcg64.permutation(n, seed)

    order = list(range(n))
    random.Random(seed).shuffle(order)
    return order


def shuffle_records(
    records: Sequence[Any], seed: Optional[int] = None, generator: str = "numpy"
) -> List[Any]:
    """Return *records* reordered by :func:`shuffled_indices`."""
    return [records[i] for i in shuffled_indices(len(records), seed=seed, generator=generator)]


def shuffle(dataset: Dataset, seed: Optional[int] = None, generator: str = "numpy") -> Dataset:
    """
    Return a reordered copy of *dataset*.

    The result carries ``shuffle_seed`` and ``shuffle_generator`` metadata
    and no fingerprint.

    Example::

        a = shuffle(ds, seed=42)
        b = shuffle(ds, seed=42)
        # a.records == b.records
    """
    records = shuffle_records(dataset.records, seed=seed, generator=generator)
    return dataset.with_records(records, shuffle_seed=seed, shuffle_generator=generator)
