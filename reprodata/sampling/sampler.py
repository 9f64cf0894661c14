"""
sampling/sampler.py
-------------------
Representative subsets of a dataset: seeded random samples, proportional
stratified samples and k-fold cross-validation folds.

A missing seed is replaced by a fresh OS-entropy seed before any work, and
the seed actually used is recorded in the result metadata, so every subset
can be rebuilt from its metadata alone.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from reprodata.core.dataset import Dataset, contiguous_bounds
from reprodata.sampling.shuffle import (
    check_generator,
    entropy_seed,
    shuffle_records,
    shuffled_indices,
)
from reprodata.sampling.splitting import (
    InvalidSplitError,
    allocate_test_counts,
    check_stratify_column,
    group_records,
)

DEFAULT_SAMPLE_SIZE = 100
DEFAULT_FOLDS = 5


def _check_count(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidSplitError(name, f"expected an integer >= {minimum}, got {value!r}.")


def _resolve_seed(seed: Optional[int], generator: str) -> int:
    check_generator(generator)
    if seed is None:
        return entropy_seed()
    _check_count("seed", seed, 0)
    return seed


def sample(
    dataset: Dataset,
    size: int = DEFAULT_SAMPLE_SIZE,
    seed: Optional[int] = None,
    generator: str = "numpy",
) -> Dataset:
    """
    Draw *size* records uniformly without replacement.

    The sample is the first ``min(size, n)`` positions of the seeded
    permutation, so it is reproducible for a given seed and generator.

    Returns:
        A dataset named ``<name>_random_<size>`` with ``sample_method``,
        ``sample_size``, ``sample_seed``, ``sample_generator`` and
        ``original_size`` metadata.

    Raises:
        InvalidSplitError: If *size* or *seed* is negative or not an int.
        ValueError:        For an unknown generator.
    """
    _check_count("size", size, 0)
    seed = _resolve_seed(seed, generator)

    n = dataset.num_items
    take = min(size, n)
    indices = shuffled_indices(n, seed=seed, generator=generator)[:take]
    result = dataset.with_records(
        [dataset.records[i] for i in indices],
        sample_method="random",
        sample_size=take,
        sample_seed=seed,
        sample_generator=generator,
        original_size=n,
    )
    result.name = f"{dataset.name}_random_{size}"
    return result


def stratified_sample(
    dataset: Dataset,
    size: int,
    stratify_by_column: str,
    seed: Optional[int] = None,
    generator: str = "numpy",
) -> Dataset:
    """
    Draw *size* records while preserving the value distribution of
    *stratify_by_column*.

    Per-value counts come from the same largest-remainder allocator as
    stratified splits, so they sum exactly to ``min(size, n)`` and each
    stays within one record of its proportional share.  Records are drawn
    from a seeded shuffle; groups appear in first-encounter order.

    Example::

        # 80 "pos" / 20 "neg" records
        sub = stratified_sample(ds, 10, "label", seed=0)
        sub.metadata["strata_distribution"]   # {"pos": 8, "neg": 2}

    Raises:
        InvalidSplitError: For a bad *size* or *seed*, or an unknown column.
        ValueError:        For an unknown generator.
    """
    _check_count("size", size, 0)
    seed = _resolve_seed(seed, generator)
    check_stratify_column(dataset.records, stratify_by_column)

    n = dataset.num_items
    records = shuffle_records(dataset.records, seed=seed, generator=generator)
    groups = group_records(records, stratify_by_column)
    counts = allocate_test_counts([len(g) for g in groups.values()], min(size, n))

    sampled: List[Dict[str, Any]] = []
    distribution: Dict[Any, int] = {}
    for (value, group), count in zip(groups.items(), counts):
        sampled.extend(group[:count])
        distribution[value] = count

    result = dataset.with_records(
        sampled,
        sample_method="stratified",
        sample_size=len(sampled),
        sample_seed=seed,
        sample_generator=generator,
        strata_field=stratify_by_column,
        strata_distribution=distribution,
        original_size=n,
    )
    result.name = f"{dataset.name}_stratified_{size}"
    return result


def k_fold(
    dataset: Dataset,
    k: int = DEFAULT_FOLDS,
    shuffle: bool = True,
    seed: Optional[int] = None,
    generator: str = "numpy",
) -> List[Dict[str, Dataset]]:
    """
    Build *k* cross-validation folds.

    The (optionally shuffled) records are cut into *k* contiguous test
    blocks whose sizes differ by at most one; each fold trains on every
    record outside its test block.  Every record is tested exactly once.

    Args:
        dataset:   The dataset to fold.
        k:         Number of folds, between 2 and ``len(dataset)``.
        shuffle:   Shuffle before cutting the blocks.
        seed:      Shuffle seed; recorded as ``shuffle_seed`` metadata.
        generator: Shuffle generator kind.

    Returns:
        A list of ``{"train": Dataset, "test": Dataset}`` dicts, one per
        fold, named ``<name>_fold<i>_train`` / ``<name>_fold<i>_test`` and
        carrying ``fold``, ``k_folds`` and ``split`` metadata.

    Raises:
        InvalidSplitError: If *k* is not an int in ``[2, n]``.
    """
    _check_count("k", k, 2)
    n = dataset.num_items
    if k > n:
        raise InvalidSplitError("k", f"cannot build {k} folds from {n} records.")

    records = dataset.records
    extra: Dict[str, Any] = {}
    if shuffle:
        seed = _resolve_seed(seed, generator)
        records = shuffle_records(records, seed=seed, generator=generator)
        extra = {"shuffle_seed": seed, "shuffle_generator": generator}
    else:
        check_generator(generator)

    folds = []
    for i, (start, stop) in enumerate(contiguous_bounds(n, k)):
        train = dataset.with_records(
            records[:start] + records[stop:], fold=i, k_folds=k, split="train", **extra
        )
        test = dataset.with_records(
            records[start:stop], fold=i, k_folds=k, split="test", **extra
        )
        train.name = f"{dataset.name}_fold{i}_train"
        test.name = f"{dataset.name}_fold{i}_test"
        folds.append({"train": train, "test": test})
    return folds
