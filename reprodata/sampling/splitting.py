"""
sampling/splitting.py
---------------------
Train/test partitioning with optional stratification.

Stratified splits allocate the requested test count across the distinct
values of a column by largest remainder: each group first receives the
floor of its exact proportional share, and the units lost to flooring go
to the groups with the largest fractional remainders (ties broken by the
order in which groups were first encountered).  The test partition
therefore always has exactly the requested size, and no group drifts from
its proportional share by more than one record.
"""

from __future__ import annotations

import json
import math
from fractions import Fraction
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple, Union

from reprodata.core.dataset import Dataset
from reprodata.sampling.shuffle import check_generator, shuffle_records

Size = Union[int, float, None]

DEFAULT_TEST_SIZE = 0.25


class InvalidSplitError(ValueError):
    """
    Raised for invalid split parameters.

    Attributes:
        parameter: Name of the offending parameter.
    """

    def __init__(self, parameter: str, message: str) -> None:
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------

def allocate_test_counts(group_sizes: Sequence[int], test_count: int) -> List[int]:
    """
    Distribute *test_count* across groups in proportion to their sizes.

    Args:
        group_sizes: Size of each group, in encounter order.
        test_count:  Total number of items to allocate, at most
                     ``sum(group_sizes)``.

    Returns:
        Per-group allocations summing exactly to *test_count*.

    Example::

        allocate_test_counts([80, 20], 20)   # [16, 4]
        allocate_test_counts([3, 3], 3)      # [2, 1]
    """
    total = sum(group_sizes)
    if test_count < 0 or test_count > total:
        raise ValueError(f"test_count must lie in [0, {total}], got {test_count}.")
    if total == 0:
        return [0 for _ in group_sizes]

    floors: List[int] = []
    remainders: List[Fraction] = []
    for size in group_sizes:
        exact = Fraction(size * test_count, total)
        floor = exact.numerator // exact.denominator
        floors.append(floor)
        remainders.append(exact - floor)

    deficit = test_count - sum(floors)
    # sorted() is stable, so equal remainders keep encounter order
    ranked = sorted(range(len(group_sizes)), key=lambda i: remainders[i], reverse=True)
    for i in ranked[:deficit]:
        floors[i] += 1
    return floors


# ---------------------------------------------------------------------------
# Size resolution
# ---------------------------------------------------------------------------

def _check_size(name: str, value: Size, n: int) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSplitError(name, f"expected an int or float, got {type(value).__name__}.")
    if isinstance(value, float):
        if not 0.0 <= value <= 1.0:
            raise InvalidSplitError(name, f"fraction must lie in [0.0, 1.0], got {value}.")
    elif not 0 <= value <= n:
        raise InvalidSplitError(name, f"count must lie in [0, {n}], got {value}.")


def _to_count(value: float, n: int) -> int:
    if isinstance(value, float):
        return int(round(value * n))
    return int(value)


def resolve_sizes(n: int, test_size: Size = None, train_size: Size = None) -> Tuple[int, int]:
    """
    Turn fractional or absolute sizes into ``(n_train, n_test)``.

    The test count is resolved first (fractions are scaled by *n* and
    rounded); the train count never exceeds what the test count leaves.
    When only one side is given, or both are fractions summing to 1.0, the
    train count is exactly the complement, so no record is dropped.

    Raises:
        InvalidSplitError: Naming the offending parameter, including when
                           the two fractions sum to more than 1.0 or the two
                           counts to more than *n*.
    """
    _check_size("test_size", test_size, n)
    _check_size("train_size", train_size, n)

    if test_size is None and train_size is None:
        test_size = DEFAULT_TEST_SIZE

    if test_size is None:
        n_train = _to_count(train_size, n)
        return n_train, n - n_train

    n_test = _to_count(test_size, n)
    if train_size is None:
        return n - n_test, n_test

    if isinstance(test_size, float) and isinstance(train_size, float):
        total = test_size + train_size
        if math.isclose(total, 1.0):
            return n - n_test, n_test
        if total > 1.0:
            raise InvalidSplitError(
                "train_size",
                f"train_size + test_size = {total:g} exceeds 1.0.",
            )
        # Rounding both fractions up may overshoot n by one
        return min(_to_count(train_size, n), n - n_test), n_test

    n_train = _to_count(train_size, n)
    if n_train + n_test > n:
        raise InvalidSplitError(
            "train_size",
            f"train_size + test_size = {n_train + n_test} exceeds the {n} available items.",
        )
    return n_train, n_test


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def _group_key(value: Any) -> Hashable:
    try:
        hash(value)
    except TypeError:
        return json.dumps(value, sort_keys=True, default=str)
    return value


def group_records(
    records: Sequence[Dict[str, Any]], column: str
) -> Dict[Hashable, List[Dict[str, Any]]]:
    """
    Map each distinct ``record[column]`` value to its records.

    Keys follow first-encounter order; unhashable values are keyed by their
    sorted-key JSON form.
    """
    groups: Dict[Hashable, List[Dict[str, Any]]] = {}
    for record in records:
        groups.setdefault(_group_key(record.get(column)), []).append(record)
    return groups


def group_by_column(records: Sequence[Dict[str, Any]], column: str) -> List[List[Dict[str, Any]]]:
    """Group *records* by ``record[column]``, keeping first-encounter order."""
    return list(group_records(records, column).values())


def check_stratify_column(records: Sequence[Dict[str, Any]], column: Optional[str]) -> None:
    """
    Validate a stratification column against *records*.

    Raises:
        InvalidSplitError: If *column* is not a string, or no record has it.
                           An empty record list has no columns to check
                           against and always passes.
    """
    if column is None:
        return
    if not isinstance(column, str):
        raise InvalidSplitError(
            "stratify_by_column",
            f"expected a column name, got {type(column).__name__}.",
        )
    if records and not any(column in record for record in records):
        raise InvalidSplitError(
            "stratify_by_column",
            f"column {column!r} not found in dataset.",
        )


def _stratified_partition(
    records: Sequence[Dict[str, Any]], column: str, n_train: int, n_test: int
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    groups = group_by_column(records, column)
    test_counts = allocate_test_counts([len(g) for g in groups], n_test)

    heads = [g[: len(g) - t] for g, t in zip(groups, test_counts)]
    train_counts = allocate_test_counts([len(h) for h in heads], n_train)

    train: List[Dict[str, Any]] = []
    test: List[Dict[str, Any]] = []
    for group, head, t, k in zip(groups, heads, test_counts, train_counts):
        train.extend(head[:k])
        if t:
            test.extend(group[-t:])
    return train, test


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def train_test_split(
    dataset: Dataset,
    test_size: Size = None,
    train_size: Size = None,
    stratify_by_column: Optional[str] = None,
    shuffle: bool = True,
    seed: Optional[int] = None,
    generator: str = "numpy",
) -> Dict[str, Dataset]:
    """
    Partition *dataset* into disjoint train and test datasets.

    Args:
        dataset:            The dataset to split.
        test_size:          Fraction in [0.0, 1.0] or count in [0, n].
        train_size:         Fraction in [0.0, 1.0] or count in [0, n].
                            When both sizes are ``None`` the test share
                            defaults to 0.25.
        stratify_by_column: Column whose value distribution is preserved
                            in both partitions.
        shuffle:            Shuffle before splitting.
        seed:               Seed for the shuffle.
        generator:          Shuffle generator kind (``"numpy"`` or ``"python"``).

    Returns:
        ``{"train": Dataset, "test": Dataset}``.

    Raises:
        InvalidSplitError: For out-of-range sizes or an unknown stratify
                           column.
        ValueError:        For an unknown generator or a negative seed, even
                           when the dataset is empty.

    Example::

        parts = train_test_split(ds, test_size=0.2, stratify_by_column="label", seed=42)
        parts["test"].num_items   # exactly round(0.2 * n)
    """
    check_generator(generator)
    n = dataset.num_items
    records = dataset.records
    check_stratify_column(records, stratify_by_column)
    n_train, n_test = resolve_sizes(n, test_size=test_size, train_size=train_size)

    if shuffle:
        records = shuffle_records(records, seed=seed, generator=generator)

    if stratify_by_column is None:
        train_records = list(records[:n_train])
        test_records = list(records[n - n_test:]) if n_test else []
    else:
        train_records, test_records = _stratified_partition(
            records, stratify_by_column, n_train, n_test
        )

    train = dataset.with_records(train_records, split="train")
    test = dataset.with_records(test_records, split="test")
    train.name = f"{dataset.name}_train"
    test.name = f"{dataset.name}_test"
    return {"train": train, "test": test}
