from collections import Counter

import numpy as np
import pytest

from reprodata.core.dataset import Dataset
from reprodata.sampling.shuffle import shuffle, shuffled_indices
from reprodata.sampling.splitting import (
    InvalidSplitError,
    allocate_test_counts,
    resolve_sizes,
    train_test_split,
)


def _numbers(n):
    return Dataset.from_records([{"x": i} for i in range(n)], name="numbers")


def _labelled(counts):
    records = []
    for label, count in counts:
        records.extend({"x": i, "label": label} for i in range(count))
    return Dataset.from_records(records, name="labelled")


# ---------------------------------------------------------------------------
# shuffle
# ---------------------------------------------------------------------------

def test_shuffle_with_seed_is_reproducible():
    ds = _numbers(100)
    assert shuffle(ds, seed=42).records == shuffle(ds, seed=42).records


def test_shuffle_is_a_permutation():
    ds = _numbers(100)
    result = shuffle(ds, seed=7)
    assert sorted(r["x"] for r in result) == list(range(100))
    assert [r["x"] for r in result] != list(range(100))


def test_numpy_shuffle_matches_default_rng_permutation():
    ds = _numbers(25)
    order = [int(i) for i in np.random.default_rng(42).permutation(25)]
    assert [r["x"] for r in shuffle(ds, seed=42, generator="numpy")] == order


def test_python_generator_is_reproducible():
    assert shuffled_indices(30, seed=3, generator="python") == shuffled_indices(
        30, seed=3, generator="python"
    )


def test_shuffle_clears_fingerprint_and_records_seed():
    ds = _numbers(5)
    ds.compute_fingerprint()
    result = ds.shuffle(seed=1)
    assert result.fingerprint is None
    assert result.metadata["shuffle_seed"] == 1
    assert result.metadata["shuffle_generator"] == "numpy"
    assert ds.records == _numbers(5).records


def test_shuffle_without_seed_still_permutes():
    ds = _numbers(20)
    assert sorted(r["x"] for r in shuffle(ds)) == list(range(20))


def test_unknown_generator_rejected():
    with pytest.raises(ValueError):
        shuffled_indices(3, seed=1, generator="mersenne")


# ---------------------------------------------------------------------------
# allocation
# ---------------------------------------------------------------------------

def test_allocation_is_exact_and_proportional():
    assert allocate_test_counts([80, 20], 20) == [16, 4]
    assert sum(allocate_test_counts([7, 5, 3], 4)) == 4


def test_allocation_breaks_ties_by_encounter_order():
    assert allocate_test_counts([3, 3], 3) == [2, 1]
    assert allocate_test_counts([1, 1, 1], 2) == [1, 1, 0]


def test_allocation_gives_extra_units_to_largest_remainders():
    # exact shares: 1.4, 2.1, 3.5  -> floors 1, 2, 3 with one unit left
    assert allocate_test_counts([2, 3, 5], 7) == [1, 2, 4]


def test_allocation_rejects_impossible_totals():
    with pytest.raises(ValueError):
        allocate_test_counts([1, 2], 4)


# ---------------------------------------------------------------------------
# sizes
# ---------------------------------------------------------------------------

def test_resolve_sizes():
    assert resolve_sizes(100, test_size=0.2) == (80, 20)
    assert resolve_sizes(100, train_size=30) == (30, 70)
    assert resolve_sizes(100) == (75, 25)
    assert resolve_sizes(100, test_size=10, train_size=0.5) == (50, 10)


@pytest.mark.parametrize(
    "n,test_size,train_size,expected",
    [
        (3, 0.5, 0.5, (1, 2)),
        (5, 0.5, 0.5, (3, 2)),
        (7, 0.3, 0.7, (5, 2)),
        (11, 0.25, 0.75, (8, 3)),
        (9, 0.2, 0.3, (3, 2)),
        (5, 0.5, 0.4, (2, 2)),
    ],
)
def test_resolve_sizes_with_two_fractions_on_odd_n(n, test_size, train_size, expected):
    n_train, n_test = resolve_sizes(n, test_size=test_size, train_size=train_size)
    assert (n_train, n_test) == expected
    assert n_train + n_test <= n


def test_complementary_fractions_keep_every_record():
    for n in (1, 3, 5, 7, 99):
        n_train, n_test = resolve_sizes(n, test_size=0.5, train_size=0.5)
        assert n_train + n_test == n


@pytest.mark.parametrize(
    "kwargs,parameter",
    [
        ({"test_size": 1.5}, "test_size"),
        ({"test_size": -0.1}, "test_size"),
        ({"test_size": 101}, "test_size"),
        ({"train_size": -1}, "train_size"),
        ({"test_size": True}, "test_size"),
        ({"test_size": "0.2"}, "test_size"),
        ({"test_size": 60, "train_size": 60}, "train_size"),
        ({"test_size": 0.6, "train_size": 0.6}, "train_size"),
        ({"test_size": 0.5, "train_size": 0.75}, "train_size"),
    ],
)
def test_invalid_sizes_name_the_parameter(kwargs, parameter):
    with pytest.raises(InvalidSplitError) as excinfo:
        resolve_sizes(100, **kwargs)
    assert excinfo.value.parameter == parameter
    assert parameter in str(excinfo.value)


# ---------------------------------------------------------------------------
# train_test_split
# ---------------------------------------------------------------------------

def test_split_with_fraction():
    parts = train_test_split(_numbers(100), test_size=0.2, shuffle=False)
    assert parts["train"].num_items == 80
    assert parts["test"].num_items == 20
    assert [r["x"] for r in parts["test"]] == list(range(80, 100))
    assert parts["train"].name == "numbers_train"
    assert parts["test"].metadata["split"] == "test"


def test_split_partitions_are_disjoint_and_complete():
    parts = train_test_split(_numbers(50), test_size=0.3, seed=42)
    train = {r["x"] for r in parts["train"]}
    test = {r["x"] for r in parts["test"]}
    assert not train & test
    assert train | test == set(range(50))


def test_split_respects_seed():
    ds = _numbers(100)
    first = train_test_split(ds, test_size=0.2, seed=42)
    second = train_test_split(ds, test_size=0.2, seed=42)
    assert first["train"].records == second["train"].records
    assert first["test"].records == second["test"].records


def test_stratified_split_eighty_twenty():
    ds = _labelled([("pos", 80), ("neg", 20)])
    parts = train_test_split(
        ds, test_size=0.2, stratify_by_column="label", shuffle=False
    )
    test_counts = Counter(r["label"] for r in parts["test"])
    train_counts = Counter(r["label"] for r in parts["train"])

    assert parts["test"].num_items == 20
    assert abs(test_counts["pos"] - 16) <= 1
    assert abs(test_counts["neg"] - 4) <= 1
    assert train_counts["pos"] + test_counts["pos"] == 80
    assert train_counts["neg"] + test_counts["neg"] == 20


def test_stratified_split_three_and_three():
    ds = _labelled([("a", 3), ("b", 3)])
    parts = train_test_split(ds, test_size=0.5, stratify_by_column="label", seed=42)
    counts = Counter(r["label"] for r in parts["test"])

    assert parts["test"].num_items == 3
    assert sorted(counts.values()) == [1, 2]


def test_stratified_split_with_shuffle_keeps_exact_size():
    ds = _labelled([("a", 37), ("b", 41), ("c", 22)])
    parts = train_test_split(ds, test_size=0.25, stratify_by_column="label", seed=3)
    counts = Counter(r["label"] for r in parts["test"])

    assert parts["test"].num_items == 25
    for label, size in (("a", 37), ("b", 41), ("c", 22)):
        assert abs(counts[label] - size * 0.25) <= 1


def test_stratified_split_with_explicit_train_size():
    ds = _labelled([("a", 60), ("b", 40)])
    parts = train_test_split(
        ds, test_size=20, train_size=50, stratify_by_column="label", shuffle=False
    )
    assert parts["test"].num_items == 20
    assert parts["train"].num_items == 50
    assert Counter(r["label"] for r in parts["train"]) == {"a": 30, "b": 20}


def test_stratify_unknown_column():
    with pytest.raises(InvalidSplitError) as excinfo:
        train_test_split(_numbers(10), test_size=0.2, stratify_by_column="missing")
    assert excinfo.value.parameter == "stratify_by_column"


def test_split_empty_dataset():
    parts = train_test_split(Dataset.from_records([]), test_size=0.2)
    assert parts["train"].num_items == 0
    assert parts["test"].num_items == 0


def test_split_via_dataset_method():
    parts = _numbers(10).train_test_split(test_size=0.5, shuffle=False)
    assert [r["x"] for r in parts["train"]] == [0, 1, 2, 3, 4]


def test_split_odd_dataset_with_complementary_fractions():
    parts = train_test_split(_numbers(3), test_size=0.5, train_size=0.5, seed=0)
    assert parts["train"].num_items + parts["test"].num_items == 3
    everything = {r["x"] for r in parts["train"]} | {r["x"] for r in parts["test"]}
    assert everything == {0, 1, 2}


def test_empty_dataset_still_validates_arguments():
    empty = Dataset.from_records([])
    with pytest.raises(ValueError):
        train_test_split(empty, test_size=0.2, generator="bogus")
    with pytest.raises(InvalidSplitError) as excinfo:
        train_test_split(empty, test_size=0.2, stratify_by_column=["label"])
    assert excinfo.value.parameter == "stratify_by_column"
    with pytest.raises(InvalidSplitError):
        train_test_split(empty, test_size=1.5)

    parts = train_test_split(empty, test_size=0.2, stratify_by_column="label", seed=1)
    assert parts["train"].num_items == parts["test"].num_items == 0
