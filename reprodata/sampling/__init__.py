"""sampling sub-package — seeded shuffling, samples, folds and stratified train/test splits."""

from reprodata.sampling.shuffle import shuffle, shuffle_records, shuffled_indices
from reprodata.sampling.splitting import (
    InvalidSplitError,
    allocate_test_counts,
    resolve_sizes,
    train_test_split,
)
from reprodata.sampling.sampler import k_fold, sample, stratified_sample

__all__ = [
    "shuffle",
    "shuffle_records",
    "shuffled_indices",
    "InvalidSplitError",
    "allocate_test_counts",
    "resolve_sizes",
    "train_test_split",
    "sample",
    "stratified_sample",
    "k_fold",
]
