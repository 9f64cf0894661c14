"""
core/dataset.py
---------------
Central Dataset abstraction — an ordered sequence of records plus metadata.

The caching core treats a dataset as opaque apart from its records: record
values may be anything picklable.  A dataset's fingerprint is absent until
it is computed from content or stamped by a cached operation, and it is
dropped by every uncached mutation.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import pandas as pd

from reprodata.core.hashing import from_dataset


def _check_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}.")


def contiguous_bounds(total: int, parts: int) -> List[Tuple[int, int]]:
    """
    Return ``(start, stop)`` bounds cutting ``range(total)`` into *parts*
    contiguous runs whose lengths differ by at most one, longer runs first.
    """
    size, remainder = divmod(total, parts)
    bounds = []
    start = 0
    for i in range(parts):
        stop = start + size + (1 if i < remainder else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


class Dataset:
    """
    Ordered records with metadata and an optional fingerprint.

    Attributes:
        records:     List of record dicts, in order.
        metadata:    Arbitrary key/value metadata.  ``total_items`` is kept
                     in sync with ``records``.
        name:        Human-readable dataset name.
        fingerprint: 64-char hex fingerprint, or ``None`` when unknown.
    """

    def __init__(
        self,
        records: Sequence[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
        name: str = "dataset",
        fingerprint: Optional[str] = None,
    ) -> None:
        self.records: List[Dict[str, Any]] = list(records)
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.metadata["total_items"] = len(self.records)
        self.name: str = name
        self.fingerprint: Optional[str] = fingerprint

    # ------------------------------------------------------------------
    # Constructors and conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Sequence[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
        name: str = "dataset",
    ) -> "Dataset":
        return cls(records, metadata=metadata, name=name)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        metadata: Optional[Dict[str, Any]] = None,
        name: str = "dataset",
    ) -> "Dataset":
        """
        Build a dataset from a pandas DataFrame, one record per row.

        Column names are converted to strings so that records hash the same
        regardless of how the frame was labelled.
        """
        if not isinstance(df, pd.DataFrame):
            raise TypeError(
                f"Expected a pandas DataFrame, got {type(df).__name__!r}."
            )
        frame = df.rename(columns=str)
        records = frame.to_dict(orient="records")
        return cls(records, metadata=metadata, name=name)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the records as a pandas DataFrame."""
        return pd.DataFrame.from_records(self.records)

    def to_list(self) -> List[Dict[str, Any]]:
        return list(self.records)

    # ------------------------------------------------------------------
    # Fingerprints
    # ------------------------------------------------------------------

    def compute_fingerprint(self) -> str:
        """
        Compute the content fingerprint, store it, and return it.

        Returns:
            The new fingerprint string.
        """
        self.fingerprint = from_dataset(self)
        return self.fingerprint

    # ------------------------------------------------------------------
    # Uncached mutations
    # ------------------------------------------------------------------

    def with_records(
        self, records: Sequence[Dict[str, Any]], **metadata_updates: Any
    ) -> "Dataset":
        """
        Return a copy holding *records*, with the fingerprint cleared.

        Args:
            records:          The new record sequence.
            metadata_updates: Extra metadata keys to set on the copy.
        """
        metadata = dict(self.metadata)
        metadata.update(metadata_updates)
        return Dataset(records, metadata=metadata, name=self.name)

    def take(self, count: int) -> "Dataset":
        if count < 0:
            raise ValueError("count must be non-negative.")
        return self.with_records(self.records[:count])

    def skip(self, count: int) -> "Dataset":
        if count < 0:
            raise ValueError("count must be non-negative.")
        return self.with_records(self.records[count:])

    def select(self, indices: Sequence[int]) -> "Dataset":
        """Keep the records at *indices*, in the given order."""
        return self.with_records([self.records[i] for i in indices])

    def shard(
        self, num_shards: int, index: Optional[int] = None
    ) -> Union["Dataset", List["Dataset"]]:
        """
        Split the records into *num_shards* contiguous shards.

        Shard sizes differ by at most one; the first ``n % num_shards``
        shards hold the extra records.

        Args:
            num_shards: Number of shards (positive).
            index:      Return only this shard instead of the full list.

        Returns:
            A list of datasets named ``<name>_shard_<i>``, or the single
            shard at *index*.
        """
        _check_positive("num_shards", num_shards)
        shards = []
        for i, (start, stop) in enumerate(contiguous_bounds(len(self.records), num_shards)):
            shard = self.with_records(self.records[start:stop])
            shard.name = f"{self.name}_shard_{i}"
            shards.append(shard)
        if index is None:
            return shards
        if not 0 <= index < num_shards:
            raise ValueError(f"index must lie in [0, {num_shards - 1}], got {index}.")
        return shards[index]

    def batch(self, size: int) -> List["Dataset"]:
        """Chunk the records into datasets of *size* records (the last may be shorter)."""
        _check_positive("size", size)
        batches = []
        for i, start in enumerate(range(0, len(self.records), size)):
            chunk = self.with_records(self.records[start:start + size])
            chunk.name = f"{self.name}_batch_{i}"
            batches.append(chunk)
        return batches

    @classmethod
    def concat(cls, datasets: Sequence["Dataset"]) -> "Dataset":
        """
        Concatenate *datasets* in order.

        The result keeps the first dataset's name and metadata and has no
        fingerprint.
        """
        datasets = list(datasets)
        if not datasets:
            raise ValueError("concat needs at least one dataset.")
        records = [record for dataset in datasets for record in dataset.records]
        return datasets[0].with_records(records)

    # ------------------------------------------------------------------
    # Operations implemented elsewhere
    # ------------------------------------------------------------------

    def map(self, function: Callable[[Any], Any], **options: Any) -> "Dataset":
        """See :func:`reprodata.ops.cached.cached_map`."""
        from reprodata.ops.cached import cached_map

        return cached_map(self, function, **options)

    def filter(self, function: Callable[[Any], Any], **options: Any) -> "Dataset":
        """See :func:`reprodata.ops.cached.cached_filter`."""
        from reprodata.ops.cached import cached_filter

        return cached_filter(self, function, **options)

    def shuffle(self, seed: Optional[int] = None, generator: str = "numpy") -> "Dataset":
        """See :func:`reprodata.sampling.shuffle.shuffle`."""
        from reprodata.sampling.shuffle import shuffle

        return shuffle(self, seed=seed, generator=generator)

    def train_test_split(self, **options: Any) -> Dict[str, "Dataset"]:
        """See :func:`reprodata.sampling.splitting.train_test_split`."""
        from reprodata.sampling.splitting import train_test_split

        return train_test_split(self, **options)

    def sample(self, size: int = 100, **options: Any) -> "Dataset":
        """See :func:`reprodata.sampling.sampler.sample`."""
        from reprodata.sampling.sampler import sample

        return sample(self, size, **options)

    def stratified_sample(self, size: int, stratify_by_column: str, **options: Any) -> "Dataset":
        """See :func:`reprodata.sampling.sampler.stratified_sample`."""
        from reprodata.sampling.sampler import stratified_sample

        return stratified_sample(self, size, stratify_by_column, **options)

    def k_fold(self, k: int = 5, **options: Any) -> List[Dict[str, "Dataset"]]:
        """See :func:`reprodata.sampling.sampler.k_fold`."""
        from reprodata.sampling.sampler import k_fold

        return k_fold(self, k, **options)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def num_items(self) -> int:
        return len(self.records)

    @property
    def column_names(self) -> List[str]:
        """Column names of the first record (empty for an empty dataset)."""
        if not self.records:
            return []
        return list(self.records[0].keys())

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.records)

    def __getitem__(self, index: int) -> Dict[str, Any]:
        return self.records[index]

    def __repr__(self) -> str:
        fp = f"{self.fingerprint[:12]}…" if self.fingerprint else None
        return (
            f"Dataset(name={self.name!r}, items={len(self.records)}, "
            f"fingerprint={fp})"
        )
