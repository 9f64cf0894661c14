"""
ops/cached.py
-------------
Compute-once ``map`` and ``filter`` over datasets.

A cached operation derives two fingerprints, one for the input dataset and
one for the operation (kind, function identity and options), and asks the
:class:`~reprodata.core.store.TransformCache` for a previously computed
result.  On a miss the function runs, the result is stamped with the
combined fingerprint and stored; on a hit the stored result is returned
with that same fingerprint, so repeated calls chain identically.

Caller-supplied functions must be pure: a hit is only correct if recomputing
would have produced an equal result.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from reprodata.core import hashing
from reprodata.core.config import CacheConfig, DEFAULT_CONFIG
from reprodata.core.dataset import Dataset
from reprodata.core.store import CacheWriteError, TransformCache

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

Records = List[Dict[str, Any]]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _check_function(function: Callable[..., Any]) -> None:
    """Ensure *function* is callable with exactly one positional argument."""
    if not callable(function):
        raise TypeError(f"Expected a callable, got {type(function).__name__!r}.")
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return  # builtins without a signature are trusted
    try:
        signature.bind(None)
    except TypeError as exc:
        raise TypeError(
            f"{getattr(function, '__qualname__', function)!r} must accept exactly one "
            f"positional argument: {exc}"
        ) from exc


def _check_batch_size(batch_size: int) -> None:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}.")


def _chunks(records: Sequence[Any], size: int):
    for start in range(0, len(records), size):
        yield list(records[start:start + size])


# ---------------------------------------------------------------------------
# Operation bodies
# ---------------------------------------------------------------------------

def _apply_map(records: Records, function, batched: bool, batch_size: int) -> Records:
    if not batched:
        return [function(record) for record in records]
    result: Records = []
    for chunk in _chunks(records, batch_size):
        result.extend(function(chunk))
    return result


def _apply_filter(records: Records, function, batched: bool, batch_size: int) -> Records:
    if not batched:
        return [record for record in records if function(record)]
    result: Records = []
    for chunk in _chunks(records, batch_size):
        mask = list(function(chunk))
        if len(mask) != len(chunk):
            raise ValueError(
                f"Batched filter returned {len(mask)} flags for a batch of {len(chunk)} records."
            )
        result.extend(record for record, keep in zip(chunk, mask) if keep)
    return result


_OPERATIONS = {"map": _apply_map, "filter": _apply_filter}


# ---------------------------------------------------------------------------
# Cached execution
# ---------------------------------------------------------------------------

def _run_cached(
    kind: str,
    dataset: Dataset,
    function: Callable[..., Any],
    batched: bool,
    batch_size: int,
    cache: Optional[TransformCache],
    config: Optional[CacheConfig],
    load_from_cache_file: bool,
    new_fingerprint: Optional[str],
) -> Dataset:
    _check_function(function)
    _check_batch_size(batch_size)
    apply = _OPERATIONS[kind]
    cfg = config or (cache.config if cache is not None else DEFAULT_CONFIG)

    if not load_from_cache_file or not cfg.is_caching_enabled():
        result = dataset.with_records(apply(dataset.records, function, batched, batch_size))
        result.fingerprint = new_fingerprint
        return result

    store = cache if cache is not None else TransformCache.from_config(cfg)
    input_fp = dataset.fingerprint or hashing.from_dataset(dataset)
    transform_fp = hashing.generate(
        kind,
        [function],
        {"batched": batched, "batch_size": batch_size, "new_fingerprint": new_fingerprint},
    )
    result_fp = new_fingerprint or hashing.combine(input_fp, transform_fp)

    cached = store.get(input_fp, transform_fp)
    if cached is not None:
        cached.fingerprint = result_fp
        return cached

    result = dataset.with_records(apply(dataset.records, function, batched, batch_size))
    result.fingerprint = result_fp
    try:
        store.put(input_fp, transform_fp, result)
    except (OSError, CacheWriteError) as exc:
        logger.warning("Could not cache %s result, returning it uncached: %s", kind, exc)
    return result


def cached_map(
    dataset: Dataset,
    function: Callable[[Any], Any],
    *,
    batched: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cache: Optional[TransformCache] = None,
    config: Optional[CacheConfig] = None,
    load_from_cache_file: bool = True,
    new_fingerprint: Optional[str] = None,
) -> Dataset:
    """
    Apply *function* to every record, computing each distinct result once.

    Args:
        dataset:              Input dataset.
        function:             ``record -> record``, or with ``batched=True``
                              ``list[record] -> list[record]`` (the outputs of
                              all batches are concatenated).
        batched:              Call *function* once per chunk of records.
        batch_size:           Chunk size for batched mode.
        cache:                Transform cache handle.  Built from *config*
                              when omitted.
        config:               Caching policy; defaults to the cache's config
                              or :data:`~reprodata.core.config.DEFAULT_CONFIG`.
        load_from_cache_file: ``False`` bypasses the cache entirely.
        new_fingerprint:      Fingerprint to stamp on the result instead of
                              the derived one.

    Returns:
        The mapped :class:`Dataset`.  Its fingerprint is the combined
        input/transform fingerprint (or *new_fingerprint*) when caching is
        on, and *new_fingerprint* or ``None`` otherwise.

    Raises:
        TypeError: If *function* cannot take exactly one positional argument.
        Exception: Anything *function* raises; nothing is cached in that case.
    """
    return _run_cached(
        "map", dataset, function, batched, batch_size,
        cache, config, load_from_cache_file, new_fingerprint,
    )


def cached_filter(
    dataset: Dataset,
    function: Callable[[Any], Any],
    *,
    batched: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cache: Optional[TransformCache] = None,
    config: Optional[CacheConfig] = None,
    load_from_cache_file: bool = True,
    new_fingerprint: Optional[str] = None,
) -> Dataset:
    """
    Keep the records for which *function* is truthy, computing each distinct
    result once.

    With ``batched=True`` *function* receives a list of records and must
    return one flag per record.  See :func:`cached_map` for the remaining
    options.
    """
    return _run_cached(
        "filter", dataset, function, batched, batch_size,
        cache, config, load_from_cache_file, new_fingerprint,
    )
