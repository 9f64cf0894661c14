"""
core/hashing.py
---------------
Deterministic SHA-256 fingerprinting of datasets and transformations.

A fingerprint is a 64-character lowercase hex digest.  Three kinds exist:

* **transform** fingerprints (:func:`generate`) identify an operation, its
  arguments and its options;
* **content** fingerprints (:func:`from_dataset`) identify a dataset from
  its size and a bounded sample of its records;
* **combined** fingerprints (:func:`combine`) chain the two, giving every
  cached result a fingerprint that later operations can build on.

Every value is reduced to a canonical, JSON-compatible form before hashing
so that the digest is stable across processes, hosts and time.
"""

from __future__ import annotations

import datetime
import functools
import hashlib
import inspect
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

#: Number of leading and trailing records sampled by :func:`from_dataset`.
SAMPLE_SIZE = 10

#: Options that steer caching itself and never influence the result.
META_OPTIONS = frozenset({"new_fingerprint", "cache_file_name"})


def _sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def _function_arity(func: Any) -> Optional[int]:
    try:
        return len(inspect.signature(func).parameters)
    except (TypeError, ValueError):
        # Some builtins expose no signature
        return None


def _describe_callable(func: Any) -> Dict[str, Any]:
    """
    Reduce a callable to ``{type, module, name, arity}``.

    Captured closure state is deliberately not part of the descriptor:
    two closures built at the same definition site share a fingerprint.
    Pass ``new_fingerprint`` to a cached operation to disambiguate them.
    """
    if isinstance(func, functools.partial):
        return {
            "type": "partial",
            "func": _describe_callable(func.func),
            "args": [canonicalize(a) for a in func.args],
            "keywords": canonicalize(func.keywords or {}),
        }

    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if name is None:
        name = type(func).__qualname__
    return {
        "type": "function",
        "module": getattr(func, "__module__", None),
        "name": name,
        "arity": _function_arity(func),
    }


def _mapping_key(key: Any) -> str:
    """String keys pass through; other keys are prefixed with their type."""
    if isinstance(key, str):
        return key
    # {1: x} and {"1": x} must not serialise identically
    canonical = canonicalize(key)
    return f"{type(canonical).__name__}:{_canonical_json(canonical)}"


def canonicalize(value: Any) -> Any:
    """
    Convert *value* into a JSON-serialisable structure with a stable layout.

    Mappings get string keys (non-string keys tagged with their type,
    sorted on serialisation), sequences become lists, sets are sorted,
    numpy values become Python values, and anything without a canonical
    form falls back to ``str(value)``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return canonicalize(value.tolist())
    if isinstance(value, Mapping):
        return {_mapping_key(k): canonicalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(v) for v in value]
        return sorted(items, key=_canonical_json)
    if isinstance(value, (bytes, bytearray)):
        return {"bytes": bytes(value).hex()}
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if callable(value):
        return _describe_callable(value)
    return str(value)


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def _hash_canonical(value: Any) -> str:
    return _sha256_hex(_canonical_json(canonicalize(value)).encode("utf-8"))


def normalize_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop caching meta-controls and sort the remaining options by key."""
    if not options:
        return {}
    return {k: options[k] for k in sorted(options) if k not in META_OPTIONS}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate(
    operation: str,
    args: Sequence[Any] = (),
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Compute the fingerprint of an operation applied with *args* and *options*.

    The hashed record is ``{operation, args, options, lib_version}``; the
    library version is included so that an upgrade invalidates old results.

    Args:
        operation: Operation name, e.g. ``"map"`` or ``"filter"``.
        args:      Positional arguments.  Callables are reduced to a
                   ``{module, name, arity}`` descriptor.
        options:   Keyword options.  ``new_fingerprint`` and
                   ``cache_file_name`` are ignored.

    Returns:
        A 64-character hexadecimal SHA-256 digest string.

    Example::

        fp = generate("map", [str.upper], {"batched": True})
        # fp == generate("map", [str.upper], {"batched": True})  # always True
    """
    from reprodata import __version__

    record = {
        "operation": str(operation),
        "args": list(args),
        "options": normalize_options(options),
        "lib_version": __version__,
    }
    return _hash_canonical(record)


def sample_records(records: Sequence[Any], k: int = SAMPLE_SIZE) -> List[Any]:
    """Return the first *k* and last *k* records, or all of them if ``len <= 2k``."""
    if len(records) <= 2 * k:
        return list(records)
    return list(records[:k]) + list(records[-k:])


def fingerprint_records(records: Sequence[Any]) -> str:
    """
    Compute the content fingerprint of a record sequence.

    Only the item count and :func:`sample_records` are hashed, so the cost
    is bounded regardless of size.  Differences confined to the middle of a
    large sequence are invisible to this fingerprint.
    """
    return _hash_canonical({"count": len(records), "sample": sample_records(records)})


def from_dataset(dataset: Any) -> str:
    """
    Compute the content fingerprint of a :class:`~reprodata.core.dataset.Dataset`.

    Args:
        dataset: Any object exposing an ordered ``records`` sequence.

    Returns:
        A 64-character hexadecimal SHA-256 digest string.
    """
    return fingerprint_records(dataset.records)


def combine(first: str, second: str) -> str:
    """
    Chain two fingerprints into one.

    Order matters: ``combine(a, b) != combine(b, a)`` whenever ``a != b``.
    """
    return _sha256_hex(f"{first}{second}".encode("utf-8"))


def combine_all(fingerprints: Iterable[str]) -> str:
    """
    Left-fold :func:`combine` over *fingerprints*.

    An empty input maps to ``generate("empty")``; a single fingerprint is
    returned unchanged.
    """
    items = list(fingerprints)
    if not items:
        return generate("empty")
    return functools.reduce(combine, items)
