"""
core/store.py
-------------
Local, file-based transform cache for the reprodata SDK.

Results of cached operations are pickled under ``<cache_dir>/`` with one
blob per ``(input fingerprint, transform fingerprint)`` pair, indexed by a
JSON manifest.  The cache is best-effort: unreadable blobs and manifests
degrade to misses and an empty manifest, never to errors.

Writes use a write-to-temp-then-rename strategy so readers never observe a
half-written blob or manifest.  The blob write and the manifest update are
two separate steps; a crash between them leaves either an orphan blob
(reclaimed by :meth:`TransformCache.cleanup`) or a manifest entry whose
blob is missing (a miss on :meth:`TransformCache.get`).
"""

from __future__ import annotations

import json
import logging
import os
import pickle
import shutil
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from reprodata.core.config import CacheConfig, DEFAULT_CONFIG
from reprodata.core.dataset import Dataset
from reprodata.core.manifest import CacheEntry, cache_key, utc_now

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
BLOB_SUFFIX = ".cache"

_PAYLOAD_KEYS = ("input_fingerprint", "transform_fingerprint", "name", "records", "metadata")


class CacheWriteError(RuntimeError):
    """Raised when a dataset cannot be serialised into the cache."""


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Atomically write *data* to *path*.

    Every call gets its own temporary file (``mkstemp``), so concurrent
    writers in any thread or process never share a partially written file;
    the last ``os.replace`` wins.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)  # atomic on POSIX
    finally:
        tmp_path.unlink(missing_ok=True)


class TransformCache:
    """
    Persists and retrieves cached transformation results.

    Cache layout::

        <cache_dir>/
            manifest.json   # {cache_key: {created_at, input_fingerprint, ...}, ...}
            <key>.cache     # pickled Dataset payload

    where ``key = 16-hex(input_fp) + "_" + 16-hex(transform_fp)``.

    Args:
        cache_dir: Directory holding blobs and the manifest.  Defaults to
                   ``config.transform_cache_dir``.
        config:    Supplies the cleanup budgets.  Defaults to
                   :data:`~reprodata.core.config.DEFAULT_CONFIG`.

    Example::

        cache = TransformCache(tmp_path)
        cache.put(input_fp, transform_fp, result)
        hit = cache.get(input_fp, transform_fp)   # Dataset or None
    """

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        config: Optional[CacheConfig] = None,
    ) -> None:
        self.config: CacheConfig = config or DEFAULT_CONFIG
        self._root: Path = (
            Path(cache_dir).expanduser() if cache_dir else self.config.transform_cache_dir
        )

    @classmethod
    def from_config(cls, config: CacheConfig) -> "TransformCache":
        return cls(config=config)

    @property
    def cache_dir(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, input_fingerprint: str, transform_fingerprint: str) -> Optional[Dataset]:
        """
        Look up a cached transformation result.

        Args:
            input_fingerprint:     Fingerprint of the input dataset.
            transform_fingerprint: Fingerprint of the transformation.

        Returns:
            The cached :class:`Dataset`, or ``None`` on a miss.  Truncated,
            malformed or colliding blobs are reported as misses.
        """
        key = cache_key(input_fingerprint, transform_fingerprint)
        path = self._blob_path(key)
        if not path.exists():
            logger.debug("Cache miss for %s.", key)
            return None

        try:
            with path.open("rb") as fh:
                payload = pickle.load(fh)
            dataset = self._dataset_from_payload(payload)
        except Exception as exc:  # any unpickling failure is a miss
            logger.warning(
                "Unreadable cache blob at %s, treating as a miss. Reason: %s",
                path, exc,
            )
            return None

        if (
            payload["input_fingerprint"] != input_fingerprint
            or payload["transform_fingerprint"] != transform_fingerprint
        ):
            logger.warning(
                "Cache key collision on %s: stored fingerprints differ from the "
                "requested ones, treating as a miss.",
                key,
            )
            return None

        logger.debug("Cache hit for %s.", key)
        return dataset

    def put(
        self,
        input_fingerprint: str,
        transform_fingerprint: str,
        dataset: Dataset,
    ) -> Path:
        """
        Store a transformation result and record it in the manifest.

        Args:
            input_fingerprint:     Fingerprint of the input dataset.
            transform_fingerprint: Fingerprint of the transformation.
            dataset:               The result to cache.

        Returns:
            The :class:`~pathlib.Path` of the written blob.

        Raises:
            CacheWriteError: If the dataset cannot be pickled.
            OSError:         On filesystem failures (disk full, permissions).
        """
        key = cache_key(input_fingerprint, transform_fingerprint)
        payload = {
            "input_fingerprint": input_fingerprint,
            "transform_fingerprint": transform_fingerprint,
            "name": dataset.name,
            "records": dataset.records,
            "metadata": dataset.metadata,
        }
        try:
            data = pickle.dumps(payload, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, AttributeError, TypeError) as exc:
            raise CacheWriteError(f"Cannot serialise dataset for cache key {key}: {exc}") from exc

        self._ensure_root()
        path = self._blob_path(key)
        _atomic_write_bytes(path, data)

        entry = CacheEntry(
            input_fingerprint=input_fingerprint,
            transform_fingerprint=transform_fingerprint,
            created_at=utc_now(),
            num_items=dataset.num_items,
            size_bytes=len(data),
        )
        manifest = self._load_manifest()
        manifest[key] = entry.to_dict()
        self._save_manifest(manifest)

        logger.debug("Cached %d items under %s (%d bytes).", entry.num_items, key, entry.size_bytes)
        return path

    def cleanup(
        self,
        max_age_days: Optional[float] = None,
        max_size_bytes: Optional[int] = None,
    ) -> int:
        """
        Evict old entries, then the oldest survivors until under budget.

        Phase 1 deletes every entry created before ``now - max_age_days``
        (entries with an unreadable timestamp count as expired).  Phase 2
        deletes the oldest remaining entries while their total size exceeds
        *max_size_bytes*.  Blobs not referenced by the manifest and older
        than the age cutoff are removed as well.

        Args:
            max_age_days:   Age budget; defaults to ``config.max_cache_age_days``.
            max_size_bytes: Size budget; defaults to ``config.max_cache_size_bytes``.

        Returns:
            The total number of entries and orphan blobs removed.
        """
        if max_age_days is None:
            max_age_days = self.config.max_cache_age_days
        if max_size_bytes is None:
            max_size_bytes = self.config.max_cache_size_bytes
        if max_age_days < 0:
            raise ValueError("max_age_days must be non-negative.")
        if max_size_bytes < 0:
            raise ValueError("max_size_bytes must be non-negative.")

        manifest = self._load_manifest()
        cutoff = utc_now() - timedelta(days=max_age_days)

        expired, valid = self._partition(manifest, cutoff)
        for key in expired:
            self._remove_blob(key)

        survivors, evicted = self._evict_to_size(valid, max_size_bytes)
        for key, _ in evicted:
            self._remove_blob(key)

        surviving_keys = {key for key, _ in survivors}
        orphans = self._remove_orphans(surviving_keys, cutoff)

        self._save_manifest({key: manifest[key] for key in surviving_keys})

        removed = len(expired) + len(evicted) + orphans
        logger.debug(
            "Cache cleanup removed %d expired, %d over-budget and %d orphan blob(s).",
            len(expired), len(evicted), orphans,
        )
        return removed

    def clear_all(self) -> None:
        """Delete and recreate the cache directory."""
        shutil.rmtree(self._root, ignore_errors=True)
        self._ensure_root()

    def stats(self) -> Dict[str, Any]:
        """
        Summarise the manifest.

        Returns:
            Dict with keys ``entry_count``, ``total_size_bytes`` and
            ``cache_dir``.
        """
        manifest = self._load_manifest()
        total = 0
        for meta in manifest.values():
            try:
                total += int(meta.get("size_bytes", 0))
            except (AttributeError, TypeError, ValueError):
                continue
        return {
            "entry_count": len(manifest),
            "total_size_bytes": total,
            "cache_dir": str(self._root),
        }

    def entries(self) -> List[CacheEntry]:
        """Return the readable manifest entries, oldest first."""
        readable = []
        for meta in self._load_manifest().values():
            try:
                readable.append(CacheEntry.from_dict(meta))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping corrupt manifest entry: %s", exc)
        return sorted(readable, key=lambda e: e.created_at)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _blob_path(self, key: str) -> Path:
        return self._root / f"{key}{BLOB_SUFFIX}"

    def _manifest_path(self) -> Path:
        return self._root / MANIFEST_FILE

    def _ensure_root(self) -> None:
        """Create the cache directory (and parents) if absent."""
        self._root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _dataset_from_payload(payload: Any) -> Dataset:
        if not isinstance(payload, dict):
            raise ValueError("Root element is not a dict.")
        missing = [k for k in _PAYLOAD_KEYS if k not in payload]
        if missing:
            raise ValueError(f"Missing payload keys: {', '.join(missing)}")
        if not isinstance(payload["records"], list):
            raise ValueError("Payload 'records' is not a list.")
        return Dataset(
            payload["records"],
            metadata=payload["metadata"],
            name=payload["name"],
        )

    def _load_manifest(self) -> Dict[str, Dict[str, Any]]:
        """
        Load the manifest, returning an empty mapping if it is missing or
        corrupted.
        """
        path = self._manifest_path()
        if not path.exists():
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("Root element is not a dict.")
            return {k: v for k, v in data.items() if isinstance(v, dict)}
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning(
                "Corrupt cache manifest at %s, starting fresh. Reason: %s",
                path, exc,
            )
            return {}

    def _save_manifest(self, manifest: Dict[str, Dict[str, Any]]) -> None:
        self._ensure_root()
        text = json.dumps(manifest, indent=2, sort_keys=True, default=str)
        _atomic_write_bytes(self._manifest_path(), text.encode("utf-8"))

    @staticmethod
    def _partition(
        manifest: Dict[str, Dict[str, Any]], cutoff
    ) -> Tuple[List[str], List[Tuple[str, CacheEntry]]]:
        expired: List[str] = []
        valid: List[Tuple[str, CacheEntry]] = []
        for key, meta in manifest.items():
            try:
                entry = CacheEntry.from_dict(meta)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Expiring unreadable manifest entry %s: %s", key, exc)
                expired.append(key)
                continue
            if entry.is_older_than(cutoff):
                expired.append(key)
            else:
                valid.append((key, entry))
        return expired, valid

    @staticmethod
    def _evict_to_size(
        entries: List[Tuple[str, CacheEntry]], max_size_bytes: int
    ) -> Tuple[List[Tuple[str, CacheEntry]], List[Tuple[str, CacheEntry]]]:
        total = sum(entry.size_bytes for _, entry in entries)
        if total <= max_size_bytes:
            return entries, []

        ordered = sorted(entries, key=lambda item: item[1].created_at)
        evicted = []
        while ordered and total > max_size_bytes:
            key, entry = ordered.pop(0)
            evicted.append((key, entry))
            total -= entry.size_bytes
        return ordered, evicted

    def _remove_blob(self, key: str) -> None:
        self._blob_path(key).unlink(missing_ok=True)

    def _remove_orphans(self, known_keys, cutoff) -> int:
        if not self._root.exists():
            return 0
        removed = 0
        cutoff_ts = cutoff.timestamp()
        for path in self._root.glob(f"*{BLOB_SUFFIX}"):
            if path.stem in known_keys:
                continue
            try:
                if path.stat().st_mtime >= cutoff_ts:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        return removed

    def __repr__(self) -> str:
        return f"TransformCache(root={self._root!r})"
