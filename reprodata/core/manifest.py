"""
core/manifest.py
----------------
Manifest records for the transform cache.

The manifest is a single JSON object mapping cache keys to
:class:`CacheEntry` dicts.  It is the only source of truth for eviction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

#: Hex characters kept from each fingerprint when building a cache key.
KEY_PREFIX_LENGTH = 16

KEY_SEPARATOR = "_"


def cache_key(input_fingerprint: str, transform_fingerprint: str) -> str:
    """
    Build the composite cache key ``<16 hex>_<16 hex>``.

    Full fingerprints are kept in the manifest and inside each blob.
    """
    return (
        f"{input_fingerprint[:KEY_PREFIX_LENGTH]}"
        f"{KEY_SEPARATOR}"
        f"{transform_fingerprint[:KEY_PREFIX_LENGTH]}"
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """
    Manifest record for one cached transformation result.

    Attributes:
        input_fingerprint:     Full fingerprint of the input dataset.
        transform_fingerprint: Full fingerprint of the transformation.
        created_at:            UTC timestamp of the write.
        num_items:             Number of records in the cached dataset.
        size_bytes:            Size of the blob on disk.
    """

    input_fingerprint: str
    transform_fingerprint: str
    created_at: datetime
    num_items: int
    size_bytes: int

    @property
    def key(self) -> str:
        return cache_key(self.input_fingerprint, self.transform_fingerprint)

    def is_older_than(self, cutoff: datetime) -> bool:
        return self.created_at < cutoff

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the on-disk manifest layout."""
        return {
            "created_at": self.created_at.isoformat(),
            "input_fingerprint": self.input_fingerprint,
            "transform_fingerprint": self.transform_fingerprint,
            "num_items": self.num_items,
            "size_bytes": self.size_bytes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """
        Reconstruct an entry from its manifest dict.

        Raises:
            KeyError:   If a required key is missing.
            ValueError: If ``created_at`` is not an ISO-8601 timestamp.
        """
        return cls(
            input_fingerprint=str(data["input_fingerprint"]),
            transform_fingerprint=str(data["transform_fingerprint"]),
            created_at=parse_timestamp(data["created_at"]),
            num_items=int(data.get("num_items", 0)),
            size_bytes=int(data.get("size_bytes", 0)),
        )


def parse_timestamp(raw: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(raw, str):
        raise ValueError(f"Invalid timestamp: {raw!r}")
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
