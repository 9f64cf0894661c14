"""core sub-package — Dataset, configuration, fingerprinting, and the transform cache."""

from reprodata.core.dataset import Dataset
from reprodata.core.config import CacheConfig, DEFAULT_CONFIG
from reprodata.core.hashing import combine, combine_all, from_dataset, generate
from reprodata.core.manifest import CacheEntry
from reprodata.core.store import CacheWriteError, TransformCache

__all__ = [
    "Dataset",
    "CacheConfig",
    "DEFAULT_CONFIG",
    "generate",
    "from_dataset",
    "combine",
    "combine_all",
    "CacheEntry",
    "TransformCache",
    "CacheWriteError",
]
