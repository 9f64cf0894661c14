"""
reprodata — reproducible, content-addressed dataset transformations.
"""

__version__ = "0.3.0"
__author__ = "reprodata"

from reprodata.core.dataset import Dataset
from reprodata.core.config import CacheConfig, DEFAULT_CONFIG
from reprodata.core.store import TransformCache

__all__ = ["Dataset", "CacheConfig", "DEFAULT_CONFIG", "TransformCache", "__version__"]
