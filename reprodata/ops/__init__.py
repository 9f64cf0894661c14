"""ops sub-package — compute-once dataset transformations."""

from reprodata.ops.cached import cached_filter, cached_map

__all__ = ["cached_map", "cached_filter"]
