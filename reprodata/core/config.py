"""
core/config.py
--------------
Centralized configuration management for the reprodata transform cache.

Configuration is read-only from the point of view of the caching core: a
:class:`CacheConfig` is built once (defaults, environment, or a YAML file)
and handed to :class:`~reprodata.core.store.TransformCache` and the cached
operations.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

import yaml

logger = logging.getLogger(__name__)

#: Environment variable that forces caching off regardless of configuration.
OFFLINE_ENV_VAR = "REPRODATA_OFFLINE"

_BYTES_PER_GB = 1024 ** 3

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def offline_mode() -> bool:
    """Return ``True`` when the process runs in offline mode."""
    return os.environ.get(OFFLINE_ENV_VAR) == "1"


def _parse_bool(raw: str, default: bool) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    logger.warning("Ignoring unrecognised boolean value %r.", raw)
    return default


@dataclass
class CacheConfig:
    """
    Configuration object for the transform cache.

    Attributes:
        caching_enabled:    Master switch for cached operations.
        cache_dir:          Root directory for all cached data.  ``~`` is
                            expanded lazily.
        max_cache_size_gb:  Size budget used by :meth:`TransformCache.cleanup`.
        max_cache_age_days: Age budget used by :meth:`TransformCache.cleanup`.
        offline:            Force caching off, like ``REPRODATA_OFFLINE=1``.
    """

    caching_enabled: bool = True
    cache_dir: Union[str, Path] = "~/.reprodata"
    max_cache_size_gb: float = 10
    max_cache_age_days: int = 30
    offline: bool = False

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def is_caching_enabled(self) -> bool:
        """Caching is on only when enabled *and* not running offline."""
        return bool(self.caching_enabled) and not (self.offline or offline_mode())

    @property
    def root_dir(self) -> Path:
        """The expanded, absolute cache root."""
        return Path(self.cache_dir).expanduser().resolve()

    @property
    def transform_cache_dir(self) -> Path:
        """Directory holding transform blobs and the manifest."""
        return self.root_dir / "transforms"

    @property
    def max_cache_size_bytes(self) -> int:
        return int(self.max_cache_size_gb * _BYTES_PER_GB)

    def validate(self) -> None:
        """Validate configuration values are within acceptable ranges."""
        if self.max_cache_size_gb <= 0:
            raise ValueError("max_cache_size_gb must be positive.")
        if self.max_cache_age_days <= 0:
            raise ValueError("max_cache_age_days must be positive.")

    # ------------------------------------------------------------------
    # Alternate constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """
        Build a config from ``REPRODATA_*`` environment variables.

        Unset variables keep their defaults; unparseable numbers are logged
        and ignored.
        """
        values: Dict[str, Any] = {}
        env = os.environ

        if "REPRODATA_CACHE_DIR" in env:
            values["cache_dir"] = env["REPRODATA_CACHE_DIR"]
        if "REPRODATA_CACHING_ENABLED" in env:
            values["caching_enabled"] = _parse_bool(
                env["REPRODATA_CACHING_ENABLED"], cls.caching_enabled
            )

        numeric = {
            "REPRODATA_MAX_CACHE_SIZE_GB": ("max_cache_size_gb", float),
            "REPRODATA_MAX_CACHE_AGE_DAYS": ("max_cache_age_days", int),
        }
        for var, (attr, cast) in numeric.items():
            if var not in env:
                continue
            try:
                values[attr] = cast(env[var])
            except ValueError:
                logger.warning("Ignoring invalid %s=%r.", var, env[var])

        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CacheConfig":
        """
        Load a config from a YAML file.

        Expected YAML structure::

            version: 1
            cache:
              caching_enabled: true
              cache_dir: ~/.reprodata
              max_cache_size_gb: 10
              max_cache_age_days: 30

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError:        If the file is not a valid config document.
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse config YAML: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must be a YAML dictionary.")
        if "version" not in data:
            raise ValueError("Config file missing top-level 'version' key.")

        section = data.get("cache", {})
        if not isinstance(section, dict):
            raise ValueError("Config file has an invalid 'cache' section.")

        known = {"caching_enabled", "cache_dir", "max_cache_size_gb", "max_cache_age_days", "offline"}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown cache config keys: {', '.join(unknown)}")

        config = cls(**section)
        config.validate()
        return config


# Singleton default config; callers may override by passing their own instance.
DEFAULT_CONFIG = CacheConfig()
