"""
cli.py
------
Command-line interface for the reprodata SDK.

Entry point: ``reprodata``

Commands
--------
* ``stats``        — show transform-cache statistics.
* ``cleanup``      — evict expired and over-budget cache entries.
* ``clear``        — wipe the transform cache.
* ``fingerprint``  — print the content fingerprint of a CSV file.
* ``permutation``  — print the seeded shuffle order of ``range(N)``.

Every command accepts ``--config`` (YAML) and ``--cache-dir`` overrides;
without ``--config`` the ``REPRODATA_*`` environment variables are used.
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click
import pandas as pd

from reprodata import __version__
from reprodata.core.config import CacheConfig
from reprodata.core.dataset import Dataset
from reprodata.core.store import TransformCache
from reprodata.sampling.shuffle import GENERATORS, shuffled_indices


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _format_bytes(size: int) -> str:
    """Render a byte count with a binary unit suffix."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KiB", "MiB"):
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} GiB"


def _load_config(config_path: Optional[str], cache_dir: Optional[str]) -> CacheConfig:
    try:
        config = CacheConfig.from_yaml(config_path) if config_path else CacheConfig.from_env()
    except (FileNotFoundError, ValueError) as exc:
        click.echo(click.style(f"\n✗  Invalid config: {exc}", fg="red"), err=True)
        sys.exit(1)
    if cache_dir:
        config.cache_dir = cache_dir
    return config


def _cache_options(func):
    func = click.option(
        "--cache-dir", type=click.Path(file_okay=False), default=None,
        help="Cache root directory (overrides the config).",
    )(func)
    func = click.option(
        "--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
        help="YAML config file.",
    )(func)
    return func


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="reprodata")
def cli():
    """reprodata — reproducible dataset transformation toolkit."""


@cli.command()
@_cache_options
@click.option(
    "--output", "output_format",
    type=click.Choice(["pretty", "json"], case_sensitive=False),
    default="pretty", show_default=True,
    help="Output format.",
)
def stats(config_path: Optional[str], cache_dir: Optional[str], output_format: str):
    """Show transform-cache statistics."""
    config = _load_config(config_path, cache_dir)
    info = TransformCache.from_config(config).stats()

    if output_format.lower() == "json":
        click.echo(json.dumps(info, indent=2))
        return

    click.echo(f"\n📦  Cache directory  {click.style(info['cache_dir'], fg='cyan')}")
    click.echo(f"   Entries          {info['entry_count']:,}")
    click.echo(f"   Total size       {_format_bytes(info['total_size_bytes'])}")
    state = "enabled" if config.is_caching_enabled() else "disabled"
    colour = "green" if config.is_caching_enabled() else "yellow"
    click.echo(f"   Caching          {click.style(state, fg=colour, bold=True)}")


@cli.command()
@_cache_options
@click.option("--max-age-days", type=float, default=None, help="Remove entries older than this.")
@click.option("--max-size-gb", type=float, default=None, help="Keep total cache size under this.")
def cleanup(
    config_path: Optional[str],
    cache_dir: Optional[str],
    max_age_days: Optional[float],
    max_size_gb: Optional[float],
):
    """Evict expired and over-budget cache entries."""
    config = _load_config(config_path, cache_dir)
    max_size_bytes = int(max_size_gb * 1024 ** 3) if max_size_gb is not None else None
    try:
        removed = TransformCache.from_config(config).cleanup(
            max_age_days=max_age_days, max_size_bytes=max_size_bytes,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    click.echo(f"🧹  Removed {removed} cache entr{'y' if removed == 1 else 'ies'}.")


@cli.command()
@_cache_options
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
def clear(config_path: Optional[str], cache_dir: Optional[str], yes: bool):
    """Delete every cached transformation result."""
    config = _load_config(config_path, cache_dir)
    cache = TransformCache.from_config(config)
    if not yes:
        click.confirm(f"Delete everything under {cache.cache_dir}?", abort=True)
    cache.clear_all()
    click.echo(click.style("✓  Transform cache cleared.", fg="green"))


@cli.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--encoding", default="utf-8-sig", show_default=True, help="CSV file encoding.")
@click.option("--delimiter", default=",", show_default=True, help="CSV column delimiter.")
def fingerprint(filepath: str, encoding: str, delimiter: str):
    """Print the content fingerprint of a CSV file."""
    try:
        df = pd.read_csv(filepath, encoding=encoding, sep=delimiter)
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        click.echo(click.style(f"\n✗  Could not load file: {exc}", fg="red"), err=True)
        sys.exit(1)
    dataset = Dataset.from_dataframe(df, name=filepath)
    click.echo(dataset.compute_fingerprint())


@cli.command()
@click.argument("n", type=click.IntRange(min=0))
@click.option("--seed", type=click.IntRange(min=0), required=True, help="Shuffle seed.")
@click.option(
    "--generator", type=click.Choice(list(GENERATORS)), default="numpy", show_default=True,
    help="Generator kind.",
)
def permutation(n: int, seed: int, generator: str):
    """Print the seeded shuffle order of range(N), space separated."""
    click.echo(" ".join(str(i) for i in shuffled_indices(n, seed=seed, generator=generator)))


if __name__ == "__main__":
    cli()
