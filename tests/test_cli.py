import json
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from reprodata import __version__
from reprodata.cli import cli
from reprodata.core.dataset import Dataset
from reprodata.core.hashing import generate
from reprodata.core.manifest import cache_key
from reprodata.core.store import TransformCache


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "REPRODATA_CACHE_DIR",
        "REPRODATA_CACHING_ENABLED",
        "REPRODATA_MAX_CACHE_SIZE_GB",
        "REPRODATA_MAX_CACHE_AGE_DAYS",
        "REPRODATA_OFFLINE",
    ):
        monkeypatch.delenv(var, raising=False)


def _populate(root, tags=("a",), age_days=None):
    cache = TransformCache(root / "transforms")
    for tag in tags:
        ds = Dataset.from_records([{"tag": tag}])
        input_fp, transform_fp = generate("input", [tag]), generate("map", [tag])
        cache.put(input_fp, transform_fp, ds)
        if age_days is not None:
            manifest_path = cache.cache_dir / "manifest.json"
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            created = datetime.now(timezone.utc) - timedelta(days=age_days)
            manifest[cache_key(input_fp, transform_fp)]["created_at"] = created.isoformat()
            manifest_path.write_text(json.dumps(manifest), encoding="utf-8")
    return cache


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"reprodata, version {__version__}" in result.output


def test_stats_json(tmp_path):
    root = tmp_path.resolve()
    _populate(root, tags=("a", "b"))

    result = CliRunner().invoke(cli, ["stats", "--cache-dir", str(root), "--output", "json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["entry_count"] == 2
    assert data["total_size_bytes"] > 0
    assert data["cache_dir"] == str(root / "transforms")


def test_stats_pretty_on_empty_cache(tmp_path):
    result = CliRunner().invoke(cli, ["stats", "--cache-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "Entries" in result.output
    assert "0 B" in result.output
    assert "enabled" in result.output


def test_stats_reads_yaml_config(tmp_path):
    root = tmp_path.resolve() / "from_yaml"
    _populate(root)
    config = tmp_path / "reprodata.yaml"
    config.write_text(yaml.dump({"version": 1, "cache": {"cache_dir": str(root)}}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["stats", "--config", str(config), "--output", "json"])

    assert result.exit_code == 0
    assert json.loads(result.output)["entry_count"] == 1


def test_invalid_config_exits_with_error(tmp_path):
    config = tmp_path / "bad.yaml"
    config.write_text(yaml.dump({"cache": {}}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["stats", "--config", str(config)])

    assert result.exit_code == 1
    assert "Invalid config" in result.output


def test_cleanup_removes_expired_entries(tmp_path):
    root = tmp_path.resolve()
    _populate(root, tags=("old",), age_days=45)
    _populate(root, tags=("new",))

    result = CliRunner().invoke(cli, ["cleanup", "--cache-dir", str(root), "--max-age-days", "30"])

    assert result.exit_code == 0
    assert "Removed 1 cache entry." in result.output
    assert TransformCache(root / "transforms").stats()["entry_count"] == 1


def test_cleanup_rejects_negative_budget(tmp_path):
    result = CliRunner().invoke(cli, ["cleanup", "--cache-dir", str(tmp_path), "--max-age-days", "-1"])
    assert result.exit_code != 0


def test_clear_with_yes(tmp_path):
    root = tmp_path.resolve()
    _populate(root, tags=("a", "b"))

    result = CliRunner().invoke(cli, ["clear", "--cache-dir", str(root), "--yes"])

    assert result.exit_code == 0
    assert "Transform cache cleared" in result.output
    assert TransformCache(root / "transforms").stats()["entry_count"] == 0


def test_clear_aborts_without_confirmation(tmp_path):
    root = tmp_path.resolve()
    _populate(root)

    result = CliRunner().invoke(cli, ["clear", "--cache-dir", str(root)], input="n\n")

    assert result.exit_code == 1
    assert TransformCache(root / "transforms").stats()["entry_count"] == 1


def test_permutation_matches_numpy():
    result = CliRunner().invoke(cli, ["permutation", "10", "--seed", "42"])
    assert result.exit_code == 0
    expected = [int(i) for i in np.random.default_rng(42).permutation(10)]
    assert [int(i) for i in result.output.split()] == expected


def test_permutation_python_generator():
    result = CliRunner().invoke(cli, ["permutation", "8", "--seed", "1", "--generator", "python"])
    assert result.exit_code == 0
    assert sorted(int(i) for i in result.output.split()) == list(range(8))


def test_permutation_requires_seed():
    result = CliRunner().invoke(cli, ["permutation", "5"])
    assert result.exit_code != 0


def test_fingerprint_of_csv(tmp_path):
    csv_file = tmp_path / "data.csv"
    csv_file.write_text("a,b\n1,x\n2,y\n3,z\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["fingerprint", str(csv_file)])

    assert result.exit_code == 0
    expected = Dataset.from_dataframe(pd.read_csv(csv_file)).compute_fingerprint()
    assert result.output.strip() == expected


def test_fingerprint_changes_with_content(tmp_path):
    first = tmp_path / "first.csv"
    second = tmp_path / "second.csv"
    first.write_text("a\n1\n2\n", encoding="utf-8")
    second.write_text("a\n1\n3\n", encoding="utf-8")

    runner = CliRunner()
    out_first = runner.invoke(cli, ["fingerprint", str(first)]).output.strip()
    out_second = runner.invoke(cli, ["fingerprint", str(second)]).output.strip()
    assert out_first != out_second
