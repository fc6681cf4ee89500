"""Tests for config persistence and environment overrides."""

import json

import pytest

from issuemap.config import IssueMapConfig, load_config, save_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DIR", "FANOUT_THRESHOLD", "TOP_N", "LOG_LEVEL", "DEFAULT_AUTHOR"):
        monkeypatch.delenv(f"ISSUEMAP_{name}", raising=False)


def test_defaults(tmp_path):
    config = load_config(tmp_path / ".issuemap")
    assert config.root_dir == tmp_path / ".issuemap"
    assert config.fanout_threshold == 5
    assert config.top_n == 5
    assert config.log_level == "WARNING"


def test_save_and_load(tmp_path):
    root = tmp_path / ".issuemap"
    path = save_config(IssueMapConfig(root_dir=root, fanout_threshold=8, default_author="alice"))
    assert path == root / "config.json"
    assert "root_dir" not in json.loads(path.read_text())

    loaded = load_config(root)
    assert loaded.fanout_threshold == 8
    assert loaded.default_author == "alice"


def test_env_overrides_file(tmp_path, monkeypatch):
    root = tmp_path / ".issuemap"
    save_config(IssueMapConfig(root_dir=root, top_n=3))
    monkeypatch.setenv("ISSUEMAP_TOP_N", "10")
    monkeypatch.setenv("ISSUEMAP_LOG_LEVEL", "debug")
    config = load_config(root)
    assert config.top_n == 10
    assert config.log_level == "DEBUG"


def test_env_dir_override(tmp_path, monkeypatch):
    monkeypatch.setenv("ISSUEMAP_DIR", str(tmp_path / "elsewhere"))
    assert load_config(tmp_path / ".issuemap").root_dir == tmp_path / "elsewhere"


def test_invalid_values_ignored(tmp_path, monkeypatch):
    root = tmp_path / ".issuemap"
    root.mkdir()
    (root / "config.json").write_text(json.dumps({"fanout_threshold": "many", "unknown": 1}))
    monkeypatch.setenv("ISSUEMAP_TOP_N", "-2")
    config = load_config(root)
    assert config.fanout_threshold == 5
    assert config.top_n == 5


def test_corrupt_file_ignored(tmp_path):
    root = tmp_path / ".issuemap"
    root.mkdir()
    (root / "config.json").write_text("{oops")
    assert load_config(root).top_n == 5
