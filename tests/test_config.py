"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import pytest

from questboard.config import load_config
from questboard.constants import parse_year


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_for_optional_keys(tmp_path):
    cfg = load_config(_write(tmp_path, "app_name: Questboard\napi_port: 8000\n"))
    assert cfg.app_name == "Questboard"
    assert cfg.api_port == 8000
    assert cfg.leaderboard_limit == 100
    assert cfg.score_pass_timeout_seconds == 30.0
    assert cfg.stale_after_seconds == 86400


def test_overrides(tmp_path):
    cfg = load_config(_write(tmp_path, (
        "app_name: QB\napi_port: 9000\nleaderboard_limit: 25\n"
        "fetch_concurrency: 0\nscore_refresh_minutes: 60\n"
    )))
    assert cfg.leaderboard_limit == 25
    assert cfg.fetch_concurrency == 1
    assert cfg.score_refresh_minutes == 60


def test_config_path_env(tmp_path, monkeypatch):
    path = _write(tmp_path, "app_name: FromEnv\napi_port: 1\n")
    monkeypatch.setenv("CONFIG_PATH", str(path))
    assert load_config().app_name == "FromEnv"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_missing_required_key(tmp_path):
    with pytest.raises(KeyError):
        load_config(_write(tmp_path, "app_name: Questboard\n"))


@pytest.mark.parametrize(
    "raw,expected",
    [("1", 1), ("4", 4), (3, 3), ("0", None), ("5", None), ("two", None), ("", None),
     (None, None)],
)
def test_parse_year(raw, expected):
    assert parse_year(raw) == expected
