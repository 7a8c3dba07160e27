"""Tests for the configuration management subsystem."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_oracle.config import Config, RefreshPolicy


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with sensible defaults."""
    conf = Config()
    assert conf.core.git_path == "git"
    assert conf.history.max_commit_history == 25
    assert conf.history.show_relative_dates is True
    assert conf.sync.fetch_interval == 300  # Default 5 mins
    assert conf.sync.debounce_window == 1.0
    assert conf.sync.cache_ttl == 2.0
    assert conf.sync.refresh_policy is RefreshPolicy.ON_CHANGE


def test_config_load_merges_layers(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies the cascading merge logic (Defaults -> Global -> Local).

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    global_config_path = tmp_path / "global_config.toml"
    global_config_path.write_text(
        '[core]\ngit_path = "/opt/git/bin/git"\n'
        '[sync]\nfetch_interval = "10m"\ncache_ttl = 5\n'
    )

    local_toml = tmp_path / "oracle.toml"
    local_toml.write_text('[sync]\nfetch_interval = "30s"\n[history]\nlog_limit = 50\n')

    mocker.patch("git_oracle.config.CONFIG_FILE", global_config_path)

    conf = Config.load(repo_path=tmp_path)

    assert conf.core.git_path == "/opt/git/bin/git"  # From Global
    assert conf.sync.cache_ttl == 5.0  # From Global
    assert conf.sync.fetch_interval == 30.0  # Local overrides Global
    assert conf.history.log_limit == 50  # From Local


def test_config_load_does_not_leak_between_repos(tmp_path: Path) -> None:
    """Verifies that one repository's overrides never reach the cached global."""
    repo_a = tmp_path / "a"
    repo_b = tmp_path / "b"
    repo_a.mkdir()
    repo_b.mkdir()
    (repo_a / "oracle.toml").write_text('[sync]\nrefresh_policy = "always"\n')

    assert Config.load(repo_a).sync.refresh_policy is RefreshPolicy.ALWAYS
    assert Config.load(repo_b).sync.refresh_policy is RefreshPolicy.ON_CHANGE


def test_config_load_from_pyproject(tmp_path: Path) -> None:
    """Verifies that configuration can be loaded from pyproject.toml."""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        '[tool.git-oracle.history]\nshow_relative_dates = false\n'
        '[tool.git-oracle.sync]\ndebounce_window = "250ms"\n'
    )

    conf = Config.load(repo_path=tmp_path)

    assert conf.history.show_relative_dates is False
    assert conf.sync.debounce_window == pytest.approx(0.25)


def test_local_file_takes_precedence_over_pyproject(tmp_path: Path) -> None:
    """Verifies that oracle.toml wins when both local sources exist."""
    (tmp_path / "pyproject.toml").write_text(
        "[tool.git-oracle.history]\nmax_commit_history = 5\n"
    )
    (tmp_path / "oracle.toml").write_text("[history]\nmax_commit_history = 40\n")

    assert Config.load(repo_path=tmp_path).history.max_commit_history == 40


def test_parse_size() -> None:
    """Verifies that human-readable sizes are correctly converted to bytes."""
    from git_oracle.config import parse_size

    assert parse_size(100) == 100
    assert parse_size("100kb") == 102400
    assert parse_size("10 MB") == 10485760
    assert parse_size("1.5gb") == int(1.5 * 1024**3)

    with pytest.raises(ValueError, match=r"Invalid size format '100 bits'"):
        parse_size("100 bits")


def test_parse_time() -> None:
    """Verifies that human-readable times are correctly converted to seconds."""
    from git_oracle.config import parse_time

    assert parse_time(50) == 50
    assert parse_time("30s") == 30
    assert parse_time("500ms") == pytest.approx(0.5)
    assert parse_time("10 min") == 600
    assert parse_time("2 hrs") == 7200
    assert parse_time("1.5h") == 5400

    with pytest.raises(ValueError, match=r"Invalid time format '10 lightyears'"):
        parse_time("10 lightyears")


def test_config_invalid_keys_and_values(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that unknown keys are ignored and invalid values fallback to defaults.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        caplog (pytest.LogCaptureFixture): Pytest fixture for capturing logs.
    """
    import logging

    caplog.set_level(logging.WARNING)

    local_toml = tmp_path / "oracle.toml"
    local_toml.write_text(
        "[sync]\n"
        'fetch_interval = "fast"\n'
        'refresh_policy = "sometimes"\n'
        'fake_setting = "ignored"\n'
        "[history]\n"
        "max_commit_history = -3\n"
        "[limits]\n"
        'max_log_size = "10 gallons"\n'
    )

    conf = Config.load(repo_path=tmp_path)

    assert conf.sync.fetch_interval == 300
    assert conf.sync.refresh_policy is RefreshPolicy.ON_CHANGE
    assert conf.history.max_commit_history == 25
    assert conf.limits.max_log_size == 5242880

    assert "Unknown config keys in [sync]: fake_setting" in caplog.text
    assert "Config error in [sync].fetch_interval: Invalid time format" in caplog.text
    assert "Config error in [sync].refresh_policy" in caplog.text
    assert "Config error in [history].max_commit_history" in caplog.text
    assert "Config error in [limits].max_log_size: Invalid size format" in caplog.text


def test_config_syntax_error_keeps_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that a malformed TOML file is reported and otherwise ignored."""
    (tmp_path / "oracle.toml").write_text("[sync\nfetch_interval = 1\n")

    conf = Config.load(repo_path=tmp_path)

    assert conf.sync.fetch_interval == 300
    assert "Config syntax error" in caplog.text
