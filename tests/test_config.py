"""Tests for typeypipe.config (ShellConfig, TypeyPipeConfig)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from typeypipe.config import ShellConfig, TypeyPipeConfig
from typeypipe.exceptions import ConfigError

_ENV_VARS = (
    "TYPEYPIPE_SHELL",
    "TYPEYPIPE_INPUT_TIMEOUT",
    "TYPEYPIPE_QUEUE_DIR",
    "TYPEYPIPE_BASE_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # Keep any .env in the real working directory out of the way.
    monkeypatch.chdir(tmp_path)


class TestShellConfig:
    def test_shell_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert ShellConfig().shell_path == "/bin/zsh"

    def test_shell_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SHELL", raising=False)
        assert ShellConfig().shell_path == "/bin/bash"

    def test_default_size(self) -> None:
        config = ShellConfig(shell_path="/bin/sh")
        assert (config.cols, config.rows) == (80, 24)

    def test_rejects_zero_size(self) -> None:
        with pytest.raises(ValueError):
            ShellConfig(shell_path="/bin/sh", cols=0, rows=24)


class TestTypeyPipeConfig:
    def test_defaults(self) -> None:
        config = TypeyPipeConfig.load()
        assert config.shell.shell_path == "/bin/bash"
        assert (config.shell.cols, config.shell.rows) == (120, 30)
        assert config.input_timeout == 30
        assert config.queue_name is None
        assert config.base_dir == ".tp"
        assert config.quiet is False

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TYPEYPIPE_SHELL", "/bin/sh")
        monkeypatch.setenv("TYPEYPIPE_INPUT_TIMEOUT", "5")
        monkeypatch.setenv("TYPEYPIPE_QUEUE_DIR", "agent")
        monkeypatch.setenv("TYPEYPIPE_BASE_DIR", "/tmp/tp")
        config = TypeyPipeConfig.load()
        assert config.shell.shell_path == "/bin/sh"
        assert config.shell.cols == 120
        assert config.input_timeout == 5
        assert config.queue_name == "agent"
        assert config.base_dir == "/tmp/tp"

    def test_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({"shell": {"shell_path": "/bin/dash", "cols": 100}, "input_timeout": 10})
        )
        config = TypeyPipeConfig.load(str(path))
        assert config.shell.shell_path == "/bin/dash"
        assert config.shell.cols == 100
        assert config.shell.rows == 30
        assert config.input_timeout == 10

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"input_timeout": 10}))
        monkeypatch.setenv("TYPEYPIPE_INPUT_TIMEOUT", "3")
        assert TypeyPipeConfig.load(str(path)).input_timeout == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            TypeyPipeConfig.load(str(tmp_path / "nope.json"))

    def test_malformed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            TypeyPipeConfig.load(str(path))

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TYPEYPIPE_INPUT_TIMEOUT", "soon")
        with pytest.raises(ConfigError):
            TypeyPipeConfig.load()
