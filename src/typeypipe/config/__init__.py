"""Configuration: Pydantic models for typeypipe settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from typeypipe.exceptions import ConfigError


def _default_shell() -> str:
    return os.environ.get("SHELL") or "/bin/bash"


class ShellConfig(BaseModel):
    """Shell and terminal geometry for a PTY session."""

    shell_path: str = Field(default_factory=_default_shell)
    cols: int = Field(default=80, gt=0, le=65535)
    rows: int = Field(default=24, gt=0, le=65535)


class TypeyPipeConfig(BaseModel):
    """Top-level typeypipe configuration."""

    shell: ShellConfig = Field(
        default_factory=lambda: ShellConfig(shell_path="/bin/bash", cols=120, rows=30)
    )
    input_timeout: int = Field(
        default=30,
        ge=0,
        description="Seconds to wait after user input before resuming queue processing",
    )
    queue_name: str | None = Field(
        default=None,
        description="Queue directory name under base_dir (default: process ID)",
    )
    base_dir: str = Field(
        default=".tp", description="Directory holding queue directories and logs"
    )
    quiet: bool = Field(default=False, description="Suppress startup messages")
    poll_interval_ms: int = Field(
        default=1000, gt=0, description="Tick for the standalone batch processor"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> TypeyPipeConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            TYPEYPIPE_SHELL          - Shell to spawn
            TYPEYPIPE_INPUT_TIMEOUT  - Idle seconds before the queue resumes
            TYPEYPIPE_QUEUE_DIR      - Queue directory name
            TYPEYPIPE_BASE_DIR       - Base directory for queues and logs
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path:
            if not os.path.exists(config_path):
                raise ConfigError(f"Config file not found: {config_path}")
            try:
                with open(config_path, encoding="utf-8") as f:
                    config_data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

        shell = config_data.get("shell", {})

        env_shell = os.environ.get("TYPEYPIPE_SHELL")
        if env_shell:
            shell["shell_path"] = env_shell

        if shell:
            shell.setdefault("cols", 120)
            shell.setdefault("rows", 30)
            config_data["shell"] = shell

        env_timeout = os.environ.get("TYPEYPIPE_INPUT_TIMEOUT")
        if env_timeout:
            config_data["input_timeout"] = env_timeout

        env_queue = os.environ.get("TYPEYPIPE_QUEUE_DIR")
        if env_queue:
            config_data["queue_name"] = env_queue

        env_base = os.environ.get("TYPEYPIPE_BASE_DIR")
        if env_base:
            config_data["base_dir"] = env_base

        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
