"""Shared helpers for CLI commands."""

from __future__ import annotations

from rich.console import Console

from academichain.core.config import AcademicConfig, load_config
from academichain.core.constants import ExitCode
from academichain.core.exceptions import ConfigError


def load_config_or_exit(console: Console) -> AcademicConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc
