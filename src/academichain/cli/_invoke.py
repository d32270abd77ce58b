"""academichain invoke: run a resolver operation from the shell."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console

from academichain.api.resolver import build_resolver
from academichain.cli._common import load_config_or_exit
from academichain.core.constants import ExitCode


def cmd_invoke(operation: str, payload_json: str, console: Console) -> None:
    try:
        payload = json.loads(payload_json or "{}")
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] --payload is not valid JSON: {exc}")
        raise SystemExit(ExitCode.ERROR) from exc

    config = load_config_or_exit(console)
    resolver = build_resolver(config)
    result = asyncio.run(resolver.invoke(operation, payload))
    click.echo(json.dumps(result, indent=2))
    if "error" in result:
        raise SystemExit(ExitCode.ERROR)
