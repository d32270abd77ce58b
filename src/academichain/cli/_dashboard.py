"""academichain dashboard: semester statistics across course projects."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from academichain.cli._common import load_config_or_exit
from academichain.core.config import AcademicConfig
from academichain.core.constants import ExitCode
from academichain.core.exceptions import ConfigError
from academichain.core.models import DashboardStats
from academichain.dashboard.aggregator import DashboardAggregator
from academichain.gateways.issues import IssueGateway


async def _compute(config: AcademicConfig, project_keys: list[str]) -> DashboardStats:
    async with IssueGateway.from_config(config) as issues:
        aggregator = DashboardAggregator(issues, fields=config.field_map())
        return await aggregator.compute_stats(project_keys)


def cmd_dashboard(project_keys: list[str], as_json: bool, console: Console) -> None:
    config = load_config_or_exit(console)
    keys = project_keys or config.project_keys
    if not keys:
        console.print("[yellow]No course projects configured.[/yellow]")
        return

    try:
        stats = asyncio.run(_compute(config, keys))
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    if as_json:
        click.echo(json.dumps(stats.model_dump(by_alias=True), indent=2))
        return

    table = Table(title=f"Semester dashboard ({len(keys)} projects)")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total assignments", str(stats.total_assignments))
    table.add_row("Pending submissions", str(stats.pending_submissions))
    table.add_row("Graded assignments", str(stats.graded_assignments))
    table.add_row("Active projects", str(stats.active_projects))
    table.add_row("Pending approvals", str(stats.pending_approvals))
    console.print(table)

    if stats.failed_projects:
        console.print(
            f"[yellow]Warning:[/yellow] could not query {', '.join(stats.failed_projects)}"
        )
