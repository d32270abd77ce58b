"""academichain provision: set up a course in both remote systems."""

from __future__ import annotations

import asyncio
from typing import Any

from rich.console import Console
from rich.markup import escape

from academichain.cli._common import load_config_or_exit
from academichain.core.config import AcademicConfig
from academichain.core.constants import ExitCode
from academichain.core.exceptions import ConfigError
from academichain.gateways.issues import IssueGateway
from academichain.gateways.knowledge import KnowledgeBaseGateway
from academichain.provisioning import CourseSetup, ProvisioningReport, provision_course


async def _provision(config: AcademicConfig, setup: CourseSetup) -> ProvisioningReport:
    async with (
        IssueGateway.from_config(config) as issues,
        KnowledgeBaseGateway.from_config(config) as knowledge,
    ):
        return await provision_course(issues, knowledge, setup, config.field_map())


def cmd_provision(options: dict[str, Any], console: Console) -> None:
    try:
        setup = CourseSetup.model_validate(options)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(ExitCode.ERROR) from exc

    config = load_config_or_exit(console)
    try:
        report = asyncio.run(_provision(config, setup))
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    for step in report.completed:
        console.print(f"  [green]✓[/green] {step}")
    for step, error in report.failed.items():
        console.print(f"  [red]✗[/red] {step}: {error}")

    if report.field_ids:
        console.print("\nAdd these to the [bold]\\[field_ids][/bold] section of your config:")
        for name, remote_id in report.field_ids.items():
            console.print(f'  {name} = "{remote_id}"')

    if not report.ok:
        raise SystemExit(ExitCode.REMOTE_ERROR)
