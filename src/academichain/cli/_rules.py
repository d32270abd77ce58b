"""academichain rules: show and register automation rules."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from academichain.automation.rules import build_course_rules, register_course_rules
from academichain.cli._common import load_config_or_exit
from academichain.core.config import load_config
from academichain.core.constants import ExitCode
from academichain.core.exceptions import ConfigError, RegistrationError
from academichain.core.fields import FieldMap
from academichain.core.models import RuleHandle
from academichain.gateways.issues import IssueGateway


def _field_map() -> FieldMap:
    # Rule descriptors can be shown without a config file
    try:
        return load_config().field_map()
    except ConfigError:
        return FieldMap()


def cmd_rules_show(project_key: str, as_json: bool, console: Console) -> None:
    rules = build_course_rules(project_key, _field_map())
    if as_json:
        click.echo(json.dumps([r.to_payload() for r in rules], indent=2))
        return

    table = Table(title=f"Automation rules for {project_key}")
    table.add_column("Name")
    table.add_column("Trigger")
    table.add_column("Conditions", justify="right")
    table.add_column("Actions")
    for rule in rules:
        table.add_row(
            rule.name,
            rule.trigger.type,
            str(len(rule.conditions)),
            ", ".join(a.type for a in rule.actions),
        )
    console.print(table)


def cmd_rules_register(project_key: str, console: Console) -> None:
    config = load_config_or_exit(console)

    async def _register() -> tuple[list[RuleHandle], list[RegistrationError]]:
        async with IssueGateway.from_config(config) as issues:
            return await register_course_rules(issues, project_key, config.field_map())

    try:
        handles, failures = asyncio.run(_register())
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    for handle in handles:
        console.print(f"[green]registered[/green] {handle.name} (id: {handle.rule_id or '-'})")
    for failure in failures:
        console.print(f"[red]rejected[/red]   {failure.rule_name}: {failure}")
        if failure.body:
            console.print(f"[dim]  {failure.body[:200]}[/dim]")
    if failures:
        raise SystemExit(ExitCode.REMOTE_ERROR)
