"""
AcademiChain CLI entry point.

Commands:
  academichain version                  : show version
  academichain init                     : write a configuration file
  academichain dashboard [--json]       : semester statistics across course projects
  academichain invoke OP [--payload J]  : run a resolver operation and print the JSON result
  academichain rules show PROJECT       : print the automation rules for a project
  academichain rules register PROJECT   : register the automation rules with the issue tracker
  academichain provision PROJECT ...    : set up a course project and its knowledge-base space
"""

from __future__ import annotations

import click
from rich.console import Console

from academichain import __version__

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="academichain %(version)s")
@click.option(
    "--log-level", default="WARNING", hidden=True, help="Log level for structured logging."
)
@click.option("--log-json", is_flag=True, default=False, hidden=True, help="Emit JSON log lines.")
def cli(log_level: str, log_json: bool) -> None:
    """AcademiChain: academic workflow orchestration over Jira and Confluence."""
    from academichain.core.logging import configure_logging

    configure_logging(level=log_level, json_output=log_json)


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
def version() -> None:
    """Show the AcademiChain version."""
    console.print(f"academichain {__version__}")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--non-interactive", is_flag=True, default=False, help="Read from options/env only")
@click.option("--site-url", default="", help="Atlassian site, e.g. https://myuni.atlassian.net")
@click.option("--email", default="", help="Account email for the API token")
@click.option("--api-token", default="", help="Atlassian API token")
@click.option("--institution", default="", help="Institution name")
@click.option("--projects", default="", help="Comma-separated course project keys")
def init(
    non_interactive: bool,
    site_url: str,
    email: str,
    api_token: str,
    institution: str,
    projects: str,
) -> None:
    """Write an AcademiChain configuration file."""
    from academichain.cli._setup import run_init

    run_init(
        non_interactive=non_interactive,
        site_url=site_url,
        email=email,
        api_token=api_token,
        institution=institution,
        projects=projects,
        console=console,
    )


# ---------------------------------------------------------------------------
# dashboard
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--project", "projects", multiple=True, help="Project key (repeatable)")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
def dashboard(projects: tuple[str, ...], as_json: bool) -> None:
    """Show semester statistics across course projects."""
    from academichain.cli._dashboard import cmd_dashboard

    cmd_dashboard(project_keys=list(projects), as_json=as_json, console=console)


# ---------------------------------------------------------------------------
# invoke
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("operation")
@click.option("--payload", default="{}", help="JSON payload for the operation")
def invoke(operation: str, payload: str) -> None:
    """Run a resolver operation and print its JSON result."""
    from academichain.cli._invoke import cmd_invoke

    cmd_invoke(operation=operation, payload_json=payload, console=console)


# ---------------------------------------------------------------------------
# rules
# ---------------------------------------------------------------------------


@cli.group()
def rules() -> None:
    """Automation rule commands."""


@rules.command("show")
@click.argument("project_key")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output rule payloads")
def rules_show(project_key: str, as_json: bool) -> None:
    """Print the automation rules built for PROJECT_KEY."""
    from academichain.cli._rules import cmd_rules_show

    cmd_rules_show(project_key=project_key, as_json=as_json, console=console)


@rules.command("register")
@click.argument("project_key")
def rules_register(project_key: str) -> None:
    """Register the automation rules for PROJECT_KEY with the issue tracker."""
    from academichain.cli._rules import cmd_rules_register

    cmd_rules_register(project_key=project_key, console=console)


# ---------------------------------------------------------------------------
# provision
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("project_key")
@click.option("--name", required=True, help="Course project name")
@click.option("--lead", required=True, help="Account id of the project lead")
@click.option("--semester", "semester_name", required=True, help="Semester name")
@click.option("--description", default="", help="Project description")
@click.option("--start-date", default=None, help="Semester start (YYYY-MM-DD)")
@click.option("--end-date", default=None, help="Semester end (YYYY-MM-DD)")
@click.option("--skip-project", is_flag=True, default=False, help="Project already exists")
@click.option("--skip-rules", is_flag=True, default=False, help="Do not register automation rules")
def provision(
    project_key: str,
    name: str,
    lead: str,
    semester_name: str,
    description: str,
    start_date: str | None,
    end_date: str | None,
    skip_project: bool,
    skip_rules: bool,
) -> None:
    """Set up a course project, its fields and rules, and its knowledge-base space."""
    from academichain.cli._provision import cmd_provision

    cmd_provision(
        {
            "project_key": project_key,
            "name": name,
            "lead": lead,
            "semester_name": semester_name,
            "description": description,
            "start_date": start_date,
            "end_date": end_date,
            "create_project": not skip_project,
            "register_rules": not skip_rules,
        },
        console=console,
    )


if __name__ == "__main__":
    cli()
