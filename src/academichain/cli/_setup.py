"""academichain init: write a configuration file."""

from __future__ import annotations

import os

from rich.console import Console
from rich.prompt import Prompt

from academichain.core.config import AcademicConfig, save_config
from academichain.core.constants import ExitCode
from academichain.core.exceptions import ConfigError


def _env(*names: str) -> str:
    """Return the first non-empty env var from *names*."""
    for name in names:
        v = os.environ.get(name, "")
        if v:
            return v
    return ""


def build_config_data(
    *,
    site_url: str,
    email: str,
    api_token: str,
    institution: str,
    projects: str,
) -> dict:
    """Assemble and validate the TOML document for ``academichain init``."""
    project_keys = [p.strip().upper() for p in projects.split(",") if p.strip()]
    data: dict = {
        "institution_name": institution,
        "atlassian": {"site_url": site_url, "email": email, "api_token": api_token},
        "departments": [],
    }
    if project_keys:
        data["departments"].append({"name": institution or "Default", "project_keys": project_keys})
    try:
        AcademicConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    return data


def run_init(
    *,
    non_interactive: bool,
    site_url: str,
    email: str,
    api_token: str,
    institution: str,
    projects: str,
    console: Console,
) -> None:
    site_url = site_url or _env("ACADEMICHAIN_SITE_URL")
    email = email or _env("ACADEMICHAIN_EMAIL")
    api_token = api_token or _env("ACADEMICHAIN_API_TOKEN")

    if not non_interactive:
        site_url = site_url or Prompt.ask("Atlassian site URL", console=console)
        email = email or Prompt.ask("Account email", console=console)
        api_token = api_token or Prompt.ask("API token", password=True, console=console)
        institution = institution or Prompt.ask("Institution name", default="", console=console)
        projects = projects or Prompt.ask(
            "Course project keys (comma-separated)", default="", console=console
        )

    if not (site_url and email and api_token):
        console.print(
            "[red]Error:[/red] site URL, email and API token are required "
            "(options or ACADEMICHAIN_* env vars)."
        )
        raise SystemExit(ExitCode.CONFIG_ERROR)

    try:
        data = build_config_data(
            site_url=site_url,
            email=email,
            api_token=api_token,
            institution=institution,
            projects=projects,
        )
        path = save_config(data)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(ExitCode.CONFIG_ERROR) from exc

    console.print(f"[green]Config written:[/green] {path}")
