"""AcademiChain configuration: Pydantic model, load, and save."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator

from academichain.core.constants import (
    CONFIG_FILENAME,
    DEFAULT_MAX_SEARCH_PAGES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SEARCH_PAGE_SIZE,
    DEFAULT_SUBMIT_TRANSITION_ID,
    _default_data_dir,
)
from academichain.core.exceptions import ConfigError, ConfigNotFoundError
from academichain.core.fields import AcademicField, FieldMap


def academichain_dir() -> Path:
    """Return the AcademiChain data directory, creating it if needed."""
    d = _default_data_dir()
    d.mkdir(mode=0o700, parents=True, exist_ok=True)
    return d


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class Department(BaseModel):
    id: str = ""
    name: str
    code: str = ""
    head: str = ""
    project_keys: list[str] = Field(default_factory=list)

    @field_validator("project_keys", mode="before")
    @classmethod
    def parse_project_keys(cls, v: Any) -> Any:
        """Accept both list and comma-separated string."""
        if isinstance(v, str):
            return [k.strip() for k in v.split(",") if k.strip()]
        return v


class AtlassianConfig(BaseModel):
    """Site credentials shared by the Jira and Confluence gateways."""

    site_url: str
    email: str
    api_token: SecretStr
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    @field_validator("site_url")
    @classmethod
    def validate_site_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("site_url must start with https:// (e.g. https://myuni.atlassian.net)")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if not (1 <= v <= 300):
            raise ValueError("request_timeout_seconds must be between 1 and 300")
        return v


class WorkflowConfig(BaseModel):
    submit_transition_id: str = DEFAULT_SUBMIT_TRANSITION_ID
    search_page_size: int = DEFAULT_SEARCH_PAGE_SIZE
    max_search_pages: int = DEFAULT_MAX_SEARCH_PAGES

    @field_validator("search_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if not (1 <= v <= 100):
            raise ValueError("search_page_size must be between 1 and 100")
        return v

    @field_validator("max_search_pages")
    @classmethod
    def validate_max_pages(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_search_pages must be at least 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class AcademicConfig(BaseModel):
    """Root AcademiChain configuration model."""

    institution_name: str = ""
    departments: list[Department] = Field(default_factory=list)
    atlassian: AtlassianConfig | None = None
    field_ids: dict[str, str] = Field(default_factory=dict)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("field_ids")
    @classmethod
    def validate_field_names(cls, v: dict[str, str]) -> dict[str, str]:
        known = {f.value for f in AcademicField}
        unknown = sorted(set(v) - known)
        if unknown:
            raise ValueError(f"Unknown academic field(s) in [field_ids]: {unknown}")
        return v

    # Computed paths (not stored in config file)
    _config_path: Path | None = None

    @property
    def project_keys(self) -> list[str]:
        """Every department's project keys, deduplicated, in config order."""
        seen: dict[str, None] = {}
        for dept in self.departments:
            for key in dept.project_keys:
                seen.setdefault(key, None)
        return list(seen)

    def field_map(self) -> FieldMap:
        return FieldMap(self.field_ids)

    def require_atlassian(self) -> AtlassianConfig:
        if self.atlassian is None:
            raise ConfigError(
                "No [atlassian] section configured. Run 'academichain init' or set "
                "ACADEMICHAIN_SITE_URL / ACADEMICHAIN_EMAIL / ACADEMICHAIN_API_TOKEN."
            )
        return self.atlassian

    def public_view(self) -> dict[str, Any]:
        """Institution metadata safe to hand to the presentation layer (no credentials)."""
        return {
            "institutionName": self.institution_name,
            "departments": [d.model_dump() for d in self.departments],
            "projectKeys": self.project_keys,
        }


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get("ACADEMICHAIN_CONFIG"):
        return Path(env_path)
    return academichain_dir() / CONFIG_FILENAME


def load_config(path: Path | str | None = None) -> AcademicConfig:
    """
    Load AcademicConfig from TOML file, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (ACADEMICHAIN_*)
      2. Config file (platform data dir / config.toml)
    """
    import tomllib

    cfg_path = Path(path) if path is not None else _config_file_path()

    if not cfg_path.exists():
        raise ConfigNotFoundError(
            f"AcademiChain is not configured. Run 'academichain init' first.\n"
            f"(Config file not found: {cfg_path})"
        )

    try:
        with open(cfg_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as exc:
        raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc

    _apply_env_overrides(data)

    try:
        config = AcademicConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid config at {cfg_path}: {exc}") from exc

    config._config_path = cfg_path
    return config


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay ACADEMICHAIN_* environment variables onto the parsed TOML data."""
    if site := os.environ.get("ACADEMICHAIN_SITE_URL"):
        data.setdefault("atlassian", {})["site_url"] = site
    if email := os.environ.get("ACADEMICHAIN_EMAIL"):
        data.setdefault("atlassian", {})["email"] = email
    if token := os.environ.get("ACADEMICHAIN_API_TOKEN"):
        data.setdefault("atlassian", {})["api_token"] = token
    if level := os.environ.get("ACADEMICHAIN_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level


def save_config(config_data: dict[str, Any], path: Path | None = None) -> Path:
    """Write config dict to TOML file with secure permissions (0600)."""
    import tomli_w

    cfg_path = path or _config_file_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Write atomically
    tmp_path = cfg_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "wb") as f:
            tomli_w.dump(config_data, f)
        tmp_path.rename(cfg_path)
    except Exception as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Cannot write config to {cfg_path}: {exc}") from exc

    # API token is stored here
    cfg_path.chmod(0o600)
    return cfg_path
