"""Unit tests for academichain.core.config: AcademicConfig loading and validation."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from academichain.core.config import AcademicConfig, load_config, save_config
from academichain.core.exceptions import ConfigError, ConfigNotFoundError
from academichain.core.fields import AcademicField

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_config(tmp_path: Path, content: str) -> Path:
    p = tmp_path / "config.toml"
    p.write_text(content)
    return p


MINIMAL_TOML = """
institution_name = "Example University"

[atlassian]
site_url = "https://uni.atlassian.net/"
email = "registrar@example.net"
api_token = "secret-token"

[[departments]]
name = "Computer Science"
project_keys = ["CS101", "CS102"]
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ACADEMICHAIN_SITE_URL",
        "ACADEMICHAIN_EMAIL",
        "ACADEMICHAIN_API_TOKEN",
        "ACADEMICHAIN_LOG_LEVEL",
        "ACADEMICHAIN_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Load config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_minimal_valid(self, tmp_path: Path) -> None:
        cfg = load_config(_write_config(tmp_path, MINIMAL_TOML))
        assert cfg.institution_name == "Example University"
        assert cfg.project_keys == ["CS101", "CS102"]
        assert cfg.atlassian is not None
        assert cfg.atlassian.site_url == "https://uni.atlassian.net"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigNotFoundError):
            load_config(tmp_path / "nonexistent.toml")

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(_write_config(tmp_path, "this is not valid toml %%% [[["))

    def test_site_url_scheme_required(self, tmp_path: Path) -> None:
        bad = MINIMAL_TOML.replace("https://uni.atlassian.net/", "uni.atlassian.net")
        with pytest.raises(ConfigError, match="site_url"):
            load_config(_write_config(tmp_path, bad))

    def test_page_size_bounds(self, tmp_path: Path) -> None:
        bad = MINIMAL_TOML + "\n[workflow]\nsearch_page_size = 500\n"
        with pytest.raises(ConfigError):
            load_config(_write_config(tmp_path, bad))

    def test_unknown_field_id_name_rejected(self, tmp_path: Path) -> None:
        bad = MINIMAL_TOML + '\n[field_ids]\nshoe_size = "customfield_1"\n'
        with pytest.raises(ConfigError, match="shoe_size"):
            load_config(_write_config(tmp_path, bad))

    def test_field_ids_feed_field_map(self, tmp_path: Path) -> None:
        good = MINIMAL_TOML + '\n[field_ids]\ngrade = "customfield_30001"\n'
        cfg = load_config(_write_config(tmp_path, good))
        assert cfg.field_map().id_for(AcademicField.GRADE) == "customfield_30001"

    def test_env_overrides_credentials(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ACADEMICHAIN_API_TOKEN", "from-env")
        monkeypatch.setenv("ACADEMICHAIN_LOG_LEVEL", "debug")
        cfg = load_config(_write_config(tmp_path, MINIMAL_TOML))
        assert cfg.atlassian is not None
        assert cfg.atlassian.api_token.get_secret_value() == "from-env"
        assert cfg.logging.level == "DEBUG"

    def test_env_alone_can_supply_atlassian_section(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ACADEMICHAIN_SITE_URL", "https://env.atlassian.net")
        monkeypatch.setenv("ACADEMICHAIN_EMAIL", "env@example.net")
        monkeypatch.setenv("ACADEMICHAIN_API_TOKEN", "tok")
        cfg = load_config(_write_config(tmp_path, 'institution_name = "X"\n'))
        assert cfg.require_atlassian().site_url == "https://env.atlassian.net"

    def test_config_path_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        p = _write_config(tmp_path, MINIMAL_TOML)
        monkeypatch.setenv("ACADEMICHAIN_CONFIG", str(p))
        assert load_config().institution_name == "Example University"


# ---------------------------------------------------------------------------
# Model behaviour
# ---------------------------------------------------------------------------


class TestAcademicConfig:
    def test_project_keys_deduplicated_in_order(self, academic_config: AcademicConfig) -> None:
        assert academic_config.project_keys == ["CS101", "CS102", "EE201"]

    def test_require_atlassian_without_section(self) -> None:
        with pytest.raises(ConfigError, match="academichain init"):
            AcademicConfig().require_atlassian()

    def test_public_view_has_no_credentials(self, academic_config: AcademicConfig) -> None:
        view = academic_config.public_view()
        assert view["institutionName"] == "Example University"
        assert view["projectKeys"] == ["CS101", "CS102", "EE201"]
        assert "secret-token" not in repr(view)
        assert "atlassian" not in view

    def test_token_masked_in_repr(self, academic_config: AcademicConfig) -> None:
        assert "secret-token" not in repr(academic_config)


# ---------------------------------------------------------------------------
# Save config
# ---------------------------------------------------------------------------


class TestSaveConfig:
    def test_round_trip(self, tmp_path: Path) -> None:
        data = {
            "institution_name": "Example University",
            "atlassian": {
                "site_url": "https://uni.atlassian.net",
                "email": "registrar@example.net",
                "api_token": "secret-token",
            },
            "departments": [{"name": "CS", "project_keys": ["CS101"]}],
        }
        path = save_config(data, tmp_path / "nested" / "config.toml")
        cfg = load_config(path)
        assert cfg.project_keys == ["CS101"]
        assert not path.with_suffix(".tmp").exists()

    def test_file_permissions(self, tmp_path: Path) -> None:
        path = save_config({"institution_name": "X"}, tmp_path / "config.toml")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
