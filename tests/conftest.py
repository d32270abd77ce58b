"""Shared fixtures for the AcademiChain test suite."""

from __future__ import annotations

import pytest
from atlassian_fake import SITE_URL, FakeAtlassian

from academichain.core.config import AcademicConfig


@pytest.fixture
def fake_site() -> FakeAtlassian:
    return FakeAtlassian()


@pytest.fixture
def academic_config() -> AcademicConfig:
    return AcademicConfig.model_validate(
        {
            "institution_name": "Example University",
            "departments": [
                {
                    "id": "cs",
                    "name": "Computer Science",
                    "code": "CS",
                    "project_keys": ["CS101", "CS102"],
                },
                {
                    "id": "ee",
                    "name": "Electrical Engineering",
                    "code": "EE",
                    "project_keys": "EE201, CS101",
                },
            ],
            "atlassian": {
                "site_url": SITE_URL,
                "email": "registrar@example.net",
                "api_token": "secret-token",
            },
            "workflow": {"search_page_size": 2},
        }
    )
