"""Mark every test under tests/safety/ with @pytest.mark.safety."""

from __future__ import annotations

from pathlib import Path

import pytest

_SAFETY_DIR = Path(__file__).parent


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(str(item.fspath)).is_relative_to(_SAFETY_DIR):
            item.add_marker(pytest.mark.safety)
