"""AcademiChain constants: filesystem layout, REST paths, and limits."""

from __future__ import annotations

import os
import sys
from enum import IntEnum
from pathlib import Path

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    REMOTE_ERROR = 4


# ---------------------------------------------------------------------------
# Platform-specific config directory
# ---------------------------------------------------------------------------


def _default_data_dir() -> Path:
    """
    Return the platform-appropriate AcademiChain data directory.

    macOS : ~/Library/Application Support/academichain
    Linux : ~/.config/academichain
    Other : ~/.academichain
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "academichain"
    if sys.platform.startswith("linux"):
        xdg = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        return xdg / "academichain"
    return Path.home() / ".academichain"


CONFIG_FILENAME = "config.toml"

# ---------------------------------------------------------------------------
# Issue tracker (Jira Cloud REST v3)
# ---------------------------------------------------------------------------

JIRA_API = "/rest/api/3"
ISSUE_TYPE_ASSIGNMENT = "Assignment"
ISSUE_TYPE_PROPOSAL = "Project Proposal"
ISSUE_TYPE_SEMESTER_TASK = "Semester Task"

DEFAULT_SUBMIT_TRANSITION_ID = "submit"
DEFAULT_SEARCH_PAGE_SIZE = 50  # Jira caps maxResults at 100
DEFAULT_MAX_SEARCH_PAGES = 50

# ---------------------------------------------------------------------------
# Knowledge base (Confluence REST)
# ---------------------------------------------------------------------------

CONFLUENCE_API = "/wiki/rest/api"
STORAGE_REPRESENTATION = "storage"

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
