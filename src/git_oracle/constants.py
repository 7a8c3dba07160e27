import os
from pathlib import Path

"""Global constants and configuration path definitions for Git Oracle.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the default values shared by the synchronization
engine and the command-line front end.
"""

# --- Identity ---
APP_NAME = "git-oracle"
"""str: The human-readable application name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-oracle"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "watch.log"
"""Path: The file path for the `watch` process logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-oracle"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "oracle.toml"
"""str: Per-repository configuration file name."""

PYPROJECT_SECTION = "tool.git-oracle"
"""str: The pyproject.toml table holding per-repository configuration."""

# --- Sync Defaults ---
DEFAULT_CACHE_TTL = 2.0
"""float: Seconds a cached branch listing or status snapshot stays valid."""

DEFAULT_DEBOUNCE_WINDOW = 1.0
"""float: Seconds during which change signals collapse into one refresh."""

DEFAULT_FETCH_INTERVAL = 300.0
"""float: Seconds between background fetches (5 minutes)."""

DEFAULT_MAX_COMMIT_HISTORY = 25
"""int: Number of commits returned by history queries."""

DEFAULT_LOG_LIMIT = 200
"""int: Number of commits rendered by the decorated graph log."""

# --- Git Output Conventions ---
FIELD_DELIMITER = "|"
"""str: Separator between fields of the commit history format."""

HISTORY_FORMAT = FIELD_DELIMITER.join(["%H", "%an", "%ad", "%s"])
"""str: `git log` pretty format parsed by the commit history parser."""

GRAPH_LOG_FORMAT = "%h %ad |%d | %s [%an]"
"""
str: `git log --graph` pretty format parsed by the log line formatter. The
decoration precedes the subject so a subject ending in parentheses is never
mistaken for refs.
"""

ROOT_GROUP = "/"
"""str: Group key shared by branch names that contain no slash."""

NOT_TRACKING = "Not tracking"
"""str: Status value when the current branch has no upstream."""

NO_COMMITS = "No commits"
"""str: Status value when HEAD does not point at a commit yet."""

UNKNOWN_USER = "Unknown User"
"""str: Status value when `user.name` is not configured."""

AUTH_FAILURE_PHRASES = (
    "authentication required",
    "authentication failed",
    "could not read username",
    "could not read password",
    "permission denied (publickey",
    "terminal prompts disabled",
)
"""
tuple[str, ...]: Lower-cased stderr fragments that identify a credential
failure. Git reports these with the same exit code as any other error.
"""

NOT_A_REPOSITORY_PHRASE = "not a git repository"
"""str: Lower-cased stderr fragment emitted outside a working copy."""

GRAPH_GLYPHS = {
    "*": "●",
    "|": "│",
    "/": "╱",
    "\\": "╲",
    " ": "\u00a0",
}
"""dict[str, str]: Display glyphs for the ASCII graph drawn by `git log --graph`."""
