import enum
import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_CACHE_TTL,
    DEFAULT_DEBOUNCE_WINDOW,
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_LOG_LIMIT,
    DEFAULT_MAX_COMMIT_HISTORY,
    LOCAL_CONFIG_NAME,
    PYPROJECT_SECTION,
)

logger = logging.getLogger(APP_NAME)


class RefreshPolicy(enum.Enum):
    """When a background refresh pushes the new view to listeners."""

    ALWAYS = "always"
    ON_CHANGE = "on_change"


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable durations (e.g., '500ms', '5m') to seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
    }
    return num * multiplier[unit]


@dataclass
class CoreConfig:
    """Core application settings.

    Attributes:
        git_path (str): The git executable to invoke.
    """

    git_path: str = "git"


@dataclass
class HistoryConfig:
    """History presentation settings.

    Attributes:
        max_commit_history (int): Commits returned by history queries.
        show_relative_dates (bool): Use '2 hours ago' style dates instead of ISO.
        log_limit (int): Commits drawn by the decorated graph log.
    """

    max_commit_history: int = DEFAULT_MAX_COMMIT_HISTORY
    show_relative_dates: bool = True
    log_limit: int = DEFAULT_LOG_LIMIT


@dataclass
class SyncConfig:
    """Synchronization engine timing settings.

    Attributes:
        fetch_interval (float): Seconds between background fetches.
        debounce_window (float): Seconds during which change signals coalesce.
        cache_ttl (float): Seconds a cached listing or status stays valid.
        refresh_policy (RefreshPolicy): Whether unchanged views are re-pushed.
    """

    fetch_interval: float = DEFAULT_FETCH_INTERVAL
    debounce_window: float = DEFAULT_DEBOUNCE_WINDOW
    cache_ttl: float = DEFAULT_CACHE_TTL
    refresh_policy: RefreshPolicy = RefreshPolicy.ON_CHANGE


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Core settings.
        history (HistoryConfig): History and log settings.
        sync (SyncConfig): Timing settings for the engine.
        limits (LimitsConfig): Resource limits.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the base global configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and local sources.

        Args:
            repo_path (Path | None): The repository root to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Start with a copy of the cached global config
        base = cls._global_cache
        instance = replace(
            base,
            core=replace(base.core),
            history=replace(base.history),
            sync=replace(base.sync),
            limits=replace(base.limits),
        )

        # 2. Load Local Config (if applicable)
        if repo_path:
            local_toml = repo_path / LOCAL_CONFIG_NAME
            pyproject = repo_path / "pyproject.toml"

            if local_toml.exists():
                instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance._merge_from_file(pyproject, section=PYPROJECT_SECTION)

        return instance

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.git-oracle').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {})

            if not data:
                return

            if "core" in data:
                self.core = self._update_dataclass("core", self.core, data["core"])
            if "history" in data:
                self.history = self._update_dataclass(
                    "history", self.history, data["history"]
                )
            if "sync" in data:
                self.sync = self._update_dataclass("sync", self.sync, data["sync"])
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ["fetch_interval", "debounce_window", "cache_ttl"]:
                    filtered_updates[k] = parse_time(v)
                elif k == "refresh_policy":
                    filtered_updates[k] = RefreshPolicy(str(v).lower())
                elif k in ["max_commit_history", "log_limit"]:
                    if not isinstance(v, int) or v <= 0:
                        raise ValueError(f"Expected a positive integer, got '{v}'")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
