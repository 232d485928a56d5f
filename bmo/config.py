"""
Configuration management for BMO.

Settings are layered, later sources winning:

1. Defaults on ``BmoConfig``
2. User file: ~/.config/bmo/config.toml
3. First local file found: ./bmo.toml, ./.bmorc, ./.bmo/config.toml
4. A config file given explicitly (``--config``)
5. Environment variables (BMO_*)
6. Command-line overrides passed to ``init_config``
"""
import logging
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from dataclasses import dataclass, field, fields, asdict

from bmo import constants

logger = logging.getLogger(__name__)

ENV_PREFIX = "BMO_"
LOCAL_CONFIG_NAMES = ("bmo.toml", ".bmorc", os.path.join(".bmo", "config.toml"))
PATH_FIELDS = ("database", "catalog_path", "seed_path")


def user_config_path() -> Path:
    return Path.home() / ".config" / "bmo" / "config.toml"


def coerce_value(current: Any, value: str) -> Any:
    """Convert a string setting to the type of the value it replaces."""
    if isinstance(current, bool):
        return value.strip().lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        return int(value)
    return value


def read_toml(path: Path) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return tomli.load(f)


def config_sources(config_file: Optional[Path] = None) -> Iterator[Path]:
    """Existing config files, lowest priority first."""
    user_path = user_config_path()
    if user_path.exists():
        yield user_path

    cwd = Path.cwd()
    local = next((cwd / name for name in LOCAL_CONFIG_NAMES if (cwd / name).exists()), None)
    if local is not None:
        yield local

    if config_file is not None:
        if config_file.exists():
            yield config_file
        else:
            logger.warning(f"Config file {config_file} not found")


@dataclass
class BmoConfig:
    """BMO settings. See the module docstring for the load order."""

    # Storage
    database: str = field(default="bmo.db")
    database_url: Optional[str] = field(default=None)  # overrides database
    database_echo: bool = field(default=False)

    # Data sources
    catalog_path: str = field(default="bookmarks.json")
    seed_path: Optional[str] = field(default=None)

    # Personal state
    default_theme: str = field(default=constants.DEFAULT_THEME)
    recent_visits_limit: int = field(default=constants.DEFAULT_RECENT_VISITS_LIMIT)
    recent_visits_retention_days: int = field(default=constants.DEFAULT_RETENTION_DAYS)
    imported_visits_limit: int = field(default=constants.DEFAULT_IMPORTED_VISITS_LIMIT)

    # Search
    search_history_limit: int = field(default=constants.DEFAULT_SEARCH_HISTORY_LIMIT)
    search_min_length: int = field(default=constants.DEFAULT_SEARCH_MIN_LENGTH)
    suggestion_limit: int = field(default=constants.DEFAULT_SUGGESTION_LIMIT)
    search_debounce_ms: int = field(default=constants.DEFAULT_SEARCH_DEBOUNCE_MS)

    # Smart refresh
    refresh_delay_seconds: int = field(default=constants.DEFAULT_REFRESH_DELAY_SECONDS)
    ui_state_ttl_seconds: int = field(default=constants.DEFAULT_UI_STATE_TTL_SECONDS)

    # Export
    export_filename_prefix: str = field(default="bookmarks-export")
    export_pretty: bool = field(default=True)

    # Display
    output_format: str = field(default="table")  # table, json, plain
    color_output: bool = field(default=True)

    log_level: str = field(default="INFO")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "BmoConfig":
        """
        Build a configuration from files and environment.

        Args:
            config_file: Extra file applied after the user and local files
        """
        config = cls()
        for path in config_sources(config_file):
            logger.debug(f"Loading config from {path}")
            config.update(read_toml(path), source=str(path))
        config.update_from_env()
        config.expand_paths()
        return config

    @classmethod
    def field_names(cls):
        return {f.name for f in fields(cls)}

    def update(self, values: Dict[str, Any], source: str = "overrides") -> None:
        """Apply known settings; unknown keys are skipped with a warning."""
        known = self.field_names()
        for key, value in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' in {source}")
                continue
            setattr(self, key, value)

    def update_from_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        environ = os.environ if environ is None else environ
        known = self.field_names()
        for name, value in environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            key = name[len(ENV_PREFIX):].lower()
            if key in known:
                setattr(self, key, coerce_value(getattr(self, key), value))

    def expand_paths(self) -> None:
        """Expand ~ and $VARS in file settings."""
        for key in PATH_FIELDS:
            value = getattr(self, key)
            if isinstance(value, str):
                setattr(self, key, os.path.expanduser(os.path.expandvars(value)))

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the settings as TOML (to the user config file by default)."""
        path = Path(path) if path is not None else user_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null
        data = {k: v for k, v in asdict(self).items() if v is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
        return path

    def get_database_path(self) -> Path:
        path = Path(self.database)
        return path if path.is_absolute() else Path.cwd() / path

    def get_database_url(self) -> str:
        """
        SQLAlchemy URL of the persistent storage scope.

        Examples:
            sqlite:////home/user/project/bmo.db
            postgresql://localhost/bmo
        """
        return self.database_url or f"sqlite:///{self.get_database_path()}"

    def is_sqlite(self) -> bool:
        return self.get_database_url().startswith("sqlite:")


_config: Optional[BmoConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> BmoConfig:
    """Process-global configuration, loaded on first use."""
    global _config
    if _config is None or reload:
        _config = BmoConfig.load(config_file)
    return _config


def init_config(database: Optional[str] = None, config_file: Optional[Path] = None,
                **overrides) -> BmoConfig:
    """
    Load the global configuration and apply command-line overrides.

    Overrides that are None (options not given) are ignored.
    """
    config = get_config(reload=config_file is not None, config_file=config_file)
    if database:
        overrides["database"] = database
    config.update({k: v for k, v in overrides.items() if v is not None}, source="command line")
    return config
