import sys
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, ClassVar, TypeVar

from loguru import logger

# --- Constants ---
APP_NAME = "coinlist"
if sys.platform == "win32":
    CONFIG_DIR = Path.home() / "AppData" / "Roaming" / APP_NAME
else:
    CONFIG_DIR = Path.home() / ".config" / APP_NAME

CONFIG_FILE = CONFIG_DIR / "config.toml"

REQUEST_STYLES = ("async", "callback")

DEFAULT_CONFIG_TEMPLATE = """\
# CoinList configuration file.
# Uncomment a setting to override its default.

[general]
# log_level_console = "INFO"
# log_level_file = "DEBUG"
# log_directory = "~/.config/coinlist/logs"

[fetch]
# "async" awaits the request on the UI event loop; "callback" runs it on a
# worker thread and hands the result back.
# request_style = "async"
# clear_error_on_success = false
# supersede_in_flight = false
"""

T = TypeVar("T")


@dataclass
class GeneralSettings:
    """Logging settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    log_directory: str = str(CONFIG_DIR / "logs")


@dataclass
class FetchSettings:
    """How the coin list is fetched and how results update the state."""

    request_style: str = "async"
    clear_error_on_success: bool = False
    supersede_in_flight: bool = False

    def __post_init__(self) -> None:
        if self.request_style not in REQUEST_STYLES:
            err_msg = (
                f"request_style must be one of {REQUEST_STYLES}, "
                f"got {self.request_style!r}"
            )
            raise ValueError(err_msg)
        for name in ("clear_error_on_success", "supersede_in_flight"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                err_msg = f"{name} must be true or false, got {value!r}"
                raise ValueError(err_msg)


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)

    _instance: ClassVar["Settings | None"] = None

    @classmethod
    def get_instance(cls) -> "Settings":
        """Returns the process-wide settings, loading them on first use."""
        if cls._instance is None:
            cls._instance = load_config()
        return cls._instance


def _build_dataclass(cls: type[T], data: dict[str, Any]) -> T:
    """Recursively builds a settings dataclass, ignoring unknown keys."""
    kwargs: dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name not in data:
            continue
        value = data[f.name]
        if isinstance(f.default_factory, type) and is_dataclass(f.default_factory):
            if not isinstance(value, dict):
                err_msg = f"Section '{f.name}' must be a table."
                raise ValueError(err_msg)
            value = _build_dataclass(f.default_factory, value)
        kwargs[f.name] = value

    unknown = set(data) - {f.name for f in fields(cls)}  # type: ignore[arg-type]
    if unknown:
        logger.warning(f"Ignoring unknown settings: {sorted(unknown)}")
    return cls(**kwargs)


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them over the defaults.

    A missing file is created from a commented template. A malformed file or
    an invalid value is logged and the defaults are used instead.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.
    """
    logger.info(f"Loading configuration from '{path}'...")

    if not path.exists():
        logger.warning(f"Configuration file not found. Creating default at '{path}'.")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to create default config file: {e}")
        return Settings()

    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
        settings_obj = _build_dataclass(Settings, user_config)
        logger.success("Successfully loaded user configuration.")
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        return Settings()
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid configuration in '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        return Settings()

    return settings_obj
