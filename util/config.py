"""
Stored credentials and settings, kept in ~/.afk/config.json.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from util.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_API_URL,
    DEFAULT_REMINDER_INTERVAL,
    DEFAULT_SYS_NAME,
    ENV_CONFIG_DIR,
)
from util.logging_util import setup_logger

logger = setup_logger(__name__)

OUTPUT_FORMATS = ("llm", "human", "json")
DEFAULT_FORMAT = "llm"


class ConfigError(Exception):
    """The config file is missing, unreadable or incomplete."""


@dataclass
class Config:
    api_key: str
    api_url: str = DEFAULT_API_URL
    sys_name: str = DEFAULT_SYS_NAME  # Name of the AI agent shown in WhatsApp messages
    reminder_interval: str = DEFAULT_REMINDER_INTERVAL  # e.g. "15m", "0" to disable
    format: str = DEFAULT_FORMAT

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value != ""}


def config_path() -> Path:
    """Full path of the config file. AFK_CONFIG_DIR replaces ~/.afk when set."""
    config_dir = os.environ.get(ENV_CONFIG_DIR)
    if config_dir:
        return Path(config_dir) / CONFIG_FILE_NAME
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load(path: Optional[Path] = None) -> Config:
    """Read the config, filling defaults for anything not stored."""
    path = path or config_path()

    try:
        raw = path.read_text()
    except FileNotFoundError:
        raise ConfigError("not logged in: run 'afk login' first")
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"failed to parse config: {e}") from e

    if not isinstance(data, dict) or not data.get("api_key"):
        raise ConfigError("invalid config: missing API key")

    return Config(
        api_key=data["api_key"],
        api_url=data.get("api_url") or DEFAULT_API_URL,
        sys_name=data.get("sys_name") or DEFAULT_SYS_NAME,
        reminder_interval=data.get("reminder_interval") or DEFAULT_REMINDER_INTERVAL,
        format=data.get("format") or DEFAULT_FORMAT,
    )


def save(config: Config, path: Optional[Path] = None) -> Path:
    """Write the config, readable only by the current user. Returns the path written."""
    path = path or config_path()

    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        path.write_text(json.dumps(config.to_dict(), indent=2))
        os.chmod(path, 0o600)
    except OSError as e:
        raise ConfigError(f"failed to write config: {e}") from e

    logger.debug(f"Saved config to {path}")
    return path


def delete(path: Optional[Path] = None) -> None:
    """Remove the config file. Already gone is fine."""
    path = path or config_path()
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise ConfigError(f"failed to remove config: {e}") from e
    logger.debug(f"Removed config at {path}")


def exists(path: Optional[Path] = None) -> bool:
    return (path or config_path()).is_file()
