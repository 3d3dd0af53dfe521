"""
TSK - Configuration
===================
Settings come from three places, highest priority first:

1. Environment variables (TSK_NUM_TOP_TASKS, TSK_DATABASE, TSK_LOG_LEVEL),
   optionally loaded from a .env file
2. $XDG_CONFIG_HOME/tsk/config.toml
3. Defaults below
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger("tsk")

APP_PREFIX = "tsk"
DATABASE = "tsk.db"
CONFIG = "config.toml"

ENV_OVERRIDES = {
    "TSK_NUM_TOP_TASKS": "num_top_tasks",
    "TSK_DATABASE": "database",
    "TSK_LOG_LEVEL": "log_level",
}


def _xdg_dir(variable: str, fallback: str) -> Path:
    base = os.getenv(variable)
    root = Path(base) if base else Path.home() / fallback
    return root / APP_PREFIX


def get_config_file() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / CONFIG


def get_database_file() -> Path:
    return _xdg_dir("XDG_STATE_HOME", ".local/state") / DATABASE


class Config(BaseModel):
    """Application settings"""
    num_top_tasks: int = Field(default=20, ge=1, le=65535)
    database: Optional[Path] = None
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def database_file(self) -> Path:
        return self.database or get_database_file()


def load_config(path: Optional[Path] = None, env_file: Optional[Path] = None) -> Config:
    """
    Build a Config from the TOML file and the environment.

    Args:
        path: config.toml to read (default: XDG config location). A missing
            file is not an error; an unreadable or invalid one is.
        env_file: .env file to load first (default: search from cwd)
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    config_path = path or get_config_file()
    values = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                values = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(str(config_path), f"cannot read config file: {e}") from e
        logger.debug(f"Loaded config from {config_path}")

    for variable, key in ENV_OVERRIDES.items():
        value = os.getenv(variable)
        if value:
            values[key] = value

    try:
        return Config(**values)
    except ValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(part) for part in first["loc"]) or str(config_path)
        raise ConfigError(setting, first["msg"]) from e
