"""
Settings and logging setup for CourseGate.

Settings are read, in increasing priority, from:
- built-in defaults
- a YAML file (coursegate.yaml in the working directory, or an explicit path)
- COURSEGATE_* environment variables (a .env file is loaded first)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from coursegate.errors import ConfigurationError


DEFAULT_CONFIG_PATH = Path("coursegate.yaml")
DEFAULT_DATA_DIR = Path.home() / ".coursegate"
ENV_PREFIX = "COURSEGATE_"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    content_db: Path = Path("data/content.db")
    progress_db: Path = DEFAULT_DATA_DIR / "progress.db"
    db_timeout_seconds: float = Field(5.0, gt=0)

    # Certificates
    certificate_prefix: str = "CERT"
    certificate_retries: int = Field(3, ge=1)

    # Consumption heuristics
    watch_complete_percent: float = Field(90.0, gt=0, le=100)
    timer_complete_ratio: float = Field(0.8, gt=0, le=1)
    default_media_minutes: int = Field(3, ge=1)

    log_level: str = "INFO"


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return data


def _read_env() -> dict[str, str]:
    values = {}
    for field_name in Settings.model_fields:
        env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
        if env_value is not None:
            values[field_name] = env_value
    return values


def load_settings(config_path: Optional[Path] = None, env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from YAML and environment.

    Args:
        config_path: YAML file to read. Defaults to ./coursegate.yaml if present.
        env_file: .env file to load before reading the environment.

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ConfigurationError: If the file is not a mapping or a value is invalid
    """
    load_dotenv(dotenv_path=env_file)

    values: dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        values.update(_read_yaml(config_path))
    elif DEFAULT_CONFIG_PATH.exists():
        values.update(_read_yaml(DEFAULT_CONFIG_PATH))

    values.update(_read_env())

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
