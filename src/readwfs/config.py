"""
Loading ReaderConfig from YAML.

The file mirrors the ReaderConfig model:

    paging:
      page_size: 500
      force_server_paging: true
    timeout:
      read: 60
    count_query_enabled: true
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .acquisition.exceptions import InputError
from .acquisition.models import DEFAULT_CONFIG, ReaderConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/readwfs.yaml")


def load_config(config_path: Optional[Path] = None) -> ReaderConfig:
    """
    Load reader configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. Defaults to config/readwfs.yaml
                     relative to the working directory.

    Returns:
        ReaderConfig built from the file, or DEFAULT_CONFIG if the file
        does not exist.

    Raises:
        InputError: If the file is not valid YAML or fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning("Config not found at %s, using defaults", path)
        return DEFAULT_CONFIG

    try:
        with open(path, "r") as f:
            data: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InputError(f"Invalid YAML in {path}", cause=e)

    if not isinstance(data, dict):
        raise InputError(f"Config {path} must be a mapping, got {type(data).__name__}")

    try:
        config = ReaderConfig(**data)
    except ValidationError as e:
        raise InputError(f"Invalid reader config in {path}", cause=e)

    logger.info("Loaded reader config from %s", path)
    return config
