"""Configuration loading utilities."""

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from .defaults import CONFIG_DIR_NAME, CONFIG_FILE_NAME
from .main_config import Config

logger = logging.getLogger(__name__)

# Strings are matched first so that "//" inside a value (URLs) survives.
_JSONC_TOKEN = re.compile(
    r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)',
    flags=re.DOTALL,
)


def strip_jsonc_comments(content: str) -> str:
    """
    Strip comments from JSONC content to convert to valid JSON.

    Handles:
    - Single-line comments: // comment
    - Multi-line comments: /* comment */

    Args:
        content: JSONC content string

    Returns:
        JSON string with comments removed
    """
    return _JSONC_TOKEN.sub(lambda m: m.group(1) or "", content)


def load_config_file(path: Path) -> dict[str, Any] | None:
    """
    Load a config file from the given path.

    Supports both .json and .jsonc files with comment stripping.

    Args:
        path: Path to the config file

    Returns:
        Parsed config dictionary or None if the file is missing or invalid
    """
    if not path.exists():
        return None

    try:
        content = path.read_text()
        if path.suffix == ".jsonc":
            content = strip_jsonc_comments(content)
        data = json.loads(content)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level must be an object", path)
        return None
    return data


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Args:
        base: Base configuration
        override: Override configuration (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def project_config_paths(project_root: Path) -> list[Path]:
    """Candidate project-level config files, highest precedence first."""
    return [
        project_root / f"{CONFIG_FILE_NAME}.jsonc",
        project_root / f"{CONFIG_FILE_NAME}.json",
        project_root / CONFIG_DIR_NAME / f"{CONFIG_FILE_NAME}.jsonc",
    ]


def load_config(project_root: Path | None = None, home: Path | None = None) -> Config:
    """
    Load configuration from multiple sources with precedence.

    Looks for config files in the following order:
    1. Global: ~/.worldline/worldline.jsonc
    2. Project-level: worldline.jsonc, worldline.json, .worldline/worldline.jsonc

    The first project file found is merged over the global config. The
    CORS_ORIGINS, HOST and PORT environment variables override the server
    section.

    Args:
        project_root: Project root directory (defaults to current working directory)
        home: Home directory holding the global config (defaults to the user's home)

    Returns:
        Loaded and merged Config model
    """
    if project_root is None:
        project_root = Path.cwd()
    if home is None:
        home = Path.home()

    global_config_path = home / CONFIG_DIR_NAME / f"{CONFIG_FILE_NAME}.jsonc"
    config_data = load_config_file(global_config_path) or {}

    for path in project_config_paths(project_root):
        project_config = load_config_file(path)
        if project_config:
            logger.debug("Using project config %s", path)
            config_data = merge_configs(config_data, project_config)
            break

    config_data = merge_configs(config_data, _env_overrides())
    return Config(**config_data)


def _env_overrides() -> dict[str, Any]:
    server: dict[str, Any] = {}
    origins = os.environ.get("CORS_ORIGINS")
    if origins:
        server["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
    if os.environ.get("HOST"):
        server["host"] = os.environ["HOST"]
    if os.environ.get("PORT"):
        server["port"] = int(os.environ["PORT"])
    return {"server": server} if server else {}


def get_working_directory() -> str:
    """
    Get the working directory from environment or default to cwd.

    Returns:
        The working directory path as a string
    """
    return os.environ.get("WORKING_DIR", os.getcwd())


@lru_cache(maxsize=1)
def get_config(project_root: Path | None = None) -> Config:
    """
    Get cached configuration.

    To reload the config, clear the cache with get_config.cache_clear().

    Args:
        project_root: Project root directory (defaults to current working directory)

    Returns:
        Cached Config model
    """
    root = project_root or Path.cwd()
    return load_config(root)
