"""
Configuration module for the session server.

Exports the main configuration classes and functions for use throughout the application.
"""

from .defaults import DEFAULT_MODEL
from .loader import (
    get_config,
    get_working_directory,
    load_config,
    load_config_file,
    merge_configs,
    strip_jsonc_comments,
)
from .main_config import Config
from .server_config import ServerConfig
from .session_config import SessionConfig
from .storage_config import StorageConfig

__all__ = [
    # Constants
    "DEFAULT_MODEL",
    # Config models
    "Config",
    "SessionConfig",
    "ServerConfig",
    "StorageConfig",
    # Loader functions
    "load_config",
    "get_config",
    "get_working_directory",
    "load_config_file",
    "merge_configs",
    "strip_jsonc_comments",
]
