"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .importing import (
    SYSTEM_USER,
    ImportConfig,
    UploadConfig,
    get_import_config,
    get_upload_config,
)
from .loader import (
    LoaderConfig,
    LoaderCredentials,
    get_loader_config,
    get_loader_credentials,
)
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "SYSTEM_USER",
    "ConfigurationError",
    "DatabaseConfig",
    "ImportConfig",
    "LoaderConfig",
    "LoaderCredentials",
    "MissingConfigurationError",
    "StorageConfig",
    "UploadConfig",
    "configure_logging",
    "get_database_config",
    "get_import_config",
    "get_loader_config",
    "get_loader_credentials",
    "get_storage_config",
    "get_upload_config",
    "require_env_vars",
]
