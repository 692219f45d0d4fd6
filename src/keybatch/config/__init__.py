"""Application configuration helpers."""

from __future__ import annotations

from .engine import EngineConfig, get_engine_config
from .env import env_list, optional_env_var, optional_positive_int, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .remote import RemoteStoreConfig, get_remote_store_config
from .storage import StorageConfig, get_database_uri, get_storage_config

__all__ = [
    "ConfigurationError",
    "EngineConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "RemoteStoreConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_list",
    "get_database_uri",
    "get_engine_config",
    "get_remote_store_config",
    "get_storage_config",
    "optional_env_var",
    "optional_positive_int",
    "require_env_vars",
]
