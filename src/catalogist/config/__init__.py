"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, env_list, optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .ingest import DEFAULT_FAMILY, IngestConfig, get_ingest_config
from .logging import configure_logging
from .services import (
    OracleConfig,
    ParserConfig,
    get_document_resilience,
    get_oracle_config,
    get_parser_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "DEFAULT_FAMILY",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "IngestConfig",
    "MissingConfigurationError",
    "OracleConfig",
    "ParserConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_float",
    "env_int",
    "env_list",
    "get_database_config",
    "get_document_resilience",
    "get_ingest_config",
    "get_oracle_config",
    "get_parser_config",
    "get_storage_config",
    "optional_env",
    "require_env_vars",
]
