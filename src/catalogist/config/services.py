"""Configuration for the external extraction oracle and layout parser services."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig
from .storage import get_storage_config

ORACLE_TIMEOUT_SECONDS = 30.0
PARSER_TIMEOUT_SECONDS = 60.0
DOCUMENT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class OracleConfig:
    """Holds extraction oracle endpoint configuration values."""

    base_url: str
    api_key: str | None
    resilience: ResilienceConfig


@dataclass(frozen=True)
class ParserConfig:
    base_url: str
    resilience: ResilienceConfig


def _auth_headers(api_key: str | None) -> dict[str, str] | None:
    if api_key is None:
        return None
    return {"Authorization": f"Bearer {api_key}"}


def get_oracle_config(*, resilience: ResilienceConfig | None = None) -> OracleConfig:
    values = require_env_vars(("ORACLE_BASE_URL",))
    api_key = optional_env("ORACLE_API_KEY")
    return OracleConfig(
        base_url=values["ORACLE_BASE_URL"],
        api_key=api_key,
        resilience=resilience
        or ResilienceConfig(
            name="oracle",
            base_url=values["ORACLE_BASE_URL"],
            timeout_seconds=env_float("ORACLE_TIMEOUT", ORACLE_TIMEOUT_SECONDS, minimum=0.1),
            ratelimit=RateLimit(
                max_calls=env_int("ORACLE_RATE_LIMIT", 2, minimum=1),
                per_seconds=1.0,
            ),
            cache=None,
            default_headers=_auth_headers(api_key),
        ),
    )


def get_parser_config(*, resilience: ResilienceConfig | None = None) -> ParserConfig:
    values = require_env_vars(("PARSER_BASE_URL",))
    return ParserConfig(
        base_url=values["PARSER_BASE_URL"],
        resilience=resilience
        or ResilienceConfig(
            name="parser",
            base_url=values["PARSER_BASE_URL"],
            timeout_seconds=PARSER_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
            cache=None,
        ),
    )


def get_document_resilience() -> ResilienceConfig:
    """Resilience settings for fetching source documents over HTTP."""

    cache_path = get_storage_config().http_cache_path()
    return ResilienceConfig(
        name="documents",
        timeout_seconds=DOCUMENT_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=8, per_seconds=1.0),
        cache=CacheConfig(backend="sqlite", sqlite_path=str(cache_path)),
    )
