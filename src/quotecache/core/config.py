"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from quotecache.core.exceptions import ConfigError

_FALLBACK_ALPHA_VANTAGE_ENV = "ALPHA_VANTAGE_API_KEY"


class StorageConfig(BaseModel):
    """Price log storage configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/quotecache.db"


class CacheConfig(BaseModel):
    """Cache validity and batch pacing."""

    model_config = ConfigDict(frozen=True)

    ttl_seconds: int = 6 * 60 * 60
    batch_delay_seconds: float = 0.2

    @field_validator("ttl_seconds")
    @classmethod
    def ttl_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("ttl_seconds must be >= 1")
        return v

    @field_validator("batch_delay_seconds")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("batch_delay_seconds must be >= 0")
        return v


class YahooConfig(BaseModel):
    """Primary (keyless) quote provider."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = "https://query1.finance.yahoo.com"
    rate_limit_per_minute: int | None = None


class AlphaVantageConfig(BaseModel):
    """Secondary (key-gated) quote provider."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = "https://www.alphavantage.co"
    rate_limit_per_minute: int | None = 5

    @field_validator("api_key")
    @classmethod
    def blank_key_is_none(cls, v: str | None) -> str | None:
        if v is not None and not str(v).strip():
            return None
        return v

    @property
    def has_credentials(self) -> bool:
        return self.api_key is not None


class ProvidersConfig(BaseModel):
    """Shared HTTP settings plus per-provider sections."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = "quotecache/0.1"
    request_timeout: float = 10.0
    yahoo: YahooConfig = YahooConfig()
    alpha_vantage: AlphaVantageConfig = AlphaVantageConfig()

    @field_validator("user_agent")
    @classmethod
    def user_agent_not_empty(cls, v: str) -> str:
        # Yahoo rejects requests without a User-Agent.
        if not v.strip():
            raise ValueError("user_agent must not be empty")
        return v

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class QuoteCacheConfig(BaseModel):
    """Root configuration for quotecache."""

    model_config = ConfigDict(frozen=True)

    storage: StorageConfig = StorageConfig()
    cache: CacheConfig = CacheConfig()
    providers: ProvidersConfig = ProvidersConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "QUOTECACHE_",
) -> QuoteCacheConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (QUOTECACHE_CACHE__TTL_SECONDS, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        QUOTECACHE_PROVIDERS__ALPHA_VANTAGE__API_KEY=abc
            ->  providers.alpha_vantage.api_key = "abc"

    ALPHA_VANTAGE_API_KEY is used when no key is configured otherwise.
    """
    try:
        yaml_path = _resolve_config_path(config_path, env_prefix)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        _apply_alpha_vantage_fallback(merged)
        return QuoteCacheConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None, env_prefix: str) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_var = f"{env_prefix}CONFIG"
    env_path = os.environ.get(env_var)
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from {env_var} not found: {env_path}",
                context={"field": env_var, "value": env_path},
            )
        return p

    default = Path("quotecache.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int.
    API keys are always kept as strings.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        if parts == ["config"]:
            continue

        cast_value = value if parts[-1] == "api_key" else _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _apply_alpha_vantage_fallback(merged: dict) -> None:
    fallback = os.environ.get(_FALLBACK_ALPHA_VANTAGE_ENV)
    if not fallback:
        return
    providers = merged.setdefault("providers", {})
    section = providers.setdefault("alpha_vantage", {})
    if not section.get("api_key"):
        section["api_key"] = fallback


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
