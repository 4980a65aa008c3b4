"""Configuration getter functions."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from apisentry.errors import ConfigError

from .env_loader import CONFIG_DIR_NAME, load_global_config, load_project_config


@dataclass(frozen=True)
class RateLimitSettings:
    """Pacing and backoff knobs for the outbound rate limiter."""

    base_delay_ms: int = 100
    max_delay_ms: int = 10000
    max_retries: int = 5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class AuthSettings:
    """Client-credentials endpoint used to obtain a bearer token."""

    auth_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.auth_url and self.client_id and self.client_secret)


@dataclass(frozen=True)
class LLMSettings:
    """OpenAI-compatible chat endpoint used for finding triage."""

    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def get_config(key: str, project_dir: Path | None = None, default: Any = None) -> Any:
    """
    Get configuration value with priority:
    1. Environment variable
    2. Project .env file
    3. Global config file
    4. Default value

    Args:
        key: Configuration key
        project_dir: Optional project directory (defaults to the working directory)
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    # 1. Check environment variable
    env_value = os.environ.get(key)
    if env_value:
        return env_value

    # 2. Check project .env file
    project_config = load_project_config(project_dir)
    if key in project_config:
        return project_config[key]

    # 3. Check global config
    global_config = load_global_config()
    if key in global_config:
        return global_config[key]

    # 4. Return default
    return default


def _get_int(key: str, project_dir: Path | None, default: int) -> int:
    raw = get_config(key, project_dir, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _get_float(key: str, project_dir: Path | None, default: float) -> float:
    raw = get_config(key, project_dir, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def get_rate_limit_settings(project_dir: Path | None = None) -> RateLimitSettings:
    """Read limiter settings, falling back to the built-in defaults."""
    defaults = RateLimitSettings()
    return RateLimitSettings(
        base_delay_ms=_get_int(
            "APISENTRY_RATE_LIMIT_DELAY_MS", project_dir, defaults.base_delay_ms
        ),
        max_delay_ms=_get_int(
            "APISENTRY_RATE_LIMIT_MAX_DELAY_MS", project_dir, defaults.max_delay_ms
        ),
        max_retries=_get_int(
            "APISENTRY_RATE_LIMIT_MAX_RETRIES", project_dir, defaults.max_retries
        ),
        backoff_multiplier=_get_float(
            "APISENTRY_RATE_LIMIT_BACKOFF", project_dir, defaults.backoff_multiplier
        ),
    )


def get_http_timeout(project_dir: Path | None = None) -> float:
    """Per-request HTTP timeout in seconds."""
    return _get_float("APISENTRY_HTTP_TIMEOUT", project_dir, 30.0)


def get_auth_settings(project_dir: Path | None = None) -> AuthSettings:
    """Get client-credentials settings for the token provider."""
    return AuthSettings(
        auth_url=get_config("APISENTRY_AUTH_URL", project_dir),
        client_id=get_config("APISENTRY_AUTH_CLIENT_ID", project_dir),
        client_secret=get_config("APISENTRY_AUTH_CLIENT_SECRET", project_dir),
    )


def get_llm_settings(project_dir: Path | None = None) -> LLMSettings:
    """Get LLM triage settings."""
    defaults = LLMSettings()
    return LLMSettings(
        api_key=get_config("APISENTRY_LLM_API_KEY", project_dir),
        base_url=get_config("APISENTRY_LLM_BASE_URL", project_dir, defaults.base_url),
        model=get_config("APISENTRY_LLM_MODEL", project_dir, defaults.model),
    )


def get_data_dir(project_dir: Path | None = None) -> Path:
    """Directory holding the scan database."""
    configured = get_config("APISENTRY_DATA_DIR", project_dir)
    if configured:
        return Path(configured)
    return Path.home() / CONFIG_DIR_NAME


def get_db_path(project_dir: Path | None = None) -> Path:
    """Default SQLite file for persisted scan results."""
    return get_data_dir(project_dir) / "apisentry.db"
