"""
Configuration management for APISentry.

Supports multiple configuration sources in order of priority:
1. Environment variables (highest priority)
2. Project .env file (.apisentry/.env in the working directory)
3. Global config file (~/.apisentry/config.yml)
4. Default values (lowest priority)
"""

from .env_loader import (
    global_config_path,
    load_env_file,
    load_global_config,
    load_project_config,
)
from .getters import (
    AuthSettings,
    LLMSettings,
    RateLimitSettings,
    get_auth_settings,
    get_config,
    get_data_dir,
    get_db_path,
    get_http_timeout,
    get_llm_settings,
    get_rate_limit_settings,
)

__all__ = [
    # env_loader
    "global_config_path",
    "load_env_file",
    "load_global_config",
    "load_project_config",
    # getters
    "AuthSettings",
    "LLMSettings",
    "RateLimitSettings",
    "get_auth_settings",
    "get_config",
    "get_data_dir",
    "get_db_path",
    "get_http_timeout",
    "get_llm_settings",
    "get_rate_limit_settings",
]
