"""Settings management with Pydantic Settings.

Configuration priority (highest to lowest):
1. Environment variables
2. .env file in current directory
3. User config file (~/.config/openrouter-policy/config.yaml)
4. Default values

Core objects never read these settings on their own; the client, the CLI
and ``build_catalog`` pass the relevant group into them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# User config directory
USER_CONFIG_DIR = Path.home() / ".config" / "openrouter-policy"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_CACHE_TTL = 7 * 24 * 60 * 60  # 7 days


def _load_user_config() -> dict[str, Any]:
    """Load user configuration from ~/.config/openrouter-policy/config.yaml."""
    if USER_CONFIG_FILE.exists():
        with open(USER_CONFIG_FILE, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


class OpenRouterConfig(BaseSettings):
    """Connection settings for the OpenRouter API."""

    base_url: str = DEFAULT_BASE_URL
    api_key: SecretStr = SecretStr("")  # OPENROUTER_API_KEY
    site_url: str | None = None  # sent as HTTP-Referer
    site_name: str | None = None  # sent as X-Title
    request_timeout: float = Field(default=120.0, gt=0)
    default_model: str = "openrouter/auto"

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    def extra_headers(self) -> dict[str, str]:
        """Attribution headers OpenRouter uses for app rankings."""
        headers: dict[str, str] = {}
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.site_name:
            headers["X-Title"] = self.site_name
        return headers


class HealingConfig(BaseSettings):
    """Structured-output healing behaviour."""

    auto_heal_responses: bool = False
    healer_model: str = "openai/gpt-4o-mini"
    max_heal_attempts: int = Field(default=2, ge=0)
    default_structured_output_mode: Literal["strict", "gentle"] = Field(
        default="strict",
        validation_alias=AliasChoices(
            "OPENROUTER_DEFAULT_STRUCTURED_OUTPUT_MODE",
            "OPENROUTER_DEFAULT_MODE",
        ),
    )
    healer_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    healer_max_tokens: int = Field(default=4000, gt=0)
    # Provider-side "response-healing" plugin for non-streaming structured requests
    auto_native_healing: bool = True

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        extra="ignore",
        populate_by_name=True,
    )


class CapabilityConfig(BaseSettings):
    """Capability validation behaviour."""

    strict_mode: bool = False
    auto_force_on_unsupported_models: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "OPENROUTER_AUTO_FORCE_ON_UNSUPPORTED_MODELS",
            "OPENROUTER_AUTO_FORCE",
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        extra="ignore",
        populate_by_name=True,
    )


class CatalogConfig(BaseSettings):
    """Model catalog fetching and caching."""

    base_url: str = DEFAULT_BASE_URL
    cache_ttl: int = Field(default=DEFAULT_CACHE_TTL, ge=0)
    registry_timeout: float = Field(default=30.0, gt=0)
    registry_retries: int = Field(default=3, ge=1)
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "openrouter-policy"
    )
    max_cache_size_mb: float = Field(default=50.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Main application settings.

    Configuration is loaded from multiple sources (highest priority first):
    1. Environment variables (OPENROUTER_* for the groups,
       OPENROUTER_POLICY_<GROUP>__<FIELD> for nested overrides)
    2. .env file in current directory
    3. User config file (~/.config/openrouter-policy/config.yaml)
    4. Default values

    Example .env file:
        OPENROUTER_API_KEY=sk-or-v1-your-key
        OPENROUTER_STRICT_MODE=true
        OPENROUTER_MAX_HEAL_ATTEMPTS=3

    Example config.yaml:
        openrouter:
          api_key: sk-or-v1-your-key
        healing:
          auto_heal_responses: true
          healer_model: openai/gpt-4o-mini
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_POLICY_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig)
    healing: HealingConfig = Field(default_factory=HealingConfig)
    capabilities: CapabilityConfig = Field(default_factory=CapabilityConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)


_GROUPS: dict[str, type[BaseSettings]] = {
    "openrouter": OpenRouterConfig,
    "healing": HealingConfig,
    "capabilities": CapabilityConfig,
    "catalog": CatalogConfig,
}


def _group_from_file(group_cls: type[BaseSettings], data: dict[str, Any]) -> BaseSettings:
    """Build a settings group from user-file values; environment values win."""
    from_env = group_cls()
    overrides = {name: getattr(from_env, name) for name in from_env.model_fields_set}
    return group_cls(**{**data, **overrides})


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Loads configuration from:
    1. Default values
    2. User config file (~/.config/openrouter-policy/config.yaml)
    3. .env file
    4. Environment variables (highest priority)
    """
    user_config = _load_user_config()

    groups = {
        name: _group_from_file(group_cls, user_config.pop(name) or {})
        for name, group_cls in _GROUPS.items()
        if name in user_config
    }
    return Settings(**user_config, **groups)


def init_user_config() -> Path:
    """Initialize user config directory and return the config file path.

    Creates ~/.config/openrouter-policy/config.yaml with a template if it
    doesn't exist.
    """
    USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    if not USER_CONFIG_FILE.exists():
        template = """# openrouter-policy configuration
# This file is loaded automatically. Environment variables take priority.

# OpenRouter API configuration
openrouter:
  api_key: ""  # Your OpenRouter API key (or set OPENROUTER_API_KEY env var)
  base_url: "https://openrouter.ai/api/v1"
  # site_url: "https://example.com"
  # site_name: "My App"

# Structured-output healing
# healing:
#   auto_heal_responses: false
#   healer_model: "openai/gpt-4o-mini"
#   max_heal_attempts: 2
#   default_structured_output_mode: "strict"  # strict | gentle

# Capability validation
# capabilities:
#   strict_mode: false
#   auto_force_on_unsupported_models: true

# Model catalog cache
# catalog:
#   cache_ttl: 604800  # seconds
#   registry_timeout: 30
#   registry_retries: 3
"""
        USER_CONFIG_FILE.write_text(template, encoding="utf-8")

    return USER_CONFIG_FILE
