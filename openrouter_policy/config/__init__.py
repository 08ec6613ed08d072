"""Configuration management for openrouter-policy."""

from openrouter_policy.config.settings import (
    USER_CONFIG_FILE,
    CapabilityConfig,
    CatalogConfig,
    HealingConfig,
    OpenRouterConfig,
    Settings,
    get_settings,
    init_user_config,
)

__all__ = [
    "CapabilityConfig",
    "CatalogConfig",
    "HealingConfig",
    "OpenRouterConfig",
    "Settings",
    "USER_CONFIG_FILE",
    "get_settings",
    "init_user_config",
]
