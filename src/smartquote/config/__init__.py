"""Configuration loading for SmartQuote."""

from .loader import (
    CONFIG_ENV_VAR,
    AppConfig,
    ConfigError,
    RulesConfig,
    default_rules,
    load_config,
    rules_from_mapping,
    save_config,
)
from .provider import RulesProvider

__all__ = [
    "CONFIG_ENV_VAR",
    "AppConfig",
    "ConfigError",
    "RulesConfig",
    "RulesProvider",
    "default_rules",
    "load_config",
    "rules_from_mapping",
    "save_config",
]
