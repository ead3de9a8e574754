"""
Configuration package for the prompt store.

This package provides Pydantic config models for all store settings.

Module structure:
- app.py: PromptVaultConfig, RenderLimits, EnvironmentPolicy and loading helpers
- logging.py: LoggingSettings and setup_logging
"""

from promptvault.config.app import (
    DEFAULT_ALLOWED_ENV_VARS,
    DEFAULT_BLOCKED_ENV_VARS,
    EnvironmentPolicy,
    PromptVaultConfig,
    RenderLimits,
    get_promptvault_home,
    load_config,
)
from promptvault.config.logging import LoggingSettings, setup_logging

__all__ = [
    "DEFAULT_ALLOWED_ENV_VARS",
    "DEFAULT_BLOCKED_ENV_VARS",
    "EnvironmentPolicy",
    "LoggingSettings",
    "PromptVaultConfig",
    "RenderLimits",
    "get_promptvault_home",
    "load_config",
    "setup_logging",
]
