"""
Configuration management for the prompt store.

Provides YAML-based configuration with environment and CLI overrides,
configuration hierarchy (CLI > environment > YAML > Defaults), and validation.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from promptvault.config.logging import LoggingSettings

__all__ = [
    "DEFAULT_ALLOWED_ENV_VARS",
    "DEFAULT_BLOCKED_ENV_VARS",
    "ENV_PREFIX",
    "EnvironmentPolicy",
    "PromptVaultConfig",
    "RenderLimits",
    "apply_cli_overrides",
    "apply_env_overrides",
    "get_promptvault_home",
    "load_config",
    "load_yaml",
    "split_env_list",
]

ENV_PREFIX = "PROMPTVAULT_"

# Conventionally harmless identifiers (Unix + Windows equivalents)
DEFAULT_ALLOWED_ENV_VARS: tuple[str, ...] = (
    "USER",
    "HOME",
    "SHELL",
    "PWD",
    "EDITOR",
    "TERM",
    "USERNAME",
    "USERPROFILE",
    "HOMEDRIVE",
    "HOMEPATH",
)

# Secret-shaped names
DEFAULT_BLOCKED_ENV_VARS: tuple[str, ...] = (
    "*_SECRET",
    "*SECRET*",
    "*_PASSWORD",
    "*PASSWORD*",
    "*_TOKEN",
    "*TOKEN*",
    "*_KEY",
    "*KEY*",
    "*_CREDENTIAL",
    "*CREDENTIAL*",
    "*_AUTH",
    "*AUTH*",
    "AWS_SECRET_ACCESS_KEY",
    "GITHUB_TOKEN",
    "DATABASE_PASSWORD",
)


def get_promptvault_home(environ: Mapping[str, str] | None = None) -> Path:
    """Get promptvault home directory, respecting PROMPTVAULT_HOME env var.

    Returns:
        Path to promptvault home (~/.promptvault by default, or PROMPTVAULT_HOME if set)
    """
    environ = os.environ if environ is None else environ
    home = environ.get(f"{ENV_PREFIX}HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".promptvault"


def split_env_list(value: str) -> list[str]:
    """Split a list encoded in one environment variable.

    Entries are separated by the platform path separator (':' on Unix and
    macOS, ';' on Windows). Blank entries are dropped.
    """
    return [part.strip() for part in value.split(os.pathsep) if part.strip()]


class RenderLimits(BaseModel):
    """Resource bounds for templates, parameters and rendering."""

    max_template_size: int = Field(
        default=1_000_000,
        description="Maximum template file size in bytes",
    )
    max_param_count: int = Field(
        default=100,
        description="Maximum number of parameters per render",
    )
    max_param_size: int = Field(
        default=1_000_000,
        description="Maximum size of a single parameter value in bytes",
    )
    max_total_params_size: int = Field(
        default=10_000_000,
        description="Maximum combined size of all parameter values in bytes",
    )
    render_timeout: float = Field(
        default=5.0,
        description="Wall-clock render deadline in seconds",
    )

    @field_validator(
        "max_template_size",
        "max_param_count",
        "max_param_size",
        "max_total_params_size",
        "render_timeout",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate value is positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class EnvironmentPolicy(BaseModel):
    """Allow/deny glob patterns deciding which environment variables reach templates.

    Patterns are ``*``, ``PREFIX*``, ``*SUFFIX``, ``*MIDDLE*`` or an exact name.
    Deny patterns are checked first and always win. An empty ``blocked``
    list disables deny-filtering entirely.
    """

    allowed: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ENV_VARS),
        description="Glob patterns of variables exposed to templates",
    )
    blocked: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_ENV_VARS),
        description="Glob patterns of variables never exposed (checked first)",
    )

    @classmethod
    def from_strings(
        cls,
        allowed: str | None = None,
        blocked: str | None = None,
    ) -> EnvironmentPolicy:
        """Build a policy from separator-encoded strings.

        ``allowed`` unset or empty keeps the default allow list. ``blocked``
        unset keeps the default deny list, while an explicitly empty string
        disables deny-filtering.
        """
        policy = cls()
        if allowed:
            parsed = split_env_list(allowed)
            if parsed:
                policy.allowed = parsed
        if blocked is not None:
            policy.blocked = split_env_list(blocked)
        return policy


class PromptVaultConfig(BaseModel):
    """Top-level prompt store configuration."""

    prompts_dir: str = Field(
        default_factory=lambda: str(get_promptvault_home() / "prompts"),
        description="Directory holding <name>.j2.md template files",
    )
    seed_defaults: bool = Field(
        default=True,
        description="Write bundled default templates on first run",
    )
    limits: RenderLimits = Field(
        default_factory=RenderLimits,
        description="Template and parameter resource limits",
    )
    environment: EnvironmentPolicy = Field(
        default_factory=EnvironmentPolicy,
        description="Environment variable exposure policy",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    def get_prompts_dir(self) -> Path:
        """Get the expanded prompts directory path."""
        return Path(self.prompts_dir).expanduser()


def load_yaml(config_file: str) -> dict[str, Any]:
    """
    Load YAML or JSON configuration file.

    Args:
        config_file: Path to YAML or JSON configuration file

    Returns:
        Dictionary with parsed YAML/JSON content

    Raises:
        ValueError: If YAML/JSON is invalid or file format is wrong
    """
    config_path = Path(config_file).expanduser()

    if not config_path.exists():
        return {}

    file_ext = config_path.suffix.lower()
    if file_ext not in [".yaml", ".yml", ".json"]:
        raise ValueError(
            f"Config file must have .yaml, .yml, or .json extension, got: {file_ext}\n"
            f"File: {config_path}"
        )

    try:
        content = config_path.read_text(encoding="utf-8")

        if file_ext == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping at top level: {config_path}")
    return data


def apply_env_overrides(
    config_dict: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Apply PROMPTVAULT_* environment variable overrides to config dictionary.

    Args:
        config_dict: Configuration dictionary
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Configuration dictionary with environment overrides applied
    """
    environ = os.environ if environ is None else environ

    prompts_dir = environ.get(f"{ENV_PREFIX}PROMPTS_DIR")
    if prompts_dir:
        config_dict["prompts_dir"] = prompts_dir

    limits = dict(config_dict.get("limits") or {})
    for field_name in RenderLimits.model_fields:
        raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw:
            limits[field_name] = raw
    if limits:
        config_dict["limits"] = limits

    allowed = environ.get(f"{ENV_PREFIX}ALLOWED_ENV_VARS")
    blocked = environ.get(f"{ENV_PREFIX}BLOCKED_ENV_VARS")
    if allowed or blocked is not None:
        environment = dict(config_dict.get("environment") or {})
        if allowed and split_env_list(allowed):
            environment["allowed"] = split_env_list(allowed)
        if blocked is not None:
            environment["blocked"] = split_env_list(blocked)
        config_dict["environment"] = environment

    return config_dict


def apply_cli_overrides(
    config_dict: dict[str, Any],
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Apply CLI argument overrides to config dictionary.

    Args:
        config_dict: Configuration dictionary
        cli_overrides: Dictionary of CLI overrides (dotted keys allowed)

    Returns:
        Configuration dictionary with CLI overrides applied
    """
    if cli_overrides is None:
        return config_dict

    for key, value in cli_overrides.items():
        if "." in key:
            # Handle nested keys like "limits.render_timeout"
            parts = key.split(".")
            current = config_dict
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            config_dict[key] = value

    return config_dict


def load_config(
    config_file: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PromptVaultConfig:
    """
    Load configuration with hierarchy: CLI > environment > YAML > Defaults.

    Args:
        config_file: Path to YAML config file (default: ~/.promptvault/config.yaml)
        cli_overrides: Dictionary of CLI argument overrides
        environ: Environment mapping for PROMPTVAULT_* overrides (default: os.environ)

    Returns:
        Validated PromptVaultConfig instance

    Raises:
        ValueError: If configuration is invalid
    """
    if config_file is None:
        config_file = str(get_promptvault_home(environ) / "config.yaml")

    config_dict = load_yaml(config_file)
    config_dict = apply_env_overrides(config_dict, environ)
    config_dict = apply_cli_overrides(config_dict, cli_overrides)
    config_dict.setdefault("prompts_dir", str(get_promptvault_home(environ) / "prompts"))

    try:
        return PromptVaultConfig(**config_dict)
    except Exception as e:
        raise ValueError(
            f"Configuration validation failed: {e}\n"
            f"Please check your configuration file at {config_file}"
        ) from e
