"""Tests for the configuration system."""

import json
import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from promptvault.config.app import (
    DEFAULT_ALLOWED_ENV_VARS,
    DEFAULT_BLOCKED_ENV_VARS,
    EnvironmentPolicy,
    PromptVaultConfig,
    RenderLimits,
    apply_cli_overrides,
    apply_env_overrides,
    get_promptvault_home,
    load_config,
    load_yaml,
    split_env_list,
)

pytestmark = pytest.mark.unit


class TestRenderLimits:
    """Tests for RenderLimits."""

    def test_defaults(self) -> None:
        """Test default limits."""
        limits = RenderLimits()

        assert limits.max_template_size == 1_000_000
        assert limits.max_param_count == 100
        assert limits.max_param_size == 1_000_000
        assert limits.max_total_params_size == 10_000_000
        assert limits.render_timeout == 5.0

    @pytest.mark.parametrize(
        "field",
        [
            "max_template_size",
            "max_param_count",
            "max_param_size",
            "max_total_params_size",
            "render_timeout",
        ],
    )
    def test_non_positive_rejected(self, field) -> None:
        """Test every limit must be positive."""
        with pytest.raises(ValidationError, match="positive"):
            RenderLimits(**{field: 0})


class TestEnvironmentPolicy:
    """Tests for EnvironmentPolicy."""

    def test_defaults(self) -> None:
        """Test the default allow and deny lists."""
        policy = EnvironmentPolicy()

        assert policy.allowed == list(DEFAULT_ALLOWED_ENV_VARS)
        assert policy.blocked == list(DEFAULT_BLOCKED_ENV_VARS)
        assert "HOME" in policy.allowed
        assert "*TOKEN*" in policy.blocked

    def test_from_strings_unset(self) -> None:
        """Test unset strings keep the defaults."""
        policy = EnvironmentPolicy.from_strings()

        assert policy == EnvironmentPolicy()

    def test_from_strings_custom(self) -> None:
        """Test lists are split on the platform path separator."""
        policy = EnvironmentPolicy.from_strings(
            allowed=os.pathsep.join(["USER", "CI_*"]),
            blocked=os.pathsep.join(["*_SECRET", " "]),
        )

        assert policy.allowed == ["USER", "CI_*"]
        assert policy.blocked == ["*_SECRET"]

    def test_empty_blocked_disables_deny(self) -> None:
        """Test an explicitly empty deny string clears the deny list."""
        policy = EnvironmentPolicy.from_strings(blocked="")

        assert policy.blocked == []
        assert policy.allowed == list(DEFAULT_ALLOWED_ENV_VARS)

    def test_empty_allowed_keeps_defaults(self) -> None:
        """Test an empty allow string keeps the default allow list."""
        policy = EnvironmentPolicy.from_strings(allowed="")

        assert policy.allowed == list(DEFAULT_ALLOWED_ENV_VARS)

    def test_split_env_list(self) -> None:
        """Test blank entries are dropped and whitespace stripped."""
        raw = os.pathsep.join(["A", "", " B "])

        assert split_env_list(raw) == ["A", "B"]
        assert split_env_list("") == []


class TestPromptVaultHome:
    """Tests for get_promptvault_home."""

    def test_default_home(self) -> None:
        """Test the home directory defaults to ~/.promptvault."""
        assert get_promptvault_home({}) == Path.home() / ".promptvault"

    def test_env_override(self, temp_dir) -> None:
        """Test PROMPTVAULT_HOME moves the home directory."""
        assert get_promptvault_home({"PROMPTVAULT_HOME": str(temp_dir)}) == temp_dir


class TestLoadYaml:
    """Tests for load_yaml."""

    def test_missing_file(self, temp_dir) -> None:
        """Test a missing file yields an empty mapping."""
        assert load_yaml(str(temp_dir / "missing.yaml")) == {}

    def test_yaml_file(self, temp_dir) -> None:
        """Test YAML content is parsed."""
        path = temp_dir / "config.yaml"
        path.write_text(yaml.dump({"seed_defaults": False}), encoding="utf-8")

        assert load_yaml(str(path)) == {"seed_defaults": False}

    def test_json_file(self, temp_dir) -> None:
        """Test JSON content is parsed."""
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"limits": {"max_param_count": 3}}), encoding="utf-8")

        assert load_yaml(str(path)) == {"limits": {"max_param_count": 3}}

    def test_empty_file(self, temp_dir) -> None:
        """Test an empty file yields an empty mapping."""
        path = temp_dir / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert load_yaml(str(path)) == {}

    def test_wrong_extension(self, temp_dir) -> None:
        """Test unsupported file extensions are rejected."""
        path = temp_dir / "config.toml"
        path.write_text("x = 1", encoding="utf-8")

        with pytest.raises(ValueError, match="extension"):
            load_yaml(str(path))

    def test_invalid_yaml(self, temp_dir) -> None:
        """Test YAML syntax errors are reported."""
        path = temp_dir / "config.yaml"
        path.write_text("limits: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_yaml(str(path))

    def test_non_mapping(self, temp_dir) -> None:
        """Test a top-level list is rejected."""
        path = temp_dir / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            load_yaml(str(path))


class TestOverrides:
    """Tests for environment and CLI overrides."""

    def test_env_overrides(self) -> None:
        """Test PROMPTVAULT_* variables override file values."""
        config_dict = {"limits": {"max_param_count": 3, "max_param_size": 10}}
        environ = {
            "PROMPTVAULT_PROMPTS_DIR": "/srv/prompts",
            "PROMPTVAULT_RENDER_TIMEOUT": "1.5",
            "PROMPTVAULT_MAX_PARAM_COUNT": "7",
        }

        result = apply_env_overrides(config_dict, environ)

        assert result["prompts_dir"] == "/srv/prompts"
        assert result["limits"] == {
            "max_param_count": "7",
            "max_param_size": 10,
            "render_timeout": "1.5",
        }

    def test_env_policy_overrides(self) -> None:
        """Test the allow and deny lists can be set from the environment."""
        environ = {
            "PROMPTVAULT_ALLOWED_ENV_VARS": os.pathsep.join(["USER", "CI_*"]),
            "PROMPTVAULT_BLOCKED_ENV_VARS": "",
        }

        result = apply_env_overrides({}, environ)

        assert result["environment"] == {"allowed": ["USER", "CI_*"], "blocked": []}

    def test_no_env_overrides(self) -> None:
        """Test an unrelated environment leaves the mapping unchanged."""
        assert apply_env_overrides({"seed_defaults": True}, {"PATH": "/bin"}) == {
            "seed_defaults": True
        }

    def test_cli_overrides_nested(self) -> None:
        """Test dotted keys set nested values."""
        result = apply_cli_overrides(
            {"limits": {"max_param_count": 3}},
            {"limits.render_timeout": 9, "environment.blocked": [], "seed_defaults": False},
        )

        assert result == {
            "limits": {"max_param_count": 3, "render_timeout": 9},
            "environment": {"blocked": []},
            "seed_defaults": False,
        }

    def test_cli_overrides_none(self) -> None:
        """Test None leaves the mapping untouched."""
        assert apply_cli_overrides({"a": 1}, None) == {"a": 1}


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, temp_dir) -> None:
        """Test a missing config file yields defaults under the home directory."""
        environ = {"PROMPTVAULT_HOME": str(temp_dir)}

        config = load_config(environ=environ)

        assert isinstance(config, PromptVaultConfig)
        assert config.get_prompts_dir() == temp_dir / "prompts"
        assert config.seed_defaults is True
        assert config.limits == RenderLimits()

    def test_hierarchy(self, temp_dir) -> None:
        """Test CLI beats environment beats file beats defaults."""
        path = temp_dir / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "prompts_dir": str(temp_dir / "from-file"),
                    "limits": {"render_timeout": 1.0, "max_param_count": 10},
                    "seed_defaults": False,
                }
            ),
            encoding="utf-8",
        )
        environ = {"PROMPTVAULT_RENDER_TIMEOUT": "2.0", "PROMPTVAULT_MAX_PARAM_COUNT": "20"}

        config = load_config(
            str(path),
            cli_overrides={"limits.max_param_count": 30},
            environ=environ,
        )

        assert config.get_prompts_dir() == temp_dir / "from-file"
        assert config.seed_defaults is False
        assert config.limits.render_timeout == 2.0
        assert config.limits.max_param_count == 30
        assert config.limits.max_param_size == 1_000_000

    def test_logging_section(self, temp_dir) -> None:
        """Test the logging section is read from the file."""
        path = temp_dir / "config.yaml"
        path.write_text(yaml.dump({"logging": {"level": "debug"}}), encoding="utf-8")

        config = load_config(str(path), environ={})

        assert config.logging.level == "debug"

    def test_invalid_config(self, temp_dir) -> None:
        """Test validation failures are reported as ValueError with the file path."""
        path = temp_dir / "config.yaml"
        path.write_text(yaml.dump({"limits": {"render_timeout": -1}}), encoding="utf-8")

        with pytest.raises(ValueError, match="Configuration validation failed") as exc_info:
            load_config(str(path), environ={})

        assert str(path) in str(exc_info.value)
