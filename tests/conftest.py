"""Pytest configuration and shared fixtures for promptvault tests."""

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from promptvault.config.app import EnvironmentPolicy, PromptVaultConfig, RenderLimits
from promptvault.prompts.manager import PromptManager

SAMPLE_TEMPLATE = """---
title: "T"
description: "D"
categories: ["c"]
author: "a"
parameters:
  - name: "x"
    description: "Who to greet"
    type: string
    required: true
---
Hello {{ x }}"""


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def default_config(temp_dir: Path) -> PromptVaultConfig:
    """Create a config pointing at a temporary prompts directory, without seeding."""
    return PromptVaultConfig(
        prompts_dir=str(temp_dir / "prompts"),
        seed_defaults=False,
        limits=RenderLimits(render_timeout=2.0),
        environment=EnvironmentPolicy(),
    )


@pytest.fixture
def prompts_dir(default_config: PromptVaultConfig) -> Path:
    """Create the prompts directory."""
    path = default_config.get_prompts_dir()
    path.mkdir(parents=True)
    return path


@pytest.fixture
def manager(default_config: PromptVaultConfig, prompts_dir: Path) -> PromptManager:
    """Create a prompt manager over an empty prompts directory."""
    return PromptManager(config=default_config, environ={"USER": "tester"})


@pytest.fixture
def sample_template() -> str:
    """A valid template with one required string parameter."""
    return SAMPLE_TEMPLATE
