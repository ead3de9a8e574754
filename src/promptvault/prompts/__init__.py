"""
Prompt template store and rendering system.

Provides file-backed prompt management with:
- YAML frontmatter for metadata
- Jinja2 templating in a sandboxed environment
- mtime-validated caching over atomic file operations
"""

from .environment import filtered_environment, matches_env_pattern
from .frontmatter import parse_template, split_frontmatter
from .manager import TEMPLATE_SUFFIX, PromptManager, validate_prompt_name
from .models import ParameterDefinition, ParameterType, PromptMetadata, PromptTemplate
from .renderer import render_template
from .validation import validate_submission

__all__ = [
    "TEMPLATE_SUFFIX",
    "ParameterDefinition",
    "ParameterType",
    "PromptManager",
    "PromptMetadata",
    "PromptTemplate",
    "filtered_environment",
    "matches_env_pattern",
    "parse_template",
    "render_template",
    "split_frontmatter",
    "validate_prompt_name",
    "validate_submission",
]
