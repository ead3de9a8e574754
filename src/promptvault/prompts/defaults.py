"""Bundled default prompt templates.

The templates live as ``<name>.j2.md`` files in the ``bundled`` directory
next to this module and are copied into the prompts directory by
PromptManager.init() on first run.
"""

from __future__ import annotations

from pathlib import Path

__all__ = ["DEFAULTS_DIR", "load_default_prompts"]

DEFAULTS_DIR = Path(__file__).parent / "bundled"

_SUFFIX = ".j2.md"


def load_default_prompts(defaults_dir: Path | None = None) -> list[tuple[str, str]]:
    """Read the bundled default templates.

    Args:
        defaults_dir: Directory to read from (defaults to the bundled directory)

    Returns:
        List of (name, content) pairs sorted by name. The first entry doubles
        as the first-run sentinel.
    """
    defaults_dir = defaults_dir or DEFAULTS_DIR
    if not defaults_dir.is_dir():
        return []

    defaults: list[tuple[str, str]] = []
    for path in sorted(defaults_dir.glob(f"*{_SUFFIX}")):
        name = path.name[: -len(_SUFFIX)]
        defaults.append((name, path.read_text(encoding="utf-8")))
    return defaults
