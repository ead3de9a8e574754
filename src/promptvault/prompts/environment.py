"""Environment variable exposure for template rendering.

Templates see a filtered view of the process environment as a list of
``"KEY=VALUE"`` strings under the ``env`` context key. Which variables
appear is decided by an EnvironmentPolicy: deny patterns are evaluated
first and always win, then a variable is exposed only if an allow
pattern matches it.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping

from promptvault.config.app import EnvironmentPolicy

__all__ = ["filtered_environment", "is_exposed", "matches_env_pattern"]


def matches_env_pattern(var_name: str, pattern: str) -> bool:
    """Match an environment variable name against a glob-style pattern.

    Patterns:
    - "*" matches all
    - "PREFIX*" matches names starting with PREFIX
    - "*SUFFIX" matches names ending with SUFFIX
    - "*MIDDLE*" matches names containing MIDDLE
    - "EXACT" matches exact name
    """
    if pattern == "*":
        return True

    if len(pattern) >= 2 and pattern.startswith("*") and pattern.endswith("*"):
        return pattern[1:-1] in var_name
    if pattern.startswith("*"):
        return var_name.endswith(pattern[1:])
    if pattern.endswith("*"):
        return var_name.startswith(pattern[:-1])
    return var_name == pattern


def _matches_any(var_name: str, patterns: Iterable[str]) -> bool:
    return any(matches_env_pattern(var_name, pattern) for pattern in patterns)


def is_exposed(var_name: str, policy: EnvironmentPolicy) -> bool:
    """Decide whether a variable name passes the policy (deny first, then allow)."""
    if _matches_any(var_name, policy.blocked):
        return False
    return _matches_any(var_name, policy.allowed)


def filtered_environment(
    policy: EnvironmentPolicy,
    environ: Mapping[str, str] | None = None,
) -> list[str]:
    """Compute the ``KEY=VALUE`` entries exposed to templates.

    Computed fresh on every call so changes to the process environment
    are picked up.

    Args:
        policy: Allow/deny pattern policy
        environ: Environment mapping (defaults to os.environ)

    Returns:
        List of "KEY=VALUE" strings in environment iteration order
    """
    environ = os.environ if environ is None else environ
    return [f"{key}={value}" for key, value in environ.items() if is_exposed(key, policy)]
