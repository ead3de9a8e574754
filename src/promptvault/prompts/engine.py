"""Jinja2 environment construction for prompt templates.

Templates run in a SandboxedEnvironment with no loader, so directives that
reach other templates have nothing to resolve against, and attribute access
to Python internals is refused by the sandbox. Integer powers are bounded
before they are computed, and are never folded at compile time. A fresh
environment is built for every compile or render, so no engine state is
shared across threads.
"""

from __future__ import annotations

import threading
from typing import Any

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment, SecurityError

__all__ = [
    "MAX_POWER_BITS",
    "DeadlineExceeded",
    "PromptSandbox",
    "check_power",
    "create_environment",
]

# Largest integer power result, in bits, a template may compute
MAX_POWER_BITS = 100_000


class DeadlineExceeded(Exception):  # noqa: N818
    """Raised inside a render once its cancel event has been set."""


def check_power(base: Any, exponent: Any) -> None:
    """Refuse integer powers whose result would exceed MAX_POWER_BITS.

    A big-integer power is a single C-level operation that holds the GIL,
    so neither the render deadline nor the cancel event can interrupt it.
    Float powers overflow quickly and are left alone.
    """
    if not isinstance(base, int) or not isinstance(exponent, int):
        return
    if exponent <= 0 or abs(base) <= 1:
        return
    if abs(base).bit_length() * exponent > MAX_POWER_BITS:
        raise SecurityError(f"integer power result would exceed {MAX_POWER_BITS} bits")


class PromptSandbox(SandboxedEnvironment):
    """Sandboxed environment that aborts when its cancel event is set.

    The event is checked on every sandboxed call, attribute lookup and
    intercepted operator, which lets a timed-out render stop between loop
    iterations instead of running to completion on its worker thread.
    """

    # Intercepted operators are also never constant-folded at compile time
    intercepted_binops = frozenset({"**"})

    def __init__(self, cancel_event: threading.Event | None = None, **options: Any):
        super().__init__(**options)
        self._cancel_event = cancel_event

    def check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise DeadlineExceeded("render cancelled")

    def call(self, context: Any, obj: Any, /, *args: Any, **kwargs: Any) -> Any:
        self.check_cancelled()
        return super().call(context, obj, *args, **kwargs)

    def getattr(self, obj: Any, attribute: str) -> Any:
        self.check_cancelled()
        return super().getattr(obj, attribute)

    def getitem(self, obj: Any, argument: Any) -> Any:
        self.check_cancelled()
        return super().getitem(obj, argument)

    def call_binop(self, context: Any, operator: str, left: Any, right: Any) -> Any:
        self.check_cancelled()
        if operator == "**":
            check_power(left, right)
        return super().call_binop(context, operator, left, right)


def create_environment(cancel_event: threading.Event | None = None) -> PromptSandbox:
    """Create a restricted Jinja2 environment for plain-text prompts.

    Args:
        cancel_event: Optional event that aborts rendering once set

    Returns:
        A new PromptSandbox instance
    """
    return PromptSandbox(  # nosec B701 - generating raw text prompts, not HTML
        cancel_event=cancel_event,
        autoescape=False,
        undefined=StrictUndefined,
        extensions=[],
    )
