"""Template rendering with parameter checks and resource bounds.

Context assembly order:
1. Parameter count and size limits
2. Required parameters present, declared parameters correctly typed
3. Defaults merged for declared parameters the caller left out
4. Filtered environment injected under the reserved ``env`` key

Rendering runs on a worker thread under a wall-clock deadline so a
pathological template cannot block the event loop. Each render builds its
own sandboxed Jinja2 environment on that thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Mapping
from typing import Any

from jinja2 import TemplateSyntaxError, UndefinedError
from jinja2.sandbox import SecurityError

from promptvault.config.app import EnvironmentPolicy, RenderLimits
from promptvault.errors import (
    MissingRequiredParameterError,
    ParametersTooLargeError,
    ParameterTooLargeError,
    ParameterTypeMismatchError,
    PromptSyntaxError,
    RenderEngineFaultError,
    RenderError,
    RenderTimeoutError,
    SecurityViolationError,
    TooManyParametersError,
)

from .engine import DeadlineExceeded, create_environment
from .environment import filtered_environment
from .models import PromptTemplate, describe_value_type, value_matches_type

__all__ = [
    "ENV_CONTEXT_KEY",
    "apply_defaults",
    "build_context",
    "param_value_size",
    "render_template",
    "validate_parameter_sizes",
    "validate_parameters",
]

logger = logging.getLogger(__name__)

ENV_CONTEXT_KEY = "env"


def param_value_size(value: Any) -> int:
    """Get the byte size of a parameter value."""
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, bool):
        return 1
    if isinstance(value, int | float):
        return 8
    if isinstance(value, list | tuple) and all(isinstance(item, str) for item in value):
        return sum(len(item.encode("utf-8")) for item in value)
    return len(json.dumps(value, default=str).encode("utf-8"))


def validate_parameter_sizes(params: Mapping[str, Any], limits: RenderLimits) -> None:
    """Validate parameter count and sizes to prevent resource exhaustion."""
    if len(params) > limits.max_param_count:
        raise TooManyParametersError(actual=len(params), limit=limits.max_param_count)

    total_size = 0
    for key, value in params.items():
        size = param_value_size(value)
        if size > limits.max_param_size:
            raise ParameterTooLargeError(key, actual=size, limit=limits.max_param_size)
        total_size += size

    if total_size > limits.max_total_params_size:
        raise ParametersTooLargeError(actual=total_size, limit=limits.max_total_params_size)


def validate_parameters(template: PromptTemplate, params: Mapping[str, Any]) -> None:
    """Validate provided parameters against the template's declarations."""
    declared = template.metadata.parameters

    for param_def in declared:
        if param_def.required and param_def.name not in params:
            raise MissingRequiredParameterError(
                param_def.name, param_def.description, name=template.filename
            )

    for param_def in declared:
        if param_def.name in params:
            value = params[param_def.name]
            if not value_matches_type(param_def.type, value):
                raise ParameterTypeMismatchError(
                    param_def.name,
                    expected=param_def.type.value,
                    actual=describe_value_type(value),
                    name=template.filename,
                )


def apply_defaults(template: PromptTemplate, params: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``params`` with defaults filled in for omitted parameters."""
    result = dict(params)
    for param_def in template.metadata.parameters:
        if param_def.name not in result and param_def.has_default:
            result[param_def.name] = param_def.default
    return result


def build_context(
    template: PromptTemplate,
    parameters: Mapping[str, Any] | None,
    limits: RenderLimits,
    env_policy: EnvironmentPolicy,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Assemble the render context for a template.

    Raises:
        SizeLimitExceededError: Too many or too large parameters
        MissingRequiredParameterError: A required parameter was not supplied
        ParameterTypeMismatchError: A declared parameter has the wrong type
    """
    params = parameters or {}

    validate_parameter_sizes(params, limits)
    validate_parameters(template, params)

    context = apply_defaults(template, params)
    if ENV_CONTEXT_KEY in params:
        logger.debug(f"Parameter '{ENV_CONTEXT_KEY}' is reserved and was replaced")
    context[ENV_CONTEXT_KEY] = filtered_environment(env_policy, environ)
    return context


def _render_blocking(content: str, context: dict[str, Any], cancel_event: threading.Event) -> str:
    env = create_environment(cancel_event)
    compiled = env.from_string(content)

    chunks: list[str] = []
    for chunk in compiled.generate(context):
        if cancel_event.is_set():
            raise DeadlineExceeded("render cancelled")
        chunks.append(chunk)
    return "".join(chunks)


async def render_template(
    template: PromptTemplate,
    parameters: Mapping[str, Any] | None = None,
    limits: RenderLimits | None = None,
    env_policy: EnvironmentPolicy | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Render a template with parameters and environment variables.

    Args:
        template: Parsed template
        parameters: Caller-supplied parameter values
        limits: Resource limits (defaults used when None)
        env_policy: Environment exposure policy (defaults used when None)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Rendered plain text

    Raises:
        RenderTimeoutError: Rendering exceeded limits.render_timeout
        RenderEngineFaultError: The engine aborted (recursion or memory exhaustion)
        RenderError: Any other engine failure (undefined variable, filter error, ...)
    """
    limits = limits or RenderLimits()
    env_policy = env_policy or EnvironmentPolicy()
    name = template.filename

    context = build_context(template, parameters, limits, env_policy, environ)
    cancel_event = threading.Event()

    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_render_blocking, template.content, context, cancel_event),
            timeout=limits.render_timeout,
        )
    except asyncio.TimeoutError:
        cancel_event.set()
        logger.warning(f"Rendering prompt '{name}' timed out after {limits.render_timeout}s")
        raise RenderTimeoutError(limits.render_timeout, name=name) from None
    except DeadlineExceeded:
        raise RenderTimeoutError(limits.render_timeout, name=name) from None
    except TemplateSyntaxError as e:
        raise PromptSyntaxError(e.message or str(e), lineno=e.lineno) from e
    except SecurityError as e:
        logger.warning(f"Sandbox blocked unsafe access in prompt '{name}': {e}")
        raise SecurityViolationError(
            f"Template attempted an unsafe operation: {e}. "
            "Templates may only use parameters, env and built-in filters.",
            name=name,
        ) from e
    except (RecursionError, MemoryError) as e:
        logger.warning(f"Template engine aborted rendering prompt '{name}': {e!r}")
        raise RenderEngineFaultError(type(e).__name__, name=name) from e
    except UndefinedError as e:
        raise RenderError(
            f"Undefined variable in prompt '{name}': {e.message}. "
            "Pass the parameter, declare a default, or guard it with '{% if x is defined %}'.",
            name=name,
        ) from e
    except Exception as e:
        logger.warning(f"Template rendering error in prompt '{name}': {e}")
        raise RenderError(
            f"Template rendering failed for prompt '{name}': {e}. "
            "Check the filters and expressions used in the template.",
            name=name,
        ) from e
