"""Error taxonomy for the prompt template store.

Every error raised by the store derives from :class:`PromptError` and
carries a message written for people authoring templates by hand, so it
always says what went wrong and what to do about it.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "PromptError",
    "InvalidPromptNameError",
    "PromptNotFoundError",
    "PromptAlreadyExistsError",
    "ParseError",
    "MissingMetadataError",
    "MalformedMetadataError",
    "PromptValidationError",
    "SizeLimitExceededError",
    "TemplateTooLargeError",
    "TooManyParametersError",
    "ParameterTooLargeError",
    "ParametersTooLargeError",
    "SecurityViolationError",
    "PromptSyntaxError",
    "MissingRequiredParameterError",
    "ParameterTypeMismatchError",
    "RenderError",
    "RenderTimeoutError",
    "RenderEngineFaultError",
    "PromptPermissionError",
    "PromptIOError",
]


class PromptError(Exception):
    """Base class for all prompt store errors."""

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(message)


class InvalidPromptNameError(PromptError):
    """Prompt name contains characters outside [A-Za-z0-9_-] or a traversal."""

    def __init__(self, name: str, reason: str):
        self.reason = reason
        super().__init__(f"Invalid prompt name: '{name}'. {reason}", name=name)


class PromptNotFoundError(PromptError):
    def __init__(self, name: str, hint: str | None = None):
        message = f"Prompt '{name}' not found."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message, name=name)


class PromptAlreadyExistsError(PromptError):
    def __init__(self, name: str, existing: str | None = None):
        self.existing = existing
        if existing and existing != name:
            message = (
                f"Prompt '{name}' conflicts with existing prompt '{existing}' "
                "(names differ only by case). Choose another name or use edit_prompt "
                f"to modify '{existing}'."
            )
        else:
            message = f"Prompt '{name}' already exists. Use edit_prompt to modify."
        super().__init__(message, name=name)


class ParseError(PromptError):
    """Raised when a template file cannot be turned into a PromptTemplate."""


class MissingMetadataError(ParseError):
    def __init__(self, name: str | None = None):
        super().__init__(
            "No frontmatter found in template. Start the file with a line containing "
            "only '---', then the YAML metadata (title, description, categories, author), "
            "then a closing '---' line.",
            name=name,
        )


class MalformedMetadataError(ParseError):
    def __init__(self, detail: str, name: str | None = None):
        self.detail = detail
        super().__init__(
            f"Failed to parse YAML frontmatter: {detail}\n"
            "Fix the metadata block so it is a YAML mapping with the required fields "
            "(title, description, categories, author).",
            name=name,
        )


class PromptValidationError(ParseError):
    """Field-level semantic failure in template metadata."""

    def __init__(self, message: str, field: str | None = None, name: str | None = None):
        self.field = field
        super().__init__(message, name=name)


class SizeLimitExceededError(PromptError):
    """Base for template and parameter size/count limit violations."""

    def __init__(self, message: str, actual: int, limit: int, name: str | None = None):
        self.actual = actual
        self.limit = limit
        super().__init__(message, name=name)


class TemplateTooLargeError(SizeLimitExceededError):
    def __init__(self, actual: int, limit: int):
        super().__init__(
            f"Template too large ({actual} bytes). Maximum size is {limit} bytes. "
            "Split the template into smaller prompts.",
            actual=actual,
            limit=limit,
        )


class TooManyParametersError(SizeLimitExceededError):
    def __init__(self, actual: int, limit: int):
        super().__init__(
            f"Too many parameters: {actual} (max {limit}). "
            "Reduce the number of parameters or raise max_param_count.",
            actual=actual,
            limit=limit,
        )


class ParameterTooLargeError(SizeLimitExceededError):
    def __init__(self, key: str, actual: int, limit: int):
        self.key = key
        super().__init__(
            f"Parameter '{key}' is too large: {actual} bytes (max {limit} bytes). "
            "Split the data into smaller parameters, pass a file reference instead of "
            "inline data, or raise max_param_size if this is legitimate.",
            actual=actual,
            limit=limit,
        )


class ParametersTooLargeError(SizeLimitExceededError):
    def __init__(self, actual: int, limit: int):
        super().__init__(
            f"Total parameter size too large: {actual} bytes (max {limit} bytes). "
            "Reduce parameter sizes, remove unnecessary parameters, or raise "
            "max_total_params_size.",
            actual=actual,
            limit=limit,
        )


class SecurityViolationError(PromptError):
    """Template uses a forbidden directive or touches unsafe attributes."""

    def __init__(self, message: str, directive: str | None = None, name: str | None = None):
        self.directive = directive
        super().__init__(message, name=name)


class PromptSyntaxError(PromptError):
    """Template body does not compile."""

    def __init__(self, detail: str, lineno: int | None = None):
        self.detail = detail
        self.lineno = lineno
        where = f" (line {lineno})" if lineno else ""
        super().__init__(f"Template syntax error{where}: {detail}")


class MissingRequiredParameterError(PromptError):
    def __init__(self, parameter: str, description: str, name: str | None = None):
        self.parameter = parameter
        self.description = description
        super().__init__(
            f"Required parameter '{parameter}' not provided. Description: {description}",
            name=name,
        )


class ParameterTypeMismatchError(PromptError):
    def __init__(self, parameter: str, expected: str, actual: str, name: str | None = None):
        self.parameter = parameter
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Parameter '{parameter}' has wrong type. Expected {expected}, got {actual}.",
            name=name,
        )


class RenderError(PromptError):
    """The template engine failed while rendering."""


class RenderTimeoutError(RenderError):
    def __init__(self, timeout: float, name: str | None = None):
        self.timeout = timeout
        super().__init__(
            f"Template rendering timed out after {timeout:g} seconds. "
            "Template may contain infinite loops, deeply nested constructs, "
            "or expensive operations. Simplify the template and try again.",
            name=name,
        )


class RenderEngineFaultError(RenderError):
    def __init__(self, detail: str, name: str | None = None):
        self.detail = detail
        super().__init__(
            f"Template engine aborted: {detail}. "
            "Reduce recursion depth or the size of generated data.",
            name=name,
        )


class PromptPermissionError(PromptError):
    def __init__(self, name: str, action: str, path: Any = None):
        self.action = action
        self.path = str(path) if path else None
        super().__init__(
            f"Permission denied to {action} prompt '{name}'. "
            "Check the permissions of the prompts directory.",
            name=name,
        )


class PromptIOError(PromptError):
    """Catch-all for filesystem failures that have no dedicated kind."""

    def __init__(self, message: str, name: str | None = None, path: Any = None):
        self.path = str(path) if path else None
        super().__init__(message, name=name)
