"""Admission checks for template files submitted for writing.

validate_submission() runs on every add/edit before any bytes reach disk:

1. Size gate: reject content larger than the configured maximum
2. Structural gate: the file must parse (frontmatter + metadata validation)
3. Syntax gate: the body must compile with the template engine
4. Sandbox gate: the body must not use include/extends/import/from

The checks are stateless and never touch the filesystem.
"""

from __future__ import annotations

import re

from jinja2 import TemplateSyntaxError

from promptvault.errors import PromptSyntaxError, SecurityViolationError, TemplateTooLargeError

from .engine import create_environment
from .frontmatter import parse_template

__all__ = [
    "DEFAULT_MAX_TEMPLATE_SIZE",
    "FORBIDDEN_DIRECTIVES",
    "validate_no_dangerous_operations",
    "validate_submission",
    "validate_template_syntax",
]

DEFAULT_MAX_TEMPLATE_SIZE = 1_000_000

FORBIDDEN_DIRECTIVES: dict[str, str] = {
    "include": "File inclusion is not allowed for security reasons.",
    "extends": "Template inheritance is not supported.",
    "import": "Module imports are not allowed.",
    "from": "Module imports are not allowed.",
}

# Opening tag, optional whitespace-control marker, then the keyword
_DIRECTIVE_PATTERN = re.compile(
    r"\{%[-+]?\s*(" + "|".join(FORBIDDEN_DIRECTIVES) + r")\b",
)


def validate_template_syntax(body: str) -> None:
    """Compile a template body, raising PromptSyntaxError on failure."""
    try:
        create_environment().compile(body)
    except TemplateSyntaxError as e:
        raise PromptSyntaxError(e.message or str(e), lineno=e.lineno) from e


def validate_no_dangerous_operations(body: str) -> None:
    """Reject bodies that use directives pulling in other templates or files."""
    match = _DIRECTIVE_PATTERN.search(body)
    if match:
        directive = match.group(1)
        raise SecurityViolationError(
            f"Template contains forbidden '{directive}' directive. "
            f"{FORBIDDEN_DIRECTIVES[directive]} Remove the directive and inline the content.",
            directive=directive,
        )


def validate_submission(content: str, max_size: int = DEFAULT_MAX_TEMPLATE_SIZE) -> None:
    """Validate a complete template file (metadata + body) before it is written.

    Args:
        content: Raw file content
        max_size: Maximum allowed size in bytes

    Raises:
        TemplateTooLargeError: Content exceeds max_size
        ParseError: Frontmatter missing, malformed or semantically invalid
        PromptSyntaxError: Body does not compile
        SecurityViolationError: Body uses a forbidden directive
    """
    size = len(content.encode("utf-8"))
    if size > max_size:
        raise TemplateTooLargeError(actual=size, limit=max_size)

    template = parse_template("_validation", content)
    validate_template_syntax(template.content)
    validate_no_dangerous_operations(template.content)
