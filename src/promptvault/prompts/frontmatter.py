"""Frontmatter parsing for template files.

File format (``<name>.j2.md``)::

    ---
    title: "Code review"
    description: "Review a change"
    categories: ["code"]
    author: "someone"
    parameters:
      - name: "path"
        description: "File to review"
        type: string
        required: true
    ---
    Review {{ path }} carefully.

The metadata block must start on the first line of the file and is closed
by the next line consisting only of ``---``. Everything after the closing
line is the template body, kept byte for byte.
"""

from __future__ import annotations

import re
from typing import Any

import yaml
from pydantic import ValidationError

from promptvault.errors import MalformedMetadataError, MissingMetadataError, ParseError

from .models import PromptMetadata, PromptTemplate

__all__ = ["FRONTMATTER_DELIMITER", "parse_template", "split_frontmatter"]

FRONTMATTER_DELIMITER = "---"

_FRONTMATTER_PATTERN = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def split_frontmatter(content: str) -> tuple[str, str]:
    """Split raw file content into the metadata block text and the body.

    Args:
        content: Raw file content

    Returns:
        Tuple of (metadata block text, body content)

    Raises:
        MissingMetadataError: If the file does not open with a metadata block
    """
    match = _FRONTMATTER_PATTERN.match(content)
    if not match:
        raise MissingMetadataError()
    return match.group(1), content[match.end() :]


def _load_metadata(block: str) -> PromptMetadata:
    try:
        data: Any = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise MalformedMetadataError(str(e)) from e

    if data is None:
        raise MalformedMetadataError("metadata block is empty")
    if not isinstance(data, dict):
        raise MalformedMetadataError(
            f"metadata block must be a YAML mapping, got {type(data).__name__}"
        )

    try:
        return PromptMetadata.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedMetadataError(details) from e


def parse_template(name: str, content: str) -> PromptTemplate:
    """Parse a template file into a fully validated PromptTemplate.

    Pure function: no I/O and no side effects.

    Args:
        name: Logical template name (file name without the .j2.md suffix)
        content: Raw file content

    Returns:
        PromptTemplate with validated metadata and the body after the metadata block

    Raises:
        MissingMetadataError: No metadata block at the start of the file
        MalformedMetadataError: Metadata is not valid YAML or has wrong field types
        PromptValidationError: Metadata is well-formed but semantically invalid
    """
    try:
        block, body = split_frontmatter(content)
        metadata = _load_metadata(block)
    except ParseError as e:
        e.name = name
        raise

    return PromptTemplate(filename=name, metadata=metadata, content=body)
