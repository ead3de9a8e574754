"""Data models for prompt templates.

PromptMetadata is the YAML frontmatter of a template file, PromptTemplate
the parsed file. Semantic validation runs as part of model construction,
so any PromptMetadata instance has already passed it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from promptvault.errors import PromptValidationError

__all__ = [
    "ParameterDefinition",
    "ParameterType",
    "PromptMetadata",
    "PromptTemplate",
    "describe_value_type",
    "value_matches_type",
]


class ParameterType(str, Enum):
    """Declared type of a template parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_ARRAY = "array"


# Spellings accepted in frontmatter besides the canonical values
_TYPE_ALIASES = {
    "str": ParameterType.STRING,
    "text": ParameterType.STRING,
    "int": ParameterType.NUMBER,
    "float": ParameterType.NUMBER,
    "bool": ParameterType.BOOLEAN,
    "list": ParameterType.STRING_ARRAY,
    "string_array": ParameterType.STRING_ARRAY,
    "stringarray": ParameterType.STRING_ARRAY,
}


def describe_value_type(value: Any) -> str:
    """Name the runtime type of a parameter value in ParameterType terms."""
    if isinstance(value, bool):
        return ParameterType.BOOLEAN.value
    if isinstance(value, int | float):
        return ParameterType.NUMBER.value
    if isinstance(value, str):
        return ParameterType.STRING.value
    if isinstance(value, list | tuple):
        if all(isinstance(item, str) for item in value):
            return ParameterType.STRING_ARRAY.value
        return "list of mixed values"
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def value_matches_type(param_type: ParameterType, value: Any) -> bool:
    """Check a runtime value against a declared parameter type.

    bool is a subclass of int in Python, so booleans never count as numbers.
    """
    return describe_value_type(value) == param_type.value


class ParameterDefinition(BaseModel):
    """A parameter declared in a template's frontmatter."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    type: ParameterType = Field(
        default=ParameterType.STRING,
        validation_alias=AliasChoices("type", "param_type"),
    )
    required: bool = False
    default: Any = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        """Accept common spellings (str, bool, list, ...) case-insensitively."""
        if isinstance(v, str):
            lowered = v.strip().lower()
            return _TYPE_ALIASES.get(lowered, lowered)
        return v

    @property
    def has_default(self) -> bool:
        return self.default is not None


class PromptMetadata(BaseModel):
    """Template metadata from YAML frontmatter."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    categories: list[str]
    secondary_tag: str | None = None
    author: str
    verified: bool = False
    votes: int = Field(default=0, ge=0)
    parameters: list[ParameterDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_semantics(self) -> PromptMetadata:
        """Run field-level checks that a schema alone cannot express.

        Raises PromptValidationError directly (not ValueError), so pydantic
        lets it propagate instead of folding it into a schema error.
        """
        for field_name in ("title", "description", "author"):
            if not getattr(self, field_name):
                raise PromptValidationError(f"{field_name} cannot be empty", field=field_name)
        if not self.categories:
            raise PromptValidationError(
                "categories cannot be empty. At least one category is required.",
                field="categories",
            )

        seen: set[str] = set()
        for param in self.parameters:
            if param.name in seen:
                raise PromptValidationError(
                    f"Parameter '{param.name}' is declared more than once. "
                    "Parameter names must be unique within a template.",
                    field=param.name,
                )
            seen.add(param.name)
            _validate_parameter_definition(param)

        return self


def _validate_parameter_definition(param: ParameterDefinition) -> None:
    if param.has_default and not value_matches_type(param.type, param.default):
        raise PromptValidationError(
            f"Parameter '{param.name}' has default value type mismatch. "
            f"Declared as {param.type.value} but default value is "
            f"{describe_value_type(param.default)}. Default: {param.default!r}\n\n"
            "Fix the template's YAML frontmatter to use the correct type for the default value.",
            field=param.name,
        )

    if param.required and param.has_default:
        raise PromptValidationError(
            f"Parameter '{param.name}' is marked as required but has a default value. "
            "This is contradictory - remove 'required: true' or remove the default.",
            field=param.name,
        )


class PromptTemplate(BaseModel):
    """A parsed template file: logical name, metadata and body."""

    model_config = ConfigDict(frozen=True)

    filename: str
    metadata: PromptMetadata
    content: str

    @property
    def name(self) -> str:
        return self.filename

    def get_parameter(self, name: str) -> ParameterDefinition | None:
        for param in self.metadata.parameters:
            if param.name == name:
                return param
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.filename,
            "metadata": self.metadata.model_dump(mode="json"),
            "content": self.content,
        }
