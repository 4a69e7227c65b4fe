"""
Settings Schema.

This module provides field declarations and validation for the TOML settings
read by the plugin system.

Key features:
- Typed field definitions with range and choice constraints
- Integer values accepted for float fields
- Merging of partial tables over schema defaults
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a field declaration is invalid."""

    pass


class ValidationError(SchemaError):
    """Raised when a settings value fails validation."""

    pass


@dataclass
class ConfigField:
    """
    A settings field with type and constraints.

    Attributes:
        type_: Expected type of the value
        default: Default value
        description: Human-readable description, written as a TOML comment
        min: Minimum value (numbers) or minimum length (strings)
        max: Maximum value (numbers) or maximum length (strings)
        choices: Allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not isinstance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (int, float, str):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str. Got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(f"Default value {self.default!r} not in choices {self.choices}")

    def coerce(self, value: Any) -> Any:
        """Convert TOML integers for float fields; other values pass through."""
        if self.type_ is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return value

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, self.type_) or (
            self.type_ is not bool and isinstance(value, bool)
        ):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(f"Value {value!r} not in allowed choices {self.choices}")

        size = len(value) if self.type_ is str else value
        if self.min is not None and size < self.min:
            raise ValidationError(f"Value {value!r} is less than minimum {self.min}")
        if self.max is not None and size > self.max:
            raise ValidationError(f"Value {value!r} is greater than maximum {self.max}")


def merge_with_defaults(
    table: dict[str, Any], schema: dict[str, ConfigField]
) -> dict[str, Any]:
    """
    Validate a (possibly partial) settings table and fill in defaults.

    Args:
        table: Values read from the settings file
        schema: Field name -> ConfigField

    Returns:
        Complete settings dictionary

    Raises:
        ValidationError: On unknown fields or invalid values
    """
    for key in table:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    merged = {}
    for name, field in schema.items():
        value = field.coerce(table.get(name, field.default))
        try:
            field.validate(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{name}': {e}") from e
        merged[name] = value
    return merged
