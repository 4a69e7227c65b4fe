"""
TOML File I/O Handler.

Key features:
- Parse TOML files using tomllib
- Write TOML files using tomlkit (keeps comments and formatting)
- Generate commented TOML tables from a schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from nara.config.schema import ConfigField


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Raises:
        TOMLError: If the file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, content: str | dict[str, Any]) -> None:
    """
    Write a TOML document or rendered TOML text to a file.

    Raises:
        TOMLError: If the file cannot be written
    """
    text = content if isinstance(content, str) else tomlkit.dumps(content)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def generate_toml_from_schema(
    section: str,
    schema: dict[str, ConfigField],
    values: dict[str, Any] | None = None,
) -> str:
    """
    Render a TOML table for a schema with descriptive comments.

    Args:
        section: Table name
        schema: Field name -> ConfigField
        values: Values to write (defaults where missing)

    Returns:
        TOML text
    """
    values = values or {}
    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"Settings for [{section}]"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if field.choices is not None:
            constraints.append(f"choices: {field.choices}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        table.add(name, values.get(name, field.default))
        table.add(tomlkit.nl())

    doc.add(section, table)
    return tomlkit.dumps(doc)
