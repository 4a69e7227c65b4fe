"""
Plugin Descriptor Files.

This module provides parsing and validation of plugin.json descriptor files.

Key features:
- JSON parsing of plugin.json
- Fail-closed validation of required fields
- Semantic version and plugin id format checks
- Serialisation back to JSON for installed packages
"""

import json
import re
from pathlib import Path
from typing import Any

from nara.plugin.types import PluginDescriptor, PluginError, PluginType

DESCRIPTOR_FILE = "plugin.json"
DEFAULT_ENTRY = "plugin.py"

_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-_.]*$")
_SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")


class DescriptorError(PluginError):
    """Base exception for descriptor-related errors."""

    pass


class DescriptorValidationError(DescriptorError):
    """Raised when descriptor validation fails."""

    pass


def is_valid_version(version: str) -> bool:
    """Check whether a string is a semantic version."""
    return bool(_SEMVER_PATTERN.match(version))


def parse_descriptor_file(descriptor_path: Path) -> PluginDescriptor:
    """
    Parse a plugin.json file.

    Args:
        descriptor_path: Path to plugin.json

    Returns:
        PluginDescriptor object

    Raises:
        DescriptorError: If file cannot be read or parsed
        DescriptorValidationError: If descriptor is invalid
    """
    try:
        text = descriptor_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DescriptorError(f"Descriptor file not found: {descriptor_path}") from e
    except OSError as e:
        raise DescriptorError(f"Failed to read descriptor file: {e}") from e

    return parse_descriptor_text(text)


def parse_descriptor_text(text: str) -> PluginDescriptor:
    """
    Parse descriptor JSON text.

    Raises:
        DescriptorError: If the text is not valid JSON
        DescriptorValidationError: If descriptor is invalid
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DescriptorError(f"Failed to parse descriptor JSON: {e}") from e

    return descriptor_from_dict(data)


def descriptor_from_dict(data: Any) -> PluginDescriptor:
    """
    Build a descriptor from parsed JSON data.

    Raises:
        DescriptorValidationError: If descriptor is invalid
    """
    validate_descriptor_structure(data)

    return PluginDescriptor(
        id=data["id"],
        name=data["name"],
        version=data["version"],
        author=data.get("author", ""),
        description=data.get("description", ""),
        type=PluginType(data.get("type", PluginType.FEATURE.value)),
        enabled=data.get("enabled", False),
        dependencies=list(data.get("dependencies", [])),
        entry=data.get("entry", DEFAULT_ENTRY),
    )


def validate_descriptor_structure(data: Any) -> None:
    """
    Validate descriptor structure and required fields.

    Args:
        data: Parsed descriptor data

    Raises:
        DescriptorValidationError: If descriptor structure is invalid
    """
    if not isinstance(data, dict):
        raise DescriptorValidationError("Descriptor must be a JSON object")

    for field in ("id", "name", "version"):
        if field not in data:
            raise DescriptorValidationError(f"Missing required field: {field}")

    plugin_id = data["id"]
    if not isinstance(plugin_id, str) or not _ID_PATTERN.match(plugin_id):
        raise DescriptorValidationError(
            f"Invalid plugin id: {plugin_id!r}. "
            f"Must be lowercase alphanumeric with hyphens, dots or underscores."
        )

    if not isinstance(data["name"], str) or not data["name"]:
        raise DescriptorValidationError("'name' field must be a non-empty string")

    version = data["version"]
    if not isinstance(version, str) or not is_valid_version(version):
        raise DescriptorValidationError(
            f"Invalid version: {version!r}. Must be semantic version (e.g., '1.0.0')"
        )

    for field in ("author", "description"):
        if field in data and not isinstance(data[field], str):
            raise DescriptorValidationError(f"'{field}' field must be a string")

    if "type" in data:
        allowed = [t.value for t in PluginType]
        if data["type"] not in allowed:
            raise DescriptorValidationError(
                f"Invalid plugin type: {data['type']!r}. Must be one of {allowed}"
            )

    if "enabled" in data and not isinstance(data["enabled"], bool):
        raise DescriptorValidationError("'enabled' field must be a boolean")

    if "dependencies" in data:
        deps = data["dependencies"]
        if not isinstance(deps, list):
            raise DescriptorValidationError("'dependencies' field must be a list")
        for dep in deps:
            if not isinstance(dep, str):
                raise DescriptorValidationError(f"Dependency id must be string: {dep!r}")
        if plugin_id in deps:
            raise DescriptorValidationError(f"Plugin {plugin_id} cannot depend on itself")

    if "entry" in data:
        entry = data["entry"]
        if not isinstance(entry, str) or not entry.endswith(".py"):
            raise DescriptorValidationError(
                f"Invalid entry file: {entry!r}. Must be a .py file"
            )


def descriptor_to_json(descriptor: PluginDescriptor) -> str:
    """Serialise a descriptor as plugin.json text."""
    return json.dumps(descriptor.to_dict(), indent=2) + "\n"
