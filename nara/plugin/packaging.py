"""
Plugin Packaging.

This module builds distributable PluginPackage objects and their checksums.

The checksum is a 32-bit rolling hash over the sorted file entries. It detects
accidental corruption only and is not cryptographically secure.
"""

from nara.plugin.descriptor import DESCRIPTOR_FILE
from nara.plugin.types import PackageManifest, PluginDescriptor, PluginPackage

# Content subdirectories copied into a package besides descriptor and entry file
PACKAGE_DIRS = ("routes", "api", "components", "database")


def compute_checksum(files: dict[str, str]) -> str:
    """
    Compute the integrity checksum of a set of files.

    The result depends only on the path -> content pairs, not on the order in
    which they were inserted.

    Args:
        files: Relative file path -> content

    Returns:
        8-character lowercase hex string
    """
    value = 0
    for path in sorted(files):
        for char in f"{path}:{files[path]}":
            value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return f"{value:08x}"


def build_package(
    descriptor: PluginDescriptor,
    files: dict[str, str],
    checksum: str | None = None,
    **manifest_fields,
) -> PluginPackage:
    """
    Assemble a PluginPackage.

    Args:
        descriptor: Plugin descriptor
        files: Relative file path -> content
        checksum: Checksum to record (computed from files if None)
        **manifest_fields: Extra PackageManifest fields (license, keywords, ...)

    Returns:
        PluginPackage object
    """
    manifest = PackageManifest(
        name=descriptor.name,
        version=descriptor.version,
        description=descriptor.description,
        author=descriptor.author,
        files=sorted(files),
        checksum=checksum or compute_checksum(files),
        **manifest_fields,
    )
    return PluginPackage(descriptor=descriptor, files=dict(files), manifest=manifest)


def validate_package(package: PluginPackage) -> None:
    """
    Check the fields a catalog requires before publication.

    Raises:
        ValueError: If a required field or the descriptor file is missing
    """
    if not package.descriptor.id:
        raise ValueError("Plugin package missing required descriptor id")
    if not package.descriptor.name:
        raise ValueError("Plugin package missing required descriptor name")
    if not package.descriptor.version:
        raise ValueError("Plugin package missing required descriptor version")
    if DESCRIPTOR_FILE not in package.files:
        raise ValueError(f"Plugin package missing {DESCRIPTOR_FILE} file")
