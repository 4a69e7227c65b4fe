"""
Plugin Data Model.

This module defines the value types shared by the registry, the manager and
the registry client.

Key features:
- Plugin descriptors and bundles with optional capability blocks
- Installation records with JSON (de)serialisation
- Source locators for installation requests
- Remote catalog entries and installable packages
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    pass


class PluginType(Enum):
    """Plugin type enumeration."""

    FEATURE = "feature"
    COMPONENT = "component"
    API = "api"
    THEME = "theme"
    UTILITY = "utility"


class SourceType(Enum):
    """Installation source type."""

    NPM = "npm"
    GIT = "git"
    URL = "url"
    LOCAL = "local"


@dataclass
class PluginDescriptor:
    """
    Identity and dependency record of a plugin.

    Attributes:
        id: Unique stable slug
        name: Human-readable name
        version: Semantic version string
        author: Plugin author
        description: Plugin description
        type: Plugin type
        enabled: Whether the plugin is enabled
        dependencies: Ids of plugins this one depends on
        entry: Entry file name relative to the plugin directory
    """

    id: str
    name: str
    version: str
    author: str = ""
    description: str = ""
    type: PluginType = PluginType.FEATURE
    enabled: bool = False
    dependencies: list[str] = field(default_factory=list)
    entry: str = "plugin.py"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "author": self.author,
            "description": self.description,
            "type": self.type.value,
            "enabled": self.enabled,
            "dependencies": list(self.dependencies),
            "entry": self.entry,
        }


@dataclass
class PluginRoutes:
    """Page routes contributed by a plugin."""

    routes: list[Any] = field(default_factory=list)
    base_path: str | None = None


@dataclass
class PluginApi:
    """API handler contributed by a plugin, mounted at base_path."""

    handler: Any
    base_path: str


@dataclass
class PluginDatabase:
    """Database schema fragment and migration files."""

    schema: dict[str, Any] = field(default_factory=dict)
    migrations: list[str] = field(default_factory=list)


@dataclass
class PluginComponents:
    """UI components exported by a plugin."""

    components: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)


InitHook = Callable[["PluginContext"], Awaitable[None] | None]
DestroyHook = Callable[[], Awaitable[None] | None]


@dataclass
class PluginBundle:
    """
    A descriptor plus optional capability blocks and lifecycle hooks.

    Hooks may be plain functions or coroutine functions.
    """

    descriptor: PluginDescriptor
    routes: PluginRoutes | None = None
    api: PluginApi | None = None
    database: PluginDatabase | None = None
    components: PluginComponents | None = None
    init: InitHook | None = None
    destroy: DestroyHook | None = None

    @property
    def id(self) -> str:
        return self.descriptor.id


@dataclass
class PluginContext:
    """
    Host resources handed to init hooks.

    The plugin system never inspects or modifies the context; it only passes
    it through.
    """

    db: Any = None
    env: dict[str, Any] = field(default_factory=dict)
    registry: Any = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceLocator:
    """
    Classified origin of an installation request.

    Attributes:
        type: Source type
        url: Package name, repository URL, download URL or filesystem path
        version: Requested version (npm sources only)
        registry_url: Catalog the package came from (manager default if None)
    """

    type: SourceType
    url: str
    version: str | None = None
    registry_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "url": self.url}
        if self.version is not None:
            data["version"] = self.version
        if self.registry_url is not None:
            data["registry"] = self.registry_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceLocator":
        return cls(
            type=SourceType(data["type"]),
            url=data["url"],
            version=data.get("version"),
            registry_url=data.get("registry"),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InstallationRecord:
    """
    Persisted installation status of one plugin.

    Attributes:
        id: Plugin id
        installed: Whether the plugin is installed
        enabled: Whether the plugin is enabled
        version: Installed version
        source: Where the plugin was installed from
        installed_at: Installation timestamp
        error: Error message of the last failed operation
    """

    id: str
    installed: bool = False
    enabled: bool = False
    version: str | None = None
    source: SourceLocator | None = None
    installed_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "installed": self.installed,
            "enabled": self.enabled,
        }
        if self.version is not None:
            data["version"] = self.version
        if self.source is not None:
            data["source"] = self.source.to_dict()
        if self.installed_at is not None:
            data["installedAt"] = self.installed_at.isoformat()
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallationRecord":
        source = data.get("source")
        installed_at = data.get("installedAt")
        return cls(
            id=data["id"],
            installed=bool(data.get("installed", False)),
            enabled=bool(data.get("enabled", False)),
            version=data.get("version"),
            source=SourceLocator.from_dict(source) if source else None,
            installed_at=datetime.fromisoformat(installed_at) if installed_at else None,
            error=data.get("error"),
        )


@dataclass
class PluginDependency:
    """Dependency of a catalog entry on another plugin."""

    id: str
    version: str


@dataclass
class RemotePluginInfo:
    """
    A catalog entry describing a published plugin.

    Recomputed on every query and never persisted.
    """

    id: str
    name: str
    version: str
    description: str = ""
    author: str = "Unknown"
    keywords: list[str] = field(default_factory=list)
    checksum: str | None = None
    download_url: str | None = None
    last_updated: datetime | None = None
    homepage: str | None = None
    repository: str | None = None
    license: str | None = None
    registry: str | None = None
    dependencies: list[PluginDependency] = field(default_factory=list)
    readme: str | None = None


@dataclass
class PackageManifest:
    """Distribution manifest of a plugin package."""

    name: str
    version: str
    files: list[str]
    checksum: str
    description: str = ""
    author: str = ""
    license: str | None = None
    repository: str | None = None
    homepage: str | None = None
    keywords: list[str] = field(default_factory=list)


@dataclass
class PluginPackage:
    """
    A materialised, installable plugin.

    Attributes:
        descriptor: Plugin descriptor
        files: Relative file path -> file content
        manifest: Package manifest
    """

    descriptor: PluginDescriptor
    files: dict[str, str]
    manifest: PackageManifest


@dataclass
class SearchOptions:
    """Catalog search parameters."""

    query: str = ""
    keywords: list[str] = field(default_factory=list)
    limit: int = 20
    offset: int = 0


@dataclass
class RegistryAuth:
    """Credentials for publishing to a catalog."""

    token: str | None = None
    username: str | None = None


@dataclass
class RegistryInfo:
    """Description of a remote catalog."""

    name: str
    url: str
    version: str
    total_plugins: int = 0
    featured_plugins: list[RemotePluginInfo] = field(default_factory=list)


@dataclass
class InstallOptions:
    """
    Options for Manager.install().

    Attributes:
        force: Reinstall even if a (different) version is installed
        version: Version to install (latest if None)
        registry_url: Catalog to install from (manager default if None)
    """

    force: bool = False
    version: str | None = None
    registry_url: str | None = None
