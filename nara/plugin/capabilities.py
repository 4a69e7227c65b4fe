"""
Plugin Capabilities.

This module exposes the capabilities contributed by enabled plugins to the
host: routes, API handlers, schema fragments, migrations and components.

Key features:
- Namespaced aggregation of schemas and components
- Route and API base-path conflict detection
- Per-plugin capability summaries for diagnostics
"""

from dataclasses import dataclass, field
from typing import Any

from nara.plugin.registry import Registry


@dataclass
class RouteMount:
    """Routes of one plugin mounted at a base path."""

    plugin_id: str
    base_path: str
    routes: list[Any]


@dataclass
class ApiMount:
    """API handler of one plugin mounted at a base path."""

    plugin_id: str
    base_path: str
    handler: Any


@dataclass
class Migration:
    """A migration file contributed by a plugin."""

    plugin_id: str
    file: str


@dataclass
class ConflictReport:
    """Result of a base-path conflict check."""

    conflicts: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.conflicts


@dataclass
class PluginSummary:
    """Diagnostic summary of a registered plugin."""

    id: str
    name: str
    version: str
    type: str
    enabled: bool
    has_routes: bool
    has_api: bool
    has_database: bool
    has_components: bool


def _default_base_path(plugin_id: str) -> str:
    return f"/{plugin_id}"


def collect_routes(registry: Registry) -> list[RouteMount]:
    """Collect route blocks of enabled plugins in registration order."""
    mounts = []
    for bundle in registry.get_enabled_plugins():
        if bundle.routes is None or not bundle.routes.routes:
            continue
        mounts.append(
            RouteMount(
                plugin_id=bundle.id,
                base_path=bundle.routes.base_path or _default_base_path(bundle.id),
                routes=list(bundle.routes.routes),
            )
        )
    return mounts


def collect_api_handlers(registry: Registry) -> list[ApiMount]:
    """Collect API handlers of enabled plugins with their base paths."""
    mounts = []
    for bundle in registry.get_enabled_plugins():
        if bundle.api is None or bundle.api.handler is None:
            continue
        mounts.append(
            ApiMount(
                plugin_id=bundle.id,
                base_path=bundle.api.base_path or _default_base_path(bundle.id),
                handler=bundle.api.handler,
            )
        )
    return mounts


def collect_schemas(registry: Registry) -> dict[str, Any]:
    """
    Merge the schema fragments of enabled plugins.

    Returns:
        Mapping of "<plugin id>_<key>" -> schema value
    """
    schemas: dict[str, Any] = {}
    for bundle in registry.get_enabled_plugins():
        if bundle.database is None:
            continue
        for key, value in bundle.database.schema.items():
            schemas[f"{bundle.id}_{key}"] = value
    return schemas


def collect_components(registry: Registry) -> dict[str, Any]:
    """
    Merge the components of enabled plugins.

    Returns:
        Mapping of "<plugin id>/<component name>" -> component
    """
    components: dict[str, Any] = {}
    for bundle in registry.get_enabled_plugins():
        if bundle.components is None:
            continue
        for name, component in bundle.components.components.items():
            components[f"{bundle.id}/{name}"] = component
    return components


def get_component(registry: Registry, name: str) -> Any | None:
    """Look up a component by its namespaced name."""
    return collect_components(registry).get(name)


def collect_migrations(registry: Registry) -> list[Migration]:
    migrations = []
    for bundle in registry.get_enabled_plugins():
        if bundle.database is None:
            continue
        migrations.extend(Migration(bundle.id, file) for file in bundle.database.migrations)
    return migrations


def validate_routes(registry: Registry) -> ConflictReport:
    """Detect enabled plugins mounting routes at the same base path."""
    report = ConflictReport()
    seen: set[str] = set()
    for mount in collect_routes(registry):
        if mount.base_path in seen:
            report.conflicts.append(
                f"Route conflict: '{mount.base_path}' (plugin: {mount.plugin_id})"
            )
        else:
            seen.add(mount.base_path)
    return report


def validate_apis(registry: Registry) -> ConflictReport:
    """Detect enabled plugins mounting API handlers at the same base path."""
    report = ConflictReport()
    seen: set[str] = set()
    for mount in collect_api_handlers(registry):
        if mount.base_path in seen:
            report.conflicts.append(
                f"API conflict: '{mount.base_path}' (plugin: {mount.plugin_id})"
            )
        else:
            seen.add(mount.base_path)
    return report


def plugin_summaries(registry: Registry) -> list[PluginSummary]:
    return [
        PluginSummary(
            id=bundle.id,
            name=bundle.descriptor.name,
            version=bundle.descriptor.version,
            type=bundle.descriptor.type.value,
            enabled=registry.is_enabled(bundle.id),
            has_routes=bundle.routes is not None,
            has_api=bundle.api is not None,
            has_database=bundle.database is not None,
            has_components=bundle.components is not None,
        )
        for bundle in registry.get_plugins()
    ]
