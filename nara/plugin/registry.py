"""
Plugin Registry.

This module provides the in-memory, dependency-aware store of plugin bundles.

Key features:
- Registration with duplicate and unresolved-dependency checks
- Enable/disable gated by dependency state
- Topological ordering with cycle detection
- Fail-fast initialization and best-effort teardown of lifecycle hooks

State per plugin id:
    Unregistered -> Registered(disabled) <-> Registered(enabled) -> Unregistered

The registry holds no locks; callers serialize mutations.
"""

import inspect
import logging
from collections.abc import Iterable

from nara.plugin.types import PluginBundle, PluginContext, PluginError

logger = logging.getLogger(__name__)


class RegistryError(PluginError):
    """Base exception for registry-related errors."""

    def __init__(self, message: str, plugin_id: str):
        super().__init__(message)
        self.plugin_id = plugin_id


class DuplicateIdError(RegistryError):
    """Raised when a plugin id is already registered."""

    pass


class UnresolvedDependencyError(RegistryError):
    """Raised when a dependency is not registered."""

    def __init__(self, message: str, plugin_id: str, dependency_id: str):
        super().__init__(message, plugin_id)
        self.dependency_id = dependency_id


class PluginNotFoundError(RegistryError):
    """Raised when a plugin id is not registered."""

    pass


class DependentsExistError(RegistryError):
    """Raised when unregistering a plugin other plugins depend on."""

    def __init__(self, message: str, plugin_id: str, dependent_id: str):
        super().__init__(message, plugin_id)
        self.dependent_id = dependent_id


class DependencyNotEnabledError(RegistryError):
    """Raised when enabling a plugin whose dependency is disabled."""

    def __init__(self, message: str, plugin_id: str, dependency_id: str):
        super().__init__(message, plugin_id)
        self.dependency_id = dependency_id


class EnabledDependentsExistError(RegistryError):
    """Raised when disabling a plugin an enabled plugin depends on."""

    def __init__(self, message: str, plugin_id: str, dependent_id: str):
        super().__init__(message, plugin_id)
        self.dependent_id = dependent_id


class CircularDependencyError(RegistryError):
    """Raised when enabled plugins form a dependency cycle."""

    pass


class Registry:
    """
    Authoritative set of known plugins and the enabled subset.

    A host creates one Registry in its composition root and passes it to the
    manager and to anything that consumes plugin capabilities.
    """

    def __init__(self):
        self._plugins: dict[str, PluginBundle] = {}
        # Insertion-ordered set of enabled ids
        self._enabled: dict[str, None] = {}

    def register(self, bundle: PluginBundle) -> None:
        """
        Register a plugin bundle.

        Dependencies must already be registered.

        Raises:
            DuplicateIdError: If the id is already registered
            UnresolvedDependencyError: If a dependency is not registered
        """
        descriptor = bundle.descriptor
        if descriptor.id in self._plugins:
            raise DuplicateIdError(
                f"Plugin with ID '{descriptor.id}' is already registered", descriptor.id
            )

        self._check_dependencies_registered(bundle)

        self._plugins[descriptor.id] = bundle
        if descriptor.enabled:
            self._enabled[descriptor.id] = None

        logger.info(f"Plugin '{descriptor.name}' ({descriptor.id}) registered")

    def replace(self, bundle: PluginBundle) -> None:
        """
        Swap the bundle of an already registered id, keeping its enabled state.

        Raises:
            PluginNotFoundError: If the id is not registered
            UnresolvedDependencyError: If a dependency is not registered
            DependencyNotEnabledError: If the plugin is enabled and a dependency is not
        """
        plugin_id = bundle.descriptor.id
        self._require(plugin_id)
        self._check_dependencies_registered(bundle)

        enabled = plugin_id in self._enabled
        if enabled:
            self._check_dependencies_enabled(bundle)

        bundle.descriptor.enabled = enabled
        self._plugins[plugin_id] = bundle

        logger.info(
            f"Plugin '{bundle.descriptor.name}' ({plugin_id}) replaced "
            f"with version {bundle.descriptor.version}"
        )

    def unregister(self, plugin_id: str) -> None:
        """
        Remove a plugin.

        Raises:
            PluginNotFoundError: If the id is not registered
            DependentsExistError: If any registered plugin depends on it
        """
        bundle = self._require(plugin_id)

        for other in self._plugins.values():
            if plugin_id in other.descriptor.dependencies:
                raise DependentsExistError(
                    f"Cannot unregister plugin '{plugin_id}' because "
                    f"'{other.descriptor.name}' depends on it",
                    plugin_id,
                    other.descriptor.id,
                )

        del self._plugins[plugin_id]
        self._enabled.pop(plugin_id, None)

        logger.info(f"Plugin '{bundle.descriptor.name}' ({plugin_id}) unregistered")

    def enable(self, plugin_id: str) -> None:
        """
        Enable a plugin.

        Raises:
            PluginNotFoundError: If the id is not registered
            DependencyNotEnabledError: If a dependency is not enabled
        """
        bundle = self._require(plugin_id)
        self._check_dependencies_enabled(bundle)

        self._enabled[plugin_id] = None
        bundle.descriptor.enabled = True

        logger.info(f"Plugin '{bundle.descriptor.name}' ({plugin_id}) enabled")

    def disable(self, plugin_id: str) -> None:
        """
        Disable a plugin.

        Raises:
            PluginNotFoundError: If the id is not registered
            EnabledDependentsExistError: If an enabled plugin depends on it
        """
        bundle = self._require(plugin_id)

        for other in self.get_enabled_plugins():
            if plugin_id in other.descriptor.dependencies:
                raise EnabledDependentsExistError(
                    f"Cannot disable plugin '{plugin_id}' because enabled plugin "
                    f"'{other.descriptor.name}' depends on it",
                    plugin_id,
                    other.descriptor.id,
                )

        self._enabled.pop(plugin_id, None)
        bundle.descriptor.enabled = False

        logger.info(f"Plugin '{bundle.descriptor.name}' ({plugin_id}) disabled")

    def get_plugin(self, plugin_id: str) -> PluginBundle | None:
        return self._plugins.get(plugin_id)

    def get_plugins(self) -> list[PluginBundle]:
        return list(self._plugins.values())

    def get_enabled_plugins(self) -> list[PluginBundle]:
        return [self._plugins[plugin_id] for plugin_id in self._enabled]

    def is_enabled(self, plugin_id: str) -> bool:
        return plugin_id in self._enabled

    def __contains__(self, plugin_id: str) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    async def initialize_plugins(self, context: PluginContext) -> None:
        """
        Run init hooks of enabled plugins, dependencies first.

        The first failing hook aborts the remaining initializations; plugins
        already initialized are not rolled back.

        Raises:
            CircularDependencyError: If enabled plugins form a cycle
            Exception: Whatever the failing hook raised
        """
        for bundle in self.sort_by_dependencies(self.get_enabled_plugins()):
            if bundle.init is None:
                continue
            try:
                result = bundle.init(context)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Failed to initialize plugin '{bundle.descriptor.name}'"
                )
                raise
            logger.info(f"Plugin '{bundle.descriptor.name}' initialized")

    async def destroy_plugins(self) -> None:
        """
        Run destroy hooks of enabled plugins, dependents first.

        A failing hook is logged and the remaining plugins are still destroyed.

        Raises:
            CircularDependencyError: If enabled plugins form a cycle
        """
        for bundle in reversed(self.sort_by_dependencies(self.get_enabled_plugins())):
            if bundle.destroy is None:
                continue
            try:
                result = bundle.destroy()
                if inspect.isawaitable(result):
                    await result
                logger.info(f"Plugin '{bundle.descriptor.name}' destroyed")
            except Exception:
                logger.exception(f"Failed to destroy plugin '{bundle.descriptor.name}'")

    def sort_by_dependencies(self, bundles: Iterable[PluginBundle]) -> list[PluginBundle]:
        """
        Order bundles so that every dependency precedes its dependents.

        Dependencies outside the given bundles are ignored. Uses an iterative
        depth-first traversal with a "visiting" marker set.

        Raises:
            CircularDependencyError: If the bundles form a cycle
        """
        by_id = {bundle.descriptor.id: bundle for bundle in bundles}
        visited: set[str] = set()
        visiting: set[str] = set()
        ordered: list[PluginBundle] = []

        for root_id in by_id:
            if root_id in visited:
                continue

            visiting.add(root_id)
            stack = [(root_id, iter(by_id[root_id].descriptor.dependencies))]

            while stack:
                node_id, deps = stack[-1]
                for dep_id in deps:
                    if dep_id not in by_id or dep_id in visited:
                        continue
                    if dep_id in visiting:
                        raise CircularDependencyError(
                            f"Circular dependency detected involving plugin "
                            f"'{by_id[dep_id].descriptor.name}'",
                            dep_id,
                        )
                    visiting.add(dep_id)
                    stack.append((dep_id, iter(by_id[dep_id].descriptor.dependencies)))
                    break
                else:
                    stack.pop()
                    visiting.discard(node_id)
                    visited.add(node_id)
                    ordered.append(by_id[node_id])

        return ordered

    def _require(self, plugin_id: str) -> PluginBundle:
        bundle = self._plugins.get(plugin_id)
        if bundle is None:
            raise PluginNotFoundError(
                f"Plugin with ID '{plugin_id}' is not registered", plugin_id
            )
        return bundle

    def _check_dependencies_registered(self, bundle: PluginBundle) -> None:
        for dep_id in bundle.descriptor.dependencies:
            if dep_id not in self._plugins:
                raise UnresolvedDependencyError(
                    f"Plugin '{bundle.descriptor.name}' depends on '{dep_id}' "
                    f"which is not registered",
                    bundle.descriptor.id,
                    dep_id,
                )

    def _check_dependencies_enabled(self, bundle: PluginBundle) -> None:
        for dep_id in bundle.descriptor.dependencies:
            if dep_id not in self._enabled:
                raise DependencyNotEnabledError(
                    f"Plugin '{bundle.descriptor.name}' depends on '{dep_id}' "
                    f"which is not enabled",
                    bundle.descriptor.id,
                    dep_id,
                )
