"""
Plugin Bundle Loader.

This module turns a plugin directory into a validated PluginBundle.

Key features:
- BundleLoader protocol shared by all environments
- Filesystem loader: plugin.json + importlib loading of the entry file
- Required create_plugin(descriptor) factory, validated at load time
- Static loader backed by a pre-registered factory map
- Module caching and reload support for development
"""

import importlib.util
import re
import sys
from collections.abc import Callable
from pathlib import Path
from types import ModuleType
from typing import Protocol

from nara.plugin.descriptor import DESCRIPTOR_FILE, DescriptorError, parse_descriptor_file
from nara.plugin.types import PluginBundle, PluginDescriptor, PluginError

FACTORY_NAME = "create_plugin"

BundleFactory = Callable[[PluginDescriptor], PluginBundle]


class LoadError(PluginError):
    """Base exception for loader-related errors."""

    pass


class MissingFileError(LoadError):
    """Raised when a plugin directory lacks its descriptor or entry file."""

    pass


class BundleLoader(Protocol):
    """Loads a PluginBundle from a plugin directory."""

    def load(self, path: Path) -> PluginBundle: ...

    def unload(self, plugin_id: str) -> None: ...


def _module_name(plugin_id: str) -> str:
    return "nara_plugin_" + re.sub(r"\W", "_", plugin_id)


def validate_bundle(bundle: object, descriptor: PluginDescriptor) -> PluginBundle:
    """
    Check a factory result against the descriptor it was built from.

    Raises:
        LoadError: If the result is not a matching PluginBundle
    """
    if not isinstance(bundle, PluginBundle):
        raise LoadError(
            f"{FACTORY_NAME}() for plugin {descriptor.id} returned "
            f"{type(bundle).__name__}, expected PluginBundle"
        )
    if bundle.descriptor.id != descriptor.id:
        raise LoadError(
            f"{FACTORY_NAME}() returned bundle for '{bundle.descriptor.id}', "
            f"expected '{descriptor.id}'"
        )
    for hook_name in ("init", "destroy"):
        hook = getattr(bundle, hook_name)
        if hook is not None and not callable(hook):
            raise LoadError(f"Plugin {descriptor.id} has non-callable {hook_name} hook")
    return bundle


class FilesystemBundleLoader:
    """
    Loads bundles from directories on disk.

    A plugin directory holds plugin.json and an entry file (plugin.py by
    default) defining ``create_plugin(descriptor) -> PluginBundle``.
    """

    def __init__(self):
        # Module cache: plugin_id -> module
        self._module_cache: dict[str, ModuleType] = {}

    def load(self, path: Path) -> PluginBundle:
        """
        Load a bundle from a plugin directory.

        Raises:
            MissingFileError: If plugin.json or the entry file is missing
            LoadError: If the descriptor is invalid or the entry fails to load
        """
        descriptor_path = path / DESCRIPTOR_FILE
        if not descriptor_path.exists():
            raise MissingFileError(f"Plugin '{path.name}' missing {DESCRIPTOR_FILE}")

        try:
            descriptor = parse_descriptor_file(descriptor_path)
        except DescriptorError as e:
            raise LoadError(f"Invalid descriptor for plugin '{path.name}': {e}") from e

        entry_point = path / descriptor.entry
        if not entry_point.exists():
            raise MissingFileError(f"Plugin '{path.name}' missing {descriptor.entry}")

        module = self.load_module(descriptor.id, entry_point)

        factory = getattr(module, FACTORY_NAME, None)
        if not callable(factory):
            raise LoadError(
                f"Entry file {entry_point} does not define {FACTORY_NAME}(descriptor)"
            )

        try:
            bundle = factory(descriptor)
        except Exception as e:
            raise LoadError(f"{FACTORY_NAME}() failed for plugin {descriptor.id}: {e}") from e

        return validate_bundle(bundle, descriptor)

    def load_module(self, plugin_id: str, entry_point: Path) -> ModuleType:
        """
        Import a plugin entry file.

        Raises:
            LoadError: If loading fails
        """
        if plugin_id in self._module_cache:
            return self._module_cache[plugin_id]

        module_name = _module_name(plugin_id)
        try:
            spec = importlib.util.spec_from_file_location(module_name, entry_point)
            if spec is None or spec.loader is None:
                raise LoadError(f"Failed to create module spec for {entry_point}")

            module = importlib.util.module_from_spec(spec)

            # Add to sys.modules before execution
            sys.modules[module_name] = module
            spec.loader.exec_module(module)

            self._module_cache[plugin_id] = module
            return module

        except LoadError:
            sys.modules.pop(module_name, None)
            raise
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoadError(f"Failed to load plugin module: {e}") from e

    def unload(self, plugin_id: str) -> None:
        """Drop a plugin module from the cache and sys.modules."""
        self._module_cache.pop(plugin_id, None)
        sys.modules.pop(_module_name(plugin_id), None)

    def reload(self, path: Path) -> PluginBundle:
        """Load a bundle again, re-executing its entry file."""
        try:
            descriptor = parse_descriptor_file(path / DESCRIPTOR_FILE)
        except DescriptorError as e:
            raise LoadError(f"Invalid descriptor for plugin '{path.name}': {e}") from e
        self.unload(descriptor.id)
        return self.load(path)

    def is_cached(self, plugin_id: str) -> bool:
        return plugin_id in self._module_cache


class StaticBundleLoader:
    """
    Loads bundles from a pre-registered map of directory name -> factory.

    For runtimes without dynamic imports. The factory receives the descriptor
    registered alongside it.
    """

    def __init__(self, entries: dict[str, tuple[PluginDescriptor, BundleFactory]] | None = None):
        self._entries: dict[str, tuple[PluginDescriptor, BundleFactory]] = dict(entries or {})

    def add(self, name: str, descriptor: PluginDescriptor, factory: BundleFactory) -> None:
        self._entries[name] = (descriptor, factory)

    def load(self, path: Path) -> PluginBundle:
        """
        Raises:
            MissingFileError: If no factory is registered for the directory name
            LoadError: If the factory fails
        """
        entry = self._entries.get(path.name)
        if entry is None:
            raise MissingFileError(f"No static bundle registered for '{path.name}'")

        descriptor, factory = entry
        try:
            bundle = factory(descriptor)
        except Exception as e:
            raise LoadError(f"Bundle factory failed for plugin {descriptor.id}: {e}") from e

        return validate_bundle(bundle, descriptor)

    def unload(self, plugin_id: str) -> None:
        # Factories are rebuilt on every load; nothing is cached
        pass
