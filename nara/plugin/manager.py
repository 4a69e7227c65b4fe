"""
Plugin Manager.

This module provides discovery, installation and packaging of plugins.

Key features:
- Discovery of plugin bundles in the plugin store
- Source classification (npm, git, url, local)
- Install/uninstall/update orchestration with persisted installation records
- Packaging and publishing of plugin directories

install() never raises: every failure is reported through the returned
InstallationRecord. The manager holds no locks; concurrent install() calls
for the same plugin id write to the same directory and are not serialized.
"""

import json
import logging
import re
from dataclasses import replace
from pathlib import Path, PurePosixPath

from nara.plugin.archive import extract_archive, is_archive, strip_common_prefix
from nara.plugin.descriptor import (
    DESCRIPTOR_FILE,
    descriptor_to_json,
    parse_descriptor_text,
)
from nara.plugin.loader import BundleLoader, FilesystemBundleLoader, LoadError, MissingFileError
from nara.plugin.packaging import PACKAGE_DIRS, build_package, compute_checksum
from nara.plugin.platform import LocalPlatform, PlatformOps
from nara.plugin.registry import PluginNotFoundError, Registry, RegistryError
from nara.plugin.registry_client import DEFAULT_SCOPE, RegistryClient, create_registry_client
from nara.plugin.source import extract_id_from_source, parse_source
from nara.plugin.status import STATUS_FILE, InstallationStore
from nara.plugin.types import (
    InstallationRecord,
    InstallOptions,
    PluginBundle,
    PluginDescriptor,
    PluginError,
    PluginPackage,
    PluginType,
    RegistryAuth,
    RemotePluginInfo,
    SearchOptions,
    SourceLocator,
    SourceType,
    utcnow,
)

logger = logging.getLogger(__name__)

SOURCE_SIDECAR = ".source.json"


class ManagerError(PluginError):
    """Base exception for manager-related errors."""

    pass


class PackageNotFoundError(ManagerError):
    """Raised when a plugin cannot be found at its source."""

    pass


class AlreadyInstalledError(ManagerError):
    """Raised when a different version is installed and force is not set."""

    pass


class MissingDescriptorError(ManagerError):
    """Raised when a plugin directory or archive has no plugin.json."""

    pass


class SourceNotImplementedError(ManagerError):
    """Raised for source types that cannot be installed yet (git, url)."""

    pass


class UnsupportedSourceTypeError(ManagerError):
    """Raised for an unknown source type."""

    pass


class PluginManager:
    """
    Orchestrates plugin discovery, installation and packaging.

    Manages the plugin store directory, the persisted installation records
    and the hand-off of loaded bundles to the registry.
    """

    def __init__(
        self,
        registry: Registry,
        plugins_dir: Path | str,
        client: RegistryClient | None = None,
        loader: BundleLoader | None = None,
        platform: PlatformOps | None = None,
        status_file: Path | str | None = None,
        registry_type: str = "npm",
        registry_url: str | None = None,
        timeout: float = 10.0,
        scope: str = DEFAULT_SCOPE,
    ):
        """
        Initialize PluginManager.

        Args:
            registry: Registry receiving loaded bundles
            plugins_dir: Plugin store root
            client: Remote catalog client (created on first use if None)
            loader: Bundle loader (filesystem loader if None)
            platform: Filesystem/network capability (LocalPlatform if None)
            status_file: Installation status document (inside plugins_dir if None)
            registry_type: Registry type for the default client
            registry_url: Registry URL for the default client
            timeout: Network timeout in seconds
            scope: npm scope for clients created by the manager
        """
        self.registry = registry
        self.plugins_dir = Path(plugins_dir)
        self.platform = platform or LocalPlatform(timeout=timeout)
        self.loader = loader or FilesystemBundleLoader()
        self.registry_type = registry_type
        self.registry_url = registry_url
        self.timeout = timeout
        self.scope = scope
        self._client = client
        self._extra_clients: dict[str, RegistryClient] = {}
        # Directory each known plugin was loaded from
        self._plugin_dirs: dict[str, Path] = {}

        status_path = Path(status_file) if status_file else self.plugins_dir / STATUS_FILE
        self.status = InstallationStore(status_path)

    @property
    def client(self) -> RegistryClient:
        if self._client is None:
            self._client = create_registry_client(
                self.registry_type,
                self.registry_url,
                platform=self.platform,
                timeout=self.timeout,
                scope=self.scope,
            )
        return self._client

    def _client_for(self, registry_url: str | None) -> RegistryClient:
        if not registry_url or registry_url == self.registry_url:
            return self.client
        if registry_url not in self._extra_clients:
            self._extra_clients[registry_url] = create_registry_client(
                self.registry_type,
                registry_url,
                platform=self.platform,
                timeout=self.timeout,
                scope=self.scope,
            )
        return self._extra_clients[registry_url]

    async def aclose(self) -> None:
        """Release network resources."""
        if isinstance(self.platform, LocalPlatform):
            await self.platform.aclose()

    # Discovery

    def discover(self) -> list[str]:
        """
        Load and register the bundles found in the plugin store.

        Directories missing a descriptor or entry file are skipped with a
        warning. A registration failure is recorded on the plugin's
        installation record and does not stop discovery of the others.

        Returns:
            Ids of the plugins registered by this call
        """
        bundles: list[tuple[PluginBundle, Path]] = []

        for plugin_dir in self.platform.list_dirs(self.plugins_dir):
            if plugin_dir.name.startswith("."):
                continue
            bundle = self._try_load(plugin_dir)
            if bundle is not None:
                bundles.append((bundle, plugin_dir))

        seen = {bundle.id for bundle, _ in bundles}
        for record in self.status.all():
            if record.id in seen or not self._is_external_local(record):
                continue
            plugin_dir = self._resolve_path(record.source.url)
            bundle = self._try_load(plugin_dir)
            if bundle is None:
                self.status.update(record.id, error=f"Plugin not loadable from {plugin_dir}")
                continue
            bundles.append((bundle, plugin_dir))

        registered = []
        for bundle, plugin_dir in self._dependency_first(bundles):
            if bundle.id in self.registry:
                continue
            if self._register_discovered(bundle, plugin_dir):
                registered.append(bundle.id)

        logger.info(f"Discovered {len(registered)} plugins in {self.plugins_dir}")
        return registered

    def _try_load(self, plugin_dir: Path) -> PluginBundle | None:
        try:
            return self.loader.load(plugin_dir)
        except MissingFileError as e:
            logger.warning(f"Skipping plugin directory '{plugin_dir.name}': {e}")
        except LoadError as e:
            logger.error(f"Failed to load plugin '{plugin_dir.name}': {e}")
        return None

    def _register_discovered(self, bundle: PluginBundle, plugin_dir: Path) -> bool:
        descriptor = bundle.descriptor
        record = self.status.get(descriptor.id)
        if record is not None:
            descriptor.enabled = record.enabled
        if descriptor.enabled:
            missing = [d for d in descriptor.dependencies if not self.registry.is_enabled(d)]
            if missing:
                logger.warning(
                    f"Plugin '{descriptor.id}' registered disabled; "
                    f"dependencies not enabled: {', '.join(missing)}"
                )
                descriptor.enabled = False

        source = record.source if record and record.source else self._read_sidecar(plugin_dir)
        installed_at = record.installed_at if record and record.installed_at else utcnow()
        self._plugin_dirs[descriptor.id] = plugin_dir

        try:
            self.registry.register(bundle)
        except RegistryError as e:
            logger.error(f"Failed to register plugin '{descriptor.name}': {e}")
            self.status.update(
                descriptor.id,
                installed=True,
                enabled=False,
                version=descriptor.version,
                source=source,
                installed_at=installed_at,
                error=str(e),
            )
            return False

        self.status.update(
            descriptor.id,
            installed=True,
            enabled=self.registry.is_enabled(descriptor.id),
            version=descriptor.version,
            source=source,
            installed_at=installed_at,
            error=None,
        )
        return True

    def _dependency_first(
        self, bundles: list[tuple[PluginBundle, Path]]
    ) -> list[tuple[PluginBundle, Path]]:
        """Order bundles so that dependencies found alongside them come first."""
        pending = list(bundles)
        known = {bundle.id for bundle, _ in bundles}
        placed: set[str] = set()
        ordered = []

        progress = True
        while pending and progress:
            progress = False
            for item in list(pending):
                deps = [d for d in item[0].descriptor.dependencies if d in known]
                if all(d in placed for d in deps):
                    ordered.append(item)
                    placed.add(item[0].id)
                    pending.remove(item)
                    progress = True

        # Cycles are left for register() to reject
        return ordered + pending

    def _is_external_local(self, record: InstallationRecord) -> bool:
        if not record.installed or record.source is None:
            return False
        if record.source.type is not SourceType.LOCAL:
            return False
        return not self._in_store(self._resolve_path(record.source.url))

    def _in_store(self, path: Path) -> bool:
        store = self.plugins_dir.resolve()
        path = path.resolve()
        return path != store and path.is_relative_to(store)

    def _store_dir(self, plugin_id: str) -> Path:
        """Store directory for a plugin: where it was loaded from, or <store>/<id>."""
        plugin_dir = self._plugin_dirs.get(plugin_id)
        if plugin_dir is not None and self._in_store(plugin_dir):
            return plugin_dir
        return self.plugins_dir / plugin_id

    def _read_sidecar(self, plugin_dir: Path) -> SourceLocator:
        sidecar = plugin_dir / SOURCE_SIDECAR
        if self.platform.exists(sidecar):
            try:
                return SourceLocator.from_dict(json.loads(self.platform.read_text(sidecar)))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring invalid {SOURCE_SIDECAR} in {plugin_dir}: {e}")
        return SourceLocator(SourceType.LOCAL, str(plugin_dir))

    # Sources

    @staticmethod
    def parse_source(raw: str) -> SourceLocator:
        return parse_source(raw)

    @staticmethod
    def extract_id_from_source(raw: str) -> str:
        return extract_id_from_source(raw)

    # Installation

    async def install(
        self, source: str, options: InstallOptions | None = None
    ) -> InstallationRecord:
        """
        Install a plugin from a source string.

        Args:
            source: npm package name, git URL, download URL or local path
            options: Install options

        Returns:
            The installation record. On failure the record has
            installed=False and error set; nothing is raised.
        """
        options = options or InstallOptions()

        try:
            locator = parse_source(source)
            if locator.type is SourceType.NPM:
                if options.version:
                    locator = replace(locator, version=options.version)
                return await self._install_npm(locator, options)
            if locator.type in (SourceType.GIT, SourceType.URL):
                raise SourceNotImplementedError(
                    f"Installation from {locator.type.value} sources is not implemented yet"
                )
            if locator.type is SourceType.LOCAL:
                return self._install_local(locator, options)
            raise UnsupportedSourceTypeError(f"Unsupported source type: {locator.type}")

        except Exception as e:
            logger.error(f"Failed to install plugin from '{source}': {e}")
            return InstallationRecord(
                id=extract_id_from_source(source),
                installed=False,
                enabled=False,
                error=str(e),
            )

    async def _install_npm(
        self, locator: SourceLocator, options: InstallOptions
    ) -> InstallationRecord:
        client = self._client_for(options.registry_url)
        if locator.version and not options.force:
            existing = self.status.get(client.extract_plugin_id(locator.url))
            if existing and existing.installed and existing.version == locator.version:
                logger.info(f"Plugin '{existing.id}' {existing.version} is already installed")
                return existing

        info = await client.get_plugin(locator.url, locator.version)
        if info is None:
            version = f"@{locator.version}" if locator.version else ""
            raise PackageNotFoundError(f"Plugin '{locator.url}{version}' not found in registry")

        existing = self._check_existing(info.id, info.version, options.force)
        if existing is not None:
            return existing

        package = await client.download(locator.url, info.version)
        resolved = SourceLocator(
            SourceType.NPM, locator.url, info.version, registry_url=options.registry_url
        )
        plugin_dir = self._store_dir(package.descriptor.id)
        bundle = self._install_files(plugin_dir, package, resolved, options.force)
        return self._record_installed(bundle, resolved)

    def _install_local(self, locator: SourceLocator, options: InstallOptions) -> InstallationRecord:
        path = self._resolve_path(locator.url)
        if not self.platform.exists(path):
            raise PackageNotFoundError(f"Local plugin path not found: {path}")

        if not self.platform.is_dir(path):
            if not is_archive(path.name):
                raise UnsupportedSourceTypeError(f"Not a plugin directory or archive: {path}")
            return self._install_archive(path, options)

        descriptor_path = path / DESCRIPTOR_FILE
        if not self.platform.exists(descriptor_path):
            raise MissingDescriptorError(f"Plugin missing {DESCRIPTOR_FILE}: {path}")
        descriptor = parse_descriptor_text(self.platform.read_text(descriptor_path))

        existing = self._check_existing(descriptor.id, descriptor.version, options.force)
        if existing is not None:
            return existing

        bundle = self._load_fresh(path, descriptor.id)
        self._register_or_replace(bundle, options.force)
        self._plugin_dirs[bundle.id] = path
        return self._record_installed(bundle, SourceLocator(SourceType.LOCAL, str(path)))

    def _install_archive(self, path: Path, options: InstallOptions) -> InstallationRecord:
        files = strip_common_prefix(extract_archive(self.platform.read_bytes(path), path.name))
        if DESCRIPTOR_FILE not in files:
            raise MissingDescriptorError(f"Plugin archive missing {DESCRIPTOR_FILE}: {path}")

        descriptor = parse_descriptor_text(files[DESCRIPTOR_FILE])
        existing = self._check_existing(descriptor.id, descriptor.version, options.force)
        if existing is not None:
            return existing

        locator = SourceLocator(SourceType.LOCAL, str(path))
        plugin_dir = self._store_dir(descriptor.id)
        bundle = self._install_files(
            plugin_dir, build_package(descriptor, files), locator, options.force
        )
        return self._record_installed(bundle, locator)

    def _install_files(
        self,
        plugin_dir: Path,
        package: PluginPackage,
        source: SourceLocator,
        force: bool,
    ) -> PluginBundle:
        """
        Write a package into the store, then load and register it.

        Existing files in plugin_dir are moved aside first and restored if
        loading or registration fails.
        """
        plugin_id = package.descriptor.id
        backup = plugin_dir.with_name(f".{plugin_dir.name}.backup")
        had_files = self.platform.exists(plugin_dir)

        self.platform.remove_tree(backup)
        if had_files:
            self.platform.move(plugin_dir, backup)

        try:
            self.write_package(plugin_dir, package, source)
            bundle = self._load_fresh(plugin_dir, plugin_id)
            self._register_or_replace(bundle, force)
        except Exception:
            self.platform.remove_tree(plugin_dir)
            if had_files:
                self.platform.move(backup, plugin_dir)
            raise

        self.platform.remove_tree(backup)
        self._plugin_dirs[plugin_id] = plugin_dir
        return bundle

    def _check_existing(
        self, plugin_id: str, version: str, force: bool
    ) -> InstallationRecord | None:
        """
        Apply the already-installed rules.

        Returns:
            The existing record when the same version is installed and force
            is unset, otherwise None

        Raises:
            AlreadyInstalledError: If another version is installed and force is unset
        """
        existing = self.status.get(plugin_id)
        if existing is None or not existing.installed or force:
            return None
        if existing.version == version:
            logger.info(f"Plugin '{plugin_id}' {version} is already installed")
            return existing
        raise AlreadyInstalledError(
            f"Plugin '{plugin_id}' version {existing.version} is already installed; "
            f"use force to install version {version}"
        )

    def _load_fresh(self, plugin_dir: Path, plugin_id: str) -> PluginBundle:
        self.loader.unload(plugin_id)
        bundle = self.loader.load(plugin_dir)
        if bundle.id != plugin_id:
            raise LoadError(f"Loaded plugin '{bundle.id}' where '{plugin_id}' was expected")
        return bundle

    def _register_or_replace(self, bundle: PluginBundle, force: bool) -> None:
        if force and bundle.id in self.registry:
            self.registry.replace(bundle)
        else:
            bundle.descriptor.enabled = False
            self.registry.register(bundle)

    def _record_installed(
        self, bundle: PluginBundle, source: SourceLocator
    ) -> InstallationRecord:
        record = InstallationRecord(
            id=bundle.id,
            installed=True,
            enabled=self.registry.is_enabled(bundle.id),
            version=bundle.descriptor.version,
            source=source,
            installed_at=utcnow(),
        )
        logger.info(f"Plugin '{bundle.id}' {record.version} installed from {source.url}")
        return self.status.put(record)

    def write_package(
        self, plugin_dir: Path, package: PluginPackage, source: SourceLocator
    ) -> None:
        """
        Write a package's files into a plugin directory, replacing its contents.

        Raises:
            ManagerError: If a file path escapes the plugin directory
        """
        for rel_path in package.files:
            pure = PurePosixPath(rel_path)
            if pure.is_absolute() or ".." in pure.parts:
                raise ManagerError(f"Unsafe file path in package: {rel_path}")

        self.platform.remove_tree(plugin_dir)
        for rel_path, content in package.files.items():
            self.platform.write_text(plugin_dir / rel_path, content)
        self.platform.write_text(
            plugin_dir / SOURCE_SIDECAR, json.dumps(source.to_dict(), indent=2) + "\n"
        )

    def uninstall(self, plugin_id: str) -> bool:
        """
        Unregister a plugin and remove its installation record and store files.

        Returns:
            True if the plugin was uninstalled
        """
        try:
            self.registry.unregister(plugin_id)
        except PluginNotFoundError:
            if plugin_id not in self.status:
                logger.error(f"Failed to uninstall plugin '{plugin_id}': not installed")
                return False
        except RegistryError as e:
            logger.error(f"Failed to uninstall plugin '{plugin_id}': {e}")
            return False

        self.loader.unload(plugin_id)
        self.status.remove(plugin_id)

        plugin_dir = self._plugin_dirs.pop(plugin_id, self.plugins_dir / plugin_id)
        if self._in_store(plugin_dir):
            self.platform.remove_tree(plugin_dir)

        logger.info(f"Plugin '{plugin_id}' uninstalled")
        return True

    async def update(self, plugin_id: str) -> InstallationRecord:
        """
        Reinstall a plugin from its recorded source at the latest version.

        Returns:
            The new installation record, or the current one if it is already
            up to date. Failures are reported through the record.
        """
        record = self.status.get(plugin_id)
        if record is None or not record.installed or record.source is None:
            return InstallationRecord(
                id=plugin_id, error=f"Plugin '{plugin_id}' is not installed"
            )

        source = record.source
        if source.type is SourceType.NPM:
            try:
                info = await self._client_for(source.registry_url).get_plugin(source.url)
            except Exception as e:
                return replace(record, error=str(e))
            if info is None:
                return replace(record, error=f"Plugin '{source.url}' not found in registry")
            if info.version == record.version:
                logger.info(f"Plugin '{plugin_id}' is up to date ({record.version})")
                return record
            return await self.install(
                source.url,
                InstallOptions(
                    force=True, version=info.version, registry_url=source.registry_url
                ),
            )

        return await self.install(source.url, InstallOptions(force=True))

    # State

    def enable(self, plugin_id: str) -> None:
        """
        Enable a plugin and persist the flag.

        Raises:
            RegistryError: If the registry rejects the transition
        """
        self.registry.enable(plugin_id)
        self.status.update(plugin_id, enabled=True)

    def disable(self, plugin_id: str) -> None:
        """
        Disable a plugin and persist the flag.

        Raises:
            RegistryError: If the registry rejects the transition
        """
        self.registry.disable(plugin_id)
        self.status.update(plugin_id, enabled=False)

    def list_installed(self) -> list[InstallationRecord]:
        return self.status.all()

    def get_status(self, plugin_id: str) -> InstallationRecord | None:
        return self.status.get(plugin_id)

    # Catalog

    async def search(self, options: SearchOptions | None = None) -> list[RemotePluginInfo]:
        """Search the remote catalog; failures yield an empty list."""
        try:
            return await self.client.search(options or SearchOptions())
        except Exception as e:
            logger.error(f"Plugin search failed: {e}")
            return []

    def package(self, plugin_path: Path | str) -> PluginPackage:
        """
        Build a distributable package from a plugin directory.

        Collects plugin.json, the entry file and the routes/, api/,
        components/ and database/ subdirectories.

        Raises:
            MissingDescriptorError: If plugin.json is missing
            DescriptorError: If plugin.json is invalid
        """
        path = self._resolve_path(str(plugin_path))
        descriptor_path = path / DESCRIPTOR_FILE
        if not self.platform.exists(descriptor_path):
            raise MissingDescriptorError(f"Plugin missing {DESCRIPTOR_FILE}: {path}")

        text = self.platform.read_text(descriptor_path)
        descriptor = parse_descriptor_text(text)
        files = {DESCRIPTOR_FILE: text}

        entry = path / descriptor.entry
        if self.platform.exists(entry):
            files[descriptor.entry] = self.platform.read_text(entry)

        for subdir in PACKAGE_DIRS:
            for file_path in self.platform.list_files(path / subdir):
                if "__pycache__" in file_path.parts:
                    continue
                files[file_path.relative_to(path).as_posix()] = self.platform.read_text(file_path)

        return build_package(descriptor, files)

    async def publish(
        self,
        plugin_path: Path | str,
        registry_url: str | None = None,
        auth: RegistryAuth | None = None,
    ) -> bool:
        """Package a plugin directory and hand it to the registry client."""
        package = self.package(plugin_path)
        return await self._client_for(registry_url).publish(package, auth)

    @staticmethod
    def checksum(files: dict[str, str]) -> str:
        """Integrity checksum of files; not cryptographically secure."""
        return compute_checksum(files)

    # Scaffolding

    def create(self, name: str, author: str = "") -> Path:
        """
        Create a new plugin directory from a template.

        Returns:
            Path of the created plugin directory

        Raises:
            ManagerError: If the directory already exists
        """
        plugin_id = re.sub(r"[^a-z0-9-]", "-", name.lower())
        plugin_dir = self.plugins_dir / plugin_id
        if self.platform.exists(plugin_dir):
            raise ManagerError(f"Plugin directory '{plugin_dir}' already exists")

        descriptor = PluginDescriptor(
            id=plugin_id,
            name=name,
            version="1.0.0",
            author=author,
            description=f"Description for {name}",
            type=PluginType.FEATURE,
            enabled=True,
        )
        self.platform.write_text(plugin_dir / DESCRIPTOR_FILE, descriptor_to_json(descriptor))
        self.platform.write_text(plugin_dir / descriptor.entry, _ENTRY_TEMPLATE.format(name=name))

        logger.info(f"Plugin '{name}' created at {plugin_dir}")
        return plugin_dir

    def _resolve_path(self, raw: str) -> Path:
        return Path(raw).expanduser().resolve()


_ENTRY_TEMPLATE = '''"""{name} plugin."""

import logging

from nara.plugin.types import PluginBundle, PluginContext, PluginDescriptor

logger = logging.getLogger(__name__)


async def init(context: PluginContext) -> None:
    logger.info("Initializing {name}")


async def destroy() -> None:
    logger.info("Cleaning up {name}")


def create_plugin(descriptor: PluginDescriptor) -> PluginBundle:
    return PluginBundle(descriptor=descriptor, init=init, destroy=destroy)
'''
