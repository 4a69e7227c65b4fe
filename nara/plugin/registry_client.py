"""
Remote Registry Client.

This module adapts an npm-registry-shaped HTTP catalog to the plugin
manager's vocabulary.

Key features:
- Catalog search filtered to plugin packages
- Package metadata lookup with "latest" tag resolution
- Tarball download, SHA-1 verification and extraction into a PluginPackage
- Publication pre-checks
- Package-name normalisation for the plugin scope

Remote endpoints:
    GET {registry}/-/v1/search?text=&size=&from=
    GET {registry}/{packageName}
    GET {dist.tarball}
"""

import hashlib
import logging
from datetime import datetime
from typing import Any, Protocol

import httpx

from nara.plugin.archive import ArchiveError, extract_archive, strip_common_prefix
from nara.plugin.descriptor import (
    DESCRIPTOR_FILE,
    DescriptorError,
    descriptor_to_json,
    parse_descriptor_text,
)
from nara.plugin.packaging import build_package, validate_package
from nara.plugin.platform import LocalPlatform, PlatformOps
from nara.plugin.types import (
    PluginDependency,
    PluginDescriptor,
    PluginError,
    PluginPackage,
    PluginType,
    RegistryAuth,
    RegistryInfo,
    RemotePluginInfo,
    SearchOptions,
)

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
CUSTOM_REGISTRY_URL = "https://plugins.nara.dev"
DEFAULT_SCOPE = "@nara-plugin"
PLUGIN_KEYWORDS = ("nara-plugin", "nara-boilerplate")


class RegistryClientError(PluginError):
    """Base exception for registry client errors."""

    pass


class DownloadFailedError(RegistryClientError):
    """Raised when a plugin package cannot be downloaded or verified."""

    pass


class UnsupportedRegistryTypeError(RegistryClientError):
    """Raised for an unknown registry type."""

    pass


class RegistryClient(Protocol):
    """Operations the manager needs from a remote catalog."""

    async def search(self, options: SearchOptions) -> list[RemotePluginInfo]: ...

    async def get_plugin(
        self, plugin_id: str, version: str | None = None
    ) -> RemotePluginInfo | None: ...

    async def download(self, plugin_id: str, version: str | None = None) -> PluginPackage: ...

    async def publish(self, package: PluginPackage, auth: RegistryAuth | None = None) -> bool: ...

    async def get_registry_info(self) -> RegistryInfo: ...

    def extract_plugin_id(self, package_name: str) -> str: ...


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class NpmRegistryClient:
    """Registry client for npm-registry-shaped HTTP catalogs."""

    def __init__(
        self,
        base_url: str = NPM_REGISTRY_URL,
        timeout: float = 10.0,
        platform: PlatformOps | None = None,
        scope: str = DEFAULT_SCOPE,
        keywords: tuple[str, ...] = PLUGIN_KEYWORDS,
    ):
        """
        Initialize NpmRegistryClient.

        Args:
            base_url: Registry base URL
            timeout: Per-request timeout in seconds
            platform: Network capability (LocalPlatform if None)
            scope: npm scope that marks plugin packages
            keywords: Package keywords that mark plugin packages
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_platform = platform is None
        self.platform = platform or LocalPlatform(timeout=timeout)
        self.scope = scope.rstrip("/")
        self.keywords = keywords

    async def __aenter__(self) -> "NpmRegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_platform and isinstance(self.platform, LocalPlatform):
            await self.platform.aclose()

    async def search(self, options: SearchOptions) -> list[RemotePluginInfo]:
        """
        Search the catalog for plugins.

        Network failures and non-2xx responses yield an empty list.
        """
        text = options.query or ""
        if options.keywords:
            text = f"{text} keywords:{','.join(options.keywords)}".strip()

        params: dict[str, Any] = {"size": options.limit, "from": options.offset}
        if text:
            params["text"] = text

        try:
            response = await self.platform.fetch(
                f"{self.base_url}/-/v1/search", params=params, timeout=self.timeout
            )
            if not response.is_success:
                logger.warning(
                    f"Registry search failed: {response.status_code} {response.reason_phrase}"
                )
                return []
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Plugin search failed: {e}")
            return []

        results = []
        for obj in data.get("objects") or []:
            pkg = obj.get("package") or {}
            if not self.is_plugin_package(pkg):
                continue
            info = self._to_plugin_info(pkg)
            if info is not None:
                results.append(info)
        return results

    async def get_plugin(
        self, plugin_id: str, version: str | None = None
    ) -> RemotePluginInfo | None:
        """
        Fetch metadata for one plugin.

        Returns:
            RemotePluginInfo, or None if the catalog does not know the
            package (or the requested version)

        Raises:
            RegistryClientError: On network failures and non-404 errors
        """
        package_name = self.normalize_package_name(plugin_id)
        url = f"{self.base_url}/{package_name}"

        try:
            response = await self.platform.fetch(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise RegistryClientError(f"Failed to get plugin info for '{plugin_id}': {e}") from e

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise RegistryClientError(
                f"Failed to get plugin info for '{plugin_id}': "
                f"{response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryClientError(f"Invalid metadata for '{plugin_id}': {e}") from e

        if version is not None and version not in (data.get("versions") or {}):
            return None

        return self._to_plugin_info(data, version)

    async def download(self, plugin_id: str, version: str | None = None) -> PluginPackage:
        """
        Download and extract a plugin package.

        Raises:
            DownloadFailedError: If the plugin is unknown, the download fails,
                the checksum does not match or the payload is unusable
        """
        info = await self.get_plugin(plugin_id, version)
        if info is None:
            raise DownloadFailedError(f"Plugin '{plugin_id}' not found")
        if not info.download_url:
            raise DownloadFailedError(f"No download URL available for plugin '{plugin_id}'")

        try:
            response = await self.platform.fetch(info.download_url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise DownloadFailedError(f"Failed to download plugin '{plugin_id}': {e}") from e

        if not response.is_success:
            raise DownloadFailedError(
                f"Failed to download plugin '{plugin_id}': "
                f"{response.status_code} {response.reason_phrase}"
            )

        payload = response.content
        if info.checksum:
            digest = hashlib.sha1(payload).hexdigest()
            if digest != info.checksum:
                raise DownloadFailedError(
                    f"Checksum mismatch for plugin '{plugin_id}': "
                    f"expected {info.checksum}, got {digest}"
                )

        return self._extract_package(payload, info)

    async def publish(self, package: PluginPackage, auth: RegistryAuth | None = None) -> bool:
        """
        Validate a package for publication.

        Uploading requires registry credentials and is performed by external
        tooling; this only checks that the package is publishable.

        Returns:
            True if the package passed validation
        """
        try:
            validate_package(package)
        except ValueError as e:
            logger.error(f"Failed to publish plugin: {e}")
            return False

        package_name = self.normalize_package_name(package.descriptor.id)
        logger.info(
            f"Publishing plugin '{package.descriptor.id}' as {package_name}"
            f"@{package.descriptor.version} to {self.base_url}"
        )
        if auth is None or not auth.token:
            logger.warning("No registry token supplied; upload must be completed externally")
        return True

    async def get_registry_info(self) -> RegistryInfo:
        return RegistryInfo(name="NPM Registry", url=self.base_url, version="1.0.0")

    def normalize_package_name(self, plugin_id: str) -> str:
        """Map a plugin id to its catalog package name."""
        if plugin_id.startswith("@"):
            return plugin_id
        return f"{self.scope}/{plugin_id}"

    def extract_plugin_id(self, package_name: str) -> str:
        """Map a catalog package name back to a plugin id."""
        prefix = f"{self.scope}/"
        if package_name.startswith(prefix):
            return package_name[len(prefix):]
        return package_name

    def is_plugin_package(self, pkg: dict[str, Any]) -> bool:
        """Check whether a catalog package follows the plugin convention."""
        name = pkg.get("name") or ""
        keywords = pkg.get("keywords") or []
        return name.startswith(f"{self.scope}/") or any(k in keywords for k in self.keywords)

    def _to_plugin_info(
        self, pkg: dict[str, Any], version: str | None = None
    ) -> RemotePluginInfo | None:
        versions = pkg.get("versions") or {}
        target_version = (
            version
            or (pkg.get("dist-tags") or {}).get("latest")
            or next(iter(versions), None)
            or pkg.get("version")
        )
        if not target_version or not pkg.get("name"):
            logger.warning(f"Skipping catalog entry without name or version: {pkg.get('name')}")
            return None

        data = versions.get(target_version) or pkg
        dist = data.get("dist") or {}
        times = pkg.get("time") or {}

        return RemotePluginInfo(
            id=self.extract_plugin_id(pkg["name"]),
            name=data.get("name") or pkg["name"],
            version=target_version,
            description=data.get("description") or pkg.get("description") or "",
            author=self._extract_author(data.get("author") or pkg.get("author")),
            keywords=list(data.get("keywords") or pkg.get("keywords") or []),
            checksum=dist.get("shasum"),
            download_url=dist.get("tarball"),
            last_updated=_parse_time(times.get(target_version) or data.get("date")),
            homepage=data.get("homepage") or pkg.get("homepage"),
            repository=self._extract_repository(data.get("repository") or pkg.get("repository")),
            license=data.get("license") or pkg.get("license"),
            registry=self.base_url,
            dependencies=self._extract_dependencies(data.get("dependencies") or {}),
            readme=data.get("readme") or pkg.get("readme"),
        )

    @staticmethod
    def _extract_author(author: Any) -> str:
        if isinstance(author, str):
            return author
        if isinstance(author, dict) and author.get("name"):
            return author["name"]
        return "Unknown"

    @staticmethod
    def _extract_repository(repo: Any) -> str | None:
        if isinstance(repo, str):
            return repo
        if isinstance(repo, dict):
            return repo.get("url")
        return None

    def _extract_dependencies(self, deps: dict[str, str]) -> list[PluginDependency]:
        return [
            PluginDependency(id=self.extract_plugin_id(name), version=spec)
            for name, spec in deps.items()
            if name.startswith(f"{self.scope}/")
        ]

    def _extract_package(self, payload: bytes, info: RemotePluginInfo) -> PluginPackage:
        try:
            files = strip_common_prefix(extract_archive(payload, info.download_url or ""))
        except ArchiveError as e:
            raise DownloadFailedError(f"Failed to extract plugin '{info.id}': {e}") from e

        if DESCRIPTOR_FILE in files:
            try:
                descriptor = parse_descriptor_text(files[DESCRIPTOR_FILE])
            except DescriptorError as e:
                raise DownloadFailedError(f"Invalid descriptor in plugin '{info.id}': {e}") from e
            if descriptor.id != info.id:
                raise DownloadFailedError(
                    f"Package descriptor id '{descriptor.id}' does not match plugin '{info.id}'"
                )
        else:
            descriptor = PluginDescriptor(
                id=info.id,
                name=info.name,
                version=info.version,
                author=info.author,
                description=info.description,
                type=PluginType.FEATURE,
                enabled=False,
                dependencies=[dep.id for dep in info.dependencies],
            )
            files[DESCRIPTOR_FILE] = descriptor_to_json(descriptor)

        return build_package(
            descriptor,
            files,
            license=info.license,
            repository=info.repository,
            homepage=info.homepage,
            keywords=info.keywords,
        )


def create_registry_client(
    registry_type: str = "npm", base_url: str | None = None, **kwargs
) -> NpmRegistryClient:
    """
    Create a registry client for a registry type.

    Raises:
        UnsupportedRegistryTypeError: For types other than "npm" and "custom"
    """
    if registry_type == "npm":
        return NpmRegistryClient(base_url or NPM_REGISTRY_URL, **kwargs)
    if registry_type == "custom":
        return NpmRegistryClient(base_url or CUSTOM_REGISTRY_URL, **kwargs)
    raise UnsupportedRegistryTypeError(f"Unsupported registry type: {registry_type}")
