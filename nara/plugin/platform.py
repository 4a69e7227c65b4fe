"""
Platform Operations.

This module provides the filesystem and network capability injected into the
manager and the registry client.

Key features:
- PlatformOps protocol (filesystem read/write/enumerate, network fetch)
- LocalPlatform backed by pathlib and httpx
"""

import shutil
from pathlib import Path
from typing import Any, Protocol

import httpx


class PlatformOps(Protocol):
    """Filesystem and network operations used by the plugin system."""

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def list_dirs(self, path: Path) -> list[Path]: ...

    def list_files(self, path: Path) -> list[Path]: ...

    def read_text(self, path: Path) -> str: ...

    def read_bytes(self, path: Path) -> bytes: ...

    def write_text(self, path: Path, content: str) -> None: ...

    def remove_tree(self, path: Path) -> None: ...

    def move(self, src: Path, dst: Path) -> None: ...

    async def fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response: ...


class LocalPlatform:
    """
    PlatformOps implementation for a host process.

    Text is read and written as UTF-8 with surrogateescape so that binary
    payloads carried through PluginPackage.files survive a round trip.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        """
        Initialize LocalPlatform.

        Args:
            client: HTTP client to use (created lazily if None)
            timeout: Default request timeout in seconds
        """
        self._client = client
        self.timeout = timeout

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def list_dirs(self, path: Path) -> list[Path]:
        """List immediate subdirectories sorted by name."""
        if not path.is_dir():
            return []
        return sorted(p for p in path.iterdir() if p.is_dir())

    def list_files(self, path: Path) -> list[Path]:
        """List files below path recursively, sorted."""
        if not path.is_dir():
            return []
        return sorted(p for p in path.rglob("*") if p.is_file())

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="surrogateescape")

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8", errors="surrogateescape"))

    def remove_tree(self, path: Path) -> None:
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()

    def move(self, src: Path, dst: Path) -> None:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(src, dst)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Issue a GET request.

        Raises:
            httpx.HTTPError: On transport failures and timeouts
        """
        return await self.client.get(
            url,
            params=params,
            timeout=timeout if timeout is not None else self.timeout,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
