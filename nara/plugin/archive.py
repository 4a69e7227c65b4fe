"""
Archive Extraction.

Unpacks tarball and zip payloads into a mapping of relative path -> content.
"""

import io
import tarfile
import zipfile
from pathlib import PurePosixPath

from nara.plugin.types import PluginError

ARCHIVE_SUFFIXES = (".tgz", ".tar.gz", ".tar", ".zip")


class ArchiveError(PluginError):
    """Raised when an archive cannot be extracted."""

    pass


def is_archive(name: str) -> bool:
    return name.lower().endswith(ARCHIVE_SUFFIXES)


def _safe_member_path(name: str) -> str:
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ArchiveError(f"Unsafe path in archive: {name}")
    return str(path)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def extract_archive(data: bytes, name: str = "") -> dict[str, str]:
    """
    Extract an archive held in memory.

    Args:
        data: Archive bytes
        name: File name or URL, used to pick zip over tar

    Returns:
        Relative file path -> file content

    Raises:
        ArchiveError: If the payload is not a readable archive
    """
    files: dict[str, str] = {}

    try:
        if name.lower().endswith(".zip") or zipfile.is_zipfile(io.BytesIO(data)):
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    files[_safe_member_path(info.filename)] = _decode(zf.read(info))
        else:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tf:
                for member in tf.getmembers():
                    if not member.isfile():
                        continue
                    fileobj = tf.extractfile(member)
                    if fileobj is None:
                        continue
                    files[_safe_member_path(member.name)] = _decode(fileobj.read())
    except (tarfile.TarError, zipfile.BadZipFile, EOFError, OSError) as e:
        raise ArchiveError(f"Failed to extract archive {name}: {e}") from e

    return files


def strip_common_prefix(files: dict[str, str], prefix: str = "package/") -> dict[str, str]:
    """Strip a directory prefix shared by every entry (npm tarballs use 'package/')."""
    if files and all(path.startswith(prefix) for path in files):
        return {path[len(prefix):]: content for path, content in files.items()}
    return files
