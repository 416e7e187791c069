"""Artifact Packager.

This module bundles the resolved static libraries and Tor's embedding header
into ``libs.tar.gz`` and ``libs.zip``.

Design:
    - Both archives receive the same files under the same relative paths
    - File mode and modification time are copied from the source file
    - Each file is read fully, then written to both archives before the next
      file is read
    - Any missing or unreadable file fails the whole operation and both
      archives are removed, so an incomplete bundle is never left behind
"""

import io
import logging
import os
import stat
import tarfile
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import TorStaticError
from .library_set import LibrarySet

logger = logging.getLogger(__name__)

TAR_ARCHIVE_NAME = "libs.tar.gz"
ZIP_ARCHIVE_NAME = "libs.zip"
DAEMON_API_HEADER = "tor/src/feature/api/tor_api.h"

# Earliest timestamp a zip header can represent
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class PackagingError(TorStaticError):
    """Raised when the library bundles cannot be written."""
    pass


@dataclass(frozen=True)
class ArchiveEntry:
    """One file's content and metadata, as stored in both archives."""

    path: str
    data: bytes
    mode: int
    mtime: float
    uid: int = 0
    gid: int = 0

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_file(cls, root_dir: Path, rel_path: str) -> "ArchiveEntry":
        """Read a file relative to root_dir.

        Raises:
            PackagingError: If the file is missing, not a regular file or
                unreadable
        """
        source = root_dir / rel_path
        try:
            with open(source, "rb") as f:
                st = os.fstat(f.fileno())
                if not stat.S_ISREG(st.st_mode):
                    raise PackagingError(f"Not a regular file: {rel_path}")
                data = f.read()
        except OSError as e:
            raise PackagingError(f"Cannot read {rel_path}: {e}") from e
        return cls(
            path=rel_path,
            data=data,
            mode=stat.S_IMODE(st.st_mode),
            mtime=st.st_mtime,
            uid=getattr(st, "st_uid", 0),
            gid=getattr(st, "st_gid", 0),
        )


@dataclass
class PackageResult:
    """Result of packaging the library bundles."""

    tar_path: Path
    zip_path: Path
    entries: List[str] = field(default_factory=list)


class ArtifactPackager:
    """Writes the static libraries and header into tar.gz and zip bundles.

    Example usage:
        packager = ArtifactPackager(root_dir)
        result = packager.package(resolver.resolve())
        print(result.tar_path, result.zip_path)
    """

    def __init__(self, root_dir: Path, output_dir: Optional[Path] = None, show_progress: bool = False):
        """Initialize artifact packager.

        Args:
            root_dir: Directory the library paths are relative to
            output_dir: Where archives are written (defaults to root_dir)
            show_progress: Whether to print each file as it is added
        """
        self.root_dir = Path(root_dir)
        self.output_dir = Path(output_dir) if output_dir is not None else self.root_dir
        self.show_progress = show_progress

    @staticmethod
    def collect_paths(library_sets: Sequence[LibrarySet], header: str = DAEMON_API_HEADER) -> List[str]:
        """Relative paths to bundle: every library file, then the header."""
        paths: List[str] = []
        for library_set in library_sets:
            paths.extend(library_set.archive_paths())
        paths.append(header)
        return paths

    def package(self, library_sets: Sequence[LibrarySet], header: str = DAEMON_API_HEADER) -> PackageResult:
        """
        Write libs.tar.gz and libs.zip.

        Args:
            library_sets: Resolved library sets, in linker order
            header: Relative path of the header to include

        Returns:
            PackageResult with both archive paths and the bundled paths

        Raises:
            PackagingError: If any file is missing or an archive cannot be
                written
        """
        paths = self.collect_paths(library_sets, header)
        tar_path = self.output_dir / TAR_ARCHIVE_NAME
        zip_path = self.output_dir / ZIP_ARCHIVE_NAME

        try:
            with tarfile.open(tar_path, "w:gz") as tar, \
                    zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
                for rel_path in paths:
                    entry = ArchiveEntry.from_file(self.root_dir, rel_path)
                    self._write_tar(tar, entry)
                    self._write_zip(zf, entry)
                    if self.show_progress:
                        print(f"Added {rel_path} ({entry.size:,} bytes)")
        except PackagingError:
            self._discard(tar_path, zip_path)
            raise
        except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            self._discard(tar_path, zip_path)
            raise PackagingError(f"Failed to write library archives: {e}") from e

        logger.info(f"Packaged {len(paths)} files into {tar_path.name} and {zip_path.name}")
        return PackageResult(tar_path=tar_path, zip_path=zip_path, entries=paths)

    @staticmethod
    def _write_tar(tar: tarfile.TarFile, entry: ArchiveEntry) -> None:
        info = tarfile.TarInfo(name=entry.path)
        info.size = entry.size
        info.mode = entry.mode
        info.mtime = int(entry.mtime)
        info.uid = entry.uid
        info.gid = entry.gid
        info.type = tarfile.REGTYPE
        tar.addfile(info, io.BytesIO(entry.data))

    @staticmethod
    def _write_zip(zf: zipfile.ZipFile, entry: ArchiveEntry) -> None:
        date_time = max(time.localtime(entry.mtime)[:6], _ZIP_EPOCH)
        info = zipfile.ZipInfo(filename=entry.path, date_time=date_time)
        info.external_attr = (stat.S_IFREG | entry.mode) << 16
        info.compress_type = zipfile.ZIP_DEFLATED
        zf.writestr(info, entry.data)

    @staticmethod
    def _discard(*paths: Path) -> None:
        for path in paths:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove partial archive {path}: {e}")
