"""Link-order resolution and bundling of the built static libraries."""

from .archive_packager import (
    DAEMON_API_HEADER,
    ArchiveEntry,
    ArtifactPackager,
    PackageResult,
    PackagingError,
)
from .library_set import (
    STATIC_LIBRARY_SETS,
    LibrarySet,
    LibrarySetError,
    LibrarySetParseError,
    LibrarySetResolver,
    format_linker_flags,
    parse_dependency_output,
)

__all__ = [
    "DAEMON_API_HEADER",
    "ArchiveEntry",
    "ArtifactPackager",
    "PackageResult",
    "PackagingError",
    "STATIC_LIBRARY_SETS",
    "LibrarySet",
    "LibrarySetError",
    "LibrarySetParseError",
    "LibrarySetResolver",
    "format_linker_flags",
    "parse_dependency_output",
]
