"""Configuration modules for torstatic."""

from .build_config import BuildConfig, BuildConfigError, BuildConfigFile
from .libraries import BUILD_ORDER, LIBRARY_NAMES, Library, LibraryGraphError, find_library
from .platform_info import (
    PlatformDescriptor,
    PlatformDetector,
    PlatformError,
    UnsupportedPlatformError,
    to_msys_path,
)

__all__ = [
    "BuildConfig",
    "BuildConfigError",
    "BuildConfigFile",
    "BUILD_ORDER",
    "LIBRARY_NAMES",
    "Library",
    "LibraryGraphError",
    "find_library",
    "PlatformDescriptor",
    "PlatformDetector",
    "PlatformError",
    "UnsupportedPlatformError",
    "to_msys_path",
]
