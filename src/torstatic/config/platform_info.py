"""Platform Detection.

This module detects the operating system and CPU architecture that the
libraries are being built on, and renders paths the way the build shell
expects them.

Supported Platforms:
    - linux: native autotools toolchain
    - windows: MinGW64 / MSYS2 shell
    - darwin: macOS on x86_64 or arm64
"""

import platform
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Optional, Union

from ..errors import TorStaticError


class PlatformError(TorStaticError):
    """Raised when platform detection fails."""

    pass


class UnsupportedPlatformError(PlatformError):
    """Raised when an OS/architecture combination has no build recipe."""

    pass


SUPPORTED_OS = ("linux", "windows", "darwin")


@dataclass(frozen=True)
class PlatformDescriptor:
    """Operating system, architecture and optional cross-compile host."""

    os: str
    arch: str
    host: Optional[str] = None

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def is_linux(self) -> bool:
        return self.os == "linux"

    @property
    def is_darwin(self) -> bool:
        return self.os == "darwin"

    @property
    def is_cross(self) -> bool:
        """Whether a cross-compile host triple was given."""
        return bool(self.host)

    def __str__(self) -> str:
        if self.host:
            return f"{self.os}-{self.arch} (host {self.host})"
        return f"{self.os}-{self.arch}"


class PlatformDetector:
    """Detects the current platform for build recipe selection."""

    @staticmethod
    def normalize_os(system: str) -> str:
        """Normalize a platform.system() value.

        MSYS and MinGW builds of Python report names like
        ``MINGW64_NT-10.0``; those are treated as Windows.

        Raises:
            UnsupportedPlatformError: If the OS is not supported
        """
        system = system.lower()
        if system == "windows" or system.startswith(("mingw", "msys", "cygwin")):
            return "windows"
        if system in ("linux", "darwin"):
            return system
        raise UnsupportedPlatformError(f"Unsupported platform: {system}")

    @staticmethod
    def normalize_arch(machine: str) -> str:
        """Normalize a platform.machine() value.

        Args:
            machine: Raw machine string (e.g. 'AMD64', 'aarch64')

        Returns:
            Architecture: 'x86_64', 'arm64', 'i686', 'armv7l' or the raw value
        """
        machine = machine.lower()
        if machine in ("x86_64", "amd64"):
            return "x86_64"
        elif machine == "aarch64" or machine.startswith("arm64"):
            return "arm64"
        elif machine in ("i386", "i686"):
            return "i686"
        elif machine.startswith("arm"):
            return "armv7l"
        return machine

    @staticmethod
    def detect(host: Optional[str] = None) -> PlatformDescriptor:
        """Detect the platform of the running interpreter.

        Args:
            host: Optional cross-compile host triple

        Returns:
            PlatformDescriptor for this run

        Raises:
            UnsupportedPlatformError: If the OS is not supported
        """
        return PlatformDescriptor(
            os=PlatformDetector.normalize_os(platform.system()),
            arch=PlatformDetector.normalize_arch(platform.machine()),
            host=host or None,
        )


def to_msys_path(path: Union[str, Path]) -> str:
    """Convert a Windows absolute path to the form MSYS shells use.

    Example:
        >>> to_msys_path("C:\\\\work\\\\tor")
        '/C/work/tor'
    """
    win_path = PureWindowsPath(path)
    drive = win_path.drive
    rest = win_path.as_posix()[len(drive):]
    if not drive:
        return rest
    return "/" + drive.rstrip(":") + "/" + rest.lstrip("/")
