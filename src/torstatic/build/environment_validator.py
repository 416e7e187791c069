"""Environment Validator.

Checks the preconditions for a build before anything is spawned: all library
source folders must be present, and the shell must match the platform. A
Windows build has to run from a MinGW64 or MSYS2 shell. A Linux build must
not be driven from one, since that mixes toolchains and silently produces
wrong binaries.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config.libraries import LIBRARY_NAMES
from ..config.platform_info import PlatformDescriptor
from ..errors import TorStaticError

logger = logging.getLogger(__name__)

WINDOWS_SHELL_MARKERS = ("MINGW64", "MSYS2")
LINUX_REJECTED_MARKER = "MINGW"


class EnvironmentValidationError(TorStaticError):
    """Raised when the build environment does not meet preconditions."""
    pass


def identify_shell() -> str:
    """Return the combined output of ``uname -a``.

    Raises:
        EnvironmentValidationError: If uname cannot be run or fails
    """
    try:
        result = subprocess.run(
            ["uname", "-a"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise EnvironmentValidationError(f"uname -a failed: {e}") from e
    return result.stdout.decode("utf-8", errors="replace")


class EnvironmentValidator:
    """Validates library folders and shell type for the current platform."""

    def __init__(
        self,
        root_dir: Path,
        platform: PlatformDescriptor,
        shell_identifier: Optional[Callable[[], str]] = None,
    ):
        """
        Args:
            root_dir: Directory expected to hold the library folders
            platform: Platform descriptor for this run
            shell_identifier: Callable returning the shell identification
                string (defaults to running ``uname -a``)
        """
        self.root_dir = Path(root_dir)
        self.platform = platform
        self.shell_identifier = shell_identifier or identify_shell

    def validate(self, folders: Iterable[str] = LIBRARY_NAMES) -> None:
        """Run all checks in order.

        Raises:
            EnvironmentValidationError: On the first failed check
        """
        self.check_folders(folders)
        if self.platform.is_windows:
            self.check_windows_shell()
        elif self.platform.is_linux:
            self.check_linux_shell()

    def check_folders(self, folders: Iterable[str]) -> None:
        for folder in folders:
            if not (self.root_dir / folder).is_dir():
                raise EnvironmentValidationError(f"{folder} is not a dir")

    def check_windows_shell(self) -> None:
        try:
            output = self.shell_identifier()
        except EnvironmentValidationError as e:
            raise EnvironmentValidationError(
                f"This has to be run in a MSYS or MinGW shell, {e}"
            ) from e
        if not output.startswith(WINDOWS_SHELL_MARKERS):
            raise EnvironmentValidationError(
                f"This has to be run in a MSYS or MinGW64 shell, uname output: {output.strip()}"
            )
        logger.debug(f"Shell: {output.strip()}")

    def check_linux_shell(self) -> None:
        try:
            output = self.shell_identifier()
        except EnvironmentValidationError as e:
            raise EnvironmentValidationError(f"Failed running uname -a: {e}") from e
        if output.startswith(LINUX_REJECTED_MARKER):
            raise EnvironmentValidationError(
                "MinGW should not use a Linux interpreter, run the build from a "
                "Windows Python inside the MinGW shell instead"
            )
