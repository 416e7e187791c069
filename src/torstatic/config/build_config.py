"""
Build configuration for torstatic.

This module holds the immutable configuration shared by every build
component, and the parser for the optional ``torstatic.ini`` file that
supplies defaults for a source tree.

Example torstatic.ini:
    [torstatic]
    jobs = 8
    host = arm64-apple-darwin
    autopoint_path = /opt/homebrew/opt/gettext/bin
    verbose = false
    log_file = build.log
"""

import configparser
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import psutil

from ..errors import TorStaticError
from .platform_info import PlatformDescriptor, PlatformDetector, to_msys_path


DEFAULT_AUTOPOINT_PATH = "/usr/local/opt/gettext/bin"
CONFIG_FILE_NAME = "torstatic.ini"
CONFIG_SECTION = "torstatic"


class BuildConfigError(TorStaticError):
    """Exception raised for invalid build configuration."""

    pass


def default_job_count() -> int:
    """Number of parallel make jobs to use when none is configured."""
    return psutil.cpu_count(logical=True) or 1


@dataclass(frozen=True)
class BuildConfig:
    """Immutable settings for one torstatic invocation."""

    root_dir: Path
    platform: PlatformDescriptor
    jobs: int = field(default_factory=default_job_count)
    verbose: bool = False
    autopoint_path: str = DEFAULT_AUTOPOINT_PATH
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if not isinstance(self.jobs, int) or self.jobs < 1:
            raise BuildConfigError(f"jobs must be a positive integer, got {self.jobs!r}")

    @property
    def host(self) -> Optional[str]:
        """Cross-compile host triple, if any."""
        return self.platform.host

    @property
    def jobs_flag(self) -> str:
        """The make parallelism flag (e.g. '-j8')."""
        return f"-j{self.jobs}"

    @property
    def shell_root(self) -> str:
        """Absolute root directory as the build shell sees it."""
        root = self.root_dir.resolve()
        if self.platform.is_windows:
            return to_msys_path(root)
        return root.as_posix()

    def library_dir(self, library: str) -> Path:
        """Source folder of a library."""
        return self.root_dir / library

    @classmethod
    def load(
        cls,
        root_dir: Path,
        platform: Optional[PlatformDescriptor] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "BuildConfig":
        """
        Build a configuration from torstatic.ini and explicit overrides.

        Overrides whose value is None are ignored, so argparse defaults do not
        mask values from the file.

        Args:
            root_dir: Directory holding the library source folders
            platform: Platform descriptor (detected when omitted)
            overrides: Values taken from the command line

        Returns:
            BuildConfig for this run

        Raises:
            BuildConfigError: If the file or a value is invalid
        """
        root_dir = Path(root_dir)
        settings: Dict[str, Any] = {}

        ini_path = root_dir / CONFIG_FILE_NAME
        if ini_path.exists():
            settings.update(BuildConfigFile(ini_path).get_settings())

        for key, value in (overrides or {}).items():
            if value is not None:
                settings[key] = value

        host = settings.get("host") or None
        if platform is None:
            platform = PlatformDetector.detect(host=host)
        elif host is not None:
            platform = replace(platform, host=host)

        kwargs: Dict[str, Any] = {}
        if "jobs" in settings:
            kwargs["jobs"] = settings["jobs"]
        if "verbose" in settings:
            kwargs["verbose"] = bool(settings["verbose"])
        if settings.get("autopoint_path"):
            kwargs["autopoint_path"] = str(settings["autopoint_path"])
        if settings.get("log_file"):
            log_file = Path(settings["log_file"])
            kwargs["log_file"] = log_file if log_file.is_absolute() else root_dir / log_file

        return cls(root_dir=root_dir, platform=platform, **kwargs)


class BuildConfigFile:
    """
    Parser for torstatic.ini files.

    Usage:
        settings = BuildConfigFile(Path("torstatic.ini")).get_settings()
        jobs = settings.get("jobs")
    """

    KNOWN_KEYS = {"jobs", "host", "autopoint_path", "verbose", "log_file"}

    def __init__(self, ini_path: Path):
        """
        Initialize the parser with a torstatic.ini file.

        Args:
            ini_path: Path to the torstatic.ini file

        Raises:
            BuildConfigError: If the file doesn't exist or cannot be parsed
        """
        self.ini_path = ini_path

        if not ini_path.exists():
            raise BuildConfigError(f"Configuration file not found: {ini_path}")

        self.config = configparser.ConfigParser(interpolation=None)

        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise BuildConfigError(f"Failed to parse {ini_path}: {e}") from e

    def get_settings(self) -> Dict[str, Any]:
        """
        Get typed settings from the [torstatic] section.

        Returns:
            Dictionary with any of: jobs (int), host (str), autopoint_path
            (str), verbose (bool), log_file (str). Missing file sections
            yield an empty dictionary.

        Raises:
            BuildConfigError: If a key is unknown or a value has the wrong type
        """
        if CONFIG_SECTION not in self.config:
            return {}

        section = self.config[CONFIG_SECTION]
        unknown = set(section.keys()) - self.KNOWN_KEYS
        if unknown:
            raise BuildConfigError(
                f"Unknown keys in [{CONFIG_SECTION}] of {self.ini_path}: "
                + ", ".join(sorted(unknown))
            )

        settings: Dict[str, Any] = {}
        try:
            if "jobs" in section:
                settings["jobs"] = section.getint("jobs")
            if "verbose" in section:
                settings["verbose"] = section.getboolean("verbose")
        except ValueError as e:
            raise BuildConfigError(f"Invalid value in {self.ini_path}: {e}") from e

        for key in ("host", "autopoint_path", "log_file"):
            value = section.get(key, "").strip()
            if value:
                settings[key] = value

        return settings
