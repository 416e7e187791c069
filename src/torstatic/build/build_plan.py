"""Library Build Plan.

This module turns a library name and the build configuration into the ordered
command steps that configure, compile and install that library into
``<library>/dist``.

Design:
    - Recipes are declared in a table keyed by (library, os); a row with os
      None is the default for platforms without their own row
    - Step arguments are templates filled from a placeholder mapping at plan
      time ({prefix}, {root}, {jobs}, {tls_target}, {autopoint_path},
      {inherited_path})
    - Cross-compile flags are appended declaratively: ``--host`` for
      recipes that accept it, then platform flags, then cross-only flags
    - Every step is resolved before any is returned, so an unsupported
      platform fails before a subprocess is spawned
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from ..config.build_config import BuildConfig
from ..config.libraries import COMPRESSION, DAEMON, EVENT, LZMA, TLS, find_library
from ..config.platform_info import SUPPORTED_OS, UnsupportedPlatformError
from ..errors import TorStaticError
from .command_runner import CommandStep


class BuildPlanError(TorStaticError):
    """Raised when no plan can be produced for a library."""
    pass


KNOWN_EXECUTABLES = frozenset({"sh", "perl", "make"})

# Target names understood by OpenSSL's Configure script on macOS.
DARWIN_TLS_TARGETS = {
    "x86_64": "darwin64-x86_64-cc",
    "arm64": "darwin64-arm64-cc",
}


@dataclass(frozen=True)
class Recipe:
    """Declarative build steps for one library on one platform.

    Attributes:
        steps: Command templates, each a tuple of executable and arguments
        env: Environment overlay templates applied to every step
        configure_step: Index of the step that receives the extra flags
        host_flag: Whether ``--host=<host>`` is passed when cross-compiling
        platform_flags: Flags appended to the configure step on this platform
        cross_flags: Flags appended after platform_flags when cross-compiling
    """

    steps: Tuple[Tuple[str, ...], ...]
    env: Tuple[Tuple[str, str], ...] = ()
    configure_step: Optional[int] = None
    host_flag: bool = False
    platform_flags: Tuple[str, ...] = ()
    cross_flags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CleanRecipe:
    """Declarative clean steps for one library on one platform."""

    control_file: str = "Makefile"
    args: Tuple[str, ...] = ("clean",)
    env: Tuple[Tuple[str, str], ...] = ()
    remove_dirs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CleanPlan:
    """Resolved clean operation for one library."""

    library: str
    folder: Path
    control_file: Path
    steps: Tuple[CommandStep, ...]
    remove_dirs: Tuple[Path, ...] = ()


_MAKE = ("make", "{jobs}")
_MAKE_INSTALL = ("make", "install")
_AUTOGEN = ("sh", "-l", "./autogen.sh")

_TLS_CONFIGURE_FLAGS = (
    "--prefix={prefix}", "--openssldir={prefix}", "no-shared", "no-dso", "no-zlib",
)
_TLS_BUILD = (("make", "depend"), _MAKE, ("make", "install_sw"))

_EVENT_CONFIGURE = (
    "sh", "./configure", "--prefix={prefix}",
    "--disable-shared", "--enable-static", "--with-pic",
    "--disable-samples", "--disable-libevent-regress",
    "CPPFLAGS=-I../_openssl/dist/include", "LDFLAGS=-L../_openssl/dist/lib",
)

_ZLIB_WIN32_MAKEFILE = "-fwin32/Makefile.gcc"

_LZMA_STEPS = (
    _AUTOGEN + ("--no-po4a",),
    (
        "sh", "./configure", "--prefix={prefix}", "--disable-shared", "--enable-static",
        "--disable-doc", "--disable-scripts", "--disable-xz", "--disable-xzdec",
        "--disable-lzmadec", "--disable-lzmainfo", "--disable-lzma-links",
    ),
    _MAKE,
    _MAKE_INSTALL,
)

_DAEMON_STEPS = (
    _AUTOGEN,
    (
        "sh", "./configure", "--prefix={prefix}",
        "--disable-gcc-hardening", "--disable-system-torrc", "--disable-asciidoc",
        "--enable-static-libevent", "--with-libevent-dir={root}/libevent/dist",
        "--enable-static-openssl", "--with-openssl-dir={root}/_openssl/dist",
        "--enable-static-zlib", "--with-zlib-dir={root}/zlib/dist",
        "--disable-systemd", "--disable-lzma", "--disable-seccomp",
        "--disable-html-manual", "--disable-manpage",
    ),
    _MAKE,
    _MAKE_INSTALL,
)
_DAEMON_ENV = (("LDFLAGS", "-s"),)

RECIPES: Dict[Tuple[str, Optional[str]], Recipe] = {
    (TLS, None): Recipe(
        steps=(("sh", "./config") + _TLS_CONFIGURE_FLAGS,) + _TLS_BUILD,
        configure_step=0,
    ),
    (TLS, "windows"): Recipe(
        steps=(("perl", "./Configure") + _TLS_CONFIGURE_FLAGS,) + _TLS_BUILD,
        configure_step=0,
        platform_flags=("mingw64",),
    ),
    (TLS, "darwin"): Recipe(
        steps=(("perl", "./Configure") + _TLS_CONFIGURE_FLAGS,) + _TLS_BUILD,
        configure_step=0,
        platform_flags=("{tls_target}",),
    ),
    (EVENT, None): Recipe(
        steps=(_AUTOGEN, _EVENT_CONFIGURE, _MAKE, _MAKE_INSTALL),
        configure_step=1,
        host_flag=True,
    ),
    (COMPRESSION, None): Recipe(
        steps=(("sh", "./configure", "--prefix={prefix}", "--static"), _MAKE, _MAKE_INSTALL),
    ),
    # zlib's configure script does not work under MinGW
    (COMPRESSION, "windows"): Recipe(
        steps=(("make", _ZLIB_WIN32_MAKEFILE), ("make", "install", _ZLIB_WIN32_MAKEFILE)),
        env=(
            ("PREFIX", "{prefix}"),
            ("BINARY_PATH", "{prefix}/bin"),
            ("INCLUDE_PATH", "{prefix}/include"),
            ("LIBRARY_PATH", "{prefix}/lib"),
        ),
    ),
    (LZMA, None): Recipe(steps=_LZMA_STEPS, configure_step=1, host_flag=True),
    # autopoint ships with keg-only gettext on macOS
    (LZMA, "darwin"): Recipe(
        steps=_LZMA_STEPS,
        env=(("PATH", "{autopoint_path}:{inherited_path}"),),
        configure_step=1,
        host_flag=True,
    ),
    (DAEMON, None): Recipe(
        steps=_DAEMON_STEPS,
        env=_DAEMON_ENV,
        configure_step=1,
        host_flag=True,
        platform_flags=("--enable-static-tor",),
    ),
    (DAEMON, "windows"): Recipe(
        steps=_DAEMON_STEPS,
        env=_DAEMON_ENV + (("LIBS", "-lcrypt32 -lgdi32"),),
        configure_step=1,
        host_flag=True,
        platform_flags=("--enable-static-tor", "--disable-zstd"),
    ),
    (DAEMON, "darwin"): Recipe(
        steps=_DAEMON_STEPS,
        env=_DAEMON_ENV,
        configure_step=1,
        host_flag=True,
        platform_flags=("--disable-zstd", "--disable-libscrypt"),
        cross_flags=("--disable-tool-name-check",),
    ),
}

CLEAN_RECIPES: Dict[Tuple[str, Optional[str]], CleanRecipe] = {
    # make clean leaves previously installed libraries in place
    (TLS, None): CleanRecipe(remove_dirs=("dist/lib",)),
    (COMPRESSION, None): CleanRecipe(env=(("PREFIX", "{root}/zlib/dist"),)),
    (COMPRESSION, "windows"): CleanRecipe(
        control_file="win32/Makefile.gcc",
        args=("clean", _ZLIB_WIN32_MAKEFILE),
        env=(("PREFIX", "{root}/zlib/dist"),),
    ),
}


class _Placeholders(Mapping[str, str]):
    """Lazily computed template values for one library."""

    def __init__(self, plan: "LibraryBuildPlan", library: str):
        self._plan = plan
        self._library = library

    def __getitem__(self, key: str) -> str:
        config = self._plan.config
        if key == "root":
            return config.shell_root
        if key == "prefix":
            return f"{config.shell_root}/{self._library}/dist"
        if key == "jobs":
            return config.jobs_flag
        if key == "autopoint_path":
            return config.autopoint_path
        if key == "inherited_path":
            return self._plan.environ.get("PATH", "")
        if key == "tls_target":
            return self._plan.darwin_tls_target()
        raise KeyError(key)

    def __iter__(self):
        return iter(("root", "prefix", "jobs", "autopoint_path", "inherited_path", "tls_target"))

    def __len__(self) -> int:
        return 6


class LibraryBuildPlan:
    """Produces build and clean steps for libraries on the configured platform.

    Example usage:
        plan = LibraryBuildPlan(config)
        for step in plan.steps("libevent"):
            runner.run(step)
    """

    def __init__(self, config: BuildConfig, environ: Optional[Mapping[str, str]] = None):
        """
        Args:
            config: Build configuration
            environ: Environment used for inherited values such as PATH
                (defaults to os.environ)
        """
        self.config = config
        self.environ = environ if environ is not None else os.environ

    def steps(self, library: str) -> Tuple[CommandStep, ...]:
        """
        Resolve the ordered build steps for a library.

        Args:
            library: Library folder name

        Returns:
            Command steps, in execution order

        Raises:
            BuildPlanError: If the library is unknown
            UnsupportedPlatformError: If the platform cannot be built for
        """
        recipe = self._lookup(RECIPES, library)
        values = _Placeholders(self, library)
        env = {key: value.format_map(values) for key, value in recipe.env}
        cwd = self.config.library_dir(library)

        steps = []
        for index, template in enumerate(recipe.steps):
            argv = [part.format_map(values) for part in template]
            if index == recipe.configure_step:
                argv.extend(self._extra_configure_flags(recipe, values))
            steps.append(CommandStep(command=argv[0], args=tuple(argv[1:]), env=env, cwd=cwd))
        return tuple(steps)

    def clean_plan(self, library: str) -> CleanPlan:
        """
        Resolve the clean operation for a library.

        Args:
            library: Library folder name

        Returns:
            CleanPlan with directories to remove, control file and steps

        Raises:
            BuildPlanError: If the library is unknown
            UnsupportedPlatformError: If the platform is not supported
        """
        recipe = self._lookup(CLEAN_RECIPES, library, default=CleanRecipe())
        values = _Placeholders(self, library)
        folder = self.config.library_dir(library)
        env = {key: value.format_map(values) for key, value in recipe.env}
        return CleanPlan(
            library=library,
            folder=folder,
            control_file=folder / recipe.control_file,
            steps=(CommandStep(command="make", args=recipe.args, env=env, cwd=folder),),
            remove_dirs=tuple(folder / d for d in recipe.remove_dirs),
        )

    def darwin_tls_target(self) -> str:
        """
        Select OpenSSL's Configure target for macOS.

        The cross-compile host wins over the detected architecture.

        Raises:
            UnsupportedPlatformError: If neither maps to a known target
        """
        platform = self.config.platform
        if platform.host:
            for arch, target in DARWIN_TLS_TARGETS.items():
                if platform.host.startswith(arch):
                    return target
            raise UnsupportedPlatformError(f"unsupported architecture for host {platform.host}")
        target = DARWIN_TLS_TARGETS.get(platform.arch)
        if target is None:
            raise UnsupportedPlatformError(f"unsupported architecture: {platform.arch}")
        return target

    def _extra_configure_flags(self, recipe: Recipe, values: Mapping[str, str]) -> list:
        host = self.config.host
        flags = []
        if recipe.host_flag and host:
            flags.append(f"--host={host}")
        flags.extend(flag.format_map(values) for flag in recipe.platform_flags)
        if host:
            flags.extend(flag.format_map(values) for flag in recipe.cross_flags)
        return flags

    def _lookup(self, table, library: str, default=None):
        if find_library(library) is None:
            raise BuildPlanError(f"unrecognized library: {library}")
        os_name = self.config.platform.os
        if os_name not in SUPPORTED_OS:
            raise UnsupportedPlatformError(f"Unsupported platform: {os_name}")
        recipe = table.get((library, os_name)) or table.get((library, None)) or default
        if recipe is None:
            raise UnsupportedPlatformError(f"No recipe for {library} on {os_name}")
        return recipe
