"""Library Set Resolution.

Tor knows which of its own static libraries a program must link against and
in which order; ``make show-libs`` in the tor folder prints them as a single
line of space-separated relative ``.a`` paths. This module turns that line
into (directory, names) groups and appends the libraries Tor depends on, so
the result can be handed to a static linker left to right.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..build.command_runner import CommandError, CommandRunner, CommandStep, SubprocessCommandRunner
from ..config.build_config import BuildConfig
from ..config.libraries import DAEMON
from ..errors import TorStaticError

logger = logging.getLogger(__name__)

STATIC_LIB_PREFIX = "lib"
STATIC_LIB_SUFFIX = ".a"
SHOW_LIBS_COMMAND = ("make", "show-libs")


class LibrarySetError(TorStaticError):
    """Raised when the link order cannot be determined."""
    pass


class LibrarySetParseError(LibrarySetError):
    """Raised when the show-libs output is malformed."""
    pass


@dataclass(frozen=True)
class LibrarySet:
    """A link-search directory and the libraries to link from it, in order."""

    directory: str
    libs: Tuple[str, ...]

    def archive_paths(self) -> List[str]:
        """Relative paths of the static library files in this set."""
        return [
            posixpath.join(self.directory, f"{STATIC_LIB_PREFIX}{name}{STATIC_LIB_SUFFIX}")
            for name in self.libs
        ]

    def linker_flags(self) -> str:
        return " ".join([f"-L{self.directory}"] + [f"-l{name}" for name in self.libs])


# Appended after Tor's own libraries: dependents first, dependencies last.
STATIC_LIBRARY_SETS: Tuple[LibrarySet, ...] = (
    LibrarySet("libevent/dist/lib", ("event",)),
    LibrarySet("xz/dist/lib", ("lzma",)),
    LibrarySet("zlib/dist/lib", ("z",)),
    LibrarySet("_openssl/dist/lib", ("ssl", "crypto")),
)


def library_name(filename: str) -> str:
    """Strip the static library prefix and suffix ('libfoo.a' -> 'foo')."""
    name = filename[: -len(STATIC_LIB_SUFFIX)]
    if name.startswith(STATIC_LIB_PREFIX):
        name = name[len(STATIC_LIB_PREFIX):]
    return name


def parse_dependency_output(output: str, base_dir: str = "") -> List[LibrarySet]:
    """
    Group a show-libs line into library sets.

    Args:
        output: Space-separated relative paths to .a files
        base_dir: Directory the paths are relative to, prepended to each group

    Returns:
        Library sets in first-seen directory order

    Raises:
        LibrarySetParseError: If the output is empty or a token is not a
            static library path

    Example:
        >>> parse_dependency_output("a/libfoo.a a/libbar.a b/libbaz.a")
        [LibrarySet(directory='a', libs=('foo', 'bar')), LibrarySet(directory='b', libs=('baz',))]
    """
    tokens = output.split()
    if not tokens:
        raise LibrarySetParseError("show-libs produced no libraries")

    groups: Dict[str, List[str]] = {}
    for token in tokens:
        directory, filename = posixpath.split(token)
        if not filename.endswith(STATIC_LIB_SUFFIX) or filename == STATIC_LIB_SUFFIX:
            raise LibrarySetParseError(f"Not a static library path: {token!r}")
        directory = posixpath.normpath(posixpath.join(base_dir, directory))
        groups.setdefault(directory, []).append(library_name(filename))

    return [LibrarySet(directory, tuple(names)) for directory, names in groups.items()]


def format_linker_flags(library_sets: Sequence[LibrarySet]) -> str:
    """Render library sets as one ``-L<dir> -l<name>...`` line each."""
    return "\n".join(library_set.linker_flags() for library_set in library_sets)


class LibrarySetResolver:
    """Resolves the complete static link requirement.

    Example usage:
        resolver = LibrarySetResolver(config)
        for library_set in resolver.resolve():
            print(library_set.linker_flags())
    """

    def __init__(self, config: BuildConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or SubprocessCommandRunner(verbose=config.verbose)

    def query_daemon(self) -> str:
        """Ask Tor's build system for its libraries.

        Raises:
            LibrarySetError: If the query fails
        """
        step = CommandStep(
            command=SHOW_LIBS_COMMAND[0],
            args=SHOW_LIBS_COMMAND[1:],
            cwd=self.config.library_dir(DAEMON),
        )
        try:
            return self.runner.output(step)
        except CommandError as e:
            raise LibrarySetError(f"Failed 'make show-libs' in {DAEMON}: {e}") from e

    def resolve(self) -> List[LibrarySet]:
        """
        Resolve all library sets in linker order.

        Returns:
            Tor's own sets followed by STATIC_LIBRARY_SETS

        Raises:
            LibrarySetError: If the query fails or its output is malformed
        """
        library_sets = parse_dependency_output(self.query_daemon(), base_dir=DAEMON)
        logger.debug(f"Tor reported {sum(len(s.libs) for s in library_sets)} libraries")
        return library_sets + list(STATIC_LIBRARY_SETS)
