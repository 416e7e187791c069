"""Library dependency graph.

The five libraries are declared with their direct dependencies. Build order
is the topological sort of that graph, computed once at import time, with
ties broken by declaration order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import TorStaticError


class LibraryGraphError(TorStaticError):
    """Raised when the dependency declaration is inconsistent."""
    pass


TLS = "_openssl"
EVENT = "libevent"
COMPRESSION = "zlib"
LZMA = "xz"
DAEMON = "tor"


@dataclass(frozen=True)
class Library:
    """A library source folder and the libraries it must be built after."""

    name: str
    depends_on: Tuple[str, ...] = ()


LIBRARIES: Tuple[Library, ...] = (
    Library(TLS),
    Library(EVENT, depends_on=(TLS,)),
    Library(COMPRESSION),
    Library(LZMA),
    Library(DAEMON, depends_on=(TLS, EVENT, COMPRESSION, LZMA)),
)


def build_order(libraries: Sequence[Library]) -> List[Library]:
    """Topologically sort libraries so dependencies come first.

    Args:
        libraries: Library declarations

    Returns:
        Libraries in build order

    Raises:
        LibraryGraphError: On duplicate names, unknown dependencies or cycles
    """
    by_name: Dict[str, Library] = {}
    for library in libraries:
        if library.name in by_name:
            raise LibraryGraphError(f"Library declared twice: {library.name}")
        by_name[library.name] = library

    for library in libraries:
        for dep in library.depends_on:
            if dep not in by_name:
                raise LibraryGraphError(f"{library.name} depends on unknown library {dep}")

    ordered: List[Library] = []
    placed = set()
    remaining = list(libraries)
    while remaining:
        ready = next(
            (lib for lib in remaining if all(dep in placed for dep in lib.depends_on)),
            None,
        )
        if ready is None:
            names = ", ".join(lib.name for lib in remaining)
            raise LibraryGraphError(f"Dependency cycle between: {names}")
        ordered.append(ready)
        placed.add(ready.name)
        remaining.remove(ready)

    return ordered


BUILD_ORDER: Tuple[Library, ...] = tuple(build_order(LIBRARIES))
LIBRARY_NAMES: Tuple[str, ...] = tuple(lib.name for lib in BUILD_ORDER)


def find_library(name: str) -> Optional[Library]:
    """Look up a library by folder name."""
    for library in BUILD_ORDER:
        if library.name == name:
            return library
    return None
