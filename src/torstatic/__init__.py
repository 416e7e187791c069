"""torstatic - static library build chain for embedding Tor.

Builds OpenSSL, libevent, zlib, xz and Tor as static libraries in dependency
order and bundles the results for linking into a host application.
"""

__version__ = "0.1.0"
