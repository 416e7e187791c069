"""Base exception for torstatic.

Every component defines its own error class deriving from TorStaticError so
the CLI can tell expected build failures apart from programming errors.
"""


class TorStaticError(Exception):
    """Base class for all expected torstatic failures."""
    pass
