"""CLI utility functions for torstatic.

This module provides common utilities used by the CLI including:
- Parsing the positional command (build-all, clean-tor, show-libs, ...)
- Logging setup
- Error handling and formatting
"""

import logging
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config.libraries import LIBRARY_NAMES

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

COMMAND_CHOICES = (
    "build-all, build-<folder>, clean-all, clean-<folder>, show-libs, or package-libs"
)


class CommandParseError(ValueError):
    """Raised when the positional command is not recognized."""
    pass


@dataclass(frozen=True)
class ParsedCommand:
    """A command split into its action and optional target."""

    action: str
    target: Optional[str] = None


class CommandParser:
    """Parses the single positional command."""

    BUILD_PREFIX = "build-"
    CLEAN_PREFIX = "clean-"
    STANDALONE = ("show-libs", "package-libs")

    @staticmethod
    def parse(command: str) -> ParsedCommand:
        """Parse a command string.

        Args:
            command: e.g. "build-all", "clean-zlib", "show-libs"

        Returns:
            ParsedCommand with action "build", "clean", "show-libs" or
            "package-libs"; build and clean carry a target

        Raises:
            CommandParseError: If the command or its target is unknown
        """
        if command in CommandParser.STANDALONE:
            return ParsedCommand(action=command)

        for prefix in (CommandParser.BUILD_PREFIX, CommandParser.CLEAN_PREFIX):
            if command.startswith(prefix):
                target = command[len(prefix):]
                if target != "all" and target not in LIBRARY_NAMES:
                    raise CommandParseError(
                        f"Invalid command: {command}. Unknown folder '{target}', "
                        f"expected one of: all, {', '.join(LIBRARY_NAMES)}"
                    )
                return ParsedCommand(action=prefix.rstrip("-"), target=target)

        raise CommandParseError(f"Invalid command: {command}. Should be {COMMAND_CHOICES}")


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure the root logger.

    Console output goes to stderr so stdout stays clean for show-libs.

    Args:
        verbose: Log DEBUG messages as well as INFO
        log_file: Optional file to also log to (rotated at 10MB)
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message to stderr.

        Args:
            title: Error title (e.g., "Build failed")
            message: Error message details
        """
        print(file=sys.stderr)
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        print(file=sys.stderr)
        print(message, file=sys.stderr)
        print(file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        """Print formatted success message."""
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print(file=sys.stderr)
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}", file=sys.stderr)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:", file=sys.stderr)
            print(traceback.format_exc(), file=sys.stderr)

        sys.exit(1)


class PathValidator:
    """Validates the root directory."""

    @staticmethod
    def validate_root_dir(root_dir: Path) -> None:
        """Exit with status 2 if root_dir is missing or not a directory."""
        if not root_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {root_dir}{ErrorFormatter.RESET}",
                file=sys.stderr,
            )
            sys.exit(2)
        if not root_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {root_dir}{ErrorFormatter.RESET}",
                file=sys.stderr,
            )
            sys.exit(2)
