"""
Command-line interface for torstatic.

This module provides the `torstatic` CLI tool for building the static
library chain needed to embed Tor.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from . import __version__
from .artifacts import ArtifactPackager, LibrarySetResolver, format_linker_flags
from .build import BuildOrchestrator, CommandRunner, EnvironmentValidator, SubprocessCommandRunner
from .cli_utils import (
    COMMAND_CHOICES,
    CommandParseError,
    CommandParser,
    ErrorFormatter,
    ParsedCommand,
    PathValidator,
    setup_logging,
)
from .config import BuildConfig
from .errors import TorStaticError

logger = logging.getLogger(__name__)


@dataclass
class CommandArgs:
    """Arguments for a torstatic command."""

    command: ParsedCommand
    root_dir: Path
    verbose: Optional[bool] = None
    jobs: Optional[int] = None
    host: Optional[str] = None
    autopoint_path: Optional[str] = None
    log_file: Optional[Path] = None


def run_command(
    args: CommandArgs,
    runner: Optional[CommandRunner] = None,
    shell_identifier: Optional[Callable[[], str]] = None,
) -> int:
    """Validate the environment and execute one command.

    Examples:
        torstatic build-all             # Build every library in order
        torstatic build-tor -j 4        # Rebuild only tor with 4 jobs
        torstatic clean-all             # Clean every library
        torstatic show-libs             # Print linker flags
        torstatic package-libs          # Write libs.tar.gz and libs.zip

    Returns:
        Process exit code

    Raises:
        TorStaticError: If validation, resolution or packaging fails
    """
    config = BuildConfig.load(
        args.root_dir,
        overrides={
            "verbose": args.verbose,
            "jobs": args.jobs,
            "host": args.host,
            "autopoint_path": args.autopoint_path,
            "log_file": args.log_file,
        },
    )
    setup_logging(config.verbose, config.log_file)
    logger.debug(f"Platform: {config.platform}, jobs: {config.jobs}")

    EnvironmentValidator(config.root_dir, config.platform, shell_identifier).validate()

    runner = runner or SubprocessCommandRunner(verbose=config.verbose)
    command = args.command

    if command.action in ("build", "clean"):
        orchestrator = BuildOrchestrator(config, runner=runner)
        if command.action == "build":
            result = orchestrator.build(command.target)
        else:
            result = orchestrator.clean(command.target)
        if not result.success:
            ErrorFormatter.print_error(
                f"{command.action.capitalize()} of {result.failed} failed!", result.message
            )
            return 1
        ErrorFormatter.print_success(result.message)
        return 0

    library_sets = LibrarySetResolver(config, runner=runner).resolve()
    if command.action == "show-libs":
        print(format_linker_flags(library_sets))
        return 0

    packager = ArtifactPackager(config.root_dir, show_progress=config.verbose)
    result = packager.package(library_sets)
    ErrorFormatter.print_success(
        f"Packaged {len(result.entries)} files into {result.tar_path.name} and {result.zip_path.name}"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """torstatic - build Tor and its dependencies as static libraries."""
    parser = argparse.ArgumentParser(
        prog="torstatic",
        description="Build OpenSSL, libevent, zlib, xz and Tor as static libraries",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"torstatic {__version__}",
    )
    parser.add_argument(
        "command",
        help=f"Command to run: {COMMAND_CHOICES}",
    )
    parser.add_argument(
        "-C",
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Directory containing the library folders (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Show command output",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of jobs to run in parallel (default: CPU count)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host option, useful for cross-compilation",
    )
    parser.add_argument(
        "--autopoint-path",
        default=None,
        help="macOS: Directory that contains the autopoint binary",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log output to this file",
    )

    parsed_args = parser.parse_args(argv)

    try:
        command = CommandParser.parse(parsed_args.command)
    except CommandParseError as e:
        parser.error(str(e))

    PathValidator.validate_root_dir(parsed_args.root)

    args = CommandArgs(
        command=command,
        root_dir=parsed_args.root,
        verbose=parsed_args.verbose,
        jobs=parsed_args.jobs,
        host=parsed_args.host,
        autopoint_path=parsed_args.autopoint_path,
        log_file=parsed_args.log_file,
    )

    try:
        sys.exit(run_command(args))
    except TorStaticError as e:
        ErrorFormatter.print_error("Error", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, bool(args.verbose))


if __name__ == "__main__":
    main()
