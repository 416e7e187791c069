"""
Build orchestration for the static library chain.

This module walks the libraries in dependency order and runs each library's
build or clean plan through a CommandRunner:
- build("all") builds every library and stops at the first failure
- build(<library>) builds only that library; its prerequisites are assumed
  to be built already
- clean("all") / clean(<library>) mirror the above
"""

import logging
import shutil
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..config.build_config import BuildConfig
from ..config.libraries import BUILD_ORDER, find_library
from ..errors import TorStaticError
from .build_plan import LibraryBuildPlan
from .command_runner import CommandRunner, SubprocessCommandRunner

logger = logging.getLogger(__name__)

ALL_TARGET = "all"


@dataclass
class BuildResult:
    """Result of a build or clean operation."""

    success: bool
    operation: str
    target: str
    completed: List[str] = field(default_factory=list)
    failed: Optional[str] = None
    message: str = ""
    elapsed: float = 0.0
    error: Optional[TorStaticError] = None


class BuildOrchestratorError(TorStaticError):
    """Exception raised for build orchestration errors."""
    pass


class BuildOrchestrator:
    """
    Builds and cleans the libraries in dependency order.

    Libraries are processed strictly one at a time. The first failure aborts
    the remaining chain; partially built libraries are left as they are.

    Example usage:
        orchestrator = BuildOrchestrator(config)
        result = orchestrator.build("all")
        if not result.success:
            print(f"{result.failed}: {result.message}")
    """

    def __init__(
        self,
        config: BuildConfig,
        runner: Optional[CommandRunner] = None,
        plan: Optional[LibraryBuildPlan] = None,
    ):
        """
        Initialize build orchestrator.

        Args:
            config: Build configuration
            runner: Command runner (defaults to SubprocessCommandRunner)
            plan: Build plan (defaults to LibraryBuildPlan for config)
        """
        self.config = config
        self.runner = runner or SubprocessCommandRunner(verbose=config.verbose)
        self.plan = plan or LibraryBuildPlan(config)

    def build(self, target: str) -> BuildResult:
        """
        Build one library or all of them.

        Args:
            target: "all" or a library folder name

        Returns:
            BuildResult; on failure, ``failed`` names the library that broke

        Raises:
            BuildOrchestratorError: If target is not a known library
        """
        return self._run_each("build", target, self._build_library)

    def clean(self, target: str) -> BuildResult:
        """
        Clean one library or all of them.

        A library without a makefile has never been configured and is
        skipped successfully.

        Args:
            target: "all" or a library folder name

        Returns:
            BuildResult; on failure, ``failed`` names the library that broke

        Raises:
            BuildOrchestratorError: If target is not a known library
        """
        return self._run_each("clean", target, self._clean_library)

    def resolve_targets(self, target: str) -> List[str]:
        """Expand a target into library names in build order."""
        if target == ALL_TARGET:
            return [lib.name for lib in BUILD_ORDER]
        if find_library(target) is None:
            known = ", ".join(lib.name for lib in BUILD_ORDER)
            raise BuildOrchestratorError(f"unrecognized folder: {target} (expected all, {known})")
        return [target]

    def _run_each(
        self,
        operation: str,
        target: str,
        action: Callable[[str], None],
    ) -> BuildResult:
        start_time = time.time()
        libraries = self.resolve_targets(target)
        result = BuildResult(success=True, operation=operation, target=target)

        for library in libraries:
            verb = "Building" if operation == "build" else "Cleaning"
            logger.info(f"*** {verb} {library} ***")
            try:
                action(library)
            except TorStaticError as e:
                logger.error(f"{verb} {library} failed: {e}")
                result.success = False
                result.failed = library
                result.error = e
                result.message = str(e)
                break
            finally:
                logger.info(f"*** Done {verb.lower()} {library} ***")
            result.completed.append(library)

        result.elapsed = time.time() - start_time
        if result.success:
            result.message = f"{operation} {target} finished in {result.elapsed:.2f}s"
        return result

    def _build_library(self, library: str) -> None:
        for step in self.plan.steps(library):
            self.runner.run(step)

    def _clean_library(self, library: str) -> None:
        clean_plan = self.plan.clean_plan(library)

        for directory in clean_plan.remove_dirs:
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise BuildOrchestratorError(f"unable to remove {directory}: {e}") from e

        if not clean_plan.folder.is_dir():
            raise BuildOrchestratorError(f"{library} is not a directory")
        if not clean_plan.control_file.exists():
            logger.info(f"Skipping clean of {library}, makefile not present")
            return

        for step in clean_plan.steps:
            self.runner.run(step)
