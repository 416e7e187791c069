"""Command Runner.

This module executes the external build commands (sh, perl, make) that
configure, compile and install each library.

Design:
    - CommandStep is an immutable description of one external command
    - CommandRunner is the abstract contract the orchestrator depends on,
      so orchestration can be tested with a recording stub
    - SubprocessCommandRunner spawns exactly one process per step, discards
      output unless verbose, and never retries
    - Failures carry the folder, command and arguments for diagnostics
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from ..errors import TorStaticError
from ..interrupt_utils import handle_keyboard_interrupt_properly, terminate_process_tree

logger = logging.getLogger(__name__)


class CommandError(TorStaticError):
    """Raised when an external command cannot be spawned or exits non-zero."""

    def __init__(
        self,
        message: str,
        folder: str,
        command: str,
        cmd_args: Sequence[str],
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.folder = folder
        self.command = command
        self.cmd_args = tuple(cmd_args)
        self.returncode = returncode


@dataclass(frozen=True)
class CommandStep:
    """One external command to run inside a library folder."""

    command: str
    args: Sequence[str] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Optional[Path] = None

    @property
    def folder(self) -> str:
        """Name of the working folder, for log and error messages."""
        return self.cwd.name if self.cwd is not None else "."

    def describe(self) -> str:
        return " ".join([self.command, *self.args])


class CommandRunner(ABC):
    """Executes command steps. Implementations must not retry."""

    @abstractmethod
    def run(self, step: CommandStep) -> None:
        """Run a step to completion.

        Raises:
            CommandError: If the command fails to spawn or exits non-zero
        """

    @abstractmethod
    def output(self, step: CommandStep) -> str:
        """Run a step and return its standard output.

        Raises:
            CommandError: If the command fails to spawn or exits non-zero
        """


class SubprocessCommandRunner(CommandRunner):
    """Runs command steps as child processes.

    Output is inherited from the caller when verbose and discarded otherwise.
    Nothing is captured for build steps, so long compiles do not accumulate
    output in memory. No timeout is applied.
    """

    def __init__(self, verbose: bool = False, base_env: Optional[Mapping[str, str]] = None):
        """Initialize the runner.

        Args:
            verbose: Whether child processes write to our stdout/stderr
            base_env: Environment the step overlays are applied to
                (defaults to os.environ at call time)
        """
        self.verbose = verbose
        self.base_env = base_env

    def run(self, step: CommandStep) -> None:
        logger.info(f"Running in folder {step.folder}: {step.describe()}")
        stream = None if self.verbose else subprocess.DEVNULL
        returncode = self._execute(step, stdout=stream, stderr=stream)[0]
        if returncode != 0:
            raise self._failure(step, f"exit status {returncode}", returncode)

    def output(self, step: CommandStep) -> str:
        logger.info(f"Querying in folder {step.folder}: {step.describe()}")
        stderr = None if self.verbose else subprocess.DEVNULL
        returncode, stdout = self._execute(step, stdout=subprocess.PIPE, stderr=stderr)
        if returncode != 0:
            raise self._failure(step, f"exit status {returncode}", returncode)
        try:
            return stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._failure(step, f"unreadable output: {e}") from e

    def _execute(self, step: CommandStep, stdout, stderr):
        """Spawn the process and wait for it, tearing it down on Ctrl-C."""
        try:
            proc = subprocess.Popen(
                [step.command, *step.args],
                cwd=str(step.cwd) if step.cwd is not None else None,
                env=self._environment(step),
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
            )
        except OSError as e:
            raise self._failure(step, str(e)) from e

        try:
            out, _ = proc.communicate()
        except KeyboardInterrupt as ke:
            terminate_process_tree(proc.pid)
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        return proc.returncode, out

    def _environment(self, step: CommandStep) -> Optional[Dict[str, str]]:
        if not step.env:
            return None
        env = dict(self.base_env if self.base_env is not None else os.environ)
        env.update(step.env)
        return env

    @staticmethod
    def _failure(step: CommandStep, reason: str, returncode: Optional[int] = None) -> CommandError:
        return CommandError(
            f"Command failed in folder {step.folder}: {step.describe()} ({reason})",
            folder=step.folder,
            command=step.command,
            cmd_args=step.args,
            returncode=returncode,
        )
