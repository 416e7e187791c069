"""Shared fixtures for torstatic tests."""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from torstatic.build.command_runner import CommandError, CommandRunner, CommandStep
from torstatic.config import LIBRARY_NAMES, BuildConfig, PlatformDescriptor


class RecordingRunner(CommandRunner):
    """Records every step and optionally fails at a chosen one."""

    def __init__(self, fail_on: Optional[int] = None, outputs: Optional[Dict[str, str]] = None):
        self.steps: List[CommandStep] = []
        self.fail_on = fail_on
        self.outputs = outputs or {}

    def run(self, step: CommandStep) -> None:
        index = len(self.steps)
        self.steps.append(step)
        if self.fail_on is not None and index == self.fail_on:
            raise CommandError(
                f"Command failed in folder {step.folder}: {step.describe()} (exit status 2)",
                folder=step.folder,
                command=step.command,
                cmd_args=step.args,
                returncode=2,
            )

    def output(self, step: CommandStep) -> str:
        self.steps.append(step)
        key = step.describe()
        if key not in self.outputs:
            raise CommandError(
                f"Command failed in folder {step.folder}: {key} (exit status 2)",
                folder=step.folder,
                command=step.command,
                cmd_args=step.args,
                returncode=2,
            )
        return self.outputs[key]

    @property
    def folders(self) -> List[str]:
        """Folders in the order they were first visited."""
        seen: List[str] = []
        for step in self.steps:
            if step.folder not in seen:
                seen.append(step.folder)
        return seen


@pytest.fixture
def recording_runner():
    return RecordingRunner()


@pytest.fixture
def library_root(tmp_path) -> Path:
    """A root directory with every library folder present."""
    for name in LIBRARY_NAMES:
        (tmp_path / name).mkdir()
    return tmp_path


@pytest.fixture
def linux_config(library_root) -> BuildConfig:
    return BuildConfig(
        root_dir=library_root,
        platform=PlatformDescriptor(os="linux", arch="x86_64"),
        jobs=4,
    )


@pytest.fixture
def runner_factory():
    """Build RecordingRunner instances with custom failures or outputs."""
    return RecordingRunner
