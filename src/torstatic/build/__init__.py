"""
Build system components for torstatic.

This module provides the build system implementation including:
- Environment validation (library folders, shell type)
- External command execution
- Per-library, per-platform build plans
- Dependency-ordered build and clean orchestration
"""

from .build_plan import BuildPlanError, CleanPlan, LibraryBuildPlan
from .command_runner import CommandError, CommandRunner, CommandStep, SubprocessCommandRunner
from .environment_validator import EnvironmentValidationError, EnvironmentValidator
from .orchestrator import BuildOrchestrator, BuildOrchestratorError, BuildResult

__all__ = [
    'BuildPlanError',
    'CleanPlan',
    'LibraryBuildPlan',
    'CommandError',
    'CommandRunner',
    'CommandStep',
    'SubprocessCommandRunner',
    'EnvironmentValidationError',
    'EnvironmentValidator',
    'BuildOrchestrator',
    'BuildOrchestratorError',
    'BuildResult',
]
