"""
Common machinery for workflow steps.

A step is a named unit of work that turns (versions, configuration) into one
or more runner invocations, after checking the filesystem preconditions it
depends on. Steps never call other steps; ordering is the orchestrator's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..config import UpdaterConfig
from ..errors import ExternalToolError, FilesystemError
from ..runner import CommandRunner
from ..version import KernelVersionPair


@dataclass(frozen=True)
class StepContext:
    config: UpdaterConfig
    runner: CommandRunner
    versions: KernelVersionPair


class Step(ABC):
    name: ClassVar[str]
    description: ClassVar[str]

    @abstractmethod
    def execute(self, ctx: StepContext) -> None:
        """Perform the step, raising KernelUpdaterError on failure."""

    def invoke(
        self,
        ctx: StepContext,
        error_cls: type[ExternalToolError],
        program: str,
        args: Sequence[str],
        cwd: Path | None = None,
    ) -> None:
        with tool_errors(error_cls):
            ctx.runner.run(program, args, cwd=cwd)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


@contextmanager
def tool_errors(error_cls: type[ExternalToolError]) -> Iterator[None]:
    """Re-raise runner failures as the step-specific ``error_cls``."""
    try:
        yield
    except ExternalToolError as e:
        if isinstance(e, error_cls):
            raise
        raise error_cls.from_tool_error(e) from e


@contextmanager
def filesystem_errors(action: str, path: Path) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        raise FilesystemError(action, path, e) from e
