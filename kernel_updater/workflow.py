"""
Workflow selection and orchestration.

The orchestrator validates the requested command and versions, picks the
fixed step list for that command and runs it strictly in order. The first
failing step stops the run; steps that already completed are not undone, so
the operator can fix the cause and resume with the matching subcommand.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from .config import UpdaterConfig
from .errors import InvalidVersionOrder, KernelUpdaterError, MissingArgument
from .runner import CommandRunner
from .shared import Command
from .steps import (
    ConfigureAndCompile,
    FetchAndExtractSource,
    InstallKernelArtifacts,
    InstallNewDkmsModule,
    RegenerateInitramfs,
    RemoveOldDkmsModule,
    Step,
    StepContext,
    UpdateBootloader,
)
from .version import KernelVersionPair, Version

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    VALIDATING = "validating"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Order encodes the real dependencies: the initramfs needs installed modules,
# and DKMS can only build against an installed kernel.
PLANS: dict[Command, tuple[type[Step], ...]] = {
    Command.FULL_UPDATE: (
        FetchAndExtractSource,
        ConfigureAndCompile,
        InstallKernelArtifacts,
        RegenerateInitramfs,
        UpdateBootloader,
        RemoveOldDkmsModule,
        InstallNewDkmsModule,
    ),
    Command.COMPILE_ONLY: (
        FetchAndExtractSource,
        ConfigureAndCompile,
    ),
    Command.INSTALL_ONLY: (
        InstallKernelArtifacts,
        RegenerateInitramfs,
        UpdateBootloader,
    ),
    Command.DKMS_ONLY: (
        RemoveOldDkmsModule,
        InstallNewDkmsModule,
        RegenerateInitramfs,
        UpdateBootloader,
    ),
}


@dataclass(frozen=True)
class WorkflowPlan:
    command: Command
    steps: tuple[Step, ...]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]


def build_plan(command: Command) -> WorkflowPlan:
    return WorkflowPlan(command=command, steps=tuple(step_cls() for step_cls in PLANS[command]))


@dataclass
class WorkflowResult:
    """Outcome of one orchestrator run."""

    command: Command
    versions: KernelVersionPair | None = None
    state: WorkflowState = WorkflowState.VALIDATING
    completed_steps: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: KernelUpdaterError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is WorkflowState.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def get_summary(self) -> str:
        """Get human-readable summary of the run."""
        if self.succeeded and self.versions is not None:
            new = self.versions.new
            if self.command is Command.COMPILE_ONLY:
                return (
                    f"Kernel compilation complete for {new}. Binary and modules not installed.\n"
                    "Run 'kernel-install' or the default command to install."
                )
            if self.command is Command.INSTALL_ONLY:
                return f"Kernel installation complete. Kernel {new} is installed."
            if self.command is Command.DKMS_ONLY:
                return f"DKMS installation steps complete for kernel {new}."
            return f"Kernel updated successfully: {self.versions.old} -> {new}"

        if self.failed_step is None:
            return f"Validation failed: {self.error}"

        lines = [f"Step '{self.failed_step}' failed: {self.error}"]
        if self.completed_steps:
            lines.append(f"Completed steps were left in place: {', '.join(self.completed_steps)}.")
            lines.append(f"Fix the cause and resume from '{self.failed_step}'.")
        return "\n".join(lines)


class WorkflowOrchestrator:
    """Validates a command and runs its plan, stopping at the first failure."""

    def __init__(self, config: UpdaterConfig, runner: CommandRunner) -> None:
        self.config = config
        self.runner = runner
        self.state = WorkflowState.VALIDATING
        self.step_index: int | None = None

    def validate(self, command: Command, new: Version | None, old: Version | None = None) -> KernelVersionPair:
        """Check the versions required by ``command``.

        Raises:
            MissingArgument: A version the command needs was not given
            InvalidVersionOrder: The command needs both versions and new <= old
        """
        if new is None:
            raise MissingArgument("--new", command)

        if not command.requires_old:
            if old is not None:
                logger.debug(f"Ignoring --old {old}: not used by '{command.value}'")
            return KernelVersionPair(new=new)

        if old is None:
            raise MissingArgument("--old", command)
        if not new > old:
            raise InvalidVersionOrder(new, old)
        return KernelVersionPair(new=new, old=old)

    def run(self, command: Command, new: Version | None, old: Version | None = None) -> WorkflowResult:
        self._transition(WorkflowState.VALIDATING)
        result = WorkflowResult(command=command)

        try:
            versions = self.validate(command, new, old)
        except KernelUpdaterError as e:
            logger.debug(f"Validation failed: {e!r}")
            self._transition(WorkflowState.FAILED)
            result.state = WorkflowState.FAILED
            result.error = e
            return result

        return self.execute(build_plan(command), versions, result)

    def execute(self, plan: WorkflowPlan, versions: KernelVersionPair, result: WorkflowResult | None = None) -> WorkflowResult:
        """Run ``plan`` in order; the first KernelUpdaterError ends the run."""
        if result is None:
            result = WorkflowResult(command=plan.command)
        result.versions = versions

        ctx = StepContext(config=self.config, runner=self.runner, versions=versions)
        logger.info(f"Executing '{plan.command.value}': {' -> '.join(plan.step_names)}")

        for index, step in enumerate(plan, start=1):
            self.step_index = index
            self._transition(WorkflowState.RUNNING)
            logger.info(f"--- Step {index}/{len(plan)}: {step.description} ---")
            try:
                step.execute(ctx)
            except KernelUpdaterError as e:
                logger.debug(f"Step '{step.name}' raised {e!r}")
                self._transition(WorkflowState.FAILED)
                result.state = WorkflowState.FAILED
                result.failed_step = step.name
                result.error = e
                return result
            result.completed_steps.append(step.name)

        self._transition(WorkflowState.SUCCEEDED)
        result.state = WorkflowState.SUCCEEDED
        return result

    def _transition(self, state: WorkflowState) -> None:
        self.state = state
        if state is WorkflowState.RUNNING:
            logger.debug(f"Workflow state: {state.value} (step {self.step_index})")
        else:
            logger.debug(f"Workflow state: {state.value}")
