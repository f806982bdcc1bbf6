"""
Exception hierarchy for kernel-updater.

Every failure the updater knows how to describe derives from
KernelUpdaterError. Steps raise these, the workflow orchestrator records the
first one and stops, and the CLI turns it into a message and exit status.
"""

from __future__ import annotations

import shlex
import signal as _signal
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from .shared import Command
    from .version import Version


class KernelUpdaterError(Exception):
    """Base class for all expected kernel-updater failures."""


class VersionParseError(KernelUpdaterError, ValueError):
    """A version string is not a valid major.minor.patch triple."""


class ConfigError(KernelUpdaterError):
    """The configuration file is missing, unreadable or invalid."""


# Argument validation


class ArgumentError(KernelUpdaterError):
    """Missing or invalid command line input."""


class MissingArgument(ArgumentError):
    def __init__(self, argument_name: str, command: Command) -> None:
        self.argument_name = argument_name
        self.command = command
        super().__init__(f"{argument_name} argument is required for command '{command.value}'")


class VersionOrderError(KernelUpdaterError):
    """The new version is not strictly greater than the old one."""


class InvalidVersionOrder(VersionOrderError):
    def __init__(self, new: Version, old: Version) -> None:
        self.new = new
        self.old = old
        super().__init__(f"--new version ({new}) must be strictly greater than --old version ({old})")


# Preconditions


class PreconditionError(KernelUpdaterError):
    """An artifact required by a step is absent."""


class PreconditionUnmet(PreconditionError):
    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class MissingBaseConfig(PreconditionError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Kernel config file not found at {path}")


class SourceNotConfigured(PreconditionError):
    def __init__(self, source_dir: Path, version: Version) -> None:
        self.source_dir = source_dir
        self.version = version
        super().__init__(
            f"Kernel source tree ({source_dir}) for version {version} is not configured: "
            "'.config' is missing after 'make olddefconfig'"
        )


class DkmsModuleNotFound(PreconditionError):
    def __init__(self, module: str) -> None:
        self.module = module
        super().__init__(f"{module} DKMS module entry not found in `dkms status`. Is the driver installed via DKMS?")


# Filesystem


class FilesystemError(KernelUpdaterError):
    """Direct filesystem access by a step failed."""

    def __init__(self, action: str, path: Path, cause: OSError) -> None:
        self.action = action
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to {action} {path}: {cause.strerror or cause}")


# External tools


class ToolFailure(Enum):
    LAUNCH = "launch"
    EXIT = "exit"
    SIGNAL = "signal"


class ExternalToolError(KernelUpdaterError):
    """An external program could not be started or did not succeed.

    Runner failures are raised as LaunchFailure, NonZeroExit or
    AbnormalTermination. Steps re-raise them as their own subclass via
    from_tool_error() so the message names what was being attempted while
    keeping the program, arguments and exit details.
    """

    summary: ClassVar[str] = "External command failed"

    def __init__(
        self,
        program: str,
        args: Sequence[str],
        failure: ToolFailure,
        exit_code: int | None = None,
        signal: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.program = program
        self.arguments = list(args)
        self.failure = failure
        self.exit_code = exit_code
        self.signal = signal
        self.reason = reason
        super().__init__(f"{self.summary}: {self.detail}")

    @property
    def command_line(self) -> str:
        return shlex.join([self.program, *self.arguments])

    @property
    def detail(self) -> str:
        if self.failure is ToolFailure.LAUNCH:
            return f"command '{self.command_line}' could not be started ({self.reason})"
        if self.failure is ToolFailure.SIGNAL:
            return f"command '{self.command_line}' was terminated by {_signal_name(self.signal)}"
        return f"command '{self.command_line}' exited with status {self.exit_code}"

    @classmethod
    def from_tool_error(cls, err: ExternalToolError) -> ExternalToolError:
        return cls(err.program, err.arguments, err.failure, exit_code=err.exit_code, signal=err.signal, reason=err.reason)


class LaunchFailure(ExternalToolError):
    def __init__(self, program: str, args: Sequence[str], reason: str) -> None:
        super().__init__(program, args, ToolFailure.LAUNCH, reason=reason)


class NonZeroExit(ExternalToolError):
    def __init__(self, program: str, args: Sequence[str], exit_code: int) -> None:
        super().__init__(program, args, ToolFailure.EXIT, exit_code=exit_code)


class AbnormalTermination(ExternalToolError):
    def __init__(self, program: str, args: Sequence[str], signal: int | None) -> None:
        super().__init__(program, args, ToolFailure.SIGNAL, signal=signal)


class SourceUnavailable(ExternalToolError):
    summary = "Kernel source download failed"


class ExtractionFailed(ExternalToolError):
    summary = "Kernel source extraction failed"


class CompileFailed(ExternalToolError):
    summary = "Kernel compilation failed"


class InstallFailed(ExternalToolError):
    summary = "Kernel installation failed"


class InitramfsFailed(ExternalToolError):
    summary = "Initramfs generation failed"


class BootloaderUpdateFailed(ExternalToolError):
    summary = "Bootloader update failed"


class DkmsRemoveFailed(ExternalToolError):
    summary = "DKMS module removal failed"


class DkmsInstallFailed(ExternalToolError):
    summary = "DKMS module installation failed"


def _signal_name(signum: int | None) -> str:
    if signum is None:
        return "an unknown signal"
    try:
        return f"signal {signum} ({_signal.Signals(signum).name})"
    except ValueError:
        return f"signal {signum}"
