"""
Execution of external programs.

Steps never spawn processes themselves; they go through a CommandRunner so the
whole workflow can be exercised with a recording fake in tests.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from .errors import AbnormalTermination, LaunchFailure, NonZeroExit

logger = logging.getLogger(__name__)


class CommandRunner(ABC):
    """Capability to run one external program and report how it ended."""

    @abstractmethod
    def run(self, program: str, args: Sequence[str], cwd: Path | None = None) -> None:
        """Run a program with live output, raising ExternalToolError on failure."""

    @abstractmethod
    def output(self, program: str, args: Sequence[str]) -> str:
        """Run a program and return its standard output, raising ExternalToolError on failure."""


class ProcessRunner(CommandRunner):
    """Runs programs on the host.

    ``run`` leaves the child's stdin/stdout/stderr connected to ours so the
    operator sees compiler and DKMS progress as it happens. ``output`` is only
    used for short queries whose text we parse.
    """

    def run(self, program: str, args: Sequence[str], cwd: Path | None = None) -> None:
        cmd = [program, *args]
        location = f" (in {cwd})" if cwd else ""
        logger.info(f"Executing: {shlex.join(cmd)}{location}")

        try:
            # Ruff S603: program and arguments come from the step definitions, never from a shell
            completed = subprocess.run(cmd, cwd=cwd, check=False)  # noqa: S603
        except OSError as e:
            raise LaunchFailure(program, args, e.strerror or str(e)) from e

        _check_returncode(program, args, completed.returncode)

    def output(self, program: str, args: Sequence[str]) -> str:
        cmd = [program, *args]
        logger.info(f"Executing (capturing output): {shlex.join(cmd)}")

        try:
            # Ruff S603: program and arguments come from the step definitions, never from a shell
            completed = subprocess.run(cmd, check=False, capture_output=True, text=True)  # noqa: S603
        except OSError as e:
            raise LaunchFailure(program, args, e.strerror or str(e)) from e

        if completed.stderr:
            logger.debug(f"{program} stderr:\n{completed.stderr}")
        _check_returncode(program, args, completed.returncode)

        logger.debug(f"{program} output:\n{completed.stdout}")
        return completed.stdout


def _check_returncode(program: str, args: Sequence[str], returncode: int) -> None:
    # subprocess reports death by signal N as -N
    if returncode < 0:
        raise AbnormalTermination(program, args, -returncode)
    if returncode != 0:
        raise NonZeroExit(program, args, returncode)
