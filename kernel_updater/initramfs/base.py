from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import UpdaterConfig
    from ..runner import CommandRunner
    from ..version import Version


class InitramfsHandler(ABC):
    """Abstract base class for initramfs handlers."""

    program: str

    def __init__(self, config: UpdaterConfig) -> None:
        self.config = config

    @abstractmethod
    def arguments(self, version: Version) -> list[str]:
        """Return the arguments that build the initramfs for a kernel version."""

    def generate_initramfs(self, runner: CommandRunner, version: Version) -> None:
        """Generate the initramfs for the installed kernel of ``version``."""
        runner.run(self.program, self.arguments(version))
