from __future__ import annotations

from enum import Enum


class Command(Enum):
    """Workflow selected on the command line."""

    FULL_UPDATE = "full-update"
    COMPILE_ONLY = "kernel-compile"
    INSTALL_ONLY = "kernel-install"
    DKMS_ONLY = "dkms-install"

    @property
    def requires_old(self) -> bool:
        return self in (Command.FULL_UPDATE, Command.DKMS_ONLY)


class Downloader(Enum):
    CURL = "curl"
    WGET = "wget"


class InitramfsTool(Enum):
    MKINITCPIO = "mkinitcpio"
    DRACUT = "dracut"
