from __future__ import annotations

from ..version import Version
from .base import InitramfsHandler


class MkinitcpioInitramfsHandler(InitramfsHandler):
    # Uses the Manjaro-style preset (linux615_<suffix>.preset) that names
    # both the kernel image and the initramfs images to build.
    program = "mkinitcpio"

    def arguments(self, version: Version) -> list[str]:
        return ["-p", self.config.mkinitcpio_preset(version)]
