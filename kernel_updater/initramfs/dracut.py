from __future__ import annotations

from ..version import Version
from .base import InitramfsHandler


class DracutInitramfsHandler(InitramfsHandler):
    program = "dracut"

    def arguments(self, version: Version) -> list[str]:
        release = self.config.kernel_release(version)
        image = self.config.boot_dir / f"initramfs-{release}.img"
        return ["--force", str(image), "--kver", release]
