from __future__ import annotations

from ..config import UpdaterConfig
from ..shared import InitramfsTool
from .base import InitramfsHandler
from .dracut import DracutInitramfsHandler
from .mkinitcpio import MkinitcpioInitramfsHandler


def create_initramfs_handler(config: UpdaterConfig) -> InitramfsHandler:
    if config.initramfs is InitramfsTool.DRACUT:
        return DracutInitramfsHandler(config)
    return MkinitcpioInitramfsHandler(config)


__all__ = [
    "DracutInitramfsHandler",
    "InitramfsHandler",
    "MkinitcpioInitramfsHandler",
    "create_initramfs_handler",
]
