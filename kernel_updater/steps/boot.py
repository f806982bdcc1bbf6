from __future__ import annotations

import logging

from ..errors import BootloaderUpdateFailed, InitramfsFailed, PreconditionUnmet
from ..initramfs import create_initramfs_handler
from .base import Step, StepContext, filesystem_errors, tool_errors

logger = logging.getLogger(__name__)


class RegenerateInitramfs(Step):
    name = "regenerate-initramfs"
    description = "Regenerate the initramfs for the new kernel"

    def execute(self, ctx: StepContext) -> None:
        new = ctx.versions.new
        module_dir = ctx.config.module_dir(new)
        with filesystem_errors("access", module_dir):
            installed = module_dir.is_dir()
        if not installed:
            raise PreconditionUnmet(
                f"Kernel {ctx.config.kernel_release(new)} is not installed ({module_dir} missing). Run 'kernel-install' first.",
                module_dir,
            )

        handler = create_initramfs_handler(ctx.config)
        logger.info(f"Running {handler.program} for kernel version {new}...")
        with tool_errors(InitramfsFailed):
            handler.generate_initramfs(ctx.runner, new)
        logger.info(f"{handler.program} completed successfully")


class UpdateBootloader(Step):
    name = "update-bootloader"
    description = "Update the bootloader configuration"

    def execute(self, ctx: StepContext) -> None:
        program, *args = ctx.config.bootloader_command
        logger.info("Updating boot configuration...")
        self.invoke(ctx, BootloaderUpdateFailed, program, args)
        logger.info("Boot configuration updated")
