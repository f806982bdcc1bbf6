"""
Kernel source, build and installation steps.

All commands run inside explicit working directories taken from the
configuration; the process working directory is never changed.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ..errors import (
    CompileFailed,
    ExtractionFailed,
    InstallFailed,
    MissingBaseConfig,
    PreconditionUnmet,
    SourceNotConfigured,
    SourceUnavailable,
)
from ..shared import Downloader
from .base import Step, StepContext, filesystem_errors

logger = logging.getLogger(__name__)

KERNEL_IMAGE = Path("arch/x86/boot/bzImage")


def compile_jobs(reserved: int) -> int:
    """Number of parallel make jobs: all CPUs minus ``reserved``, at least one."""
    cpus = os.cpu_count() or 1
    return max(cpus - reserved, 1)


def _is_file(path: Path) -> bool:
    with filesystem_errors("access", path):
        return path.is_file()


def _is_dir(path: Path) -> bool:
    with filesystem_errors("access", path):
        return path.is_dir()


def _require_source_tree(ctx: StepContext) -> Path:
    src = ctx.config.source_dir(ctx.versions.new)
    if not _is_dir(src):
        raise PreconditionUnmet(
            f"Kernel source tree for {ctx.versions.new} not found at {src}. Run 'kernel-compile' first.",
            src,
        )
    return src


class FetchAndExtractSource(Step):
    name = "fetch-source"
    description = "Download and extract the kernel source"

    def execute(self, ctx: StepContext) -> None:
        config = ctx.config
        new = ctx.versions.new
        base = config.kernel_src_base
        tarball = config.tarball_name(new)
        url = config.download_url(new)

        logger.info(f"Ensuring kernel source base directory exists: {base}")
        with filesystem_errors("create directory", base):
            base.mkdir(parents=True, exist_ok=True)

        logger.info(f"Downloading kernel source from {url}")
        if config.downloader is Downloader.WGET:
            self.invoke(ctx, SourceUnavailable, "wget", ["-O", tarball, url], cwd=base)
        else:
            self.invoke(ctx, SourceUnavailable, "curl", ["-fL", url, "-o", tarball], cwd=base)

        logger.info(f"Extracting {tarball}...")
        self.invoke(ctx, ExtractionFailed, "tar", ["-xJf", tarball], cwd=base)
        logger.info(f"Kernel source extracted to {config.source_dir(new)}")


class ConfigureAndCompile(Step):
    name = "compile-kernel"
    description = "Configure and compile the kernel"

    def execute(self, ctx: StepContext) -> None:
        src = _require_source_tree(ctx)

        base_config = ctx.config.base_config_path
        if not _is_file(base_config):
            raise MissingBaseConfig(base_config)

        dot_config = src / ".config"
        logger.info(f"Copying config from {base_config} to {dot_config}")
        with filesystem_errors("copy kernel config to", dot_config):
            shutil.copyfile(base_config, dot_config)

        logger.info("Running 'make olddefconfig' to update kernel configuration...")
        self.invoke(ctx, CompileFailed, "make", ["olddefconfig"], cwd=src)

        if not _is_file(dot_config):
            raise SourceNotConfigured(src, ctx.versions.new)

        jobs = compile_jobs(ctx.config.reserved_cores)
        logger.info(f"Running 'make' with {jobs} jobs...")
        self.invoke(ctx, CompileFailed, "make", ["-j", str(jobs)], cwd=src)
        logger.info(f"Kernel compilation completed successfully in {src}")


class InstallKernelArtifacts(Step):
    name = "install-kernel"
    description = "Install kernel modules, image and source symlinks"

    def execute(self, ctx: StepContext) -> None:
        config = ctx.config
        new = ctx.versions.new
        src = _require_source_tree(ctx)

        image = src / KERNEL_IMAGE
        if not _is_file(image):
            raise PreconditionUnmet(
                f"Compiled kernel binary not found at {image}. Kernel source tree ({src}) for version {new} does not appear to be compiled.",
                image,
            )

        logger.info("Running 'make modules_install'...")
        self.invoke(ctx, InstallFailed, "make", ["modules_install"], cwd=src)

        image_dest = config.kernel_image_path(new)
        logger.info(f"Copying {KERNEL_IMAGE.name} to {image_dest}")
        self.invoke(ctx, InstallFailed, "cp", [str(image), str(image_dest)])

        module_dir = config.module_dir(new)
        if not _is_dir(module_dir):
            raise PreconditionUnmet(
                f"Module directory {module_dir} was not created by 'make modules_install'. "
                f"Does CONFIG_LOCALVERSION in the kernel config match the suffix '-{config.suffix}'?",
                module_dir,
            )

        for link_name in ("build", "source"):
            ensure_symlink(module_dir / link_name, src)

        logger.info(f"Kernel {config.kernel_release(new)} installed")


def ensure_symlink(link_path: Path, target: Path) -> None:
    """Point ``link_path`` at ``target``, replacing any file, link or empty directory there."""
    with filesystem_errors("replace", link_path):
        if link_path.is_symlink() or link_path.is_file():
            logger.debug(f"Removing existing link/file at {link_path}")
            link_path.unlink()
        elif link_path.is_dir():
            logger.debug(f"Removing existing directory at {link_path}")
            link_path.rmdir()

    with filesystem_errors("create symlink", link_path):
        link_path.symlink_to(target)
    logger.info(f"Symlink {link_path} -> {target}")
