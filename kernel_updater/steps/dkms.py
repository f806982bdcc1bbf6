"""
DKMS module management for the configured out-of-tree module (NVIDIA by default).

The module version is never configured; it is read from ``dkms status`` so
that driver upgrades done by the package manager are picked up automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from packaging.version import InvalidVersion, Version as PackageVersion

from ..errors import DkmsInstallFailed, DkmsModuleNotFound, DkmsRemoveFailed, PreconditionUnmet
from ..runner import CommandRunner
from .base import Step, StepContext, filesystem_errors, tool_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DkmsStatusEntry:
    """One line of ``dkms status``."""

    module: str
    version: str
    kernel: str | None = None
    arch: str | None = None
    state: str = ""

    @property
    def spec(self) -> str:
        return f"{self.module}/{self.version}"


def parse_dkms_status(output: str) -> list[DkmsStatusEntry]:
    """Parse ``dkms status`` output.

    Understands the current format::

        nvidia/550.135, 6.15.3-ClaudioFSR, x86_64: installed

    the pre-3.0 format::

        nvidia, 550.135, 6.15.3-ClaudioFSR, x86_64: installed

    and kernel-less lines such as ``nvidia/550.135: added``. Lines that match
    neither (warnings, errors) are ignored.
    """
    entries: list[DkmsStatusEntry] = []
    for raw_line in output.splitlines():
        head, sep, tail = raw_line.strip().partition(":")
        if not sep:
            continue

        fields = [field.strip() for field in head.split(",")]
        if "/" in fields[0]:
            module, _, version = fields[0].partition("/")
            rest = fields[1:]
        elif len(fields) >= 2:
            module, version = fields[0], fields[1]
            rest = fields[2:]
        else:
            continue

        if not module or not version or " " in module:
            continue

        state = tail.split()
        entries.append(
            DkmsStatusEntry(
                module=module,
                version=version,
                kernel=rest[0] if rest else None,
                arch=rest[1] if len(rest) > 1 else None,
                state=state[0] if state else "",
            )
        )

    logger.debug(f"Parsed {len(entries)} dkms status entries")
    return entries


def read_dkms_status(runner: CommandRunner) -> list[DkmsStatusEntry]:
    return parse_dkms_status(runner.output("dkms", ["status"]))


def _version_key(version: str) -> tuple[int, PackageVersion | str]:
    try:
        return (1, PackageVersion(version))
    except InvalidVersion:
        return (0, version)


def newest_module_version(entries: list[DkmsStatusEntry], module: str) -> str | None:
    """Return the highest registered version of ``module``, or None if it is not registered."""
    versions = {entry.version for entry in entries if entry.module == module}
    if not versions:
        return None
    return max(versions, key=_version_key)


class RemoveOldDkmsModule(Step):
    name = "remove-old-dkms"
    description = "Remove the DKMS module built for the old kernel"

    def execute(self, ctx: StepContext) -> None:
        old = ctx.versions.require_old()
        module = ctx.config.dkms_module
        release = ctx.config.kernel_release(old)
        logger.info(f"Attempting to remove {module} DKMS module for old kernel {old} ({release})...")

        with tool_errors(DkmsRemoveFailed):
            entries = read_dkms_status(ctx.runner)

        versions = sorted({entry.version for entry in entries if entry.module == module and entry.kernel == release})
        if not versions:
            logger.warning(f"{module} DKMS module is not registered for kernel {release}, nothing to remove")
            return

        for version in versions:
            spec = f"{module}/{version}"
            logger.info(f"Running 'dkms remove {spec} -k {release}'...")
            self.invoke(ctx, DkmsRemoveFailed, "dkms", ["remove", spec, "-k", release])

        logger.info(f"Old {module} DKMS module removed from kernel {release}")


class InstallNewDkmsModule(Step):
    name = "install-new-dkms"
    description = "Build and install the DKMS module for the new kernel"

    def execute(self, ctx: StepContext) -> None:
        new = ctx.versions.new
        module = ctx.config.dkms_module
        release = ctx.config.kernel_release(new)

        module_dir = ctx.config.module_dir(new)
        with filesystem_errors("access", module_dir):
            installed = module_dir.is_dir()
        if not installed:
            raise PreconditionUnmet(
                f"Cannot build {module} DKMS module: kernel {release} is not installed ({module_dir} missing)",
                module_dir,
            )

        with tool_errors(DkmsInstallFailed):
            entries = read_dkms_status(ctx.runner)

        version = newest_module_version(entries, module)
        if version is None:
            raise DkmsModuleNotFound(module)
        logger.info(f"Detected {module} DKMS module version: {version}")

        spec = f"{module}/{version}"
        logger.info(f"Running 'dkms install --force {spec} -k {release}'...")
        self.invoke(ctx, DkmsInstallFailed, "dkms", ["install", "--force", spec, "-k", release])
        logger.info(f"{module} DKMS module built and installed for kernel {release}")
