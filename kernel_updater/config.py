from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError
from .shared import Downloader, InitramfsTool
from .version import Version


class UpdaterConfig(BaseModel):
    """Paths and tool choices for one kernel-updater run.

    Passed explicitly into the orchestrator and every step so that tests can
    point all filesystem access at a temporary directory. Values derived from a
    kernel version (source tree, tarball, release name, ...) are computed by
    the methods below rather than stored.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kernel_mirror: str = "https://cdn.kernel.org/pub/linux/kernel"
    kernel_src_base: Path = Path("/lib/modules")
    kernel_module_base: Path = Path("/lib/modules")
    kernel_config_base: Path = Path("/lib/modules")
    boot_dir: Path = Path("/boot")
    suffix: str = "ClaudioFSR"
    downloader: Downloader = Downloader.CURL
    initramfs: InitramfsTool = InitramfsTool.MKINITCPIO
    bootloader_command: tuple[str, ...] = ("update-grub",)
    dkms_module: str = "nvidia"
    reserved_cores: int = 1

    @field_validator("suffix")
    @classmethod
    def _validate_suffix(cls, v: str) -> str:
        if not v:
            raise ValueError("Kernel suffix cannot be empty")
        if "/" in v or any(ch.isspace() for ch in v):
            raise ValueError(f"Kernel suffix must not contain '/' or whitespace: {v!r}")
        return v

    @field_validator("dkms_module")
    @classmethod
    def _validate_dkms_module(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError(f"Invalid DKMS module name: {v!r}")
        return v

    @field_validator("bootloader_command")
    @classmethod
    def _validate_bootloader_command(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v or not v[0]:
            raise ValueError("Bootloader command cannot be empty")
        return v

    @field_validator("reserved_cores")
    @classmethod
    def _validate_reserved_cores(cls, v: int) -> int:
        if v < 0:
            raise ValueError("reserved_cores must be >= 0")
        return v

    @field_validator("kernel_mirror")
    @classmethod
    def _strip_mirror(cls, v: str) -> str:
        return v.rstrip("/")

    # Derived paths

    @property
    def base_config_path(self) -> Path:
        return self.kernel_config_base / f"config-{self.suffix}"

    def source_dir_name(self, version: Version) -> str:
        # kernel.org names x.y.0 releases without the patch component
        if version.patch == 0:
            return f"linux-{version.series}"
        return f"linux-{version}"

    def source_dir(self, version: Version) -> Path:
        return self.kernel_src_base / self.source_dir_name(version)

    def tarball_name(self, version: Version) -> str:
        return f"{self.source_dir_name(version)}.tar.xz"

    def download_url(self, version: Version) -> str:
        return f"{self.kernel_mirror}/v{version.major}.x/{self.tarball_name(version)}"

    def kernel_release(self, version: Version) -> str:
        return f"{version}-{self.suffix}"

    def module_dir(self, version: Version) -> Path:
        return self.kernel_module_base / self.kernel_release(version)

    def kernel_image_path(self, version: Version) -> Path:
        return self.boot_dir / f"vmlinuz-{version.series}"

    def mkinitcpio_preset(self, version: Version) -> str:
        return f"linux{version.major}{version.minor}_{self.suffix}"

    def summary_lines(self) -> list[str]:
        return [
            f"  Kernel mirror: {self.kernel_mirror}",
            f"  Kernel source base: {self.kernel_src_base}",
            f"  Kernel module base: {self.kernel_module_base}",
            f"  Base config: {self.base_config_path}",
            f"  Custom suffix: {self.suffix}",
            f"  Downloader: {self.downloader.value}",
            f"  Initramfs tool: {self.initramfs.value}",
            f"  Bootloader command: {' '.join(self.bootloader_command)}",
            f"  DKMS module: {self.dkms_module}",
        ]


def load_config(config_path: Path, **overrides: object) -> UpdaterConfig:
    """Load an UpdaterConfig from a JSON file.

    Keys in ``overrides`` whose value is not None replace the file's values,
    which is how explicit command line flags win over the file.
    """
    try:
        data = config_path.read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {config_path}: {e.strerror or e}") from e

    try:
        config = UpdaterConfig.model_validate_json(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration file {config_path}:\n{e}") from e

    return apply_overrides(config, **overrides)


def apply_overrides(config: UpdaterConfig, **overrides: object) -> UpdaterConfig:
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    try:
        return UpdaterConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e
