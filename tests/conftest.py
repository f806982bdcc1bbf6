from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest
from kernel_updater.config import UpdaterConfig
from kernel_updater.errors import NonZeroExit
from kernel_updater.runner import CommandRunner
from kernel_updater.version import Version

NVIDIA_STATUS = "nvidia/550.135, 6.15.3-ClaudioFSR, x86_64: installed\n"


@dataclass
class Invocation:
    program: str
    args: list[str]
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


class FakeRunner(CommandRunner):
    """Records invocations and plays back scripted outcomes instead of spawning processes."""

    def __init__(self) -> None:
        self.calls: list[Invocation] = []
        self._failures: list[tuple[list[str], int]] = []
        self._effects: list[tuple[list[str], Callable[[], None]]] = []
        self._outputs: dict[str, str] = {}

    def fail_on(self, *prefix: str, exit_code: int = 2) -> None:
        """Make invocations whose argv starts with ``prefix`` exit with ``exit_code``."""
        self._failures.append((list(prefix), exit_code))

    def on(self, *prefix: str, effect: Callable[[], None]) -> None:
        """Run ``effect`` when an invocation whose argv starts with ``prefix`` succeeds."""
        self._effects.append((list(prefix), effect))

    def set_output(self, program: str, text: str) -> None:
        self._outputs[program] = text

    def run(self, program: str, args: Sequence[str], cwd: Path | None = None) -> None:
        invocation = Invocation(program, list(args), cwd)
        self.calls.append(invocation)
        self._check(invocation)
        for prefix, effect in self._effects:
            if invocation.argv[: len(prefix)] == prefix:
                effect()

    def output(self, program: str, args: Sequence[str]) -> str:
        invocation = Invocation(program, list(args))
        self.calls.append(invocation)
        self._check(invocation)
        return self._outputs.get(program, "")

    def _check(self, invocation: Invocation) -> None:
        for prefix, exit_code in self._failures:
            if invocation.argv[: len(prefix)] == prefix:
                raise NonZeroExit(invocation.program, invocation.args, exit_code)

    @property
    def programs(self) -> list[str]:
        return [call.program for call in self.calls]

    def argvs(self) -> list[list[str]]:
        return [call.argv for call in self.calls]


@pytest.fixture
def config(tmp_path: Path) -> UpdaterConfig:
    """Configuration rooted in a temporary directory with the base kernel config present."""
    cfg = UpdaterConfig(
        kernel_src_base=tmp_path / "src",
        kernel_module_base=tmp_path / "modules",
        kernel_config_base=tmp_path / "configs",
        boot_dir=tmp_path / "boot",
    )
    cfg.kernel_config_base.mkdir(parents=True)
    cfg.base_config_path.write_text("CONFIG_LOCALVERSION=\"-ClaudioFSR\"\n")
    return cfg


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def simulated_runner(config: UpdaterConfig) -> FakeRunner:
    """A FakeRunner whose tools leave behind what the real ones would for 6.15.4."""
    new = Version(6, 15, 4)
    fake = FakeRunner()
    src = config.source_dir(new)

    def extract() -> None:
        (src / "arch/x86/boot").mkdir(parents=True, exist_ok=True)

    def build() -> None:
        (src / "arch/x86/boot/bzImage").write_bytes(b"kernel")

    def modules_install() -> None:
        config.module_dir(new).mkdir(parents=True, exist_ok=True)

    fake.on("tar", effect=extract)
    fake.on("make", "-j", effect=build)
    fake.on("make", "modules_install", effect=modules_install)
    fake.set_output("dkms", NVIDIA_STATUS)
    return fake
