"""
Tests for the command line interface.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from conftest import FakeRunner
from kernel_updater.config import UpdaterConfig
from kernel_updater.main import build_config, main, parse_args
from kernel_updater.shared import Command, Downloader, InitramfsTool
from kernel_updater.version import Version

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def config_file(config: UpdaterConfig, tmp_path: Path) -> Path:
    path = tmp_path / "kernel-updater.json"
    path.write_text(config.model_dump_json())
    return path


class TestParseArgs:
    """Test command line parsing."""

    def test_default_command_is_full_update(self) -> None:
        opts = parse_args(["-o", "6.15.3", "-n", "6.15.4"])
        assert opts.command is Command.FULL_UPDATE
        assert opts.new == Version(6, 15, 4)
        assert opts.old == Version(6, 15, 3)
        assert opts.suffix is None
        assert opts.downloader is None

    @pytest.mark.parametrize(
        ("subcommand", "command"),
        [
            ("kernel-compile", Command.COMPILE_ONLY),
            ("kernel-install", Command.INSTALL_ONLY),
            ("dkms-install", Command.DKMS_ONLY),
        ],
    )
    def test_subcommands(self, subcommand: str, command: Command) -> None:
        assert parse_args(["-n", "6.15.4", subcommand]).command is command

    def test_options(self) -> None:
        opts = parse_args(
            ["--new", "6.15.4", "--suffix", "desk", "--downloader", "wget", "--initramfs", "dracut", "--config", "/etc/ku.json"]
        )
        assert opts.suffix == "desk"
        assert opts.downloader is Downloader.WGET
        assert opts.initramfs is InitramfsTool.DRACUT
        assert opts.config_path == Path("/etc/ku.json")

    def test_new_is_required(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["-o", "6.15.3"])
        assert exc_info.value.code == 2

    @pytest.mark.parametrize("version", ["6.15", "6.x.4", "latest"])
    def test_invalid_version(self, version: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            parse_args(["-n", version])
        assert "Invalid version" in capsys.readouterr().err

    def test_invalid_downloader(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["-n", "6.15.4", "-d", "aria2c"])


class TestBuildConfig:
    def test_flags_override_defaults(self) -> None:
        config = build_config(parse_args(["-n", "6.15.4", "-s", "desk", "-d", "wget"]))
        assert config.suffix == "desk"
        assert config.downloader is Downloader.WGET
        assert config.initramfs is InitramfsTool.MKINITCPIO


@patch("kernel_updater.main.os.geteuid", return_value=0)
class TestMain:
    """Test exit codes and error reporting of main()."""

    def test_full_update_success(self, _geteuid: Mock, config_file: Path, simulated_runner: FakeRunner) -> None:
        code = main(["--config", str(config_file), "-o", "6.15.3", "-n", "6.15.4"], runner=simulated_runner)

        assert code == 0
        assert simulated_runner.programs[-1] == "dkms"

    def test_step_failure(
        self,
        _geteuid: Mock,
        config_file: Path,
        simulated_runner: FakeRunner,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        simulated_runner.fail_on("make", "-j")

        code = main(["--config", str(config_file), "-n", "6.15.4", "kernel-compile"], runner=simulated_runner)

        assert code == 1
        errors = [record.getMessage() for record in caplog.records if record.levelno == logging.ERROR]
        assert len(errors) == 1
        assert errors[0].startswith("Operation failed:")
        assert "Step 'compile-kernel' failed: Kernel compilation failed: command 'make -j" in errors[0]

    def test_missing_old(self, _geteuid: Mock, config_file: Path, runner: FakeRunner, caplog: pytest.LogCaptureFixture) -> None:
        code = main(["--config", str(config_file), "-n", "6.15.4", "dkms-install"], runner=runner)

        assert code == 1
        assert "--old argument is required for command 'dkms-install'" in caplog.text
        assert runner.calls == []

    def test_version_order(self, _geteuid: Mock, config_file: Path, runner: FakeRunner, caplog: pytest.LogCaptureFixture) -> None:
        code = main(["--config", str(config_file), "-o", "6.15.4", "-n", "6.15.3"], runner=runner)

        assert code == 1
        assert "must be strictly greater" in caplog.text
        assert runner.calls == []

    def test_bad_config_file(self, _geteuid: Mock, tmp_path: Path, runner: FakeRunner, caplog: pytest.LogCaptureFixture) -> None:
        code = main(["--config", str(tmp_path / "missing.json"), "-n", "6.15.4"], runner=runner)

        assert code == 1
        assert "Cannot read configuration file" in caplog.text
        assert runner.calls == []

    def test_warns_when_not_root(
        self,
        geteuid: Mock,
        config_file: Path,
        simulated_runner: FakeRunner,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        geteuid.return_value = 1000

        code = main(["--config", str(config_file), "-n", "6.15.4", "kernel-compile"], runner=simulated_runner)

        assert code == 0
        warnings = [record.getMessage() for record in caplog.records if record.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "root" in warnings[0]


class TestEntryPoint:
    """Run the command line as a separate process."""

    @pytest.fixture
    def fake_bin(self, tmp_path: Path) -> Path:
        """Stand-ins for curl, tar and make that succeed and leave a source tree behind."""
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        scripts = {
            "curl": "exit 0\n",
            "tar": "mkdir -p linux-6.15.4/arch/x86/boot\n",
            "make": "exit 0\n",
        }
        for name, body in scripts.items():
            script = bin_dir / name
            script.write_text(f"#!/bin/sh\n{body}")
            script.chmod(0o755)
        return bin_dir

    def run_cli(self, args: list[str], path_prefix: Path | None = None) -> subprocess.CompletedProcess[str]:
        env = dict(os.environ)
        if path_prefix is not None:
            env["PATH"] = f"{path_prefix}{os.pathsep}{env.get('PATH', '')}"
        return subprocess.run(
            [sys.executable, "-m", "kernel_updater.main", *args],
            capture_output=True,
            text=True,
            env=env,
            cwd=PROJECT_ROOT,
            check=False,
        )

    def test_help_is_ours(self) -> None:
        result = self.run_cli(["--help"])

        assert result.returncode == 0
        assert result.stdout.startswith("usage: kernel-updater")
        assert "--initramfs" in result.stdout
        assert "kernel-compile" in result.stdout

    def test_compile_succeeds(self, config_file: Path, fake_bin: Path) -> None:
        result = self.run_cli(["--config", str(config_file), "-o", "6.15.3", "-n", "6.15.4", "kernel-compile"], path_prefix=fake_bin)

        assert result.returncode == 0, result.stderr
        assert "Executing: curl -fL https://cdn.kernel.org/pub/linux/kernel/v6.x/linux-6.15.4.tar.xz" in result.stderr
        assert "Kernel compilation complete for 6.15.4." in result.stderr

    def test_version_order_fails(self, config_file: Path) -> None:
        result = self.run_cli(["--config", str(config_file), "-o", "6.15.4", "-n", "6.15.4"])

        assert result.returncode == 1
        assert "Operation failed:" in result.stderr
        assert result.stderr.count("must be strictly greater") == 1

    def test_invalid_version_is_usage_error(self) -> None:
        result = self.run_cli(["-n", "6.15"])

        assert result.returncode == 2
        assert "Invalid version format '6.15'" in result.stderr
