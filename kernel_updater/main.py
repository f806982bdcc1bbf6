from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .config import UpdaterConfig, apply_overrides, load_config
from .errors import ConfigError, VersionParseError
from .runner import CommandRunner, ProcessRunner
from .shared import Command, Downloader, InitramfsTool
from .version import Version
from .workflow import WorkflowOrchestrator

logger = logging.getLogger(__name__)

EXAMPLES = """\
Examples:

  Compile source tree for 6.15.4:
  sudo kernel-updater -n 6.15.4 kernel-compile

  Install compiled 6.15.4 kernel:
  sudo kernel-updater -n 6.15.4 kernel-install

  Build/install DKMS for 6.15.4, remove for 6.15.3:
  sudo kernel-updater -o 6.15.3 -n 6.15.4 dkms-install

  Full update (compile, install, dkms update):
  sudo kernel-updater -o 6.15.3 -n 6.15.4

For the default operation and 'dkms-install' the NEW version (-n) must be
strictly greater than the OLD version (-o).
"""


@dataclass
class CliOptions:
    command: Command
    new: Version
    old: Version | None
    suffix: str | None
    downloader: Downloader | None
    initramfs: InitramfsTool | None
    config_path: Path | None


def _version_arg(text: str) -> Version:
    try:
        return Version.parse(text)
    except VersionParseError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv: list[str]) -> CliOptions:
    parser = argparse.ArgumentParser(
        prog="kernel-updater",
        description="Compile and install a custom Linux kernel and rebuild the NVIDIA DKMS module for it. Requires root privileges.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-n", "--new", type=_version_arg, required=True, help='The new kernel version (e.g. "6.15.4")')
    parser.add_argument(
        "-o",
        "--old",
        type=_version_arg,
        default=None,
        help='The old kernel version (e.g. "6.15.3"). Required by the default command and dkms-install',
    )
    parser.add_argument("-s", "--suffix", default=None, help="The kernel suffix (CONFIG_LOCALVERSION without the leading '-')")
    parser.add_argument(
        "-d",
        "--downloader",
        choices=[d.value for d in Downloader],
        default=None,
        help="Downloader program to use",
    )
    parser.add_argument(
        "--initramfs",
        choices=[t.value for t in InitramfsTool],
        default=None,
        help="Initramfs generator to use",
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON file overriding default paths and tools")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.add_parser(Command.COMPILE_ONLY.value, help="Compile the new kernel source")
    subparsers.add_parser(Command.INSTALL_ONLY.value, help="Install the compiled kernel")
    subparsers.add_parser(Command.DKMS_ONLY.value, help="Build/install DKMS modules")

    ns = parser.parse_args(argv)

    return CliOptions(
        command=Command(ns.command) if ns.command else Command.FULL_UPDATE,
        new=ns.new,
        old=ns.old,
        suffix=ns.suffix,
        downloader=Downloader(ns.downloader) if ns.downloader else None,
        initramfs=InitramfsTool(ns.initramfs) if ns.initramfs else None,
        config_path=ns.config,
    )


def build_config(opts: CliOptions) -> UpdaterConfig:
    overrides = {"suffix": opts.suffix, "downloader": opts.downloader, "initramfs": opts.initramfs}
    if opts.config_path is not None:
        return load_config(opts.config_path, **overrides)
    return apply_overrides(UpdaterConfig(), **overrides)


def show_summary(opts: CliOptions, config: UpdaterConfig) -> None:
    logger.info("Running with configuration:")
    if opts.old is not None:
        logger.info(f"  Old version: {opts.old}")
    logger.info(f"  New version: {opts.new}")
    logger.info(f"  Command: {opts.command.value}")
    for line in config.summary_lines():
        logger.info(line)


def main(argv: list[str] | None = None, runner: CommandRunner | None = None) -> int:
    opts = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        config = build_config(opts)
    except ConfigError as e:
        logger.error(f"Error: {e}")
        return 1

    show_summary(opts, config)

    if os.geteuid() != 0:
        logger.warning("Not running as root: installing kernels and DKMS modules requires root privileges (sudo)")

    orchestrator = WorkflowOrchestrator(config, runner or ProcessRunner())
    result = orchestrator.run(opts.command, opts.new, opts.old)

    if not result.succeeded:
        logger.error(f"Operation failed:\nError: {result.get_summary()}")
        return result.exit_code

    logger.info(result.get_summary())
    logger.info("All requested operations finished.")
    return result.exit_code


def cli() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
