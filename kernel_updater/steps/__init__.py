"""
Workflow steps.

Each step wraps one stage of a kernel update (source, build, install, boot,
DKMS) and is composed into per-command plans by the workflow orchestrator.
"""

from .base import Step, StepContext
from .boot import RegenerateInitramfs, UpdateBootloader
from .dkms import DkmsStatusEntry, InstallNewDkmsModule, RemoveOldDkmsModule, parse_dkms_status
from .kernel import ConfigureAndCompile, FetchAndExtractSource, InstallKernelArtifacts

__all__ = [
    "ConfigureAndCompile",
    "DkmsStatusEntry",
    "FetchAndExtractSource",
    "InstallKernelArtifacts",
    "InstallNewDkmsModule",
    "RegenerateInitramfs",
    "RemoveOldDkmsModule",
    "Step",
    "StepContext",
    "UpdateBootloader",
    "parse_dkms_status",
]
