"""
Kernel version triple.

Kernel versions handled by the updater are always plain ``major.minor.patch``
strings such as ``6.15.4``; release candidates and distribution suffixes are
not accepted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import VersionParseError

_COMPONENT_RE = re.compile(r"\d+", re.ASCII)


@dataclass(frozen=True, order=True)
class Version:
    """Immutable ``major.minor.patch`` version ordered component by component."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise VersionParseError(f"Version {name} must be an integer, got {value!r}")
            if value < 0:
                raise VersionParseError(f"Version {name} must not be negative, got {value}")

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a dotted version string.

        Args:
            text: Version string, e.g. "6.15.3". Surrounding whitespace is ignored.

        Returns:
            The parsed Version

        Raises:
            VersionParseError: If the text is not exactly three non-negative integers
        """
        parts = text.split(".")
        if len(parts) != 3:
            raise VersionParseError(f"Invalid version format '{text}': expected exactly three dot-separated numbers (e.g. 6.15.3)")

        numbers: list[int] = []
        for part in parts:
            component = part.strip()
            if not _COMPONENT_RE.fullmatch(component):
                raise VersionParseError(f"Invalid version component '{component}' in '{text}': not a non-negative integer")
            numbers.append(int(component))

        return cls(*numbers)

    @property
    def series(self) -> str:
        """The ``major.minor`` series, e.g. "6.15"."""
        return f"{self.major}.{self.minor}"

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class KernelVersionPair:
    """The versions involved in one run; ``old`` is only needed by some commands."""

    new: Version
    old: Version | None = None

    def require_old(self) -> Version:
        if self.old is None:
            raise ValueError("Old kernel version is not set for this run")
        return self.old
