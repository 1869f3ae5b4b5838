"""Operating-system naming rules applied during conflict detection."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class PlatformPolicy:
    """Naming rules for one family of operating systems.

    Attributes:
        name: Identifier for the policy (``windows``, ``darwin`` or ``posix``).
        max_length: Maximum length of a single file name.
        length_unit: Unit ``max_length`` is measured in.
        forbidden: Characters that may not appear in a file name. Path
            separators are never listed because they create subdirectories.
        trailing_periods_prohibited: Whether name segments may end in periods.
        separators: Characters treated as path separators in a target.
    """

    name: str
    max_length: int
    length_unit: Literal["bytes", "characters"]
    forbidden: str = ""
    trailing_periods_prohibited: bool = False
    separators: str = "/"

    @property
    def _separator_pattern(self) -> re.Pattern[str]:
        return re.compile("([" + re.escape(self.separators) + "])")

    def split(self, target: str) -> tuple[str, str]:
        """Split ``target`` into its directory part and file name."""
        parts = self._separator_pattern.split(target)
        filename = parts[-1]
        return "".join(parts[:-1]), filename

    def filename(self, target: str) -> str:
        """Return the final path segment of ``target``."""
        return self.split(target)[1]

    def has_separator(self, target: str) -> bool:
        """Return whether ``target`` creates or enters a subdirectory."""
        return any(separator in target for separator in self.separators)

    def measure(self, name: str) -> int:
        """Return the length of ``name`` in this policy's unit."""
        if self.length_unit == "bytes":
            return len(name.encode("utf-8"))
        return len(name.encode("utf-16-le")) // 2

    def length_violation(self, target: str) -> str | None:
        """Return a description of the exceeded limit, if any."""
        if self.measure(self.filename(target)) > self.max_length:
            return f"{self.max_length} {self.length_unit}"
        return None

    def truncate(self, target: str) -> str:
        """Shorten the file name in ``target`` so it fits, keeping its extension."""
        directory, filename = self.split(target)
        stem, ext = os.path.splitext(filename)
        if self.measure(ext) >= self.max_length:
            stem, ext = filename, ""
        while stem and self.measure(stem + ext) > self.max_length:
            stem = stem[:-1]
        return directory + stem + ext

    def forbidden_characters(self, target: str) -> list[str]:
        """Return every forbidden character found in ``target``, in order."""
        return [char for char in target if char in self.forbidden]

    def strip_forbidden(self, target: str) -> str:
        """Remove forbidden characters from ``target``."""
        return "".join(char for char in target if char not in self.forbidden)

    def has_trailing_period(self, target: str) -> bool:
        """Return whether any segment of ``target`` ends in a period."""
        if not self.trailing_periods_prohibited:
            return False
        return any(
            segment != self._strip_segment(segment)
            for segment in self._separator_pattern.split(target)
        )

    def strip_trailing_periods(self, target: str) -> str:
        """Remove trailing periods from every segment of ``target``."""
        return "".join(
            self._strip_segment(segment) for segment in self._separator_pattern.split(target)
        )

    def _strip_segment(self, segment: str) -> str:
        if segment in (".", "..") or segment in self.separators:
            return segment
        return segment.rstrip(".")


WINDOWS = PlatformPolicy(
    name="windows",
    max_length=260,
    length_unit="characters",
    forbidden='<>:"|?*',
    trailing_periods_prohibited=True,
    separators="/\\",
)
DARWIN = PlatformPolicy(name="darwin", max_length=255, length_unit="bytes", forbidden=":")
POSIX = PlatformPolicy(name="posix", max_length=255, length_unit="bytes")


def current_policy(platform: str | None = None) -> PlatformPolicy:
    """Return the naming policy for ``platform`` (defaults to ``sys.platform``)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WINDOWS
    if platform == "darwin":
        return DARWIN
    return POSIX


__all__ = ["PlatformPolicy", "WINDOWS", "DARWIN", "POSIX", "current_policy"]
