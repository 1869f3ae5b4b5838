"""Rename pipeline errors."""

from __future__ import annotations

from typing import Sequence

from .models import ConflictMap


class RenameError(Exception):
    """Base exception for rename operations."""


class ConflictDetectedError(RenameError):
    """Raised before any mutation when unresolved conflicts remain."""

    def __init__(self, conflicts: ConflictMap) -> None:
        self.conflicts = conflicts
        total = sum(len(entries) for entries in conflicts.values())
        super().__init__(
            f"Resolve the {total} conflict(s) above before proceeding, "
            "or use -F/--fix-conflicts to fix them automatically."
        )


class ConflictResolutionError(RenameError):
    """Raised when automatic conflict fixing fails to reach a stable target."""


class RenameFailedError(RenameError):
    """Raised when renames fail while committing an operation.

    Attributes:
        failures: Indices of the changes that could not be renamed.
        partial: Whether at least one rename in the batch succeeded.
    """

    def __init__(self, message: str, failures: Sequence[int], *, partial: bool = False) -> None:
        super().__init__(message)
        self.failures = list(failures)
        self.partial = partial


class PartialRenameError(RenameFailedError):
    """Raised when some, but not all, renames in a batch failed."""

    def __init__(self, message: str, failures: Sequence[int]) -> None:
        super().__init__(message, failures, partial=True)


__all__ = [
    "RenameError",
    "ConflictDetectedError",
    "ConflictResolutionError",
    "RenameFailedError",
    "PartialRenameError",
]
