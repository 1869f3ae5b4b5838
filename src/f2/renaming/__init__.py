"""Conflict detection for rename plans.

The apply/commit/undo pipeline lives in :mod:`f2.renaming.executor`.
"""

from .conflicts import ConflictDetector, ConflictReport, detect_conflicts, new_target
from .errors import (
    ConflictDetectedError,
    ConflictResolutionError,
    PartialRenameError,
    RenameError,
    RenameFailedError,
)
from .models import Change, Conflict, ConflictType, OperationOptions, RenameStatus
from .platform import PlatformPolicy, current_policy

__all__ = [
    "Change",
    "Conflict",
    "ConflictDetectedError",
    "ConflictDetector",
    "ConflictReport",
    "ConflictResolutionError",
    "ConflictType",
    "OperationOptions",
    "PartialRenameError",
    "PlatformPolicy",
    "RenameError",
    "RenameFailedError",
    "RenameStatus",
    "current_policy",
    "detect_conflicts",
    "new_target",
]
