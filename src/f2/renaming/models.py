"""Rename plan data models."""

from __future__ import annotations

import os
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator


class RenameStatus(str, Enum):
    """Resolution status attached to each candidate rename."""

    OK = "ok"
    UNCHANGED = "unchanged"
    OVERWRITING = "overwriting"
    EMPTY_FILENAME = "empty-filename"
    TRAILING_PERIOD = "trailing-period"
    PATH_EXISTS = "path-exists"
    OVERWRITING_NEW_PATH = "overwriting-new-path"
    INVALID_CHARACTERS = "invalid-characters"
    LENGTH_EXCEEDED = "length-exceeded"


class ConflictType(str, Enum):
    """Categories used to group detected conflicts."""

    EMPTY_FILENAME = "emptyFilename"
    TRAILING_PERIOD = "trailingPeriod"
    MAX_FILENAME_LENGTH_EXCEEDED = "maxFilenameLengthExceeded"
    INVALID_CHARACTERS = "invalidCharacters"
    FILE_EXISTS = "fileExists"
    OVERWRITING_NEW_PATH = "overwritingNewPath"


def join_path(base_dir: str, relative: str) -> str:
    """Join ``relative`` onto ``base_dir`` and normalize the result."""
    return os.path.normpath(os.path.join(base_dir, relative))


class Change(BaseModel):
    """Represents a single candidate rename.

    Attributes:
        base_dir: Directory the rename is scoped to.
        source: Current path relative to ``base_dir``.
        target: Proposed path relative to ``base_dir``.
        original_source: Source before a replacement chain touched it. Defaults to
            ``source`` and cannot be reassigned once set.
        is_dir: Whether the entry is a directory.
        will_overwrite: Whether committing destroys an existing entry with consent.
        error: Filesystem error recorded after a failed rename attempt.
        status: Resolution status assigned by conflict detection.
    """

    base_dir: str
    source: str
    target: str
    original_source: Optional[str] = Field(default=None, exclude=True)
    is_dir: bool = False
    will_overwrite: bool = False
    error: Optional[str] = None
    status: RenameStatus = Field(default=RenameStatus.OK, exclude=True)

    @model_validator(mode="after")
    def _default_original_source(self) -> "Change":
        if self.original_source is None:
            self.original_source = self.source
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "original_source" and self.original_source is not None:
            raise AttributeError("original_source cannot be changed once set")
        super().__setattr__(name, value)

    @property
    def source_path(self) -> str:
        """Return the source joined with the base directory."""
        return join_path(self.base_dir, self.source)

    @property
    def target_path(self) -> str:
        """Return the target joined with the base directory."""
        return join_path(self.base_dir, self.target)

    @property
    def is_unchanged(self) -> bool:
        """Return whether committing this change leaves the filesystem alone."""
        return self.source_path == self.target_path

    def swapped(self) -> "Change":
        """Return a copy with source and target exchanged, used for undo."""
        return Change(
            base_dir=self.base_dir,
            source=self.target,
            target=self.source,
            is_dir=self.is_dir,
        )


class Conflict(BaseModel):
    """A detected reason why one or more renames cannot be applied as-is.

    Attributes:
        target: Contested path after joining with the base directory.
        cause: Additional detail such as the offending characters.
        sources: Source paths implicated in the conflict, in plan order.
    """

    target: str
    cause: str = ""
    sources: List[str] = Field(default_factory=list)


ConflictMap = dict[ConflictType, List[Conflict]]


class OperationOptions(BaseModel):
    """Mode flags governing a rename operation.

    Attributes:
        exec: Commit the renames instead of performing a dry run.
        fix_conflicts: Rewrite conflicting targets instead of aborting.
        allow_overwrites: Permit replacing existing filesystem entries.
        revert: Whether the operation replays a backup record in reverse.
        include_dir: Whether directories are part of the plan.
        quiet: Suppress non-error output.
        verbose: Report each rename as it happens.
        json_output: Emit JSON instead of tables.
    """

    exec: bool = False
    fix_conflicts: bool = False
    allow_overwrites: bool = False
    revert: bool = False
    include_dir: bool = False
    quiet: bool = False
    verbose: bool = False
    json_output: bool = False


__all__ = [
    "RenameStatus",
    "ConflictType",
    "Change",
    "Conflict",
    "ConflictMap",
    "OperationOptions",
    "join_path",
]
