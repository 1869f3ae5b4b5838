"""Apply, commit, and undo rename operations."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Literal

from f2.backup import BackupError, BackupRecord, BackupRepository

from .conflicts import ConflictDetector
from .errors import ConflictDetectedError, PartialRenameError, RenameFailedError
from .models import Change, ConflictMap, OperationOptions
from .platform import PlatformPolicy, current_policy

LOGGER = logging.getLogger(__name__)

ApplyOutcome = Literal["no_matches", "dry_run", "cancelled", "committed", "reverted"]
ConfirmCallback = Callable[["Operation"], bool]


def sort_changes(changes: Iterable[Change], *, revert: bool = False) -> list[Change]:
    """Order changes so that nested paths stay valid while renaming.

    Forward runs rename files before directories and deeper directories before
    their parents. Reverts replay the committed order backwards, which restores
    a parent directory before its children and undoes chained renames (``a -> c``
    then ``b -> a``) in the only order that keeps every target free.
    """
    if revert:
        return list(reversed(list(changes)))
    return sorted(changes, key=lambda change: (change.is_dir, -_depth(change.base_dir)))


def _depth(path: str) -> int:
    return len(Path(os.path.normpath(path)).parts)


def format_error(exc: OSError) -> str:
    """Return the text recorded on a change when its rename fails."""
    return f"{type(exc).__name__}: {exc.strerror or exc}"


class Operation:
    """A batch of renames driven through detection, commit, and backup.

    Attributes:
        changes: Candidate renames in commit order.
        options: Mode flags for this run.
        conflicts: Conflicts found by the latest detection pass.
        errors: Indices of changes whose rename failed during the latest commit.
        warnings: Non-fatal problems such as an undeletable backup record.
        backup_path: Record written (or consumed, when reverting) by this run.
    """

    def __init__(
        self,
        changes: Iterable[Change],
        options: OperationOptions | None = None,
        *,
        working_dir: str | Path | None = None,
        backups: BackupRepository | None = None,
        policy: PlatformPolicy | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        self.changes: list[Change] = list(changes)
        self.options = options or OperationOptions()
        self.working_dir = os.path.abspath(working_dir or os.curdir)
        self.backups = backups or BackupRepository()
        self.policy = policy or current_policy()
        self.confirm = confirm
        self.date = datetime.now(timezone.utc)
        self.conflicts: ConflictMap = {}
        self.errors: list[int] = []
        self.warnings: list[str] = []
        self.backup_path: Path | None = None

    @property
    def dry_run(self) -> bool:
        return not self.options.exec

    def apply(self) -> ApplyOutcome:
        """Detect conflicts, then preview or commit the batch.

        Returns:
            ApplyOutcome: How the run ended when no error was raised.

        Raises:
            ConflictDetectedError: If conflicts remain and auto-fix is disabled.
            RenameFailedError: If every attempted rename failed.
            PartialRenameError: If some renames failed.
            BackupError: If the backup record cannot be written.
        """

        self.conflicts = {}
        self.errors = []

        if not self.changes:
            return "no_matches"

        if self.options.include_dir or self.options.revert:
            self.changes = sort_changes(self.changes, revert=self.options.revert)

        detector = ConflictDetector(
            fix_conflicts=self.options.fix_conflicts,
            allow_overwrites=self.options.allow_overwrites,
            policy=self.policy,
        )
        report = detector.detect(self.changes)
        self.changes = report.changes
        self.conflicts = report.conflicts

        if self.conflicts and not self.options.fix_conflicts:
            LOGGER.debug("Aborting before renaming: %d conflict type(s)", len(self.conflicts))
            raise ConflictDetectedError(self.conflicts)

        if self.dry_run:
            return "dry_run"

        if self.confirm is not None and not self.confirm(self):
            return "cancelled"

        return self.commit()

    def commit(self) -> ApplyOutcome:
        """Rename every change on disk and record the batch for undo."""
        self.rename()

        if self.errors:
            self.handle_errors()

        if self.options.revert:
            return "reverted"

        self.backup()
        return "committed"

    def rename(self) -> None:
        """Rename each change in order, collecting failures instead of stopping."""
        errors: list[int] = []

        for index, change in enumerate(self.changes):
            source = Path(change.source_path)
            target = Path(change.target_path)
            if source == target:
                continue

            if self.policy.has_separator(change.target):
                try:
                    target.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
                except OSError as exc:
                    self._record_failure(index, change, exc, errors)
                    continue

            try:
                if change.will_overwrite:
                    os.replace(source, target)
                else:
                    os.rename(source, target)
            except OSError as exc:
                self._record_failure(index, change, exc, errors)
                continue

            LOGGER.info("Renamed '%s' to '%s'", source, target)

        self.errors = errors

    def handle_errors(self) -> None:
        """Classify commit failures, backing up whatever succeeded.

        Raises:
            RenameFailedError: If no attempted rename succeeded.
            PartialRenameError: If at least one rename succeeded.
        """
        attempted = sum(1 for change in self.changes if not change.is_unchanged)
        if len(self.errors) >= attempted:
            raise RenameFailedError(
                "The renaming operation failed due to the above errors", self.errors
            )

        if not self.options.revert:
            try:
                self.backup()
            except BackupError as exc:
                raise PartialRenameError(
                    "The above files could not be renamed", self.errors
                ) from exc

        message = "Some files could not be renamed."
        if self.options.revert:
            message = "Some files could not be reverted."
        raise PartialRenameError(message, self.errors)

    def backup(self) -> Path:
        """Write the committed batch to the backup record for this directory."""
        record = BackupRecord(working_dir=self.working_dir, operations=self.changes)
        self.backup_path = self.backups.save(record)
        return self.backup_path

    def undo(self) -> ApplyOutcome:
        """Reverse the last batch committed from this working directory.

        Returns:
            ApplyOutcome: Result of re-applying the swapped changes.

        Raises:
            BackupNotFoundError: If no backup exists for the working directory.
            BackupError: If the backup cannot be read.
        """
        record = self.backups.load(self.working_dir)
        self.backup_path = self.backups.path_for(self.working_dir)
        self.options = self.options.model_copy(update={"revert": True})
        self.changes = [change.swapped() for change in record.operations if not change.error]

        outcome = self.apply()

        if outcome == "reverted":
            try:
                self.backups.delete(self.working_dir)
            except OSError as exc:
                message = (
                    f"Unable to remove redundant backup file '{self.backup_path}' "
                    f"after successful undo operation: {exc}"
                )
                LOGGER.warning(message)
                self.warnings.append(message)

        return outcome

    def _record_failure(
        self, index: int, change: Change, exc: OSError, errors: list[int]
    ) -> None:
        change.error = format_error(exc)
        errors.append(index)
        LOGGER.info("Failed to rename %s to %s: %s", change.source_path, change.target_path, exc)


__all__ = ["Operation", "ApplyOutcome", "sort_changes", "format_error"]
