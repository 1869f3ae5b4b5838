"""Conflict detection and automatic resolution for rename plans."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .errors import ConflictResolutionError
from .models import Change, Conflict, ConflictMap, ConflictType, RenameStatus, join_path
from .platform import PlatformPolicy, current_policy

LOGGER = logging.getLogger(__name__)

# A single item needs at most one pass per fixable check plus a final clean pass.
MAX_RESOLUTION_PASSES = 32

_COUNTER_PATTERN = re.compile(r"\((\d+)\)$")

ClaimedPaths = dict[str, list[int]]


def path_exists(path: str) -> bool:
    """Return whether ``stat`` succeeds for ``path``."""
    try:
        os.stat(path)
    except OSError:
        return False
    return True


def _same_entry(first: str, second: str) -> bool:
    try:
        return os.path.samefile(first, second)
    except OSError:
        return False


def new_target(
    change: Change,
    claimed: Mapping[str, object] | Iterable[str] = (),
    *,
    policy: PlatformPolicy | None = None,
) -> str:
    """Return a numbered variant of ``change.target`` that is free to use.

    ``image.png`` becomes ``image (2).png``; ``image (2).png`` becomes
    ``image (3).png``. The counter keeps increasing until the resulting path
    neither exists on disk nor appears in ``claimed``.

    Args:
        change: Change whose target should be renumbered.
        claimed: Target paths already claimed by other renames in the batch.
        policy: Naming policy used to keep the new name within length limits.

    Returns:
        str: New target relative to ``change.base_dir``.
    """

    policy = policy or current_policy()
    taken = set(claimed)
    directory, filename = policy.split(change.target)
    stem, ext = os.path.splitext(filename)

    match = _COUNTER_PATTERN.search(stem)
    if match:
        number = int(match.group(1)) + 1
        stem = stem[: match.start()]
    else:
        number = 2
        stem = f"{stem} "

    while True:
        counter = f"({number})"
        base = stem
        while base and policy.measure(base + counter + ext) > policy.max_length:
            base = base[:-1]
        candidate = directory + base + counter + ext
        candidate_path = join_path(change.base_dir, candidate)
        if candidate_path not in taken and not path_exists(candidate_path):
            return candidate
        number += 1


@dataclass
class ConflictReport:
    """Result of a detection pass.

    Attributes:
        changes: Annotated (and, with auto-fix, rewritten) copies of the input.
        conflicts: Detected conflicts grouped by type.
    """

    changes: list[Change]
    conflicts: ConflictMap = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


class ConflictDetector:
    """Detect, and optionally fix, the ways a set of renames can collide."""

    def __init__(
        self,
        *,
        fix_conflicts: bool = False,
        allow_overwrites: bool = False,
        policy: PlatformPolicy | None = None,
        max_passes: int = MAX_RESOLUTION_PASSES,
    ) -> None:
        self.fix_conflicts = fix_conflicts
        self.allow_overwrites = allow_overwrites
        self.policy = policy or current_policy()
        self.max_passes = max_passes

    def detect(self, changes: Sequence[Change]) -> ConflictReport:
        """Run every check over ``changes`` and return the annotated result.

        The input sequence is left untouched; the report holds copies. Each item
        is rechecked after any fix until no check reports a conflict, then
        duplicate targets across the whole batch are resolved.

        Args:
            changes: Candidate renames in commit order.

        Returns:
            ConflictReport: Annotated changes and the conflicts found.

        Raises:
            ConflictResolutionError: If an item does not settle within the pass limit.
        """

        working = [change.model_copy() for change in changes]
        conflicts: ConflictMap = {}
        claimed: ClaimedPaths = {}

        for index in range(len(working)):
            if self._resolve_item(index, working, conflicts, claimed):
                claimed.setdefault(working[index].target_path, []).append(index)

        self._check_overwriting_new_paths(working, conflicts, claimed)
        return ConflictReport(changes=working, conflicts=conflicts)

    # ------------------------------------------------------------------ #
    # Per-item checks                                                    #
    # ------------------------------------------------------------------ #

    def _resolve_item(
        self,
        index: int,
        changes: list[Change],
        conflicts: ConflictMap,
        claimed: ClaimedPaths,
    ) -> bool:
        """Check one item until it is stable; return whether it claims its target."""
        checks = (
            self._check_trailing_period,
            self._check_length,
            self._check_forbidden_characters,
            self._check_path_exists,
        )
        for _ in range(self.max_passes):
            if self._check_empty_filename(changes[index], conflicts):
                return False

            fixed = False
            for check in checks:
                if check(index, changes, conflicts, claimed) and self.fix_conflicts:
                    fixed = True
                    break
            if not fixed:
                return True

        change = changes[index]
        raise ConflictResolutionError(
            f"Unable to settle a target for {change.source_path} "
            f"after {self.max_passes} attempts (last tried {change.target_path})."
        )

    def _check_empty_filename(self, change: Change, conflicts: ConflictMap) -> bool:
        if change.target not in ("", "."):
            return False

        self._record(conflicts, ConflictType.EMPTY_FILENAME, change)
        change.status = RenameStatus.EMPTY_FILENAME
        if self.fix_conflicts:
            change.target = change.source
            change.status = RenameStatus.UNCHANGED
        return True

    def _check_trailing_period(
        self, index: int, changes: list[Change], conflicts: ConflictMap, claimed: ClaimedPaths
    ) -> bool:
        change = changes[index]
        if not self.policy.has_trailing_period(change.target):
            return False

        self._record(conflicts, ConflictType.TRAILING_PERIOD, change)
        change.status = RenameStatus.TRAILING_PERIOD
        if self.fix_conflicts:
            change.target = self.policy.strip_trailing_periods(change.target)
            change.status = RenameStatus.OK
        return True

    def _check_length(
        self, index: int, changes: list[Change], conflicts: ConflictMap, claimed: ClaimedPaths
    ) -> bool:
        change = changes[index]
        cause = self.policy.length_violation(change.target)
        if cause is None:
            return False

        self._record(conflicts, ConflictType.MAX_FILENAME_LENGTH_EXCEEDED, change, cause=cause)
        change.status = RenameStatus.LENGTH_EXCEEDED
        if self.fix_conflicts:
            change.target = self.policy.truncate(change.target)
            change.status = RenameStatus.OK
        return True

    def _check_forbidden_characters(
        self, index: int, changes: list[Change], conflicts: ConflictMap, claimed: ClaimedPaths
    ) -> bool:
        change = changes[index]
        found = self.policy.forbidden_characters(change.target)
        if not found:
            return False

        self._record(conflicts, ConflictType.INVALID_CHARACTERS, change, cause=",".join(found))
        change.status = RenameStatus.INVALID_CHARACTERS
        if self.fix_conflicts:
            change.target = self.policy.strip_forbidden(change.target)
            change.status = RenameStatus.OK
        return True

    def _check_path_exists(
        self, index: int, changes: list[Change], conflicts: ConflictMap, claimed: ClaimedPaths
    ) -> bool:
        change = changes[index]
        source_path = change.source_path
        target_path = change.target_path
        if not path_exists(target_path):
            return False

        # A case-only rename counts as unchanged only when both spellings name the
        # same entry; on case-sensitive filesystems they can be two distinct files.
        if source_path == target_path or (
            source_path.casefold() == target_path.casefold()
            and _same_entry(source_path, target_path)
        ):
            change.status = RenameStatus.UNCHANGED
            return False

        if self.allow_overwrites:
            change.will_overwrite = True
            change.status = RenameStatus.OVERWRITING
            return False

        if self._vacated_earlier(index, changes, target_path):
            return False

        self._record(conflicts, ConflictType.FILE_EXISTS, change)
        change.status = RenameStatus.PATH_EXISTS
        if self.fix_conflicts:
            change.target = new_target(change, claimed, policy=self.policy)
            change.status = RenameStatus.OK
            LOGGER.debug("Renumbered %s to avoid existing %s", source_path, target_path)
        return True

    def _vacated_earlier(self, index: int, changes: list[Change], target_path: str) -> bool:
        """Return whether an earlier rename moves away from ``target_path`` first."""
        for earlier in changes[:index]:
            earlier_source = earlier.source_path
            if (
                earlier_source == target_path
                and earlier_source.casefold() != earlier.target_path.casefold()
            ):
                return True
        return False

    # ------------------------------------------------------------------ #
    # Cross-item checks                                                  #
    # ------------------------------------------------------------------ #

    def _check_overwriting_new_paths(
        self,
        changes: list[Change],
        conflicts: ConflictMap,
        claimed: ClaimedPaths,
    ) -> None:
        contested = [
            (target_path, list(indices))
            for target_path, indices in claimed.items()
            if len(indices) > 1
        ]
        for target_path, indices in contested:
            sources = [changes[index].source_path for index in indices]
            conflicts.setdefault(ConflictType.OVERWRITING_NEW_PATH, []).append(
                Conflict(target=target_path, sources=sources)
            )

            canonical_status = changes[indices[0]].status
            for index in indices:
                changes[index].status = RenameStatus.OVERWRITING_NEW_PATH

            if not self.fix_conflicts:
                continue

            changes[indices[0]].status = canonical_status
            for index in indices[1:]:
                change = changes[index]
                change.target = new_target(change, claimed, policy=self.policy)
                change.status = RenameStatus.OK
                claimed[target_path].remove(index)
                claimed.setdefault(change.target_path, []).append(index)
                LOGGER.debug("Renumbered %s to %s", change.source_path, change.target_path)

    def _record(
        self,
        conflicts: ConflictMap,
        conflict_type: ConflictType,
        change: Change,
        *,
        cause: str = "",
    ) -> None:
        conflicts.setdefault(conflict_type, []).append(
            Conflict(target=change.target_path, cause=cause, sources=[change.source_path])
        )


def detect_conflicts(
    changes: Sequence[Change],
    *,
    fix_conflicts: bool = False,
    allow_overwrites: bool = False,
    policy: PlatformPolicy | None = None,
) -> ConflictReport:
    """Detect conflicts in ``changes`` using a one-off :class:`ConflictDetector`."""
    detector = ConflictDetector(
        fix_conflicts=fix_conflicts,
        allow_overwrites=allow_overwrites,
        policy=policy,
    )
    return detector.detect(changes)


__all__ = [
    "ConflictDetector",
    "ConflictReport",
    "MAX_RESOLUTION_PASSES",
    "detect_conflicts",
    "new_target",
    "path_exists",
]
