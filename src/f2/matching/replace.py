"""Search and replace stages that turn discovered entries into candidate renames."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from f2.renaming.models import Change

MATCH_ALL = ".*"

_REFERENCE_PATTERN = re.compile(r"\$(?:\{(\w+)\}|(\d+)|(\$))")


def compile_pattern(
    find: str,
    *,
    string_mode: bool = False,
    ignore_case: bool = False,
) -> re.Pattern[str]:
    """Compile a find expression.

    Args:
        find: Regular expression, or literal text when ``string_mode`` is set.
        string_mode: Treat ``find`` as plain text.
        ignore_case: Match case-insensitively.

    Raises:
        re.error: If ``find`` is not a valid expression.
    """
    if string_mode:
        find = re.escape(find)
    return re.compile(find, re.IGNORECASE if ignore_case else 0)


def convert_replacement(replacement: str) -> str:
    """Translate ``$1``, ``${name}`` and ``$$`` references into ``re`` template syntax."""
    escaped = replacement.replace("\\", "\\\\")

    def _reference(match: re.Match[str]) -> str:
        if match.group(3):
            return "$"
        return f"\\g<{match.group(1) or match.group(2)}>"

    return _REFERENCE_PATTERN.sub(_reference, escaped)


@dataclass(frozen=True)
class ReplacementStage:
    """One find/replace step of a chain."""

    pattern: re.Pattern[str]
    template: str

    def apply(self, name: str) -> str:
        """Replace every match in ``name``.

        An empty match directly after a previous match is skipped, so ``.*``
        replaces a whole name exactly once.
        """
        pieces: list[str] = []
        last = 0
        previous_end: int | None = None
        for match in self.pattern.finditer(name):
            if match.start() == match.end() == previous_end:
                continue
            pieces.append(name[last : match.start()])
            pieces.append(match.expand(self.template))
            last = previous_end = match.end()
        pieces.append(name[last:])
        return "".join(pieces)


class ReplacementChain:
    """Ordered find/replace stages applied to each candidate's file name."""

    def __init__(
        self,
        find: Sequence[str],
        replace: Sequence[str],
        *,
        string_mode: bool = False,
        ignore_case: bool = False,
        ignore_ext: bool = False,
    ) -> None:
        count = max(len(find), len(replace), 1)
        self.ignore_ext = ignore_ext
        self.stages: list[ReplacementStage] = []
        for index in range(count):
            if index < len(find):
                pattern = compile_pattern(
                    find[index], string_mode=string_mode, ignore_case=ignore_case
                )
            else:
                pattern = re.compile(MATCH_ALL)
            replacement = replace[index] if index < len(replace) else ""
            self.stages.append(
                ReplacementStage(pattern=pattern, template=convert_replacement(replacement))
            )

    @property
    def search(self) -> re.Pattern[str]:
        """Return the pattern that selects which entries are renamed."""
        return self.stages[0].pattern

    def _split(self, change: Change) -> tuple[str, str]:
        name = os.path.basename(change.source)
        if self.ignore_ext and not change.is_dir:
            return os.path.splitext(name)
        return name, ""

    def matches(self, change: Change) -> bool:
        """Return whether ``change`` is selected by the first find pattern."""
        name, _ = self._split(change)
        return self.search.search(name) is not None

    def rename(self, change: Change) -> Change:
        """Return a copy of ``change`` whose target is the chained replacement."""
        name, ext = self._split(change)
        for stage in self.stages:
            name = stage.apply(name)

        directory = os.path.dirname(change.source)
        target = os.path.join(directory, name + ext) if directory else name + ext
        return Change(
            base_dir=change.base_dir,
            source=change.source,
            target=target,
            original_source=change.original_source,
            is_dir=change.is_dir,
        )


def find_matches(
    candidates: Iterable[Change],
    chain: ReplacementChain,
    *,
    include_dir: bool = False,
    only_dir: bool = False,
) -> list[Change]:
    """Return the candidates selected by ``chain`` honouring directory filters."""
    include_dir = include_dir or only_dir
    matches: list[Change] = []
    for change in candidates:
        if change.is_dir and not include_dir:
            continue
        if only_dir and not change.is_dir:
            continue
        if chain.matches(change):
            matches.append(change)
    return matches


def exclude_matches(changes: Iterable[Change], patterns: Sequence[str]) -> list[Change]:
    """Drop changes whose source matches any of ``patterns``."""
    if not patterns:
        return list(changes)
    excluded = re.compile("|".join(patterns))
    return [change for change in changes if not excluded.search(change.source)]


__all__ = [
    "MATCH_ALL",
    "ReplacementChain",
    "ReplacementStage",
    "compile_pattern",
    "convert_replacement",
    "exclude_matches",
    "find_matches",
]
