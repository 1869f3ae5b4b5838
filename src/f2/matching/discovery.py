"""Candidate discovery for rename operations."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Iterable, Iterator

from f2.renaming.models import Change


def _is_hidden(path: Path) -> bool:
    if path.name.startswith("."):
        return True
    if sys.platform.startswith("win"):
        try:
            attributes = getattr(path.stat(), "st_file_attributes", 0)
        except OSError:
            return False
        return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))
    return False


class DirectoryScanner:
    """Discover rename candidates beneath directories or from explicit file paths."""

    def __init__(
        self,
        *,
        recursive: bool = False,
        max_depth: int = 0,
        include_hidden: bool = False,
    ) -> None:
        self.recursive = recursive
        self.max_depth = max_depth
        self.include_hidden = include_hidden

    def scan(self, paths: Iterable[str | Path] = ()) -> Iterator[Change]:
        """Yield one unchanged candidate per discovered entry.

        Directories are listed alphabetically and, when recursive, level by level
        down to ``max_depth`` (0 means unlimited). Explicitly named files are
        included even when hidden.

        Raises:
            OSError: If a given path cannot be inspected.
        """
        roots: list[Path] = []
        explicit: list[Path] = []
        for raw in list(paths) or [os.curdir]:
            path = Path(raw)
            if path.is_dir():
                roots.append(path)
            elif path.exists():
                explicit.append(path)
            else:
                raise FileNotFoundError(f"No such file or directory: {path}")

        seen: set[str] = set()
        for path in explicit:
            change = self._candidate(path.parent, path)
            if change.source_path not in seen:
                seen.add(change.source_path)
                yield change

        for root in roots:
            for change in self._walk(root):
                if change.source_path in seen:
                    continue
                seen.add(change.source_path)
                yield change

    def _walk(self, root: Path) -> Iterator[Change]:
        level = [root]
        depth = 0
        while level:
            next_level: list[Path] = []
            for directory in level:
                for entry in sorted(directory.iterdir(), key=lambda item: item.name):
                    if not self.include_hidden and _is_hidden(entry):
                        continue
                    yield self._candidate(directory, entry)
                    if entry.is_dir() and not entry.is_symlink():
                        next_level.append(entry)

            depth += 1
            if not self.recursive or (self.max_depth > 0 and depth > self.max_depth):
                break
            level = next_level

    def _candidate(self, directory: Path, entry: Path) -> Change:
        return Change(
            base_dir=str(directory),
            source=entry.name,
            target=entry.name,
            is_dir=entry.is_dir(),
        )


__all__ = ["DirectoryScanner"]
