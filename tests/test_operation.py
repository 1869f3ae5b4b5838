"""Tests for the apply/commit/undo pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from f2.backup import BackupNotFoundError, BackupRepository
from f2.matching import DirectoryScanner, ReplacementChain, find_matches
from f2.renaming import (
    Change,
    ConflictDetectedError,
    ConflictType,
    OperationOptions,
    PartialRenameError,
    RenameFailedError,
)
from f2.renaming.executor import Operation, sort_changes
from f2.renaming.platform import POSIX

EPISODES = [
    "No Pressure (2021) S1.E1.1080p.mkv",
    "No Pressure (2021) S1.E2.1080p.mkv",
    "No Pressure (2021) S1.E3.1080p.mkv",
]


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture()
def backups(tmp_path: Path) -> BackupRepository:
    return BackupRepository(tmp_path / "data")


def _touch(directory: Path, *names: str) -> None:
    for name in names:
        (directory / name).write_text(name, encoding="utf-8")


def _operation(
    workspace: Path,
    backups: BackupRepository,
    changes: list[Change],
    **options: bool,
) -> Operation:
    return Operation(
        changes,
        OperationOptions(**options),
        working_dir=workspace,
        backups=backups,
        policy=POSIX,
    )


def _undo(workspace: Path, backups: BackupRepository, **options: bool) -> Operation:
    return _operation(workspace, backups, [], **options)


def _change(base: Path, source: str, target: str) -> Change:
    return Change(base_dir=str(base), source=source, target=target)


def _episode_changes(workspace: Path) -> list[Change]:
    chain = ReplacementChain([r".*E(\d+).*"], ["$1.mkv"])
    candidates = DirectoryScanner().scan([workspace])
    return [chain.rename(change) for change in find_matches(candidates, chain)]


def test_empty_operation_reports_no_matches(workspace: Path, backups: BackupRepository) -> None:
    operation = _operation(workspace, backups, [], exec=True)

    assert operation.apply() == "no_matches"
    assert not backups.exists(workspace)


def test_dry_run_leaves_files_untouched(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, *EPISODES)
    operation = _operation(workspace, backups, _episode_changes(workspace))

    assert operation.apply() == "dry_run"

    assert sorted(path.name for path in workspace.iterdir()) == EPISODES
    assert [change.target for change in operation.changes] == ["1.mkv", "2.mkv", "3.mkv"]
    assert not backups.exists(workspace)


def test_exec_renames_and_writes_backup(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, *EPISODES)
    operation = _operation(workspace, backups, _episode_changes(workspace), exec=True)

    assert operation.apply() == "committed"

    assert sorted(path.name for path in workspace.iterdir()) == ["1.mkv", "2.mkv", "3.mkv"]
    assert operation.backup_path == backups.path_for(workspace)
    data = json.loads(operation.backup_path.read_text(encoding="utf-8"))
    assert data["working_dir"] == str(workspace)
    assert [entry["source"] for entry in data["operations"]] == EPISODES


def test_execute_then_undo_restores_names(workspace: Path, backups: BackupRepository) -> None:
    """Committing and then undoing returns every file to its original name."""
    _touch(workspace, *EPISODES)
    _operation(workspace, backups, _episode_changes(workspace), exec=True).apply()

    undo = _undo(workspace, backups, exec=True)

    assert undo.undo() == "reverted"
    assert sorted(path.name for path in workspace.iterdir()) == EPISODES
    assert (workspace / EPISODES[0]).read_text(encoding="utf-8") == EPISODES[0]
    assert not backups.exists(workspace)


def test_undo_dry_run_keeps_backup(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, *EPISODES)
    _operation(workspace, backups, _episode_changes(workspace), exec=True).apply()

    undo = _undo(workspace, backups)

    assert undo.undo() == "dry_run"
    assert [change.target for change in undo.changes] == EPISODES
    assert sorted(path.name for path in workspace.iterdir()) == ["1.mkv", "2.mkv", "3.mkv"]
    assert backups.exists(workspace)


def test_undo_without_backup_raises(workspace: Path, backups: BackupRepository) -> None:
    with pytest.raises(BackupNotFoundError):
        _undo(workspace, backups, exec=True).undo()


def test_conflicts_abort_before_any_rename(workspace: Path, backups: BackupRepository) -> None:
    """Unresolved conflicts stop the whole batch before the filesystem is touched."""
    _touch(workspace, "abc.pdf", "abc.epub", "one.txt")
    changes = [
        _change(workspace, "one.txt", "two.txt"),
        _change(workspace, "abc.pdf", "abc.epub"),
    ]
    operation = _operation(workspace, backups, changes, exec=True)

    with pytest.raises(ConflictDetectedError) as excinfo:
        operation.apply()

    conflict = excinfo.value.conflicts[ConflictType.FILE_EXISTS][0]
    assert conflict.sources == [str(workspace / "abc.pdf")]
    assert conflict.target == str(workspace / "abc.epub")
    assert sorted(path.name for path in workspace.iterdir()) == ["abc.epub", "abc.pdf", "one.txt"]
    assert not backups.exists(workspace)


def test_fix_conflicts_commits_renumbered_targets(
    workspace: Path, backups: BackupRepository
) -> None:
    _touch(workspace, "abc.txt", "xyz.txt", "123.txt", "123 (3).txt")
    changes = [
        _change(workspace, "abc.txt", "123.txt"),
        _change(workspace, "xyz.txt", "123.txt"),
    ]

    outcome = _operation(workspace, backups, changes, exec=True, fix_conflicts=True).apply()

    assert outcome == "committed"
    assert (workspace / "123 (2).txt").read_text(encoding="utf-8") == "abc.txt"
    assert (workspace / "123 (4).txt").read_text(encoding="utf-8") == "xyz.txt"


def test_chained_renames_use_vacated_paths(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, "a.txt", "b.txt")
    changes = [_change(workspace, "a.txt", "c.txt"), _change(workspace, "b.txt", "a.txt")]

    _operation(workspace, backups, changes, exec=True).apply()

    assert (workspace / "c.txt").read_text(encoding="utf-8") == "a.txt"
    assert (workspace / "a.txt").read_text(encoding="utf-8") == "b.txt"
    assert not (workspace / "b.txt").exists()


def test_undo_restores_chained_renames(workspace: Path, backups: BackupRepository) -> None:
    """Undo replays a chain backwards so each original name is free when restored."""
    _touch(workspace, "a.txt", "b.txt")
    changes = [_change(workspace, "a.txt", "c.txt"), _change(workspace, "b.txt", "a.txt")]
    assert _operation(workspace, backups, changes, exec=True).apply() == "committed"

    undo = _undo(workspace, backups, exec=True)

    assert undo.undo() == "reverted"
    assert [change.source for change in undo.changes] == ["a.txt", "c.txt"]
    assert sorted(path.name for path in workspace.iterdir()) == ["a.txt", "b.txt"]
    assert (workspace / "a.txt").read_text(encoding="utf-8") == "a.txt"
    assert (workspace / "b.txt").read_text(encoding="utf-8") == "b.txt"
    assert not backups.exists(workspace)


def test_renumbered_item_vacates_path_for_later_item(
    workspace: Path, backups: BackupRepository
) -> None:
    """A source moved aside by auto-fix still frees its old name for later items."""
    _touch(workspace, "a.txt", "b.txt", "c.txt")
    changes = [_change(workspace, "a.txt", "b.txt"), _change(workspace, "c.txt", "a.txt")]
    operation = _operation(workspace, backups, changes, exec=True, fix_conflicts=True)

    assert operation.apply() == "committed"
    assert [change.target for change in operation.changes] == ["b (2).txt", "a.txt"]
    assert sorted(path.name for path in workspace.iterdir()) == ["a.txt", "b (2).txt", "b.txt"]
    assert (workspace / "b (2).txt").read_text(encoding="utf-8") == "a.txt"
    assert (workspace / "a.txt").read_text(encoding="utf-8") == "c.txt"
    assert (workspace / "b.txt").read_text(encoding="utf-8") == "b.txt"

    assert _undo(workspace, backups, exec=True).undo() == "reverted"
    assert sorted(path.name for path in workspace.iterdir()) == ["a.txt", "b.txt", "c.txt"]
    assert (workspace / "a.txt").read_text(encoding="utf-8") == "a.txt"
    assert (workspace / "c.txt").read_text(encoding="utf-8") == "c.txt"


def test_allow_overwrites_replaces_existing_file(
    workspace: Path, backups: BackupRepository
) -> None:
    _touch(workspace, "abc.pdf", "abc.epub")
    changes = [_change(workspace, "abc.pdf", "abc.epub")]

    _operation(workspace, backups, changes, exec=True, allow_overwrites=True).apply()

    assert [path.name for path in workspace.iterdir()] == ["abc.epub"]
    assert (workspace / "abc.epub").read_text(encoding="utf-8") == "abc.pdf"


def test_target_in_new_subdirectory_is_created(
    workspace: Path, backups: BackupRepository
) -> None:
    _touch(workspace, "song.mp3")

    changes = [_change(workspace, "song.mp3", "music/song.mp3")]

    _operation(workspace, backups, changes, exec=True).apply()

    assert (workspace / "music" / "song.mp3").is_file()


def test_partial_failure_keeps_successes_and_backs_them_up(
    workspace: Path, backups: BackupRepository
) -> None:
    """One failing rename does not stop the rest of the batch."""
    _touch(workspace, "a.txt", "b.txt", "c.txt", "blocker")
    changes = [
        _change(workspace, "a.txt", "a2.txt"),
        _change(workspace, "b.txt", "blocker/b.txt"),
        _change(workspace, "c.txt", "c2.txt"),
    ]
    operation = _operation(workspace, backups, changes, exec=True)

    with pytest.raises(PartialRenameError) as excinfo:
        operation.apply()

    assert str(excinfo.value) == "Some files could not be renamed."
    assert excinfo.value.failures == [1]
    assert operation.errors == [1]
    assert (workspace / "a2.txt").exists()
    assert (workspace / "c2.txt").exists()
    assert (workspace / "b.txt").exists()

    record = backups.load(workspace)
    assert len(record.operations) == 3
    assert record.operations[1].error.startswith("FileExistsError")
    assert record.operations[0].error is None


def test_undo_skips_failed_entries(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, "a.txt", "b.txt", "blocker")
    changes = [
        _change(workspace, "a.txt", "a2.txt"),
        _change(workspace, "b.txt", "blocker/b.txt"),
    ]
    with pytest.raises(PartialRenameError):
        _operation(workspace, backups, changes, exec=True).apply()

    undo = _undo(workspace, backups, exec=True)

    assert undo.undo() == "reverted"
    assert [change.source for change in undo.changes] == ["a2.txt"]
    assert sorted(path.name for path in workspace.iterdir()) == ["a.txt", "b.txt", "blocker"]


def test_total_failure_writes_no_backup(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, "b.txt", "blocker")
    operation = _operation(
        workspace, backups, [_change(workspace, "b.txt", "blocker/b.txt")], exec=True
    )

    with pytest.raises(RenameFailedError) as excinfo:
        operation.apply()

    assert not isinstance(excinfo.value, PartialRenameError)
    assert str(excinfo.value) == "The renaming operation failed due to the above errors"
    assert not backups.exists(workspace)


def test_undo_reports_conflict_when_original_name_reused(
    workspace: Path, backups: BackupRepository
) -> None:
    _touch(workspace, "a.txt")
    _operation(workspace, backups, [_change(workspace, "a.txt", "b.txt")], exec=True).apply()
    _touch(workspace, "a.txt")

    with pytest.raises(ConflictDetectedError):
        _undo(workspace, backups, exec=True).undo()

    assert backups.exists(workspace)


def test_confirmation_can_cancel(workspace: Path, backups: BackupRepository) -> None:
    _touch(workspace, "a.txt")
    operation = Operation(
        [_change(workspace, "a.txt", "b.txt")],
        OperationOptions(exec=True),
        working_dir=workspace,
        backups=backups,
        policy=POSIX,
        confirm=lambda _: False,
    )

    assert operation.apply() == "cancelled"
    assert (workspace / "a.txt").exists()
    assert not backups.exists(workspace)


def test_directory_and_contents_round_trip(workspace: Path, backups: BackupRepository) -> None:
    """Renaming a directory and a file inside it can be undone in order."""
    (workspace / "docs").mkdir()
    _touch(workspace / "docs", "note.txt")
    chain = ReplacementChain(["o"], ["0"])
    candidates = DirectoryScanner(recursive=True).scan([workspace])
    changes = [chain.rename(change) for change in find_matches(candidates, chain, include_dir=True)]

    operation = _operation(workspace, backups, changes, exec=True, include_dir=True)
    assert operation.apply() == "committed"
    assert [change.source for change in operation.changes] == ["note.txt", "docs"]
    assert (workspace / "d0cs" / "n0te.txt").is_file()

    assert _undo(workspace, backups, exec=True).undo() == "reverted"
    assert (workspace / "docs" / "note.txt").is_file()
    assert not (workspace / "d0cs").exists()


def test_sort_changes_orders_files_before_parents() -> None:
    changes = [
        Change(base_dir="root", source="top", target="top2", is_dir=True),
        Change(base_dir="root/top/inner", source="f.txt", target="g.txt"),
        Change(base_dir="root/top", source="inner", target="inner2", is_dir=True),
    ]

    forward = sort_changes(changes)
    revert = sort_changes([change.swapped() for change in forward], revert=True)

    assert [change.source for change in forward] == ["f.txt", "inner", "top"]
    assert [change.source for change in revert] == ["top2", "inner2", "g.txt"]
