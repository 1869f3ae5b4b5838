"""Presentation and runtime helpers shared by the f2 CLI commands."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from f2.config import ConfigError
from f2.config.models import LoggingSettings
from f2.renaming.models import Change, ConflictMap, ConflictType

if TYPE_CHECKING:
    from f2.renaming.executor import Operation

DRY_RUN_HINT = "Commit the above changes with the -x/--exec flag"
NO_MATCHES_MESSAGE = "Failed to match any files"
NO_UNDO_MESSAGE = "No operations to undo"

CONFLICT_ORDER: tuple[ConflictType, ...] = (
    ConflictType.EMPTY_FILENAME,
    ConflictType.TRAILING_PERIOD,
    ConflictType.FILE_EXISTS,
    ConflictType.OVERWRITING_NEW_PATH,
    ConflictType.INVALID_CHARACTERS,
    ConflictType.MAX_FILENAME_LENGTH_EXCEEDED,
)

_CONFLICT_LABELS = {
    ConflictType.EMPTY_FILENAME: "empty filename",
    ConflictType.TRAILING_PERIOD: "trailing periods are prohibited",
    ConflictType.FILE_EXISTS: "path already exists",
    ConflictType.OVERWRITING_NEW_PATH: "overwriting newly renamed path",
    ConflictType.INVALID_CHARACTERS: "invalid characters present: ({cause})",
    ConflictType.MAX_FILENAME_LENGTH_EXCEEDED: "exceeded maximum filename length of {cause}",
}

_HANDLER_MARKER = "_f2_handler"


def strip_error_prefix(text: str) -> str:
    """Return stored error text without its leading ``Name:`` prefix.

    Args:
        text: Error text recorded on a change, e.g. ``"FileExistsError: File exists"``.

    Returns:
        str: Human-oriented portion of the message.
    """

    _, separator, remainder = text.partition(": ")
    return remainder if separator else text


def describe_conflict(conflict_type: ConflictType, cause: str) -> str:
    """Return the status text shown for a conflict in tables."""
    return _CONFLICT_LABELS[conflict_type].format(cause=cause)


def ordered_conflicts(conflicts: ConflictMap) -> Iterable[tuple[ConflictType, list[Any]]]:
    """Yield conflict groups in display order, skipping empty groups."""
    for conflict_type in CONFLICT_ORDER:
        entries = conflicts.get(conflict_type)
        if entries:
            yield conflict_type, entries


def build_change_table(changes: Iterable[Change], *, title: str | None = None) -> Table:
    """Return a table listing each change with its resolution status.

    Args:
        changes: Changes to display in commit order.
        title: Optional table title.

    Returns:
        Table: Rich renderable with original, renamed, and status columns.
    """

    table = Table(title=title)
    table.add_column("Original", overflow="fold")
    table.add_column("Renamed", overflow="fold")
    table.add_column("Status")
    for change in changes:
        status = change.status.value
        style = "green" if status == "ok" else "yellow"
        table.add_row(
            escape(change.source_path),
            escape(change.target_path),
            f"[{style}]{status}[/{style}]",
        )
    return table


def build_conflict_table(conflicts: ConflictMap) -> Table:
    """Return a table with one row per implicated source of every conflict."""
    table = Table(title="Conflicts")
    table.add_column("Original", overflow="fold")
    table.add_column("Renamed", overflow="fold")
    table.add_column("Status")
    for conflict_type, entries in ordered_conflicts(conflicts):
        for conflict in entries:
            label = escape(describe_conflict(conflict_type, conflict.cause))
            for source in conflict.sources:
                table.add_row(escape(source), escape(conflict.target), f"[red]{label}[/red]")
    return table


def build_result_table(changes: list[Change], errors: Iterable[int]) -> Table:
    """Return a table of committed changes, successes first and failures last."""
    failed = set(errors)
    table = Table(title="Results")
    table.add_column("Original", overflow="fold")
    table.add_column("Renamed", overflow="fold")
    table.add_column("Result", overflow="fold")
    for index, change in enumerate(changes):
        if index in failed or change.is_unchanged:
            continue
        table.add_row(
            escape(change.source_path), escape(change.target_path), "[green]success[/green]"
        )
    for index in sorted(failed):
        change = changes[index]
        table.add_row(
            escape(change.source_path),
            escape(change.target_path),
            f"[red]{escape(strip_error_prefix(change.error or ''))}[/red]",
        )
    return table


def conflicts_payload(conflicts: ConflictMap) -> dict[str, list[dict[str, Any]]]:
    """Return conflicts keyed by type name in display order."""
    return {
        conflict_type.value: [conflict.model_dump(mode="json") for conflict in entries]
        for conflict_type, entries in ordered_conflicts(conflicts)
    }


def errors_payload(changes: list[Change], errors: Iterable[int]) -> list[dict[str, Any]]:
    """Return one entry per failed rename with its display error text."""
    return [
        {
            "source": changes[index].source_path,
            "target": changes[index].target_path,
            "error": strip_error_prefix(changes[index].error or ""),
        }
        for index in errors
    ]


def build_json_payload(operation: "Operation") -> dict[str, Any]:
    """Return the JSON description of an operation for ``--json`` output.

    Args:
        operation: Operation after ``apply`` or ``undo`` returned or raised.

    Returns:
        dict[str, Any]: Payload with ``conflicts`` and ``errors`` omitted when empty.
    """

    changes = []
    for change in operation.changes:
        entry = change.model_dump(mode="json", exclude_none=True)
        entry["status"] = change.status.value
        changes.append(entry)

    payload: dict[str, Any] = {
        "working_dir": operation.working_dir,
        "date": operation.date.isoformat().replace("+00:00", "Z"),
        "dry_run": operation.dry_run,
        "changes": changes,
    }
    if operation.conflicts:
        payload["conflicts"] = conflicts_payload(operation.conflicts)
    if operation.errors:
        payload["errors"] = errors_payload(operation.changes, operation.errors)
    if operation.warnings:
        payload["warnings"] = list(operation.warnings)
    return payload


def configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> None:
    """Configure the root logger for a CLI invocation.

    Installs a rich handler on stderr and, when ``settings.file`` is set, a
    rotating file handler. Handlers installed by an earlier call are replaced.

    Args:
        settings: Logging configuration section.
        verbose: Lower the threshold to INFO so each rename is reported.

    Raises:
        ConfigError: If the configured level is unknown or the log file cannot be opened.
    """

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown logging level: {settings.level}")
    if verbose:
        level = min(level, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True), show_path=False, show_time=False, markup=False
    )
    console_handler.setLevel(level)
    setattr(console_handler, _HANDLER_MARKER, True)
    root.addHandler(console_handler)

    file_level = level
    if settings.file:
        path = Path(settings.file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            raise ConfigError(f"Unable to open log file {path}: {exc}") from exc
        file_level = min(level, logging.INFO)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        setattr(file_handler, _HANDLER_MARKER, True)
        root.addHandler(file_handler)

    root.setLevel(min(level, file_level))


__all__ = [
    "CONFLICT_ORDER",
    "DRY_RUN_HINT",
    "NO_MATCHES_MESSAGE",
    "NO_UNDO_MESSAGE",
    "build_change_table",
    "build_conflict_table",
    "build_json_payload",
    "build_result_table",
    "configure_logging",
    "conflicts_payload",
    "describe_conflict",
    "errors_payload",
    "strip_error_prefix",
]
