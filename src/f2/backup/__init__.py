"""Backup persistence for reversible rename operations."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from .errors import BackupError, BackupNotFoundError
from .models import BackupRecord

LOGGER = logging.getLogger(__name__)

APP_DIRNAME = "f2"
BACKUP_DIRNAME = "backups"


def default_data_dir() -> Path:
    """Return the per-user data directory for the current platform.

    Returns:
        Path: ``%LOCALAPPDATA%`` on Windows, ``~/Library/Application Support`` on
            macOS, and ``$XDG_DATA_HOME`` or ``~/.local/share`` elsewhere.
    """
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base)
        return Path(os.environ.get("USERPROFILE", Path.home())) / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def sanitize_working_dir(working_dir: str, *, windows: bool | None = None) -> str:
    """Return ``working_dir`` flattened into a single file name component.

    Args:
        working_dir: Absolute working directory.
        windows: Also replace drive colons. Defaults to the current platform.

    Returns:
        str: Name with path separators (and colons on Windows) replaced by ``_``.
    """
    if windows is None:
        windows = sys.platform.startswith("win")
    sanitized = working_dir.replace(os.sep, "_")
    if windows:
        sanitized = sanitized.replace("/", "_").replace(":", "_")
    return sanitized


class BackupRepository:
    """Manage the backup record kept for each working directory."""

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialize the repository.

        Args:
            data_dir: Base per-user data directory. Records live under
                ``<data_dir>/f2/backups``.
        """
        self._data_dir = data_dir or default_data_dir()

    @property
    def backup_dir(self) -> Path:
        """Return the directory holding backup records.

        Returns:
            Path: Directory containing one JSON record per working directory.
        """
        return self._data_dir / APP_DIRNAME / BACKUP_DIRNAME

    def path_for(self, working_dir: str | Path) -> Path:
        """Return the record path for ``working_dir``.

        Args:
            working_dir: Absolute working directory.

        Returns:
            Path: Location of the JSON record.
        """
        return self.backup_dir / f"{sanitize_working_dir(str(working_dir))}.json"

    def exists(self, working_dir: str | Path) -> bool:
        """Return whether a record exists for ``working_dir``."""
        return self.path_for(working_dir).is_file()

    def load(self, working_dir: str | Path) -> BackupRecord:
        """Load the record for ``working_dir``.

        Args:
            working_dir: Absolute working directory.

        Returns:
            BackupRecord: Deserialized record.

        Raises:
            BackupNotFoundError: If no record exists.
            BackupError: If the stored data cannot be parsed.
        """
        path = self.path_for(working_dir)
        if not path.is_file():
            raise BackupNotFoundError(f"No backup found for {working_dir}")

        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise BackupError(f"Invalid backup data in {path}: {exc}") from exc
        except OSError as exc:
            raise BackupError(f"Unable to read backup file {path}: {exc}") from exc

        try:
            return BackupRecord.model_validate(data)
        except ValidationError as exc:
            raise BackupError(f"Invalid backup data in {path}: {exc}") from exc

    def save(self, record: BackupRecord) -> Path:
        """Persist ``record``, replacing any earlier record for its working directory.

        Args:
            record: Record to serialize.

        Returns:
            Path: Location the record was written to.

        Raises:
            BackupError: If the record cannot be written.
        """
        path = self.path_for(record.working_dir)
        staging = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with staging.open("w", encoding="utf-8") as handle:
                json.dump(record.to_payload(), handle, indent=4)
                handle.flush()
                os.fsync(handle.fileno())
            staging.replace(path)
        except OSError as exc:
            staging.unlink(missing_ok=True)
            raise BackupError(f"Unable to write backup file {path}: {exc}") from exc

        LOGGER.debug("Wrote backup record %s", path)
        return path

    def delete(self, working_dir: str | Path) -> None:
        """Remove the record for ``working_dir`` if present.

        Raises:
            OSError: If the record exists but cannot be removed.
        """
        self.path_for(working_dir).unlink(missing_ok=True)


__all__ = [
    "BackupRepository",
    "BackupRecord",
    "BackupError",
    "BackupNotFoundError",
    "default_data_dir",
    "sanitize_working_dir",
]
