"""Backup record errors."""


class BackupError(Exception):
    """Base exception for backup repository operations."""


class BackupNotFoundError(BackupError):
    """Raised when no backup record exists for a working directory."""
