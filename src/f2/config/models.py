"""Configuration models describing f2 settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class F2BaseModel(BaseModel):
    """Shared configuration for f2 settings models."""

    model_config = ConfigDict(extra="forbid")


class ConflictOptions(F2BaseModel):
    """Defaults for conflict handling.

    Attributes:
        fix_conflicts: Automatically rewrite conflicting targets.
        allow_overwrites: Allow renames to replace existing entries.
    """

    fix_conflicts: bool = False
    allow_overwrites: bool = False


class MatchingOptions(F2BaseModel):
    """Defaults for candidate discovery and matching.

    Attributes:
        include_hidden: Include dotfiles and hidden entries.
        include_dir: Rename matching directories as well as files.
        ignore_case: Match find patterns case-insensitively.
        ignore_ext: Leave file extensions out of matching and replacement.
        max_depth: Recursion depth limit (0 for unlimited).
    """

    include_hidden: bool = False
    include_dir: bool = False
    ignore_case: bool = False
    ignore_ext: bool = False
    max_depth: int = Field(default=0, ge=0)


class BackupSettings(F2BaseModel):
    """Backup record location.

    Attributes:
        data_dir: Overrides the per-user data directory backups are kept under.
    """

    data_dir: Optional[str] = None


class LoggingSettings(F2BaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; enables a rotating file handler.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(F2BaseModel):
    """CLI presentation defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        verbose_default: Whether commands report every rename by default.
    """

    quiet_default: bool = False
    verbose_default: bool = False


class F2Config(F2BaseModel):
    """Top-level configuration for f2.

    Attributes:
        conflicts: Conflict handling defaults.
        matching: Discovery and matching defaults.
        backup: Backup location settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    conflicts: ConflictOptions = Field(default_factory=ConflictOptions)
    matching: MatchingOptions = Field(default_factory=MatchingOptions)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "F2BaseModel",
    "ConflictOptions",
    "MatchingOptions",
    "BackupSettings",
    "LoggingSettings",
    "CLIOptions",
    "F2Config",
]
