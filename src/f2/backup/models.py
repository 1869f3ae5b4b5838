"""Backup record models for reversible rename operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

from pydantic import BaseModel, Field

from f2.renaming.models import Change


class BackupRecord(BaseModel):
    """Snapshot of a committed rename batch.

    Attributes:
        working_dir: Absolute working directory the batch was run from.
        date: UTC time the record was written.
        operations: Every change in the batch as committed.
    """

    working_dir: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    operations: List[Change] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready representation written to disk."""
        payload = self.model_dump(mode="json", exclude_none=True)
        payload["date"] = self.date.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return payload


__all__ = ["BackupRecord"]
