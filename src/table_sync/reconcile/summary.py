"""
Reconcile result summary.

Counts are accumulated while statements succeed, so a Summary always
describes work that was actually applied rather than work that was planned.
"""

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


class SyncStatus(StrEnum):
    CHANGED = "CHANGED"
    NO_OP = "NO_OP"


@dataclass
class Summary:
    """Rows deleted, updated, inserted and left unchanged by one reconcile."""

    deleted: int = 0
    updated: int = 0
    inserted: int = 0
    unchanged: int = 0

    @classmethod
    def starting_from(cls, snapshot_size: int) -> "Summary":
        """Every snapshot row counts as unchanged until it is deleted or updated."""
        return cls(unchanged=snapshot_size)

    def record_delete(self) -> None:
        self.deleted += 1
        self.unchanged -= 1

    def record_update(self) -> None:
        self.updated += 1
        self.unchanged -= 1

    def record_insert(self) -> None:
        self.inserted += 1

    @property
    def changed(self) -> bool:
        return bool(self.deleted or self.updated or self.inserted)

    @property
    def status(self) -> SyncStatus:
        return SyncStatus.CHANGED if self.changed else SyncStatus.NO_OP

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {**asdict(self), "status": str(self.status)}
