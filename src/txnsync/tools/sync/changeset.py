from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TransactionRecord = dict[str, Any]


@dataclass
class ChangeSet:
    """Accumulated added / modified / removed records across all pages."""

    added: list[TransactionRecord] = field(default_factory=list)
    modified: list[TransactionRecord] = field(default_factory=list)
    removed: list[TransactionRecord] = field(default_factory=list)

    def extend(self, other: ChangeSet) -> None:
        self.added.extend(other.added)
        self.modified.extend(other.modified)
        self.removed.extend(other.removed)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)

    @property
    def counts(self) -> tuple[int, int, int]:
        return len(self.added), len(self.modified), len(self.removed)

    def removed_ids(self, id_field: str) -> list[str]:
        return [str(r[id_field]) for r in self.removed if r.get(id_field) is not None]
