"""Append-only version history of an analysis.

Pure domain logic: the history lives inside ``VisionAnalysis.meta`` and this
class guards its invariants before it is written back.
"""
from datetime import datetime
from typing import Any, Iterable

from vision_builder.schemas.vision import VersionHistoryEntry


class VersionHistory:
    """Ordered log of vision variants.

    Invariants:
        - ``append`` is the only mutation; entries are never edited or removed
        - the first entry has type ``original`` and no later entry does
        - timestamps never decrease, so insertion order is chronological order
    """

    def __init__(self, entries: Iterable[VersionHistoryEntry] = ()):
        self._entries: list[VersionHistoryEntry] = []
        for entry in entries:
            self.append(entry)

    @classmethod
    def from_meta(cls, raw: list[dict[str, Any]] | None) -> "VersionHistory":
        """Build from the JSON list stored in ``meta.version_history``."""
        return cls(VersionHistoryEntry.model_validate(item) for item in raw or [])

    def append(self, entry: VersionHistoryEntry) -> None:
        if not self._entries and entry.type != "original":
            raise ValueError(f"First version history entry must be 'original', got '{entry.type}'")
        if self._entries and entry.type == "original":
            raise ValueError("Only the first version history entry may be 'original'")
        if self._entries and entry.timestamp < self._entries[-1].timestamp:
            raise ValueError("Version history entries must be appended in chronological order")
        self._entries.append(entry)

    def next_timestamp(self, now: datetime) -> datetime:
        """Timestamp for a new entry: ``now`` unless the clock is behind the latest entry."""
        latest = self.latest
        if latest is not None and latest.timestamp > now:
            return latest.timestamp
        return now

    @property
    def entries(self) -> tuple[VersionHistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> VersionHistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)
