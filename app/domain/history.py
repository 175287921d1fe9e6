"""Roll history — bounded, append-only log of resolved rolls."""

from __future__ import annotations

from collections import deque

from app.infra.config import settings
from app.models.roll import RollHistoryEntry


class RollHistoryLog:
    """Ring buffer of RollHistoryEntry; the oldest entry is evicted first."""

    def __init__(self, capacity: int | None = None) -> None:
        self._entries: deque[RollHistoryEntry] = deque(
            maxlen=capacity if capacity is not None else settings.history_capacity
        )

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: RollHistoryEntry) -> None:
        self._entries.append(entry)

    def entries(self, character_id: str | None = None) -> list[RollHistoryEntry]:
        """Newest first, optionally limited to one character."""
        items = reversed(self._entries)
        if character_id is not None:
            return [e for e in items if e.character_id == character_id]
        return list(items)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
