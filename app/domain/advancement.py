"""Session advancement marks — skills that rolled a 1 or 20 this session."""

from __future__ import annotations

from collections import defaultdict


class AdvancementMarks:
    def __init__(self) -> None:
        self._marks: dict[str, set[str]] = defaultdict(set)

    def mark(self, character_id: str, skill_name: str) -> bool:
        """Mark a skill. Returns False if it was already marked."""
        marks = self._marks[character_id]
        if skill_name in marks:
            return False
        marks.add(skill_name)
        return True

    def marked(self, character_id: str) -> list[str]:
        return sorted(self._marks.get(character_id, ()))

    def clear(self, character_id: str) -> None:
        self._marks.pop(character_id, None)
