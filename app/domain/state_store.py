"""Character state store — canonical in-memory aggregates with optimistic writes.

Each resolution is applied as one combined write through the character
service. If the save fails the aggregate is put back to its last persisted
value and the failed write is kept as pending so the caller can retry it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from app.domain.character import CharacterService
from app.domain.errors import CharacterNotFound, DomainViolation, EngineError, PersistenceFailure
from app.domain.rules.effects import Effect
from app.models.character import CharacterAggregate

logger = logging.getLogger("sheet-engine.state")

# Aggregate fields stored beside the vitals rather than inside them.
SHEET_FIELDS = ("attributes", "skill_levels")


def changed_fields(before: CharacterAggregate, after: CharacterAggregate) -> dict:
    """Partial update containing only what differs between two aggregates."""
    fields: dict = {}
    old = before.vitals.model_dump()
    new = after.vitals.model_dump()
    for name, value in new.items():
        if old[name] != value:
            fields[name] = value
    if after.attributes != before.attributes:
        fields["attributes"] = dict(after.attributes)
    if after.skill_levels != before.skill_levels:
        fields["skill_levels"] = dict(after.skill_levels)
    return fields


def merge_fields(aggregate: CharacterAggregate, fields: dict) -> CharacterAggregate:
    vitals_update = {k: v for k, v in fields.items() if k not in SHEET_FIELDS}
    merged = aggregate.with_vitals(aggregate.vitals.model_copy(update=vitals_update))
    sheet_update = {k: dict(v) for k, v in fields.items() if k in SHEET_FIELDS}
    if sheet_update:
        merged = merged.model_copy(update=sheet_update)
    return merged


class CharacterStateStore:
    """Holds one aggregate per character and serializes resolutions per character."""

    def __init__(self, service: CharacterService) -> None:
        self._service = service
        self._aggregates: dict[str, CharacterAggregate] = {}
        self._pending: dict[str, dict] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, character_id: str) -> asyncio.Lock:
        return self._locks[character_id]

    def get(self, character_id: str) -> CharacterAggregate | None:
        return self._aggregates.get(character_id)

    def has_pending(self, character_id: str) -> bool:
        return character_id in self._pending

    async def load(self, character_id: str, refresh: bool = False) -> CharacterAggregate:
        """Return the cached aggregate, fetching it from the service on first use.

        A fetch takes the character's lock, so it can never land on top of a
        save made by a resolution running at the same time.
        """
        if not refresh and character_id in self._aggregates:
            return self._aggregates[character_id]
        async with self.lock(character_id):
            return await self.load_locked(character_id, refresh=refresh)

    async def load_locked(self, character_id: str, refresh: bool = False) -> CharacterAggregate:
        """Like ``load``, for callers that already hold the character's lock."""
        if not refresh and character_id in self._aggregates:
            return self._aggregates[character_id]
        aggregate = await self._service.fetch_character_aggregate(character_id)
        if aggregate is None:
            raise CharacterNotFound(f"Character {character_id} not found")
        self._aggregates[character_id] = aggregate
        return aggregate

    def forget(self, character_id: str) -> None:
        self._aggregates.pop(character_id, None)
        self._pending.pop(character_id, None)

    async def apply(self, character: CharacterAggregate, effect: Effect) -> CharacterAggregate:
        """Apply an effect as one write. Returns the persisted aggregate.

        Raises:
            PersistenceFailure: The save failed; local state was rolled back.
        """
        after = character.with_vitals(effect.vitals)
        if effect.attributes is not None:
            after = after.model_copy(update={"attributes": dict(effect.attributes)})
        if effect.skill_levels is not None:
            after = after.model_copy(update={"skill_levels": dict(effect.skill_levels)})

        # A new resolution supersedes any write that failed earlier.
        self._pending.pop(character.id, None)

        fields = changed_fields(character, after)
        if not fields:
            return character
        return await self._save(character, fields)

    async def retry(self, character_id: str) -> CharacterAggregate:
        """Re-send the write that last failed for this character. Call under its lock."""
        fields = self._pending.get(character_id)
        if fields is None:
            raise DomainViolation(f"No failed save to retry for character {character_id}")
        character = await self.load_locked(character_id)
        return await self._save(character, fields)

    async def _save(self, character: CharacterAggregate, fields: dict) -> CharacterAggregate:
        previous = character
        self._aggregates[character.id] = merge_fields(character, fields)
        try:
            saved = await self._service.save_partial(character.id, fields)
        except Exception as exc:
            self._aggregates[character.id] = previous
            if isinstance(exc, EngineError):
                raise
            self._pending[character.id] = fields
            logger.warning(
                "Saving character %s failed; rolled back to last persisted state",
                character.id,
                exc_info=True,
            )
            raise PersistenceFailure(f"Could not save character {character.id}: {exc}") from exc
        self._pending.pop(character.id, None)
        self._aggregates[character.id] = saved
        return saved
