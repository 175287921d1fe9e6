"""Character and combatant persistence — SQLAlchemy-backed services used by the engine."""

from __future__ import annotations

import json
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.errors import CharacterNotFound
from app.models.character import CharacterAggregate, CharacterVitals, default_conditions
from app.models.db_models import Character, Combatant

VITALS_FIELDS = (
    "current_hp",
    "max_hp",
    "current_wp",
    "max_wp",
    "death_rolls_passed",
    "death_rolls_failed",
    "is_rallied",
)


class CharacterService(Protocol):
    async def fetch_character_aggregate(self, character_id: str) -> CharacterAggregate | None: ...

    async def save_partial(self, character_id: str, fields: dict) -> CharacterAggregate: ...


class CombatantService(Protocol):
    async def record_initiative(self, combatant_id: str, value: int) -> None: ...


# --- Characters ---


async def create_character(
    db: AsyncSession,
    name: str,
    max_hp: int = 10,
    max_wp: int = 10,
    current_hp: int | None = None,
    current_wp: int | None = None,
    attributes: dict[str, int] | None = None,
    skill_levels: dict[str, int] | None = None,
    user_id: str | None = None,
    party_id: str | None = None,
    kin: str | None = None,
    profession: str | None = None,
) -> Character:
    attrs = {"STR": 10, "AGL": 10, "INT": 10, "CHA": 10, "CON": max_hp, "WIL": max_wp}
    if attributes:
        attrs.update({k.upper(): v for k, v in attributes.items()})
    row = Character(
        name=name,
        user_id=user_id,
        party_id=party_id,
        kin=kin,
        profession=profession,
        attributes_json=json.dumps(attrs),
        skill_levels_json=json.dumps(skill_levels or {}),
        max_hp=max_hp,
        max_wp=max_wp,
        current_hp=max_hp if current_hp is None else current_hp,
        current_wp=max_wp if current_wp is None else current_wp,
        conditions_json=json.dumps(default_conditions()),
    )
    db.add(row)
    await db.flush()
    return row


async def get_character(db: AsyncSession, character_id: str) -> Character | None:
    result = await db.execute(select(Character).where(Character.id == character_id))
    return result.scalar_one_or_none()


def to_aggregate(row: Character) -> CharacterAggregate:
    conditions = default_conditions()
    if row.conditions_json:
        conditions.update(json.loads(row.conditions_json))
    return CharacterAggregate(
        id=row.id,
        name=row.name,
        attributes=json.loads(row.attributes_json) if row.attributes_json else {},
        skill_levels=json.loads(row.skill_levels_json) if row.skill_levels_json else {},
        vitals=CharacterVitals(
            current_hp=row.current_hp,
            max_hp=row.max_hp,
            current_wp=row.current_wp,
            max_wp=row.max_wp,
            conditions=conditions,
            death_rolls_passed=row.death_rolls_passed,
            death_rolls_failed=row.death_rolls_failed,
            is_rallied=row.is_rallied,
        ),
    )


def apply_fields(row: Character, fields: dict) -> None:
    """Write a partial update onto a row. Unknown keys are rejected."""
    for key, value in fields.items():
        if key in VITALS_FIELDS:
            setattr(row, key, value)
        elif key == "conditions":
            row.conditions_json = json.dumps(value)
        elif key == "attributes":
            row.attributes_json = json.dumps(value)
        elif key == "skill_levels":
            row.skill_levels_json = json.dumps(value)
        else:
            raise ValueError(f"Field '{key}' is not writable by the engine")


class SqlCharacterService:
    """Character service over the application database. One transaction per save."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch_character_aggregate(self, character_id: str) -> CharacterAggregate | None:
        async with self._session_factory() as db:
            row = await get_character(db, character_id)
            return to_aggregate(row) if row is not None else None

    async def save_partial(self, character_id: str, fields: dict) -> CharacterAggregate:
        async with self._session_factory() as db:
            try:
                row = await get_character(db, character_id)
                if row is None:
                    raise CharacterNotFound(f"Character {character_id} not found")
                apply_fields(row, fields)
                saved = to_aggregate(row)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return saved


# --- Combatants ---


async def create_combatant(
    db: AsyncSession,
    encounter_id: str,
    display_name: str,
    character_id: str | None = None,
) -> Combatant:
    combatant = Combatant(
        encounter_id=encounter_id,
        display_name=display_name,
        character_id=character_id,
    )
    db.add(combatant)
    await db.flush()
    return combatant


async def get_combatant(db: AsyncSession, combatant_id: str) -> Combatant | None:
    result = await db.execute(select(Combatant).where(Combatant.id == combatant_id))
    return result.scalar_one_or_none()


class SqlCombatantService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_initiative(self, combatant_id: str, value: int) -> None:
        async with self._session_factory() as db:
            combatant = await get_combatant(db, combatant_id)
            if combatant is None:
                raise LookupError(f"Combatant {combatant_id} not found")
            combatant.initiative_roll = value
            await db.commit()
