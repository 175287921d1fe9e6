"""Character aggregate schemas — the vitals subset the engine reads and writes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

# Fixed enumeration order; a Stretch rest clears the first active one.
CONDITIONS: tuple[str, ...] = (
    "exhausted",
    "sickly",
    "dazed",
    "angry",
    "scared",
    "disheartened",
)

MAX_DEATH_ROLLS = 3
MAX_SKILL_LEVEL = 18

# Attributes that drive a maximum: CON -> max_hp, WIL -> max_wp.
ATTRIBUTE_MAXIMA = {"CON": "max_hp", "WIL": "max_wp"}
ATTRIBUTE_CURRENT = {"CON": "current_hp", "WIL": "current_wp"}


def default_conditions() -> dict[str, bool]:
    return {name: False for name in CONDITIONS}


class LifeState(str, Enum):
    ALIVE = "alive"
    DYING = "dying"
    STABILIZED = "stabilized"
    DECEASED = "deceased"


class CharacterVitals(BaseModel):
    current_hp: int
    max_hp: int
    current_wp: int
    max_wp: int
    conditions: dict[str, bool] = Field(default_factory=default_conditions)
    death_rolls_passed: int = 0
    death_rolls_failed: int = 0
    is_rallied: bool = False

    @property
    def life_state(self) -> LifeState:
        if self.death_rolls_failed >= MAX_DEATH_ROLLS:
            return LifeState.DECEASED
        if self.death_rolls_passed >= MAX_DEATH_ROLLS:
            return LifeState.STABILIZED
        if self.current_hp <= 0:
            return LifeState.DYING
        return LifeState.ALIVE

    def active_conditions(self) -> list[str]:
        """Active condition names, known conditions first in enumeration order."""
        ordered = [c for c in CONDITIONS if self.conditions.get(c)]
        extra = [c for c, on in self.conditions.items() if on and c not in CONDITIONS]
        return ordered + extra


class CharacterAggregate(BaseModel):
    """The character as loaded from the character service."""

    id: str
    name: str
    attributes: dict[str, int] = {}
    skill_levels: dict[str, int] = {}
    vitals: CharacterVitals

    def skill_level(self, skill_name: str) -> int:
        return self.skill_levels.get(skill_name, 0)

    def with_vitals(self, vitals: CharacterVitals) -> CharacterAggregate:
        return self.model_copy(update={"vitals": vitals})
