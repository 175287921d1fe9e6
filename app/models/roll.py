"""Roll schemas — dice, modifiers, requests, outcomes and history entries."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class Die(IntEnum):
    D4 = 4
    D6 = 6
    D8 = 8
    D10 = 10
    D12 = 12
    D20 = 20

    def __str__(self) -> str:
        return f"d{self.value}"


class RollMode(str, Enum):
    SKILL_CHECK = "skill_check"
    DEATH_ROLL = "death_roll"
    RALLY_ROLL = "rally_roll"
    RECOVERY_ROLL = "recovery_roll"
    ADVANCEMENT_ROLL = "advancement_roll"
    REST = "rest"
    INITIATIVE = "initiative"
    GENERIC = "generic"


class RestType(str, Enum):
    ROUND = "round"
    STRETCH = "stretch"
    SHIFT = "shift"


class Critical(str, Enum):
    DRAGON = "Dragon"
    DEMON = "Demon"


MAX_MODIFIER_COUNT = 3


class Modifier(BaseModel):
    """Boon/bane state for a single-d20 roll: none, boon(n) or bane(n), n in 1..3."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["none", "boon", "bane"] = "none"
    count: int = 0

    @model_validator(mode="after")
    def _check_count(self) -> Modifier:
        if self.kind == "none":
            if self.count != 0:
                raise ValueError("A modifier of kind 'none' has no count")
        elif not 1 <= self.count <= MAX_MODIFIER_COUNT:
            raise ValueError(
                f"{self.kind.capitalize()} count must be between 1 and {MAX_MODIFIER_COUNT}"
            )
        return self

    @classmethod
    def none(cls) -> Modifier:
        return cls()

    @classmethod
    def boon(cls, count: int = 1) -> Modifier:
        return cls(kind="boon", count=count)

    @classmethod
    def bane(cls, count: int = 1) -> Modifier:
        return cls(kind="bane", count=count)

    @property
    def is_active(self) -> bool:
        return self.kind != "none"

    def press_boon(self) -> Modifier:
        """Cycle none -> boon(1) -> boon(2) -> boon(3) -> none. Replaces any bane."""
        return self._press("boon")

    def press_bane(self) -> Modifier:
        """Cycle none -> bane(1) -> bane(2) -> bane(3) -> none. Replaces any boon."""
        return self._press("bane")

    def _press(self, kind: Literal["boon", "bane"]) -> Modifier:
        if self.kind != kind:
            return Modifier(kind=kind, count=1)
        if self.count < MAX_MODIFIER_COUNT:
            return Modifier(kind=kind, count=self.count + 1)
        return Modifier.none()


class DieResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    die: Die
    value: int


class RollRequest(BaseModel):
    """A request to roll a dice pool in a given mode."""

    dice_pool: list[Die]
    mode: RollMode = RollMode.GENERIC
    rest_type: RestType | None = None
    modifier: Modifier = Field(default_factory=Modifier.none)
    target_value: int | None = None
    skill_name: str | None = None
    combatant_id: str | None = None
    rest_healer_present: bool = False
    description: str | None = None

    @property
    def is_single_d20(self) -> bool:
        return len(self.dice_pool) == 1 and self.dice_pool[0] == Die.D20


class RollOutcome(BaseModel):
    """Classified result of a roll."""

    raw_results: list[DieResult]
    modifier_results: list[DieResult] = []
    extra_results: list[DieResult] = []
    final_value: int | str
    numeric_value: int
    critical: Critical | None = None
    is_success: bool | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_critical(self) -> bool:
        return self.critical is not None


def _history_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RollHistoryEntry(BaseModel):
    """Immutable audit record of one resolved roll."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_history_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    character_id: str | None = None
    description: str
    mode: RollMode
    rest_type: RestType | None = None
    dice_pool: list[Die]
    modifier: Modifier
    target_value: int | None = None
    skill_name: str | None = None
    raw_results: list[DieResult]
    modifier_results: list[DieResult] = []
    extra_results: list[DieResult] = []
    final_value: int | str
    is_critical: bool = False
    is_success: bool | None = None

    @classmethod
    def from_roll(
        cls,
        request: RollRequest,
        outcome: RollOutcome,
        character_id: str | None = None,
    ) -> RollHistoryEntry:
        description = request.description or f"{', '.join(str(d) for d in request.dice_pool)} Roll"
        return cls(
            character_id=character_id,
            description=description,
            mode=request.mode,
            rest_type=request.rest_type,
            dice_pool=list(request.dice_pool),
            modifier=request.modifier,
            target_value=request.target_value,
            skill_name=request.skill_name,
            raw_results=list(outcome.raw_results),
            modifier_results=list(outcome.modifier_results),
            extra_results=list(outcome.extra_results),
            final_value=outcome.final_value,
            is_critical=outcome.is_critical,
            is_success=outcome.is_success,
        )

    def summary(self) -> str:
        """One-line text rendering, e.g. ``Skill Check: Result: Dragon CRITICAL! Success``."""
        text = f"{self.description}: Result: {self.final_value}"
        if self.modifier.is_active:
            text += f" ({self.modifier.kind.capitalize()} x{self.modifier.count})"
        if self.is_critical:
            text += " CRITICAL!"
        if self.is_success is not None:
            text += " Success" if self.is_success else " Failure"
        return text
