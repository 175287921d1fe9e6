"""Direct transition schemas — manual/GM state changes that bypass the dice."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from app.models.roll import RestType


class TransitionKind(str, Enum):
    HP_CHANGE = "hp_change"
    WP_CHANGE = "wp_change"
    CONDITION_TOGGLE = "condition_toggle"
    DEATH_ROLL_STATE = "death_roll_state"
    DEATH_ROLL_ADJUST = "death_roll_adjust"
    RALLY_STATE = "rally_state"
    REST = "rest"
    ATTRIBUTE_CHANGE = "attribute_change"
    SKILL_LEVEL = "skill_level"
    INITIATIVE = "initiative"


# --- Vitals payloads ---


class HPChangePayload(BaseModel):
    kind: Literal["hp_change"] = "hp_change"
    delta: int
    reason: str = ""


class WPChangePayload(BaseModel):
    kind: Literal["wp_change"] = "wp_change"
    delta: int
    reason: str = ""


class ConditionTogglePayload(BaseModel):
    kind: Literal["condition_toggle"] = "condition_toggle"
    condition: str


# --- Death roll payloads ---


class DeathRollStatePayload(BaseModel):
    kind: Literal["death_roll_state"] = "death_roll_state"
    passed: int
    failed: int
    rallied: bool | None = None  # None keeps the current rallied flag


class DeathRollAdjustPayload(BaseModel):
    kind: Literal["death_roll_adjust"] = "death_roll_adjust"
    counter: Literal["passed", "failed"]
    amount: int


class RallyStatePayload(BaseModel):
    kind: Literal["rally_state"] = "rally_state"
    rallied: bool


# --- Recovery / sheet payloads ---


class RestPayload(BaseModel):
    kind: Literal["rest"] = "rest"
    rest_type: RestType
    healer_present: bool = False


class AttributeChangePayload(BaseModel):
    kind: Literal["attribute_change"] = "attribute_change"
    attribute: str  # CON or WIL drive a maximum; others are stored as-is
    value: int


class SkillLevelPayload(BaseModel):
    kind: Literal["skill_level"] = "skill_level"
    skill: str
    level: int  # clamped to 0..18


class InitiativePayload(BaseModel):
    kind: Literal["initiative"] = "initiative"
    combatant_id: str
    value: int


TransitionPayload = Annotated[
    Union[
        HPChangePayload,
        WPChangePayload,
        ConditionTogglePayload,
        DeathRollStatePayload,
        DeathRollAdjustPayload,
        RallyStatePayload,
        RestPayload,
        AttributeChangePayload,
        SkillLevelPayload,
        InitiativePayload,
    ],
    Field(discriminator="kind"),
]


class DirectTransition(BaseModel):
    """Top-level manual override submitted by a client to the engine."""

    character_id: str
    payload: TransitionPayload
    actor_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
