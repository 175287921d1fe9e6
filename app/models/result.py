"""Engine result schemas — output from the engine dispatcher."""

from __future__ import annotations

from pydantic import BaseModel

from app.models.roll import RollOutcome


class StateChange(BaseModel):
    entity_type: str  # "character", "combatant", "advancement"
    entity_id: str
    field: str
    old_value: str | None = None
    new_value: str | None = None


class EngineResult(BaseModel):
    success: bool
    event_type: str
    character_id: str | None = None
    data: dict = {}
    outcome: RollOutcome | None = None
    state_changes: list[StateChange] = []
    error: str | None = None
    error_code: str | None = None
