"""Character API — roll submission, direct transitions, history and sheet queries."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import character as character_mod
from app.domain import dispatcher
from app.domain.dispatcher import EngineContext
from app.domain.errors import CharacterNotFound, EngineError, InvalidRequest
from app.domain.rules import outcome as outcome_mod
from app.infra.config import settings
from app.infra.db import get_db
from app.infra.engine import get_engine
from app.infra.ws_manager import ws_manager
from app.models.character import CharacterAggregate
from app.models.event import DirectTransition, TransitionPayload
from app.models.result import EngineResult
from app.models.roll import Modifier, RestType, RollMode, RollRequest
from app.modules.dice.parser import parse_die, parse_pool

router = APIRouter(prefix="/api", tags=["characters"])

_STATUS_BY_CODE = {
    "invalid_request": 400,
    "not_found": 404,
    "domain_violation": 409,
    "persistence_failure": 503,
}


# --- Request schemas ---


class RollRequestBody(BaseModel):
    """Client roll request. Omitted fields fall back to the mode's defaults."""

    mode: RollMode = RollMode.GENERIC
    dice: list[int | str] | str | None = None  # [20], ["d6", "d6"] or "2d6+d8"
    rest_type: RestType | None = None
    modifier: Modifier | None = None
    target_value: int | None = None
    skill_name: str | None = None
    combatant_id: str | None = None
    healer_present: bool | None = None
    description: str | None = None


class TransitionBody(BaseModel):
    payload: TransitionPayload
    actor_id: str | None = None


class CreateCharacterRequest(BaseModel):
    name: str
    max_hp: int = 10
    max_wp: int = 10
    current_hp: int | None = None
    current_wp: int | None = None
    attributes: dict[str, int] | None = None
    skill_levels: dict[str, int] | None = None
    user_id: str | None = None
    party_id: str | None = None
    kin: str | None = None
    profession: str | None = None


class CreateCombatantRequest(BaseModel):
    encounter_id: str
    display_name: str
    character_id: str | None = None


def build_roll_request(body: RollRequestBody) -> RollRequest:
    """Turn a client body into a RollRequest, filling in mode defaults.

    Targets that depend on the character (CON, WIL, skill level) are left
    unset here; the dispatcher fills them in once it holds the character.

    Raises:
        InvalidRequest: The dice could not be parsed.
    """
    healer = settings.default_healer_present if body.healer_present is None else body.healer_present
    try:
        if body.dice is None:
            pool = outcome_mod.default_pool(body.mode, body.rest_type, healer)
        elif isinstance(body.dice, str):
            pool = parse_pool(body.dice)
        else:
            pool = [parse_die(d) for d in body.dice]
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc

    return RollRequest(
        dice_pool=pool,
        mode=body.mode,
        rest_type=body.rest_type,
        modifier=body.modifier if body.modifier is not None else outcome_mod.default_modifier(body.mode),
        target_value=body.target_value,
        skill_name=body.skill_name,
        combatant_id=body.combatant_id,
        rest_healer_present=healer,
        description=body.description,
    )


def respond(result: EngineResult) -> JSONResponse:
    status = 200 if result.success else _STATUS_BY_CODE.get(result.error_code or "", 400)
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))


async def submit_roll(
    ctx: EngineContext,
    body: RollRequestBody,
    character_id: str | None,
) -> EngineResult:
    """Build and resolve a roll, broadcasting the result to the character's watchers."""
    try:
        request = build_roll_request(body)
    except EngineError as exc:
        result = dispatcher.failure_result(body.mode.value, character_id, exc)
    else:
        result = await dispatcher.request_roll(ctx, request, character_id)
    if character_id is not None:
        await ws_manager.broadcast(character_id, result)
    return result


def _character_view(aggregate: CharacterAggregate, pending: bool) -> dict:
    vitals = aggregate.vitals
    return {
        "id": aggregate.id,
        "name": aggregate.name,
        "attributes": aggregate.attributes,
        "skill_levels": aggregate.skill_levels,
        "vitals": vitals.model_dump(),
        "life_state": vitals.life_state.value,
        "active_conditions": vitals.active_conditions(),
        "pending_save": pending,
    }


# --- Characters ---


@router.post("/characters", status_code=201)
async def create_character(
    req: CreateCharacterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    row = await character_mod.create_character(
        db,
        name=req.name,
        max_hp=req.max_hp,
        max_wp=req.max_wp,
        current_hp=req.current_hp,
        current_wp=req.current_wp,
        attributes=req.attributes,
        skill_levels=req.skill_levels,
        user_id=req.user_id,
        party_id=req.party_id,
        kin=req.kin,
        profession=req.profession,
    )
    return _character_view(character_mod.to_aggregate(row), pending=False)


@router.get("/characters/{character_id}")
async def get_character(
    character_id: str,
    ctx: Annotated[EngineContext, Depends(get_engine)],
    refresh: bool = False,
) -> dict:
    """Current sheet as the engine sees it, including derived life state."""
    try:
        aggregate = await ctx.store.load(character_id, refresh=refresh)
    except CharacterNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _character_view(aggregate, ctx.store.has_pending(character_id))


@router.post("/characters/{character_id}/rolls")
async def roll_for_character(
    character_id: str,
    body: RollRequestBody,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> JSONResponse:
    return respond(await submit_roll(ctx, body, character_id))


@router.post("/rolls")
async def roll_unattached(
    body: RollRequestBody,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> JSONResponse:
    """Roll with no character, e.g. a generic roll or a monster's initiative."""
    return respond(await submit_roll(ctx, body, None))


@router.post("/characters/{character_id}/transitions")
async def apply_transition(
    character_id: str,
    body: TransitionBody,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> JSONResponse:
    transition = DirectTransition(
        character_id=character_id,
        payload=body.payload,
        actor_id=body.actor_id,
    )
    result = await dispatcher.apply_direct_transition(ctx, transition)
    await ws_manager.broadcast(character_id, result)
    return respond(result)


@router.post("/characters/{character_id}/retry")
async def retry_save(
    character_id: str,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> JSONResponse:
    """Re-send a save that failed with persistence_failure."""
    result = await dispatcher.retry_save(ctx, character_id)
    if result.success:
        await ws_manager.broadcast(character_id, result)
    return respond(result)


# --- Advancement ---


@router.get("/characters/{character_id}/advancement")
async def get_advancement(
    character_id: str,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> dict:
    return {"character_id": character_id, "skills": ctx.advancement.marked(character_id)}


@router.delete("/characters/{character_id}/advancement")
async def clear_advancement(
    character_id: str,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> dict:
    ctx.advancement.clear(character_id)
    return {"character_id": character_id, "skills": []}


# --- History ---


@router.get("/history")
async def get_history(
    ctx: Annotated[EngineContext, Depends(get_engine)],
    character_id: str | None = None,
) -> list[dict]:
    """Roll history, newest first."""
    return [
        {**entry.model_dump(mode="json"), "summary": entry.summary()}
        for entry in dispatcher.get_history(ctx, character_id)
    ]


@router.delete("/history")
async def clear_history(
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> dict:
    dispatcher.clear_history(ctx)
    return {"status": "cleared"}


# --- Combatants ---


@router.post("/combatants", status_code=201)
async def create_combatant(
    req: CreateCombatantRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    combatant = await character_mod.create_combatant(
        db,
        encounter_id=req.encounter_id,
        display_name=req.display_name,
        character_id=req.character_id,
    )
    return {
        "id": combatant.id,
        "encounter_id": combatant.encounter_id,
        "display_name": combatant.display_name,
        "character_id": combatant.character_id,
        "initiative_roll": combatant.initiative_roll,
    }
