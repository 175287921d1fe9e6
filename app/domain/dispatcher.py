"""Roll dispatcher — the single entry point for rolls and direct transitions.

A resolution (draw, classify, compute effect, persist) runs under the
character's lock, so one character never has two resolutions interleaved.
Outcomes are computed synchronously before the first await on persistence.
"""

from __future__ import annotations

import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass, field

from app.domain import advancement as advancement_mod
from app.domain import history as history_mod
from app.domain.character import CombatantService
from app.domain.errors import CharacterNotFound, EngineError, InvalidRequest
from app.domain.rules import effects, outcome as outcome_mod, transitions
from app.domain.rules.effects import Effect
from app.domain.state_store import CharacterStateStore
from app.models.character import CharacterAggregate
from app.models.event import DirectTransition
from app.models.result import EngineResult, StateChange
from app.models.roll import RollHistoryEntry, RollMode, RollOutcome, RollRequest
from app.modules.dice import roller

logger = logging.getLogger("sheet-engine.dispatcher")

# Modes whose effect reads or writes a character's vitals.
_CHARACTER_MODES = {
    RollMode.DEATH_ROLL,
    RollMode.RALLY_ROLL,
    RollMode.RECOVERY_ROLL,
    RollMode.REST,
}

CompletionCallback = Callable[[EngineResult], Awaitable[None] | None]


@dataclass
class EngineContext:
    """Everything a resolution needs. One per session."""

    store: CharacterStateStore
    combatants: CombatantService
    history: history_mod.RollHistoryLog = field(default_factory=history_mod.RollHistoryLog)
    advancement: advancement_mod.AdvancementMarks = field(
        default_factory=advancement_mod.AdvancementMarks
    )
    rng: random.Random | None = None


async def request_roll(
    ctx: EngineContext,
    request: RollRequest,
    character_id: str | None = None,
    on_complete: CompletionCallback | None = None,
) -> EngineResult:
    """Roll, classify and apply a RollRequest, returning an EngineResult.

    Errors (invalid request, domain violation, unknown ids, failed saves) are
    reported in the result rather than raised. When persistence fails after
    the dice were drawn, the result still carries the outcome.
    """
    event_type = request.mode.value
    try:
        result = await _resolve_roll(ctx, request, character_id)
    except _RolledButFailed as failed:
        result = failure_result(
            event_type, character_id, failed.error,
            outcome=failed.outcome, data={"history_id": failed.history_id},
        )
    except EngineError as exc:
        result = failure_result(event_type, character_id, exc)
    await _notify(on_complete, result)
    return result


async def apply_direct_transition(
    ctx: EngineContext,
    transition: DirectTransition,
    on_complete: CompletionCallback | None = None,
) -> EngineResult:
    """Apply a manual/GM transition to a character without rolling."""
    payload = transition.payload
    character_id = transition.character_id
    try:
        async with ctx.store.lock(character_id):
            character = await ctx.store.load_locked(character_id)
            effect = transitions.resolve_transition(character, payload, ctx.rng)
            state_changes, saved = await _commit(ctx, character, effect)
        result = EngineResult(
            success=True,
            event_type=payload.kind,
            character_id=character_id,
            data={**effect.data, "life_state": saved.vitals.life_state.value},
            state_changes=state_changes,
        )
    except EngineError as exc:
        result = failure_result(payload.kind, character_id, exc)
    await _notify(on_complete, result)
    return result


async def retry_save(ctx: EngineContext, character_id: str) -> EngineResult:
    """Re-send the last failed save for a character."""
    try:
        async with ctx.store.lock(character_id):
            before = await ctx.store.load_locked(character_id)
            saved = await ctx.store.retry(character_id)
    except EngineError as exc:
        return failure_result("retry_save", character_id, exc)
    return EngineResult(
        success=True,
        event_type="retry_save",
        character_id=character_id,
        data={"life_state": saved.vitals.life_state.value},
        state_changes=effects.diff(character_id, before.vitals, saved.vitals),
    )


def get_history(ctx: EngineContext, character_id: str | None = None) -> list[RollHistoryEntry]:
    return ctx.history.entries(character_id)


def clear_history(ctx: EngineContext) -> None:
    ctx.history.clear()


def failure_result(
    event_type: str,
    character_id: str | None,
    exc: EngineError,
    outcome: RollOutcome | None = None,
    data: dict | None = None,
) -> EngineResult:
    logger.info("%s rejected for %s: %s", event_type, character_id or "-", exc)
    return EngineResult(
        success=False,
        event_type=event_type,
        character_id=character_id,
        data=data or {},
        outcome=outcome,
        error=str(exc),
        error_code=exc.code,
    )


# --- Internals ---


class _RolledButFailed(Exception):
    """Dice were drawn and logged, but applying the effect failed."""

    def __init__(self, error: EngineError, outcome: RollOutcome, history_id: str) -> None:
        super().__init__(str(error))
        self.error = error
        self.outcome = outcome
        self.history_id = history_id


async def _resolve_roll(
    ctx: EngineContext,
    request: RollRequest,
    character_id: str | None,
) -> EngineResult:
    if character_id is None and request.mode in _CHARACTER_MODES:
        raise InvalidRequest(f"{request.mode.value} requires a character")

    async with AsyncExitStack() as stack:
        character: CharacterAggregate | None = None
        if character_id is not None:
            await stack.enter_async_context(ctx.store.lock(character_id))
            character = await ctx.store.load_locked(character_id)
            if request.target_value is None:
                target = outcome_mod.default_target(
                    request.mode, character.attributes, character.skill_levels, request.skill_name
                )
                request = request.model_copy(update={"target_value": target})
        outcome_mod.validate_request(request)
        if character is not None:
            effects.check_preconditions(character.vitals, request, character.skill_levels)

        raw = roller.roll(request.dice_pool, ctx.rng)
        outcome = outcome_mod.interpret(request, raw, ctx.rng)
        extra = effects.extra_draws(request)
        if extra:
            outcome = outcome.model_copy(update={"extra_results": roller.roll(extra, ctx.rng)})

        entry = RollHistoryEntry.from_roll(request, outcome, character_id)
        ctx.history.append(entry)
        logger.debug(
            "Rolled %s for %s: %s", request.mode.value, character_id or "-", entry.summary()
        )

        data: dict = {
            "history_id": entry.id,
            "final_value": outcome.final_value,
            "description": entry.description,
        }
        try:
            if character is not None:
                effect = effects.resolve_roll_effects(
                    character.vitals, request, outcome, character.skill_levels
                )
                state_changes, saved = await _commit(ctx, character, effect)
                data.update(effect.data)
                data["life_state"] = saved.vitals.life_state.value
            elif request.mode == RollMode.INITIATIVE:
                state_changes = [
                    await _record_initiative(ctx, request.combatant_id or "", outcome.numeric_value)
                ]
                data.update({"combatant_id": request.combatant_id, "initiative": outcome.numeric_value})
            else:
                state_changes = []
        except EngineError as exc:
            raise _RolledButFailed(exc, outcome, entry.id) from exc

    return EngineResult(
        success=True,
        event_type=request.mode.value,
        character_id=character_id,
        data=data,
        outcome=outcome,
        state_changes=state_changes,
    )


async def _commit(
    ctx: EngineContext,
    character: CharacterAggregate,
    effect: Effect,
) -> tuple[list[StateChange], CharacterAggregate]:
    saved = await ctx.store.apply(character, effect)
    state_changes = effects.diff(character.id, character.vitals, saved.vitals)

    if effect.attributes is not None:
        for name, value in effect.attributes.items():
            old = character.attributes.get(name)
            if old != value:
                state_changes.append(StateChange(
                    entity_type="character", entity_id=character.id,
                    field=f"attributes.{name}", old_value=str(old), new_value=str(value),
                ))

    for name, level in saved.skill_levels.items():
        old = character.skill_levels.get(name)
        if old != level:
            state_changes.append(StateChange(
                entity_type="character", entity_id=character.id,
                field=f"skill_levels.{name}", old_value=str(old), new_value=str(level),
            ))

    for skill in effect.advancement_marks:
        if ctx.advancement.mark(character.id, skill):
            state_changes.append(StateChange(
                entity_type="advancement", entity_id=character.id,
                field=skill, old_value="False", new_value="True",
            ))

    if effect.initiative is not None:
        combatant_id, value = effect.initiative
        state_changes.append(await _record_initiative(ctx, combatant_id, value))

    return state_changes, saved


async def _record_initiative(ctx: EngineContext, combatant_id: str, value: int) -> StateChange:
    try:
        await ctx.combatants.record_initiative(combatant_id, value)
    except LookupError as exc:
        raise CharacterNotFound(f"Combatant {combatant_id} not found") from exc
    return StateChange(
        entity_type="combatant", entity_id=combatant_id,
        field="initiative_roll", new_value=str(value),
    )


async def _notify(callback: CompletionCallback | None, result: EngineResult) -> None:
    if callback is None:
        return
    pending = callback(result)
    if inspect.isawaitable(pending):
        await pending
