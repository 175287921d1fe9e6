"""Outcome interpretation — request validation, boon/bane, criticals, success."""

from __future__ import annotations

import random

from app.domain.errors import InvalidRequest
from app.models.roll import (
    Critical,
    Die,
    DieResult,
    Modifier,
    RestType,
    RollMode,
    RollOutcome,
    RollRequest,
)
from app.modules.dice import roller

_SINGLE_D20_MODES = {RollMode.DEATH_ROLL, RollMode.RALLY_ROLL, RollMode.ADVANCEMENT_ROLL}
_TARGETED_MODES = {RollMode.SKILL_CHECK, RollMode.RALLY_ROLL, RollMode.DEATH_ROLL}


def default_pool(
    mode: RollMode,
    rest_type: RestType | None = None,
    healer_present: bool = False,
) -> list[Die]:
    """Pool used when a caller does not supply one for the given mode."""
    if mode in _SINGLE_D20_MODES or mode == RollMode.SKILL_CHECK:
        return [Die.D20]
    if mode == RollMode.RECOVERY_ROLL:
        return [Die.D6]
    if mode == RollMode.INITIATIVE:
        return [Die.D10]
    if mode == RollMode.REST:
        if rest_type == RestType.STRETCH and healer_present:
            return [Die.D6, Die.D6]
        if rest_type in (RestType.ROUND, RestType.STRETCH):
            return [Die.D6]
    return []


def default_modifier(mode: RollMode) -> Modifier:
    # Rallying yourself is always rolled with a bane.
    if mode == RollMode.RALLY_ROLL:
        return Modifier.bane(1)
    return Modifier.none()


def default_target(
    mode: RollMode,
    attributes: dict[str, int],
    skill_levels: dict[str, int] | None = None,
    skill_name: str | None = None,
) -> int | None:
    """Death rolls are made against CON, rallying against WIL.

    An advancement roll must beat the skill's current level; a skill the
    character has never trained counts as level 0.
    """
    if mode == RollMode.DEATH_ROLL:
        return attributes.get("CON")
    if mode == RollMode.RALLY_ROLL:
        return attributes.get("WIL")
    if mode == RollMode.ADVANCEMENT_ROLL and skill_name:
        return (skill_levels or {}).get(skill_name, 0)
    return None


def validate_request(request: RollRequest) -> None:
    """Reject requests that can't be rolled. Raises InvalidRequest."""
    pool = request.dice_pool
    mode = request.mode

    if not pool:
        raise InvalidRequest("Dice pool is empty")

    if mode in _SINGLE_D20_MODES:
        if not request.is_single_d20:
            raise InvalidRequest(f"{mode.value} must be rolled with exactly one d20")
        if request.target_value is None:
            raise InvalidRequest(f"{mode.value} requires a target value")

    if mode == RollMode.REST:
        if request.rest_type is None:
            raise InvalidRequest("Rest roll requires a rest type")
        if request.rest_type == RestType.SHIFT:
            raise InvalidRequest("A shift rest involves no dice; apply it as a direct transition")

    if mode == RollMode.RECOVERY_ROLL or mode == RollMode.REST:
        if any(d != Die.D6 for d in pool):
            raise InvalidRequest(f"{mode.value} must be rolled with d6s only")

    if mode == RollMode.INITIATIVE and not request.combatant_id:
        raise InvalidRequest("Initiative roll requires a combatant id")


def interpret(
    request: RollRequest,
    raw_results: list[DieResult],
    rng: random.Random | None = None,
) -> RollOutcome:
    """Classify raw draws into a RollOutcome.

    Boon/bane draws extra d20s through the roller and keeps the lowest (boon)
    or highest (bane) of all draws. Criticals only exist on a single d20
    outside advancement rolls: 1 is a Dragon, 20 is a Demon.
    """
    modifier_results: list[DieResult] = []

    if request.is_single_d20:
        value = raw_results[0].value
        if request.modifier.is_active:
            modifier_results = roller.roll([Die.D20] * request.modifier.count, rng)
            all_values = [value] + [r.value for r in modifier_results]
            value = min(all_values) if request.modifier.kind == "boon" else max(all_values)
        return _classify_d20(request, raw_results, modifier_results, value)

    total = sum(r.value for r in raw_results)
    is_success = None
    if request.mode == RollMode.SKILL_CHECK and request.target_value is not None:
        is_success = total <= request.target_value
    return RollOutcome(
        raw_results=raw_results,
        final_value=total,
        numeric_value=total,
        is_success=is_success,
    )


def _classify_d20(
    request: RollRequest,
    raw_results: list[DieResult],
    modifier_results: list[DieResult],
    value: int,
) -> RollOutcome:
    target = request.target_value

    if request.mode == RollMode.ADVANCEMENT_ROLL:
        return RollOutcome(
            raw_results=raw_results,
            modifier_results=modifier_results,
            final_value=value,
            numeric_value=value,
            is_success=value > target if target is not None else None,
        )

    critical = None
    if value == 1:
        critical = Critical.DRAGON
    elif value == 20:
        critical = Critical.DEMON

    is_success = None
    if request.mode in _TARGETED_MODES:
        if critical == Critical.DRAGON:
            is_success = True
        elif critical == Critical.DEMON:
            is_success = False
        elif target is not None:
            is_success = value <= target

    return RollOutcome(
        raw_results=raw_results,
        modifier_results=modifier_results,
        final_value=critical.value if critical else value,
        numeric_value=value,
        critical=critical,
        is_success=is_success,
    )
