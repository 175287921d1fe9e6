"""Direct transitions — the manual/GM path for the same state changes as rolls."""

from __future__ import annotations

import random

from app.domain.errors import DomainViolation, InvalidRequest
from app.domain.rules import effects
from app.domain.rules.effects import Effect
from app.models.character import (
    ATTRIBUTE_CURRENT,
    ATTRIBUTE_MAXIMA,
    MAX_DEATH_ROLLS,
    MAX_SKILL_LEVEL,
    CONDITIONS,
    CharacterAggregate,
    LifeState,
)
from app.models.event import (
    AttributeChangePayload,
    ConditionTogglePayload,
    DeathRollAdjustPayload,
    DeathRollStatePayload,
    HPChangePayload,
    InitiativePayload,
    RallyStatePayload,
    RestPayload,
    SkillLevelPayload,
    TransitionPayload,
    WPChangePayload,
)
from app.models.roll import Die, RestType
from app.modules.dice import roller

ATTRIBUTES = ("STR", "AGL", "INT", "CHA", "CON", "WIL")


def resolve_transition(
    character: CharacterAggregate,
    payload: TransitionPayload,
    rng: random.Random | None = None,
) -> Effect:
    """Compute the effect of a direct transition on a character.

    Raises:
        InvalidRequest: Malformed parameters (unknown condition or attribute).
        DomainViolation: The transition contradicts the current state.
    """
    vitals = character.vitals

    if isinstance(payload, HPChangePayload):
        return Effect(vitals=effects.change_hp(vitals, payload.delta))

    if isinstance(payload, WPChangePayload):
        return Effect(vitals=effects.change_wp(vitals, payload.delta))

    if isinstance(payload, ConditionTogglePayload):
        name = payload.condition.lower()
        if name not in CONDITIONS and name not in vitals.conditions:
            raise InvalidRequest(f"Unknown condition: {payload.condition}")
        conditions = dict(vitals.conditions)
        conditions[name] = not conditions.get(name, False)
        return Effect(vitals=vitals.model_copy(update={"conditions": conditions}))

    if isinstance(payload, (DeathRollStatePayload, DeathRollAdjustPayload)) and vitals.current_hp > 0:
        raise DomainViolation("Death roll counters only apply while the character is at 0 HP")

    if isinstance(payload, DeathRollStatePayload):
        passed = effects.clamp(payload.passed, 0, MAX_DEATH_ROLLS)
        failed = effects.clamp(payload.failed, 0, MAX_DEATH_ROLLS)
        if passed == MAX_DEATH_ROLLS and failed == MAX_DEATH_ROLLS:
            raise DomainViolation("A character cannot be both stabilized and deceased")
        update: dict = {"death_rolls_passed": passed, "death_rolls_failed": failed}
        if payload.rallied is not None:
            update["is_rallied"] = payload.rallied
        return Effect(vitals=effects.settle(vitals, vitals.model_copy(update=update)))

    if isinstance(payload, DeathRollAdjustPayload):
        if vitals.life_state in (LifeState.STABILIZED, LifeState.DECEASED):
            raise DomainViolation(
                f"Death rolls are settled ({vitals.life_state.value}); counters can't be adjusted"
            )
        field = f"death_rolls_{payload.counter}"
        after = vitals.model_copy(update={field: getattr(vitals, field) + payload.amount})
        return Effect(vitals=effects.settle(vitals, after))

    if isinstance(payload, RallyStatePayload):
        return Effect(vitals=vitals.model_copy(update={"is_rallied": payload.rallied}))

    if isinstance(payload, RestPayload):
        return _rest(character, payload, rng)

    if isinstance(payload, AttributeChangePayload):
        return _attribute_change(character, payload)

    if isinstance(payload, SkillLevelPayload):
        levels = dict(character.skill_levels)
        levels[payload.skill] = effects.clamp(payload.level, 0, MAX_SKILL_LEVEL)
        return Effect(vitals=vitals, skill_levels=levels,
                      data={"skill": payload.skill, "skill_level": levels[payload.skill]})

    if isinstance(payload, InitiativePayload):
        return Effect(
            vitals=vitals,
            initiative=(payload.combatant_id, payload.value),
            data={"combatant_id": payload.combatant_id, "initiative": payload.value},
        )

    raise InvalidRequest(f"Unhandled transition: {payload.kind}")


def _rest(
    character: CharacterAggregate,
    payload: RestPayload,
    rng: random.Random | None,
) -> Effect:
    vitals = character.vitals

    if payload.rest_type == RestType.ROUND:
        wp_roll = roller.roll([Die.D6], rng)
        after = effects.rest_round(vitals, wp_roll[0].value)
        return Effect(vitals=after, data={
            "rest_type": "round",
            "wp_rolls": [r.value for r in wp_roll],
            "wp_recovered": after.current_wp - vitals.current_wp,
        })

    if payload.rest_type == RestType.STRETCH:
        if vitals.current_hp <= 0:
            raise DomainViolation("Cannot take a stretch rest while dying")
        hp_pool = [Die.D6, Die.D6] if payload.healer_present else [Die.D6]
        hp_roll = roller.roll(hp_pool, rng)
        wp_roll = roller.roll([Die.D6], rng)
        after, cleared = effects.rest_stretch(
            vitals,
            sum(r.value for r in hp_roll),
            sum(r.value for r in wp_roll),
        )
        return Effect(vitals=after, data={
            "rest_type": "stretch",
            "hp_rolls": [r.value for r in hp_roll],
            "wp_rolls": [r.value for r in wp_roll],
            "hp_recovered": after.current_hp - vitals.current_hp,
            "wp_recovered": after.current_wp - vitals.current_wp,
            "condition_cleared": cleared,
        })

    return Effect(vitals=effects.rest_shift(vitals), data={"rest_type": "shift"})


def _attribute_change(character: CharacterAggregate, payload: AttributeChangePayload) -> Effect:
    attribute = payload.attribute.upper()
    if attribute not in ATTRIBUTES:
        raise InvalidRequest(f"Unknown attribute: {payload.attribute}")
    if payload.value < 1:
        raise InvalidRequest("Attribute values must be at least 1")

    attributes = dict(character.attributes)
    attributes[attribute] = payload.value

    vitals = character.vitals
    if attribute in ATTRIBUTE_MAXIMA:
        max_field = ATTRIBUTE_MAXIMA[attribute]
        current_field = ATTRIBUTE_CURRENT[attribute]
        after = vitals.model_copy(update={
            max_field: payload.value,
            current_field: min(getattr(vitals, current_field), payload.value),
        })
        vitals = effects.settle(vitals, after)

    return Effect(vitals=vitals, attributes=attributes, data={"attribute": attribute, "value": payload.value})
