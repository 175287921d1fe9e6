"""Roll effects — turn a classified outcome into the next vitals state.

Every function here is pure: it takes the current vitals and returns the next
vitals, never touching persistence. All arithmetic is clamped against the
maxima of the vitals passed in, and ``settle`` applies the revival rule
(leaving 0 HP clears the death-roll counters and the rallied flag).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.errors import DomainViolation
from app.models.character import MAX_DEATH_ROLLS, MAX_SKILL_LEVEL, CharacterVitals, LifeState
from app.models.result import StateChange
from app.models.roll import Critical, Die, RestType, RollMode, RollOutcome, RollRequest


@dataclass
class Effect:
    """Combined delta for one resolution, applied by the state store in one write."""

    vitals: CharacterVitals
    attributes: dict[str, int] | None = None
    skill_levels: dict[str, int] | None = None
    advancement_marks: list[str] = field(default_factory=list)
    initiative: tuple[str, int] | None = None
    data: dict = field(default_factory=dict)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def settle(before: CharacterVitals, after: CharacterVitals) -> CharacterVitals:
    """Clamp every vitals field into its domain and apply the revival reset."""
    max_hp = max(0, after.max_hp)
    max_wp = max(0, after.max_wp)
    settled = after.model_copy(update={
        "max_hp": max_hp,
        "max_wp": max_wp,
        "current_hp": clamp(after.current_hp, 0, max_hp),
        "current_wp": clamp(after.current_wp, 0, max_wp),
        "death_rolls_passed": clamp(after.death_rolls_passed, 0, MAX_DEATH_ROLLS),
        "death_rolls_failed": clamp(after.death_rolls_failed, 0, MAX_DEATH_ROLLS),
    })
    if before.current_hp <= 0 < settled.current_hp:
        settled = settled.model_copy(update={
            "death_rolls_passed": 0,
            "death_rolls_failed": 0,
            "is_rallied": False,
        })
    return settled


def diff(entity_id: str, before: CharacterVitals, after: CharacterVitals) -> list[StateChange]:
    """List the vitals fields that differ between two states."""
    changes: list[StateChange] = []
    old = before.model_dump(exclude={"conditions"})
    new = after.model_dump(exclude={"conditions"})
    for name, old_value in old.items():
        if new[name] != old_value:
            changes.append(StateChange(
                entity_type="character", entity_id=entity_id, field=name,
                old_value=str(old_value), new_value=str(new[name]),
            ))
    for name in sorted(set(before.conditions) | set(after.conditions)):
        was = before.conditions.get(name, False)
        now = after.conditions.get(name, False)
        if was != now:
            changes.append(StateChange(
                entity_type="character", entity_id=entity_id,
                field=f"conditions.{name}", old_value=str(was), new_value=str(now),
            ))
    return changes


# --- Vitals transitions ---


def change_hp(vitals: CharacterVitals, delta: int) -> CharacterVitals:
    return settle(vitals, vitals.model_copy(update={"current_hp": vitals.current_hp + delta}))


def change_wp(vitals: CharacterVitals, delta: int) -> CharacterVitals:
    return settle(vitals, vitals.model_copy(update={"current_wp": vitals.current_wp + delta}))


def rest_round(vitals: CharacterVitals, wp_gain: int) -> CharacterVitals:
    return change_wp(vitals, wp_gain)


def rest_stretch(vitals: CharacterVitals, hp_gain: int, wp_gain: int) -> tuple[CharacterVitals, str | None]:
    """Heal HP and WP and clear the first active condition.

    Returns the next vitals and the name of the cleared condition, if any.
    """
    if vitals.current_hp <= 0:
        raise DomainViolation("Cannot take a stretch rest while dying")

    conditions = dict(vitals.conditions)
    active = vitals.active_conditions()
    cleared = active[0] if active else None
    if cleared is not None:
        conditions[cleared] = False

    after = vitals.model_copy(update={
        "current_hp": vitals.current_hp + hp_gain,
        "current_wp": vitals.current_wp + wp_gain,
        "conditions": conditions,
    })
    return settle(vitals, after), cleared


def rest_shift(vitals: CharacterVitals) -> CharacterVitals:
    after = vitals.model_copy(update={
        "current_hp": vitals.max_hp,
        "current_wp": vitals.max_wp,
        "conditions": {name: False for name in vitals.conditions},
        "death_rolls_passed": 0,
        "death_rolls_failed": 0,
        "is_rallied": False,
    })
    return settle(vitals, after)


def ensure_dying(vitals: CharacterVitals, action: str) -> None:
    state = vitals.life_state
    if state == LifeState.DECEASED:
        raise DomainViolation(f"Character is deceased; no further {action} is possible")
    if state == LifeState.STABILIZED:
        raise DomainViolation(f"Character is stabilized; make a recovery roll instead of a {action}")
    if state == LifeState.ALIVE:
        raise DomainViolation(f"Character is not dying; a {action} is not needed")


def record_death_roll(vitals: CharacterVitals, outcome: RollOutcome) -> tuple[CharacterVitals, str | None]:
    """Count a death roll. Dragon/Demon count twice.

    Returns the next vitals and "stabilized"/"deceased" if a counter reached 3.
    """
    ensure_dying(vitals, "death roll")
    if outcome.is_success:
        step = 2 if outcome.critical == Critical.DRAGON else 1
        after = vitals.model_copy(update={"death_rolls_passed": vitals.death_rolls_passed + step})
    else:
        step = 2 if outcome.critical == Critical.DEMON else 1
        after = vitals.model_copy(update={"death_rolls_failed": vitals.death_rolls_failed + step})
    settled = settle(vitals, after)

    transition = None
    if settled.life_state == LifeState.STABILIZED:
        transition = "stabilized"
    elif settled.life_state == LifeState.DECEASED:
        transition = "deceased"
    return settled, transition


def ensure_can_rally(vitals: CharacterVitals) -> None:
    ensure_dying(vitals, "rally")
    if vitals.is_rallied:
        raise DomainViolation("Character has already rallied")


def record_rally(vitals: CharacterVitals, success: bool) -> CharacterVitals:
    ensure_can_rally(vitals)
    return vitals.model_copy(update={"is_rallied": success})


def ensure_can_advance(skill_levels: dict[str, int], skill_name: str) -> None:
    if skill_levels.get(skill_name, 0) >= MAX_SKILL_LEVEL:
        raise DomainViolation(f"{skill_name} is already at level {MAX_SKILL_LEVEL}")


def advance_skill(skill_levels: dict[str, int], skill_name: str) -> dict[str, int]:
    """Raise one skill by a level, never past the maximum."""
    ensure_can_advance(skill_levels, skill_name)
    levels = dict(skill_levels)
    levels[skill_name] = min(levels.get(skill_name, 0) + 1, MAX_SKILL_LEVEL)
    return levels


def recover(vitals: CharacterVitals, amount: int) -> CharacterVitals:
    if vitals.life_state != LifeState.STABILIZED:
        raise DomainViolation("Recovery roll is only possible once stabilized")
    return change_hp(vitals, amount)


# --- Roll dispatch ---


def extra_draws(request: RollRequest) -> list[Die]:
    """Dice the effect needs beyond the request's own pool."""
    if request.mode == RollMode.REST and request.rest_type == RestType.STRETCH:
        return [Die.D6]
    return []


def check_preconditions(
    vitals: CharacterVitals,
    request: RollRequest,
    skill_levels: dict[str, int] | None = None,
) -> None:
    """Reject a roll the character's state doesn't allow, before any dice are drawn."""
    mode = request.mode
    if mode == RollMode.DEATH_ROLL:
        ensure_dying(vitals, "death roll")
    elif mode == RollMode.RALLY_ROLL:
        ensure_can_rally(vitals)
    elif mode == RollMode.ADVANCEMENT_ROLL and request.skill_name:
        ensure_can_advance(skill_levels or {}, request.skill_name)
    elif mode == RollMode.RECOVERY_ROLL:
        if vitals.life_state != LifeState.STABILIZED:
            raise DomainViolation("Recovery roll is only possible once stabilized")
    elif mode == RollMode.REST and request.rest_type == RestType.STRETCH:
        if vitals.current_hp <= 0:
            raise DomainViolation("Cannot take a stretch rest while dying")


def resolve_roll_effects(
    vitals: CharacterVitals,
    request: RollRequest,
    outcome: RollOutcome,
    skill_levels: dict[str, int] | None = None,
) -> Effect:
    """Compute the combined effect of a classified roll on a character."""
    mode = request.mode
    value = outcome.numeric_value

    if mode == RollMode.SKILL_CHECK:
        marks = []
        if request.skill_name and value in (1, 20):
            marks.append(request.skill_name)
        return Effect(vitals=vitals, advancement_marks=marks,
                      data={"advancement_marked": bool(marks)})

    if mode == RollMode.DEATH_ROLL:
        after, transition = record_death_roll(vitals, outcome)
        return Effect(vitals=after, data={"transition": transition})

    if mode == RollMode.RALLY_ROLL:
        after = record_rally(vitals, bool(outcome.is_success))
        return Effect(vitals=after, data={"rallied": after.is_rallied})

    if mode == RollMode.RECOVERY_ROLL:
        after = recover(vitals, value)
        return Effect(vitals=after, data={"hp_recovered": after.current_hp - vitals.current_hp})

    if mode == RollMode.REST:
        if request.rest_type == RestType.ROUND:
            after = rest_round(vitals, value)
            return Effect(vitals=after, data={"wp_recovered": after.current_wp - vitals.current_wp})
        if request.rest_type == RestType.STRETCH:
            wp_gain = sum(r.value for r in outcome.extra_results)
            after, cleared = rest_stretch(vitals, value, wp_gain)
            return Effect(vitals=after, data={
                "hp_recovered": after.current_hp - vitals.current_hp,
                "wp_recovered": after.current_wp - vitals.current_wp,
                "condition_cleared": cleared,
            })
        return Effect(vitals=rest_shift(vitals))

    if mode == RollMode.INITIATIVE:
        return Effect(vitals=vitals, initiative=(request.combatant_id or "", value),
                      data={"combatant_id": request.combatant_id, "initiative": value})

    if mode == RollMode.ADVANCEMENT_ROLL and request.skill_name:
        skill = request.skill_name
        levels = skill_levels or {}
        if not outcome.is_success:
            return Effect(vitals=vitals, data={"skill": skill, "skill_level": levels.get(skill, 0)})
        advanced = advance_skill(levels, skill)
        return Effect(vitals=vitals, skill_levels=advanced,
                      data={"skill": skill, "skill_level": advanced[skill]})

    return Effect(vitals=vitals)
