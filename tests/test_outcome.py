"""Tests for request validation and outcome interpretation."""

import pytest

from app.domain.errors import InvalidRequest
from app.domain.rules.outcome import (
    default_modifier,
    default_pool,
    default_target,
    interpret,
    validate_request,
)
from app.models.roll import Critical, Die, DieResult, Modifier, RestType, RollMode, RollRequest
from tests.conftest import scripted


def d20(value: int) -> list[DieResult]:
    return [DieResult(die=Die.D20, value=value)]


def skill_check(target: int = 12, modifier: Modifier | None = None) -> RollRequest:
    return RollRequest(
        dice_pool=[Die.D20],
        mode=RollMode.SKILL_CHECK,
        target_value=target,
        modifier=modifier or Modifier.none(),
        skill_name="Swords",
    )


# --- Defaults ---


def test_default_pools():
    assert default_pool(RollMode.SKILL_CHECK) == [Die.D20]
    assert default_pool(RollMode.DEATH_ROLL) == [Die.D20]
    assert default_pool(RollMode.ADVANCEMENT_ROLL) == [Die.D20]
    assert default_pool(RollMode.RECOVERY_ROLL) == [Die.D6]
    assert default_pool(RollMode.INITIATIVE) == [Die.D10]
    assert default_pool(RollMode.REST, RestType.ROUND) == [Die.D6]
    assert default_pool(RollMode.REST, RestType.STRETCH) == [Die.D6]
    assert default_pool(RollMode.REST, RestType.STRETCH, healer_present=True) == [Die.D6, Die.D6]
    assert default_pool(RollMode.GENERIC) == []


def test_rally_defaults_to_one_bane():
    assert default_modifier(RollMode.RALLY_ROLL) == Modifier.bane(1)
    assert default_modifier(RollMode.SKILL_CHECK) == Modifier.none()


def test_default_targets_come_from_attributes():
    attrs = {"CON": 13, "WIL": 9}
    assert default_target(RollMode.DEATH_ROLL, attrs) == 13
    assert default_target(RollMode.RALLY_ROLL, attrs) == 9
    assert default_target(RollMode.SKILL_CHECK, attrs) is None


def test_advancement_target_is_the_skill_level():
    levels = {"Swords": 12}
    assert default_target(RollMode.ADVANCEMENT_ROLL, {}, levels, "Swords") == 12
    assert default_target(RollMode.ADVANCEMENT_ROLL, {}, levels, "Riding") == 0
    assert default_target(RollMode.ADVANCEMENT_ROLL, {}, levels) is None


# --- Validation ---


def test_empty_pool_rejected():
    with pytest.raises(InvalidRequest, match="empty"):
        validate_request(RollRequest(dice_pool=[]))


@pytest.mark.parametrize("mode", [RollMode.DEATH_ROLL, RollMode.RALLY_ROLL, RollMode.ADVANCEMENT_ROLL])
def test_single_d20_modes_need_one_d20(mode):
    with pytest.raises(InvalidRequest, match="exactly one d20"):
        validate_request(RollRequest(dice_pool=[Die.D20, Die.D20], mode=mode, target_value=10))
    with pytest.raises(InvalidRequest, match="exactly one d20"):
        validate_request(RollRequest(dice_pool=[Die.D12], mode=mode, target_value=10))


def test_death_roll_needs_target():
    with pytest.raises(InvalidRequest, match="target"):
        validate_request(RollRequest(dice_pool=[Die.D20], mode=RollMode.DEATH_ROLL))


def test_rest_needs_rest_type():
    with pytest.raises(InvalidRequest, match="rest type"):
        validate_request(RollRequest(dice_pool=[Die.D6], mode=RollMode.REST))


def test_shift_rest_is_not_rolled():
    with pytest.raises(InvalidRequest, match="shift"):
        validate_request(RollRequest(dice_pool=[Die.D6], mode=RollMode.REST, rest_type=RestType.SHIFT))


def test_recovery_needs_d6():
    with pytest.raises(InvalidRequest, match="d6"):
        validate_request(RollRequest(dice_pool=[Die.D8], mode=RollMode.RECOVERY_ROLL))


def test_initiative_needs_combatant():
    with pytest.raises(InvalidRequest, match="combatant"):
        validate_request(RollRequest(dice_pool=[Die.D10], mode=RollMode.INITIATIVE))


def test_valid_requests_pass():
    validate_request(skill_check())
    validate_request(RollRequest(dice_pool=[Die.D6, Die.D6], mode=RollMode.REST, rest_type=RestType.STRETCH))
    validate_request(RollRequest(dice_pool=[Die.D10], mode=RollMode.INITIATIVE, combatant_id="x"))
    validate_request(RollRequest(dice_pool=[Die.D4, Die.D8]))


# --- Interpretation ---


class TestCriticals:
    def test_one_is_dragon(self):
        outcome = interpret(skill_check(target=5), d20(1))
        assert outcome.critical == Critical.DRAGON
        assert outcome.final_value == "Dragon"
        assert outcome.numeric_value == 1
        assert outcome.is_critical is True
        assert outcome.is_success is True

    def test_twenty_is_demon_even_with_high_target(self):
        outcome = interpret(skill_check(target=25), d20(20))
        assert outcome.critical == Critical.DEMON
        assert outcome.final_value == "Demon"
        assert outcome.is_success is False

    def test_generic_d20_gets_critical_without_success(self):
        outcome = interpret(RollRequest(dice_pool=[Die.D20]), d20(1))
        assert outcome.critical == Critical.DRAGON
        assert outcome.is_success is None

    def test_no_critical_on_multi_die_pool(self):
        raw = [DieResult(die=Die.D20, value=1), DieResult(die=Die.D20, value=20)]
        outcome = interpret(RollRequest(dice_pool=[Die.D20, Die.D20]), raw)
        assert outcome.critical is None
        assert outcome.final_value == 21


class TestSkillCheck:
    def test_success_at_or_under_target(self):
        assert interpret(skill_check(target=12), d20(12)).is_success is True
        assert interpret(skill_check(target=12), d20(13)).is_success is False

    def test_final_value_is_the_roll(self):
        outcome = interpret(skill_check(), d20(7))
        assert outcome.final_value == 7
        assert outcome.critical is None


class TestModifiers:
    def test_boon_keeps_lowest(self):
        outcome = interpret(skill_check(modifier=Modifier.boon(2)), d20(15), scripted(9, 17))
        assert [r.value for r in outcome.modifier_results] == [9, 17]
        assert outcome.final_value == 9
        assert outcome.is_success is True

    def test_bane_keeps_highest(self):
        outcome = interpret(skill_check(modifier=Modifier.bane(1)), d20(4), scripted(16))
        assert outcome.final_value == 16
        assert outcome.is_success is False

    def test_boon_can_turn_into_dragon(self):
        outcome = interpret(skill_check(modifier=Modifier.boon(1)), d20(11), scripted(1))
        assert outcome.critical == Critical.DRAGON

    def test_bane_can_turn_into_demon(self):
        outcome = interpret(skill_check(modifier=Modifier.bane(3)), d20(2), scripted(5, 20, 3))
        assert outcome.critical == Critical.DEMON
        assert outcome.is_success is False

    def test_modifier_ignored_on_other_pools(self):
        request = RollRequest(dice_pool=[Die.D6, Die.D6], modifier=Modifier.boon(2))
        raw = [DieResult(die=Die.D6, value=3), DieResult(die=Die.D6, value=5)]
        outcome = interpret(request, raw, scripted())
        assert outcome.modifier_results == []
        assert outcome.final_value == 8


class TestAdvancement:
    def test_roll_under_level_fails(self):
        request = RollRequest(dice_pool=[Die.D20], mode=RollMode.ADVANCEMENT_ROLL, target_value=8)
        outcome = interpret(request, d20(3))
        assert outcome.is_success is False
        assert outcome.critical is None
        assert outcome.final_value == 3

    def test_roll_over_level_succeeds(self):
        request = RollRequest(dice_pool=[Die.D20], mode=RollMode.ADVANCEMENT_ROLL, target_value=8)
        assert interpret(request, d20(9)).is_success is True

    def test_no_criticals(self):
        request = RollRequest(dice_pool=[Die.D20], mode=RollMode.ADVANCEMENT_ROLL, target_value=12)
        outcome = interpret(request, d20(20))
        assert outcome.critical is None
        assert outcome.final_value == 20
        assert outcome.is_success is True
        assert interpret(request, d20(1)).is_success is False


def test_sum_pool():
    request = RollRequest(dice_pool=[Die.D6, Die.D8], mode=RollMode.GENERIC)
    raw = [DieResult(die=Die.D6, value=2), DieResult(die=Die.D8, value=7)]
    outcome = interpret(request, raw)
    assert outcome.final_value == 9
    assert outcome.numeric_value == 9
    assert outcome.is_success is None
