"""Unit tests for the dice roller."""

import random

from app.models.roll import Die, DieResult
from app.modules.dice.roller import roll, roll_die
from tests.conftest import scripted


class TestRollDie:
    def test_values_in_range_for_every_die(self):
        for die in Die:
            for _ in range(200):
                result = roll_die(die)
                assert 1 <= result.value <= int(die)
                assert result.die == die

    def test_uses_given_rng(self):
        assert roll_die(Die.D20, scripted(17)) == DieResult(die=Die.D20, value=17)


class TestRoll:
    def test_one_result_per_die_in_order(self):
        pool = [Die.D6, Die.D20, Die.D8]
        results = roll(pool)
        assert [r.die for r in results] == pool

    def test_empty_pool(self):
        assert roll([]) == []

    def test_seeded_rng_is_reproducible(self):
        pool = [Die.D6] * 5
        first = roll(pool, random.Random(42))
        second = roll(pool, random.Random(42))
        assert first == second

    def test_every_face_can_come_up(self):
        rng = random.Random(7)
        seen = {roll_die(Die.D4, rng).value for _ in range(500)}
        assert seen == {1, 2, 3, 4}
