"""Dice roller — one uniform draw per die."""

from __future__ import annotations

import random
from collections.abc import Iterable

from app.models.roll import Die, DieResult

_rng = random.Random()


def roll_die(die: Die, rng: random.Random | None = None) -> DieResult:
    source = rng or _rng
    return DieResult(die=die, value=source.randint(1, int(die)))


def roll(pool: Iterable[Die], rng: random.Random | None = None) -> list[DieResult]:
    """Roll every die in the pool independently.

    Args:
        pool: Dice to roll, in display order.
        rng: Optional random source; the module-level generator is used if omitted.

    Returns:
        One DieResult per die, in the same order as the pool.
    """
    return [roll_die(die, rng) for die in pool]
