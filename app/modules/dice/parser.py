"""Dice expression parser — turns ``2d6``, ``d20`` or ``2d6+d8`` into a dice pool."""

from __future__ import annotations

import re

from app.models.roll import Die

_TERM_PATTERN = re.compile(r"^(\d*)d(\d+)$", re.IGNORECASE)

# Upper bound on dice per term; a UI never builds pools anywhere near this.
MAX_DICE_PER_TERM = 50


def parse_die(value: int | str) -> Die:
    """Parse a single face count (``6``, ``"6"``, ``"d6"``) into a Die.

    Raises:
        ValueError: If the face count is not one of 4, 6, 8, 10, 12, 20.
    """
    text = str(value).strip().lower()
    if text.startswith("d"):
        text = text[1:]
    if not text.isdigit():
        raise ValueError(f"Invalid die: {value}")
    faces = int(text)
    try:
        return Die(faces)
    except ValueError:
        raise ValueError(f"Unsupported die type: d{faces}") from None


def parse_pool(expr: str) -> list[Die]:
    """Parse a dice expression into a pool.

    Supported formats:
        dM         - e.g. d20 (one die)
        NdM        - e.g. 2d6
        NdM+KdL    - e.g. 2d6+d8 (terms joined with '+')

    Flat modifiers are not part of a pool and are rejected.

    Raises:
        ValueError: If the expression cannot be parsed.
    """
    expr = expr.strip()
    if not expr:
        raise ValueError("Empty dice expression")

    pool: list[Die] = []
    for term in expr.replace(" ", "").split("+"):
        match = _TERM_PATTERN.match(term)
        if match is None:
            raise ValueError(f"Invalid dice expression: {expr}")
        count = int(match.group(1)) if match.group(1) else 1
        if count < 1 or count > MAX_DICE_PER_TERM:
            raise ValueError(f"Dice count must be between 1 and {MAX_DICE_PER_TERM}: {term}")
        pool.extend([parse_die(match.group(2))] * count)
    return pool


def format_pool(pool: list[Die]) -> str:
    """Render a pool as a compact expression, e.g. ``[d6, d6, d8]`` -> ``2d6+d8``."""
    counts: dict[Die, int] = {}
    for die in pool:
        counts[die] = counts.get(die, 0) + 1
    terms = [
        f"{count}{die!s}" if count > 1 else str(die)
        for die, count in counts.items()
    ]
    return "+".join(terms)
