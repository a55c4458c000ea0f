"""Hand-code helpers for the 13x13 preflop grid.

Grid hands are written high rank first: ``"AA"``, ``"AKs"``, ``"AKo"``.  Raw
dealt codes such as ``"AhKh"`` are accepted by :func:`to_grid_hand` and folded
onto the grid.  The strength ordering is a deterministic heuristic used for
bulk presets and tiering, not an equity calculation.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

__all__ = [
    "GRID_SIZE",
    "RANKS",
    "TOTAL_HANDS",
    "hand_at",
    "hand_coords",
    "hand_grid_order",
    "hand_strength",
    "is_grid_hand",
    "ranked_hands",
    "sort_hands",
    "to_grid_hand",
]

RANKS = "AKQJT98765432"
GRID_SIZE = len(RANKS)
TOTAL_HANDS = GRID_SIZE * GRID_SIZE

_GRID_PATTERN = re.compile(r"^[2-9TJQKA]{2}[so]?$")
_CARDS_PATTERN = re.compile(r"^([2-9TJQKA])([shdc])([2-9TJQKA])([shdc])$", re.IGNORECASE)


@lru_cache(maxsize=1)
def _grid_order() -> tuple[str, ...]:
    pairs = [rank + rank for rank in RANKS]
    suited = [f"{hi}{lo}s" for i, hi in enumerate(RANKS) for lo in RANKS[i + 1 :]]
    offsuit = [hand[:2] + "o" for hand in suited]
    return (*pairs, *suited, *offsuit)


def hand_grid_order() -> list[str]:
    """Return all 169 hands: pairs, suited, offsuit, each by descending rank."""

    return list(_grid_order())


@lru_cache(maxsize=1)
def _grid_index() -> dict[str, int]:
    return {hand: idx for idx, hand in enumerate(_grid_order())}


def is_grid_hand(code: str) -> bool:
    return code in _grid_index()


def sort_hands(hands: Iterable[str]) -> list[str]:
    """Order hands canonically; unknown codes keep their relative order at the end."""

    index = _grid_index()
    unique = list(dict.fromkeys(hands))
    return sorted(unique, key=lambda hand: index.get(hand, TOTAL_HANDS))


def hand_at(row: int, col: int) -> str:
    """Return the grid hand at ``(row, col)``: pairs on the diagonal, suited above."""

    if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
        raise ValueError(f"Invalid row/col: {row}, {col}")
    r1 = RANKS[row]
    r2 = RANKS[col]
    if row == col:
        return f"{r1}{r2}"
    if row < col:
        return f"{r1}{r2}s"
    return f"{r2}{r1}o"


def hand_coords(hand: str) -> tuple[int, int]:
    if len(hand) < 2:
        raise ValueError(f"Invalid hand: {hand}")
    i1 = RANKS.find(hand[0])
    i2 = RANKS.find(hand[1])
    if i1 == -1 or i2 == -1:
        raise ValueError(f"Invalid ranks in hand: {hand}")
    suffix = hand[2:]
    if i1 == i2:
        if suffix:
            raise ValueError(f"Pairs take no suited/offsuit suffix: {hand}")
        return i1, i1
    if suffix == "":
        raise ValueError(f"Missing suited/offsuit suffix in hand: {hand}")
    high, low = min(i1, i2), max(i1, i2)
    if suffix == "s":
        return high, low
    if suffix == "o":
        return low, high
    raise ValueError(f"Invalid suited/offsuit suffix in hand: {hand}")


def _reorder_grid_code(raw: str) -> str | None:
    r1, r2, suffix = raw[0], raw[1], raw[2:]
    if (r1 == r2) != (suffix == ""):
        return None
    if RANKS.index(r1) > RANKS.index(r2):
        r1, r2 = r2, r1
    return f"{r1}{r2}{suffix}"


def to_grid_hand(code: str) -> str | None:
    """Normalise a 169 code or a raw two-card code (``"AsKd"``) to a grid hand."""

    raw = str(code).strip()
    if is_grid_hand(raw):
        return raw
    if _GRID_PATTERN.match(raw):
        return _reorder_grid_code(raw)
    match = _CARDS_PATTERN.match(raw)
    if not match:
        return None
    r1, s1, r2, s2 = match.groups()
    r1, r2 = r1.upper(), r2.upper()
    if r1 == r2:
        return r1 + r2
    # RANKS is strongest first, so the lower index is the higher rank.
    high, low = (r1, r2) if RANKS.index(r1) < RANKS.index(r2) else (r2, r1)
    suffix = "s" if s1.lower() == s2.lower() else "o"
    return f"{high}{low}{suffix}"


def hand_strength(hand: str) -> float:
    """Return a deterministic playability score for a grid hand.

    Suited and connected holdings gain value for their board coverage while
    offsuit, gappy hands with weak kickers lose weight.
    """

    row, col = hand_coords(hand)
    # Map to 0 (deuce) .. 12 (ace).
    high = GRID_SIZE - 1 - min(row, col)
    low = GRID_SIZE - 1 - max(row, col)
    suited = row < col
    pair = row == col

    score = high * 10 + low
    if pair:
        return float(score + 80 + high * 5)
    if suited:
        score += 5
    gap = high - low - 1
    if gap <= 0:
        score += 4
    elif gap == 1:
        score += 3
    elif gap == 2:
        score += 1
    elif gap >= 4:
        score -= gap

    offsuit_penalty = 0.0 if suited else 1.0
    if gap >= 2:
        score -= offsuit_penalty * (gap - 1.5)
    if not suited and low <= 4:
        score -= 3.4 - 0.35 * low
    if not suited and gap >= 2 and low <= 5:
        score -= 0.6 * (6 - low)
    if gap >= 5:
        score -= 0.5 * gap
    if not suited and high <= 9:
        score -= 0.5
    if not suited and gap >= 3:
        score -= 1.2 * (gap - 2)
    if not suited and high >= 10 and low <= 5 and gap >= 3:
        score -= 6.0
    return float(score)


@lru_cache(maxsize=1)
def _ranked() -> tuple[str, ...]:
    index = _grid_index()
    return tuple(sorted(_grid_order(), key=lambda hand: (-hand_strength(hand), index[hand])))


def ranked_hands() -> list[str]:
    """All 169 hands, strongest first; ties keep grid order."""

    return list(_ranked())
