"""Range library: seed data, persistence and editing helpers.

The trainer only reads range sets.  Everything that mutates a scenario lives
here and is driven by the editor surface.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Final

from ..core.hands import TOTAL_HANDS, is_grid_hand, ranked_hands, sort_hands, to_grid_hand
from ..core.models import (
    POSITIONS,
    HandCode,
    HandDecision,
    RangeScenario,
    RangeSet,
    RangeSetMeta,
    ScenarioType,
)
from ..core.stats import CategoryInput
from .storage import STORAGE_KEYS, KeyValueStore

__all__ = [
    "CATEGORY_KEYS",
    "DEFAULT_RANGE_SET_ID",
    "STRENGTH_PRESETS",
    "StrengthPreset",
    "apply_strength_preset",
    "build_hand_category_index",
    "category_classifier",
    "create_default_range_set",
    "default_category_buckets",
    "delete_range_set",
    "find_range_set_by_id",
    "find_scenario_by_id",
    "load_range_sets",
    "range_set_from_dict",
    "range_set_to_dict",
    "save_range_sets",
    "set_hand_decision",
    "strength_tier",
    "toggle_enabled_hand",
    "touch",
]

logger = logging.getLogger(__name__)

DEFAULT_RANGE_SET_ID: Final = "default_6max_open"

_UTG_OPEN = ("AA", "KK", "QQ", "JJ", "TT", "AKs", "AQs", "AJs", "KQs", "AKo", "AQo")
_CO_OPEN = (
    "AA", "KK", "QQ", "JJ", "TT", "99", "88",
    "AKs", "AQs", "AJs", "ATs", "KQs", "KJs", "QJs", "JTs", "T9s",
    "AKo", "AQo", "AJo",
)  # fmt: skip
_BTN_OPEN = (
    "AA", "KK", "QQ", "JJ", "TT", "99", "88", "77", "66",
    "AKs", "AQs", "AJs", "ATs", "A9s", "A8s", "KQs", "KJs", "KTs",
    "QJs", "QTs", "JTs", "T9s", "98s", "87s",
    "AKo", "AQo", "AJo", "ATo",
)  # fmt: skip


def _now_iso(now: Callable[[], datetime] | None = None) -> str:
    moment = now() if now is not None else datetime.now(timezone.utc)
    return moment.isoformat()


def _open_raise_scenario(
    scenario_id: str,
    name: str,
    hero_position: str,
    stack_size_bb: float,
    open_hands: Iterable[str],
    description: str | None = None,
) -> RangeScenario:
    raise_all = HandDecision(raise_=100, call=0, fold=0)
    enabled = sort_hands(open_hands)
    return RangeScenario(
        id=scenario_id,
        name=name,
        hero_position=hero_position,
        stack_size_bb=stack_size_bb,
        scenario_type=ScenarioType.OPEN,
        hands={hand: raise_all for hand in enabled},
        enabled_hand_codes=enabled,
        description=description,
    )


def create_default_range_set(now: Callable[[], datetime] | None = None) -> RangeSet:
    """Seed set: 6-max 40bb open ranges for UTG, CO and BTN."""

    timestamp = _now_iso(now)
    scenarios = [
        _open_raise_scenario("utg_open_40bb", "UTG open 40BB", "UTG", 40, _UTG_OPEN, "6-max UTG open range"),
        _open_raise_scenario("co_open_40bb", "CO open 40BB", "CO", 40, _CO_OPEN, "6-max CO open range"),
        _open_raise_scenario("btn_open_40bb", "BTN open 40BB", "BTN", 40, _BTN_OPEN, "6-max BTN open range"),
    ]
    meta = RangeSetMeta(
        id=DEFAULT_RANGE_SET_ID,
        name="6-max open ranges (default)",
        version=1,
        game_type="6max",
        created_at=timestamp,
        updated_at=timestamp,
        description="Default set with UTG / CO / BTN 40BB open ranges",
    )
    return RangeSet(meta=meta, scenarios=scenarios)


# ---------------------------------------------------------------- serialisation
def _scenario_to_dict(scenario: RangeScenario) -> dict[str, Any]:
    return {
        "id": scenario.id,
        "name": scenario.name,
        "hero_position": scenario.hero_position,
        "villain_position": scenario.villain_position,
        "stack_size_bb": scenario.stack_size_bb,
        "scenario_type": scenario.scenario_type.value,
        "description": scenario.description,
        "hands": {hand: decision.as_dict() for hand, decision in scenario.hands.items()},
        "enabled_hand_codes": list(scenario.enabled_hand_codes),
    }


def range_set_to_dict(range_set: RangeSet) -> dict[str, Any]:
    meta = range_set.meta
    return {
        "meta": {
            "id": meta.id,
            "name": meta.name,
            "version": meta.version,
            "game_type": meta.game_type,
            "created_at": meta.created_at,
            "updated_at": meta.updated_at,
            "description": meta.description,
        },
        "scenarios": [_scenario_to_dict(scenario) for scenario in range_set.scenarios],
    }


def _scenario_type(raw: Any) -> ScenarioType:
    try:
        return ScenarioType(str(raw).upper())
    except ValueError:
        return ScenarioType.OPEN


def _scenario_from_dict(data: Mapping[str, Any]) -> RangeScenario:
    hands_raw = data.get("hands") or {}
    if not isinstance(hands_raw, Mapping):
        raise ValueError("scenario hands must be a mapping")
    hands = {str(hand): HandDecision.from_mapping(value) for hand, value in hands_raw.items()}
    enabled_raw = data.get("enabled_hand_codes") or []
    if not isinstance(enabled_raw, list):
        raise ValueError("enabled_hand_codes must be a list")
    return RangeScenario(
        id=str(data["id"]),
        name=str(data.get("name") or data["id"]),
        hero_position=str(data.get("hero_position") or ""),
        villain_position=data.get("villain_position"),
        stack_size_bb=float(data.get("stack_size_bb") or 0.0),
        scenario_type=_scenario_type(data.get("scenario_type")),
        description=data.get("description"),
        hands=hands,
        enabled_hand_codes=[str(hand) for hand in enabled_raw],
    )


def range_set_from_dict(data: Mapping[str, Any]) -> RangeSet:
    """Decode a stored range set; raises ``KeyError``/``ValueError``/``TypeError`` on bad payloads."""

    meta_raw = data["meta"]
    meta = RangeSetMeta(
        id=str(meta_raw["id"]),
        name=str(meta_raw.get("name") or meta_raw["id"]),
        version=int(meta_raw.get("version") or 1),
        game_type=str(meta_raw.get("game_type") or ""),
        created_at=str(meta_raw.get("created_at") or ""),
        updated_at=str(meta_raw.get("updated_at") or ""),
        description=meta_raw.get("description"),
    )
    scenarios = [_scenario_from_dict(item) for item in data.get("scenarios") or []]
    return RangeSet(meta=meta, scenarios=scenarios)


# ------------------------------------------------------------------ persistence
def save_range_sets(store: KeyValueStore, range_sets: Iterable[RangeSet]) -> None:
    store.save_json(STORAGE_KEYS.RANGE_SETS, [range_set_to_dict(rs) for rs in range_sets])


def _defaults(store: KeyValueStore) -> list[RangeSet]:
    defaults = [create_default_range_set()]
    save_range_sets(store, defaults)
    return defaults


def load_range_sets(store: KeyValueStore) -> list[RangeSet]:
    """Return stored range sets, seeding the default when none are usable."""

    raw = store.load_json(STORAGE_KEYS.RANGE_SETS, None)
    if not isinstance(raw, list) or not raw:
        return _defaults(store)
    try:
        return [range_set_from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Stored range sets are unreadable (%s); restoring defaults", exc)
        return _defaults(store)


def find_range_set_by_id(range_sets: list[RangeSet], range_set_id: str | None) -> RangeSet | None:
    """Lenient lookup for selectors: falls back to the first set."""

    if not range_sets:
        return None
    if not range_set_id:
        return range_sets[0]
    for range_set in range_sets:
        if range_set.meta.id == range_set_id:
            return range_set
    return range_sets[0]


def find_scenario_by_id(range_set: RangeSet | None, scenario_id: str | None) -> RangeScenario | None:
    if range_set is None or not range_set.scenarios:
        return None
    if not scenario_id:
        return range_set.scenarios[0]
    for scenario in range_set.scenarios:
        if scenario.id == scenario_id:
            return scenario
    return range_set.scenarios[0]


# ---------------------------------------------------------------------- editing
def touch(range_set: RangeSet, now: Callable[[], datetime] | None = None) -> RangeSet:
    range_set.meta = replace(range_set.meta, updated_at=_now_iso(now))
    return range_set


def delete_range_set(range_sets: list[RangeSet], range_set_id: str) -> list[RangeSet]:
    remaining = [rs for rs in range_sets if rs.meta.id != range_set_id]
    if len(remaining) == len(range_sets):
        raise KeyError(f"range set '{range_set_id}' not found")
    if not remaining:
        raise ValueError("at least one range set must remain")
    return remaining


def toggle_enabled_hand(scenario: RangeScenario, hand: HandCode) -> bool:
    """Flip ``hand`` in the question pool; returns True when it is now enabled."""

    if not is_grid_hand(hand):
        raise ValueError(f"unknown hand code {hand!r}")
    enabled = set(scenario.enabled_hand_codes)
    if hand in enabled:
        enabled.discard(hand)
        now_enabled = False
    else:
        enabled.add(hand)
        now_enabled = True
    scenario.enabled_hand_codes = sort_hands(enabled)
    return now_enabled


def set_hand_decision(scenario: RangeScenario, hand: HandCode, decision: HandDecision) -> None:
    if not is_grid_hand(hand):
        raise ValueError(f"unknown hand code {hand!r}")
    for value in (decision.raise_, decision.call, decision.fold):
        if not isinstance(value, int) or not 0 <= value <= 100:
            raise ValueError("decision weights must be integers between 0 and 100")
    if decision.total != 100:
        logger.debug("Decision for %s sums to %d; weights are treated as relative", hand, decision.total)
    scenario.hands[hand] = decision


@dataclass(frozen=True)
class StrengthPreset:
    id: str
    name: str
    ratio: float


STRENGTH_PRESETS: dict[str, StrengthPreset] = {
    preset.id: preset
    for preset in (
        StrengthPreset("p25", "Top 25%", 0.25),
        StrengthPreset("p45", "Top 45%", 0.45),
        StrengthPreset("p50", "Top 50%", 0.50),
        StrengthPreset("p75", "Top 75%", 0.75),
        StrengthPreset("all", "All hands", 1.0),
    )
}


def apply_strength_preset(scenario: RangeScenario, ratio: float) -> list[HandCode]:
    """Enable the strongest ``round(169 * ratio)`` hands (at least one)."""

    if not 0.0 < ratio <= 1.0:
        raise ValueError("ratio must be within (0, 1]")
    threshold = max(1, round(TOTAL_HANDS * ratio))
    scenario.enabled_hand_codes = sort_hands(ranked_hands()[:threshold])
    return list(scenario.enabled_hand_codes)


# ------------------------------------------------------------------- categories
CATEGORY_KEYS: tuple[str, ...] = ("premium", "strong", "medium", "speculative")

# Cumulative rank cut-offs into the strength ordering.
_TIER_LIMITS: tuple[tuple[str, int], ...] = (
    ("premium", 10),
    ("strong", 30),
    ("medium", 60),
    ("speculative", 100),
)


def strength_tier(hand: str) -> str | None:
    grid = to_grid_hand(hand)
    if grid is None or not is_grid_hand(grid):
        return None
    rank = ranked_hands().index(grid)
    for tier, limit in _TIER_LIMITS:
        if rank < limit:
            return tier
    return None


def default_category_buckets() -> dict[str, dict[str, list[str]]]:
    """Strength tiers applied uniformly to every position."""

    tiers: dict[str, list[str]] = {key: [] for key in CATEGORY_KEYS}
    for hand in ranked_hands():
        tier = strength_tier(hand)
        if tier is not None:
            tiers[tier].append(hand)
    return {position: {key: list(hands) for key, hands in tiers.items()} for position in POSITIONS}


def build_hand_category_index(
    buckets: Mapping[str, Mapping[str, Iterable[str]]],
) -> dict[str, dict[str, str]]:
    """Invert ``{position: {tier: hands}}`` to ``{position: {hand: tier}}``.

    A hand listed under several tiers keeps the last one seen.
    """

    index: dict[str, dict[str, str]] = {position: {} for position in POSITIONS}
    for position, by_tier in buckets.items():
        target = index.setdefault(position, {})
        for tier in CATEGORY_KEYS:
            for hand in by_tier.get(tier, ()) or ():
                if hand:
                    target[hand] = tier
    return index


def category_classifier(
    range_sets: Iterable[RangeSet],
    index: Mapping[str, Mapping[str, str]] | None = None,
) -> Callable[[CategoryInput], str | None]:
    """Return a classifier keyed ``"<heroPosition>:<tier>"`` for category stats."""

    hero_by_scenario: dict[str, str] = {}
    for range_set in range_sets:
        for scenario in range_set.scenarios:
            hero_by_scenario.setdefault(scenario.id, scenario.hero_position)
    lookup = index if index is not None else build_hand_category_index(default_category_buckets())

    def _classify(item: CategoryInput) -> str | None:
        position = hero_by_scenario.get(item.scenario_id)
        if not position:
            return None
        grid = to_grid_hand(item.hand)
        if grid is None:
            return None
        tier = lookup.get(position, {}).get(grid)
        if not tier:
            return None
        return f"{position}:{tier}"

    return _classify
