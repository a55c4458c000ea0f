from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from pftrainer.core.hands import TOTAL_HANDS, ranked_hands, sort_hands
from pftrainer.core.models import HandDecision, RangeSet, RangeSetMeta
from pftrainer.core.stats import CategoryInput
from pftrainer.data.ranges import (
    CATEGORY_KEYS,
    DEFAULT_RANGE_SET_ID,
    STRENGTH_PRESETS,
    apply_strength_preset,
    build_hand_category_index,
    category_classifier,
    create_default_range_set,
    default_category_buckets,
    delete_range_set,
    find_range_set_by_id,
    find_scenario_by_id,
    load_range_sets,
    range_set_from_dict,
    range_set_to_dict,
    save_range_sets,
    set_hand_decision,
    strength_tier,
    toggle_enabled_hand,
    touch,
)
from pftrainer.data.storage import STORAGE_KEYS, MemoryStore


def test_default_set_has_raise_only_open_ranges() -> None:
    range_set = create_default_range_set()
    assert range_set.meta.id == DEFAULT_RANGE_SET_ID
    assert [s.hero_position for s in range_set.scenarios] == ["UTG", "CO", "BTN"]
    for scenario in range_set.scenarios:
        assert scenario.enabled_hand_codes == sort_hands(scenario.enabled_hand_codes)
        assert set(scenario.hands) == set(scenario.enabled_hand_codes)
        assert all(decision.raise_ == 100 for decision in scenario.hands.values())
    utg, co, btn = (len(s.enabled_hand_codes) for s in range_set.scenarios)
    assert utg < co < btn


def test_load_seeds_defaults_into_empty_store() -> None:
    store = MemoryStore()
    loaded = load_range_sets(store)
    assert [rs.meta.id for rs in loaded] == [DEFAULT_RANGE_SET_ID]
    assert STORAGE_KEYS.RANGE_SETS in store


def test_load_replaces_unreadable_payload(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore()
    store.save_json(STORAGE_KEYS.RANGE_SETS, [{"scenarios": []}])
    with caplog.at_level(logging.WARNING, logger="pftrainer.data.ranges"):
        loaded = load_range_sets(store)
    assert [rs.meta.id for rs in loaded] == [DEFAULT_RANGE_SET_ID]
    assert "restoring defaults" in caplog.text


def test_stored_range_sets_survive_a_reload() -> None:
    store = MemoryStore()
    original = create_default_range_set()
    set_hand_decision(original.scenarios[0], "AQo", HandDecision(raise_=40, call=30, fold=30))
    save_range_sets(store, [original])

    payload = store.load_json(STORAGE_KEYS.RANGE_SETS, [])
    assert payload[0]["scenarios"][0]["hands"]["AQo"] == {"raise": 40, "call": 30, "fold": 30}
    assert load_range_sets(store) == [original]


def test_decoder_coerces_loose_payloads() -> None:
    decoded = range_set_from_dict(
        {
            "meta": {"id": "custom"},
            "scenarios": [
                {
                    "id": "sb_vs_bb",
                    "scenario_type": "three_bet",
                    "hands": {"AA": {"raise": "100"}, "KK": "junk"},
                    "enabled_hand_codes": ["AA", "KK"],
                }
            ],
        }
    )
    scenario = decoded.scenarios[0]
    assert decoded.meta.name == "custom"
    assert scenario.name == "sb_vs_bb"
    assert scenario.scenario_type.value == "THREE_BET"
    assert scenario.hands["AA"] == HandDecision(raise_=100, call=0, fold=0)
    assert scenario.hands["KK"].fold == 100
    assert range_set_to_dict(decoded)["meta"]["id"] == "custom"


def test_finders_fall_back_to_first_entry() -> None:
    range_set = create_default_range_set()
    assert find_range_set_by_id([range_set], "missing") is range_set
    assert find_range_set_by_id([], "missing") is None
    assert find_scenario_by_id(range_set, "btn_open_40bb").hero_position == "BTN"
    assert find_scenario_by_id(range_set, None).hero_position == "UTG"
    assert find_scenario_by_id(None, "btn_open_40bb") is None


def test_toggle_keeps_pool_in_grid_order() -> None:
    scenario = create_default_range_set().scenarios[0]
    assert toggle_enabled_hand(scenario, "22") is True
    assert scenario.enabled_hand_codes[-1] != "22"
    assert scenario.enabled_hand_codes == sort_hands(scenario.enabled_hand_codes)
    assert toggle_enabled_hand(scenario, "22") is False
    assert "22" not in scenario.enabled_hand_codes
    with pytest.raises(ValueError, match="unknown hand"):
        toggle_enabled_hand(scenario, "AKx")


def test_set_hand_decision_validates_weights() -> None:
    scenario = create_default_range_set().scenarios[0]
    with pytest.raises(ValueError, match="between 0 and 100"):
        set_hand_decision(scenario, "AA", HandDecision(raise_=120, call=0, fold=0))
    with pytest.raises(ValueError, match="unknown hand"):
        set_hand_decision(scenario, "A1s", HandDecision())
    set_hand_decision(scenario, "AA", HandDecision(raise_=20, call=20, fold=20))
    assert scenario.decision_for("AA").total == 60


def test_delete_range_set_keeps_at_least_one() -> None:
    first = create_default_range_set()
    meta = RangeSetMeta(id="second", name="Second", version=1, game_type="6max", created_at="", updated_at="")
    second = RangeSet(meta=meta)

    assert delete_range_set([first, second], "second") == [first]
    with pytest.raises(KeyError):
        delete_range_set([first, second], "missing")
    with pytest.raises(ValueError, match="must remain"):
        delete_range_set([first], DEFAULT_RANGE_SET_ID)


def test_strength_presets_enable_the_strongest_hands() -> None:
    scenario = create_default_range_set().scenarios[0]

    enabled = apply_strength_preset(scenario, STRENGTH_PRESETS["p25"].ratio)
    assert len(enabled) == round(TOTAL_HANDS * 0.25)
    assert set(enabled) == set(ranked_hands()[: len(enabled)])
    assert enabled == sort_hands(enabled)
    assert scenario.enabled_hand_codes == enabled

    assert len(apply_strength_preset(scenario, STRENGTH_PRESETS["all"].ratio)) == TOTAL_HANDS
    assert apply_strength_preset(scenario, 0.001) == ["AA"]
    with pytest.raises(ValueError):
        apply_strength_preset(scenario, 0)


def test_strength_tiers_cover_the_top_hundred_hands() -> None:
    assert strength_tier("AA") == "premium"
    assert strength_tier("AsAd") == "premium"
    assert strength_tier(ranked_hands()[-1]) is None
    assert strength_tier("XX") is None

    buckets = default_category_buckets()
    utg = buckets["UTG"]
    assert [len(utg[key]) for key in CATEGORY_KEYS] == [10, 20, 30, 40]


def test_category_classifier_keys_by_hero_position() -> None:
    range_sets = [create_default_range_set()]
    classify = category_classifier(range_sets)

    assert classify(CategoryInput("utg_open_40bb", "AA", True)) == "UTG:premium"
    assert classify(CategoryInput("btn_open_40bb", "AhAc", False)) == "BTN:premium"
    assert classify(CategoryInput("unknown", "AA", True)) is None
    assert classify(CategoryInput("utg_open_40bb", ranked_hands()[-1], True)) is None

    custom = build_hand_category_index({"UTG": {"speculative": ["AA"]}})
    assert category_classifier(range_sets, custom)(CategoryInput("utg_open_40bb", "AA", True)) == "UTG:speculative"


def test_touch_bumps_updated_at_only() -> None:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    edited = datetime(2024, 2, 1, tzinfo=timezone.utc)
    range_set = create_default_range_set(now=lambda: created)

    touch(range_set, now=lambda: edited)

    assert range_set.meta.created_at == created.isoformat()
    assert range_set.meta.updated_at == edited.isoformat()
