from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta, timezone

import pytest

from pftrainer.core.models import ActionKind, QuestionResult, TrainingSession
from pftrainer.core.stats import (
    CategoryInput,
    calc_category_stats,
    calc_grid_hand_stats,
    calc_growth,
    calc_stats,
    calc_streak_days,
    get_weak_hands,
    weak_hands_diff,
    with_scenario_names,
)


def _session(
    sid: str,
    started_at: str,
    outcomes: Sequence[tuple[str, bool]],
    *,
    scenario_id: str = "utg_open_40bb",
    question_count: int = 20,
) -> TrainingSession:
    results = [
        QuestionResult(
            question_id=f"{sid}_q{i}",
            hand=hand,
            user_answer=ActionKind.RAISE,
            is_correct=ok,
            correct_action=ActionKind.RAISE,
            scenario_id=scenario_id,
            range_set_id="rs",
            timestamp=started_at,
        )
        for i, (hand, ok) in enumerate(outcomes)
    ]
    return TrainingSession(
        id=sid,
        started_at=started_at,
        range_set_id="rs",
        scenario_id=scenario_id,
        question_count=question_count,
        results=results,
    )


def _day(day: int, hour: int = 10) -> str:
    return f"2024-03-{day:02d}T{hour:02d}:00:00+00:00"


def test_empty_history_yields_zeroed_stats() -> None:
    stats = calc_stats([])
    assert stats.global_.total_sessions == 0
    assert stats.global_.total_questions == 0
    assert stats.global_.total_correct == 0
    assert stats.global_.accuracy == 0
    assert stats.by_scenario == []
    assert stats.by_hand == []
    assert stats.recent_sessions == []


def test_totals_count_answered_questions_only() -> None:
    partial = _session("a", _day(1), [("AA", True), ("KK", True), ("72o", False)])
    other = _session("b", _day(2), [("AA", False)], scenario_id="btn_open_40bb")
    stats = calc_stats([partial, other])

    assert stats.global_.total_sessions == 2
    assert stats.global_.total_questions == 4
    assert stats.global_.total_correct == 2
    assert stats.global_.accuracy == pytest.approx(0.5)

    by_scenario = {s.scenario_id: s for s in stats.by_scenario}
    assert by_scenario["utg_open_40bb"].accuracy == pytest.approx(2 / 3)
    assert by_scenario["btn_open_40bb"].total_questions == 1

    by_hand = {h.hand: h for h in stats.by_hand}
    assert by_hand["AA"].total_questions == 2
    assert by_hand["AA"].accuracy == pytest.approx(0.5)
    assert by_hand["72o"].total_correct == 0


def test_recent_sessions_are_newest_first_and_capped() -> None:
    sessions = [_session(f"s{day}", _day(day), [("AA", day % 2 == 0)]) for day in range(1, 13)]
    recent = calc_stats(sessions).recent_sessions

    assert len(recent) == 10
    assert [s.id for s in recent[:3]] == ["s12", "s11", "s10"]
    assert recent[0].accuracy == 1.0
    assert recent[1].accuracy == 0.0


def test_scenario_names_are_resolved_from_mapping() -> None:
    stats = calc_stats([_session("a", _day(1), [("AA", True)])])
    named = with_scenario_names(stats, {"utg_open_40bb": "UTG open 40BB"})
    assert named.by_scenario[0].scenario_name == "UTG open 40BB"
    assert named.recent_sessions[0].scenario_name == "UTG open 40BB"
    assert stats.by_scenario[0].scenario_name == ""

    unnamed = with_scenario_names(stats, {})
    assert unnamed.by_scenario[0].scenario_name == "utg_open_40bb"
    assert unnamed.recent_sessions[0].scenario_name == "utg_open_40bb"


def test_weak_hands_need_enough_samples_and_low_accuracy() -> None:
    outcomes = (
        [("AA", False)] * 4
        + [("KK", True)] * 2 + [("KK", False)] * 3
        + [("QQ", True)] * 3 + [("QQ", False)] * 2
        + [("JJ", True)] * 4 + [("JJ", False)]
        + [("TT", True)] + [("TT", False)] * 5
    )  # fmt: skip
    stats = calc_stats([_session("a", _day(1), outcomes)])

    weak = get_weak_hands(stats)

    # AA is 0/4: below the sample floor, so it never qualifies.
    assert [h.hand for h in weak] == ["TT", "KK", "QQ"]
    assert [h.hand for h in get_weak_hands(stats, min_sample=4, max_accuracy=0.0)] == ["AA"]


def test_grid_rollup_folds_dealt_codes() -> None:
    outcomes = [("AhKh", True), ("AsKs", False), ("AKs", True), ("KAs", True), ("KdAc", True), ("??", True)]
    session = _session("a", _day(1), outcomes)
    rollup = {h.hand: h for h in calc_grid_hand_stats([session])}
    assert set(rollup) == {"AKs", "AKo"}
    assert rollup["AKs"].total_questions == 4
    assert rollup["AKs"].total_correct == 3
    assert rollup["AKo"].total_questions == 1


def test_category_stats_skip_unclassified_and_sort_by_key() -> None:
    session = _session("a", _day(1), [("KK", True), ("AA", False), ("72o", True), ("AKs", True)])
    seen: list[CategoryInput] = []

    def classify(item: CategoryInput) -> str | None:
        seen.append(item)
        if item.hand == "72o":
            return None
        return "UTG:premium" if item.hand in ("AA", "KK") else "UTG:strong"

    categories = calc_category_stats([session], classify)

    assert [c.category_key for c in categories] == ["UTG:premium", "UTG:strong"]
    assert categories[0].total_questions == 2
    assert categories[0].accuracy == pytest.approx(0.5)
    assert seen[0] == CategoryInput("utg_open_40bb", "KK", True)


def test_growth_needs_two_sessions() -> None:
    assert calc_growth([]).has_enough_data is False
    single = calc_growth([_session("a", _day(1), [("AA", True), ("KK", False)])])
    assert single.has_enough_data is False
    assert single.latest_accuracy == pytest.approx(0.5)
    assert single.diff is None


def test_growth_compares_latest_with_preceding_mean() -> None:
    sessions = [
        _session("latest", _day(3), [("AA", True), ("KK", False), ("QQ", False), ("JJ", False)]),
        _session("first", _day(1), [("AA", True), ("KK", False)]),
        _session("second", _day(2), [("AA", True)]),
    ]
    growth = calc_growth(sessions)
    assert growth.has_enough_data is True
    assert growth.latest_accuracy == pytest.approx(0.25)
    assert growth.baseline_accuracy == pytest.approx(0.75)
    assert growth.diff == pytest.approx(-0.5)
    assert growth.latest_questions == 4


def test_growth_baseline_uses_at_most_ten_sessions() -> None:
    old = [_session(f"old{day}", _day(day), [("AA", False)]) for day in (1, 2)]
    recent = [_session(f"r{day}", _day(day), [("AA", True)]) for day in range(3, 13)]
    latest = _session("latest", _day(13), [("AA", True)])
    growth = calc_growth([*old, *recent, latest])
    assert growth.baseline_accuracy == pytest.approx(1.0)
    assert growth.diff == pytest.approx(0.0)


def test_streak_counts_consecutive_days_back_from_latest() -> None:
    sessions = [
        _session("a", _day(10), []),
        _session("b", _day(10, 18), []),
        _session("c", _day(9), []),
        _session("d", _day(8), []),
        _session("e", _day(6), []),
    ]
    assert calc_streak_days(sessions, tz=timezone.utc) == 3
    assert calc_streak_days([], tz=timezone.utc) == 0
    assert calc_streak_days([_session("x", "not-a-date", [])], tz=timezone.utc) == 0


def test_streak_uses_local_calendar_dates() -> None:
    sessions = [
        _session("a", "2024-03-08T10:00:00+00:00", []),
        _session("b", "2024-03-09T23:30:00+00:00", []),
        _session("c", "2024-03-11T01:00:00+00:00", []),
    ]
    assert calc_streak_days(sessions, tz=timezone.utc) == 1
    assert calc_streak_days(sessions, tz=timezone(timedelta(hours=9))) == 2


def test_weak_hand_change_against_previous_count() -> None:
    first = weak_hands_diff(3, None)
    assert (first.current, first.previous, first.diff) == (3, None, None)
    later = weak_hands_diff(3, 5)
    assert later.diff == -2
