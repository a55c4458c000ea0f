"""Aggregate statistics over past training sessions.

Everything here is a pure function of the session list: snapshots are rebuilt
on every request and never persisted.  Only answered questions count towards
totals, so partially played and empty sessions stay numerically consistent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, tzinfo

from .hands import to_grid_hand
from .models import TrainingSession

__all__ = [
    "RECENT_SESSION_LIMIT",
    "CategoryInput",
    "CategoryStats",
    "GlobalStats",
    "GrowthMetrics",
    "HandStats",
    "RecentSessionSummary",
    "ScenarioStats",
    "StatsSnapshot",
    "WeakHandsChange",
    "calc_category_stats",
    "calc_grid_hand_stats",
    "calc_growth",
    "calc_stats",
    "calc_streak_days",
    "get_weak_hands",
    "weak_hands_diff",
    "with_scenario_names",
]

RECENT_SESSION_LIMIT = 10
GROWTH_BASELINE_SESSIONS = 10


def _accuracy(correct: int, total: int) -> float:
    return correct / total if total > 0 else 0.0


@dataclass(frozen=True)
class GlobalStats:
    total_sessions: int
    total_questions: int
    total_correct: int
    accuracy: float


@dataclass(frozen=True)
class ScenarioStats:
    scenario_id: str
    scenario_name: str
    total_questions: int
    total_correct: int
    accuracy: float


@dataclass(frozen=True)
class HandStats:
    hand: str
    total_questions: int
    total_correct: int
    accuracy: float


@dataclass(frozen=True)
class RecentSessionSummary:
    id: str
    started_at: str
    finished_at: str | None
    scenario_id: str
    scenario_name: str
    accuracy: float
    question_count: int


@dataclass(frozen=True)
class StatsSnapshot:
    global_: GlobalStats
    by_scenario: list[ScenarioStats]
    by_hand: list[HandStats]
    recent_sessions: list[RecentSessionSummary]


@dataclass(frozen=True)
class CategoryInput:
    scenario_id: str
    hand: str
    is_correct: bool


@dataclass(frozen=True)
class CategoryStats:
    category_key: str
    total_questions: int
    total_correct: int
    accuracy: float


@dataclass(frozen=True)
class GrowthMetrics:
    has_enough_data: bool
    latest_accuracy: float | None
    baseline_accuracy: float | None
    diff: float | None
    latest_questions: int


@dataclass(frozen=True)
class WeakHandsChange:
    current: int
    previous: int | None
    diff: int | None


class _Tally:
    __slots__ = ("total", "correct")

    def __init__(self) -> None:
        self.total = 0
        self.correct = 0

    def add(self, total: int, correct: int) -> None:
        self.total += total
        self.correct += correct

    @property
    def accuracy(self) -> float:
        return _accuracy(self.correct, self.total)


def _hand_rollup(hands: Iterable[tuple[str, bool]]) -> list[HandStats]:
    tallies: dict[str, _Tally] = {}
    for hand, is_correct in hands:
        tallies.setdefault(hand, _Tally()).add(1, 1 if is_correct else 0)
    return [
        HandStats(hand=hand, total_questions=t.total, total_correct=t.correct, accuracy=t.accuracy)
        for hand, t in tallies.items()
    ]


def calc_stats(sessions: Sequence[TrainingSession]) -> StatsSnapshot:
    overall = _Tally()
    scenarios: dict[str, _Tally] = {}
    recent: list[RecentSessionSummary] = []

    for session in sessions:
        answered = len(session.results)
        correct = session.correct_count
        overall.add(answered, correct)
        scenarios.setdefault(session.scenario_id, _Tally()).add(answered, correct)
        recent.append(
            RecentSessionSummary(
                id=session.id,
                started_at=session.started_at,
                finished_at=session.finished_at,
                scenario_id=session.scenario_id,
                scenario_name="",
                accuracy=_accuracy(correct, answered),
                question_count=answered,
            )
        )

    by_hand = _hand_rollup((r.hand, r.is_correct) for s in sessions for r in s.results)
    by_scenario = [
        ScenarioStats(
            scenario_id=scenario_id,
            scenario_name="",
            total_questions=t.total,
            total_correct=t.correct,
            accuracy=t.accuracy,
        )
        for scenario_id, t in scenarios.items()
    ]
    recent.sort(key=lambda item: item.started_at, reverse=True)

    return StatsSnapshot(
        global_=GlobalStats(
            total_sessions=len(sessions),
            total_questions=overall.total,
            total_correct=overall.correct,
            accuracy=overall.accuracy,
        ),
        by_scenario=by_scenario,
        by_hand=by_hand,
        recent_sessions=recent[:RECENT_SESSION_LIMIT],
    )


def with_scenario_names(snapshot: StatsSnapshot, names: Mapping[str, str]) -> StatsSnapshot:
    """Fill scenario display names from an id -> name mapping."""

    return replace(
        snapshot,
        by_scenario=[replace(s, scenario_name=names.get(s.scenario_id) or s.scenario_id) for s in snapshot.by_scenario],
        recent_sessions=[
            replace(s, scenario_name=names.get(s.scenario_id) or s.scenario_id) for s in snapshot.recent_sessions
        ],
    )


def calc_grid_hand_stats(sessions: Sequence[TrainingSession]) -> list[HandStats]:
    """Per-hand rollup after folding raw dealt codes onto the 169 grid."""

    pairs: list[tuple[str, bool]] = []
    for session in sessions:
        for result in session.results:
            grid = to_grid_hand(result.hand)
            if grid is not None:
                pairs.append((grid, result.is_correct))
    return _hand_rollup(pairs)


def get_weak_hands(
    stats: StatsSnapshot,
    *,
    min_sample: int = 5,
    max_accuracy: float = 0.6,
) -> list[HandStats]:
    """Hands with enough answers and sub-threshold accuracy, worst first."""

    weak = [h for h in stats.by_hand if h.total_questions >= min_sample and h.accuracy <= max_accuracy]
    return sorted(weak, key=lambda h: h.accuracy)


def calc_category_stats(
    sessions: Sequence[TrainingSession],
    map_category: Callable[[CategoryInput], str | None],
) -> list[CategoryStats]:
    tallies: dict[str, _Tally] = {}
    for session in sessions:
        for result in session.results:
            key = map_category(CategoryInput(session.scenario_id, result.hand, result.is_correct))
            if not key:
                continue
            tallies.setdefault(key, _Tally()).add(1, 1 if result.is_correct else 0)
    return [
        CategoryStats(category_key=key, total_questions=t.total, total_correct=t.correct, accuracy=t.accuracy)
        for key, t in sorted(tallies.items())
    ]


def calc_growth(sessions: Sequence[TrainingSession]) -> GrowthMetrics:
    """Latest session accuracy against the mean of up to ten sessions before it."""

    if not sessions:
        return GrowthMetrics(False, None, None, None, 0)

    ordered = sorted(sessions, key=lambda s: s.started_at)
    latest = ordered[-1]
    previous = ordered[:-1]
    latest_accuracy = latest.accuracy
    if not previous:
        return GrowthMetrics(False, latest_accuracy, None, None, len(latest.results))

    baseline = previous[-GROWTH_BASELINE_SESSIONS:]
    baseline_accuracy = sum(s.accuracy for s in baseline) / len(baseline)
    return GrowthMetrics(
        has_enough_data=True,
        latest_accuracy=latest_accuracy,
        baseline_accuracy=baseline_accuracy,
        diff=latest_accuracy - baseline_accuracy,
        latest_questions=len(latest.results),
    )


def _local_date(stamp: str, tz: tzinfo | None) -> date | None:
    try:
        moment = datetime.fromisoformat(stamp)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.date()


def calc_streak_days(sessions: Sequence[TrainingSession], tz: tzinfo | None = None) -> int:
    """Consecutive calendar days with a session, ending at the latest session day.

    Dates are taken in ``tz`` (system local time when omitted).  Sessions whose
    ``started_at`` cannot be parsed are ignored.
    """

    days = {d for d in (_local_date(s.started_at, tz) for s in sessions) if d is not None}
    if not days:
        return 0
    ordered = sorted(days, reverse=True)
    streak = 1
    for newer, older in zip(ordered, ordered[1:]):
        if newer - older != timedelta(days=1):
            break
        streak += 1
    return streak


def weak_hands_diff(current: int, previous: int | None) -> WeakHandsChange:
    if previous is None:
        return WeakHandsChange(current=current, previous=None, diff=None)
    return WeakHandsChange(current=current, previous=previous, diff=current - previous)
