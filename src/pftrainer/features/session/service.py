from __future__ import annotations

import logging
import random
import threading
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from typing import Any

from ...core.judging import RandomSource, get_best_actions
from ...core.models import ActionKind, AnswerPolicy, JudgeMode, QuestionResult, TrainingQuestion, TrainingSession
from ...core.settings import AppSettings, load_settings, save_settings
from ...core.stats import (
    CategoryStats,
    GrowthMetrics,
    HandStats,
    StatsSnapshot,
    calc_category_stats,
    calc_growth,
    calc_stats,
    calc_streak_days,
    get_weak_hands,
    weak_hands_diff,
    with_scenario_names,
)
from ...data.ranges import category_classifier, find_range_set_by_id, find_scenario_by_id, load_range_sets
from ...data.storage import KeyValueStore
from .concurrency import run_blocking
from .history import (
    append_session,
    consume_review_hands,
    load_previous_weak_count,
    load_sessions,
    save_previous_weak_count,
)
from .schemas import (
    AnswerResponse,
    CategoryStatsPayload,
    DecisionPayload,
    GlobalStatsPayload,
    GrowthPayload,
    HandStatsPayload,
    NextResponse,
    QuestionPayload,
    RecentSessionPayload,
    ResultPayload,
    ScenarioStatsPayload,
    SessionPayload,
    SettingsPayload,
    StatsPayload,
    WeakHandsChangePayload,
)
from .trainer import Trainer

__all__ = [
    "SessionManager",
    "SessionState",
    "WeakHandCriteria",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeakHandCriteria:
    min_sample: int = 5
    max_accuracy: float = 0.6


@dataclass
class SessionState:
    session: TrainingSession
    review: bool = False


class SessionManager:
    """Thread-safe facade over a single :class:`Trainer` and its persistence.

    The trainer itself is single-threaded; every call into it happens under
    ``self._lock`` so sessions may be driven from a worker pool.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        rng: RandomSource | None = None,
        weak_criteria: WeakHandCriteria | None = None,
    ) -> None:
        self._store = store
        self._weak = weak_criteria or WeakHandCriteria()
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionState] = {}
        self._range_sets = load_range_sets(store)
        self._trainer = Trainer(
            self._resolve_selection(load_settings(store)),
            self._range_sets,
            rng=rng if rng is not None else random.Random(),
        )

    @property
    def settings(self) -> AppSettings:
        return self._trainer.settings

    # ---------------------------------------------------------------- sessions
    def start(self, hands: Sequence[str] | None = None, *, review: bool = False) -> str:
        """Start a session; ``review`` pulls stashed or weak hands when ``hands`` is empty."""

        with self._lock:
            pool = list(hands or [])
            if review and not pool:
                pool = consume_review_hands(self._store) or self._weak_hand_codes()
                if not pool:
                    raise ValueError("no weak hands to review yet")
            session = self._trainer.start_session(pool or None)
            self._sessions[session.id] = SessionState(session=session, review=bool(pool))
            logger.debug("session started", extra={"session_id": session.id, "review": bool(pool)})
            return session.id

    async def start_async(self, hands: Sequence[str] | None = None, *, review: bool = False) -> str:
        return await run_blocking(self.start, hands, review=review)

    def start_review(self) -> str:
        return self.start(None, review=True)

    def next_question(self, session_id: str) -> NextResponse:
        with self._lock:
            state = self._require_session(session_id)
            return self._next_payload(state.session)

    async def next_question_async(self, session_id: str) -> NextResponse:
        return await run_blocking(self.next_question, session_id)

    def answer(self, session_id: str, answer: ActionKind | str) -> AnswerResponse:
        with self._lock:
            state = self._require_session(session_id)
            question = self._trainer.next_question(state.session)
            if question is None:
                raise ValueError("session already complete")
            result = self._trainer.answer_question(state.session, question, answer)
            return AnswerResponse(
                result=_result_payload(question, result),
                next_payload=self._next_payload(state.session),
            )

    async def answer_async(self, session_id: str, answer: ActionKind | str) -> AnswerResponse:
        return await run_blocking(self.answer, session_id, answer)

    def finish(self, session_id: str) -> SessionPayload:
        """Seal the session and append it to the stored history."""

        with self._lock:
            state = self._require_session(session_id)
            session = self._trainer.finish_session(state.session)
            self._sessions.pop(session_id, None)
            append_session(self._store, session)
            return _session_payload(session)

    async def finish_async(self, session_id: str) -> SessionPayload:
        return await run_blocking(self.finish, session_id)

    def abandon(self, session_id: str) -> None:
        with self._lock:
            state = self._require_session(session_id)
            self._trainer.abandon_session(state.session)
            self._sessions.pop(session_id, None)

    async def abandon_async(self, session_id: str) -> None:
        await run_blocking(self.abandon, session_id)

    def session(self, session_id: str) -> TrainingSession:
        with self._lock:
            return self._require_session(session_id).session

    # ------------------------------------------------------------------- stats
    def stats(self) -> StatsPayload:
        with self._lock:
            sessions = load_sessions(self._store)
            snapshot = with_scenario_names(calc_stats(sessions), self._scenario_names())
            weak = get_weak_hands(snapshot, min_sample=self._weak.min_sample, max_accuracy=self._weak.max_accuracy)
            previous = load_previous_weak_count(self._store)
            save_previous_weak_count(self._store, len(weak))
            categories = calc_category_stats(sessions, category_classifier(self._range_sets))
            return _stats_payload(
                snapshot,
                weak=weak,
                categories=categories,
                growth=calc_growth(sessions),
                streak_days=calc_streak_days(sessions),
                weak_previous=previous,
            )

    async def stats_async(self) -> StatsPayload:
        return await run_blocking(self.stats)

    def weak_hands(self) -> list[HandStats]:
        with self._lock:
            return self._weak_hands()

    def settings_payload(self) -> SettingsPayload:
        return _settings_payload(self._trainer.settings)

    async def weak_hands_async(self) -> list[HandStats]:
        return await run_blocking(self.weak_hands)

    async def settings_payload_async(self) -> SettingsPayload:
        return await run_blocking(self.settings_payload)

    # ---------------------------------------------------------------- settings
    def update_settings(self, **changes: Any) -> SettingsPayload:
        """Apply and persist settings changes; unknown keys raise ``ValueError``."""

        allowed = {f.name for f in fields(AppSettings)}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        if "judge_mode" in changes:
            changes["judge_mode"] = JudgeMode(changes["judge_mode"])
        if "answer_policy" in changes:
            changes["answer_policy"] = AnswerPolicy(changes["answer_policy"])
        with self._lock:
            updated = replace(self._trainer.settings, **changes)
            if "active_range_set_id" in changes and "active_scenario_id" not in changes:
                updated = replace(updated, active_scenario_id=None)
            updated = self._resolve_selection(updated, persist=False)
            save_settings(self._store, updated)
            self._trainer.update_config(updated, self._range_sets)
            return _settings_payload(updated)

    async def update_settings_async(self, **changes: Any) -> SettingsPayload:
        return await run_blocking(self.update_settings, **changes)

    def reload_ranges(self) -> None:
        with self._lock:
            self._range_sets = load_range_sets(self._store)
            settings = self._resolve_selection(self._trainer.settings)
            self._trainer.update_config(settings, self._range_sets)

    # ----------------------------------------------------------------- helpers
    def _resolve_selection(self, settings: AppSettings, *, persist: bool = True) -> AppSettings:
        """Point unset or stale selections at the first range set and scenario."""

        range_set = find_range_set_by_id(self._range_sets, settings.active_range_set_id)
        scenario = find_scenario_by_id(range_set, settings.active_scenario_id)
        resolved = replace(
            settings,
            active_range_set_id=range_set.meta.id if range_set else None,
            active_scenario_id=scenario.id if scenario else None,
        )
        if resolved != settings and persist:
            save_settings(self._store, resolved)
            logger.debug(
                "active selection resolved",
                extra={"range_set_id": resolved.active_range_set_id, "scenario_id": resolved.active_scenario_id},
            )
        return resolved

    def _require_session(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            raise KeyError(f"session '{session_id}' not found")
        return state

    def _next_payload(self, session: TrainingSession) -> NextResponse:
        question = self._trainer.next_question(session)
        payload = _session_payload(session)
        if question is None:
            return NextResponse(done=True, session=payload)
        return NextResponse(
            done=False,
            session=payload,
            question=QuestionPayload(
                id=question.id,
                hand=question.hand,
                number=len(session.results) + 1,
                total=session.question_count,
            ),
        )

    def _scenario_names(self) -> dict[str, str]:
        return {sc.id: sc.name for rs in self._range_sets for sc in rs.scenarios}

    def _weak_hands(self) -> list[HandStats]:
        snapshot = calc_stats(load_sessions(self._store))
        return get_weak_hands(snapshot, min_sample=self._weak.min_sample, max_accuracy=self._weak.max_accuracy)

    def _weak_hand_codes(self) -> list[str]:
        return [h.hand for h in self._weak_hands()]


def _session_payload(session: TrainingSession) -> SessionPayload:
    return SessionPayload(
        id=session.id,
        started_at=session.started_at,
        finished_at=session.finished_at,
        range_set_id=session.range_set_id,
        scenario_id=session.scenario_id,
        question_count=session.question_count,
        answered=len(session.results),
        correct=session.correct_count,
        accuracy=session.accuracy,
    )


def _result_payload(question: TrainingQuestion, result: QuestionResult) -> ResultPayload:
    decision = question.correct_probabilities
    return ResultPayload(
        question_id=result.question_id,
        hand=result.hand,
        user_answer=result.user_answer.value,
        is_correct=result.is_correct,
        correct_action=result.correct_action.value,
        best_actions=[action.value for action in get_best_actions(decision)],
        decision=DecisionPayload(raise_=decision.raise_, call=decision.call, fold=decision.fold),
        timestamp=result.timestamp,
    )


def _hand_payloads(hands: Sequence[HandStats]) -> list[HandStatsPayload]:
    return [
        HandStatsPayload(
            hand=h.hand,
            total_questions=h.total_questions,
            total_correct=h.total_correct,
            accuracy=h.accuracy,
        )
        for h in hands
    ]


def _stats_payload(
    snapshot: StatsSnapshot,
    *,
    weak: Sequence[HandStats],
    categories: Sequence[CategoryStats],
    growth: GrowthMetrics,
    streak_days: int,
    weak_previous: int | None,
) -> StatsPayload:
    overall = snapshot.global_
    change = weak_hands_diff(len(weak), weak_previous)
    return StatsPayload(
        global_=GlobalStatsPayload(
            total_sessions=overall.total_sessions,
            total_questions=overall.total_questions,
            total_correct=overall.total_correct,
            accuracy=overall.accuracy,
        ),
        by_scenario=[
            ScenarioStatsPayload(
                scenario_id=s.scenario_id,
                scenario_name=s.scenario_name,
                total_questions=s.total_questions,
                total_correct=s.total_correct,
                accuracy=s.accuracy,
            )
            for s in snapshot.by_scenario
        ],
        by_hand=_hand_payloads(snapshot.by_hand),
        recent_sessions=[
            RecentSessionPayload(
                id=s.id,
                started_at=s.started_at,
                finished_at=s.finished_at,
                scenario_id=s.scenario_id,
                scenario_name=s.scenario_name,
                accuracy=s.accuracy,
                question_count=s.question_count,
            )
            for s in snapshot.recent_sessions
        ],
        categories=[
            CategoryStatsPayload(
                category_key=c.category_key,
                total_questions=c.total_questions,
                total_correct=c.total_correct,
                accuracy=c.accuracy,
            )
            for c in categories
        ],
        growth=GrowthPayload(
            has_enough_data=growth.has_enough_data,
            latest_accuracy=growth.latest_accuracy,
            baseline_accuracy=growth.baseline_accuracy,
            diff=growth.diff,
            latest_questions=growth.latest_questions,
        ),
        streak_days=streak_days,
        weak_hands=_hand_payloads(weak),
        weak_hands_change=WeakHandsChangePayload(current=change.current, previous=change.previous, diff=change.diff),
    )


def _settings_payload(settings: AppSettings) -> SettingsPayload:
    return SettingsPayload(
        judge_mode=JudgeMode(settings.judge_mode).value,
        answer_policy=AnswerPolicy(settings.answer_policy).value,
        active_range_set_id=settings.active_range_set_id,
        active_scenario_id=settings.active_scenario_id,
        use_preset_scope_id=settings.use_preset_scope_id,
        custom_scope_hands=list(settings.custom_scope_hands),
        haptic_feedback=settings.haptic_feedback,
    )
