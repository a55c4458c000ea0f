from __future__ import annotations

import logging
import random
import secrets
import string
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from ...core.judging import RandomSource, judge_answer, pick_correct_action
from ...core.models import (
    ActionKind,
    HandCode,
    QuestionResult,
    RangeScenario,
    RangeSet,
    TrainingQuestion,
    TrainingSession,
)
from ...core.settings import AppSettings
from .store import SessionStore

__all__ = [
    "QUESTIONS_PER_SESSION",
    "NoActiveRangeSet",
    "NoActiveScenario",
    "NoPlayableHands",
    "Trainer",
    "TrainerConfigError",
    "build_question_hands",
]

logger = logging.getLogger(__name__)

QUESTIONS_PER_SESSION = 20


class TrainerConfigError(ValueError):
    """A session cannot be built with the current configuration."""


class NoActiveRangeSet(TrainerConfigError):
    def __init__(self) -> None:
        super().__init__("No active range set is selected. Pick a range set first.")


class NoActiveScenario(TrainerConfigError):
    def __init__(self) -> None:
        super().__init__("No active scenario is selected. Pick a scenario first.")


class NoPlayableHands(TrainerConfigError):
    def __init__(self) -> None:
        super().__init__("This scenario has no playable hands. Enable at least one hand in the hand grid.")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sid(length: int = 10) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def build_question_hands(pool: Sequence[HandCode], rng: RandomSource, target: int = QUESTIONS_PER_SESSION) -> list[HandCode]:
    """Shuffle ``pool`` once and repeat it until ``target`` hands are drawn.

    Pools no larger than ``target`` show every hand before any repeats; larger
    pools yield the first ``target`` hands of the shuffle.
    """

    if not pool:
        raise NoPlayableHands()
    shuffled = list(pool)
    rng.shuffle(shuffled)
    hands: list[HandCode] = []
    while len(hands) < target:
        hands.extend(shuffled)
    return hands[:target]


class Trainer:
    """Builds question queues and judges answers for training sessions.

    Sessions are owned by the caller.  The trainer only keeps the frozen
    question queue of each unfinished session; the current position is
    always ``len(session.results)``.
    """

    def __init__(
        self,
        settings: AppSettings,
        range_sets: Sequence[RangeSet],
        *,
        rng: RandomSource | None = None,
        store: SessionStore | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._settings = settings
        self._range_sets = list(range_sets)
        self._rng: RandomSource = rng if rng is not None else random.Random()
        self._store = store if store is not None else SessionStore()
        self._clock = clock or _utc_now

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def store(self) -> SessionStore:
        return self._store

    def update_config(self, settings: AppSettings, range_sets: Sequence[RangeSet]) -> None:
        """Swap settings and ranges; queues of sessions in flight are left alone."""

        self._settings = settings
        self._range_sets = list(range_sets)

    # ------------------------------------------------------------------ lookup
    def active_range_set(self) -> RangeSet | None:
        range_set_id = self._settings.active_range_set_id
        if not range_set_id:
            return None
        return next((rs for rs in self._range_sets if rs.meta.id == range_set_id), None)

    def active_scenario(self) -> RangeScenario | None:
        range_set = self.active_range_set()
        scenario_id = self._settings.active_scenario_id
        if range_set is None or not scenario_id:
            return None
        return next((sc for sc in range_set.scenarios if sc.id == scenario_id), None)

    # --------------------------------------------------------------- lifecycle
    def start_session(self, hands: Sequence[HandCode] | None = None) -> TrainingSession:
        """Build a new session; ``hands`` restricts the pool (review mode)."""

        range_set = self.active_range_set()
        if range_set is None:
            raise NoActiveRangeSet()
        scenario = self.active_scenario()
        if scenario is None:
            raise NoActiveScenario()

        if hands:
            pool = list(hands)
        elif scenario.enabled_hand_codes:
            pool = list(scenario.enabled_hand_codes)
        else:
            pool = list(scenario.hands)
        question_hands = build_question_hands(pool, self._rng)

        session_id = f"sess_{_sid()}"
        while session_id in self._store:
            session_id = f"sess_{_sid()}"
        mode = self._settings.judge_mode
        questions = []
        for index, hand in enumerate(question_hands):
            decision = scenario.decision_for(hand)
            questions.append(
                TrainingQuestion(
                    id=f"{session_id}_q{index}",
                    hand=hand,
                    correct_action=pick_correct_action(decision, mode, self._rng),
                    correct_probabilities=decision,
                )
            )

        self._store.create(session_id, questions)
        logger.debug(
            "session built",
            extra={"session_id": session_id, "scenario_id": scenario.id, "pool": len(pool), "review": bool(hands)},
        )
        return TrainingSession(
            id=session_id,
            started_at=self._clock(),
            range_set_id=range_set.meta.id,
            scenario_id=scenario.id,
            question_count=len(questions),
        )

    def questions(self, session: TrainingSession) -> tuple[TrainingQuestion, ...]:
        return self._store.get(session.id) or ()

    def next_question(self, session: TrainingSession) -> TrainingQuestion | None:
        queue = self._store.get(session.id)
        if queue is None:
            return None
        index = len(session.results)
        if index >= len(queue):
            return None
        return queue[index]

    def answer_question(
        self,
        session: TrainingSession,
        question: TrainingQuestion,
        user_answer: ActionKind | str,
    ) -> QuestionResult:
        """Judge ``user_answer`` with the judge mode configured right now."""

        answer = ActionKind.parse(user_answer)
        pending = self.next_question(session)
        if pending is None or pending.id != question.id:
            raise ValueError(f"question '{question.id}' is not pending for session '{session.id}'")

        is_correct, correct_action = judge_answer(
            question,
            answer,
            self._settings.judge_mode,
            self._rng,
            self._settings.answer_policy,
        )
        result = QuestionResult(
            question_id=question.id,
            hand=question.hand,
            user_answer=answer,
            is_correct=is_correct,
            correct_action=correct_action,
            scenario_id=session.scenario_id,
            range_set_id=session.range_set_id,
            timestamp=self._clock(),
        )
        session.results.append(result)
        return result

    def finish_session(self, session: TrainingSession) -> TrainingSession:
        session.finished_at = self._clock()
        session.question_count = len(session.results)
        self._store.remove(session.id)
        logger.debug("session finished", extra={"session_id": session.id, "answered": session.question_count})
        return session

    def abandon_session(self, session: TrainingSession) -> bool:
        """Drop the queue of an unfinished session; the session itself is untouched."""

        return self._store.remove(session.id)
