"""Correct-answer derivation for the two judge modes.

FREQUENCY rewards any action tied for the highest weight.  PROBABILISTIC
draws an action in proportion to the weights and rewards matching the draw.
Both modes accept degenerate all-zero decisions: fold is always among the
answers that count.
"""

from __future__ import annotations

from collections.abc import MutableSequence, Sequence
from typing import Any, Protocol

from .models import ActionKind, AnswerPolicy, HandDecision, JudgeMode, TrainingQuestion

__all__ = [
    "ACTION_ORDER",
    "RandomSource",
    "get_best_actions",
    "judge_answer",
    "pick_correct_action",
    "sample_weighted_action",
]

ACTION_ORDER: tuple[ActionKind, ...] = (ActionKind.RAISE, ActionKind.CALL, ActionKind.FOLD)


class RandomSource(Protocol):
    """Subset of :class:`random.Random` the trainer relies on."""

    def random(self) -> float: ...

    def randrange(self, stop: int) -> int: ...

    def shuffle(self, x: MutableSequence[Any]) -> None: ...


def get_best_actions(decision: HandDecision) -> list[ActionKind]:
    best = max(decision.weight(action) for action in ACTION_ORDER)
    return [action for action in ACTION_ORDER if decision.weight(action) == best]


def _choice(options: Sequence[ActionKind], rng: RandomSource) -> ActionKind:
    return options[rng.randrange(len(options))]


def sample_weighted_action(decision: HandDecision, rng: RandomSource) -> ActionKind:
    total = decision.total
    if total <= 0:
        return ActionKind.FOLD
    x = rng.random() * total
    if x < decision.raise_:
        return ActionKind.RAISE
    if x < decision.raise_ + decision.call:
        return ActionKind.CALL
    return ActionKind.FOLD


def pick_correct_action(decision: HandDecision, mode: JudgeMode, rng: RandomSource) -> ActionKind:
    """Return the label shown as "the" correct action for a freshly built question."""

    if decision.total <= 0:
        return ActionKind.FOLD
    if JudgeMode(mode) is JudgeMode.FREQUENCY:
        return _choice(get_best_actions(decision), rng)
    return sample_weighted_action(decision, rng)


def judge_answer(
    question: TrainingQuestion,
    answer: ActionKind,
    mode: JudgeMode,
    rng: RandomSource,
    policy: AnswerPolicy = AnswerPolicy.RESAMPLE_ON_ANSWER,
) -> tuple[bool, ActionKind]:
    """Judge ``answer`` against the decision frozen on ``question``.

    Returns ``(is_correct, correct_action)``.  FREQUENCY accepts the whole tied
    set while still reporting the question's label.  PROBABILISTIC either
    draws a fresh outcome or reuses the build-time label, depending on
    ``policy``.
    """

    decision = question.correct_probabilities
    if JudgeMode(mode) is JudgeMode.FREQUENCY:
        return answer in get_best_actions(decision), question.correct_action
    if AnswerPolicy(policy) is AnswerPolicy.FREEZE_AT_BUILD:
        correct = question.correct_action
    else:
        correct = sample_weighted_action(decision, rng)
    return answer == correct, correct
