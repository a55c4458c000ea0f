from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

__all__ = [
    "POSITIONS",
    "FORCED_FOLD",
    "ActionKind",
    "AnswerPolicy",
    "HandCode",
    "HandDecision",
    "JudgeMode",
    "Position",
    "QuestionResult",
    "RangeScenario",
    "RangeSet",
    "RangeSetMeta",
    "ScenarioType",
    "TrainingQuestion",
    "TrainingSession",
]

HandCode = str
Position = Literal["UTG", "UTG+1", "MP", "HJ", "CO", "BTN", "SB", "BB"]
POSITIONS: tuple[str, ...] = ("UTG", "UTG+1", "MP", "HJ", "CO", "BTN", "SB", "BB")


class ActionKind(str, Enum):
    RAISE = "RAISE"
    CALL = "CALL"
    FOLD = "FOLD"

    @classmethod
    def parse(cls, value: ActionKind | str) -> ActionKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"unknown action {value!r}; expected RAISE, CALL or FOLD") from None


class JudgeMode(str, Enum):
    FREQUENCY = "FREQUENCY"
    PROBABILISTIC = "PROBABILISTIC"


class AnswerPolicy(str, Enum):
    """How a PROBABILISTIC question is judged once an answer arrives."""

    RESAMPLE_ON_ANSWER = "resample-on-answer"
    FREEZE_AT_BUILD = "freeze-at-build"


class ScenarioType(str, Enum):
    OPEN = "OPEN"
    THREE_BET = "THREE_BET"
    FOUR_BET = "FOUR_BET"


@dataclass(frozen=True)
class HandDecision:
    """Action weights for a single hand; nominally sums to 100."""

    raise_: int = 0
    call: int = 0
    fold: int = 100

    @property
    def total(self) -> int:
        return self.raise_ + self.call + self.fold

    def weight(self, action: ActionKind) -> int:
        if action is ActionKind.RAISE:
            return self.raise_
        if action is ActionKind.CALL:
            return self.call
        return self.fold

    def as_dict(self) -> dict[str, int]:
        return {"raise": self.raise_, "call": self.call, "fold": self.fold}

    @classmethod
    def from_mapping(cls, data: Any) -> HandDecision:
        """Build from a ``{"raise", "call", "fold"}`` mapping, coercing junk to 0."""

        if isinstance(data, HandDecision):
            return data
        if not isinstance(data, dict):
            return FORCED_FOLD

        def _int(key: str) -> int:
            try:
                return int(data.get(key, 0) or 0)
            except (TypeError, ValueError):
                return 0

        return cls(raise_=_int("raise"), call=_int("call"), fold=_int("fold"))


FORCED_FOLD = HandDecision(raise_=0, call=0, fold=100)


@dataclass
class RangeScenario:
    id: str
    name: str
    hero_position: str
    stack_size_bb: float
    scenario_type: ScenarioType
    hands: dict[HandCode, HandDecision] = field(default_factory=dict)
    # Question pool, kept in canonical grid order.
    enabled_hand_codes: list[HandCode] = field(default_factory=list)
    villain_position: str | None = None
    description: str | None = None

    def decision_for(self, hand: HandCode) -> HandDecision:
        return self.hands.get(hand, FORCED_FOLD)


@dataclass
class RangeSetMeta:
    id: str
    name: str
    version: int
    game_type: str
    created_at: str
    updated_at: str
    description: str | None = None


@dataclass
class RangeSet:
    meta: RangeSetMeta
    scenarios: list[RangeScenario] = field(default_factory=list)


@dataclass(frozen=True)
class TrainingQuestion:
    id: str
    hand: HandCode
    correct_action: ActionKind
    correct_probabilities: HandDecision


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    hand: HandCode
    user_answer: ActionKind
    is_correct: bool
    correct_action: ActionKind
    scenario_id: str
    range_set_id: str
    timestamp: str


@dataclass
class TrainingSession:
    id: str
    started_at: str
    range_set_id: str
    scenario_id: str
    question_count: int
    results: list[QuestionResult] = field(default_factory=list)
    finished_at: str | None = None

    @property
    def correct_count(self) -> int:
        return sum(1 for result in self.results if result.is_correct)

    @property
    def accuracy(self) -> float:
        answered = len(self.results)
        return self.correct_count / answered if answered else 0.0
