from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AnswerResponse",
    "CategoryStatsPayload",
    "DecisionPayload",
    "GlobalStatsPayload",
    "GrowthPayload",
    "HandStatsPayload",
    "NextResponse",
    "QuestionPayload",
    "RecentSessionPayload",
    "ResultPayload",
    "ScenarioStatsPayload",
    "SessionPayload",
    "SettingsPayload",
    "StatsPayload",
    "WeakHandsChangePayload",
]


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DecisionPayload(_APIModel):
    raise_: int = Field(..., alias="raise")
    call: int
    fold: int


class QuestionPayload(_APIModel):
    id: str
    hand: str
    number: int
    total: int


class SessionPayload(_APIModel):
    id: str
    started_at: str
    finished_at: str | None = None
    range_set_id: str
    scenario_id: str
    question_count: int
    answered: int
    correct: int
    accuracy: float


class NextResponse(_APIModel):
    done: bool
    session: SessionPayload
    question: QuestionPayload | None = None


class ResultPayload(_APIModel):
    question_id: str
    hand: str
    user_answer: str
    is_correct: bool
    correct_action: str
    best_actions: list[str]
    decision: DecisionPayload
    timestamp: str


class AnswerResponse(_APIModel):
    result: ResultPayload
    next_payload: NextResponse = Field(..., alias="next")


class GlobalStatsPayload(_APIModel):
    total_sessions: int
    total_questions: int
    total_correct: int
    accuracy: float


class ScenarioStatsPayload(_APIModel):
    scenario_id: str
    scenario_name: str
    total_questions: int
    total_correct: int
    accuracy: float


class HandStatsPayload(_APIModel):
    hand: str
    total_questions: int
    total_correct: int
    accuracy: float


class RecentSessionPayload(_APIModel):
    id: str
    started_at: str
    finished_at: str | None = None
    scenario_id: str
    scenario_name: str
    accuracy: float
    question_count: int


class CategoryStatsPayload(_APIModel):
    category_key: str
    total_questions: int
    total_correct: int
    accuracy: float


class GrowthPayload(_APIModel):
    has_enough_data: bool
    latest_accuracy: float | None = None
    baseline_accuracy: float | None = None
    diff: float | None = None
    latest_questions: int


class WeakHandsChangePayload(_APIModel):
    current: int
    previous: int | None = None
    diff: int | None = None


class StatsPayload(_APIModel):
    global_: GlobalStatsPayload = Field(..., alias="global")
    by_scenario: list[ScenarioStatsPayload]
    by_hand: list[HandStatsPayload]
    recent_sessions: list[RecentSessionPayload]
    categories: list[CategoryStatsPayload]
    growth: GrowthPayload
    streak_days: int
    weak_hands: list[HandStatsPayload]
    weak_hands_change: WeakHandsChangePayload


class SettingsPayload(_APIModel):
    judge_mode: str
    answer_policy: str
    active_range_set_id: str | None = None
    active_scenario_id: str | None = None
    use_preset_scope_id: str | None = None
    custom_scope_hands: list[str]
    haptic_feedback: bool
