"""Session feature: trainer, persistence, service layer, and API router."""

from .router import create_session_routers
from .schemas import (
    AnswerResponse,
    NextResponse,
    QuestionPayload,
    ResultPayload,
    SessionPayload,
    SettingsPayload,
    StatsPayload,
)
from .service import SessionManager, WeakHandCriteria
from .trainer import (
    QUESTIONS_PER_SESSION,
    NoActiveRangeSet,
    NoActiveScenario,
    NoPlayableHands,
    Trainer,
    TrainerConfigError,
)

__all__ = [
    "QUESTIONS_PER_SESSION",
    "AnswerResponse",
    "NextResponse",
    "NoActiveRangeSet",
    "NoActiveScenario",
    "NoPlayableHands",
    "QuestionPayload",
    "ResultPayload",
    "SessionManager",
    "SessionPayload",
    "SettingsPayload",
    "StatsPayload",
    "Trainer",
    "TrainerConfigError",
    "WeakHandCriteria",
    "create_session_routers",
]
