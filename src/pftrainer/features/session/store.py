from __future__ import annotations

from collections.abc import Sequence

from ...core.models import TrainingQuestion

__all__ = ["SessionStore"]


class SessionStore:
    """Question queues of in-flight sessions, keyed by session id."""

    def __init__(self) -> None:
        self._queues: dict[str, tuple[TrainingQuestion, ...]] = {}

    def create(self, session_id: str, questions: Sequence[TrainingQuestion]) -> None:
        if session_id in self._queues:
            raise ValueError(f"session '{session_id}' already has a queue")
        self._queues[session_id] = tuple(questions)

    def get(self, session_id: str) -> tuple[TrainingQuestion, ...] | None:
        return self._queues.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._queues.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._queues

    def __len__(self) -> int:
        return len(self._queues)
