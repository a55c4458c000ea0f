"""Persistence of finished sessions and review hand-offs.

The trainer never touches storage itself; callers save after each mutation
as they see fit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import TypeAdapter, ValidationError

from ...core.models import HandCode, TrainingSession
from ...data.storage import STORAGE_KEYS, KeyValueStore

__all__ = [
    "append_session",
    "consume_review_hands",
    "load_previous_weak_count",
    "load_sessions",
    "save_previous_weak_count",
    "save_sessions",
    "session_from_dict",
    "session_to_dict",
    "stash_review_hands",
]

logger = logging.getLogger(__name__)

_SESSION = TypeAdapter(TrainingSession)
_HANDS = TypeAdapter(list[str])


def session_to_dict(session: TrainingSession) -> dict[str, object]:
    return _SESSION.dump_python(session, mode="json")


def session_from_dict(data: object) -> TrainingSession:
    return _SESSION.validate_python(data)


def load_sessions(store: KeyValueStore) -> list[TrainingSession]:
    raw = store.load_json(STORAGE_KEYS.TRAINING_SESSIONS, [])
    if not isinstance(raw, list):
        return []
    sessions: list[TrainingSession] = []
    for entry in raw:
        try:
            sessions.append(session_from_dict(entry))
        except ValidationError as exc:
            logger.debug("Dropping malformed stored session (%d errors)", exc.error_count())
    return sessions


def save_sessions(store: KeyValueStore, sessions: Iterable[TrainingSession]) -> None:
    store.save_json(STORAGE_KEYS.TRAINING_SESSIONS, [session_to_dict(s) for s in sessions])


def append_session(store: KeyValueStore, session: TrainingSession) -> list[TrainingSession]:
    """Insert or replace ``session`` (matched by id) and persist the list."""

    sessions = [s for s in load_sessions(store) if s.id != session.id]
    sessions.append(session)
    save_sessions(store, sessions)
    return sessions


def stash_review_hands(store: KeyValueStore, hands: Sequence[HandCode]) -> None:
    if not hands:
        raise ValueError("no hands to review")
    store.save_json(STORAGE_KEYS.REVIEW_HANDS, list(hands))


def consume_review_hands(store: KeyValueStore) -> list[HandCode] | None:
    """Return the stashed review hands once; the stash is cleared either way."""

    raw = store.load_json(STORAGE_KEYS.REVIEW_HANDS, None)
    if raw is None:
        return None
    store.remove(STORAGE_KEYS.REVIEW_HANDS)
    try:
        hands = _HANDS.validate_python(raw)
    except ValidationError:
        logger.debug("Ignoring malformed review hand list")
        return None
    return hands or None


def load_previous_weak_count(store: KeyValueStore) -> int | None:
    raw = store.load_json(STORAGE_KEYS.PREV_WEAK_COUNT, None)
    return raw if isinstance(raw, int) and not isinstance(raw, bool) else None


def save_previous_weak_count(store: KeyValueStore, count: int) -> None:
    store.save_json(STORAGE_KEYS.PREV_WEAK_COUNT, int(count))
