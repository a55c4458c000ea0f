from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from pydantic import TypeAdapter, ValidationError

from ..data.storage import STORAGE_KEYS, KeyValueStore
from .models import AnswerPolicy, HandCode, JudgeMode

__all__ = [
    "AppSettings",
    "default_settings",
    "load_settings",
    "save_settings",
    "settings_from_dict",
    "settings_to_dict",
    "set_answer_policy",
    "set_judge_mode",
]

logger = logging.getLogger(__name__)


@dataclass
class AppSettings:
    """User-selected trainer configuration."""

    judge_mode: JudgeMode = JudgeMode.FREQUENCY
    active_range_set_id: str | None = None
    active_scenario_id: str | None = None
    use_preset_scope_id: str | None = None
    custom_scope_hands: list[HandCode] = field(default_factory=list)
    haptic_feedback: bool = True
    answer_policy: AnswerPolicy = AnswerPolicy.RESAMPLE_ON_ANSWER


_ADAPTER = TypeAdapter(AppSettings)


def default_settings() -> AppSettings:
    return AppSettings()


def settings_to_dict(settings: AppSettings) -> dict[str, object]:
    return _ADAPTER.dump_python(settings, mode="json")


def settings_from_dict(data: object) -> AppSettings:
    """Validate a stored payload; anything unusable yields the defaults."""

    if not isinstance(data, dict):
        return default_settings()
    try:
        return _ADAPTER.validate_python(data)
    except ValidationError as exc:
        logger.debug("Stored settings rejected; using defaults (%d errors)", exc.error_count())
        return default_settings()


def load_settings(store: KeyValueStore) -> AppSettings:
    return settings_from_dict(store.load_json(STORAGE_KEYS.SETTINGS, None))


def save_settings(store: KeyValueStore, settings: AppSettings) -> None:
    store.save_json(STORAGE_KEYS.SETTINGS, settings_to_dict(settings))


def set_judge_mode(store: KeyValueStore, mode: JudgeMode) -> AppSettings:
    updated = replace(load_settings(store), judge_mode=JudgeMode(mode))
    save_settings(store, updated)
    return updated


def set_answer_policy(store: KeyValueStore, policy: AnswerPolicy) -> AppSettings:
    updated = replace(load_settings(store), answer_policy=AnswerPolicy(policy))
    save_settings(store, updated)
    return updated
