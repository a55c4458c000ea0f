"""Key-value JSON persistence.

Reads never raise: a missing key or an unreadable payload yields the caller's
fallback.  Writes never raise either; failures are logged and dropped, so
callers must not assume a save succeeded.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Final, Protocol, TypeVar

__all__ = [
    "DATA_DIR_ENV",
    "STORAGE_KEYS",
    "JsonStore",
    "KeyValueStore",
    "MemoryStore",
    "default_data_dir",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATA_DIR_ENV: Final = "PFTRAINER_DATA_DIR"


class STORAGE_KEYS:
    SETTINGS: Final = "pftrainer_settings_v1"
    RANGE_SETS: Final = "pftrainer_rangesets_v1"
    TRAINING_SESSIONS: Final = "pftrainer_sessions_v1"
    REVIEW_HANDS: Final = "pftrainer_review_hands_v1"
    PREV_WEAK_COUNT: Final = "pftrainer_prev_weak_count_v1"


_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def load_json(self, key: str, fallback: T) -> T | Any: ...

    def save_json(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


def default_data_dir() -> Path:
    raw = os.getenv(DATA_DIR_ENV)
    if raw and raw.strip():
        return Path(raw.strip()).expanduser()
    return Path.home() / ".pftrainer"


class JsonStore:
    """One JSON document per key under ``root``."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root) if root is not None else default_data_dir()
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"invalid storage key {key!r}")
        return self._root / f"{key}.json"

    def load_json(self, key: str, fallback: T) -> T | Any:
        path = self._path(key)
        try:
            with self._lock, path.open("r", encoding="utf-8") as fh:
                raw = fh.read()
        except FileNotFoundError:
            return fallback
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            return fallback
        if not raw.strip():
            return fallback
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable payload for key %s", key)
            return fallback

    def save_json(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialise value for key %s: %s", key, exc)
            return
        tmp = path.with_suffix(".json.tmp")
        try:
            with self._lock:
                self._root.mkdir(parents=True, exist_ok=True)
                tmp.write_text(payload, encoding="utf-8")
                os.replace(tmp, path)
        except OSError as exc:
            logger.warning("Failed to write %s: %s", path, exc)

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            with self._lock:
                path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", path, exc)


class MemoryStore:
    """In-process store with the same contract; values round-trip through JSON."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def load_json(self, key: str, fallback: T) -> T | Any:
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except ValueError:
            return fallback

    def save_json(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialise value for key %s: %s", key, exc)
            return
        with self._lock:
            self._data[key] = payload

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data
