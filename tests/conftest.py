from __future__ import annotations

import sys
from collections.abc import Callable, MutableSequence, Sequence
from pathlib import Path
from typing import Any

import pytest

# Ensure "src" is on sys.path for imports in tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


class ScriptedRandom:
    """Replays ``values`` from ``random()``; ``randrange`` returns a fixed index and ``shuffle`` reverses."""

    def __init__(self, values: Sequence[float] = (0.0,), index: int = 0) -> None:
        self._values = list(values) or [0.0]
        self._index = index
        self.calls = 0

    def random(self) -> float:
        value = self._values[self.calls % len(self._values)]
        self.calls += 1
        return value

    def randrange(self, stop: int) -> int:
        return min(self._index, stop - 1)

    def shuffle(self, x: MutableSequence[Any]) -> None:
        x.reverse()


@pytest.fixture
def scripted_random() -> Callable[..., ScriptedRandom]:
    return ScriptedRandom
