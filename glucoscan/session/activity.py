# -*- coding: utf-8 -*-
"""Per-action busy flags for the calls that go out to the AI service."""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Set

from ..errors import ActionInProgress


class ActionKind(str, Enum):
    analyzing = "analyzing"
    generating_plan = "generating_plan"
    translating = "translating"


class ActionTracker:
    """Single-flight per action class; different classes never block each other."""

    def __init__(self) -> None:
        self._busy: Set[ActionKind] = set()

    def is_busy(self, kind: ActionKind) -> bool:
        return kind in self._busy

    def snapshot(self) -> dict:
        return {kind.value: kind in self._busy for kind in ActionKind}

    @contextmanager
    def track(self, kind: ActionKind) -> Iterator[None]:
        if kind in self._busy:
            raise ActionInProgress(kind.value)
        self._busy.add(kind)
        try:
            yield
        finally:
            self._busy.discard(kind)
