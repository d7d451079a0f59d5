"""
Undo/redo history for the timeline store.

Snapshots are deep copies of the whole timeline taken before each
mutation. Each snapshot remembers the zoom level it was taken at so a
restore can bring its pixel geometry to the zoom level in effect when it
is restored.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import dataclass
from typing import Iterator

from models.timeline_models import TimelineState
from utils.settings import HISTORY_LIMIT

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    timeline: TimelineState
    zoom_level: float


class HistoryManager:
    """
    Bounded undo/redo stacks.

    Pushing a new snapshot clears the redo stack. While a restore is being
    applied (see `applying()`), record() is ignored so the restore itself
    never lands in history.
    """

    def __init__(self, limit: int = HISTORY_LIMIT):
        self.limit = limit
        self._undo: deque[HistoryEntry] = deque(maxlen=limit)
        self._redo: deque[HistoryEntry] = deque(maxlen=limit)
        self._applying = False

    @property
    def is_applying(self) -> bool:
        return self._applying

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    @staticmethod
    def _snapshot(timeline: TimelineState, zoom_level: float) -> HistoryEntry:
        return HistoryEntry(timeline=deepcopy(timeline), zoom_level=zoom_level)

    def record(self, timeline: TimelineState, zoom_level: float) -> bool:
        """Push the pre-mutation state. Returns False when suppressed."""
        if self._applying:
            return False
        self._undo.append(self._snapshot(timeline, zoom_level))
        self._redo.clear()
        return True

    def invalidate_redo(self) -> None:
        """Drop the redo stack without recording a snapshot."""
        if not self._applying:
            self._redo.clear()

    def undo(self, current: TimelineState, zoom_level: float) -> HistoryEntry | None:
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(self._snapshot(current, zoom_level))
        logger.debug("Undo: %d left, %d redoable", len(self._undo), len(self._redo))
        return previous

    def redo(self, current: TimelineState, zoom_level: float) -> HistoryEntry | None:
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(self._snapshot(current, zoom_level))
        logger.debug("Redo: %d left, %d undoable", len(self._redo), len(self._undo))
        return following

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @contextmanager
    def applying(self) -> Iterator[None]:
        """Suppress recording while a snapshot is being restored."""
        previous = self._applying
        self._applying = True
        try:
            yield
        finally:
            self._applying = previous
