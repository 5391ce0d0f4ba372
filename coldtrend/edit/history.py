# coldtrend/edit/history.py
from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from coldtrend.core.config import DEFAULT_CONFIG, EngineConfig
from coldtrend.core.readings import Reading

from .surface import SeriesMap


logger = logging.getLogger(__name__)

Restore = Callable[[SeriesMap], None]
Defer = Callable[[Callable[[], None]], None]


def _run_now(callback: Callable[[], None]) -> None:
    callback()


def snapshot(series_map: Mapping[str, Sequence[Reading]]) -> SeriesMap:
    """Copy every device's series. Readings are immutable, so copying the lists isolates the snapshot."""
    return {device_id: list(series) for device_id, series in series_map.items()}


class HistoryManager:
    """
    Bounded undo stack of full device-map snapshots.

    - save_history: drop anything after the current index, append, evict
      from the front past `capacity` (default `config.history_capacity`),
      point at the new tail
    - undo: step back one snapshot and hand it to `restore`
    - recording is suspended during an undo and resumed through
      `defer(callback)`, so state updates made by `restore` are not
      recorded as new history

    There is no redo.
    """

    def __init__(
        self,
        restore: Restore,
        *,
        capacity: int | None = None,
        defer: Defer | None = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        if capacity is None:
            capacity = config.history_capacity
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._restore = restore
        self._capacity = capacity
        self._defer = defer or _run_now
        self._stack: list[SeriesMap] = []
        self._index = -1
        self._undoing = False

    @property
    def size(self) -> int:
        return len(self._stack)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0 and not self._undoing

    @property
    def is_undoing(self) -> bool:
        return self._undoing

    def reset(self, series_map: Mapping[str, Sequence[Reading]]) -> None:
        """Start over with `series_map` as the only (initial) snapshot."""
        self._stack = [snapshot(series_map)]
        self._index = 0
        self._undoing = False

    def save_history(self, series_map: Mapping[str, Sequence[Reading]]) -> None:
        if self._undoing:
            return
        del self._stack[self._index + 1:]
        self._stack.append(snapshot(series_map))
        if len(self._stack) > self._capacity:
            del self._stack[: len(self._stack) - self._capacity]
        self._index = len(self._stack) - 1

    def undo(self) -> bool:
        if self._undoing or self._index <= 0 or not self._stack:
            return False
        self._undoing = True
        self._index -= 1
        try:
            self._restore(snapshot(self._stack[self._index]))
        finally:
            self._defer(self._finish_undo)
        logger.debug("undo to snapshot %d of %d", self._index, len(self._stack))
        return True

    def _finish_undo(self) -> None:
        self._undoing = False
