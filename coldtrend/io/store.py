from __future__ import annotations

import threading
from typing import Iterable

from coldtrend.core.readings import DeviceSeries, Reading, series_from_dicts, series_to_dicts, sort_series


class MemorySeriesStore:
    """
    In-memory `SeriesStore` for one task.

    Series are kept per `(task_id, device_id)`, sorted, as the persisted
    `{deviceId, timestamp, temperature, humidity}` records. Saves from
    the committer's worker threads are serialized by a lock.
    """

    def __init__(self, task_id: str = "default") -> None:
        self.task_id = task_id
        self._data: dict[tuple[str, str], list[dict]] = {}
        self._lock = threading.Lock()

    def for_task(self, task_id: str) -> "MemorySeriesStore":
        """Store view of another task sharing the same backing data."""
        view = MemorySeriesStore(task_id)
        view._data = self._data
        view._lock = self._lock
        return view

    def load_series(self, device_id: str) -> DeviceSeries | None:
        with self._lock:
            records = self._data.get((self.task_id, device_id))
        if records is None:
            return None
        return series_from_dicts(records)

    def save_series(self, device_id: str, series: Iterable[Reading]) -> None:
        records = series_to_dicts(sort_series(series))
        with self._lock:
            self._data[(self.task_id, device_id)] = records

    def load_all(self) -> dict[str, DeviceSeries]:
        return {d: self.load_series(d) or [] for d in self.device_ids()}

    def device_ids(self) -> list[str]:
        with self._lock:
            return sorted(d for t, d in self._data if t == self.task_id)

    @property
    def device_count(self) -> int:
        return len(self.device_ids())

    @property
    def total_count(self) -> int:
        with self._lock:
            return sum(len(v) for (t, _), v in self._data.items() if t == self.task_id)
