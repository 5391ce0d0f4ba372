# coldtrend/edit/commit.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from coldtrend.core.config import DEFAULT_CONFIG, EngineConfig
from coldtrend.core.exceptions import PersistenceError
from coldtrend.core.readings import DeviceSeries, Reading, sort_series

from .history import HistoryManager
from .surface import AlertSink, SeriesMap, SeriesStore, SeriesUpdate, UpdateSink


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommitReport:
    """Outcome of one commit: the resulting device map plus per-device persistence results."""
    series_map: SeriesMap = field(repr=False)
    saved: tuple[str, ...] = ()
    failed: dict[str, PersistenceError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def devices(self) -> tuple[str, ...]:
        return (*self.saved, *self.failed)


class SeriesCommitter:
    """
    Apply edited series: sort, notify the sink, persist.

    The sink is notified before persisting and the in-memory state is never
    rolled back, so a failed save leaves the view showing the edit. Devices
    are persisted concurrently; failures are collected per device and
    reported once through the alert sink.
    """

    def __init__(
        self,
        store: SeriesStore,
        sink: UpdateSink,
        *,
        alert: AlertSink | None = None,
        history: HistoryManager | None = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        self.store = store
        self.sink = sink
        self.alert = alert
        self.history = history
        self.config = config

    def commit(
        self,
        updates: Mapping[str, Sequence[Reading]],
        series_map: Mapping[str, Sequence[Reading]] | None = None,
    ) -> CommitReport:
        merged: SeriesMap = {k: list(v) for k, v in (series_map or {}).items()}
        if not updates:
            return CommitReport(series_map=merged)

        ordered: dict[str, DeviceSeries] = {}
        for device_id, series in updates.items():
            ordered[device_id] = sort_series(series)
            merged[device_id] = ordered[device_id]
            self.sink(SeriesUpdate(device_id, ordered[device_id]))

        saved: list[str] = []
        failed: dict[str, PersistenceError] = {}
        workers = min(self.config.commit_workers, len(ordered))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                device_id: pool.submit(self.store.save_series, device_id, list(series))
                for device_id, series in ordered.items()
            }
            for device_id, future in futures.items():
                try:
                    future.result()
                except Exception as e:
                    err = PersistenceError(device_id)
                    err.__cause__ = e
                    failed[device_id] = err
                    logger.warning("saving series of %s failed: %s", device_id, e)
                else:
                    saved.append(device_id)

        if failed and self.alert is not None:
            self.alert(PersistenceError.default_message)
        if self.history is not None:
            self.history.save_history(merged)

        logger.info("committed %d device(s), %d failed", len(ordered), len(failed))
        return CommitReport(series_map=merged, saved=tuple(saved), failed=failed)
