# coldtrend/edit/trajectory.py
"""
Magic-pen edits: a freehand path drawn over the chart becomes new values
for one or more devices.

Single-curve mode (one rendered device, pointer on its curve) writes the
path as drawn. Multi-curve mode keeps each device's offset from the group
baseline, so the curves move together and keep their spread.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from coldtrend.core.config import DEFAULT_CONFIG, EngineConfig
from coldtrend.core.readings import (
    DeviceSeries,
    Reading,
    ValueKey,
    find_index_near,
    round1,
    sort_series,
    upsert,
    value_at,
)

from .commit import CommitReport, SeriesCommitter
from .surface import ChartSurface, PathPoint, PointerEvent, SessionState


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrajectorySession:
    """Captured path plus per-device baselines of one magic-pen gesture."""
    start_timestamp: float
    start_value: float
    baselines: dict[str, float]
    single_curve: bool
    path: list[PathPoint] = field(default_factory=list)
    state: SessionState = SessionState.ACTIVE

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def device_ids(self) -> list[str]:
        return list(self.baselines)

    @property
    def baseline(self) -> float:
        if not self.baselines:
            return self.start_value
        return sum(self.baselines.values()) / len(self.baselines)

    def offset(self, device_id: str) -> float:
        """Offset re-added to the trajectory for `device_id` (0 in single-curve mode)."""
        if self.single_curve:
            return 0.0
        return self.baselines[device_id] - self.baseline


def resample_path(path: Sequence[PathPoint], interval: float) -> tuple[np.ndarray, np.ndarray]:
    """
    Resample a path onto `start, start + interval, ...` up to its last
    timestamp. Values are linearly interpolated; targets outside the path
    hold the nearest endpoint value.
    """
    pts = sorted(path, key=lambda p: p.timestamp)
    t = np.array([p.timestamp for p in pts], dtype=float)
    v = np.array([p.value for p in pts], dtype=float)
    count = int(math.floor((t[-1] - t[0]) / interval)) + 1
    stamps = t[0] + np.arange(count, dtype=float) * interval
    return stamps, np.interp(stamps, t, v)


class TrajectoryEditor:
    def __init__(
        self,
        surface: ChartSurface,
        committer: SeriesCommitter,
        *,
        value_key: ValueKey | str = ValueKey.TEMPERATURE,
        config: EngineConfig = DEFAULT_CONFIG,
    ) -> None:
        self.surface = surface
        self.committer = committer
        self.value_key = ValueKey(value_key)
        self.config = config

    def _domain(self, pointer: PointerEvent) -> tuple[float, float] | None:
        if self.surface.y_extent() is None:
            return None
        ts = self.surface.to_domain_x(pointer.x)
        value = self.surface.to_domain_y(pointer.y)
        if not (math.isfinite(ts) and math.isfinite(value)):
            return None
        return ts, value

    def begin(
        self,
        pointer: PointerEvent,
        series_map: Mapping[str, Sequence[Reading]],
        device_ids: Sequence[str] | None = None,
    ) -> TrajectorySession | None:
        domain = self._domain(pointer)
        if domain is None:
            logger.debug("trajectory ignored: pointer outside a usable axis")
            return None
        ts, value = domain
        targets = list(device_ids if device_ids is not None else self.surface.visible_device_ids())
        if not targets:
            return None

        hit = None
        if len(targets) == 1:
            hit = self.surface.nearest_point(
                pointer.x, pointer.y, max_distance=self.config.hit_radius_px, device_id=targets[0]
            )
        single = hit is not None and hit.distance < self.config.hit_radius_px

        if single:
            baselines = {targets[0]: value}
        else:
            baselines = {}
            for device_id in targets:
                v = value_at(
                    series_map.get(device_id) or [],
                    ts,
                    self.value_key,
                    self.config.trajectory_interval_ms,
                )
                if v is not None:
                    baselines[device_id] = v
            if not baselines:
                baselines = {device_id: value for device_id in targets}

        return TrajectorySession(
            start_timestamp=ts,
            start_value=value,
            baselines=baselines,
            single_curve=single,
            path=[PathPoint(pointer.x, pointer.y, ts, value)],
        )

    def move(self, session: TrajectorySession, pointer: PointerEvent) -> None:
        if not session.active:
            return
        domain = self._domain(pointer)
        if domain is None:
            return
        session.path.append(PathPoint(pointer.x, pointer.y, *domain))
        self.surface.draw_overlay(session.path)

    def cancel(self, session: TrajectorySession) -> None:
        if session.active:
            session.state = SessionState.DISCARDED
            self.surface.clear_overlay()

    def apply(
        self,
        session: TrajectorySession,
        series_map: Mapping[str, Sequence[Reading]],
    ) -> dict[str, DeviceSeries]:
        """Updated series for every device of the session (no commit)."""
        interval = self.config.trajectory_interval_ms
        stamps, values = resample_path(session.path, interval)
        key, other = self.value_key, self.value_key.other

        updates: dict[str, DeviceSeries] = {}
        for device_id in session.device_ids:
            series = sort_series(series_map.get(device_id) or [])
            offset = session.offset(device_id)
            for ts, v in zip(stamps.tolist(), values.tolist()):
                new_value = round1(v + offset)
                idx = find_index_near(series, ts, interval / 2)
                if idx >= 0:
                    series[idx] = series[idx].with_value(key, new_value)
                    continue
                near = find_index_near(series, ts, interval * 2)
                carried = series[near].value(other) if near >= 0 else 0.0
                reading = Reading(device_id=device_id, timestamp=ts).with_value(key, new_value)
                series = upsert(series, reading.with_value(other, carried), interval / 2)
            updates[device_id] = series
        return updates

    def release(
        self,
        session: TrajectorySession,
        series_map: Mapping[str, Sequence[Reading]],
    ) -> CommitReport | None:
        if not session.active:
            return None
        self.surface.clear_overlay()
        if len(session.path) < 2:
            logger.debug("trajectory discarded: %d point(s) captured", len(session.path))
            session.state = SessionState.DISCARDED
            return None

        updates = self.apply(session, series_map)
        session.state = SessionState.COMMITTED
        return self.committer.commit(updates, series_map)
