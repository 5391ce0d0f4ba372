# coldtrend/edit/drag.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from coldtrend.core.config import DEFAULT_CONFIG, EngineConfig
from coldtrend.core.readings import Reading, ValueKey, find_index_near, round1

from .commit import CommitReport, SeriesCommitter
from .surface import ChartSurface, HitResult, PointerEvent, SessionState


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DragSession:
    """State of one single-point drag, owned by the caller between events."""
    device_id: str
    timestamp: float
    anchor_value: float
    start_y: float
    value_key: ValueKey
    value: float | None = None
    state: SessionState = SessionState.ACTIVE

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE


class PointDragEditor:
    """
    Drag one rendered point vertically and write the result back to its
    device series on release.
    """

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

    def hit_test(self, pointer: PointerEvent, device_id: str | None = None) -> HitResult | None:
        """Nearest point within the hit radius, else within the fallback radius."""
        for radius in (self.config.hit_radius_px, self.config.fallback_radius_px):
            hit = self.surface.nearest_point(
                pointer.x, pointer.y, max_distance=radius, device_id=device_id
            )
            if hit is not None and hit.distance <= radius:
                return hit
        return None

    def begin(self, pointer: PointerEvent, *, device_id: str | None = None) -> DragSession | None:
        if self.surface.y_extent() is None or self.surface.plot_height <= 0:
            logger.debug("drag ignored: no usable axis")
            return None
        hit = self.hit_test(pointer, device_id)
        if hit is None:
            logger.debug("drag ignored: no point near (%.1f, %.1f)", pointer.x, pointer.y)
            return None
        return DragSession(
            device_id=hit.device_id,
            timestamp=hit.timestamp,
            anchor_value=hit.value,
            start_y=pointer.y,
            value_key=self.value_key,
        )

    def move(self, session: DragSession, pointer: PointerEvent) -> float | None:
        """Update the dragged point's live value; returns it, or None if nothing changed."""
        if not session.active:
            return None
        extent = self.surface.y_extent()
        if extent is None:
            return None
        value_range = extent[1] - extent[0]
        if value_range <= 0:
            value_range = 1.0
        height = self.surface.plot_height
        if height <= 0:
            height = 1.0

        delta = (-(pointer.y - session.start_y) / height) * value_range
        session.value = round1(session.anchor_value + delta)
        self.surface.set_point_value(session.device_id, session.timestamp, session.value)
        return session.value

    def cancel(self, session: DragSession) -> None:
        if session.active:
            session.state = SessionState.DISCARDED

    def release(
        self,
        session: DragSession,
        series_map: Mapping[str, Sequence[Reading]],
    ) -> CommitReport | None:
        """Write the dragged value into the device series and commit it."""
        if not session.active:
            return None
        if session.value is None:
            session.state = SessionState.DISCARDED
            return None

        series = list(series_map.get(session.device_id) or [])
        idx = find_index_near(series, session.timestamp, self.config.drag_exact_match_ms)
        if idx < 0:
            idx = find_index_near(series, session.timestamp, self.config.drag_closest_match_ms)
        if idx < 0:
            logger.debug("drag on %s discarded: no reading near %s", session.device_id, session.timestamp)
            session.state = SessionState.DISCARDED
            return None

        series[idx] = series[idx].with_value(session.value_key, session.value)
        session.state = SessionState.COMMITTED
        return self.committer.commit({session.device_id: series}, series_map)
