# coldtrend/edit/surface.py
"""
Contracts the editors consume. Implementations (chart rendering,
persistence) live in the host application.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Protocol, Sequence

from coldtrend.core.readings import DeviceSeries, Reading


SeriesMap = dict[str, DeviceSeries]


@dataclass(frozen=True, slots=True)
class PointerEvent:
    """Pointer position in chart pixels (y grows downward)."""
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class HitResult:
    device_id: str
    timestamp: float
    value: float
    distance: float     # pixels


@dataclass(frozen=True, slots=True)
class PathPoint:
    x: float
    y: float
    timestamp: float
    value: float


@dataclass(frozen=True, slots=True)
class SeriesUpdate:
    """Payload of the notification sink: one device's committed series."""
    device_id: str
    series: DeviceSeries


class ChartSurface(Protocol):
    """Coordinate transforms, hit testing and live feedback of the chart."""

    @property
    def plot_height(self) -> float:
        ...

    def to_domain_x(self, px: float) -> float:
        ...

    def to_domain_y(self, py: float) -> float:
        ...

    def to_pixel_x(self, timestamp: float) -> float:
        ...

    def to_pixel_y(self, value: float) -> float:
        ...

    def y_extent(self) -> tuple[float, float] | None:
        ...

    def nearest_point(
        self,
        x: float,
        y: float,
        *,
        max_distance: float,
        device_id: str | None = None,
    ) -> HitResult | None:
        """Nearest rendered point within `max_distance` pixels, optionally of one device."""
        ...

    def visible_device_ids(self) -> Sequence[str]:
        ...

    def set_point_value(self, device_id: str, timestamp: float, value: float) -> None:
        ...

    def draw_overlay(self, path: Sequence[PathPoint]) -> None:
        ...

    def clear_overlay(self) -> None:
        ...


class SeriesStore(Protocol):
    """Persistence of one device's readings."""

    def load_series(self, device_id: str) -> list[Reading] | None:
        ...

    def save_series(self, device_id: str, series: Iterable[Reading]) -> None:
        ...


UpdateSink = Callable[[SeriesUpdate], None]
AlertSink = Callable[[str], None]


class SessionState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    DISCARDED = "discarded"
