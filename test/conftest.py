# test/conftest.py
import math

import pytest

from coldtrend.edit import HistoryManager, HitResult, SeriesCommitter
from coldtrend.io.store import MemorySeriesStore


class FakeChart:
    """
    Linear chart surface: x maps [t_min, t_max] onto [0, width] and y maps
    [y_min, y_max] onto [plot_height, 0]. Hit testing looks at the series
    it was given.
    """

    def __init__(self, series_map, *, t_min, t_max, y_min=0.0, y_max=10.0,
                 width=1000.0, plot_height=500.0, value_key="temperature",
                 visible=None, has_axis=True):
        self.series_map = series_map
        self.t_min, self.t_max = t_min, t_max
        self.extent = (y_min, y_max) if has_axis else None
        self.width = width
        self._plot_height = plot_height
        self.value_key = value_key
        self.visible = list(visible if visible is not None else series_map)
        self.live_updates = []
        self.overlays = []
        self.cleared = 0

    @property
    def plot_height(self):
        return self._plot_height

    def to_domain_x(self, px):
        return self.t_min + px / self.width * (self.t_max - self.t_min)

    def to_pixel_x(self, timestamp):
        return (timestamp - self.t_min) / (self.t_max - self.t_min) * self.width

    def to_domain_y(self, py):
        lo, hi = self.extent
        return hi - py / self._plot_height * (hi - lo)

    def to_pixel_y(self, value):
        lo, hi = self.extent
        return (hi - value) / (hi - lo) * self._plot_height

    def y_extent(self):
        return self.extent

    def nearest_point(self, x, y, *, max_distance, device_id=None):
        best = None
        for d in self.visible:
            if device_id is not None and d != device_id:
                continue
            for r in self.series_map.get(d, []):
                value = r.value(self.value_key)
                dist = math.hypot(self.to_pixel_x(r.timestamp) - x, self.to_pixel_y(value) - y)
                if dist <= max_distance and (best is None or dist < best.distance):
                    best = HitResult(d, r.timestamp, value, dist)
        return best

    def visible_device_ids(self):
        return list(self.visible)

    def set_point_value(self, device_id, timestamp, value):
        self.live_updates.append((device_id, timestamp, value))

    def draw_overlay(self, path):
        self.overlays.append(list(path))

    def clear_overlay(self):
        self.cleared += 1


class FlakyStore(MemorySeriesStore):
    """Store whose saves fail for the device ids in `failing`."""

    def __init__(self, failing=()):
        super().__init__("task-1")
        self.failing = set(failing)

    def save_series(self, device_id, series):
        if device_id in self.failing:
            raise OSError(f"disk full while saving {device_id}")
        super().save_series(device_id, series)


@pytest.fixture
def make_chart():
    return FakeChart


@pytest.fixture
def updates():
    return []


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def restored():
    return []


@pytest.fixture
def history(restored):
    return HistoryManager(restored.append)


@pytest.fixture
def committer(store, updates, alerts, history):
    return SeriesCommitter(store, updates.append, alert=alerts.append, history=history)
