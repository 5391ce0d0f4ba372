# coldtrend/core/readings.py
"""
Per-device readings and the pure helpers that keep a DeviceSeries
ordered and free of duplicate samples.

A DeviceSeries is a plain list of `Reading`s sorted ascending by
timestamp. Helpers here never mutate their input; they return new lists.
"""
from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .exceptions import InvalidReading


class ValueKey(str, Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"

    @property
    def other(self) -> "ValueKey":
        return ValueKey.HUMIDITY if self is ValueKey.TEMPERATURE else ValueKey.TEMPERATURE


def round1(value: float) -> float:
    """Round half-up to one decimal place (same result as `Math.round(v * 10) / 10`)."""
    return math.floor(value * 10 + 0.5) / 10


def parse_timestamp(value: str | int | float | datetime) -> float:
    """Return epoch milliseconds for an ISO 8601 string, datetime or number."""
    if isinstance(value, bool):
        raise InvalidReading(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise InvalidReading(f"Invalid timestamp: {value!r}")
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidReading(f"Invalid ISO 8601 timestamp: {value!r}") from e
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return float(round(value.timestamp() * 1000))
    raise InvalidReading(f"Invalid timestamp: {value!r}")


def format_timestamp(timestamp: float) -> str:
    """Format epoch milliseconds like JavaScript's `Date.toISOString()`."""
    dt = datetime.fromtimestamp(round(timestamp) / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class Reading:
    """One sample of one device: epoch-millisecond timestamp + both channels."""
    device_id: str
    timestamp: float
    temperature: float = 0.0
    humidity: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.device_id, str) or not self.device_id.strip():
            raise InvalidReading("Reading.device_id must be a non-empty string.")
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))
        for name in ("temperature", "humidity"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise InvalidReading(f"Reading.{name} must be a number, got {v!r}.")
            object.__setattr__(self, name, float(v))

    def value(self, key: ValueKey | str) -> float:
        return getattr(self, ValueKey(key).value)

    def with_value(self, key: ValueKey | str, value: float) -> "Reading":
        return replace(self, **{ValueKey(key).value: value})

    def with_timestamp(self, timestamp: float) -> "Reading":
        return replace(self, timestamp=timestamp)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Reading":
        try:
            return cls(
                device_id=data["deviceId"],
                timestamp=data["timestamp"],
                temperature=data.get("temperature", 0.0),
                humidity=data.get("humidity", 0.0),
            )
        except KeyError as e:
            raise InvalidReading(f"Missing reading field: {e.args[0]}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "timestamp": format_timestamp(self.timestamp),
            "temperature": self.temperature,
            "humidity": self.humidity,
        }


DeviceSeries = list[Reading]


def sort_series(series: Iterable[Reading]) -> DeviceSeries:
    """Stable sort by timestamp."""
    return sorted(series, key=lambda r: r.timestamp)


def timestamps_of(series: Sequence[Reading]) -> list[float]:
    return [r.timestamp for r in series]


def find_index_near(series: Sequence[Reading], timestamp: float, tolerance: float) -> int:
    """
    Index of the reading closest to `timestamp` if it is strictly within
    `tolerance`, else -1. `series` must be sorted.
    """
    if not series:
        return -1
    times = timestamps_of(series)
    pos = bisect.bisect_left(times, timestamp)
    best, best_dist = -1, math.inf
    for idx in (pos - 1, pos):
        if 0 <= idx < len(times):
            dist = abs(times[idx] - timestamp)
            if dist < best_dist:
                best, best_dist = idx, dist
    return best if best_dist < tolerance else -1


def value_at(
    series: Sequence[Reading],
    timestamp: float,
    key: ValueKey | str,
    interval: float,
) -> float | None:
    """
    Value of `key` at `timestamp`.

    - exact sample when the closest one is within half an interval
    - linear interpolation between the bracketing samples otherwise
    - None when the closest sample is more than 5 intervals away
    """
    if not series:
        return None
    key = ValueKey(key)
    times = timestamps_of(series)

    closest = min(range(len(times)), key=lambda i: abs(times[i] - timestamp))
    distance = abs(times[closest] - timestamp)
    if distance > 5 * interval:
        return None
    if distance < interval / 2:
        return series[closest].value(key)

    closest_time = times[closest]
    # duplicate timestamps leave no gap to interpolate across
    if timestamp < closest_time and closest > 0 and closest_time > times[closest - 1]:
        prev = series[closest - 1]
        ratio = (timestamp - prev.timestamp) / (closest_time - prev.timestamp)
        return prev.value(key) + (series[closest].value(key) - prev.value(key)) * ratio
    if timestamp > closest_time and closest < len(series) - 1 and times[closest + 1] > closest_time:
        nxt = series[closest + 1]
        ratio = (timestamp - closest_time) / (nxt.timestamp - closest_time)
        return series[closest].value(key) + (nxt.value(key) - series[closest].value(key)) * ratio
    return series[closest].value(key)


def upsert(series: Sequence[Reading], reading: Reading, epsilon: float) -> DeviceSeries:
    """
    Overwrite the reading within `epsilon` of `reading.timestamp`, or insert
    it at its sorted position. `series` must be sorted.
    """
    out = list(series)
    idx = find_index_near(out, reading.timestamp, epsilon)
    if idx >= 0:
        out[idx] = reading
        return out
    pos = bisect.bisect_right(timestamps_of(out), reading.timestamp)
    out.insert(pos, reading)
    return out


def replace_range(
    series: Sequence[Reading],
    start: float,
    end: float,
    new_readings: Iterable[Reading],
) -> DeviceSeries:
    """Drop readings with `start <= timestamp <= end`, add `new_readings`, re-sort."""
    kept = [r for r in series if r.timestamp < start or r.timestamp > end]
    return sort_series([*kept, *new_readings])


def series_from_dicts(items: Iterable[Mapping[str, Any]]) -> DeviceSeries:
    return sort_series(Reading.from_dict(item) for item in items)


def series_to_dicts(series: Iterable[Reading]) -> list[dict[str, Any]]:
    return [r.to_dict() for r in series]
