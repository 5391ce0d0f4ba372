# coldtrend/core/synthesis.py
"""
Turn a segment list into sampled values, and sampled channels into
per-device readings.

Sampling per segment:
- count = max(2, ceil(duration / sample interval))
- samples i = 0..count inclusive, progress = i / count
- timestamp = channel_start + (start_offset + progress * duration) minutes
- value rounded half-up to one decimal
"""
from __future__ import annotations

import math
from typing import Iterable

import numpy as np

from .config import DEFAULT_CONFIG, MINUTE_MS, EngineConfig
from .curves import evaluate
from .readings import DeviceSeries, Reading, ValueKey, round1
from .segment import Segment
from .timeseries import TimeSeries


def sample_count(duration: float, interval_minutes: float = 5.0) -> int:
    return max(2, math.ceil(duration / interval_minutes))


def synthesize(
    segments: Iterable[Segment],
    channel_start: float,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    channel: ValueKey | str | None = None,
    name: str | None = None,
) -> TimeSeries:
    """
    Sample every segment and merge the result into one time-ordered channel.

    `channel_start` is epoch milliseconds. An empty segment list yields an
    empty TimeSeries.
    """
    times: list[float] = []
    values: list[float] = []

    for seg in segments:
        count = sample_count(seg.duration, config.sample_interval_minutes)
        for i in range(count + 1):
            progress = i / count
            times.append(channel_start + (seg.start_offset + progress * seg.duration) * MINUTE_MS)
            values.append(round1(evaluate(seg.family, progress, seg.params, duration=seg.duration, index=i)))

    if not times:
        return TimeSeries.empty(channel=channel, name=name)

    t = np.asarray(times, dtype=float)
    v = np.asarray(values, dtype=float)
    order = np.argsort(t, kind="stable")
    return TimeSeries(time=t[order], values=v[order], channel=channel, name=name)


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def _device_hash(device_id: str) -> int:
    h = 0
    # hash over UTF-16 code units
    units = device_id.encode("utf-16-le")
    for i in range(0, len(units), 2):
        h = _int32(h * 31 + int.from_bytes(units[i:i + 2], "little"))
    return h


def device_jitter(device_id: str, timestamp: float, offset: float = 0.0) -> float:
    """
    Deterministic per-device disturbance in [-amplitude, amplitude).

    Stable for a given device and minute, so regenerating a dataset gives
    the same values. amplitude = 0.2 + min(0.3, |offset| * 0.05).
    """
    minute = math.floor(timestamp / MINUTE_MS)
    seed = (_device_hash(device_id) ^ _int32(minute)) & 0xFFFFFFFF
    unit = (seed % 10000) / 10000
    amplitude = 0.2 + min(0.3, abs(offset) * 0.05)
    return (unit - 0.5) * 2 * amplitude


def build_device_dataset(
    device_id: str,
    temperature: TimeSeries,
    humidity: TimeSeries,
    offset: float = 0.0,
) -> DeviceSeries:
    """
    Merge the two synthesized channels into readings for one device.

    Timestamps are the union of both channels; each channel contributes its
    nearest sample (0 when the channel is empty). The device offset and
    jitter are added to both values before rounding.
    """
    stamps = np.union1d(temperature.time, humidity.time)
    out: DeviceSeries = []
    for ts in stamps.tolist():
        noise = device_jitter(device_id, ts, offset)
        temp = temperature.value_at(ts)
        hum = humidity.value_at(ts)
        out.append(
            Reading(
                device_id=device_id,
                timestamp=ts,
                temperature=round1((temp or 0.0) + offset + noise),
                humidity=round1((hum or 0.0) + offset + noise),
            )
        )
    return out
