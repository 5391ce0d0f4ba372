# coldtrend/edit/paste.py
"""
Selection based editing: copy a time range, paste it elsewhere with trend
adjustment, write cross-device averages into one device, summarize.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from coldtrend.core.config import DEFAULT_CONFIG, MINUTE_MS, EngineConfig
from coldtrend.core.exceptions import InvalidSelection
from coldtrend.core.readings import (
    DeviceSeries,
    Reading,
    ValueKey,
    replace_range,
    round1,
    sort_series,
)

from .commit import CommitReport, SeriesCommitter


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Selection:
    """Closed time range `[start, end]` in epoch milliseconds."""
    start: float
    end: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise InvalidSelection("Selection bounds must be finite.")
        if self.end <= self.start:
            raise InvalidSelection(f"Empty selection: {self.start} .. {self.end}")

    def contains(self, timestamp: float) -> bool:
        return self.start <= timestamp <= self.end


def align_selection(start: float, end: float) -> Selection:
    """Order the bounds, then floor the start and ceil the end to whole minutes."""
    lo, hi = min(start, end), max(start, end)
    return Selection(
        start=math.floor(lo / MINUTE_MS) * MINUTE_MS,
        end=math.ceil(hi / MINUTE_MS) * MINUTE_MS,
    )


def _selected(
    series_map: Mapping[str, Sequence[Reading]],
    selection: Selection,
    device_ids: Sequence[str] | None,
    device_id: str | None = None,
) -> dict[str, DeviceSeries]:
    ids = list(device_ids if device_ids is not None else series_map)
    out: dict[str, DeviceSeries] = {}
    for d in ids:
        if device_id is not None and d != device_id:
            continue
        picked = [r for r in series_map.get(d) or [] if selection.contains(r.timestamp)]
        if picked:
            out[d] = sort_series(picked)
    return out


@dataclass(frozen=True, slots=True)
class CopiedBlock:
    """
    Readings copied from a selection, grouped by device.

    `device_id` is set when a single device was copied; such a block can be
    pasted onto any device. A multi-device block pastes back onto the same
    device ids.
    """
    data: dict[str, DeviceSeries] = field(repr=False)
    device_id: str | None = None

    @property
    def single_device(self) -> bool:
        return self.device_id is not None

    def __len__(self) -> int:
        return sum(len(v) for v in self.data.values())


def copy_selection(
    series_map: Mapping[str, Sequence[Reading]],
    selection: Selection,
    device_id: str | None = None,
    *,
    device_ids: Sequence[str] | None = None,
) -> CopiedBlock:
    data = _selected(series_map, selection, device_ids, device_id)
    if not data:
        raise InvalidSelection("No readings inside the selection.")
    return CopiedBlock(data=data, device_id=device_id)


@dataclass(frozen=True, slots=True)
class _Trend:
    slope: float
    intercept: float
    offset: float


def _fit(
    neighbours: Sequence[Reading],
    key: ValueKey,
    target: float,
    first_value: float,
) -> _Trend:
    """Least squares of value against time relative to `target`."""
    n = len(neighbours)
    xs = [r.timestamp - target for r in neighbours]
    ys = [r.value(key) for r in neighbours]
    sx, sy = sum(xs), sum(ys)
    sxy = sum(x * y for x, y in zip(xs, ys))
    sx2 = sum(x * x for x in xs)

    denominator = n * sx2 - sx * sx
    if abs(denominator) < 1e-4:
        mean = sy / n
        return _Trend(0.0, mean, mean - first_value)
    slope = (n * sxy - sx * sy) / denominator
    intercept = (sy - slope * sx) / n
    return _Trend(slope, intercept, intercept - first_value)


def adjust_by_trend(
    block: Sequence[Reading],
    existing: Sequence[Reading],
    target_timestamp: float,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> DeviceSeries:
    """
    Shift a pasted block onto the local trend of `existing` at `target_timestamp`.

    The trend is a per-channel least-squares line over up to `trend_window`
    readings at/before the target, topped up to twice that with readings
    after it. Blocks spanning
    more than `short_paste_ms` also follow the slope; shorter ones only get
    the constant offset. Fewer than two neighbours: block returned unchanged.
    """
    if not block or not existing:
        return list(block)

    ordered = sort_series(existing)
    window = config.trend_window
    before = [r for r in ordered if r.timestamp <= target_timestamp][-window:]
    after = [r for r in ordered if r.timestamp > target_timestamp][: 2 * window - len(before)]
    neighbours = before + after
    if len(neighbours) < 2:
        return list(block)

    first = block[0]
    trends = {
        key: _fit(neighbours, key, target_timestamp, first.value(key))
        for key in ValueKey
    }
    span = block[-1].timestamp - first.timestamp
    follow_slope = span > config.short_paste_ms

    out: DeviceSeries = []
    for r in block:
        relative = r.timestamp - first.timestamp
        adjusted = r
        for key, trend in trends.items():
            value = r.value(key) + trend.offset
            if follow_slope and abs(trend.slope) > 1e-4:
                value += trend.slope * relative
            adjusted = adjusted.with_value(key, round1(value))
        out.append(adjusted)
    return out


@dataclass(frozen=True, slots=True)
class SelectionAverage:
    temperature: float
    humidity: float
    count: int


def selection_average(
    series_map: Mapping[str, Sequence[Reading]],
    selection: Selection,
    device_id: str | None = None,
    *,
    device_ids: Sequence[str] | None = None,
) -> SelectionAverage:
    """Mean temperature and humidity of every reading in the selection, rounded."""
    readings = [r for s in _selected(series_map, selection, device_ids, device_id).values() for r in s]
    if not readings:
        raise InvalidSelection("No readings inside the selection.")
    n = len(readings)
    return SelectionAverage(
        temperature=round1(sum(r.temperature for r in readings) / n),
        humidity=round1(sum(r.humidity for r in readings) / n),
        count=n,
    )


class PasteEditor:
    def __init__(self, committer: SeriesCommitter, *, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.committer = committer
        self.config = config

    def _place(
        self,
        block: Sequence[Reading],
        device_id: str,
        shift: float,
        target_timestamp: float,
        existing: Sequence[Reading],
        adjust_trend: bool,
    ) -> DeviceSeries:
        moved = [
            Reading(device_id, r.timestamp + shift, r.temperature, r.humidity)
            for r in sort_series(block)
        ]
        if adjust_trend:
            moved = adjust_by_trend(moved, existing, target_timestamp, config=self.config)
        return replace_range(existing, target_timestamp, moved[-1].timestamp, moved)

    def paste(
        self,
        copied: CopiedBlock,
        target_timestamp: float,
        series_map: Mapping[str, Sequence[Reading]],
        *,
        target_device_id: str | None = None,
        device_ids: Sequence[str] | None = None,
        adjust_trend: bool = True,
    ) -> CommitReport:
        """
        Paste `copied` so its first reading lands on `target_timestamp`.

        Existing readings inside the pasted span are replaced. A single-device
        block needs `target_device_id`; a multi-device block must not get
        one and is written back per device, skipping devices not in
        `device_ids` (default: the devices of `series_map`).
        """
        if copied.single_device:
            if target_device_id is None:
                raise InvalidSelection("Pick a target device to paste single-device data.")
            block = copied.data.get(copied.device_id) or []
            if not block:
                raise InvalidSelection("Copied data is empty.")
            shift = target_timestamp - sort_series(block)[0].timestamp
            existing = series_map.get(target_device_id) or []
            updates = {
                target_device_id: self._place(
                    block, target_device_id, shift, target_timestamp, existing, adjust_trend
                )
            }
            return self.committer.commit(updates, series_map)

        if target_device_id is not None:
            raise InvalidSelection("Multi-device data pastes onto its own devices, not a target device.")
        ids = [d for d in copied.data if copied.data[d]]
        if not ids:
            raise InvalidSelection("Copied data is empty.")
        shift = target_timestamp - sort_series(copied.data[ids[0]])[0].timestamp
        allowed = set(device_ids if device_ids is not None else series_map)

        updates: dict[str, DeviceSeries] = {}
        for device_id in ids:
            if device_id not in allowed:
                logger.debug("paste skipped %s: device not shown", device_id)
                continue
            existing = series_map.get(device_id) or []
            updates[device_id] = self._place(
                copied.data[device_id], device_id, shift, target_timestamp, existing, adjust_trend
            )
        return self.committer.commit(updates, series_map)

    def average_into(
        self,
        series_map: Mapping[str, Sequence[Reading]],
        selection: Selection,
        target_device_id: str,
        value_key: ValueKey | str = ValueKey.TEMPERATURE,
        *,
        device_ids: Sequence[str] | None = None,
    ) -> CommitReport:
        """
        Replace the target's readings inside `selection` with per-minute
        averages across all selected devices.
        """
        key = ValueKey(value_key)
        readings = [r for s in _selected(series_map, selection, device_ids).values() for r in s]
        if len(readings) < 2:
            raise InvalidSelection("Fewer than 2 readings inside the selection.")

        sums: dict[float, dict[ValueKey, list[float]]] = {}
        for r in readings:
            bucket = sums.setdefault(math.floor(r.timestamp / MINUTE_MS) * MINUTE_MS, {k: [] for k in ValueKey})
            for k in ValueKey:
                if math.isfinite(r.value(k)):
                    bucket[k].append(r.value(k))

        averaged: DeviceSeries = []
        for ts in sorted(sums):
            bucket = sums[ts]
            if not bucket[key]:
                continue
            means = {k: round1(sum(v) / len(v)) if v else 0.0 for k, v in bucket.items()}
            averaged.append(
                Reading(target_device_id, ts, means[ValueKey.TEMPERATURE], means[ValueKey.HUMIDITY])
            )
        if not averaged:
            raise InvalidSelection("No usable readings inside the selection.")

        existing = series_map.get(target_device_id) or []
        updated = replace_range(existing, selection.start, selection.end, averaged)
        return self.committer.commit({target_device_id: updated}, series_map)
