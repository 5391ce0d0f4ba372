# coldtrend/core/timeseries.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence

import numpy as np

from .exceptions import InvalidTimeSeries
from .readings import Reading, ValueKey


_UNITS = {ValueKey.TEMPERATURE: "°C", ValueKey.HUMIDITY: "%RH"}


@dataclass(frozen=True, slots=True)
class TimeSeries:
    """
    Sampled values of one channel: epoch-millisecond `time` and `values`.

    Produced by `synthesize` for a temperature or humidity timeline, or
    taken from stored readings with `from_readings`. Time is monotonic
    non-decreasing; adjacent segments share their boundary timestamp, so
    repeats are allowed.
    """

    time: np.ndarray = field(repr=False)
    values: np.ndarray = field(repr=False)
    channel: ValueKey | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        t = np.asarray(self.time, dtype=float)
        v = np.asarray(self.values, dtype=float)

        if t.ndim != 1 or v.ndim != 1:
            raise InvalidTimeSeries(f"`time` and `values` must be 1D, got {t.shape} and {v.shape}")
        if t.size != v.size:
            raise InvalidTimeSeries(f"{t.size} timestamps for {v.size} values")
        if t.size and not np.isfinite(t).all():
            raise InvalidTimeSeries("`time` contains NaN/Inf.")
        if np.any(np.diff(t) < 0):
            raise InvalidTimeSeries("`time` goes backwards.")

        object.__setattr__(self, "time", t)
        object.__setattr__(self, "values", v)
        if self.channel is not None:
            object.__setattr__(self, "channel", ValueKey(self.channel))

    @classmethod
    def empty(cls, *, channel: ValueKey | str | None = None, name: str | None = None) -> "TimeSeries":
        return cls(time=np.array([]), values=np.array([]), channel=channel, name=name)

    @classmethod
    def from_readings(
        cls,
        series: Sequence[Reading],
        channel: ValueKey | str,
        *,
        name: str | None = None,
    ) -> "TimeSeries":
        """One channel of a device series; `series` must be sorted."""
        key = ValueKey(channel)
        return cls(
            time=np.array([r.timestamp for r in series], dtype=float),
            values=np.array([r.value(key) for r in series], dtype=float),
            channel=key,
            name=name,
        )

    @property
    def unit(self) -> str | None:
        return _UNITS.get(self.channel)

    @property
    def n(self) -> int:
        return int(self.time.size)

    def __len__(self) -> int:
        return self.n

    @property
    def t_start(self) -> float | None:
        return None if self.n == 0 else float(self.time[0])

    @property
    def t_end(self) -> float | None:
        return None if self.n == 0 else float(self.time[-1])

    def points(self) -> Iterator[tuple[float, float]]:
        """`(timestamp, value)` pairs in time order."""
        yield from zip(self.time.tolist(), self.values.tolist())

    def value_at(self, timestamp: float) -> float | None:
        """Value of the sample closest in time to `timestamp` (first one on ties)."""
        if self.n == 0:
            return None
        return float(self.values[int(np.argmin(np.abs(self.time - timestamp)))])

    def window(self, start: float | None = None, end: float | None = None) -> "TimeSeries":
        """Samples with `start <= time <= end`; open where a bound is None."""
        if self.n == 0:
            return self
        lo = 0 if start is None else int(np.searchsorted(self.time, start, side="left"))
        hi = self.n if end is None else int(np.searchsorted(self.time, end, side="right"))
        return TimeSeries(self.time[lo:hi], self.values[lo:hi], channel=self.channel, name=self.name)

    def mean(self) -> float | None:
        """Mean of the finite values, None when there are none."""
        finite = self.values[np.isfinite(self.values)]
        return float(finite.mean()) if finite.size else None

    def extent(self) -> tuple[float, float] | None:
        """(min, max) of the finite values, e.g. for a chart's y axis."""
        finite = self.values[np.isfinite(self.values)]
        if not finite.size:
            return None
        return float(finite.min()), float(finite.max())
