# coldtrend/core/lod.py
from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from .config import DEFAULT_CONFIG, EngineConfig
from .readings import Reading, ValueKey


logger = logging.getLogger(__name__)


def aggregate(
    points: Sequence[Reading],
    visible_range: tuple[float, float] | None = None,
    max_points: int | None = None,
    value_key: ValueKey | str = ValueKey.TEMPERATURE,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[Reading]:
    """
    Min/max decimation of a time-ordered series for display.

    - <= 2 points or a degenerate visible range: returned as-is
    - the range is clamped to the series span and points filtered to it
      (the full series is used when nothing falls inside)
    - spans up to the detail threshold, or point counts up to `max_points`,
      pass through unchanged
    - otherwise each time bucket contributes its min and max sample in
      timestamp order (one sample when they coincide)

    Never raises on degenerate input.
    """
    if max_points is None:
        max_points = config.max_chart_points
    if len(points) <= 2:
        return list(points)

    key = ValueKey(value_key).value
    t = np.fromiter((p.timestamp for p in points), dtype=float, count=len(points))
    v = np.fromiter((getattr(p, key) for p in points), dtype=float, count=len(points))
    order = np.argsort(t, kind="stable")
    t, v = t[order], v[order]
    ordered = [points[i] for i in order.tolist()]

    lo, hi = float(t[0]), float(t[-1])
    if hi <= lo:
        return list(points)

    if visible_range is None:
        view_min, view_max = lo, hi
    else:
        view_min, view_max = (float(x) for x in visible_range)
        if not (math.isfinite(view_min) and math.isfinite(view_max)) or view_max <= view_min:
            return list(points)

    clamped_min = max(lo, min(view_min, hi))
    clamped_max = min(hi, max(view_max, lo))
    eff_min, eff_max = min(clamped_min, clamped_max), max(clamped_min, clamped_max)

    mask = (t >= eff_min) & (t <= eff_max)
    if not mask.any():
        mask = np.ones_like(t, dtype=bool)
    idx = np.flatnonzero(mask)
    span = max(eff_max - eff_min, 1.0)

    if span <= config.detail_threshold_ms or idx.size <= max_points:
        return [ordered[i] for i in idx.tolist()]

    bucket_ms = max(math.floor(span / max(1, max_points / 2)), config.min_bucket_ms)
    buckets = np.floor((t[idx] - eff_min) / bucket_ms).astype(np.int64)
    # idx is time-ordered, so each bucket is one contiguous run
    starts = np.concatenate(([0], np.flatnonzero(np.diff(buckets)) + 1, [idx.size]))

    out: list[Reading] = []
    for a, b in zip(starts[:-1].tolist(), starts[1:].tolist()):
        run = idx[a:b]
        vals = v[run]
        if np.isnan(vals).all():
            out.append(ordered[int(run[0])])
            continue
        lo_i = int(run[int(np.nanargmin(vals))])
        hi_i = int(run[int(np.nanargmax(vals))])
        if t[lo_i] == t[hi_i]:
            out.append(ordered[lo_i])
        elif t[lo_i] < t[hi_i]:
            out.extend((ordered[lo_i], ordered[hi_i]))
        else:
            out.extend((ordered[hi_i], ordered[lo_i]))

    logger.debug("aggregated %d points into %d (bucket %d ms)", idx.size, len(out), bucket_ms)
    return out
