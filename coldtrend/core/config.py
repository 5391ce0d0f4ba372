# coldtrend/core/config.py
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from .exceptions import InvalidConfig


MINUTE_MS = 60_000
SECOND_MS = 1_000
MIN_SEGMENT_MINUTES = 5.0


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Tunable constants of the synthesis / rendering / editing engine.

    Durations suffixed `_minutes` are minutes, `_ms` are milliseconds and
    `_px` are screen pixels. All values must be strictly positive.
    """
    # synthesis
    sample_interval_minutes: float = 5.0

    # level of detail
    detail_threshold_ms: float = 30 * MINUTE_MS
    max_chart_points: int = 1500
    min_bucket_ms: float = 30 * SECOND_MS

    # gestures
    hit_radius_px: float = 60.0
    fallback_radius_px: float = 200.0
    drag_exact_match_ms: float = 1 * SECOND_MS
    drag_closest_match_ms: float = 5 * SECOND_MS
    trajectory_interval_ms: float = 1 * MINUTE_MS

    # paste
    trend_window: int = 5
    short_paste_ms: float = 5 * MINUTE_MS

    # history / commit
    history_capacity: int = 10
    commit_workers: int = 4

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfig(f"EngineConfig.{f.name} must be a number.")
            if not math.isfinite(value) or value <= 0:
                raise InvalidConfig(f"EngineConfig.{f.name} must be > 0, got {value!r}.")
        if self.fallback_radius_px < self.hit_radius_px:
            raise InvalidConfig("fallback_radius_px must be >= hit_radius_px.")
        for name in ("max_chart_points", "trend_window", "history_capacity", "commit_workers"):
            if int(getattr(self, name)) != getattr(self, name):
                raise InvalidConfig(f"EngineConfig.{name} must be an integer.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfig(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        return replace(self, **changes)


DEFAULT_CONFIG = EngineConfig()
