# coldtrend/core/__init__.py
"""
Core domain objects for coldtrend.

- curves: registry of parametric curve families and their templates
- Segment / SegmentTimeline: placed pieces of a composite trend
- synthesize: segments -> sampled TimeSeries
- Reading: one device sample (temperature + humidity)
- aggregate: min/max decimation for display

The core layer is independent from rendering and storage.
"""

from .timeseries import TimeSeries
from .curves import CurveFamily, CurveParams, CurveTemplate, evaluate, spec_for, template_for
from .segment import Segment, SegmentTimeline
from .synthesis import synthesize, build_device_dataset, device_jitter
from .readings import Reading, ValueKey, DeviceSeries, round1
from .lod import aggregate
from .config import EngineConfig, DEFAULT_CONFIG
from .exceptions import (
    CoreError,
    InvalidTimeSeries,
    InvalidSegment,
    InvalidReading,
    InvalidConfig,
    InvalidSelection,
    SegmentNotFound,
    UnknownCurveFamily,
    PersistenceError,
)


__all__ = [
    # time series
    "TimeSeries",

    # curves
    "CurveFamily",
    "CurveParams",
    "CurveTemplate",
    "evaluate",
    "spec_for",
    "template_for",

    # segments / synthesis
    "Segment",
    "SegmentTimeline",
    "synthesize",
    "build_device_dataset",
    "device_jitter",

    # readings / display
    "Reading",
    "ValueKey",
    "DeviceSeries",
    "round1",
    "aggregate",

    # config
    "EngineConfig",
    "DEFAULT_CONFIG",

    # exceptions
    "CoreError",
    "InvalidTimeSeries",
    "InvalidSegment",
    "InvalidReading",
    "InvalidConfig",
    "InvalidSelection",
    "SegmentNotFound",
    "UnknownCurveFamily",
    "PersistenceError",
]
