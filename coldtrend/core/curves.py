# coldtrend/core/curves.py
"""
Parametric curve families.

Every family is a pure function of (progress in [0, 1], parameters,
segment duration in minutes, sample index) registered in `FAMILIES`
together with the template defaults a freshly placed segment receives.

Families marked `noisy` draw their jitter from `seeded_unit(index)`, a
deterministic function of the sample index, so repeated previews of the
same segments are identical.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from .config import MIN_SEGMENT_MINUTES
from .exceptions import InvalidSegment, UnknownCurveFamily


class CurveFamily(str, Enum):
    UP = "up"
    DOWN = "down"
    WAVE = "wave"
    SINE = "sine"
    COSINE = "cosine"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_DECAY = "exponentialDecay"
    LOGARITHMIC = "logarithmic"
    SIGMOID = "sigmoid"
    PARABOLA = "parabola"
    STEP = "step"
    SAWTOOTH = "sawtooth"
    SQUARE = "square"
    BELL = "bell"
    DOUBLE_WAVE = "doubleWave"
    PRECOOL = "precool"
    PREHEAT = "preheat"
    STEADY_STATE = "steadyState"
    SINGLE_DOOR = "singleDoor"
    MULTI_DOOR = "multiDoor"
    FULL_LOAD = "fullLoad"
    HALF_LOAD = "halfLoad"
    FREEZE = "freeze"
    DEEP_FREEZE = "deepFreeze"
    HIGH_TEMP_STRESS = "highTempStress"
    LOW_TEMP_STRESS = "lowTempStress"
    POWER_LOSS_COOL = "powerLossCool"
    POWER_LOSS_HEAT = "powerLossHeat"
    CYCLE_ON_OFF_COOL = "cycleOnOffCool"
    CYCLE_ON_OFF_HEAT = "cycleOnOffHeat"
    DUAL_ZONE = "dualZone"
    TRIPLE_ZONE = "tripleZone"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True, slots=True)
class CurveParams:
    """
    Shape parameters of one segment.

    `start_value` / `end_value` are mandatory; every other field is optional
    and falls back to the family's evaluation default when None.
    Times (`open_duration`, `open_interval`) are minutes, time constants
    (`response_time`, `recovery_time`) are hours.
    """
    start_value: float
    end_value: float
    max_value: float | None = None
    max_position: float | None = None
    amplitude: float | None = None
    frequency: float | None = None
    phase: float | None = None
    rate: float | None = None
    step_count: int | None = None
    center: float | None = None
    width: float | None = None
    env_temp: float | None = None
    target_temp: float | None = None
    open_duration: float | None = None
    open_count: int | None = None
    open_interval: float | None = None
    response_time: float | None = None
    recovery_time: float | None = None
    load_ratio: float | None = None
    coupling_coeff: float | None = None
    noise_level: float | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            v = getattr(self, f.name)
            if v is None and f.name not in ("start_value", "end_value"):
                continue
            if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
                raise InvalidSegment(f"CurveParams.{f.name} must be a finite number, got {v!r}.")

    def get(self, name: str, fallback: float) -> float:
        v = getattr(self, name)
        return fallback if v is None else v

    def merged(self, **changes: Any) -> "CurveParams":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CurveParams":
        """Accept camelCase (stored templates) or snake_case keys."""
        by_key = {}
        for f in fields(cls):
            by_key[f.name] = f.name
            by_key[_camel(f.name)] = f.name
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = by_key.get(key)
            if name is not None and value is not None:
                kwargs[name] = value
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise InvalidSegment(f"Invalid curve params: {e}") from e

    def to_dict(self) -> dict[str, float]:
        return {
            _camel(f.name): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True, slots=True)
class CurveTemplate:
    """Duration (minutes) and params a newly placed segment of a family gets."""
    duration: float
    params: CurveParams


Evaluator = Callable[[float, CurveParams, float, int], float]


@dataclass(frozen=True, slots=True)
class CurveSpec:
    family: CurveFamily
    label: str
    category: str
    evaluate: Evaluator = field(repr=False)
    template: CurveTemplate = field(repr=False)
    noisy: bool = False


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------
def seeded_unit(index: int) -> float:
    """Deterministic pseudo-random number in [0, 1) for a sample index."""
    return ((index * 9301 + 49297) % 233280) / 233280


def _renormalized(raw: float, final: float, start: float, end: float, progress: float) -> float:
    """
    Rescale `raw` (a curve that starts at `start` and reaches `final` at
    progress 1) so that progress 1 lands exactly on `end`.

    A curve whose endpoint coincides with its start carries no shape; it is
    evaluated as a straight ramp.
    """
    span = final - start
    if abs(span) < 1e-12:
        return start + (end - start) * progress
    return start + (end - start) * (raw - start) / span


def _exp_curve(progress: float, start: float, end: float, rate: float, minutes: float) -> float:
    raw = start * math.exp(rate * progress * minutes)
    final = start * math.exp(rate * minutes)
    return _renormalized(raw, final, start, end, progress)


def _mid(p: CurveParams) -> float:
    return (p.start_value + p.end_value) / 2


# ---------------------------------------------------------------------------
# Basic families
# ---------------------------------------------------------------------------
def _linear(progress: float, p: CurveParams, duration: float, index: int) -> float:
    return p.start_value + (p.end_value - p.start_value) * progress


def _wave(progress: float, p: CurveParams, duration: float, index: int) -> float:
    s, e = p.start_value, p.end_value
    max_pos = p.get("max_position", 0.5)
    max_val = p.get("max_value", max(s, e))
    if progress <= max_pos:
        local = progress / max_pos if max_pos > 0 else 1.0
        return s + (max_val - s) * local
    local = (progress - max_pos) / (1 - max_pos) if max_pos < 1 else 1.0
    return max_val - (max_val - e) * local


def _sine(progress: float, p: CurveParams, duration: float, index: int) -> float:
    amplitude = p.get("amplitude", 0.9)
    frequency = p.get("frequency", 2)
    phase = p.get("phase", 0.0)
    return _mid(p) + amplitude * math.sin(2 * math.pi * frequency * progress + phase)


def _cosine(progress: float, p: CurveParams, duration: float, index: int) -> float:
    amplitude = p.get("amplitude", 0.9)
    frequency = p.get("frequency", 2)
    phase = p.get("phase", math.pi / 2)
    return _mid(p) + amplitude * math.cos(2 * math.pi * frequency * progress + phase)


def _exponential(progress: float, p: CurveParams, duration: float, index: int) -> float:
    return _exp_curve(progress, p.start_value, p.end_value, p.get("rate", 0.05), duration)


def _exponential_decay(progress: float, p: CurveParams, duration: float, index: int) -> float:
    return _exp_curve(progress, p.start_value, p.end_value, -p.get("rate", 0.05), duration)


def _logarithmic(progress: float, p: CurveParams, duration: float, index: int) -> float:
    s = p.start_value
    rate = p.get("rate", 2)
    raw = s + rate * math.log(1 + progress * duration)
    final = s + rate * math.log(1 + duration)
    return _renormalized(raw, final, s, p.end_value, progress)


def _sigmoid(progress: float, p: CurveParams, duration: float, index: int) -> float:
    rate = p.get("rate", 10)
    return p.start_value + (p.end_value - p.start_value) / (1 + math.exp(-rate * (progress - 0.5)))


def _parabola(progress: float, p: CurveParams, duration: float, index: int) -> float:
    s, e = p.start_value, p.end_value
    if progress <= 0:
        return s
    if progress >= 1:
        return e
    max_pos = p.get("max_position", 0.5)
    max_val = p.get("max_value", max(s, e))
    a = 4 * (max_val - min(s, e))
    return -a * (progress - max_pos) ** 2 + max_val


def _step(progress: float, p: CurveParams, duration: float, index: int) -> float:
    steps = max(1, int(p.get("step_count", 5)))
    step_index = math.floor(progress * steps)
    step_progress = (progress * steps) % 1
    step_size = (p.end_value - p.start_value) / steps
    return p.start_value + step_index * step_size + step_size * step_progress


def _sawtooth(progress: float, p: CurveParams, duration: float, index: int) -> float:
    amplitude = p.get("amplitude", 0.9)
    phase = (progress * p.get("frequency", 3)) % 1
    return _mid(p) + amplitude * (phase - 0.5)


def _square(progress: float, p: CurveParams, duration: float, index: int) -> float:
    amplitude = p.get("amplitude", 0.9)
    phase = (progress * p.get("frequency", 4)) % 1
    return _mid(p) + amplitude * (0.5 if phase < 0.5 else -0.5)


def _bell(progress: float, p: CurveParams, duration: float, index: int) -> float:
    low = min(p.start_value, p.end_value)
    max_val = p.get("max_value", max(p.start_value, p.end_value))
    center = p.get("center", 0.5)
    width = p.get("width", 0.2) or 0.2
    gaussian = math.exp(-(((progress - center) / width) ** 2) / 2)
    return low + (max_val - low) * gaussian


def _double_wave(progress: float, p: CurveParams, duration: float, index: int) -> float:
    amplitude = p.get("amplitude", 0.9)
    angle = 2 * math.pi * p.get("frequency", 4) * progress
    return _mid(p) + amplitude * math.sin(angle) * math.cos(angle)


# ---------------------------------------------------------------------------
# Cold-chain families
# ---------------------------------------------------------------------------
def _cooldown(progress: float, p: CurveParams, duration: float, index: int) -> float:
    # precool / freeze / deepFreeze / fullLoad / halfLoad
    return _exp_curve(progress, p.start_value, p.end_value, -p.get("rate", 0.02), duration)


def _preheat(progress: float, p: CurveParams, duration: float, index: int) -> float:
    return _exp_curve(progress, p.start_value, p.end_value, p.get("rate", 0.018), duration)


def _steady_state(progress: float, p: CurveParams, duration: float, index: int) -> float:
    noise = p.get("noise_level", 0.5)
    return _mid(p) + (seeded_unit(index) - 0.5) * noise * 2


def _time_constant(hours: float, duration: float) -> float:
    """Convert a time constant in hours to progress units (floored above 0)."""
    return max(hours * 60 / duration, 1e-9)


def _single_door(progress: float, p: CurveParams, duration: float, index: int) -> float:
    s, e = p.start_value, p.end_value
    env = p.get("env_temp", 28)
    open_frac = p.get("open_duration", 1) / duration
    response = _time_constant(p.get("response_time", 0.1), duration)
    recovery = _time_constant(p.get("recovery_time", 0.25), duration)
    if progress < open_frac:
        return s + (env - s) * (1 - math.exp(-progress / response))
    open_end = s + (env - s) * (1 - math.exp(-open_frac / response))
    remaining = 1 - open_frac
    recovery_progress = (progress - open_frac) / remaining if remaining > 0 else 1.0
    return open_end - (open_end - e) * (1 - math.exp(-recovery_progress / recovery))


def _multi_door(progress: float, p: CurveParams, duration: float, index: int) -> float:
    s = p.start_value
    env = p.get("env_temp", 28)
    count = int(p.get("open_count", 4))
    interval = p.get("open_interval", 90) / duration
    open_frac = p.get("open_duration", 1) / duration
    response = _time_constant(p.get("response_time", 0.1), duration)
    recovery = _time_constant(p.get("recovery_time", 0.25), duration)
    peak = s + (env - s) * (1 - math.exp(-1 / response))

    for i in range(count):
        open_start = i * interval
        open_end = open_start + open_frac
        if open_start <= progress <= open_end:
            local = (progress - open_start) / open_frac if open_frac > 0 else 1.0
            return s + (env - s) * (1 - math.exp(-local / response))
        if progress > open_end and (i == count - 1 or progress < (i + 1) * interval):
            window = min(interval - open_frac, 1 - open_end)
            recovery_progress = (progress - open_end) / window if window > 0 else 1.0
            return peak - (peak - s) * (1 - math.exp(-recovery_progress / recovery))
    return s


def _temp_stress(default_env: float) -> Evaluator:
    def evaluate(progress: float, p: CurveParams, duration: float, index: int) -> float:
        s = p.start_value
        env = p.get("env_temp", default_env)
        target = p.get("target_temp", s)
        excursion = (env - s) * 0.3
        if progress < 0.1:
            return s + excursion * (1 - math.exp(-progress / 0.1))
        peak = s + excursion
        recovery_progress = (progress - 0.1) / 0.9
        recovery = _time_constant(1.0, duration)
        return peak - (peak - target) * (1 - math.exp(-recovery_progress / recovery))

    return evaluate


def _cycle_on_off(cooling: bool) -> Evaluator:
    default_rate = 0.02 if cooling else 0.018

    def evaluate(progress: float, p: CurveParams, duration: float, index: int) -> float:
        s, e = p.start_value, p.end_value
        frequency = p.get("frequency", 4)
        rate = p.get("rate", default_rate)
        amplitude = p.get("amplitude", 0.05)
        jitter = (seeded_unit(index) - 0.5) * amplitude * 2
        cycle_progress = (progress * frequency) % 1
        if cycle_progress < 0.3:
            local = cycle_progress / 0.3
            signed_rate = -rate if cooling else rate
            return _exp_curve(local, s, e, signed_rate, 60) + jitter
        return e + jitter

    return evaluate


def _multi_zone(progress: float, p: CurveParams, duration: float, index: int) -> float:
    noise = p.get("noise_level", 0.5)
    return _mid(p) + (seeded_unit(index) - 0.5) * noise * 2


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
def _spec(
    family: CurveFamily,
    label: str,
    category: str,
    evaluate: Evaluator,
    duration: float,
    *,
    noisy: bool = False,
    **defaults: float,
) -> CurveSpec:
    return CurveSpec(
        family=family,
        label=label,
        category=category,
        evaluate=evaluate,
        template=CurveTemplate(duration=duration, params=CurveParams(**defaults)),
        noisy=noisy,
    )


F = CurveFamily

_SPECS = [
    # basic
    _spec(F.UP, "Linear rise", "basic", _linear, 60, start_value=2, end_value=4),
    _spec(F.DOWN, "Linear fall", "basic", _linear, 60, start_value=4, end_value=2),
    _spec(F.WAVE, "Single wave", "basic", _wave, 120,
          start_value=2, end_value=3, max_value=4, max_position=0.5),
    _spec(F.SINE, "Sine", "basic", _sine, 120,
          start_value=3, end_value=3, amplitude=0.9, frequency=2, phase=0),
    _spec(F.COSINE, "Cosine", "basic", _cosine, 120,
          start_value=3, end_value=3, amplitude=0.9, frequency=2, phase=math.pi / 2),
    _spec(F.EXPONENTIAL, "Exponential growth", "basic", _exponential, 120,
          start_value=2, end_value=4, rate=0.05),
    _spec(F.EXPONENTIAL_DECAY, "Exponential decay", "basic", _exponential_decay, 120,
          start_value=4, end_value=2, rate=0.05),
    _spec(F.LOGARITHMIC, "Logarithmic growth", "basic", _logarithmic, 120,
          start_value=2, end_value=4, rate=0.5),
    _spec(F.SIGMOID, "S-curve", "basic", _sigmoid, 120, start_value=2, end_value=4, rate=10),
    _spec(F.PARABOLA, "Parabola", "basic", _parabola, 120,
          start_value=2, end_value=2, max_value=4, max_position=0.5),
    _spec(F.STEP, "Steps", "basic", _step, 120, start_value=2, end_value=4, step_count=5),
    _spec(F.SAWTOOTH, "Sawtooth", "basic", _sawtooth, 120,
          start_value=3, end_value=3, amplitude=0.9, frequency=3),
    _spec(F.SQUARE, "Square", "basic", _square, 120,
          start_value=3, end_value=3, amplitude=0.9, frequency=4),
    _spec(F.BELL, "Bell", "basic", _bell, 120,
          start_value=2, end_value=2, max_value=4, center=0.5, width=0.2),
    _spec(F.DOUBLE_WAVE, "Double wave", "basic", _double_wave, 120,
          start_value=3, end_value=3, amplitude=0.9, frequency=4),
    # cold-chain validation profiles
    _spec(F.PRECOOL, "Precool", "industry", _cooldown, 240,
          start_value=25, end_value=5, rate=0.02, target_temp=5, load_ratio=0, noise_level=0.5),
    _spec(F.PREHEAT, "Preheat", "industry", _preheat, 180,
          start_value=5, end_value=20, rate=0.018, target_temp=20, load_ratio=0, noise_level=0.5),
    _spec(F.STEADY_STATE, "Steady state", "industry", _steady_state, 1440, noisy=True,
          start_value=5, end_value=5, noise_level=0.5),
    _spec(F.SINGLE_DOOR, "Single door opening", "industry", _single_door, 120,
          start_value=5, end_value=5, env_temp=28, open_duration=1,
          response_time=0.1, recovery_time=0.25),
    _spec(F.MULTI_DOOR, "Repeated door openings", "industry", _multi_door, 360,
          start_value=5, end_value=5, env_temp=28, open_duration=1, open_count=4,
          open_interval=90, response_time=0.1, recovery_time=0.25),
    _spec(F.FULL_LOAD, "Full load", "industry", _cooldown, 480,
          start_value=25, end_value=-18, rate=0.015, target_temp=-18, load_ratio=1.0,
          noise_level=0.5),
    _spec(F.HALF_LOAD, "Half load", "industry", _cooldown, 360,
          start_value=25, end_value=5, rate=0.018, target_temp=5, load_ratio=0.5,
          noise_level=0.5),
    _spec(F.FREEZE, "Freeze (-18)", "industry", _cooldown, 600,
          start_value=25, end_value=-18, rate=0.012, target_temp=-18, load_ratio=0.5,
          noise_level=1.0),
    _spec(F.DEEP_FREEZE, "Deep freeze (-25)", "industry", _cooldown, 720,
          start_value=25, end_value=-25, rate=0.01, target_temp=-25, load_ratio=0.5,
          noise_level=1.0),
    _spec(F.HIGH_TEMP_STRESS, "High temperature stress", "industry", _temp_stress(38), 480,
          start_value=5, end_value=5, env_temp=38, target_temp=5, noise_level=0.8),
    _spec(F.LOW_TEMP_STRESS, "Low temperature stress", "industry", _temp_stress(-20), 480,
          start_value=15, end_value=15, env_temp=-20, target_temp=15, noise_level=0.8),
    _spec(F.POWER_LOSS_COOL, "Power loss (cooling)", "industry", _linear, 360,
          start_value=5, end_value=10, rate=0.5, load_ratio=0.5, noise_level=0.3),
    _spec(F.POWER_LOSS_HEAT, "Power loss (heating)", "industry", _linear, 360,
          start_value=20, end_value=10, rate=0.5, load_ratio=0.5, noise_level=0.3),
    _spec(F.CYCLE_ON_OFF_COOL, "On/off cycling (cooling)", "industry", _cycle_on_off(True),
          1440, noisy=True, start_value=25, end_value=5, rate=0.02, target_temp=5,
          frequency=4, amplitude=0.05, noise_level=0.5),
    _spec(F.CYCLE_ON_OFF_HEAT, "On/off cycling (heating)", "industry", _cycle_on_off(False),
          1440, noisy=True, start_value=5, end_value=20, rate=0.018, target_temp=20,
          frequency=4, amplitude=0.05, noise_level=0.5),
    _spec(F.DUAL_ZONE, "Dual zone", "industry", _multi_zone, 1440, noisy=True,
          start_value=5, end_value=5, target_temp=5, coupling_coeff=0.05, load_ratio=0.5,
          noise_level=0.5),
    _spec(F.TRIPLE_ZONE, "Triple zone", "industry", _multi_zone, 1440, noisy=True,
          start_value=2, end_value=2, target_temp=2, coupling_coeff=0.05, load_ratio=0.5,
          noise_level=0.5),
]

FAMILIES: Mapping[CurveFamily, CurveSpec] = MappingProxyType({s.family: s for s in _SPECS})

RENORMALIZED_FAMILIES = frozenset({
    F.EXPONENTIAL, F.EXPONENTIAL_DECAY, F.LOGARITHMIC, F.PRECOOL, F.PREHEAT,
    F.FREEZE, F.DEEP_FREEZE, F.FULL_LOAD, F.HALF_LOAD,
})


def resolve_family(family: CurveFamily | str) -> CurveFamily:
    try:
        return CurveFamily(family)
    except ValueError as e:
        raise UnknownCurveFamily(family) from e


def spec_for(family: CurveFamily | str) -> CurveSpec:
    return FAMILIES[resolve_family(family)]


def template_for(family: CurveFamily | str) -> CurveTemplate:
    return spec_for(family).template


def evaluate(
    family: CurveFamily | str,
    progress: float,
    params: CurveParams | Mapping[str, Any],
    *,
    duration: float | None = None,
    index: int = 0,
) -> float:
    """
    Value of `family` at `progress` (clamped to [0, 1]).

    `duration` is the segment length in minutes, clamped up to the 5 minute
    segment minimum (defaults to the family template duration); `index` is
    the sample index used by noisy families.
    """
    spec = spec_for(family)
    if not isinstance(params, CurveParams):
        params = CurveParams.from_dict(params)
    if duration is None or not math.isfinite(duration):
        minutes = spec.template.duration
    else:
        minutes = max(float(duration), MIN_SEGMENT_MINUTES)
    p = min(max(float(progress), 0.0), 1.0)
    return spec.evaluate(p, params, float(minutes), int(index))
