# coldtrend/core/segment.py
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Mapping

from .config import MIN_SEGMENT_MINUTES
from .curves import CurveFamily, CurveParams, resolve_family, template_for
from .exceptions import InvalidSegment, SegmentNotFound


def _new_id() -> str:
    return uuid.uuid4().hex


def _finite(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidSegment(f"Segment.{name} must be a finite number, got {value!r}.")
    return float(value)


@dataclass(frozen=True, slots=True)
class Segment:
    """
    A time-bounded piece of a composite trend.

    Offsets and durations are minutes relative to the channel start time.
    A duration below the 5 minute minimum is clamped up to it; a negative
    start offset is clamped to 0.
    """
    id: str
    family: CurveFamily
    start_offset: float
    duration: float
    params: CurveParams = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise InvalidSegment("Segment.id must be a non-empty string.")
        object.__setattr__(self, "family", resolve_family(self.family))
        if not isinstance(self.params, CurveParams):
            raise InvalidSegment("Segment.params must be a CurveParams instance.")

        start = _finite("start_offset", self.start_offset)
        duration = _finite("duration", self.duration)
        object.__setattr__(self, "start_offset", max(0.0, start))
        object.__setattr__(self, "duration", max(MIN_SEGMENT_MINUTES, duration))

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.duration

    @classmethod
    def from_template(
        cls,
        family: CurveFamily | str,
        start_offset: float = 0.0,
        *,
        id: str | None = None,
        **param_overrides: float,
    ) -> "Segment":
        template = template_for(family)
        params = template.params.merged(**param_overrides) if param_overrides else template.params
        return cls(
            id=id or _new_id(),
            family=resolve_family(family),
            start_offset=start_offset,
            duration=template.duration,
            params=params,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Segment":
        """Build from the stored trend-template shape `{id, type, startTime, duration, params}`."""
        try:
            return cls(
                id=str(data.get("id") or _new_id()),
                family=data["type"],
                start_offset=data.get("startTime", 0.0),
                duration=data["duration"],
                params=CurveParams.from_dict(data["params"]),
            )
        except KeyError as e:
            raise InvalidSegment(f"Missing segment field: {e.args[0]}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.family.value,
            "startTime": self.start_offset,
            "duration": self.duration,
            "params": self.params.to_dict(),
        }


def _resolve_overlaps(segments: Iterable[Segment]) -> tuple[Segment, ...]:
    """Sort by (start, duration) and push any segment overlapping its predecessor forward."""
    ordered = sorted(segments, key=lambda s: (s.start_offset, s.duration))
    adjusted: list[Segment] = []
    for seg in ordered:
        if adjusted and seg.start_offset < adjusted[-1].end_offset:
            seg = replace(seg, start_offset=adjusted[-1].end_offset)
        adjusted.append(seg)
    return tuple(adjusted)


@dataclass(frozen=True, slots=True)
class SegmentTimeline:
    """
    Ordered, non-overlapping segments of one channel.

    Design goals (same as the other core containers):
    - dict-like access by segment id: timeline["abc"]
    - immutable; every edit returns a new timeline
    - invariant: s[i].end_offset <= s[i + 1].start_offset
    """
    segments: tuple[Segment, ...] = field(default=(), repr=False)

    def __post_init__(self) -> None:
        segs = tuple(self.segments)
        seen: set[str] = set()
        for seg in segs:
            if not isinstance(seg, Segment):
                raise InvalidSegment("SegmentTimeline.segments must hold Segment instances.")
            if seg.id in seen:
                raise InvalidSegment(f"Duplicate segment id '{seg.id}'.")
            seen.add(seg.id)
        object.__setattr__(self, "segments", _resolve_overlaps(segs))

    # ---- dict-like API ----
    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __contains__(self, segment_id: object) -> bool:
        return any(s.id == segment_id for s in self.segments)

    def __getitem__(self, segment_id: str) -> Segment:
        for s in self.segments:
            if s.id == segment_id:
                return s
        raise SegmentNotFound(segment_id)

    def ids(self) -> list[str]:
        return [s.id for s in self.segments]

    # ---- derived bounds ----
    @property
    def end_offset(self) -> float:
        return self.segments[-1].end_offset if self.segments else 0.0

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.segments)

    # ---- placement ----
    def insert(self, segment: Segment) -> "SegmentTimeline":
        if segment.id in self:
            raise InvalidSegment(f"Segment '{segment.id}' already exists.")
        return SegmentTimeline((*self.segments, segment))

    def append(self, family: CurveFamily | str, **param_overrides: float) -> "SegmentTimeline":
        """Place a template segment of `family` right after the last segment."""
        return self.insert(Segment.from_template(family, self.end_offset, **param_overrides))

    def move(self, segment_id: str, start_offset: float) -> "SegmentTimeline":
        moved = replace(self[segment_id], start_offset=start_offset)
        return SegmentTimeline(tuple(moved if s.id == segment_id else s for s in self.segments))

    def resize(self, segment_id: str, duration: float, *, edge: str = "right") -> "SegmentTimeline":
        """
        Change one segment's length without moving the others.

        edge="right" keeps the start and clamps the duration to
        [minimum, gap before the next segment]. edge="left" keeps the end
        and moves the start; it is ignored when the segment would become
        shorter than the minimum or start before its predecessor's end.
        """
        if edge not in {"right", "left"}:
            raise ValueError("edge must be one of: right, left")
        idx = self._index(segment_id)
        seg = self.segments[idx]
        duration = _finite("duration", duration)

        if edge == "right":
            upper = math.inf
            if idx + 1 < len(self.segments):
                upper = self.segments[idx + 1].start_offset - seg.start_offset
            new_duration = min(max(duration, MIN_SEGMENT_MINUTES), max(upper, MIN_SEGMENT_MINUTES))
            updated = replace(seg, duration=new_duration)
        else:
            if duration < MIN_SEGMENT_MINUTES:
                return self
            new_start = seg.end_offset - duration
            lower = self.segments[idx - 1].end_offset if idx > 0 else 0.0
            if new_start < lower:
                return self
            updated = replace(seg, start_offset=new_start, duration=duration)

        segs = list(self.segments)
        segs[idx] = updated
        return SegmentTimeline(tuple(segs))

    def update_params(self, segment_id: str, params: CurveParams) -> "SegmentTimeline":
        updated = replace(self[segment_id], params=params)
        return SegmentTimeline(tuple(updated if s.id == segment_id else s for s in self.segments))

    def remove(self, segment_id: str) -> "SegmentTimeline":
        self._index(segment_id)
        return SegmentTimeline(tuple(s for s in self.segments if s.id != segment_id))

    def _index(self, segment_id: str) -> int:
        for i, s in enumerate(self.segments):
            if s.id == segment_id:
                return i
        raise SegmentNotFound(segment_id)

    # ---- serialization ----
    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> "SegmentTimeline":
        return cls(tuple(Segment.from_dict(item) for item in items))

    def to_dicts(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.segments]
