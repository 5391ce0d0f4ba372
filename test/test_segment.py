# test/test_segment.py
import itertools
import random

import pytest

from coldtrend.core import CurveFamily, CurveParams, InvalidSegment, Segment, SegmentNotFound, SegmentTimeline


def _seg(id, start, duration, family="up", s=2, e=4):
    return Segment(id=id, family=family, start_offset=start, duration=duration,
                   params=CurveParams(start_value=s, end_value=e))


def _assert_non_overlapping(timeline):
    segs = list(timeline)
    starts = [s.start_offset for s in segs]
    assert starts == sorted(starts)
    for a, b in zip(segs, segs[1:]):
        assert a.end_offset <= b.start_offset + 1e-9


def test_segment_clamps_duration_and_start():
    seg = _seg("a", -10, 2)
    assert seg.start_offset == 0.0
    assert seg.duration == 5.0
    assert seg.family is CurveFamily.UP
    assert seg.end_offset == 5.0


def test_segment_rejects_non_finite_values():
    with pytest.raises(InvalidSegment):
        _seg("a", float("nan"), 10)
    with pytest.raises(InvalidSegment):
        _seg("a", 0, float("inf"))
    with pytest.raises(InvalidSegment):
        _seg("", 0, 10)


def test_segment_from_template_uses_family_defaults():
    seg = Segment.from_template("precool", 30)
    assert seg.duration == 240
    assert seg.start_offset == 30
    assert seg.params.start_value == 25
    assert seg.params.end_value == 5

    custom = Segment.from_template(CurveFamily.UP, end_value=9)
    assert custom.params.end_value == 9
    assert custom.params.start_value == 2


def test_segment_dict_round_trip_uses_stored_shape():
    seg = _seg("abc", 15, 60)
    data = seg.to_dict()
    assert data == {
        "id": "abc",
        "type": "up",
        "startTime": 15.0,
        "duration": 60.0,
        "params": {"startValue": 2, "endValue": 4},
    }
    assert Segment.from_dict(data) == seg


def test_segment_from_dict_missing_field():
    with pytest.raises(InvalidSegment):
        Segment.from_dict({"id": "x", "type": "up", "params": {"startValue": 1, "endValue": 2}})


def test_timeline_dict_like_api():
    tl = SegmentTimeline((_seg("a", 0, 60), _seg("b", 60, 30)))
    assert len(tl) == 2
    assert "a" in tl
    assert tl["b"].duration == 30
    assert tl.ids() == ["a", "b"]
    assert tl.end_offset == 90
    assert tl.total_duration == 90

    with pytest.raises(SegmentNotFound):
        _ = tl["missing"]
    with pytest.raises(KeyError):
        tl.remove("missing")


def test_timeline_rejects_duplicate_ids():
    with pytest.raises(InvalidSegment):
        SegmentTimeline((_seg("a", 0, 10), _seg("a", 20, 10)))
    tl = SegmentTimeline((_seg("a", 0, 10),))
    with pytest.raises(InvalidSegment):
        tl.insert(_seg("a", 50, 10))


def test_insert_pushes_overlapping_segment_to_predecessor_end():
    tl = SegmentTimeline((_seg("a", 0, 60),))
    tl2 = tl.insert(_seg("b", 30, 20))
    assert tl2["b"].start_offset == 60
    # source timeline untouched
    assert len(tl) == 1
    _assert_non_overlapping(tl2)


def test_append_places_template_after_last_segment():
    tl = SegmentTimeline().append("up").append("down")
    assert [s.family for s in tl] == [CurveFamily.UP, CurveFamily.DOWN]
    assert tl.segments[1].start_offset == 60
    assert tl.end_offset == 120


def test_move_resorts_and_pushes_forward():
    tl = SegmentTimeline((_seg("a", 0, 60), _seg("b", 60, 60), _seg("c", 120, 30)))
    moved = tl.move("c", 10)
    assert moved.ids() == ["a", "c", "b"]
    assert moved["c"].start_offset == 60
    assert moved["b"].start_offset == 90
    _assert_non_overlapping(moved)


def test_right_resize_does_not_move_neighbours():
    tl = SegmentTimeline((_seg("a", 0, 60), _seg("b", 100, 60)))
    grown = tl.resize("a", 500)
    assert grown["a"].duration == 100
    assert grown["b"].start_offset == 100

    shrunk = tl.resize("a", 1)
    assert shrunk["a"].duration == 5

    last = tl.resize("b", 240)
    assert last["b"].duration == 240


def test_left_resize_keeps_end_and_ignores_invalid_results():
    tl = SegmentTimeline((_seg("a", 0, 30), _seg("b", 60, 60)))
    resized = tl.resize("b", 80, edge="left")
    assert resized["b"].start_offset == 40
    assert resized["b"].end_offset == 120

    assert tl.resize("b", 3, edge="left") is tl         # below minimum
    assert tl.resize("b", 200, edge="left") is tl       # would overlap "a"

    with pytest.raises(ValueError):
        tl.resize("b", 10, edge="top")


def test_update_params_and_remove():
    tl = SegmentTimeline((_seg("a", 0, 60), _seg("b", 60, 60)))
    tl2 = tl.update_params("a", CurveParams(start_value=0, end_value=1))
    assert tl2["a"].params.end_value == 1
    assert tl["a"].params.end_value == 4

    tl3 = tl2.remove("a")
    assert tl3.ids() == ["b"]


def test_random_edit_sequences_never_overlap():
    rng = random.Random(1234)
    tl = SegmentTimeline()
    ids = itertools.count()
    for _ in range(300):
        op = rng.choice(["insert", "move", "resize", "left", "remove"])
        if op == "insert" or len(tl) == 0:
            tl = tl.insert(_seg(f"s{next(ids)}", rng.uniform(0, 600), rng.uniform(0, 120)))
        else:
            target = rng.choice(tl.ids())
            if op == "move":
                tl = tl.move(target, rng.uniform(0, 600))
            elif op == "resize":
                tl = tl.resize(target, rng.uniform(-10, 300))
            elif op == "left":
                tl = tl.resize(target, rng.uniform(-10, 300), edge="left")
            else:
                tl = tl.remove(target)
        _assert_non_overlapping(tl)
        assert all(s.duration >= 5 for s in tl)


def test_timeline_serialization():
    tl = SegmentTimeline((_seg("a", 0, 60), _seg("b", 60, 60, family="down", s=4, e=2)))
    restored = SegmentTimeline.from_dicts(tl.to_dicts())
    assert restored == tl
