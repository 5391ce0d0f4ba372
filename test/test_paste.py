# test/test_paste.py
import math

import pytest

from coldtrend.core import InvalidSelection, Reading
from coldtrend.edit import (
    PasteEditor,
    Selection,
    adjust_by_trend,
    align_selection,
    copy_selection,
    selection_average,
)

T = 1_700_000_040_000.0
MIN = 60_000.0


def _series(device, temps, start=0, humidity=50.0, shift=0.0):
    return [Reading(device, T + (start + i) * MIN + shift, t, humidity) for i, t in enumerate(temps)]


def _by_minute(series):
    return {round((r.timestamp - T) / MIN, 3): r for r in series}


def test_align_selection_orders_and_snaps_to_minutes():
    sel = align_selection(T + 3 * MIN + 10_000, T + 20_000)
    assert sel.start == T
    assert sel.end == T + 4 * MIN
    assert sel.contains(T + 4 * MIN)
    assert not sel.contains(T + 4 * MIN + 1)


@pytest.mark.parametrize("start,end", [(T, T), (T, T - 1), (math.nan, T), (T, math.inf)])
def test_selection_rejects_empty_or_non_finite(start, end):
    with pytest.raises(InvalidSelection):
        Selection(start, end)


def test_copy_selection_single_and_multi():
    series_map = {"dev-1": _series("dev-1", [1, 2, 3, 4]), "dev-2": _series("dev-2", [5, 6])}
    sel = Selection(T + MIN, T + 2 * MIN)

    one = copy_selection(series_map, sel, "dev-1")
    assert one.single_device
    assert [r.temperature for r in one.data["dev-1"]] == [2, 3]

    both = copy_selection(series_map, sel)
    assert not both.single_device
    assert set(both.data) == {"dev-1", "dev-2"}
    assert len(both) == 3

    with pytest.raises(InvalidSelection):
        copy_selection(series_map, Selection(T + 10 * MIN, T + 11 * MIN))


def test_short_block_gets_constant_offset():
    existing = _series("dev-1", [10.0] * 21)
    block = _series("dev-1", [3.0, 3.5, 4.0], start=30, humidity=40.0)
    out = adjust_by_trend(block, existing, T + 30 * MIN)
    assert [r.temperature for r in out] == [10.0, 10.5, 11.0]
    assert all(r.humidity == 50.0 for r in out)
    assert [r.timestamp for r in out] == [r.timestamp for r in block]


def test_long_block_follows_steep_slope():
    # 10 degrees per minute is above the slope threshold (per millisecond)
    existing = _series("dev-1", [10.0 * m for m in range(10)])
    block = [
        Reading("dev-1", T + 20 * MIN, 0.0, 50.0),
        Reading("dev-1", T + 22 * MIN, 0.0, 50.0),
        Reading("dev-1", T + 26 * MIN, 1.0, 50.0),
    ]
    out = adjust_by_trend(block, existing, T + 20 * MIN)
    assert [r.temperature for r in out] == pytest.approx([200.0, 220.0, 261.0])


def test_short_block_ignores_steep_slope():
    existing = _series("dev-1", [10.0 * m for m in range(10)])
    block = _series("dev-1", [0.0, 0.0, 0.0], start=20)
    out = adjust_by_trend(block, existing, T + 20 * MIN)
    assert [r.temperature for r in out] == pytest.approx([200.0] * 3)


def test_gentle_slope_is_treated_as_flat():
    existing = _series("dev-1", [round(5.0 + 0.1 * m, 1) for m in range(21)])
    block = _series("dev-1", [0.0] * 10, start=21)
    out = adjust_by_trend(block, existing, T + 21 * MIN)
    temps = {r.temperature for r in out}
    assert len(temps) == 1


def test_trend_needs_two_neighbours_and_handles_degenerate_fit():
    block = _series("dev-1", [1.0, 2.0], start=5)
    assert adjust_by_trend(block, _series("dev-1", [9.0]), T + 5 * MIN) == block
    assert adjust_by_trend(block, [], T + 5 * MIN) == block

    # identical timestamps: no slope, mean level
    same_time = [Reading("dev-1", T, 4.0, 50.0), Reading("dev-1", T, 6.0, 50.0)]
    out = adjust_by_trend(block, same_time, T + 5 * MIN)
    assert [r.temperature for r in out] == [5.0, 6.0]


def test_neighbours_after_target_top_up_the_window():
    existing = _series("dev-1", [7.0] + [3.0] * 12)
    block = _series("dev-1", [0.0], start=0)
    out = adjust_by_trend(block, existing, T)
    # one neighbour before, nine after
    assert out[0].temperature == pytest.approx(4.4)


@pytest.fixture
def paster(committer):
    return PasteEditor(committer)


def test_single_device_paste_replaces_span(paster, store, history):
    series_map = {"dev-1": _series("dev-1", [1, 2, 3, 4, 5]), "dev-2": _series("dev-2", [9.0] * 21)}
    copied = copy_selection(series_map, Selection(T, T + 4 * MIN), "dev-1")

    report = paster.paste(copied, T + 10 * MIN, series_map, target_device_id="dev-2", adjust_trend=False)
    out = _by_minute(report.series_map["dev-2"])
    assert len(out) == 21
    assert [out[m].temperature for m in range(10, 15)] == [1, 2, 3, 4, 5]
    assert all(r.device_id == "dev-2" for r in report.series_map["dev-2"])
    assert out[9].temperature == 9.0
    assert out[15].temperature == 9.0
    assert report.devices == ("dev-2",)
    assert len(store.load_series("dev-2")) == 21
    assert history.size == 1


def test_single_device_paste_between_readings(paster):
    series_map = {"dev-1": _series("dev-1", [1, 2]), "dev-2": _series("dev-2", [9.0] * 10)}
    copied = copy_selection(series_map, Selection(T, T + MIN), "dev-1")
    report = paster.paste(copied, T + 3 * MIN + 30_000, series_map, target_device_id="dev-2", adjust_trend=False)
    stamps = [r.timestamp for r in report.series_map["dev-2"]]
    # minute 4 lies inside the pasted span and is replaced
    assert T + 4 * MIN not in stamps
    assert T + 3 * MIN + 30_000 in stamps
    assert T + 4 * MIN + 30_000 in stamps
    assert len(stamps) == 11


def test_paste_adjusts_to_local_level_by_default(paster):
    series_map = {"dev-1": _series("dev-1", [1, 2, 3, 4, 5]), "dev-2": _series("dev-2", [9.0] * 21)}
    copied = copy_selection(series_map, Selection(T, T + 4 * MIN), "dev-1")
    report = paster.paste(copied, T + 10 * MIN, series_map, target_device_id="dev-2")
    out = _by_minute(report.series_map["dev-2"])
    assert [out[m].temperature for m in range(10, 15)] == [9, 10, 11, 12, 13]


def test_paste_target_rules(paster):
    series_map = {"dev-1": _series("dev-1", [1, 2]), "dev-2": _series("dev-2", [3, 4])}
    single = copy_selection(series_map, Selection(T, T + MIN), "dev-1")
    multi = copy_selection(series_map, Selection(T, T + MIN))

    with pytest.raises(InvalidSelection):
        paster.paste(single, T + 5 * MIN, series_map)
    with pytest.raises(InvalidSelection):
        paster.paste(multi, T + 5 * MIN, series_map, target_device_id="dev-2")


def test_multi_device_paste_keeps_relative_timing_and_skips_hidden(paster, updates):
    series_map = {
        "dev-1": _series("dev-1", [1, 2, 3]),
        "dev-2": _series("dev-2", [7, 8], start=1),
        "dev-3": _series("dev-3", [5, 5, 5]),
    }
    copied = copy_selection(series_map, Selection(T, T + 2 * MIN), device_ids=["dev-1", "dev-2"])

    report = paster.paste(
        copied, T + 10 * MIN, series_map, device_ids=["dev-1", "dev-2"], adjust_trend=False
    )
    one = _by_minute(report.series_map["dev-1"])
    two = _by_minute(report.series_map["dev-2"])
    assert [one[m].temperature for m in (10, 11, 12)] == [1, 2, 3]
    assert [two[m].temperature for m in (11, 12)] == [7, 8]
    assert set(report.devices) == {"dev-1", "dev-2"}

    hidden = paster.paste(copied, T + 20 * MIN, series_map, device_ids=["dev-1"], adjust_trend=False)
    assert hidden.devices == ("dev-1",)
    assert hidden.series_map["dev-2"] == series_map["dev-2"]


def test_average_into_writes_per_minute_means(paster, store):
    series_map = {
        "dev-1": _series("dev-1", [4.0] * 5, humidity=40.0),
        "dev-2": _series("dev-2", [6.0] * 5, humidity=60.0, shift=20_000),
        "dev-3": _series("dev-3", [0.0] * 6, humidity=0.0),
    }
    sel = Selection(T, T + 2 * MIN)
    report = paster.average_into(series_map, sel, "dev-3", device_ids=["dev-1", "dev-2"])

    out = _by_minute(report.series_map["dev-3"])
    assert sorted(out) == [0, 1, 2, 3, 4, 5]
    assert (out[0].temperature, out[0].humidity) == (5.0, 50.0)
    assert out[1].temperature == 5.0
    # dev-2 has no reading inside minute 2 of the selection
    assert (out[2].temperature, out[2].humidity) == (4.0, 40.0)
    assert out[3].temperature == 0.0
    assert len(store.load_series("dev-3")) == 6


def test_average_into_needs_two_readings(paster):
    series_map = {"dev-1": _series("dev-1", [4.0])}
    with pytest.raises(InvalidSelection):
        paster.average_into(series_map, Selection(T, T + MIN), "dev-1")


def test_selection_average():
    series_map = {
        "dev-1": _series("dev-1", [4.0, 5.0], humidity=40.0),
        "dev-2": _series("dev-2", [6.0, 6.0], humidity=61.0),
    }
    avg = selection_average(series_map, Selection(T, T + MIN))
    assert avg.count == 4
    assert avg.temperature == 5.3
    assert avg.humidity == 50.5

    only = selection_average(series_map, Selection(T, T + MIN), "dev-2")
    assert (only.temperature, only.count) == (6.0, 2)

    with pytest.raises(InvalidSelection):
        selection_average(series_map, Selection(T + 10 * MIN, T + 11 * MIN))
