import pytest

from schedule_ingest import (
    build_line_directions,
    derive_segment_minutes,
    parse_line_snapshot,
    parse_schedule,
)
from schedule_models import Station, Stop


def _row(label, sid, first, last="23:00"):
    return {"description": label, "stat_id": sid, "name": sid, "first_time": first, "last_time": last}


def _stations(*ids):
    return {sid: Station(station_id=sid, name=sid, lon=121.0 + i * 0.01, lat=31.0) for i, sid in enumerate(ids)}


def test_baseline_durations_from_first_time_deltas():
    rows = [_row("up", "A", "05:00"), _row("up", "B", "05:08"), _row("up", "C", "05:15")]
    [direction] = build_line_directions("1", "#fff", rows, _stations("A", "B", "C"))

    assert direction.direction == 1
    assert [s.name for s in direction.stops] == ["A", "B", "C"]
    assert direction.segment_durations == [8.0, 7.0]
    assert direction.stops[-1].segment_duration is None


def test_descending_rows_are_reversed():
    rows = [_row("down", "C", "05:15"), _row("down", "B", "05:08"), _row("down", "A", "05:00")]
    [direction] = build_line_directions("1", "#fff", rows, _stations("A", "B", "C"))

    assert direction.direction == -1
    assert [s.name for s in direction.stops] == ["A", "B", "C"]
    assert direction.segment_durations == [8.0, 7.0]


def test_rows_grouped_by_label_and_short_groups_discarded():
    rows = [
        _row("up", "A", "05:00"),
        _row("down", "C", "05:30"),
        _row("up", "B", "05:04"),
        _row("loop", "A", "06:00"),
    ]
    directions = build_line_directions("1", "#fff", rows, _stations("A", "B", "C"))

    assert [d.label for d in directions] == ["up"]
    assert [s.name for s in directions[0].stops] == ["A", "B"]


def test_midnight_crossing_and_minimum_delta():
    a = Stop(name="A", station=None, first_time=23 * 60 + 58, last_time=23 * 60)
    b = Stop(name="B", station=None, first_time=1, last_time=23 * 60 + 10)
    # 始発差 3 分（日跨ぎ補正）、終電差 10 分 → 小さい方
    assert derive_segment_minutes(a, b) == 3.0


def test_clamp_to_bounds():
    a = Stop(name="A", station=None, first_time=300, last_time=0)
    b = Stop(name="B", station=None, first_time=345, last_time=0)
    assert derive_segment_minutes(a, b) == 20.0

    c = Stop(name="C", station=None, first_time=300, last_time=0)
    d = Stop(name="D", station=None, first_time=300 + 24 * 60, last_time=0)
    assert derive_segment_minutes(c, d) == 20.0


def test_no_delta_leaves_duration_undefined():
    a = Stop(name="A", station=None, first_time=0, last_time=0)
    b = Stop(name="B", station=None, first_time=0, last_time=0)
    assert derive_segment_minutes(a, b) is None


def test_line_snapshot_filters_missing_coordinates_and_reads_ring_flag():
    payload = {
        "lines": [
            {
                "line_info": {"line_no": 4, "color": "#5F259F"},
                "stations": [
                    {"stat_id": "1", "name_cn": "宜山路", "longitude": 121.42, "latitude": 31.18},
                    {"stat_id": "2", "name_cn": "欠損", "longitude": 0, "latitude": 0},
                ],
            },
            {
                "line_info": {"line_no": 99, "color": "#000000", "is_ring": True},
                "stations": [],
            },
        ]
    }
    lines, stations = parse_line_snapshot(payload)

    assert set(stations) == {"1"}
    assert lines["4"].is_ring is True
    assert lines["99"].is_ring is True
    assert [s.name for s in lines["4"].stations] == ["宜山路"]


def test_invalid_payloads_rejected():
    with pytest.raises(ValueError):
        parse_line_snapshot([])
    with pytest.raises(ValueError):
        parse_schedule({"no_lines": True}, {})


def test_parse_schedule_skips_incomplete_lines(sample_payloads):
    lines_payload, schedule_payload, _ = sample_payloads
    schedule_payload["lines"].append({"line_info": {"line_no": 2}})
    lines, stations = parse_line_snapshot(lines_payload)

    directions = parse_schedule(schedule_payload, stations, lines)

    assert len(directions) == 1
    assert directions[0].line_id == "1"
    assert all(s.station is not None for s in directions[0].stops)
