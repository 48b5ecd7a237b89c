import json

import pytest

from config import INTERVALS_FILE, LINES_FILE, SCHEDULE_FILE
from data_cache import DataCache
from schedule_models import OverrideSegment


def _write(tmp_path, payloads, with_intervals=True):
    lines, schedule, intervals = payloads
    (tmp_path / LINES_FILE).write_text(json.dumps(lines), encoding="utf-8")
    (tmp_path / SCHEDULE_FILE).write_text(json.dumps(schedule), encoding="utf-8")
    if with_intervals:
        (tmp_path / INTERVALS_FILE).write_text(json.dumps(intervals), encoding="utf-8")


def test_load_all_builds_initial_metrics(tmp_path, sample_payloads):
    _write(tmp_path, sample_payloads)
    cache = DataCache(tmp_path)
    cache.load_all()

    assert cache.line_ids() == ["1"]
    assert list(cache.metrics) == ["1-up"]
    assert cache.metrics["1-up"].total_duration_ms == 15 * 60_000
    assert cache.catalog.line_ids() == ["1"]


def test_missing_interval_file_is_tolerated(tmp_path, sample_payloads):
    _write(tmp_path, sample_payloads, with_intervals=False)
    cache = DataCache(tmp_path)
    cache.load_all()

    assert cache.catalog.line_ids() == []
    assert cache.metrics


def test_missing_schedule_file_is_fatal(tmp_path, sample_payloads):
    lines, _, _ = sample_payloads
    (tmp_path / LINES_FILE).write_text(json.dumps(lines), encoding="utf-8")
    with pytest.raises(FileNotFoundError):
        DataCache(tmp_path).load_all()


def test_apply_swaps_metrics_without_touching_old_snapshot(tmp_path, sample_payloads):
    cache = DataCache(tmp_path)
    cache.load_from_payloads(*sample_payloads)
    old = cache.metrics
    old_up = old["1-up"]

    cache.apply_override("1", [OverrideSegment(("A", "C"), 10.0)])

    assert cache.metrics is not old
    assert old["1-up"] is old_up
    assert [s.total_ms for s in old_up.segments] == [480_000, 420_000]
    assert [s.total_ms for s in cache.metrics["1-up"].segments] == [600_000, 600_000]


def test_applying_same_window_twice_is_idempotent(tmp_path, sample_payloads):
    cache = DataCache(tmp_path)
    cache.load_from_payloads(*sample_payloads)

    assert cache.apply_window("1", "07:00-09:00", 1)
    first = cache.metrics["1-up"]
    assert cache.apply_window("1", "07:00-09:00", 1)
    second = cache.metrics["1-up"]

    assert first is not second
    assert first == second
    assert repr(first) == repr(second)


def test_apply_unknown_window_is_noop(tmp_path, sample_payloads):
    cache = DataCache(tmp_path)
    cache.load_from_payloads(*sample_payloads)
    before = cache.metrics

    assert cache.apply_window("1", "12:00-13:00", 1) is False
    assert cache.metrics is before
    assert "1" not in cache.applied_windows


def test_ring_flag_falls_back_to_line_config(tmp_path, sample_payloads):
    cache = DataCache(tmp_path)
    cache.load_from_payloads(*sample_payloads)

    assert cache.is_ring("1") is False
    assert cache.is_ring("4") is True
    assert cache.get_line_color_map() == {"1": "#E4002B"}
