from time_codec import parse_clock, parse_duration, parse_window_key


def test_parse_clock_basic():
    assert parse_clock("05:00") == 300
    assert parse_clock("23:59") == 1439
    assert parse_clock("7:05") == 425


def test_parse_clock_degrades_to_zero():
    assert parse_clock("") == 0
    assert parse_clock(None) == 0
    assert parse_clock("abc") == 0
    assert parse_clock("12:75") == 0


def test_parse_duration_forms():
    assert parse_duration(3) == 3.0
    assert parse_duration(2.5) == 2.5
    assert parse_duration("2:30") == 2.5
    assert parse_duration("10:00") == 10.0
    assert parse_duration("4") == 4.0
    assert parse_duration(" 1.5 ") == 1.5


def test_parse_duration_degrades_to_zero():
    assert parse_duration("fast") == 0.0
    assert parse_duration(None) == 0.0
    assert parse_duration([1]) == 0.0
    assert parse_duration(True) == 0.0
    assert parse_duration(float("nan")) == 0.0


def test_parse_window_key():
    assert parse_window_key("07:30-09:30") == (450, 570)
    assert parse_window_key("22:00-02:00") == (1320, 120)
    assert parse_window_key("other") is None
    assert parse_window_key("07:30") is None

