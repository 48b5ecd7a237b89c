import json

import pytest
from fastapi.testclient import TestClient

import main
from config import INTERVALS_FILE, LINES_FILE, SCHEDULE_FILE
from data_cache import DataCache


@pytest.fixture
def client(tmp_path, sample_payloads, monkeypatch):
    lines, schedule, intervals = sample_payloads
    # 時間帯判定の影響を受けないよう、上書きは持たせない
    (tmp_path / LINES_FILE).write_text(json.dumps(lines), encoding="utf-8")
    (tmp_path / SCHEDULE_FILE).write_text(json.dumps(schedule), encoding="utf-8")
    monkeypatch.setattr(main, "data_cache", DataCache(tmp_path))

    with TestClient(main.app) as c:
        yield c


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_lines(client):
    body = client.get("/api/lines").json()
    assert body["lines"] == [
        {
            "id": "1",
            "name": "1号線",
            "color": "#E4002B",
            "is_ring": False,
            "directions": ["up"],
            "active_window": None,
        }
    ]


def test_intervals_unknown_line_404(client):
    assert client.get("/api/lines/99/intervals").status_code == 404


def test_vehicles_at_time(client):
    res = client.get("/api/vehicles", params={"at": "2025-01-20T05:16:00+08:00"})
    assert res.status_code == 200
    body = res.json()

    assert body["count"] == 2
    first = body["vehicles"][0]
    assert first["lineId"] == "1"
    # 08 分前に発車した編成が B に停車中
    assert first["fromStation"] == "A"
    assert first["toStation"] == "B"
    assert first["label"] == "A → B"
    assert first["position"] == [121.41, 31.11]
    assert "remainingMinutesToNext" in first


def test_vehicles_bad_timestamp(client):
    assert client.get("/api/vehicles", params={"at": "yesterday"}).status_code == 400
