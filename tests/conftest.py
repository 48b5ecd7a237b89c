import sys
from pathlib import Path

import pytest

BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schedule_models import LineDirection, Station, Stop  # noqa: E402


def make_direction(names, durations, line_id="1", label="up", lon0=121.0):
    """停車駅名と区間所要時間（分）から、座標付きの LineDirection を作る"""
    stops = []
    for i, name in enumerate(names):
        station = Station(station_id=f"{line_id}-{i}", name=name, lon=lon0 + i * 0.01, lat=31.0)
        duration = durations[i] if i < len(durations) else None
        stops.append(Stop(name=name, station=station, first_time=0, last_time=0, segment_duration=duration))
    return LineDirection(line_id=line_id, color="#ff0000", direction=1, label=label, stops=stops)


@pytest.fixture
def sample_payloads():
    lines = {
        "lines": [
            {
                "line_info": {"line_no": 1, "color": "#E4002B"},
                "stations": [
                    {"stat_id": "A", "name_cn": "A", "longitude": 121.40, "latitude": 31.10},
                    {"stat_id": "B", "name_cn": "B", "longitude": 121.41, "latitude": 31.11},
                    {"stat_id": "C", "name_cn": "C", "longitude": 121.42, "latitude": 31.12},
                ],
            }
        ]
    }
    schedule = {
        "lines": [
            {
                "line_info": {"line_no": 1, "color": "#E4002B"},
                "timetable": {
                    "timetable": [
                        {"description": "up", "stat_id": "A", "name": "A", "first_time": "05:00", "last_time": "23:00"},
                        {"description": "up", "stat_id": "B", "name": "B", "first_time": "05:08", "last_time": "23:00"},
                        {"description": "up", "stat_id": "C", "name": "C", "first_time": "05:15", "last_time": "23:00"},
                    ]
                },
            }
        ]
    }
    intervals = [
        {
            "line": 1,
            "interval": [
                {
                    "range": [1, 2, 3, 4, 5, 6, 7],
                    "range_interval": {
                        "07:00-09:00": [{"station_range": ["A", "C"], "time": "10:00"}],
                        "other": "4:00",
                    },
                }
            ],
        }
    ]
    return lines, schedule, intervals
