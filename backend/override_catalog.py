# backend/override_catalog.py
"""
時間帯別の区間所要時間上書き（interval.json）の正規化

interval.json の形:
    [
      {
        "line": 4,
        "interval": [
          {
            "range": [1, 2, 3, 4, 5],              # 曜日 (1=月 … 7=日)
            "range_interval": {
              "07:30-09:30": [{"station_range": ["宜山路", "上海体育馆"], "time": "2:30"}],
              "other": "3:00"                       # スカラー = 路線全体
            }
          }
        ]
      }
    ]

取り込み境界で必ず OverrideSegment のリストに揃え、
以降のコンポーネントは生データの形で分岐しない。
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schedule_models import LineDirection, LineOverrideConfig, OverrideSegment, OverrideWindow
from time_codec import parse_duration

logger = logging.getLogger(__name__)


def reference_direction(directions: Iterable[LineDirection], line_id: str) -> Optional[LineDirection]:
    """
    スカラー指定を区間に展開するときの基準方向。
    direction=+1 のうち停車駅数が最大のもの（無ければ全方向で最大のもの）。
    """
    candidates = [d for d in directions if d.line_id == line_id]
    if not candidates:
        return None
    forward = [d for d in candidates if d.direction == 1]
    pool = forward or candidates
    # max は同数なら最初のものを返す
    return max(pool, key=lambda d: len(d.stops))


def _parse_range(raw: Any) -> Optional[Tuple[str, str]]:
    if isinstance(raw, (list, tuple)) and len(raw) == 2 and raw[0] and raw[1]:
        return (str(raw[0]), str(raw[1]))
    return None


def _normalize_segments(
    payload: Any,
    reference: Optional[LineDirection],
) -> List[OverrideSegment]:
    # スカラー（"3:00" / 3 / "3"）は基準方向の起点〜終点をまとめて1区間とする
    if isinstance(payload, (str, int, float)) and not isinstance(payload, bool):
        station_range = None
        if reference is not None:
            station_range = (reference.stops[0].name, reference.stops[-1].name)
        return [OverrideSegment(station_range=station_range, minutes=parse_duration(payload))]

    if not isinstance(payload, list):
        logger.warning("Unsupported override payload type %s, ignoring", type(payload).__name__)
        return []

    segments: List[OverrideSegment] = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        segments.append(
            OverrideSegment(
                station_range=_parse_range(raw.get("station_range")),
                minutes=parse_duration(raw.get("time")),
            )
        )
    return segments


def complete_reciprocals(segments: List[OverrideSegment]) -> List[OverrideSegment]:
    """
    [a, b] だけ指定されていて [b, a] が無い区間について、同じ所要時間で逆方向を補う。
    （明示されない限り往復で所要時間は同じとみなす）
    """
    result = list(segments)
    for seg in segments:
        if seg.station_range is None:
            continue
        a, b = seg.station_range
        if any(other.station_range == (b, a) for other in result):
            continue
        result.append(OverrideSegment(station_range=(b, a), minutes=seg.minutes))
    return result


def normalize_window(
    key: str,
    payload: Any,
    reference: Optional[LineDirection],
) -> OverrideWindow:
    segments = complete_reciprocals(_normalize_segments(payload, reference))
    return OverrideWindow(key=str(key), segments=segments)


def _parse_weekdays(raw: Any) -> List[int]:
    if not isinstance(raw, list):
        return []
    days: List[int] = []
    for v in raw:
        try:
            day = int(v)
        except (TypeError, ValueError):
            continue
        # 0 を日曜として渡してくるデータにも対応する
        if day == 0:
            day = 7
        if 1 <= day <= 7:
            days.append(day)
    return days


class OverrideCatalog:
    """路線ID → 曜日別上書き設定 の索引"""

    def __init__(self, configs: Optional[Dict[str, List[LineOverrideConfig]]] = None) -> None:
        self._configs: Dict[str, List[LineOverrideConfig]] = configs or {}

    @classmethod
    def from_raw(cls, payload: Any, directions: List[LineDirection]) -> "OverrideCatalog":
        if not isinstance(payload, list):
            raise ValueError("Invalid interval data structure (expected a list)")

        configs: Dict[str, List[LineOverrideConfig]] = {}
        window_count = 0

        for idx, raw_line in enumerate(payload):
            if not isinstance(raw_line, dict) or raw_line.get("line") is None:
                logger.warning("Interval record at index %d has no 'line', skipping", idx)
                continue
            line_id = str(raw_line["line"])
            reference = reference_direction(directions, line_id)

            for raw_day in raw_line.get("interval") or []:
                if not isinstance(raw_day, dict):
                    continue
                windows: Dict[str, OverrideWindow] = {}
                raw_windows = raw_day.get("range_interval")
                if not isinstance(raw_windows, dict):
                    raw_windows = {}
                for key, payload_ in raw_windows.items():
                    windows[str(key)] = normalize_window(key, payload_, reference)
                    window_count += 1
                configs.setdefault(line_id, []).append(
                    LineOverrideConfig(
                        line_id=line_id,
                        weekdays=_parse_weekdays(raw_day.get("range")),
                        windows=windows,
                    )
                )

        logger.info(
            "Loaded override catalog: %d lines, %d windows", len(configs), window_count
        )
        return cls(configs)

    def line_ids(self) -> List[str]:
        return list(self._configs.keys())

    def config_for(self, line_id: str, weekday: int) -> Optional[LineOverrideConfig]:
        """指定曜日（1=月 … 7=日）に有効な設定。複数あれば最初のもの。"""
        for conf in self._configs.get(str(line_id), []):
            if weekday in conf.weekdays:
                return conf
        return None

    def windows_for(self, line_id: str, weekday: int) -> Dict[str, OverrideWindow]:
        conf = self.config_for(line_id, weekday)
        return conf.windows if conf else {}
