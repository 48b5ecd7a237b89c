# backend/schedule_ingest.py
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from config import MAX_SEGMENT_MINUTES, MIN_SEGMENT_MINUTES, get_line_config
from schedule_models import LineDirection, LineInfo, Station, Stop
from time_codec import parse_clock

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
UNKNOWN_DIRECTION_LABEL = "未知方向"


def _is_valid_coord(lon: Any, lat: Any) -> bool:
    """
    座標として使えるかざっくりチェックする。
    欠損・0・範囲外は不正扱い（元データでは欠損が 0 で入っていることがある）
    """
    if isinstance(lon, bool) or isinstance(lat, bool):
        return False
    if not isinstance(lon, (int, float)) or not isinstance(lat, (int, float)):
        return False
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return False
    if lon == 0 or lat == 0:
        return False
    return (-180.0 <= lon <= 180.0) and (-90.0 <= lat <= 90.0)


def _station_from_raw(raw: Dict[str, Any]) -> Optional[Station]:
    lon = raw.get("longitude")
    lat = raw.get("latitude")
    if not _is_valid_coord(lon, lat):
        return None
    station_id = str(raw.get("stat_id", ""))
    name = raw.get("name_cn") or raw.get("stat_name") or raw.get("name") or ""
    return Station(station_id=station_id, name=str(name), lon=float(lon), lat=float(lat))


# ============================================================================
# 路線・駅スナップショット
# ============================================================================

def parse_line_snapshot(
    payload: Any,
) -> Tuple[Dict[str, LineInfo], Dict[str, Station]]:
    """
    shanghai_metro.json（{"lines": [{"line_info": {...}, "stations": [...]}, ...]}）
    を LineInfo と駅インデックスに変換する。

    NOTE:
      - 座標が欠けている駅はインデックスに登録しない。
      - 環状線フラグは line_info.is_ring があればそれを優先し、
        無ければ config.SUPPORTED_LINES の設定を使う。
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("lines"), list):
        raise ValueError("Invalid lines data structure (expected {'lines': [...]})")

    lines: Dict[str, LineInfo] = {}
    stations: Dict[str, Station] = {}
    skipped_stations = 0

    for idx, raw_line in enumerate(payload["lines"]):
        info = (raw_line or {}).get("line_info") or {}
        line_no = info.get("line_no")
        if line_no is None:
            logger.warning("Line at index %d has no 'line_no', skipping", idx)
            continue
        line_id = str(line_no)

        is_ring = info.get("is_ring")
        if not isinstance(is_ring, bool):
            conf = get_line_config(line_id)
            is_ring = conf.is_ring if conf else False

        line = LineInfo(line_id=line_id, color=str(info.get("color") or "#ffffff"), is_ring=is_ring)
        for raw_station in raw_line.get("stations") or []:
            station = _station_from_raw(raw_station)
            if station is None:
                skipped_stations += 1
                continue
            line.stations.append(station)
            stations[station.station_id] = station

        lines[line_id] = line

    if skipped_stations > 0:
        logger.warning("Skipped %d stations without valid coordinates", skipped_stations)
    logger.info("Loaded %d lines, %d stations", len(lines), len(stations))
    return lines, stations


# ============================================================================
# 時刻表 → LineDirection
# ============================================================================

def derive_segment_minutes(a: Stop, b: Stop) -> Optional[float]:
    """
    隣接2駅の始発・終電時刻の差から区間所要時間（分）を推定する。

    - 差が 0 以下なら日跨ぎとみなして +24h
    - 始発差・終電差のうち小さい方を採用
    - 異常値を避けるため [0.5, 20] 分にクランプ
    - どちらの時刻も取れない場合は None（後段で 1 分を代用）
    """
    deltas: List[int] = []
    if a.first_time > 0 or b.first_time > 0:
        d = b.first_time - a.first_time
        if d <= 0:
            d += MINUTES_PER_DAY
        deltas.append(d)
    if a.last_time > 0 or b.last_time > 0:
        d = b.last_time - a.last_time
        if d <= 0:
            d += MINUTES_PER_DAY
        deltas.append(d)

    if not deltas:
        return None
    base = min(deltas)
    return float(max(MIN_SEGMENT_MINUTES, min(base, MAX_SEGMENT_MINUTES)))


def group_rows_by_label(rows: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """時刻表の行を description（方向ラベル）ごとに分ける。元の順序は保つ。"""
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        label = row.get("description") or UNKNOWN_DIRECTION_LABEL
        grouped.setdefault(str(label), []).append(row)
    return grouped


def _stop_from_row(row: Dict[str, Any], stations: Dict[str, Station]) -> Stop:
    station = stations.get(str(row.get("stat_id", "")))
    if station is None and isinstance(row.get("detail"), dict):
        station = _station_from_raw(row["detail"])

    name = row.get("name") or row.get("name_cn") or (station.name if station else "")
    return Stop(
        name=str(name),
        station=station,
        first_time=parse_clock(row.get("first_time") or ""),
        last_time=parse_clock(row.get("last_time") or ""),
    )


def build_line_directions(
    line_id: str,
    color: str,
    rows: List[Dict[str, Any]],
    stations: Dict[str, Station],
) -> List[LineDirection]:
    """
    1路線ぶんの時刻表行から LineDirection を方向ごとに作る。

    方向の判定:
      先頭2行の始発時刻を比較し、昇順なら +1（そのまま）、
      降順なら -1（反転して index 0 を起点にする）。
    """
    directions: List[LineDirection] = []

    for label, group in group_rows_by_label(rows).items():
        if len(group) < 2:
            logger.warning(
                "Line %s direction '%s' has only %d stop(s), discarding",
                line_id,
                label,
                len(group),
            )
            continue

        stops = [_stop_from_row(row, stations) for row in group]
        sign = -1 if stops[0].first_time > stops[1].first_time else 1
        if sign == -1:
            stops.reverse()

        for a, b in zip(stops, stops[1:]):
            a.segment_duration = derive_segment_minutes(a, b)

        directions.append(
            LineDirection(line_id=line_id, color=color, direction=sign, label=label, stops=stops)
        )

    return directions


def parse_schedule(
    payload: Any,
    stations: Dict[str, Station],
    lines: Optional[Dict[str, LineInfo]] = None,
) -> List[LineDirection]:
    """
    shanghai_metro_schedule.json を LineDirection のリストに変換する。
    不完全な路線はスキップし、警告ログを出す。
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("lines"), list):
        raise ValueError("Invalid schedule data structure (expected {'lines': [...]})")

    result: List[LineDirection] = []
    skipped_count = 0

    for idx, raw_line in enumerate(payload["lines"]):
        info = (raw_line or {}).get("line_info") or {}
        timetable = ((raw_line or {}).get("timetable") or {}).get("timetable")
        if info.get("line_no") is None or not isinstance(timetable, list):
            logger.warning("Timetable for line at index %d is incomplete, skipping", idx)
            skipped_count += 1
            continue

        line_id = str(info["line_no"])
        color = info.get("color")
        if not color and lines and line_id in lines:
            color = lines[line_id].color

        try:
            result.extend(build_line_directions(line_id, str(color or "#ffffff"), timetable, stations))
        except (TypeError, AttributeError) as e:
            logger.error("Failed to parse timetable for line %s: %s", line_id, e)
            skipped_count += 1

    if skipped_count > 0:
        logger.warning("Skipped %d line timetables due to errors", skipped_count)
    logger.info("Built %d line directions", len(result))
    return result
