# backend/position_simulator.py
"""
時計駆動の列車位置シミュレータ

指定時刻 now について、05:00 の初発から「首区間の所要時間」を発車間隔として
一定間隔で発車させたと仮定し、現在走行中の全編成を毎回ゼロから再構成する。
シミュレーション状態は保持しない（(metrics, now) の純関数）。
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, time
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config import LABEL_GRID_PER_DEGREE, SERVICE_END, SERVICE_START, get_timezone_name
from schedule_models import AnimMetrics, Coord, SegmentTiming, Vehicle

logger = logging.getLogger(__name__)


@dataclass
class Placement:
    """経過時間から求めた、メトリクス上の位置"""

    position: Coord
    from_coord: Coord
    to_coord: Coord
    segment_index: int
    local_ms: float
    is_stopped: bool


# ============================================================================
# 時間系ユーティリティ
# ============================================================================

def _at_clock(now: datetime, clock: time) -> datetime:
    return now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)


def _ms_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000


def _js_round(value: float) -> int:
    # 0.5 は常に切り上げ（Python の round は偶数丸めなので使わない）
    return math.floor(value + 0.5)


# ============================================================================
# メトリクス上の位置計算
# ============================================================================

def locate_on_metrics(metrics: AnimMetrics, elapsed_ms: float) -> Optional[Placement]:
    """
    発車からの経過時間 elapsed_ms における位置を返す。

    - 区間 j の走行時間内なら駅 j → j+1 を線形補間（走行中）
    - 走行時間を過ぎていれば駅 j+1 に停車中
    """
    path = metrics.path
    if len(path) < 2 or not metrics.segments:
        return None

    total = metrics.total_duration_ms
    if total <= 0:
        return Placement(path[0], path[0], path[1], 0, 0.0, False)

    t_ms = max(0.0, min(elapsed_ms, total))
    acc = 0.0
    for j, seg in enumerate(metrics.segments):
        if acc + seg.total_ms >= t_ms:
            local = t_ms - acc
            x1, y1 = path[j]
            x2, y2 = path[j + 1]
            if local <= seg.move_ms and seg.move_ms > 0:
                ratio = local / seg.move_ms
                position = (x1 + (x2 - x1) * ratio, y1 + (y2 - y1) * ratio)
                return Placement(position, (x1, y1), (x2, y2), j, local, False)
            return Placement((x2, y2), (x1, y1), (x2, y2), j, local, True)
        acc += seg.total_ms

    # 浮動小数点誤差で末尾を取りこぼした場合は終点に停車
    last = len(path) - 1
    return Placement(path[last], path[last - 1], path[last], len(metrics.segments) - 1, 0.0, True)


def remaining_ms(seg: SegmentTiming, local_ms: float, is_stopped: bool) -> float:
    """次駅発車（= 区間終了）までの残り時間"""
    if is_stopped:
        return max(seg.total_ms - local_ms, 0.0)
    return max(seg.move_ms - min(local_ms, seg.move_ms), 0.0) + seg.dwell_ms


def label_bucket(position: Coord) -> Tuple[int, int]:
    return (
        _js_round(position[0] * LABEL_GRID_PER_DEGREE),
        _js_round(position[1] * LABEL_GRID_PER_DEGREE),
    )


def departure_offsets(metrics: AnimMetrics, now_ms: float, end_ms: float) -> List[float]:
    """
    サービス開始からの経過 now_ms において、走行中であるべき編成の発車時刻（同じく開始からの ms）。

    Args:
        now_ms: サービス開始から現在までの ms
        end_ms: サービス開始から最終発車締切までの ms
    """
    headway = metrics.segments[0].total_ms if metrics.segments else 0.0
    total = metrics.total_duration_ms
    if not (headway > 0) or total <= 0:
        return []

    cutoff = min(now_ms, end_ms)
    if cutoff < 0:
        return []
    k_max = math.floor(cutoff / headway)

    result: List[float] = []
    for k in range(0, k_max + 1):
        departure = k * headway
        elapsed = now_ms - departure
        if elapsed < 0 or elapsed > total:
            continue
        result.append(departure)
    return result


# ============================================================================
# メイン関数
# ============================================================================

def get_vehicles_at(now: datetime, metrics_list: Iterable[AnimMetrics]) -> List[Vehicle]:
    """
    指定時刻に走行中の全編成を返す。

    - now がサービス開始（05:00）より前なら空
    - 22:30 以降は新規発車なし（発車済みは終点まで追跡）
    - ラベルは同じグリッドに落ちた車両のうち最初に処理した方向のものだけ残す
    """
    start = _at_clock(now, SERVICE_START)
    now_ms = _ms_between(start, now)
    if now_ms < 0:
        return []
    end_ms = _ms_between(start, _at_clock(now, SERVICE_END))

    vehicles: List[Vehicle] = []
    occupied: set[tuple[int, int]] = set()

    for metrics in metrics_list:
        for departure in departure_offsets(metrics, now_ms, end_ms):
            placement = locate_on_metrics(metrics, now_ms - departure)
            if placement is None:
                continue

            j = placement.segment_index
            seg = metrics.segments[j]
            from_name = metrics.station_names[j]
            to_name = metrics.station_names[j + 1]

            label: Optional[str] = None
            bucket = label_bucket(placement.position)
            if bucket not in occupied:
                occupied.add(bucket)
                label = f"{from_name} → {to_name}" if from_name and to_name else metrics.label

            vehicles.append(
                Vehicle(
                    line_id=metrics.line_id,
                    direction=metrics.label,
                    color=metrics.color,
                    label=label,
                    position=placement.position,
                    from_coord=placement.from_coord,
                    to_coord=placement.to_coord,
                    from_station=from_name,
                    to_station=to_name,
                    is_stopped=placement.is_stopped,
                    remaining_minutes_to_next=remaining_ms(seg, placement.local_ms, placement.is_stopped)
                    / 60_000,
                )
            )

    return vehicles


class PositionSimulator:
    """DataCache の最新メトリクスを読み、指定時刻の車両一覧を返す"""

    def __init__(self, cache, tz: Optional[ZoneInfo] = None) -> None:
        self.cache = cache
        self.tz = tz or ZoneInfo(get_timezone_name())

    def query(self, now: Optional[datetime] = None) -> List[Vehicle]:
        if now is None:
            now = datetime.now(self.tz)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        else:
            now = now.astimezone(self.tz)

        # 参照を1回だけ取る（途中で差し替えられても一貫したスナップショットを使う）
        snapshot = self.cache.get_metrics_snapshot()
        return get_vehicles_at(now, snapshot)


# ============================================================================
# API レスポンス
# ============================================================================

class VehicleResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    line_id: str
    label: Optional[str]
    position: Tuple[float, float]
    from_station: str
    to_station: str
    remaining_minutes_to_next: float

    direction: str
    color: str
    is_stopped: bool
    from_coord: Tuple[float, float]
    to_coord: Tuple[float, float]

    @classmethod
    def from_dataclass(cls, vehicle: Vehicle) -> "VehicleResponse":
        """内部の dataclass を API レスポンスに変換するヘルパー"""
        return cls(**asdict(vehicle))


class VehiclesResponse(BaseModel):
    """/api/vehicles のレスポンスラッパー"""

    vehicles: List[VehicleResponse]
    count: int
    timestamp: str  # 問い合わせ時刻（ISO8601）
