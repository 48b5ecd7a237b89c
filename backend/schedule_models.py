# backend/schedule_models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

Coord = Tuple[float, float]  # (lon, lat)


@dataclass(frozen=True)
class Station:
    """駅（ロード後は不変）"""

    station_id: str
    name: str
    lon: float
    lat: float

    @property
    def coord(self) -> Coord:
        return (self.lon, self.lat)


@dataclass
class LineInfo:
    """路線スナップショットの1路線分（色・環状線フラグ・駅順）"""

    line_id: str
    color: str
    is_ring: bool
    stations: List[Station] = field(default_factory=list)


@dataclass
class Stop:
    """
    1方向の停車駅列の1行分。

    segment_duration は「次の駅までの所要時間（分）」。
    終点および推定不能な区間では None のまま。
    ScheduleMutator が書き換えてよいのはこのフィールドだけ。
    """

    name: str
    station: Optional[Station]
    first_time: int  # 始発の発車時刻（0時からの分）
    last_time: int   # 終電の発車時刻（0時からの分）
    segment_duration: Optional[float] = None


@dataclass
class LineDirection:
    """路線の1方向（index 0 が起点、末尾が終点）"""

    line_id: str
    color: str
    # +1: 元データ順のまま / -1: 元データを反転済み（取り込み時に一度だけ決定）
    direction: int
    label: str
    stops: List[Stop]

    @property
    def key(self) -> str:
        return f"{self.line_id}-{self.label}"

    @property
    def segment_durations(self) -> List[Optional[float]]:
        """隣接区間の所要時間（長さ = len(stops) - 1）"""
        return [s.segment_duration for s in self.stops[:-1]]


@dataclass(frozen=True)
class OverrideSegment:
    """
    区間所要時間の上書き指定。

    station_range が None の場合は路線全体に適用する。
    """

    station_range: Optional[Tuple[str, str]]
    minutes: float


@dataclass
class OverrideWindow:
    """時間帯キー（"HH:MM-HH:MM" または "other"）ごとの上書き区間リスト"""

    key: str
    segments: List[OverrideSegment] = field(default_factory=list)


@dataclass
class LineOverrideConfig:
    """路線ごと・曜日ごとの上書き設定（曜日は 1=月 … 7=日）"""

    line_id: str
    weekdays: List[int]
    windows: Dict[str, OverrideWindow] = field(default_factory=dict)


@dataclass(frozen=True)
class SegmentTiming:
    total_ms: float
    move_ms: float
    dwell_ms: float


@dataclass(frozen=True)
class AnimMetrics:
    """
    1方向ぶんの動画用メトリクス。

    常に停車駅列から丸ごと再構築され、途中で書き換えられることはない。
    """

    line_id: str
    label: str
    color: str
    path: Tuple[Coord, ...]
    station_names: Tuple[str, ...]
    segments: Tuple[SegmentTiming, ...]
    total_duration_ms: float


@dataclass
class Vehicle:
    """
    ある時刻における1編成の位置（問い合わせごとに生成し、保存しない）
    """

    line_id: str
    direction: str
    color: str
    # ラベル重複判定で負けた車両は None
    label: Optional[str]
    position: Coord
    # 向き計算用の区間端点
    from_coord: Coord
    to_coord: Coord
    from_station: str
    to_station: str
    is_stopped: bool
    remaining_minutes_to_next: float
