# backend/anim_metrics.py
"""
停車駅列 → 動画メトリクス（経路・区間ごとの走行/停車時間）の変換

メトリクスは常に丸ごと作り直す。部分的な書き換えは行わない。
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from config import DWELL_CAP_MS, FALLBACK_SEGMENT_MINUTES
from schedule_models import AnimMetrics, Coord, LineDirection, SegmentTiming

logger = logging.getLogger(__name__)


def _effective_minutes(value: Optional[float]) -> float:
    if value is not None and value > 0:
        return float(value)
    return FALLBACK_SEGMENT_MINUTES


def segment_timing(minutes: float) -> SegmentTiming:
    total_ms = minutes * 60_000
    dwell_ms = min(DWELL_CAP_MS, max(0.0, total_ms))
    move_ms = max(total_ms - dwell_ms, 0.0)
    return SegmentTiming(total_ms=total_ms, move_ms=move_ms, dwell_ms=dwell_ms)


def build_metrics(direction: LineDirection) -> Optional[AnimMetrics]:
    """
    1方向ぶんの AnimMetrics を作る。

    座標の無い駅は経路から外すが、その前後の区間時間は合算して
    次に残る駅までの1区間として扱う（経路・駅名・区間時間の3配列は常に揃う）。
    座標付きの駅が2つ未満なら None。
    """
    stops = direction.stops
    kept: List[int] = [i for i, s in enumerate(stops) if s.station is not None]
    if len(kept) < 2:
        logger.warning(
            "Direction %s has %d stop(s) with coordinates; no metrics built",
            direction.key,
            len(kept),
        )
        return None

    if len(kept) != len(stops):
        logger.debug(
            "Direction %s: %d stop(s) without coordinates merged into neighbouring segments",
            direction.key,
            len(stops) - len(kept),
        )

    path: List[Coord] = [stops[i].station.coord for i in kept]
    names: List[str] = [stops[i].name for i in kept]

    segments: List[SegmentTiming] = []
    for a, b in zip(kept, kept[1:]):
        minutes = sum(_effective_minutes(stops[j].segment_duration) for j in range(a, b))
        segments.append(segment_timing(minutes))

    return AnimMetrics(
        line_id=direction.line_id,
        label=direction.label,
        color=direction.color,
        path=tuple(path),
        station_names=tuple(names),
        segments=tuple(segments),
        total_duration_ms=sum(s.total_ms for s in segments),
    )


def build_all_metrics(directions: Iterable[LineDirection]) -> Dict[str, AnimMetrics]:
    """方向キー（"<line>-<label>"）→ AnimMetrics。処理順は directions の順を保つ。"""
    result: Dict[str, AnimMetrics] = {}
    for direction in directions:
        metrics = build_metrics(direction)
        if metrics is not None:
            result[direction.key] = metrics
    return result
