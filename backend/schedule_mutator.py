# backend/schedule_mutator.py
from __future__ import annotations

import logging
from typing import Iterable, List

from schedule_models import LineDirection, OverrideSegment, Stop

logger = logging.getLogger(__name__)


def _first_index(stops: List[Stop], name: str) -> int:
    for i, stop in enumerate(stops):
        if stop.name == name:
            return i
    return -1


def _last_index(stops: List[Stop], name: str) -> int:
    for i in range(len(stops) - 1, -1, -1):
        if stops[i].name == name:
            return i
    return -1


def affected_indices(n: int, start: int, end: int, is_ring: bool) -> List[int]:
    """
    区間 [start, end] で書き換える区間インデックス（= 区間の起点駅 index）を返す。

    - インデックスは [0, n-1] にクランプする
    - start == end は何もしない
    - 非環状線: [min, max) のみ
    - 環状線で end < start: 終点を越えて [start, n-1) ∪ [0, end)
    """
    if n < 2:
        return []
    s = max(0, min(start, n - 1))
    e = max(0, min(end, n - 1))
    if s == e:
        return []
    if not is_ring:
        return list(range(min(s, e), max(s, e)))
    if s < e:
        return list(range(s, e))
    return list(range(s, n - 1)) + list(range(0, e))


def resolve_range(
    stops: List[Stop],
    segment: OverrideSegment,
    is_ring: bool,
) -> tuple[int, int]:
    """
    駅名の組を停車駅 index に解決する。

    - 範囲なし、またはどちらかの駅名が見つからない場合は路線全体 (0, n-1)
    - 環状線で end <= start のときは、同名駅が複数あれば最後の方を終点に使う
    """
    n = len(stops)
    if segment.station_range is None:
        return 0, n - 1

    start_name, end_name = segment.station_range
    start = _first_index(stops, start_name)
    end = _first_index(stops, end_name)

    if start < 0 or end < 0:
        return 0, n - 1

    if is_ring and end <= start:
        last = _last_index(stops, end_name)
        if last >= 0:
            end = last

    return start, end


def apply_segments(
    directions: Iterable[LineDirection],
    line_id: str,
    segments: Iterable[OverrideSegment],
    is_ring: bool = False,
) -> int:
    """
    上書き区間を指定路線の全方向の停車駅列に書き込む。

    書き込みは破壊的（後勝ち）で、以前の値（推定値・前回の上書き）を上書きする。
    呼び出し後は必ずメトリクスを再構築すること。

    Returns:
        書き換えた区間数
    """
    targets = [d for d in directions if d.line_id == str(line_id) and len(d.stops) >= 2]
    written = 0

    for segment in segments:
        if not (segment.minutes > 0):
            logger.debug("Ignoring non-positive override for line %s: %s", line_id, segment)
            continue
        for direction in targets:
            start, end = resolve_range(direction.stops, segment, is_ring)
            for i in affected_indices(len(direction.stops), start, end, is_ring):
                direction.stops[i].segment_duration = segment.minutes
                written += 1

    return written
