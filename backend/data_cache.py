# backend/data_cache.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from anim_metrics import build_all_metrics
from config import INTERVALS_FILE, LINES_FILE, SCHEDULE_FILE, get_line_config
from override_catalog import OverrideCatalog
from schedule_ingest import parse_line_snapshot, parse_schedule
from schedule_models import AnimMetrics, LineDirection, LineInfo, OverrideSegment, Station
from schedule_mutator import apply_segments

logger = logging.getLogger(__name__)


class DataCache:
    """
    路線・時刻表・上書き設定と、そこから作った AnimMetrics を一括で保持するコンテキスト。

    - 停車駅列（LineDirection）の書き換えは apply_override() からのみ行う
    - metrics は毎回新しい dict を作ってから参照ごと差し替える
      （PositionSimulator は常に「全部古い」か「全部新しい」スナップショットを見る）
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.lines: Dict[str, LineInfo] = {}
        self.stations: Dict[str, Station] = {}
        self.directions: List[LineDirection] = []
        self.catalog: OverrideCatalog = OverrideCatalog()

        # 方向キー → AnimMetrics（差し替え専用。中身を直接いじらない）
        self.metrics: Dict[str, AnimMetrics] = {}

        # 路線ID → 最後に適用した時間帯キー
        self.applied_windows: Dict[str, str] = {}

    def _load_json(self, rel_path: str) -> Any:
        path = self.data_dir / rel_path
        if not path.exists():
            raise FileNotFoundError(f"JSON file not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def load_all(self) -> None:
        """data_dir 以下の3ファイルを読み込んで初期メトリクスを構築する"""
        lines_payload = self._load_json(LINES_FILE)
        schedule_payload = self._load_json(SCHEDULE_FILE)

        intervals_payload = None
        try:
            intervals_payload = self._load_json(INTERVALS_FILE)
        except FileNotFoundError:
            logger.warning(
                "Interval file not found at %s; continuing without overrides",
                self.data_dir / INTERVALS_FILE,
            )

        self.load_from_payloads(lines_payload, schedule_payload, intervals_payload)

    def load_from_payloads(
        self,
        lines_payload: Any,
        schedule_payload: Any,
        intervals_payload: Any = None,
    ) -> None:
        self.lines, self.stations = parse_line_snapshot(lines_payload)
        self.directions = parse_schedule(schedule_payload, self.stations, self.lines)

        if intervals_payload is not None:
            self.catalog = OverrideCatalog.from_raw(intervals_payload, self.directions)
        else:
            self.catalog = OverrideCatalog()

        self.applied_windows = {}
        self.metrics = build_all_metrics(self.directions)
        logger.info(
            "Data loaded: %d lines, %d directions, %d metrics",
            len(self.lines),
            len(self.directions),
            len(self.metrics),
        )

    # ========================================================================
    # 参照系
    # ========================================================================

    def is_ring(self, line_id: str) -> bool:
        line = self.lines.get(str(line_id))
        if line is not None:
            return line.is_ring
        conf = get_line_config(str(line_id))
        return conf.is_ring if conf else False

    def directions_for(self, line_id: str) -> List[LineDirection]:
        return [d for d in self.directions if d.line_id == str(line_id)]

    def line_ids(self) -> List[str]:
        """時刻表に現れる路線ID（出現順）"""
        seen: Dict[str, None] = {}
        for d in self.directions:
            seen.setdefault(d.line_id, None)
        return list(seen.keys())

    def get_line_color_map(self) -> Dict[str, str]:
        colors: Dict[str, str] = {}
        for d in self.directions:
            colors.setdefault(d.line_id, d.color)
        for line_id, line in self.lines.items():
            colors.setdefault(line_id, line.color)
        return colors

    # ========================================================================
    # 上書き適用（書き換え → 再構築 → 差し替え を1単位で行う）
    # ========================================================================

    def apply_override(self, line_id: str, segments: Iterable[OverrideSegment]) -> None:
        line_id = str(line_id)
        targets = self.directions_for(line_id)
        written = apply_segments(targets, line_id, segments, is_ring=self.is_ring(line_id))

        rebuilt = build_all_metrics(targets)
        new_metrics: Dict[str, AnimMetrics] = {}
        # 方向の処理順（= ラベル重複判定の優先順）を変えないよう directions 順で詰め直す
        for d in self.directions:
            if d.line_id == line_id:
                if d.key in rebuilt:
                    new_metrics[d.key] = rebuilt[d.key]
            elif d.key in self.metrics:
                new_metrics[d.key] = self.metrics[d.key]

        self.metrics = new_metrics
        logger.debug("Applied %d segment writes to line %s", written, line_id)

    def apply_window(self, line_id: str, key: str, weekday: int) -> bool:
        """
        指定曜日の時間帯キーの上書きを適用する（手動適用・スケジューラ共通）。
        キーが存在しなければ何もせず False。
        """
        window = self.catalog.windows_for(str(line_id), weekday).get(key)
        if window is None:
            return False
        self.apply_override(line_id, window.segments)
        self.applied_windows[str(line_id)] = key
        return True

    def get_metrics_snapshot(self) -> List[AnimMetrics]:
        return list(self.metrics.values())

