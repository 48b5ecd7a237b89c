# backend/window_scheduler.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from config import OTHER_WINDOW_KEY, get_poll_interval_sec, get_timezone_name
from time_codec import parse_window_key

logger = logging.getLogger(__name__)


def window_contains(key: str, now_minutes: int) -> bool:
    """
    "S-E" が now_minutes を含むか。

    - S < E: S <= now < E
    - S >= E: 日跨ぎ（now >= S または now < E）
    - 形式不正なキーは常に False
    """
    parsed = parse_window_key(key)
    if parsed is None:
        return False
    start, end = parsed
    if start < end:
        return start <= now_minutes < end
    return now_minutes >= start or now_minutes < end


def select_window(keys: Iterable[str], now_minutes: int) -> Optional[str]:
    """最初に当てはまった時間帯キー。無ければ "other"（あれば）。"""
    keys = list(keys)
    for key in keys:
        if key == OTHER_WINDOW_KEY:
            continue
        if parse_window_key(key) is None:
            logger.warning("Malformed window key '%s', skipping", key)
            continue
        if window_contains(key, now_minutes):
            return key
    if OTHER_WINDOW_KEY in keys:
        return OTHER_WINDOW_KEY
    return None


class WindowScheduler:
    """
    一定周期で現在時刻の時間帯を判定し、路線ごとに時間帯が変わったときだけ
    上書き適用 + メトリクス再構築を行う（エッジトリガ）。
    """

    def __init__(
        self,
        cache,
        tz: Optional[ZoneInfo] = None,
        interval_sec: Optional[float] = None,
    ) -> None:
        self.cache = cache
        self.tz = tz or ZoneInfo(get_timezone_name())
        self.interval_sec = interval_sec if interval_sec is not None else get_poll_interval_sec()

        # 路線ID → (曜日, 適用済みキー)
        self._applied: Dict[str, Tuple[int, str]] = {}
        self._task: Optional[asyncio.Task] = None
        self.rebuild_count = 0

    def poll(self, now: Optional[datetime] = None) -> List[str]:
        """
        1回分の判定を行う。

        Returns:
            再構築した路線IDのリスト
        """
        if now is None:
            now = datetime.now(self.tz)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        else:
            now = now.astimezone(self.tz)

        now_minutes = now.hour * 60 + now.minute
        weekday = now.isoweekday()  # 1=月 … 7=日

        changed: List[str] = []
        for line_id in self.cache.catalog.line_ids():
            windows = self.cache.catalog.windows_for(line_id, weekday)
            if not windows:
                continue

            key = select_window(windows.keys(), now_minutes)
            # 当てはまる時間帯も "other" も無ければ直前の状態を維持
            if key is None:
                continue
            if self._applied.get(line_id) == (weekday, key):
                continue

            if self.cache.apply_window(line_id, key, weekday):
                self._applied[line_id] = (weekday, key)
                self.rebuild_count += 1
                changed.append(line_id)
                logger.info("Line %s switched to window '%s' (weekday=%d)", line_id, key, weekday)

        return changed

    async def _run(self) -> None:
        while True:
            try:
                self.poll()
            except Exception:
                logger.exception("Window poll failed")
            await asyncio.sleep(self.interval_sec)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """イベントループ上で周期ポーリングを開始する（起動済みなら何もしない）"""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Window scheduler started (interval=%.1fs)", self.interval_sec)

    def stop(self) -> None:
        """ポーリングを止める。未起動・二重呼び出しでも安全。"""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Window scheduler stopped")
