# backend/config.py
"""
路線定義・実行時設定モジュール

サポートする路線の設定（環状線フラグなど）と、サービス時間帯などの定数を管理する。
新しい路線を追加する際は SUPPORTED_LINES に追記する。
"""
import os
from datetime import time
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel


class LineConfig(BaseModel):
    """路線ごとの設定"""
    name: str               # 路線名
    is_ring: bool = False   # 環状線なら True（区間指定の終点越えを許可する）


# サポートする路線の定義（キーは時刻表データの line_no を文字列化したもの）
SUPPORTED_LINES: Dict[str, LineConfig] = {
    "1": LineConfig(name="1号線"),
    "2": LineConfig(name="2号線"),
    "3": LineConfig(name="3号線"),
    # 4号線は環状線
    "4": LineConfig(name="4号線", is_ring=True),
    "5": LineConfig(name="5号線"),
    "6": LineConfig(name="6号線"),
    "7": LineConfig(name="7号線"),
    "8": LineConfig(name="8号線"),
    "9": LineConfig(name="9号線"),
    "10": LineConfig(name="10号線"),
    "11": LineConfig(name="11号線"),
    "12": LineConfig(name="12号線"),
    "13": LineConfig(name="13号線"),
    "14": LineConfig(name="14号線"),
    "15": LineConfig(name="15号線"),
    "16": LineConfig(name="16号線"),
    "17": LineConfig(name="17号線"),
    "18": LineConfig(name="18号線"),
}


def get_line_config(line_id: str) -> Optional[LineConfig]:
    """
    路線IDから設定を取得する。

    Args:
        line_id: 路線ID (例: "4")

    Returns:
        対応する LineConfig、未サポートの場合は None
    """
    return SUPPORTED_LINES.get(str(line_id))


# ============================================================================
# サービス時間帯・動画メトリクスの定数
# ============================================================================

# 05:00 に初発、22:30 以降は新規発車なし（発車済み列車は終点まで走る）
SERVICE_START = time(5, 0)
SERVICE_END = time(22, 30)

# 各区間の到着後停車時間の上限（ミリ秒）
DWELL_CAP_MS = 30_000

# 区間所要時間が不明なときの代替値（分）
FALLBACK_SEGMENT_MINUTES = 1.0

# 時刻表から推定した区間所要時間のクランプ範囲（分）
MIN_SEGMENT_MINUTES = 0.5
MAX_SEGMENT_MINUTES = 20.0

# ラベル重複判定のグリッド（1度あたりのバケット数 ≒ 1/5000 度）
LABEL_GRID_PER_DEGREE = 5000

# 時間帯キーのうち「その他」を表す特別キー
OTHER_WINDOW_KEY = "other"

# データファイル名
LINES_FILE = "shanghai_metro.json"
SCHEDULE_FILE = "shanghai_metro_schedule.json"
INTERVALS_FILE = "interval.json"


# ============================================================================
# 環境変数による実行時設定
# ============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent


def get_data_dir() -> Path:
    return Path(os.getenv("METRO_DATA_DIR", str(BASE_DIR / "data")))


def get_timezone_name() -> str:
    return os.getenv("METRO_TZ", "Asia/Shanghai")


def get_poll_interval_sec() -> float:
    raw = os.getenv("METRO_POLL_INTERVAL_SEC", "30")
    try:
        value = float(raw)
    except ValueError:
        return 30.0
    return value if value > 0 else 30.0
