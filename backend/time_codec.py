# backend/time_codec.py
"""
時刻・所要時間の文字列パーサ

いずれの関数も不正な入力で例外を投げず、0 に退化させる。
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{1,2})(?::\d{1,2})?\s*$")
_MM_SS_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_WINDOW_KEY_RE = re.compile(r"^\s*(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})\s*$")


def parse_clock(value: Any) -> int:
    """
    "HH:MM" を 0 時からの分数に変換する。

    - 空文字・不正な形式は 0 を返す（例外は投げない）
    - "24:10" のような日跨ぎ表記はそのまま 1450 として扱う
    """
    if not isinstance(value, str) or not value:
        return 0
    m = _CLOCK_RE.match(value)
    if not m:
        return 0
    hour = int(m.group(1))
    minute = int(m.group(2))
    if minute > 59:
        return 0
    return hour * 60 + minute


def parse_duration(value: Any) -> float:
    """
    所要時間（分）を解釈する。

    - 数値: そのまま分
    - "MM:SS": MM + SS/60
    - それ以外の文字列: 数値として解釈（"2.5" → 2.5）
    - いずれにも当てはまらなければ 0
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if not isinstance(value, str):
        return 0.0

    text = value.strip()
    m = _MM_SS_RE.match(text)
    if m:
        return int(m.group(1)) + int(m.group(2)) / 60

    try:
        numeric = float(text)
    except ValueError:
        return 0.0
    return numeric if math.isfinite(numeric) else 0.0


def parse_window_key(key: str) -> Optional[tuple[int, int]]:
    """時間帯キー "HH:MM-HH:MM" を (開始分, 終了分) に分解する。形式不正なら None。"""
    if not isinstance(key, str):
        return None
    m = _WINDOW_KEY_RE.match(key)
    if not m:
        return None
    return parse_clock(m.group(1)), parse_clock(m.group(2))

