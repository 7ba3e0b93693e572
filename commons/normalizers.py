# -*- coding: utf-8 -*-
# commons/normalizers.py
from __future__ import annotations

"""
normalizers
-----------
字段级“宽容转换”函数库：输入来自网络/配置，类型不可信。
约定：转换函数 func(value) -> new_value，失败返回 None（或默认值），从不抛异常。
"""

import math
import time
from datetime import datetime, timezone
from typing import Any, Optional


def non_empty_str(x: Any) -> Optional[str]:
    """
    仅接受非空字符串：
    - "WeatherUpdated" -> "WeatherUpdated"
    - "" / 5 / None -> None
    注意：不做 strip，"  " 视为非空（与线上 type 字段原样比较保持一致）。
    """
    return x if isinstance(x, str) and x != "" else None


def to_int_or_none(x: Any) -> Optional[int]:
    """
    把值尽量强转为 int；空串/None/非法值返回 None：
    - "123" -> 123
    - 123.0 -> 123
    - "abc" -> None
    """
    try:
        return int(x) if x is not None and str(x).strip() != "" else None
    except Exception:
        return None


def to_float_or_none(x: Any) -> Optional[float]:
    """将值转换为有限 float；空串/None/NaN/inf/非法值返回 None。"""
    if x is None or isinstance(x, bool):
        return None
    try:
        val = float(x) if str(x).strip() != "" else None
    except Exception:
        return None
    if val is None or not math.isfinite(val):
        return None
    return val


def to_bool_or_none(x: Any) -> Optional[bool]:
    """
    常见真值：True/1/"1"/"true"/"yes"/"y"；常见假值：False/0/"0"/"false"/"no"/"n"
    其它或空返回 None。
    """
    if x is None:
        return None
    if isinstance(x, bool):
        return x
    s = str(x).strip().lower()
    if s in {"1", "true", "yes", "y"}:
        return True
    if s in {"0", "false", "no", "n"}:
        return False
    return None


def iso_to_epoch_seconds(x: Any) -> Optional[float]:
    """
    ISO-8601 字符串 -> 纪元秒（float）：
    - "2023-11-14T22:13:20Z" -> 1700000000.0
    - "2023-11-14T22:13:20.5+00:00" -> 1700000000.5
    - 无时区视为 UTC；仅日期 "2023-11-14" 视为当日 00:00 UTC
    - 解析失败返回 None
    """
    if not isinstance(x, str):
        return None
    s = x.strip()
    if not s:
        return None
    if s[-1] in ("Z", "z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.timestamp()
    except (OverflowError, OSError, ValueError):
        return None


def coerce_epoch_seconds(x: Any) -> Optional[float]:
    """
    时间戳宽容解析（秒，可带小数），无法识别时返回 None：
    - 有限数值原样返回（bool 不算数值）
    - 数字字符串 "1700000001.5" -> 1700000001.5
    - ISO-8601 字符串 -> 纪元秒
    """
    if isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        try:
            val = float(x)
        except OverflowError:
            return None
        return val if math.isfinite(val) else None
    if isinstance(x, str):
        numeric = to_float_or_none(x)
        if numeric is not None:
            return numeric
        return iso_to_epoch_seconds(x)
    return None


def to_epoch_seconds(x: Any, *candidates: Any) -> float:
    """
    全函数版本：依次尝试 x 与 candidates，全部失败则回退为当前时间。
    永不抛异常，永不返回 NaN。
    """
    for value in (x, *candidates):
        val = coerce_epoch_seconds(value)
        if val is not None:
            return val
    return time.time()


def epoch_to_iso(x: Any) -> Optional[str]:
    """纪元秒 -> ISO-8601 UTC 字符串（带 Z），无法识别返回 None。"""
    val = coerce_epoch_seconds(x)
    if val is None:
        return None
    try:
        dt = datetime.fromtimestamp(val, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return dt.isoformat().replace("+00:00", "Z")


def strip_or_none(x: Any) -> Optional[str]:
    """去掉首尾空白，空字符串返回 None。"""
    if x is None:
        return None
    if not isinstance(x, str):
        return str(x)
    s = x.strip()
    return s if s != "" else None
