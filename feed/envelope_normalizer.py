# 信封规范化 EnvelopeNormalizer

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from commons.normalizers import non_empty_str, to_epoch_seconds

from .models import EventEnvelope


class WireShape(enum.Enum):
    """线上信封形态"""
    WRAPPED = "wrapped"   # {"type", "timestamp", "event": {...}}
    RAW = "raw"           # 载荷字段平铺在顶层


@dataclass(frozen=True)
class WireMessage:
    """分类后的线上消息：outer 为最外层对象，body 为载荷对象（RAW 时二者相同）"""
    shape: WireShape
    outer: Mapping[str, Any]
    body: Mapping[str, Any]


def classify(raw: Any) -> Optional[WireMessage]:
    """
    判定线上形态；非 dict 输入返回 None。
    存在 dict 类型的 "event" 字段即视为 WRAPPED。
    """
    if not isinstance(raw, Mapping):
        return None
    nested = raw.get("event")
    if isinstance(nested, Mapping):
        return WireMessage(WireShape.WRAPPED, raw, nested)
    return WireMessage(WireShape.RAW, raw, raw)


def normalize(raw: Any) -> Optional[EventEnvelope]:
    """
    把一条入站消息转换为 EventEnvelope；无法识别 type 时返回 None（静默丢弃，不抛异常）。

    - type：外层优先，其次载荷自身的 type，必须是非空字符串
    - timestamp：外层优先，其次载荷自身的 timestamp；均无法解析时取当前时间
    - payload：载荷的浅拷贝，不与原始对象共享
    """
    msg = classify(raw)
    if msg is None:
        return None

    type_value = non_empty_str(msg.outer.get("type")) or non_empty_str(msg.body.get("type"))
    if type_value is None:
        return None

    timestamp = to_epoch_seconds(msg.outer.get("timestamp"), msg.body.get("timestamp"))
    payload: Dict[str, Any] = dict(msg.body)
    return EventEnvelope(type=type_value, timestamp=timestamp, payload=payload)


def parse_frame(data: Any) -> Optional[EventEnvelope]:
    """
    解析一帧 SSE data（JSON 文本 / bytes）；JSON 非法或结构不符时返回 None。
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(data, str):
        return normalize(data)
    try:
        decoded = json.loads(data)
    except (ValueError, RecursionError):
        return None
    return normalize(decoded)
