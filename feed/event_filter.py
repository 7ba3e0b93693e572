from __future__ import annotations

import json
from typing import Any, Iterable, List, Mapping

from .models import EventEnvelope

# 类型过滤的哨兵值：放行全部类型
ALL_TYPES = "ALL"


def payload_json(payload: Mapping[str, Any]) -> str:
    """载荷的紧凑 JSON（保持插入顺序、不转义中文），用于全文检索"""
    return json.dumps(dict(payload), ensure_ascii=False, separators=(",", ":"), default=str)


def matches(envelope: EventEnvelope, type_filter: str, query: str) -> bool:
    """单条判定；query 需事先 strip + lower"""
    if type_filter != ALL_TYPES and envelope.type != type_filter:
        return False
    if not query:
        return True
    haystack = f"{envelope.type} {payload_json(envelope.payload)}".lower()
    return query in haystack


def filter_events(
    events: Iterable[EventEnvelope],
    type_filter: str = ALL_TYPES,
    search_text: str = "",
) -> List[EventEnvelope]:
    """
    事件过滤（纯函数，返回新列表）：
      - 结果按追加顺序倒序（最新在前）
      - type_filter == "ALL" 放行全部，否则精确匹配（区分大小写）
      - search_text 去首尾空白后，不区分大小写匹配 "type + 载荷 JSON"
    """
    query = (search_text or "").strip().lower()
    return [e for e in reversed(list(events)) if matches(e, type_filter, query)]
