# 数据模型
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class EventEnvelope:
    """
    规范化后的事件信封（下游只依赖此模型，不关心线上是 wrapped 还是 raw）
    不变量：type 非空；timestamp 为有限数值；payload 不为 None。
    payload 构造时拷贝一次并包成只读视图，构造后整条信封不可变。
    """
    type: str                                            # 事件类型，如 "WeatherUpdated"
    timestamp: float                                     # 纪元秒，可带小数
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_wire(self) -> Dict[str, Any]:
        """导出为 wrapped 线上格式：{"type", "timestamp", "event"}"""
        return {"type": self.type, "timestamp": self.timestamp, "event": dict(self.payload)}


class ConnectionState(str, enum.Enum):
    """流连接状态；CLOSED 只在 dispose 之后出现，且为终态"""
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


@dataclass
class RetryState:
    """
    指数退避状态：
      - reset()：连接成功后回到下限
      - next_delay()：返回本次等待时长，并把下次翻倍（不超过上限）
    """
    floor_ms: int = 1000
    ceiling_ms: int = 10000
    delay_ms: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.delay_ms = self.floor_ms

    def reset(self) -> None:
        self.delay_ms = self.floor_ms

    def next_delay(self) -> int:
        wait = self.delay_ms
        self.delay_ms = min(self.delay_ms * 2, self.ceiling_ms)
        return wait
