# 事件日志 EventLog（可见日志 + 暂停缓冲）

from __future__ import annotations

from typing import Iterable, List

from commons.base_logger import BaseLogger

from .drop_head_buffer import DropHeadBuffer
from .models import EventEnvelope

DEFAULT_CAPACITY = 200


class EventLog:
    """
    有界事件日志，带暂停/恢复语义：
      - 未暂停：append 直接进入可见日志，超出容量丢最旧
      - 暂停中：append 转入暂停缓冲（同样有界），可见日志冻结不变
      - 恢复：缓冲按到达顺序整体并入可见日志后清空，再按容量截断

    paused 标志与两个缓冲归同一对象所有，set_paused 是唯一修改暂停状态的入口。
    单线程使用：调用方必须在同一事件循环上串行调用。
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._visible: DropHeadBuffer[EventEnvelope] = DropHeadBuffer(capacity)
        self._pending: DropHeadBuffer[EventEnvelope] = DropHeadBuffer(capacity)
        self._paused = False
        self._log = BaseLogger(name="EventLog")

    # === 状态 ===

    @property
    def capacity(self) -> int:
        return self._visible.cap

    @property
    def paused(self) -> bool:
        return self._paused

    def entries(self) -> List[EventEnvelope]:
        """可见日志（旧 -> 新）的拷贝"""
        return self._visible.snapshot()

    def pending(self) -> List[EventEnvelope]:
        """暂停缓冲（旧 -> 新）的拷贝"""
        return self._pending.snapshot()

    def __len__(self) -> int:
        return len(self._visible)

    # === 变更 ===

    def append(self, envelope: EventEnvelope) -> None:
        if self._paused:
            self._pending.put(envelope)
        else:
            self._visible.put(envelope)

    def set_paused(self, paused: bool) -> None:
        paused = bool(paused)
        if paused == self._paused:
            return
        self._paused = paused
        if paused:
            self._log.log_debug("event log paused")
            return

        flushed = self._pending.drain()
        self._visible.extend(flushed)
        self._log.log_debug(f"event log resumed, flushed={len(flushed)}")

    def seed(self, envelopes: Iterable[EventEnvelope]) -> None:
        """
        引导数据灌入：引导条目排在实时流已追加条目之前，保留最新 capacity 条。
        暂停状态下同样写入可见日志（引导不是实时到达）。
        """
        live = self._visible.drain()
        self._visible.extend(envelopes)
        self._visible.extend(live)
