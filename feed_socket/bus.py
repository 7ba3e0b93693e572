# feed_socket/bus.py
from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional, Set

from commons.base_logger import BaseLogger
from feed.models import EventEnvelope
from feed.snapshot import Snapshot, empty_snapshot
from feed.snapshot_reducer import apply_event

from .drop_head_queue import DropHeadQueue


class EventRelayBus:
    """
    轻量广播总线：
      - 保存最近 history 条事件（供 /api/events 回放）；
      - 维护一份由事件折叠出的快照（供 /api/signals）；
      - publish() 把事件放进每个订阅者的丢头队列，不等待消费。
    单事件循环内使用。
    """

    def __init__(self, history: int = 200, queue_cap: int = 500) -> None:
        self._history: Deque[EventEnvelope] = deque(maxlen=history)
        self._queue_cap = queue_cap
        self._subscribers: Set[DropHeadQueue[EventEnvelope]] = set()
        self._snapshot: Snapshot = empty_snapshot()
        self._log = BaseLogger(name="EventRelayBus")

    # === 发布 ===

    def publish(self, envelope: EventEnvelope) -> int:
        """返回收到该事件的订阅者数量"""
        self._history.append(envelope)
        self._snapshot = apply_event(self._snapshot, envelope)
        for q in list(self._subscribers):
            q.put_nowait(envelope)
        self._log.log_debug(f"published {envelope.type} to {len(self._subscribers)} subscriber(s)")
        return len(self._subscribers)

    # === 订阅 ===

    def subscribe(self) -> DropHeadQueue[EventEnvelope]:
        q: DropHeadQueue[EventEnvelope] = DropHeadQueue(self._queue_cap)
        self._subscribers.add(q)
        self._log.log_info(f"subscriber joined, total={len(self._subscribers)}")
        return q

    def unsubscribe(self, q: DropHeadQueue[EventEnvelope]) -> None:
        if q in self._subscribers:
            self._subscribers.discard(q)
            if q.dropped:
                self._log.log_warning(f"subscriber left, dropped={q.dropped}")
            self._log.log_info(f"subscriber left, total={len(self._subscribers)}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # === 查询 ===

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def recent(
        self,
        limit: int = 200,
        *,
        since: Optional[float] = None,
        event_type: Optional[str] = None,
    ) -> List[EventEnvelope]:
        """最近事件（旧 -> 新）：先按 since / type 过滤，再取最后 limit 条"""
        items = [
            e for e in self._history
            if (since is None or e.timestamp >= since)
            and (event_type is None or e.type == event_type)
        ]
        return items[-max(1, limit):]
