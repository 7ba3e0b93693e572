#  丢头队列封装 DropHeadQueue

from __future__ import annotations
import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class DropHeadQueue(Generic[T]):
    """
    asyncio.Queue 的轻量封装（每个 SSE 订阅者一条）：
    - 若队列已满：丢弃最旧元素（drop head），慢客户端不会拖住发布方；
    - put_nowait 永不阻塞，发布方可在同步代码里调用；
    - dropped 累计丢弃条数。
    """

    def __init__(self, cap: int):
        if cap <= 0:
            raise ValueError(f"cap must be positive, got {cap}")
        self._q: asyncio.Queue[T] = asyncio.Queue(maxsize=cap)
        self.dropped = 0

    def put_nowait(self, item: T) -> None:
        if self._q.full():
            try:
                self._q.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self.dropped += 1
        self._q.put_nowait(item)

    async def get(self) -> T:
        return await self._q.get()
