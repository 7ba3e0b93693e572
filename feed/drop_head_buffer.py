#  丢头缓冲 DropHeadBuffer

from __future__ import annotations

from collections import deque
from typing import Deque, Generic, Iterable, List, TypeVar

T = TypeVar("T")


class DropHeadBuffer(Generic[T]):
    """
    有界 FIFO（同步版 DropHeadQueue）：
    - 满了再放入时丢弃最旧元素（drop head），保留最新 cap 条；
    - dropped 统计累计丢弃条数，便于诊断。
    """

    def __init__(self, cap: int):
        if cap <= 0:
            raise ValueError(f"cap must be positive, got {cap}")
        self._cap = cap
        self._items: Deque[T] = deque(maxlen=cap)
        self.dropped = 0

    @property
    def cap(self) -> int:
        return self._cap

    def put(self, item: T) -> None:
        if len(self._items) == self._cap:
            self.dropped += 1
        self._items.append(item)

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.put(item)

    def drain(self) -> List[T]:
        """取出全部元素（旧 -> 新）并清空"""
        out = list(self._items)
        self._items.clear()
        return out

    def snapshot(self) -> List[T]:
        """当前内容的拷贝（旧 -> 新），不清空"""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
