# 监听器分发总线 ListenerBus

from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

from commons.base_logger import BaseLogger

T = TypeVar("T")


class ListenerBus(Generic[T]):
    """
    同步 fan-out：按注册顺序逐个调用监听器。
    - 单个监听器抛异常只记一条错误日志，不影响其它监听器，也不回传给传输层
    - 返回的取消函数用于注销
    """

    def __init__(self, name: str = "ListenerBus"):
        self._listeners: List[Callable[..., None]] = []
        self._log = BaseLogger(name=name)

    def add(self, listener: Callable[..., None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def emit(self, *args: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception as e:
                name = getattr(listener, "__qualname__", repr(listener))
                self._log.log_error(f"listener_failed listener={name} err={e!r}")

    def __len__(self) -> int:
        return len(self._listeners)
