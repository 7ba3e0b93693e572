# ────────────────────────────────────────────────────────────────
# 模块用途：流连接 StreamConnection（状态机 + 指数退避重连）
# 说明：
#   - 构造即建立第一条订阅，进入 CONNECTING；
#   - 传输层 open → OPEN，退避回到下限；
#   - 每帧：通道过滤 → parse_frame → 交给监听器；坏帧丢弃，连接保持；
#   - 传输出错/断流 → 关闭当前传输 → RECONNECTING → call_later(退避) 重连；
#   - dispose()：取消定时器、关闭传输、进入 CLOSED（终态），之后任何回调都无效。
# 并发模型：单线程，所有回调都在同一个事件循环上执行。
# ────────────────────────────────────────────────────────────────
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

from commons.base_logger import BaseLogger

from .envelope_normalizer import parse_frame
from .handler_bus import ListenerBus
from .models import ConnectionState, EventEnvelope, RetryState
from .sse_codec import DEFAULT_CHANNEL, SseFrame
from .transport import Transport, TransportFactory

EnvelopeListener = Callable[[EventEnvelope], None]
StateListener = Callable[[ConnectionState, ConnectionState], None]


class _Subscription:
    """单条传输的回调适配；generation 过期（已被重连替换或已 dispose）后回调全部失效"""

    def __init__(self, owner: "StreamConnection", generation: int):
        self._owner = owner
        self._generation = generation

    def on_open(self) -> None:
        self._owner._handle_open(self._generation)

    def on_frame(self, frame: SseFrame) -> None:
        self._owner._handle_frame(self._generation, frame)

    def on_error(self, error: Optional[BaseException] = None) -> None:
        self._owner._handle_error(self._generation, error)


class StreamConnection:
    """
    订阅一条服务端推送流，并保持“断了就按退避重连”。

    参数：
      transport_factory : handler -> Transport；每次(重)连调用一次
      channels          : 需要接收的具名通道（事件类型名）；默认通道 "message" 总是接收
      floor_ms / ceiling_ms : 退避下限 / 上限（毫秒）
      loop              : 提供 call_later 的事件循环（测试可注入假 loop）
      listener          : 可选，构造时即注册的信封监听器
      state_listener    : 可选，构造时即注册的状态监听器（能收到首次连接期间的全部迁移）
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        channels: Iterable[str] = (),
        floor_ms: int = 1000,
        ceiling_ms: int = 10000,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        listener: Optional[EnvelopeListener] = None,
        state_listener: Optional[StateListener] = None,
    ):
        self._factory = transport_factory
        self._channels = frozenset(channels) | {DEFAULT_CHANNEL}
        self._retry = RetryState(floor_ms=floor_ms, ceiling_ms=ceiling_ms)
        self._loop = loop or asyncio.get_running_loop()

        self._envelope_bus: ListenerBus[EventEnvelope] = ListenerBus("StreamConnection.envelopes")
        self._state_bus: ListenerBus[ConnectionState] = ListenerBus("StreamConnection.states")
        self._log = BaseLogger(name="StreamConnection")

        self._state = ConnectionState.CONNECTING
        self._transport: Optional[Transport] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._disposed = False

        if listener is not None:
            self.add_listener(listener)
        if state_listener is not None:
            self.add_state_listener(state_listener)
        self._connect()

    # === 对外接口 ===

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry(self) -> RetryState:
        return self._retry

    @property
    def channels(self) -> frozenset:
        return self._channels

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add_listener(self, listener: EnvelopeListener) -> Callable[[], None]:
        """注册信封监听器，返回注销函数"""
        return self._envelope_bus.add(listener)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """注册状态监听器：listener(previous, current)"""
        return self._state_bus.add(listener)

    def dispose(self) -> None:
        """显式停止：清定时器 → 关传输 → CLOSED。幂等。"""
        if self._disposed:
            return
        self._disposed = True
        self._generation += 1
        try:
            self._cancel_timer()
        finally:
            try:
                self._teardown_transport()
            finally:
                self._set_state(ConnectionState.CLOSED)
                self._log.log_info("stream disposed")

    # === 内部：连接生命周期 ===

    def _connect(self) -> None:
        self._timer = None
        if self._disposed:
            return
        self._teardown_transport()
        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        try:
            transport = self._factory(_Subscription(self, generation))
        except Exception as e:
            self._log.log_error(f"transport factory failed: {e!r}")
            self._handle_error(generation, e)
            return
        if generation == self._generation and not self._disposed and self._timer is None:
            self._transport = transport
        else:
            # 工厂内同步报错（或已 dispose）：这条传输已作废
            self._close_quietly(transport)

    def _handle_open(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        self._retry.reset()
        self._set_state(ConnectionState.OPEN)

    def _handle_frame(self, generation: int, frame: SseFrame) -> None:
        if not self._is_current(generation):
            return
        if frame.event not in self._channels:
            self._log.log_debug(f"ignore frame on unknown channel {frame.event!r}")
            return
        try:
            envelope = parse_frame(frame.data)
        except Exception as e:
            self._log.log_debug(f"drop frame, normalize failed: {e!r}")
            return
        if envelope is None:
            self._log.log_debug(f"drop malformed frame on {frame.event!r}")
            return
        self._envelope_bus.emit(envelope)

    def _handle_error(self, generation: int, error: Optional[BaseException]) -> None:
        if not self._is_current(generation):
            return
        if self._timer is not None:
            return
        self._teardown_transport()
        self._set_state(ConnectionState.RECONNECTING)
        wait_ms = self._retry.next_delay()
        self._log.log_warning(f"stream error {error!r}, reconnect in {wait_ms}ms")
        self._timer = self._loop.call_later(wait_ms / 1000.0, self._connect)

    # === 内部：工具 ===

    def _is_current(self, generation: int) -> bool:
        return not self._disposed and generation == self._generation

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        if previous == state:
            return
        self._state = state
        self._log.log_info(f"state {previous.value} -> {state.value}")
        self._state_bus.emit(previous, state)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _teardown_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            self._close_quietly(transport)

    def _close_quietly(self, transport: Transport) -> None:
        try:
            transport.close()
        except Exception as e:
            self._log.log_error(f"transport close failed: {e!r}")
