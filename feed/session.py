#     会话编排 FeedSession
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Protocol, Tuple

from commons.base_logger import BaseLogger

from .bootstrap import BootstrapClient
from .errors import BootstrapError
from .event_filter import ALL_TYPES, filter_events
from .event_log import EventLog
from .handler_bus import ListenerBus
from .models import ConnectionState, EventEnvelope
from .setting import FeedConfig
from .snapshot import Snapshot, empty_snapshot
from .snapshot_reducer import apply_event
from .stream_connection import StateListener, StreamConnection
from .transport import TransportFactory, sse_transport_factory

Listener = Callable[[EventEnvelope], None]


class BootstrapSource(Protocol):
    """引导数据来源（BootstrapClient 或测试替身）"""
    def fetch_events(self, limit: Optional[int] = None) -> List[EventEnvelope]: ...
    def fetch_signals(self) -> Snapshot: ...


class FeedSession:
    """
    事件流会话：
      - 持有 StreamConnection（单订阅，多通道），收到的每个信封：
          1) 追加到 EventLog（暂停时进入暂停缓冲）
          2) 折叠进快照（暂停不影响快照）
          3) 广播给 on() 注册的监听器
      - start() 时可选执行一次引导：最近事件 + 快照；阻塞 I/O 放到默认线程池
      - 引导期间到达的实时事件：引导快照替换后按到达顺序重新折叠一遍
      - 引导失败只记录到 error，实时流照常运行

    该类不关心传输细节，只负责“连接 → 日志 + 快照 → 分发”这一链路。
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        bootstrap: Optional[BootstrapSource] = None,
    ):
        """
        参数：
          config            : 运行配置；缺省为 FeedConfig()
          transport_factory : 传输工厂；缺省为指向 config.stream_url 的 aiohttp SSE 传输
          bootstrap         : 引导来源；缺省在 start() 时创建 BootstrapClient
        """
        self._config = config or FeedConfig()
        self._factory = transport_factory
        self._bootstrap = bootstrap

        self._event_log = EventLog(capacity=self._config.capacity)
        self._snapshot: Snapshot = empty_snapshot()
        self._bus: ListenerBus[EventEnvelope] = ListenerBus("FeedSession.listeners")
        self._state_bus: ListenerBus[ConnectionState] = ListenerBus("FeedSession.states")
        self._connection: Optional[StreamConnection] = None
        self._log = BaseLogger(name="FeedSession", to_file=self._config.log_to_file)

        self.error: Optional[BaseException] = None
        self._bootstrapping = False
        self._arrived_during_bootstrap: List[EventEnvelope] = []
        self._stopped = False

    # === 对外接口 ===

    @property
    def config(self) -> FeedConfig:
        return self._config

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.CLOSED if self._stopped else ConnectionState.CONNECTING
        return self._connection.state

    @property
    def connection(self) -> Optional[StreamConnection]:
        return self._connection

    def on(self, listener: Listener) -> Callable[[], None]:
        """注册信封监听器（例如控制台打印）"""
        return self._bus.add(listener)

    def on_state(self, listener: StateListener) -> Callable[[], None]:
        """注册连接状态监听器 listener(previous, current)；start() 之前注册可收到首次连接的迁移"""
        return self._state_bus.add(listener)

    def set_paused(self, paused: bool) -> None:
        self._event_log.set_paused(paused)

    def filtered(self, type_filter: str = ALL_TYPES, search_text: str = "") -> List[EventEnvelope]:
        """可见日志按类型 / 关键字过滤，最新在前"""
        return filter_events(self._event_log.entries(), type_filter, search_text)

    async def start(self, *, bootstrap: bool = True) -> None:
        """建立流连接；bootstrap=True 时随后执行一次引导（不会抛出引导错误）"""
        if self._connection is not None or self._stopped:
            return
        loop = asyncio.get_running_loop()
        factory = self._factory or sse_transport_factory(
            self._config.stream_url,
            connect_timeout=self._config.request_timeout_sec,
            read_timeout=self._config.read_timeout_sec,
        )
        self._connection = StreamConnection(
            factory,
            channels=self._config.channels,
            floor_ms=self._config.backoff_floor_ms,
            ceiling_ms=self._config.backoff_ceiling_ms,
            loop=loop,
            listener=self._on_envelope,
            state_listener=self._state_bus.emit,
        )
        if bootstrap:
            await self._run_bootstrap(loop)

    def stop(self) -> None:
        """停止：释放连接（进入 CLOSED），之后到达的任何回调都不再生效"""
        if self._stopped:
            return
        self._stopped = True
        if self._connection is not None:
            self._connection.dispose()
        # 引导请求仍在线程池里跑时，等它返回后再关闭
        if not self._bootstrapping:
            self._close_bootstrap()
        self._log.log_info("session stopped")

    # === 内部 ===

    def _on_envelope(self, envelope: EventEnvelope) -> None:
        if self._stopped:
            return
        self._event_log.append(envelope)
        self._snapshot = apply_event(self._snapshot, envelope)
        if self._bootstrapping:
            self._arrived_during_bootstrap.append(envelope)
        self._bus.emit(envelope)

    def _close_bootstrap(self) -> None:
        close = getattr(self._bootstrap, "close", None)
        if callable(close):
            close()

    def _fetch_seed(self) -> Tuple[List[EventEnvelope], Snapshot]:
        source = self._bootstrap
        return source.fetch_events(self._config.bootstrap_limit), source.fetch_signals()

    async def _run_bootstrap(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._bootstrap is None:
            self._bootstrap = BootstrapClient(self._config)

        self._bootstrapping = True
        self._arrived_during_bootstrap = []
        try:
            events, snapshot = await loop.run_in_executor(None, self._fetch_seed)
        except BootstrapError as e:
            self.error = e
            self._log.log_error(f"bootstrap failed: {e}")
            return
        except Exception as e:
            self.error = BootstrapError(f"bootstrap crashed: {e!r}")
            self.error.__cause__ = e
            self._log.log_error(f"bootstrap crashed: {e!r}")
            return
        finally:
            self._bootstrapping = False
            if self._stopped:
                self._close_bootstrap()

        if self._stopped:
            return
        replay, self._arrived_during_bootstrap = self._arrived_during_bootstrap, []
        self._event_log.seed(events)
        for envelope in replay:
            snapshot = apply_event(snapshot, envelope)
        self._snapshot = snapshot
        self.error = None
        self._log.log_info(f"bootstrap applied: events={len(events)} replayed={len(replay)}")
