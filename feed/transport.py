# ────────────────────────────────────────────────────────────────
# 模块用途：SSE 传输层（aiohttp 长连接 GET）
# 说明：
#   - 只负责“连上 → 逐帧回调 → 出错/断流回调”，不做重连；
#   - 重连、退避、状态机都在 StreamConnection；
#   - close() 之后不再触发任何回调。
# ────────────────────────────────────────────────────────────────
from __future__ import annotations

import asyncio
from typing import Callable, Dict, Optional, Protocol

import aiohttp

from commons.base_logger import BaseLogger

from .errors import TransportError
from .sse_codec import SseDecoder, SseFrame


class TransportHandler(Protocol):
    """传输层回调约定（由 StreamConnection 实现）"""
    def on_open(self) -> None: ...
    def on_frame(self, frame: SseFrame) -> None: ...
    def on_error(self, error: Optional[BaseException]) -> None: ...


class Transport(Protocol):
    def close(self) -> None: ...


TransportFactory = Callable[[TransportHandler], Transport]


class SseTransport:
    """一次订阅 = 一个 aiohttp 会话 + 一个读取任务"""

    def __init__(
        self,
        url: str,
        handler: TransportHandler,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        headers: Optional[Dict[str, str]] = None,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = 60.0,
    ):
        self._url = url
        self._handler = handler
        self._headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache", **(headers or {})}
        self._timeout = aiohttp.ClientTimeout(total=None, sock_connect=connect_timeout, sock_read=read_timeout)
        self._closed = False
        self._log = BaseLogger(name="SseTransport")

        loop = loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"sse-transport:{url}")

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(self._url, headers=self._headers) as resp:
                    if resp.status != 200:
                        raise TransportError(f"unexpected status {resp.status} from {self._url}")
                    content_type = resp.headers.get("Content-Type", "")
                    if "text/event-stream" not in content_type:
                        raise TransportError(f"unexpected content-type {content_type!r}")

                    if self._closed:
                        return
                    self._handler.on_open()

                    decoder = SseDecoder()
                    async for chunk in resp.content.iter_any():
                        for frame in decoder.feed_bytes(chunk):
                            if self._closed:
                                return
                            self._handler.on_frame(frame)
            raise TransportError("stream ended by server")
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, TransportError, OSError) as e:
            self._fail(e)
        except Exception as e:
            self._log.log_error(f"transport crashed: {e!r}")
            self._fail(e)

    def _fail(self, error: BaseException) -> None:
        if self._closed:
            return
        self._log.log_debug(f"transport error: {error!r}")
        self._handler.on_error(error)


def sse_transport_factory(url: str, **kwargs) -> TransportFactory:
    """绑定 url / 超时等参数，返回 StreamConnection 需要的工厂"""
    def _factory(handler: TransportHandler) -> Transport:
        return SseTransport(url, handler, **kwargs)
    return _factory
