# ────────────────────────────────────────────────────────────────
# 模块用途：启动 FastAPI SSE 转发服务，推送事件流
# 说明：
#   - 只监听总线 bus，事件来源是 POST /api/publish（或进程内 bus.publish）；
#   - SSE 客户端接入后先发 ": connected" 注释，再持续等待事件；
#   - 每个客户端一条丢头队列，慢客户端只会丢自己的旧事件；
#   - 空闲时定时发 ": keepalive" 注释保持连接；
#   - /api/events、/api/signals 与客户端引导拉取的接口形状一致。
# ────────────────────────────────────────────────────────────────

from __future__ import annotations
import asyncio
import os
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

# 项目内导入
from commons.base_logger import BaseLogger
from commons.normalizers import coerce_epoch_seconds, strip_or_none
from feed.envelope_normalizer import normalize
from feed.models import EventEnvelope
from feed.sse_codec import encode_comment, encode_frame
from feed_socket.bus import EventRelayBus
from feed_socket.drop_head_queue import DropHeadQueue
from tools.config_loader import load_config

# 可通过环境变量调整心跳间隔（秒）
DEFAULT_KEEPALIVE_SEC = float(os.getenv("FEED_RELAY_KEEPALIVE_SEC", "15"))
DEFAULT_EVENTS_LIMIT = 200

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Content-Encoding": "identity",
}

_log = BaseLogger(name="feed_socket")


def _bad_request(reason: str = "invalid_query_params") -> JSONResponse:
    return JSONResponse({"error": reason}, status_code=400)


async def event_stream(
    q: DropHeadQueue[EventEnvelope],
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_sec: float = DEFAULT_KEEPALIVE_SEC,
) -> AsyncIterator[bytes]:
    """单个订阅者的 SSE 字节流：event 名即事件类型，data 为 wrapped 信封"""
    yield encode_comment("connected").encode("utf-8")
    while True:
        if await is_disconnected():
            break
        try:
            envelope = await asyncio.wait_for(q.get(), timeout=keepalive_sec)
        except asyncio.TimeoutError:
            yield encode_comment("keepalive").encode("utf-8")
            continue
        yield encode_frame(envelope.to_wire(), event=envelope.type).encode("utf-8")


# ────────────────────────────────────────────────────────────────
# 构建 FastAPI 实例
# ────────────────────────────────────────────────────────────────
def build_stream_app(bus: Optional[EventRelayBus] = None, keepalive_sec: float = DEFAULT_KEEPALIVE_SEC) -> FastAPI:
    bus = bus or EventRelayBus()
    app = FastAPI(title="Feed SSE Relay", version="1.0.0")
    app.state.bus = bus

    # 允许跨域（前端在不同端口时必须加）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def _health():
        """健康检查：用于存活探测"""
        return {"status": "ok", "subscribers": bus.subscriber_count}

    @app.get("/api/signals")
    async def _signals():
        return bus.snapshot().to_dict(by_alias=True)

    @app.get("/api/events")
    async def _events(request: Request):
        q = request.query_params
        limit = DEFAULT_EVENTS_LIMIT
        since = None
        if "limit" in q:
            try:
                limit = int(q["limit"])
            except ValueError:
                return _bad_request()
        if "since" in q:
            since = coerce_epoch_seconds(q["since"])
            if since is None:
                return _bad_request()
        event_type = strip_or_none(q.get("type"))
        return [e.to_wire() for e in bus.recent(limit, since=since, event_type=event_type)]

    @app.post("/api/publish")
    async def _publish(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return _bad_request("invalid_json")
        envelope = normalize(body)
        if envelope is None:
            return _bad_request("invalid_event")
        delivered = bus.publish(envelope)
        return JSONResponse({"accepted": True, "type": envelope.type, "delivered": delivered}, status_code=202)

    @app.get("/api/stream")
    async def _stream(request: Request):
        q = bus.subscribe()

        async def gen():
            try:
                async for chunk in event_stream(q, request.is_disconnected, keepalive_sec):
                    yield chunk
            finally:
                bus.unsubscribe(q)

        return StreamingResponse(gen(), media_type="text/event-stream", headers=SSE_HEADERS)

    return app


# ────────────────────────────────────────────────────────────────
# 启动与停止：可供主程序调用
# ────────────────────────────────────────────────────────────────
@dataclass
class StreamServerHandle:
    server: uvicorn.Server
    task: asyncio.Task
    bus: EventRelayBus


async def start_stream_background(
    host: str = "127.0.0.1",
    port: int = 8081,
    bus: Optional[EventRelayBus] = None,
    keepalive_sec: float = DEFAULT_KEEPALIVE_SEC,
) -> StreamServerHandle:
    """
    后台启动 SSE 转发服务。
    - 不阻塞主流程；
    - 端口占用等启动失败只记日志；
    - 返回句柄，供主程序 stop。
    """
    bus = bus or EventRelayBus()
    app = build_stream_app(bus, keepalive_sec=keepalive_sec)
    config = uvicorn.Config(app=app, host=host, port=port, loop="asyncio", log_level="info")
    server = uvicorn.Server(config)

    async def _serve():
        try:
            await server.serve()
        except SystemExit:
            _log.log_error(f"port {port} already in use", exc_info=False)
        except Exception as e:
            _log.log_error(f"relay server crashed: {e!r}")

    task = asyncio.create_task(_serve(), name=f"feed-relay:{port}")
    await asyncio.sleep(0.1)
    _log.log_info(f"relay started: http://{host}:{port}/api/stream")
    return StreamServerHandle(server, task, bus)


async def stop_stream_background(handle: Optional[StreamServerHandle]) -> None:
    """关闭 SSE 转发服务"""
    if not handle:
        return
    handle.server.should_exit = True
    handle.task.cancel()
    with suppress(asyncio.CancelledError):
        await handle.task


if __name__ == "__main__":
    cfg = load_config(section="relay")
    relay_bus = EventRelayBus(history=int(cfg.get("history", 200)), queue_cap=int(cfg.get("queue_cap", 500)))
    uvicorn.run(
        build_stream_app(relay_bus, keepalive_sec=float(cfg.get("keepalive_sec", DEFAULT_KEEPALIVE_SEC))),
        host=cfg.get("host", "127.0.0.1"),
        port=int(cfg.get("port", 8081)),
    )
