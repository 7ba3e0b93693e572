# feed_main.py
"""
=========================================
控制台入口
=========================================

功能说明：
  - 读取配置（config/feed.yaml + FEED_* 环境变量；文件缺失时只用环境变量）
  - 启动 FeedSession：订阅事件流 + 一次性引导
  - 每条事件打印一行 JSON 摘要，连接状态变化同样打印
  - 支持 Ctrl+C / SIGTERM 优雅退出

用法：
  python -m feed.feed_main
  FEED_CONFIG=/path/to/feed.yaml python -m feed.feed_main
"""

from __future__ import annotations
import asyncio
import contextlib
import json
import os
import signal

from commons.normalizers import epoch_to_iso

from .errors import ConfigError
from .models import ConnectionState, EventEnvelope
from .session import FeedSession
from .setting import DEFAULT_CONFIG_FILE, FeedConfig
from .summary import summarize_event


def load_settings() -> FeedConfig:
    path = os.getenv("FEED_CONFIG", DEFAULT_CONFIG_FILE)
    try:
        return FeedConfig.load(path)
    except ConfigError as e:
        if os.path.exists(path) or "FEED_CONFIG" in os.environ:
            raise
        print(json.dumps({"msg": "config file not found, using env only", "detail": str(e)}, ensure_ascii=False))
        return FeedConfig.from_env()


def print_handler(ev: EventEnvelope) -> None:
    """打印一行摘要"""
    print(json.dumps({
        "ts": epoch_to_iso(ev.timestamp),
        "type": ev.type,
        "summary": summarize_event(ev),
    }, ensure_ascii=False))


def print_state(previous: ConnectionState, current: ConnectionState) -> None:
    print(json.dumps({"state": current.value, "from": previous.value}, ensure_ascii=False))


async def main() -> None:
    stop_evt = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _stop(*_):
        stop_evt.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):  # Windows 下不支持
            loop.add_signal_handler(sig, _stop)

    config = load_settings()
    session = FeedSession(config)
    session.on(print_handler)
    session.on_state(print_state)

    try:
        await session.start(bootstrap=True)
        if session.error is not None:
            print(json.dumps({"msg": "bootstrap failed", "error": str(session.error)}, ensure_ascii=False))
        else:
            print(json.dumps({"msg": "bootstrap ok", "events": len(session.event_log)}, ensure_ascii=False))

        await stop_evt.wait()
    finally:
        session.stop()
        print(json.dumps({"msg": "bye"}, ensure_ascii=False))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
