from __future__ import annotations

import codecs
import datetime
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

DEFAULT_CHANNEL = "message"


@dataclass(frozen=True)
class SseFrame:
    """
    一帧 text/event-stream 事件：
      event: 通道名（未指定时为 "message"）
      data : 多行 data 以 "\n" 拼接
    """
    event: str
    data: str


class SseDecoder:
    """
    增量解析 text/event-stream。

    用法：
        decoder = SseDecoder()
        for chunk in stream:              # bytes 分片，边界任意
            for frame in decoder.feed_bytes(chunk):
                ...

    规则：
    1. 行结束符支持 \\r\\n / \\n / \\r；分片末尾的 \\r 暂存，等下一片判断是否跟着 \\n
    2. 以 ":" 开头的行是注释（心跳 ": keepalive"），忽略
    3. "field: value" 中冒号后的一个空格去掉；无冒号时整行是字段名、值为空
    4. 空行触发派发；data 缓冲为空时不派发，只重置 event 名
    5. id / retry 及其它未知字段忽略（不做断点续传）
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._started = False
        self._event = ""
        self._data: List[str] = []

    def feed_bytes(self, chunk: bytes) -> List[SseFrame]:
        return self.feed(self._utf8.decode(chunk))

    def feed(self, text: str) -> List[SseFrame]:
        if not self._started and text:
            self._started = True
            if text.startswith("\ufeff"):
                text = text[1:]

        buf = self._pending + text
        self._pending = ""
        frames: List[SseFrame] = []

        start = 0
        i = 0
        n = len(buf)
        while i < n:
            ch = buf[i]
            if ch == "\r":
                if i + 1 == n:
                    break  # 可能是被切开的 \r\n
                line = buf[start:i]
                i += 2 if buf[i + 1] == "\n" else 1
                start = i
                self._line(line, frames)
                continue
            if ch == "\n":
                self._line(buf[start:i], frames)
                i += 1
                start = i
                continue
            i += 1

        self._pending = buf[start:]
        return frames

    def _line(self, line: str, frames: List[SseFrame]) -> None:
        if line == "":
            self._dispatch(frames)
            return
        if line.startswith(":"):
            return

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value

    def _dispatch(self, frames: List[SseFrame]) -> None:
        event = self._event or DEFAULT_CHANNEL
        self._event = ""
        if not self._data:
            return
        data = "\n".join(self._data)
        self._data = []
        frames.append(SseFrame(event=event, data=data))


# ────────────────────────────────────────────────────────────────
# 编码（服务端推送用）
# ────────────────────────────────────────────────────────────────
def _json_default(o: Any):
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, (datetime.datetime, datetime.date)):
        return o.isoformat()
    return str(o)


def dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, default=_json_default)


def encode_frame(data: Any, event: Optional[str] = None) -> str:
    """
    编码一帧：data 为 str 原样发送，否则序列化为 JSON。
    多行 data 拆成多条 "data:" 字段。
    """
    body = data if isinstance(data, str) else dumps(data)
    lines: List[str] = []
    if event:
        lines.append(f"event: {event}")
    for part in body.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        lines.append(f"data: {part}")
    return "\n".join(lines) + "\n\n"


def encode_comment(text: str = "keep-alive") -> str:
    return f": {text}\n\n"
