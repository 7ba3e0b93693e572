import asyncio
import json

from aiohttp import web
from aiohttp.test_utils import TestServer

from feed.errors import TransportError
from feed.transport import SseTransport, sse_transport_factory


class Recorder:
    def __init__(self):
        self.opened = 0
        self.frames = []
        self.errors = []
        self.done = asyncio.Event()

    def on_open(self):
        self.opened += 1

    def on_frame(self, frame):
        self.frames.append(frame)

    def on_error(self, error=None):
        self.errors.append(error)
        self.done.set()


def _app(body: bytes, status: int = 200, content_type: str = "text/event-stream"):
    async def handler(request):
        resp = web.StreamResponse(status=status, headers={"Content-Type": content_type})
        await resp.prepare(request)
        await resp.write(body)
        return resp

    app = web.Application()
    app.router.add_get("/api/stream", handler)
    return app


def _run(app, factory_kwargs=None):
    async def scenario():
        async with TestServer(app) as server:
            rec = Recorder()
            factory = sse_transport_factory(str(server.make_url("/api/stream")), **(factory_kwargs or {}))
            transport = factory(rec)
            await asyncio.wait_for(rec.done.wait(), timeout=5)
            transport.close()
            return rec, transport

    return asyncio.run(scenario())


def test_frames_then_end_of_stream_is_an_error():
    data = json.dumps({"type": "AlertRaised", "timestamp": 1, "event": {"category": "x"}})
    body = f": connected\n\nevent: AlertRaised\ndata: {data}\n\n".encode("utf-8")
    rec, transport = _run(_app(body))
    assert rec.opened == 1
    assert [(f.event, f.data) for f in rec.frames] == [("AlertRaised", data)]
    assert isinstance(rec.errors[0], TransportError)
    assert transport.closed


def test_non_200_status_fails_without_open():
    rec, _ = _run(_app(b"nope", status=503))
    assert rec.opened == 0
    assert isinstance(rec.errors[0], TransportError)


def test_wrong_content_type_fails():
    rec, _ = _run(_app(b"{}", content_type="application/json"))
    assert rec.opened == 0
    assert "content-type" in str(rec.errors[0])


def test_close_suppresses_callbacks():
    async def scenario():
        rec = Recorder()
        transport = SseTransport("http://127.0.0.1:9/api/stream", rec, connect_timeout=1.0)
        transport.close()
        await asyncio.sleep(0.05)
        return rec

    rec = asyncio.run(scenario())
    assert rec.errors == []
    assert rec.opened == 0
