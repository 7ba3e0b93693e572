import pytest
import requests

from feed.bootstrap import BootstrapClient
from feed.errors import BootstrapError
from feed.setting import FeedConfig


class FakeResponse:
    def __init__(self, status_code=200, body=None, bad_json=False):
        self.status_code = status_code
        self._body = body
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    """按顺序返回预设响应；元素为异常时抛出"""

    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self._responses = list(responses)

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        pass


def _client(*responses, retries=2):
    session = FakeSession(*responses)
    cfg = FeedConfig(base_url="http://feed.local", bootstrap_retries=retries)
    return BootstrapClient(cfg, session=session, retry_delay=0), session


def test_fetch_events_normalizes_and_skips_bad_items():
    client, session = _client(FakeResponse(body=[
        {"type": "WeatherUpdated", "timestamp": 1, "event": {"location": "Boston"}},
        {"type": "AlertRaised", "timestamp": "2", "category": "x"},
        {"no": "type"},
        "junk",
    ]))
    events = client.fetch_events(limit=5)
    assert [e.type for e in events] == ["WeatherUpdated", "AlertRaised"]
    assert session.calls == [("http://feed.local/api/events?limit=5", 10.0)]


def test_fetch_events_uses_configured_limit():
    client, session = _client(FakeResponse(body=[]))
    assert client.fetch_events() == []
    assert session.calls[0][0].endswith("?limit=200")


def test_fetch_signals_maps_camel_case():
    client, _ = _client(FakeResponse(body={
        "sites": {"a": {"siteId": "a"}},
        "airQuality": {"02139": {"aqi": 10}},
        "markets": {"SPY": {"price": 1.0}},
    }))
    snap = client.fetch_signals()
    assert snap.sites["a"]["siteId"] == "a"
    assert snap.air_quality["02139"]["aqi"] == 10
    assert snap.markets["SPY"]["price"] == 1.0


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=503, body={}),
    FakeResponse(bad_json=True),
    FakeResponse(body={"not": "a list"}),
])
def test_fetch_events_failures(response):
    client, _ = _client(response)
    with pytest.raises(BootstrapError):
        client.fetch_events()


def test_connection_errors_are_retried_then_wrapped():
    client, session = _client(requests.ConnectionError("refused"), requests.ConnectionError("refused"))
    with pytest.raises(BootstrapError):
        client.fetch_signals()
    assert len(session.calls) == 2


def test_retry_recovers():
    client, session = _client(requests.Timeout("slow"), FakeResponse(body={}))
    assert client.fetch_signals().sites == {}
    assert len(session.calls) == 2
