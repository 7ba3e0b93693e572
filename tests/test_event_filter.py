import pytest

from feed.event_filter import ALL_TYPES, filter_events, payload_json
from feed.models import EventEnvelope


def _events():
    return [
        EventEnvelope("WeatherUpdated", 1.0, {"location": "Boston", "tempF": 42}),
        EventEnvelope("AlertRaised", 2.0, {"category": "site", "message": "Example DOWN"}),
        EventEnvelope("WeatherUpdated", 3.0, {"location": "Denver", "tempF": 60}),
        EventEnvelope("LoginFailed", 4.0, {}),
    ]


def test_all_returns_newest_first():
    events = _events()
    assert filter_events(events, ALL_TYPES, "") == list(reversed(events))


def test_type_filter_is_exact():
    got = filter_events(_events(), "WeatherUpdated", "")
    assert [e.payload["location"] for e in got] == ["Denver", "Boston"]
    assert filter_events(_events(), "weatherupdated", "") == []


@pytest.mark.parametrize("query,expected_ts", [
    ("boston", [1.0]),
    ("  DOWN  ", [2.0]),
    ("weatherupdated", [3.0, 1.0]),     # 类型名也参与匹配
    ('"tempf":60', [3.0]),              # 紧凑 JSON
    ("", [4.0, 3.0, 2.0, 1.0]),
    ("   ", [4.0, 3.0, 2.0, 1.0]),
    ("nothing-matches", []),
])
def test_search_text(query, expected_ts):
    assert [e.timestamp for e in filter_events(_events(), ALL_TYPES, query)] == expected_ts


def test_type_and_search_combine():
    got = filter_events(_events(), "WeatherUpdated", "denver")
    assert [e.timestamp for e in got] == [3.0]


def test_filter_is_idempotent_on_its_own_output_order():
    events = _events()
    once = filter_events(events, "WeatherUpdated", "o")
    twice = filter_events(list(reversed(once)), "WeatherUpdated", "o")
    assert once == twice


def test_input_not_modified():
    events = _events()
    copy = list(events)
    filter_events(events, "AlertRaised", "site")
    assert events == copy


def test_payload_json_keeps_unicode():
    assert payload_json({"城市": "波士顿"}) == '{"城市":"波士顿"}'
