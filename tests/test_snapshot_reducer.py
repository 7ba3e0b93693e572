import copy

import pytest

from feed.envelope_normalizer import normalize
from feed.models import EventEnvelope
from feed.snapshot import Snapshot, empty_snapshot
from feed.snapshot_reducer import apply_event, recognized_types


def test_weather_updated_boston_scenario():
    env = normalize({
        "type": "WeatherUpdated", "timestamp": 1700000000,
        "location": "Boston", "tempF": 37.5, "conditions": "Cloudy",
    })
    snap = apply_event(empty_snapshot(), env)
    boston = snap.weather["Boston"]
    assert boston["tempF"] == 37.5
    assert boston["conditions"] == "Cloudy"
    assert boston["alerts"] == []
    assert boston["updatedAt"] == 1700000000


def test_weather_updated_carries_previous_alerts():
    before = Snapshot.from_dict({"weather": {"Boston": {"location": "Boston", "alerts": ["Wind"]}}})
    env = EventEnvelope("WeatherUpdated", 5.0, {"location": "Boston", "tempF": 30, "conditions": "Snow"})
    after = apply_event(before, env)
    assert after.weather["Boston"]["alerts"] == ["Wind"]
    assert after.weather["Boston"]["conditions"] == "Snow"


@pytest.mark.parametrize("envelope", [
    EventEnvelope("LoginSucceeded", 1.0, {"user": "x"}),
    EventEnvelope("CollectorTickStarted", 1.0, {"collectorName": "rss"}),
    EventEnvelope("SomethingNew", 1.0, {}),
    EventEnvelope("WeatherUpdated", 1.0, {"tempF": 30}),          # 缺实体键
    EventEnvelope("SiteFetched", 1.0, {"siteId": ""}),
    EventEnvelope("AlertRaised", 1.0, {"category": True}),
])
def test_unrecognized_or_keyless_returns_same_object(envelope):
    snap = empty_snapshot()
    assert apply_event(snap, envelope) is snap


def test_reducer_never_mutates_input():
    before = Snapshot.from_dict({
        "sites": {"a": {"siteId": "a", "url": "http://a"}},
        "news": {"bbc": {"source": "bbc", "stories": [{"title": "t"}], "storyCount": 1}},
    })
    frozen = copy.deepcopy(before.to_dict())
    for env in [
        EventEnvelope("SiteFetched", 1.0, {"siteId": "a", "status": 200, "durationMillis": 12}),
        EventEnvelope("ContentChanged", 2.0, {"siteId": "a", "newHash": "h2"}),
        EventEnvelope("NewsUpdated", 3.0, {"source": "bbc", "storyCount": 0}),
        EventEnvelope("AlertRaised", 4.0, {"category": "site", "message": "m"}),
    ]:
        apply_event(before, env)
    assert before.to_dict() == frozen


def test_site_fetched_then_content_changed_merge():
    snap = Snapshot.from_dict({"sites": {"a": {"siteId": "a", "url": "http://a", "title": "A"}}})
    snap = apply_event(snap, EventEnvelope("SiteFetched", 1_700_000_000.0, {"siteId": "a", "status": 503, "durationMillis": 80}))
    snap = apply_event(snap, EventEnvelope("ContentChanged", 1_700_000_060.0, {"siteId": "a", "newHash": "abc"}))
    site = snap.sites["a"]
    assert site["title"] == "A"
    assert site["url"] == "http://a"
    assert site["lastStatus"] == 503
    assert site["lastDurationMillis"] == 80
    assert site["hash"] == "abc"
    assert site["lastChecked"] == "2023-11-14T22:14:20Z"
    assert site["lastChanged"] == "2023-11-14T22:14:20Z"


def test_news_updated_replaces_stories_when_list_present():
    before = Snapshot.from_dict({"news": {"bbc": {"source": "bbc", "stories": [{"title": "old"}]}}})
    after = apply_event(before, EventEnvelope("NewsUpdated", 1.0, {
        "source": "bbc", "stories": [{"title": "n1"}, {"title": "n2"}],
    }))
    assert after.news["bbc"]["stories"] == [{"title": "n1"}, {"title": "n2"}]
    assert after.news["bbc"]["storyCount"] == 2


def test_news_updated_count_only_does_not_truncate():
    before = Snapshot.from_dict({"news": {"bbc": {"source": "bbc", "stories": [{"title": "a"}, {"title": "b"}]}}})
    after = apply_event(before, EventEnvelope("NewsUpdated", 1.0, {"source": "bbc", "storyCount": 1}))
    assert len(after.news["bbc"]["stories"]) == 2
    assert after.news["bbc"]["storyCount"] == 1


def test_env_updates_keyed_by_zip():
    snap = empty_snapshot()
    snap = apply_event(snap, EventEnvelope("EnvWeatherUpdated", 10.0, {
        "type": "EnvWeatherUpdated", "zip": "02139", "tempF": 41.0, "conditions": "Rain", "status": "OK",
    }))
    snap = apply_event(snap, EventEnvelope("EnvAqiUpdated", 1_700_000_000.0, {
        "zip": "02139", "locationLabel": "Cambridge, MA", "aqi": "42", "category": "Good", "status": "OK",
    }))
    assert snap.env_weather["02139"]["tempF"] == 41.0
    assert "type" not in snap.env_weather["02139"]
    aq = snap.air_quality["02139"]
    assert aq["aqi"] == 42
    assert aq["location"] == "Cambridge, MA"
    assert aq["updatedAt"] == "2023-11-14T22:13:20Z"


def test_collector_and_alert():
    snap = empty_snapshot()
    snap = apply_event(snap, EventEnvelope("CollectorTickCompleted", 1_700_000_000.0, {
        "collectorName": "rss", "success": False, "durationMillis": 250, "errorMessage": "timeout",
    }))
    snap = apply_event(snap, EventEnvelope("AlertRaised", 7.0, {
        "category": "collector", "message": "rss failed", "details": {"idx": 1},
    }))
    assert snap.collectors["rss"] == {
        "lastRunAt": "2023-11-14T22:13:20Z",
        "lastDurationMillis": 250,
        "lastSuccess": False,
        "lastErrorMessage": "timeout",
    }
    assert snap.alerts["collector"]["details"] == {"idx": 1}
    assert snap.alerts["collector"]["raisedAt"] == 7.0


def test_last_write_wins_per_key():
    snap = empty_snapshot()
    for t, temp in [(1.0, 10), (2.0, 20), (3.0, 30)]:
        snap = apply_event(snap, EventEnvelope("WeatherUpdated", t, {"location": "Boston", "tempF": temp}))
    assert snap.weather["Boston"]["tempF"] == 30
    assert len(snap.weather) == 1


def test_other_sections_are_shared_not_copied():
    before = Snapshot.from_dict({"markets": {"SPY": {"price": 1}}})
    after = apply_event(before, EventEnvelope("AlertRaised", 1.0, {"category": "x"}))
    assert after.markets is before.markets
    assert after.alerts is not before.alerts


def test_snapshot_from_camel_case_and_back():
    snap = Snapshot.from_dict({"airQuality": {"02139": {"aqi": 5}}, "localHappenings": {"x": {}}, "bogus": 1, "sites": []})
    assert snap.air_quality == {"02139": {"aqi": 5}}
    assert snap.sites == {}
    assert set(snap.to_dict(by_alias=True)) >= {"airQuality", "envWeather", "localHappenings", "weather"}


def test_recognized_types():
    assert set(recognized_types()) == {
        "WeatherUpdated", "EnvWeatherUpdated", "EnvAqiUpdated", "SiteFetched",
        "ContentChanged", "NewsUpdated", "CollectorTickCompleted", "AlertRaised",
    }
