import pytest

from feed.models import EventEnvelope
from feed.summary import summarize_event


def _env(event_type, **payload):
    return EventEnvelope(event_type, 1.0, payload)


@pytest.mark.parametrize("envelope,expected", [
    (_env("WeatherUpdated", location="Boston", tempF=37.5, conditions="Cloudy"), "Boston: 37.5F, Cloudy"),
    (_env("NewsUpdated", source="bbc", storyCount=3), "bbc: 3 stories"),
    (_env("SiteFetched", siteId="a", status=200, durationMillis=15), "a: status 200, 15ms"),
    (_env("ContentChanged", siteId="a"), "a: content hash changed"),
    (_env("AlertRaised", category="site", message="a is down"), "site: a is down"),
    (_env("CollectorTickStarted", collectorName="rss"), "collector rss started"),
    (_env("CollectorTickCompleted", collectorName="rss", success=True, durationMillis=9), "collector rss ok in 9ms"),
    (_env("CollectorTickCompleted", collectorName="rss", success=False, durationMillis=9), "collector rss failed in 9ms"),
    (_env("LoginFailed"), "login failed"),
    (_env("PasswordResetRequested"), "password reset requested"),
    (_env("SomethingElse", x=1), "SomethingElse"),
])
def test_summaries(envelope, expected):
    assert summarize_event(envelope) == expected


def test_env_aqi_ok_without_fetch_time():
    env = _env("EnvAqiUpdated", zip="02139", aqi=42, category="Good", source="airnow",
               status="OK", requestUrl="https://www.airnowapi.org/aq/observation?zip=02139&API_KEY=x")
    assert summarize_event(env) == "02139: AQI 42 (Good) via AIRNOW @ - [www.airnowapi.org/aq/observation]"


def test_env_aqi_error_and_missing_value():
    failed = _env("EnvAqiUpdated", zip="02139", status="ERROR", error="HTTP 500", source="")
    assert summarize_event(failed) == "02139: AQI error (UNKNOWN) @ - - HTTP 500 [request-url:n/a]"

    empty = _env("EnvAqiUpdated", zip="02139", status="OK", aqi=None, message="No data", source="airnow")
    assert summarize_event(empty) == "02139: No data (AIRNOW) @ - [request-url:n/a]"


def test_env_weather():
    ok = _env("EnvWeatherUpdated", zip="02139", tempF=41, conditions="Rain", source="nws",
              status="OK", requestUrl="/points/42,-71")
    assert summarize_event(ok) == "02139: 41.0F, Rain (NWS) @ - [/points/42,-71]"

    down = _env("EnvWeatherUpdated", zip="02139", status="UNAVAILABLE", source="nws")
    assert summarize_event(down) == "02139: weather unavailable (NWS) @ - - unavailable [request-url:n/a]"


def test_fetched_at_is_rendered_as_clock_time():
    env = _env("EnvWeatherUpdated", zip="1", tempF=1, conditions="c", source="s",
               status="OK", fetchedAtEpochMillis=1_700_000_000_000)
    when = summarize_event(env).split(" @ ")[1].split(" ")[0]
    assert len(when) == 8 and when.count(":") == 2
