import pytest

from feed.errors import ConfigError
from feed.setting import KNOWN_EVENT_TYPES, FeedConfig
from tools.config_loader import load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("FEED_BASE_URL", "FEED_CAPACITY", "FEED_BACKOFF_FLOOR_MS", "FEED_BACKOFF_CEILING_MS",
                "FEED_CHANNELS", "FEED_READ_TIMEOUT_SEC", "FEED_LOG_TO_FILE", "FEED_STREAM_PATH",
                "FEED_BOOTSTRAP_LIMIT", "FEED_REQUEST_TIMEOUT_SEC"):
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "feed.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults():
    cfg = FeedConfig()
    assert cfg.capacity == 200
    assert (cfg.backoff_floor_ms, cfg.backoff_ceiling_ms) == (1000, 10000)
    assert cfg.channels == KNOWN_EVENT_TYPES
    assert cfg.stream_url == "http://127.0.0.1:8080/api/stream"


def test_repo_config_file_loads():
    cfg = FeedConfig.load()
    assert cfg.capacity == 200
    assert len(cfg.channels) == 15
    assert load_config(section="relay")["port"] == 8081


def test_load_yaml_with_aliases(tmp_path):
    path = _write(tmp_path, """
feed:
  url: "http://feed.local:9000/"
  max_events: "50"
  backoff_floor_ms: 500
  backoff_ceiling_ms: 4000
  channels: "WeatherUpdated, AlertRaised"
  read_timeout_sec: null
""")
    cfg = FeedConfig.load(path)
    assert cfg.base_url == "http://feed.local:9000/"
    assert cfg.capacity == 50
    assert cfg.channels == ("WeatherUpdated", "AlertRaised")
    assert cfg.read_timeout_sec is None
    assert cfg.stream_url == "http://feed.local:9000/api/stream"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = _write(tmp_path, "feed:\n  capacity: 50\n")
    monkeypatch.setenv("FEED_CAPACITY", "75")
    monkeypatch.setenv("FEED_LOG_TO_FILE", "yes")
    cfg = FeedConfig.load(path)
    assert cfg.capacity == 75
    assert cfg.log_to_file is True


def test_from_env_only(monkeypatch):
    monkeypatch.setenv("FEED_BASE_URL", "http://x:1")
    monkeypatch.setenv("FEED_CHANNELS", "LoginFailed")
    cfg = FeedConfig.from_env()
    assert cfg.base_url == "http://x:1"
    assert cfg.channels == ("LoginFailed",)
    assert cfg.capacity == 200


@pytest.mark.parametrize("data", [
    {"capacity": 0},
    {"capacity": "lots"},
    {"backoff_floor_ms": -1},
    {"backoff_floor_ms": 5000, "backoff_ceiling_ms": 1000},
])
def test_invalid_values_raise_config_error(data):
    with pytest.raises(ConfigError):
        FeedConfig.from_mapping(data)


def test_missing_file_or_section(tmp_path):
    with pytest.raises(ConfigError):
        FeedConfig.load(str(tmp_path / "absent.yaml"))
    path = _write(tmp_path, "other: {}\n")
    with pytest.raises(ConfigError):
        FeedConfig.load(path)
