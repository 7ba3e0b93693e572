"""
snapshot_reducer
----------------
把一条规范化事件折叠进快照（乐观更新）。

规则：
- 纯函数：返回新快照，从不修改入参；
- 按 envelope.type 分派，每种已识别类型只替换一个子表中的一条记录；
- 未识别类型、或缺少实体键的事件，原样返回同一个快照对象；
- 同一实体键“后写覆盖先写”，顺序由调用方按到达顺序串行保证。
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

from commons.normalizers import epoch_to_iso, non_empty_str, to_bool_or_none, to_int_or_none

from .models import EventEnvelope
from .snapshot import Record, Snapshot

Reducer = Callable[[Snapshot, EventEnvelope], Snapshot]

_REDUCERS: Dict[str, Reducer] = {}


def reduces(event_type: str):
    """注册某个事件类型的折叠函数"""
    def deco(fn: Reducer) -> Reducer:
        _REDUCERS[event_type] = fn
        return fn
    return deco


def recognized_types() -> tuple:
    return tuple(_REDUCERS)


def apply_event(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    """apply(snapshot, envelope) -> snapshot'"""
    reducer = _REDUCERS.get(envelope.type)
    if reducer is None:
        return snapshot
    return reducer(snapshot, envelope)


def _key(payload: Mapping[str, Any], field: str) -> Optional[str]:
    """实体键：非空字符串原样使用，数字转字符串，其它视为缺失"""
    value = payload.get(field)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return non_empty_str(value)


def _strip_envelope_fields(payload: Mapping[str, Any]) -> Record:
    return {k: v for k, v in payload.items() if k not in ("type", "timestamp")}


# ────────────────────────────────────────────────────────────────
# 天气
# ────────────────────────────────────────────────────────────────
@reduces("WeatherUpdated")
def _weather_updated(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    location = _key(p, "location")
    if location is None:
        return snapshot
    previous = snapshot.weather.get(location) or {}
    record = {
        "location": location,
        "tempF": p.get("tempF"),
        "conditions": p.get("conditions"),
        # 事件不携带预警列表，沿用旧记录的
        "alerts": list(previous.get("alerts") or []),
        "updatedAt": envelope.timestamp,
    }
    return snapshot.with_record("weather", location, record)


@reduces("EnvWeatherUpdated")
def _env_weather_updated(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    zip_code = _key(envelope.payload, "zip")
    if zip_code is None:
        return snapshot
    record = _strip_envelope_fields(envelope.payload)
    record["updatedAt"] = envelope.timestamp
    return snapshot.with_record("env_weather", zip_code, record)


@reduces("EnvAqiUpdated")
def _env_aqi_updated(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    zip_code = _key(p, "zip")
    if zip_code is None:
        return snapshot
    record = {
        "location": p.get("locationLabel") or zip_code,
        "aqi": to_int_or_none(p.get("aqi")),
        "category": p.get("category"),
        "message": p.get("message"),
        "status": p.get("status"),
        "source": p.get("source"),
        "updatedAt": epoch_to_iso(envelope.timestamp),
    }
    return snapshot.with_record("air_quality", zip_code, record)


# ────────────────────────────────────────────────────────────────
# 站点
# ────────────────────────────────────────────────────────────────
@reduces("SiteFetched")
def _site_fetched(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    site_id = _key(p, "siteId")
    if site_id is None:
        return snapshot
    record = dict(snapshot.sites.get(site_id) or {})
    record.update({
        "siteId": site_id,
        "url": p.get("url", record.get("url")),
        "lastStatus": to_int_or_none(p.get("status")),
        "lastDurationMillis": to_int_or_none(p.get("durationMillis")),
        "lastChecked": epoch_to_iso(envelope.timestamp),
    })
    return snapshot.with_record("sites", site_id, record)


@reduces("ContentChanged")
def _content_changed(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    site_id = _key(p, "siteId")
    if site_id is None:
        return snapshot
    when = epoch_to_iso(envelope.timestamp)
    record = dict(snapshot.sites.get(site_id) or {})
    record.update({
        "siteId": site_id,
        "url": p.get("url", record.get("url")),
        "hash": p.get("newHash"),
        "lastChecked": when,
        "lastChanged": when,
    })
    return snapshot.with_record("sites", site_id, record)


# ────────────────────────────────────────────────────────────────
# 新闻
# ────────────────────────────────────────────────────────────────
@reduces("NewsUpdated")
def _news_updated(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    source = _key(p, "source")
    if source is None:
        return snapshot
    stories = p.get("stories")
    if isinstance(stories, list):
        stories = list(stories)
    else:
        # 只带 storyCount 的事件不知道具体条目：保留旧列表，不按数量截断
        stories = list((snapshot.news.get(source) or {}).get("stories") or [])
    count = to_int_or_none(p.get("storyCount"))
    record = {
        "source": source,
        "stories": stories,
        "storyCount": len(stories) if count is None else count,
        "updatedAt": epoch_to_iso(envelope.timestamp),
    }
    return snapshot.with_record("news", source, record)


# ────────────────────────────────────────────────────────────────
# 采集器 / 告警
# ────────────────────────────────────────────────────────────────
@reduces("CollectorTickCompleted")
def _collector_tick_completed(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    name = _key(p, "collectorName")
    if name is None:
        return snapshot
    record = {
        "lastRunAt": epoch_to_iso(envelope.timestamp),
        "lastDurationMillis": to_int_or_none(p.get("durationMillis")),
        "lastSuccess": to_bool_or_none(p.get("success")),
        "lastErrorMessage": p.get("errorMessage"),
    }
    return snapshot.with_record("collectors", name, record)


@reduces("AlertRaised")
def _alert_raised(snapshot: Snapshot, envelope: EventEnvelope) -> Snapshot:
    p = envelope.payload
    category = _key(p, "category")
    if category is None:
        return snapshot
    details = p.get("details")
    record = {
        "category": category,
        "message": p.get("message"),
        "details": dict(details) if isinstance(details, Mapping) else {},
        "raisedAt": envelope.timestamp,
    }
    return snapshot.with_record("alerts", category, record)
