# 事件一行摘要（控制台输出用）

from __future__ import annotations

import datetime
from typing import Any, Callable, Dict, Mapping
from urllib.parse import urlsplit

from commons.normalizers import strip_or_none, to_float_or_none

from .models import EventEnvelope

Summarizer = Callable[[Mapping[str, Any]], str]

_SUMMARIZERS: Dict[str, Summarizer] = {}

# 只有固定文案的类型
_FIXED_TEXT = {
    "UserRegistered": "user registered",
    "LoginSucceeded": "login succeeded",
    "LoginFailed": "login failed",
    "PasswordResetRequested": "password reset requested",
    "PasswordResetSucceeded": "password reset succeeded",
    "PasswordResetFailed": "password reset failed",
}


def summarizes(event_type: str):
    def deco(fn: Summarizer) -> Summarizer:
        _SUMMARIZERS[event_type] = fn
        return fn
    return deco


def summarize_event(envelope: EventEnvelope) -> str:
    """未识别类型返回类型名本身；字段缺失时尽量给出可读文本，不抛异常"""
    fixed = _FIXED_TEXT.get(envelope.type)
    if fixed is not None:
        return fixed
    fn = _SUMMARIZERS.get(envelope.type)
    if fn is None:
        return envelope.type
    return fn(envelope.payload)


# ────────────────────────────────────────────────────────────────
# 格式化工具
# ────────────────────────────────────────────────────────────────
def _temp(value: Any) -> str:
    f = to_float_or_none(value)
    return "?" if f is None else f"{f:.1f}"


def _fetched_at(value: Any) -> str:
    """毫秒时间戳 -> 本地时间 HH:MM:SS；无法解析时为 "-" """
    ms = to_float_or_none(value)
    if ms is None:
        return "-"
    try:
        return datetime.datetime.fromtimestamp(ms / 1000.0).strftime("%H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "-"


def _source(value: Any) -> str:
    s = strip_or_none(value) if isinstance(value, str) else None
    return "UNKNOWN" if s is None else s.upper()


def _endpoint(value: Any) -> str:
    """请求地址只保留 host + path"""
    raw = strip_or_none(value) if isinstance(value, str) else None
    if raw is None:
        return "request-url:n/a"
    parts = urlsplit(raw)
    if parts.scheme and parts.netloc:
        return f"{parts.netloc}{parts.path or '/'}"
    return raw.split("?")[0]


def _status(p: Mapping[str, Any]) -> str:
    return str(p.get("status") or "UNKNOWN")


def _int_text(value: Any) -> str:
    f = to_float_or_none(value)
    if f is None:
        return str(value)
    return str(int(f)) if f == int(f) else str(f)


# ────────────────────────────────────────────────────────────────
# 各类型
# ────────────────────────────────────────────────────────────────
@summarizes("WeatherUpdated")
def _weather(p: Mapping[str, Any]) -> str:
    return f"{p.get('location')}: {_temp(p.get('tempF'))}F, {p.get('conditions')}"


@summarizes("EnvWeatherUpdated")
def _env_weather(p: Mapping[str, Any]) -> str:
    when = _fetched_at(p.get("fetchedAtEpochMillis"))
    endpoint = _endpoint(p.get("requestUrl"))
    source = _source(p.get("source"))
    status = _status(p)
    if status != "OK":
        reason = p.get("error") or "unavailable"
        return f"{p.get('zip')}: weather {status.lower()} ({source}) @ {when} - {reason} [{endpoint}]"
    return f"{p.get('zip')}: {_temp(p.get('tempF'))}F, {p.get('conditions')} ({source}) @ {when} [{endpoint}]"


@summarizes("EnvAqiUpdated")
def _env_aqi(p: Mapping[str, Any]) -> str:
    when = _fetched_at(p.get("fetchedAtEpochMillis"))
    endpoint = _endpoint(p.get("requestUrl"))
    source = _source(p.get("source"))
    status = _status(p)
    if status != "OK":
        reason = p.get("error") or p.get("message") or "unavailable"
        return f"{p.get('zip')}: AQI {status.lower()} ({source}) @ {when} - {reason} [{endpoint}]"
    if p.get("aqi") is None:
        return f"{p.get('zip')}: {p.get('message') or 'AQI unavailable'} ({source}) @ {when} [{endpoint}]"
    category = p.get("category") or "Unknown"
    return f"{p.get('zip')}: AQI {_int_text(p.get('aqi'))} ({category}) via {source} @ {when} [{endpoint}]"


@summarizes("NewsUpdated")
def _news(p: Mapping[str, Any]) -> str:
    return f"{p.get('source')}: {p.get('storyCount')} stories"


@summarizes("SiteFetched")
def _site_fetched(p: Mapping[str, Any]) -> str:
    return f"{p.get('siteId')}: status {p.get('status')}, {p.get('durationMillis')}ms"


@summarizes("ContentChanged")
def _content_changed(p: Mapping[str, Any]) -> str:
    return f"{p.get('siteId')}: content hash changed"


@summarizes("AlertRaised")
def _alert(p: Mapping[str, Any]) -> str:
    return f"{p.get('category')}: {p.get('message')}"


@summarizes("CollectorTickStarted")
def _tick_started(p: Mapping[str, Any]) -> str:
    return f"collector {p.get('collectorName')} started"


@summarizes("CollectorTickCompleted")
def _tick_completed(p: Mapping[str, Any]) -> str:
    outcome = "ok" if p.get("success") is True else "failed"
    return f"collector {p.get('collectorName')} {outcome} in {p.get('durationMillis')}ms"
