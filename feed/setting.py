# ──────────────────────────────────────────────────────────────────────────────
# 模块用途：集中管理 feed 的运行配置（YAML / 环境变量 → 不可变 dataclass）
# 说明：
#   - 容量、退避上下限、地址、通道列表都从这里注入，核心组件不写死常量；
#   - 优先级：环境变量 FEED_* > YAML(config/feed.yaml 的 feed 段) > 默认值。
# ──────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import dataclasses
import os
from typing import Any, Dict, Optional, Tuple

from commons.base_dataclasses import BaseDataClass
from commons.normalizers import strip_or_none, to_bool_or_none, to_float_or_none, to_int_or_none
from tools.config_loader import load_config
from tools.request_utils import build_url

from .errors import ConfigError

# 服务端会推送的全部具名事件类型
KNOWN_EVENT_TYPES: Tuple[str, ...] = (
    "CollectorTickStarted",
    "CollectorTickCompleted",
    "AlertRaised",
    "SiteFetched",
    "ContentChanged",
    "WeatherUpdated",
    "NewsUpdated",
    "EnvWeatherUpdated",
    "EnvAqiUpdated",
    "UserRegistered",
    "LoginSucceeded",
    "LoginFailed",
    "PasswordResetRequested",
    "PasswordResetSucceeded",
    "PasswordResetFailed",
)

DEFAULT_CONFIG_FILE = "config/feed.yaml"

# 环境变量 -> 字段
_ENV_KEYS: Dict[str, str] = {
    "FEED_BASE_URL": "base_url",
    "FEED_STREAM_PATH": "stream_path",
    "FEED_CAPACITY": "capacity",
    "FEED_BACKOFF_FLOOR_MS": "backoff_floor_ms",
    "FEED_BACKOFF_CEILING_MS": "backoff_ceiling_ms",
    "FEED_BOOTSTRAP_LIMIT": "bootstrap_limit",
    "FEED_REQUEST_TIMEOUT_SEC": "request_timeout_sec",
    "FEED_READ_TIMEOUT_SEC": "read_timeout_sec",
    "FEED_CHANNELS": "channels",
    "FEED_LOG_TO_FILE": "log_to_file",
}


def _to_channels(value: Any) -> Tuple[str, ...]:
    """支持 YAML 列表或逗号分隔字符串"""
    if value is None:
        return KNOWN_EVENT_TYPES
    if isinstance(value, str):
        value = value.split(",")
    return tuple(s for s in (strip_or_none(v) for v in value) if s)


def _positive(row: Dict[str, Any]) -> None:
    for key in ("capacity", "backoff_floor_ms", "backoff_ceiling_ms", "bootstrap_limit"):
        value = row.get(key)
        if not isinstance(value, int) or value <= 0:
            raise ConfigError(f"{key} must be a positive integer, got {value!r}")


def _floor_le_ceiling(row: Dict[str, Any]) -> None:
    if row["backoff_floor_ms"] > row["backoff_ceiling_ms"]:
        raise ConfigError(
            f"backoff_floor_ms({row['backoff_floor_ms']}) > backoff_ceiling_ms({row['backoff_ceiling_ms']})"
        )


def _require_int(value: Any) -> Optional[int]:
    parsed = to_int_or_none(value)
    return value if parsed is None else parsed


@dataclasses.dataclass(frozen=True)
class FeedConfig(BaseDataClass):
    """feed 运行配置（不可变）"""
    base_url: str = "http://127.0.0.1:8080"     # 服务端根地址
    stream_path: str = "/api/stream"             # SSE 路径
    events_path: str = "/api/events"             # 引导：最近事件
    signals_path: str = "/api/signals"           # 引导：快照
    capacity: int = 200                          # 日志 / 暂停缓冲容量
    backoff_floor_ms: int = 1000                 # 退避下限
    backoff_ceiling_ms: int = 10000              # 退避上限
    bootstrap_limit: int = 200                   # 引导拉取条数
    bootstrap_retries: int = 2                   # 引导请求重试次数
    request_timeout_sec: float = 10.0            # 引导请求超时
    read_timeout_sec: Optional[float] = 60.0     # 流读取超时（无心跳多久算断）
    channels: Tuple[str, ...] = KNOWN_EVENT_TYPES
    log_to_file: bool = False

    @staticmethod
    def load(file_path: str = DEFAULT_CONFIG_FILE, section: str = "feed") -> "FeedConfig":
        """YAML + 环境变量"""
        try:
            raw = load_config(section=section, file_path=file_path)
        except FileNotFoundError as e:
            raise ConfigError(f"config file not found: {file_path}") from e
        except KeyError as e:
            raise ConfigError(f"config section {section!r} missing in {file_path}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"config section {section!r} must be a mapping")
        return FeedConfig.from_mapping({**raw, **_env_overrides()})

    @staticmethod
    def from_env() -> "FeedConfig":
        """只读环境变量（缺省字段用默认值）"""
        return FeedConfig.from_mapping(_env_overrides())

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "FeedConfig":
        try:
            return FeedConfig.from_dict(data, strict=True)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(str(e)) from e

    @property
    def stream_url(self) -> str:
        return build_url(self.base_url, self.stream_path)


def _env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for env_key, field_name in _ENV_KEYS.items():
        value = os.getenv(env_key)
        if value is not None and value.strip() != "":
            out[field_name] = value
    return out


FeedConfig.FIELD_MAPPING = {
    "max_events": "capacity",
    "url": "base_url",
}
FeedConfig.DEFAULTS = {f.name: f.default for f in dataclasses.fields(FeedConfig)}
FeedConfig.CONVERTERS = {
    "base_url": str,
    "stream_path": str,
    "capacity": _require_int,
    "backoff_floor_ms": _require_int,
    "backoff_ceiling_ms": _require_int,
    "bootstrap_limit": _require_int,
    "bootstrap_retries": lambda v: max(1, to_int_or_none(v) or 1),
    "request_timeout_sec": lambda v: to_float_or_none(v) or 10.0,
    "read_timeout_sec": to_float_or_none,
    "channels": _to_channels,
    "log_to_file": lambda v: bool(to_bool_or_none(v)),
}
FeedConfig.VALIDATORS = [_positive, _floor_le_ceiling]
