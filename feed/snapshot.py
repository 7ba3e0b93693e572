# 快照模型 Snapshot
# 按实体键聚合的“最新已知状态”；记录为服务端 camelCase 的 JSON 字典。
from __future__ import annotations

import dataclasses
from typing import Any, Dict, Mapping

from commons.base_dataclasses import BaseDataClass

Record = Dict[str, Any]
RecordMap = Dict[str, Record]


def _as_record_map(value: Any) -> RecordMap:
    """把引导响应中的子表清洗为 {str: dict}；非法项丢弃"""
    if not isinstance(value, Mapping):
        return {}
    return {str(k): dict(v) for k, v in value.items() if isinstance(v, Mapping)}


@dataclasses.dataclass(frozen=True)
class Snapshot(BaseDataClass):
    """
    子表与实体键：
      sites(siteId) / news(source) / weather(location) / env_weather(zip) /
      air_quality(zip) / collectors(collectorName) / alerts(category)
    local_happenings / markets 只由引导响应填充，事件不会修改。
    """
    sites: RecordMap = dataclasses.field(default_factory=dict)
    news: RecordMap = dataclasses.field(default_factory=dict)
    weather: RecordMap = dataclasses.field(default_factory=dict)
    env_weather: RecordMap = dataclasses.field(default_factory=dict)
    air_quality: RecordMap = dataclasses.field(default_factory=dict)
    collectors: RecordMap = dataclasses.field(default_factory=dict)
    alerts: RecordMap = dataclasses.field(default_factory=dict)
    local_happenings: RecordMap = dataclasses.field(default_factory=dict)
    markets: RecordMap = dataclasses.field(default_factory=dict)

    def with_record(self, section: str, key: str, record: Record) -> "Snapshot":
        """返回新快照：section 子表中 key 对应记录被整体替换，其它子表共享引用"""
        updated = dict(getattr(self, section))
        updated[key] = record
        return dataclasses.replace(self, **{section: updated})


Snapshot.FIELD_MAPPING = {
    "envWeather": "env_weather",
    "airQuality": "air_quality",
    "localHappenings": "local_happenings",
}
Snapshot.CONVERTERS = {f.name: _as_record_map for f in dataclasses.fields(Snapshot)}


def empty_snapshot() -> Snapshot:
    return Snapshot()
