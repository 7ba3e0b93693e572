# -*- coding: utf-8 -*-
"""
BaseDataClass
-------------
为 dataclass 子类提供统一的构造/清洗/校验与序列化能力。
流程：字段映射 -> 默认值合并 -> 字段转换 -> 行级校验 -> 构造实例 -> 序列化。

在 feed 中的用途：
- FeedConfig：YAML/环境变量 -> 不可变配置；
- Snapshot：/api/signals 的 camelCase JSON -> snake_case 字段，反向导出时还原 camelCase。

使用约定：
- 子类必须使用 @dataclass 装饰；快照/配置类一律 frozen=True。
- CONVERTERS 为纯函数；VALIDATORS 只抛错不改值。
"""
from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Type, TypeVar

from commons.base_logger import BaseLogger

_DEFAULT_LOGGER = BaseLogger(name="BaseDataClass").logger

T = TypeVar("T", bound="BaseDataClass")
Converter = Callable[[Any], Any]
RowValidator = Callable[[Dict[str, Any]], None]


class BaseDataClass:
    """dataclass 子类的通用基类。

    类变量：
    - DEFAULTS: 字段默认值；callable 每次构造时调用，其它值 deepcopy。
    - FIELD_MAPPING: 外部字段名 -> 内部字段名；to_dict(by_alias=True) 时反向还原。
    - CONVERTERS: 字段级转换器。
    - VALIDATORS: 行级校验器，抛异常即失败。
    - LOGGER: 日志器，子类可覆盖。

    典型用法：
        @dataclasses.dataclass(frozen=True)
        class Snapshot(BaseDataClass):
            air_quality: dict = dataclasses.field(default_factory=dict)

        Snapshot.FIELD_MAPPING = {"airQuality": "air_quality"}
        s = Snapshot.from_dict({"airQuality": {...}})
        s.to_dict(by_alias=True)  # {"airQuality": {...}}
    """

    DEFAULTS: ClassVar[Dict[str, Any]] = {}
    FIELD_MAPPING: ClassVar[Dict[str, str]] = {}
    CONVERTERS: ClassVar[Dict[str, Converter]] = {}
    VALIDATORS: ClassVar[List[RowValidator]] = []
    LOGGER: ClassVar[logging.Logger] = _DEFAULT_LOGGER

    @classmethod
    def _logger(cls) -> logging.Logger:
        return getattr(cls, "LOGGER", _DEFAULT_LOGGER) or _DEFAULT_LOGGER

    # ---------------- 构造 ----------------
    @classmethod
    def from_dict(
        cls: Type[T],
        data: Mapping[str, Any],
        *,
        strict: bool = False,
        log_errors: bool = True,
    ) -> T:
        """从字典构造实例：映射 -> 默认 -> 转换 -> 校验 -> 构造。

        参数：
            data: 外部输入（Mapping）。非 Mapping 时 strict=True 抛 TypeError，否则按空 dict 处理。
            strict: True 则转换失败直接抛出；False 则记录日志并保留原值。
            log_errors: 是否记录警告日志。
        校验器失败总是抛出，由调用方决定如何处理。
        """
        logger = cls._logger()

        if not isinstance(data, Mapping):
            msg = f"from_dict 需要 Mapping，实际得到: {type(data).__name__}"
            if strict:
                raise TypeError(msg)
            if log_errors:
                logger.warning(msg)
            data = {}

        try:
            dc_names = {f.name for f in dataclasses.fields(cls)}
        except TypeError:
            raise TypeError(f"{cls.__name__} 必须使用 @dataclass 装饰")

        # 1) 字段映射；内部名与外部别名同时出现时，后出现者覆盖
        mapped: Dict[str, Any] = {}
        for ext_key, val in data.items():
            internal = cls.FIELD_MAPPING.get(ext_key, ext_key)
            if internal in dc_names:
                mapped[internal] = val

        # 2) 默认值展开
        defaults_expanded: Dict[str, Any] = {}
        for k, v in cls.DEFAULTS.items():
            defaults_expanded[k] = v() if callable(v) else copy.deepcopy(v)

        combined: Dict[str, Any] = {**defaults_expanded, **mapped}

        # 3) 字段级转换
        for key, fn in cls.CONVERTERS.items():
            if key in combined:
                try:
                    combined[key] = fn(combined[key])
                except Exception as e:
                    if strict:
                        raise
                    if log_errors:
                        snippet = repr(str(combined.get(key))[:120])
                        logger.warning(
                            "字段转换失败 %s (%s): %s; 值片段=%s",
                            key, type(e).__name__, e, snippet,
                        )

        # 4) 行级校验
        for validate in cls.VALIDATORS:
            try:
                validate(combined)
            except Exception as e:
                if log_errors:
                    vname = getattr(validate, "__name__", repr(validate))
                    logger.warning("行级校验失败 (%s): %s", vname, e)
                raise

        # 5) 构造
        slim = {k: v for k, v in combined.items() if k in dc_names}
        return cls(**slim)  # type: ignore[arg-type]

    # ---------------- 序列化 ----------------
    def to_dict(self, *, by_alias: bool = False) -> Dict[str, Any]:
        """导出为 dict；by_alias=True 时字段名还原为 FIELD_MAPPING 中的外部名。"""
        if not dataclasses.is_dataclass(self):
            raise TypeError(f"{type(self).__name__} 不是 dataclass，无法 asdict")
        d = dataclasses.asdict(self)
        if not by_alias:
            return d
        alias = {internal: ext for ext, internal in type(self).FIELD_MAPPING.items()}
        return {alias.get(k, k): v for k, v in d.items()}
