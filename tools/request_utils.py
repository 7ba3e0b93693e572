# 拼接 feed 服务端地址（引导拉取 / SSE 订阅共用）

from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit


def _query_value(value: Any) -> Optional[Any]:
    """单个查询参数取值；返回 None 表示该参数等价于“不限制”，应丢弃"""
    if value is None:
        return None
    # bool 是 int 子类，要先判断
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip() or None
    return value


def _normalized_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """过滤查询参数：None、空白字符串、数值 0 都视为未设置"""
    cleaned: Dict[str, Any] = {}
    for key, raw in params.items():
        value = _query_value(raw)
        if value is None:
            continue
        if isinstance(value, (int, float)) and value == 0:
            continue
        cleaned[key] = value
    return cleaned


def _clean_url(url: str) -> str:
    """合并 path 里连续的斜杠；scheme、host、query、fragment 原样保留"""
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    path = "/".join(segments)
    if parts.path.startswith("/"):
        path = "/" + path
    if parts.path.endswith("/") and segments:
        path += "/"
    return urlunsplit(parts._replace(path=path))


def build_url(base_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    base_url + path，再附加过滤后的查询参数：
    - build_url("http://h:8080/", "/api/events", {"limit": 200})
      -> "http://h:8080/api/events?limit=200"
    """
    url = _clean_url(base_url.rstrip("/") + "/" + path.lstrip("/"))
    query = urlencode(_normalized_params(params or {}))
    return url + "?" + query if query else url
