# ────────────────────────────────────────────────────────────────
# 模块用途：引导拉取 BootstrapClient（阻塞式 requests，一次性）
# 说明：
#   - GET {events_path}?limit=N → 最近事件数组（wrapped / raw 均可）
#   - GET {signals_path}        → 快照 JSON（camelCase 子表）
#   - 非 2xx / 网络错误 / JSON 非法，一律包装为 BootstrapError
#   - 阻塞调用，FeedSession 会放到 run_in_executor 里执行
# ────────────────────────────────────────────────────────────────
from __future__ import annotations

from typing import Any, List, Optional

import requests

from commons.base_logger import BaseLogger
from tools.request_utils import build_url
from tools.retry_on_exception import retry_on_exception

from .envelope_normalizer import normalize
from .errors import BootstrapError
from .models import EventEnvelope
from .setting import FeedConfig
from .snapshot import Snapshot


class BootstrapClient:
    def __init__(self, config: FeedConfig, session: Optional[requests.Session] = None, retry_delay: float = 0.5):
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        self._retry_delay = retry_delay
        self._log = BaseLogger(name="BootstrapClient")

    def close(self) -> None:
        self._session.close()

    # === 对外接口 ===

    def fetch_events(self, limit: Optional[int] = None) -> List[EventEnvelope]:
        """最近事件（旧 -> 新）；无法规范化的条目跳过"""
        limit = self._config.bootstrap_limit if limit is None else limit
        url = build_url(self._config.base_url, self._config.events_path, {"limit": limit})
        body = self._get_json(url)
        if not isinstance(body, list):
            raise BootstrapError(f"expected a JSON array from {url}, got {type(body).__name__}")

        envelopes = [env for env in (normalize(item) for item in body) if env is not None]
        skipped = len(body) - len(envelopes)
        if skipped:
            self._log.log_warning(f"bootstrap events: skipped {skipped} malformed item(s)")
        self._log.log_info(f"bootstrap events: {len(envelopes)} loaded")
        return envelopes

    def fetch_signals(self) -> Snapshot:
        url = build_url(self._config.base_url, self._config.signals_path)
        body = self._get_json(url)
        if not isinstance(body, dict):
            raise BootstrapError(f"expected a JSON object from {url}, got {type(body).__name__}")
        return Snapshot.from_dict(body)

    # === 内部 ===

    def _get_json(self, url: str) -> Any:
        fetch = retry_on_exception(
            retries=self._config.bootstrap_retries,
            delay=self._retry_delay,
            exceptions=(requests.ConnectionError, requests.Timeout),
        )(self._request)
        try:
            resp = fetch(url)
        except requests.RequestException as e:
            raise BootstrapError(f"GET {url} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise BootstrapError(f"GET {url} returned HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise BootstrapError(f"GET {url} returned malformed JSON") from e

    def _request(self, url: str) -> requests.Response:
        self._log.log_debug(f"GET {url}")
        return self._session.get(url, timeout=self._config.request_timeout_sec)
