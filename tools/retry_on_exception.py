import functools
import time
from typing import Callable, Tuple, Type

import requests

from commons.base_logger import BaseLogger

_log = BaseLogger(name="retry")

RETRYABLE_HTTP_ERRORS: Tuple[Type[BaseException], ...] = (requests.ConnectionError, requests.Timeout)


def retry_on_exception(
    retries: int = 3,
    delay: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_HTTP_ERRORS,
    backoff: float = 1.0,
) -> Callable:
    """
    同步调用的重试装饰器（阻塞 sleep，只放在线程池里跑，例如引导拉取）。

    :param retries: 总尝试次数，<=1 时不重试
    :param delay: 首次重试前等待秒数
    :param exceptions: 触发重试的异常类型，其余异常直接抛出
    :param backoff: 每次重试后等待时间乘以该系数
    """
    attempts = max(1, int(retries))

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= attempts:
                        _log.log_warning(f"{func.__name__} 放弃：{attempt}/{attempts} 次均失败，最后错误 {e!r}")
                        raise
                    _log.log_warning(f"{func.__name__} 第 {attempt}/{attempts} 次失败：{e!r}，{wait:.2f}s 后重试")
                if wait > 0:
                    time.sleep(wait)
                wait *= backoff
                attempt += 1
        return wrapper
    return decorator
