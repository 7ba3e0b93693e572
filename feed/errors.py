# feed 异常体系
# 说明：核心纯函数（normalize / filter / reduce）对坏输入从不抛异常；
#       以下异常只出现在 I/O 边界（传输、引导拉取、配置）。
from __future__ import annotations


class FeedError(Exception):
    """feed 所有异常的基类"""


class TransportError(FeedError):
    """流式连接失败：非 200 状态、Content-Type 不符、服务端提前结束流等"""


class BootstrapError(FeedError):
    """一次性引导拉取失败（网络错误 / 非 2xx / JSON 非法），属于可恢复错误"""


class ConfigError(FeedError):
    """配置非法（容量 <= 0、退避上下限颠倒等）"""
