import logging
import os
from logging.handlers import TimedRotatingFileHandler

# 全局默认级别：可通过 FEED_LOG_LEVEL 覆盖（DEBUG / INFO / WARNING ...）
_DEFAULT_LEVEL = getattr(logging, os.getenv("FEED_LOG_LEVEL", "INFO").upper(), logging.INFO)

_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)s | "
    "[%(filename)s:%(lineno)d %(funcName)s] | %(message)s"
)


class BaseLogger:
    """
    feed 组件通用日志器：
    - 控制台输出 + 可选按天轮转文件
    - 组合使用：self._log = BaseLogger(name="StreamConnection")
    - 同名 logger 只挂一次 handler，多实例共享
    """

    def __init__(
        self,
        name: str = "feed",
        level: int | None = None,
        to_file: bool = False,
        file_path: str | None = None,
        file_level: int = logging.WARNING,
    ):
        """
        :param name: logger 名称（建议用组件类名）
        :param level: 控制台级别，缺省取 FEED_LOG_LEVEL
        :param to_file: 是否同时写文件
        :param file_path: 日志文件路径，缺省为 <项目根>/logs/<name>.log
        :param file_level: 文件日志最低级别（默认只落 WARNING 及以上）
        """
        level = _DEFAULT_LEVEL if level is None else level

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        if not self.logger.handlers:
            formatter = logging.Formatter(_FORMAT)

            ch = logging.StreamHandler()
            ch.setLevel(level)
            ch.setFormatter(formatter)
            self.logger.addHandler(ch)

            if to_file:
                if file_path is None:
                    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
                    log_dir = os.path.join(project_root, "logs")
                    os.makedirs(log_dir, exist_ok=True)
                    file_path = os.path.join(log_dir, f"{name}.log")

                fh = TimedRotatingFileHandler(
                    filename=file_path,
                    when="midnight",
                    interval=1,
                    backupCount=7,
                    encoding="utf-8",
                )
                fh.setLevel(file_level)
                fh.setFormatter(formatter)
                self.logger.addHandler(fh)

    # ------------------ 对外日志接口 ------------------

    def log_info(self, message: str, exc_info: bool = False):
        self.logger.info(message, exc_info=exc_info)

    def log_warning(self, message: str, exc_info: bool = False):
        self.logger.warning(message, exc_info=exc_info)

    def log_error(self, message: str, exc_info: bool = True):
        """记录 ERROR（默认带异常堆栈）"""
        self.logger.error(message, exc_info=exc_info)

    def log_debug(self, message: str, exc_info: bool = False):
        # 高频路径（逐帧丢弃）
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(message, exc_info=exc_info)
