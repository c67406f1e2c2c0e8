"""
Activity log - 給使用者看的操作紀錄
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

logger = logging.getLogger(__name__)

LOG_INFO = "INFO"
LOG_WARN = "WARN"
LOG_ERROR = "ERROR"

_LOGGING_LEVELS = {
    LOG_INFO: logging.INFO,
    LOG_WARN: logging.WARNING,
    LOG_ERROR: logging.ERROR,
}


@dataclass
class ActivityEntry:
    """單筆紀錄"""
    level: str
    message: str
    logged_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"{self.level}: {self.message}"


class ActivityLog:
    """保留最近 max_logs 筆紀錄，並同步寫入 logging"""

    def __init__(self, max_logs: int = 50):
        self.max_logs = max_logs
        self.entries: deque[ActivityEntry] = deque(maxlen=max_logs)
        self._listeners: list[Callable[[ActivityEntry], None]] = []

    def subscribe(self, fn: Callable[[ActivityEntry], None]):
        """註冊顯示用的 callback（例如 CLI 輸出）"""
        self._listeners.append(fn)

    def log(self, message: str, level: str = LOG_INFO) -> ActivityEntry:
        if level not in _LOGGING_LEVELS:
            raise ValueError(f"Unknown activity level: {level}")
        entry = ActivityEntry(level=level, message=message.replace("\n", "; "))
        self.entries.appendleft(entry)
        logger.log(_LOGGING_LEVELS[level], entry.message)
        for listener in self._listeners:
            listener(entry)
        return entry

    def info(self, message: str) -> ActivityEntry:
        return self.log(message, LOG_INFO)

    def warn(self, message: str) -> ActivityEntry:
        return self.log(message, LOG_WARN)

    def error(self, message: str) -> ActivityEntry:
        return self.log(message, LOG_ERROR)

    def latest(self, n: int = 10) -> list[ActivityEntry]:
        """最新的 n 筆（新到舊）"""
        return list(self.entries)[:n]
