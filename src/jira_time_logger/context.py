"""
應用程式 context - 建立並串接各元件（每個 process 一份，明確傳遞）
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .activity import ActivityLog
from .clock import Clock
from .config import Config
from .jira_api import JiraClient
from .workflow import TimeLogger


@dataclass
class AppContext:
    config: Config
    jira: JiraClient
    clock: Clock
    activity: ActivityLog
    logger: TimeLogger

    @classmethod
    def create(cls, config: Config, confirm_new_day: Optional[Callable[[], bool]] = None,
               jira: Optional[JiraClient] = None, clock: Optional[Clock] = None) -> "AppContext":
        jira = jira or JiraClient.from_config(config)
        clock = clock or Clock()
        activity = ActivityLog(config.max_logs)
        time_logger = TimeLogger(jira, config, clock, activity, confirm_new_day=confirm_new_day)
        return cls(config=config, jira=jira, clock=clock, activity=activity, logger=time_logger)
