"""
Time-logging workflow

串接 JiraClient、碼錶與已登記總時數:

1. 決定要登記的 issue（必要時解析 parent、尋找或建立 sub-task）
2. 建立 worklog
3. （可選）resolve / close issue
4. 更新已登記總時數、重設碼錶

每個 JiraClient 呼叫都在背景執行緒中執行並依序 await，
前一步完成前不會開始下一步。
"""

import asyncio
import logging
from typing import Callable, Optional

from .activity import ActivityLog
from .clock import Clock, ROUND_MINUTE
from .config import Config
from .duration import (
    Duration, format_duration, is_valid_issue_key, is_valid_phrase, parse_issue_key, parse_phrase,
)
from .errors import LookupFailure, SubmissionFailure
from .jira_api import JiraClient

logger = logging.getLogger(__name__)

# 碼錶累積超過這個時數，多半是跨夜沒關
TIME_HOUR_LIMIT = 10
LOG_MAX_SUMMARY_LENGTH = 20


def truncate_summary(summary: str, limit: int = LOG_MAX_SUMMARY_LENGTH) -> str:
    """過長的摘要截斷並加上 ..."""
    if len(summary) > limit:
        return summary[:limit] + "..."
    return summary


class TimeLogger:
    """登記工時的流程"""

    def __init__(self, jira: JiraClient, config: Config, clock: Clock, activity: ActivityLog,
                 confirm_new_day: Optional[Callable[[], bool]] = None):
        """
        初始化

        Args:
            jira: Jira 客戶端
            config: 應用程式配置（唯讀）
            clock: 碼錶
            activity: 使用者訊息輸出
            confirm_new_day: 碼錶看起來跨日時詢問是否一併重設總時數
        """
        self.jira = jira
        self.config = config
        self.clock = clock
        self.activity = activity
        self.confirm_new_day = confirm_new_day
        self.logged_total = Duration()
        self._summaries: dict[str, str] = {}

    # ----- Main flow -----
    async def log_time(self, time: str, issue: str, subtask: Optional[str] = None,
                       close: bool = False, description: Optional[str] = None) -> bool:
        """
        登記工時到 Jira

        Args:
            time: Jira 時間片語 (1d 1h 1m)
            issue: Issue key
            subtask: sub-task 類型，None 表示登記在主 issue
            close: 登記後是否 resolve / close
            description: 工作描述

        Returns:
            worklog 是否建立成功（close 失敗不影響結果）
        """
        duration = parse_phrase(time)

        if not subtask:
            target = issue
            transition = self.config.main_task_close_transition
            worklog_label = issue
        else:
            try:
                parent_issue, target = await self._resolve_subtask(issue, subtask)
            except SubmissionFailure as e:
                self.alert_user(f"Failed to log {time} against {issue}: {e}")
                return False
            transition = self.config.sub_task_close_transition
            worklog_label = f"{subtask} of {parent_issue}"

        worklog_id = await asyncio.to_thread(self.jira.log_time, time, target, description)
        if not worklog_id:
            self.alert_user(f"Failed to log {time} against {issue}: no work log was returned by JIRA!")
            return False

        notification = f"{time} was successfully logged against {worklog_label}"
        if not subtask:
            notification += self._summary_suffix(issue)
        self.activity.info(notification)

        if close:
            await self.resolve_close_issue(target, transition)

        self.add_to_logged_total(duration)
        return True

    async def _resolve_subtask(self, issue: str, subtask: str) -> tuple[str, str]:
        """回傳 (主 issue, sub-task key)，必要時建立 sub-task"""
        parent_issue = issue
        parent = await asyncio.to_thread(self.jira.get_parent, issue)
        if parent:
            parent_issue = parent["key"]
            summary = truncate_summary((parent.get("fields") or {}).get("summary") or "")
            self.activity.info(f"{issue} is a sub-task of {parent_issue} ({summary})")

        subtask_issue = await asyncio.to_thread(self.jira.get_issue_subtask, parent_issue, subtask)
        if not subtask_issue:
            subtask_issue = await asyncio.to_thread(self.jira.create_subtask, parent_issue, subtask)
            if not subtask_issue:
                raise SubmissionFailure("no subtask key was returned by JIRA!")
            self.activity.info(f"{subtask} sub-task ({subtask_issue}) was created against {parent_issue}")
        return parent_issue, subtask_issue

    async def resolve_close_issue(self, issue: str, transition: str) -> bool:
        """Resolve / close issue，失敗只會警告"""
        try:
            transition_id = await asyncio.to_thread(self.jira.get_transition_id, issue, transition)
            if not transition_id:
                raise LookupFailure(
                    f"Could not find {transition} transition in JIRA!\n"
                    "It's likely that the issue is already resolved/closed."
                )
            if not await asyncio.to_thread(self.jira.transition_issue, issue, transition_id):
                raise LookupFailure(f"Could not resolve/close {issue} in JIRA!")
        except LookupFailure as e:
            self.warn_user(str(e))
            return False

        self.activity.info(f"{issue} was successfully resolved/closed")
        return True

    async def submit(self, issue: str, subtask: Optional[str] = None, close: bool = False,
                     description: Optional[str] = None, manual_time: Optional[str] = None) -> bool:
        """
        送出表單：驗證輸入、登記工時，成功後扣除（手動時間）或重設碼錶

        Args:
            issue: Issue key（不分大小寫）
            subtask: sub-task 類型
            close: 是否 resolve / close
            description: 工作描述
            manual_time: 手動輸入的時間片語，None 表示使用碼錶時間

        Returns:
            是否成功
        """
        errors = []
        if manual_time is not None and not is_valid_phrase(manual_time):
            errors.append(f"'{manual_time}' does not appear to be a valid JIRA time phrase")
        if not is_valid_issue_key((issue or "").strip()):
            errors.append(f"'{issue}' does not appear to be a valid JIRA issue key")
        if errors:
            self.alert_user("\n".join(errors))
            return False

        issue_key = parse_issue_key(issue)
        time = self.time_to_log(manual_time)
        if parse_phrase(time).is_zero():
            self.alert_user(f"There is no time to log against {issue_key}")
            return False
        if not await self.log_time(time, issue_key, subtask, close, description):
            return False

        if manual_time is not None:
            self.deduct_time(time)
        else:
            self.reset_time()
        return True

    # ----- Issue summary -----
    async def lookup_summary(self, issue: str) -> str:
        """取得顯示用的 issue 摘要"""
        issue_key = parse_issue_key(issue)
        data = await asyncio.to_thread(self.jira.get_issue_summary, issue_key)
        summary = ((data or {}).get("fields") or {}).get("summary")
        if not summary:
            return f"{issue_key} not found"
        self._summaries[issue_key] = summary
        return summary

    def _summary_suffix(self, issue: str) -> str:
        summary = self._summaries.get(issue, "")
        if not summary or issue in summary or "..." in summary:
            return ""
        return f" ({truncate_summary(summary)})"

    # ----- Subtask types -----
    async def load_subtask_types(self) -> Optional[dict[str, str]]:
        """取得 sub-task 類型，失敗時提示使用者"""
        types = await asyncio.to_thread(self.jira.get_subtask_types)
        if types is None:
            self.alert_user("Could not load subtask types from JIRA!")
        return types

    # ----- Time -----
    def time_to_log(self, manual_time: Optional[str] = None) -> str:
        """要登記的時間片語（手動時間或四捨五入到分鐘的碼錶時間）"""
        if manual_time is not None:
            return manual_time.strip()
        return format_duration(self.clock.get_time(ROUND_MINUTE))

    def reset_time(self) -> bool:
        """
        重設碼錶

        Returns:
            是否一併重設了已登記總時數
        """
        dropped = self.clock.get_time()
        if self.clock.is_running:
            self.clock.restart()
        else:
            self.clock.reset()
        if dropped.minutes or dropped.hours:
            self.activity.info(f"The accrued time has been reset ({format_duration(dropped)} dropped)")

        # 碼錶跑了一整晚，可能是新的一天
        if dropped.hours >= TIME_HOUR_LIMIT and self.confirm_new_day and self.confirm_new_day():
            self.reset_logged_total()
            return True
        return False

    def deduct_time(self, time: str):
        """從碼錶扣除時間片語"""
        self.clock.deduct(parse_phrase(time))

    def add_to_logged_total(self, duration: Duration):
        self.logged_total.add(Duration(duration.hours, duration.minutes))
        logger.debug("Logged total is now %s", self.logged_total)

    def reset_logged_total(self):
        dropped = self.logged_total
        self.logged_total = Duration()
        if dropped.minutes or dropped.hours:
            self.activity.info(f"The total logged time has been reset ({format_duration(dropped)} dropped)")

    def day_grand_total(self) -> Duration:
        """已登記 + 碼錶上尚未登記的時間"""
        total = Duration(self.logged_total.hours, self.logged_total.minutes)
        unlogged = self.clock.get_time()
        return total.add(Duration(unlogged.hours, unlogged.minutes))

    # ----- User messages -----
    def alert_user(self, message: str):
        self.activity.error(message)

    def warn_user(self, message: str):
        self.activity.warn(message)
