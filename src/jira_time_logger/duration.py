"""
時間長度與 Jira 時間片語轉換

Jira 的時間片語格式: "1d 2h 3m"（1 天 = 24 小時，沒有日曆語意）
"""

import re
from dataclasses import dataclass

from .errors import ParseError, ValidationError

TIME_REGEX = re.compile(r"^([0-9]+[dD] ?)?([0-9]+[hH] ?)?([0-9]+[mM])?$")
# Jira 預設專案 key 上限為 10 字元，管理者可放寬到 255
MAX_PROJECT_KEY_LENGTH = 255
ISSUE_KEY_REGEX = re.compile(r"^[A-Za-z]{1,%d}-[0-9]+$" % MAX_PROJECT_KEY_LENGTH)

HOURS_PER_DAY = 24


@dataclass
class Duration:
    """經過時間（時/分/秒）"""
    hours: int = 0
    minutes: int = 0     # 0..59（運算後）
    seconds: int = 0     # 0..59（運算後）

    def is_zero(self) -> bool:
        return not (self.hours or self.minutes or self.seconds)

    def copy(self) -> "Duration":
        return Duration(self.hours, self.minutes, self.seconds)

    def total_seconds(self) -> int:
        return self.hours * 3600 + self.minutes * 60 + self.seconds

    def add(self, other: "Duration") -> "Duration":
        """加上另一段時間（就地修改），分與秒會進位"""
        carry, self.seconds = divmod(self.seconds + other.seconds, 60)
        carry, self.minutes = divmod(self.minutes + other.minutes + carry, 60)
        self.hours += other.hours + carry
        return self

    def __str__(self) -> str:
        return format_duration(self)


def parse_phrase(text: str) -> Duration:
    """
    將 Jira 時間片語轉為 Duration

    天數換算成小時累加到 hours，分鐘直接對應，不做進位正規化。

    Args:
        text: Jira 時間片語，例如 "1d 2h 3m"

    Returns:
        Duration

    Raises:
        ParseError: 空字串或不符合格式
    """
    if not isinstance(text, str):
        raise TypeError(f"parse_phrase() expects a str, got {type(text).__name__}")

    phrase = text.strip()
    match = TIME_REGEX.match(phrase)
    if not phrase or not match:
        raise ParseError(f"'{text}' does not appear to be a valid JIRA time phrase")

    days, hours, minutes = match.groups()
    duration = Duration()
    if days:
        duration.hours += int(days.rstrip(" dD")) * HOURS_PER_DAY
    if hours:
        duration.hours += int(hours.rstrip(" hH"))
    if minutes:
        duration.minutes += int(minutes.rstrip("mM"))
    return duration


def format_duration(duration: Duration) -> str:
    """Duration 轉為 Jira 時間片語（時數為 0 時省略，分鐘永遠保留）"""
    phrase = ""
    if duration.hours:
        phrase = f"{duration.hours}h "
    return phrase + f"{duration.minutes}m"


def is_valid_phrase(text: str) -> bool:
    """檢查是否為可送出的時間片語"""
    if not text or not text.strip():
        return False
    return TIME_REGEX.match(text.strip()) is not None


def is_valid_issue_key(text: str) -> bool:
    return bool(text) and ISSUE_KEY_REGEX.match(text) is not None


def parse_issue_key(text: str) -> str:
    """驗證 issue key 並轉為大寫"""
    key = (text or "").strip()
    if not is_valid_issue_key(key):
        raise ValidationError(f"'{text}' does not appear to be a valid JIRA issue key")
    return key.upper()


def project_prefix(issue_key: str) -> str:
    """取得 issue key 的專案前綴 (ABC-123 -> ABC)"""
    if not isinstance(issue_key, str):
        raise TypeError(f"issue key must be a str, got {type(issue_key).__name__}")
    return issue_key.split("-", 1)[0]
