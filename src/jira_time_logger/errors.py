"""
錯誤類型

- ValidationError: 時間片語或 issue key 格式錯誤（送出前即拒絕）
- LookupFailure: 預期的實體不存在（可恢復，以警告回報）
- SubmissionFailure: worklog / sub-task 建立未回傳 ID（中止目前操作）
- TransportFailure: 網路、逾時、認證或回應格式錯誤（僅在 JiraClient 內部使用）
- ConfigError: 設定檔內容無效
"""


class TimeLoggerError(Exception):
    """所有錯誤的基底類別"""


class ValidationError(TimeLoggerError):
    """使用者輸入格式錯誤"""


class ParseError(ValidationError):
    """Jira 時間片語無法解析"""


class LookupFailure(TimeLoggerError):
    """找不到預期的實體"""


class SubmissionFailure(TimeLoggerError):
    """Jira 沒有回傳新建立項目的 ID"""


class TransportFailure(TimeLoggerError):
    """與 Jira 溝通失敗"""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(TimeLoggerError):
    """設定值無效"""
