"""
Jira REST API 整合模組

支援:
- Jira Basic Auth (username:password)
- Issue 查詢、parent / sub-task 解析、sub-task 建立
- Worklog 建立
- Transition 查詢與執行（每個 session 依專案快取）
- Issue 類型清單（每個 session 快取一次）

所有操作都是同步的單次 HTTP 請求，預期中的失敗一律回傳 None / False，
不會把 requests 的例外往上拋。
"""

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional

import requests

from .duration import project_prefix
from .errors import TransportFailure

logger = logging.getLogger(__name__)

# 網路請求預設 timeout（秒）
DEFAULT_TIMEOUT = 8

URL_SERVER_INFO = "serverInfo"
URL_CREATE_ISSUE = "issue"
URL_GET_ISSUE = "issue/{issue}"
URL_LOG_WORK = "issue/{issue}/worklog"
URL_ISSUE_TYPES = "issuetype"
URL_TRANSITION = "issue/{issue}/transitions"


class IssueTypeFilter(IntEnum):
    """fetch_issue_types 的篩選模式"""
    NO_SUBTASKS = 0
    SUBTASKS_ONLY = 1
    ALL = 2


@dataclass
class IssueTypeCatalog:
    """Issue 類型清單（type ID -> 名稱），分成三種檢視"""
    issue_types: dict[str, str] = field(default_factory=dict)
    subtask_types: dict[str, str] = field(default_factory=dict)
    all_types: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: list[dict], exclusions: list[str]) -> "IssueTypeCatalog":
        catalog = cls()
        for item in data:
            type_id = str(item["id"])
            name = item["name"]
            if item.get("subtask"):
                if name in exclusions:
                    continue
                catalog.subtask_types[type_id] = name
            else:
                catalog.issue_types[type_id] = name
            catalog.all_types[type_id] = name
        return catalog

    def view(self, mode: IssueTypeFilter) -> dict[str, str]:
        if mode == IssueTypeFilter.NO_SUBTASKS:
            return dict(self.issue_types)
        if mode == IssueTypeFilter.SUBTASKS_ONLY:
            return dict(self.subtask_types)
        return dict(self.all_types)


def format_jira_datetime(dt: datetime) -> str:
    """格式化時間為 Jira 接受的格式: 2025-12-31T09:00:00.000+0000"""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}+0000"


class JiraClient:
    """Jira REST API 客戶端"""

    def __init__(self, base_url: str, username: str, password: str,
                 api_path: str = "/rest/api/2/", subtask_exclusions: Optional[list[str]] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        """
        初始化 Jira 客戶端

        Args:
            base_url: Jira URL (e.g., https://jira.example.com)
            username: Jira 使用者名稱
            password: Jira 密碼
            api_path: REST API 路徑
            subtask_exclusions: 不列入 sub-task 類型的名稱
            timeout: 請求逾時（秒）
        """
        self.base_url = base_url.rstrip('/')
        self.api_path = "/" + api_path.strip('/') + "/" if api_path.strip('/') else "/"
        self.subtask_exclusions = list(subtask_exclusions or [])
        self.timeout = timeout

        self._issue_types: Optional[IssueTypeCatalog] = None
        self._transitions: dict[str, str] = {}

        auth_string = base64.b64encode(f"{username}:{password}".encode()).decode()
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Basic {auth_string}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @classmethod
    def from_config(cls, config) -> "JiraClient":
        return cls(
            base_url=config.url_base,
            username=config.username,
            password=config.password,
            api_path=config.url_api,
            subtask_exclusions=config.sub_task_type_exclusions,
        )

    def url(self, slug: str) -> str:
        return self.base_url + self.api_path + slug.lstrip('/')

    # ----- Operations -----
    def test_connection(self) -> bool:
        """測試連接"""
        try:
            self._request("GET", URL_SERVER_INFO)
        except TransportFailure as e:
            logger.warning("Connection to JIRA failed: %s", e)
            return False
        return True

    def get_issue_summary(self, issue_key: str) -> Optional[dict]:
        """獲取 issue 摘要 ({key, fields: {summary, description}})"""
        _check_str(issue_key, "issue_key")
        try:
            return self._request(
                "GET", URL_GET_ISSUE.format(issue=issue_key),
                params={"fields": "summary,description"},
            )
        except TransportFailure as e:
            logger.warning("Could not fetch summary of %s: %s", issue_key, e)
            return None

    def get_parent(self, issue_key: str) -> Optional[dict]:
        """取得 sub-task 的 parent issue，不是 sub-task 時回傳 None"""
        _check_str(issue_key, "issue_key")
        try:
            data = self._request("GET", URL_GET_ISSUE.format(issue=issue_key))
            return data["fields"].get("parent") or None
        except TransportFailure as e:
            logger.warning("Could not fetch parent of %s: %s", issue_key, e)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning("Unexpected issue response for %s: %r", issue_key, e)
        return None

    def get_issue_subtask(self, issue_key: str, subtask_type: str) -> Optional[str]:
        """取得 issue 底下指定類型的 sub-task key"""
        _check_str(issue_key, "issue_key")
        _check_str(subtask_type, "subtask_type")
        try:
            data = self._request(
                "GET", URL_GET_ISSUE.format(issue=issue_key), params={"expand": "subtasks"}
            )
            for subtask in data["fields"].get("subtasks") or []:
                if subtask["fields"]["issuetype"]["name"] == subtask_type:
                    return subtask["key"]
        except TransportFailure as e:
            logger.warning("Could not fetch sub-tasks of %s: %s", issue_key, e)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning("Unexpected sub-task response for %s: %r", issue_key, e)
        return None

    def create_subtask(self, issue_key: str, subtask_type: str) -> Optional[str]:
        """在 issue 底下建立 sub-task，回傳新的 key"""
        _check_str(issue_key, "issue_key")
        _check_str(subtask_type, "subtask_type")
        payload = {
            "fields": {
                "project": {"key": project_prefix(issue_key)},
                "parent": {"key": issue_key},
                "summary": f"{subtask_type} {issue_key}",
                "description": f"{subtask_type} {issue_key}",
                "issuetype": {"name": subtask_type},
            }
        }
        try:
            data = self._request("POST", URL_CREATE_ISSUE, payload=payload)
            return data.get("key") or None
        except TransportFailure as e:
            logger.warning("Could not create %s sub-task of %s: %s", subtask_type, issue_key, e)
        except AttributeError as e:
            logger.warning("Unexpected create response for %s: %r", issue_key, e)
        return None

    def log_time(self, time: str, issue_key: str, description: Optional[str] = None,
                 started: Optional[datetime] = None) -> Optional[str]:
        """
        添加 worklog 到 Jira issue

        Args:
            time: Jira 時間片語 (1d 1h 1m)
            issue_key: Issue key
            description: 工作描述（可選）
            started: 開始時間，預設為現在

        Returns:
            新的 worklog ID，失敗時回傳 None
        """
        _check_str(time, "time")
        _check_str(issue_key, "issue_key")
        payload = {
            "comment": description or "",
            "started": format_jira_datetime(started or datetime.now(timezone.utc)),
            "timeSpent": time,
        }
        try:
            data = self._request("POST", URL_LOG_WORK.format(issue=issue_key), payload=payload)
            worklog_id = data.get("id")
            return str(worklog_id) if worklog_id else None
        except TransportFailure as e:
            logger.warning("Could not log %s against %s: %s", time, issue_key, e)
        except AttributeError as e:
            logger.warning("Unexpected worklog response for %s: %r", issue_key, e)
        return None

    def get_transition_id(self, issue_key: str, transition: str) -> Optional[str]:
        """取得 transition ID（依專案前綴 + 名稱快取）"""
        _check_str(issue_key, "issue_key")
        _check_str(transition, "transition")
        # Transition 通常是專案層級的設定
        cache_key = f"{project_prefix(issue_key)}:{transition}"
        if cache_key in self._transitions:
            return self._transitions[cache_key]

        try:
            data = self._request("GET", URL_TRANSITION.format(issue=issue_key))
            for item in data.get("transitions") or []:
                if item["name"] == transition:
                    self._transitions[cache_key] = str(item["id"])
                    return self._transitions[cache_key]
        except TransportFailure as e:
            logger.warning("Could not fetch transitions of %s: %s", issue_key, e)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning("Unexpected transitions response for %s: %r", issue_key, e)
        return None

    def transition_issue(self, issue_key: str, transition_id: str) -> bool:
        """執行 transition"""
        _check_str(issue_key, "issue_key")
        payload = {"transition": {"id": str(transition_id)}}
        try:
            self._request(
                "POST", URL_TRANSITION.format(issue=issue_key), payload=payload, expect_json=False
            )
        except TransportFailure as e:
            logger.warning("Could not transition %s: %s", issue_key, e)
            return False
        return True

    def fetch_issue_types(self, mode: IssueTypeFilter = IssueTypeFilter.SUBTASKS_ONLY) -> Optional[dict[str, str]]:
        """
        取得 issue 類型（第一次呼叫時向 Jira 查詢並快取）

        Args:
            mode: IssueTypeFilter

        Returns:
            {type_id: type_name}，失敗時回傳 None
        """
        mode = IssueTypeFilter(mode)
        if self._issue_types is None:
            try:
                data = self._request("GET", URL_ISSUE_TYPES)
                if not data:
                    return None
                self._issue_types = IssueTypeCatalog.from_response(data, self.subtask_exclusions)
            except TransportFailure as e:
                logger.warning("Could not fetch issue types: %s", e)
                return None
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Unexpected issue types response: %r", e)
                return None
        return self._issue_types.view(mode)

    def get_subtask_types(self) -> Optional[dict[str, str]]:
        return self.fetch_issue_types(IssueTypeFilter.SUBTASKS_ONLY)

    # ----- Transport -----
    def _request(self, method: str, slug: str, payload: Optional[dict] = None,
                 params: Optional[dict] = None, expect_json: bool = True) -> Any:
        """送出請求，任何傳輸層錯誤都轉成 TransportFailure"""
        url = self.url(slug)
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(
                method, url, json=payload, params=params, timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransportFailure(f"HTTP {status} from {method} {url}", status_code=status) from e
        except requests.exceptions.RequestException as e:
            raise TransportFailure(f"{method} {url} failed: {e}") from e

        if not expect_json:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportFailure(f"Malformed JSON from {method} {url}") from e


def _check_str(value, name: str):
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
