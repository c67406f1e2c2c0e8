"""
配置管理模組
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any

from .errors import ConfigError


CONFIG_DIR = Path.home() / ".jira-time-logger"
CONFIG_FILE = CONFIG_DIR / "config.json"

URL_REGEX = re.compile(r"^https?://.+$")

# 設定檔的 section/key -> dataclass 欄位
FILE_KEYS = {
    "jira": {
        "urlBase": "url_base",
        "urlApi": "url_api",
        "username": "username",
        "password": "password",
        "mainTaskCloseTransition": "main_task_close_transition",
        "subTaskCloseTransition": "sub_task_close_transition",
        "subTaskTypeExclusions": "sub_task_type_exclusions",
    },
    "jtl": {
        "maxLogs": "max_logs",
    },
}
REQUIRED_KEYS = ("url_base", "url_api", "username", "password")


@dataclass
class Config:
    """應用程式配置"""
    url_base: str = ""                              # e.g. https://jira.example.com
    url_api: str = "/rest/api/2/"
    username: str = ""
    password: str = ""                              # 檔案中以 base64 儲存
    main_task_close_transition: str = "Resolve Issue"
    sub_task_close_transition: str = "Close Issue"
    sub_task_type_exclusions: list[str] = field(default_factory=list)
    max_logs: int = 50                              # activity log 保留筆數

    def __post_init__(self):
        if isinstance(self.sub_task_type_exclusions, str):
            self.sub_task_type_exclusions = split_list(self.sub_task_type_exclusions)
        self.validate()

    def validate(self):
        """檢查欄位型別與格式，錯誤時拋出 ConfigError"""
        for name in ("url_base", "url_api", "username", "password",
                     "main_task_close_transition", "sub_task_close_transition"):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string")
        if self.url_base and not URL_REGEX.match(self.url_base):
            raise ConfigError(f"'{self.url_base}' does not appear to be a valid URL (make sure it starts http(s))")
        if not isinstance(self.sub_task_type_exclusions, list) or not all(
            isinstance(t, str) for t in self.sub_task_type_exclusions
        ):
            raise ConfigError("sub_task_type_exclusions must be a list of strings")
        if isinstance(self.max_logs, bool) or not isinstance(self.max_logs, int) or self.max_logs < 1:
            raise ConfigError("max_logs must be a positive integer")

    @classmethod
    def load(cls, path: Path = None) -> "Config":
        """載入配置（缺少的項目使用預設值）"""
        path = path or CONFIG_FILE
        if not path.exists():
            return cls()
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        values = {}
        for section, keys in FILE_KEYS.items():
            section_data = data.get(section) or {}
            if not isinstance(section_data, dict):
                raise ConfigError(f"Section '{section}' in config file {path} must be a JSON object")
            for file_key, attr in keys.items():
                if file_key in section_data:
                    values[attr] = section_data[file_key]
        if "password" in values:
            values["password"] = _decode_password(values["password"])
        return cls(**values)

    def save(self, path: Path = None):
        """儲存配置"""
        self.validate()
        path = path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        values = asdict(self)
        values["password"] = base64.b64encode(self.password.encode()).decode()
        data = {
            section: {file_key: values[attr] for file_key, attr in keys.items()}
            for section, keys in FILE_KEYS.items()
        }
        with open(path, 'w') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        # 設定檔案權限為僅擁有者可讀寫
        path.chmod(0o600)

    def get(self, key: str, section: str = "jira") -> Any:
        """以設定檔名稱 (urlBase) 或欄位名稱 (url_base) 取得設定"""
        return getattr(self, _attr_name(key, section))

    def set(self, key: str, value: Any, section: str = "jira"):
        attr = _attr_name(key, section)
        if attr == "sub_task_type_exclusions" and isinstance(value, str):
            value = split_list(value)
        setattr(self, attr, value)

    def ready(self) -> bool:
        """檢查必要項目是否都已設定"""
        return all(getattr(self, name) for name in REQUIRED_KEYS)

    def validate_credentials(self) -> list[str]:
        """setup 用的檢查，回傳給使用者看的錯誤訊息"""
        errors = []
        if not URL_REGEX.match(self.url_base or ""):
            errors.append(f"'{self.url_base}' does not appear to be a valid URL (make sure it starts http(s))")
        if not self.username:
            errors.append("Username cannot be blank")
        if not self.password:
            errors.append("Password cannot be blank")
        return errors


def split_list(value: str) -> list[str]:
    """將 "a, b,c" 轉為 ["a", "b", "c"]"""
    return [part.strip() for part in value.split(",") if part.strip()]


def _attr_name(key: str, section: str) -> str:
    keys = FILE_KEYS.get(section)
    if keys is None:
        raise KeyError(f"Unknown config requested: {section}:{key}")
    if key in keys:
        return keys[key]
    if key in keys.values():
        return key
    raise KeyError(f"Unknown config requested: {section}:{key}")


def _decode_password(value: str) -> str:
    if not isinstance(value, str):
        raise ConfigError("password must be a string")
    try:
        return base64.b64decode(value.encode(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ConfigError("password in config file is not valid base64") from e

