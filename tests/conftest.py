"""Pytest configuration and fixtures."""

import pytest
from unittest.mock import MagicMock, patch

from jira_time_logger.activity import ActivityLog
from jira_time_logger.clock import Clock
from jira_time_logger.config import Config
from jira_time_logger.workflow import TimeLogger


@pytest.fixture
def temp_config_file(tmp_path, monkeypatch):
    """Point the config module at a temporary config file."""
    config_file = tmp_path / ".jira-time-logger" / "config.json"
    monkeypatch.setattr("jira_time_logger.config.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def sample_config():
    """A fully configured Config."""
    return Config(
        url_base="https://jira.example.com",
        url_api="/rest/api/2/",
        username="tester",
        password="secret",
        main_task_close_transition="Resolve Issue",
        sub_task_close_transition="Close Issue",
        sub_task_type_exclusions=["Bug Fix"],
    )


@pytest.fixture
def sample_config_file_data():
    """Config file contents as written by Config.save()."""
    return {
        "jira": {
            "urlBase": "https://jira.example.com",
            "urlApi": "/rest/api/2/",
            "username": "tester",
            "password": "c2VjcmV0",
            "mainTaskCloseTransition": "Resolve Issue",
            "subTaskCloseTransition": "Close Issue",
            "subTaskTypeExclusions": ["Bug Fix"],
        },
        "jtl": {"maxLogs": 20},
    }


@pytest.fixture
def mock_issue_response():
    """Mock Jira issue response."""
    return {
        "key": "ABC-1",
        "fields": {
            "summary": "Implement the login page",
            "description": "Login page with SSO",
        }
    }


@pytest.fixture
def mock_issue_types_response():
    """Mock Jira issuetype response."""
    return [
        {"id": "1", "name": "Bug", "subtask": False},
        {"id": "3", "name": "Task", "subtask": False},
        {"id": "5", "name": "Triaging", "subtask": True},
        {"id": "6", "name": "Development", "subtask": True},
        {"id": "7", "name": "Bug Fix", "subtask": True},
    ]


@pytest.fixture
def mock_requests_session():
    """Mock requests session for API testing."""
    with patch("requests.Session") as mock_session:
        mock_instance = MagicMock()
        mock_session.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def mock_jira():
    """JiraClient stand-in for workflow tests."""
    jira = MagicMock()
    jira.get_parent.return_value = None
    jira.get_issue_subtask.return_value = None
    jira.create_subtask.return_value = "ABC-2"
    jira.log_time.return_value = "10001"
    jira.get_transition_id.return_value = "5"
    jira.transition_issue.return_value = True
    jira.get_issue_summary.return_value = {
        "key": "ABC-1",
        "fields": {"summary": "Implement the login page"},
    }
    return jira


@pytest.fixture
def activity():
    return ActivityLog(max_logs=50)


@pytest.fixture
def time_logger(mock_jira, sample_config, activity):
    """TimeLogger wired to a mocked Jira client."""
    return TimeLogger(mock_jira, sample_config, Clock(), activity)
