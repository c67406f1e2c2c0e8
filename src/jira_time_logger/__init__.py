"""Jira Time Logger - Track elapsed time and log it as Jira work-logs."""

__version__ = "1.0.0"

from .activity import ActivityLog
from .clock import Clock
from .config import Config
from .context import AppContext
from .duration import Duration, format_duration, parse_issue_key, parse_phrase
from .errors import (
    ConfigError, LookupFailure, ParseError, SubmissionFailure, TransportFailure, ValidationError,
)
from .jira_api import IssueTypeFilter, JiraClient
from .workflow import TimeLogger

__all__ = [
    "ActivityLog",
    "AppContext",
    "Clock",
    "Config",
    "ConfigError",
    "Duration",
    "IssueTypeFilter",
    "JiraClient",
    "LookupFailure",
    "ParseError",
    "SubmissionFailure",
    "TimeLogger",
    "TransportFailure",
    "ValidationError",
    "format_duration",
    "parse_issue_key",
    "parse_phrase",
]
