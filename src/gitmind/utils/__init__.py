"""Utility modules for GitMind."""

from gitmind.utils.logging import LogEntry, LogMode, StageLog, get_logger, setup_logging

__all__ = ["LogEntry", "LogMode", "StageLog", "get_logger", "setup_logging"]
