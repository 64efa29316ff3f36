"""Logging for GitMind.

Two pieces live here:

- Process logging, configured once from CLI flags:
  - Human mode: [LEVEL] message (colored if TTY)
  - Verbose mode: [LEVEL][HH:MM:SS] message
  - CI/JSON mode: {"level":"...","ts":"...","msg":"...", ...extra}
- StageLog: a bounded, in-memory ring buffer of pipeline transitions and
  failures that callers can inspect after a run. Entries are also forwarded
  to the standard logger.
"""

import json
import logging
import sys
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TextIO

ROOT_LOGGER = "gitmind"
DEFAULT_LOG_CAPACITY = 1000


class LogMode(Enum):
    """Logging output mode."""

    HUMAN = "human"
    VERBOSE = "verbose"
    JSON = "json"


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    GRAY = "\033[90m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.GRAY,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED,
}


def _is_tty(stream: TextIO | None = None) -> bool:
    if stream is None:
        stream = sys.stderr
    return hasattr(stream, "isatty") and stream.isatty()


class _ColorFormatter(logging.Formatter):
    def __init__(self, use_colors: bool = True, timestamps: bool = False) -> None:
        super().__init__()
        self.use_colors = use_colors
        self.timestamps = timestamps

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as [LEVEL] or [LEVEL][HH:MM:SS]."""
        tag = f"[{record.levelname}]"
        if self.use_colors:
            color = LEVEL_COLORS.get(record.levelno, Colors.RESET)
            tag = f"{color}{tag}{Colors.RESET}"
        if self.timestamps:
            stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
            tag = f"{tag}[{stamp}]"
        message = f"{tag} {record.getMessage()}"
        if record.exc_info and self.timestamps:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class HumanFormatter(_ColorFormatter):
    """Format: [LEVEL] message"""

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(use_colors=use_colors, timestamps=False)


class VerboseFormatter(_ColorFormatter):
    """Format: [LEVEL][HH:MM:SS] message (tracebacks included)."""

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(use_colors=use_colors, timestamps=True)


class JSONFormatter(logging.Formatter):
    """Formatter for JSON lines output (machine-readable).

    Format: {"level":"INFO","ts":"2026-01-31T19:45:23+00:00","msg":"..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_entry: dict[str, Any] = {
            "level": record.levelname,
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        return json.dumps(log_entry, default=str)


class GitMindLogger(logging.Logger):
    """Logger with structured logging support."""

    def structured(self, level: int, msg: str, **kwargs: Any) -> None:
        """Log a message with additional structured data.

        The extra fields are emitted as top-level keys in JSON mode and
        ignored by the human formatters.

        Args:
            level: Log level
            msg: Log message
            **kwargs: Additional data to include in JSON output
        """
        if not self.isEnabledFor(level):
            return
        record = self.makeRecord(self.name, level, "(unknown)", 0, msg, (), None)
        if kwargs:
            record.extra_data = kwargs  # type: ignore[attr-defined]
        self.handle(record)


logging.setLoggerClass(GitMindLogger)


def get_logger(name: str = ROOT_LOGGER) -> GitMindLogger:
    """Get a GitMind logger instance."""
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    mode: LogMode = LogMode.HUMAN,
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> None:
    """Configure the ``gitmind`` logger hierarchy.

    Log output goes to stderr by default so that rendered reports on stdout
    stay pipeable.

    Args:
        mode: Output mode (human, verbose, json)
        level: Minimum log level
        stream: Output stream (default: stderr)
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    use_colors = _is_tty(stream)

    if mode == LogMode.JSON:
        formatter: logging.Formatter = JSONFormatter()
    elif mode == LogMode.VERBOSE:
        formatter = VerboseFormatter(use_colors=use_colors)
    else:
        formatter = HumanFormatter(use_colors=use_colors)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def configure_from_cli(verbose: bool = False, quiet: bool = False, ci: bool = False) -> None:
    """Configure logging based on CLI flags.

    Args:
        verbose: Enable verbose mode with timestamps
        quiet: Suppress info messages (warnings and errors only)
        ci: Enable JSON output for CI/CD
    """
    if ci:
        mode = LogMode.JSON
    elif verbose:
        mode = LogMode.VERBOSE
    else:
        mode = LogMode.HUMAN

    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    setup_logging(mode=mode, level=level)


# =============================================================================
# Stage log
# =============================================================================


@dataclass(frozen=True)
class LogEntry:
    """One pipeline log record.

    Attributes:
        timestamp: UTC time the entry was recorded
        run_id: Run the entry belongs to (0 for entries outside a run)
        stage: Pipeline stage name at the time of the entry
        level: Standard logging level
        message: Human-readable message
        error_kind: Classified error kind value, for failures
    """

    timestamp: datetime
    run_id: int
    stage: str
    level: int
    message: str
    error_kind: str | None = None

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "run_id": self.run_id,
            "stage": self.stage,
            "level": self.level_name,
            "message": self.message,
            "error_kind": self.error_kind,
        }


class StageLog:
    """Bounded ring buffer of pipeline log entries.

    When full, the oldest entry is dropped. The buffer is observational: the
    pipeline writes to it but never reads from it to make decisions.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_LOG_CAPACITY,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive (got {capacity})")
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._logger = logger or get_logger(f"{ROOT_LOGGER}.pipeline")
        self._clock = clock or (lambda: datetime.now(UTC))

    def record(
        self,
        run_id: int,
        stage: str,
        message: str,
        level: int = logging.INFO,
        error_kind: str | None = None,
    ) -> LogEntry:
        """Append an entry and forward it to the process logger."""
        entry = LogEntry(
            timestamp=self._clock(),
            run_id=run_id,
            stage=stage,
            level=level,
            message=message,
            error_kind=error_kind,
        )
        self._entries.append(entry)

        if isinstance(self._logger, GitMindLogger):
            self._logger.structured(
                level,
                f"[run {run_id}] {stage}: {message}",
                run_id=run_id,
                stage=stage,
                error_kind=error_kind,
            )
        else:
            self._logger.log(level, "[run %d] %s: %s", run_id, stage, message)
        return entry

    def entries(self, run_id: int | None = None) -> list[LogEntry]:
        """Return entries oldest first, optionally for a single run."""
        if run_id is None:
            return list(self._entries)
        return [e for e in self._entries if e.run_id == run_id]

    def errors(self) -> list[LogEntry]:
        return [e for e in self._entries if e.level >= logging.ERROR]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
