"""
Foundation Logging
==================

Root logger setup for the governance contract: a `rich` console handler
with governance-aware highlighting, an optional rotating log file, and
sanitized output for caller-supplied text.

Usage:
    >>> from foundation.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Contract instantiated")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "foundation.log"

_FORMAT_KEY_RE = re.compile(r"\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]")
_DATE_FORMAT_RE = re.compile(
    r"^(?=.*%(?!%)(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z]))"
    r"(?:%%|%(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z])|[0-9 \t:\-\/\.,TZ+])+$"
)

FOUNDATION_THEME = Theme(
    {
        "foundation.address":        "cyan",
        "foundation.arrow":          "bold yellow",
        "foundation.level_critical": "bold red reverse",
        "foundation.level_debug":    "bold dim",
        "foundation.level_error":    "bold red",
        "foundation.level_info":     "bold green",
        "foundation.level_warning":  "bold yellow",
        "foundation.logger_name":    "magenta",
        "foundation.proposal_id":    "bold white",
        "foundation.status_bad":     "bold red",
        "foundation.status_good":    "bold green",
        "foundation.status_open":    "bold yellow",
        "foundation.tag":            "bold magenta",
        "foundation.timestamp":      "bold cyan",
    }
)


def _fallback(name: str, default: str) -> str:
    # logging is not configured yet, so report straight to stderr
    print(f"foundation.logger - invalid {name}, using default", file=sys.stderr)
    return default


class LogManager:
    """Process-wide logging setup, applied once unless forced."""

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """Return *log_format* if every %(key)s renders, else the default."""
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default
        log_format = str(log_format)
        for match in _FORMAT_KEY_RE.finditer(log_format):
            if match.start() == 0 or log_format[match.start() - 1] != "%":
                return _fallback("log format", default)
        record = logging.LogRecord("foundation", logging.INFO, "", 0, "check", (), None)
        try:
            rendered = logging.Formatter(fmt=log_format).format(record)
        except (ValueError, KeyError, TypeError):
            return _fallback("log format", default)
        if _FORMAT_KEY_RE.search(rendered):
            return _fallback("log format", default)
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default
        if not _DATE_FORMAT_RE.match(str(date_format)):
            return _fallback("date format", default)
        return str(date_format)

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        """
        Install console and file handlers on the root logger.

        Level, highlighting and file output default to the `.env` settings.
        A second call is a no-op unless *force* is set.
        """
        with self._lock:
            if self._configured and not force:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root_logger = logging.getLogger()
            root_logger.setLevel(level)
            root_logger.handlers.clear()

            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output and LOG_CONSOLE_HIGHLIGHTING:
                handlers.append(RichHandler(
                    console=Console(theme=FOUNDATION_THEME, highlight=False),
                    highlighter=FoundationLogHighlighter(),
                    keywords=[],
                    rich_tracebacks=True,
                    show_path=False,
                    show_time=False,
                    show_level=False,
                    markup=False,
                ))
            elif console_output:
                handlers.append(logging.StreamHandler(sys.stdout))

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root_logger.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escape sequences and control characters from every record.

    Proposal titles, descriptions and addresses are caller-supplied (CWE-117).
    """

    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # tab and newline survive
    _control_chars_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_chars_re.sub("", cls._ansi_escape_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class FoundationLogHighlighter(RegexHighlighter):
    """Colors addresses, proposal ids, lifecycle statuses and log levels."""

    base_style = "foundation."
    highlights = [
        r"(?P<address>\b[a-z]+1[0-9a-z]{20,}\b)",
        r"(?P<arrow>(\-\->)|(<--)|(→))",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<proposal_id>#\d+)",
        r"(?P<status_good>\b(PASSED|EXECUTED)\b)",
        r"(?P<status_bad>\bREJECTED\b)",
        r"(?P<status_open>\bOPEN\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger, configuring the root logger on first use."""
    return _manager.get_logger(name)


_manager.configure()
