"""
Logging Utilities

Console logging for the learning engine. Each line carries a component icon
picked from the module that logged it, so session, engine and orchestrator
traffic can be told apart at a glance. StructuredLogger appends a key=value
payload to the message.
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

RESET = '\033[0m'
BOLD = '\033[1m'
DIM = '\033[90m'

LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}

LEVEL_ICONS = {
    'DEBUG': '🔍',
    'INFO': 'ℹ️',
    'WARNING': '⚠️',
    'ERROR': '❌',
    'CRITICAL': '🚨',
}

# Keyed by the module name, i.e. the last segment of the logger name
COMPONENT_ICONS = {
    'session_manager': '💾',
    'session_repository': '🗄️',
    'session_sweeper': '🧹',
    'personalization_engine': '🎯',
    'learning_orchestrator': '🎓',
    'chat_responder': '💬',
    'user_profile_manager': '👤',
    'runtime': '⚙️',
}

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ('asyncio', 'httpx', 'httpcore', 'hpack', 'postgrest')


class ColoredFormatter(logging.Formatter):
    """`[HH:MM:SS.mmm] icon LEVEL logger | message`, colored on a tty."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.rsplit('.', 1)[-1]
        icon = COMPONENT_ICONS.get(component) or LEVEL_ICONS.get(record.levelname, '•')
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = self._paint(f"{record.levelname:8s}", LEVEL_COLORS.get(record.levelname, RESET))

        line = (
            f"{self._paint(f'[{clock}]', DIM)} {icon} {level} "
            f"{self._paint(record.name, BOLD)} | {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger.

    `logger.info("Session started", {"user": "u1"})` renders as
    `Session started | user=u1`.
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def _emit(self, level: int, message: str, data: Optional[Dict[str, Any]], **kwargs):
        if data:
            payload = " ".join(f"{key}={value}" for key, value in data.items())
            message = f"{message} | {payload}"
        self.logger.log(level, message, **kwargs)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.DEBUG, message, data)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.INFO, message, data)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.INFO, f"✅ {message}", data)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._emit(logging.WARNING, message, data)

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        if error is not None:
            message = f"{message} Error: {type(error).__name__}: {error}"
        self._emit(logging.ERROR, message, data, exc_info=error)


def setup_logging(level: int = logging.INFO, use_colors: bool = True) -> logging.Logger:
    """Replace the root handlers with one colored stdout handler."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
