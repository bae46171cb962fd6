import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from app.config import settings

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'

# Libraries that log every query / request at DEBUG
QUIET_LOGGERS = ("uvicorn.access", "asyncpg", "httpcore", "httpx")


class ParticipantFormatter(logging.Formatter):
    """
    Console formatter: coloured level names, and the ``context`` dict passed
    through ``extra={"context": ...}`` appended as key=value pairs.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        self.use_colors = use_colors

    def format(self, record):
        levelname = record.levelname
        if self.use_colors and levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            message = super().format(record)
        finally:
            record.levelname = levelname

        context = getattr(record, 'context', None)
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items() if k != "timestamp")
            message = f"{message} | {pairs}"
        return message


def setup_logging():
    """Configure the root logger once at startup"""

    level = logging.DEBUG if settings.debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ParticipantFormatter(use_colors=sys.stdout.isatty()))
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_request_context(
    user_id: Optional[str] = None,
    event_id: Optional[str] = None,
    flow_id: Optional[str] = None
) -> Dict[str, Any]:
    """Context attached to error logs; user ids are truncated"""
    context = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if user_id:
        context["user_id"] = str(user_id)[:8] + "..."

    if event_id:
        context["event_id"] = str(event_id)

    if flow_id:
        context["flow_id"] = str(flow_id)[:8] + "..."

    return context
