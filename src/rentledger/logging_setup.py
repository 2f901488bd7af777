"""Logging configuration for rentledger jobs and commands.

Console output goes to stderr so command output on stdout stays clean.
An optional log file keeps an audit trail of scheduled runs. Level comes
from LOG_LEVEL (default INFO).
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

# Map string level names to logging constants
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_HANDLER_MARK = "_rentledger_handler"


def get_log_level(level_name: Optional[str] = None) -> int:
    """Resolve a level name, falling back to LOG_LEVEL and then INFO."""
    level_str = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return LOG_LEVEL_MAP.get(level_str, logging.INFO)


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger for rentledger.

    Args:
        level: Optional level name, defaults to LOG_LEVEL
        log_file: Optional path of a log file to write as well

    Behavior:
        - Replaces handlers installed by an earlier call, leaves others alone
        - ISO format timestamps: [2025-03-15 14:32:01]
    """
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log_level = get_log_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        root_logger.addHandler(handler)

    # SQLAlchemy engine logging is only useful when debugging queries
    logging.getLogger("sqlalchemy.engine").setLevel(max(log_level, logging.WARNING))
