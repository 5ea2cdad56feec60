"""
Logging setup for the worker process.

Console output goes to stderr (uvicorn owns stdout), colored per level when
stderr is a terminal. A plain copy is written to a dated file under
``log_dir`` so job histories survive restarts.
"""
import logging
import os
import sys
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_COLORS = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31;1m",
}
_RESET = "\x1b[0m"


class ColoredFormatter(logging.Formatter):
    """Wraps each record in the color of its level."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return text
        return f"{color}{text}{_RESET}"


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = "logs") -> None:
    """Install the console handler and, when ``log_dir`` is set, the file handler."""
    root_logger = logging.getLogger()

    # Re-running setup must not duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter(use_color=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"worker_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    # uvicorn installs its own handlers; route everything through the root
    for logger_name in ("fix_worker", "uvicorn", "uvicorn.error", "uvicorn.access", "main"):
        named = logging.getLogger(logger_name)
        named.setLevel(level)
        named.propagate = True
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info("Logging initialized at %s", logging.getLevelName(level))
