"""
Logging configuration module.

Console + daily log file, shared by the job_engine logger and every
`src.*` module logger:

    {LOG_DIR}/job_engine_YYYYMMDD_<START_HHMMSS>.log
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "job_engine"
PACKAGE_LOGGER_NAME = "src"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Process start time is captured once and reused for all daily logs
_PROCESS_START_TIME: Optional[str] = None


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


def _process_start() -> str:
    global _PROCESS_START_TIME
    if _PROCESS_START_TIME is None:
        _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")
    return _PROCESS_START_TIME


class DailyRotatingFileHandler(logging.FileHandler):
    """
    File handler that switches to a new file when the calendar day changes.

    START_HHMMSS stays fixed for the life of the process; only the date
    part of the name moves.
    """

    def __init__(self, log_dir: str = "logs", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._start_hhmmss = _process_start()
        self._current_date = _today()
        super().__init__(self.path_for(self._current_date), mode='a', encoding=encoding)

    def path_for(self, date_str: str) -> str:
        return str(self.log_dir / f"{LOGGER_NAME}_{date_str}_{self._start_hhmmss}.log")

    def _rollover(self, date_str: str) -> None:
        self.close()
        self.baseFilename = os.path.abspath(self.path_for(date_str))
        self._current_date = date_str
        self.stream = self._open()

    def emit(self, record: logging.LogRecord) -> None:
        today = _today()
        if today != self._current_date:
            self._rollover(today)
        super().emit(record)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Configure console and daily-file logging and return the job_engine logger.

    The job_engine logger does not propagate. The `src` package logger gets
    the same handlers but keeps propagating, so records from engine, gateway
    and API modules also reach root-level handlers (pytest's caplog).
    Calling this again replaces the handlers instead of stacking them.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir (str): Directory for daily log files

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    file_handler = DailyRotatingFileHandler(log_dir=log_dir, encoding='utf-8')
    handlers = [console_handler, file_handler]
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)

    shutdown_logging()

    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    for target in (logger, package_logger):
        target.setLevel(numeric_level)
        target.handlers = list(handlers)

    logger.info(f"Logging started - level: {log_level}, log file: {file_handler.baseFilename}")

    return logger


def shutdown_logging() -> None:
    """Close and detach the handlers installed by setup_logging."""
    seen = set()
    for name in (LOGGER_NAME, PACKAGE_LOGGER_NAME):
        target = logging.getLogger(name)
        for handler in target.handlers:
            if id(handler) not in seen:
                seen.add(id(handler))
                handler.close()
        target.handlers = []
