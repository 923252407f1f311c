"""
Logging setup for the applicant kiosk.

All loggers live under the ``applicant_kiosk`` namespace. A filter stamps
the current thread name on every record: submissions, notifications and
idle-session timers each run on a named thread, so grepping for
``[Submit-3f9a1c2e]`` or ``[Notify-AFF-20261019-0001]`` follows one
applicant through the log.

Sample output:
    2026-10-19 10:15:31 [INFO    ] [Submit-3f9a1c2e] applicant_kiosk.submission.AFF-20261019-0001 - Uploading PDF
    2026-10-19 10:15:32 [WARNING ] [Notify-AFF-20261019-0001] applicant_kiosk.services.submission_pipeline - Notification failed (ignored)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_NAMESPACE = "applicant_kiosk"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotation for both the main and the error log
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


class ThreadContextFilter(logging.Filter):
    """Adds ``thread_name`` and ``thread_id`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        record.thread_id = threading.get_ident()
        return True


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      thread_filter: logging.Filter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    return handler


def setup_logging(
    app_name: str = APP_NAMESPACE,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure the application logger.

    Console output is always on. With file logging enabled, everything at
    ``log_level`` goes to ``<app_name>.log`` and ERROR and above is copied
    to ``<app_name>_error.log``; that second file is where an operator looks
    for failed backups and uploads.

    Calling this again replaces the handlers, so each test app starts clean.

    Returns:
        The namespace logger
    """
    app_logger = logging.getLogger(app_name)
    app_logger.setLevel(log_level)
    app_logger.propagate = False
    app_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    thread_filter = ThreadContextFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(formatter)
    console.addFilter(thread_filter)
    app_logger.addHandler(console)

    if enable_file_logging:
        log_dir = log_dir or Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        app_logger.addHandler(_rotating_handler(app_log_file, log_level, formatter, thread_filter))
        app_logger.addHandler(
            _rotating_handler(log_dir / f"{app_name}_error.log", logging.ERROR, formatter, thread_filter)
        )
        app_logger.info(f"Writing logs to {app_log_file}")

    app_logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the app namespace, e.g. ``applicant_kiosk.services.backup_store``."""
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


def get_submission_logger(reference_number: str) -> logging.Logger:
    """
    Logger for a single application.

    The reference number is the last part of the logger name, so one
    applicant's lines can be filtered out of a busy day's log.
    """
    return logging.getLogger(f"{APP_NAMESPACE}.submission.{reference_number}")


def set_thread_name(name: str) -> None:
    """Rename the current thread; the name shows up in the [thread_name] field."""
    threading.current_thread().name = name
