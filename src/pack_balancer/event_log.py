"""
Event Log
=========

Writes pack balancer log records and uncaught exceptions to a daily log
file (``Logs/eventLog<YYYYMMDD>.txt``), so problems in long unattended
optimization runs can be traced afterwards.

Usage:
------
    from src.pack_balancer.event_log import configure_event_log, install_exception_hook

    configure_event_log("Logs")
    install_exception_hook()
"""

import logging
import os
import sys
import threading
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Parent logger of every module in the package
PACKAGE_LOGGER = "src.pack_balancer"

DEFAULT_LOG_DIR = "Logs"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s - %(name)s - %(message)s"

logger = logging.getLogger(PACKAGE_LOGGER)


class DailyEventLogHandler(TimedRotatingFileHandler):
    """File handler that starts a new eventLog<date>.txt file every midnight."""

    def __init__(self, log_dir: Union[str, Path]):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        super().__init__(
            self._path_for(datetime.now()), when="midnight", encoding="utf-8", delay=True
        )

    def _path_for(self, moment: datetime) -> str:
        return os.path.abspath(self.log_dir / f"eventLog{moment:%Y%m%d}.txt")

    def rotation_filename(self, default_name: str) -> str:
        # Rotated files keep their own date, the new file gets today's
        return default_name

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None
        self.baseFilename = self._path_for(datetime.now())
        self.rolloverAt = self.computeRollover(int(datetime.now().timestamp()))


def configure_event_log(
    log_dir: Union[str, Path] = DEFAULT_LOG_DIR,
    level: int = logging.INFO,
) -> DailyEventLogHandler:
    """
    Attach a daily file handler to the package logger.

    Calling it again with the same directory returns the existing handler.

    Parameters:
    ----------
    log_dir : str | Path
        Directory for log files (created if missing)

    level : int
        Minimum level to record

    Returns:
    -------
    DailyEventLogHandler
        The attached handler
    """
    log_dir = Path(log_dir)
    for handler in logger.handlers:
        if isinstance(handler, DailyEventLogHandler) and handler.log_dir == log_dir:
            return handler

    handler = DailyEventLogHandler(log_dir)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    return handler


def remove_event_log(handler: Optional[DailyEventLogHandler] = None):
    """Detach and close event log handlers (all of them if none given)."""
    handlers = [handler] if handler is not None else [
        h for h in logger.handlers if isinstance(h, DailyEventLogHandler)
    ]
    for h in handlers:
        logger.removeHandler(h)
        h.close()


def _log_uncaught(exc_type, exc_value, exc_traceback, thread_name: str = ""):
    where = f" in thread {thread_name}" if thread_name else ""
    logger.critical(
        "Uncaught exception%s: %s", where, exc_value,
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def install_exception_hook():
    """Log uncaught exceptions from the main thread and worker threads."""
    previous_hook = sys.excepthook
    previous_thread_hook = threading.excepthook

    def excepthook(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            _log_uncaught(exc_type, exc_value, exc_traceback)
        previous_hook(exc_type, exc_value, exc_traceback)

    def thread_excepthook(args):
        if args.exc_type is not SystemExit:
            name = args.thread.name if args.thread is not None else ""
            _log_uncaught(args.exc_type, args.exc_value, args.exc_traceback, name)
        previous_thread_hook(args)

    sys.excepthook = excepthook
    threading.excepthook = thread_excepthook
