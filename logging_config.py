"""
Logging setup and structured replication events
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Client libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = {
    'googleapiclient.discovery_cache': logging.ERROR,
    'googleapiclient.discovery': logging.WARNING,
    'google.auth': logging.WARNING,
    'urllib3': logging.WARNING,
}

BANNER = "=" * 80


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None,
                  console: bool = True):
    """
    Configure the root logger for a replication run

    Args:
        log_level: Console level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Append-mode log file; always receives DEBUG and above
        console: Whether to also log to stdout
    """
    level = getattr(logging, log_level.upper())

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else level)
    root.handlers.clear()

    if console:
        root.addHandler(_handler(logging.StreamHandler(sys.stdout), level))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(log_file, mode='a', encoding='utf-8'),
                                 logging.DEBUG))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    root.info(f"Logging initialized - level {log_level}" +
              (f", file {log_file}" if log_file else ""))


class ReplicationLogger:
    """Logger for invocation, phase and file events"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.invocation_start: Optional[datetime] = None

    def info(self, message):
        self.logger.info(message)

    def debug(self, message):
        self.logger.debug(message)

    def warning(self, message):
        self.logger.warning(message)

    def error(self, message, exc_info=False):
        self.logger.error(message, exc_info=exc_info)

    def start_invocation(self, phase: int, phase_name: str, deadline: str):
        """Banner at the start of an invocation"""
        self.invocation_start = datetime.now()
        self.logger.info(BANNER)
        self.logger.info(f"INVOCATION STARTED at phase {phase} ({phase_name}), deadline {deadline}")
        self.logger.info(BANNER)

    def end_invocation(self, phase: int, phase_name: str, stats: dict):
        """Banner with running totals at the end of an invocation"""
        self.logger.info(BANNER)
        self.logger.info(f"INVOCATION ENDED at phase {phase} ({phase_name})")
        if self.invocation_start:
            self.logger.info(f"Duration: {datetime.now() - self.invocation_start}")
        self.logger.info(f"Folders: {stats.get('folders', 0)} | Files: {stats.get('files', 0)} | "
                         f"Failures: {stats.get('failures', 0)}")
        self.logger.info(BANNER)

    def log_phase(self, phase: int, phase_name: str, status: str):
        self.logger.info(f"Phase {phase} ({phase_name}): {status}")

    def log_file_success(self, file_name: str, file_id: str):
        self.logger.debug(f"✓ {file_name} ({file_id})")

    def log_file_failure(self, file_name: str, file_id: str, error: str):
        self.logger.warning(f"✗ {file_name} ({file_id}) not transferred: {error}")

    def log_error(self, message: str, exception: Optional[Exception] = None):
        """Log an error, with traceback when an exception is given"""
        if exception is None:
            self.logger.error(message)
        else:
            self.logger.error(f"{message}: {exception}", exc_info=True)


def create_logger(name: str) -> ReplicationLogger:
    return ReplicationLogger(name)
