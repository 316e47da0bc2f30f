"""
Logging for LibraryCleaner: timestamped log files with a 'latest' link,
console output, and an optional webhook that receives the run summary.
"""

import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import requests

# Sits just above WARNING so a webhook left at its default level gets the summary only
SUMMARY = logging.WARNING + 1
logging.addLevelName(SUMMARY, 'SUMMARY')

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_PREFIX = "librarycleaner_log_"
MAX_LOG_BYTES = 20 * 1024 * 1024
QUIET_LOGGERS = ("urllib3", "urllib3.connectionpool", "requests")


def parse_level(name: Optional[str], default: int, what: str = "log_level") -> int:
    """Map 'debug' .. 'critical' (and 'summary') to a level number, warning on junk"""
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    if isinstance(level, int):
        return level
    logging.warning(f"Invalid {what}: {name}. Using default level: {logging.getLevelName(default)}")
    return default


class WebhookHandler(logging.Handler):
    """Posts log records to a Discord-style webhook as {"content": ...}"""

    def __init__(self, webhook_url: str, timeout: int = 10):
        super().__init__()
        self.webhook_url = webhook_url
        self.timeout = timeout

    def render(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno == SUMMARY:
            return f"Library Cleaner Summary:\n{message}"
        return message

    def emit(self, record):
        try:
            self.send_webhook_message(self.render(record))
        except requests.exceptions.RequestException:
            # logging.error here would re-enter this handler
            self.handleError(record)

    def send_webhook_message(self, content: str) -> bool:
        response = requests.post(
            self.webhook_url,
            data=json.dumps({"content": content}),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        return response.status_code in (200, 204)


class LoggingManager:
    """Attaches LibraryCleaner's handlers to the root logger and removes them again."""

    def __init__(self, logs_folder: str, log_level: str = "", max_log_files: int = 5):
        self.logs_folder = Path(logs_folder)
        self.log_level = log_level
        self.max_log_files = max_log_files
        self.logger = logging.getLogger()
        self.summary_messages: List[str] = []
        self._handlers: List[logging.Handler] = []

    def _attach(self, handler: logging.Handler, level: int = logging.NOTSET) -> logging.Handler:
        handler.setLevel(level)
        if not isinstance(handler, WebhookHandler):
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(handler)
        self._handlers.append(handler)
        return handler

    def setup_logging(self) -> None:
        try:
            self.logs_folder.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            raise PermissionError(f"{self.logs_folder} not writable, please fix the variable accordingly.")

        log_file = self.logs_folder / f"{LOG_PREFIX}{datetime.now():%Y%m%d_%H%M}.log"
        self._attach(RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=self.max_log_files))
        self._attach(logging.StreamHandler())
        self._link_latest(log_file)

        self.set_log_level(self.log_level)
        self._prune_logs()
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def _link_latest(self, log_file: Path) -> None:
        latest = self.logs_folder / f"{LOG_PREFIX}latest.log"
        try:
            if latest.is_symlink() or latest.exists():
                latest.unlink()
            latest.symlink_to(log_file)
        except OSError as e:
            logging.debug(f"Could not update latest log link: {e}")

    def _prune_logs(self) -> None:
        """Keep only the newest max_log_files timestamped logs"""
        stamped = [p for p in self.logs_folder.glob(f"{LOG_PREFIX}*.log") if not p.is_symlink()]
        stamped.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        for old in stamped[self.max_log_files:]:
            old.unlink()

    def set_log_level(self, level: str) -> None:
        self.logger.setLevel(parse_level(level, logging.INFO))

    def setup_notification_handlers(self, notification_config) -> None:
        if not notification_config.webhook_url:
            return
        level = parse_level(notification_config.webhook_level, SUMMARY, "notification level")
        self._attach(WebhookHandler(notification_config.webhook_url), level)

    def add_summary_message(self, message: str) -> None:
        self.summary_messages.append(message)

    def log_summary(self) -> None:
        """Emit the collected lines as one SUMMARY record, then start over"""
        messages, self.summary_messages = self.summary_messages, []
        if not messages:
            return
        if len(messages) == 1:
            self.logger.log(SUMMARY, messages[0])
        else:
            self.logger.log(SUMMARY, "".join(f"\n  {m}" for m in messages))

    def shutdown(self) -> None:
        while self._handlers:
            handler = self._handlers.pop()
            self.logger.removeHandler(handler)
            handler.close()
