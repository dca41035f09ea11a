import logging
import logging.handlers
import re
from pathlib import Path
from typing import List, Pattern, Tuple

from shopqueue.core.config import settings

LOG_FILE_NAME = "shopqueue.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# key=value pairs whose value must never reach a log line
MASKED_KEYS = ("customer_name", "phone", "email", "password", "token")

QUIET_LOGGERS = {
    "uvicorn.access": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpcore": logging.WARNING,
    "httpx": logging.WARNING,
}


def _masking_rules() -> List[Tuple[Pattern, str]]:
    rules = [
        (re.compile(rf'({key}=)[\'"]?[^\'"\s,}}]+[\'"]?', re.IGNORECASE), r"\1***MASKED***")
        for key in MASKED_KEYS
    ]
    # Bare addresses, after the keyed rules so "email=" keeps its label
    rules.append((re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"), "***EMAIL***"))
    return rules


class SensitiveDataFilter(logging.Filter):
    """
    Masks customer contact details and credentials before a record is emitted.
    Queue entries carry names, phone numbers and emails, and those end up in
    log messages through f-strings.
    """
    def __init__(self, name=""):
        super().__init__(name)
        self.rules = _masking_rules()

    def filter(self, record):
        if isinstance(record.msg, str):
            for pattern, replacement in self.rules:
                record.msg = pattern.sub(replacement, record.msg)
        return True


def _attach(handler: logging.Handler, formatter: logging.Formatter, mask: logging.Filter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(mask)
    return handler


def setup_logging() -> Path:
    """
    Routes the root logger to stdout and to LOG_DIR/shopqueue.log.
    Safe to call more than once: the root handlers are replaced each time.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    formatter = logging.Formatter(LOG_FORMAT)
    mask = SensitiveDataFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL)
    root_logger.handlers = [
        _attach(logging.StreamHandler(), formatter, mask),
        _attach(
            logging.handlers.RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT),
            formatter,
            mask,
        ),
    ]

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
