"""Structured logging configuration with file rotation and credential redaction."""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger whose records also go to the dedicated chat call log
CHAT_CALL_LOGGER = "tools.chat_client"

# Transport loggers that log full request URLs (the catalog key rides in the query string)
_NOISY_LOGGERS = ("httpx", "httpcore")

_SECRET_PATTERNS = [
    re.compile(r"sk-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"(?<=[?&]key=)[^&\s\"']+"),
    re.compile(r"(?<=Bearer )[^\s\"']+"),
]


class RedactSecretsFilter(logging.Filter):
    """Mask API keys in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub("***", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    """10MB per file, keep 5."""
    handler = RotatingFileHandler(
        str(path),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RedactSecretsFilter())
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str | Path] = None,
    console_enabled: bool = True,
) -> None:
    """Configure application-wide logging with console and file handlers.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO).
        log_dir: Directory for log files. Defaults to ./data/logs.
        console_enabled: Whether to output to console. The chat command
            streams to the terminal, so the CLI only enables this with -v.
    """
    log_dir = Path(log_dir or "./data/logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates on re-init
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(RedactSecretsFilter())
        root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler(log_dir / "bookchat.log", level, formatter))

    # Separate chat call log; records request shapes and counts, never message content
    chat_logger = logging.getLogger(CHAT_CALL_LOGGER)
    for handler in list(chat_logger.handlers):
        chat_logger.removeHandler(handler)
        handler.close()
    chat_logger.addHandler(_rotating_handler(log_dir / "chat_calls.log", logging.DEBUG, formatter))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug("Logging initialized: level=%s, dir=%s", level, log_dir)
