"""
FeedEnricher Logging
====================

Console and rotating-file logging for the enrichment pipeline.

Enrichment tasks for many items run interleaved on one event loop, so the
feed and item a log line belongs to cannot live on a logger object.
``log_context`` keeps them in context variables instead. Every task started
inside the block works on its own copy, and ``ContextFilter`` stamps the
current values onto each record before a handler formats it.

Usage:
    configure_application_logging(settings.logging)
    logger = get_logger_for_component("pipeline")

    with log_context(feed_url=url):
        logger.info("Fetching feed")
"""

import json
import logging
import logging.handlers
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


ROOT_LOGGER = "feedenricher"

# Chatty at INFO; only their warnings are of interest
QUIET_LOGGERS = ("aiohttp", "urllib3", "feedparser", "trafilatura", "htmldate", "charset_normalizer")

_current_feed_url: ContextVar[Optional[str]] = ContextVar("feed_url", default=None)
_current_item_id: ContextVar[Optional[str]] = ContextVar("item_id", default=None)

# Attributes every LogRecord carries; anything else arrived through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


@contextmanager
def log_context(feed_url: Optional[str] = None, item_id: Optional[str] = None) -> Iterator[None]:
    """Attach feed and item context to every record logged inside the block.

    Args:
        feed_url: Feed being processed
        item_id: Identifier of the item being processed
    """
    tokens = []
    if feed_url is not None:
        tokens.append((_current_feed_url, _current_feed_url.set(feed_url)))
    if item_id is not None:
        tokens.append((_current_item_id, _current_item_id.set(item_id)))

    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class ContextFilter(logging.Filter):
    """Copies the current feed and item context onto log records.

    Values passed explicitly through ``extra`` take precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "feed_url", None) is None:
            record.feed_url = _current_feed_url.get()
        if getattr(record, "item_id", None) is None:
            record.item_id = _current_item_id.get()
        return True


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Non-empty fields that were added to ``record`` beyond the standard ones."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and value is not None
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; context and ``extra`` fields sit at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = record_extras(record)
        entry.update({
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line console output, tagged with the item being processed."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:8}"
        if self.use_color and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        line = f"[{timestamp}] {level} {record.name} - {record.getMessage()}"

        item_id = getattr(record, "item_id", None)
        if item_id:
            line += f" [item {item_id}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def configure_application_logging(logging_settings, level: Optional[str] = None) -> logging.Logger:
    """Install console and file handlers on the ``feedenricher`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        logging_settings: ``LoggingSettings`` section of the configuration
        level: Overrides ``logging_settings.level`` (e.g. "DEBUG" for --debug)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel((level or logging_settings.level.value).upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    context_filter = ContextFilter()

    if logging_settings.console_logging:
        # stderr keeps stdout free for JSON output of the CLI
        console_handler = logging.StreamHandler(sys.stderr)
        if logging_settings.structured_logging:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
        console_handler.addFilter(context_filter)
        logger.addHandler(console_handler)

    if logging_settings.file_path:
        log_path = Path(logging_settings.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=logging_settings.max_file_size_mb * 1024 * 1024,
            backupCount=logging_settings.backup_count,
            encoding="utf-8",
        )
        # Files are always JSON so they can be grepped by item id
        file_handler.setFormatter(StructuredFormatter())
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


class ComponentLogger(logging.LoggerAdapter):
    """Adapter that merges its fixed context with per-call ``extra``."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_for_component(component_name: str, **context: Any) -> ComponentLogger:
    """Logger for one pipeline component, e.g. 'pipeline' or 'feed_fetcher'.

    Keyword arguments with a value become fixed ``extra`` fields of every
    record the adapter emits.
    """
    extra = {"component": component_name}
    extra.update({key: value for key, value in context.items() if value is not None})
    return ComponentLogger(logging.getLogger(f"{ROOT_LOGGER}.{component_name}"), extra)


class PerformanceLogger:
    """Times a block and logs how it ended.

    ``duration`` (seconds) is set when the block exits, whether or not it
    raised.
    """

    def __init__(self, logger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.perf_counter() - self._started
        extra = {**self.context, "duration_seconds": round(self.duration, 3)}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.2f}s", extra=extra)
        else:
            self.logger.error(
                f"{self.operation} failed after {self.duration:.2f}s: {exc_val}", extra=extra
            )
