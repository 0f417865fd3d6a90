"""Console and file logging for the TweetMind API and CLI.

Records from the stdlib loggers used throughout ``tweetmind`` and from structlog
loggers go through the same structlog processors. While an item is being
analyzed, ``ItemLifecycleService.complete`` binds ``item_id`` and
``item_category`` as context variables: the JSON file keeps them as separate
fields and the console folds them into one ``item=<category>/<id>`` tag.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from tweetmind.config import AppSettings
from tweetmind.telemetry import TELEMETRY_LOGGER_NAME

LOG_FILE_NAME = "tweetmind.log"
TELEMETRY_LOG_FILE_NAME = "tweetmind-telemetry.log"
APPLICATION_LOGGER_NAME = "tweetmind"


@dataclass(frozen=True)
class LogFiles:
    application: Path
    telemetry: Path


def configure_application_logging(settings: AppSettings) -> LogFiles:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    files = LogFiles(
        application=settings.log_dir / LOG_FILE_NAME,
        telemetry=settings.log_dir / TELEMETRY_LOG_FILE_NAME,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(_console_level(settings.log_level))
    console_handler.setFormatter(_console_formatter(colors=sys.stdout.isatty()))
    _install(
        APPLICATION_LOGGER_NAME,
        level=logging.DEBUG,
        handlers=[console_handler, _json_file_handler(files.application, logging.DEBUG)],
    )
    # Telemetry events stay out of the application log and the console.
    _install(
        TELEMETRY_LOGGER_NAME,
        level=logging.INFO,
        handlers=[_json_file_handler(files.telemetry, logging.INFO)],
    )

    logging.getLogger(APPLICATION_LOGGER_NAME).info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        settings.log_level.upper(),
        files.application,
        files.telemetry,
    )
    return files


def shutdown_application_logging() -> None:
    """Detach and close every handler installed by `configure_application_logging`."""
    for name in (TELEMETRY_LOGGER_NAME, APPLICATION_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def fold_item_context(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    item_id = event_dict.pop("item_id", None)
    category = event_dict.pop("item_category", None)
    if item_id is not None:
        event_dict["item"] = f"{category}/{item_id}" if category else str(item_id)
    return event_dict


def _install(name: str, *, level: int, handlers: list[logging.Handler]) -> None:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _console_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _console_formatter(*, colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            fold_item_context,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def _json_file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                _add_source_location,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
        )
    )
    return handler


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
    return event_dict
