"""
Structured Logging.

structlog on top of the stdlib logging tree, configured from
config/settings/logging.yaml (validated as LoggingSchema).

Every record carries timestamp, level, logger, event, func_name and lineno.
Sync components also tag records with an explicit `source`, so one JSONL
stream can be filtered per component:

    jq 'select(.source == "sync")' logs/system.jsonl

Usage:
    from notesync.core.logging import get_logger, log_with_source, setup_logging

    setup_logging()                                   # from logging.yaml
    setup_logging(level="DEBUG", format_type="console")

    logger = get_logger(__name__)
    logger.info("Replica opened", extra={"path": path})
    log_with_source(logger, "sync", "info", "Cycle finished", pushed=3)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import Processor

from notesync.core.config_schema import FileHandlerSchema, LoggingSchema

VALID_SOURCES = frozenset({
    "sync",
    "scheduler",
    "tasks",
    "cli",
    "store",
    "remote",
    "unknown",
})

_QUIET_LIBRARIES = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]


def _formatter(renderer: Processor, pre_chain: list[Processor]) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)


def _file_handler(file_config: FileHandlerSchema, formatter: logging.Formatter) -> logging.Handler:
    """Rotating JSONL handler; relative paths land under the project root."""
    from notesync.core.config import find_project_root

    log_path = find_project_root() / file_config.path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=file_config.max_bytes,
        backupCount=file_config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    config: LoggingSchema | None = None,
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Overrides the configured level
        format_type: 'json' or 'console'; overrides the configured format
        config: Logging settings; read from logging.yaml when omitted
    """
    if config is None:
        from notesync.core.config import get_app_config

        config = get_app_config().logging

    log_level = getattr(logging, (level or config.level).upper())
    processors = _shared_processors()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = _formatter(structlog.processors.JSONRenderer(), processors)
    if (format_type or config.format) == "console":
        console_formatter = _formatter(structlog.dev.ConsoleRenderer(colors=True), processors)
    else:
        console_formatter = json_formatter

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if config.handlers.console.enabled:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if config.handlers.file.enabled:
        root_logger.addHandler(_file_handler(config.handlers.file, json_formatter))

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Get a structlog logger, typically for __name__."""
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log a message tagged with the component that emitted it.

    Sources outside VALID_SOURCES are recorded as "unknown".

    Raises:
        AttributeError: If level is not a logger method
    """
    log_method = getattr(logger, level.lower())
    log_method(message, source=source if source in VALID_SOURCES else "unknown", **kwargs)
