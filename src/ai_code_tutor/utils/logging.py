"""Structured logging for the tutor engine.

Every entry passes through the same processor chain: context merge, level
filter, timestamps, secret redaction and value clipping. Learner programs
routinely end up in log fields (source text, compiler output, model replies),
so redaction and clipping run before any renderer sees the entry.
"""

from __future__ import annotations

import logging
import sys
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from ai_code_tutor._version import __version__
from ai_code_tutor.utils.security import SecretRedactor

if TYPE_CHECKING:
    from ai_code_tutor.config.schema import LoggingConfig

SERVICE_NAME = "ai-code-tutor"

# Longest string kept in a single log field
MAX_VALUE_LENGTH = 2000

_redactor = SecretRedactor()


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def sanitize_log_value(value: Any) -> Any:
    """Redact secrets from a log value, descending into containers."""
    if isinstance(value, str):
        return _redactor.redact(value)
    if isinstance(value, dict):
        return {key: sanitize_log_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(item) for item in value)
    return value


def clip(value: str, limit: int = MAX_VALUE_LENGTH) -> str:
    """Shorten ``value`` to ``limit`` characters, noting how much was dropped."""
    if len(value) <= limit:
        return value
    return f"{value[:limit]}... [{len(value) - limit} more chars]"


def secret_sanitizer(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Processor that redacts secrets from every field."""
    return {key: sanitize_log_value(value) for key, value in event_dict.items()}


def clip_long_values(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Processor that clips oversized string fields.

    Tracebacks are left whole.
    """
    for key, value in event_dict.items():
        if key != "exception" and isinstance(value, str):
            event_dict[key] = clip(value)
    return event_dict


def add_service_info(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Processor that stamps the service name and version."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def _processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        add_service_info,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        clip_long_values,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: LogFormat) -> Processor:
    if log_format == LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def _handlers(file_path: Path | None) -> tuple[list[logging.Handler], OSError | None]:
    # stdout carries program output, so logs go to stderr
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is None:
        return handlers, None
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path))
    except OSError as e:
        return handlers, e
    return handlers, None


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum level, case-insensitive
        log_format: ``json`` or ``console``
        file_path: Also append entries to this file when given

    Raises:
        ValueError: If ``level`` or ``log_format`` is unknown
    """
    level = LogLevel(str(level).upper())
    log_format = LogFormat(str(log_format).lower())
    numeric_level = logging.getLevelNamesMapping()[level.value]

    structlog.configure(
        processors=[*_processors(), _renderer(log_format)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    path = Path(file_path).expanduser() if file_path is not None else None
    handlers, file_error = _handlers(path)
    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)

    if file_error is not None:
        structlog.get_logger().warning(
            "log_file_unavailable", path=str(path), error=str(file_error)
        )


def configure_from_config(
    config: LoggingConfig,
    debug: bool = False,
    log_format: LogFormat | str | None = None,
) -> None:
    """Apply the ``logging`` section of the configuration.

    ``debug`` and ``log_format`` come from the command line and win over the file.
    """
    configure_logging(
        level=LogLevel.DEBUG if debug else config.level,
        log_format=log_format or config.format,
        file_path=config.file.path if config.file.enabled else None,
    )


class LogEventNames:
    """Standard log event names for consistency."""

    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_SUPERSEDED = "run_superseded"
    RUN_ALL_TIERS_FAILED = "run_all_tiers_failed"

    # Tier chain
    TIER_ATTEMPT = "tier_attempt"
    TIER_SUCCEEDED = "tier_succeeded"
    TIER_FAILED = "tier_failed"
    TIER_CRASHED = "tier_crashed"
    FOREIGN_LANGUAGE_DETECTED = "foreign_language_detected"

    # Static analysis
    SCAN_COMPLETED = "scan_completed"
    RULE_FAILED = "rule_failed"

    # Patching
    PATCH_APPLIED = "patch_applied"
    PATCH_SKIPPED = "patch_skipped"

    # Persistence
    STATE_CORRUPTED = "state_corrupted"
    STORAGE_WRITE_FAILED = "storage_write_failed"

    # LLM operations
    LLM_REQUEST_START = "llm_request_start"
    LLM_REQUEST_COMPLETE = "llm_request_complete"
    LLM_REQUEST_ERROR = "llm_request_error"
