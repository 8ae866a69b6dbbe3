"""
Structlog-based logging configuration for chatrelay.

CRITICAL LOGGING REQUIREMENT:
All modules MUST obtain loggers through get_logger() from this module instead
of logging.getLogger(). Standard library loggers do not accept keyword context,
and every call site in this package logs with structured key/value pairs.

CORRECT USAGE:
    from ..structured_logging.enhanced_logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Presence registered", player_name="steve")
"""

import json
import logging
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_processors import add_instance_id, sanitize_sensitive_data

VALID_FORMATS = ("json", "human", "colored")


class _LoggingState:
    """State container for logging initialization to avoid global statements."""

    initialized: bool = False
    signature: str | None = None


_logging_state = _LoggingState()


def _select_renderer(log_format: str) -> Any:
    """Pick the final structlog renderer for a configured format."""
    match log_format:
        case "json":
            return structlog.processors.JSONRenderer(ensure_ascii=False)
        case "colored":
            return structlog.dev.ConsoleRenderer(colors=True)
        case _:
            return structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])


def configure_structlog(
    environment: str = "local",
    log_level: str = "INFO",
    log_format: str = "human",
    instance_id: str | None = None,
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        environment: Environment name, recorded on the setup log line
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: One of "json", "human" or "colored"
        instance_id: Local relay instance identifier stamped on every entry
    """
    if log_format not in VALID_FORMATS:
        raise ValueError(f"Log format must be one of {VALID_FORMATS}, got '{log_format}'")

    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[Any] = [
        # Security first - sanitize sensitive data
        sanitize_sensitive_data,
        merge_contextvars,
    ]
    if instance_id:
        processors.append(add_instance_id(instance_id))
    processors += [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _select_renderer(log_format),
    ]

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )

    get_logger("chatrelay.structured_logging").debug(
        "structlog configured",
        environment=environment,
        log_level=log_level,
        log_format=log_format,
    )


def setup_logging(config: Any, instance_id: str | None = None, *, force_reconfigure: bool = False) -> None:
    """
    Set up logging from a LoggingConfig model.

    Repeated calls with the same configuration are ignored unless
    force_reconfigure is set.

    Args:
        config: LoggingConfig instance
        instance_id: Local relay instance identifier
        force_reconfigure: When True, reconfigure even if already initialized
    """
    signature = json.dumps(
        {"config": config.model_dump(), "instance_id": instance_id},
        sort_keys=True,
        default=str,
    )

    if _logging_state.initialized and not force_reconfigure and _logging_state.signature == signature:
        get_logger("chatrelay.structured_logging").debug(
            "setup_logging skipped; logging system already initialized",
        )
        return

    if config.disable_logging:
        logging.getLogger().handlers = [logging.NullHandler()]
        structlog.configure(
            processors=[structlog.processors.KeyValueRenderer()],
            logger_factory=LoggerFactory(),
            wrapper_class=BoundLogger,
        )
    else:
        configure_structlog(
            environment=config.environment,
            log_level=config.level,
            log_format=config.format,
            instance_id=instance_id,
        )
        get_logger("chatrelay.structured_logging").info(
            "Logging system initialized",
            environment=config.environment,
            log_level=config.level,
            instance_id=instance_id,
        )

    _logging_state.initialized = True
    _logging_state.signature = signature


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers. All application code
    should use this function rather than calling structlog.get_logger()
    directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
