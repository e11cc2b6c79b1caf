"""
Structured logging setup for the validation engine.

Engine modules log through ``structlog.get_logger("chainvalidator.<area>")``
and never configure logging themselves. Applications call
setup_structured_logging() once at startup:

    setup_structured_logging()                      # LOG_LEVEL / LOG_FORMAT
    setup_structured_logging(level='DEBUG', log_format='console')

Log levels used by the engine: run summaries at INFO, per-rule detail at
DEBUG, rejected schemas and custom rule faults at ERROR.
"""

import logging
import logging.config
import os
import sys
from typing import Optional

import structlog


class LoggingConfig:
    """Logging settings read from the environment."""

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')  # json, console
    COLORED_CONSOLE_OUTPUT = os.getenv('COLORED_CONSOLE_OUTPUT', 'false').lower() == 'true'
    APPLICATION_NAME = os.getenv('APPLICATION_NAME', 'chainvalidator')


def setup_structured_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    colors: Optional[bool] = None
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name (defaults to LOG_LEVEL)
        log_format: ``json`` or ``console`` (defaults to LOG_FORMAT)
        colors: Colored console output (defaults to COLORED_CONSOLE_OUTPUT)

    Returns:
        Logger bound to the application name
    """
    level = (level or LoggingConfig.LOG_LEVEL).upper()
    log_format = (log_format or LoggingConfig.LOG_FORMAT).lower()
    colors = LoggingConfig.COLORED_CONSOLE_OUTPUT if colors is None else colors

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))
    else:
        # JSON unless console output was asked for
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': sys.stdout,
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
        },
    })

    logger = structlog.get_logger(LoggingConfig.APPLICATION_NAME)
    logger.info("Structured logging initialized",
                log_level=level,
                log_format=log_format)
    return logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, defaulting to the application name."""
    return structlog.get_logger(name or LoggingConfig.APPLICATION_NAME)


__all__ = ['LoggingConfig', 'setup_structured_logging', 'get_logger']
