# polytrade/utils/logging.py
"""Structured logging configuration."""

import logging
import sys

import structlog

_loggers: dict[str, logging.Logger] = {}

# Keys that must never reach a log record, even by accident.
_SECRET_KEYS = frozenset({"private_key", "secret", "api_secret", "passphrase", "password"})


def _drop_secrets(logger, method_name, event_dict):
    for key in _SECRET_KEYS & event_dict.keys():
        event_dict[key] = "***"
    return event_dict


def setup_logging(
    level: str = "INFO",
    json: bool = False,
) -> logging.Logger:
    """
    Configure root logger and structlog with appropriate handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json: If True, use JSON formatting; otherwise human-readable

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    # Logs go to stderr so JSON command output on stdout stays parseable
    handler = logging.StreamHandler(sys.stderr)

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _drop_secrets,
    ]

    if json:
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
    else:
        # Human-readable formatting with color
        from colorlog import ColoredFormatter

        handler.setFormatter(
            ColoredFormatter(
                "%(log_color)s%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            )
        )

    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter
            if json
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__ of module)

    Returns:
        Logger instance
    """
    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)
    return _loggers[name]
