"""
structlog configuration.

Every log line (requests, checkouts, gate scans) goes through the stdlib root
handler so uvicorn and SQLAlchemy records share one format: JSON when
ENVIRONMENT=production, console output otherwise.
"""

import logging
import sys

import structlog

from doujindesk.core.config import Settings, get_settings

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def _processors(settings: Settings) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.ENVIRONMENT == "production":
        processors.append(structlog.processors.format_exc_info)
    return processors


def _renderer(settings: Settings):
    if settings.ENVIRONMENT == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT != "test")


def _install_handler(formatter: logging.Formatter, level: str) -> None:
    root = logging.getLogger()
    # setup_logging runs once per lifespan; tests start several
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def setup_logging() -> None:
    settings = get_settings()

    structlog.configure(
        processors=[*_processors(settings), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings),
        ]
    )
    _install_handler(formatter, settings.LOG_LEVEL)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
