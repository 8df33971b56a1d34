# utils/logging.py
"""Logging setup for the coherence engine."""

from __future__ import annotations

import logging
import logging.handlers
import os

import structlog
from config import settings
from rich.console import Console
from rich.logging import RichHandler

__all__ = ["setup_logging"]


def setup_logging(use_rich: bool | None = None) -> None:
    """Configure structlog on top of standard logging.

    Console output goes through ``RichHandler`` unless ``use_rich`` is false
    (or ``ENABLE_RICH_PROGRESS`` is off), in which case a plain stream handler
    writes to stderr. ``LOG_FILE`` adds a rotating file handler.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.LOG_LEVEL_STR.upper())
    formatter = logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)

    if settings.LOG_FILE:
        log_dir = os.path.dirname(os.path.abspath(settings.LOG_FILE))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            mode="a",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if use_rich is None:
        use_rich = settings.ENABLE_RICH_PROGRESS
    if use_rich:
        root_logger.addHandler(
            RichHandler(
                console=Console(stderr=True),
                level=settings.LOG_LEVEL_STR.upper(),
                rich_tracebacks=True,
                show_path=False,
                markup=False,
                show_time=True,
                show_level=True,
            )
        )
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.get_logger().info(
        "Logging setup complete.",
        log_level=settings.LOG_LEVEL_STR.upper(),
        log_file=settings.LOG_FILE,
    )
