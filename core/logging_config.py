# core/logging_config.py
"""Configure converter logging sinks and formatting.

This module configures:
- Standard library logging handlers (console and optional rotating file).
- Rich console integration when enabled.
- Baseline log level overrides for noisy third-party libraries.

Notes:
    This module performs side-effectful logger configuration and should be
    called once at process startup via [`setup_converter_logging()`](core/logging_config.py).
"""

import logging as stdlib_logging
import logging.handlers
import os

import structlog
from rich.console import Console
from rich.logging import RichHandler

import config
from config import rich_formatter, simple_formatter


def setup_converter_logging(console: Console | None = None) -> None:
    """Set up converter logging handlers and formatting.

    This configures:
    - Console logging in simple mode.
    - Rotating file logging when a log file is configured.
    - Rich console output when enabled.

    Args:
        console: Optional Rich console to share with other terminal output
            (the CLI passes its stderr console so progress and logs interleave).

    Notes:
        This function mutates the root logger handler list.
    """
    settings = config.settings
    root_logger = stdlib_logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL_STR)

    if settings.LOG_FILE and not settings.SIMPLE_LOGGING_MODE:
        log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
        try:
            os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
            file_handler = stdlib_logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                mode="a",
                encoding="utf-8",
            )
        except OSError as e:
            root_logger.addHandler(stdlib_logging.StreamHandler())
            root_logger.error(f"Failed to configure file logging: {e}. Logging to console instead.")
        else:
            file_handler.setLevel(settings.LOG_LEVEL_STR)
            file_handler.setFormatter(simple_formatter)
            root_logger.addHandler(file_handler)

    if not settings.SIMPLE_LOGGING_MODE and settings.ENABLE_RICH_LOGGING:
        rich_handler = RichHandler(
            level=settings.LOG_LEVEL_STR,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
            show_time=False,  # Timestamp already in our formatter
            show_level=False,  # Level already in our formatter
            console=console or Console(stderr=True),
        )
        rich_handler.setFormatter(rich_formatter)
        root_logger.addHandler(rich_handler)
    else:
        stream_handler = stdlib_logging.StreamHandler()
        stream_handler.setLevel(settings.LOG_LEVEL_STR)
        stream_handler.setFormatter(simple_formatter)
        root_logger.addHandler(stream_handler)

    stdlib_logging.getLogger("httpx").setLevel(stdlib_logging.WARNING)
    stdlib_logging.getLogger("httpcore").setLevel(stdlib_logging.WARNING)

    structlog.get_logger(__name__).debug(
        "Logging setup complete",
        level=stdlib_logging.getLevelName(root_logger.level),
        rich=bool(settings.ENABLE_RICH_LOGGING and not settings.SIMPLE_LOGGING_MODE),
    )
