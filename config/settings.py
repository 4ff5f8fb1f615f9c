# config/settings.py
"""
Configuration settings for the storygraph converter.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import logging as stdlib_logging
from collections.abc import MutableMapping
from typing import Any

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class ConverterSettings(BaseSettings):
    """Full configuration for the converter."""

    # Conversion defaults
    DEFAULT_THEME_ID: str = "auto"
    ENRICH_MAPS: bool = True
    ENRICH_SCENES: bool = False
    SUPPRESS_CONVERTER_METADATA: bool = False
    CONVERTER_VERSION: str = "1.0.0"

    # Map Tour layout: above this many places the tour switches to explorer/grid
    TOUR_EXPLORER_THRESHOLD: int = 15

    # Media transfer
    MAX_CONCURRENT_TRANSFERS: int = 1
    MEDIA_DOWNLOAD_DIR: str = "media"

    # Portal / HTTP
    PORTAL_BASE_URL: str = "https://www.arcgis.com"
    HTTPX_TIMEOUT: float = 60.0
    MAX_CONCURRENT_HTTP_REQUESTS: int = 4
    HTTP_RETRY_ATTEMPTS: int = 3
    HTTP_RETRY_DELAY_SECONDS: float = 1.0

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_DIR: str = "output"
    LOG_FILE: str | None = None
    ENABLE_RICH_LOGGING: bool = True
    # Console only, no rotation/Rich
    SIMPLE_LOGGING_MODE: bool = False

    @model_validator(mode="after")
    def clamp_concurrency(self) -> ConverterSettings:
        if self.MAX_CONCURRENT_TRANSFERS < 1:
            object.__setattr__(self, "MAX_CONCURRENT_TRANSFERS", 1)
        if self.MAX_CONCURRENT_HTTP_REQUESTS < 1:
            object.__setattr__(self, "MAX_CONCURRENT_HTTP_REQUESTS", 1)
        if self.DEFAULT_THEME_ID not in {"auto", "summit", "obsidian"}:
            logger.warning(
                "Unknown DEFAULT_THEME_ID; falling back to auto",
                theme_id=self.DEFAULT_THEME_ID,
            )
            object.__setattr__(self, "DEFAULT_THEME_ID", "auto")
        return self

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore", populate_by_name=True)


settings = ConverterSettings()


# Update module level variables for backward compatibility
for _field in ConverterSettings.model_fields:
    globals()[_field] = getattr(settings, _field)


# Configure structlog to integrate with standard logging and output human‑readable messages
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


# Filter internal structlog fields
def filter_internal_keys(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Remove internal structlog fields from event dict."""
    for key in ("_record", "_from_structlog"):
        event_dict.pop(key, None)
    return event_dict


_LEVEL_STYLES = {
    "debug": "dim",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
}


def _render_context(event_dict: MutableMapping[str, Any]) -> str:
    skip = {"event", "level", "logger", "timestamp", "exc_info", "stack_info"}
    parts = [f"{key}={value}" for key, value in event_dict.items() if key not in skip]
    return " ".join(parts)


# Simple human-readable formatter for structlog (with Rich markup for console)
def simple_log_format_rich(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> str:
    event_dict.pop("_from_structlog", None)
    level = str(event_dict.get("level", method_name)).lower()
    style = _LEVEL_STYLES.get(level, "white")
    timestamp = event_dict.get("timestamp", "")
    name = event_dict.get("logger", "")
    message = str(event_dict.get("event", ""))
    context = _render_context(event_dict)
    line = f"[dim]{timestamp}[/dim] [{style}]{level.upper():<8}[/{style}] [bold]{name}[/bold] {message}"
    if context:
        line += f" [dim]{context}[/dim]"
    return line


# Simple human-readable formatter for structlog (plain text for files)
def simple_log_format_plain(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> str:
    event_dict.pop("_from_structlog", None)
    level = str(event_dict.get("level", method_name)).upper()
    timestamp = event_dict.get("timestamp", "")
    name = event_dict.get("logger", "")
    message = str(event_dict.get("event", ""))
    context = _render_context(event_dict)
    line = f"{timestamp} {level:<8} {name} {message}"
    if context:
        line += f" {context}"
    return line


# Formatter for file output (plain text, no Rich markup)
simple_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ],
    processors=[
        filter_internal_keys,
        simple_log_format_plain,
    ],
)

# Formatter for Rich console output (with color markup)
rich_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ],
    processors=[
        filter_internal_keys,
        simple_log_format_rich,
    ],
)

root_logger = stdlib_logging.getLogger()
root_logger.setLevel(settings.LOG_LEVEL_STR)
