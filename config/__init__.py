# config/__init__.py
"""Expose converter configuration as stable module-level constants.

This package provides a facade over the Pydantic settings model defined in
[`config.settings`](config/settings.py:1). The primary API is the
[`settings`](config/settings.py) singleton plus a set of module-level constants
mirroring its fields.

Configuration precedence and lifecycle:
- On initial import, configuration is loaded by importing [`config.settings`](config/settings.py:1),
  which constructs the `settings` singleton.
- Values come from the process environment and may be sourced from a `.env` file.
- [`reload()`](config/__init__.py) re-reads `.env` with override enabled, then replaces
  this module's exported values (see [`config.loader.reload_settings()`](config/loader.py)).

Notes:
    Call sites that read a value once at import time (default arguments) keep the
    value they saw; code that must observe reloads should read `config.settings`.
"""

from typing import Any

from .settings import (
    rich_formatter as rich_formatter,
)
from .settings import (
    settings as settings,
)
from .settings import (
    simple_formatter as simple_formatter,
)

CONVERTER_VERSION = settings.CONVERTER_VERSION
DEFAULT_THEME_ID = settings.DEFAULT_THEME_ID
ENABLE_RICH_LOGGING = settings.ENABLE_RICH_LOGGING
ENRICH_MAPS = settings.ENRICH_MAPS
ENRICH_SCENES = settings.ENRICH_SCENES
HTTP_RETRY_ATTEMPTS = settings.HTTP_RETRY_ATTEMPTS
HTTP_RETRY_DELAY_SECONDS = settings.HTTP_RETRY_DELAY_SECONDS
HTTPX_TIMEOUT = settings.HTTPX_TIMEOUT
LOG_DATE_FORMAT = settings.LOG_DATE_FORMAT
LOG_DIR = settings.LOG_DIR
LOG_FILE = settings.LOG_FILE
LOG_FORMAT = settings.LOG_FORMAT
LOG_LEVEL_STR = settings.LOG_LEVEL_STR
MAX_CONCURRENT_HTTP_REQUESTS = settings.MAX_CONCURRENT_HTTP_REQUESTS
MAX_CONCURRENT_TRANSFERS = settings.MAX_CONCURRENT_TRANSFERS
MEDIA_DOWNLOAD_DIR = settings.MEDIA_DOWNLOAD_DIR
PORTAL_BASE_URL = settings.PORTAL_BASE_URL
SIMPLE_LOGGING_MODE = settings.SIMPLE_LOGGING_MODE
SUPPRESS_CONVERTER_METADATA = settings.SUPPRESS_CONVERTER_METADATA
TOUR_EXPLORER_THRESHOLD = settings.TOUR_EXPLORER_THRESHOLD


def get(key: str) -> Any:
    """Return the value of a configuration attribute from `settings`.

    Args:
        key: Attribute name on the `settings` singleton.

    Returns:
        The current value of the named attribute.

    Raises:
        AttributeError: If `key` is not a valid attribute on `settings`.
    """
    return getattr(settings, key)


def set(key: str, value: Any) -> None:
    """Set a configuration attribute on `settings` at runtime.

    This mutates the in-memory settings instance and does not persist to `.env`.

    Args:
        key: Attribute name on the `settings` singleton.
        value: Value to assign.

    Raises:
        AttributeError: If `key` is not a valid attribute on `settings`.
    """
    if key not in type(settings).model_fields:
        raise AttributeError(f"Unknown configuration key: {key}")
    setattr(settings, key, value)
    globals()[key] = value


def reload() -> bool:
    """Reload configuration and refresh this package's exported constants.

    Returns:
        `True` when the settings were rebuilt, `False` when the loader failed.
    """
    from .loader import reload_settings

    return reload_settings()
