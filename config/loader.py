# config/loader.py
"""
Configuration reload utilities for the converter.

``reload_settings()``:
1. Reloads environment variables from ``.env`` (via ``dotenv.load_dotenv``).
2. Re‑creates the ``ConverterSettings`` instance so that changed values apply.
3. Updates the symbols exported by the ``config`` package to reflect the new values.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

logger = structlog.get_logger(__name__)


def reload_settings() -> bool:
    """
    Reload configuration from the environment and refresh the ``config`` package.

    Returns ``True`` on success, ``False`` when the environment holds invalid values.
    """
    import importlib

    import config as config_pkg

    settings_mod = importlib.import_module("config.settings")

    load_dotenv(override=True)

    try:
        fresh = settings_mod.ConverterSettings()
    except ValidationError as exc:
        logger.error("Configuration reload rejected", error=str(exc))
        return False

    settings_mod.settings = fresh
    config_pkg.settings = fresh
    for field_name in type(fresh).model_fields:
        value = getattr(fresh, field_name)
        setattr(settings_mod, field_name, value)
        setattr(config_pkg, field_name, value)

    logger.info("Configuration reloaded")
    return True
