# tests/test_configuration.py
"""
Tests for the configuration package.

These tests verify:
1. Module-level constants mirror the settings singleton.
2. ``config.get``/``config.set`` read and mutate the in-memory settings.
3. The reload mechanism updates settings when environment variables change.
"""

from __future__ import annotations

import pytest

import config


def test_constants_mirror_settings():
    assert config.TOUR_EXPLORER_THRESHOLD == config.settings.TOUR_EXPLORER_THRESHOLD
    assert config.DEFAULT_THEME_ID == config.settings.DEFAULT_THEME_ID
    assert config.MAX_CONCURRENT_TRANSFERS >= 1


def test_get_and_set_round_trip(monkeypatch):
    original = config.get("TOUR_EXPLORER_THRESHOLD")
    try:
        config.set("TOUR_EXPLORER_THRESHOLD", original + 5)
        assert config.get("TOUR_EXPLORER_THRESHOLD") == original + 5
        assert config.TOUR_EXPLORER_THRESHOLD == original + 5
    finally:
        config.set("TOUR_EXPLORER_THRESHOLD", original)


def test_set_rejects_unknown_keys():
    with pytest.raises(AttributeError):
        config.set("NOT_A_SETTING", 1)
    with pytest.raises(AttributeError):
        config.get("NOT_A_SETTING")


def test_reload_applies_environment_changes(monkeypatch):
    """Changing an env var followed by ``config.reload()`` updates the settings."""
    monkeypatch.setenv("TOUR_EXPLORER_THRESHOLD", "42")
    try:
        assert config.reload() is True
        assert config.settings.TOUR_EXPLORER_THRESHOLD == 42
        assert config.TOUR_EXPLORER_THRESHOLD == 42
    finally:
        monkeypatch.delenv("TOUR_EXPLORER_THRESHOLD", raising=False)
        config.reload()


def test_reload_rejects_invalid_values(monkeypatch):
    before = config.settings
    monkeypatch.setenv("TOUR_EXPLORER_THRESHOLD", "not-a-number")
    assert config.reload() is False
    assert config.settings is before
