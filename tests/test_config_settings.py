"""
Tests for configuration loading.

Settings are read from PNL_* environment variables; monkeypatch sets them
per test; conftest.py clears them and the cached singleton around each test.
"""

import logging
from pathlib import Path

import pytest

from src.config.settings import (
    ProfitLossSettings,
    Settings,
    get_settings,
    reset_settings,
)


def test_defaults():
    settings = ProfitLossSettings.from_env()

    assert settings.big_point_value == 1.0
    assert settings.commission_per_unit == 0.0
    assert settings.periods_per_year == 252
    assert settings.results_dir == Path("data/results")
    assert settings.logging_level == logging.WARNING


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("PNL_BIG_POINT_VALUE", "50")
    monkeypatch.setenv("PNL_COMMISSION_PER_UNIT", "2.5")
    monkeypatch.setenv("PNL_PERIODS_PER_YEAR", "52")
    monkeypatch.setenv("PNL_RESULTS_DIR", "/tmp/pnl")
    monkeypatch.setenv("PNL_LOG_LEVEL", "debug")

    settings = get_settings().pnl

    assert settings.big_point_value == 50.0
    assert settings.commission_per_unit == 2.5
    assert settings.periods_per_year == 52
    assert settings.results_dir == Path("/tmp/pnl")
    assert settings.log_level == "DEBUG"


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("PNL_BIG_POINT_VALUE", "50")

    assert get_settings() is first
    reset_settings()
    assert get_settings().pnl.big_point_value == 50.0


@pytest.mark.parametrize("name, value", [
    ("PNL_BIG_POINT_VALUE", "fifty"),
    ("PNL_COMMISSION_PER_UNIT", "nan"),
    ("PNL_PERIODS_PER_YEAR", "2.5"),
    ("PNL_PERIODS_PER_YEAR", "0"),
    ("PNL_LOG_LEVEL", "LOUD"),
])
def test_invalid_values_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        Settings.from_env()
