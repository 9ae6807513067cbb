"""
Configuration settings for the P&L engine and its scripts.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
at startup, ensuring fail-fast behavior if configuration is missing or invalid.

**Why centralized config?**
  - Single source of truth for contract defaults (big point value, commission),
    output locations, and logging verbosity.
  - Easy to test (inject fake settings instead of reading from environment).
  - Fail-fast validation (a typo in PNL_COMMISSION_PER_UNIT is a clear error
    at startup, not a NaN in the middle of a results file).

**Teaching note**: The engine function itself never reads settings. It takes
big point value and commission as arguments so a run is fully described by
its inputs. Settings only supply defaults to the scripts in actions/.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (dev/local environments); existing variables win
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ProfitLossSettings:
    """
    Defaults for a P&L run.

    Attributes:
        big_point_value: Currency value of a full one-point move per contract
                        (e.g. 50.0 for an E-mini S&P future, 1.0 for shares).
        commission_per_unit: Commission charged per contract on every fill
                            that closes units.
        periods_per_year: Bars per year, used to annualize the Sharpe ratio
                         (252 for daily bars).
        results_dir: Directory where actions write result files.
        log_level: Name of the logging level for scripts (e.g. "INFO").
    """
    big_point_value: float = 1.0
    commission_per_unit: float = 0.0
    periods_per_year: int = 252
    results_dir: Path = Path("data/results")
    log_level: str = "WARNING"

    def __post_init__(self):
        """Validate settings after initialization."""
        if not math.isfinite(self.big_point_value):
            raise ValueError(
                f"big_point_value must be finite, got: {self.big_point_value}"
            )
        if not math.isfinite(self.commission_per_unit):
            raise ValueError(
                f"commission_per_unit must be finite, got: {self.commission_per_unit}"
            )
        if self.periods_per_year <= 0:
            raise ValueError(
                f"periods_per_year must be positive, got: {self.periods_per_year}"
            )
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got: {self.log_level}"
            )

    @property
    def logging_level(self) -> int:
        """The log_level name as a logging module constant."""
        return getattr(logging, self.log_level)

    @classmethod
    def from_env(cls) -> "ProfitLossSettings":
        """
        Load P&L settings from environment variables.

        **Environment variables** (all optional):
          - PNL_BIG_POINT_VALUE: Contract multiplier (default 1.0).
          - PNL_COMMISSION_PER_UNIT: Commission per unit (default 0.0).
          - PNL_PERIODS_PER_YEAR: Bars per year (default 252).
          - PNL_RESULTS_DIR: Output directory (default data/results).
          - PNL_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default WARNING).

        Returns:
            ProfitLossSettings object with values loaded from environment.

        Raises:
            ValueError: If a variable is set to something that cannot be parsed
                       or fails validation.

        Usage example:
            >>> # In .env file:
            >>> # PNL_BIG_POINT_VALUE=50
            >>> # PNL_COMMISSION_PER_UNIT=2.5
            >>>
            >>> settings = ProfitLossSettings.from_env()
            >>> print(settings.big_point_value)  # 50.0
        """
        big_point_str = os.getenv("PNL_BIG_POINT_VALUE", "1.0")
        commission_str = os.getenv("PNL_COMMISSION_PER_UNIT", "0.0")
        periods_str = os.getenv("PNL_PERIODS_PER_YEAR", "252")
        results_dir = os.getenv("PNL_RESULTS_DIR", "data/results")
        log_level = os.getenv("PNL_LOG_LEVEL", "WARNING").upper()

        try:
            big_point_value = float(big_point_str)
        except ValueError:
            raise ValueError(
                f"PNL_BIG_POINT_VALUE must be a number, got: {big_point_str}"
            )

        try:
            commission_per_unit = float(commission_str)
        except ValueError:
            raise ValueError(
                f"PNL_COMMISSION_PER_UNIT must be a number, got: {commission_str}"
            )

        try:
            periods_per_year = int(periods_str)
        except ValueError:
            raise ValueError(
                f"PNL_PERIODS_PER_YEAR must be an integer, got: {periods_str}"
            )

        return cls(
            big_point_value=big_point_value,
            commission_per_unit=commission_per_unit,
            periods_per_year=periods_per_year,
            results_dir=Path(results_dir),
            log_level=log_level,
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the project.

    **Usage pattern**:
      ```python
      from src.config.settings import get_settings

      settings = get_settings()
      big_point = settings.pnl.big_point_value
      ```

    Attributes:
        pnl: Defaults for P&L runs.
    """
    pnl: ProfitLossSettings = field(default_factory=ProfitLossSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load global settings from environment variables."""
        return cls(pnl=ProfitLossSettings.from_env())


# Lazily-loaded singleton; tests construct Settings directly or call reset_settings()
_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from environment on first call, then cached for reuse.

    Returns:
        Global Settings singleton.

    Raises:
        ValueError: If an environment variable fails validation.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()

    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    **Testing pattern**:
      ```python
      def test_something(monkeypatch):
          reset_settings()
          monkeypatch.setenv("PNL_BIG_POINT_VALUE", "50")
          assert get_settings().pnl.big_point_value == 50.0
      ```
    """
    global _default_settings
    _default_settings = None
