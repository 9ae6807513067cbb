"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import src...' works, and
isolates every test from PNL_* variables set in the shell or a local .env.
"""
import sys
from pathlib import Path

import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.config.settings import reset_settings

PNL_ENV_VARS = (
    "PNL_BIG_POINT_VALUE",
    "PNL_COMMISSION_PER_UNIT",
    "PNL_PERIODS_PER_YEAR",
    "PNL_RESULTS_DIR",
    "PNL_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_pnl_env(monkeypatch):
    """Unset PNL_* variables and drop the cached settings around each test."""
    for name in PNL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
