"""Global pytest fixtures and environment overrides.

Keeps the suite hermetic: no Gemini key leaks in from the developer's shell or
.env file, and the cached Settings object is rebuilt for every test.
"""

import os

import pytest

from stocksense.config import get_settings
from tests.factories import make_series

_ENV_KEYS = (
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "GEMINI_API_URL",
    "NARRATIVE_TIMEOUT_SECONDS",
    "CONFIDENCE_THRESHOLD",
    "RSI_PERIOD",
    "SMA_PERIODS",
    "DISABLED_DETECTORS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Strip engine settings from the environment and run from an empty dir."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Settings reads .env from the working directory
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def doji_series():
    """Single bar: body 1, range 15, balanced shadows."""
    return make_series([(100.0, 110.0, 95.0, 101.0, 1000.0)])


@pytest.fixture
def bullish_engulfing_series():
    """Red candle followed by a larger green candle that engulfs it."""
    return make_series(
        [
            (50.0, 52.0, 48.0, 49.0, 100.0),
            (48.0, 55.0, 47.0, 53.0, 200.0),
        ]
    )


@pytest.fixture
def gemini_env(monkeypatch):
    """Configure a fake Gemini key for the duration of a test."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    get_settings.cache_clear()
    yield os.environ["GEMINI_API_KEY"]
