"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest
from fakes import FakeClock

_BOT_ENV_VARS = ("UNHEDGED_API_KEY", "CMC_API_KEY", "BOT_TIMEZONE")


@pytest.fixture(autouse=True)
def _clear_bot_env_vars() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Hide real credentials and overrides from the developer's shell.

    Tests that need a key set it explicitly with ``patch.dict``, so a key
    exported locally never leaks into a test run.
    """
    cleaned = {k: v for k, v in os.environ.items() if k not in _BOT_ENV_VARS}
    with patch.dict(os.environ, cleaned, clear=True):
        yield


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a clock and sleep that never block."""
    return FakeClock()
