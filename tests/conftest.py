"""Shared fixtures for walle_e2e unit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from walle_e2e.config import Settings
from walle_e2e.core.session import UiDriver
from tests.fakes import FakeClock, FakePage


# ---------------------------------------------------------------------------
# Fixture: settings isolated from the environment and .env files
# ---------------------------------------------------------------------------

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every file path into a temporary directory."""
    return Settings(
        _env_file=None,
        base_url="http://walle.test",
        ledger_path=tmp_path / "data" / "used_wallet_addresses.json",
        storage_state_path=tmp_path / "auth" / "google.json",
        screenshot_dir=tmp_path / "screenshots",
    )


# ---------------------------------------------------------------------------
# Fixture: fake page on a virtual clock
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def page(clock: FakeClock) -> FakePage:
    return FakePage(clock)


@pytest.fixture
def driver(page: FakePage, clock: FakeClock, test_settings: Settings) -> UiDriver:
    """Resolver, waiter and executor wired to the fake page and clock."""
    return UiDriver.for_page(page, test_settings, clock=clock, sleep=clock.sleep)
