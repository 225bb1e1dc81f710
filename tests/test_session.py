"""Unit tests for walle_e2e.core.session: auth state and session wiring."""

from __future__ import annotations

import json

import pytest
from playwright.async_api import Error as PlaywrightError

from walle_e2e.core import session as session_module
from walle_e2e.core.errors import AuthStateError
from walle_e2e.core.session import (
    BrowserOptions,
    BrowserSession,
    BrowserType,
    UiDriver,
    load_storage_state,
)
from tests.fakes import FakePage


class TestLoadStorageState:
    def test_missing_file(self, tmp_path):
        with pytest.raises(AuthStateError, match="not found"):
            load_storage_state(tmp_path / "google.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "google.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(AuthStateError, match="unreadable"):
            load_storage_state(path)

    def test_no_cookies_or_origins(self, tmp_path):
        path = tmp_path / "google.json"
        path.write_text(json.dumps({"token": "x"}), encoding="utf-8")
        with pytest.raises(AuthStateError, match="no cookies or origins"):
            load_storage_state(path)

    def test_valid_state(self, tmp_path):
        path = tmp_path / "google.json"
        state = {"cookies": [{"name": "sid", "value": "1"}], "origins": []}
        path.write_text(json.dumps(state), encoding="utf-8")
        assert load_storage_state(path) == state


class TestBrowserOptions:
    def test_from_settings(self, test_settings):
        options = BrowserOptions.from_settings(test_settings)

        assert options.browser_type is BrowserType.CHROMIUM
        assert options.base_url == "http://walle.test"
        assert (options.viewport_width, options.viewport_height) == (1440, 900)
        assert options.storage_state is None

    def test_auth_adds_storage_state(self, test_settings):
        options = BrowserOptions.from_settings(test_settings, require_auth=True)
        assert options.storage_state == test_settings.storage_state_path


class TestBrowserSession:
    def test_page_before_start_raises(self, test_settings):
        session = BrowserSession(settings=test_settings)
        with pytest.raises(RuntimeError):
            session.page
        with pytest.raises(RuntimeError):
            session.driver

    @pytest.mark.asyncio
    async def test_missing_auth_fails_before_launch(self, test_settings, monkeypatch):
        def launch_forbidden():
            raise AssertionError("browser must not start without auth state")

        monkeypatch.setattr(session_module, "async_playwright", launch_forbidden)

        with pytest.raises(AuthStateError):
            async with BrowserSession(settings=test_settings, require_auth=True):
                pass

    @pytest.mark.asyncio
    async def test_auth_required_without_configured_state(self, test_settings, monkeypatch):
        monkeypatch.setattr(session_module, "async_playwright", lambda: None)
        options = BrowserOptions.from_settings(test_settings)

        with pytest.raises(AuthStateError, match="no storage state configured"):
            async with BrowserSession(options, test_settings, require_auth=True):
                pass

    @pytest.mark.asyncio
    async def test_failed_context_close_still_closes_browser(self, test_settings):
        closed = []

        class Closing:
            def __init__(self, name, error=None):
                self.name = name
                self.error = error

            async def close(self):
                closed.append(self.name)
                if self.error:
                    raise self.error

            async def stop(self):
                closed.append(self.name)

        session = BrowserSession(settings=test_settings)
        session._context = Closing("context", PlaywrightError("Target closed"))
        session._browser = Closing("browser")
        session._playwright = Closing("playwright")

        with pytest.raises(PlaywrightError, match="Target closed"):
            await session._cleanup()

        assert closed == ["context", "browser", "playwright"]
        with pytest.raises(RuntimeError):
            session.driver
        assert session._browser is None
        assert session._playwright is None


class TestUiDriver:
    def test_driver_uses_settings(self, test_settings, clock):
        page = FakePage(clock)
        test_settings.strategy_timeout_ms = 1500

        driver = UiDriver.for_page(page, test_settings, clock=clock, sleep=clock.sleep)

        assert driver.resolver.strategy_timeout == 1500
        assert driver.resolver.timeout == test_settings.resolve_timeout_ms
        assert driver.waiter.intervals == (1.0, 2.0, 3.0, 5.0)
        assert driver.executor.primary_timeout == test_settings.action_timeout_ms
        assert driver.executor.screenshot_dir is None
        assert driver.resolver.registry is driver.registry

    def test_screenshots_enabled(self, test_settings, clock):
        test_settings.capture_screenshots = True
        driver = UiDriver.for_page(FakePage(clock), test_settings)
        assert driver.executor.screenshot_dir == test_settings.screenshot_dir
