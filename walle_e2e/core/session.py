"""
Browser Session

Owns the Playwright lifecycle for one test or flow run:
- Context management for browser, context and page
- Optional authenticated storage state (consumed, never created)
- A ``UiDriver`` bundling resolver, waiter and executor for the page
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable

import structlog
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from walle_e2e.config import Settings, settings as default_settings
from walle_e2e.core.actions import ActionExecutor
from walle_e2e.core.errors import AuthStateError
from walle_e2e.core.locator import ElementResolver, IntentRegistry
from walle_e2e.core.waiter import ConditionWaiter

logger = structlog.get_logger()


class BrowserType(str, Enum):
    """Supported browser types."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


@dataclass
class BrowserOptions:
    """Browser configuration options."""

    browser_type: BrowserType = BrowserType.CHROMIUM
    headless: bool = True
    slow_mo: int = 0
    timeout: int = 30000
    viewport_width: int = 1440
    viewport_height: int = 900
    base_url: str | None = None
    locale: str = "en-US"
    storage_state: Path | None = None
    extra_context_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, require_auth: bool = False) -> "BrowserOptions":
        return cls(
            browser_type=BrowserType(settings.browser),
            headless=settings.playwright_headless,
            slow_mo=settings.playwright_slow_mo,
            timeout=settings.playwright_timeout,
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            base_url=settings.base_url or None,
            storage_state=settings.storage_state_path if require_auth else None,
        )


def load_storage_state(path: Path) -> dict:
    """
    Read a Playwright storage-state file.

    Raises:
        AuthStateError: the file is missing, is not JSON, or has no cookies/origins
    """
    path = Path(path)
    if not path.is_file():
        raise AuthStateError(f"Authentication state file not found: {path}")
    try:
        state = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise AuthStateError(f"Authentication state file is unreadable: {path}: {e}") from e
    if not isinstance(state, dict) or not {"cookies", "origins"} & state.keys():
        raise AuthStateError(f"Authentication state file has no cookies or origins: {path}")
    return state


@dataclass
class UiDriver:
    """Everything a page model needs to talk to one page."""

    page: Page
    registry: IntentRegistry
    resolver: ElementResolver
    waiter: ConditionWaiter
    executor: ActionExecutor

    @classmethod
    def for_page(
        cls,
        page: Page,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "UiDriver":
        settings = settings or default_settings
        registry = IntentRegistry()
        return cls(
            page=page,
            registry=registry,
            resolver=ElementResolver(
                page,
                registry,
                strategy_timeout=settings.strategy_timeout_ms,
                timeout=settings.resolve_timeout_ms,
                clock=clock,
            ),
            waiter=ConditionWaiter(
                page,
                intervals=settings.poll_intervals,
                timeout=settings.wait_timeout_s,
                clock=clock,
                sleep=sleep,
            ),
            executor=ActionExecutor(
                page,
                primary_timeout=settings.action_timeout_ms,
                fallback_timeout=settings.fallback_timeout_ms,
                screenshot_dir=settings.screenshot_dir if settings.capture_screenshots else None,
            ),
        )


class BrowserSession:
    """
    One browser, one context, one page.

    Usage:
        async with BrowserSession(require_auth=True) as session:
            home = HomePage(session.driver)
            await home.goto()
    """

    def __init__(
        self,
        options: BrowserOptions | None = None,
        settings: Settings | None = None,
        require_auth: bool = False,
    ):
        self.settings = settings or default_settings
        self.options = options or BrowserOptions.from_settings(self.settings, require_auth)
        self.require_auth = require_auth
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._driver: UiDriver | None = None

    @property
    def page(self) -> Page:
        """Get current page, raise if not initialized."""
        if self._page is None:
            raise RuntimeError("Browser not initialized. Use 'async with' context.")
        return self._page

    @property
    def driver(self) -> UiDriver:
        if self._driver is None:
            raise RuntimeError("Browser not initialized. Use 'async with' context.")
        return self._driver

    async def __aenter__(self) -> "BrowserSession":
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._cleanup()

    async def _initialize(self) -> None:
        log = logger.bind(browser=self.options.browser_type.value)

        # Fail before launching anything when the auth precondition is missing.
        storage_state = None
        if self.require_auth:
            if self.options.storage_state is None:
                raise AuthStateError("Authenticated session requested but no storage state configured")
            storage_state = load_storage_state(self.options.storage_state)

        log.info("initializing_browser", authenticated=storage_state is not None)

        self._playwright = await async_playwright().start()
        try:
            launcher = getattr(self._playwright, self.options.browser_type.value)
            self._browser = await launcher.launch(
                headless=self.options.headless,
                slow_mo=self.options.slow_mo,
            )

            context_options: dict[str, Any] = {
                "viewport": {
                    "width": self.options.viewport_width,
                    "height": self.options.viewport_height,
                },
                "locale": self.options.locale,
                **self.options.extra_context_options,
            }
            if self.options.base_url:
                context_options["base_url"] = self.options.base_url
            if storage_state is not None:
                context_options["storage_state"] = storage_state

            self._context = await self._browser.new_context(**context_options)
            self._context.set_default_timeout(self.options.timeout)
            self._page = await self._context.new_page()
        except BaseException:
            await self._cleanup()
            raise

        self._driver = UiDriver.for_page(self._page, self.settings)
        log.info("browser_initialized", base_url=self.options.base_url)

    async def _cleanup(self) -> None:
        """Close context, browser and playwright in order; a failing close never skips the rest."""
        logger.info("cleaning_up_browser")
        context, browser, playwright = self._context, self._browser, self._playwright

        self._driver = None
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

        try:
            if context:
                await context.close()
        finally:
            try:
                if browser:
                    await browser.close()
            finally:
                if playwright:
                    await playwright.stop()


@asynccontextmanager
async def create_session(
    options: BrowserOptions | None = None,
    settings: Settings | None = None,
    require_auth: bool = False,
) -> AsyncGenerator[BrowserSession, None]:
    """
    Convenience context manager for creating a browser session.

    Usage:
        async with create_session(require_auth=True) as session:
            await session.page.goto("/")
    """
    session = BrowserSession(options, settings, require_auth)
    async with session:
        yield session
