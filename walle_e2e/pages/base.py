"""
Base page model.

Page models declare their elements as intents at construction and express
every interaction through the driver: the resolver finds, the executor acts,
the waiter waits. Nothing here touches a raw selector.
"""

import re
from typing import Any

import structlog

from walle_e2e.core.actions import ActionOutcome
from walle_e2e.core.errors import WaitTimeoutError
from walle_e2e.core.locator import Intent, ResolvedElement, TextMatch, intent
from walle_e2e.core.session import UiDriver
from walle_e2e.core.waiter import (
    count_at_least,
    element_enabled,
    element_hidden,
    element_visible,
    text_matches,
    url_matches,
    value_matches,
)

logger = structlog.get_logger()


class BasePage:
    """
    Usage:
        class SearchPage(BasePage):
            def __init__(self, driver):
                super().__init__(driver)
                self.search = self.declare("search", test_id="search", role="button:Search")
    """

    path = "/"

    def __init__(self, driver: UiDriver):
        self.driver = driver
        self.page = driver.page
        self.resolver = driver.resolver
        self.waiter = driver.waiter
        self.executor = driver.executor
        self.log = logger.bind(page_model=type(self).__name__)

        self.dialog = self.declare("dialog", role="dialog")
        self.portal_overlay = self.declare("portal_overlay", css='[data-portal="safe-portal"]')

    def declare(self, name: str | Intent, **strategies: Any) -> Intent:
        """Register an intent for this session; accepts an Intent or ``intent()`` kwargs."""
        item = name if isinstance(name, Intent) else intent(name, **strategies)
        return self.driver.registry.register(item)

    # ---------- Navigation ----------
    async def goto(self, path: str | None = None) -> None:
        target = path or self.path
        self.log.info("navigate", path=target)
        await self.page.goto(target, wait_until="domcontentloaded")

    async def wait_for_url(self, pattern: TextMatch, timeout: float = 15) -> str:
        return await self.waiter.wait(url_matches(self.page, pattern, timeout))

    # ---------- Interaction ----------
    async def resolve(self, item: Intent, timeout: int | None = None) -> ResolvedElement:
        return await self.resolver.resolve(item, timeout)

    async def click(self, item: Intent) -> ActionOutcome:
        return await self.executor.click(await self.resolve(item))

    async def fill(self, item: Intent, value: str, blur: bool = False) -> ActionOutcome:
        handle = await self.resolve(item)
        outcome = await self.executor.fill(handle, value)
        if blur:
            await handle.locator.blur()
        return outcome

    async def hover(self, item: Intent) -> ActionOutcome:
        return await self.executor.hover(await self.resolve(item))

    async def press(self, item: Intent, key: str) -> ActionOutcome:
        return await self.executor.press(await self.resolve(item), key)

    # ---------- Reading ----------
    async def text_of(self, item: Intent) -> str:
        handle = await self.resolve(item)
        return (await handle.locator.text_content() or "").strip()

    async def value_of(self, item: Intent) -> str:
        handle = await self.resolve(item)
        return await handle.locator.input_value()

    async def attribute_of(self, item: Intent, name: str) -> str | None:
        handle = await self.resolve(item)
        return await handle.locator.get_attribute(name)

    async def count(self, item: Intent) -> int:
        return await self.resolver.count_visible(item)

    # ---------- Waiting ----------
    async def wait_visible(self, item: Intent, timeout: float | None = None) -> ResolvedElement:
        return await self.waiter.wait(element_visible(self.resolver, item, timeout))

    async def wait_hidden(self, item: Intent, timeout: float | None = None) -> None:
        await self.waiter.wait(element_hidden(self.resolver, item, timeout))

    async def wait_enabled(self, item: Intent, timeout: float | None = None) -> None:
        await self.waiter.wait(element_enabled(self.resolver, item, timeout))

    async def wait_text(
        self, item: Intent, pattern: TextMatch, timeout: float | None = None
    ) -> str:
        return await self.waiter.wait(text_matches(self.resolver, item, pattern, timeout))

    async def wait_value(
        self, item: Intent, pattern: TextMatch, timeout: float | None = None
    ) -> str:
        return await self.waiter.wait(value_matches(self.resolver, item, pattern, timeout))

    async def wait_count_at_least(
        self, item: Intent, minimum: int, timeout: float | None = None
    ) -> int:
        return await self.waiter.wait(count_at_least(self.resolver, item, minimum, timeout))

    async def is_visible(self, item: Intent, timeout: float = 2) -> bool:
        """
        Presence check for optional UI (modals that may or may not appear).

        A slow element that shows up after ``timeout`` is reported as absent:
        callers must only use this where absence is a legitimate state.
        """
        try:
            await self.wait_visible(item, timeout)
        except WaitTimeoutError:
            self.log.info("optional_element_absent", element=item.name, timeout_s=timeout)
            return False
        return True

    async def settle(self, seconds: float, reason: str) -> None:
        await self.waiter.settle(seconds, reason)

    # ---------- Modal reset ----------
    async def ensure_no_modal_open(self, presses: int = 3, timeout: float = 5) -> None:
        """Dismiss stacked dialogs with Escape and confirm none is left open."""
        for _ in range(presses):
            await self.page.keyboard.press("Escape")
        await self.wait_hidden(self.dialog, timeout)
        await self.wait_hidden(self.portal_overlay, timeout)


def count_in(text: str | None, pattern: str = r"(\d+)") -> int:
    """First integer in ``text`` (``0`` when there is none)."""
    found = re.search(pattern, text or "")
    return int(found.group(1)) if found else 0
