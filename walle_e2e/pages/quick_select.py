"""
Quick Select modal: the five OG agents offered from the chat input.
"""

import re

from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage, count_in

QUICK_SELECT_AGENTS = 5


class QuickSelectModal(BasePage):
    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.heading = self.declare("quick_select.heading", text="Quick Select from OG Agents")
        self.agent_counter = self.declare(
            "quick_select.counter", css="p", has_text=re.compile(r"agents?\s+selected")
        )
        self.explore_more_button = self.declare(
            "quick_select.explore_more", role="button:EXPLORE MORE AGENTS"
        )
        self.add_to_chat_button = self.declare(
            "quick_select.add_to_chat", role="button:ADD TO CHAT"
        )
        self.agent_cards = self.declare("quick_select.cards", css='[data-name="Multi-line"]')
        # "Select agent" is a substring of "Deselect agent"; the registry makes it exact.
        self.select_buttons = self.declare("quick_select.select", role="button:Select agent")
        self.deselect_buttons = self.declare(
            "quick_select.deselect", role="button:Deselect agent"
        )

    async def wait_loaded(self, timeout: float = 10) -> int:
        return await self.wait_count_at_least(self.agent_cards, QUICK_SELECT_AGENTS, timeout)

    async def select_agent(self, index: int) -> None:
        button = self.select_buttons.nth(index)
        await self.wait_visible(button, timeout=5)
        await self.click(button)

    async def deselect_agent(self, index: int) -> None:
        button = self.deselect_buttons.nth(index)
        await self.wait_visible(button, timeout=5)
        await self.click(button)

    async def agent_count(self) -> int | None:
        """Number shown in the "N agent(s) selected" counter; ``None`` while it is not rendered."""
        handle = await self.resolver.find(self.agent_counter)
        if handle is None:
            return None
        return count_in(await handle.locator.text_content(), r"(\d+)\s+agent")

    async def wait_agent_count(self, expected: int, timeout: float = 5) -> int:
        return await self.waiter.wait_until(
            self.agent_count,
            accept=lambda count: count == expected,
            timeout=timeout,
            description=f"quick select counter shows {expected}",
        )

    async def selected_count(self) -> int:
        return await self.count(self.deselect_buttons)

    async def close_with_add_to_chat(self) -> None:
        await self.click(self.add_to_chat_button)

    async def click_explore_more(self) -> None:
        # Often covered by card overlays; the executor's forced fallback handles it.
        await self.click(self.explore_more_button)
