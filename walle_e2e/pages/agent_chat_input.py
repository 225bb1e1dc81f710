"""
Chat input area on the home page: "Add Agents" button, selected-agent
thumbnails, message input and send button.
"""

import re

from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage


class AgentChatInput(BasePage):
    """
    The send button has no accessible name or test id, so it is found by
    structure: the second text-less button on the page.
    """

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        # Label becomes "+1 Add Agents", "+2 Add Agents" as agents are added.
        self.add_agents_button = self.declare(
            "chat.add_agents", role=("button", re.compile(r"Add Agents", re.I))
        )
        self.chat_input = self.declare(
            "chat.input",
            css="input.w-full.bg-transparent.border-none.outline-none",
            index=0,
        )
        self.send_button = self.declare(
            "chat.send", css="button", has_text=re.compile(r"^$"), index=1
        )
        self.thumbnail_remove_buttons = self.declare(
            "chat.thumbnail_remove", css="button", has_text="×"
        )

    async def thumbnail_count(self) -> int:
        """One "×" remove button per selected agent."""
        return await self.count(self.thumbnail_remove_buttons)

    async def wait_thumbnail_count(self, expected: int, timeout: float = 15) -> int:
        return await self.waiter.wait_until(
            self.thumbnail_count,
            accept=lambda count: count == expected,
            timeout=timeout,
            description=f"{expected} agent thumbnail(s)",
        )

    async def type_message(self, message: str) -> None:
        await self.fill(self.chat_input, message)

    async def click_send(self) -> None:
        await self.click(self.send_button)

    async def send_message(self, message: str) -> None:
        await self.type_message(message)
        await self.wait_enabled(self.send_button, timeout=5)
        await self.click_send()

    async def click_add_agents(self) -> None:
        await self.click(self.add_agents_button)
