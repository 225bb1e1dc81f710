"""
My Agents page (signed-in users only) and the agent profile page it links to.
"""

import re

from walle_e2e.core.errors import AuthStateError
from walle_e2e.core.locator import Intent
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage

PROFILE_URL = re.compile(r"/agents/[a-f0-9-]+")
CHAT_URL = re.compile(r"/chat")
MY_AGENTS_URL = re.compile(r"/my-agents")
AGENT_TAGS = re.compile(r"^\s*(LAUNCHED|ANALYSED)\s*$")


class MyAgentsPage(BasePage):
    path = "/my-agents"

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.title = self.declare("my_agents.title", test_id="page-title")
        self.sidebar_item = self.declare("my_agents.sidebar", test_id="sidebar-nav-item-agents")
        self.auth_required = self.declare("my_agents.auth_required", test_id="chat-auth-required")
        # Skeletons and the inner card links share the agent-card- prefix.
        self.cards = self.declare(
            "my_agents.cards",
            css=(
                'div[data-testid^="agent-card-"]'
                ':not([data-testid="agent-card-skeleton"])'
                ':not([data-testid*="link"])'
            ),
        )

    def card(self, index: int) -> Intent:
        return self.cards.nth(index)

    def card_image(self, index: int) -> Intent:
        return self.declare(
            f"my_agents.card_image[{index}]",
            css='img[alt="Agent avatar"]',
            index=0,
            within=self.card(index),
        )

    def card_name(self, index: int) -> Intent:
        return self.declare(
            f"my_agents.card_name[{index}]",
            css='a[href^="/agents/"]',
            index=0,
            within=self.card(index),
        )

    def card_tag(self, index: int) -> Intent:
        return self.declare(
            f"my_agents.card_tag[{index}]", text=AGENT_TAGS, index=0, within=self.card(index)
        )

    async def wait_loaded(self, timeout: float = 15) -> None:
        """
        Wait for the page title.

        Raises:
            AuthStateError: the page asks to sign in, i.e. the stored session expired
        """

        async def loaded() -> str | None:
            if await self.resolver.find(self.auth_required):
                return "auth-required"
            if await self.resolver.find(self.title):
                return "ready"
            return None

        state = await self.waiter.wait_until(
            loaded, timeout=timeout, description="my agents title or sign-in prompt"
        )
        if state == "auth-required":
            raise AuthStateError("My Agents asks to sign in; the stored session has expired")

    async def has_agents(self, timeout: float = 5) -> bool:
        return await self.is_visible(self.card(0), timeout)

    async def card_count(self) -> int:
        return await self.count(self.cards)

    async def verify_card(self, index: int) -> None:
        await self.wait_visible(self.card(index), timeout=5)
        await self.wait_enabled(self.card(index), timeout=5)
        await self.wait_visible(self.card_image(index), timeout=5)
        await self.wait_visible(self.card_tag(index), timeout=5)

    async def open_agent_profile(self, index: int = 0, timeout: float = 15) -> str:
        await self.click(self.card_name(index))
        return await self.wait_for_url(PROFILE_URL, timeout)

    async def open_chat_from_card(self, index: int = 0, timeout: float = 30) -> str:
        await self.click(self.card(index))
        return await self.wait_for_url(CHAT_URL, timeout)

    async def back_via_sidebar(self, timeout: float = 15) -> None:
        await self.click(self.sidebar_item)
        await self.wait_for_url(MY_AGENTS_URL, timeout)
        await self.wait_visible(self.title, timeout)


class AgentProfilePage(BasePage):
    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.chat_button = self.declare(
            "profile.chat", role=("button", re.compile(r"^chat$", re.I))
        )

    async def wait_for_profile(self, timeout: float = 15) -> None:
        await self.wait_for_url(PROFILE_URL, timeout)
        await self.wait_visible(self.chat_button, timeout)

    async def open_chat(self, timeout: float = 30) -> str:
        await self.click(self.chat_button)
        return await self.wait_for_url(CHAT_URL, timeout)
