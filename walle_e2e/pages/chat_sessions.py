"""
Chat sessions page: the list of past chats and the Explore Agents modal
opened from its add-agent button.
"""

import re

from walle_e2e.core.errors import WaitTimeoutError
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage

CHAT_URL = re.compile(r"/chat")
EXPLORE_MIN_AGENTS = 15


class ChatSessionsPage(BasePage):
    path = "/chat"

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.title = self.declare("chat_sessions.title", test_id="page-title")
        self.sessions = self.declare("chat_sessions.cards", css='[data-testid^="chat-session-"]')
        self.no_sessions = self.declare("chat_sessions.empty", test_id="chat-no-sessions")
        self.sidebar_item = self.declare("chat_sessions.sidebar", test_id="sidebar-nav-item-chat")
        self.add_agent_button = self.declare(
            "chat_sessions.add_agent", test_id="chat-add-agent-button"
        )
        self.chat_header_agent = self.declare(
            "chat_sessions.header_agent", test_id="chat-header-agent"
        )

        # ---------- Explore Agents modal ----------
        self.explore_modal = self.declare("explore.modal", test_id="chat-add-agent-modal")
        self.explore_heading = self.declare("explore.heading", test_id="explore-agents-heading")
        self.explore_cards = self.declare(
            "explore.cards", css='div[data-testid^="agent-card-"]', within=self.explore_modal
        )
        self.explore_select_buttons = self.declare(
            "explore.select",
            css='button[aria-label="Select agent"]',
            within=self.explore_modal,
        )
        self.explore_add_button = self.declare("explore.add", test_id="explore-agents-add")

    async def wait_loaded(self, timeout: float = 15) -> str:
        return await self.wait_text(self.title, re.compile(r"^\s*chat\s*$", re.I), timeout)

    async def session_count(self, timeout: float = 5) -> int:
        """Visible session cards; ``0`` once the empty state shows or nothing renders in time."""

        async def settled() -> int | None:
            count = await self.count(self.sessions)
            if count:
                return count
            if await self.resolver.find(self.no_sessions):
                return 0
            return None

        try:
            return await self.waiter.wait_until(
                settled,
                accept=lambda count: count is not None,
                timeout=timeout,
                description="chat sessions or empty state",
            )
        except WaitTimeoutError:
            self.log.info("chat_sessions_absent", timeout_s=timeout)
            return 0

    async def open_session(self, index: int = 0, timeout: float = 15) -> str:
        await self.click(self.sessions.nth(index))
        return await self.wait_for_url(CHAT_URL, timeout)

    async def back_via_sidebar(self, timeout: float = 15) -> None:
        await self.click(self.sidebar_item)
        await self.wait_loaded(timeout)

    # ---------- Explore Agents modal ----------
    async def open_explore_modal(self, timeout: float = 15) -> int:
        await self.click(self.add_agent_button)
        await self.wait_visible(self.explore_heading, timeout)
        return await self.wait_count_at_least(self.explore_cards, 1, timeout)

    async def explore_agent_count(self) -> int:
        return await self.count(self.explore_cards)

    async def start_chat_with(self, index: int, timeout: float = 15) -> str:
        """Select one explore card and add it; returns the agent shown in the chat header."""
        await self.click(self.explore_select_buttons.nth(index))
        await self.wait_enabled(self.explore_add_button, timeout=5)
        await self.click(self.explore_add_button)
        await self.wait_hidden(self.explore_modal, timeout)
        await self.wait_for_url(CHAT_URL, timeout)
        await self.wait_visible(self.chat_header_agent, timeout)
        return await self.text_of(self.chat_header_agent)
