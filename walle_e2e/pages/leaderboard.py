"""
Leaderboard page: the "bubbles of fame" map and the ranked agent table.

The table is laid out as five flex columns rather than rows, so a "row" is
the n-th child of every column.
"""

import re

from walle_e2e.core.locator import Intent
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage

COLUMNS = ("rank", "agent-name", "agent-score", "trades", "chats")
LEADERBOARD_ROWS = 20


class LeaderboardPage(BasePage):
    path = "/leaderboard"

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.connect_wallet_button = self.declare(
            "leaderboard.connect_wallet",
            test_id="main-header-connect-wallet-btn",
            role="button:CONNECT WALLET",
        )
        self.loading_text = self.declare("leaderboard.loading", text="Loading agents...")

        # ---------- Bubbles of fame ----------
        self.bubbles_heading = self.declare(
            "leaderboard.bubbles_heading", test_id="leaderboard-bubbles-heading"
        )
        self.bubbles_map = self.declare("leaderboard.bubbles_map", test_id="leaderboard-bubbles-map")
        self.bubbles = self.declare(
            "leaderboard.bubbles", css='[data-testid^="leaderboard-bubble-"]'
        )
        self.detail_panel = self.declare("leaderboard.panel", test_id="agent-hover-card")
        self.panel_name = self.declare("leaderboard.panel_name", test_id="agent-hover-card-name")
        self.panel_close = self.declare("leaderboard.panel_close", test_id="agent-hover-card-close")
        self.panel_chat_button = self.declare(
            "leaderboard.panel_chat", role="button:CHAT WITH AGENT", within=self.detail_panel
        )

        # ---------- Table ----------
        self.table_heading = self.declare("leaderboard.heading", test_id="leaderboard-heading")
        self.header_labels = {
            column: self.declare(
                f"leaderboard.header[{column}]", test_id=f"leaderboard-{column}-label"
            )
            for column in COLUMNS
        }
        self.columns = {
            column: self.declare(
                f"leaderboard.column[{column}]", test_id=f"leaderboard-{column}-column"
            )
            for column in COLUMNS
        }
        self.rows = {
            column: self.declare(
                f"leaderboard.rows[{column}]", css=":scope > div", within=self.columns[column]
            )
            for column in COLUMNS
        }

    def cell(self, column: str, row: int) -> Intent:
        if column not in COLUMNS:
            raise ValueError(f"Unknown column '{column}', expected one of {COLUMNS}")
        return self.rows[column].nth(row)

    def bubble_image(self, index: int) -> Intent:
        return self.declare(
            f"leaderboard.bubble_image[{index}]", css="img", index=0, within=self.bubbles.nth(index)
        )

    # ---------- Navigation / loading ----------
    async def reset(self) -> None:
        """Back to a clean leaderboard: navigate if needed and close any open panel."""
        if "/leaderboard" not in self.page.url:
            await self.goto()
        await self.wait_visible(self.bubbles_map, timeout=15)
        await self.page.keyboard.press("Escape")

    async def wait_for_table(self, timeout: float = 15) -> None:
        await self.wait_hidden(self.loading_text, timeout=10)
        await self.wait_visible(self.table_heading, timeout)
        await self.wait_visible(self.header_labels["rank"], timeout)

    async def wait_for_bubbles(self, timeout: float = 15) -> None:
        await self.wait_hidden(self.loading_text, timeout=10)
        await self.wait_visible(self.bubbles_heading, timeout)
        await self.wait_visible(self.bubbles_map, timeout)

    # ---------- Table ----------
    async def row_count(self, column: str = "agent-name") -> int:
        return await self.count(self.rows[column])

    async def wait_rows(self, minimum: int = LEADERBOARD_ROWS, timeout: float = 15) -> int:
        return await self.wait_count_at_least(self.rows["agent-name"], minimum, timeout)

    async def cell_text(self, column: str, row: int) -> str:
        return await self.text_of(self.cell(column, row))

    async def sort_by(self, column: str) -> None:
        if column not in COLUMNS:
            raise ValueError(f"Unknown column '{column}', expected one of {COLUMNS}")
        await self.click(self.header_labels[column])

    # ---------- Bubbles ----------
    async def bubble_count(self) -> int:
        return await self.count(self.bubbles)

    async def open_bubble(self, index: int = 0, timeout: float = 10) -> str:
        """Open the detail panel of a bubble; returns the agent name from its image."""
        name = await self.attribute_of(self.bubble_image(index), "alt") or ""
        await self.click(self.bubbles.nth(index))
        await self.wait_visible(self.detail_panel, timeout)
        return name.strip()

    async def panel_shows(self, name: str, timeout: float = 5) -> str:
        return await self.wait_text(self.panel_name, re.compile(re.escape(name), re.I), timeout)

    async def close_panel(self) -> None:
        await self.click(self.panel_close)
        await self.wait_hidden(self.detail_panel, timeout=5)
