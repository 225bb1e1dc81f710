"""
Leaderboard flows: the ranked agent table and the bubbles of fame map.

Both run anonymously and only check structure (headers, row count, non-empty
cells, panels opening and closing), never which agents are ranked.
"""

import structlog

from walle_e2e.core.flow import Flow, FlowContext
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.leaderboard import COLUMNS, LEADERBOARD_ROWS, LeaderboardPage

logger = structlog.get_logger()

# Columns whose first row must hold a value once the table is loaded.
VALUE_COLUMNS = ("agent-score", "trades", "chats")


def build_leaderboard_table_flow(driver: UiDriver, rows: int = LEADERBOARD_ROWS) -> Flow:
    leaderboard = LeaderboardPage(driver)

    flow = Flow("leaderboard-table", description="Leaderboard table structure and sorting")

    async def open_leaderboard(ctx: FlowContext) -> None:
        await leaderboard.reset()
        await leaderboard.wait_for_table()

    async def headers_shown(ctx: FlowContext) -> None:
        for column in COLUMNS:
            await leaderboard.wait_visible(leaderboard.header_labels[column], timeout=5)

    async def wait_for_rows(ctx: FlowContext) -> None:
        ctx.data["rows"] = await leaderboard.wait_rows(rows)

    async def first_row_usable(ctx: FlowContext) -> None:
        first = leaderboard.cell("agent-name", 0)
        await leaderboard.wait_visible(first, timeout=5)
        await leaderboard.wait_enabled(first, timeout=5)

    async def sort_each_column(ctx: FlowContext) -> None:
        for column in COLUMNS:
            await leaderboard.sort_by(column)
            await leaderboard.wait_visible(leaderboard.header_labels[column], timeout=5)
        ctx.data["sorted_by"] = list(COLUMNS)

    async def first_row_has_values(ctx: FlowContext) -> None:
        values = {}
        for column in VALUE_COLUMNS:
            values[column] = await leaderboard.cell_text(column, 0)
            if not values[column]:
                raise AssertionError(f"first row has an empty '{column}' cell")
        ctx.data["first_row"] = values

    async def connect_wallet_available(ctx: FlowContext) -> None:
        await leaderboard.wait_visible(leaderboard.connect_wallet_button, timeout=5)
        await leaderboard.wait_enabled(leaderboard.connect_wallet_button, timeout=5)

    flow.step("Open leaderboard", open_leaderboard, assertions=[headers_shown])
    flow.step(f"Wait for {rows} agent rows", wait_for_rows, assertions=[first_row_usable])
    flow.step("Sort by each column", sort_each_column, assertions=[headers_shown, first_row_has_values])
    flow.step("Connect wallet button is available", assertions=[connect_wallet_available])
    return flow


def build_leaderboard_bubbles_flow(driver: UiDriver, bubble: int = 0) -> Flow:
    leaderboard = LeaderboardPage(driver)

    flow = Flow("leaderboard-bubbles", description="Bubbles of fame open and close agent panels")

    async def open_leaderboard(ctx: FlowContext) -> None:
        await leaderboard.reset()
        await leaderboard.wait_for_bubbles()

    async def bubbles_present(ctx: FlowContext) -> None:
        ctx.data["bubbles"] = await leaderboard.wait_count_at_least(
            leaderboard.bubbles, 1, timeout=15
        )

    async def open_bubble(ctx: FlowContext) -> None:
        ctx.data["agent_name"] = await leaderboard.open_bubble(bubble)
        logger.info("bubble_opened", agent=ctx.data["agent_name"], index=bubble)

    async def panel_matches_bubble(ctx: FlowContext) -> None:
        await leaderboard.panel_shows(ctx.data["agent_name"])
        await leaderboard.wait_visible(leaderboard.panel_chat_button, timeout=5)
        await leaderboard.wait_enabled(leaderboard.panel_chat_button, timeout=5)

    async def close_panel(ctx: FlowContext) -> None:
        await leaderboard.close_panel()

    flow.step("Open leaderboard", open_leaderboard, assertions=[bubbles_present])
    flow.step("Open an agent bubble", open_bubble, assertions=[panel_matches_bubble])
    flow.step("Close the agent panel", close_panel)
    return flow
