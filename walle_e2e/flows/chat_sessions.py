"""
Chat sessions flow: the sessions list, starting a chat from the Explore
Agents modal and reopening an existing session.
"""

import random
from typing import Callable

from walle_e2e.core.flow import Flow, FlowContext
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.chat_sessions import EXPLORE_MIN_AGENTS, ChatSessionsPage


def build_chat_sessions_flow(
    driver: UiDriver,
    min_explore_agents: int = EXPLORE_MIN_AGENTS,
    choose: Callable[[int], int] = random.randrange,
) -> Flow:
    chat = ChatSessionsPage(driver)

    flow = Flow("chat-sessions", description="Chat sessions list and Explore Agents modal")

    async def open_sessions(ctx: FlowContext) -> None:
        await chat.goto()
        await chat.wait_loaded()

    async def sessions_listed(ctx: FlowContext) -> None:
        ctx.data["sessions"] = await chat.session_count()
        if ctx.data["sessions"]:
            await chat.wait_visible(chat.sessions.nth(0), timeout=5)

    async def open_explore(ctx: FlowContext) -> None:
        await chat.open_explore_modal()

    async def enough_agents(ctx: FlowContext) -> None:
        count = await chat.wait_count_at_least(chat.explore_cards, min_explore_agents, timeout=15)
        ctx.data["explore_agents"] = count

    async def start_chat(ctx: FlowContext) -> None:
        index = choose(ctx.data["explore_agents"])
        ctx.data["agent_name"] = await chat.start_chat_with(index)

    async def back_to_sessions(ctx: FlowContext) -> None:
        await chat.back_via_sidebar()

    async def reopen_session(ctx: FlowContext) -> None:
        if not await chat.session_count():
            return
        ctx.data["session_url"] = await chat.open_session(0)
        await chat.back_via_sidebar()

    flow.step("Open chat sessions", open_sessions, assertions=[sessions_listed])
    flow.step("Open Explore Agents modal", open_explore, assertions=[enough_agents])
    flow.step("Start a chat with an explore agent", start_chat)
    flow.step("Return to chat sessions from the sidebar", back_to_sessions)
    flow.step("Reopen the latest session if any", reopen_session)
    return flow
