"""
My Agents flow: the signed-in user's agents, their profile pages and the
two ways into a chat (profile chat button and card body).

Skipped when the account owns no agents yet.
"""

import structlog

from walle_e2e.core.errors import UnexpectedStateError
from walle_e2e.core.flow import Flow, FlowContext, RemediationDecision
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.my_agents import AgentProfilePage, MyAgentsPage

logger = structlog.get_logger()


def build_my_agents_flow(driver: UiDriver) -> Flow:
    my_agents = MyAgentsPage(driver)
    profile = AgentProfilePage(driver)

    flow = Flow("my-agents", description="Browse owned agents and open chats from them")

    async def open_my_agents(ctx: FlowContext) -> None:
        await my_agents.goto()
        await my_agents.wait_loaded()

    async def titled(ctx: FlowContext) -> None:
        await my_agents.wait_text(my_agents.title, "My Agents", timeout=5)

    async def verify_cards(ctx: FlowContext) -> None:
        if not await my_agents.has_agents():
            raise UnexpectedStateError("no-agents", "My Agents lists no agent cards")
        count = await my_agents.card_count()
        for index in range(count):
            await my_agents.verify_card(index)
        ctx.data["agents"] = count

    async def open_profile(ctx: FlowContext) -> None:
        ctx.data["profile_url"] = await my_agents.open_agent_profile(0)

    async def profile_loaded(ctx: FlowContext) -> None:
        await profile.wait_for_profile()

    async def chat_from_profile(ctx: FlowContext) -> None:
        ctx.data["profile_chat_url"] = await profile.open_chat()

    async def back_to_my_agents(ctx: FlowContext) -> None:
        await my_agents.back_via_sidebar()

    async def chat_from_card(ctx: FlowContext) -> None:
        index = min(1, ctx.data["agents"] - 1)
        ctx.data["card_chat_url"] = await my_agents.open_chat_from_card(index)

    flow.step("Open My Agents", open_my_agents, assertions=[titled])
    flow.step("Verify agent cards", verify_cards)
    flow.step("Open the first agent's profile", open_profile, assertions=[profile_loaded])
    flow.step("Chat from the agent profile", chat_from_profile)
    flow.step("Return to My Agents from the sidebar", back_to_my_agents, assertions=[titled])
    flow.step("Chat from an agent card", chat_from_card)

    async def no_agents(ctx: FlowContext, error: BaseException) -> bool:
        return error.state == "no-agents"

    async def report_skip(ctx: FlowContext) -> None:
        logger.warning("my_agents_skipped", reason="account has no agents")

    flow.remediate(
        "no-agents",
        when=no_agents,
        do=report_skip,
        decision=RemediationDecision.SKIP,
        errors=(UnexpectedStateError,),
    )
    return flow
