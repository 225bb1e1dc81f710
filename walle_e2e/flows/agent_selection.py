"""
Agent selection flow: pick an OG agent from Quick Select, add it to the
chat and send a first message.
"""

from walle_e2e.core.flow import Flow, FlowContext, RemediationDecision
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.agent_chat_input import AgentChatInput
from walle_e2e.pages.quick_select import QuickSelectModal


def build_agent_selection_flow(driver: UiDriver, message: str = "scan wallet") -> Flow:
    chat = AgentChatInput(driver)
    quick_select = QuickSelectModal(driver)

    flow = Flow("agent-selection", description="Select an OG agent and start chatting")

    async def reset_state(ctx: FlowContext) -> None:
        await chat.goto()
        await chat.ensure_no_modal_open()

    async def home_ready(ctx: FlowContext) -> None:
        await chat.wait_visible(chat.add_agents_button, timeout=10)
        await chat.wait_enabled(chat.add_agents_button, timeout=5)

    async def open_quick_select(ctx: FlowContext) -> None:
        ctx.data["quick_select_opened"] = True
        await chat.click_add_agents()
        await quick_select.wait_loaded()

    async def nothing_selected(ctx: FlowContext) -> None:
        await quick_select.wait_visible(quick_select.heading, timeout=5)
        await quick_select.wait_agent_count(0)

    async def select_first_agent(ctx: FlowContext) -> None:
        await quick_select.select_agent(0)

    async def one_selected(ctx: FlowContext) -> None:
        await quick_select.wait_agent_count(1)
        selected = await quick_select.selected_count()
        if selected != 1:
            raise AssertionError(f"expected 1 'Deselect agent' button, found {selected}")

    async def add_to_chat(ctx: FlowContext) -> None:
        await quick_select.close_with_add_to_chat()

    async def thumbnail_shown(ctx: FlowContext) -> None:
        ctx.data["thumbnails"] = await chat.wait_thumbnail_count(1)

    async def send_message(ctx: FlowContext) -> None:
        await chat.send_message(message)

    async def send_still_visible(ctx: FlowContext) -> None:
        await chat.wait_visible(chat.send_button, timeout=5)

    flow.step("Reset homepage state", reset_state, assertions=[home_ready])
    flow.step("Open Quick Select modal", open_quick_select, assertions=[nothing_selected])
    flow.step("Select first agent", select_first_agent, assertions=[one_selected])
    flow.step("Add selected agent to chat", add_to_chat, assertions=[thumbnail_shown])
    flow.step("Send a chat message", send_message, assertions=[send_still_visible])

    async def stale_modal_open(ctx: FlowContext, error: BaseException) -> bool:
        # The flow's own Quick Select modal is never stale.
        if ctx.data.get("quick_select_opened"):
            return False
        return await chat.count(chat.dialog) > 0

    async def close_modals(ctx: FlowContext) -> None:
        await chat.ensure_no_modal_open()

    flow.remediate(
        "stale-modal",
        when=stale_modal_open,
        do=close_modals,
        decision=RemediationDecision.RETRY,
    )
    return flow
