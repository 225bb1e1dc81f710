"""
Homepage smoke flow for anonymous visitors.

Covers what a logged-out user can do before connecting a wallet: the hero
texts, the example prompt buttons, inline wallet validation, the connect
wallet modal and the guard in front of authenticated sections.
"""

import structlog

from walle_e2e.core.flow import Flow, FlowContext
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.connect_modal import ConnectModal
from walle_e2e.pages.home import CTA_PROMPTS, HomePage

logger = structlog.get_logger()

INVALID_WALLET = "0x123"


def build_homepage_flow(
    driver: UiDriver, chain: str = "Ethereum", guarded_section: str = "My Agents"
) -> Flow:
    home = HomePage(driver)
    connect = ConnectModal(driver)

    flow = Flow("homepage", description="Anonymous homepage checks")

    async def open_home(ctx: FlowContext) -> None:
        await home.goto()

    async def home_loaded(ctx: FlowContext) -> None:
        await home.wait_loaded()

    async def try_example_prompts(ctx: FlowContext) -> None:
        prompts = {}
        for label in CTA_PROMPTS:
            prompts[label] = await home.use_example_prompt(label)
        ctx.data["prompts"] = prompts

    async def enter_invalid_wallet(ctx: FlowContext) -> None:
        await home.select_chain(chain)
        await home.enter_wallet(INVALID_WALLET)

    async def wallet_rejected(ctx: FlowContext) -> None:
        if not await home.has_inline_error(timeout=5):
            raise AssertionError(f"no inline error for wallet {INVALID_WALLET!r}")
        if await home.search_enabled():
            raise AssertionError("search stays enabled for an invalid wallet")

    async def open_connect_modal(ctx: FlowContext) -> None:
        await home.open_connect_wallet_modal()
        await connect.wait_for_modal()

    async def connect_options_shown(ctx: FlowContext) -> None:
        await connect.wait_visible(connect.login_with_google, timeout=5)
        await connect.wait_visible(connect.login_with_x, timeout=5)
        await connect.click_connect_wallet()
        await connect.wait_visible(connect.new_to_wallets, timeout=5)
        await connect.wait_visible(connect.back_button, timeout=5)

    async def close_connect_modal(ctx: FlowContext) -> None:
        await connect.close()

    async def open_guarded_section(ctx: FlowContext) -> None:
        await home.go_to(guarded_section)

    async def connect_required(ctx: FlowContext) -> None:
        await connect.wait_for_modal()
        await connect.close()
        logger.info("guarded_section_checked", section=guarded_section)

    async def return_home(ctx: FlowContext) -> None:
        ctx.data["home_url"] = await home.go_home()

    async def create_section_shown(ctx: FlowContext) -> None:
        await home.wait_visible(home.create_agent_text, timeout=15)

    flow.step("Open homepage", open_home, assertions=[home_loaded])
    flow.step("Example prompts fill the chat input", try_example_prompts)
    flow.step("Invalid wallet is rejected inline", enter_invalid_wallet, assertions=[wallet_rejected])
    flow.step("Open connect wallet modal", open_connect_modal, assertions=[connect_options_shown])
    flow.step("Close connect wallet modal", close_connect_modal)
    flow.step(
        f"{guarded_section} asks anonymous users to connect",
        open_guarded_section,
        assertions=[connect_required],
    )
    flow.step("Logo returns to the homepage", return_home, assertions=[create_section_shown])
    return flow

