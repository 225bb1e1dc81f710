"""
Agent creation flow.

Turns an unused catalogue wallet into a launched agent. Two interstitials
are recovered from by starting over with a fresh wallet:

- bot/exchange wallet error: the address is refused by the product
- "this agent already active": the address already has an agent

Both mark the address used in the ledger so no later run picks it again.
"""

import random
import re
from dataclasses import dataclass

import structlog

from walle_e2e.core.errors import UnexpectedStateError
from walle_e2e.core.flow import Flow, FlowContext, RemediationDecision
from walle_e2e.core.session import UiDriver
from walle_e2e.data.ledger import Chooser, ResourceLedger
from walle_e2e.data.wallets import BOT_WALLETS, Wallet, reserve_wallet, used_wallet
from walle_e2e.pages.agent_creation import AgentCreationPage

logger = structlog.get_logger()

SESSION_URL = re.compile(r"sess_([a-f0-9-]+)_")


@dataclass
class AgentCreationOptions:
    """Knobs of one agent creation run. Timeouts are in seconds."""

    chains: tuple[str, ...] | None = None
    wallet: Wallet | None = None
    gender: str = "male"
    avatar_style: int = 0
    nav_timeout: float = 15
    modal_timeout: float = 30
    scan_timeout: float = 30
    preview_timeout: float = 720
    chat_timeout: float = 30
    interstitial_timeout: float = 5


def build_agent_creation_flow(
    driver: UiDriver,
    ledger: ResourceLedger,
    options: AgentCreationOptions | None = None,
    choose: Chooser = random.choice,
) -> Flow:
    """
    Usage:
        flow = build_agent_creation_flow(session.driver, ResourceLedger(path))
        result = await FlowSequencer().run(flow)
        result.data["agent_name"]
    """
    options = options or AgentCreationOptions()
    page = AgentCreationPage(driver)
    # A caller-supplied wallet is tried once; retries always reserve a fresh one.
    pending = [options.wallet] if options.wallet else []

    flow = Flow("agent-creation", description="Create and launch an agent from a wallet")

    async def open_home(ctx: FlowContext) -> None:
        wallet = pending.pop() if pending else reserve_wallet(ledger, options.chains, choose)
        ctx.data["chain"] = wallet.chain
        ctx.data["wallet"] = wallet.address
        logger.info("wallet_selected", chain=wallet.chain, wallet=wallet.address, attempt=ctx.attempt)
        await page.goto()

    async def home_loaded(ctx: FlowContext) -> None:
        await page.wait_visible(page.create_agent_heading, options.nav_timeout)

    async def select_chain(ctx: FlowContext) -> None:
        await page.select_chain(ctx.data["chain"])

    async def chain_selected(ctx: FlowContext) -> None:
        await page.wait_chain_selected(ctx.data["chain"])

    async def enter_wallet(ctx: FlowContext) -> None:
        await page.enter_wallet_address(ctx.data["wallet"])

    async def wallet_entered(ctx: FlowContext) -> None:
        value = await page.value_of(page.wallet_input)
        if value != ctx.data["wallet"]:
            raise AssertionError(f"wallet input holds {value!r}, expected {ctx.data['wallet']!r}")
        await page.wait_enabled(page.search_button, timeout=5)

    async def start_genesis(ctx: FlowContext) -> None:
        await page.click(page.search_button)
        await page.wait_for_genesis(options.modal_timeout)

    async def genesis_running(ctx: FlowContext) -> None:
        await page.wait_visible(page.wallet_evolving_heading, timeout=5)

    async def no_bot_wallet_error(ctx: FlowContext) -> None:
        if await page.bot_wallet_error_shown(options.interstitial_timeout):
            raise UnexpectedStateError("bot-wallet", ctx.data["wallet"])

    async def no_existing_agent(ctx: FlowContext) -> None:
        if await page.agent_exists_shown(options.interstitial_timeout):
            raise UnexpectedStateError("agent-already-active", ctx.data["wallet"])

    async def wait_for_scanning(ctx: FlowContext) -> None:
        await page.wait_for_scanning_complete(options.scan_timeout)
        await page.settle(1, "genesis steps hand over to personalize modal")

    async def pick_gender(ctx: FlowContext) -> None:
        await page.wait_for_personalize(options.modal_timeout * 2)
        await page.wait_visible(page.male_button, timeout=5)
        await page.wait_visible(page.female_button, timeout=5)
        await page.select_gender(options.gender)

    async def dismiss_auth_gate(ctx: FlowContext) -> None:
        ctx.data["auth_gate_dismissed"] = await page.dismiss_auth_gate_if_present(timeout=3)

    async def pick_avatar_style(ctx: FlowContext) -> None:
        await page.select_avatar_style(options.avatar_style)

    async def confirm_style(ctx: FlowContext) -> None:
        await page.confirm_style_selection()

    async def mark_wallet_used(ctx: FlowContext) -> None:
        ledger.mark_used(ctx.data["wallet"])

    async def wait_for_preview(ctx: FlowContext) -> None:
        await page.wait_for_preview(options.preview_timeout)

    async def preview_complete(ctx: FlowContext) -> None:
        await page.wait_visible(page.preview_avatar, timeout=5)
        name = await page.agent_preview_name()
        if not name:
            raise AssertionError("agent preview shows no agent name")
        ctx.data["agent_name"] = name

    async def launch(ctx: FlowContext) -> None:
        await page.launch_agent()

    async def apply_discount(ctx: FlowContext) -> None:
        ctx.data["discount_applied"] = await page.launch_with_discount_if_offered(
            options.interstitial_timeout
        )

    async def wait_for_launch(ctx: FlowContext) -> None:
        await page.wait_for_agent_created(options.modal_timeout)

    async def open_chat(ctx: FlowContext) -> None:
        url = await page.open_chat_with_created_agent(options.chat_timeout)
        ctx.data["chat_url"] = url
        session = SESSION_URL.search(url)
        if session:
            ctx.data["agent_id"] = session.group(1)

    flow.step("Reserve wallet and open homepage", open_home, assertions=[home_loaded])
    flow.step("Select chain", select_chain, assertions=[chain_selected])
    flow.step("Enter wallet address", enter_wallet, assertions=[wallet_entered])
    flow.step("Click search and wait for genesis modal", start_genesis, assertions=[genesis_running])
    flow.step("Check for bot wallet error", no_bot_wallet_error)
    flow.step("Check for agent already active", no_existing_agent)
    flow.step("Wait for scanning steps to complete", wait_for_scanning)
    flow.step("Recheck for agent already active after scanning", no_existing_agent, number="7.5")
    flow.step("Select gender", pick_gender, number=8)
    flow.step("Dismiss auth gate if present", dismiss_auth_gate, number="8.5")
    flow.step("Select avatar style", pick_avatar_style, number=9)
    flow.step("Confirm avatar style", confirm_style)
    flow.step("Mark wallet as used", mark_wallet_used, number="10.5")
    flow.step("Wait for agent preview", wait_for_preview, assertions=[preview_complete], number=11)
    flow.step("Launch agent", launch)
    flow.step("Apply discount if offered", apply_discount)
    flow.step("Wait for launch confirmation", wait_for_launch)
    flow.step("Open chat with the new agent", open_chat)

    async def bot_wallet_shown(ctx: FlowContext, error: BaseException) -> bool:
        return await page.resolver.find(page.bot_wallet_error_modal) is not None

    async def discard_bot_wallet(ctx: FlowContext) -> None:
        await page.close_bot_wallet_error()
        if "wallet" in ctx.data:
            ledger.mark_used(ctx.data["wallet"])

    async def agent_exists(ctx: FlowContext, error: BaseException) -> bool:
        return await page.resolver.find(page.agent_exists_heading) is not None

    async def discard_used_wallet(ctx: FlowContext) -> None:
        if "wallet" in ctx.data:
            ledger.mark_used(ctx.data["wallet"])

    flow.remediate(
        "bot-wallet",
        when=bot_wallet_shown,
        do=discard_bot_wallet,
        decision=RemediationDecision.RETRY,
    )
    flow.remediate(
        "agent-already-active",
        when=agent_exists,
        do=discard_used_wallet,
        decision=RemediationDecision.RETRY,
    )
    return flow


def build_bot_wallet_rejection_flow(driver: UiDriver, chain: str = "ethereum") -> Flow:
    """Known exchange wallets must be refused with the bot wallet error modal."""
    page = AgentCreationPage(driver)
    address = BOT_WALLETS[chain][0]

    flow = Flow("bot-wallet-rejection", description="Exchange wallets cannot become agents")

    async def open_home(ctx: FlowContext) -> None:
        ctx.data["wallet"] = address
        await page.goto()
        await page.wait_visible(page.create_agent_heading, timeout=15)

    async def submit_bot_wallet(ctx: FlowContext) -> None:
        await page.start_agent_creation(chain, address)

    async def error_shown(ctx: FlowContext) -> None:
        await page.wait_visible(page.bot_wallet_error_modal, timeout=30)

    async def close_error(ctx: FlowContext) -> None:
        await page.close_bot_wallet_error()

    flow.step("Open homepage", open_home)
    flow.step("Submit exchange wallet", submit_bot_wallet, assertions=[error_shown])
    flow.step("Close bot wallet error", close_error)
    return flow


def build_agent_exists_chat_flow(
    driver: UiDriver,
    ledger: ResourceLedger,
    chains: tuple[str, ...] | None = None,
    timeout: float = 30,
) -> Flow:
    """
    A wallet that already has an agent offers to chat with it instead.

    Uses the first catalogued wallet the ledger marks used; the flow is
    skipped while no such wallet exists yet.
    """
    page = AgentCreationPage(driver)

    flow = Flow("agent-exists-chat", description="Chat with the agent of an already used wallet")

    async def open_home(ctx: FlowContext) -> None:
        await page.goto()
        await page.wait_visible(page.create_agent_heading, timeout=15)

    async def pick_used_wallet(ctx: FlowContext) -> None:
        wallet = used_wallet(ledger, chains)
        if wallet is None:
            raise UnexpectedStateError("no-used-wallet", str(ledger.path))
        ctx.data["chain"] = wallet.chain
        ctx.data["wallet"] = wallet.address
        logger.info("wallet_selected", chain=wallet.chain, wallet=wallet.address, attempt=ctx.attempt)

    async def submit_wallet(ctx: FlowContext) -> None:
        await page.start_agent_creation(ctx.data["chain"], ctx.data["wallet"])
        await page.wait_for_genesis(timeout)

    async def agent_exists_shown(ctx: FlowContext) -> None:
        await page.wait_for_agent_exists(timeout)

    async def open_chat(ctx: FlowContext) -> None:
        ctx.data["chat_url"] = await page.open_chat_with_existing_agent(timeout)

    flow.step("Open homepage", open_home)
    flow.step("Pick a wallet that already has an agent", pick_used_wallet)
    flow.step("Submit wallet and wait for genesis modal", submit_wallet)
    flow.step("Wait for agent already active", agent_exists_shown)
    flow.step("Open chat with the existing agent", open_chat)

    async def no_used_wallet(ctx: FlowContext, error: BaseException) -> bool:
        return error.state == "no-used-wallet"

    async def report_skip(ctx: FlowContext) -> None:
        logger.warning("agent_exists_chat_skipped", reason="no used wallet in ledger")

    flow.remediate(
        "no-used-wallet",
        when=no_used_wallet,
        do=report_skip,
        decision=RemediationDecision.SKIP,
        errors=(UnexpectedStateError,),
    )
    return flow
