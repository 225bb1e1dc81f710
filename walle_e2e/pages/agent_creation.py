"""
Agent creation: the "Create Your Agent" wallet search on the home page and
the modal sequence that follows it.

    chain + wallet -> AGENT GENESIS (6 scanning steps) -> personalize
    (gender, avatar style) -> preview -> optional discount -> launched

Interstitials that can appear on the way: bot/exchange wallet error,
"agent already active", and the signup/signin auth gate.
"""

import re

from walle_e2e.core.locator import Intent
from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage

# Dropdown buttons are labelled "<TICKER> <Name>".
CHAIN_OPTIONS = {
    "ethereum": "ETHEREUM Ethereum",
    "base": "BASE Base",
    "solana": "SOLANA Solana",
    "arbitrum": "ARBITRUM Arbitrum",
    "bsc": "BSC BSC",
    "polygon": "POLYGON Polygon",
}

AVATAR_STYLES = re.compile(
    r"photorealistic|anime|ghibli|lego|cartoon|minimalist|cyberpunk|watercolor", re.I
)

GENESIS_STEPS = 6

CHAT_URL = re.compile(r"/(chat|chat-agent)/")


class AgentCreationPage(BasePage):
    path = "/"

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        # ---------- Create Your Agent section ----------
        self.create_agent_heading = self.declare(
            "creation.heading", role="heading:Create Your Agent"
        )
        self.chain_dropdown = self.declare(
            "creation.chain_dropdown",
            test_id="chain-dropdown-button",
            role="button:Select Chain",
        )
        self.wallet_input = self.declare(
            "creation.wallet_input",
            role=("textbox", re.compile(r"enter wallet address or domain", re.I)),
        )
        self.search_button = self.declare("creation.search", role="button:Search")

        # ---------- Agent genesis ----------
        self.genesis_modal = self.declare("genesis.modal", test_id="agent-genesis-modal")
        self.genesis_heading = self.declare(
            "genesis.heading", role="heading:AGENT GENESIS", within=self.genesis_modal
        )
        self.wallet_evolving_heading = self.declare(
            "genesis.wallet_evolving",
            role="heading:WALLET EVOLVING INTO AN AGENT",
            within=self.genesis_modal,
        )
        self.genesis_steps = [
            self.declare(f"genesis.step_{n}", test_id=f"agent-creation-step-{n}")
            for n in range(1, GENESIS_STEPS + 1)
        ]

        # ---------- Personalize ----------
        self.personalize_modal = self.declare(
            "personalize.modal", test_id="style-selection-modal"
        )
        self.male_button = self.declare(
            "personalize.male", test_id="gender-option-male", role="button:Male"
        )
        self.female_button = self.declare(
            "personalize.female", test_id="gender-option-female", role="button:Female"
        )
        self.avatar_styles = self.declare(
            "personalize.avatar_style", role=("button", AVATAR_STYLES)
        )
        self.select_style_button = self.declare(
            "personalize.apply", test_id="style-apply-btn", role="button:SELECT STYLE"
        )

        # ---------- Bot / exchange wallet error ----------
        self.bot_wallet_error_modal = self.declare(
            "bot_wallet.modal", test_id="bot-wallet-error-modal"
        )
        self.bot_wallet_error_message = self.declare(
            "bot_wallet.message", test_id="bot-wallet-error-message"
        )
        self.bot_wallet_error_close = self.declare(
            "bot_wallet.close",
            role=("button", re.compile(r"close", re.I)),
            within=self.bot_wallet_error_modal,
        )

        # ---------- Agent already active ----------
        self.agent_exists_heading = self.declare(
            "agent_exists.heading",
            role=("heading", re.compile(r"this agent already active", re.I)),
        )
        self.chat_with_existing_agent = self.declare(
            "agent_exists.chat", role=("button", re.compile(r"chat with agent", re.I)), index=0
        )

        # ---------- Auth gate ----------
        self.auth_gate_heading = self.declare(
            "auth_gate.heading",
            role=("heading", re.compile(r"signup.*signin to continue", re.I)),
        )
        self.auth_gate_modal = self.declare(
            "auth_gate.modal",
            css='[role="dialog"]',
            has_text=re.compile(r"signup.*signin to continue", re.I),
        )
        self.auth_gate_close = self.declare(
            "auth_gate.close",
            role=("button", re.compile(r"close|×", re.I)),
            css='button[aria-label*="close" i]',
            within=self.auth_gate_modal,
        )

        # ---------- Preview ----------
        self.preview_modal = self.declare("preview.modal", test_id="agent-preview-modal")
        self.preview_avatar = self.declare("preview.avatar", test_id="agent-preview-avatar")
        self.preview_name = self.declare("preview.name", test_id="agent-preview-name")
        self.launch_button = self.declare("preview.launch", test_id="proceed-to-launch-btn")

        # ---------- Discount ----------
        self.discount_modal = self.declare(
            "discount.modal", test_id="launch-confirmation-modal-content"
        )
        self.launch_with_discount_button = self.declare(
            "discount.confirm", test_id="launch-confirmation-modal-confirm-btn"
        )

        # ---------- Launched ----------
        self.agent_created_heading = self.declare(
            "launched.heading", role="heading:Agent Launched Successfully!"
        )
        self.chat_with_created_agent = self.declare(
            "launched.chat", role="button:CHAT WITH AGENT"
        )

    # ---------- Wallet search ----------
    def chain_option(self, chain: str) -> Intent:
        try:
            label = CHAIN_OPTIONS[chain]
        except KeyError:
            raise ValueError(f"Unknown chain '{chain}', expected one of {list(CHAIN_OPTIONS)}") from None
        return self.declare(f"creation.chain_option[{chain}]", role=f"button:{label}")

    async def select_chain(self, chain: str) -> None:
        option = self.chain_option(chain)
        await self.click(self.chain_dropdown)
        await self.wait_visible(option, timeout=10)
        await self.click(option)

    async def wait_chain_selected(self, chain: str, timeout: float = 5) -> str:
        return await self.wait_text(self.chain_dropdown, re.compile(chain, re.I), timeout)

    async def enter_wallet_address(self, address: str) -> None:
        await self.fill(self.wallet_input, address, blur=True)

    async def start_agent_creation(self, chain: str, address: str) -> None:
        await self.select_chain(chain)
        await self.enter_wallet_address(address)
        await self.click(self.search_button)

    # ---------- Genesis ----------
    async def wait_for_genesis(self, timeout: float = 30) -> None:
        await self.wait_visible(self.genesis_heading, timeout)

    async def wait_for_scanning_complete(self, timeout: float = 60) -> None:
        await self.wait_visible(self.genesis_steps[-1], timeout)

    # ---------- Interstitials ----------
    async def bot_wallet_error_shown(self, timeout: float = 5) -> bool:
        return await self.is_visible(self.bot_wallet_error_modal, timeout)

    async def close_bot_wallet_error(self) -> None:
        await self.click(self.bot_wallet_error_close)
        await self.wait_hidden(self.bot_wallet_error_modal, timeout=5)

    async def agent_exists_shown(self, timeout: float = 5) -> bool:
        return await self.is_visible(self.agent_exists_heading, timeout)

    async def wait_for_agent_exists(self, timeout: float = 30) -> None:
        await self.wait_visible(self.agent_exists_heading, timeout)
        await self.wait_visible(self.chat_with_existing_agent, timeout=10)

    async def open_chat_with_existing_agent(self, timeout: float = 30) -> str:
        await self.click(self.chat_with_existing_agent)
        return await self.wait_for_url(CHAT_URL, timeout)

    async def dismiss_auth_gate_if_present(self, timeout: float = 2) -> bool:
        """
        Close the signup/signin gate when it is up.

        The gate animates in and out; the executor's forced fallback covers
        the unstable close button, and the hidden state is always confirmed.
        """
        if not await self.is_visible(self.auth_gate_heading, timeout):
            return False
        self.log.warning("auth_gate_detected")
        await self.click(self.auth_gate_close)
        await self.wait_hidden(self.auth_gate_heading, timeout=5)
        return True

    # ---------- Personalize ----------
    async def wait_for_personalize(self, timeout: float = 60) -> None:
        """Wait for the personalize modal, dismissing the auth gate whenever it shows up."""

        async def personalize_ready() -> bool:
            if await self.resolver.find(self.personalize_modal):
                return True
            if await self.resolver.find(self.auth_gate_heading):
                await self.dismiss_auth_gate_if_present(timeout=0)
            return False

        await self.waiter.wait_until(
            personalize_ready,
            timeout=timeout,
            description="personalize modal visible",
        )

    async def select_gender(self, gender: str) -> None:
        match gender:
            case "male":
                await self.click(self.male_button)
            case "female":
                await self.click(self.female_button)
            case _:
                raise ValueError(f"Unknown gender '{gender}'")

    async def select_avatar_style(self, index: int = 0) -> None:
        available = await self.wait_count_at_least(self.avatar_styles, 1, timeout=10)
        await self.click(self.avatar_styles.nth(min(index, available - 1)))

    async def confirm_style_selection(self) -> None:
        await self.wait_enabled(self.select_style_button, timeout=10)
        await self.click(self.select_style_button)

    # ---------- Preview / launch ----------
    async def wait_for_preview(self, timeout: float = 120) -> None:
        await self.wait_visible(self.preview_modal, timeout)

    async def agent_preview_name(self) -> str:
        return await self.text_of(self.preview_name)

    async def launch_agent(self) -> None:
        await self.click(self.launch_button)

    async def launch_with_discount_if_offered(self, timeout: float = 5) -> bool:
        if not await self.is_visible(self.discount_modal, timeout):
            return False
        await self.click(self.launch_with_discount_button)
        return True

    async def wait_for_agent_created(self, timeout: float = 30) -> None:
        await self.wait_visible(self.agent_created_heading, timeout)

    async def open_chat_with_created_agent(self, timeout: float = 30) -> str:
        await self.click(self.chat_with_created_agent)
        return await self.wait_for_url(CHAT_URL, timeout)
