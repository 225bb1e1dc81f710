"""
Home page: hero texts, example prompts, chain selector, wallet search and
navigation bar.
"""

import re

from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage

NAV_SECTIONS = ("My Agents", "Chat", "Leaderboard", "Dashboard")

# Example prompt buttons and the prompt each one writes into the chat input.
CTA_PROMPTS = {
    "Scan Best Performers": re.compile(r"scan top 5 tokens by 7d ROI and volume", re.I),
    "Analyze Market Sentiment": re.compile(r"analyze overall crypto sentiment using social", re.I),
    "Build Defi Strategies": re.compile(
        r"build a 3-token DeFi strategy with medium risk and stable yield", re.I
    ),
}

HOME_URL = re.compile(r"^https?://[^/]+/?$")


class HomePage(BasePage):
    path = "/"

    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        # ---------- Header / texts ----------
        self.welcome_text = self.declare("home.welcome", text="Welcome")
        self.create_agent_text = self.declare(
            "home.create_agent",
            role="heading:Create Your Agent",
            text="Create Your Agent",
        )
        self.explore_agents_text = self.declare("home.explore_agents", text="EXPLORE AGENTS")

        # ---------- Example prompts ----------
        self.cta_buttons = {
            label: self.declare(f"home.cta[{label}]", text=label, text_exact=True)
            for label in CTA_PROMPTS
        }
        self.prompt_input = self.declare("home.prompt_input", css='input[type="text"]', index=0)

        # ---------- Wallet search ----------
        self.chain_dropdown = self.declare(
            "home.chain_dropdown",
            test_id="chain-dropdown-button",
            role="button:Select Chain",
        )
        self.wallet_input = self.declare(
            "home.wallet_input",
            role=("textbox", re.compile(r"enter (a )?wallet address", re.I)),
        )
        self.search_button = self.declare("home.search", role="button:Search")
        self.inline_error = self.declare("home.inline_error", css="p.text-red-400")

        # ---------- Connect wallet ----------
        self.connect_wallet_cta = self.declare("home.connect_wallet", role="button:CONNECT WALLET")
        self.go_home_link = self.declare(
            "home.go_home", role=("link", re.compile(r"go to home page", re.I))
        )

    def chain_option(self, chain: str):
        return self.declare(
            f"home.chain_option[{chain}]",
            css="button",
            has_text=re.compile(rf"^\s*{re.escape(chain)}", re.I),
            index=0,
        )

    def nav_item(self, section: str):
        return self.declare(f"home.nav[{section}]", css="nav div", has_text=section, index=0)

    async def wait_loaded(self, timeout: float = 15) -> None:
        for text in (self.welcome_text, self.create_agent_text, self.explore_agents_text):
            await self.wait_visible(text, timeout)

    async def use_example_prompt(self, label: str, timeout: float = 5) -> str:
        """Click an example prompt button and wait for its prompt in the chat input."""
        try:
            button = self.cta_buttons[label]
        except KeyError:
            raise ValueError(f"Unknown prompt '{label}', expected one of {list(CTA_PROMPTS)}") from None
        await self.click(button)
        return await self.wait_value(self.prompt_input, CTA_PROMPTS[label], timeout)

    async def select_chain(self, chain: str) -> None:
        await self.click(self.chain_dropdown)
        option = self.chain_option(chain)
        await self.wait_visible(option, timeout=10)
        await self.click(option)

    async def enter_wallet(self, address: str) -> None:
        await self.fill(self.wallet_input, address, blur=True)

    async def search_enabled(self) -> bool:
        handle = await self.resolve(self.search_button)
        return await handle.locator.is_enabled()

    async def has_inline_error(self, timeout: float = 2) -> bool:
        return await self.is_visible(self.inline_error, timeout)

    async def go_to(self, section: str) -> None:
        if section not in NAV_SECTIONS:
            raise ValueError(f"Unknown section '{section}', expected one of {NAV_SECTIONS}")
        await self.click(self.nav_item(section))

    async def go_home(self, timeout: float = 15) -> str:
        await self.click(self.go_home_link)
        return await self.wait_for_url(HOME_URL, timeout)

    async def open_connect_wallet_modal(self) -> None:
        await self.click(self.connect_wallet_cta)
