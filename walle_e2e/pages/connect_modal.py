"""
Connect-wallet modal shown to anonymous users.
"""

import re

from walle_e2e.core.session import UiDriver
from walle_e2e.pages.base import BasePage


class ConnectModal(BasePage):
    def __init__(self, driver: UiDriver):
        super().__init__(driver)

        self.modal = self.declare("connect.modal", test_id="connect-wallet-modal")
        self.title = self.declare("connect.title", test_id="connect-wallet-modal-title")
        self.close_button = self.declare(
            "connect.close", test_id="connect-wallet-modal-close-btn", role="button:Close"
        )
        self.connect_wallet_button = self.declare("connect.wallet", role="button:Connect a Wallet")
        self.login_with_google = self.declare("connect.google", role="button:Login with google")
        self.login_with_x = self.declare("connect.x", role="button:Login with x")
        self.back_button = self.declare("connect.back", text="Back", text_exact=True)
        self.new_to_wallets = self.declare(
            "connect.new_to_wallets", text=re.compile(r"new to wallets\?", re.I)
        )

    async def is_open(self, timeout: float = 2) -> bool:
        return await self.is_visible(self.modal, timeout)

    async def wait_for_modal(self, timeout: float = 10) -> None:
        await self.wait_visible(self.title, timeout)

    async def click_connect_wallet(self) -> None:
        await self.click(self.connect_wallet_button)

    async def close(self) -> None:
        """Close the modal and confirm it is gone; no-op when it is not open."""
        if not await self.is_open():
            return
        await self.click(self.close_button)
        await self.wait_hidden(self.modal, timeout=5)
