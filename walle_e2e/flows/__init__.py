"""
Named flows that can be run by name (API, CLI, e2e tests).
"""

from dataclasses import dataclass
from typing import Callable

from walle_e2e.config import Settings
from walle_e2e.core.flow import Flow
from walle_e2e.core.session import UiDriver
from walle_e2e.data.ledger import ResourceLedger
from walle_e2e.flows.agent_creation import (
    AgentCreationOptions,
    build_agent_creation_flow,
    build_agent_exists_chat_flow,
    build_bot_wallet_rejection_flow,
)
from walle_e2e.flows.agent_selection import build_agent_selection_flow
from walle_e2e.flows.chat_sessions import build_chat_sessions_flow
from walle_e2e.flows.homepage import build_homepage_flow
from walle_e2e.flows.leaderboard import (
    build_leaderboard_bubbles_flow,
    build_leaderboard_table_flow,
)
from walle_e2e.flows.my_agents import build_my_agents_flow


@dataclass(frozen=True)
class FlowDefinition:
    name: str
    description: str
    build: Callable[[UiDriver, Settings], Flow]
    require_auth: bool = False


FLOWS: dict[str, FlowDefinition] = {
    definition.name: definition
    for definition in (
        FlowDefinition(
            name="homepage",
            description="Anonymous homepage texts, prompts, wallet validation and connect modal",
            build=lambda driver, settings: build_homepage_flow(driver),
        ),
        FlowDefinition(
            name="agent-selection",
            description="Select an OG agent from Quick Select and send a chat message",
            build=lambda driver, settings: build_agent_selection_flow(driver),
        ),
        FlowDefinition(
            name="leaderboard-table",
            description="Leaderboard headers, rows and sorting",
            build=lambda driver, settings: build_leaderboard_table_flow(driver),
        ),
        FlowDefinition(
            name="leaderboard-bubbles",
            description="Open and close an agent panel from the bubbles of fame",
            build=lambda driver, settings: build_leaderboard_bubbles_flow(driver),
        ),
        FlowDefinition(
            name="agent-creation",
            description="Create and launch an agent from an unused catalogue wallet",
            build=lambda driver, settings: build_agent_creation_flow(
                driver, ResourceLedger(settings.ledger_path)
            ),
            require_auth=True,
        ),
        FlowDefinition(
            name="agent-exists-chat",
            description="A wallet that already has an agent opens a chat with it",
            build=lambda driver, settings: build_agent_exists_chat_flow(
                driver, ResourceLedger(settings.ledger_path)
            ),
            require_auth=True,
        ),
        FlowDefinition(
            name="bot-wallet-rejection",
            description="Exchange wallets are refused with the bot wallet error",
            build=lambda driver, settings: build_bot_wallet_rejection_flow(driver),
            require_auth=True,
        ),
        FlowDefinition(
            name="my-agents",
            description="Browse owned agents and open chats from profile and card",
            build=lambda driver, settings: build_my_agents_flow(driver),
            require_auth=True,
        ),
        FlowDefinition(
            name="chat-sessions",
            description="Chat sessions list and starting a chat from Explore Agents",
            build=lambda driver, settings: build_chat_sessions_flow(driver),
            require_auth=True,
        ),
    )
}


def get_flow(name: str) -> FlowDefinition:
    try:
        return FLOWS[name]
    except KeyError:
        raise KeyError(f"Unknown flow '{name}'. Available: {', '.join(sorted(FLOWS))}") from None


__all__ = [
    "FLOWS",
    "FlowDefinition",
    "get_flow",
    "AgentCreationOptions",
    "build_agent_creation_flow",
    "build_agent_exists_chat_flow",
    "build_agent_selection_flow",
    "build_bot_wallet_rejection_flow",
    "build_chat_sessions_flow",
    "build_homepage_flow",
    "build_leaderboard_bubbles_flow",
    "build_leaderboard_table_flow",
    "build_my_agents_flow",
]
