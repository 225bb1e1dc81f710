"""
Page models for the Walle web app.
"""

from walle_e2e.pages.agent_chat_input import AgentChatInput
from walle_e2e.pages.agent_creation import AgentCreationPage
from walle_e2e.pages.base import BasePage
from walle_e2e.pages.chat_sessions import ChatSessionsPage
from walle_e2e.pages.connect_modal import ConnectModal
from walle_e2e.pages.home import HomePage
from walle_e2e.pages.leaderboard import LeaderboardPage
from walle_e2e.pages.my_agents import AgentProfilePage, MyAgentsPage
from walle_e2e.pages.quick_select import QuickSelectModal

__all__ = [
    "AgentChatInput",
    "AgentCreationPage",
    "AgentProfilePage",
    "BasePage",
    "ChatSessionsPage",
    "ConnectModal",
    "HomePage",
    "LeaderboardPage",
    "MyAgentsPage",
    "QuickSelectModal",
]
