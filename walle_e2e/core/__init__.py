"""
Core automation components.
"""

from walle_e2e.core.actions import ActionExecutor, ActionOutcome, ActionPhase, ActionType
from walle_e2e.core.errors import (
    ActionFailedError,
    AmbiguousMatchError,
    AuthStateError,
    AutomationError,
    ElementNotFoundError,
    FatalFlowError,
    LedgerError,
    RetryBudgetExceededError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from walle_e2e.core.flow import (
    Flow,
    FlowContext,
    FlowResult,
    FlowSequencer,
    FlowStatus,
    RemediationDecision,
)
from walle_e2e.core.locator import ElementResolver, Intent, IntentRegistry, intent
from walle_e2e.core.session import BrowserSession, UiDriver, create_session
from walle_e2e.core.waiter import ConditionWaiter, WaitCondition

__all__ = [
    "ActionExecutor",
    "ActionOutcome",
    "ActionPhase",
    "ActionType",
    "ActionFailedError",
    "AmbiguousMatchError",
    "AuthStateError",
    "AutomationError",
    "ElementNotFoundError",
    "FatalFlowError",
    "LedgerError",
    "RetryBudgetExceededError",
    "UnexpectedStateError",
    "WaitCancelledError",
    "WaitTimeoutError",
    "Flow",
    "FlowContext",
    "FlowResult",
    "FlowSequencer",
    "FlowStatus",
    "RemediationDecision",
    "ElementResolver",
    "Intent",
    "IntentRegistry",
    "intent",
    "BrowserSession",
    "UiDriver",
    "create_session",
    "ConditionWaiter",
    "WaitCondition",
]
