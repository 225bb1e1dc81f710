"""
Error taxonomy for UI automation.

Every error knows how to summarize *what* failed (which locator, action or
wait) so that flow-level failures can be reported with full step and
attempt context.
"""

from typing import Any, Sequence


class AutomationError(Exception):
    """Base class for all automation errors."""

    kind = "automation"

    def summary(self) -> str:
        return f"{self.kind}: {self}"


class ElementNotFoundError(AutomationError):
    """Raised when an intent cannot be resolved with any strategy."""

    kind = "locator"

    def __init__(
        self,
        message: str,
        element_name: str,
        tried_strategies: Sequence[str],
        page_url: str | None = None,
    ):
        super().__init__(message)
        self.element_name = element_name
        self.tried_strategies = list(tried_strategies)
        self.page_url = page_url

    def summary(self) -> str:
        tried = ", ".join(self.tried_strategies) or "none"
        return f"locator '{self.element_name}' not found (tried: {tried})"


class AmbiguousMatchError(AutomationError):
    """Raised when a strategy matches more than one element and no index is set."""

    kind = "locator"

    def __init__(self, element_name: str, strategy: str, match_count: int):
        super().__init__(
            f"Strategy {strategy} matched {match_count} visible elements "
            f"for '{element_name}' and no index was given"
        )
        self.element_name = element_name
        self.strategy = strategy
        self.match_count = match_count

    def summary(self) -> str:
        return (
            f"locator '{self.element_name}' ambiguous "
            f"({self.match_count} matches via {self.strategy})"
        )


class WaitTimeoutError(AutomationError):
    """Raised when a wait condition never became true."""

    kind = "wait"

    def __init__(
        self,
        description: str,
        timeout: float,
        last_value: Any = None,
        polls: int = 0,
        elapsed: float = 0.0,
    ):
        super().__init__(
            f"Timed out after {elapsed:.2f}s (timeout {timeout}s, {polls} polls) "
            f"waiting for {description}; last observed: {last_value!r}"
        )
        self.description = description
        self.timeout = timeout
        self.last_value = last_value
        self.polls = polls
        self.elapsed = elapsed

    def summary(self) -> str:
        return f"wait '{self.description}' timed out (last observed: {self.last_value!r})"


class WaitCancelledError(AutomationError):
    """Raised when the page or context is torn down while waiting or acting."""

    kind = "wait"

    def __init__(self, description: str, reason: str = "page closed"):
        super().__init__(f"Cancelled while waiting for {description}: {reason}")
        self.description = description
        self.reason = reason

    def summary(self) -> str:
        return f"wait '{self.description}' cancelled ({self.reason})"


class ActionFailedError(AutomationError):
    """Raised when both the primary and the fallback interaction failed."""

    kind = "action"

    def __init__(
        self,
        action: str,
        element_name: str | None,
        phases_tried: Sequence[str],
        original: BaseException,
        fallback_error: BaseException | None = None,
    ):
        message = (
            f"{action} on '{element_name}' failed "
            f"(phases tried: {', '.join(phases_tried)}): {original}"
        )
        if fallback_error is not None:
            message += f" | fallback: {fallback_error}"
        super().__init__(message)
        self.action = action
        self.element_name = element_name
        self.phases_tried = list(phases_tried)
        self.original = original
        self.fallback_error = fallback_error

    def summary(self) -> str:
        return (
            f"action {self.action} on '{self.element_name}' failed "
            f"after {'+'.join(self.phases_tried)}"
        )


class UnexpectedStateError(AutomationError):
    """Raised by a check step that found a known interstitial UI state."""

    kind = "state"

    def __init__(self, state: str, detail: str = ""):
        super().__init__(f"Unexpected UI state '{state}'" + (f": {detail}" if detail else ""))
        self.state = state
        self.detail = detail

    def summary(self) -> str:
        return f"state '{self.state}' encountered"


class FatalFlowError(AutomationError):
    """Raised when a step failed and no remediation rule applied."""

    kind = "flow"

    def __init__(
        self,
        flow_name: str,
        step_number: str,
        step_description: str,
        attempt: int,
        cause: BaseException,
        result: Any = None,
    ):
        super().__init__(
            f"Flow '{flow_name}' failed at step {step_number} "
            f"('{step_description}') on attempt {attempt}: {describe_failure(cause)}"
        )
        self.flow_name = flow_name
        self.step_number = step_number
        self.step_description = step_description
        self.attempt = attempt
        self.cause = cause
        self.result = result


class RetryBudgetExceededError(AutomationError):
    """Raised when every allowed attempt of a flow was remediated."""

    kind = "flow"

    def __init__(
        self,
        flow_name: str,
        max_attempts: int,
        failures: Sequence[str],
        result: Any = None,
    ):
        lines = "\n".join(
            f"  attempt {i}: {reason}" for i, reason in enumerate(failures, start=1)
        )
        super().__init__(
            f"Flow '{flow_name}' exhausted {max_attempts} attempts:\n{lines}"
        )
        self.flow_name = flow_name
        self.max_attempts = max_attempts
        self.failures = list(failures)
        self.result = result


class LedgerError(AutomationError):
    """Raised when the shared resource ledger cannot be read or is exhausted."""

    kind = "ledger"


class AuthStateError(AutomationError):
    """Raised when the authentication state file is missing or unreadable."""

    kind = "auth"


def describe_failure(exc: BaseException) -> str:
    """One-line description of a failure for step and attempt reports."""
    if isinstance(exc, AutomationError):
        return exc.summary()
    first_line = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    return f"{type(exc).__name__}: {first_line}" if first_line else type(exc).__name__
