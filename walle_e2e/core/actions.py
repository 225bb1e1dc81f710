"""
Action Executor

Performs an interaction in two phases:

1. the standard Playwright interaction (actionability checks on);
2. if that fails, one forced interaction (``force=True``) with a shorter
   timeout, bypassing overlay interception and stability checks.

Which phase succeeded is part of the outcome and of the log stream: flaky UI
states are rarely reproducible, so the trace is the only evidence.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError, Locator, Page

from walle_e2e.core.errors import ActionFailedError, WaitCancelledError
from walle_e2e.core.locator import ResolvedElement

logger = structlog.get_logger()


class ActionType(str, Enum):
    """Supported element interactions."""

    CLICK = "click"
    DOUBLE_CLICK = "double_click"
    FILL = "fill"
    TYPE = "type"
    HOVER = "hover"
    CHECK = "check"
    UNCHECK = "uncheck"
    SELECT = "select"
    PRESS = "press"


class ActionPhase(str, Enum):
    """Which path of a two-phase action produced the outcome."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    FAILED = "failed"


# Interactions that have a forced variant in Playwright.
FORCEABLE = {
    ActionType.CLICK,
    ActionType.DOUBLE_CLICK,
    ActionType.FILL,
    ActionType.HOVER,
    ActionType.CHECK,
    ActionType.UNCHECK,
    ActionType.SELECT,
}


@dataclass
class ActionOutcome:
    """Result of an element interaction."""

    action_type: ActionType
    phase: ActionPhase
    element_name: str | None = None
    phases_tried: list[ActionPhase] = field(default_factory=list)
    duration_ms: float = 0
    error_message: str | None = None
    screenshot_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.phase is not ActionPhase.FAILED


class ActionExecutor:
    """
    Usage:
        executor = ActionExecutor(page)
        outcome = await executor.perform(ActionType.CLICK, handle)
        outcome.phase  # ActionPhase.PRIMARY or ActionPhase.FALLBACK
    """

    def __init__(
        self,
        page: Page,
        primary_timeout: int = 5000,
        fallback_timeout: int = 3000,
        screenshot_dir: Path | None = None,
    ):
        """
        Args:
            page: Playwright Page instance
            primary_timeout: Milliseconds for the standard interaction
            fallback_timeout: Milliseconds for the forced interaction
            screenshot_dir: Where to save a screenshot when both phases fail
        """
        self.page = page
        self.primary_timeout = primary_timeout
        self.fallback_timeout = fallback_timeout
        self.screenshot_dir = screenshot_dir
        self._action_history: list[ActionOutcome] = []

    async def perform(
        self,
        action: ActionType,
        target: ResolvedElement | Locator,
        value: Any = None,
    ) -> ActionOutcome:
        """
        Perform ``action`` on ``target``.

        Raises:
            ActionFailedError: primary and fallback both failed (chained from
                the primary error)
            WaitCancelledError: the page closed during the interaction
        """
        if isinstance(target, ResolvedElement):
            locator, element_name = target.locator, target.name
        else:
            locator, element_name = target, None

        start = time.monotonic()
        log = logger.bind(action=action.value, element=element_name)
        phases_tried = [ActionPhase.PRIMARY]

        try:
            await self._dispatch(action, locator, value, force=False, timeout=self.primary_timeout)
        except PlaywrightError as primary_error:
            self._check_open(action, element_name, primary_error)

            if action not in FORCEABLE:
                await self._fail(
                    action, element_name, phases_tried, primary_error, None, start, log
                )

            log.warning(
                "action_primary_failed",
                error=_first_line(primary_error),
                next_phase=ActionPhase.FALLBACK.value,
            )
            phases_tried.append(ActionPhase.FALLBACK)

            try:
                await self._dispatch(
                    action, locator, value, force=True, timeout=self.fallback_timeout
                )
            except PlaywrightError as fallback_error:
                self._check_open(action, element_name, fallback_error)
                await self._fail(
                    action, element_name, phases_tried, primary_error, fallback_error, start, log
                )

            return self._succeed(
                action, element_name, ActionPhase.FALLBACK, phases_tried, start, log,
                primary_error=_first_line(primary_error),
            )

        return self._succeed(action, element_name, ActionPhase.PRIMARY, phases_tried, start, log)

    async def click(self, target: ResolvedElement | Locator) -> ActionOutcome:
        return await self.perform(ActionType.CLICK, target)

    async def fill(self, target: ResolvedElement | Locator, value: str) -> ActionOutcome:
        return await self.perform(ActionType.FILL, target, value)

    async def hover(self, target: ResolvedElement | Locator) -> ActionOutcome:
        return await self.perform(ActionType.HOVER, target)

    async def press(self, target: ResolvedElement | Locator, key: str) -> ActionOutcome:
        return await self.perform(ActionType.PRESS, target, key)

    async def _dispatch(
        self,
        action: ActionType,
        locator: Locator,
        value: Any,
        force: bool,
        timeout: int,
    ) -> None:
        match action:
            case ActionType.CLICK:
                await locator.click(force=force, timeout=timeout)
            case ActionType.DOUBLE_CLICK:
                await locator.dblclick(force=force, timeout=timeout)
            case ActionType.FILL:
                await locator.fill(value, force=force, timeout=timeout)
            case ActionType.TYPE:
                await locator.press_sequentially(value, delay=50, timeout=timeout)
            case ActionType.HOVER:
                await locator.hover(force=force, timeout=timeout)
            case ActionType.CHECK:
                await locator.check(force=force, timeout=timeout)
            case ActionType.UNCHECK:
                await locator.uncheck(force=force, timeout=timeout)
            case ActionType.SELECT:
                await locator.select_option(value, force=force, timeout=timeout)
            case ActionType.PRESS:
                await locator.press(value, timeout=timeout)

    def _succeed(
        self,
        action: ActionType,
        element_name: str | None,
        phase: ActionPhase,
        phases_tried: list[ActionPhase],
        start: float,
        log: Any,
        **metadata: Any,
    ) -> ActionOutcome:
        duration_ms = (time.monotonic() - start) * 1000
        outcome = ActionOutcome(
            action_type=action,
            phase=phase,
            element_name=element_name,
            phases_tried=list(phases_tried),
            duration_ms=duration_ms,
            metadata=metadata,
        )
        log.info("action_complete", phase=phase.value, duration_ms=round(duration_ms, 2))
        self._action_history.append(outcome)
        return outcome

    async def _fail(
        self,
        action: ActionType,
        element_name: str | None,
        phases_tried: list[ActionPhase],
        primary_error: PlaywrightError,
        fallback_error: PlaywrightError | None,
        start: float,
        log: Any,
    ) -> None:
        duration_ms = (time.monotonic() - start) * 1000
        screenshot_path = await self._capture_failure(action, element_name)
        outcome = ActionOutcome(
            action_type=action,
            phase=ActionPhase.FAILED,
            element_name=element_name,
            phases_tried=list(phases_tried),
            duration_ms=duration_ms,
            error_message=_first_line(fallback_error or primary_error),
            screenshot_path=screenshot_path,
        )
        self._action_history.append(outcome)
        log.error(
            "action_failed",
            phase=ActionPhase.FAILED.value,
            phases_tried=[p.value for p in phases_tried],
            primary_error=_first_line(primary_error),
            fallback_error=_first_line(fallback_error) if fallback_error else None,
            screenshot=screenshot_path,
        )
        raise ActionFailedError(
            action.value,
            element_name,
            [p.value for p in phases_tried],
            original=primary_error,
            fallback_error=fallback_error,
        ) from primary_error

    def _check_open(
        self, action: ActionType, element_name: str | None, error: PlaywrightError
    ) -> None:
        if self.page.is_closed():
            raise WaitCancelledError(
                f"{action.value} on '{element_name}'", "page closed during action"
            ) from error

    async def _capture_failure(self, action: ActionType, element_name: str | None) -> str | None:
        """Save a screenshot for post-hoc debugging; never masks the action error."""
        if self.screenshot_dir is None:
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        label = re.sub(r"[^\w.-]+", "_", element_name or "locator")
        path = Path(self.screenshot_dir) / f"{stamp}-{action.value}-{label}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self.page.screenshot(path=str(path))
        except (PlaywrightError, OSError) as e:
            logger.warning("failure_screenshot_error", error=str(e))
            return None
        return str(path)

    def get_action_history(self) -> list[ActionOutcome]:
        """Get history of all executed actions."""
        return self._action_history.copy()


def _first_line(error: BaseException | None) -> str:
    if error is None:
        return ""
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
