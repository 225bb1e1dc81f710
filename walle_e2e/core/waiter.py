"""
Condition Waiter

Polls an observer until its value is accepted or the timeout expires.

Polling follows an increasing interval sequence (e.g. 1s, 2s, 3s, 5s, 5s...)
so quick transitions are caught early while slow, network-bound updates
do not burn hundreds of polls. Each sleep is clamped to the time left, which
puts the final poll exactly at the deadline: a wait never gives up before
its timeout.

A closed page interrupts the wait immediately with WaitCancelledError.
Playwright errors and unresolved elements inside an observer count as "not yet".
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

import structlog
from playwright.async_api import Error as PlaywrightError, Page
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_result

from walle_e2e.core.errors import ElementNotFoundError, WaitCancelledError, WaitTimeoutError
from walle_e2e.core.locator import ElementResolver, Intent, TextMatch

logger = structlog.get_logger()

Observer = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class WaitCondition:
    """
    An observer plus the rule that accepts its value.

    Stateless: the observer is re-evaluated on every poll tick.
    """

    description: str
    observe: Observer
    accept: Callable[[Any], bool] = bool
    timeout: float | None = None
    intervals: tuple[float, ...] | None = None


@dataclass
class _Poll:
    value: Any
    satisfied: bool


class ConditionWaiter:
    """
    Usage:
        waiter = ConditionWaiter(page, intervals=(1, 2, 3, 5))
        await waiter.wait(element_visible(resolver, launch_button))
    """

    def __init__(
        self,
        page: Page | None = None,
        intervals: Sequence[float] = (1.0, 2.0, 3.0, 5.0),
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            page: Page whose closing cancels pending waits
            intervals: Poll interval sequence in seconds; the last value repeats
            timeout: Default timeout in seconds
            clock: Monotonic clock in seconds
            sleep: Coroutine used to sleep between polls
        """
        if not intervals:
            raise ValueError("intervals must not be empty")
        self.page = page
        self.intervals = tuple(intervals)
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._closed = asyncio.Event()

        if page is not None:
            page.on("close", self._on_page_close)

    def _on_page_close(self, *_args: Any) -> None:
        self._closed.set()

    @property
    def cancelled(self) -> bool:
        if self._closed.is_set():
            return True
        return self.page is not None and self.page.is_closed()

    async def wait(self, condition: WaitCondition) -> Any:
        """Wait for a declared condition; returns the accepted value."""
        return await self.wait_until(
            condition.observe,
            accept=condition.accept,
            timeout=condition.timeout,
            intervals=condition.intervals,
            description=condition.description,
        )

    async def wait_until(
        self,
        predicate: Observer,
        *,
        accept: Callable[[Any], bool] = bool,
        timeout: float | None = None,
        intervals: Sequence[float] | None = None,
        description: str = "condition",
    ) -> Any:
        """
        Poll ``predicate`` until ``accept(value)`` holds.

        Raises:
            WaitTimeoutError: not accepted by the deadline; carries the last
                observed value
            WaitCancelledError: the page closed while waiting
        """
        timeout = self.timeout if timeout is None else timeout
        sequence = tuple(intervals) if intervals else self.intervals
        started = self._clock()
        deadline = started + timeout
        polls = 0

        log = logger.bind(condition=description)

        async def poll_once() -> _Poll:
            nonlocal polls
            if self.cancelled:
                raise WaitCancelledError(description)
            polls += 1
            try:
                value = await predicate()
            except PlaywrightError as e:
                if self.cancelled:
                    raise WaitCancelledError(description) from e
                return _Poll(value=f"{type(e).__name__}: {e}", satisfied=False)
            except ElementNotFoundError as e:
                return _Poll(value=e.summary(), satisfied=False)
            return _Poll(value=value, satisfied=bool(accept(value)))

        def deadline_reached(state: RetryCallState) -> bool:
            return self._clock() >= deadline

        def next_interval(state: RetryCallState) -> float:
            interval = sequence[min(state.attempt_number - 1, len(sequence) - 1)]
            return max(0.0, min(interval, deadline - self._clock()))

        def before_sleep(state: RetryCallState) -> None:
            log.debug(
                "condition_pending",
                poll=state.attempt_number,
                observed=repr(state.outcome.result().value),
                next_poll_s=round(state.next_action.sleep, 3),
            )

        retrying = AsyncRetrying(
            stop=deadline_reached,
            wait=next_interval,
            retry=retry_if_result(lambda poll: not poll.satisfied),
            sleep=self._interruptible_sleep,
            before_sleep=before_sleep,
        )

        try:
            poll = await retrying(poll_once)
        except RetryError as e:
            elapsed = self._clock() - started
            last_value = e.last_attempt.result().value
            log.warning(
                "condition_timeout",
                timeout_s=timeout,
                elapsed_s=round(elapsed, 3),
                polls=polls,
                observed=repr(last_value),
            )
            raise WaitTimeoutError(
                description,
                timeout,
                last_value=last_value,
                polls=polls,
                elapsed=elapsed,
            ) from None

        log.debug(
            "condition_met",
            polls=polls,
            elapsed_s=round(self._clock() - started, 3),
        )
        return poll.value

    async def settle(self, seconds: float, reason: str) -> None:
        """
        Fixed delay for transitions with no observable completion signal
        (pure animations). Keep ``seconds`` at the empirical minimum.
        """
        logger.info("settle_wait", seconds=seconds, reason=reason)
        await self._interruptible_sleep(seconds)
        if self.cancelled:
            raise WaitCancelledError(f"settle: {reason}")

    async def _interruptible_sleep(self, seconds: float) -> None:
        if self.cancelled:
            return
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({sleeper, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            closer.cancel()


def _matches(value: str | None, pattern: TextMatch) -> bool:
    if value is None:
        return False
    if isinstance(pattern, re.Pattern):
        return pattern.search(value) is not None
    return pattern in value


def element_visible(
    resolver: ElementResolver, item: Intent, timeout: float | None = None
) -> WaitCondition:
    return WaitCondition(
        description=f"'{item.name}' visible",
        observe=lambda: resolver.find(item),
        accept=lambda handle: handle is not None,
        timeout=timeout,
    )


def element_hidden(
    resolver: ElementResolver, item: Intent, timeout: float | None = None
) -> WaitCondition:
    return WaitCondition(
        description=f"'{item.name}' hidden",
        observe=lambda: resolver.count_visible(item),
        accept=lambda count: count == 0,
        timeout=timeout,
    )


def element_enabled(
    resolver: ElementResolver, item: Intent, timeout: float | None = None
) -> WaitCondition:
    async def observe() -> bool:
        handle = await resolver.find(item)
        return handle is not None and await handle.locator.is_enabled()

    return WaitCondition(
        description=f"'{item.name}' enabled",
        observe=observe,
        timeout=timeout,
    )


def text_matches(
    resolver: ElementResolver,
    item: Intent,
    pattern: TextMatch,
    timeout: float | None = None,
) -> WaitCondition:
    async def observe() -> str | None:
        handle = await resolver.find(item)
        if handle is None:
            return None
        return await handle.locator.text_content()

    shown = f"/{pattern.pattern}/" if isinstance(pattern, re.Pattern) else repr(pattern)
    return WaitCondition(
        description=f"'{item.name}' text matches {shown}",
        observe=observe,
        accept=lambda text: _matches(text, pattern),
        timeout=timeout,
    )


def count_at_least(
    resolver: ElementResolver,
    item: Intent,
    minimum: int,
    timeout: float | None = None,
) -> WaitCondition:
    return WaitCondition(
        description=f"at least {minimum} '{item.name}' visible",
        observe=lambda: resolver.count_visible(item),
        accept=lambda count: count >= minimum,
        timeout=timeout,
    )


def url_matches(page: Page, pattern: TextMatch, timeout: float | None = None) -> WaitCondition:
    async def observe() -> str:
        return page.url

    shown = f"/{pattern.pattern}/" if isinstance(pattern, re.Pattern) else repr(pattern)
    return WaitCondition(
        description=f"url matches {shown}",
        observe=observe,
        accept=lambda url: _matches(url, pattern),
        timeout=timeout,
    )


def value_matches(
    resolver: ElementResolver,
    item: Intent,
    pattern: TextMatch,
    timeout: float | None = None,
) -> WaitCondition:
    """Input value of ``item`` matches ``pattern`` (prompt buttons fill inputs asynchronously)."""

    async def observe() -> str | None:
        handle = await resolver.find(item)
        if handle is None:
            return None
        return await handle.locator.input_value()

    shown = f"/{pattern.pattern}/" if isinstance(pattern, re.Pattern) else repr(pattern)
    return WaitCondition(
        description=f"'{item.name}' value matches {shown}",
        observe=observe,
        accept=lambda value: _matches(value, pattern),
        timeout=timeout,
    )
