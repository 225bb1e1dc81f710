"""
Element Locator Resolver

Resolves a semantic intent ("the send button") to a concrete Playwright
locator by trying an ordered list of strategies. The first strategy that
yields exactly one visible, attached element wins.

Strategy priority (most stable first):
    test id > role+name exact > role+name substring > structural CSS > free text

Each strategy gets a short wait window so a dead strategy cannot stall
the whole resolution.
"""

import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Union

import structlog
from playwright.async_api import (
    Error as PlaywrightError,
    Locator,
    Page,
    TimeoutError as PlaywrightTimeout,
)

from walle_e2e.core.errors import (
    AmbiguousMatchError,
    ElementNotFoundError,
    WaitCancelledError,
)

logger = structlog.get_logger()

TextMatch = Union[str, re.Pattern]


class StrategyKind(str, Enum):
    """Locator strategy classes, ordered by stability."""

    TEST_ID = "test-id"
    ROLE_EXACT = "role-exact"
    ROLE_SUBSTRING = "role-substring"
    STRUCTURE = "structure"
    TEXT = "text"


@dataclass(frozen=True)
class ByTestId:
    test_id: str


@dataclass(frozen=True)
class ByRole:
    """
    Accessible role + name.

    ``exact=None`` lets the registry decide: names that are a substring of
    another registered role name ("Select agent" inside "Deselect agent")
    are matched exactly.
    """

    role: str
    name: TextMatch | None = None
    exact: bool | None = None


@dataclass(frozen=True)
class ByStructure:
    css: str
    has_text: TextMatch | None = None


@dataclass(frozen=True)
class ByText:
    text: TextMatch
    exact: bool = False


Strategy = Union[ByTestId, ByRole, ByStructure, ByText]


@dataclass(frozen=True)
class Intent:
    """
    What to find, independent of how it is currently found.

    ``index`` picks among several visible matches; without it, more than
    one visible match is an error. ``within`` scopes the search to the
    element another intent resolves to.
    """

    name: str
    strategies: tuple[Strategy, ...]
    index: int | None = None
    within: "Intent | None" = None

    def __post_init__(self):
        if not self.strategies:
            raise ValueError(f"Intent '{self.name}' declares no strategies")

    def nth(self, index: int) -> "Intent":
        base = self.name.split("[", 1)[0]
        return replace(self, name=f"{base}[{index}]", index=index)


@dataclass
class ResolvedElement:
    """
    Outcome of resolving an intent against the live DOM.

    Only valid for the action it was resolved for; resolve again afterwards.
    """

    intent: Intent
    locator: Locator
    strategy: Strategy
    kind: StrategyKind
    strategies_tried: list[str] = field(default_factory=list)
    match_count: int = 1
    duration_ms: float = 0

    @property
    def name(self) -> str:
        return self.intent.name


def describe_strategy(strategy: Strategy) -> str:
    """Human-readable form of a strategy for logs and error reports."""
    match strategy:
        case ByTestId(test_id=test_id):
            return f"test-id={test_id}"
        case ByRole(role=role, name=None):
            return f"role={role}"
        case ByRole(role=role, name=name, exact=exact):
            suffix = ", exact" if exact else ""
            return f"role={role}[name={_pattern_text(name)}{suffix}]"
        case ByStructure(css=css, has_text=None):
            return f"css={css}"
        case ByStructure(css=css, has_text=has_text):
            return f"css={css}[has-text={_pattern_text(has_text)}]"
        case ByText(text=text):
            return f"text={_pattern_text(text)}"
    return repr(strategy)


def _pattern_text(value: TextMatch) -> str:
    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/"
    return repr(value)


def _normalize(name: str) -> str:
    return " ".join(name.split()).lower()


def intent(
    name: str,
    *,
    test_id: str | None = None,
    role: str | tuple[str, TextMatch] | None = None,
    exact: bool | None = None,
    css: str | None = None,
    has_text: TextMatch | None = None,
    text: TextMatch | None = None,
    text_exact: bool = False,
    index: int | None = None,
    within: Intent | None = None,
) -> Intent:
    """
    Convenience constructor for intents.

    ``role`` takes either ``"role:name"`` (e.g. ``"button:Select agent"``),
    a bare role, or a ``(role, name)`` tuple when the name is a regex.

    Usage:
        send = intent("send_button", test_id="send-button", role="button:Send")
    """
    strategies: list[Strategy] = []

    if test_id:
        strategies.append(ByTestId(test_id))
    if role:
        if isinstance(role, tuple):
            role_name, accessible_name = role
        elif ":" in role:
            role_name, accessible_name = role.split(":", 1)
        else:
            role_name, accessible_name = role, None
        strategies.append(ByRole(role_name, accessible_name, exact))
    if css:
        strategies.append(ByStructure(css, has_text))
    if text is not None:
        strategies.append(ByText(text, text_exact))

    return Intent(name=name, strategies=tuple(strategies), index=index, within=within)


class IntentRegistry:
    """
    Intents declared by the page models of one session.

    Knows every declared role name so it can decide when a role name has to
    be matched exactly to avoid hitting a semantically opposite element.
    """

    def __init__(self) -> None:
        self._intents: dict[str, Intent] = {}

    def register(self, item: Intent) -> Intent:
        self._intents[item.name] = item
        return item

    def __contains__(self, name: str) -> bool:
        return name in self._intents

    def __len__(self) -> int:
        return len(self._intents)

    def get(self, name: str) -> Intent | None:
        return self._intents.get(name)

    def role_names(self) -> set[str]:
        names: set[str] = set()
        for item in self._intents.values():
            for strategy in item.strategies:
                if isinstance(strategy, ByRole) and isinstance(strategy.name, str):
                    names.add(_normalize(strategy.name))
        return names

    def is_exact(self, strategy: ByRole) -> bool:
        if strategy.exact is not None:
            return strategy.exact
        if not isinstance(strategy.name, str):
            return False
        needle = _normalize(strategy.name)
        return any(
            needle != other and needle in other for other in self.role_names()
        )


class ElementResolver:
    """
    Multi-strategy element resolver.

    Usage:
        resolver = ElementResolver(page, registry)
        handle = await resolver.resolve(send_button)
        await handle.locator.click()
    """

    STRATEGY_PRIORITY = [
        (StrategyKind.TEST_ID, "Most stable - designed for testing"),
        (StrategyKind.ROLE_EXACT, "Accessible role with exact name"),
        (StrategyKind.ROLE_SUBSTRING, "Accessible role with name substring"),
        (StrategyKind.STRUCTURE, "Flexible but tied to markup"),
        (StrategyKind.TEXT, "Human-readable but may change"),
    ]

    def __init__(
        self,
        page: Page,
        registry: IntentRegistry | None = None,
        strategy_timeout: int = 2000,
        timeout: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            page: Playwright Page instance
            registry: Intents declared for this session
            strategy_timeout: Milliseconds each strategy may wait for a match
            timeout: Milliseconds budget for a whole resolution
        """
        self.page = page
        self.registry = registry or IntentRegistry()
        self.strategy_timeout = strategy_timeout
        self.timeout = timeout
        self._clock = clock
        self._rank = {
            kind: position for position, (kind, _) in enumerate(self.STRATEGY_PRIORITY)
        }
        self._location_history: list[dict] = []

    def kind_of(self, strategy: Strategy) -> StrategyKind:
        match strategy:
            case ByTestId():
                return StrategyKind.TEST_ID
            case ByRole():
                if self.registry.is_exact(strategy):
                    return StrategyKind.ROLE_EXACT
                return StrategyKind.ROLE_SUBSTRING
            case ByStructure():
                return StrategyKind.STRUCTURE
            case ByText():
                return StrategyKind.TEXT
        raise TypeError(f"Unknown strategy: {strategy!r}")

    def ordered_strategies(self, item: Intent) -> list[tuple[StrategyKind, Strategy]]:
        """Strategies of an intent in priority order (stable for equal ranks)."""
        pairs = [(self.kind_of(strategy), strategy) for strategy in item.strategies]
        return sorted(pairs, key=lambda pair: self._rank[pair[0]])

    async def resolve(self, item: Intent, timeout: int | None = None) -> ResolvedElement:
        """
        Resolve an intent, waiting up to the strategy window for each strategy.

        Raises:
            ElementNotFoundError: no strategy produced a match
            AmbiguousMatchError: a strategy matched several elements and the
                intent has no index
            WaitCancelledError: the page closed during resolution
        """
        start = self._clock()
        budget_ms = timeout if timeout is not None else self.timeout
        deadline = start + budget_ms / 1000

        log = logger.bind(element=item.name)

        root = await self._root(item, budget_ms)
        if root is None:
            tried = [f"within:{item.within.name}"] if item.within else []
            self._raise_not_found(item, tried, start)

        strategies_tried: list[str] = []
        for kind, strategy in self.ordered_strategies(item):
            label = describe_strategy(strategy)
            strategies_tried.append(label)
            remaining_ms = max(0.0, (deadline - self._clock()) * 1000)
            window_ms = min(self.strategy_timeout, remaining_ms)

            try:
                match = await self._match(root, item, kind, strategy, window_ms)
            except AmbiguousMatchError:
                self._record_failure(item, strategies_tried)
                log.error("element_ambiguous", strategy=label)
                raise
            except PlaywrightError as e:
                self._check_open(item.name, e)
                log.warning("strategy_error", strategy=label, error=str(e))
                continue

            if match is None:
                log.debug("strategy_no_match", strategy=label, window_ms=round(window_ms))
                continue

            locator, match_count = match
            duration_ms = (self._clock() - start) * 1000
            self._record_success(item, kind)
            log.info(
                "element_found",
                strategy=label,
                kind=kind.value,
                duration_ms=round(duration_ms, 2),
            )
            return ResolvedElement(
                intent=item,
                locator=locator,
                strategy=strategy,
                kind=kind,
                strategies_tried=strategies_tried,
                match_count=match_count,
                duration_ms=duration_ms,
            )

        self._raise_not_found(item, strategies_tried, start)

    async def find(self, item: Intent) -> ResolvedElement | None:
        """
        Snapshot resolution without waiting; ``None`` when nothing matches.

        Used by wait conditions, which do their own polling.
        """
        root = await self._root(item, None)
        if root is None:
            return None

        strategies_tried: list[str] = []
        for kind, strategy in self.ordered_strategies(item):
            strategies_tried.append(describe_strategy(strategy))
            try:
                match = await self._match(root, item, kind, strategy, 0)
            except PlaywrightError as e:
                self._check_open(item.name, e)
                continue
            if match is not None:
                locator, match_count = match
                return ResolvedElement(
                    intent=item,
                    locator=locator,
                    strategy=strategy,
                    kind=kind,
                    strategies_tried=strategies_tried,
                    match_count=match_count,
                )
        return None

    async def count_visible(self, item: Intent) -> int:
        """Visible matches of the first strategy that has any attached match."""
        root = await self._root(item, None)
        if root is None:
            return 0

        for kind, strategy in self.ordered_strategies(item):
            candidates = self._build(root, kind, strategy)
            try:
                if await candidates.count():
                    return len(await self._visible_positions(candidates))
            except PlaywrightError as e:
                self._check_open(item.name, e)
        return 0

    async def _root(self, item: Intent, budget_ms: float | None) -> Page | Locator | None:
        if item.within is None:
            return self.page
        if budget_ms is None:
            parent = await self.find(item.within)
            return parent.locator if parent else None
        parent = await self.resolve(item.within, timeout=int(budget_ms))
        return parent.locator

    async def _match(
        self,
        root: Page | Locator,
        item: Intent,
        kind: StrategyKind,
        strategy: Strategy,
        window_ms: float,
    ) -> tuple[Locator, int] | None:
        candidates = self._build(root, kind, strategy)
        window_deadline = self._clock() + window_ms / 1000

        # Playwright treats timeout=0 as "no timeout", so only wait with a real budget.
        if window_ms >= 1:
            try:
                await candidates.first.wait_for(state="attached", timeout=window_ms)
            except PlaywrightTimeout:
                return None

        visible = await self._visible_positions(candidates)

        remaining_ms = (window_deadline - self._clock()) * 1000
        if not visible and remaining_ms >= 1:
            try:
                await candidates.first.wait_for(state="visible", timeout=remaining_ms)
            except PlaywrightTimeout:
                return None
            visible = await self._visible_positions(candidates)

        if not visible:
            return None

        if item.index is None:
            if len(visible) > 1:
                raise AmbiguousMatchError(item.name, describe_strategy(strategy), len(visible))
            return candidates.nth(visible[0]), 1

        if not -len(visible) <= item.index < len(visible):
            return None
        return candidates.nth(visible[item.index]), len(visible)

    @staticmethod
    async def _visible_positions(candidates: Locator) -> list[int]:
        positions = []
        for position in range(await candidates.count()):
            if await candidates.nth(position).is_visible():
                positions.append(position)
        return positions

    def _build(self, root: Page | Locator, kind: StrategyKind, strategy: Strategy) -> Locator:
        match strategy:
            case ByTestId(test_id=test_id):
                return root.get_by_test_id(test_id)
            case ByRole(role=role, name=None):
                return root.get_by_role(role)
            case ByRole(role=role, name=name):
                return root.get_by_role(
                    role, name=name, exact=kind is StrategyKind.ROLE_EXACT
                )
            case ByStructure(css=css, has_text=None):
                return root.locator(css)
            case ByStructure(css=css, has_text=has_text):
                return root.locator(css).filter(has_text=has_text)
            case ByText(text=text, exact=exact):
                return root.get_by_text(text, exact=exact)
        raise TypeError(f"Unknown strategy: {strategy!r}")

    def _check_open(self, description: str, error: BaseException) -> None:
        if self.page.is_closed():
            raise WaitCancelledError(description, "page closed during resolution") from error

    def _raise_not_found(self, item: Intent, tried: list[str], start: float):
        duration_ms = (self._clock() - start) * 1000
        self._record_failure(item, tried)
        page_url = None if self.page.is_closed() else self.page.url

        logger.error(
            "element_not_found",
            element=item.name,
            strategies_tried=tried,
            duration_ms=round(duration_ms, 2),
        )
        if self.page.is_closed():
            raise WaitCancelledError(item.name, "page closed during resolution")
        raise ElementNotFoundError(
            f"Cannot locate element '{item.name}' after trying {len(tried)} strategies",
            element_name=item.name,
            tried_strategies=tried,
            page_url=page_url,
        )

    def _record_success(self, item: Intent, kind: StrategyKind) -> None:
        self._location_history.append(
            {
                "element": item.name,
                "strategy": kind.value,
                "success": True,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "page_url": self.page.url,
            }
        )

    def _record_failure(self, item: Intent, tried: list[str]) -> None:
        self._location_history.append(
            {
                "element": item.name,
                "strategies_tried": list(tried),
                "success": False,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "page_url": None if self.page.is_closed() else self.page.url,
            }
        )

    def get_location_history(self) -> list[dict]:
        """Get location history for analytics."""
        return self._location_history.copy()
