"""Unit tests for walle_e2e.core.locator: intents, registry and resolver."""

from __future__ import annotations

import re

import pytest

from walle_e2e.core.errors import AmbiguousMatchError, ElementNotFoundError, WaitCancelledError
from walle_e2e.core.locator import (
    ByRole,
    ByStructure,
    ByTestId,
    ByText,
    Intent,
    IntentRegistry,
    StrategyKind,
    describe_strategy,
    intent,
)
from tests.fakes import el


# ---------------------------------------------------------------------------
# 1. Intent construction
# ---------------------------------------------------------------------------

class TestIntent:
    def test_strategies_follow_declaration_keywords(self):
        item = intent(
            "send",
            test_id="send-button",
            role="button:Send",
            css="button",
            has_text="Send",
            text="Send",
        )
        assert item.strategies == (
            ByTestId("send-button"),
            ByRole("button", "Send", None),
            ByStructure("button", "Send"),
            ByText("Send", False),
        )

    def test_role_tuple_keeps_regex_name(self):
        pattern = re.compile(r"Add Agents", re.I)
        item = intent("add", role=("button", pattern))
        assert item.strategies == (ByRole("button", pattern, None),)

    def test_bare_role_has_no_name(self):
        item = intent("dialog", role="dialog")
        assert item.strategies == (ByRole("dialog", None, None),)

    def test_intent_without_strategies_is_rejected(self):
        with pytest.raises(ValueError, match="no strategies"):
            Intent("nothing", ())

    def test_nth_renames_and_sets_index(self):
        item = intent("quick_select.select", role="button:Select agent")
        second = item.nth(1)
        assert second.index == 1
        assert second.name == "quick_select.select[1]"
        assert second.nth(3).name == "quick_select.select[3]"
        assert item.index is None

    def test_describe_strategy(self):
        assert describe_strategy(ByTestId("x")) == "test-id=x"
        assert describe_strategy(ByRole("dialog")) == "role=dialog"
        assert describe_strategy(ByRole("button", "Send", True)) == "role=button[name='Send', exact]"
        assert describe_strategy(ByStructure("p", re.compile("^$"))) == "css=p[has-text=/^$/]"
        assert describe_strategy(ByText("Welcome")) == "text='Welcome'"


# ---------------------------------------------------------------------------
# 2. Registry exact-match detection
# ---------------------------------------------------------------------------

class TestIntentRegistry:
    def test_substring_of_another_role_name_is_exact(self):
        registry = IntentRegistry()
        select = registry.register(intent("select", role="button:Select agent"))
        deselect = registry.register(intent("deselect", role="button:Deselect agent"))

        assert registry.is_exact(select.strategies[0]) is True
        assert registry.is_exact(deselect.strategies[0]) is False

    def test_unrelated_names_stay_substring(self):
        registry = IntentRegistry()
        send = registry.register(intent("send", role="button:Send"))
        registry.register(intent("search", role="button:Search"))
        assert registry.is_exact(send.strategies[0]) is False

    def test_explicit_exact_wins(self):
        registry = IntentRegistry()
        registry.register(intent("deselect", role="button:Deselect agent"))
        strategy = ByRole("button", "Select agent", False)
        assert registry.is_exact(strategy) is False

    def test_regex_names_are_never_exact(self):
        registry = IntentRegistry()
        registry.register(intent("deselect", role="button:Deselect agent"))
        assert registry.is_exact(ByRole("button", re.compile("Select agent"))) is False

    def test_comparison_ignores_case_and_whitespace(self):
        registry = IntentRegistry()
        registry.register(intent("deselect", role="button:DESELECT  agent"))
        assert registry.is_exact(ByRole("button", "select agent")) is True


# ---------------------------------------------------------------------------
# 3. Resolution
# ---------------------------------------------------------------------------

class TestElementResolver:
    @pytest.mark.asyncio
    async def test_test_id_beats_role(self, driver, page):
        page.mount(
            el("button", "Send", test_id="send-button", attrs={"id": "by-test-id"}),
            el("button", "Send now", attrs={"id": "by-role"}),
        )
        item = driver.registry.register(
            intent("send", role="button:Send now", test_id="send-button")
        )

        handle = await driver.resolver.resolve(item)

        assert handle.kind is StrategyKind.TEST_ID
        assert await handle.locator.get_attribute("id") == "by-test-id"
        assert handle.strategies_tried == ["test-id=send-button"]

    @pytest.mark.asyncio
    async def test_falls_through_to_next_strategy(self, driver, page, clock):
        page.mount(el("button", "Search"))
        item = driver.registry.register(
            intent("search", test_id="search-button", role="button:Search")
        )

        handle = await driver.resolver.resolve(item)

        assert handle.kind is StrategyKind.ROLE_SUBSTRING
        assert handle.strategies_tried == ["test-id=search-button", "role=button[name='Search']"]
        # The dead test-id strategy used its strategy window, not the whole budget.
        assert clock.now == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_select_never_matches_deselect(self, driver, page):
        page.mount(
            *[el("button", "Deselect agent", attrs={"id": f"de-{i}"}) for i in range(3)],
            *[el("button", "Select agent", attrs={"id": f"sel-{i}"}) for i in range(2)],
        )
        select = driver.registry.register(intent("select", role="button:Select agent"))
        driver.registry.register(intent("deselect", role="button:Deselect agent"))

        handle = await driver.resolver.resolve(select.nth(0))

        assert handle.kind is StrategyKind.ROLE_EXACT
        assert handle.match_count == 2
        assert await handle.locator.get_attribute("id") == "sel-0"

    @pytest.mark.asyncio
    async def test_explicit_exact_skips_overlapping_names(self, driver, page):
        page.mount(
            el("button", "Deselect agent", attrs={"id": "de-0"}),
            el("button", "Select agent", attrs={"id": "sel-0"}),
        )
        select = driver.registry.register(
            intent("select", role="button:Select agent", exact=True)
        )

        handle = await driver.resolver.resolve(select)

        assert handle.kind is StrategyKind.ROLE_EXACT
        assert await handle.locator.get_attribute("id") == "sel-0"

    @pytest.mark.asyncio
    async def test_substring_match_without_registry_knowledge(self, driver, page):
        page.mount(
            el("button", "Deselect agent", attrs={"id": "de-0"}),
            el("button", "Select agent", attrs={"id": "sel-0"}),
        )
        select = driver.registry.register(intent("select", role="button:Select agent"))

        handle = await driver.resolver.resolve(select.nth(0))

        # Nothing registered tells the resolver about "Deselect agent".
        assert handle.kind is StrategyKind.ROLE_SUBSTRING
        assert await handle.locator.get_attribute("id") == "de-0"

    @pytest.mark.asyncio
    async def test_multiple_visible_matches_without_index_are_ambiguous(self, driver, page):
        page.mount(el("button", "Close"), el("button", "Close"))
        item = driver.registry.register(intent("close", role="button:Close"))

        with pytest.raises(AmbiguousMatchError) as exc_info:
            await driver.resolver.resolve(item)

        assert exc_info.value.match_count == 2
        assert exc_info.value.element_name == "close"
        history = driver.resolver.get_location_history()
        assert history[-1]["success"] is False

    @pytest.mark.asyncio
    async def test_hidden_matches_are_ignored(self, driver, page):
        page.mount(
            el("button", "Close", visible=False, attrs={"id": "hidden"}),
            el("button", "Close", attrs={"id": "shown"}),
        )
        item = driver.registry.register(intent("close", role="button:Close"))

        handle = await driver.resolver.resolve(item)

        assert await handle.locator.get_attribute("id") == "shown"

    @pytest.mark.asyncio
    async def test_index_out_of_range_is_not_found(self, driver, page):
        page.mount(el("button", "Close"))
        item = driver.registry.register(intent("close", role="button:Close", index=3))

        with pytest.raises(ElementNotFoundError):
            await driver.resolver.resolve(item)

    @pytest.mark.asyncio
    async def test_not_found_lists_every_strategy(self, driver, page, clock):
        page.mount(el("button", "Something else"))
        item = driver.registry.register(
            intent("missing", test_id="missing", role="button:Missing", text="Missing")
        )

        with pytest.raises(ElementNotFoundError) as exc_info:
            await driver.resolver.resolve(item)

        error = exc_info.value
        assert error.element_name == "missing"
        assert error.tried_strategies == [
            "test-id=missing",
            "role=button[name='Missing']",
            "text='Missing'",
        ]
        assert error.page_url == "http://walle.test/"
        assert "test-id=missing" in error.summary()
        # Resolution is bounded by its budget.
        assert clock.now <= 5.0 + 1e-9

    @pytest.mark.asyncio
    async def test_element_appearing_within_strategy_window(self, driver, page, clock):
        page.mount_at(1.5, el("div", "", test_id="agent-preview-modal"))
        item = driver.registry.register(intent("preview", test_id="agent-preview-modal"))

        handle = await driver.resolver.resolve(item)

        assert handle.kind is StrategyKind.TEST_ID
        assert clock.now == pytest.approx(1.5)

    @pytest.mark.asyncio
    async def test_within_scopes_to_container(self, driver, page):
        page.mount(
            el("div", "", el("button", "Close", attrs={"id": "outer"})),
            el(
                "div",
                "",
                el("p", "Bot wallet detected"),
                el("button", "Close", attrs={"id": "inner"}),
                test_id="bot-wallet-error-modal",
            ),
        )
        modal = driver.registry.register(intent("bot.modal", test_id="bot-wallet-error-modal"))
        close = driver.registry.register(
            intent("bot.close", role=("button", re.compile("close", re.I)), within=modal)
        )

        handle = await driver.resolver.resolve(close)

        assert await handle.locator.get_attribute("id") == "inner"

    @pytest.mark.asyncio
    async def test_missing_container_is_reported(self, driver, page):
        modal = driver.registry.register(intent("bot.modal", test_id="bot-wallet-error-modal"))
        close = driver.registry.register(intent("bot.close", role="button:Close", within=modal))

        with pytest.raises(ElementNotFoundError):
            await driver.resolver.resolve(close)

    @pytest.mark.asyncio
    async def test_closed_page_cancels_resolution(self, driver, page):
        page.close_now()
        item = driver.registry.register(intent("send", test_id="send"))

        with pytest.raises(WaitCancelledError):
            await driver.resolver.resolve(item)

    @pytest.mark.asyncio
    async def test_find_is_a_snapshot(self, driver, page, clock):
        item = driver.registry.register(intent("send", test_id="send", role="button:Send"))

        assert await driver.resolver.find(item) is None
        assert clock.now == 0

        page.mount(el("button", "Send"))
        handle = await driver.resolver.find(item)
        assert handle is not None
        assert handle.kind is StrategyKind.ROLE_SUBSTRING

    @pytest.mark.asyncio
    async def test_count_visible(self, driver, page):
        page.mount(
            el("button", "×"),
            el("button", "×"),
            el("button", "×", visible=False),
        )
        item = driver.registry.register(intent("remove", css="button", has_text="×"))

        assert await driver.resolver.count_visible(item) == 2

    @pytest.mark.asyncio
    async def test_success_is_recorded_in_history(self, driver, page):
        page.mount(el("button", "Send", test_id="send"))
        item = driver.registry.register(intent("send", test_id="send"))

        await driver.resolver.resolve(item)

        history = driver.resolver.get_location_history()
        assert history == [
            {
                "element": "send",
                "strategy": "test-id",
                "success": True,
                "timestamp": history[0]["timestamp"],
                "page_url": "http://walle.test/",
            }
        ]
