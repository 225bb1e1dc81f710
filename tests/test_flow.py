"""Unit tests for walle_e2e.core.flow: step sequencing and remediation."""

from __future__ import annotations

import pytest

from walle_e2e.core.errors import (
    AuthStateError,
    FatalFlowError,
    LedgerError,
    RetryBudgetExceededError,
    UnexpectedStateError,
    WaitCancelledError,
)
from walle_e2e.core.flow import (
    AttemptStatus,
    Flow,
    FlowContext,
    FlowSequencer,
    FlowStatus,
    RemediationDecision,
    StepStatus,
)


async def noop(ctx: FlowContext) -> None:
    return None


async def always(ctx: FlowContext, error: BaseException) -> bool:
    return True


def failing_on(attempts: set[int], error_factory=lambda: UnexpectedStateError("bot-wallet")):
    async def step(ctx: FlowContext) -> None:
        if ctx.attempt in attempts:
            raise error_factory()

    return step


# ---------------------------------------------------------------------------
# 1. Building flows
# ---------------------------------------------------------------------------

class TestFlowDefinition:
    def test_steps_are_numbered_in_order(self):
        flow = Flow("numbers")
        flow.step("one", noop)
        flow.step("two", noop)
        flow.step("two and a half", noop, number="2.5")
        flow.step("three", noop)

        assert [s.number for s in flow.steps] == ["1", "2", "2.5", "3"]
        assert flow.steps[2].label == "STEP 2.5: two and a half"

    def test_explicit_numbers_move_the_counter(self):
        flow = Flow("numbers")
        flow.step("one", noop)
        flow.step("eight", noop, number=8)
        flow.step("nine", noop)
        assert [s.number for s in flow.steps] == ["1", "8", "9"]

    def test_duplicate_number_is_rejected(self):
        flow = Flow("numbers")
        flow.step("one", noop)
        with pytest.raises(ValueError, match="already has a step 1"):
            flow.step("again", noop, number=1)

    def test_step_needs_an_action_or_assertion(self):
        flow = Flow("empty")
        with pytest.raises(ValueError, match="nothing to do"):
            flow.step("idle")

    def test_assertion_only_step_is_allowed(self):
        flow = Flow("checks")
        step = flow.step("check", assertions=[noop])
        assert step.action is None
        assert step.assertions == (noop,)


# ---------------------------------------------------------------------------
# 2. Successful runs
# ---------------------------------------------------------------------------

class TestSuccessfulRuns:
    @pytest.mark.asyncio
    async def test_action_then_assertions_in_step_order(self):
        calls = []

        def record(label):
            async def inner(ctx):
                calls.append(label)

            return inner

        flow = Flow("ordered")
        flow.step("first", record("a1"), assertions=[record("c1a"), record("c1b")])
        flow.step("second", record("a2"), assertions=[record("c2")])

        result = await FlowSequencer().run(flow)

        assert calls == ["a1", "c1a", "c1b", "a2", "c2"]
        assert result.status is FlowStatus.SUCCEEDED
        assert result.total_attempts == 1
        assert [s.status for s in result.attempts[0].steps] == [StepStatus.PASSED] * 2

    @pytest.mark.asyncio
    async def test_step_data_is_exposed_on_result(self):
        async def remember(ctx):
            ctx.data["agent_name"] = "Walle"

        flow = Flow("data")
        flow.step("remember", remember)

        result = await FlowSequencer().run(flow)

        assert result.data == {"agent_name": "Walle"}
        assert result.to_dict()["data"] == {"agent_name": "Walle"}

    @pytest.mark.asyncio
    async def test_step_callback_sees_every_step(self):
        seen = []
        flow = Flow("callback")
        flow.step("one", noop)
        flow.step("two", noop)

        await FlowSequencer(on_step_complete=seen.append).run(flow)

        assert [(r.number, r.status) for r in seen] == [
            ("1", StepStatus.PASSED),
            ("2", StepStatus.PASSED),
        ]

    @pytest.mark.asyncio
    async def test_invalid_budget_and_empty_flow(self):
        flow = Flow("one-step")
        flow.step("one", noop)
        with pytest.raises(ValueError):
            await FlowSequencer().run(flow, max_attempts=0)
        with pytest.raises(ValueError):
            await FlowSequencer().run(Flow("empty"))


# ---------------------------------------------------------------------------
# 3. Remediation
# ---------------------------------------------------------------------------

class TestRemediation:
    @pytest.mark.asyncio
    async def test_remediated_attempt_is_retried_from_step_one(self):
        started = []
        remedied = []

        async def start(ctx):
            started.append(ctx.attempt)

        async def remedy(ctx):
            remedied.append(ctx.attempt)

        flow = Flow("retry")
        flow.step("start", start)
        flow.step("check", failing_on({1}))
        flow.step("finish", noop)
        flow.remediate("bot-wallet", when=always, do=remedy)

        result = await FlowSequencer(max_attempts=3).run(flow)

        assert result.status is FlowStatus.SUCCEEDED
        assert result.total_attempts == 2
        assert started == [1, 2]
        assert remedied == [1]
        first = result.attempts[0]
        assert first.status is AttemptStatus.REMEDIATED_RETRY
        assert first.failed_step == "2"
        assert first.remediation == "bot-wallet"
        assert first.failure_reason.endswith("[remediated by bot-wallet]")
        assert result.attempts[1].status is AttemptStatus.SUCCEEDED
        assert result.count(AttemptStatus.REMEDIATED_RETRY) == 1

    @pytest.mark.asyncio
    async def test_context_data_starts_empty_each_attempt(self):
        snapshots = []

        async def remember(ctx):
            snapshots.append(dict(ctx.data))
            ctx.data["wallet"] = f"wallet-{ctx.attempt}"

        flow = Flow("fresh")
        flow.step("remember", remember)
        flow.step("check", failing_on({1}))
        flow.remediate("retry", when=always, do=noop)

        result = await FlowSequencer().run(flow)

        assert snapshots == [{}, {}]
        assert result.attempts[0].data == {"wallet": "wallet-1"}
        assert result.data == {"wallet": "wallet-2"}

    @pytest.mark.asyncio
    async def test_budget_is_exhausted_after_max_attempts(self):
        flow = Flow("stubborn")
        flow.step("check", failing_on({1, 2, 3, 4}))
        flow.remediate("bot-wallet", when=always, do=noop)

        with pytest.raises(RetryBudgetExceededError) as exc_info:
            await FlowSequencer(max_attempts=3).run(flow)

        error = exc_info.value
        assert error.max_attempts == 3
        assert len(error.failures) == 3
        assert all("remediated by bot-wallet" in f for f in error.failures)
        assert error.result.total_attempts == 3
        assert error.result.status is FlowStatus.FATAL_FAILED

    @pytest.mark.asyncio
    async def test_run_budget_overrides_default(self):
        flow = Flow("stubborn")
        flow.step("check", failing_on({1, 2, 3, 4, 5}))
        flow.remediate("retry", when=always, do=noop)

        with pytest.raises(RetryBudgetExceededError) as exc_info:
            await FlowSequencer(max_attempts=3).run(flow, max_attempts=5)
        assert exc_info.value.result.total_attempts == 5

    @pytest.mark.asyncio
    async def test_unmatched_failure_is_fatal(self):
        error = AssertionError("expected 1 thumbnail, found 0")

        async def broken(ctx):
            raise error

        flow = Flow("fatal")
        flow.step("open", noop)
        flow.step("check thumbnails", broken)
        flow.step("never", noop)

        with pytest.raises(FatalFlowError) as exc_info:
            await FlowSequencer().run(flow)

        fatal = exc_info.value
        assert fatal.step_number == "2"
        assert fatal.step_description == "check thumbnails"
        assert fatal.attempt == 1
        assert fatal.cause is error
        assert fatal.__cause__ is error
        assert "step 2" in str(fatal)
        assert fatal.result.total_attempts == 1
        steps = fatal.result.attempts[0].steps
        assert [s.number for s in steps] == ["1", "2"]
        assert steps[1].error_type == "AssertionError"

    @pytest.mark.asyncio
    async def test_rule_only_matches_its_error_types(self):
        flow = Flow("typed")
        flow.step("check", failing_on({1}, lambda: AssertionError("count mismatch")))
        flow.remediate("bot-wallet", when=always, do=noop, errors=(UnexpectedStateError,))

        with pytest.raises(FatalFlowError):
            await FlowSequencer().run(flow)

    @pytest.mark.asyncio
    async def test_first_matching_rule_wins(self):
        applied = []

        async def not_this(ctx, error):
            return False

        def remedy(name):
            async def inner(ctx):
                applied.append(name)

            return inner

        flow = Flow("rules")
        flow.step("check", failing_on({1}))
        flow.remediate("never", when=not_this, do=remedy("never"))
        flow.remediate("first", when=always, do=remedy("first"))
        flow.remediate("second", when=always, do=remedy("second"))

        await FlowSequencer().run(flow)
        assert applied == ["first"]

    @pytest.mark.asyncio
    async def test_failing_remedy_is_fatal(self):
        remedy_error = RuntimeError("close button missing")

        async def remedy(ctx):
            raise remedy_error

        flow = Flow("remedy")
        flow.step("check", failing_on({1}))
        flow.remediate("bot-wallet", when=always, do=remedy)

        with pytest.raises(FatalFlowError) as exc_info:
            await FlowSequencer().run(flow)

        assert exc_info.value.cause is remedy_error
        assert "remediation 'bot-wallet' failed" in exc_info.value.result.attempts[0].failure_reason

    @pytest.mark.asyncio
    async def test_failing_trigger_is_fatal(self):
        async def trigger(ctx, error):
            raise RuntimeError("trigger exploded")

        flow = Flow("trigger")
        flow.step("check", failing_on({1}))
        flow.remediate("bot-wallet", when=trigger, do=noop)

        with pytest.raises(FatalFlowError) as exc_info:
            await FlowSequencer().run(flow)

        assert isinstance(exc_info.value.cause, UnexpectedStateError)
        reason = exc_info.value.result.attempts[0].failure_reason
        assert "remediation trigger failed" in reason

    @pytest.mark.asyncio
    async def test_skip_decision_ends_flow_without_error(self):
        flow = Flow("skip")
        flow.step("check", failing_on({1}))
        flow.step("never", failing_on({1}, lambda: AssertionError("ran after skip")))
        flow.remediate("not-applicable", when=always, do=noop, decision=RemediationDecision.SKIP)

        result = await FlowSequencer().run(flow)

        assert result.status is FlowStatus.SKIPPED
        assert result.total_attempts == 1
        assert result.attempts[0].status is AttemptStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_abort_decision_is_fatal_after_remedy(self):
        remedied = []

        async def remedy(ctx):
            remedied.append(True)

        flow = Flow("abort")
        flow.step("check", failing_on({1}))
        flow.remediate("give-up", when=always, do=remedy, decision=RemediationDecision.ABORT)

        with pytest.raises(FatalFlowError) as exc_info:
            await FlowSequencer().run(flow)

        assert remedied == [True]
        assert exc_info.value.result.attempts[0].remediation == "give-up"


# ---------------------------------------------------------------------------
# 4. Failure reporting modes
# ---------------------------------------------------------------------------

class TestFailureReporting:
    @pytest.mark.asyncio
    async def test_result_returned_instead_of_raising(self):
        flow = Flow("report")
        flow.step("check", failing_on({1}))

        result = await FlowSequencer().run(flow, raise_on_failure=False)

        assert result.status is FlowStatus.FATAL_FAILED
        assert "failed at step 1" in result.error_message
        assert result.completed_at is not None
        report = result.to_dict()
        assert report["status"] == "fatal_failed"
        assert report["attempts"][0]["steps"][0]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_page_closed_is_never_remediated(self):
        remedied = []

        async def closed(ctx):
            raise WaitCancelledError("launch button")

        async def remedy(ctx):
            remedied.append(True)

        flow = Flow("cancelled")
        flow.step("wait", closed)
        flow.remediate("anything", when=always, do=remedy)

        with pytest.raises(WaitCancelledError):
            await FlowSequencer().run(flow, raise_on_failure=False)

        assert remedied == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            LedgerError("No unused resources left"),
            AuthStateError("My Agents asks to sign in; the stored session has expired"),
        ],
        ids=["ledger", "auth"],
    )
    async def test_precondition_errors_escape_the_sequencer(self, error):
        remedied = []
        reports = []

        async def reserve(ctx):
            raise error

        async def remedy(ctx):
            remedied.append(True)

        flow = Flow("exhausted")
        flow.step("Reserve wallet", reserve)
        flow.remediate("anything", when=always, do=remedy)
        sequencer = FlowSequencer(on_step_complete=reports.append)

        with pytest.raises(type(error)):
            await sequencer.run(flow, raise_on_failure=False)

        assert remedied == []
        assert [r.error_type for r in reports] == [type(error).__name__]
