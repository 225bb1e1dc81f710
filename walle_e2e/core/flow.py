"""
Flow Sequencer

Runs a named, numbered sequence of steps as one end-to-end user journey:

1. Steps execute strictly in order; each runs its action, then its assertions
2. A failing step with no matching remediation rule aborts the attempt and
   the flow (FatalFlowError)
3. A matching rule runs its remedy; RETRY abandons the attempt and starts a
   fresh one from the first step, up to ``max_attempts``
4. Exhausting the budget raises RetryBudgetExceededError listing every
   attempt's failure

Step numbers exist for the humans reading the report; they are carried into
every log line and error.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

import structlog

from walle_e2e.core.errors import (
    AuthStateError,
    FatalFlowError,
    LedgerError,
    RetryBudgetExceededError,
    WaitCancelledError,
    describe_failure,
)

logger = structlog.get_logger()

# Failures no remediation rule may see: the page is gone or a run precondition broke.
UNREMEDIABLE = (WaitCancelledError, LedgerError, AuthStateError)


class FlowStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FATAL_FAILED = "fatal_failed"
    SKIPPED = "skipped"


class AttemptStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    REMEDIATED_RETRY = "remediated_retry"
    FATAL_FAILED = "fatal_failed"
    SKIPPED = "skipped"


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class RemediationDecision(str, Enum):
    """What happens to the flow after a remedy ran."""

    RETRY = "retry"  # abandon this attempt, start over from step 1
    SKIP = "skip"  # stop here, the flow is not applicable
    ABORT = "abort"  # stop here, the flow failed


@dataclass
class FlowContext:
    """Per-attempt context handed to steps; ``data`` starts empty on each attempt."""

    flow_name: str
    attempt: int
    data: dict[str, Any] = field(default_factory=dict)


StepCallable = Callable[[FlowContext], Awaitable[Any]]
Trigger = Callable[[FlowContext, BaseException], Awaitable[bool]]


@dataclass(frozen=True)
class FlowStep:
    number: str
    description: str
    action: StepCallable | None = None
    assertions: tuple[StepCallable, ...] = ()

    @property
    def label(self) -> str:
        return f"STEP {self.number}: {self.description}"


@dataclass(frozen=True)
class RemediationRule:
    """
    Recovery for a known interstitial UI state.

    ``trigger`` is consulted only after a step failed with one of ``errors``.
    """

    name: str
    trigger: Trigger
    remedy: StepCallable
    decision: RemediationDecision = RemediationDecision.RETRY
    errors: tuple[type[BaseException], ...] = (Exception,)

    async def matches(self, ctx: FlowContext, error: BaseException) -> bool:
        if not isinstance(error, self.errors):
            return False
        return bool(await self.trigger(ctx, error))


@dataclass
class Flow:
    """
    Usage:
        flow = Flow("agent-creation")
        flow.step("Select chain", select_chain, assertions=[chain_selected])
        flow.step("Dismiss auth gate", dismiss_gate, number="8.5")
        flow.remediate("bot-wallet", when=bot_modal_visible, do=swap_wallet)
    """

    name: str
    description: str = ""
    steps: list[FlowStep] = field(default_factory=list)
    remediations: list[RemediationRule] = field(default_factory=list)

    def step(
        self,
        description: str,
        action: StepCallable | None = None,
        *,
        assertions: Sequence[StepCallable] = (),
        number: str | float | int | None = None,
    ) -> FlowStep:
        """Append a step; numbers default to the next whole number."""
        label = str(number) if number is not None else str(self._next_number())
        if any(existing.number == label for existing in self.steps):
            raise ValueError(f"Flow '{self.name}' already has a step {label}")
        if action is None and not assertions:
            raise ValueError(f"Step {label} of '{self.name}' has nothing to do")

        new_step = FlowStep(label, description, action, tuple(assertions))
        self.steps.append(new_step)
        return new_step

    def remediate(
        self,
        name: str,
        *,
        when: Trigger,
        do: StepCallable,
        decision: RemediationDecision = RemediationDecision.RETRY,
        errors: tuple[type[BaseException], ...] = (Exception,),
    ) -> RemediationRule:
        rule = RemediationRule(name, when, do, decision, errors)
        self.remediations.append(rule)
        return rule

    def _next_number(self) -> int:
        whole_numbers = [int(float(s.number)) for s in self.steps if _is_number(s.number)]
        return max(whole_numbers, default=0) + 1


def _is_number(label: str) -> bool:
    try:
        float(label)
    except ValueError:
        return False
    return True


@dataclass
class StepRecord:
    """Result of a single step execution."""

    number: str
    description: str
    status: StepStatus
    attempt: int
    duration_ms: float = 0
    error_message: str | None = None
    error_type: str | None = None


@dataclass
class AttemptRecord:
    """One run of a flow's steps from the top to a terminal outcome."""

    number: int
    status: AttemptStatus = AttemptStatus.RUNNING
    steps: list[StepRecord] = field(default_factory=list)
    failed_step: str | None = None
    failure_reason: str | None = None
    remediation: str | None = None
    duration_ms: float = 0
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowResult:
    """Result of a complete flow run."""

    run_id: str
    flow_name: str
    status: FlowStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float = 0
    attempts: list[AttemptRecord] = field(default_factory=list)
    error_message: str | None = None

    @property
    def total_attempts(self) -> int:
        return len(self.attempts)

    @property
    def data(self) -> dict[str, Any]:
        """Values the last attempt's steps stored in their context."""
        return self.attempts[-1].data if self.attempts else {}

    def count(self, status: AttemptStatus) -> int:
        return sum(1 for a in self.attempts if a.status is status)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "flow_name": self.flow_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "total_attempts": self.total_attempts,
            "data": self.data,
            "attempts": [
                {
                    "number": a.number,
                    "status": a.status.value,
                    "failed_step": a.failed_step,
                    "failure_reason": a.failure_reason,
                    "remediation": a.remediation,
                    "duration_ms": a.duration_ms,
                    "steps": [
                        {
                            "number": s.number,
                            "description": s.description,
                            "status": s.status.value,
                            "duration_ms": s.duration_ms,
                            "error_message": s.error_message,
                            "error_type": s.error_type,
                        }
                        for s in a.steps
                    ],
                }
                for a in self.attempts
            ],
            "error_message": self.error_message,
        }


@dataclass
class _AttemptOutcome:
    record: AttemptRecord
    error: BaseException | None = None
    step: FlowStep | None = None


class FlowSequencer:
    """
    Usage:
        sequencer = FlowSequencer(max_attempts=3)
        result = await sequencer.run(flow)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        on_step_complete: Callable[[StepRecord], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_attempts: Default attempt budget per flow
            on_step_complete: Callback for real-time step updates
        """
        self.max_attempts = max_attempts
        self.on_step_complete = on_step_complete
        self._clock = clock

    async def run(
        self,
        flow: Flow,
        max_attempts: int | None = None,
        raise_on_failure: bool = True,
    ) -> FlowResult:
        """
        Run ``flow`` until it succeeds, is skipped, fails fatally or runs
        out of attempts.

        Raises:
            FatalFlowError: a step failed with no remediation (or ABORT)
            RetryBudgetExceededError: every attempt ended in a retry
            WaitCancelledError: the page closed mid-flow (never remediated)
            LedgerError: the shared ledger is exhausted or unreadable (a run
                precondition, never remediated)
            AuthStateError: the app asks to sign in again (never remediated)
        """
        budget = max_attempts if max_attempts is not None else self.max_attempts
        if budget < 1:
            raise ValueError("max_attempts must be at least 1")
        if not flow.steps:
            raise ValueError(f"Flow '{flow.name}' has no steps")

        started = self._clock()
        result = FlowResult(
            run_id=str(uuid.uuid4()),
            flow_name=flow.name,
            status=FlowStatus.PENDING,
            started_at=datetime.now(timezone.utc),
        )
        log = logger.bind(flow=flow.name, run_id=result.run_id)
        log.info("flow_started", steps=len(flow.steps), max_attempts=budget)

        result.status = FlowStatus.RUNNING
        error: Exception | None = None
        cause: BaseException | None = None

        try:
            for attempt_number in range(1, budget + 1):
                outcome = await self._run_attempt(flow, attempt_number, result, log)
                status = outcome.record.status

                if status is AttemptStatus.SUCCEEDED:
                    result.status = FlowStatus.SUCCEEDED
                    break
                if status is AttemptStatus.SKIPPED:
                    result.status = FlowStatus.SKIPPED
                    break
                if status is AttemptStatus.FATAL_FAILED:
                    result.status = FlowStatus.FATAL_FAILED
                    cause = outcome.error
                    error = FatalFlowError(
                        flow.name,
                        outcome.step.number,
                        outcome.step.description,
                        attempt_number,
                        cause,
                        result=result,
                    )
                    break
            else:
                result.status = FlowStatus.FATAL_FAILED
                error = RetryBudgetExceededError(
                    flow.name,
                    budget,
                    [a.failure_reason or "unknown" for a in result.attempts],
                    result=result,
                )
        except UNREMEDIABLE as e:
            result.status = FlowStatus.FATAL_FAILED
            result.error_message = str(e)
            self._finish(result, started, log)
            raise

        if error is not None:
            result.error_message = str(error)
        self._finish(result, started, log)

        if error is not None and raise_on_failure:
            raise error from cause
        return result

    async def _run_attempt(
        self,
        flow: Flow,
        attempt_number: int,
        result: FlowResult,
        log: Any,
    ) -> _AttemptOutcome:
        ctx = FlowContext(flow_name=flow.name, attempt=attempt_number)
        record = AttemptRecord(number=attempt_number)
        result.attempts.append(record)
        attempt_start = self._clock()
        attempt_log = log.bind(attempt=attempt_number)
        attempt_log.info("attempt_started")

        try:
            for step in flow.steps:
                error = await self._run_step(step, ctx, record, attempt_log)
                if error is None:
                    continue

                record.failed_step = step.number
                reason = f"step {step.number} ({step.description}): {describe_failure(error)}"
                return await self._handle_failure(flow, ctx, step, error, record, reason, attempt_log)

            record.status = AttemptStatus.SUCCEEDED
            return _AttemptOutcome(record)
        finally:
            record.duration_ms = (self._clock() - attempt_start) * 1000
            record.data = dict(ctx.data)
            attempt_log.info(
                "attempt_finished",
                status=record.status.value,
                failed_step=record.failed_step,
                duration_ms=round(record.duration_ms, 2),
            )

    async def _run_step(
        self,
        step: FlowStep,
        ctx: FlowContext,
        record: AttemptRecord,
        log: Any,
    ) -> Exception | None:
        step_log = log.bind(step=step.number)
        step_log.info("step_started", description=step.description)
        start = self._clock()
        error: Exception | None = None

        try:
            if step.action is not None:
                await step.action(ctx)
            for assertion in step.assertions:
                await assertion(ctx)
        except UNREMEDIABLE as e:
            self._record_step(record, step, ctx, start, e)
            step_log.error("step_aborted", description=step.description, error=str(e))
            record.status = AttemptStatus.FATAL_FAILED
            record.failed_step = step.number
            record.failure_reason = f"step {step.number} ({step.description}): {e.summary()}"
            raise
        except Exception as e:
            error = e

        self._record_step(record, step, ctx, start, error)
        if error is None:
            step_log.info("step_passed", description=step.description)
        else:
            step_log.warning(
                "step_failed",
                description=step.description,
                error=describe_failure(error),
            )
        return error

    async def _handle_failure(
        self,
        flow: Flow,
        ctx: FlowContext,
        step: FlowStep,
        error: Exception,
        record: AttemptRecord,
        reason: str,
        log: Any,
    ) -> _AttemptOutcome:
        try:
            rule = await self._match_rule(flow, ctx, error)
        except UNREMEDIABLE:
            raise
        except Exception as trigger_error:
            record.status = AttemptStatus.FATAL_FAILED
            record.failure_reason = (
                f"{reason}; remediation trigger failed: {describe_failure(trigger_error)}"
            )
            log.error("remediation_trigger_error", step=step.number, error=str(trigger_error))
            return _AttemptOutcome(record, error, step)

        if rule is None:
            record.status = AttemptStatus.FATAL_FAILED
            record.failure_reason = reason
            log.error("step_fatal", step=step.number, reason=reason)
            return _AttemptOutcome(record, error, step)

        log.warning(
            "remediation_triggered",
            step=step.number,
            rule=rule.name,
            decision=rule.decision.value,
        )
        try:
            await rule.remedy(ctx)
        except UNREMEDIABLE:
            raise
        except Exception as remedy_error:
            record.status = AttemptStatus.FATAL_FAILED
            record.failure_reason = (
                f"{reason}; remediation '{rule.name}' failed: {describe_failure(remedy_error)}"
            )
            log.error("remediation_failed", rule=rule.name, error=str(remedy_error))
            return _AttemptOutcome(record, remedy_error, step)

        record.remediation = rule.name
        record.failure_reason = f"{reason} [remediated by {rule.name}]"
        match rule.decision:
            case RemediationDecision.RETRY:
                record.status = AttemptStatus.REMEDIATED_RETRY
            case RemediationDecision.SKIP:
                record.status = AttemptStatus.SKIPPED
            case RemediationDecision.ABORT:
                record.status = AttemptStatus.FATAL_FAILED
        log.info("remediation_applied", rule=rule.name, attempt_status=record.status.value)
        return _AttemptOutcome(record, error, step)

    @staticmethod
    async def _match_rule(
        flow: Flow, ctx: FlowContext, error: Exception
    ) -> RemediationRule | None:
        for rule in flow.remediations:
            if await rule.matches(ctx, error):
                return rule
        return None

    def _record_step(
        self,
        record: AttemptRecord,
        step: FlowStep,
        ctx: FlowContext,
        start: float,
        error: BaseException | None,
    ) -> None:
        step_record = StepRecord(
            number=step.number,
            description=step.description,
            status=StepStatus.PASSED if error is None else StepStatus.FAILED,
            attempt=ctx.attempt,
            duration_ms=(self._clock() - start) * 1000,
            error_message=describe_failure(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
        )
        record.steps.append(step_record)
        if self.on_step_complete:
            self.on_step_complete(step_record)

    def _finish(self, result: FlowResult, started: float, log: Any) -> None:
        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = (self._clock() - started) * 1000
        log.info(
            "flow_completed",
            status=result.status.value,
            attempts=result.total_attempts,
            duration_ms=round(result.duration_ms, 2),
        )
