"""
Flow execution endpoints.
"""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException

from walle_e2e.config import get_settings
from walle_e2e.core.errors import AuthStateError, LedgerError
from walle_e2e.core.flow import FlowSequencer
from walle_e2e.core.session import BrowserOptions, BrowserSession, BrowserType
from walle_e2e.flows import FLOWS, get_flow
from walle_e2e.schemas.flow import FlowInfo, FlowRunRequest, FlowRunResponse

router = APIRouter()
logger = structlog.get_logger()

# In-memory run history, kept for the lifetime of the process
_run_history: dict[str, dict[str, Any]] = {}


@router.get("", response_model=list[FlowInfo])
async def list_flows():
    """
    List flows that can be run by name.
    """
    return [
        FlowInfo(name=d.name, description=d.description, require_auth=d.require_auth)
        for d in sorted(FLOWS.values(), key=lambda d: d.name)
    ]


@router.post("/run", response_model=FlowRunResponse)
async def run_flow(request: FlowRunRequest):
    """
    Run a registered flow in a fresh browser session and return its report.

    Failed runs are reported with status ``fatal_failed``; only missing
    preconditions (auth state, wallet pool) are HTTP errors.
    """
    settings = get_settings()
    try:
        definition = get_flow(request.flow)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0])) from None

    options = BrowserOptions.from_settings(settings, require_auth=definition.require_auth)
    if request.browser:
        options.browser_type = BrowserType(request.browser)
    if request.headless is not None:
        options.headless = request.headless
    if request.base_url:
        options.base_url = request.base_url

    log = logger.bind(flow=definition.name)
    log.info("flow_run_requested", browser=options.browser_type.value)

    try:
        async with BrowserSession(options, settings, definition.require_auth) as session:
            flow = definition.build(session.driver, settings)
            sequencer = FlowSequencer(max_attempts=settings.max_flow_attempts)
            result = await sequencer.run(
                flow, max_attempts=request.max_attempts, raise_on_failure=False
            )
    except AuthStateError as e:
        log.error("flow_run_precondition_failed", error=str(e))
        raise HTTPException(status_code=412, detail=str(e)) from e
    except LedgerError as e:
        log.error("flow_run_ledger_error", error=str(e))
        raise HTTPException(status_code=409, detail=str(e)) from e

    report = result.to_dict()
    _run_history[result.run_id] = report
    return FlowRunResponse.model_validate(report)


@router.get("/history", response_model=list[FlowRunResponse])
async def list_runs(limit: int = 20):
    """
    Get run history, newest first.
    """
    runs = sorted(_run_history.values(), key=lambda r: r["started_at"], reverse=True)
    return [FlowRunResponse.model_validate(r) for r in runs[:limit]]


@router.get("/{run_id}", response_model=FlowRunResponse)
async def get_run(run_id: str):
    """
    Get the report of a specific run.
    """
    if run_id not in _run_history:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return FlowRunResponse.model_validate(_run_history[run_id])
