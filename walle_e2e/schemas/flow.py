"""
Pydantic schemas for flow-related API endpoints.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from walle_e2e.core.flow import AttemptStatus, FlowStatus, StepStatus


class FlowInfo(BaseModel):
    """A flow that can be run by name."""

    name: str
    description: str
    require_auth: bool


class FlowRunRequest(BaseModel):
    """Request to run a registered flow in a fresh browser session."""

    flow: str = Field(..., min_length=1, description="Registered flow name")
    browser: Literal["chromium", "firefox", "webkit"] | None = Field(
        None, description="Browser type (defaults to settings)"
    )
    headless: bool | None = Field(None, description="Run in headless mode (defaults to settings)")
    base_url: str | None = Field(None, description="Target application URL (defaults to settings)")
    max_attempts: int | None = Field(None, ge=1, le=10, description="Attempt budget")

    model_config = {"json_schema_extra": {"example": {
        "flow": "agent-selection",
        "browser": "chromium",
        "headless": True,
        "max_attempts": 3
    }}}


class StepRecordSchema(BaseModel):
    """Result of a single step execution."""

    number: str
    description: str
    status: StepStatus
    duration_ms: float
    error_message: str | None = None
    error_type: str | None = None


class AttemptRecordSchema(BaseModel):
    """One attempt of a flow, from step 1 to its terminal outcome."""

    number: int
    status: AttemptStatus
    failed_step: str | None = None
    failure_reason: str | None = None
    remediation: str | None = None
    duration_ms: float
    steps: list[StepRecordSchema]


class FlowRunResponse(BaseModel):
    """Response schema for a flow run."""

    run_id: str
    flow_name: str
    status: FlowStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float
    total_attempts: int
    data: dict[str, Any] = Field(default_factory=dict)
    attempts: list[AttemptRecordSchema]
    error_message: str | None = None
