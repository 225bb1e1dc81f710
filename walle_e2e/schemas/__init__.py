"""
Pydantic schemas for API request/response.
"""

from walle_e2e.schemas.flow import (
    AttemptRecordSchema,
    FlowInfo,
    FlowRunRequest,
    FlowRunResponse,
    StepRecordSchema,
)

__all__ = [
    "AttemptRecordSchema",
    "FlowInfo",
    "FlowRunRequest",
    "FlowRunResponse",
    "StepRecordSchema",
]
