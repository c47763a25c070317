"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .jobs import (
    JobCreateRequest,
    JobResponse,
    JobListResponse,
    TriggerPayload,
)

__all__ = [
    "JobCreateRequest",
    "JobResponse",
    "JobListResponse",
    "TriggerPayload",
]
