"""
Self-rescheduling job engine.

Places future invocations of jobs through an external, capacity-limited
scheduling gateway, probing with exponential backoff and jitter when the
desired instant is full, and keeps recurring chains alive until cancelled
or stalled.
"""

from .entities import (
    JobKind,
    Job,
    JobView,
    ScheduleRef,
)
from .errors import (
    EngineError,
    ValidationError,
    NotFoundError,
    ConcurrentUpdateError,
    AuthorizationError,
    AlreadyTriggeredError,
    AlreadyActiveError,
    CapacityExhaustedError,
    SchedulingFailedError,
    CancellationFailedError,
)
from .seed import RandomSeedSource, SystemSeedSource
from .gateway import SchedulingGateway, HttpSchedulingGateway
from .probe import CapacityProbe
from .persistence import JobStore
from .engine import JobEngine

__all__ = [
    # Entities
    "JobKind",
    "Job",
    "JobView",
    "ScheduleRef",
    # Errors
    "EngineError",
    "ValidationError",
    "NotFoundError",
    "ConcurrentUpdateError",
    "AuthorizationError",
    "AlreadyTriggeredError",
    "AlreadyActiveError",
    "CapacityExhaustedError",
    "SchedulingFailedError",
    "CancellationFailedError",
    # Collaborators
    "RandomSeedSource",
    "SystemSeedSource",
    "SchedulingGateway",
    "HttpSchedulingGateway",
    # Core
    "CapacityProbe",
    "JobStore",
    "JobEngine",
]
