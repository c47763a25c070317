"""
Job engine exceptions.

Validation, authorization, not-found and already-triggered conditions are
raised synchronously to the caller. Capacity and scheduling failures raised
inside the recurrence Place step are caught by the engine and turn into a
stall; CancellationFailedError is logged and never reaches the caller of
cancel().
"""

from typing import Optional


class EngineError(Exception):
    """Base exception for all job engine errors."""
    pass


class ValidationError(EngineError):
    """Raised when an argument is out of range (e.g. interval_seconds <= 0)."""
    pass


class NotFoundError(EngineError):
    """Raised when a requested job does not exist."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class AuthorizationError(EngineError):
    """Raised when the caller is not allowed to act on a job."""

    def __init__(self, job_id: int, caller_id: str, action: str):
        self.job_id = job_id
        self.caller_id = caller_id
        self.action = action
        super().__init__(f"Caller '{caller_id}' may not {action} job {job_id}")


class AlreadyTriggeredError(EngineError):
    """Raised on a second trigger of a one-shot job."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"One-shot job {job_id} has already been triggered")


class AlreadyActiveError(EngineError):
    """
    Raised when an owner tries to start a second recurring chain.

    Only one live recurring chain is allowed per owner.
    """

    def __init__(self, owner_id: str, existing_job_id: int):
        self.owner_id = owner_id
        self.existing_job_id = existing_job_id
        super().__init__(
            f"Owner '{owner_id}' already has an active recurring job ({existing_job_id})"
        )


class ConcurrentUpdateError(EngineError):
    """
    Raised when a job record changed underneath a read-modify-write.

    Another process wrote the same job between our read and our write.
    """

    def __init__(self, job_id: int, attempts: Optional[int] = None):
        self.job_id = job_id
        self.attempts = attempts
        if attempts is None:
            message = f"Job {job_id} was modified concurrently"
        else:
            message = f"Job {job_id} kept changing concurrently ({attempts} attempts)"
        super().__init__(message)


class CapacityExhaustedError(EngineError):
    """Raised when every probe candidate reported no capacity."""

    def __init__(self, desired_instant: int, attempts: int):
        self.desired_instant = desired_instant
        self.attempts = attempts
        super().__init__(
            f"No capacity near {desired_instant} after {attempts} probe attempts"
        )


class SchedulingFailedError(EngineError):
    """Raised when the gateway rejects or fails a registration."""

    def __init__(self, message: str, instant: Optional[int] = None):
        self.instant = instant
        super().__init__(message)


class CancellationFailedError(EngineError):
    """Raised when the gateway fails to cancel a registered invocation."""

    def __init__(self, ref: str, reason: str):
        self.ref = ref
        self.reason = reason
        super().__init__(f"Failed to cancel schedule {ref}: {reason}")
