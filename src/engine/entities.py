"""
Job engine domain entities.

- Job: one-shot or recurring unit of future work
- JobKind: ONE_SHOT | RECURRING
- ScheduleRef: opaque handle issued by the scheduling gateway
- JobView: read-only snapshot returned by status queries

Times are integer epoch seconds. Bookkeeping timestamps (created_at,
updated_at) are ISO strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import time


class JobKind(str, Enum):
    """
    Job kind.

    - ONE_SHOT: fires at most once
    - RECURRING: re-places itself every interval_seconds until cancelled
    """

    ONE_SHOT = "ONE_SHOT"
    RECURRING = "RECURRING"


def now_iso() -> str:
    """Get current time as ISO format string."""
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def epoch_now() -> int:
    """Get current time as integer epoch seconds."""
    return int(time.time())


@dataclass(frozen=True)
class ScheduleRef:
    """
    Opaque reference to one registered invocation at the gateway.

    The engine never inspects the value; it only stores it and hands it
    back for a single cancel call.
    """

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class Job:
    """
    Unit of one-shot or recurring future work.

    Mutability rules:
    - job_id, owner_id, kind, interval_seconds, created_at: Immutable
    - next_fire_time, trigger_count, pending_schedule_ref, last_triggered_at:
      mutated by trigger and the Place step
    - active: True -> False only (cancel, or a one-shot that has fired)
    - version: bumped by the store on every save; a stale version loses
    """

    job_id: Optional[int]
    owner_id: str
    kind: JobKind
    interval_seconds: int
    next_fire_time: int
    trigger_count: int = 0
    active: bool = True
    pending_schedule_ref: Optional[ScheduleRef] = None
    last_triggered_at: Optional[int] = None
    version: int = 0
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @classmethod
    def create(
        cls,
        owner_id: str,
        kind: JobKind,
        interval_seconds: int,
        now: int,
    ) -> "Job":
        """Create a new, not yet persisted, active Job due at now + interval."""
        created = now_iso()
        return cls(
            job_id=None,
            owner_id=owner_id,
            kind=kind,
            interval_seconds=interval_seconds,
            next_fire_time=now + interval_seconds,
            created_at=created,
            updated_at=created,
        )

    def to_view(self) -> "JobView":
        return JobView(
            job_id=self.job_id,
            owner_id=self.owner_id,
            kind=self.kind,
            interval_seconds=self.interval_seconds,
            next_fire_time=self.next_fire_time,
            trigger_count=self.trigger_count,
            active=self.active,
            has_pending_schedule=self.pending_schedule_ref is not None,
            last_triggered_at=self.last_triggered_at,
        )


@dataclass(frozen=True)
class JobView:
    """Read-only snapshot of a Job for status queries."""

    job_id: int
    owner_id: str
    kind: JobKind
    interval_seconds: int
    next_fire_time: int
    trigger_count: int
    active: bool
    has_pending_schedule: bool
    last_triggered_at: Optional[int] = None
