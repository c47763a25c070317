"""
Job engine.

Owns Job records and the create / trigger / cancel operations:

    create_job -> Place(now + interval)
    trigger    -> trigger_count += 1, and for a live recurring chain
                  Place(next_fire_time + interval)
    cancel     -> best-effort gateway cancel, then active = False

Place = CapacityProbe.find -> SchedulingGateway.schedule. A failed Place
leaves the job active with no pending registration (a stall); nothing is
raised because on the recurrence path there is no caller to raise to.

All state transitions for one job_id run under that job's lock. Different
jobs never share a lock. The lock only covers this process; the store's
versioned save catches writers in other processes (CLI next to a running
API), and the losing operation re-reads the job and runs again.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Hashable, Iterator, Optional

from .entities import Job, JobKind, JobView, ScheduleRef, epoch_now
from .errors import (
    AlreadyTriggeredError,
    AuthorizationError,
    CancellationFailedError,
    CapacityExhaustedError,
    ConcurrentUpdateError,
    NotFoundError,
    SchedulingFailedError,
    ValidationError,
)
from .gateway import SchedulingGateway
from .persistence import JobStore
from .probe import DEFAULT_MAX_ATTEMPTS, CapacityProbe


logger = logging.getLogger(__name__)


DEFAULT_RESOURCE_COST = 200_000

# Read-modify-write rounds before giving up on a job another process keeps writing
MAX_WRITE_ATTEMPTS = 5


class KeyedLocks:
    """
    One lock per key, created on first use.

    An entry lives only while some thread holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders_and_waiters]
        self._locks: dict[Hashable, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


def callback_target(callback_url: str, job_id: int) -> str:
    """Per-job trigger endpoint handed to the gateway."""
    return f"{callback_url.rstrip('/')}/{job_id}/trigger"


class JobEngine:
    """
    Self-rescheduling job engine.

    Authorization:
    - trigger: owner or the trusted scheduler identity
    - cancel: owner only

    Chain rules:
    - ONE_SHOT fires at most once; a second trigger raises
    - RECURRING is limited to one live chain per owner
    - an inactive job never gets a new registration, even when a stale
      invocation still arrives
    - a job has at most one outstanding registration; a manual trigger by
      the owner cancels the one it supersedes
    """

    def __init__(
        self,
        store: JobStore,
        gateway: SchedulingGateway,
        probe: CapacityProbe,
        trusted_scheduler_id: str,
        callback_url: str,
        resource_cost: int = DEFAULT_RESOURCE_COST,
        max_probe_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], int] = epoch_now,
    ):
        """
        Args:
            store: JobStore for Job records
            gateway: External scheduling gateway
            probe: CapacityProbe over the same gateway
            trusted_scheduler_id: Identity the gateway triggers jobs as
            callback_url: Root of the jobs endpoint; each job registers
                {callback_url}/{job_id}/trigger
            resource_cost: Cost units requested per invocation
            max_probe_attempts: Backoff candidates per Place step
            clock: Returns current epoch seconds
        """
        if max_probe_attempts < 1:
            raise ValidationError(
                f"max_probe_attempts must be >= 1, got {max_probe_attempts}"
            )

        self.store = store
        self.gateway = gateway
        self.probe = probe
        self.trusted_scheduler_id = trusted_scheduler_id
        self.callback_url = callback_url
        self.resource_cost = resource_cost
        self.max_probe_attempts = max_probe_attempts
        self.clock = clock

        self._job_locks = KeyedLocks()
        self._owner_locks = KeyedLocks()
        self._on_trigger: Optional[Callable[[JobView], None]] = None

    def set_on_trigger(self, callback: Callable[[JobView], None]) -> None:
        """
        Set callback for trigger notifications.

        Called after every recorded firing, outside the job lock.
        """
        self._on_trigger = callback

    # =========================================================================
    # Operations
    # =========================================================================

    def create_job(self, owner_id: str, kind: JobKind, interval_seconds: int) -> int:
        """
        Create a job due at now + interval_seconds and place its first
        invocation.

        Returns:
            The new job_id

        Raises:
            ValidationError: interval_seconds <= 0 or empty owner_id
            AlreadyActiveError: owner already has a live recurring chain
        """
        if not owner_id:
            raise ValidationError("owner_id must not be empty")
        if (
            isinstance(interval_seconds, bool)
            or not isinstance(interval_seconds, int)
            or interval_seconds <= 0
        ):
            raise ValidationError(
                f"interval_seconds must be a positive integer, got {interval_seconds!r}"
            )
        try:
            kind = JobKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown job kind: {kind!r}")

        with self._owner_locks.hold(owner_id):
            job = self.store.create_job(
                Job.create(owner_id, kind, interval_seconds, now=self.clock())
            )

        job_id = job.job_id
        logger.info(
            f"Created {kind.value} job {job_id} for owner '{owner_id}' "
            f"(interval={interval_seconds}s, due {job.next_fire_time})"
        )

        with self._job_locks.hold(job_id):
            for _ in range(MAX_WRITE_ATTEMPTS):
                # Re-read: a cancel may have landed before we got the lock
                job = self._load(job_id)
                if not job.active or job.pending_schedule_ref is not None:
                    break
                if not self._place(job, job.next_fire_time):
                    break
                if self._save(job, placed=True):
                    break
            else:
                logger.warning(
                    f"Job {job_id} stalled: first placement kept losing to "
                    f"concurrent writers"
                )

        return job_id

    def trigger(self, job_id: int, caller_id: str) -> JobView:
        """
        Record one firing of a job.

        For a live recurring job the next invocation is placed one interval
        after the current next_fire_time. When the owner fires the job by
        hand, the outstanding registration is cancelled first (best effort)
        so the chain does not fork.

        Raises:
            NotFoundError: unknown job_id
            AuthorizationError: caller is neither owner nor trusted scheduler
            AlreadyTriggeredError: one-shot job has already fired
            ConcurrentUpdateError: the job kept changing in another process
        """
        with self._job_locks.hold(job_id):
            for _ in range(MAX_WRITE_ATTEMPTS):
                job = self._load(job_id)

                if caller_id not in (job.owner_id, self.trusted_scheduler_id):
                    raise AuthorizationError(job_id, caller_id, "trigger")

                if job.kind == JobKind.ONE_SHOT and job.trigger_count >= 1:
                    raise AlreadyTriggeredError(job_id)

                if caller_id != self.trusted_scheduler_id:
                    # The gateway consumes its ref when it delivers; a manual
                    # firing leaves it outstanding.
                    self._cancel_registration(job_id, job.pending_schedule_ref)

                job.trigger_count += 1
                job.pending_schedule_ref = None
                job.last_triggered_at = self.clock()

                placed = False
                if job.kind == JobKind.ONE_SHOT:
                    job.active = False
                elif job.active:
                    job.next_fire_time += job.interval_seconds
                    placed = self._place(job, job.next_fire_time)
                else:
                    logger.info(
                        f"Job {job_id} fired after cancellation; not placing another invocation"
                    )

                if self._save(job, placed=placed):
                    break
            else:
                raise ConcurrentUpdateError(job_id, MAX_WRITE_ATTEMPTS)

            view = job.to_view()

        logger.info(
            f"Job {job_id} triggered by '{caller_id}' "
            f"(count={view.trigger_count}, next={view.next_fire_time}, active={view.active})"
        )
        self._notify(view)
        return view

    def cancel(self, job_id: int, caller_id: str) -> JobView:
        """
        Stop a job's chain.

        The gateway registration is cancelled best-effort; a gateway failure
        is logged and the local state change still happens. Cancelling an
        inactive job is a no-op.

        Raises:
            NotFoundError: unknown job_id
            AuthorizationError: caller is not the owner
            ConcurrentUpdateError: the job kept changing in another process
        """
        with self._job_locks.hold(job_id):
            for _ in range(MAX_WRITE_ATTEMPTS):
                job = self._load(job_id)

                if caller_id != job.owner_id:
                    raise AuthorizationError(job_id, caller_id, "cancel")

                if not job.active:
                    return job.to_view()

                self._cancel_registration(job_id, job.pending_schedule_ref)

                job.pending_schedule_ref = None
                job.active = False
                if self._save(job, release_chain=job.kind == JobKind.RECURRING):
                    break
            else:
                raise ConcurrentUpdateError(job_id, MAX_WRITE_ATTEMPTS)

        logger.info(f"Job {job_id} cancelled by owner '{caller_id}'")
        return job.to_view()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_job(self, job_id: int) -> JobView:
        """Raises NotFoundError for an unknown job_id."""
        return self._load(job_id).to_view()

    def list_jobs(
        self,
        owner_id: Optional[str] = None,
        active: Optional[bool] = None,
        limit: int = 100,
    ) -> list[JobView]:
        return [
            job.to_view()
            for job in self.store.list_jobs(owner_id=owner_id, active=active, limit=limit)
        ]

    def find_stalled_jobs(self, now: Optional[int] = None) -> list[JobView]:
        """
        Active jobs that have nothing registered and are already overdue.

        Detection only: stalled chains are not re-placed automatically.
        """
        now = self.clock() if now is None else now
        return [job.to_view() for job in self.store.list_stalled(now)]

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, job_id: int) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job

    def _save(self, job: Job, placed: bool = False, release_chain: bool = False) -> bool:
        """
        Versioned write of a job.

        Returns False when another process wrote the job first. A
        registration made during the lost round is cancelled so it does not
        outlive the discarded state.
        """
        try:
            self.store.save_job(job, release_chain=release_chain)
        except ConcurrentUpdateError:
            logger.warning(f"Job {job.job_id} changed in another process; re-reading")
            if placed:
                self._cancel_registration(job.job_id, job.pending_schedule_ref)
            return False
        return True

    def _cancel_registration(self, job_id: int, ref: Optional[ScheduleRef]) -> None:
        if ref is None:
            return
        try:
            self.gateway.cancel(ref)
        except CancellationFailedError as e:
            logger.warning(
                f"Gateway cancel failed for job {job_id}, "
                f"stale invocation may still arrive: {e}"
            )

    def _place(self, job: Job, desired_instant: int) -> bool:
        """
        Register the job's next invocation at or after desired_instant.

        On success sets pending_schedule_ref and next_fire_time. On failure
        leaves the job untouched (active, no reference) and returns False.
        """
        try:
            instant = self.probe.find(
                desired_instant, self.resource_cost, self.max_probe_attempts
            )
            ref = self.gateway.schedule(
                callback_target(self.callback_url, job.job_id),
                instant,
                self.resource_cost,
                trigger_payload(job.job_id),
            )
        except (CapacityExhaustedError, SchedulingFailedError) as e:
            logger.warning(f"Job {job.job_id} stalled: placement at {desired_instant} failed: {e}")
            return False

        job.pending_schedule_ref = ref
        job.next_fire_time = instant

        if instant == desired_instant:
            logger.info(f"Job {job.job_id} placed at {instant}")
        else:
            logger.info(
                f"Job {job.job_id} placed at {instant} "
                f"(desired {desired_instant}, +{instant - desired_instant}s)"
            )
        return True

    def _notify(self, view: JobView) -> None:
        if self._on_trigger is None:
            return
        try:
            self._on_trigger(view)
        except Exception as e:
            logger.error(f"Trigger notification failed for job {view.job_id}: {e}")


def trigger_payload(job_id: int) -> dict:
    """Payload the gateway POSTs back to the job's trigger endpoint."""
    return {"job_id": job_id}
