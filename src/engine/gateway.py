"""
Scheduling gateway boundary.

The gateway is the external, admission-controlled service that stores
future invocations and calls the engine's trigger endpoint when they are
due. The engine relies on it to deliver each accepted registration exactly
once, at or after the requested instant.

HttpSchedulingGateway wire format:
    GET    {base}/capacity?instant=<int>&cost=<int>  -> {"available": bool}
    POST   {base}/schedules                          -> {"ref": str}
           body {"target", "instant", "cost", "payload"}
    DELETE {base}/schedules/{ref}                    -> 2xx

Delivery contract: when a registration is due the gateway POSTs `payload`
as JSON to `target`, authenticated with the X-Scheduler-Token header. The
engine registers one target per job, `{ENGINE_CALLBACK_URL}/{job_id}/trigger`,
with payload {"job_id": <int>}.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from .entities import ScheduleRef
from .errors import CancellationFailedError, SchedulingFailedError


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 10.0


class SchedulingGateway(ABC):
    """Contract for the external scheduling service."""

    @abstractmethod
    def has_capacity(self, instant: int, resource_cost: int) -> bool:
        """
        Whether a registration at `instant` costing `resource_cost` would be
        accepted right now. Read-only.
        """
        ...

    @abstractmethod
    def schedule(
        self,
        target: str,
        instant: int,
        resource_cost: int,
        payload: dict,
    ) -> ScheduleRef:
        """
        Register a future invocation of `target` with `payload`.

        Raises:
            SchedulingFailedError: capacity, validation or budget rejection
        """
        ...

    @abstractmethod
    def cancel(self, ref: ScheduleRef) -> None:
        """
        Best-effort cancellation of a registered invocation.

        Raises:
            CancellationFailedError: already fired, stale reference, or
                the gateway could not be reached
        """
        ...

    def close(self) -> None:
        """Release any held resources."""
        return None


class HttpSchedulingGateway(SchedulingGateway):
    """
    JSON-over-HTTP client for a remote scheduling backend.

    Every call is a single request: no retries here, the only bounded
    retry in the system is the capacity probe loop.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            base_url: Gateway root URL
            api_key: Optional bearer token for the gateway
            timeout: Request timeout in seconds
            client: Pre-built httpx.Client (tests inject a MockTransport)
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "JobEngine/1.0",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
        )

    def has_capacity(self, instant: int, resource_cost: int) -> bool:
        try:
            response = self._client.get(
                "/capacity",
                params={"instant": instant, "cost": resource_cost},
            )
        except httpx.RequestError as e:
            raise SchedulingFailedError(
                f"Capacity query failed at {instant}: {e}", instant=instant
            ) from e

        if response.status_code != 200:
            raise SchedulingFailedError(
                f"Capacity query failed at {instant}: HTTP {response.status_code}",
                instant=instant,
            )

        available = bool(response.json().get("available", False))
        logger.debug(f"Capacity at {instant} (cost={resource_cost}): {available}")
        return available

    def schedule(
        self,
        target: str,
        instant: int,
        resource_cost: int,
        payload: dict,
    ) -> ScheduleRef:
        body = {
            "target": target,
            "instant": instant,
            "cost": resource_cost,
            "payload": payload,
        }

        try:
            response = self._client.post("/schedules", json=body)
        except httpx.RequestError as e:
            raise SchedulingFailedError(
                f"Schedule request failed at {instant}: {e}", instant=instant
            ) from e

        if not 200 <= response.status_code < 300:
            raise SchedulingFailedError(
                f"Schedule rejected at {instant}: "
                f"HTTP {response.status_code}: {response.text[:200]}",
                instant=instant,
            )

        ref = response.json().get("ref")
        if not ref:
            raise SchedulingFailedError(
                f"Schedule response at {instant} carried no reference",
                instant=instant,
            )

        return ScheduleRef(str(ref))

    def cancel(self, ref: ScheduleRef) -> None:
        try:
            response = self._client.delete(f"/schedules/{ref.value}")
        except httpx.RequestError as e:
            raise CancellationFailedError(ref.value, f"request error: {e}") from e

        if not 200 <= response.status_code < 300:
            raise CancellationFailedError(
                ref.value, f"HTTP {response.status_code}: {response.text[:200]}"
            )

    def close(self) -> None:
        self._client.close()
