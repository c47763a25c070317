"""
Capacity probe.

Finds an admissible instant for a registration near a desired instant.

Search order:
    desired instant first (no drift when it has room), then
    candidate_i = desired + 2^i + jitter_i   for i in 0..max_attempts-1

    jitter_i = low16(sha256(seed || i)) mod 2^i
    Example: 1061, 1062..1063, 1064..1067, 1068..1075, ...

The seed is drawn once per probe sequence so the candidates of one call are
reproducible from (desired, seed). Competing callers aiming at the same
instant spread out over a window that doubles each attempt.
"""

import hashlib
import logging
from typing import Iterator, Tuple

from .errors import CapacityExhaustedError, ValidationError
from .gateway import SchedulingGateway
from .seed import RandomSeedSource


logger = logging.getLogger(__name__)


DEFAULT_MAX_ATTEMPTS = 8

_WORD_BYTES = 32
_JITTER_MASK = 0xFFFF


def _digest(seed: int, attempt: int) -> bytes:
    """sha256 over the 32-byte big-endian seed followed by the attempt index."""
    seed &= (1 << (8 * _WORD_BYTES)) - 1
    data = seed.to_bytes(_WORD_BYTES, "big") + attempt.to_bytes(_WORD_BYTES, "big")
    return hashlib.sha256(data).digest()


def jitter_for(seed: int, attempt: int) -> int:
    """Jitter for one attempt; always 0 <= jitter < 2 ** attempt."""
    base_delay = 2 ** attempt
    low16 = int.from_bytes(_digest(seed, attempt), "big") & _JITTER_MASK
    return low16 % base_delay


def candidates(
    desired_instant: int,
    seed: int,
    max_attempts: int,
) -> Iterator[Tuple[int, int]]:
    """
    Yield (attempt, candidate_instant) for a probe sequence.

    Strictly increasing in attempt.
    """
    for attempt in range(max_attempts):
        yield attempt, desired_instant + 2 ** attempt + jitter_for(seed, attempt)


class CapacityProbe:
    """Backoff + jitter search over the gateway's capacity query."""

    def __init__(self, gateway: SchedulingGateway, seed_source: RandomSeedSource):
        self.gateway = gateway
        self.seed_source = seed_source

    def find(
        self,
        desired_instant: int,
        resource_cost: int,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> int:
        """
        Return an instant the gateway currently reports capacity for.

        Args:
            desired_instant: Preferred epoch second
            resource_cost: Cost units of the registration
            max_attempts: Number of backoff candidates to try

        Returns:
            desired_instant if it has room, otherwise the first admissible
            candidate

        Raises:
            ValidationError: max_attempts < 1
            CapacityExhaustedError: no candidate had room
            SchedulingFailedError: the capacity query itself failed
        """
        if max_attempts < 1:
            raise ValidationError(f"max_attempts must be >= 1, got {max_attempts}")

        if self.gateway.has_capacity(desired_instant, resource_cost):
            return desired_instant

        seed = self.seed_source.get_seed()

        for attempt, candidate in candidates(desired_instant, seed, max_attempts):
            if self.gateway.has_capacity(candidate, resource_cost):
                logger.info(
                    f"Probe found capacity at {candidate} "
                    f"(desired {desired_instant}, attempt {attempt + 1}/{max_attempts})"
                )
                return candidate

            logger.debug(f"No capacity at {candidate} (attempt {attempt + 1}/{max_attempts})")

        raise CapacityExhaustedError(desired_instant, max_attempts)
