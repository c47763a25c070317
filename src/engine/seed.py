"""
Random seed sources for the capacity probe.

One seed is drawn per probe sequence; nothing is persisted.
"""

import secrets
from abc import ABC, abstractmethod


SEED_BITS = 256


class RandomSeedSource(ABC):
    """Supplies an unpredictable fixed-width seed on demand."""

    @abstractmethod
    def get_seed(self) -> int:
        """
        Return a fresh seed.

        Returns:
            Non-negative integer below 2 ** SEED_BITS
        """
        ...


class SystemSeedSource(RandomSeedSource):
    """Seed source backed by the operating system CSPRNG."""

    def get_seed(self) -> int:
        return secrets.randbits(SEED_BITS)
