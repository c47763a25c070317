"""Self-rescheduling job engine."""

__version__ = "1.0.0"
