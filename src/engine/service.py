"""
Engine Service - wiring entry point for the job engine.

Builds and connects:
- JobStore (SQLite)
- HttpSchedulingGateway (remote scheduling backend)
- SystemSeedSource
- CapacityProbe
- JobEngine
- trigger webhook notifier (when configured)

Usage:
    service = EngineService.create(load_settings())
    job_id = service.engine.create_job("alice", JobKind.RECURRING, 15)
    ...
    service.close()
"""

import logging
from typing import Optional

from src.infra.config import EngineSettings
from src.infra.webhook import make_trigger_notifier

from .engine import JobEngine
from .gateway import HttpSchedulingGateway, SchedulingGateway
from .persistence import JobStore
from .probe import CapacityProbe
from .seed import RandomSeedSource, SystemSeedSource


logger = logging.getLogger(__name__)


class EngineService:
    """Holds the wired components and owns their lifecycle."""

    def __init__(
        self,
        settings: EngineSettings,
        store: JobStore,
        gateway: SchedulingGateway,
        engine: JobEngine,
    ):
        """
        Use EngineService.create() for convenient construction.
        """
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.engine = engine

    @classmethod
    def create(
        cls,
        settings: EngineSettings,
        gateway: Optional[SchedulingGateway] = None,
        seed_source: Optional[RandomSeedSource] = None,
    ) -> "EngineService":
        """
        Create an EngineService with all components wired together.

        Args:
            settings: Resolved configuration
            gateway: Override the HTTP gateway (tests, alternative backends)
            seed_source: Override the OS seed source

        Returns:
            Configured EngineService
        """
        store = JobStore(settings.db_path)

        if gateway is None:
            gateway = HttpSchedulingGateway(
                base_url=settings.scheduler_base_url,
                api_key=settings.scheduler_api_key or None,
                timeout=settings.scheduler_timeout_seconds,
            )

        probe = CapacityProbe(gateway, seed_source or SystemSeedSource())

        engine = JobEngine(
            store=store,
            gateway=gateway,
            probe=probe,
            trusted_scheduler_id=settings.trusted_scheduler_id,
            callback_url=settings.callback_url,
            resource_cost=settings.resource_cost,
            max_probe_attempts=settings.max_probe_attempts,
        )

        if settings.trigger_webhook_url:
            engine.set_on_trigger(make_trigger_notifier(settings.trigger_webhook_url))
            logger.info(f"Trigger notifications enabled: {settings.trigger_webhook_url}")

        logger.info(
            f"Engine ready (db={settings.db_path}, gateway={settings.scheduler_base_url}, "
            f"cost={settings.resource_cost}, probe_attempts={settings.max_probe_attempts})"
        )

        return cls(settings=settings, store=store, gateway=gateway, engine=engine)

    def close(self) -> None:
        """Release the gateway client."""
        self.gateway.close()
