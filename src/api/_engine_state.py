"""
Engine state management for API integration.

Provides singleton access to the EngineService instance.
Initialized during FastAPI lifespan.

Usage:
    from ._engine_state import get_engine_service, init_engine_service

    # In lifespan:
    init_engine_service(load_settings())

    # In routers:
    engine = get_engine_service().engine
"""

from typing import Optional

from src.engine.gateway import SchedulingGateway
from src.engine.seed import RandomSeedSource
from src.engine.service import EngineService
from src.infra.config import EngineSettings


# Global engine service instance
_engine_service: Optional[EngineService] = None


def init_engine_service(
    settings: EngineSettings,
    gateway: Optional[SchedulingGateway] = None,
    seed_source: Optional[RandomSeedSource] = None,
) -> EngineService:
    """
    Initialize the engine service singleton.

    Idempotent: an already initialized service is returned unchanged.

    Args:
        settings: Resolved configuration
        gateway: Optional gateway override
        seed_source: Optional seed source override

    Returns:
        Initialized EngineService
    """
    global _engine_service

    if _engine_service is not None:
        return _engine_service

    _engine_service = EngineService.create(
        settings=settings,
        gateway=gateway,
        seed_source=seed_source,
    )

    return _engine_service


def get_engine_service() -> EngineService:
    """
    Get the engine service singleton.

    Raises:
        RuntimeError: If engine service not initialized
    """
    if _engine_service is None:
        raise RuntimeError(
            "Engine service not initialized. "
            "Ensure init_engine_service() is called during startup."
        )

    return _engine_service


def shutdown_engine_service() -> None:
    """
    Close the engine service and drop the singleton.

    Called during FastAPI lifespan shutdown.
    """
    global _engine_service

    if _engine_service is not None:
        _engine_service.close()
        _engine_service = None
