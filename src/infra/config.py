"""
Engine configuration from environment variables.

Environment Variables:
- ENGINE_DB_PATH: SQLite job store (default: data/job_engine.db)
- TRUSTED_SCHEDULER_ID: Identity the gateway triggers jobs as (default: scheduler)
- SCHEDULER_BASE_URL: Scheduling gateway root URL (default: http://127.0.0.1:9000)
- SCHEDULER_API_KEY: Bearer token sent to the gateway (default: empty)
- SCHEDULER_TIMEOUT_SECONDS: Gateway request timeout (default: 10)
- SCHEDULER_CALLBACK_TOKEN: Token the gateway presents when triggering (default: empty)
- ENGINE_CALLBACK_URL: Jobs endpoint root; each job registers
  {ENGINE_CALLBACK_URL}/{job_id}/trigger (default: http://127.0.0.1:8000/jobs)
- RESOURCE_COST: Cost units per invocation (default: 200000)
- MAX_PROBE_ATTEMPTS: Capacity probe budget (default: 8)
- TRIGGER_WEBHOOK_URL: Optional webhook notified on every firing (default: empty)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_DIR: Daily log directory (default: logs)

API_AUTH_ENABLED / API_KEY are read by src/api/dependencies/auth.py when the
API module is imported; they only matter to the HTTP surface.

Call load_dotenv() at the entry point before load_settings().
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("job_engine")


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"[Config] Invalid integer for {key}: {val}, using default: {default}")
    return default


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return float(val)
        except ValueError:
            logger.warning(f"[Config] Invalid number for {key}: {val}, using default: {default}")
    return default


def get_project_root() -> Path:
    """Project root; this file lives at src/infra/config.py."""
    return Path(__file__).parent.parent.parent.resolve()


@dataclass(frozen=True)
class EngineSettings:
    """Resolved engine configuration."""

    db_path: Path
    trusted_scheduler_id: str = "scheduler"
    scheduler_base_url: str = "http://127.0.0.1:9000"
    scheduler_api_key: str = ""
    scheduler_timeout_seconds: float = 10.0
    scheduler_callback_token: str = ""
    callback_url: str = "http://127.0.0.1:8000/jobs"
    resource_cost: int = 200_000
    max_probe_attempts: int = 8
    trigger_webhook_url: str = ""
    log_level: str = "INFO"
    log_dir: str = "logs"


def load_settings() -> EngineSettings:
    """Build EngineSettings from the current environment."""
    db_path = os.getenv("ENGINE_DB_PATH")
    return EngineSettings(
        db_path=Path(db_path) if db_path else get_project_root() / "data" / "job_engine.db",
        trusted_scheduler_id=os.getenv("TRUSTED_SCHEDULER_ID", "scheduler"),
        scheduler_base_url=os.getenv("SCHEDULER_BASE_URL", "http://127.0.0.1:9000"),
        scheduler_api_key=os.getenv("SCHEDULER_API_KEY", ""),
        scheduler_timeout_seconds=_get_env_float("SCHEDULER_TIMEOUT_SECONDS", 10.0),
        scheduler_callback_token=os.getenv("SCHEDULER_CALLBACK_TOKEN", ""),
        callback_url=os.getenv("ENGINE_CALLBACK_URL", "http://127.0.0.1:8000/jobs"),
        resource_cost=_get_env_int("RESOURCE_COST", 200_000),
        max_probe_attempts=_get_env_int("MAX_PROBE_ATTEMPTS", 8),
        trigger_webhook_url=os.getenv("TRIGGER_WEBHOOK_URL", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_dir=os.getenv("LOG_DIR", "logs"),
    )
