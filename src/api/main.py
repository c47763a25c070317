"""
FastAPI application entry point.

Exposes the job engine: job creation, status queries, cancellation, and the
trigger callback the scheduling gateway invokes at each scheduled instant.
"""

from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import Depends, FastAPI

from src import __version__
from src.infra.config import load_settings
from src.infra.logging_config import setup_logging, shutdown_logging
from .routers import jobs
from ._engine_state import init_engine_service, shutdown_engine_service
from .dependencies.auth import verify_api_key, API_AUTH_ENABLED


load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: logging and the EngineService singleton.
    Shutdown: closes the gateway client and the log file.
    """
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine_service(settings)

    yield

    shutdown_engine_service()
    shutdown_logging()


# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "jobs",
        "description": "One-shot and recurring jobs placed through the external scheduling gateway",
    },
]

app = FastAPI(
    title="Job Engine API",
    lifespan=lifespan,
    description="""
## Job Engine API

Self-rescheduling job engine on top of an external, capacity-limited
scheduling gateway.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require
an `X-API-Key` header matching the `API_KEY` environment variable.

Job operations act as the identity in `X-Caller-Id`. The gateway's trigger
callback authenticates with `X-Scheduler-Token`.

### Usage
```bash
# Start server
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

# Start a recurring chain
curl -X POST http://localhost:8000/jobs \\
  -H "Content-Type: application/json" \\
  -H "X-Caller-Id: alice" \\
  -d '{"kind": "RECURRING", "interval_seconds": 15}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


# Include routers WITH authentication dependency (when enabled)
auth_dependency = [Depends(verify_api_key)] if API_AUTH_ENABLED else []

app.include_router(
    jobs.router, prefix="/jobs", tags=["jobs"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
