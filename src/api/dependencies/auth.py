"""
Authentication dependencies.

API key: optional, controlled by API_AUTH_ENABLED. When enabled, requires
an X-API-Key header matching the API_KEY env variable.

Caller identity: every job operation acts on behalf of a caller.
- X-Caller-Id names an owner identity
- X-Scheduler-Token, when it matches SCHEDULER_CALLBACK_TOKEN, makes the
  request act as the trusted scheduler identity (the gateway's callback)

A plain X-Caller-Id may not claim the trusted scheduler identity.
"""

import hmac
import os
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from .._engine_state import get_engine_service

# Environment configuration
API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false").lower() == "true"
API_KEY = os.getenv("API_KEY", "")

# Header definitions
api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # We handle the error ourselves for optional auth
    description="API key for authentication (required when API_AUTH_ENABLED=true)",
)

caller_id_header = APIKeyHeader(
    name="X-Caller-Id",
    auto_error=False,
    description="Identity the request acts as (job owner)",
)

scheduler_token_header = APIKeyHeader(
    name="X-Scheduler-Token",
    auto_error=False,
    description="Shared secret presented by the scheduling gateway on trigger callbacks",
)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Verify API key from X-API-Key header.

    Behavior:
    - When API_AUTH_ENABLED=false: Always passes (returns None)
    - When API_AUTH_ENABLED=true: Requires valid API key

    Raises:
        HTTPException: 401 if auth enabled and key is missing/invalid
    """
    if not API_AUTH_ENABLED:
        return None

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key, API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


async def resolve_caller_id(
    caller_id: Optional[str] = Security(caller_id_header),
    scheduler_token: Optional[str] = Security(scheduler_token_header),
) -> str:
    """
    Resolve the identity a request acts as.

    Raises:
        HTTPException: 401 on a bad scheduler token, a missing caller id,
            or a caller id impersonating the trusted scheduler
    """
    settings = get_engine_service().settings

    if scheduler_token:
        expected = settings.scheduler_callback_token
        if expected and hmac.compare_digest(scheduler_token, expected):
            return settings.trusted_scheduler_id
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid scheduler token",
        )

    if not caller_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity. Provide X-Caller-Id header.",
        )

    if caller_id == settings.trusted_scheduler_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Trusted scheduler identity requires X-Scheduler-Token",
        )

    return caller_id
