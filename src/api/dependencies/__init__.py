"""
API Dependencies package.

Cross-cutting concerns: API key authentication and caller identity.
"""

from .auth import verify_api_key, resolve_caller_id, API_AUTH_ENABLED

__all__ = ["verify_api_key", "resolve_caller_id", "API_AUTH_ENABLED"]
