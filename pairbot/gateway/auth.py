"""
Admin API key check

Guards the diagnostic ``/admin`` endpoints, which expose every pairing code
and the phone number it was issued for.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import Header, Request

from .error_codes import AdminAccessError

logger = logging.getLogger(__name__)


def extract_api_key(x_api_key: str | None, authorization: str | None) -> str | None:
    """
    Read a key from either header

    Accepts either:
    - X-API-Key: <key>
    - Authorization: Bearer <key>
    """
    if x_api_key:
        return x_api_key.strip()

    if authorization:
        auth_value = authorization.strip()
        if auth_value.lower().startswith("bearer "):
            bearer_key = auth_value.split(" ", 1)[1].strip()
            if bearer_key:
                return bearer_key

    return None


# FastAPI dependency
async def require_admin_key(
    request: Request,
    x_api_key: str | None = Header(None),
    authorization: str | None = Header(None),
) -> None:
    """
    Require the configured admin API key

    Raises:
        AdminAccessError: 403 when no admin key is configured (endpoint
            disabled), 401 when the key is missing or wrong
    """
    expected = request.app.state.service.config.server.admin_api_key
    if not expected:
        raise AdminAccessError("Admin endpoints are disabled; set PAIRBOT_ADMIN_API_KEY", forbidden=True)

    provided = extract_api_key(x_api_key, authorization)
    if not provided:
        raise AdminAccessError("API key required. Provide X-API-Key or Authorization: Bearer <key>.")

    if not secrets.compare_digest(provided, expected):
        logger.warning(f"Rejected admin request from {request.client.host if request.client else 'unknown'}")
        raise AdminAccessError("Invalid API key")
