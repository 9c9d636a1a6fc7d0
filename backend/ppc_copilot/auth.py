"""
Authentication — API-key bearer auth for the single tenant.

Include: Authorization: Bearer <API_KEY>
In development with no API_KEY set, auth is skipped.
"""

import logging
import secrets
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Return the matched API key, or "dev-no-auth" when auth is disabled."""
    settings = request.app.state.settings
    api_key = settings.api_key

    if not api_key:
        if settings.is_production:
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API_KEY must be set in production.",
            )
        return "dev-no-auth"

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Include header: Authorization: Bearer <token>",
        )

    if not secrets.compare_digest(credentials.credentials, api_key):
        logger.warning(f"Rejected API key from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=401, detail="Invalid API key.")

    return api_key
