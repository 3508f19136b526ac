"""
Authentication Module

Shared-secret check for the pipeline endpoints. When JOB_INTEL_API_KEY is
configured the caller must send it either as "Authorization: Bearer <key>"
or as "X-API-Key: <key>". Without a configured key every request passes.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from .config import IntelSettings
from .dependencies import get_app_settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


def _matches(candidate: Optional[str], expected: str) -> bool:
    if not candidate:
        return False
    return secrets.compare_digest(candidate.strip().encode(), expected.encode())


async def verify_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    api_key: Optional[str] = Security(api_key_scheme),
    settings: IntelSettings = Depends(get_app_settings),
) -> None:
    """
    Verify the shared secret.

    Raises:
        HTTPException: 401 if a secret is configured and neither header matches
    """
    if not settings.auth_required:
        return

    expected = settings.job_intel_api_key
    token = credentials.credentials if credentials else None
    if _matches(token, expected) or _matches(api_key, expected):
        return

    logger.warning("Rejected request with missing or invalid API key")
    raise HTTPException(status_code=401, detail="Unauthorized")
