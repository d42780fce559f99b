"""
Civilla request identity.

Sign-in itself happens upstream (session service / OAuth); by the time a
request reaches this API the caller's user id is carried in one of:

1. civilla_uid cookie (browser session)
2. Authorization: Bearer <user id>
3. X-User-Id header (internal callers)
"""

import logging
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

COOKIE_USER_ID = "civilla_uid"

security_bearer = HTTPBearer(auto_error=False)


async def get_optional_user_id(
    request: Request,
    civilla_uid: Optional[str] = Cookie(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_bearer),
) -> Optional[str]:
    """Resolve the caller's user id, or None when the request is anonymous."""
    if civilla_uid:
        return civilla_uid
    if credentials and credentials.credentials:
        return credentials.credentials
    header_id = request.headers.get("X-User-Id")
    if header_id:
        return header_id.strip() or None
    return None


async def get_user_id(
    user_id: Optional[str] = Depends(get_optional_user_id),
) -> str:
    """
    Require an identified caller.

    The user id always comes from the session, never from query
    parameters, so one user cannot read another user's cases.
    """
    if user_id:
        return user_id

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "auth_required",
            "message": "Sign in to continue",
        },
        headers={"WWW-Authenticate": "Bearer"},
    )
