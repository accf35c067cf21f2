"""Bearer-token authentication for FastAPI."""

import asyncio
import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthError
from app.db.supabase_client import get_supabase

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


class AuthContext:
    """Context object containing the authenticated Supabase user."""

    def __init__(self, user: Any, token: str):
        self.user = user
        self.token = token
        self.user_id = str(user.id)


def _verify_token(token: str) -> Any:
    """
    Validate the JWT with Supabase Auth.

    Raises:
        AuthError: If Supabase does not return a user for the token
    """
    auth_response = get_supabase().auth.get_user(token)
    if not auth_response or not auth_response.user:
        raise AuthError("Invalid token")
    return auth_response.user


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthContext:
    """
    Require a valid Supabase bearer token.

    Raises:
        HTTPException 401: If the header is missing or the token is invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
        )

    token = credentials.credentials

    try:
        user = await asyncio.to_thread(_verify_token, token)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=AuthError.status_code,
            detail="Invalid token",
        ) from e

    return AuthContext(user=user, token=token)
