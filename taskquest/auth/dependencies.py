"""
FastAPI dependencies for authentication.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from taskquest.auth.jwt import decode_access_token
from taskquest.utils.logging import bind_user, get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract and validate the user id (``sub`` claim) from the bearer JWT.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not credentials:
        logger.warning("auth_failed", reason="missing_token")
        raise _unauthorized("Missing authentication token")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning("auth_failed", reason="invalid_token", error=str(e))
        raise _unauthorized(f"Invalid authentication token: {str(e)}")

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("auth_failed", reason="missing_subject")
        raise _unauthorized("Invalid token payload")

    bind_user(user_id)
    logger.debug("auth_success")
    return user_id
