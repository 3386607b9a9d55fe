"""
JWT token creation and validation.
Uses python-jose for JWT handling.

Tokens issued here carry ``type="access"``. Supabase session tokens carry
no type claim and are accepted as long as signature and audience match.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from taskquest.config import get_settings
from taskquest.utils.timeutils import utcnow


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode; ``sub`` should hold the user id
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    settings = get_settings()
    to_encode = data.copy()
    issued_at = utcnow()
    expire = issued_at + (expires_delta or timedelta(minutes=settings.jwt_expiration_minutes))

    to_encode.update(
        {
            "exp": expire,
            "iat": issued_at,
            "aud": settings.jwt_audience,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If token is invalid, expired or of the wrong type
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )

        token_type = payload.get("type")
        if token_type is not None and token_type != "access":
            raise JWTError("Invalid token type")

        return payload

    except JWTError as e:
        raise JWTError(f"Token validation failed: {str(e)}")
