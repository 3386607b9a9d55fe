"""JWT authentication module."""

from taskquest.auth.dependencies import get_current_user_id
from taskquest.auth.jwt import create_access_token, decode_access_token

__all__ = ["create_access_token", "decode_access_token", "get_current_user_id"]
