"""
Shared plumbing for user-scoped analytics services.
"""

from datetime import datetime
from typing import Optional

import structlog

from taskquest.engine.fetcher import MetricFetcher
from taskquest.storage.base import StorageBackend
from taskquest.utils.timeutils import utcnow


class AuthenticationError(Exception):
    """Raised when a service is invoked without an authenticated user."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthenticationError()
    return user_id


class UserScopedService:
    """
    Base for services that read one user's data.

    Args:
        storage: Storage backend
        user_id: Authenticated user; AuthenticationError when empty
        now: Reference time for relative windows (defaults to UTC now)
    """

    def __init__(
        self,
        storage: StorageBackend,
        user_id: Optional[str],
        now: Optional[datetime] = None,
    ):
        self.storage = storage
        self.user_id = require_user(user_id)
        self._now = now
        self.fetcher = MetricFetcher(storage, self.user_id)
        self.logger = structlog.get_logger().bind(service=type(self).__name__)

    @property
    def now(self) -> datetime:
        return self._now or utcnow()
