"""
Metric Fetcher: user-scoped range queries with per-source isolation.

A dashboard needs several independent sources (tasks, wellness entries,
RPC scores, ...). They are fetched concurrently, each in its own worker
thread since storage backends are synchronous, and gathered with
``return_exceptions=True``. One failing source lands in
``FetchResult.errors`` and never blanks the others.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

import structlog

from taskquest.models.analytics import FetchResult
from taskquest.storage.base import Filter, Ordering, StorageBackend

logger = structlog.get_logger()

Source = Callable[[], Any]


class MetricFetcher:
    """
    Parameterised reads scoped to one user.

    Args:
        storage: Storage backend
        user_id: Authenticated user every query is filtered by
    """

    def __init__(self, storage: StorageBackend, user_id: str):
        self.storage = storage
        self.user_id = user_id

    def rows(
        self,
        table: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        timestamp_field: str = "created_at",
        extra_filters: Sequence[Filter] = (),
        ordering: Optional[Sequence[Ordering]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Rows of ``table`` for the user, optionally within [since, until]."""
        filters: list[Filter] = [("user_id", "eq", self.user_id)]
        if since is not None:
            filters.append((timestamp_field, "gte", since))
        if until is not None:
            filters.append((timestamp_field, "lte", until))
        filters.extend(extra_filters)
        return self.storage.query(table, filters=filters, ordering=ordering, limit=limit)

    def score(self, function_name: str, default: float) -> float:
        """Scalar RPC result for the user, ``default`` when the RPC returns nothing."""
        result = self.storage.rpc(function_name, {"p_user_id": self.user_id})
        if result is None:
            return default
        return float(result)

    async def fetch_all(self, sources: dict[str, Source]) -> FetchResult:
        """
        Run every source concurrently and collect per-source outcomes.

        Args:
            sources: name -> zero-argument callable returning the data

        Returns:
            FetchResult with the data of each succeeding source and the
            error message of each failing one
        """
        names = list(sources)
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(sources[name]) for name in names),
            return_exceptions=True,
        )

        result = FetchResult()
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "source_fetch_failed",
                    source=name,
                    user_id=self.user_id,
                    error=str(outcome),
                )
                result.errors[name] = str(outcome)
            else:
                result.data[name] = outcome

        logger.debug(
            "sources_fetched",
            succeeded=len(result.data),
            failed=len(result.errors),
        )
        return result
