"""
Pytest configuration and shared fixtures for the TaskQuest analytics test suite.

Row factories for every table the services read, a fresh DuckDB file per
test, a storage wrapper that fails selected tables on demand, and the
fixed reference time most service tests run against.
"""

import os
import tempfile
import uuid as _uuid
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional
from uuid import uuid4

import pytest

# Set testing environment BEFORE importing the app.
# The DuckDB file must not exist yet; DuckDB creates it.
_test_db_path = os.path.join(tempfile.gettempdir(), f"taskquest_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["STORAGE_BACKEND"] = "duckdb"
os.environ["GITHUB_CLIENT_ID"] = "test-github-client"
os.environ["GITHUB_CLIENT_SECRET"] = "test-github-secret"

from taskquest.storage.base import StorageBackend, StorageError
from taskquest.storage.duckdb_storage import DuckDBStorage

USER_ID = "user-0001"
OTHER_USER_ID = "user-0002"

# Wednesday; its Sunday-based week starts 2024-03-10
NOW = datetime(2024, 3, 13, 15, 30)


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------


def make_task(
    title: str = "Write weekly report",
    completed_at: Optional[datetime] = None,
    xp_earned: int = 50,
    complexity: str = "medium",
    priority: str = "medium",
    user_id: str = USER_ID,
    **overrides,
) -> dict:
    """A task row; completed when ``completed_at`` is given."""
    created_at = completed_at - timedelta(hours=2) if completed_at else NOW - timedelta(days=1)
    defaults = dict(
        id=str(uuid4()),
        user_id=user_id,
        title=title,
        description="",
        priority=priority,
        complexity=complexity,
        status="completed" if completed_at else "todo",
        completed=completed_at is not None,
        completed_at=completed_at,
        created_at=created_at,
        xp_earned=xp_earned,
    )
    defaults.update(overrides)
    return defaults


def make_goal(
    title: str = "Run a half marathon",
    category: str = "health",
    created_at: datetime = NOW - timedelta(days=12),
    target_date: Optional[date] = None,
    completed: bool = False,
    completed_at: Optional[datetime] = None,
    user_id: str = USER_ID,
    **overrides,
) -> dict:
    defaults = dict(
        id=str(uuid4()),
        user_id=user_id,
        title=title,
        description="",
        category=category,
        priority="medium",
        completed=completed,
        completed_at=completed_at,
        created_at=created_at,
        target_date=target_date,
    )
    defaults.update(overrides)
    return defaults


def make_contact(
    name: str = "Ada Lovelace",
    category: str = "work",
    priority: str = "high",
    created_at: datetime = NOW - timedelta(days=90),
    user_id: str = USER_ID,
    **overrides,
) -> dict:
    defaults = dict(
        id=str(uuid4()),
        user_id=user_id,
        name=name,
        category=category,
        priority=priority,
        created_at=created_at,
    )
    defaults.update(overrides)
    return defaults


def make_interaction(
    contact_id: str,
    occurred_at: datetime,
    interaction_type: str = "email",
    user_id: str = USER_ID,
    **overrides,
) -> dict:
    defaults = dict(
        id=str(uuid4()),
        contact_id=contact_id,
        user_id=user_id,
        interaction_type=interaction_type,
        occurred_at=occurred_at,
        notes="",
    )
    defaults.update(overrides)
    return defaults


def make_wellness_entry(
    recorded_at: datetime,
    wellness_score: float = 7.0,
    user_id: str = USER_ID,
    **components,
) -> dict:
    """A wellness entry; components not given are left empty."""
    row = dict(
        id=str(uuid4()),
        user_id=user_id,
        recorded_at=recorded_at,
        wellness_score=wellness_score,
    )
    row.update(components)
    return row


def make_work_session(session_start: datetime, minutes: int = 60, user_id: str = USER_ID) -> dict:
    return dict(
        id=str(uuid4()),
        user_id=user_id,
        session_start=session_start,
        session_end=session_start + timedelta(minutes=minutes),
    )


def make_metric(
    metric_date: date,
    productivity_score: float = 0.7,
    time_worked_minutes: float = 420,
    interruption_count: int = 2,
    peak_hours: Optional[list[int]] = None,
    user_id: str = USER_ID,
) -> dict:
    return dict(
        id=str(uuid4()),
        user_id=user_id,
        metric_date=metric_date,
        productivity_score=productivity_score,
        time_worked_minutes=time_worked_minutes,
        interruption_count=interruption_count,
        peak_hours=peak_hours if peak_hours is not None else [9, 10],
    )


def make_suggestion(
    status: str = "pending",
    suggestion_type: str = "pattern_based",
    confidence_score: float = 0.7,
    suggested_at: datetime = NOW - timedelta(days=1),
    responded_at: Optional[datetime] = None,
    user_id: str = USER_ID,
    **overrides,
) -> dict:
    defaults = dict(
        id=str(uuid4()),
        user_id=user_id,
        suggestion_type=suggestion_type,
        status=status,
        confidence_score=confidence_score,
        suggested_at=suggested_at,
        responded_at=responded_at,
        title="Repeat: Write weekly report",
        description="",
        priority="medium",
        complexity="moderate",
    )
    defaults.update(overrides)
    return defaults


# ---------------------------------------------------------------------------
# Storage doubles
# ---------------------------------------------------------------------------


class FlakyStorage(StorageBackend):
    """
    Delegates to a real backend but raises StorageError for the tables
    and procedures named in ``failing``.
    """

    def __init__(self, inner: StorageBackend, failing: Iterable[str] = ()):
        self.inner = inner
        self.failing = set(failing)

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise StorageError(f"{name} is unavailable")

    def query(self, table, filters=None, ordering=None, limit=None) -> list[dict]:
        self._check(table)
        return self.inner.query(table, filters=filters, ordering=ordering, limit=limit)

    def rpc(self, function_name, params=None) -> Any:
        self._check(function_name)
        return self.inner.rpc(function_name, params)

    def upsert(self, table, rows, on_conflict=None) -> list[dict]:
        self._check(table)
        return self.inner.upsert(table, rows, on_conflict=on_conflict)

    def insert(self, table, rows) -> list[dict]:
        self._check(table)
        return self.inner.insert(table, rows)

    def update(self, table, values, filters) -> list[dict]:
        self._check(table)
        return self.inner.update(table, values, filters)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def storage(tmp_path):
    """A DuckDB backend on its own file, empty for every test."""
    return DuckDBStorage(db_path=str(tmp_path / "taskquest.duckdb"))


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def week_of_tasks():
    """Tasks completed this week (Sun 2024-03-10 onward) and last week."""
    return [
        make_task("Ship release notes", completed_at=datetime(2024, 3, 11, 10, 0), xp_earned=50),
        make_task("Email the landlord", completed_at=datetime(2024, 3, 13, 9, 0), xp_earned=30),
        make_task("Plan sprint", completed_at=datetime(2024, 3, 5, 10, 0), xp_earned=20),
    ]
