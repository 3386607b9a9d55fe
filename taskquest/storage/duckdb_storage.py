"""
DuckDB storage implementation for the TaskQuest analytics engine.

Provides a local, file-backed stand-in for the Supabase Postgres instance.
Table layouts mirror the columns the analytics services read; stored
procedures that live in Postgres in production are served by the Python
implementations in ``local_procedures``.

Key features:
- Thread-safe per-thread connections
- Automatic schema creation
- JSON columns stored as text and decoded on read
- Table and column names validated against the declared schema
"""

import json
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence
from uuid import uuid4

import duckdb
import structlog

from taskquest.utils.timeutils import parse_date, parse_timestamp

from .base import Filter, Ordering, StorageBackend, StorageError, validate_filters

logger = structlog.get_logger(__name__)


# table -> (columns {name: duckdb type}, key columns)
TABLE_SCHEMAS: dict[str, tuple[dict[str, str], tuple[str, ...]]] = {
    "tasks": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "title": "VARCHAR",
            "description": "VARCHAR",
            "priority": "VARCHAR",
            "complexity": "VARCHAR",
            "status": "VARCHAR",
            "completed": "BOOLEAN",
            "completed_at": "TIMESTAMP",
            "created_at": "TIMESTAMP",
            "updated_at": "TIMESTAMP",
            "xp_earned": "INTEGER",
            "goal_id": "VARCHAR",
            "category": "VARCHAR",
            "source": "VARCHAR",
            "source_metadata": "JSON",
        },
        ("id",),
    ),
    "goals": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "title": "VARCHAR",
            "description": "VARCHAR",
            "category": "VARCHAR",
            "priority": "VARCHAR",
            "completed": "BOOLEAN",
            "completed_at": "TIMESTAMP",
            "created_at": "TIMESTAMP",
            "target_date": "DATE",
        },
        ("id",),
    ),
    "contacts": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "name": "VARCHAR",
            "category": "VARCHAR",
            "priority": "VARCHAR",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "contact_interactions": (
        {
            "id": "VARCHAR",
            "contact_id": "VARCHAR",
            "user_id": "VARCHAR",
            "interaction_type": "VARCHAR",
            "occurred_at": "TIMESTAMP",
            "notes": "VARCHAR",
        },
        ("id",),
    ),
    "wellness_entries": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "recorded_at": "TIMESTAMP",
            "wellness_score": "DOUBLE",
            "stress_level": "DOUBLE",
            "energy_level": "DOUBLE",
            "work_life_balance": "DOUBLE",
            "job_satisfaction": "DOUBLE",
            "sleep_quality": "DOUBLE",
            "social_connection": "DOUBLE",
        },
        ("id",),
    ),
    "work_sessions": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "session_start": "TIMESTAMP",
            "session_end": "TIMESTAMP",
        },
        ("id",),
    ),
    "productivity_metrics": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "metric_date": "DATE",
            "productivity_score": "DOUBLE",
            "time_worked_minutes": "DOUBLE",
            "interruption_count": "INTEGER",
            "peak_hours": "JSON",
        },
        ("id",),
    ),
    "ai_task_suggestions": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "suggestion_type": "VARCHAR",
            "status": "VARCHAR",
            "confidence_score": "DOUBLE",
            "suggested_at": "TIMESTAMP",
            "responded_at": "TIMESTAMP",
            "title": "VARCHAR",
            "description": "VARCHAR",
            "priority": "VARCHAR",
            "complexity": "VARCHAR",
            "rejection_reason": "VARCHAR",
        },
        ("id",),
    ),
    "user_ai_preferences": (
        {
            "user_id": "VARCHAR",
            "enable_ai_suggestions": "BOOLEAN",
            "suggestion_frequency": "VARCHAR",
            "suggestion_types": "JSON",
            "enable_priority_optimization": "BOOLEAN",
            "optimization_aggressiveness": "VARCHAR",
            "enable_automated_followups": "BOOLEAN",
            "followup_delay_hours": "INTEGER",
            "max_automated_tasks": "INTEGER",
            "enable_smart_notifications": "BOOLEAN",
            "notification_timing_optimization": "BOOLEAN",
            "quiet_hours_start": "VARCHAR",
            "quiet_hours_end": "VARCHAR",
            "allow_behavior_tracking": "BOOLEAN",
            "data_retention_days": "INTEGER",
        },
        ("user_id",),
    ),
    "user_streaks": (
        {
            "user_id": "VARCHAR",
            "current_streak": "INTEGER",
            "longest_streak": "INTEGER",
            "last_activity_date": "DATE",
            "updated_at": "TIMESTAMP",
        },
        ("user_id",),
    ),
    "user_progress": (
        {
            "user_id": "VARCHAR",
            "total_xp": "INTEGER",
            "level": "INTEGER",
            "updated_at": "TIMESTAMP",
        },
        ("user_id",),
    ),
    "xp_events": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "amount": "INTEGER",
            "reason": "VARCHAR",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "goal_completion_predictions": (
        {
            "id": "VARCHAR",
            "goal_id": "VARCHAR",
            "user_id": "VARCHAR",
            "completion_probability": "DOUBLE",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "workload_predictions": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "prediction_period_start": "DATE",
            "prediction_period_end": "DATE",
            "period_type": "VARCHAR",
            "predicted_capacity_hours": "DOUBLE",
            "optimal_task_count": "INTEGER",
            "workload_utilization": "DOUBLE",
            "burnout_risk_score": "DOUBLE",
            "predicted_productivity_score": "DOUBLE",
            "predicted_completion_rate": "DOUBLE",
            "capacity_recommendations": "JSON",
            "confidence_level": "DOUBLE",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "bottleneck_predictions": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "bottleneck_type": "VARCHAR",
            "bottleneck_category": "VARCHAR",
            "severity_score": "DOUBLE",
            "likelihood_next_week": "DOUBLE",
            "likelihood_next_month": "DOUBLE",
            "resolution_strategies": "JSON",
            "prediction_confidence": "DOUBLE",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "api_integrations": (
        {
            "id": "VARCHAR",
            "user_id": "VARCHAR",
            "provider": "VARCHAR",
            "config": "JSON",
            "access_token": "VARCHAR",
            "refresh_token": "VARCHAR",
            "expires_at": "TIMESTAMP",
            "scope": "VARCHAR",
            "last_sync_at": "TIMESTAMP",
            "error_count": "INTEGER",
            "last_error": "VARCHAR",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "sync_mappings": (
        {
            "id": "VARCHAR",
            "integration_id": "VARCHAR",
            "local_table": "VARCHAR",
            "local_record_id": "VARCHAR",
            "external_id": "VARCHAR",
            "external_type": "VARCHAR",
            "created_at": "TIMESTAMP",
        },
        ("id",),
    ),
    "notification_preferences": (
        {
            "user_id": "VARCHAR",
            "enabled": "BOOLEAN",
            "quiet_hours_start": "VARCHAR",
            "quiet_hours_end": "VARCHAR",
            "delay_short_minutes": "INTEGER",
            "delay_medium_minutes": "INTEGER",
            "delay_long_minutes": "INTEGER",
            "max_per_hour": "INTEGER",
            "smart_timing": "BOOLEAN",
        },
        ("user_id",),
    ),
    "insights": (
        {
            "user_id": "VARCHAR",
            "insight_id": "VARCHAR",
            "section": "VARCHAR",
            "title": "VARCHAR",
            "description": "VARCHAR",
            "category": "VARCHAR",
            "confidence": "DOUBLE",
            "recommendations": "JSON",
            "updated_at": "TIMESTAMP",
        },
        ("user_id", "insight_id"),
    ),
}

_SQL_OPERATORS = {"eq": "=", "neq": "<>", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/taskquest.duckdb"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """Create all tables. Idempotent."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    for table, (columns, key) in TABLE_SCHEMAS.items():
                        column_sql = ", ".join(
                            f"{name} {_column_sql_type(kind)}"
                            + (" DEFAULT current_timestamp" if name == "created_at" else "")
                            for name, kind in columns.items()
                        )
                        conn.execute(
                            f"CREATE TABLE IF NOT EXISTS {table} "
                            f"({column_sql}, PRIMARY KEY ({', '.join(key)}))"
                        )
                    conn.commit()
                    logger.info("duckdb_schema_initialized", tables=len(TABLE_SCHEMAS))
                    self._initialized = True

            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """
        Delete all rows. For testing only; a no-op unless TESTING is set.
        """
        if not os.environ.get("TESTING"):
            return
        with self._get_connection() as conn:
            for table in TABLE_SCHEMAS:
                conn.execute(f"DELETE FROM {table}")
            conn.commit()

    # =========================================================================
    # Query
    # =========================================================================

    def query(
        self,
        table: str,
        filters: Optional[Sequence[Filter]] = None,
        ordering: Optional[Sequence[Ordering]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        columns = self._columns(table)
        where_sql, params = self._where(table, filters)

        sql = f"SELECT * FROM {table}{where_sql}"
        if ordering:
            parts = []
            for column, ascending in ordering:
                self._check_column(table, column)
                parts.append(f"{column} {'ASC' if ascending else 'DESC'}")
            sql += " ORDER BY " + ", ".join(parts)
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        try:
            with self._get_connection() as conn:
                rows = self._fetch_dicts(conn, sql, params, columns)
            logger.debug("duckdb_query", table=table, rows=len(rows))
            return rows
        except StorageError:
            raise
        except Exception as e:
            logger.error("duckdb_query_failed", table=table, error=str(e))
            raise StorageError(f"Failed to query {table}: {e}") from e

    # =========================================================================
    # RPC
    # =========================================================================

    def rpc(self, function_name: str, params: Optional[dict] = None) -> Any:
        from .local_procedures import PROCEDURES

        procedure = PROCEDURES.get(function_name)
        if procedure is None:
            raise StorageError(f"Unknown stored procedure: {function_name}")

        try:
            result = procedure(self, **(params or {}))
            logger.debug("duckdb_rpc", function=function_name)
            return result
        except StorageError:
            raise
        except Exception as e:
            logger.error("duckdb_rpc_failed", function=function_name, error=str(e))
            raise StorageError(f"Procedure {function_name} failed: {e}") from e

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        return self._write(table, rows, conflict=None)

    def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: Optional[Sequence[str]] = None,
    ) -> list[dict]:
        key = tuple(on_conflict) if on_conflict else TABLE_SCHEMAS.get(table, ({}, ("id",)))[1]
        return self._write(table, rows, conflict=key)

    def update(
        self,
        table: str,
        values: dict,
        filters: Sequence[Filter],
    ) -> list[dict]:
        columns = self._columns(table)
        if not values:
            return []
        for column in values:
            self._check_column(table, column)

        set_sql = ", ".join(f"{column} = ?" for column in values)
        set_params = [_to_db(columns[c], v) for c, v in values.items()]
        where_sql, where_params = self._where(table, filters)

        try:
            with self._get_connection() as conn:
                rows = self._fetch_dicts(
                    conn,
                    f"UPDATE {table} SET {set_sql}{where_sql} RETURNING *",
                    set_params + where_params,
                    columns,
                )
                conn.commit()
            logger.debug("duckdb_update", table=table, rows=len(rows))
            return rows
        except Exception as e:
            logger.error("duckdb_update_failed", table=table, error=str(e))
            raise StorageError(f"Failed to update {table}: {e}") from e

    def _write(
        self,
        table: str,
        rows: list[dict],
        conflict: Optional[tuple[str, ...]],
    ) -> list[dict]:
        columns = self._columns(table)
        if not rows:
            return []

        written: list[dict] = []
        try:
            with self._get_connection() as conn:
                for row in rows:
                    row = dict(row)
                    if "id" in columns and not row.get("id"):
                        row["id"] = str(uuid4())
                    for column in row:
                        self._check_column(table, column)

                    names = list(row.keys())
                    placeholders = ", ".join("?" for _ in names)
                    sql = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})"
                    if conflict:
                        updatable = [n for n in names if n not in conflict]
                        if updatable:
                            assignments = ", ".join(f"{n} = EXCLUDED.{n}" for n in updatable)
                            sql += f" ON CONFLICT ({', '.join(conflict)}) DO UPDATE SET {assignments}"
                        else:
                            sql += f" ON CONFLICT ({', '.join(conflict)}) DO NOTHING"
                    sql += " RETURNING *"

                    params = [_to_db(columns[n], row[n]) for n in names]
                    written.extend(self._fetch_dicts(conn, sql, params, columns))
                conn.commit()

            logger.debug("duckdb_rows_written", table=table, count=len(written))
            return written

        except StorageError:
            raise
        except Exception as e:
            logger.error("duckdb_write_failed", table=table, error=str(e))
            raise StorageError(f"Failed to write {table}: {e}") from e

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _columns(table: str) -> dict[str, str]:
        if table not in TABLE_SCHEMAS:
            raise StorageError(f"Unknown table: {table}")
        return TABLE_SCHEMAS[table][0]

    def _check_column(self, table: str, column: str) -> None:
        if column not in self._columns(table):
            raise StorageError(f"Unknown column '{column}' on table '{table}'")

    def _where(
        self,
        table: str,
        filters: Optional[Sequence[Filter]],
    ) -> tuple[str, list]:
        columns = self._columns(table)
        clauses: list[str] = []
        params: list = []
        for column, op, value in validate_filters(filters):
            self._check_column(table, column)
            kind = columns[column]
            if op == "in":
                values = list(value or [])
                if not values:
                    clauses.append("FALSE")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(_to_db(kind, v) for v in values)
            elif value is None and op in ("eq", "neq"):
                clauses.append(f"{column} IS {'NOT ' if op == 'neq' else ''}NULL")
            else:
                clauses.append(f"{column} {_SQL_OPERATORS[op]} ?")
                params.append(_to_db(kind, value))
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    @staticmethod
    def _fetch_dicts(conn, sql: str, params: list, columns: dict[str, str]) -> list[dict]:
        cursor = conn.execute(sql, params)
        names = [d[0] for d in cursor.description]
        rows = []
        for record in cursor.fetchall():
            row = {}
            for name, value in zip(names, record):
                if columns.get(name) == "JSON" and isinstance(value, str):
                    value = json.loads(value)
                row[name] = value
            rows.append(row)
        return rows


def _column_sql_type(kind: str) -> str:
    return "VARCHAR" if kind == "JSON" else kind


def _to_db(kind: str, value: Any) -> Any:
    """Coerce a Python value to what DuckDB expects for a column type."""
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if kind == "JSON":
        return json.dumps(value, default=_json_default)
    if kind == "TIMESTAMP":
        parsed = parse_timestamp(value)
        if parsed is None:
            raise StorageError(f"Invalid timestamp value: {value!r}")
        return parsed
    if kind == "DATE":
        parsed_date = parse_date(value)
        if parsed_date is None:
            raise StorageError(f"Invalid date value: {value!r}")
        return parsed_date
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

