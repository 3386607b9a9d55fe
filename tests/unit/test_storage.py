"""
Tests for the storage backends: the DuckDB file backend and the
PostgREST client, the latter against an httpx MockTransport.
"""

import json
from datetime import date, datetime

import httpx
import pytest

from taskquest.storage.base import RecordNotFoundError, StorageError, validate_filters
from taskquest.storage.supabase_storage import SupabaseStorage
from conftest import OTHER_USER_ID, USER_ID, make_goal, make_metric, make_task


# =============================================================================
# DuckDB
# =============================================================================


class TestDuckDBStorage:
    def test_insert_assigns_ids_and_returns_rows(self, storage):
        written = storage.insert("xp_events", [{"user_id": USER_ID, "amount": 5, "reason": "test"}])

        assert len(written) == 1
        assert written[0]["id"]
        assert written[0]["amount"] == 5
        assert isinstance(written[0]["created_at"], datetime)

    def test_filters_ordering_and_limit(self, storage):
        storage.insert("tasks", [
            make_task("a", completed_at=datetime(2024, 3, 1, 9, 0), xp_earned=10),
            make_task("b", completed_at=datetime(2024, 3, 2, 9, 0), xp_earned=20),
            make_task("c", completed_at=datetime(2024, 3, 3, 9, 0), xp_earned=30),
            make_task("d"),
            make_task("e", completed_at=datetime(2024, 3, 3, 9, 0), user_id=OTHER_USER_ID),
        ])

        rows = storage.query(
            "tasks",
            filters=[
                ("user_id", "eq", USER_ID),
                ("completed_at", "gte", datetime(2024, 3, 2)),
            ],
            ordering=[("completed_at", False)],
        )
        assert [r["title"] for r in rows] == ["c", "b"]

        assert len(storage.query("tasks", filters=[("completed_at", "eq", None)])) == 1
        assert len(storage.query("tasks", filters=[("title", "in", ["a", "e"])])) == 2
        assert storage.query("tasks", filters=[("title", "in", [])]) == []
        assert len(storage.query("tasks", ordering=[("title", True)], limit=2)) == 2

    def test_upsert_updates_on_conflict(self, storage):
        storage.upsert("user_progress", [{"user_id": USER_ID, "total_xp": 10, "level": 1}])
        storage.upsert("user_progress", [{"user_id": USER_ID, "total_xp": 250, "level": 2}])

        rows = storage.query("user_progress")
        assert len(rows) == 1
        assert rows[0]["total_xp"] == 250

    def test_json_columns_round_trip(self, storage):
        storage.insert("productivity_metrics", [make_metric(date(2024, 3, 1), peak_hours=[8, 13])])

        row = storage.query("productivity_metrics")[0]
        assert row["peak_hours"] == [8, 13]
        assert row["metric_date"] == date(2024, 3, 1)

    def test_update_returns_changed_rows(self, storage):
        goal = make_goal()
        storage.insert("goals", [goal])

        updated = storage.update("goals", {"completed": True}, [("id", "eq", goal["id"])])
        assert updated[0]["completed"] is True
        assert storage.update("goals", {"completed": True}, [("id", "eq", "missing")]) == []

    def test_iso_strings_accepted_for_timestamps(self, storage):
        storage.insert("work_sessions", [{
            "user_id": USER_ID,
            "session_start": "2024-03-09T10:00:00Z",
            "session_end": "2024-03-09T11:00:00+00:00",
        }])
        row = storage.query("work_sessions")[0]
        assert row["session_start"] == datetime(2024, 3, 9, 10, 0)

    def test_invalid_timestamp_rejected(self, storage):
        with pytest.raises(StorageError):
            storage.insert("work_sessions", [{"user_id": USER_ID, "session_start": "yesterday"}])

    def test_unknown_table_and_column(self, storage):
        with pytest.raises(StorageError, match="Unknown table"):
            storage.query("passwords")
        with pytest.raises(StorageError, match="Unknown column"):
            storage.query("tasks", filters=[("title; DROP TABLE tasks", "eq", "x")])
        with pytest.raises(StorageError, match="Unknown column"):
            storage.insert("tasks", [{"user_id": USER_ID, "mystery": 1}])

    def test_unknown_operator(self, storage):
        with pytest.raises(StorageError, match="Unsupported filter operator"):
            storage.query("tasks", filters=[("title", "like", "%a%")])

    def test_rpc_dispatch(self, storage):
        assert storage.rpc("calculate_wellness_score", {"p_user_id": USER_ID}) == 5.0
        with pytest.raises(StorageError, match="Unknown stored procedure"):
            storage.rpc("drop_everything")
        with pytest.raises(StorageError):
            storage.rpc("calculate_wellness_score", {"unexpected": 1})

    def test_sync_mapping_upserts_on_external_id(self, storage):
        params = {
            "p_integration_id": "int-1",
            "p_local_table": "tasks",
            "p_local_record_id": "task-1",
            "p_external_id": "101",
            "p_external_type": "github_issue",
        }
        first = storage.rpc("create_sync_mapping", params)
        second = storage.rpc("create_sync_mapping", {**params, "p_local_record_id": "task-2"})

        assert second == first
        mappings = storage.query("sync_mappings")
        assert len(mappings) == 1
        assert mappings[0]["local_record_id"] == "task-2"
        other = storage.rpc("create_sync_mapping", {**params, "p_integration_id": "int-2"})
        assert other != first

    def test_missing_procedure_target_is_record_not_found(self, storage):
        with pytest.raises(RecordNotFoundError, match="Goal missing not found"):
            storage.rpc("predict_goal_completion", {"p_goal_id": "missing", "p_user_id": USER_ID})

    def test_clear_for_testing(self, storage):
        storage.insert("tasks", [make_task()])
        storage.clear_for_testing()
        assert storage.query("tasks") == []


def test_validate_filters_normalizes_none():
    assert validate_filters(None) == []


# =============================================================================
# Supabase (PostgREST)
# =============================================================================


class RecordingTransport:
    """Collects requests and answers each with the next canned response."""

    def __init__(self, *responses: httpx.Response):
        self.requests: list[httpx.Request] = []
        self.responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0) if self.responses else httpx.Response(200, json=[])


def _client(*responses: httpx.Response):
    recorder = RecordingTransport(*responses)
    storage = SupabaseStorage(
        rest_url="https://project.supabase.co/rest/v1/",
        api_key="service-key",
        transport=httpx.MockTransport(recorder),
    )
    return storage, recorder


class TestSupabaseStorage:
    def test_requires_url_and_key(self):
        with pytest.raises(StorageError):
            SupabaseStorage(rest_url="", api_key="key")

    def test_query_renders_postgrest_params(self):
        storage, recorder = _client(httpx.Response(200, json=[{"id": "t1"}]))

        rows = storage.query(
            "tasks",
            filters=[
                ("user_id", "eq", USER_ID),
                ("completed", "eq", True),
                ("completed_at", "gte", datetime(2024, 3, 1)),
                ("goal_id", "in", ["g1", "g2"]),
                ("completed_at", "neq", None),
            ],
            ordering=[("completed_at", False), ("title", True)],
            limit=10,
        )

        assert rows == [{"id": "t1"}]
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/tasks"
        params = request.url.params
        assert params["select"] == "*"
        assert params["user_id"] == f"eq.{USER_ID}"
        assert params["completed"] == "eq.true"
        assert params.get_list("completed_at") == ["gte.2024-03-01T00:00:00", "not.is.null"]
        assert params["goal_id"] == "in.(g1,g2)"
        assert params["order"] == "completed_at.desc,title.asc"
        assert params["limit"] == "10"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"

    def test_rpc_posts_json_params(self):
        storage, recorder = _client(httpx.Response(200, json=7.5))

        result = storage.rpc("calculate_wellness_score", {"p_user_id": USER_ID})

        assert result == 7.5
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/rpc/calculate_wellness_score"
        assert json.loads(request.content) == {"p_user_id": USER_ID}

    def test_upsert_merges_duplicates(self):
        storage, recorder = _client(httpx.Response(201, json=[{"user_id": USER_ID}]))

        storage.upsert(
            "user_streaks",
            [{"user_id": USER_ID, "last_activity_date": date(2024, 3, 13)}],
            on_conflict=["user_id"],
        )

        request = recorder.requests[0]
        assert request.url.params["on_conflict"] == "user_id"
        assert "resolution=merge-duplicates" in request.headers["prefer"]
        assert json.loads(request.content)[0]["last_activity_date"] == "2024-03-13"

    def test_update_sends_patch_with_filters(self):
        storage, recorder = _client(httpx.Response(200, json=[]))

        assert storage.update("goals", {"completed": True}, [("id", "eq", "g1")]) == []

        request = recorder.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.g1"

    def test_empty_writes_skip_the_network(self):
        storage, recorder = _client()
        assert storage.insert("tasks", []) == []
        assert storage.upsert("tasks", []) == []
        assert recorder.requests == []

    def test_http_error_becomes_storage_error(self):
        storage, _ = _client(httpx.Response(500, text="boom"))

        with pytest.raises(StorageError, match="500"):
            storage.query("tasks")

    def test_no_data_found_becomes_record_not_found(self):
        storage, _ = _client(httpx.Response(400, json={"code": "P0002", "message": "Goal g1 not found"}))

        with pytest.raises(RecordNotFoundError, match="Goal g1 not found"):
            storage.rpc("predict_goal_completion", {"p_goal_id": "g1", "p_user_id": USER_ID})

    def test_other_procedure_errors_stay_generic(self):
        storage, _ = _client(httpx.Response(503, text="connection refused"))

        with pytest.raises(StorageError) as excinfo:
            storage.rpc("predict_goal_completion", {"p_goal_id": "g1", "p_user_id": USER_ID})
        assert not isinstance(excinfo.value, RecordNotFoundError)

    def test_empty_body_is_none(self):
        storage, _ = _client(httpx.Response(204))
        assert storage.rpc("reject_ai_suggestion", {}) is None
