"""
Python stand-ins for the Postgres stored procedures.

In production these functions live in the database and are reached through
PostgREST ``/rpc/<name>``. The DuckDB backend dispatches the same names
here so the service runs standalone. Each procedure receives the backend
as its first argument and the RPC params as keyword arguments.
"""

from datetime import timedelta
from typing import Any, Callable, Optional

import structlog

from taskquest.engine.heuristics import (
    goal_completion_probability,
    goal_progress,
    infer_complexity,
    infer_priority,
    task_content,
)
from taskquest.models.enums import SuggestionStatus, SuggestionType
from taskquest.utils.timeutils import days_between, parse_timestamp, utcnow

from .base import RecordNotFoundError, StorageBackend, StorageError

logger = structlog.get_logger(__name__)

DEFAULT_WELLNESS_SCORE = 5.0
SCORE_WINDOW_DAYS = 7
# Completed tasks per day that count as a full-volume day
VOLUME_TARGET_PER_DAY = 5


def calculate_productivity_score(storage: StorageBackend, p_user_id: str) -> float:
    """0-1 blend of completion rate and completed volume over the last week."""
    since = utcnow() - timedelta(days=SCORE_WINDOW_DAYS)
    tasks = storage.query(
        "tasks",
        filters=[("user_id", "eq", p_user_id), ("created_at", "gte", since)],
    )
    if not tasks:
        return 0.0

    completed = sum(1 for t in tasks if t.get("completed"))
    completion_rate = completed / len(tasks)
    volume = min(1.0, completed / (SCORE_WINDOW_DAYS * VOLUME_TARGET_PER_DAY))
    return round(completion_rate * 0.7 + volume * 0.3, 4)


def calculate_wellness_score(storage: StorageBackend, p_user_id: str) -> float:
    """Mean wellness_score of the user's seven most recent entries."""
    entries = storage.query(
        "wellness_entries",
        filters=[("user_id", "eq", p_user_id)],
        ordering=[("recorded_at", False)],
        limit=SCORE_WINDOW_DAYS,
    )
    scores = [float(e["wellness_score"]) for e in entries if e.get("wellness_score") is not None]
    if not scores:
        return DEFAULT_WELLNESS_SCORE
    return round(sum(scores) / len(scores), 2)


def generate_ai_task_suggestions(
    storage: StorageBackend,
    p_user_id: str,
    p_suggestion_type: str = SuggestionType.PATTERN_BASED.value,
    p_limit: int = 5,
) -> list[dict]:
    """
    Draft suggestions from the user's recent tasks.

    follow_up suggestions come from recently completed tasks; every other
    type repeats recently created tasks. Returns ``[{suggestion_id}]``.
    """
    suggestion_type = SuggestionType(p_suggestion_type)
    filters: list = [("user_id", "eq", p_user_id)]
    if suggestion_type == SuggestionType.FOLLOW_UP:
        filters.append(("completed", "eq", True))
        ordering = [("completed_at", False)]
    else:
        ordering = [("created_at", False)]

    recent = storage.query("tasks", filters=filters, ordering=ordering, limit=int(p_limit))
    now = utcnow()
    rows = []
    for task in recent:
        prefix = "Follow up on" if suggestion_type == SuggestionType.FOLLOW_UP else "Repeat"
        title = f"{prefix}: {task.get('title') or 'task'}"
        content = task_content(title, task.get("description"))
        priority, priority_confidence = infer_priority(content)
        complexity, complexity_confidence = infer_complexity(content)
        rows.append({
            "user_id": p_user_id,
            "suggestion_type": suggestion_type.value,
            "status": SuggestionStatus.PENDING.value,
            "confidence_score": round((priority_confidence + complexity_confidence) / 2, 2),
            "suggested_at": now,
            "title": title,
            "description": task.get("description"),
            "priority": priority.value,
            "complexity": complexity.value,
        })

    written = storage.insert("ai_task_suggestions", rows)
    logger.info("ai_suggestions_generated", user_id=p_user_id, count=len(written))
    return [{"suggestion_id": row["id"]} for row in written]


def _pending_suggestion(storage: StorageBackend, suggestion_id: str, user_id: str) -> Optional[dict]:
    rows = storage.query(
        "ai_task_suggestions",
        filters=[("id", "eq", suggestion_id), ("user_id", "eq", user_id)],
        limit=1,
    )
    if not rows or rows[0].get("status") != SuggestionStatus.PENDING.value:
        return None
    return rows[0]


def accept_ai_suggestion(storage: StorageBackend, p_suggestion_id: str, p_user_id: str) -> str:
    """Turn a pending suggestion into a task; returns the new task id."""
    suggestion = _pending_suggestion(storage, p_suggestion_id, p_user_id)
    if suggestion is None:
        raise RecordNotFoundError(f"No pending suggestion {p_suggestion_id}")

    now = utcnow()
    task = storage.insert("tasks", [{
        "user_id": p_user_id,
        "title": suggestion.get("title"),
        "description": suggestion.get("description"),
        "priority": suggestion.get("priority"),
        "complexity": suggestion.get("complexity"),
        "status": "todo",
        "completed": False,
        "created_at": now,
        "updated_at": now,
        "xp_earned": 0,
        "source": "ai_suggestion",
        "source_metadata": {"suggestion_id": p_suggestion_id},
    }])[0]
    storage.update(
        "ai_task_suggestions",
        {"status": SuggestionStatus.ACCEPTED.value, "responded_at": now},
        [("id", "eq", p_suggestion_id)],
    )
    return task["id"]


def reject_ai_suggestion(
    storage: StorageBackend,
    p_suggestion_id: str,
    p_user_id: str,
    p_reason: Optional[str] = None,
) -> bool:
    if _pending_suggestion(storage, p_suggestion_id, p_user_id) is None:
        return False
    storage.update(
        "ai_task_suggestions",
        {
            "status": SuggestionStatus.REJECTED.value,
            "responded_at": utcnow(),
            "rejection_reason": p_reason,
        },
        [("id", "eq", p_suggestion_id)],
    )
    return True


def predict_goal_completion(storage: StorageBackend, p_goal_id: str, p_user_id: str) -> float:
    """0-1 probability that a goal completes by its target date."""
    goals = storage.query(
        "goals",
        filters=[("id", "eq", p_goal_id), ("user_id", "eq", p_user_id)],
        limit=1,
    )
    if not goals:
        raise RecordNotFoundError(f"Goal {p_goal_id} not found")
    goal = goals[0]

    tasks = storage.query("tasks", filters=[("goal_id", "eq", p_goal_id)])
    done = sum(1 for t in tasks if t.get("completed"))
    completed = bool(goal.get("completed"))
    progress = goal_progress(completed, done, len(tasks))

    now = utcnow()
    target = parse_timestamp(goal.get("target_date"))
    created = parse_timestamp(goal.get("created_at")) or now
    days_remaining = days_between(target, now) if target else None
    pace = progress / max(1, days_between(now, created))

    probability = goal_completion_probability(completed, progress, days_remaining, pace) / 100
    storage.insert("goal_completion_predictions", [{
        "goal_id": p_goal_id,
        "user_id": p_user_id,
        "completion_probability": probability,
        "created_at": now,
    }])
    return round(probability, 4)


def create_sync_mapping(
    storage: StorageBackend,
    p_integration_id: str,
    p_local_table: str,
    p_local_record_id: str,
    p_external_id: str,
    p_external_type: Optional[str] = None,
) -> str:
    """Map an external record to a local row; one mapping per (integration, external id)."""
    key = [
        ("integration_id", "eq", p_integration_id),
        ("local_table", "eq", p_local_table),
        ("external_id", "eq", p_external_id),
    ]
    existing = storage.query("sync_mappings", filters=key, limit=1)
    if existing:
        storage.update(
            "sync_mappings",
            {"local_record_id": p_local_record_id, "external_type": p_external_type},
            [("id", "eq", existing[0]["id"])],
        )
        return existing[0]["id"]

    row = storage.insert("sync_mappings", [{
        "integration_id": p_integration_id,
        "local_table": p_local_table,
        "local_record_id": p_local_record_id,
        "external_id": p_external_id,
        "external_type": p_external_type,
        "created_at": utcnow(),
    }])[0]
    return row["id"]


PROCEDURES: dict[str, Callable[..., Any]] = {
    "calculate_productivity_score": calculate_productivity_score,
    "calculate_wellness_score": calculate_wellness_score,
    "generate_ai_task_suggestions": generate_ai_task_suggestions,
    "accept_ai_suggestion": accept_ai_suggestion,
    "reject_ai_suggestion": reject_ai_suggestion,
    "predict_goal_completion": predict_goal_completion,
    "create_sync_mapping": create_sync_mapping,
}
