"""
AI task suggestions: keyword task analysis, suggestion lifecycle and
usage statistics.

Suggestion generation and acceptance are stored procedures; this service
only gates them on the user's preferences and reads the results back.
"""

from datetime import timedelta
from typing import Any, Optional

from taskquest.engine.aggregator import safe_average, to_float
from taskquest.engine.heuristics import (
    infer_complexity,
    infer_priority,
    suggest_due_date,
    task_content,
)
from taskquest.models.enums import SuggestionStatus, SuggestionType
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import parse_timestamp

BEHAVIOR_LOOKBACK_DAYS = 30
LOW_COMPLETION_RATE = 0.7
LOW_ACCEPTANCE_RATE = 0.3
SLOW_RESPONSE_SECONDS = 86400
PREFERRED_TYPE_RATE = 0.7
MODEL_ACCURACY = 0.85
DEFAULT_BEST_HOUR = 9

DEFAULT_AI_PREFERENCES: dict[str, Any] = {
    "enable_ai_suggestions": True,
    "suggestion_frequency": "moderate",
    "suggestion_types": [t.value for t in SuggestionType],
    "enable_priority_optimization": True,
    "optimization_aggressiveness": "balanced",
    "enable_automated_followups": False,
    "followup_delay_hours": 24,
    "max_automated_tasks": 5,
    "enable_smart_notifications": True,
    "notification_timing_optimization": True,
    "quiet_hours_start": "22:00",
    "quiet_hours_end": "08:00",
    "allow_behavior_tracking": True,
    "data_retention_days": 365,
}


class AISuggestionService(UserScopedService):
    """Suggestion lifecycle and AI usage analytics for one user."""

    # =========================================================================
    # Preferences
    # =========================================================================

    def get_preferences(self) -> dict[str, Any]:
        """Stored preferences, creating the default row on first access."""
        rows = self.fetcher.rows("user_ai_preferences", limit=1)
        if rows:
            return rows[0]
        created = self.storage.upsert(
            "user_ai_preferences",
            [{"user_id": self.user_id, **DEFAULT_AI_PREFERENCES}],
            on_conflict=["user_id"],
        )
        self.logger.info("ai_preferences_created")
        return created[0] if created else {"user_id": self.user_id, **DEFAULT_AI_PREFERENCES}

    def update_preferences(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - set(DEFAULT_AI_PREFERENCES)
        if unknown:
            raise ValueError(f"Unknown AI preference fields: {sorted(unknown)}")
        current = self.get_preferences()
        merged = {**current, **changes, "user_id": self.user_id}
        return self.storage.upsert("user_ai_preferences", [merged], on_conflict=["user_id"])[0]

    # =========================================================================
    # Task analysis
    # =========================================================================

    def analyze_task(self, title: str, description: Optional[str] = None) -> dict[str, Any]:
        content = task_content(title, description)
        priority, priority_confidence = infer_priority(content)
        complexity, complexity_confidence = infer_complexity(content)
        due = suggest_due_date(priority, self.now)
        return {
            "suggested_priority": priority.value,
            "suggested_complexity": complexity.value,
            "suggested_due_date": due.isoformat() if due else None,
            "confidence_scores": {
                "priority": priority_confidence,
                "complexity": complexity_confidence,
            },
            "reasoning": "Analysis based on task content and user patterns",
        }

    # =========================================================================
    # Suggestion lifecycle
    # =========================================================================

    def generate_suggestions(
        self,
        suggestion_type: SuggestionType = SuggestionType.PATTERN_BASED,
        limit: int = 5,
    ) -> list[dict]:
        if not self.get_preferences().get("enable_ai_suggestions", True):
            self.logger.info("ai_suggestions_disabled")
            return []

        generated = self.storage.rpc(
            "generate_ai_task_suggestions",
            {
                "p_user_id": self.user_id,
                "p_suggestion_type": SuggestionType(suggestion_type).value,
                "p_limit": limit,
            },
        ) or []
        ids = [item["suggestion_id"] for item in generated]
        if not ids:
            return []
        return self.storage.query(
            "ai_task_suggestions",
            filters=[("id", "in", ids)],
            ordering=[("confidence_score", False)],
        )

    def pending_suggestions(self) -> list[dict]:
        return self.fetcher.rows(
            "ai_task_suggestions",
            extra_filters=[("status", "eq", SuggestionStatus.PENDING.value)],
            ordering=[("confidence_score", False), ("suggested_at", False)],
        )

    def suggestion_history(self, limit: int = 50) -> list[dict]:
        return self.fetcher.rows(
            "ai_task_suggestions",
            extra_filters=[("status", "neq", SuggestionStatus.PENDING.value)],
            ordering=[("suggested_at", False)],
            limit=limit,
        )

    def accept_suggestion(self, suggestion_id: str) -> str:
        task_id = self.storage.rpc(
            "accept_ai_suggestion",
            {"p_suggestion_id": suggestion_id, "p_user_id": self.user_id},
        )
        self.logger.info("ai_suggestion_accepted", suggestion_id=suggestion_id, task_id=task_id)
        return task_id

    def reject_suggestion(self, suggestion_id: str, reason: Optional[str] = None) -> bool:
        success = self.storage.rpc(
            "reject_ai_suggestion",
            {
                "p_suggestion_id": suggestion_id,
                "p_user_id": self.user_id,
                "p_reason": reason or "not_relevant",
            },
        )
        self.logger.info("ai_suggestion_rejected", suggestion_id=suggestion_id, success=bool(success))
        return bool(success)

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        updated = self.storage.update(
            "ai_task_suggestions",
            {"status": SuggestionStatus.DISMISSED.value, "responded_at": self.now},
            [("id", "eq", suggestion_id), ("user_id", "eq", self.user_id)],
        )
        return bool(updated)

    # =========================================================================
    # Analytics
    # =========================================================================

    def analyze_behavior(self) -> dict[str, Any]:
        tasks = self.fetcher.rows(
            "tasks",
            since=self.now - timedelta(days=BEHAVIOR_LOOKBACK_DAYS),
            ordering=[("created_at", False)],
        )
        result: dict[str, Any] = {
            "productivity_insights": {
                "peak_hours": [],
                "completion_patterns": {},
            },
            "recommendations": [],
        }
        if not tasks:
            return result

        hourly: dict[int, int] = {}
        for task in tasks:
            created = parse_timestamp(task.get("created_at"))
            if created is not None:
                hourly[created.hour] = hourly.get(created.hour, 0) + 1
        ranked_hours = sorted(hourly.items(), key=lambda item: (-item[1], item[0]))[:3]
        peak_hours = [f"{hour}:00" for hour, _ in ranked_hours]

        priorities: dict[str, int] = {}
        for task in tasks:
            priority = task.get("priority") or "medium"
            priorities[priority] = priorities.get(priority, 0) + 1

        completed = sum(1 for t in tasks if t.get("status") == "completed" or t.get("completed"))
        completion_rate = completed / len(tasks)

        recommendations = []
        if completion_rate < LOW_COMPLETION_RATE:
            recommendations.append(
                "Consider breaking down complex tasks into smaller, manageable subtasks"
            )
        if peak_hours:
            recommendations.append(
                f"You're most productive at {', '.join(peak_hours)}. "
                "Consider scheduling important tasks during these hours."
            )
        most_common = max(priorities.items(), key=lambda item: item[1])[0]
        recommendations.append(
            f"You frequently create {most_common} priority tasks. "
            "Consider if this reflects your actual priorities."
        )

        result["productivity_insights"] = {
            "peak_hours": peak_hours,
            "completion_patterns": {
                "total_tasks": len(tasks),
                "completed_tasks": completed,
                "completion_rate": completion_rate,
                "priority_distribution": priorities,
            },
        }
        result["recommendations"] = recommendations
        return result

    def get_stats(self) -> dict[str, Any]:
        suggestions = self.fetcher.rows("ai_task_suggestions", ordering=[("suggested_at", False)])
        ai_tasks = self.fetcher.rows("tasks", extra_filters=[("source", "eq", "ai_suggestion")])

        total = len(suggestions)
        accepted = sum(1 for s in suggestions if s.get("status") == SuggestionStatus.ACCEPTED.value)
        rejected = sum(1 for s in suggestions if s.get("status") == SuggestionStatus.REJECTED.value)
        last = parse_timestamp(suggestions[0].get("suggested_at")) if suggestions else None
        return {
            "total_suggestions_generated": total,
            "suggestions_accepted": accepted,
            "suggestions_rejected": rejected,
            "acceptance_rate": accepted / total if total else 0.0,
            "average_confidence_score": safe_average(
                [to_float(s.get("confidence_score")) for s in suggestions]
            ),
            "tasks_created_from_ai": len(ai_tasks),
            "model_accuracy": MODEL_ACCURACY,
            "last_suggestion_generated": last.isoformat() if last else None,
        }

    def get_suggestion_insights(self) -> dict[str, Any]:
        suggestions = self.fetcher.rows(
            "ai_task_suggestions",
            extra_filters=[("status", "neq", SuggestionStatus.PENDING.value)],
        )
        if not suggestions:
            return {
                "most_accepted_type": SuggestionType.PATTERN_BASED.value,
                "best_performing_time": f"{DEFAULT_BEST_HOUR:02d}:00",
                "average_response_time": 0.0,
                "improvement_suggestions": ["Start using AI suggestions to see insights"],
            }

        by_type: dict[str, list[int]] = {}
        hourly: dict[int, int] = {}
        response_times = []
        for s in suggestions:
            is_accepted = s.get("status") == SuggestionStatus.ACCEPTED.value
            counts = by_type.setdefault(s.get("suggestion_type"), [0, 0])
            counts[0] += 1
            counts[1] += int(is_accepted)

            suggested = parse_timestamp(s.get("suggested_at"))
            responded = parse_timestamp(s.get("responded_at"))
            if is_accepted and suggested is not None:
                hourly[suggested.hour] = hourly.get(suggested.hour, 0) + 1
            if suggested is not None and responded is not None:
                response_times.append((responded - suggested).total_seconds())

        rates = [(kind, accepted / total) for kind, (total, accepted) in by_type.items()]
        best_type, best_rate = max(rates, key=lambda item: item[1])
        best_hour = (
            min(hourly.items(), key=lambda item: (-item[1], item[0]))[0]
            if hourly else DEFAULT_BEST_HOUR
        )
        average_response = safe_average(response_times)
        acceptance = sum(1 for s in suggestions if s.get("status") == SuggestionStatus.ACCEPTED.value) / len(suggestions)

        improvements = []
        if acceptance < LOW_ACCEPTANCE_RATE:
            improvements.append("Consider adjusting your AI preferences to get more relevant suggestions")
        if average_response > SLOW_RESPONSE_SECONDS:
            improvements.append("Try responding to suggestions more quickly for better personalization")
        if best_rate > PREFERRED_TYPE_RATE:
            improvements.append(f"You prefer {best_type} suggestions - we'll show more of these")

        return {
            "most_accepted_type": best_type,
            "best_performing_time": f"{best_hour:02d}:00",
            "average_response_time": average_response,
            "improvement_suggestions": improvements,
        }
