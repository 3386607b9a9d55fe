"""
Wellness analytics: burnout risk, indicators and insights.

Reads 30 days of wellness entries, work sessions and completed tasks.
Components of the latest entry feed the weighted burnout score; the
indicator and insight rules live in the recommendation tables.
"""

from datetime import timedelta
from typing import Any

from taskquest.engine.aggregator import safe_average
from taskquest.engine.classifier import classify_burnout, classify_score
from taskquest.engine.heuristics import DEFAULT_COMPONENT_VALUE, burnout_score, wellness_components
from taskquest.engine.recommendations import persist_insights, wellness_indicators, wellness_insights
from taskquest.engine.trend_detector import detect_sample_trend
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import parse_timestamp

RECENT_ENTRIES = 7
MAX_WORKLOAD_INTENSITY = 10.0
# Python weekday(): Saturday=5, Sunday=6
WEEKEND_DAYS = (5, 6)


def entry_score(entry: dict) -> float:
    value = entry.get("wellness_score")
    return float(value) if value is not None else DEFAULT_COMPONENT_VALUE


class WellnessService(UserScopedService):
    """
    Burnout and wellness analysis for one user.

    Args:
        storage: Storage backend
        user_id: Authenticated user
        lookback_days: History window
        persist: Upsert generated insights (non-fatal)
    """

    def __init__(self, storage, user_id, now=None, lookback_days: int = 30, persist: bool = False):
        super().__init__(storage, user_id, now)
        self.lookback_days = lookback_days
        self.persist = persist

    async def analyze(self) -> dict[str, Any]:
        since = self.now - timedelta(days=self.lookback_days)

        result = await self.fetcher.fetch_all({
            "wellness_entries": lambda: self.fetcher.rows(
                "wellness_entries",
                since=since,
                timestamp_field="recorded_at",
                ordering=[("recorded_at", True)],
            ),
            "work_sessions": lambda: self.fetcher.rows(
                "work_sessions",
                since=since,
                timestamp_field="session_start",
                ordering=[("session_start", True)],
            ),
            "tasks": lambda: self.fetcher.rows(
                "tasks",
                since=since,
                timestamp_field="completed_at",
                extra_filters=[("completed", "eq", True)],
            ),
            "current_score": lambda: self.fetcher.score(
                "calculate_wellness_score", DEFAULT_COMPONENT_VALUE
            ),
        })

        entries = result.get("wellness_entries", [])
        recent = entries[-RECENT_ENTRIES:]
        weekly_average = (
            safe_average([entry_score(e) for e in recent]) if recent else DEFAULT_COMPONENT_VALUE
        )
        trend = detect_sample_trend([entry_score(e) for e in recent])

        sessions = result.get("work_sessions", [])
        weekend_sessions = 0
        for session in sessions:
            start = parse_timestamp(session.get("session_start"))
            if start is not None and start.weekday() in WEEKEND_DAYS:
                weekend_sessions += 1

        daily_counts: dict[str, int] = {}
        for task in result.get("tasks", []):
            completed_at = parse_timestamp(task.get("completed_at"))
            if completed_at is not None:
                key = completed_at.date().isoformat()
                daily_counts[key] = daily_counts.get(key, 0) + 1
        task_intensity = safe_average(list(daily_counts.values()))
        average_working_sessions = len(sessions) / max(1, len(daily_counts)) if sessions else 0.0

        latest = recent[-1] if recent else None
        components = wellness_components(latest)
        score = burnout_score(latest)
        risk = classify_burnout(score)
        current_score = result.get("current_score", DEFAULT_COMPONENT_VALUE) or DEFAULT_COMPONENT_VALUE

        indicators = wellness_indicators({**components, "task_intensity": task_intensity})
        insights = wellness_insights(current_score, risk, weekend_sessions, trend)
        if self.persist:
            persist_insights(self.storage, self.user_id, "wellness", insights)

        self.logger.info(
            "wellness_analyzed",
            entries=len(entries),
            burnout_score=score,
            burnout_risk=risk.value,
            indicators=len(indicators),
        )

        return {
            "metrics": {
                "current_score": current_score,
                "weekly_average": round(weekly_average, 2),
                "trend": trend.direction.value,
                "burnout_score": score,
                "burnout_risk": risk.value,
                "work_life_balance": components["work_life_balance"],
                "stress_level": components["stress_level"],
                "energy_level": components["energy_level"],
                "satisfaction_level": components["job_satisfaction"],
                "sleep_quality": components["sleep_quality"],
                "social_connection": components["social_connection"],
                "workload_intensity": min(MAX_WORKLOAD_INTENSITY, task_intensity),
            },
            "classification": classify_score(current_score).model_dump(),
            "work_pattern": {
                "average_working_sessions": average_working_sessions,
                "weekend_work": weekend_sessions,
                "task_intensity": task_intensity,
            },
            "burnout_indicators": indicators,
            "insights": [i.model_dump() for i in insights],
            "errors": result.errors,
        }
