"""
Dashboard overview: headline counts, scores and trends.

All sources are fetched in isolation so that, for example, an unavailable
wellness table leaves the task counters intact. Failed sources are
reported under ``errors`` with their data defaulted.
"""

from datetime import timedelta
from typing import Any

from taskquest.engine.aggregator import Aggregator, to_float
from taskquest.engine.classifier import classify_score
from taskquest.engine.recommendations import persist_insights, productivity_trend_recommendations
from taskquest.engine.trend_detector import detect_sample_trend, detect_trend, movement_label
from taskquest.models.analytics import Insight, Recommendation
from taskquest.models.enums import Granularity, InsightCategory, TrendDirection
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import parse_timestamp, start_of_day, start_of_month, start_of_week

DEFAULT_WELLNESS_SCORE = 5.0
CHART_DAYS = 7


class DashboardService(UserScopedService):
    """Builds the analytics dashboard overview for one user."""

    def __init__(self, storage, user_id, now=None, persist: bool = False):
        super().__init__(storage, user_id, now)
        self.persist = persist

    async def get_overview(self) -> dict[str, Any]:
        now = self.now
        today = start_of_day(now)
        week_start = start_of_week(now)
        last_week_start = week_start - timedelta(days=7)
        month_start = start_of_month(now)
        history_start = min(last_week_start, month_start, today - timedelta(days=CHART_DAYS - 1))
        completed = [("completed", "eq", True)]

        result = await self.fetcher.fetch_all({
            "tasks": lambda: self.fetcher.rows(
                "tasks", since=history_start, timestamp_field="completed_at", extra_filters=completed
            ),
            "streak": lambda: self.fetcher.rows("user_streaks", limit=1),
            "progress": lambda: self.fetcher.rows("user_progress", limit=1),
            "goals": lambda: self.fetcher.rows("goals"),
            "contacts": lambda: self.fetcher.rows("contacts"),
            "productivity_metrics": lambda: self.fetcher.rows(
                "productivity_metrics",
                since=(today - timedelta(days=CHART_DAYS)).date(),
                timestamp_field="metric_date",
                ordering=[("metric_date", True)],
            ),
            "wellness_entries": lambda: self.fetcher.rows(
                "wellness_entries",
                since=today - timedelta(days=CHART_DAYS),
                timestamp_field="recorded_at",
                ordering=[("recorded_at", True)],
            ),
            "productivity_score": lambda: self.fetcher.score("calculate_productivity_score", 0.0),
            "wellness_score": lambda: self.fetcher.score(
                "calculate_wellness_score", DEFAULT_WELLNESS_SCORE
            ),
        })

        tasks = result.get("tasks", [])
        streak = (result.get("streak") or [{}])[0]
        progress = (result.get("progress") or [{}])[0]
        goals = result.get("goals", [])
        metrics = result.get("productivity_metrics", [])
        entries = result.get("wellness_entries", [])

        def completed_between(start, end=None) -> list[dict]:
            selected = []
            for task in tasks:
                ts = parse_timestamp(task.get("completed_at"))
                if ts is not None and ts >= start and (end is None or ts < end):
                    selected.append(task)
            return selected

        this_week = completed_between(week_start)
        last_week = completed_between(last_week_start, week_start)
        this_week_xp = sum(to_float(t.get("xp_earned")) for t in this_week)
        last_week_xp = sum(to_float(t.get("xp_earned")) for t in last_week)

        chart = Aggregator(Granularity.DAILY).aggregate(
            tasks, start=today - timedelta(days=CHART_DAYS - 1), end=today
        )

        productivity_series = [to_float(m.get("productivity_score")) for m in metrics]
        wellness_series = [
            to_float(e["wellness_score"]) for e in entries if e.get("wellness_score") is not None
        ]
        productivity_trend = detect_sample_trend(productivity_series[-2:])
        wellness_trend = detect_sample_trend(wellness_series[-2:])
        task_trend = detect_trend(len(this_week), len(last_week))

        wellness_score = result.get("wellness_score", DEFAULT_WELLNESS_SCORE) or DEFAULT_WELLNESS_SCORE
        productivity_score = result.get("productivity_score", 0.0) or 0.0

        insights = self._insights(task_trend, len(this_week), len(last_week))
        if self.persist:
            persist_insights(self.storage, self.user_id, "dashboard", insights)

        self.logger.info(
            "dashboard_overview_computed",
            tasks_week=len(this_week),
            failed_sources=sorted(result.errors),
        )

        return {
            "tasks_today": len(completed_between(today)),
            "tasks_week": len(this_week),
            "tasks_last_week": len(last_week),
            "tasks_month": len(completed_between(month_start)),
            "xp_week": this_week_xp,
            "xp_last_week": last_week_xp,
            "task_trend": {**task_trend.model_dump(), "label": movement_label(task_trend)},
            "xp_trend": detect_trend(this_week_xp, last_week_xp).model_dump(),
            "current_streak": int(streak.get("current_streak") or 0),
            "longest_streak": int(streak.get("longest_streak") or 0),
            "total_xp": int(progress.get("total_xp") or 0),
            "current_level": int(progress.get("level") or 1),
            "goals_active": sum(1 for g in goals if not g.get("completed")),
            "goals_completed": sum(1 for g in goals if g.get("completed")),
            "contacts_total": len(result.get("contacts", [])),
            "productivity_score": productivity_score,
            "wellness_score": wellness_score,
            "wellness_classification": classify_score(wellness_score).model_dump(),
            "productivity_trend": productivity_trend.model_dump(),
            "wellness_trend": wellness_trend.model_dump(),
            "chart": [
                {"date": w.key, "tasks": w.count, "xp": w.sum} for w in chart
            ],
            "insights": [i.model_dump() for i in insights],
            "errors": result.errors,
        }

    @staticmethod
    def _insights(task_trend, this_week: int, last_week: int) -> list[Insight]:
        if this_week == 0 and last_week == 0:
            return []
        direction = task_trend.direction
        if direction == TrendDirection.IMPROVING:
            category = InsightCategory.POSITIVE
        elif direction == TrendDirection.DECLINING:
            category = InsightCategory.WARNING
        else:
            category = InsightCategory.INFO
        return [
            Insight(
                insight_id="weekly-task-trend",
                title=f"Task completion {movement_label(task_trend)}",
                description=(
                    f"{this_week} tasks completed this week vs {last_week} last week."
                ),
                category=category.value,
                confidence=0.8,
                recommendations=[
                    Recommendation(text=text, applicable_category=direction.value)
                    for text in productivity_trend_recommendations(task_trend)
                ],
            )
        ]
