"""
Goal achievement analytics.

Per goal: progress, status against the target date, pace and completion
probability. Goals are then rolled up per category and overall.
"""

from typing import Any, Optional

from taskquest.engine.aggregator import OTHER_CATEGORY, percentage, safe_average, to_float
from taskquest.engine.heuristics import goal_completion_probability, goal_progress
from taskquest.engine.recommendations import goal_recommendations
from taskquest.models.enums import GoalStatus
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import days_between, parse_timestamp

BEHIND_DAYS, BEHIND_PROGRESS = 7, 80
AT_RISK_DAYS, AT_RISK_PROGRESS = 14, 60


def goal_status(completed: bool, days_remaining: Optional[int], progress: float) -> GoalStatus:
    if completed:
        return GoalStatus.COMPLETED
    if days_remaining is None:
        return GoalStatus.ON_TRACK
    if days_remaining < 0:
        return GoalStatus.OVERDUE
    if days_remaining <= BEHIND_DAYS and progress < BEHIND_PROGRESS:
        return GoalStatus.BEHIND
    if days_remaining <= AT_RISK_DAYS and progress < AT_RISK_PROGRESS:
        return GoalStatus.AT_RISK
    return GoalStatus.ON_TRACK


class GoalAnalyticsService(UserScopedService):
    """Analyzes every goal of a user together with its tasks."""

    def analyze(self) -> dict[str, Any]:
        goals = self.fetcher.rows("goals", ordering=[("created_at", False)])
        if not goals:
            return {"goals": [], "categories": [], "overall": self._overall([], [])}

        tasks = self.storage.query(
            "tasks", filters=[("goal_id", "in", [g["id"] for g in goals])]
        )
        tasks_by_goal: dict[str, list[dict]] = {}
        for task in tasks:
            tasks_by_goal.setdefault(task.get("goal_id"), []).append(task)

        analyzed = [self._analyze_goal(g, tasks_by_goal.get(g["id"], [])) for g in goals]
        categories = self._category_stats(goals, analyzed)

        self.logger.info("goal_analytics_computed", goals=len(goals), categories=len(categories))
        return {
            "goals": analyzed,
            "categories": categories,
            "overall": self._overall(goals, analyzed),
        }

    def _analyze_goal(self, goal: dict, tasks: list[dict]) -> dict[str, Any]:
        now = self.now
        done = [t for t in tasks if t.get("completed")]
        completed = bool(goal.get("completed"))
        progress = goal_progress(completed, len(done), len(tasks))

        created_at = parse_timestamp(goal.get("created_at")) or now
        target = parse_timestamp(goal.get("target_date"))
        completed_at = parse_timestamp(goal.get("completed_at"))

        days_remaining = days_between(target, now) if target and not completed else None
        status = goal_status(completed, days_remaining, progress)
        average_per_day = progress / max(1, days_between(now, created_at))
        probability = goal_completion_probability(completed, progress, days_remaining, average_per_day)
        xp_earned = sum(to_float(t.get("xp_earned")) for t in done)

        insights = []
        if completed:
            duration = days_between(completed_at, created_at) if completed_at else None
            insights.append(f"Goal completed in {duration} days")
            insights.append(f"Earned {xp_earned:g} XP from {len(done)} tasks")
        else:
            insights.append(f"{progress:.1f}% complete with {len(done)}/{len(tasks)} tasks done")
            if average_per_day > 0:
                insights.append(f"Progressing at {average_per_day:.1f}% per day on average")

        return {
            "goal_id": goal["id"],
            "title": goal.get("title"),
            "category": goal.get("category") or OTHER_CATEGORY,
            "progress_percentage": progress,
            "days_remaining": days_remaining or 0,
            "average_progress_per_day": average_per_day,
            "completion_probability": probability,
            "tasks_completed": len(done),
            "tasks_total": len(tasks),
            "xp_earned": xp_earned,
            "status": status.value,
            "insights": insights,
            "recommendations": goal_recommendations(status),
        }

    @staticmethod
    def _category_stats(goals: list[dict], analyzed: list[dict]) -> list[dict]:
        stats: dict[str, dict] = {}
        durations: dict[str, list[int]] = {}
        for goal, result in zip(goals, analyzed):
            category = result["category"]
            entry = stats.setdefault(category, {
                "category": category,
                "total": 0,
                "completed": 0,
                "completion_rate": 0.0,
                "average_time_to_complete": 0.0,
                "total_xp": 0.0,
            })
            entry["total"] += 1
            entry["total_xp"] += result["xp_earned"]
            if goal.get("completed"):
                entry["completed"] += 1
                created = parse_timestamp(goal.get("created_at"))
                completed_at = parse_timestamp(goal.get("completed_at"))
                if created and completed_at:
                    durations.setdefault(category, []).append(days_between(completed_at, created))

        for category, entry in stats.items():
            entry["completion_rate"] = percentage(entry["completed"], entry["total"])
            entry["average_time_to_complete"] = safe_average(durations.get(category, []))
        return list(stats.values())

    @staticmethod
    def _overall(goals: list[dict], analyzed: list[dict]) -> dict[str, Any]:
        total = len(goals)
        completed = sum(1 for g in goals if g.get("completed"))
        durations = []
        for goal in goals:
            created = parse_timestamp(goal.get("created_at"))
            completed_at = parse_timestamp(goal.get("completed_at"))
            if goal.get("completed") and created and completed_at:
                durations.append(days_between(completed_at, created))
        return {
            "total_goals": total,
            "active_goals": total - completed,
            "completed_goals": completed,
            "overall_completion_rate": percentage(completed, total),
            "average_completion_time": safe_average(durations),
            "total_xp_from_goals": sum(a["xp_earned"] for a in analyzed),
        }
