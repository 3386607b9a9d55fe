"""
Task completion reports and CSV export.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Optional

import pandas as pd

from taskquest.engine.aggregator import Aggregator, to_float
from taskquest.engine.heuristics import complexity_weight, normalize_complexity
from taskquest.models.enums import Granularity
from taskquest.services.base import UserScopedService
from taskquest.utils.timeutils import parse_timestamp, start_of_day

DEFAULT_PRODUCTIVE_HOUR = 9
COMPLEXITY_BUCKETS = ("simple", "medium", "complex")
CSV_COLUMNS = ["Date", "Tasks Completed", "XP Earned", "Simple", "Medium", "Complex"]


def complexity_breakdown(distribution: dict[str, int]) -> dict[str, int]:
    """Fold raw complexity labels onto simple/medium/complex."""
    breakdown = {bucket: 0 for bucket in COMPLEXITY_BUCKETS}
    for label, count in distribution.items():
        breakdown[normalize_complexity(label)] += count
    return breakdown


def _whole(value: float):
    return int(value) if float(value).is_integer() else value


class ReportService(UserScopedService):
    """Completed-task reports over an explicit date range."""

    def build_report(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        timeframe: Granularity = Granularity.DAILY,
        complexity: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Bucket completed tasks in [date_from, date_to] and compute stats.

        Args:
            date_from: Range start, defaults to 30 days ago
            date_to: Range end (the whole day is included), defaults to now
            timeframe: daily, weekly or monthly buckets
            complexity: Only include tasks with this complexity ("all" for every task)

        Returns:
            {"buckets": [...], "stats": {...}}
        """
        date_to = date_to or self.now
        date_from = date_from or date_to - timedelta(days=30)
        range_start = start_of_day(date_from)
        range_end = start_of_day(date_to) + timedelta(days=1) - timedelta(microseconds=1)

        extra = [("completed", "eq", True)]
        if complexity and complexity != "all":
            extra.append(("complexity", "eq", complexity))
        tasks = self.fetcher.rows(
            "tasks",
            since=range_start,
            until=range_end,
            timestamp_field="completed_at",
            extra_filters=extra,
            ordering=[("completed_at", True)],
        )

        windows = Aggregator(
            timeframe, value_field="xp_earned", category_field="complexity"
        ).aggregate(tasks, start=range_start, end=range_end)

        buckets = []
        for window in windows:
            breakdown = complexity_breakdown(window.distribution)
            weighted = sum(complexity_weight(k) * v for k, v in breakdown.items())
            buckets.append({
                "date": window.key,
                "count": window.count,
                "xp": window.sum,
                "avg_complexity": weighted / window.count if window.count else 0.0,
                "complexity_breakdown": breakdown,
            })

        stats = self._stats(tasks, date_from, date_to, range_start, range_end)
        self.logger.info(
            "report_built",
            timeframe=Granularity(timeframe).value,
            tasks=stats["total_tasks"],
            buckets=len(buckets),
        )
        return {"buckets": buckets, "stats": stats}

    @staticmethod
    def _stats(
        tasks: list[dict],
        date_from: datetime,
        date_to: datetime,
        range_start: datetime,
        range_end: datetime,
    ) -> dict[str, Any]:
        total_tasks = len(tasks)
        total_xp = sum(to_float(t.get("xp_earned")) for t in tasks)
        days = math.ceil((date_to - date_from).total_seconds() / 86400)

        daily = Aggregator(Granularity.DAILY).aggregate(tasks, start=range_start, end=range_end)
        best = Aggregator.best_bucket(daily)

        hourly: dict[int, int] = {}
        for task in tasks:
            completed_at = parse_timestamp(task.get("completed_at"))
            if completed_at is not None:
                hourly[completed_at.hour] = hourly.get(completed_at.hour, 0) + 1
        if hourly:
            top = max(hourly.values())
            most_productive_hour = min(hour for hour, count in hourly.items() if count == top)
        else:
            most_productive_hour = DEFAULT_PRODUCTIVE_HOUR

        distribution = {bucket: 0 for bucket in COMPLEXITY_BUCKETS}
        for task in tasks:
            distribution[normalize_complexity(task.get("complexity"))] += 1

        return {
            "total_tasks": total_tasks,
            "total_xp": total_xp,
            "avg_tasks_per_day": total_tasks / days if days > 0 else 0.0,
            "avg_xp_per_task": total_xp / total_tasks if total_tasks else 0.0,
            "best_day": {"date": best.key, "count": best.count} if best else {"date": "", "count": 0},
            "most_productive_hour": most_productive_hour,
            "complexity_distribution": distribution,
        }

    @staticmethod
    def export_csv(report: dict[str, Any]) -> str:
        """Render report buckets as CSV; fields are quoted where needed."""
        records = [
            [
                bucket["date"],
                bucket["count"],
                _whole(bucket["xp"]),
                bucket["complexity_breakdown"]["simple"],
                bucket["complexity_breakdown"]["medium"],
                bucket["complexity_breakdown"]["complex"],
            ]
            for bucket in report.get("buckets", [])
        ]
        frame = pd.DataFrame(records, columns=CSV_COLUMNS)
        return frame.to_csv(index=False, lineterminator="\n")
