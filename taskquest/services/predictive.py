"""
Predictive analytics: goal completion, workload forecasts, bottlenecks
and the combined productivity insight report.

Forecasts are heuristic. Averages of recent productivity metrics are
mapped through fixed rules; the only fitted quantity is the linear slope
used to project the productivity score forward.
"""

from datetime import date, timedelta
from typing import Any, Optional

import numpy as np

from taskquest.engine.aggregator import safe_average, to_float
from taskquest.engine.classifier import classify_burnout_probability
from taskquest.engine.recommendations import (
    immediate_actions,
    long_term_improvements,
    weekly_optimizations,
)
from taskquest.engine.trend_detector import detect_window_trend, project
from taskquest.models.enums import PeriodType
from taskquest.services.base import UserScopedService

DEFAULT_PRODUCTIVITY = 0.5
DEFAULT_CAPACITY_MINUTES = 480
DEFAULT_PEAK_HOURS = [9, 10, 14, 15]
DEFAULT_UTILIZATION = 0.75
DEFAULT_CAPACITY_HOURS = 40
DEFAULT_BURNOUT_SCORE = 0.2
FORECAST_CONFIDENCE = 0.75
INSIGHT_CONFIDENCE = 0.75

GOAL_LIKELY_THRESHOLD = 0.7
GOAL_AT_RISK_THRESHOLD = 0.4
ACTIVE_BOTTLENECK_LIKELIHOOD = 0.6
PREDICTED_BOTTLENECK_LIKELIHOOD = 0.5
HIGH_INTERRUPTION_COUNT = 5
HIGH_INTERRUPTION_SHARE = 0.3

PERIOD_DAYS = {PeriodType.WEEK: 7, PeriodType.MONTH: 30, PeriodType.QUARTER: 91}

BOTTLENECK_RULES: dict[str, dict[str, Any]] = {
    "time_management": {
        "bottleneck_category": "personal",
        "severity_score": 0.8,
        "likelihood_next_week": 0.75,
        "likelihood_next_month": 0.85,
        "prediction_confidence": 0.7,
        "resolution_strategies": [
            "Implement time-blocking techniques",
            "Use the Pomodoro Technique for focus",
            "Prioritize high-impact tasks during peak hours",
        ],
        "details": {
            "frequency_score": 0.7,
            "productivity_impact": 0.6,
            "estimated_time_cost_hours": 10,
            "affected_tasks": ["complex", "analytical"],
            "early_warning_signals": ["Declining daily task completion", "Increased time per task"],
            "mitigation_actions": [
                "Schedule regular productivity reviews",
                "Adjust task complexity mix",
                "Implement focus enhancement techniques",
            ],
        },
    },
    "context_switching": {
        "bottleneck_category": "environmental",
        "severity_score": 0.6,
        "likelihood_next_week": 0.6,
        "likelihood_next_month": 0.7,
        "prediction_confidence": 0.8,
        "resolution_strategies": [
            "Establish dedicated focus hours",
            "Use noise-cancelling headphones",
            "Implement communication boundaries",
        ],
        "details": {
            "frequency_score": 0.8,
            "productivity_impact": 0.5,
            "estimated_time_cost_hours": 8,
            "affected_tasks": ["creative", "analytical"],
            "early_warning_signals": ["High interruption count", "Reduced focus scores"],
            "mitigation_actions": [
                "Block calendar during focus time",
                "Set up distraction-free workspace",
                "Communicate availability windows",
            ],
        },
    },
}


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp to the last day of the target month
    next_month = date(year + (month == 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return date(year, month, min(day.day, last_day))


def period_end(start: date, period_type: PeriodType, periods_ahead: int) -> date:
    period_type = PeriodType(period_type)
    if period_type == PeriodType.WEEK:
        return start + timedelta(days=7 * periods_ahead)
    if period_type == PeriodType.MONTH:
        return add_months(start, periods_ahead)
    return add_months(start, 3 * periods_ahead)


def burnout_risk_score(average_productivity: float) -> float:
    if average_productivity < 0.4:
        return 0.8
    if average_productivity < 0.6:
        return 0.4
    return 0.2


def peak_hours(metrics: list[dict]) -> list[int]:
    """Top four hours by mean productivity of the days that list them as peak."""
    scores: dict[int, list[float]] = {}
    for metric in metrics:
        hours = metric.get("peak_hours")
        if not isinstance(hours, list):
            continue
        for hour in hours:
            scores.setdefault(int(hour), []).append(to_float(metric.get("productivity_score")))
    ranked = sorted(scores.items(), key=lambda item: -safe_average(item[1]))[:4]
    return [hour for hour, _ in ranked] or list(DEFAULT_PEAK_HOURS)


class PredictiveAnalyticsService(UserScopedService):
    """Forward-looking analytics built on recorded productivity metrics."""

    def __init__(
        self,
        storage,
        user_id,
        now=None,
        lookback_days: int = 30,
        forecast_lookback_days: int = 90,
        trend_tolerance: float = 0.10,
    ):
        super().__init__(storage, user_id, now)
        self.lookback_days = lookback_days
        self.forecast_lookback_days = forecast_lookback_days
        self.trend_tolerance = trend_tolerance

    def _metrics(self, days: int) -> list[dict]:
        """Productivity metrics of the last ``days`` days, newest first."""
        return self.fetcher.rows(
            "productivity_metrics",
            since=(self.now - timedelta(days=days)).date(),
            timestamp_field="metric_date",
            ordering=[("metric_date", False)],
        )

    # =========================================================================
    # Goals
    # =========================================================================

    def predict_goal_completion(self, goal_id: str) -> dict[str, Any]:
        probability = self.storage.rpc(
            "predict_goal_completion", {"p_goal_id": goal_id, "p_user_id": self.user_id}
        )
        probability = to_float(probability)
        self.logger.info("goal_completion_predicted", goal_id=goal_id, probability=probability)
        return {
            "goal_id": goal_id,
            "completion_probability": probability,
            "likely_to_complete": probability > GOAL_LIKELY_THRESHOLD,
            "at_risk": probability < GOAL_AT_RISK_THRESHOLD,
        }

    # =========================================================================
    # Workload
    # =========================================================================

    def generate_workload_forecast(
        self,
        period_type: PeriodType = PeriodType.WEEK,
        periods_ahead: int = 1,
        external_factors: Optional[dict] = None,
    ) -> dict[str, Any]:
        period_type = PeriodType(period_type)
        metrics = self._metrics(self.forecast_lookback_days)

        scores = [to_float(m.get("productivity_score")) for m in metrics]
        minutes = [to_float(m.get("time_worked_minutes")) for m in metrics]
        average_productivity = safe_average(scores) or DEFAULT_PRODUCTIVITY
        average_minutes = safe_average(minutes) or DEFAULT_CAPACITY_MINUTES

        # project() wants oldest first
        chronological = list(reversed(scores))
        steps = PERIOD_DAYS[period_type] * periods_ahead
        projected = project(chronological, steps) if chronological else average_productivity

        start = self.now.date()
        end = period_end(start, period_type, periods_ahead)
        risk_score = burnout_risk_score(average_productivity)

        row = {
            "user_id": self.user_id,
            "prediction_period_start": start,
            "prediction_period_end": end,
            "period_type": period_type.value,
            "predicted_capacity_hours": round(average_minutes / 60),
            "optimal_task_count": round(average_productivity * 10),
            "workload_utilization": DEFAULT_UTILIZATION,
            "burnout_risk_score": risk_score,
            "predicted_productivity_score": average_productivity,
            "predicted_completion_rate": average_productivity * 0.9,
            "capacity_recommendations": [
                "Consider reducing workload to prevent burnout"
                if average_productivity < 0.5
                else "Current capacity is well-balanced",
                "Schedule complex tasks during peak productivity hours",
                "Maintain regular break schedule for optimal performance",
            ],
            "confidence_level": FORECAST_CONFIDENCE,
            "created_at": self.now,
        }
        stored = self.storage.insert("workload_predictions", [row])[0]

        self.logger.info(
            "workload_forecast_generated",
            period_type=period_type.value,
            periods_ahead=periods_ahead,
            history=len(metrics),
            burnout_risk_score=risk_score,
        )
        return {
            **stored,
            "projected_productivity_score": round(projected, 4),
            "burnout_risk_level": classify_burnout_probability(risk_score).value,
            "recommended_complexity_mix": {"simple": 0.4, "medium": 0.4, "complex": 0.2},
            "optimal_break_schedule": {
                "morning_break": "10:30",
                "lunch_break": "12:30",
                "afternoon_break": "15:30",
            },
            "schedule_optimizations": [
                "Block time for deep work during morning hours",
                "Group similar tasks to reduce context switching",
                "Reserve afternoons for administrative tasks",
            ],
            "risk_mitigation_strategies": [
                "Monitor productivity trends weekly",
                "Adjust workload if burnout risk exceeds 0.6",
                "Implement stress management techniques",
            ],
            "external_factors": external_factors or {},
        }

    # =========================================================================
    # Bottlenecks
    # =========================================================================

    def analyze_bottlenecks(self, days: int = 30) -> list[dict]:
        metrics = self._metrics(days)
        average_productivity = (
            safe_average([to_float(m.get("productivity_score")) for m in metrics])
            or DEFAULT_PRODUCTIVITY
        )
        high_interruption_days = sum(
            1 for m in metrics if to_float(m.get("interruption_count")) > HIGH_INTERRUPTION_COUNT
        )

        detected = []
        if average_productivity < 0.4:
            detected.append("time_management")
        if high_interruption_days > len(metrics) * HIGH_INTERRUPTION_SHARE:
            detected.append("context_switching")
        if not detected:
            return []

        rows = []
        for kind in detected:
            rule = {k: v for k, v in BOTTLENECK_RULES[kind].items() if k != "details"}
            rows.append({
                "user_id": self.user_id,
                "bottleneck_type": kind,
                **rule,
                "created_at": self.now,
            })
        stored = self.storage.insert("bottleneck_predictions", rows)

        self.logger.info("bottlenecks_detected", types=detected, history=len(metrics))
        return [
            {**row, **BOTTLENECK_RULES[row["bottleneck_type"]]["details"]} for row in stored
        ]

    # =========================================================================
    # Insights
    # =========================================================================

    async def get_productivity_insights(self) -> dict[str, Any]:
        result = await self.fetcher.fetch_all({
            "metrics": lambda: self._metrics(self.lookback_days),
            "goal_predictions": lambda: self.fetcher.rows(
                "goal_completion_predictions", ordering=[("created_at", False)]
            ),
            "workload": lambda: self.fetcher.rows(
                "workload_predictions", ordering=[("prediction_period_start", False)]
            ),
            "bottlenecks": lambda: self.fetcher.rows(
                "bottleneck_predictions", ordering=[("created_at", False)]
            ),
        })

        metrics = result.get("metrics", [])
        scores = [to_float(m.get("productivity_score")) for m in metrics]
        current = scores[0] if scores and scores[0] else DEFAULT_PRODUCTIVITY
        average = safe_average(scores) or DEFAULT_PRODUCTIVITY

        trend = detect_window_trend(list(reversed(scores)), window=7, tolerance=self.trend_tolerance)

        deviations = np.asarray(scores, dtype=float) - average
        spread = float(np.sqrt(np.mean(deviations ** 2))) if scores else 0.0
        consistency = max(0.0, 1 - spread)

        probabilities = [
            to_float(p.get("completion_probability")) for p in result.get("goal_predictions", [])
        ]
        latest_workload = (result.get("workload") or [None])[0]
        if latest_workload:
            utilization = to_float(latest_workload.get("workload_utilization"))
            capacity_hours = to_float(latest_workload.get("predicted_capacity_hours"))
            burnout_score = to_float(latest_workload.get("burnout_risk_score")) or DEFAULT_BURNOUT_SCORE
        else:
            utilization = DEFAULT_UTILIZATION
            capacity_hours = DEFAULT_CAPACITY_HOURS
            burnout_score = DEFAULT_BURNOUT_SCORE
        burnout_level = classify_burnout_probability(burnout_score)

        bottlenecks = result.get("bottlenecks", [])
        active = [
            b for b in bottlenecks
            if to_float(b.get("likelihood_next_week")) > ACTIVE_BOTTLENECK_LIKELIHOOD
        ]
        predicted = [
            b for b in bottlenecks
            if to_float(b.get("likelihood_next_month")) > PREDICTED_BOTTLENECK_LIKELIHOOD
        ]
        hours = peak_hours(metrics)

        self.logger.info(
            "productivity_insights_computed",
            metrics=len(metrics),
            trend=trend.direction.value,
            burnout_level=burnout_level.value,
        )

        return {
            "current_productivity_score": current,
            "productivity_trend": trend.direction.value,
            "productivity_consistency": round(consistency, 4),
            "goals_likely_to_complete": sum(1 for p in probabilities if p > GOAL_LIKELY_THRESHOLD),
            "goals_at_risk": sum(1 for p in probabilities if p < GOAL_AT_RISK_THRESHOLD),
            "completion_probability_average": safe_average(probabilities) or DEFAULT_PRODUCTIVITY,
            "current_capacity_utilization": utilization,
            "optimal_capacity_hours": capacity_hours,
            "burnout_risk_level": burnout_level.value,
            "active_bottlenecks": active,
            "predicted_bottlenecks": predicted,
            "peak_performance_hours": hours,
            "optimal_task_distribution": {
                "creative": hours[:2],
                "analytical": hours,
                "administrative": [13, 14, 15, 16],
                "communication": [9, 10, 11, 14, 15],
            },
            "immediate_actions": immediate_actions(
                current, burnout_level, [b.get("bottleneck_type") for b in active]
            ),
            "weekly_optimizations": weekly_optimizations(trend, consistency),
            "long_term_improvements": long_term_improvements(
                average,
                [b.get("bottleneck_type") for b in predicted],
                [b.get("bottleneck_category") for b in predicted],
            ),
            "prediction_confidence": INSIGHT_CONFIDENCE,
            "data_quality_score": min(1.0, len(metrics) / 30),
            "last_updated": self.now.isoformat(),
            "errors": result.errors,
        }
