"""
Recommendation Generator: static rule tables keyed by classified state.

Each domain evaluates its checks in a fixed order and appends canned
strings to an accumulator. There is no ranking and no de-duplication: a
state that trips several checks gets every matching recommendation, in
table order. Given the same state and trend the output is always the same
list.

Insights may be written back to the store so the UI can show them later.
That write is fire-and-forget: a storage failure is logged and never
reaches the caller.
"""

from typing import Any, Iterable, Optional, Sequence

import structlog

from taskquest.models.analytics import Insight, Recommendation, TrendResult
from taskquest.models.enums import (
    BurnoutRisk,
    GoalStatus,
    InsightCategory,
    RelationshipStrength,
    RiskLevel,
    TrendDirection,
)
from taskquest.storage.base import StorageBackend, StorageError
from taskquest.utils.timeutils import utcnow

logger = structlog.get_logger()


# =============================================================================
# Wellness
# =============================================================================

WORKLOAD_RECOMMENDATIONS = [
    "Consider delegating or postponing non-critical tasks",
    "Break large tasks into smaller chunks",
    "Schedule buffer time between tasks",
]
STRESS_RECOMMENDATIONS = [
    "Practice stress management techniques",
    "Take regular breaks throughout the day",
    "Consider meditation or breathing exercises",
    "Review and adjust current commitments",
]
ENERGY_RECOMMENDATIONS = [
    "Ensure adequate sleep (7-9 hours)",
    "Take short walks or exercise breaks",
    "Review nutrition and hydration habits",
    "Consider energy management techniques",
]
BALANCE_RECOMMENDATIONS = [
    "Set clear boundaries between work and personal time",
    "Schedule regular personal activities",
    "Consider flexible work arrangements",
    "Practice saying no to non-essential commitments",
]
SLEEP_RECOMMENDATIONS = [
    "Maintain consistent sleep schedule",
    "Create relaxing bedtime routine",
    "Avoid screens 1 hour before bed",
    "Consider sleep environment improvements",
]

# "trigger" gates the rule; "severe" is None or (test, level, priority) and
# overrides the default "level" (level, priority) when its test passes
WELLNESS_INDICATOR_RULES: list[dict[str, Any]] = [
    {
        "type": "workload",
        "metric": "task_intensity",
        "trigger": lambda v: v > 10,
        "severe": None,
        "level": ("high", 1),
        "description": "High task volume detected",
        "impact": "May lead to exhaustion and reduced quality",
        "recommendations": WORKLOAD_RECOMMENDATIONS,
    },
    {
        "type": "schedule",
        "metric": "stress_level",
        "trigger": lambda v: v > 7,
        "severe": (lambda v: v > 8, "critical", 0),
        "level": ("high", 1),
        "description": "Elevated stress levels detected",
        "impact": "High stress can impact decision-making and health",
        "recommendations": STRESS_RECOMMENDATIONS,
    },
    {
        "type": "energy",
        "metric": "energy_level",
        "trigger": lambda v: v < 4,
        "severe": (lambda v: v < 3, "critical", 0),
        "level": ("high", 2),
        "description": "Low energy levels detected",
        "impact": "May affect productivity and motivation",
        "recommendations": ENERGY_RECOMMENDATIONS,
    },
    {
        "type": "schedule",
        "metric": "work_life_balance",
        "trigger": lambda v: v < 5,
        "severe": (lambda v: v < 3, "critical", 0),
        "level": ("moderate", 3),
        "description": "Work-life balance concerns",
        "impact": "Poor balance can lead to burnout and relationship strain",
        "recommendations": BALANCE_RECOMMENDATIONS,
    },
    {
        "type": "sleep",
        "metric": "sleep_quality",
        "trigger": lambda v: v < 5,
        "severe": (lambda v: v < 3, "high", 1),
        "level": ("moderate", 4),
        "description": "Sleep quality concerns detected",
        "impact": "Poor sleep affects cognitive function and recovery",
        "recommendations": SLEEP_RECOMMENDATIONS,
    },
]


def wellness_indicators(state: dict[str, float]) -> list[dict]:
    """
    Burnout indicators for a wellness state, most urgent first.

    Checks run in table order; the final sort by priority is stable, so
    indicators with equal priority keep their check order.
    """
    indicators = []
    for rule in WELLNESS_INDICATOR_RULES:
        value = state.get(rule["metric"])
        if value is None or not rule["trigger"](value):
            continue
        level, priority = rule["level"]
        if rule["severe"] and rule["severe"][0](value):
            level, priority = rule["severe"][1], rule["severe"][2]
        indicators.append({
            "type": rule["type"],
            "metric": rule["metric"],
            "level": level,
            "priority": priority,
            "value": value,
            "description": rule["description"],
            "impact": rule["impact"],
            "recommendations": list(rule["recommendations"]),
        })
    indicators.sort(key=lambda i: i["priority"])
    return indicators


POSITIVE_WELLNESS_RECOMMENDATIONS = [
    "Keep up your current wellness practices",
    "Consider mentoring others on wellness strategies",
    "Document what's working well for future reference",
]
BURNOUT_RECOMMENDATIONS = [
    "Reduce workload where possible",
    "Schedule time for recovery activities",
    "Consider speaking with a manager or counselor",
    "Prioritize sleep and self-care",
]
WEEKEND_WORK_RECOMMENDATIONS = [
    "Protect weekend time for rest and recovery",
    "Review workload distribution throughout the week",
    "Set boundaries around weekend availability",
]


def _recs(texts: Iterable[str], priority: int = 2, category: Optional[str] = None) -> list[Recommendation]:
    return [Recommendation(text=t, priority=priority, applicable_category=category) for t in texts]


def wellness_insights(
    current_score: float,
    burnout_risk: BurnoutRisk,
    weekend_sessions: int,
    trend: TrendResult,
) -> list[Insight]:
    insights = []

    if current_score >= 7:
        insights.append(Insight(
            insight_id="wellness-positive",
            title="Strong Wellness Score",
            description=(
                f"Your current wellness score of {current_score:.1f} "
                "indicates good overall well-being."
            ),
            category=InsightCategory.POSITIVE.value,
            confidence=0.85,
            recommendations=_recs(POSITIVE_WELLNESS_RECOMMENDATIONS, 3, "positive"),
            trends=[f"{trend.direction.value} trend over the past week"],
        ))

    if burnout_risk in (BurnoutRisk.HIGH, BurnoutRisk.CRITICAL):
        critical = burnout_risk == BurnoutRisk.CRITICAL
        insights.append(Insight(
            insight_id="burnout-risk",
            title="Burnout Risk Detected",
            description=(
                f"Multiple indicators suggest {burnout_risk.value} burnout risk. "
                "Immediate attention recommended."
            ),
            category=(InsightCategory.CRITICAL if critical else InsightCategory.WARNING).value,
            confidence=0.90,
            recommendations=_recs(BURNOUT_RECOMMENDATIONS, 0 if critical else 1, burnout_risk.value),
            trends=["Multiple wellness indicators below optimal levels"],
        ))

    if weekend_sessions > 5:
        insights.append(Insight(
            insight_id="weekend-work",
            title="Weekend Work Pattern",
            description=f"Significant weekend work detected ({weekend_sessions} sessions).",
            category=InsightCategory.CONCERN.value,
            confidence=0.75,
            recommendations=_recs(WEEKEND_WORK_RECOMMENDATIONS, 2, "weekend_work"),
            trends=["Consistent weekend work pattern"],
        ))

    return insights


# =============================================================================
# Goals
# =============================================================================

GOAL_RECOMMENDATIONS: list[tuple[tuple[GoalStatus, ...], list[str]]] = [
    (
        (GoalStatus.BEHIND, GoalStatus.OVERDUE),
        [
            "Consider breaking down remaining tasks into smaller steps",
            "Schedule dedicated time blocks for goal work",
            "Review and adjust timeline if needed",
        ],
    ),
    (
        (GoalStatus.AT_RISK,),
        [
            "Increase focus on this goal to stay on track",
            "Consider prioritizing goal-related tasks",
        ],
    ),
]
GOAL_DEFAULT_RECOMMENDATIONS = [
    "Keep up the great progress!",
    "Consider setting stretch targets",
]


def goal_recommendations(status: GoalStatus) -> list[str]:
    """Recommendations for an open goal; completed goals get none."""
    if status == GoalStatus.COMPLETED:
        return []
    for statuses, texts in GOAL_RECOMMENDATIONS:
        if status in statuses:
            return list(texts)
    return list(GOAL_DEFAULT_RECOMMENDATIONS)


# =============================================================================
# Contacts
# =============================================================================

STRONG_CONTACT_RECOMMENDATIONS = [
    "Continue regular communication",
    "Consider introducing them to relevant connections",
]
DORMANT_CONTACT_RECOMMENDATIONS = [
    "Schedule a catch-up conversation",
    "Send a thoughtful message or article",
    "Consider if this relationship should be maintained",
]
STALE_CONTACT_RECOMMENDATIONS = [
    "Reach out with a personal message",
    "Share relevant opportunities or content",
]
DECLINING_CONTACT_RECOMMENDATION = "Schedule more regular check-ins"


def contact_recommendations(
    strength: RelationshipStrength,
    days_since_contact: int,
    trend: TrendResult,
) -> list[str]:
    recommendations: list[str] = []
    if strength == RelationshipStrength.STRONG:
        recommendations.extend(STRONG_CONTACT_RECOMMENDATIONS)
    elif strength == RelationshipStrength.DORMANT:
        recommendations.extend(DORMANT_CONTACT_RECOMMENDATIONS)
    elif days_since_contact > 60:
        recommendations.extend(STALE_CONTACT_RECOMMENDATIONS)

    if trend.direction == TrendDirection.DECLINING:
        recommendations.append(DECLINING_CONTACT_RECOMMENDATION)
    return recommendations


# =============================================================================
# Productivity patterns
# =============================================================================

PRODUCTIVITY_TREND_RECOMMENDATIONS = {
    TrendDirection.DECLINING: [
        "Consider reducing task load to prevent burnout",
        "Focus on completing fewer, higher-impact tasks",
        "Review and adjust your current goals",
        "Take breaks to restore energy and motivation",
    ],
    TrendDirection.IMPROVING: [
        "Great momentum! Keep up the consistent progress",
        "Consider taking on more challenging tasks",
        "Set stretch goals to maintain growth",
        "Share your productivity strategies with others",
    ],
    TrendDirection.STABLE: [
        "Your productivity is steady and consistent",
        "Consider mixing in some variety to prevent stagnation",
        "Look for opportunities to optimize your workflows",
        "Maintain your current successful habits",
    ],
}


def productivity_trend_recommendations(trend: TrendResult) -> list[str]:
    return list(PRODUCTIVITY_TREND_RECOMMENDATIONS[trend.direction])


# =============================================================================
# Predictive
# =============================================================================


def immediate_actions(
    productivity: float,
    burnout_level: RiskLevel,
    bottleneck_types: Sequence[str],
) -> list[str]:
    actions = []
    if productivity < 0.4:
        actions.append("Take a short break to reset focus and energy")
        actions.append("Switch to simpler, momentum-building tasks")
    if burnout_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
        actions.append("Reduce workload for the rest of the day")
        actions.append("Schedule recovery time and self-care activities")
    if "context_switching" in bottleneck_types:
        actions.append("Block the next 2 hours for focused work without interruptions")
    if "time_management" in bottleneck_types:
        actions.append("Use time-blocking for the remainder of the day")
    if not actions:
        actions.append("Continue with current productivity patterns")
        actions.append("Focus on high-priority tasks during peak hours")
    return actions


def weekly_optimizations(trend: TrendResult, consistency: float) -> list[str]:
    optimizations = []
    if trend.direction == TrendDirection.DECLINING:
        optimizations.append("Analyze factors contributing to productivity decline")
        optimizations.append("Adjust workload distribution across the week")
        optimizations.append("Implement stress reduction techniques")
    if consistency < 0.6:
        optimizations.append("Establish more consistent daily routines")
        optimizations.append("Identify and eliminate productivity disruptors")
        optimizations.append("Set more realistic daily task targets")
    if trend.direction == TrendDirection.IMPROVING:
        optimizations.append("Identify and replicate successful patterns")
        optimizations.append("Gradually increase task complexity")
    optimizations.append("Schedule weekly productivity review sessions")
    optimizations.append("Plan challenging tasks during peak performance days")
    return optimizations


def long_term_improvements(
    average_productivity: float,
    bottleneck_types: Sequence[str],
    bottleneck_categories: Sequence[str],
) -> list[str]:
    improvements = []
    if average_productivity < 0.6:
        improvements.append("Develop systematic approach to task prioritization")
        improvements.append("Invest in productivity tools and training")
        improvements.append("Consider workload rebalancing or delegation")
    if "skill_gap" in bottleneck_types:
        improvements.append("Identify and address skill development needs")
        improvements.append("Seek mentoring or training opportunities")
    if "environmental" in bottleneck_categories:
        improvements.append("Optimize workspace for better focus and efficiency")
        improvements.append("Establish better work-life boundaries")
    improvements.append("Build sustainable productivity habits")
    improvements.append("Develop personalized productivity system")
    improvements.append("Create feedback loops for continuous improvement")
    return improvements


# =============================================================================
# Dispatch
# =============================================================================


def generate_recommendations(
    domain: str,
    state: dict[str, Any],
    trend: Optional[TrendResult] = None,
) -> list[Recommendation]:
    """
    Recommendations for a classified state in one domain.

    Args:
        domain: burnout, wellness, goal, contact or productivity
        state: Classified values the domain's rules read
        trend: Trend for the same entity, stable when omitted

    Returns:
        Recommendations in rule-table order
    """
    trend = trend or TrendResult()

    if domain == "burnout":
        risk = BurnoutRisk(state["burnout_risk"])
        if risk in (BurnoutRisk.HIGH, BurnoutRisk.CRITICAL):
            return _recs(BURNOUT_RECOMMENDATIONS, 0 if risk == BurnoutRisk.CRITICAL else 1, risk.value)
        return []

    if domain == "wellness":
        recommendations = []
        for indicator in wellness_indicators(state):
            recommendations.extend(
                _recs(indicator["recommendations"], indicator["priority"], indicator["type"])
            )
        return recommendations

    if domain == "goal":
        status = GoalStatus(state["status"])
        return _recs(goal_recommendations(status), 1, status.value)

    if domain == "contact":
        strength = RelationshipStrength(state["strength"])
        texts = contact_recommendations(strength, int(state.get("days_since_contact", 0)), trend)
        return _recs(texts, 2, strength.value)

    if domain == "productivity":
        return _recs(productivity_trend_recommendations(trend), 2, trend.direction.value)

    raise ValueError(f"Unknown recommendation domain: {domain}")


def persist_insights(
    storage: StorageBackend,
    user_id: str,
    section: str,
    insights: Sequence[Insight],
) -> bool:
    """
    Upsert generated insights for later display.

    Returns False (after logging) when the write fails; callers carry on
    with the insights they already hold.
    """
    if not insights:
        return True
    now = utcnow()
    rows = [{**insight.to_row(user_id, section), "updated_at": now} for insight in insights]
    try:
        storage.upsert("insights", rows, on_conflict=["user_id", "insight_id"])
        logger.debug("insights_persisted", section=section, count=len(rows))
        return True
    except StorageError as e:
        logger.warning("insights_persist_failed", section=section, error=str(e))
        return False
