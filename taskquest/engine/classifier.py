"""
Classifier: map continuous scores onto discrete bands.

Threshold tables are ordered by descending lower bound; the first entry
whose lower bound is <= the score wins, so a score sitting exactly on a
boundary belongs to the upper band (8.0 is "excellent", not "good").

Relationship strength is not a single-scalar scan: it is a decision table
over two joint conditions evaluated in fixed priority order.
"""

from typing import Callable, Sequence

from taskquest.models.analytics import ClassifiedScore
from taskquest.models.enums import (
    BurnoutRisk,
    RelationshipStrength,
    RiskLevel,
    ScoreCategory,
)

NEG_INF = float("-inf")

# 0-10 wellness / mood / productivity scores
SCORE_BANDS: list[tuple[float, str]] = [
    (8.0, ScoreCategory.EXCELLENT.value),
    (6.0, ScoreCategory.GOOD.value),
    (4.0, ScoreCategory.AVERAGE.value),
    (NEG_INF, ScoreCategory.POOR.value),
]

SCORE_COLORS = {
    ScoreCategory.EXCELLENT.value: "green",
    ScoreCategory.GOOD.value: "blue",
    ScoreCategory.AVERAGE.value: "yellow",
    ScoreCategory.POOR.value: "red",
}

# Composite burnout score (higher is healthier)
BURNOUT_BANDS: list[tuple[float, str]] = [
    (7.0, BurnoutRisk.LOW.value),
    (5.0, BurnoutRisk.MODERATE.value),
    (3.0, BurnoutRisk.HIGH.value),
    (NEG_INF, BurnoutRisk.CRITICAL.value),
]

BURNOUT_COLORS = {
    BurnoutRisk.LOW.value: "green",
    BurnoutRisk.MODERATE.value: "yellow",
    BurnoutRisk.HIGH.value: "orange",
    BurnoutRisk.CRITICAL.value: "red",
}

# (predicate(days_since_contact, interactions_per_month), strength), first match wins
RELATIONSHIP_RULES: list[tuple[Callable[[float, float], bool], RelationshipStrength]] = [
    (lambda days, freq: days <= 30 and freq >= 2, RelationshipStrength.STRONG),
    (lambda days, freq: days <= 60 and freq >= 1, RelationshipStrength.MODERATE),
    (lambda days, freq: days <= 90, RelationshipStrength.WEAK),
    (lambda days, freq: True, RelationshipStrength.DORMANT),
]

# Strict lower bounds on a 0-1 risk probability
RISK_PROBABILITY_BANDS: list[tuple[float, RiskLevel]] = [
    (0.8, RiskLevel.CRITICAL),
    (0.6, RiskLevel.HIGH),
    (0.4, RiskLevel.MEDIUM),
]

TIME_OF_DAY_LABELS: list[tuple[int, int, str]] = [
    (6, 12, "Morning"),
    (12, 17, "Afternoon"),
    (17, 21, "Evening"),
]


def classify(score: float, thresholds: Sequence[tuple[float, str]]) -> str:
    """
    Return the label of the first threshold whose lower bound is <= score.

    Scores below every bound (or NaN) fall into the last band.
    """
    if not thresholds:
        raise ValueError("thresholds must not be empty")
    for lower_bound, label in thresholds:
        if lower_bound <= score:
            return label
    return thresholds[-1][1]


def classify_score(score: float) -> ClassifiedScore:
    category = classify(score, SCORE_BANDS)
    return ClassifiedScore(raw_score=score, category=category, color_hint=SCORE_COLORS[category])


def classify_burnout(score: float) -> BurnoutRisk:
    return BurnoutRisk(classify(score, BURNOUT_BANDS))


def classify_burnout_score(score: float) -> ClassifiedScore:
    category = classify(score, BURNOUT_BANDS)
    return ClassifiedScore(raw_score=score, category=category, color_hint=BURNOUT_COLORS[category])


def classify_relationship(days_since_contact: float, frequency: float) -> RelationshipStrength:
    for predicate, strength in RELATIONSHIP_RULES:
        if predicate(days_since_contact, frequency):
            return strength
    return RelationshipStrength.DORMANT


def classify_burnout_probability(probability: float) -> RiskLevel:
    for bound, level in RISK_PROBABILITY_BANDS:
        if probability > bound:
            return level
    return RiskLevel.LOW


def time_of_day_label(hour: int) -> str:
    for start, end, label in TIME_OF_DAY_LABELS:
        if start <= hour < end:
            return label
    return "Night"
