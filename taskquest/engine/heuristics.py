"""
Heuristic scoring constants and formulas.

Keyword inference is expressed as ordered rule tables of
(outcome, keywords, confidence); the first rule with a matching keyword
wins, and length limits act as extra predicates for complexity. Weighted
sums (burnout, networking) keep their coefficients here as configuration.
"""

from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from taskquest.models.enums import Complexity, Priority

# =============================================================================
# Task keyword inference
# =============================================================================

PRIORITY_RULES: list[tuple[Priority, tuple[str, ...], float]] = [
    (Priority.URGENT, ("urgent", "asap", "critical", "emergency", "immediate"), 0.9),
    (Priority.HIGH, ("important", "priority", "deadline", "soon"), 0.8),
    (Priority.LOW, ("someday", "maybe", "nice to have", "optional"), 0.7),
]
DEFAULT_PRIORITY = (Priority.MEDIUM, 0.6)

# (complexity, keywords, content-length predicate, confidence)
COMPLEXITY_RULES: list[tuple[Complexity, tuple[str, ...], Callable[[int], bool], float]] = [
    (
        Complexity.COMPLEX,
        ("research", "analyze", "design", "develop", "implement", "complex"),
        lambda length: length > 200,
        0.8,
    ),
    (
        Complexity.SIMPLE,
        ("call", "email", "check", "quick", "simple", "easy"),
        lambda length: length < 50,
        0.8,
    ),
]
DEFAULT_COMPLEXITY = (Complexity.MODERATE, 0.6)

DUE_DATE_OFFSETS = {
    Priority.URGENT: timedelta(days=1),
    Priority.HIGH: timedelta(days=7),
}

# simple=1, medium=2, complex=3; "moderate" is the suggestion-side name for medium
COMPLEXITY_WEIGHTS = {"simple": 1, "medium": 2, "moderate": 2, "complex": 3}


def task_content(title: str, description: Optional[str] = None) -> str:
    return f"{title} {description or ''}".lower()


def infer_priority(content: str) -> tuple[Priority, float]:
    for priority, keywords, confidence in PRIORITY_RULES:
        if any(keyword in content for keyword in keywords):
            return priority, confidence
    return DEFAULT_PRIORITY


def infer_complexity(content: str) -> tuple[Complexity, float]:
    length = len(content)
    for complexity, keywords, length_predicate, confidence in COMPLEXITY_RULES:
        if any(keyword in content for keyword in keywords) or length_predicate(length):
            return complexity, confidence
    return DEFAULT_COMPLEXITY


def suggest_due_date(priority: Priority, now: datetime) -> Optional[datetime]:
    offset = DUE_DATE_OFFSETS.get(priority)
    return now + offset if offset else None


def complexity_weight(complexity: Optional[str]) -> int:
    """Weight of a complexity label; missing counts as simple, unrecognised as complex."""
    return COMPLEXITY_WEIGHTS.get((complexity or "simple").lower(), 3 if complexity else 1)


def normalize_complexity(complexity: Optional[str]) -> str:
    """Map any complexity label onto the report buckets simple/medium/complex."""
    value = (complexity or "").lower()
    if value in ("medium", "moderate"):
        return "medium"
    if value == "complex":
        return "complex"
    return "simple"


# =============================================================================
# Wellness
# =============================================================================

# component -> (weight, inverted); inverted components contribute (10 - value)
BURNOUT_WEIGHTS: dict[str, tuple[float, bool]] = {
    "stress_level": (0.25, True),
    "energy_level": (0.20, False),
    "work_life_balance": (0.20, False),
    "job_satisfaction": (0.15, False),
    "sleep_quality": (0.10, False),
    "social_connection": (0.10, False),
}
DEFAULT_COMPONENT_VALUE = 5.0
BURNOUT_SCALE_MAX = 10.0


def wellness_components(entry: Optional[Mapping]) -> dict[str, float]:
    """The six burnout components of a wellness entry, missing ones set to 5."""
    entry = entry or {}
    components = {}
    for name in BURNOUT_WEIGHTS:
        value = entry.get(name)
        components[name] = float(value) if value is not None else DEFAULT_COMPONENT_VALUE
    return components


def burnout_score(entry: Optional[Mapping]) -> float:
    """Weighted 0-10 burnout composite; higher means healthier."""
    components = wellness_components(entry)
    score = 0.0
    for name, (weight, inverted) in BURNOUT_WEIGHTS.items():
        value = components[name]
        score += (BURNOUT_SCALE_MAX - value if inverted else value) * weight
    return round(score, 4)


# =============================================================================
# Contacts
# =============================================================================

NO_CONTACT_DAYS = 999
ACTIVE_CONTACT_DAYS = 30


def interaction_frequency(total_interactions: int, contact_age_days: float) -> float:
    """Interactions per 30-day month over the life of the contact."""
    return total_interactions / max(1.0, contact_age_days / 30)


def networking_score(
    total_contacts: int,
    active_contacts: int,
    strong_contacts: int,
    average_frequency: float,
) -> float:
    """0-100 score: activeRatio*40 + strongRatio*35 + min(25, avgFrequency*5)."""
    if total_contacts <= 0:
        return 0.0
    score = (
        active_contacts / total_contacts * 40
        + strong_contacts / total_contacts * 35
        + min(25.0, average_frequency * 5)
    )
    return min(100.0, score)


# =============================================================================
# Goals
# =============================================================================


def goal_progress(completed: bool, tasks_done: int, tasks_total: int) -> float:
    if completed:
        return 100.0
    if tasks_total > 0:
        return tasks_done / tasks_total * 100
    return 0.0


def goal_completion_probability(
    completed: bool,
    progress: float,
    days_remaining: Optional[int],
    average_progress_per_day: float,
) -> float:
    """
    0-100 likelihood a goal finishes on time.

    Compares the daily progress still required with the pace so far; each
    percentage point per day of gap costs ten points of probability.
    """
    if completed:
        return 100.0
    if days_remaining is None or days_remaining <= 0:
        return 0.0
    required = (100 - progress) / days_remaining
    return max(0.0, min(100.0, 100 - abs(required - average_progress_per_day) * 10))
