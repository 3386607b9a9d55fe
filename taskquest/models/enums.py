"""
Enumeration types for the TaskQuest analytics engine.

All enums inherit from str so they serialize to JSON as their plain value.
"""

from enum import Enum


class Granularity(str, Enum):
    """Time bucket granularity for aggregation."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TrendDirection(str, Enum):
    """Direction of change between two adjacent windows."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class ScoreCategory(str, Enum):
    """Bands for 0-10 wellness and mood scores."""

    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


class BurnoutRisk(str, Enum):
    """Burnout risk bands derived from the composite burnout score."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    """Burnout level derived from a 0-1 workload risk probability."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RelationshipStrength(str, Enum):
    """
    Contact relationship strength.

    Declaration order is the display order used when sorting contacts.
    """

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    DORMANT = "dormant"


class GoalStatus(str, Enum):
    """Progress status of a goal relative to its target date."""

    COMPLETED = "completed"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BEHIND = "behind"
    OVERDUE = "overdue"


class InsightCategory(str, Enum):
    """Presentation category of a generated insight."""

    POSITIVE = "positive"
    WARNING = "warning"
    CRITICAL = "critical"
    CONCERN = "concern"
    INFO = "info"


class Priority(str, Enum):
    """Task priority."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Complexity(str, Enum):
    """Task complexity as suggested by keyword heuristics."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class InteractionType(str, Enum):
    """Kinds of contact interactions tracked in the network analytics."""

    EMAIL = "email"
    PHONE = "phone"
    MEETING = "meeting"
    SOCIAL = "social"
    OTHER = "other"


class SuggestionType(str, Enum):
    """AI task suggestion sources."""

    SIMILAR_TASK = "similar_task"
    FOLLOW_UP = "follow_up"
    PATTERN_BASED = "pattern_based"
    TIME_BASED = "time_based"


class SuggestionStatus(str, Enum):
    """Lifecycle of an AI task suggestion."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DISMISSED = "dismissed"
    EXPIRED = "expired"


class PeriodType(str, Enum):
    """Forecast horizon unit."""

    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class OAuthProvider(str, Enum):
    """Third-party providers that support the authorization-code exchange."""

    GOOGLE = "google"
    OUTLOOK = "outlook"
    SLACK = "slack"
    NOTION = "notion"
    GITHUB = "github"


class ActivityState(str, Enum):
    """What the user is currently doing, used to time notifications."""

    WORKING = "working"
    BREAK = "break"
    MEETING = "meeting"
    IDLE = "idle"
