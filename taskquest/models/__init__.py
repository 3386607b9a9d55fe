"""
Data models for the TaskQuest analytics engine.

Core analytics values (samples, windows, scores, trends, recommendations,
insights) plus integration and notification shapes.
"""

from taskquest.models.analytics import (
    AggregateWindow,
    ClassifiedScore,
    FetchResult,
    Insight,
    MetricSample,
    Recommendation,
    TrendResult,
)
from taskquest.models.enums import (
    ActivityState,
    BurnoutRisk,
    Complexity,
    Granularity,
    GoalStatus,
    InsightCategory,
    InteractionType,
    OAuthProvider,
    PeriodType,
    Priority,
    RelationshipStrength,
    RiskLevel,
    ScoreCategory,
    SuggestionStatus,
    SuggestionType,
    TrendDirection,
)
from taskquest.models.integrations import OAuthTokens, SyncMapping, SyncResult
from taskquest.models.notifications import DeliveryContext, NotificationPreferences

__all__ = [
    "ActivityState",
    "AggregateWindow",
    "BurnoutRisk",
    "ClassifiedScore",
    "Complexity",
    "DeliveryContext",
    "FetchResult",
    "Granularity",
    "GoalStatus",
    "Insight",
    "InsightCategory",
    "InteractionType",
    "MetricSample",
    "NotificationPreferences",
    "OAuthProvider",
    "OAuthTokens",
    "PeriodType",
    "Priority",
    "Recommendation",
    "RelationshipStrength",
    "RiskLevel",
    "ScoreCategory",
    "SuggestionStatus",
    "SuggestionType",
    "SyncMapping",
    "SyncResult",
    "TrendDirection",
]
