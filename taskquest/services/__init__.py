"""
Business logic layer.
Services are constructed per request with a storage backend and the
authenticated user, and compose the engine stages for one feature each.
"""

from taskquest.services.ai_suggestions import AISuggestionService
from taskquest.services.base import AuthenticationError, UserScopedService
from taskquest.services.contacts import ContactAnalyticsService
from taskquest.services.dashboard import DashboardService
from taskquest.services.gamification import GamificationService
from taskquest.services.goals import GoalAnalyticsService
from taskquest.services.integrations import IntegrationNotFoundError, IntegrationService
from taskquest.services.notifications import NotificationService
from taskquest.services.predictive import PredictiveAnalyticsService
from taskquest.services.productivity import ProductivityPatternService
from taskquest.services.reports import ReportService
from taskquest.services.wellness import WellnessService

__all__ = [
    "AISuggestionService",
    "AuthenticationError",
    "ContactAnalyticsService",
    "DashboardService",
    "GamificationService",
    "GoalAnalyticsService",
    "IntegrationNotFoundError",
    "IntegrationService",
    "NotificationService",
    "PredictiveAnalyticsService",
    "ProductivityPatternService",
    "ReportService",
    "UserScopedService",
    "WellnessService",
]
