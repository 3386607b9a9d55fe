"""API routers for all endpoints."""

from taskquest.routers import (
    ai,
    contacts,
    dashboard,
    gamification,
    goals,
    integrations,
    notifications,
    predictive,
    productivity,
    reports,
    wellness,
)

__all__ = [
    "ai",
    "contacts",
    "dashboard",
    "gamification",
    "goals",
    "integrations",
    "notifications",
    "predictive",
    "productivity",
    "reports",
    "wellness",
]
