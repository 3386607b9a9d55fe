"""
Request bodies accepted by the HTTP API.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from taskquest.models.enums import PeriodType, SuggestionType


class AnalyzeTaskRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None


class GenerateSuggestionsRequest(BaseModel):
    suggestion_type: SuggestionType = SuggestionType.PATTERN_BASED
    limit: int = Field(default=5, ge=1, le=50)


class RejectSuggestionRequest(BaseModel):
    reason: Optional[str] = None


class WorkloadForecastRequest(BaseModel):
    period_type: PeriodType = PeriodType.WEEK
    periods_ahead: int = Field(default=1, ge=1, le=12)
    external_factors: dict[str, Any] = Field(default_factory=dict)


class StreakUpdateRequest(BaseModel):
    activity_date: Optional[date] = Field(
        default=None, description="Defaults to today (UTC)"
    )


class AwardXPRequest(BaseModel):
    amount: int = Field(gt=0, le=100000)
    reason: str = Field(default="task_completed")
